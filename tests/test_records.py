import datetime

from nailcheck_records import (
    build_assessment,
    build_customer,
    enrich_total_time,
    find_by_includes,
    group_table_key,
    raw_group_documents,
    score_leaves,
    synthesize_previous_scores,
)


TODAY = datetime.date(2025, 3, 1)


class TestCustomer:
    def test_invalid_external_id(self):
        assert build_customer({"ID": "12"}) is None
        assert build_customer({"ID": "合計"}) is None
        assert build_customer({}) is None

    def test_defaults(self):
        customer = build_customer({"ID": "1001"})
        assert customer["external_id"] == "1001"
        assert customer["name"] == "Customer 1001"
        assert customer["status"] == "new"
        assert customer["email"] is None

    def test_fields_by_containment(self):
        customer = build_customer({
            "会員ID": "2002",
            "お名前": "佐藤",
            "メールアドレス": "sato@example.com",
            "ステータス": "3回目",
            "申し込み日": "2024/4/1",
        })
        assert customer["external_id"] == "2002"
        assert customer["name"] == "佐藤"
        assert customer["email"] == "sato@example.com"
        assert customer["status"] == "in_progress"
        assert customer["application_date"] == "2024-04-01"

    def test_exact_key_beats_containment(self):
        assert find_by_includes({"会員ID": "1", "ID": "1001"}, ("ID",)) == "1001"


class TestScoreBlocks:
    def test_previous_scores_from_group(self):
        structured = {"今回スコア": {"総合": "650"}, "前回スコア": {"総合": "600", "総合評価": "A", "ケア": ""}}
        assert synthesize_previous_scores(structured) == {"総合 スコア": "600", "総合評価": "A"}

    def test_previous_scores_group_priority(self):
        structured = {"前回": {"総合": "600"}, "全国平均スコア": {"総合": "690"}}
        assert synthesize_previous_scores(structured) == {"総合 スコア": "690"}

    def test_no_previous_group(self):
        assert synthesize_previous_scores({"今回スコア": {"総合": "650"}}) == {}

    def test_total_time_from_own_text(self):
        assert enrich_total_time({"総合計タイム": "66分"})["総合計タイム"] == "66分00秒"

    def test_total_time_from_fallback(self):
        enriched = enrich_total_time({}, None, {"[オフ]分": "21", "[オフ]秒": "18"})
        assert enriched == {"総合計タイム": "21分18秒"}

    def test_total_time_untouched_without_data(self):
        block = {"総合 スコア": "650"}
        assert enrich_total_time(block) == block


class TestAssessment:
    def test_overrides_and_time_fallback(self):
        structured = {"今回スコア": {"総合 スコア": "600", "ケア評価": "A", "総合計タイム": "66分"}}
        sections = {
            ("score", "current"): {"総合 スコア": "650", "ケア評価": "AA"},
            ("time_both_hand", "current"): {"[オフ]分": "21", "[オフ]秒": "18"},
        }
        record = build_assessment(structured, sections, {"採点日": "2024年5月1日"}, TODAY)
        assert record["total_score"] == 650
        assert record["care_rating"] == "AA"
        assert record["total_time_minutes"] == 66
        assert record["total_time_seconds"] == 18
        assert record["assessment_date"] == "2024-05-01"

    def test_missing_date_defaults_to_today(self):
        record = build_assessment({}, {}, {}, TODAY)
        assert record["assessment_date"] == "2025-03-01"
        assert record["total_score"] == 0
        assert record["care_details"] == {}

    def test_details_follow_groups(self):
        structured = {"ケア": {"1-1": "10"}, "ワンカラー": {"14-1": "5"}}
        record = build_assessment(structured, {}, {}, TODAY)
        assert record["care_details"] == {"1-1": "10"}
        assert record["one_color_details"] == {"14-1": "5"}
        assert record["time_details"] == {}

    def test_score_leaves(self):
        structured = {"ケア": {"1-1": "10", "1-2": {"score": "5", "rating": "A", "comment": "x" * 300}}}
        leaves = score_leaves(structured)
        assert [leaf["sub_item"] for leaf in leaves] == ["1-1", "1-2"]
        assert leaves[0]["score"] == 10
        assert leaves[1]["rating"] == "A"
        assert len(leaves[1]["comment"]) == 200


class TestRawGroups:
    def test_table_keys(self):
        assert group_table_key("前回スコア 評価") == "formerscore_review"
        assert group_table_key("ケア比較") == "imjireda_chat"
        assert group_table_key("Memo (Free) Text.1") == "memo_free_text_1"

    def test_only_uncovered_groups(self):
        structured = {"ケア": {"1-1": "10"}, "メモ欄": {"a": "1"}, "空欄": {}}
        assert raw_group_documents(structured, reserved=["score"]) == {"メモ欄": {"a": "1"}}
