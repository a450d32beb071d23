import json

import pytest

from nailcheck_lookup import (
    FieldMap,
    FieldSpec,
    PositionalCursor,
    clamp_trend,
    infer_band,
    lookup,
    lookup_rank,
    lookup_time,
    lookup_value,
    radar_percent,
)
from nailcheck_text import to_number
from nailcheck_trend import normalize_trend_value, sanitize_trend_block


class TestFieldMap:
    def test_from_json_string(self):
        fmap = FieldMap.from_document(json.dumps({"1-1": "10"}))
        assert fmap["1-1"] == "10"
        assert len(fmap) == 1

    @pytest.mark.parametrize("document", [None, "", "not json", "[1, 2]", 42])
    def test_unusable_documents_are_empty(self, document):
        assert len(FieldMap.from_document(document)) == 0

    def test_read_only(self):
        fmap = FieldMap({"a": 1})
        with pytest.raises(TypeError):
            fmap["a"] = 2

    def test_payload_round_trip(self):
        payload = {"[ケア]1-1削りすぎ": "10", "メモ": ""}
        fmap = FieldMap.from_document(json.dumps(payload, ensure_ascii=False))
        assert fmap.to_payload() == payload
        assert FieldMap.from_document(fmap) is fmap

    def test_entries_carry_codes(self):
        entries = FieldMap({"[ケア]１－１削りすぎ": "10", "メモ": "x"}).entries()
        assert [e.code for e in entries] == ["1-1", None]
        assert entries[0].normalized == "ケア1-1削りすぎ"

    def test_subset(self):
        fmap = FieldMap({"今回 ケア評価": "AA", "前回 ケア評価": "B"})
        assert list(fmap.subset(["前回"])) == ["前回 ケア評価"]


class TestLookupChain:
    def test_exact_raw_key(self):
        result = lookup({"1-1": "10"}, FieldSpec(code="1-1", label="削りすぎ"))
        assert (result.value, result.source) == ("10", "exact")

    def test_exact_embedded_code(self):
        result = lookup({"[ケア]１－１削りすぎ": "10"}, FieldSpec(code="1-1"))
        assert (result.value, result.source) == ("10", "exact")

    def test_code_matches_on_digit_boundaries(self):
        result = lookup({"11-1小爪": "5", "1-10": "7"}, FieldSpec(code="1-1"))
        assert not result.found

    def test_alias(self):
        result = lookup({"総合点": "650"}, FieldSpec(code="total"))
        assert (result.value, result.source) == ("650", "alias")

    def test_substring(self):
        result = lookup({"ケア 削りすぎ 今回": "10"}, FieldSpec(code="x", label="削りすぎ"))
        assert (result.value, result.source) == ("10", "substring")

    def test_blank_checkpoint_does_not_borrow_another_code(self):
        document = sanitize_trend_block({"[ファイル長さ・形]4-1ガタつき": "", "[サイドウォール]12-2ガタつき": "↓"})
        spec = FieldSpec("4-1", "ガタつき", family="comparison")
        result = lookup(document, spec, parse=normalize_trend_value)
        assert not result.found
        assert lookup_value(document, FieldSpec("12-2", "ガタつき", family="comparison"), normalize_trend_value) == 3

    def test_digit_key_does_not_match_inside_target(self):
        assert lookup_value({"1": "10"}, FieldSpec(label="11-1")) is None

    def test_parse_skips_unusable_values(self):
        document = {"1-1": "abc", "[ケア]1-1": "10"}
        assert lookup_value(document, FieldSpec(code="1-1"), parse=to_number) == 10.0

    def test_empty_values_are_skipped(self):
        assert lookup_value({"1-1": "", "[ケア]1-1削りすぎ": "5"}, FieldSpec(code="1-1")) == "5"

    def test_positional_fallback_consumes_in_order(self):
        cursor = PositionalCursor.from_map({"1-2": "7", "1-1": "5", "[ケア]1-1": "5"})
        assert cursor.values == ("5", "7")

        first = lookup({}, FieldSpec(code="99-1"), cursor=cursor)
        second = lookup({}, FieldSpec(code="99-2"), cursor=first.cursor)
        third = lookup({}, FieldSpec(code="99-3"), cursor=second.cursor)

        assert (first.value, first.source) == ("5", "positional")
        assert second.value == "7"
        assert not third.found
        assert cursor.position == 0

    def test_hit_does_not_advance_cursor(self):
        cursor = PositionalCursor(("9",))
        result = lookup({"1-1": "10"}, FieldSpec(code="1-1"), cursor=cursor)
        assert result.cursor is cursor
        assert result.cursor.remaining == 1

    def test_cursor_parse_drops_unusable(self):
        cursor = PositionalCursor.from_map({"1-1": "x", "1-2": "4"}, parse=to_number)
        assert cursor.values == (4.0,)


class TestRanksAndTimes:
    def test_rank_prefers_hint_series(self):
        document = {"今回 ケア評価": "AA", "前回 ケア評価": "B"}
        assert lookup_rank(document, FieldSpec(code="care_rating"), hints=("前回",)) == 1
        assert lookup_rank(document, FieldSpec(code="care_rating")) == 3

    def test_rank_hint_without_hit_falls_back(self):
        document = {"ケア評価": "AAA"}
        assert lookup_rank(document, FieldSpec(code="care_rating"), hints=("全国平均",)) == 4

    def test_band_from_marker_columns(self):
        document = {"今回 AAA": "", "今回 AA": "○", "今回 A": ""}
        assert infer_band(document, FieldSpec(label="今回")) == 3
        assert lookup_rank(document, FieldSpec(label="今回")) == 3

    def test_time_from_split_columns(self):
        document = {"[オフ]分": "21", "[オフ]秒": "18"}
        assert lookup_time(document, FieldSpec(code="29-1")) == "21分18秒"

    def test_time_missing(self):
        assert lookup_time({"メモ": "x"}, FieldSpec(code="29-1")) is None


class TestClamps:
    @pytest.mark.parametrize("value,max_value,expected", [
        (50, 200, 25.0),
        (500, 100, 100.0),
        (-5, 100, 0.0),
        (None, 10, 0.0),
        (5, 0, 0.0),
    ])
    def test_radar_percent(self, value, max_value, expected):
        assert radar_percent(value, max_value) == expected

    def test_clamp_trend(self):
        assert clamp_trend(0) == 1
        assert clamp_trend(5) == 3
        assert clamp_trend(None) is None
