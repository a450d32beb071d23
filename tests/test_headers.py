import pytest

from nailcheck_errors import MalformedInput
from nailcheck_headers import ColumnSpan, HeaderStack, detect_header_depth, score_group_row


def _two_level_rows():
    return [
        ["", "Current", "", "Previous", "", ""],
        ["id", "a", "b", "c", "d", "e"],
        ["1001", "1", "2", "3", "4", "5"],
    ]


class TestHeaderDepth:
    def test_first_record_id_marks_data(self):
        rows = [["title"], ["sub"], ["label"], ["1001"], ["1002"]]
        assert detect_header_depth(rows) == 3

    def test_short_ids_are_not_records(self):
        rows = [["x"], ["12"], ["y"]]
        assert detect_header_depth(rows, fallback=1) == 1

    def test_fallback_is_capped_by_row_count(self):
        rows = [["a"], ["b"], ["c"]]
        assert detect_header_depth(rows, fallback=14) == 2

    def test_record_in_first_row_uses_fallback(self):
        rows = [["1001"], ["1002"], ["1003"]]
        assert detect_header_depth(rows, fallback=1) == 1


class TestGroupRow:
    def test_score_counts_keywords(self):
        assert score_group_row(["今回スコア", "", "前回スコア", "ケア"]) == 4
        assert score_group_row(["", ""]) == 0

    def test_english_keywords_are_case_insensitive(self):
        assert score_group_row(["CURRENT", "Previous"]) == 2


class TestHeaderStack:
    def test_two_level_spans(self):
        stack = HeaderStack(_two_level_rows())
        assert stack.depth == 2
        assert stack.group_row_index == 0
        assert stack.spans == (ColumnSpan("Current", 1, 2), ColumnSpan("Previous", 3, 5))

    def test_extract_range_uses_lowest_headers(self):
        stack = HeaderStack(_two_level_rows())
        block = stack.extract_range(stack.data_rows[0], "A", "F")
        assert list(block) == ["id", "a", "b", "c", "d", "e"]
        assert block["e"] == "5"

    def test_structured_blocks(self):
        stack = HeaderStack(_two_level_rows())
        blocks = stack.structured_blocks(stack.data_rows[0])
        assert blocks == {"Current": {"a": "1", "b": "2"}, "Previous": {"c": "3", "d": "4", "e": "5"}}

    def test_ranges_merge_into_one_block(self):
        stack = HeaderStack(_two_level_rows())
        data = stack.data_rows[0]
        block = stack.extract_range(data, "A", "A")
        stack.extract_range(data, "E", "F", block=block)
        assert block == {"id": "1001", "d": "4", "e": "5"}

    def test_empty_cells_only_when_requested(self):
        rows = _two_level_rows()
        rows[2][2] = ""
        stack = HeaderStack(rows)
        assert "b" not in stack.extract_range(stack.data_rows[0], "B", "C")
        assert stack.extract_range(stack.data_rows[0], "B", "C", include_empty=True) == {"a": "1", "b": ""}

    def test_unlabelled_columns_get_placeholders(self):
        rows = [["", "Current", ""], ["id", "a", ""], ["1001", "1", "2"]]
        stack = HeaderStack(rows)
        assert stack.lowest_header == ("id", "a", "col_3")
        assert stack.lowest_header_at(10) == "col_11"

    def test_final_header_joins_rows(self):
        stack = HeaderStack(_two_level_rows())
        assert stack.final_header[1] == "Current a"
        assert stack.final_header[0] == "id"

    def test_short_rows_read_as_empty(self):
        rows = _two_level_rows()
        rows[2] = ["1001", "1"]
        stack = HeaderStack(rows)
        assert stack.extract_range(stack.data_rows[0], "A", "F") == {"id": "1001", "a": "1"}

    def test_catch_all_span_without_group_labels(self):
        rows = [["", ""], ["id", "a"], ["1001", "x"]]
        stack = HeaderStack(rows)
        assert stack.spans == (ColumnSpan("データ", 0, 1),)

    def test_best_scoring_row_is_group_row(self):
        rows = [
            ["Skill check export", "", "", ""],
            ["", "今回スコア", "", "ケア"],
            ["id", "total", "rank", "1-1"],
            ["1001", "650", "AA", "10"],
        ]
        stack = HeaderStack(rows)
        assert stack.group_row_index == 1
        assert [s.key for s in stack.spans] == ["今回スコア", "ケア"]

    @pytest.mark.parametrize("rows,count", [([], 0), ([["1001"]], 1)])
    def test_too_few_rows(self, rows, count):
        with pytest.raises(MalformedInput, match=rf"rows={count}\)"):
            HeaderStack(rows)

    def test_header_rows_are_immutable(self):
        stack = HeaderStack(_two_level_rows())
        with pytest.raises(TypeError):
            stack.header_rows[0][0] = "x"
