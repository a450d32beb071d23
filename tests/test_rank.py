import pytest

from nailcheck_rank import band_in_key, clamp_rank, decode_rank, grade_from_score, is_truthy_marker, rank_label


class TestDecodeRank:
    @pytest.mark.parametrize("raw,expected", [
        ("ＡＡＡ", 4),
        ("AA", 3),
        ("a", 2),
        ("B", 1),
        ("未評価", None),
        ("3", 3),
        ("７", None),
        (7, None),
        (2.9, 2),
        (float("nan"), None),
        ("", None),
        (None, None),
    ])
    def test_decode(self, raw, expected):
        assert decode_rank(raw) == expected

    def test_marker_uses_band_from_key(self):
        assert decode_rank("○", key_hint="今回 AA") == 3
        assert decode_rank("○", key_hint="今回 AAA") == 4
        assert decode_rank("", key_hint="今回 AA") is None
        assert decode_rank("○") is None


class TestBands:
    @pytest.mark.parametrize("key,expected", [
        ("今回 AAA", 4),
        ("今回ＡＡ", 3),
        ("前回 A", 2),
        ("B", 1),
        ("BAND", None),
        ("ケア", None),
    ])
    def test_band_in_key(self, key, expected):
        assert band_in_key(key) == expected

    @pytest.mark.parametrize("value,expected", [
        ("○", True),
        ("YES", True),
        (1, True),
        ("0", False),
        ("-", False),
        ("なし", False),
        ("", False),
        (None, False),
        (0, False),
    ])
    def test_truthy_marker(self, value, expected):
        assert is_truthy_marker(value) is expected

    def test_labels_and_clamp(self):
        assert rank_label(3) == "AA"
        assert rank_label(None) == ""
        assert clamp_rank(5.6) == 4
        assert clamp_rank(0) == 1
        assert clamp_rank(None) is None

    @pytest.mark.parametrize("score,max_score,expected", [
        (95, 100, "AAA"),
        (80, 100, "AA"),
        (70, 100, "A"),
        (65, 100, "B"),
        (10, 100, "C"),
        (10, 0, "C"),
    ])
    def test_grade_from_score(self, score, max_score, expected):
        assert grade_from_score(score, max_score) == expected
