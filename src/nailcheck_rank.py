"""nailcheck_rank.py

Rank bands used on the evaluation sheets: 1=B < 2=A < 3=AA < 4=AAA.
Cells hold letters (often full-width), digits, "未評価", or a presence marker
(○, 1, YES ...) under a column whose label names the band.
"""

from __future__ import annotations

import math
import re
from typing import Any, Optional

import numpy as np

from nailcheck_text import normalize_key, to_half_width


RANK_LABELS = {1: "B", 2: "A", 3: "AA", 4: "AAA"}

# Longest label first so "AAA" never reads as "A".
_BAND_PATTERNS = tuple(
    (band, re.compile(rf"(?<![A-Z]){label}(?![A-Z])"))
    for band, label in sorted(RANK_LABELS.items(), key=lambda kv: -len(kv[1]))
)

UNRATED_MARK = "未評価"
FALSY_MARKERS = {"", "0", "-", "無", "なし"}


def rank_label(band: Optional[int]) -> str:
    return RANK_LABELS.get(band, "") if band is not None else ""


def band_in_key(key: Any) -> Optional[int]:
    """Band named in a column label, e.g. '今回 AA' -> 3."""
    text = normalize_key(key)
    for band, pattern in _BAND_PATTERNS:
        if pattern.search(text):
            return band
    return None


def is_truthy_marker(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return bool(value)
    if isinstance(value, (int, float)):
        return math.isfinite(value) and value != 0
    return to_half_width(value).strip() not in FALSY_MARKERS


def decode_rank(raw: Any, key_hint: Optional[str] = None) -> Optional[int]:
    """
    Decode a rank cell to 1..4.

    Numbers are floored and range-checked. Strings are matched AAA, AA, A, B
    after half-width conversion, then by digits. When nothing decodes and a key
    hint names a band, a truthy marker in the cell selects that band.
    """
    if raw is None:
        return None
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        if not math.isfinite(raw):
            return None
        number = math.floor(raw)
        return number if 1 <= number <= 4 else None

    text = str(raw).strip()
    if not text or UNRATED_MARK in text:
        return None
    ascii_text = to_half_width(text).upper()
    for band, label in ((4, "AAA"), (3, "AA"), (2, "A"), (1, "B")):
        if label in ascii_text:
            return band

    digits = re.sub(r"[^0-9-]", "", ascii_text)
    if re.fullmatch(r"-?\d+", digits):
        number = int(digits)
        if 1 <= number <= 4:
            return number

    if key_hint is not None and is_truthy_marker(raw):
        return band_in_key(key_hint)
    return None


def clamp_rank(value: Any) -> Optional[int]:
    if value is None:
        return None
    return int(np.clip(round(float(value)), 1, 4))


def grade_from_score(score: float, max_score: float) -> str:
    """Threshold banding of a score against its maximum."""
    if not max_score:
        return "C"
    pct = (score / max_score) * 100
    if pct >= 90:
        return "AAA"
    if pct >= 80:
        return "AA"
    if pct >= 70:
        return "A"
    if pct >= 60:
        return "B"
    return "C"
