"""nailcheck_text.py

Text normalisation primitives shared by the import and read paths.

Two normal forms are used:

- clean_cell(): the value form written into section documents. Removes carriage
  returns and outer quotes, collapses whitespace and trims.
- normalize_key(): the comparison form for labels. Half-widths digits and Latin
  letters, drops brackets/whitespace, folds product-name synonyms and dash
  variants, and upper-cases ASCII. Both functions are total and idempotent.
"""

from __future__ import annotations

import datetime
import logging
import math
import re
from typing import Any, Optional


# -------------------------
# Character tables
# -------------------------

_FULLWIDTH_DIGITS = "０１２３４５６７８９"
_FULLWIDTH_UPPER = "ＡＢＣＤＥＦＧＨＩＪＫＬＭＮＯＰＱＲＳＴＵＶＷＸＹＺ"
_FULLWIDTH_LOWER = "ａｂｃｄｅｆｇｈｉｊｋｌｍｎｏｐｑｒｓｔｕｖｗｘｙｚ"

_HALF_WIDTH_DIGITS = str.maketrans({c: chr(ord(c) - 0xFEE0) for c in _FULLWIDTH_DIGITS})
_HALF_WIDTH_ALNUM = str.maketrans(
    {c: chr(ord(c) - 0xFEE0) for c in _FULLWIDTH_DIGITS + _FULLWIDTH_UPPER + _FULLWIDTH_LOWER}
)

# Hyphen, non-breaking hyphen, en dash, em dash, minus, prolonged sound marks,
# full-width hyphen-minus, wave dashes.
DASH_VARIANTS = "‐‑–—−ーｰ－〜～"
_DASH_FOLD = str.maketrans({c: "-" for c in DASH_VARIANTS})

RE_KEY_NOISE = re.compile(r"[\[\]［］【】()（）{}「」『』〈〉＜＞\s　]+")
RE_WHITESPACE = re.compile(r"\s+")
RE_OUTER_QUOTES = re.compile(r'^"+|"+$')

# Applied before the dash fold so the prolonged sound mark is still intact.
KEY_SYNONYMS = (
    ("カラー", "カラ"),
)

RE_YMD = re.compile(r"(\d{4})/(\d{1,2})/(\d{1,2})")
RE_MDY = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")


# -------------------------
# Normal forms
# -------------------------

def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value)


def to_half_width(value: Any) -> str:
    """Full-width digits and Latin letters to their ASCII forms."""
    return _stringify(value).translate(_HALF_WIDTH_ALNUM)


def to_half_width_digits(value: Any) -> str:
    return _stringify(value).translate(_HALF_WIDTH_DIGITS)


def clean_cell(value: Any) -> str:
    text = _stringify(value).replace("\r", "")
    text = RE_OUTER_QUOTES.sub("", text)
    text = RE_WHITESPACE.sub(" ", text).strip()
    # Trimming can expose another quote run at either end.
    while text and (text[0] == '"' or text[-1] == '"'):
        text = RE_OUTER_QUOTES.sub("", text).strip()
    return text


def normalize_key(value: Any) -> str:
    text = to_half_width(value)
    text = RE_KEY_NOISE.sub("", text)
    for long_form, short_form in KEY_SYNONYMS:
        text = text.replace(long_form, short_form)
    text = text.translate(_DASH_FOLD)
    return text.upper()


# -------------------------
# Scalar parsing
# -------------------------

def to_int(value: Any) -> int:
    """Leading signed integer of the digit/minus residue, 0 when there is none."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    residue = re.sub(r"[^\d-]", "", to_half_width_digits(value))
    match = re.match(r"-?\d+", residue)
    return int(match.group(0)) if match else 0


def to_number(value: Any) -> Optional[float]:
    """Numeric content of a cell, or None when nothing numeric remains."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    text = _stringify(value).strip()
    if not text:
        return None
    text = re.sub(r"[,\s　]", "", to_half_width_digits(text))
    digits = re.sub(r"[^0-9+\-.]", "", text)
    if not digits:
        return None
    try:
        number = float(digits)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _iso(year: int, month: int, day: int) -> Optional[str]:
    try:
        return datetime.date(year, month, day).isoformat()
    except ValueError:
        return None


def parse_iso_date(value: Any) -> Optional[str]:
    """
    Parse a loosely formatted date into YYYY-MM-DD.

    Accepted shapes, in order: Y/M/D, M/D/Y, then any text whose digits form an
    8-digit YYYYMMDD run. 年/月/. and - separate fields, 日 is dropped.
    """
    raw = clean_cell(to_half_width_digits(value))
    if not raw:
        return None
    text = re.sub(r"年|\.|月", "/", raw).replace("日", "").replace("-", "/")

    match = RE_YMD.search(text)
    if match:
        iso = _iso(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        if iso:
            return iso

    match = RE_MDY.search(text)
    if match:
        iso = _iso(int(match.group(3)), int(match.group(1)), int(match.group(2)))
        if iso:
            return iso

    digits = re.sub(r"\D", "", text)
    if len(digits) == 8:
        iso = _iso(int(digits[:4]), int(digits[4:6]), int(digits[6:]))
        if iso:
            return iso

    logging.warning("Date parse failed: '%s'", raw)
    return None


def to_iso_date(value: Any, today: Optional[datetime.date] = None) -> str:
    """Like parse_iso_date() but never empty: unparseable input becomes today."""
    parsed = parse_iso_date(value)
    if parsed:
        return parsed
    return (today or datetime.date.today()).isoformat()


def map_status(value: Any) -> str:
    text = clean_cell(value)
    if "回目" in text:
        return "in_progress"
    return "new"
