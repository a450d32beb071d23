"""nailcheck_trend.py

Comparison/trend cells in the export use digits or arrow glyphs:
1 = up, 2 = flat, 3 = down. Everything else, including 0 and blanks, is "no
value". Trend sections are extracted with empty cells included so the column
set stays stable; sanitize_trend_block() turns them into explicit nulls.
"""

from __future__ import annotations

import math
import re
from typing import Any, Dict, Mapping, Optional

from nailcheck_text import normalize_key, to_half_width


RE_UP = re.compile(r"^(?:1|↑|↗|⇑|▲)$")
RE_FLAT = re.compile(r"^(?:2|→|➡|⇨|⇒)$")
RE_DOWN = re.compile(r"^(?:3|↓|↘|⇓|▼)$")
RE_CHECKLIST_CODE = re.compile(r"(?<!\d)(\d{1,2}-\d{1,2})(?!\d)")


def normalize_trend_value(value: Any) -> Optional[int]:
    """1 | 2 | 3, or None for blanks, 0 and unrecognised tokens."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value) or value != int(value):
            return None
        number = int(value)
        return number if 1 <= number <= 3 else None
    text = to_half_width(value).strip()
    if not text or text == "0":
        return None
    if RE_UP.match(text):
        return 1
    if RE_FLAT.match(text):
        return 2
    if RE_DOWN.match(text):
        return 3
    return None


def checklist_code(key: Any) -> Optional[str]:
    """Embedded NN-N checkpoint code of a label, if any."""
    match = RE_CHECKLIST_CODE.search(normalize_key(key))
    return match.group(1) if match else None


def sanitize_trend_block(block: Optional[Mapping[str, Any]]) -> Dict[str, Optional[str]]:
    """
    Normalise every value to "1"/"2"/"3"/None.

    Keys are kept as-is; a key carrying a checkpoint code is also exposed under
    the bare code so read paths can join on it. The first key for a code wins.
    """
    cleaned: Dict[str, Optional[str]] = {}
    if not block:
        return cleaned
    for key, value in block.items():
        code_value = normalize_trend_value(value)
        text = str(code_value) if code_value is not None else None
        cleaned[key] = text
        code = checklist_code(key)
        if code and code != key and code not in cleaned:
            cleaned[code] = text
    return cleaned
