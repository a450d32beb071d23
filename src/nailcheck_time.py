"""nailcheck_time.py

Duration handling for the skill-check export.

The export splits durations across columns: a headed "総合計タイム" column may
carry "66分" or a bare "66", followed by unlabeled columns carrying the seconds.
smart_set() is the single insertion point used while building a section block,
so those fragments end up as one canonical "<m>分<ss>秒" value instead of a
pile of placeholder keys.

Bare integers pair as minutes then seconds. A bare integer that repeats the
minutes of a minutes-only total is read as seconds at first; when another bare
integer follows in the same TimeBlock, the repeat was a copy of the minutes and
the new value becomes the seconds.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from nailcheck_text import to_half_width_digits


TOTAL_TIME_KEY = "総合計タイム"

RE_PLACEHOLDER = re.compile(r"^col_\d+$")
RE_MINUTES = re.compile(r"(\d+)分")
RE_SECONDS = re.compile(r"(\d+)秒")
RE_CLOCK = re.compile(r"^(\d+)[:：](\d{1,2})$")
RE_BARE = re.compile(r"^\d+$")
RE_SHORT_INT = re.compile(r"^\d{1,2}$")
RE_DIGITS = re.compile(r"(\d+)")
RE_TIME_MARK = re.compile(r"[分秒]")

TOTAL_TIME_MARKERS = (TOTAL_TIME_KEY, "総合計", "合計タイム")


@dataclass(frozen=True)
class TimeFragment:
    minutes: Optional[int] = None
    seconds: Optional[int] = None
    bare: Optional[int] = None


def _compact(value: Any) -> str:
    return re.sub(r"[\s　]+", "", to_half_width_digits(value))


def looks_like_time_token(value: Any) -> bool:
    return bool(RE_TIME_MARK.search(str(value or "")))


def is_total_time_key(key: str) -> bool:
    return any(marker in key for marker in TOTAL_TIME_MARKERS)


def extract_minutes(value: Any) -> int:
    match = RE_MINUTES.search(_compact(value))
    return int(match.group(1)) if match else 0


def extract_seconds(value: Any) -> int:
    match = RE_SECONDS.search(_compact(value))
    return int(match.group(1)) if match else 0


def split_time(value: Any) -> Tuple[int, int]:
    """(minutes, seconds) from a "MM分SS秒" text; missing parts are 0."""
    fragment = parse_fragment(value)
    if fragment is None:
        return 0, 0
    if fragment.bare is not None:
        return fragment.bare, 0
    return fragment.minutes or 0, fragment.seconds or 0


def format_time(minutes: int, seconds: int) -> str:
    return f"{minutes}分{seconds:02d}秒"


def parse_fragment(value: Any) -> Optional[TimeFragment]:
    text = _compact(value)
    if not text:
        return None
    clock = RE_CLOCK.match(text)
    if clock:
        return TimeFragment(minutes=int(clock.group(1)), seconds=int(clock.group(2)))
    minutes = RE_MINUTES.search(text)
    seconds = RE_SECONDS.search(text)
    if minutes or seconds:
        return TimeFragment(
            minutes=int(minutes.group(1)) if minutes else None,
            seconds=int(seconds.group(1)) if seconds else None,
        )
    if RE_BARE.match(text):
        return TimeFragment(bare=int(text))
    return None


def _render(minutes: Optional[int], seconds: Optional[int]) -> Optional[str]:
    if minutes is None and seconds is None:
        return None
    if seconds is None:
        return f"{minutes}分"
    return format_time(minutes or 0, seconds)


def merge_time_values(existing: Any, new: Any) -> Optional[str]:
    """
    Merge two duration fragments into one value.

    Returns None when either side is not a duration or when the pair cannot be
    combined without discarding information (e.g. a complete value plus a bare
    integer).
    """
    old = parse_fragment(existing)
    incoming = parse_fragment(new)
    if old is None or incoming is None:
        return None

    if old.bare is not None and incoming.bare is not None:
        return format_time(old.bare, incoming.bare)

    if incoming.bare is not None:
        if old.minutes is not None and old.seconds is None:
            return format_time(old.minutes, incoming.bare)
        if old.minutes is None and old.seconds is not None:
            return format_time(incoming.bare, old.seconds)
        return None

    if old.bare is not None:
        if incoming.minutes is None:
            return format_time(old.bare, incoming.seconds or 0)
        if incoming.seconds is None:
            if old.bare == incoming.minutes:
                return _render(incoming.minutes, None)
            return format_time(incoming.minutes, old.bare)
        return None

    return _render(_prefer_nonzero(old.minutes, incoming.minutes), _prefer_nonzero(old.seconds, incoming.seconds))


def _prefer_nonzero(first: Optional[int], second: Optional[int]) -> Optional[int]:
    if first:
        return first
    return second if second is not None else first


class TimeBlock(dict):
    """
    Section block under construction.

    seconds_may_repeat_minutes is set while the total's seconds came from a
    bare integer equal to its minutes.
    """

    seconds_may_repeat_minutes = False


def _mark_repeat(block: Dict[str, Any], flag: bool) -> None:
    if isinstance(block, TimeBlock):
        block.seconds_may_repeat_minutes = flag


def _repeats_minutes(total: Any, value: Any) -> bool:
    old = parse_fragment(total)
    incoming = parse_fragment(value)
    return (
        old is not None and incoming is not None and old.seconds is None
        and old.minutes is not None and incoming.bare == old.minutes
    )


def smart_set(block: Dict[str, Any], key: str, value: str) -> None:
    """Insert value under key, merging duration fragments where they belong together."""
    existing = block.get(key)

    if existing and (TOTAL_TIME_KEY in key or looks_like_time_token(key)):
        merged = merge_time_values(existing, value)
        if merged:
            block[key] = merged
            if is_total_time_key(key):
                block[TOTAL_TIME_KEY] = merged
                _mark_repeat(block, False)
            return

    total = block.get(TOTAL_TIME_KEY)
    if RE_PLACEHOLDER.match(key) and total and (looks_like_time_token(value) or RE_SHORT_INT.match(value or "")):
        incoming = parse_fragment(value)
        if getattr(block, "seconds_may_repeat_minutes", False) and incoming is not None and incoming.minutes is None:
            seconds = incoming.bare if incoming.bare is not None else incoming.seconds
            block[TOTAL_TIME_KEY] = format_time(parse_fragment(total).minutes or 0, seconds)
            _mark_repeat(block, False)
            return
        merged = merge_time_values(total, value)
        if merged:
            block[TOTAL_TIME_KEY] = merged
            _mark_repeat(block, _repeats_minutes(total, value))
            return

    _mark_repeat(block, False)
    if existing and existing != value:
        logging.warning("Ambiguous field '%s': '%s' replaced by '%s'", key, existing, value)
    block[key] = value


# -------------------------
# Read-side helpers
# -------------------------

def combine_time_fragments(entries: Iterable[Tuple[str, Any]]) -> Optional[str]:
    """
    Combine (key, value) pairs whose minutes and seconds live in separate fields.

    A value that already carries both parts wins immediately. Otherwise bare
    numbers are attributed by the 分/秒 mark in their key.
    """
    minutes: Optional[int] = None
    seconds: Optional[int] = None
    for key, value in entries:
        fragment = parse_fragment(value)
        if fragment is None:
            continue
        if fragment.minutes is not None and fragment.seconds is not None:
            return format_time(fragment.minutes, fragment.seconds)
        if fragment.bare is not None:
            if "秒" in key:
                seconds = fragment.bare if seconds is None else seconds
            elif "分" in key or minutes is None:
                minutes = fragment.bare if minutes is None else minutes
            continue
        if fragment.minutes is not None and minutes is None:
            minutes = fragment.minutes
        if fragment.seconds is not None and seconds is None:
            seconds = fragment.seconds
    if minutes is None and seconds is None:
        return None
    return format_time(minutes or 0, seconds or 0)


def derive_time_from_map(data: Optional[Mapping[str, Any]]) -> Tuple[int, int]:
    """(minutes, seconds) from a block whose keys mark 分 and 秒 columns."""
    minutes, seconds = 0, 0
    if not data:
        return minutes, seconds
    for key, value in data.items():
        match = RE_DIGITS.search(to_half_width_digits(value))
        if not match:
            continue
        number = int(match.group(1))
        if "分" in key and "秒" not in key and number > 0 and not minutes:
            minutes = number
        elif "秒" in key and number > 0 and not seconds:
            seconds = number
    return minutes, seconds


def find_total_time_text(data: Optional[Mapping[str, Any]]) -> Optional[str]:
    """First non-empty value whose key names the overall two-hand time."""
    if not data:
        return None
    if data.get(TOTAL_TIME_KEY):
        return str(data[TOTAL_TIME_KEY])
    for key, value in data.items():
        if "タイム" in key and any(k in key for k in ("総合", "合計", "両手")) and value:
            return str(value)
    return None
