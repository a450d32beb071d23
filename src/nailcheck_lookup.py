"""nailcheck_lookup.py

Read-path access to persisted section documents.

Section payloads keep the export's own labels, which drift between template
revisions (full-width digits, bracket prefixes, split 分/秒 columns, renamed
headings). FieldMap wraps a payload read-only and lookup() resolves a logical
field through an ordered chain:

    1. exact      normalized key == normalized code/label, or embedded code == code
    2. alias      normalized key == a normalized alias
    3. substring  key contains target or target contains key (code, label, aliases);
                  keys coded for another checkpoint are not considered
    4. positional next unclaimed value of a PositionalCursor for the field family
    5. banding    (lookup_rank only) band label in key + truthy marker

The first step producing a usable value wins.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from nailcheck_config import COMPARISON_ALIASES, FIELD_ALIASES
from nailcheck_rank import band_in_key, decode_rank, is_truthy_marker
from nailcheck_text import normalize_key
from nailcheck_time import combine_time_fragments
from nailcheck_trend import RE_CHECKLIST_CODE


RE_CODE_ONLY = re.compile(r"^\d{1,2}-\d{1,2}$")

Parser = Callable[[Any], Any]


# -------------------------
# Field maps
# -------------------------

@dataclass(frozen=True)
class FieldEntry:
    key: str
    normalized: str
    code: Optional[str]
    value: Any


class FieldMap(Mapping):
    """Read-only view of one section payload with precomputed normalized keys."""

    def __init__(self, data: Optional[Mapping[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = dict(data or {})
        entries = []
        for key, value in self._data.items():
            nkey = normalize_key(key)
            match = RE_CHECKLIST_CODE.search(nkey)
            entries.append(FieldEntry(str(key), nkey, match.group(1) if match else None, value))
        self._entries: Tuple[FieldEntry, ...] = tuple(entries)

    @classmethod
    def from_document(cls, document: Any) -> "FieldMap":
        """Accepts a FieldMap, a mapping, a JSON object string or None."""
        if isinstance(document, FieldMap):
            return document
        if document is None or document == "":
            return cls()
        if isinstance(document, str):
            try:
                parsed = json.loads(document)
            except json.JSONDecodeError:
                logging.warning("Section payload is not valid JSON; treated as empty.")
                return cls()
            return cls(parsed if isinstance(parsed, dict) else None)
        if isinstance(document, Mapping):
            return cls(document)
        return cls()

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def entries(self) -> Tuple[FieldEntry, ...]:
        return self._entries

    def subset(self, tokens: Sequence[str]) -> "FieldMap":
        """Entries whose normalized key contains any of the tokens."""
        wanted = [normalize_key(t) for t in tokens if t]
        return FieldMap({e.key: e.value for e in self._entries if any(w in e.normalized for w in wanted)})

    def to_payload(self) -> Dict[str, Any]:
        return dict(self._data)


# -------------------------
# Field specs and cursors
# -------------------------

@dataclass(frozen=True)
class FieldSpec:
    code: str = ""
    label: str = ""
    aliases: Tuple[str, ...] = ()
    family: str = ""

    def all_aliases(self) -> Tuple[str, ...]:
        extra = COMPARISON_ALIASES.get(self.code, ()) if self.family == "comparison" else FIELD_ALIASES.get(self.code, ())
        seen: Dict[str, None] = {}
        for alias in self.aliases + tuple(extra):
            seen.setdefault(alias, None)
        return tuple(seen)

    def targets(self) -> List[str]:
        out: List[str] = []
        for text in (self.code, self.label) + self.all_aliases():
            nk = normalize_key(text)
            if nk and nk not in out:
                out.append(nk)
        return out


def _code_order(entry: FieldEntry) -> Tuple[int, int]:
    if not entry.code:
        return 999, 999
    major, minor = entry.code.split("-")
    return int(major), int(minor)


def _usable(value: Any, parse: Optional[Parser]) -> Any:
    if parse is not None:
        return parse(value)
    if value is None or value == "":
        return None
    return value


@dataclass(frozen=True)
class PositionalCursor:
    """
    Ordered values of one field family, consumed front to back.

    The cursor is a value: take() returns the next value together with the
    advanced cursor and leaves self unchanged.
    """

    values: Tuple[Any, ...] = ()
    position: int = 0

    @classmethod
    def from_map(cls, document: Any, parse: Optional[Parser] = None) -> "PositionalCursor":
        entries = list(FieldMap.from_document(document).entries())
        if any(e.code for e in entries):
            entries = sorted(entries, key=_code_order)
        seen_codes = set()
        values = []
        for entry in entries:
            if entry.code:
                if entry.code in seen_codes:
                    continue
                seen_codes.add(entry.code)
            parsed = _usable(entry.value, parse)
            if parsed is not None:
                values.append(parsed)
        return cls(tuple(values))

    @property
    def remaining(self) -> int:
        return max(len(self.values) - self.position, 0)

    def take(self) -> Tuple[Optional[Any], "PositionalCursor"]:
        if self.position >= len(self.values):
            return None, self
        return self.values[self.position], replace(self, position=self.position + 1)


@dataclass(frozen=True)
class LookupResult:
    value: Any = None
    source: str = "missing"
    cursor: Optional[PositionalCursor] = None

    @property
    def found(self) -> bool:
        return self.value is not None


# -------------------------
# Matching
# -------------------------

def _contains(haystack: str, needle: str) -> bool:
    if not haystack or not needle:
        return False
    if RE_CODE_ONLY.match(needle):
        return re.search(rf"(?<!\d){re.escape(needle)}(?!\d)", haystack) is not None
    return needle in haystack


def _substring_match(nkey: str, target: str) -> bool:
    if _contains(nkey, target):
        return True
    # Digit-only or single-character keys are too weak to match inside a target.
    if len(nkey) < 2 or nkey.replace("-", "").isdigit():
        return False
    return _contains(target, nkey)


def lookup(
    document: Any,
    spec: FieldSpec,
    parse: Optional[Parser] = None,
    cursor: Optional[PositionalCursor] = None,
) -> LookupResult:
    """Resolve a field against a section payload; see the module docstring for the order."""
    fmap = FieldMap.from_document(document)
    entries = fmap.entries()
    code_key = normalize_key(spec.code)
    label_key = normalize_key(spec.label)
    is_checklist = bool(RE_CODE_ONLY.match(code_key))

    for raw_key in (spec.code, spec.label):
        if raw_key and raw_key in fmap:
            value = _usable(fmap[raw_key], parse)
            if value is not None:
                return LookupResult(value, "exact", cursor)

    for entry in entries:
        if (entry.normalized and entry.normalized in (code_key, label_key)) or (is_checklist and entry.code == code_key):
            value = _usable(entry.value, parse)
            if value is not None:
                return LookupResult(value, "exact", cursor)

    alias_keys = [normalize_key(a) for a in spec.all_aliases()]
    for alias in alias_keys:
        if not alias:
            continue
        for entry in entries:
            if entry.normalized == alias:
                value = _usable(entry.value, parse)
                if value is not None:
                    return LookupResult(value, "alias", cursor)

    for target in spec.targets():
        for entry in entries:
            # A checkpoint never borrows the value of a differently coded key.
            if is_checklist and entry.code and entry.code != code_key:
                continue
            if _substring_match(entry.normalized, target):
                value = _usable(entry.value, parse)
                if value is not None:
                    return LookupResult(value, "substring", cursor)

    if cursor is not None:
        value, advanced = cursor.take()
        if value is not None:
            return LookupResult(value, "positional", advanced)
        return LookupResult(None, "missing", advanced)

    return LookupResult(None, "missing", cursor)


def lookup_value(document: Any, spec: FieldSpec, parse: Optional[Parser] = None) -> Any:
    return lookup(document, spec, parse).value


def infer_band(document: Any, spec: FieldSpec) -> Optional[int]:
    """Highest band named by a target-matching key whose cell carries a truthy marker."""
    best: Optional[int] = None
    targets = spec.targets()
    for entry in FieldMap.from_document(document).entries():
        if targets and not any(_substring_match(entry.normalized, t) for t in targets):
            continue
        band = band_in_key(entry.key)
        if band is not None and is_truthy_marker(entry.value):
            best = band if best is None else max(best, band)
    return best


def lookup_rank(document: Any, spec: FieldSpec, hints: Sequence[str] = ()) -> Optional[int]:
    """
    Rank 1..4 for a field, trying keys that contain one of the hints first.

    Hints are series markers such as 今回 / 前回 / 全国平均 in blocks that mix
    several series. Without a hit the hint filter is dropped.
    """
    fmap = FieldMap.from_document(document)
    passes = [fmap.subset(hints), fmap] if hints else [fmap]
    for candidate in passes:
        if not candidate:
            continue
        result = lookup(candidate, spec, parse=decode_rank)
        if result.found:
            return result.value
        band = infer_band(candidate, spec)
        if band is not None:
            return band
    return None


def lookup_time(document: Any, spec: FieldSpec) -> Optional[str]:
    """
    Duration text for a field whose minutes and seconds may sit in separate keys.

    Targets are tried in priority order; all entries matching the first target
    with any hit are combined.
    """
    entries = FieldMap.from_document(document).entries()
    for target in spec.targets():
        matched = [(e.key, e.value) for e in entries if e.value not in (None, "") and _substring_match(e.normalized, target)]
        if matched:
            combined = combine_time_fragments(matched)
            if combined:
                return combined
    return None


# -------------------------
# Clamps
# -------------------------

def clamp_trend(value: Any) -> Optional[int]:
    if value is None:
        return None
    return int(np.clip(round(float(value)), 1, 3))


def radar_percent(value: Optional[float], max_value: float) -> float:
    """value / max as a 0..100 percentage; 0 when either side is missing."""
    if value is None or not max_value or max_value <= 0:
        return 0.0
    return float(np.clip(float(value) / float(max_value) * 100.0, 0.0, 100.0))
