"""nailcheck_records.py

Derivation of customer, assessment and score-leaf records from the section
documents of one data row.

Inputs are the structured group blocks (group label -> field -> value) and the
configured section documents ((section, subtype) -> field -> value) produced by
the header stack. Nothing here touches the store.
"""

from __future__ import annotations

import datetime
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from nailcheck_config import CUSTOMER_FIELDS, SCORE_KEY_ALIASES, SPECIAL_GROUP_KEYS
from nailcheck_text import clean_cell, map_status, to_int, to_iso_date
from nailcheck_time import (
    TOTAL_TIME_KEY,
    derive_time_from_map,
    extract_minutes,
    extract_seconds,
    find_total_time_text,
    format_time,
)


Block = Dict[str, str]
Sections = Dict[Tuple[str, str], Block]

RE_EXTERNAL_ID = re.compile(r"^\d{3,}$")

LEAF_CATEGORIES: Tuple[Tuple[str, str], ...] = (
    ("care", "ケア"),
    ("one_color", "ワンカラー"),
    ("time", "タイム"),
)


# -------------------------
# Lookup helpers
# -------------------------

def find_by_includes(data: Mapping[str, Any], fragments: Sequence[str]) -> str:
    """Value of the first key equal to, then containing, one of the fragments."""
    for fragment in fragments:
        value = data.get(fragment)
        if value not in (None, ""):
            return clean_cell(value)
    for key, value in data.items():
        if value not in (None, "") and any(f in key for f in fragments):
            return clean_cell(value)
    return ""


def pick(data: Mapping[str, Any], *keys: str) -> str:
    """First non-blank value among the given keys."""
    for key in keys:
        value = data.get(key)
        if value is not None and str(value).strip() != "":
            return str(value)
    return ""


def find_group(structured: Mapping[str, Block], *required: str) -> Optional[Block]:
    for label, block in structured.items():
        if all(r in label for r in required):
            return block
    return None


# -------------------------
# Customer
# -------------------------

def build_customer(info: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Customer record from the merged customer-information document.

    Returns None when the external id is not a 3+ digit number; such rows are
    summary or blank lines in the export.
    """
    record: Dict[str, Any] = {}
    for field_name, fragments in CUSTOMER_FIELDS:
        record[field_name] = find_by_includes(info, fragments) or None

    external_id = record.get("external_id") or ""
    if not RE_EXTERNAL_ID.match(external_id):
        return None

    record["name"] = record.get("name") or f"Customer {external_id}"
    record["status"] = map_status(record.get("status"))
    if record.get("application_date"):
        record["application_date"] = to_iso_date(record["application_date"])
    return record


# -------------------------
# Score blocks
# -------------------------

def synthesize_previous_scores(structured: Mapping[str, Block]) -> Block:
    """
    Previous-score block assembled from the grouped headers.

    Group priority: 前回+スコア, 全国平均+スコア, 前回, 全国平均. Output keys
    follow the score section's own labels; blank outputs are dropped.
    """
    group = (
        find_group(structured, "前回", "スコア")
        or find_group(structured, "全国平均", "スコア")
        or find_group(structured, "前回")
        or find_group(structured, "全国平均")
        or {}
    )
    out = {key: pick(group, *aliases) for key, aliases in SCORE_KEY_ALIASES.items()}
    return {k: v for k, v in out.items() if v}


def _time_from_blocks(*blocks: Optional[Mapping[str, Any]]) -> Tuple[int, int]:
    for block in blocks:
        minutes, seconds = derive_time_from_map(block)
        if minutes or seconds:
            return minutes, seconds
    return 0, 0


def enrich_total_time(block: Optional[Block], *fallbacks: Optional[Mapping[str, Any]]) -> Block:
    """
    Copy of a score block with a canonical 総合計タイム.

    The block's own total-time text is used when it has minutes or seconds;
    otherwise the fallback blocks are searched in order.
    """
    enriched: Block = dict(block or {})
    text = find_total_time_text(enriched)
    minutes = extract_minutes(text) if text else 0
    seconds = extract_seconds(text) if text else 0
    if not minutes and not seconds:
        minutes, seconds = _time_from_blocks(*fallbacks)
    if minutes or seconds:
        enriched[TOTAL_TIME_KEY] = format_time(minutes, seconds)
    return enriched


# -------------------------
# Assessment
# -------------------------

def _current_group(structured: Mapping[str, Block]) -> Block:
    return find_group(structured, "今回", "スコア") or find_group(structured, "スコア") or {}


def build_assessment(
    structured: Mapping[str, Block],
    sections: Sections,
    info: Mapping[str, Any],
    today: Optional[datetime.date] = None,
) -> Dict[str, Any]:
    """Assessment record for one row; scores prefer the score/current section."""
    group = _current_group(structured)
    score_current = sections.get(("score", "current"), {})

    time_text = score_current.get(TOTAL_TIME_KEY) or group.get(TOTAL_TIME_KEY) or ""
    minutes, seconds = extract_minutes(time_text), extract_seconds(time_text)
    if seconds == 0:
        fb_minutes, fb_seconds = _time_from_blocks(
            sections.get(("time_both_hand", "current")),
            sections.get(("time_evaluation_graph", "current")),
        )
        minutes = minutes or fb_minutes
        seconds = seconds or fb_seconds

    record: Dict[str, Any] = {
        "assessment_date": to_iso_date(find_by_includes(info, ("採点日",)), today),
        "total_score": to_int(pick(group, "総合 スコア", "総合スコア", "総合")),
        "total_rating": pick(group, "総合評価", "総合 評価", "総合ランク"),
        "care_score": to_int(pick(group, "ケア スコア", "ケアスコア", "ケア")),
        "care_rating": pick(group, "ケア評価", "ケア 評価", "ケアランク"),
        "one_color_score": to_int(pick(group, "ワンカラー スコア", "ワンカラースコア", "ワンカラー")),
        "one_color_rating": pick(group, "ワンカラー評価", "ワンカラー 評価", "ワンカラーランク"),
        "time_score": to_int(pick(group, "タイム スコア", "タイムスコア", "タイム")),
        "time_rating": pick(group, "タイム評価", "タイム 評価", "タイムランク"),
        "total_time_minutes": minutes,
        "total_time_seconds": seconds,
    }

    overrides = (
        ("total_score", ("総合 スコア", "総合スコア", "総合"), True),
        ("care_score", ("ケア スコア", "ケア"), True),
        ("one_color_score", ("ワンカラー スコア", "ワンカラー", "ワン カラー"), True),
        ("time_score", ("タイム スコア", "タイム"), True),
        ("total_rating", ("総合評価", "総合 評価"), False),
        ("care_rating", ("ケア評価", "ケア 評価"), False),
        ("one_color_rating", ("ワンカラー評価", "ワンカラー 評価"), False),
        ("time_rating", ("タイム評価", "タイム 評価"), False),
    )
    for field_name, keys, numeric in overrides:
        value = pick(score_current, *keys)
        if value:
            record[field_name] = to_int(value) if numeric else value

    for category, marker in LEAF_CATEGORIES:
        record[f"{category}_details"] = find_group(structured, marker) or {}
    return record


def score_leaves(structured: Mapping[str, Block]) -> List[Dict[str, Any]]:
    """Per-item score rows for the care, one-color and time groups."""
    leaves: List[Dict[str, Any]] = []
    for category, marker in LEAF_CATEGORIES:
        details = find_group(structured, marker) or {}
        for sub_item, value in details.items():
            if isinstance(value, Mapping):
                score = to_int(value.get("score"))
                rating = str(value["rating"])[:30] if value.get("rating") is not None else None
                comment = str(value["comment"])[:200] if value.get("comment") is not None else None
            else:
                score, rating, comment = to_int(value), None, None
            leaves.append({
                "category": category,
                "sub_item": str(sub_item or "").strip()[:120],
                "score": score,
                "rating": rating,
                "comment": comment,
            })
    return leaves


# -------------------------
# Raw group documents
# -------------------------

def group_table_key(label: str) -> str:
    """Document name for a structured group label."""
    for required, table_key in SPECIAL_GROUP_KEYS:
        if all(r in label for r in required):
            return table_key
    key = label.lower()
    key = re.sub(r"[.\s]", "_", key)
    return re.sub(r"[()\-]", "", key)


def raw_group_documents(structured: Mapping[str, Block], reserved: Sequence[str]) -> Dict[str, Block]:
    """Structured groups not already covered by a fixed section or special key."""
    skip = set(reserved) | {key for _, key in SPECIAL_GROUP_KEYS}
    out: Dict[str, Block] = {}
    for label, block in structured.items():
        table_key = group_table_key(label)
        if table_key in skip or not block:
            continue
        out.setdefault(table_key, {}).update(block)
    return out
