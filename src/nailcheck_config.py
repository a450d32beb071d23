"""nailcheck_config.py

Configuration tables for the skill-check import.

SECTION_TABLE is the column-range contract with the export template: one entry
per (section, subtype) with its inclusive column ranges and merge rule. Runtime
settings (paths, row limit, header fallback) come from config.json and are
merged over DEFAULT_SETTINGS by load_config().
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


ConfigDict = Dict[str, Any]


# --- HEADER RESOLUTION ---

DEFAULT_HEADER_DEPTH = 14
CATCH_ALL_GROUP = "データ"

GROUP_KEYWORDS: Tuple[str, ...] = (
    "今回", "前回", "全国平均", "スコア", "評価", "レーダー", "比較", "タイム", "ケア", "ワンカラー",
    "current", "previous", "national average", "score", "rating", "radar", "comparison", "time",
    "care", "one-color",
)


# --- SECTION RANGES ---

MERGE_SMART = "smart_set"
MERGE_TREND = "trend"


@dataclass(frozen=True)
class SectionSpec:
    section: str
    subtype: str
    ranges: Tuple[Tuple[str, str], ...]
    include_empty: bool = False
    merge_rule: str = MERGE_SMART


def _spec(section: str, subtype: str, start: str, end: str, trend: bool = False) -> SectionSpec:
    return SectionSpec(
        section=section,
        subtype=subtype,
        ranges=((start, end),),
        include_empty=trend,
        merge_rule=MERGE_TREND if trend else MERGE_SMART,
    )


SECTION_TABLE: Tuple[SectionSpec, ...] = (
    _spec("score", "current", "E", "X"),
    _spec("score", "previous", "O", "V"),
    _spec("radar_chart", "current", "Y", "AB"),
    _spec("radar_chart", "previous", "AC", "AF"),
    _spec("care_score", "current", "AG", "BF"),
    _spec("care_score", "previous", "DG", "EF"),
    _spec("care_evaluation_graph", "current", "BG", "CF"),
    _spec("care_evaluation_graph", "previous", "EG", "FF"),
    _spec("care_comparison", "average", "CG", "DF", trend=True),
    _spec("care_comparison", "final", "FG", "GF", trend=True),
    _spec("care_radar_chart", "current", "GG", "GJ"),
    _spec("care_radar_chart", "previous", "GK", "GN"),
    _spec("one_color_score", "current", "GO", "IA"),
    _spec("one_color_score", "final", "LB", "MN"),
    _spec("one_color_evaluation_graph", "current", "IB", "JN"),
    _spec("one_color_evaluation_graph", "final", "MO", "OA"),
    _spec("one_color_comparison", "average", "JO", "LA", trend=True),
    _spec("one_color_comparison", "previous", "OB", "PN", trend=True),
    _spec("one_color_radar_chart", "current", "PO", "PR"),
    _spec("one_color_radar_chart", "previous", "PS", "PV"),
    _spec("time_both_hand", "current", "PW", "QN"),
    _spec("time_both_hand", "final", "RE", "RT"),
    _spec("time_evaluation_graph", "current", "QO", "QV"),
    _spec("time_evaluation_graph", "final", "RU", "SB"),
    _spec("time_lapse_comparison", "average", "QW", "RD", trend=True),
    _spec("time_lapse_comparison", "previous", "SC", "SJ", trend=True),
    _spec("time_radar_chart", "current", "SK", "SP"),
    _spec("time_radar_chart", "final", "SQ", "SV"),
    _spec("comparison", "final", "SW", "SZ"),
    _spec("comparison", "average", "TA", "TE"),
    SectionSpec("customer_information", "merged", (("A", "D"), ("TE", "TP"))),
)


def build_section_table(overrides: Optional[List[Dict[str, Any]]] = None) -> Tuple[SectionSpec, ...]:
    """
    SECTION_TABLE with entries replaced or appended from config.

    Each override is {"section", "subtype", "ranges": [[start, end], ...],
    "include_empty"?, "merge_rule"?}. Unknown (section, subtype) pairs are appended.
    """
    if not overrides:
        return SECTION_TABLE
    table = {(s.section, s.subtype): s for s in SECTION_TABLE}
    for item in overrides:
        spec = SectionSpec(
            section=item["section"],
            subtype=item["subtype"],
            ranges=tuple((str(a), str(b)) for a, b in item["ranges"]),
            include_empty=bool(item.get("include_empty", False)),
            merge_rule=item.get("merge_rule", MERGE_SMART),
        )
        table[(spec.section, spec.subtype)] = spec
    return tuple(table.values())


# --- STRUCTURED GROUP TABLE KEYS ---

# Group labels that map onto a fixed table key; these are covered by the
# fixed sections above and are not written again as raw documents.
SPECIAL_GROUP_KEYS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("今回スコア", "評価"), "nowscore_review"),
    (("前回スコア", "評価"), "formerscore_review"),
    (("ワンカラー",), "new_points_now_color_scores"),
    (("ケア",), "imjireda_chat"),
    (("タイム",), "now_time_both_hands"),
)


# --- CUSTOMER FIELDS ---

# (record field, label fragments matched by containment, in priority order)
CUSTOMER_FIELDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("external_id", ("ID", "Id")),
    ("name", ("名前",)),
    ("issuer", ("発行元",)),
    ("assessment_date", ("採点日",)),
    ("email", ("メール",)),
    ("prefecture", ("都道府県",)),
    ("age", ("年齢",)),
    ("nailist_experience", ("ネイリスト歴",)),
    ("occupation_type", ("職業",)),
    ("current_monthly_customers", ("月平均施術人数",)),
    ("salon_work_experience", ("サロン勤務歴",)),
    ("salon_monthly_customers", ("サロン勤務時の月平均",)),
    ("blank_period", ("ブランク",)),
    ("status", ("ステータス",)),
    ("application_date", ("申し込み日",)),
)


# --- SCORE BLOCK ALIASES ---

SCORE_KEY_ALIASES: Dict[str, Tuple[str, ...]] = {
    "総合 スコア": ("総合 スコア", "総合スコア", "総合", "総合点", "合計"),
    "ケア スコア": ("ケア スコア", "ケアスコア", "ケア"),
    "ワンカラー スコア": ("ワンカラー スコア", "ワンカラースコア", "ワンカラー", "ワン カラー"),
    "タイム スコア": ("タイム スコア", "タイムスコア", "タイム"),
    "総合評価": ("総合評価", "総合 ランク", "総合 評価"),
    "ケア評価": ("ケア評価", "ケア ランク", "ケア 評価"),
    "ワンカラー評価": ("ワンカラー評価", "ワンカラー ランク", "ワンカラー 評価"),
    "タイム評価": ("タイム評価", "タイム ランク", "タイム 評価"),
    "総合計タイム": ("総合計タイム", "両手総合計", "両手総合計タイム", "タイム合計"),
}

# Static alias table for read-path field lookups, keyed by field code.
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "29-total": ("両手総合計", "総合計タイム", "合計タイム", "[合計タイム]29", "合計タイム29"),
    "29-1": ("オフ", "[オフ]分", "[オフ]秒"),
    "29-2": ("フィル", "フィルイン", "[フィル]分", "[フィル]秒"),
    "29-3": ("ケア", "[ケア]分", "[ケア]秒"),
    "29-4": ("ワンカラベース", "ワンカラー ベース", "ベース", "[ワンカラ/ベース]分", "[ワンカラ/ベース]秒"),
    "29-5": ("ワンカラカラー", "ワンカラー カラー", "カラー", "[ワンカラ/カラー]分", "[ワンカラ/カラー]秒"),
    "29-6": ("ワンカラトップ", "ワンカラー トップ", "トップ", "[ワンカラ/トップ]分", "[ワンカラ/トップ]秒"),
    "29-7": ("ワンカラ合計", "ワンカラー 合計", "合計", "[ワンカラ/合計]", "[ワンカラ/合計]分", "[ワンカラ/合計]秒"),
    "total": SCORE_KEY_ALIASES["総合 スコア"],
    "care": SCORE_KEY_ALIASES["ケア スコア"],
    "one_color": SCORE_KEY_ALIASES["ワンカラー スコア"],
    "time": SCORE_KEY_ALIASES["タイム スコア"],
    "total_rating": SCORE_KEY_ALIASES["総合評価"],
    "care_rating": SCORE_KEY_ALIASES["ケア評価"],
    "one_color_rating": SCORE_KEY_ALIASES["ワンカラー評価"],
    "time_rating": SCORE_KEY_ALIASES["タイム評価"],
}

COMPARISON_ALIASES: Dict[str, Tuple[str, ...]] = {
    "29-total": ("両手総合計", "総合評価", "タイム", "合計タイム", "[合計タイム]29", "合計タイム29"),
    "29-1": ("オフ",),
    "29-2": ("フィル",),
    "29-3": ("ケア",),
    "29-4": ("ベース",),
    "29-5": ("カラー",),
    "29-6": ("トップ",),
    "29-7": ("合計",),
}

# National-average overview figures used when the export has no average data.
NATIONAL_AVERAGE_OVERRIDES: Dict[str, Dict[str, Any]] = {
    "総合評価": {"rating": "AA", "score": 690},
    "ケア": {"rating": "AA", "score": 320},
    "ワンカラー": {"rating": "AA", "score": 390},
    "タイム": {"rating": "AA", "score": 150, "time_text": "68分20秒"},
}


# --- RUNTIME SETTINGS ---

DEFAULT_SETTINGS: ConfigDict = {
    "input_dir": "inputs",
    "output_dir": "outputs",
    "input_pattern": "*.csv",
    "database_filename": "nailcheck.sqlite3",
    "log_filename": "nailcheck_import.log",
    "report_filename": "Assessment_Views.xlsx",
    "max_rows": 500,
    "header_fallback_depth": DEFAULT_HEADER_DEPTH,
    "source": "csv_import",
    "section_ranges": [],
}


def load_config(config_path: Optional[Path]) -> ConfigDict:
    """DEFAULT_SETTINGS overlaid with config.json (a missing file yields the defaults)."""
    settings = dict(DEFAULT_SETTINGS)
    if config_path is None or not Path(config_path).exists():
        logging.info("No config file found; using default settings.")
        return settings
    with open(config_path, "r", encoding="utf-8") as f:
        loaded = json.load(f)
    if not isinstance(loaded, dict):
        raise ValueError(f"Config root must be a JSON object: {config_path}")
    settings.update(loaded)
    return settings
