"""nailcheck_views.py

Read-path views over imported assessments.

Each view reads section documents back through FieldMap/lookup() and returns a
pandas DataFrame: the care and one-color checklists, the time detail rows, the
care radar buckets and the score overview. export_views() writes them for every
current assessment into one workbook.
"""

from __future__ import annotations

import datetime
import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import openpyxl
import pandas as pd
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter

from nailcheck_config import NATIONAL_AVERAGE_OVERRIDES
from nailcheck_lookup import (
    FieldMap,
    FieldSpec,
    PositionalCursor,
    clamp_trend,
    lookup,
    lookup_rank,
    lookup_time,
    lookup_value,
    radar_percent,
)
from nailcheck_master import (
    CARE_CHECKPOINTS,
    CARE_RADAR_BUCKETS,
    ONE_COLOR_CHECKPOINTS,
    ONE_COLOR_RADAR_BUCKETS,
    TIME_AVERAGE_FALLBACK,
    TIME_ROWS,
    Checkpoint,
)
from nailcheck_rank import clamp_rank, grade_from_score, rank_label
from nailcheck_store import SectionStore
from nailcheck_text import to_number
from nailcheck_time import looks_like_time_token, split_time
from nailcheck_trend import normalize_trend_value


SectionKey = Tuple[str, str]
Sections = Mapping[SectionKey, FieldMap]

CARE_VIEW: Dict[str, SectionKey] = {
    "current_score": ("care_score", "current"),
    "previous_score": ("care_score", "previous"),
    "average_comparison": ("care_comparison", "average"),
    "previous_comparison": ("care_comparison", "final"),
    "current_rank": ("care_evaluation_graph", "current"),
    "previous_rank": ("care_evaluation_graph", "previous"),
}

ONE_COLOR_VIEW: Dict[str, SectionKey] = {
    "current_score": ("one_color_score", "current"),
    "previous_score": ("one_color_score", "final"),
    "average_comparison": ("one_color_comparison", "average"),
    "previous_comparison": ("one_color_comparison", "previous"),
    "current_rank": ("one_color_evaluation_graph", "current"),
    "previous_rank": ("one_color_evaluation_graph", "final"),
}

CARE_MAX = sum(cp.points for cp in CARE_CHECKPOINTS)
ONE_COLOR_MAX = sum(cp.points for cp in ONE_COLOR_CHECKPOINTS)
TIME_MAX = sum(row.points for row in TIME_ROWS)

OVERVIEW_AXES: Tuple[Tuple[str, FieldSpec, FieldSpec, str, float], ...] = (
    ("総合", FieldSpec("total", "総合 スコア"), FieldSpec("total_rating", "総合評価"), "総合評価",
     CARE_MAX + ONE_COLOR_MAX + TIME_MAX),
    ("ケア", FieldSpec("care", "ケア スコア"), FieldSpec("care_rating", "ケア評価"), "ケア", CARE_MAX),
    ("ワンカラー", FieldSpec("one_color", "ワンカラー スコア"), FieldSpec("one_color_rating", "ワンカラー評価"), "ワンカラー",
     ONE_COLOR_MAX),
    ("タイム", FieldSpec("time", "タイム スコア"), FieldSpec("time_rating", "タイム評価"), "タイム", TIME_MAX),
)


def parse_score(value: Any) -> Optional[float]:
    """Numeric score; duration text ("66分20秒") is not a score."""
    if looks_like_time_token(value):
        return None
    return to_number(value)


def read_trend(value: Any) -> Optional[int]:
    """Trend code of a comparison cell; other non-zero numbers are clamped to 1..3."""
    code = normalize_trend_value(value)
    if code is not None:
        return code
    number = parse_score(value)
    return clamp_trend(number) if number else None


def rank_width(rank: Optional[int]) -> Optional[int]:
    """Bar width in percent of a rank band, 25 per band."""
    band = clamp_rank(rank)
    return None if band is None else band * 25


def duration_seconds(text: Any) -> Optional[int]:
    if not text:
        return None
    minutes, seconds = split_time(text)
    return minutes * 60 + seconds


def _section(sections: Sections, key: SectionKey) -> FieldMap:
    return sections.get(key) or FieldMap()


def load_sections(store: SectionStore, assessment_id: int) -> Dict[SectionKey, FieldMap]:
    """Latest document per (section, subtype) of an assessment."""
    out: Dict[SectionKey, FieldMap] = {}
    for doc in store.fetch_sections(assessment_id=assessment_id):
        out[(doc.section, doc.subtype)] = doc.payload
    return out


# -------------------------
# Checklists
# -------------------------

def checklist_frame(sections: Sections, checkpoints: Sequence[Checkpoint], view: Mapping[str, SectionKey]) -> pd.DataFrame:
    current_scores = _section(sections, view["current_score"])
    previous_scores = _section(sections, view["previous_score"])
    average_map = _section(sections, view["average_comparison"])
    previous_cmp_map = _section(sections, view["previous_comparison"])
    current_ranks = _section(sections, view["current_rank"])
    previous_ranks = _section(sections, view["previous_rank"])

    avg_cursor = PositionalCursor.from_map(average_map, read_trend)
    prev_cursor = PositionalCursor.from_map(previous_cmp_map, read_trend)

    rows = []
    for cp in checkpoints:
        spec = FieldSpec(code=cp.code, label=cp.label)
        cmp_spec = FieldSpec(code=cp.code, label=cp.label, family="comparison")

        avg = lookup(average_map, cmp_spec, parse=read_trend, cursor=avg_cursor)
        avg_cursor = avg.cursor
        prev = lookup(previous_cmp_map, cmp_spec, parse=read_trend, cursor=prev_cursor)
        prev_cursor = prev.cursor

        current_rank = lookup_rank(current_ranks, spec)
        previous_rank = lookup_rank(previous_ranks, spec)
        rows.append({
            "code": cp.code,
            "category": cp.category,
            "item": cp.item,
            "label": cp.label,
            "points": cp.points,
            "average_comparison": avg.value,
            "previous_comparison": prev.value,
            "previous_score": lookup_value(previous_scores, spec, parse_score),
            "current_score": lookup_value(current_scores, spec, parse_score),
            "previous_rank": previous_rank,
            "current_rank": current_rank,
            "current_rank_label": rank_label(current_rank),
            "previous_rank_width": rank_width(previous_rank),
            "current_rank_width": rank_width(current_rank),
        })
    return pd.DataFrame(rows)


def care_checklist_frame(sections: Sections) -> pd.DataFrame:
    return checklist_frame(sections, CARE_CHECKPOINTS, CARE_VIEW)


def one_color_checklist_frame(sections: Sections) -> pd.DataFrame:
    return checklist_frame(sections, ONE_COLOR_CHECKPOINTS, ONE_COLOR_VIEW)


# -------------------------
# Time detail
# -------------------------

def time_detail_frame(sections: Sections) -> pd.DataFrame:
    """
    Rows 29-total and 29-1..29-7.

    Durations come from time_both_hand (current/final); comparisons from
    time_lapse_comparison; ranks from time_evaluation_graph using the series
    hints 今回 / 前回 / 全国平均.
    """
    current_times = _section(sections, ("time_both_hand", "current"))
    previous_times = _section(sections, ("time_both_hand", "final"))
    average_map = _section(sections, ("time_lapse_comparison", "average"))
    previous_cmp_map = _section(sections, ("time_lapse_comparison", "previous"))
    graph_current = _section(sections, ("time_evaluation_graph", "current"))
    graph_final = _section(sections, ("time_evaluation_graph", "final"))

    avg_cursor = PositionalCursor.from_map(average_map, read_trend)
    prev_cursor = PositionalCursor.from_map(previous_cmp_map, read_trend)

    rows = []
    for row in TIME_ROWS:
        spec = FieldSpec(code=row.code, label=row.label)
        cmp_spec = FieldSpec(code=row.code, label=row.label, family="comparison")

        avg = lookup(average_map, cmp_spec, parse=read_trend, cursor=avg_cursor)
        avg_cursor = avg.cursor
        prev = lookup(previous_cmp_map, cmp_spec, parse=read_trend, cursor=prev_cursor)
        prev_cursor = prev.cursor

        current_time = lookup_time(current_times, spec) or ""
        previous_time = lookup_time(previous_times, spec) or ""
        rows.append({
            "code": row.code,
            "group": row.group or "",
            "label": row.label,
            "points": row.points,
            "average_time": TIME_AVERAGE_FALLBACK.get(row.code, ""),
            "average_comparison": avg.value,
            "previous_time": previous_time,
            "previous_seconds": duration_seconds(previous_time),
            "previous_comparison": prev.value,
            "current_time": current_time,
            "current_seconds": duration_seconds(current_time),
            "national_rank": lookup_rank(graph_current, spec, hints=("全国平均", "平均")),
            "previous_rank": lookup_rank(graph_final, spec, hints=("前回", "previous", "final")),
            "current_rank": lookup_rank(graph_current, spec, hints=("今回", "current")),
        })
    return pd.DataFrame(rows)


# -------------------------
# Radar and overview
# -------------------------

def bucket_radar_frame(
    sections: Sections,
    checkpoints: Sequence[Checkpoint],
    buckets: Sequence[Tuple[str, range]],
    current_key: SectionKey,
    previous_key: SectionKey,
) -> pd.DataFrame:
    """Per-axis percentage of attainable points; each checkpoint capped at its points."""
    series = {"current": _section(sections, current_key), "previous": _section(sections, previous_key)}
    rows = []
    for axis, majors in buckets:
        members = [cp for cp in checkpoints if int(cp.code.split("-")[0]) in majors]
        points = np.array([cp.points for cp in members], dtype=float)
        row: Dict[str, object] = {"axis": axis, "max_points": float(points.sum())}
        for name, fmap in series.items():
            raw = [lookup_value(fmap, FieldSpec(cp.code, cp.label), parse_score) for cp in members]
            scores = np.array([0.0 if v is None else v for v in raw], dtype=float)
            attained = float(np.minimum(np.clip(scores, 0, None), points).sum())
            row[f"{name}_points"] = attained
            row[f"{name}_percent"] = radar_percent(attained, float(points.sum()))
        rows.append(row)
    return pd.DataFrame(rows)


def care_radar_frame(sections: Sections) -> pd.DataFrame:
    return bucket_radar_frame(sections, CARE_CHECKPOINTS, CARE_RADAR_BUCKETS, CARE_VIEW["current_score"], CARE_VIEW["previous_score"])


def one_color_radar_frame(sections: Sections) -> pd.DataFrame:
    return bucket_radar_frame(
        sections, ONE_COLOR_CHECKPOINTS, ONE_COLOR_RADAR_BUCKETS,
        ONE_COLOR_VIEW["current_score"], ONE_COLOR_VIEW["previous_score"],
    )


def overview_frame(sections: Sections) -> pd.DataFrame:
    """Current vs previous vs national average per axis, with radar percentages."""
    current = _section(sections, ("score", "current"))
    previous = _section(sections, ("score", "previous"))
    rows = []
    for axis, score_spec, rating_spec, national_key, max_score in OVERVIEW_AXES:
        cur_score = lookup_value(current, score_spec, parse_score)
        prev_score = lookup_value(previous, score_spec, parse_score)
        national = NATIONAL_AVERAGE_OVERRIDES.get(national_key, {})
        rows.append({
            "axis": axis,
            "max_score": max_score,
            "current_score": cur_score,
            "current_rating": lookup_value(current, rating_spec) or "",
            "current_grade": grade_from_score(cur_score, max_score) if cur_score is not None else "",
            "current_percent": radar_percent(cur_score, max_score),
            "previous_score": prev_score,
            "previous_rating": lookup_value(previous, rating_spec) or "",
            "previous_percent": radar_percent(prev_score, max_score),
            "national_score": national.get("score"),
            "national_rating": national.get("rating", ""),
            "national_percent": radar_percent(national.get("score"), max_score),
        })
    frame = pd.DataFrame(rows)
    total_time = current.get("総合計タイム")
    frame.attrs["total_time"] = total_time or ""
    return frame


# -------------------------
# Workbook export
# -------------------------

VIEW_BUILDERS = (
    ("Overview", overview_frame),
    ("Care Checklist", care_checklist_frame),
    ("Care Radar", care_radar_frame),
    ("One-Color Checklist", one_color_checklist_frame),
    ("One-Color Radar", one_color_radar_frame),
    ("Time Detail", time_detail_frame),
)


def _set_workbook_properties(wb: openpyxl.Workbook) -> None:
    props = wb.properties
    props.creator = "nailcheck"
    props.lastModifiedBy = "nailcheck"
    fixed_dt = datetime.datetime(2000, 1, 1, 0, 0, 0)
    props.created = fixed_dt
    props.modified = fixed_dt
    props.title = "Skill-Check Assessment Views"


def _write_dataframe(ws: openpyxl.worksheet.worksheet.Worksheet, df: pd.DataFrame, start_row: int = 1) -> None:
    header_font = Font(bold=True)
    for j, col in enumerate(df.columns, start=1):
        cell = ws.cell(row=start_row, column=j, value=str(col))
        cell.font = header_font
        cell.alignment = Alignment(wrap_text=True, vertical="top")

    for i, values in enumerate(df.itertuples(index=False, name=None), start=start_row + 1):
        for j, val in enumerate(values, start=1):
            if val is None or (isinstance(val, float) and not math.isfinite(val)):
                val = None
            elif isinstance(val, np.generic):
                val = val.item()
            ws.cell(row=i, column=j, value=val)


def _autosize_columns(ws: openpyxl.worksheet.worksheet.Worksheet, max_width: int = 45) -> None:
    widths: Dict[int, int] = {}
    for row in ws.iter_rows(min_row=1, max_row=min(ws.max_row, 200), values_only=True):
        for idx, v in enumerate(row, start=1):
            if v is None:
                continue
            widths[idx] = max(widths.get(idx, 0), len(str(v)))
    for idx, w in widths.items():
        ws.column_dimensions[get_column_letter(idx)].width = min(max(10, w + 2), max_width)


def current_assessments(store: SectionStore) -> pd.DataFrame:
    assessments = store.read_frame("assessments")
    customers = store.read_frame("customers")[["id", "external_id", "name"]].rename(columns={"id": "customer_id"})
    current = assessments[assessments["is_current"] == 1]
    return current.merge(customers, on="customer_id", how="left")


def build_views(store: SectionStore) -> Dict[str, pd.DataFrame]:
    """One frame per view, stacked across current assessments with their external id."""
    frames: Dict[str, List[pd.DataFrame]] = {name: [] for name, _ in VIEW_BUILDERS}
    for record in current_assessments(store).itertuples(index=False):
        sections = load_sections(store, int(record.id))
        for name, builder in VIEW_BUILDERS:
            frame = builder(sections)
            frame.insert(0, "external_id", record.external_id)
            frames[name].append(frame)
    return {
        name: pd.concat(parts, ignore_index=True) if parts else pd.DataFrame()
        for name, parts in frames.items()
    }


def export_views(store: SectionStore, output_path: Path) -> Path:
    views = build_views(store)

    wb = openpyxl.Workbook()
    wb.remove(wb.active)
    _set_workbook_properties(wb)

    for name, frame in views.items():
        ws = wb.create_sheet(name)
        if frame.empty:
            ws["A1"] = "No imported assessments."
            continue
        _write_dataframe(ws, frame)
        ws.freeze_panes = "B2"
        _autosize_columns(ws)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output_path)
    logging.info("Views written: %s", output_path)
    return output_path
