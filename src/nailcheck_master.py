"""Checkpoint master lists for the care, one-color and time evaluation sheets."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Checkpoint:
    code: str
    label: str
    points: int
    category: str
    item: str


@dataclass(frozen=True)
class TimeRow:
    code: str
    label: str
    points: int
    group: Optional[str] = None


def _items(category: str, items: List[Tuple[str, List[Tuple[str, str, int]]]]) -> List[Checkpoint]:
    return [
        Checkpoint(code=code, label=label, points=points, category=category, item=title)
        for title, checkpoints in items
        for code, label, points in checkpoints
    ]


CARE_CHECKPOINTS: Tuple[Checkpoint, ...] = tuple(
    _items("オフ", [
        ("オフ 削り", [("1-1", "削りすぎ", 10), ("1-2", "削り不足", 10)]),
        ("オフ 仕上", [("2-1", "ジェル残り", 20)]),
    ])
    + _items("ファイル", [
        ("ファイル 仕上り", [("3-1", "根元段差", 10), ("3-2", "表面凹凸", 10), ("3-3", "サイド削り", 20), ("3-4", "厚み", 10)]),
        ("ファイル 長さ・形", [("4-1", "ガタつき", 10), ("4-2", "バランス", 20), ("4-3", "形の統一", 10)]),
        ("ファイル サイドストレート", [("5-1", "サイド下がり", 10), ("5-2", "サイド上がり", 10), ("5-3", "角残り", 20)]),
        ("ファイル 左右対称", [("6-1", "中心", 10), ("6-2", "左右対称", 20)]),
    ])
    + _items("プレパレーション", [
        ("右コーナー", [("7-1", "ルースキューティクル", 20)]),
        ("左コーナー", [("8-1", "ルースキューティクル", 20)]),
        ("右サイド", [("9-1", "ルースキューティクル", 30)]),
        ("左サイド", [("10-1", "ルースキューティクル", 30)]),
        ("サイドウォール", [("11-1", "小爪", 10), ("11-2", "ハードスキン", 10)]),
        ("サイドウォール", [("12-1", "ルースキューティクル", 20), ("12-2", "ガタつき", 20)]),
        ("ニッパー処理", [("13-1", "ガタつき", 20), ("13-2", "切りすぎ", 20), ("13-3", "ささくれ", 10)]),
    ])
)

ONE_COLOR_CHECKPOINTS: Tuple[Checkpoint, ...] = tuple(
    _items("ベース", [
        ("はみ出し", [("14-1", "キューティクルライン", 10), ("14-2", "コーナー・サイド", 20)]),
        ("キューティクルライン", [("15-1", "すき間・塗漏れ", 10), ("15-2", "ガタつき", 20)]),
        ("コーナー", [("16-1", "すき間・塗漏れ", 10), ("16-2", "ガタつき", 20)]),
        ("サイド", [("17-1", "すき間・塗漏れ", 20), ("17-2", "ガタつき", 30)]),
        ("ハイポイント", [("18-1", "位置", 10), ("18-2", "アーチのガタつき", 30)]),
        ("たまりへこみ", [
            ("19-1", "キューティクルエリア", 10), ("19-2", "コーナー", 10), ("19-3", "イエローライン", 10),
            ("19-4", "先端", 10), ("19-5", "サイド", 20), ("19-6", "サイドストレート", 20),
        ]),
    ])
    + _items("カラー", [
        ("キューティクルライン", [("20-1", "すき間・塗漏れ", 10), ("20-2", "ガタつき", 10)]),
        ("右コーナー", [("21-1", "すき間・塗漏れ", 20), ("21-2", "ガタつき", 20)]),
        ("右コーナー", [("22-1", "すき間・塗漏れ", 10), ("22-2", "ガタつき", 20)]),
        ("右コーナー", [("23-1", "すき間・塗漏れ", 20), ("23-2", "ガタつき", 30)]),
        ("左サイド", [("24-1", "すき間・塗漏れ", 10), ("24-2", "ガタつき", 20)]),
        ("エッジ", [("25-1", "塗り漏れ", 10), ("25-2", "ガタつき", 10), ("25-3", "裏流れ", 10)]),
    ])
    + _items("トップ", [
        ("ハイポイント", [("26-1", "位置", 10), ("26-2", "アーチガタつき", 20)]),
        ("たまりへこみ", [
            ("27-1", "キューティクルエリア", 10), ("27-2", "コーナー", 10), ("27-3", "イエローライン", 10),
            ("27-4", "先端", 10), ("27-5", "サイド", 20), ("27-6", "サイドストレート", 20),
        ]),
        ("はみ出し", [("28-1", "キューティクルライン", 10), ("28-2", "コーナー・サイド", 20)]),
    ])
)

TIME_ROWS: Tuple[TimeRow, ...] = (
    TimeRow("29-total", "29.合計タイム", 10),
    TimeRow("29-1", "29-1.タイムオフ", 20, "内訳"),
    TimeRow("29-2", "29-2.タイムフィル", 10, "内訳"),
    TimeRow("29-3", "29-3.タイムケア", 10, "内訳"),
    TimeRow("29-4", "29-4.ベース", 20, "ワンカラー"),
    TimeRow("29-5", "29-5.カラー", 10, "ワンカラー"),
    TimeRow("29-6", "29-6.トップ", 20, "ワンカラー"),
    TimeRow("29-7", "29-7.合計", 20, "ワンカラー"),
)

# Fallback national-average durations per time row.
TIME_AVERAGE_FALLBACK: Dict[str, str] = {
    "29-total": "112分42秒",
    "29-1": "21分18秒",
    "29-2": "19分50秒",
    "29-3": "21分18秒",
    "29-4": "16分44秒",
    "29-5": "20分54秒",
    "29-6": "11分50秒",
    "29-7": "49分30秒",
}

# Care radar axes by checkpoint major number.
CARE_RADAR_BUCKETS: Tuple[Tuple[str, range], ...] = (
    ("オフ／フィル", range(1, 3)),
    ("ファイル", range(3, 7)),
    ("プレパレーション", range(7, 14)),
)

ONE_COLOR_RADAR_BUCKETS: Tuple[Tuple[str, range], ...] = (
    ("ベース", range(14, 20)),
    ("カラー", range(20, 26)),
    ("トップ", range(26, 29)),
)
