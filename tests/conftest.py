import sys
from pathlib import Path
from typing import Dict, List, Sequence

import pytest

ROOT = Path(__file__).resolve().parents[1]
for sub in ("src", "scripts"):
    path = str(ROOT / sub)
    if path not in sys.path:
        sys.path.insert(0, path)

from nailcheck_columns import letter_to_index  # noqa: E402
from nailcheck_config import DEFAULT_SETTINGS  # noqa: E402
from nailcheck_store import SectionStore  # noqa: E402


EXPORT_WIDTH = letter_to_index("TP") + 1

GROUPS: Dict[str, str] = {
    "A": "顧客情報",
    "E": "今回スコア",
    "O": "前回スコア",
    "AG": "ケア",
    "CG": "ケア比較",
    "GO": "ワンカラー",
    "PW": "タイム",
    "TF": "顧客属性",
}

LABELS: Dict[str, str] = {
    "A": "ID",
    "B": "名前",
    "C": "採点日",
    "D": "メールアドレス",
    "E": "総合 スコア",
    "F": "総合評価",
    "G": "ケア スコア",
    "H": "ケア評価",
    "I": "ワンカラー スコア",
    "J": "ワンカラー評価",
    "K": "タイム スコア",
    "L": "タイム評価",
    "M": "総合計タイム",
    "O": "総合 スコア（前）",
    "P": "総合評価（前）",
    "AG": "[ケア]1-1削りすぎ",
    "AH": "[ケア]1-2削り不足",
    "CG": "1-1",
    "CH": "1-2",
    "GO": "[ワンカラー]14-1キューティクルライン",
    "PW": "[オフ]分",
    "PX": "[オフ]秒",
    "TF": "ステータス",
    "TG": "都道府県",
}

CUSTOMER_ROW: Dict[str, str] = {
    "A": "1001",
    "B": "山田 花子",
    "C": "2024年5月1日",
    "D": "hanako@example.com",
    "E": "650",
    "F": "AA",
    "G": "280",
    "H": "A",
    "I": "300",
    "J": "AA",
    "K": "70",
    "L": "B",
    "M": "66分",
    "N": "20",
    "O": "600",
    "P": "A",
    "AG": "10",
    "AH": "5",
    "CG": "↑",
    "CH": "→",
    "GO": "10",
    "PW": "21",
    "PX": "18",
    "TF": "2回目",
    "TG": "東京都",
}


def make_row(cells: Dict[str, str], width: int = EXPORT_WIDTH) -> List[str]:
    row = [""] * width
    for letter, value in cells.items():
        row[letter_to_index(letter)] = value
    return row


def make_export(data_rows: Sequence[Dict[str, str]]) -> List[List[str]]:
    return [make_row(GROUPS), make_row(LABELS)] + [make_row(r) for r in data_rows]


@pytest.fixture
def export_rows() -> List[List[str]]:
    return make_export([CUSTOMER_ROW, {"A": "合計", "E": "650"}])


@pytest.fixture
def settings() -> Dict:
    return dict(DEFAULT_SETTINGS)


@pytest.fixture
def store(tmp_path):
    with SectionStore(tmp_path / "store.sqlite3") as s:
        yield s
