"""nailcheck_headers.py

Header stack resolution for the wide skill-check export.

The export carries several stacked header rows above the data. One of them is
the "group row" naming sections (今回スコア, 前回スコア, ケア, ...) at the first
column of each section; the bottom-most non-empty header cell of each column is
the field label used inside the section.

HeaderStack computes the depth, the per-column labels and the group spans once
per matrix and is read-only afterwards. extract_range() is the only way values
leave the matrix.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from nailcheck_columns import letter_to_index
from nailcheck_config import DEFAULT_HEADER_DEPTH, GROUP_KEYWORDS, CATCH_ALL_GROUP
from nailcheck_errors import MalformedInput
from nailcheck_text import clean_cell
from nailcheck_time import TimeBlock, smart_set


RE_RECORD_ID = re.compile(r"^\d{3,}$")

RowMatrix = Sequence[Sequence[Any]]


@dataclass(frozen=True)
class ColumnSpan:
    key: str
    start: int
    end: int

    def columns(self) -> range:
        return range(self.start, self.end + 1)


def detect_header_depth(rows: RowMatrix, fallback: int = DEFAULT_HEADER_DEPTH) -> int:
    """
    Number of leading header rows.

    The first row whose first cell is a 3+ digit record id marks the start of
    the data. When no such row exists (or it is row 0) the depth falls back to
    min(fallback, row_count - 1).
    """
    for idx, row in enumerate(rows):
        first = clean_cell(row[0]) if row else ""
        if RE_RECORD_ID.match(first):
            if idx > 0:
                return idx
            break
    return min(fallback, len(rows) - 1)


def score_group_row(cells: Sequence[str], keywords: Sequence[str] = GROUP_KEYWORDS) -> int:
    """Number of section keywords present in the row's joined text."""
    text = " ".join(c for c in cells if c).casefold()
    return sum(1 for kw in keywords if kw.casefold() in text)


class HeaderStack:
    """Resolved header rows of one RowMatrix."""

    def __init__(
        self,
        rows: RowMatrix,
        fallback_depth: int = DEFAULT_HEADER_DEPTH,
        keywords: Sequence[str] = GROUP_KEYWORDS,
    ) -> None:
        if len(rows) < 2:
            raise MalformedInput(f"CSV must contain at least 1 header row and 1 data row (rows={len(rows)}).")

        self.depth = detect_header_depth(rows, fallback_depth)
        self.column_count = max((len(r) for r in rows), default=0)

        header_rows: List[Tuple[str, ...]] = []
        for r in rows[: self.depth]:
            cells = [clean_cell(v) for v in r]
            cells.extend([""] * (self.column_count - len(cells)))
            header_rows.append(tuple(cells))
        self.header_rows: Tuple[Tuple[str, ...], ...] = tuple(header_rows)

        self.data_rows: Tuple[Tuple[Any, ...], ...] = tuple(tuple(r) for r in rows[self.depth:])
        if not self.data_rows:
            raise MalformedInput(
                f"CSV has no data rows after header rows (rows={len(rows)}, header_depth={self.depth}; "
                f"first data row would be row {self.depth + 1})."
            )

        self.final_header: Tuple[str, ...] = tuple(
            " ".join(row[c] for row in self.header_rows if row[c]) for c in range(self.column_count)
        )
        self.lowest_header: Tuple[str, ...] = tuple(self._lowest(c) for c in range(self.column_count))

        self.group_row_index = self._pick_group_row(keywords)
        self.spans: Tuple[ColumnSpan, ...] = self._build_spans()

        logging.info(
            "Header stack resolved: depth=%d, columns=%d, data_rows=%d, group_row=%d, spans=%d",
            self.depth, self.column_count, len(self.data_rows), self.group_row_index, len(self.spans),
        )

    # --- Labels ---

    def _lowest(self, col: int) -> str:
        for row in reversed(self.header_rows):
            if row[col]:
                return row[col]
        return self.final_header[col] or f"col_{col + 1}"

    def lowest_header_at(self, col: int) -> str:
        if 0 <= col < self.column_count:
            return self.lowest_header[col]
        return f"col_{col + 1}"

    # --- Group spans ---

    def _pick_group_row(self, keywords: Sequence[str]) -> int:
        best_idx = max(self.depth - 1, 0)
        best_score = -1
        for idx, row in enumerate(self.header_rows):
            score = score_group_row(row, keywords)
            if score > best_score:
                best_idx, best_score = idx, score
        return best_idx

    def _build_spans(self) -> Tuple[ColumnSpan, ...]:
        if not self.header_rows or self.column_count == 0:
            return (ColumnSpan(CATCH_ALL_GROUP, 0, max(self.column_count - 1, 0)),)

        group_row = self.header_rows[self.group_row_index]
        starts = [(c, label) for c, label in enumerate(group_row) if label]
        if not starts:
            return (ColumnSpan(CATCH_ALL_GROUP, 0, self.column_count - 1),)

        spans = []
        for i, (col, label) in enumerate(starts):
            end = starts[i + 1][0] - 1 if i + 1 < len(starts) else self.column_count - 1
            spans.append(ColumnSpan(label, col, end))
        return tuple(spans)

    # --- Extraction ---

    def extract_columns(self, data: Sequence[Any], columns: range, include_empty: bool = False,
                        block: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        block = TimeBlock() if block is None else block
        for c in columns:
            value = clean_cell(data[c]) if c < len(data) else ""
            if value or include_empty:
                smart_set(block, self.lowest_header_at(c), value)
        return block

    def extract_range(self, data: Sequence[Any], start: str, end: str, include_empty: bool = False,
                      block: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """
        Fields of one data row between two column labels (inclusive).

        Keys are the lowest header labels; values are cleaned cell text inserted
        via smart_set(). Pass block to merge several ranges into one document.
        """
        first, last = letter_to_index(start), letter_to_index(end)
        return self.extract_columns(data, range(first, last + 1), include_empty, block)

    def structured_blocks(self, data: Sequence[Any]) -> Dict[str, Dict[str, str]]:
        """One block per group span. Spans sharing a label merge into one block."""
        blocks: Dict[str, Dict[str, str]] = {}
        for span in self.spans:
            block = blocks.setdefault(span.key, TimeBlock())
            self.extract_columns(data, span.columns(), block=block)
        return blocks
