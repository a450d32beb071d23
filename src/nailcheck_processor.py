#!/usr/bin/env python3
"""nailcheck_processor.py

Program Overview: Nail Skill-Check Import Engine

System Function:
    Converts one wide skill-check export (.csv or .xlsx) into customer records,
    assessment records, per-item score rows and named section documents in a
    SQLite record store. An optional workbook of read-path views can be written
    after the import.

Architectural Pattern:
    Implements a sequential row pipeline over a resolved header stack.

    1. Ingestion: Reads the whole sheet as text (pandas for CSV, OpenPyXL
       read-only for Excel) and resolves the stacked header rows once.
    2. Processing: For each data row, extracts every configured column range
       into a section document, merges split duration columns, normalises trend
       cells and derives the customer/assessment records.
    3. Output: Writes documents through SectionStore. A failed section write is
       logged and skipped; the remaining sections of the row are still written.

Inputs
- inputs/<export>.csv or .xlsx (first match of the configured input pattern,
  or --input).

Outputs
- outputs/nailcheck.sqlite3 (record store)
- outputs/nailcheck_import.log
- outputs/Assessment_Views.xlsx (with --report)
"""

from __future__ import annotations

import argparse
import datetime
import logging
import math
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import openpyxl
import pandas as pd

from nailcheck_config import (
    MERGE_TREND,
    ConfigDict,
    SectionSpec,
    build_section_table,
    load_config,
)
from nailcheck_errors import MalformedInput, PersistenceFailure
from nailcheck_headers import HeaderStack
from nailcheck_records import (
    build_assessment,
    build_customer,
    enrich_total_time,
    raw_group_documents,
    score_leaves,
    synthesize_previous_scores,
)
from nailcheck_store import SectionStore
from nailcheck_time import TimeBlock
from nailcheck_trend import sanitize_trend_block
from nailcheck_views import export_views


# --- TYPES & CONSTANTS ---

RowMatrix = List[List[Any]]
SectionKey = Tuple[str, str]

SUPPORTED_SUFFIXES = {".csv", ".xlsx", ".xlsm"}


# --- CONFIGURATION & LOGGING ---

def setup_logging(log_file: Optional[Path] = None, verbose: bool = False) -> None:
    """
    Configures logging. If log_file is provided, it enables file output.

    Args:
        log_file: Optional path to the execution log.
        verbose: Emit DEBUG records.
    """
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))

    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)
        handler.flush()
        handler.close()

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


@dataclass(frozen=True)
class ImportPaths:
    base_dir: Path
    inputs_dir: Path
    outputs_dir: Path
    config_path: Path
    database_path: Path
    log_path: Path
    report_path: Path


def _find_project_root(start_dir: Path, max_levels: int = 6) -> Path:
    """Nearest ancestor holding config.json and an inputs/ directory, else start_dir."""
    cur = start_dir.resolve()
    for _ in range(max_levels + 1):
        if (cur / "config.json").exists() and (cur / "inputs").is_dir():
            return cur
        if cur.parent == cur:
            break
        cur = cur.parent
    return start_dir.resolve()


def resolve_paths(settings: ConfigDict, base_dir: Path) -> ImportPaths:
    base_dir = base_dir.resolve()
    outputs_dir = base_dir / settings["output_dir"]
    return ImportPaths(
        base_dir=base_dir,
        inputs_dir=base_dir / settings["input_dir"],
        outputs_dir=outputs_dir,
        config_path=base_dir / "config.json",
        database_path=outputs_dir / settings["database_filename"],
        log_path=outputs_dir / settings["log_filename"],
        report_path=outputs_dir / settings["report_filename"],
    )


# -------------------------
# Data quality accounting
# -------------------------

@dataclass
class DataQuality:
    input_file: str = ""
    header_depth: int = 0
    column_count: int = 0
    rows_seen: int = 0
    rows_truncated: int = 0
    rows_skipped_invalid_id: int = 0
    rows_failed: int = 0
    rows_processed: int = 0
    sections_written: int = 0
    sections_empty: int = 0
    section_failures: int = 0
    score_rows_written: int = 0
    failures: List[str] = field(default_factory=list)

    def as_rows(self) -> List[Tuple[str, object]]:
        return [
            ("Input file", self.input_file),
            ("Header rows", self.header_depth),
            ("Columns", self.column_count),
            ("Data rows seen", self.rows_seen),
            ("Data rows beyond row limit (not read)", self.rows_truncated),
            ("Rows skipped (external id not a 3+ digit number)", self.rows_skipped_invalid_id),
            ("Rows failed (customer/assessment write)", self.rows_failed),
            ("Rows processed", self.rows_processed),
            ("Section documents written", self.sections_written),
            ("Section documents empty (not written)", self.sections_empty),
            ("Section writes failed", self.section_failures),
            ("Score rows written", self.score_rows_written),
        ]

    def log_summary(self) -> None:
        logging.info("=" * 40)
        logging.info("--- IMPORT DATA QUALITY ---")
        for label, value in self.as_rows():
            logging.info(f"{label:<52} {value}")
        logging.info("=" * 40)


# -------------------------
# Input reading
# -------------------------

def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime.datetime):
        return value.date().isoformat() if value.time() == datetime.time(0) else value.isoformat(sep=" ")
    if isinstance(value, datetime.date):
        return value.isoformat()
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value)


def read_matrix(file_path: Path) -> RowMatrix:
    """
    Reads the first sheet of a supported file as rows of text cells.

    Supported input formats:
    - Excel (.xlsx, .xlsm) via OpenPyXL read-only iteration
    - CSV (.csv) via pandas, UTF-8 (BOM tolerated) with CP932 fallback
    """
    suffix = file_path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise MalformedInput(f"Unsupported input file format: {file_path.suffix}")

    if suffix in {".xlsx", ".xlsm"}:
        wb = openpyxl.load_workbook(filename=file_path, read_only=True, data_only=True)
        try:
            ws = wb.active
            return [[_cell_text(v) for v in row] for row in ws.iter_rows(values_only=True)]
        finally:
            wb.close()

    read_kwargs = dict(header=None, dtype=str, keep_default_na=False, skip_blank_lines=False)
    try:
        try:
            df = pd.read_csv(file_path, encoding="utf-8-sig", **read_kwargs)
        except UnicodeDecodeError:
            logging.info("UTF-8 decode failed for %s; retrying as CP932.", file_path.name)
            df = pd.read_csv(file_path, encoding="cp932", **read_kwargs)
    except pd.errors.EmptyDataError as e:
        raise MalformedInput(f"{file_path.name}: file is empty.") from e
    except pd.errors.ParserError as e:
        raise MalformedInput(f"{file_path.name}: {e}") from e

    return [[_cell_text(v) for v in row] for row in df.itertuples(index=False, name=None)]


# -------------------------
# Row documents
# -------------------------

@dataclass
class RowDocuments:
    row_number: int
    customer: Optional[Dict[str, Any]]
    assessment: Dict[str, Any]
    leaves: List[Dict[str, Any]]
    sections: Dict[SectionKey, Dict[str, Any]]
    raw_groups: Dict[str, Dict[str, str]]


def extract_sections(stack: HeaderStack, data: Sequence[Any], table: Sequence[SectionSpec]) -> Dict[SectionKey, Dict[str, Any]]:
    sections: Dict[SectionKey, Dict[str, Any]] = {}
    for spec in table:
        block: Dict[str, Any] = TimeBlock()
        for start, end in spec.ranges:
            stack.extract_range(data, start, end, include_empty=spec.include_empty, block=block)
        if spec.merge_rule == MERGE_TREND:
            block = sanitize_trend_block(block)
        sections[(spec.section, spec.subtype)] = block
    return sections


def build_row_documents(
    stack: HeaderStack,
    data: Sequence[Any],
    table: Sequence[SectionSpec],
    row_number: int = 0,
    today: Optional[datetime.date] = None,
) -> RowDocuments:
    """All documents derived from one data row; pure apart from logging."""
    sections = extract_sections(stack, data, table)
    structured = stack.structured_blocks(data)

    sections[("score", "current")] = enrich_total_time(
        sections.get(("score", "current")),
        sections.get(("time_both_hand", "current")),
        sections.get(("time_evaluation_graph", "current")),
    )
    previous = synthesize_previous_scores(structured)
    previous.update(sections.get(("score", "previous"), {}))
    sections[("score", "previous")] = enrich_total_time(
        previous,
        sections.get(("time_both_hand", "final")),
        sections.get(("time_evaluation_graph", "final")),
    )

    info = sections.get(("customer_information", "merged"), {})
    customer = build_customer(info)
    assessment = build_assessment(structured, sections, info, today) if customer else {}
    leaves = score_leaves(structured) if customer else []
    reserved = [spec.section for spec in table]

    return RowDocuments(
        row_number=row_number,
        customer=customer,
        assessment=assessment,
        leaves=leaves,
        sections=sections,
        raw_groups=raw_group_documents(structured, reserved),
    )


# -------------------------
# Main processor
# -------------------------

class SkillCheckImporter:
    """Writes the documents of every data row to a SectionStore."""

    def __init__(self, store: SectionStore, settings: ConfigDict) -> None:
        self.store = store
        self.settings = settings
        self.table = build_section_table(settings.get("section_ranges"))
        self.max_rows = int(settings.get("max_rows") or 0)
        self.fallback_depth = int(settings.get("header_fallback_depth"))

    def run(self, input_path: Path) -> DataQuality:
        logging.info(f"Reading {input_path.name}...")
        rows = read_matrix(input_path)
        dq = self.import_matrix(rows)
        dq.input_file = input_path.name
        return dq

    def import_matrix(self, rows: RowMatrix, today: Optional[datetime.date] = None) -> DataQuality:
        stack = HeaderStack(rows, fallback_depth=self.fallback_depth)
        dq = DataQuality(header_depth=stack.depth, column_count=stack.column_count)

        data_rows = stack.data_rows
        if self.max_rows and len(data_rows) > self.max_rows:
            dq.rows_truncated = len(data_rows) - self.max_rows
            logging.warning(f"Row limit {self.max_rows} reached; {dq.rows_truncated} trailing rows not read.")
            data_rows = data_rows[: self.max_rows]

        for offset, data in enumerate(data_rows):
            row_number = stack.depth + offset + 1
            dq.rows_seen += 1
            docs = build_row_documents(stack, data, self.table, row_number, today)
            if docs.customer is None:
                dq.rows_skipped_invalid_id += 1
                logging.debug(f"Row {row_number}: no valid external id; skipped.")
                continue
            self._persist(docs, dq)

        return dq

    def _persist(self, docs: RowDocuments, dq: DataQuality) -> None:
        try:
            customer_id = self.store.upsert_customer(docs.customer)
            assessment_id = self.store.insert_assessment(customer_id, docs.assessment)
        except PersistenceFailure as e:
            dq.rows_failed += 1
            dq.failures.append(f"row {docs.row_number}: {e}")
            logging.error(f"Row {docs.row_number}: {e}. Row skipped.")
            return

        try:
            dq.score_rows_written += self.store.insert_scores(assessment_id, docs.leaves)
        except PersistenceFailure as e:
            dq.section_failures += 1
            dq.failures.append(f"row {docs.row_number}: {e}")
            logging.warning(f"Row {docs.row_number}: {e}")

        documents = [(section, subtype, payload) for (section, subtype), payload in docs.sections.items()]
        documents += [(table_key, "raw", payload) for table_key, payload in docs.raw_groups.items()]
        for section, subtype, payload in documents:
            try:
                written = self.store.write_section(customer_id, assessment_id, section, subtype, payload)
            except PersistenceFailure as e:
                dq.section_failures += 1
                dq.failures.append(f"row {docs.row_number}: {e}")
                logging.warning(f"Row {docs.row_number}: {e}")
                continue
            if written:
                dq.sections_written += 1
            else:
                dq.sections_empty += 1

        dq.rows_processed += 1
        logging.info(f"Row {docs.row_number}: customer {docs.customer['external_id']} imported (assessment {assessment_id}).")


def find_input_file(paths: ImportPaths, pattern: str, explicit: Optional[str] = None) -> Path:
    if explicit:
        candidate = Path(explicit)
        if not candidate.is_absolute() and not candidate.exists():
            candidate = paths.inputs_dir / explicit
        if not candidate.exists():
            raise FileNotFoundError(f"Input file not found: {candidate}")
        return candidate
    matches = sorted(paths.inputs_dir.glob(pattern))
    if not matches:
        raise FileNotFoundError(f"No input matching '{pattern}' in {paths.inputs_dir}")
    return matches[0]


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Import a nail skill-check export into the record store.")
    p.add_argument("--base-dir", type=str, default=None, help="Project root containing inputs/, outputs/, config.json.")
    p.add_argument("--input", type=str, default=None, help="Input file (path, or name inside inputs/).")
    p.add_argument("--database", type=str, default=None, help="Override the record store path.")
    p.add_argument("--report", action="store_true", help="Write the read-path views workbook after importing.")
    p.add_argument("--verbose", action="store_true", help="Verbose logging.")
    return p.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    CLI entry point.

    Returns 0 when at least one row was imported, 1 on total failure.
    """
    args = parse_args(argv)
    base_dir = Path(args.base_dir) if args.base_dir else _find_project_root(Path(__file__).resolve().parent)
    settings = load_config(base_dir / "config.json")
    paths = resolve_paths(settings, base_dir)
    paths.outputs_dir.mkdir(parents=True, exist_ok=True)
    setup_logging(paths.log_path, verbose=args.verbose)

    database_path = Path(args.database) if args.database else paths.database_path
    try:
        input_path = find_input_file(paths, settings["input_pattern"], args.input)
        with SectionStore(database_path, source=settings["source"]) as store:
            dq = SkillCheckImporter(store, settings).run(input_path)
            dq.log_summary()
            store.log_counts()
            if args.report:
                export_views(store, paths.report_path)
    except (MalformedInput, FileNotFoundError, PersistenceFailure) as e:
        logging.critical(f"Import failed: {e}")
        return 1

    if dq.rows_processed == 0:
        logging.critical("Import failed: no rows were imported.")
        return 1
    logging.info(f"Import complete: {dq.rows_processed} rows imported into {database_path}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
