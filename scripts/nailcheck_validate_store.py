# -*- coding: utf-8 -*-
"""
Program Overview: Skill-Check Record Store Validator

System Function:
    Validates a record store produced by nailcheck_processor.py as a standalone
    utility and reports PASS/FAIL with throttled per-check messages.

Architectural Pattern:
    Implements a read-only verification pass over the SQLite store.

    1. Records: Checks customer ids, assessment dates and customer references.
    2. Documents: Checks every section payload is a non-empty JSON object with a
       known subtype, trend sections hold only 1/2/3/null, and score totals use
       the canonical duration format.
    3. Score rows: Checks sub-item length limits.
"""

from __future__ import annotations

import argparse
import json
import re
import sqlite3
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from nailcheck_config import MERGE_TREND, SECTION_TABLE, load_config


CUSTOMER_ID_PATTERN = re.compile(r"^\d{3,}$")
ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TOTAL_TIME_PATTERN = re.compile(r"^\d+分(\d{2}秒)?$")
KNOWN_SUBTYPES: Set[str] = {"current", "previous", "final", "average", "raw", "merged"}
TREND_VALUES = ("1", "2", "3", None)
MAX_ERRORS_PER_CHECK = 5


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parses command line arguments.

    Inputs:
        argv: Optional sequence of arguments.
    Outputs:
        Parsed argparse namespace.
    Error conditions:
        argparse raises SystemExit on invalid arguments.
    """
    parser = argparse.ArgumentParser(description="Validate a skill-check record store.")
    parser.add_argument("--database", type=str, default=None, help="Store path. Defaults to outputs/<database_filename>.")
    parser.add_argument("--base-dir", type=str, default=None, help="Project root containing config.json.")
    return parser.parse_args(argv)


def record_error(
    errors: List[str],
    error_counts: Dict[str, int],
    key: str,
    message: str,
    limit: int = MAX_ERRORS_PER_CHECK,
) -> None:
    """
    Records an error message with per key throttling.

    Inputs:
        errors: List of error messages.
        error_counts: Per key error counter.
        key: Throttling key, usually the check name.
        message: Error message to append.
        limit: Maximum messages per key.
    """
    count = error_counts.get(key, 0)
    if count < limit:
        errors.append(message)
    error_counts[key] = count + 1


def trend_sections() -> Set[Tuple[str, str]]:
    return {(s.section, s.subtype) for s in SECTION_TABLE if s.merge_rule == MERGE_TREND}


def validate_records(conn: sqlite3.Connection, errors: List[str], error_counts: Dict[str, int]) -> int:
    """
    Checks customers and assessments.

    Outputs:
        Number of assessments inspected.
    """
    for cid, external_id in conn.execute("SELECT id, external_id FROM customers"):
        if not CUSTOMER_ID_PATTERN.match(str(external_id or "")):
            record_error(errors, error_counts, "customers", f"customers.id={cid}: external_id '{external_id}' is not a 3+ digit id.")

    count = 0
    rows = conn.execute(
        "SELECT a.id, a.assessment_date, c.id FROM assessments a LEFT JOIN customers c ON c.id = a.customer_id"
    )
    for aid, assessment_date, customer_id in rows:
        count += 1
        if customer_id is None:
            record_error(errors, error_counts, "assessments", f"assessments.id={aid}: customer does not exist.")
        if not ISO_DATE_PATTERN.match(str(assessment_date or "")):
            record_error(errors, error_counts, "assessments", f"assessments.id={aid}: assessment_date '{assessment_date}' is not ISO.")
    return count


def _check_payload(
    row_id: int, section: str, subtype: str, payload: Any, trend_keys: Set[Tuple[str, str]],
    errors: List[str], error_counts: Dict[str, int],
) -> None:
    where = f"section_blobs.id={row_id} ({section}/{subtype})"
    if not isinstance(payload, dict) or not payload:
        record_error(errors, error_counts, "payload", f"{where}: payload is not a non-empty object.")
        return
    if (section, subtype) in trend_keys:
        bad = [k for k, v in payload.items() if v not in TREND_VALUES]
        if bad:
            record_error(errors, error_counts, "trend", f"{where}: non-trend values under {bad[:3]}.")
    if section == "score":
        total = payload.get("総合計タイム")
        if total is not None and not TOTAL_TIME_PATTERN.match(str(total)):
            record_error(errors, error_counts, "total_time", f"{where}: 総合計タイム '{total}' is not canonical.")


def validate_sections(conn: sqlite3.Connection, errors: List[str], error_counts: Dict[str, int]) -> int:
    """
    Checks every section document.

    Outputs:
        Number of documents inspected.
    Resource characteristics:
        Streams rows from the cursor; one payload decoded at a time.
    """
    trend_keys = trend_sections()
    count = 0
    for row_id, section, subtype, data in conn.execute("SELECT id, section, subtype, data FROM section_blobs ORDER BY id"):
        count += 1
        if subtype not in KNOWN_SUBTYPES:
            record_error(errors, error_counts, "subtype", f"section_blobs.id={row_id}: unknown subtype '{subtype}'.")
        try:
            payload = json.loads(data)
        except (TypeError, json.JSONDecodeError):
            record_error(errors, error_counts, "payload", f"section_blobs.id={row_id}: payload is not valid JSON.")
            continue
        _check_payload(row_id, section, subtype, payload, trend_keys, errors, error_counts)
    return count


def validate_scores(conn: sqlite3.Connection, errors: List[str], error_counts: Dict[str, int]) -> None:
    for row_id, sub_item in conn.execute("SELECT id, sub_item FROM scores"):
        if sub_item is None or len(sub_item) > 120:
            record_error(errors, error_counts, "scores", f"scores.id={row_id}: sub_item missing or longer than 120 characters.")


def validate_store(db_path: Path) -> Tuple[List[str], int, int]:
    """
    Runs every check against one store.

    Outputs:
        (errors, assessments inspected, documents inspected)
    Error conditions:
        Raises ValueError when the store file does not exist.
    """
    if not db_path.exists():
        raise ValueError(f"Record store not found: {db_path}")
    errors: List[str] = []
    error_counts: Dict[str, int] = {}
    conn = sqlite3.connect(db_path)
    try:
        assessments = validate_records(conn, errors, error_counts)
        documents = validate_sections(conn, errors, error_counts)
        validate_scores(conn, errors, error_counts)
    finally:
        conn.close()
    return errors, assessments, documents


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Entry point for validation.

    Outputs:
        Exit code 0 on success, non-zero on failure.
    """
    args = parse_args(argv)
    base_dir = Path(args.base_dir) if args.base_dir else Path(__file__).resolve().parent.parent
    if args.database:
        db_path = Path(args.database)
    else:
        settings = load_config(base_dir / "config.json")
        db_path = base_dir / settings["output_dir"] / settings["database_filename"]

    try:
        errors, assessments, documents = validate_store(db_path)
    except (ValueError, sqlite3.Error) as exc:
        print(f"FAIL: {exc}")
        return 1

    if errors:
        print(f"FAIL: {len(errors)} issue(s) found across {assessments} assessment(s), {documents} document(s).")
        for message in errors:
            print(f"- {message}")
        return 1

    print(f"PASS: {assessments} assessment(s), {documents} document(s) validated.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
