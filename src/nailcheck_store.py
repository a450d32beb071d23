"""nailcheck_store.py

SQLite record store for imported skill-check results.

Tables:
    customers       one row per external id (upserted)
    assessments     one row per imported data row
    scores          per-item score leaves of an assessment
    section_blobs   named section documents (section, subtype, JSON payload)

Every sqlite error surfaces as PersistenceFailure so the import driver can
decide per write whether to skip the section or the row.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd

from nailcheck_errors import PersistenceFailure
from nailcheck_lookup import FieldMap


PathLike = Union[str, Path]

CUSTOMER_COLUMNS = (
    "external_id", "name", "issuer", "email", "prefecture", "age", "nailist_experience",
    "occupation_type", "current_monthly_customers", "salon_work_experience",
    "salon_monthly_customers", "blank_period", "status", "application_date",
)

ASSESSMENT_COLUMNS = (
    "assessment_date", "total_score", "total_rating", "care_score", "care_rating",
    "one_color_score", "one_color_rating", "time_score", "time_rating",
    "total_time_minutes", "total_time_seconds", "care_details", "one_color_details",
    "time_details", "is_current", "source",
)

JSON_COLUMNS = {"care_details", "one_color_details", "time_details"}


@dataclass(frozen=True)
class SectionDocument:
    customer_id: int
    assessment_id: Optional[int]
    section: str
    subtype: str
    payload: FieldMap


class SectionStore:
    """
    Context-managed connection to the record store.

    Writes are committed per call; a failed write is rolled back and raised as
    PersistenceFailure without affecting earlier commits.
    """

    def __init__(self, db_path: PathLike, source: str = "csv_import") -> None:
        self.db_path = Path(db_path)
        self.source = source
        self.conn: Optional[sqlite3.Connection] = None

    def __enter__(self) -> "SectionStore":
        self.conn = sqlite3.connect(self.db_path)
        self.conn.execute("PRAGMA journal_mode=WAL;")
        self.conn.execute("PRAGMA foreign_keys=ON;")
        self._init_schema()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None

    def _init_schema(self) -> None:
        cur = self.conn.cursor()
        cur.execute("""
            CREATE TABLE IF NOT EXISTS customers (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                external_id TEXT NOT NULL UNIQUE,
                name TEXT,
                issuer TEXT,
                email TEXT,
                prefecture TEXT,
                age TEXT,
                nailist_experience TEXT,
                occupation_type TEXT,
                current_monthly_customers TEXT,
                salon_work_experience TEXT,
                salon_monthly_customers TEXT,
                blank_period TEXT,
                status TEXT NOT NULL DEFAULT 'new',
                application_date TEXT
            )
        """)
        cur.execute("""
            CREATE TABLE IF NOT EXISTS assessments (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                customer_id INTEGER NOT NULL REFERENCES customers(id),
                assessment_date TEXT NOT NULL,
                total_score INTEGER,
                total_rating TEXT,
                care_score INTEGER,
                care_rating TEXT,
                one_color_score INTEGER,
                one_color_rating TEXT,
                time_score INTEGER,
                time_rating TEXT,
                total_time_minutes INTEGER,
                total_time_seconds INTEGER,
                care_details TEXT,
                one_color_details TEXT,
                time_details TEXT,
                is_current INTEGER NOT NULL DEFAULT 1,
                source TEXT
            )
        """)
        cur.execute("""
            CREATE TABLE IF NOT EXISTS scores (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                assessment_id INTEGER NOT NULL REFERENCES assessments(id),
                category TEXT NOT NULL,
                sub_item TEXT NOT NULL,
                score INTEGER,
                rating TEXT,
                comment TEXT
            )
        """)
        cur.execute("""
            CREATE TABLE IF NOT EXISTS section_blobs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                customer_id INTEGER NOT NULL REFERENCES customers(id),
                assessment_id INTEGER REFERENCES assessments(id),
                section TEXT NOT NULL,
                subtype TEXT NOT NULL,
                data TEXT NOT NULL,
                source TEXT
            )
        """)
        cur.execute("CREATE INDEX IF NOT EXISTS idx_blobs_assessment ON section_blobs(assessment_id, section, subtype)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_assessments_customer ON assessments(customer_id)")
        self.conn.commit()

    def _execute(self, sql: str, params: Sequence[Any], what: str, section: str = "", subtype: str = "") -> sqlite3.Cursor:
        try:
            cur = self.conn.execute(sql, tuple(params))
            self.conn.commit()
            return cur
        except sqlite3.Error as e:
            self.conn.rollback()
            raise PersistenceFailure(f"{what} failed: {e}", section=section, subtype=subtype) from e

    # --- Writes ---

    def upsert_customer(self, record: Dict[str, Any]) -> int:
        """Insert or update by external_id; returns the customer row id."""
        values = [record.get(c) for c in CUSTOMER_COLUMNS]
        placeholders = ", ".join("?" for _ in CUSTOMER_COLUMNS)
        updates = ", ".join(f"{c}=excluded.{c}" for c in CUSTOMER_COLUMNS if c != "external_id")
        self._execute(
            f"INSERT INTO customers ({', '.join(CUSTOMER_COLUMNS)}) VALUES ({placeholders}) "
            f"ON CONFLICT(external_id) DO UPDATE SET {updates}",
            values,
            "Customer upsert",
        )
        row = self.conn.execute("SELECT id FROM customers WHERE external_id = ?", (record["external_id"],)).fetchone()
        return int(row[0])

    def insert_assessment(self, customer_id: int, record: Dict[str, Any]) -> int:
        """Insert a current assessment; earlier ones are demoted in the same transaction."""
        data = dict(record)
        data.setdefault("is_current", 1)
        data.setdefault("source", self.source)
        values = []
        for c in ASSESSMENT_COLUMNS:
            v = data.get(c)
            values.append(json.dumps(v, ensure_ascii=False) if c in JSON_COLUMNS and v is not None else v)
        placeholders = ", ".join("?" for _ in ASSESSMENT_COLUMNS)
        try:
            self.conn.execute("UPDATE assessments SET is_current = 0 WHERE customer_id = ?", (customer_id,))
            cur = self.conn.execute(
                f"INSERT INTO assessments (customer_id, {', '.join(ASSESSMENT_COLUMNS)}) VALUES (?, {placeholders})",
                [customer_id] + values,
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise PersistenceFailure(f"Assessment insert failed: {e}") from e
        return int(cur.lastrowid)

    def insert_scores(self, assessment_id: int, leaves: List[Dict[str, Any]]) -> int:
        if not leaves:
            return 0
        rows = [
            (assessment_id, leaf["category"], leaf["sub_item"], leaf.get("score"), leaf.get("rating"), leaf.get("comment"))
            for leaf in leaves
        ]
        try:
            self.conn.executemany(
                "INSERT INTO scores (assessment_id, category, sub_item, score, rating, comment) VALUES (?, ?, ?, ?, ?, ?)",
                rows,
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise PersistenceFailure(f"Score insert failed: {e}", section="scores") from e
        return len(rows)

    def write_section(
        self,
        customer_id: int,
        assessment_id: Optional[int],
        section: str,
        subtype: str,
        payload: Dict[str, Any],
    ) -> bool:
        """Persist one section document. Empty payloads are not written (returns False)."""
        if not payload:
            return False
        self._execute(
            "INSERT INTO section_blobs (customer_id, assessment_id, section, subtype, data, source) VALUES (?, ?, ?, ?, ?, ?)",
            (customer_id, assessment_id, section, subtype, json.dumps(payload, ensure_ascii=False), self.source),
            f"Section write {section}/{subtype}",
            section=section,
            subtype=subtype,
        )
        return True

    # --- Reads ---

    def fetch_sections(self, assessment_id: Optional[int] = None, customer_id: Optional[int] = None) -> List[SectionDocument]:
        clauses, params = [], []
        if assessment_id is not None:
            clauses.append("assessment_id = ?")
            params.append(assessment_id)
        if customer_id is not None:
            clauses.append("customer_id = ?")
            params.append(customer_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.conn.execute(
            f"SELECT customer_id, assessment_id, section, subtype, data FROM section_blobs {where} ORDER BY id", params
        ).fetchall()
        return [SectionDocument(r[0], r[1], r[2], r[3], FieldMap.from_document(r[4])) for r in rows]

    def fetch_section(self, assessment_id: int, section: str, subtype: str) -> FieldMap:
        row = self.conn.execute(
            "SELECT data FROM section_blobs WHERE assessment_id = ? AND section = ? AND subtype = ? ORDER BY id DESC LIMIT 1",
            (assessment_id, section, subtype),
        ).fetchone()
        return FieldMap.from_document(row[0] if row else None)

    def latest_assessment_id(self, external_id: str) -> Optional[int]:
        row = self.conn.execute(
            """
            SELECT a.id FROM assessments a
            JOIN customers c ON c.id = a.customer_id
            WHERE c.external_id = ?
            ORDER BY a.is_current DESC, a.id DESC LIMIT 1
            """,
            (external_id,),
        ).fetchone()
        return int(row[0]) if row else None

    def read_frame(self, table: str) -> pd.DataFrame:
        if table not in {"customers", "assessments", "scores", "section_blobs"}:
            raise ValueError(f"Unknown table: {table}")
        return pd.read_sql(f"SELECT * FROM {table} ORDER BY id", self.conn)

    def log_counts(self) -> None:
        for table in ("customers", "assessments", "scores", "section_blobs"):
            count = self.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
            logging.info(f"Store table {table}: {count:,} rows")
