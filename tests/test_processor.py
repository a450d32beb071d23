import datetime
import json

import openpyxl
import pandas as pd
import pytest

from conftest import CUSTOMER_ROW, make_export
from nailcheck_errors import MalformedInput, PersistenceFailure
from nailcheck_headers import HeaderStack
from nailcheck_processor import (
    DataQuality,
    SkillCheckImporter,
    build_row_documents,
    main,
    read_matrix,
)
from nailcheck_config import SECTION_TABLE
from nailcheck_store import SectionStore


TODAY = datetime.date(2025, 3, 1)


def _import(store, settings, rows):
    return SkillCheckImporter(store, settings).import_matrix(rows, today=TODAY)


class TestRowDocuments:
    def test_documents_of_one_row(self, export_rows):
        stack = HeaderStack(export_rows)
        docs = build_row_documents(stack, stack.data_rows[0], SECTION_TABLE, row_number=3, today=TODAY)

        assert docs.customer["external_id"] == "1001"
        assert docs.customer["status"] == "in_progress"
        assert docs.customer["prefecture"] == "東京都"
        assert docs.assessment["total_score"] == 650
        assert docs.assessment["total_time_minutes"] == 66
        assert docs.assessment["total_time_seconds"] == 20
        assert docs.sections[("score", "current")]["総合計タイム"] == "66分20秒"
        assert "col_14" not in docs.sections[("score", "current")]
        assert docs.sections[("radar_chart", "current")] == {}

    def test_trend_sections_are_sanitised(self, export_rows):
        stack = HeaderStack(export_rows)
        docs = build_row_documents(stack, stack.data_rows[0], SECTION_TABLE)
        average = docs.sections[("care_comparison", "average")]
        assert average["1-1"] == "1"
        assert average["1-2"] == "2"
        assert len(average) == 26
        assert set(average.values()) == {"1", "2", None}

    def test_summary_row_has_no_customer(self, export_rows):
        stack = HeaderStack(export_rows)
        docs = build_row_documents(stack, stack.data_rows[1], SECTION_TABLE)
        assert docs.customer is None
        assert docs.assessment == {}


class TestImporter:
    def test_import_matrix(self, store, settings, export_rows):
        dq = _import(store, settings, export_rows)

        assert dq.header_depth == 2
        assert dq.column_count == 536
        assert dq.rows_seen == 2
        assert dq.rows_processed == 1
        assert dq.rows_skipped_invalid_id == 1
        assert dq.section_failures == 0
        assert dq.score_rows_written == 5

        customers = store.read_frame("customers")
        assert customers["external_id"].tolist() == ["1001"]
        assert customers.loc[0, "email"] == "hanako@example.com"

        assessments = store.read_frame("assessments")
        assert assessments.loc[0, "assessment_date"] == "2024-05-01"
        assert assessments.loc[0, "care_rating"] == "A"
        assert json.loads(assessments.loc[0, "care_details"]) == {"[ケア]1-1削りすぎ": "10", "[ケア]1-2削り不足": "5"}

    def test_sections_read_back(self, store, settings, export_rows):
        _import(store, settings, export_rows)
        aid = store.latest_assessment_id("1001")

        assert store.fetch_section(aid, "score", "current")["総合計タイム"] == "66分20秒"
        assert store.fetch_section(aid, "care_comparison", "average")["1-1"] == "1"
        assert store.fetch_section(aid, "time_both_hand", "current")["[オフ]秒"] == "18"
        assert store.fetch_section(aid, "customer_information", "merged")["ID"] == "1001"
        assert len(store.fetch_section(aid, "radar_chart", "current")) == 0

    def test_uncovered_groups_written_raw(self, store, settings, export_rows):
        _import(store, settings, export_rows)
        aid = store.latest_assessment_id("1001")
        raw = {d.section for d in store.fetch_sections(assessment_id=aid) if d.subtype == "raw"}
        assert raw == {"顧客情報", "今回スコア", "前回スコア", "顧客属性"}

    def test_section_failure_does_not_stop_row(self, store, settings, export_rows, monkeypatch):
        write_section = store.write_section

        def failing(customer_id, assessment_id, section, subtype, payload):
            if section == "care_score" and payload:
                raise PersistenceFailure("disk full", section=section, subtype=subtype)
            return write_section(customer_id, assessment_id, section, subtype, payload)

        monkeypatch.setattr(store, "write_section", failing)
        dq = _import(store, settings, export_rows)

        assert dq.rows_processed == 1
        assert dq.section_failures == 1
        assert "disk full" in dq.failures[0]
        aid = store.latest_assessment_id("1001")
        written = {(d.section, d.subtype) for d in store.fetch_sections(assessment_id=aid)}
        assert ("care_score", "current") not in written
        assert ("score", "current") in written
        assert ("one_color_score", "current") in written

    def test_record_failure_skips_row(self, store, settings, export_rows, monkeypatch):
        def failing(customer_id, record):
            raise PersistenceFailure("locked")

        monkeypatch.setattr(store, "insert_assessment", failing)
        dq = _import(store, settings, export_rows)
        assert dq.rows_failed == 1
        assert dq.rows_processed == 0
        assert len(store.read_frame("section_blobs")) == 0

    def test_row_limit(self, store, settings):
        rows = make_export([dict(CUSTOMER_ROW, A=str(1001 + i)) for i in range(3)])
        settings["max_rows"] = 2
        dq = _import(store, settings, rows)
        assert dq.rows_truncated == 1
        assert dq.rows_processed == 2
        assert store.latest_assessment_id("1003") is None

    def test_reimport_keeps_one_current_assessment(self, store, settings, export_rows):
        _import(store, settings, export_rows)
        _import(store, settings, export_rows)
        assessments = store.read_frame("assessments")
        assert len(assessments) == 2
        assert assessments["is_current"].tolist() == [0, 1]

    def test_malformed_matrix(self, store, settings):
        with pytest.raises(MalformedInput):
            _import(store, settings, [["1001"]])


class TestReadMatrix:
    def test_csv_utf8(self, tmp_path, store, settings, export_rows):
        path = tmp_path / "export.csv"
        pd.DataFrame(export_rows).to_csv(path, header=False, index=False, encoding="utf-8-sig")

        rows = read_matrix(path)
        assert len(rows) == 4
        assert rows[2][0] == "1001"

        dq = SkillCheckImporter(store, settings).run(path)
        assert dq.input_file == "export.csv"
        assert dq.rows_processed == 1

    def test_csv_cp932(self, tmp_path, export_rows):
        path = tmp_path / "export.csv"
        pd.DataFrame(export_rows).to_csv(path, header=False, index=False, encoding="cp932")
        rows = read_matrix(path)
        assert rows[1][0] == "ID"
        assert rows[2][1] == "山田 花子"

    def test_xlsx(self, tmp_path):
        path = tmp_path / "export.xlsx"
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.append(["ID", "採点日", "総合"])
        ws.append([1001, datetime.datetime(2024, 5, 1), 650.0])
        wb.save(path)

        rows = read_matrix(path)
        assert rows[0][:3] == ["ID", "採点日", "総合"]
        assert rows[1][:3] == ["1001", "2024-05-01", "650"]

    def test_empty_csv(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("", encoding="utf-8")
        with pytest.raises(MalformedInput):
            read_matrix(path)

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "export.txt"
        path.write_text("ID\n1001\n", encoding="utf-8")
        with pytest.raises(MalformedInput):
            read_matrix(path)


class TestDataQuality:
    def test_rows(self):
        dq = DataQuality(rows_processed=3)
        labels = dict(dq.as_rows())
        assert labels["Rows processed"] == 3


class TestMain:
    def _project(self, tmp_path, rows):
        (tmp_path / "inputs").mkdir()
        (tmp_path / "config.json").write_text(json.dumps({"max_rows": 100}), encoding="utf-8")
        pd.DataFrame(rows).to_csv(tmp_path / "inputs" / "export.csv", header=False, index=False, encoding="utf-8-sig")
        return tmp_path

    def test_import_and_report(self, tmp_path, export_rows):
        base = self._project(tmp_path, export_rows)
        assert main(["--base-dir", str(base), "--report"]) == 0
        assert (base / "outputs" / "nailcheck.sqlite3").exists()
        assert (base / "outputs" / "nailcheck_import.log").exists()
        assert (base / "outputs" / "Assessment_Views.xlsx").exists()

        with SectionStore(base / "outputs" / "nailcheck.sqlite3") as store:
            assert store.latest_assessment_id("1001") is not None

    def test_missing_input(self, tmp_path):
        (tmp_path / "inputs").mkdir()
        assert main(["--base-dir", str(tmp_path)]) == 1

    def test_no_rows_imported(self, tmp_path):
        base = self._project(tmp_path, make_export([{"A": "合計"}]))
        assert main(["--base-dir", str(base)]) == 1
