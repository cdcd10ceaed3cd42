"""
Tests for ingest/reader.py — per-file readers, precedence and provenance.
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from conftest import COMPANY_HEADER, make_export_db, make_workbook
from ingest.reader import (
    list_source_files,
    marker_rank,
    provenance_label,
    read_date_dir,
    read_workbook,
)


def _companies_sheet(*names):
    rows = [["Mapp", "Org.nr", "Företagsnamn"]]
    for i, name in enumerate(names, 1):
        rows.append([f"{name[:1].upper()}{i}", f"55900000{i:02d}", name])
    return {"Huvuddata": rows}


class TestFirstDate:
    def test_reads_every_kind(self, first_date_dir):
        result = read_date_dir(first_date_dir)
        counts = result.data.counts()
        assert counts == {"companies": 3, "people": 3, "mails": 1,
                          "audits": 1, "evaluations": 1}
        assert result.errors == []
        assert len(result.files) == 4

    def test_provenance_final(self, first_date_dir):
        assert read_date_dir(first_date_dir).provenance == "spreadsheet-final"

    def test_summary(self, first_date_dir):
        summary = read_date_dir(first_date_dir).data.summary
        assert summary.date == "2026-01-15"
        assert summary.total_companies == 3.0

    def test_values_coerced(self, first_date_dir):
        data = read_date_dir(first_date_dir).data
        assert data.mails[0].cost_sek == pytest.approx(0.45)
        assert data.audits[0].seo is None
        assert data.audits[0].overall == 6.5
        assert data.companies[0].domain_status == "verified"


class TestPrecedence:
    def test_final_overrides_earlier_plain_file(self, tmp_path):
        d = tmp_path / "20260101"
        make_workbook(d / "a_report.xlsx", _companies_sheet("Alfa"))
        make_workbook(d / "b_final.xlsx", _companies_sheet("Beta"))
        result = read_date_dir(d)
        assert [c.name for c in result.data.companies] == ["Beta"]
        assert result.provenance == "spreadsheet-final"

    def test_plain_file_after_final_does_not_override(self, tmp_path):
        d = tmp_path / "20260101"
        make_workbook(d / "a_final.xlsx", _companies_sheet("Alfa"))
        make_workbook(d / "b_report.xlsx", _companies_sheet("Beta"))
        assert [c.name for c in read_date_dir(d).data.companies] == ["Alfa"]

    def test_later_final_overrides_earlier_final(self, tmp_path):
        d = tmp_path / "20260101"
        make_workbook(d / "a_final.xlsx", _companies_sheet("Alfa"))
        make_workbook(d / "b_final.xlsx", _companies_sheet("Beta"))
        assert [c.name for c in read_date_dir(d).data.companies] == ["Beta"]

    def test_without_marker_first_non_empty_wins(self, tmp_path):
        d = tmp_path / "20260101"
        make_workbook(d / "a.xlsx", {"Huvuddata": [["Mapp", "Företagsnamn"]]})
        make_workbook(d / "b.xlsx", _companies_sheet("Beta"))
        make_workbook(d / "c.xlsx", _companies_sheet("Gamma"))
        result = read_date_dir(d)
        assert [c.name for c in result.data.companies] == ["Beta"]
        assert result.provenance == "spreadsheet-other"

    def test_database_read_before_workbooks(self, tmp_path):
        d = tmp_path / "20260101"
        make_export_db(d / "export.db", {"companies": [
            {"mapp": "D1", "orgnr": "5590000099", "foretagsnamn": "Databas AB"},
        ]})
        make_workbook(d / "a.xlsx", _companies_sheet("Alfa"))
        result = read_date_dir(d)
        assert [c.name for c in result.data.companies] == ["Databas AB"]
        assert result.provenance == "embedded-db"

    def test_final_beats_database(self, tmp_path):
        d = tmp_path / "20260101"
        make_export_db(d / "export.db", {"companies": [
            {"mapp": "D1", "orgnr": "5590000099", "foretagsnamn": "Databas AB"},
        ]})
        make_workbook(d / "x_final.xlsx", _companies_sheet("Final AB"))
        assert [c.name for c in read_date_dir(d).data.companies] == ["Final AB"]

    def test_final_wins_over_registry_export(self, tmp_path):
        d = tmp_path / "20260101"
        make_workbook(d / "final_20260101.xlsx", _companies_sheet("Alfa", "Beta"))
        make_workbook(d / "kungorelser_20260101.xlsx", {
            "Blad1": [COMPANY_HEADER[:4],
                      ["R1", "R1/26", "5598880001", "Registry AB"],
                      ["A1", "A1/26", "5590000001", "Alfa Registry AB"]],
        })
        result = read_date_dir(d)
        alone = make_workbook(tmp_path / "alone" / "final_20260101.xlsx",
                              _companies_sheet("Alfa", "Beta"))
        assert result.data.companies == read_date_dir(alone.parent).data.companies
        assert [c.name for c in result.data.companies] == ["Alfa", "Beta"]
        assert result.provenance == "spreadsheet-final"

    def test_provenance_follows_last_winning_file(self, tmp_path):
        d = tmp_path / "20260101"
        make_export_db(d / "export.db", {"people": [
            {"kungorelse_id": "D1/26", "personnummer": "19700101-0000", "fornamn": "Dan"},
        ]})
        make_workbook(d / "x_final.xlsx", _companies_sheet("Final AB"))
        result = read_date_dir(d)
        assert [p.first_name for p in result.data.people] == ["Dan"]
        assert result.provenance == "spreadsheet-final"

    def test_mails_are_unioned(self, tmp_path):
        d = tmp_path / "20260101"
        header = ["Mapp", "E-post", "Ämne"]
        make_workbook(d / "a_mail_ready.xlsx", {"Mails": [header, ["K1", "a@x.se", "Hej"]]})
        make_workbook(d / "b_mail_ready.xlsx", {"Mails": [header, ["K2", "b@x.se", "Hej"]]})
        mails = read_date_dir(d).data.mails
        assert [m.folder_id for m in mails] == ["K1", "K2"]

    def test_marker_rank(self):
        assert marker_rank("companies", "20260115_FINAL.xlsx") == 0
        assert marker_rank("companies", "report.xlsx") is None
        assert marker_rank("mails", "final.xlsx") is None


class TestErrorIsolation:
    def test_corrupt_workbook_skipped(self, first_date_dir):
        (first_date_dir / "broken.xlsx").write_bytes(b"PK\x03\x04 not really a zip")
        result = read_date_dir(first_date_dir)
        assert [e.file_name for e in result.errors] == ["broken.xlsx"]
        assert result.errors[0].error_type
        assert len(result.data.companies) == 3

    def test_corrupt_database_skipped(self, tmp_path):
        d = tmp_path / "20260101"
        d.mkdir()
        (d / "export.db").write_bytes(b"garbage" * 200)
        make_workbook(d / "a.xlsx", _companies_sheet("Alfa"))
        result = read_date_dir(d)
        assert [e.file_name for e in result.errors] == ["export.db"]
        assert [c.name for c in result.data.companies] == ["Alfa"]

    def test_lock_files_ignored(self, tmp_path):
        d = tmp_path / "20260101"
        make_workbook(d / "a.xlsx", _companies_sheet("Alfa"))
        (d / "~$a.xlsx").write_bytes(b"lock")
        dbs, books = list_source_files(d)
        assert dbs == []
        assert [p.name for p in books] == ["a.xlsx"]

    def test_empty_directory(self, tmp_path):
        d = tmp_path / "20260101"
        d.mkdir()
        result = read_date_dir(d)
        assert result.data.counts()["companies"] == 0
        assert result.provenance == "unknown"


class TestWorkbookReader:
    def test_registry_export_first_sheet_fallback(self, tmp_path):
        path = make_workbook(tmp_path / "kungorelser_20260101.xlsx", {
            "Blad1": [COMPANY_HEADER[:4], ["K7", "K7/26", "5597777777", "Registry AB"]],
        })
        found = read_workbook(path)
        assert len(found["companies"]) == 1
        assert found["companies"][0]["Företagsnamn"] == "Registry AB"

    def test_no_fallback_without_marker(self, tmp_path):
        path = make_workbook(tmp_path / "random.xlsx", {
            "Blad1": [COMPANY_HEADER[:4], ["K7", "K7/26", "5597777777", "Registry AB"]],
        })
        assert read_workbook(path)["companies"] == []

    def test_header_is_first_non_empty_row(self, tmp_path):
        path = make_workbook(tmp_path / "a.xlsx", {
            "Huvuddata": [[None, None], ["Mapp", "Företagsnamn"], ["K1", "Acme"]],
        })
        assert read_workbook(path)["companies"] == [{"Mapp": "K1", "Företagsnamn": "Acme"}]

    def test_provenance_labels(self):
        assert provenance_label(Path("x.sqlite")) == "embedded-db"
        assert provenance_label(Path("20260115_final.xlsx")) == "spreadsheet-final"
        assert provenance_label(Path("mail_ready.xlsx")) == "spreadsheet-other"
