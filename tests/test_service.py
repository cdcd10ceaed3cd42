"""
Tests for store/service.py — lazy indexing, bundle ingest and clear-data,
including the upload-then-search round trip.
"""
import io
import sys
import zipfile
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from conftest import make_export_db, make_workbook, write_first_date, write_second_date
from store.query import SearchFilters
from store.service import BundleError, DatasetService


def _zip_dir(src: Path, prefix: str = "") -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for path in sorted(src.iterdir()):
            zf.write(path, arcname=prefix + path.name)
    return buf.getvalue()


@pytest.fixture()
def service(two_dates_root, index_path):
    return DatasetService([two_dates_root], index_path=index_path)


class TestLazyIndexing:
    def test_first_call_indexes_every_date(self, service):
        report = service.ensure_indexed()
        assert sorted(report.indexed_dates) == ["20260115", "20260116"]
        assert report.status == "completed"
        assert service.store.indexed_dates() == ["20260116", "20260115"]

    def test_second_call_is_noop(self, service):
        service.ensure_indexed()
        report = service.ensure_indexed()
        assert report.indexed_dates == []
        assert report.skip_counts_by_category() == {"already_indexed": 2}

    def test_new_directory_picked_up(self, service, two_dates_root):
        service.get_totals()
        write_second_date(two_dates_root / "20260117")
        assert service.get_totals()["total_dates"] == 3

    def test_removed_directory_dropped(self, service, two_dates_root):
        import shutil
        service.ensure_indexed()
        shutil.rmtree(two_dates_root / "20260116")
        service.ensure_indexed()
        assert service.store.indexed_dates() == ["20260115"]

    def test_failing_date_reported_and_retried(self, service, monkeypatch):
        import store.service as svc

        real = svc.read_date_dir

        def flaky(date_dir):
            if date_dir.name == "20260116":
                raise OSError("disk hiccup")
            return real(date_dir)

        monkeypatch.setattr(svc, "read_date_dir", flaky)
        report = service.ensure_indexed()
        assert report.status == "partial"
        assert report.indexed_dates == ["20260115"]
        assert "20260116" in report.errors[0]
        assert service.store.indexed_dates() == ["20260115"]

        monkeypatch.setattr(svc, "read_date_dir", real)
        assert service.ensure_indexed().indexed_dates == ["20260116"]

    def test_reindex_all(self, service):
        service.ensure_indexed()
        report = service.reindex_all()
        assert sorted(report.indexed_dates) == ["20260115", "20260116"]
        assert service.store.row_count("companies", "20260115") == 3

    def test_index_date_missing(self, service):
        with pytest.raises(FileNotFoundError):
            service.index_date("20250101")

    def test_unreadable_files_reported(self, service, two_dates_root):
        (two_dates_root / "20260115" / "broken.xlsx").write_bytes(b"not a workbook")
        report = service.ensure_indexed()
        assert report.status == "completed"
        assert [(e["date"], e["file_name"]) for e in report.source_errors] == [
            ("20260115", "broken.xlsx")]
        assert "1 unreadable source files" in report.console_summary()
        assert service.store.date_info("20260115")["source_errors"] == 1

    def test_totals_cache_cleared_by_indexing(self, service, two_dates_root):
        assert service.get_totals()["total_companies"] == 4
        service.index_date("20260116")
        (two_dates_root / "20260116" / "export.db").unlink()
        service.index_date("20260116")
        assert service.get_totals()["total_companies"] == 3


class TestDateData:
    def test_list_dates(self, service):
        assert service.list_dates() == [
            {"date": "20260116", "display_label": "16 januari 2026"},
            {"date": "20260115", "display_label": "15 januari 2026"},
        ]

    def test_get_date_data(self, service):
        payload = service.get_date_data("20260115")
        assert payload["provenance"] == "spreadsheet-final"
        assert len(payload["companies"]) == 3
        assert payload["summary"]["date"] == "2026-01-15"
        assert payload["stats"]["companies_with_audit"] == 1
        assert payload["source_errors"] == []

    def test_get_date_data_missing(self, service):
        assert service.get_date_data("20250101") is None

    def test_date_data_does_not_need_index(self, service):
        service.get_date_data("20260116")
        assert not service.store.path.exists()


class TestBundles:
    def test_upload_then_search(self, tmp_path, data_root, index_path):
        staged = write_first_date(tmp_path / "staging" / "20260120")
        service = DatasetService([data_root], index_path=index_path)
        result = service.ingest_bundle("20260120", _zip_dir(staged))
        assert result["indexed"] is True
        assert result["files_extracted"] == 4
        assert (data_root / "20260120" / "20260120.zip").exists()

        found = service.search(SearchFilters.from_params({"q": "bravo"}), 200)
        assert [c["company_key"] for c in found["companies"]] == ["K2-2026"]
        assert found["companies"][0]["date"] == "20260120"
        assert service.get_totals()["total_dates"] == 1

    def test_extracts_into_primary_root(self, tmp_path, index_path):
        staged = write_second_date(tmp_path / "staging" / "20260120")
        primary, secondary = tmp_path / "disk", tmp_path / "local"
        primary.mkdir()
        secondary.mkdir()
        service = DatasetService([primary, secondary], index_path=index_path)
        service.ingest_bundle("20260120", _zip_dir(staged))
        assert (primary / "20260120" / "export.db").exists()
        assert not (secondary / "20260120").exists()

    def test_path_traversal_rejected(self, service, two_dates_root):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            zf.writestr("../escape.txt", "nope")
        with pytest.raises(BundleError):
            service.ingest_bundle("20260121", buf.getvalue())
        assert not (two_dates_root / "escape.txt").exists()
        assert not (two_dates_root / "20260121").exists()

    @pytest.mark.parametrize("date,payload", [
        ("2026-01-21", b"PK"),
        ("20260121", b""),
        ("20260121", b"not a zip"),
    ])
    def test_bad_bundles(self, service, date, payload):
        with pytest.raises(BundleError):
            service.ingest_bundle(date, payload)

    def test_index_failure_does_not_fail_upload(self, service, tmp_path, monkeypatch):
        staged = write_second_date(tmp_path / "staging" / "20260121")

        def broken(date):
            raise RuntimeError("index is on fire")

        monkeypatch.setattr(service, "index_date", broken)
        result = service.ingest_bundle("20260121", _zip_dir(staged))
        assert result["indexed"] is False
        assert result["files_extracted"] == 1


class TestClearData:
    def test_clears_dates_and_index(self, service, two_dates_root):
        service.ensure_indexed()
        (two_dates_root / "keep-me.txt").write_text("not a date")
        result = service.clear_data()
        assert sorted(result["folders"]) == ["20260115", "20260116"]
        assert result["errors"] == []
        assert service.list_dates() == []
        assert (two_dates_root / "keep-me.txt").exists()
        assert service.get_totals()["total_companies"] == 0


class TestEndToEnd:
    def test_database_company_gains_flags_from_mail_sheet(self, data_root, index_path):
        d = data_root / "20260301"
        make_export_db(d / "export.db", {"companies": [
            {"mapp": "K5-2026", "kungorelse_id": "K5/26", "orgnr": "5595556667",
             "foretagsnamn": "Eko Bygg AB", "lan": "Örebro", "segment": "Bygg",
             "epost": None},
        ]})
        make_workbook(d / "mail_ready.xlsx", {"Mails": [
            ["Mapp", "Företag", "E-post", "Ämne"],
            ["K5-2026", "Eko Bygg AB", "hej@eko.se", "Ny hemsida?"],
        ]})
        service = DatasetService([data_root], index_path=index_path)
        result = service.search(SearchFilters(segment="Bygg"), 200)
        assert result["total_companies"] == 1
        eko = result["companies"][0]
        assert eko["company_key"] == "K5-2026"
        assert eko["has_mail"] is True
        assert eko["has_email"] is True
        assert eko["has_domain"] is False
