"""
Pytest fixtures for the export index tests.

Provides builders for realistic export files (openpyxl workbooks with the
Swedish report headers, SQLite exports with snake_case columns) and two
ready-made date directories:

    20260115  final report + mail_ready + audits + evaluation workbooks
    20260116  one embedded SQLite export

Expected facts about these fixtures are asserted across several test
modules, so change the rows here only together with those tests.
"""

import sqlite3
import sys
from pathlib import Path

import openpyxl
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))


# ── Helpers ───────────────────────────────────────────────────────────────────

def make_workbook(path: Path, sheets: dict[str, list[list]]) -> Path:
    """Write an .xlsx with one sheet per entry; each first row is the header."""
    wb = openpyxl.Workbook()
    first = True
    for name, rows in sheets.items():
        if first:
            ws = wb.active
            ws.title = name
            first = False
        else:
            ws = wb.create_sheet(name)
        for row in rows:
            ws.append(list(row))
    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(str(path))
    return path


def make_export_db(path: Path, tables: dict[str, list[dict]]) -> Path:
    """Write a SQLite export with one TEXT-typed table per entry."""
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    for table, rows in tables.items():
        columns: list[str] = []
        for row in rows:
            for col in row:
                if col not in columns:
                    columns.append(col)
        conn.execute(
            f'CREATE TABLE "{table}" ({", ".join(f"{c} TEXT" for c in columns)})'
        )
        for row in rows:
            cols = list(row)
            conn.execute(
                f'INSERT INTO "{table}" ({", ".join(cols)}) '
                f'VALUES ({", ".join("?" * len(cols))})',
                [row[c] for c in cols],
            )
    conn.commit()
    conn.close()
    return path


# ── Fixture rows ──────────────────────────────────────────────────────────────

COMPANY_HEADER = [
    "Mapp", "Kungörelse-id", "Org.nr", "Företagsnamn", "Län", "Säte",
    "E-post", "Segment", "domain_guess", "domain_status", "phones_found",
    "Ska få sajt",
]
COMPANY_ROWS = [
    ["K1-2026", "K1/26", "5591234567", "Acme Bygg AB", "Stockholm", "Solna",
     "info@acme.se", "Bygg", "acme.se", "Verified", "08-123 45", "Ja"],
    ["K2-2026", "K2/26", "5597654321", "Bravo Konsult AB", "Skåne", "Malmö",
     None, "Konsult", None, None, None, None],
    ["K3-2026", "K3/26", "5590001112", "Cirkel Café AB", "Stockholm", "Täby",
     None, None, None, "wrong-company", None, "Nej"],
]

PERSON_HEADER = [
    "Kungörelse-id", "Org.nr", "Företagsnamn", "Personnummer", "Roll",
    "Förnamn", "Efternamn", "Ort",
]
PERSON_ROWS = [
    ["K1/26", "5591234567", "Acme Bygg AB", "19800101-1234", "Styrelseledamot",
     "Anna", "Svensson", "Solna"],
    ["K1/26", "5591234567", "Acme Bygg AB", "19750202-5678", "Suppleant",
     "Erik", "Berg", "Stockholm"],
    ["K2/26", "5597654321", "Bravo Konsult AB", "19900303-9012",
     "Styrelseledamot, ordförande", "Maria", "Lind", "Malmö"],
]

SUMMARY_ROWS = [
    ["Nyckel", "Värde"],
    ["Datum", "2026-01-15"],
    ["Skapad", "2026-01-15 06:00"],
    ["Totalt antal företag", 3],
    ["Med domän", 1],
]

MAIL_ROWS = [
    ["Mapp", "Företag", "E-post", "Ämne", "Mail-text", "Kostnad (SEK)", "Preview URL"],
    ["K2-2026", "Bravo Konsult AB", "kontakt@bravo.se", "Ny hemsida?",
     "Hej! Vi har tagit fram ett förslag.", "0,45", "https://preview.example/k2"],
]

AUDIT_ROWS = [
    ["Mapp", "Företag", "Hemsida", "Audit-datum", "Helhet", "Design", "SEO"],
    ["K1-2026", "Acme Bygg AB", "https://acme.se", "2026-01-14", 6.5, 7, "11"],
]

EVALUATION_ROWS = [
    ["Kungörelse-id", "Mapp", "Företagsnamn", "Ska få sajt", "Konfidens", "Motivering"],
    ["K2/26", "K2-2026", "Bravo Konsult AB", "Ja", "0,8", "Saknar hemsida"],
]

DB_COMPANIES = [
    {"mapp": "K1-2026", "kungorelse_id": "K1/26", "orgnr": "5591234567",
     "foretagsnamn": "Acme Bygg & Montage AB", "lan": "Stockholm",
     "sate": "Solna", "segment": "Bygg", "epost": "info@acme.se"},
    {"mapp": "K4-2026", "kungorelse_id": "K4/26", "orgnr": "5594445556",
     "foretagsnamn": "Delta Data AB", "lan": "Uppsala", "sate": "Uppsala",
     "segment": "IT", "epost": None},
]

DB_PEOPLE = [
    {"kungorelse_id": "K1/26", "orgnr": "5591234567",
     "foretagsnamn": "Acme Bygg & Montage AB", "personnummer": "19800101-1234",
     "roll": "Styrelseledamot", "fornamn": "Anna", "efternamn": "Svensson",
     "ort": "Solna"},
]


def write_first_date(date_dir: Path) -> Path:
    make_workbook(date_dir / f"{date_dir.name}_final.xlsx", {
        "Huvuddata": [COMPANY_HEADER, *COMPANY_ROWS],
        "Personer": [PERSON_HEADER, *PERSON_ROWS],
        "Sammanfattning": SUMMARY_ROWS,
    })
    make_workbook(date_dir / "mail_ready.xlsx", {"Mails": MAIL_ROWS})
    make_workbook(date_dir / "audits.xlsx", {"Audits": AUDIT_ROWS})
    make_workbook(date_dir / "evaluation.xlsx", {"Evaluation": EVALUATION_ROWS})
    return date_dir


def write_second_date(date_dir: Path) -> Path:
    make_export_db(date_dir / "export.db", {
        "companies": DB_COMPANIES,
        "people": DB_PEOPLE,
    })
    return date_dir


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture()
def data_root(tmp_path):
    """Empty data root directory."""
    root = tmp_path / "data"
    root.mkdir()
    return root


@pytest.fixture()
def first_date_dir(data_root):
    """20260115: final report with people and summary, plus linked workbooks."""
    return write_first_date(data_root / "20260115")


@pytest.fixture()
def two_dates_root(data_root):
    """Data root holding 20260115 (workbooks) and 20260116 (SQLite export)."""
    write_first_date(data_root / "20260115")
    write_second_date(data_root / "20260116")
    return data_root


@pytest.fixture()
def index_path(tmp_path):
    return tmp_path / "index" / "_index.sqlite"
