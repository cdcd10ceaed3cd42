"""Pre-compiled regex patterns for the export index.

All patterns are compiled once at module import so hot loops in the
normaliser and reader do not recompile them per row.

Usage:
    from utils.patterns import DATE_DIR, BOARD_MEMBER_ROLE

    if DATE_DIR.match(entry.name):
        ...
"""

import re

# Date directories: exactly eight digits, e.g. "20260115"
DATE_DIR = re.compile(r'^\d{8}$')

# Source files inside a date directory
DATABASE_FILE = re.compile(r'\.(db|sqlite3?)$', re.IGNORECASE)
SPREADSHEET_FILE = re.compile(r'\.xlsx$', re.IGNORECASE)

# Office lock files ("~$final.xlsx") left next to open workbooks
LOCK_FILE = re.compile(r'^~\$')

# Person roles from the company registry ("Styrelseledamot, ordförande")
BOARD_MEMBER_ROLE = re.compile(r'styrelseledamot|ordf[öo]rande|board\s*member', re.IGNORECASE)
DEPUTY_ROLE = re.compile(r'suppleant|deputy', re.IGNORECASE)

# Whitespace normalization: multiple spaces/tabs/newlines
WHITESPACE = re.compile(r'\s+')

# Thousands separators inside locale numbers ("1 234,5"), incl. no-break spaces
THOUSANDS_SPACE = re.compile(r"\s")
