"""String processing utilities for the export index.

Optimization: parse_decimal() and clean_str() are called for every cell of
every source row, so they avoid regex work on the common numeric fast path.
"""

from utils.patterns import WHITESPACE, THOUSANDS_SPACE

# Tokens meaning "yes" in generic yes/no columns (research_done and friends)
YES_TOKENS = frozenset({"y", "yes", "ja", "1", "true"})

# Evaluation verdicts only count an explicit Swedish "ja"
WORTHY_TOKENS = frozenset({"ja"})


def parse_decimal(val) -> float | None:
    """Convert a locale-formatted number to float, or None.

    Handles:
    - None, empty strings -> None
    - int/float -> float (bool is rejected, it is not a number here)
    - "0,85" and "0.85" -> 0.85
    - "1 234,5", "1.234,5", "1,234.5" -> 1234.5
    - Anything unparsable -> None

    Never raises.
    """
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        return float(val)

    s = THOUSANDS_SPACE.sub('', str(val))
    if not s:
        return None
    if ',' in s and '.' in s:
        # The right-most separator is the decimal mark
        if s.rfind(',') > s.rfind('.'):
            s = s.replace('.', '').replace(',', '.')
        else:
            s = s.replace(',', '')
    else:
        s = s.replace(',', '.')
    try:
        return float(s)
    except ValueError:
        return None


def clean_str(val) -> str | None:
    """Trim a cell value to a string; whitespace-only and None become None.

    Python booleans (openpyxl and sqlite both produce them) map to the
    Swedish tokens the exports use elsewhere, "Ja" and "Nej".
    Integral floats lose their ".0" so org numbers read from numeric cells
    stay comparable with their text form.
    """
    if val is None:
        return None
    if isinstance(val, bool):
        return "Ja" if val else "Nej"
    if isinstance(val, float) and val.is_integer():
        val = int(val)
    s = str(val).strip()
    return s or None


def normalize_whitespace(s: str) -> str:
    """Normalize multiple whitespace characters to single spaces.

    Example:
        "Acme   Bygg\\n AB" -> "Acme Bygg AB"
    """
    return WHITESPACE.sub(' ', s).strip()


def is_truthy(val, tokens=YES_TOKENS) -> bool:
    """Interpret a raw yes/no token against *tokens* (case-insensitive)."""
    if val is None:
        return False
    return str(val).strip().lower() in tokens


def build_search_text(*parts) -> str:
    """Join the non-empty parts with single spaces and lowercase the result."""
    return " ".join(
        normalize_whitespace(str(p)) for p in parts if p not in (None, "")
    ).lower()
