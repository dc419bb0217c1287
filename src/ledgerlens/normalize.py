import re
from datetime import date
from decimal import Decimal, InvalidOperation

_NUMBER_RE = re.compile(r"^(?:\d+(?:\.\d*)?|\.\d+)$")
_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})(?:/(\d{4}|\d{2}))?$")
_YEAR_RE = re.compile(r"(?<!\d)(19\d{2}|20\d{2})(?!\d)")
_WHITESPACE_RE = re.compile(r"\s+")
_NOISE_RE = re.compile(r"[^\w\s&.-]")

PAYEE_MAX_WORDS = 3


def parse_amount(token: str) -> Decimal | None:
    """Parse ``$1,234.56``, ``-45.00``, ``(45.00)`` style tokens into a signed Decimal.

    A leading minus and surrounding parentheses both mean negative, in any
    order with the currency symbol. Returns None when the remainder is not a
    plain number.
    """
    if not isinstance(token, str):
        return None
    s = token.strip()
    negative = False
    # Peel sign, currency symbol and parentheses until nothing changes.
    while s:
        if s.startswith("-"):
            negative = True
            s = s[1:].lstrip()
        elif s.startswith("+"):
            s = s[1:].lstrip()
        elif s.startswith("$"):
            s = s[1:].lstrip()
        elif s.startswith("(") and s.endswith(")"):
            negative = True
            s = s[1:-1].strip()
        else:
            break
    s = s.replace(",", "")
    if not _NUMBER_RE.match(s):
        return None
    try:
        value = Decimal(s)
    except InvalidOperation:
        return None
    return -value if negative else value


def coerce_amount(value) -> Decimal | None:
    """Accept a numeric or numeric-string amount; None when it can't be read."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return Decimal(str(value))
    if isinstance(value, str):
        return parse_amount(value)
    return None


def _expand_year(raw: str) -> int:
    year = int(raw)
    if len(raw) == 2:
        year += 1900 if year > 50 else 2000
    return year


def parse_date(token: str, assumed_year: int | None = None) -> date | None:
    """Parse MM/DD/YYYY, MM/DD/YY or bare MM/DD (using ``assumed_year``).

    Two-digit years pivot at 50: ``99`` is 1999, ``25`` is 2025. Returns None
    for anything that is not a real calendar date.
    """
    if not isinstance(token, str):
        return None
    m = _DATE_RE.match(token.strip())
    if m is None:
        return None
    month, day, raw_year = m.groups()
    if raw_year is None:
        year = assumed_year if assumed_year is not None else date.today().year
    else:
        year = _expand_year(raw_year)
    try:
        return date(year, int(month), int(day))
    except ValueError:
        return None


def detect_assumed_year(text: str, today: date | None = None) -> int:
    """Return the first plausible four-digit year in the document, else this year."""
    m = _YEAR_RE.search(text or "")
    if m:
        return int(m.group(1))
    return (today or date.today()).year


def clean(text: str) -> str:
    """Collapse whitespace and drop everything but word chars, spaces, ``&``, ``.`` and ``-``."""
    if not text:
        return ""
    text = _WHITESPACE_RE.sub(" ", text)
    text = _NOISE_RE.sub("", text)
    # Stripping a character can leave two spaces touching.
    return _WHITESPACE_RE.sub(" ", text).strip()


def extract_payee(description: str) -> str:
    words = description.split()
    if not words:
        return description
    return " ".join(words[:PAYEE_MAX_WORDS])
