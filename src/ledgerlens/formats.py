"""Line-level heuristics: bank detection and "is this a transaction row?"."""

import re

from ledgerlens.models import BankInfo
from ledgerlens.registry import FormatRegistry, registry

# A date-like token: M/D, MM/DD, MM/DD/YY or MM/DD/YYYY.
DATE_TOKEN_RE = re.compile(r"(?<![\d/])\d{1,2}/\d{1,2}(?:/\d{4}|/\d{2})?(?![\d/])")

# A currency amount with cents, optionally signed, dollar-prefixed or in parentheses.
AMOUNT = r"\(?-?\$?-?(?:\d{1,3}(?:,\d{3})+|\d+)\.\d{2}\)?"
AMOUNT_TOKEN_RE = re.compile(r"(?<![\w/.,$-])" + AMOUNT + r"(?![\w/])")

HEADER_RE = re.compile(r"\b(?:date|description|amount|balance|summary)\b", re.IGNORECASE)

MIN_LINE_LENGTH = 10


def detect_format(text: str, formats: FormatRegistry = registry) -> BankInfo:
    return formats.detect(text or "")


def is_header_line(line: str) -> bool:
    return HEADER_RE.search(line) is not None


def looks_like_transaction_line(line: str) -> bool:
    """Gate for the generic grammar: date, amount, enough text, not a header."""
    return (
        DATE_TOKEN_RE.search(line) is not None
        and AMOUNT_TOKEN_RE.search(line) is not None
        and len(line.strip()) > MIN_LINE_LENGTH
        and not is_header_line(line)
    )
