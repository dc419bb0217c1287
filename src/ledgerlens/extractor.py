"""Statement text → transaction candidates.

Known banks are parsed with their own ordered line grammars; anything else goes
through a generic grammar gated by ``looks_like_transaction_line``. Extraction
is best-effort: a line that no grammar accepts is skipped, never an error.
"""

import re
from datetime import datetime, timezone
from typing import Callable, Iterator

from ledgerlens.errors import ExtractionFailed
from ledgerlens.formats import (
    AMOUNT, AMOUNT_TOKEN_RE, DATE_TOKEN_RE,
    detect_format, is_header_line, looks_like_transaction_line,
)
from ledgerlens.logging_setup import get_logger
from ledgerlens.models import (
    BankInfo, ExtractionResult, LinePattern, StatementFormat, StatementPeriod,
    TransactionCandidate,
)
from ledgerlens.normalize import (
    clean, detect_assumed_year, extract_payee, parse_amount, parse_date,
)
from ledgerlens.registry import FormatRegistry, registry

_logger = get_logger("ledgerlens.extractor")

STATEMENT_PERIOD_RE = re.compile(
    r"Statement Period.*?(\d{1,2}/\d{1,2}/\d{4})\s*[-–]\s*(\d{1,2}/\d{1,2}/\d{4})",
    re.IGNORECASE,
)

_DATE = r"(?P<date>\d{1,2}/\d{1,2}(?:/\d{4}|/\d{2})?)"
_POSTED = r"\d{1,2}/\d{1,2}(?:/\d{4}|/\d{2})?"
_DESC = r"(?P<description>.+?)"
_AMOUNT = rf"(?P<amount>{AMOUNT})"
_BALANCE = rf"(?P<balance>{AMOUNT})"


def line_pattern(name: str, pattern: str) -> LinePattern:
    return LinePattern(regex=re.compile(pattern), name=name)


# Amount before an optional trailing running balance, most specific first.
DATED_LINE_PATTERNS = [
    line_pattern("date_desc_amount_balance", rf"^{_DATE}\s+{_DESC}\s+{_AMOUNT}\s+{_BALANCE}$"),
    line_pattern("date_desc_amount", rf"^{_DATE}\s+{_DESC}\s+{_AMOUNT}$"),
]

# Card statements print a transaction date and a posting date.
TWO_DATE_PATTERNS = [
    line_pattern("trans_post_desc_amount", rf"^{_DATE}\s+{_POSTED}\s+{_DESC}\s+{_AMOUNT}$"),
    *DATED_LINE_PATTERNS,
]


def parse_period(text: str) -> StatementPeriod | None:
    m = STATEMENT_PERIOD_RE.search(text or "")
    if m is None:
        return None
    start, end = parse_date(m.group(1)), parse_date(m.group(2))
    if start is None or end is None:
        return None
    return StatementPeriod(start=start, end=end)


def _build_candidate(
    line: str, date_token: str, description: str, amount_token: str, year: int
) -> TransactionCandidate | None:
    amount = parse_amount(amount_token)
    if amount is None:
        return None
    when = parse_date(date_token, year)
    if when is None:
        return None
    desc = clean(description)
    return TransactionCandidate(
        date=when,
        description=desc,
        payee=extract_payee(desc),
        amount=amount,
        source_line=line,
    )


def parse_format_line(line: str, fmt: StatementFormat, year: int) -> TransactionCandidate | None:
    """Try ``fmt``'s patterns in order; the first one that yields a candidate wins."""
    text = line.strip()
    for pattern in fmt.patterns:
        m = pattern.regex.match(text)
        if m is None:
            continue
        candidate = _build_candidate(line, m["date"], m["description"], m["amount"], year)
        if candidate is not None:
            return candidate
    return None


def parse_generic_line(line: str, year: int) -> TransactionCandidate | None:
    """First date token is the date, last amount token the amount, the rest the description."""
    date_m = DATE_TOKEN_RE.search(line)
    amounts = list(AMOUNT_TOKEN_RE.finditer(line))
    if date_m is None or not amounts:
        return None
    amount_m = amounts[-1]
    spans = sorted([date_m.span(), amount_m.span()])
    rest = line[:spans[0][0]] + " " + line[spans[0][1]:spans[1][0]] + " " + line[spans[1][1]:]
    return _build_candidate(line, date_m.group(0), rest, amount_m.group(0), year)


def _iter_format(lines: list[str], fmt: StatementFormat, year: int) -> Iterator[TransactionCandidate]:
    for line in lines:
        if not line.strip() or is_header_line(line):
            continue
        candidate = parse_format_line(line, fmt, year)
        if candidate is None:
            _logger.debug("extract:skip format=%s line=%r", fmt.key, line)
            continue
        yield candidate


def _iter_generic(lines: list[str], year: int) -> Iterator[TransactionCandidate]:
    for line in lines:
        if not looks_like_transaction_line(line):
            continue
        candidate = parse_generic_line(line, year)
        if candidate is None:
            _logger.debug("extract:skip format=generic line=%r", line)
            continue
        yield candidate


def iter_candidates(
    text: str,
    bank_info: BankInfo,
    assumed_year: int,
    formats: FormatRegistry = registry,
) -> Iterator[TransactionCandidate]:
    """Lazily yield candidates; calling again restarts from the first line."""
    lines = (text or "").splitlines()
    fmt = formats.get_by_key(bank_info.identity)
    if fmt is not None:
        yield from _iter_format(lines, fmt, assumed_year)
    else:
        yield from _iter_generic(lines, assumed_year)


def extract_statement(
    text: str,
    metadata: dict | None = None,
    formats: FormatRegistry = registry,
) -> ExtractionResult:
    """Extract candidates, bank identity and statement period from statement text."""
    text = text or ""
    bank_info = detect_format(text, formats)
    year = detect_assumed_year(text)
    _logger.info("extract:start bank=%s year=%d chars=%d", bank_info.identity, year, len(text))

    transactions = list(iter_candidates(text, bank_info, year, formats))
    if not transactions and formats.get_by_key(bank_info.identity) is not None:
        # Signature matched but the layout did not; try the generic grammar.
        _logger.info("extract:fallback bank=%s reason=no_format_rows", bank_info.identity)
        transactions = list(_iter_generic(text.splitlines(), year))

    _logger.info("extract:done bank=%s transactions=%d", bank_info.identity, len(transactions))
    return ExtractionResult(
        success=True,
        bank_info=bank_info,
        statement_period=parse_period(text),
        transactions=transactions,
        metadata={
            **(metadata or {}),
            "total_transactions": len(transactions),
            "processing_date": datetime.now(timezone.utc).isoformat(),
            "text_length": len(text),
        },
    )


def extract_document(
    data: bytes,
    text_extractor: Callable[[bytes], str],
    metadata: dict | None = None,
    formats: FormatRegistry = registry,
) -> ExtractionResult:
    """Run the upstream text extractor, then extract. Its failures raise ExtractionFailed."""
    try:
        text = text_extractor(data)
    except Exception as exc:
        raise ExtractionFailed(str(exc) or exc.__class__.__name__, metadata) from exc
    return extract_statement(text, metadata, formats)


def process_document(
    data: bytes,
    text_extractor: Callable[[bytes], str],
    metadata: dict | None = None,
    formats: FormatRegistry = registry,
) -> ExtractionResult:
    """Like ``extract_document`` but reports extraction failure as an unsuccessful result."""
    try:
        return extract_document(data, text_extractor, metadata, formats)
    except ExtractionFailed as exc:
        _logger.error("extract:failed error=%s", exc.message, exc_info=True)
        return ExtractionResult(
            success=False, transactions=[], metadata=exc.metadata, error=exc.message,
        )


registry.register(StatementFormat(
    key="chase", name="Chase",
    signatures=[r"\bchase\b", r"jpmorgan"],
    patterns=DATED_LINE_PATTERNS,
))
registry.register(StatementFormat(
    key="bank_of_america", name="Bank of America",
    signatures=[r"bank of america"],
    patterns=DATED_LINE_PATTERNS,
))
registry.register(StatementFormat(
    key="wells_fargo", name="Wells Fargo",
    signatures=[r"wells fargo"],
    patterns=DATED_LINE_PATTERNS,
))
registry.register(StatementFormat(
    key="capital_one", name="Capital One",
    signatures=[r"capital one"],
    patterns=TWO_DATE_PATTERNS,
))
registry.register(StatementFormat(
    key="citi", name="Citibank",
    signatures=[r"citibank", r"\bciti\b"],
    patterns=TWO_DATE_PATTERNS,
))
registry.register(StatementFormat(
    key="us_bank", name="U.S. Bank",
    signatures=[r"\bus bank\b", r"u\.s\. bank"],
    patterns=DATED_LINE_PATTERNS,
))
registry.register(StatementFormat(
    key="pnc", name="PNC",
    signatures=[r"\bpnc\b"],
    patterns=DATED_LINE_PATTERNS,
))
