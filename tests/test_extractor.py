from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from ledgerlens.errors import ExtractionFailed
from ledgerlens.extractor import (
    extract_document, extract_statement, iter_candidates, parse_period, process_document,
)
from ledgerlens.models import BankInfo, StatementPeriod
from ledgerlens.textsource import read_text

FIXTURES = Path(__file__).parent / "fixtures"


def test_unknown_bank_single_line():
    result = extract_statement("05/01 STARBUCKS COFFEE #2451 -6.50")
    assert result.success is True
    assert result.bank_info.identity == "unknown"
    assert len(result.transactions) == 1

    txn = result.transactions[0]
    assert txn.date == date(date.today().year, 5, 1)
    assert txn.description == "STARBUCKS COFFEE 2451"
    assert txn.payee == "STARBUCKS COFFEE 2451"
    assert txn.amount == Decimal("-6.50")
    assert txn.type == "expense"
    assert txn.source_line == "05/01 STARBUCKS COFFEE #2451 -6.50"


def test_chase_statement_with_running_balance():
    text = (FIXTURES / "chase_checking.txt").read_text()
    result = extract_statement(text)

    assert result.bank_info.identity == "chase"
    assert result.bank_info.name == "Chase"
    assert result.statement_period == StatementPeriod(date(2025, 1, 1), date(2025, 1, 31))
    assert len(result.transactions) == 4

    first = result.transactions[0]
    assert first.date == date(2025, 1, 3)
    assert first.description == "STARBUCKS STORE 2451"
    assert first.amount == Decimal("-5.75")

    deposit = result.transactions[2]
    assert deposit.amount == Decimal("2500.00")
    assert deposit.type == "income"
    assert deposit.payee == "DIRECT DEPOSIT ACME"


def test_malformed_lines_are_skipped():
    text = "\n".join([
        "ACME CREDIT UNION",
        "01/02/2025 Coffee Corner -4.50",
        "01/03/2025 ADOBE CREATIVE CLOUD -54.99",
        "01/04/2025 Missing amount here",
        "Some amount without a date 19.99",
        "01/06/2025 Bad cents 12.3",
        "01/07/2025 Refund   12.00 credit",
    ])
    result = extract_statement(text)
    assert [t.description for t in result.transactions] == [
        "Coffee Corner", "ADOBE CREATIVE CLOUD", "Refund credit",
    ]
    assert result.metadata["total_transactions"] == 3


def test_parenthesized_amount_is_negative():
    text = "Bank of America\n02/14/2024 ONLINE TRANSFER (250.00) 1,000.00\n"
    result = extract_statement(text)
    assert result.bank_info.identity == "bank_of_america"
    assert len(result.transactions) == 1
    assert result.transactions[0].amount == Decimal("-250.00")
    assert result.transactions[0].date == date(2024, 2, 14)


def test_card_statement_with_posting_date():
    text = "\n".join([
        "Capital One",
        "Visa Signature statement 2024",
        "Trans Date  Post Date  Description  Amount",
        "12/28  12/29  UBER TRIP HELP.UBER.COM  23.10",
        "12/30  12/31  PAYMENT THANK YOU  -500.00",
    ])
    result = extract_statement(text)
    assert result.bank_info.identity == "capital_one"
    assert [t.description for t in result.transactions] == [
        "UBER TRIP HELP.UBER.COM", "PAYMENT THANK YOU",
    ]
    assert result.transactions[0].date == date(2024, 12, 28)
    assert result.transactions[1].amount == Decimal("-500.00")


def test_known_bank_with_unfamiliar_layout_uses_generic_lines():
    text = "Wells Fargo\nActivity: posted 03/04/2024 GROCERY OUTLET -23.45\n"
    result = extract_statement(text)
    assert result.bank_info.identity == "wells_fargo"
    assert len(result.transactions) == 1
    assert result.transactions[0].amount == Decimal("-23.45")
    assert "GROCERY OUTLET" in result.transactions[0].description


def test_empty_text():
    result = extract_statement("")
    assert result.success is True
    assert result.transactions == []
    assert result.bank_info.identity == "unknown"
    assert result.statement_period is None


def test_metadata_passthrough():
    result = extract_statement("05/01 STARBUCKS COFFEE -6.50", metadata={"filename": "may.txt"})
    assert result.metadata["filename"] == "may.txt"
    assert result.metadata["total_transactions"] == 1
    assert result.metadata["text_length"] == len("05/01 STARBUCKS COFFEE -6.50")
    assert "processing_date" in result.metadata


def test_parse_period():
    assert parse_period("Statement Period: 03/01/2024 – 03/31/2024") == StatementPeriod(
        date(2024, 3, 1), date(2024, 3, 31)
    )
    assert parse_period("no period here") is None


def test_iter_candidates_restarts():
    text = "01/02/2025 Coffee Corner -4.50\n01/03/2025 Lunch spot -12.00"
    info = BankInfo(identity="unknown", name="Unknown", confidence=0.1)
    assert len(list(iter_candidates(text, info, 2025))) == 2
    assert len(list(iter_candidates(text, info, 2025))) == 2


def test_extract_document_reads_bytes():
    data = (FIXTURES / "credit_union.txt").read_bytes()
    result = extract_document(data, read_text)
    assert len(result.transactions) == 3


def test_extract_document_wraps_extractor_error():
    def broken(data):
        raise ValueError("not a PDF")

    with pytest.raises(ExtractionFailed) as excinfo:
        extract_document(b"\x00", broken, metadata={"filename": "scan.pdf"})
    assert excinfo.value.message == "not a PDF"
    assert excinfo.value.metadata == {"filename": "scan.pdf"}
    assert isinstance(excinfo.value.__cause__, ValueError)


def test_process_document_reports_failure():
    def broken(data):
        raise RuntimeError("corrupt stream")

    result = process_document(b"", broken, metadata={"filename": "x.pdf"})
    assert result.success is False
    assert result.error == "corrupt stream"
    assert result.to_dict() == {
        "success": False,
        "error": "corrupt stream",
        "transactions": [],
        "metadata": {"filename": "x.pdf"},
    }


def test_success_to_dict():
    result = extract_statement("05/01/2024 STARBUCKS COFFEE -6.50")
    payload = result.to_dict()
    assert payload["success"] is True
    assert payload["bank_info"]["identity"] == "unknown"
    assert payload["statement_period"] is None
    assert payload["transactions"][0]["amount"] == "-6.50"
    assert payload["transactions"][0]["date"] == "2024-05-01"
