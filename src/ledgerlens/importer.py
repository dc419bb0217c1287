import hashlib
import sqlite3
from pathlib import Path
from typing import Callable

from ledgerlens.categorizer import Classifier
from ledgerlens.extractor import extract_document
from ledgerlens.logging_setup import get_logger
from ledgerlens.models import ClassifiedTransaction
from ledgerlens.textsource import extractor_for

_logger = get_logger("ledgerlens.importer")

NO_MATCH_REASON = "No matching rule"


def _compute_checksum(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _is_duplicate_row(conn: sqlite3.Connection, user_id: str, row: ClassifiedTransaction) -> bool:
    cursor = conn.execute(
        "SELECT 1 FROM transactions WHERE user_id = ? AND date = ? AND amount = ? AND description = ?",
        (user_id, row.date.isoformat(), str(row.amount), row.description),
    )
    return cursor.fetchone() is not None


def import_statement(
    conn: sqlite3.Connection,
    file_path: Path,
    user_id: str,
    classifier: Classifier,
    text_extractor: Callable[[bytes], str] | None = None,
    concurrency: int = 4,
) -> dict:
    """Extract, classify and store one statement. Returns counts of imported/skipped/flagged.

    Raises ExtractionFailed when the document's text cannot be read.
    """
    data = file_path.read_bytes()

    checksum = _compute_checksum(data)
    cursor = conn.execute(
        "SELECT 1 FROM imports WHERE checksum = ? AND user_id = ?", (checksum, user_id)
    )
    if cursor.fetchone() is not None:
        return {"imported": 0, "skipped": 0, "flagged": 0, "duplicate_file": True, "bank": None}

    result = extract_document(
        data,
        text_extractor or extractor_for(file_path),
        metadata={"filename": file_path.name},
    )
    rows = classifier.classify_all(result.transactions, user_id, concurrency=concurrency)

    cursor = conn.execute(
        "INSERT INTO imports (filename, user_id, bank, checksum) VALUES (?, ?, ?, ?)",
        (file_path.name, user_id, result.bank_info.identity, checksum),
    )
    import_id = cursor.lastrowid

    imported = 0
    skipped = 0
    flagged = 0
    for row in rows:
        if _is_duplicate_row(conn, user_id, row):
            skipped += 1
            continue
        is_flagged = not row.category
        conn.execute(
            "INSERT INTO transactions (user_id, date, description, payee, amount, type, category, "
            "source_line, is_flagged, flag_reason, import_id) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                user_id, row.date.isoformat(), row.description, row.payee, str(row.amount),
                row.type, row.category, row.source_line, int(is_flagged),
                NO_MATCH_REASON if is_flagged else None, import_id,
            ),
        )
        imported += 1
        flagged += int(is_flagged)

    dates = [r.date.isoformat() for r in rows]
    conn.execute(
        "UPDATE imports SET record_count = ?, date_range_start = ?, date_range_end = ? WHERE id = ?",
        (imported, min(dates) if dates else None, max(dates) if dates else None, import_id),
    )
    conn.commit()

    _logger.info("import:done file=%s bank=%s imported=%d skipped=%d flagged=%d",
                 file_path.name, result.bank_info.identity, imported, skipped, flagged)
    return {
        "imported": imported,
        "skipped": skipped,
        "flagged": flagged,
        "duplicate_file": False,
        "bank": result.bank_info.name,
    }
