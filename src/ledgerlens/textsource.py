"""Upstream text extraction: turn an uploaded document's bytes into statement text."""

import io
from pathlib import Path
from typing import Callable


def read_text(data: bytes) -> str:
    """Decode a plain-text statement (UTF-8, BOM tolerated)."""
    return data.decode("utf-8-sig")


def read_pdf(data: bytes) -> str:
    """Join the text of every page of a text-based PDF. Scanned images yield nothing."""
    import pdfplumber

    with pdfplumber.open(io.BytesIO(data)) as pdf:
        pages = [page.extract_text() or "" for page in pdf.pages]
    return "\n".join(pages)


EXTRACTORS: dict[str, Callable[[bytes], str]] = {
    ".txt": read_text,
    ".text": read_text,
    ".pdf": read_pdf,
}


def extractor_for(file_path: Path) -> Callable[[bytes], str]:
    """Pick a text extractor by file suffix; unknown suffixes are read as text."""
    return EXTRACTORS.get(file_path.suffix.lower(), read_text)
