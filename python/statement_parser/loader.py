"""
Statement Loader

Single entry point turning raw statement bytes into transactions, whatever the
file format.
"""

import logging
from datetime import date
from pathlib import Path

from .csv_parsers.generic import detect_and_parse
from .models import ParseResult, Transaction
from .pdf_extractor import PDFExtractor

logger = logging.getLogger(__name__)

SUPPORTED_FILE_TYPES = ("csv", "pdf")


def detect_file_type(file_name: str | None, content: bytes) -> str:
    """Detect file type from name and content.

    Args:
        file_name: Original file name
        content: File content

    Returns:
        'csv', 'pdf' or 'unknown'
    """
    ext = Path(file_name).suffix.lower() if file_name else ""

    if ext in {".csv", ".txt", ".tsv"}:
        return "csv"
    elif ext == ".pdf":
        return "pdf"

    # Try to detect from content
    if content[:4] == b"%PDF":
        return "pdf"
    elif b"\n" in content[:1000] and any(d in content[:1000] for d in (b",", b";", b"\t")):
        return "csv"

    return "unknown"


def parse_statement_result(
    content: bytes,
    file_type: str,
    source: str | None = None,
    institution: str | None = None,
    statement_year: int | None = None,
    today: date | None = None,
) -> ParseResult:
    """Parse statement bytes, keeping errors and warnings.

    Args:
        content: Raw file bytes
        file_type: 'csv' or 'pdf'
        source: Originating file name, also searched for the statement year
        institution: Tag stored on every transaction
        statement_year: Explicit year for year-less dates
        today: Reference date for year rollback

    Returns:
        ParseResult
    """
    if file_type == "pdf":
        extractor = PDFExtractor(
            statement_year=statement_year, today=today, institution=institution
        )
        return extractor.extract_from_bytes(content, source_name=source).to_parse_result()

    if file_type == "csv":
        for encoding in ("utf-8-sig", "latin-1"):
            try:
                text = content.decode(encoding)
            except UnicodeDecodeError:
                continue
            return detect_and_parse(
                text,
                source=source,
                statement_year=statement_year,
                today=today,
                institution=institution,
            )

    logger.warning(f"Unsupported statement type {file_type!r} for {source or 'upload'}")
    return ParseResult(
        file_type=file_type,
        source=source,
        errors=[f"Unsupported file type: {file_type}"],
    )


def parse_statement(
    content: bytes,
    file_type: str,
    source: str | None = None,
    institution: str | None = None,
    statement_year: int | None = None,
    today: date | None = None,
) -> list[Transaction]:
    """Parse statement bytes into an ordered transaction list.

    Never raises; an unreadable statement yields an empty list.
    """
    result = parse_statement_result(
        content,
        file_type,
        source=source,
        institution=institution,
        statement_year=statement_year,
        today=today,
    )
    for error in result.errors:
        logger.warning(f"{source or 'statement'}: {error}")
    return result.transactions
