"""
PDF Extractor Module

Extracts transaction lines from text-based PDF statements using pdfplumber.

Statements rarely expose a real table, so every page is rebuilt into text lines
from word coordinates and each line is searched for a date, an amount and the
merchant text in between.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from io import BytesIO
from pathlib import Path

import pdfplumber

from .formats import extract_year_from_filename, parse_amount, parse_date
from .models import ParseResult, Transaction

logger = logging.getLogger(__name__)

_MONTH_WORD = (
    r"(?:JAN(?:UARY)?|FEB(?:RUARY)?|MAR(?:CH)?|APR(?:IL)?|MAY|JUNE?|JULY?|"
    r"AUG(?:UST)?|SEPT?(?:EMBER)?|OCT(?:OBER)?|NOV(?:EMBER)?|DEC(?:EMBER)?)\b\.?"
)

DATE_SHAPED = re.compile(
    r"(?<![\d/.])(?:"
    r"\d{1,2}/\d{1,2}(?:/\d{4}|/\d{2})?"
    r"|\d{4}-\d{1,2}-\d{1,2}"
    r"|\d{1,2}-\d{1,2}-\d{4}"
    r"|\b" + _MONTH_WORD + r"\s+\d{1,2}(?:,?\s+\d{4})?"
    r"|\d{1,2}\s+" + _MONTH_WORD + r",?\s+\d{4}"
    r")(?![\d/])",
    re.IGNORECASE,
)

# An amount needs cents, parentheses or a currency symbol to count
AMOUNT_SHAPED = re.compile(
    r"(?<![\w/.,])(?:"
    r"\(\s*[$€£]?\s*\d[\d,]*(?:\.\d{1,2})?\s*\)"
    r"|-?\s?[$€£]\s?-?\d[\d,]*(?:\.\d{2})?"
    r"|-?\d{1,3}(?:,\d{3})+\.\d{2}"
    r"|-?\d+\.\d{2}"
    r")(?:\s?(?:CR|DR)\b|-(?![\w]))?(?![\d])",
    re.IGNORECASE,
)

_EDGE_SEPARATORS = re.compile(r"^[\s\-|:*,]+|[\s\-|:*,]+$")

MIN_DESCRIPTION_LENGTH = 3


@dataclass(frozen=True)
class TextFragment:
    """A positioned run of text on a PDF page."""

    text: str
    x0: float
    top: float


@dataclass
class PDFExtractionResult:
    """Result of PDF extraction."""

    source: str | None = None
    page_count: int = 0
    line_count: int = 0
    transactions: list[Transaction] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    def to_parse_result(self) -> ParseResult:
        """Convert to ParseResult for compatibility with the CSV path."""
        return ParseResult(
            file_type="pdf",
            source=self.source,
            transactions=self.transactions,
            errors=self.errors,
            warnings=self.notes,
        )


def group_lines(fragments: list[TextFragment], y_tolerance: float = 1.0) -> list[str]:
    """Rebuild text lines from positioned fragments.

    Fragments whose vertical positions round to the same bucket form one line.
    Lines run top to bottom and fragments within a line left to right.

    Args:
        fragments: Text fragments of a single page
        y_tolerance: Bucket height in PDF points

    Returns:
        Line strings in reading order
    """
    if y_tolerance <= 0:
        raise ValueError("y_tolerance must be positive")

    buckets: dict[int, list[TextFragment]] = {}
    for fragment in fragments:
        if not fragment.text.strip():
            continue
        buckets.setdefault(round(fragment.top / y_tolerance), []).append(fragment)

    lines = []
    for key in sorted(buckets):
        ordered = sorted(buckets[key], key=lambda f: f.x0)
        lines.append(" ".join(f.text.strip() for f in ordered))
    return lines


def extract_line(
    line: str,
    statement_year: int | None = None,
    today: date | None = None,
) -> tuple[date, str, Decimal] | None:
    """Pull (date, description, amount) out of one statement line.

    Returns:
        The parsed triple, or None if the line is not a transaction
    """
    date_match = DATE_SHAPED.search(line)
    if not date_match:
        return None

    txn_date = parse_date(date_match.group(0), statement_year, today)
    if txn_date is None:
        return None

    remainder = line[: date_match.start()] + " " + line[date_match.end():]

    amount_match = AMOUNT_SHAPED.search(remainder)
    if not amount_match:
        return None

    amount = parse_amount(amount_match.group(0))
    if amount is None or amount == 0:
        return None

    description = remainder[: amount_match.start()] + " " + remainder[amount_match.end():]
    # Transaction and posting dates often both appear
    description = DATE_SHAPED.sub(" ", description)
    description = " ".join(description.split())
    description = _EDGE_SEPARATORS.sub("", description)

    if len(description) < MIN_DESCRIPTION_LENGTH:
        return None

    return txn_date, description, amount


class PDFExtractor:
    """Extracts transactions from text-based PDF statements."""

    def __init__(
        self,
        y_tolerance: float = 1.0,
        statement_year: int | None = None,
        today: date | None = None,
        institution: str | None = None,
    ):
        """Initialize the PDF extractor.

        Args:
            y_tolerance: Line grouping bucket height; some renderers need 2-3 points
            statement_year: Year for year-less dates; taken from the file name when omitted
            today: Reference date for year rollback
            institution: Tag stored on every transaction
        """
        self.y_tolerance = y_tolerance
        self.statement_year = statement_year
        self.today = today
        self.institution = institution

    def extract_from_file(self, file_path: Path | str) -> PDFExtractionResult:
        """Extract transactions from a PDF file.

        Args:
            file_path: Path to the PDF file

        Returns:
            PDFExtractionResult
        """
        file_path = Path(file_path)

        if not file_path.exists():
            return PDFExtractionResult(source=file_path.name, errors=[f"File not found: {file_path}"])

        return self.extract_from_bytes(file_path.read_bytes(), source_name=file_path.name)

    def extract_from_bytes(
        self,
        pdf_data: bytes,
        source_name: str | None = None,
    ) -> PDFExtractionResult:
        """Extract transactions from PDF bytes.

        Args:
            pdf_data: PDF file contents as bytes
            source_name: Name of the source file

        Returns:
            PDFExtractionResult; any failure leaves it without transactions
        """
        result = PDFExtractionResult(source=source_name)

        try:
            pages = self._read_pages(pdf_data)
        except Exception as e:
            logger.warning(f"PDF extraction failed for {source_name or 'upload'}: {e}")
            result.errors.append(f"PDF extraction failed: {e}")
            return result

        result.page_count = len(pages)
        statement_year = self.statement_year or extract_year_from_filename(source_name)

        for page_fragments in pages:
            for line in group_lines(page_fragments, self.y_tolerance):
                result.line_count += 1
                extracted = extract_line(line, statement_year, self.today)
                if extracted is None:
                    continue

                txn_date, description, amount = extracted
                result.transactions.append(
                    Transaction(
                        date=txn_date,
                        description=description,
                        amount=amount,
                        source=source_name,
                        institution=self.institution,
                    )
                )

        if not result.transactions:
            result.notes.append("No transaction lines found; the PDF may be scanned or image-only")

        logger.info(
            f"Extracted {len(result.transactions)} transactions from {result.line_count} lines "
            f"on {result.page_count} pages of {source_name or 'PDF'}"
        )
        return result

    def _read_pages(self, pdf_data: bytes) -> list[list[TextFragment]]:
        pages = []
        with pdfplumber.open(BytesIO(pdf_data)) as pdf:
            for page in pdf.pages:
                words = page.extract_words(keep_blank_chars=False, use_text_flow=False)
                pages.append([
                    TextFragment(text=w["text"], x0=float(w["x0"]), top=float(w["top"]))
                    for w in words
                ])
        return pages
