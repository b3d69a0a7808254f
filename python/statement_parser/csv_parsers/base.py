"""
Base CSV Parser Module

Abstract base class for statement CSV parsers.
"""

import csv
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from io import StringIO
from pathlib import Path

from ..formats import extract_year_from_filename, parse_amount, parse_date
from ..models import ParseResult, Transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColumnMapping:
    """Column indexes for the fields of a statement row."""

    date: int
    description: int
    amount: int | None = None
    debit: int | None = None
    credit: int | None = None

    @property
    def is_valid(self) -> bool:
        return self.amount is not None or (
            self.debit is not None and self.credit is not None
        )

    @property
    def width(self) -> int:
        """Minimum number of cells a row needs."""
        indexes = [self.date, self.description, self.amount, self.debit, self.credit]
        return max(i for i in indexes if i is not None) + 1

    def to_dict(self) -> dict:
        return {
            key: value
            for key, value in {
                "date": self.date,
                "description": self.description,
                "amount": self.amount,
                "debit": self.debit,
                "credit": self.credit,
            }.items()
            if value is not None
        }


class BaseCSVParser(ABC):
    """Abstract base class for statement CSV parsers."""

    INSTITUTION: str | None = None

    ENCODINGS = ("utf-8-sig", "latin-1")

    def __init__(
        self,
        delimiter: str = ",",
        statement_year: int | None = None,
        today: date | None = None,
        institution: str | None = None,
    ):
        """Initialize the parser.

        Args:
            delimiter: CSV delimiter
            statement_year: Year for year-less dates; taken from the file name when omitted
            today: Reference date for year rollback
            institution: Tag stored on every parsed transaction
        """
        self.delimiter = delimiter
        self.statement_year = statement_year
        self.today = today
        self.institution = institution or self.INSTITUTION

    def parse_file(self, file_path: Path | str) -> ParseResult:
        """Parse a CSV file.

        Args:
            file_path: Path to the CSV file

        Returns:
            ParseResult object
        """
        file_path = Path(file_path)

        try:
            content = file_path.read_bytes()
        except OSError as e:
            logger.warning(f"Cannot read {file_path}: {e}")
            return ParseResult(file_type="csv", source=file_path.name, errors=[str(e)])

        return self.parse_bytes(content, source=file_path.name)

    def parse_bytes(self, content: bytes, source: str | None = None) -> ParseResult:
        """Decode and parse raw CSV bytes."""
        for encoding in self.ENCODINGS:
            try:
                text = content.decode(encoding)
            except UnicodeDecodeError:
                continue
            return self.parse_content(text, source=source)

        return ParseResult(file_type="csv", source=source, errors=["Cannot decode CSV content"])

    def parse_content(self, content: str, source: str | None = None) -> ParseResult:
        """Parse CSV content string.

        Args:
            content: CSV content as string
            source: Originating file name

        Returns:
            ParseResult object
        """
        result = ParseResult(file_type="csv", source=source)
        statement_year = self.statement_year or extract_year_from_filename(source)

        try:
            content = self._preprocess_content(content)
            rows = [
                row
                for row in csv.reader(StringIO(content), delimiter=self.delimiter)
                if any(cell.strip() for cell in row)
            ]

            if not rows:
                result.errors.append("No rows found in CSV")
                return result

            located = self._locate_columns(rows, result)
            if located is None:
                result.errors.append("Could not detect date, description and amount columns")
                return result

            mapping, first_data_row = located
            result.column_mapping = mapping.to_dict()

            for row_num, row in enumerate(rows[first_data_row:], start=first_data_row + 1):
                try:
                    transaction = self._parse_row(row, mapping, statement_year, source)
                    if transaction:
                        result.transactions.append(transaction)
                except ValueError as e:
                    result.warnings.append(f"Row {row_num}: {e}")

            self._post_process(result)

        except Exception as e:
            logger.warning(f"CSV parse error in {source or 'content'}: {e}")
            result.errors.append(f"Parse error: {e}")

        return result

    def _preprocess_content(self, content: str) -> str:
        """Preprocess CSV content before parsing.

        Args:
            content: Raw CSV content

        Returns:
            Preprocessed content
        """
        # Remove BOM if present
        if content.startswith('\ufeff'):
            content = content[1:]

        # Normalize line endings
        content = content.replace('\r\n', '\n').replace('\r', '\n')

        return content

    @abstractmethod
    def _locate_columns(
        self, rows: list[list[str]], result: ParseResult
    ) -> tuple[ColumnMapping, int] | None:
        """Find the column mapping and the index of the first data row.

        Args:
            rows: Non-empty CSV rows
            result: ParseResult for warnings

        Returns:
            (mapping, first data row index) or None if no layout was found
        """
        pass

    def _parse_row(
        self,
        row: list[str],
        mapping: ColumnMapping,
        statement_year: int | None,
        source: str | None,
    ) -> Transaction | None:
        """Parse a single CSV row into a transaction.

        Returns:
            Transaction or None if the row should be skipped
        """
        if len(row) < mapping.width:
            # Trailing empty debit/credit cells are often cut off
            if len(row) <= max(mapping.date, mapping.description):
                raise ValueError(f"expected {mapping.width} cells, got {len(row)}")
            row = row + [""] * (mapping.width - len(row))

        txn_date = parse_date(row[mapping.date], statement_year, self.today)
        if txn_date is None:
            return None

        description = " ".join(row[mapping.description].split())
        if not description:
            return None

        amount = self._row_amount(row, mapping)
        if amount is None or amount == 0:
            return None

        return Transaction(
            date=txn_date,
            description=description,
            amount=amount,
            source=source,
            institution=self.institution,
        )

    def _row_amount(self, row: list[str], mapping: ColumnMapping) -> Decimal | None:
        """Read the signed amount; debit cells are money leaving the account."""
        if mapping.amount is not None and row[mapping.amount].strip():
            return parse_amount(row[mapping.amount])

        if mapping.debit is not None and row[mapping.debit].strip():
            debit = parse_amount(row[mapping.debit])
            if debit:
                return -abs(debit)

        if mapping.credit is not None and row[mapping.credit].strip():
            credit = parse_amount(row[mapping.credit])
            if credit:
                return abs(credit)

        return None

    def _post_process(self, result: ParseResult) -> None:
        """Post-process parsed transactions.

        Args:
            result: ParseResult to process
        """
        # Sort by date, stable for same-day rows
        result.transactions.sort(key=lambda t: t.date)

        logger.info(
            f"Parsed {result.transaction_count} transactions from "
            f"{result.source or 'CSV content'} ({len(result.warnings)} warnings)"
        )
