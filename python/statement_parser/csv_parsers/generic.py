"""
Generic CSV Parser

Flexible parser that auto-detects column mappings for unknown bank exports,
from a header row when one exists and from the cell contents otherwise.
"""

import logging
import re
from datetime import date

from ..formats import parse_amount, parse_date
from ..models import ParseResult
from .base import BaseCSVParser, ColumnMapping

logger = logging.getLogger(__name__)


class GenericParser(BaseCSVParser):
    """Generic CSV parser with auto-detection capabilities."""

    # Patterns are in priority order: an earlier pattern outranks a later one
    DATE_PATTERNS = [
        r'^trans(?:action|\.)?\s*date$', r'transaction.*date', r'txn.*date',
        r'^date$', r'\bdate\b', r'post(?:ing|ed)?.*date', r'\bdt\b'
    ]
    DESCRIPTION_PATTERNS = [
        r'description', r'merchant', r'payee', r'narrat', r'particulars',
        r'details', r'\bname\b', r'memo', r'^transaction$'
    ]
    AMOUNT_PATTERNS = [
        r'^amount$', r'\bamount\b', r'\bcost\b', r'\bvalue\b', r'\bsum\b', r'\btotal\b'
    ]
    DEBIT_PATTERNS = [
        r'\bdebit', r'withdrawal', r'money\s*out', r'paid\s*out', r'\bdr\b', r'^charges?$'
    ]
    CREDIT_PATTERNS = [
        r'\bcredit', r'deposit', r'money\s*in', r'paid\s*in', r'\bcr\b', r'^payments?$'
    ]
    BALANCE_PATTERNS = [
        r'balance', r'\bbal\b', r'running', r'available', r'ledger'
    ]

    HEADER_SCAN_ROWS = 10
    SAMPLE_ROWS = 5
    DATE_COLUMN_THRESHOLD = 0.6

    def _locate_columns(
        self, rows: list[list[str]], result: ParseResult
    ) -> tuple[ColumnMapping, int] | None:
        """Find a header row, falling back to guessing from the data."""
        for index, row in enumerate(rows[: self.HEADER_SCAN_ROWS]):
            mapping = self._auto_detect_columns(row)
            if mapping is not None:
                logger.debug(f"Header found at row {index + 1}: {mapping.to_dict()}")
                return mapping, index + 1

        mapping = self._guess_columns(rows[: self.SAMPLE_ROWS])
        if mapping is None:
            return None

        result.warnings.append("No header row found; columns guessed from content")
        logger.info(f"Guessed column layout from content: {mapping.to_dict()}")
        return mapping, 0

    def _auto_detect_columns(self, headers: list[str]) -> ColumnMapping | None:
        """Auto-detect column mappings from headers.

        Args:
            headers: Cells of a candidate header row

        Returns:
            ColumnMapping, or None if the row is not a usable header
        """
        cleaned = [" ".join(h.lower().split()) for h in headers]

        # A row holding a parseable date is data, not a header
        if any(parse_date(cell, today=self.today) for cell in headers):
            return None

        claimed: set[int] = set()

        def claim(patterns: list[str], exclude: list[str] | None = None) -> int | None:
            for pattern in patterns:
                for index, header in enumerate(cleaned):
                    if index in claimed or not header:
                        continue
                    if exclude and any(re.search(p, header) for p in exclude):
                        continue
                    if re.search(pattern, header):
                        claimed.add(index)
                        return index
            return None

        date_col = claim(self.DATE_PATTERNS)
        debit_col = claim(self.DEBIT_PATTERNS, exclude=self.BALANCE_PATTERNS)
        credit_col = claim(self.CREDIT_PATTERNS, exclude=self.BALANCE_PATTERNS)
        amount_col = claim(
            self.AMOUNT_PATTERNS,
            exclude=self.BALANCE_PATTERNS + self.DEBIT_PATTERNS + self.CREDIT_PATTERNS,
        )
        description_col = claim(self.DESCRIPTION_PATTERNS)

        if date_col is None or description_col is None:
            return None

        if amount_col is None and (debit_col is None or credit_col is None):
            return None

        return ColumnMapping(
            date=date_col,
            description=description_col,
            amount=amount_col,
            debit=debit_col if amount_col is None else None,
            credit=credit_col if amount_col is None else None,
        )

    def _guess_columns(self, sample: list[list[str]]) -> ColumnMapping | None:
        """Guess the layout of a headerless export from its first rows."""
        if not sample:
            return None

        width = max(len(row) for row in sample)
        if width < 3:
            return None

        def cells(index: int) -> list[str]:
            return [row[index].strip() if index < len(row) else "" for row in sample]

        date_rates = []
        for index in range(width):
            parsed = [parse_date(cell, today=self.today) for cell in cells(index)]
            date_rates.append(sum(1 for d in parsed if d) / len(sample))

        best_rate = max(date_rates)
        if best_rate < self.DATE_COLUMN_THRESHOLD:
            return None
        date_col = date_rates.index(best_rate)

        amount_col = None
        best_score = (0, 0)
        for index in range(width):
            if index == date_col:
                continue
            values = cells(index)
            parsed = [parse_amount(cell) for cell in values]
            successes = sum(1 for a in parsed if a is not None)
            with_cents = sum(
                1 for cell, a in zip(values, parsed) if a is not None and re.search(r"[.,]\d{2}\b", cell)
            )
            score = (successes, with_cents)
            if successes / len(sample) >= self.DATE_COLUMN_THRESHOLD and score > best_score:
                amount_col, best_score = index, score

        if amount_col is None:
            return None

        description_col = None
        best_length = 0
        for index in range(width):
            if index in (date_col, amount_col):
                continue
            values = [cell for cell in cells(index) if cell]
            # Balance and reference number columns are not descriptions
            if all(parse_amount(cell) is not None for cell in values):
                continue
            length = sum(len(cell) for cell in values)
            if length > best_length:
                description_col, best_length = index, length

        if description_col is None:
            return None

        return ColumnMapping(date=date_col, description=description_col, amount=amount_col)


def detect_and_parse(
    content: str,
    source: str | None = None,
    statement_year: int | None = None,
    today: date | None = None,
    institution: str | None = None,
) -> ParseResult:
    """Convenience function to parse CSV content of unknown layout.

    Args:
        content: CSV content string
        source: Originating file name
        statement_year: Year for year-less dates
        today: Reference date for year rollback
        institution: Tag stored on every transaction

    Returns:
        ParseResult
    """
    delimiter = _sniff_delimiter(content)
    parser = GenericParser(
        delimiter=delimiter,
        statement_year=statement_year,
        today=today,
        institution=institution,
    )
    return parser.parse_content(content, source=source)


def _sniff_delimiter(content: str) -> str:
    """Pick between comma, semicolon and tab from the first lines."""
    head = content.splitlines()[:5]
    counts = {d: sum(line.count(d) for line in head) for d in (",", ";", "\t")}
    best = max(counts, key=lambda d: counts[d])
    return best if counts[best] else ","
