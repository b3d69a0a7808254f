"""
Statement Data Models

Value types shared by the CSV parser, the PDF extractor and the detection engine.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal


def to_decimal(value) -> Decimal:
    """Coerce an int/float/str amount to Decimal without float artifacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True)
class Transaction:
    """A single statement line.

    ``amount`` keeps the sign printed on the statement: negative means money
    leaving the account.
    """

    date: date
    description: str
    amount: Decimal
    source: str | None = None
    institution: str | None = None

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, "amount", to_decimal(self.amount))

    @property
    def is_debit(self) -> bool:
        return self.amount < 0

    def with_amount(self, amount: Decimal) -> "Transaction":
        """Return a copy carrying a different amount."""
        return Transaction(
            date=self.date,
            description=self.description,
            amount=amount,
            source=self.source,
            institution=self.institution,
        )

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "description": self.description,
            "amount": float(self.amount),
            "source": self.source,
            "institution": self.institution,
        }


@dataclass
class ParseResult:
    """Result of parsing one statement file."""

    file_type: str
    source: str | None = None
    transactions: list[Transaction] = field(default_factory=list)
    column_mapping: dict = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)

    @property
    def total_debits(self) -> Decimal:
        return abs(sum((t.amount for t in self.transactions if t.amount < 0), Decimal("0")))

    @property
    def total_credits(self) -> Decimal:
        return sum((t.amount for t in self.transactions if t.amount > 0), Decimal("0"))

    @property
    def summary(self) -> dict:
        return {
            "total_transactions": self.transaction_count,
            "total_debits": float(self.total_debits),
            "total_credits": float(self.total_credits),
            "net_amount": float(self.total_credits - self.total_debits),
        }
