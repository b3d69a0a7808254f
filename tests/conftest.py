"""
Pytest configuration and fixtures for subscription scanner tests.
"""

import sys
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

import pytest

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

sys.path.insert(0, str(PROJECT_ROOT / "python"))

from statement_parser.models import Transaction  # noqa: E402


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def config_dir() -> Path:
    """Return the config directory path."""
    return PROJECT_ROOT / "config"


@pytest.fixture
def today() -> date:
    """Fixed reference date so year rollback is deterministic."""
    return date(2024, 6, 15)


def make_series(
    description: str,
    amount: str,
    start: date,
    count: int,
    every_days: int = 30,
) -> list[Transaction]:
    """Evenly spaced charges of one merchant."""
    return [
        Transaction(
            date=start + timedelta(days=every_days * i),
            description=description,
            amount=Decimal(amount),
        )
        for i in range(count)
    ]


@pytest.fixture
def series():
    """Factory for evenly spaced charges."""
    return make_series


@pytest.fixture
def netflix_monthly() -> list[Transaction]:
    """Three Netflix charges about a month apart."""
    return [
        Transaction(date(2024, 1, 15), "NETFLIX.COM 866-579-7172 CA", Decimal("15.99")),
        Transaction(date(2024, 2, 14), "NETFLIX.COM *8329", Decimal("15.99")),
        Transaction(date(2024, 3, 15), "NETFLIX.COM", Decimal("15.99")),
    ]


@pytest.fixture
def visible_two_lines() -> list[Transaction]:
    """Two Visible phone lines billed on alternating statements."""
    start = date(2024, 1, 3)
    amounts = ["35.00", "25.00"] * 3
    return [
        Transaction(start + timedelta(days=30 * i), "VISIBLE WIRELESS", Decimal(amount))
        for i, amount in enumerate(amounts)
    ]


@pytest.fixture
def sample_csv_content() -> str:
    """Return a Chase-style credit card export."""
    return """Transaction Date,Post Date,Description,Category,Type,Amount,Memo
01/15/2024,01/16/2024,NETFLIX.COM,Entertainment,Sale,-15.99,
02/14/2024,02/15/2024,NETFLIX.COM,Entertainment,Sale,-15.99,
03/15/2024,03/16/2024,NETFLIX.COM,Entertainment,Sale,-15.99,
01/20/2024,01/21/2024,SHELL OIL 57444,Gas,Sale,-42.10,
01/25/2024,01/25/2024,AUTOMATIC PAYMENT - THANK,,Payment,500.00,
"""
