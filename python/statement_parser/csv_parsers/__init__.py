"""
CSV parsers for bank and credit card statement exports.
"""

from .base import BaseCSVParser, ColumnMapping
from .generic import GenericParser, detect_and_parse

__all__ = [
    "BaseCSVParser",
    "ColumnMapping",
    "GenericParser",
    "detect_and_parse",
]
