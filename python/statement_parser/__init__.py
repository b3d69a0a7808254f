"""
Statement Parser Module

Turns CSV exports and text-based PDF statements into dated, signed
transactions: multi-format date and amount parsing, column discovery for CSV
and line reconstruction for PDF.
"""

from .models import Transaction, ParseResult
from .formats import parse_date, parse_amount, extract_year_from_filename
from .csv_parsers import BaseCSVParser, ColumnMapping, GenericParser, detect_and_parse
from .pdf_extractor import PDFExtractor, PDFExtractionResult, TextFragment, group_lines, extract_line
from .loader import detect_file_type, parse_statement, parse_statement_result

__all__ = [
    # Models
    "Transaction",
    "ParseResult",
    # Field formats
    "parse_date",
    "parse_amount",
    "extract_year_from_filename",
    # CSV Parsing
    "BaseCSVParser",
    "ColumnMapping",
    "GenericParser",
    "detect_and_parse",
    # PDF Extraction
    "PDFExtractor",
    "PDFExtractionResult",
    "TextFragment",
    "group_lines",
    "extract_line",
    # Entry points
    "detect_file_type",
    "parse_statement",
    "parse_statement_result",
]
