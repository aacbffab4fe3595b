"""Ingestion of CSV exports and bank statements into normalized transactions."""

from .categorize import RuleEvaluator, find_matching_category, load_rules_file, matches_rule
from .csv_import import CsvFormatError, CsvMappingError, parse_csv_transactions, parse_delimited
from .importer import ImportSummary, TransactionImporter
from .models import (
    AutomationRule,
    Category,
    CsvMapping,
    ImportResult,
    LineError,
    ParsedTransaction,
    RuleMatch,
    RuleType,
)
from .pdf_parser import DocumentReadError, TextFragment, extract_document_lines
from .statement_parser import (
    detect_layout,
    parse_bank_statement,
    parse_statement_fragments,
    parse_statement_lines,
    parse_statement_text,
)
from .utils import normalize_date, sanitize_amount

__all__ = [
    "AutomationRule",
    "Category",
    "CsvMapping",
    "CsvFormatError",
    "CsvMappingError",
    "DocumentReadError",
    "ImportResult",
    "ImportSummary",
    "LineError",
    "ParsedTransaction",
    "RuleEvaluator",
    "RuleMatch",
    "RuleType",
    "TextFragment",
    "TransactionImporter",
    "detect_layout",
    "extract_document_lines",
    "find_matching_category",
    "load_rules_file",
    "matches_rule",
    "normalize_date",
    "parse_bank_statement",
    "parse_csv_transactions",
    "parse_delimited",
    "parse_statement_fragments",
    "parse_statement_lines",
    "parse_statement_text",
    "sanitize_amount",
]
