"""CSV export parsing and column mapping.

Tokenizing follows RFC 4180 through the stdlib :mod:`csv` module (quoted
fields with embedded delimiters and newlines, doubled quotes, ``\\n`` and
``\\r\\n`` row endings). The mapper applies a user supplied
:class:`~statement_import.models.CsvMapping` to the parsed rows and reports
bad rows as line errors instead of failing the batch.
"""

from __future__ import annotations

import csv
import logging
from io import StringIO
from typing import Dict, List, Optional, Tuple

from .constants import VALID_STATUSES, VALID_TYPES
from .models import CsvMapping, ImportResult, LineError, ParsedTransaction
from .utils import normalize_date, sanitize_amount

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("date", "description", "amount")


class CsvMappingError(ValueError):
    """The column mapping does not fit the file; nothing was imported."""


class CsvFormatError(CsvMappingError):
    """The file is not well-formed delimited text; nothing was imported."""


def iter_delimited_rows(content: str, delimiter: str = ",") -> List[Tuple[int, List[str]]]:
    """Return ``(first_line_number, fields)`` for every non-empty row.

    Line numbers are 1-based physical lines, so a row whose quoted field spans
    several lines reports the line it starts on. Raises :class:`CsvFormatError`
    when the text cannot be tokenized (for example an unclosed quote that runs
    past the field size limit).
    """
    rows: List[Tuple[int, List[str]]] = []
    with StringIO(content, newline="") as f:
        reader = csv.reader(f, delimiter=delimiter)
        consumed = 0
        try:
            for fields in reader:
                start = consumed + 1
                consumed = reader.line_num
                if not fields:
                    continue
                rows.append((start, fields))
        except csv.Error as exc:
            raise CsvFormatError(f"Malformed CSV near line {consumed + 1}: {exc}") from exc
    return rows


def parse_delimited(content: str, delimiter: str = ",") -> List[List[str]]:
    """Split delimited text into rows of fields, with no notion of columns."""
    return [fields for _, fields in iter_delimited_rows(content, delimiter)]


def _header_index(header: List[str]) -> Dict[str, int]:
    index: Dict[str, int] = {}
    for i, label in enumerate(header):
        index.setdefault(label.strip().lower(), i)
    return index


def _cell(row: List[str], column: Optional[int]) -> str:
    if column is None or column >= len(row):
        return ""
    return row[column].strip()


def _optional_column(index: Dict[str, int], label: Optional[str]) -> Optional[int]:
    if not label or not label.strip():
        return None
    return index.get(label.strip().lower())


def parse_csv_transactions(content: str, mapping: CsvMapping | dict) -> ImportResult:
    """Map CSV text to parsed transactions using ``mapping``.

    Raises :class:`CsvMappingError` when a required field is unmapped or its
    column is missing from the header, and its subclass
    :class:`CsvFormatError` when the text itself cannot be tokenized. Every
    other problem is reported per row in ``errors`` and the row is skipped.
    """
    if not isinstance(mapping, CsvMapping):
        mapping = CsvMapping.model_validate(mapping)
    rows = iter_delimited_rows(content.lstrip("\ufeff"))
    if not rows:
        return ImportResult()

    _, header = rows[0]
    index = _header_index(header)
    required: Dict[str, int] = {}
    for field in REQUIRED_FIELDS:
        selected = getattr(mapping, field)
        if not selected or not selected.strip():
            raise CsvMappingError(f"Missing mapping for {field}")
        column = index.get(selected.strip().lower())
        if column is None:
            raise CsvMappingError(f"Column {selected} not found in CSV header")
        required[field] = column

    category_col = _optional_column(index, mapping.category)
    account_col = _optional_column(index, mapping.account)
    status_col = _optional_column(index, mapping.status)
    type_col = _optional_column(index, mapping.type)
    notes_col = _optional_column(index, mapping.notes)

    transactions: List[ParsedTransaction] = []
    errors: List[LineError] = []
    for line_number, row in rows[1:]:
        if all(not cell.strip() for cell in row):
            continue
        date_value = _cell(row, required["date"])
        description = _cell(row, required["description"])
        amount_value = _cell(row, required["amount"])
        if not date_value or not description or not amount_value:
            errors.append(LineError(line=line_number, message="Missing required values"))
            continue

        date = normalize_date(date_value)
        if date is None:
            errors.append(LineError(line=line_number, message=f"Invalid date: {date_value}"))
            continue
        try:
            amount = sanitize_amount(amount_value)
        except ValueError as exc:
            errors.append(LineError(line=line_number, message=str(exc)))
            continue

        fields = {
            "source_id": f"csv-{line_number}",
            "source_line": line_number,
            "date": date,
            "description": description,
            "amount": abs(amount),
            "type": "income" if amount >= 0 else "expense",
        }
        category = _cell(row, category_col)
        if category:
            fields["category_name"] = category
        account = _cell(row, account_col)
        if account:
            fields["account"] = account
        status = _cell(row, status_col).lower()
        if status in VALID_STATUSES:
            fields["status"] = status
        kind = _cell(row, type_col).lower()
        if kind in VALID_TYPES:
            fields["type"] = kind
        notes = _cell(row, notes_col)
        if notes:
            fields["notes"] = notes

        transactions.append(ParsedTransaction(**fields))

    logger.debug("csv import: %d transactions, %d errors", len(transactions), len(errors))
    return ImportResult(transactions=transactions, errors=errors)


__all__ = [
    "CsvFormatError",
    "CsvMappingError",
    "iter_delimited_rows",
    "parse_delimited",
    "parse_csv_transactions",
]
