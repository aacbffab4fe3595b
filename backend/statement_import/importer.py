"""Import finalization: defaults, categorization and de-duplication.

The parsers only produce candidates. :class:`TransactionImporter` turns a
parser's :class:`~statement_import.models.ImportResult` into the batch a
caller would persist: every transaction gets an account, a status and a
category, rule matches are applied, and candidates already known to the
caller (or repeated within the batch) are dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Set

from .categorize import RuleEvaluator
from .constants import DEFAULT_CSV_ACCOUNT, DEFAULT_STATEMENT_ACCOUNT, DEFAULT_STATUS, UNCATEGORIZED
from .csv_import import parse_csv_transactions
from .models import AutomationRule, Category, CsvMapping, ImportResult, LineError, ParsedTransaction
from .statement_parser import parse_bank_statement, parse_statement_text

logger = logging.getLogger(__name__)


def dedup_key(txn: ParsedTransaction) -> str:
    """Natural key of a transaction: date, description, amount and account."""
    return "|".join(
        [
            txn.date,
            txn.description.strip().lower(),
            f"{txn.amount:.2f}",
            (txn.account or "").strip().lower(),
        ]
    )


@dataclass
class ImportSummary:
    transactions: List[ParsedTransaction] = field(default_factory=list)
    errors: List[LineError] = field(default_factory=list)
    imported: int = 0
    skipped: int = 0

    def preview(self, limit: int) -> List[ParsedTransaction]:
        return self.transactions[: max(0, limit)]


class TransactionImporter:
    """Finalize parsed batches against a rule set and known transactions.

    ``existing`` are transactions the caller already stored; candidates
    whose natural key matches one of them are skipped. ``source_id`` is a
    line position within one file and is not part of the key.
    """

    def __init__(
        self,
        rules: Iterable[AutomationRule] = (),
        categories: Iterable[Category] = (),
        existing: Iterable[ParsedTransaction] = (),
        default_status: str = DEFAULT_STATUS,
    ):
        self.evaluator = RuleEvaluator(rules, categories)
        self.default_status = default_status
        self._known_keys: Set[str] = set()
        for txn in existing:
            self._remember(txn)

    def _remember(self, txn: ParsedTransaction) -> None:
        self._known_keys.add(dedup_key(txn))

    def _is_duplicate(self, txn: ParsedTransaction) -> bool:
        return dedup_key(txn) in self._known_keys

    def _with_defaults(self, txn: ParsedTransaction, account: str) -> ParsedTransaction:
        update = {}
        if not (txn.account or "").strip():
            update["account"] = account
        if txn.status is None:
            update["status"] = self.default_status
        matched = self.evaluator.match(txn.description)
        if matched is not None:
            update["category_id"] = matched.category_id
            update["category_name"] = matched.category_name
        elif not (txn.category_name or "").strip():
            update["category_name"] = UNCATEGORIZED
        return txn.model_copy(update=update) if update else txn

    def finalize(self, result: ImportResult, default_account: str) -> ImportSummary:
        """Apply defaults, categorize and de-duplicate a parsed batch."""
        summary = ImportSummary(errors=list(result.errors))
        for txn in result.transactions:
            txn = self._with_defaults(txn, default_account)
            if self._is_duplicate(txn):
                summary.skipped += 1
                continue
            self._remember(txn)
            summary.transactions.append(txn)
        summary.imported = len(summary.transactions)
        logger.info(
            "import finalized: %d imported, %d skipped, %d errors",
            summary.imported,
            summary.skipped,
            len(summary.errors),
        )
        return summary

    def import_csv(self, content: str, mapping: CsvMapping | dict) -> ImportSummary:
        """Parse and finalize CSV text.

        Raises :class:`~statement_import.csv_import.CsvMappingError` when the
        mapping does not fit the file.
        """
        return self.finalize(parse_csv_transactions(content, mapping), DEFAULT_CSV_ACCOUNT)

    def import_statement_text(self, text: str, account_name: Optional[str] = None) -> ImportSummary:
        account = (account_name or "").strip() or DEFAULT_STATEMENT_ACCOUNT
        return self.finalize(parse_statement_text(text, account), account)

    def import_statement_pdf(self, pdf_file, account_name: Optional[str] = None) -> ImportSummary:
        account = (account_name or "").strip() or DEFAULT_STATEMENT_ACCOUNT
        result, _, _ = parse_bank_statement(pdf_file, account)
        return self.finalize(result, account)


def import_transactions(
    result: ImportResult,
    default_account: str,
    rules: Sequence[AutomationRule] = (),
    categories: Sequence[Category] = (),
    existing: Sequence[ParsedTransaction] = (),
) -> ImportSummary:
    """One-shot form of :meth:`TransactionImporter.finalize`."""
    return TransactionImporter(rules, categories, existing).finalize(result, default_account)


__all__ = [
    "ImportSummary",
    "TransactionImporter",
    "dedup_key",
    "import_transactions",
]
