"""Bank statement text -> parsed transactions.

A statement is read in two passes over its text lines:

1. a *segmenter* groups lines into entries (a date-anchored line plus any
   wrapped continuation lines). :class:`GenericSegmenter` handles free-form
   line-oriented statements, :class:`ColumnarSegmenter` the Date /
   Description / Withdrawals / Deposits / Balance table chosen by
   :func:`detect_layout`;
2. :func:`resolve_entries` turns each entry into a transaction, resolving
   the sign from the running-balance delta when one is known and from
   description keywords otherwise. Both layouts share this step.

Nothing here keeps state between calls; each parse owns its pending entry
and running balance.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

import pandas as pd

from .constants import (
    AMOUNT_TOKEN_RX,
    BALANCE_MARKER_RX,
    COLUMNAR_HEADER_RX,
    CREDIT_KEYWORDS_RX,
    DATE_START_RX,
    DEBIT_KEYWORDS_RX,
    DEFAULT_STATEMENT_ACCOUNT,
    LAYOUT_SCAN_LIMIT,
    PLACEHOLDER_DESCRIPTION,
    SHORT_DATE_START_RX,
    STATEMENT_PERIOD_RX,
    STATEMENT_TITLE_RX,
    TABLE_ARTIFACT_PREFIX_RX,
    TERMINATOR_PATTERNS_RX,
    TRAILING_PAIR_RX,
)
from .models import ImportResult, LineError, ParsedTransaction
from .pdf_parser import TextFragment, extract_document_lines, lines_from_fragments, lines_from_text
from .utils import from_cents, has_sign_marker, normalize_date, sanitize_amount, to_cents, transactions_to_frame

logger = logging.getLogger(__name__)

__all__ = [
    "PendingEntry",
    "RunningBalanceState",
    "GenericSegmenter",
    "ColumnarSegmenter",
    "detect_layout",
    "resolve_entries",
    "parse_statement_lines",
    "parse_statement_text",
    "parse_statement_fragments",
    "parse_bank_statement",
    "compute_balance_mismatches",
]

GENERIC = "generic"
COLUMNAR = "columnar"


@dataclass
class PendingEntry:
    """Lines collected for one statement entry; ``date_token`` is None for
    a bare balance line such as ``Balance brought forward 1,000.00``."""

    line_number: int
    date_token: Optional[str]
    main_line: str
    extra_lines: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return re.sub(r"\s+", " ", " ".join([self.main_line, *self.extra_lines])).strip()


@dataclass
class RunningBalanceState:
    previous_balance_cents: Optional[int] = None


# ---------------- Segmentation ---------------- #


def _is_terminator(line: str) -> bool:
    return any(rx.search(line) for rx in TERMINATOR_PATTERNS_RX)


class GenericSegmenter:
    """Line-accumulation state machine for free-form statements."""

    layout = GENERIC
    date_rx = DATE_START_RX

    def prepare(self, line: str) -> str:
        return line.strip()

    def date_token(self, raw: str) -> str:
        return raw

    def accepts(self, line: str) -> bool:
        """Whether the line lies inside the transaction listing."""
        return True

    def segment(self, lines: Sequence[str]) -> Iterator[PendingEntry]:
        pending: Optional[PendingEntry] = None
        for number, raw in enumerate(lines, start=1):
            line = self.prepare(raw)
            if not line or not self.accepts(line):
                continue
            m = self.date_rx.match(line)
            if m:
                rest = m.group("rest").strip()
                if not rest or rest[0].isalpha():
                    if pending is not None:
                        yield pending
                    pending = PendingEntry(number, self.date_token(m.group("date")), rest)
                elif pending is not None:
                    # A wrapped row that repeats the date, not a new record.
                    pending.extra_lines.append(rest)
                continue
            if BALANCE_MARKER_RX.match(line):
                if pending is not None:
                    yield pending
                    pending = None
                yield PendingEntry(number, None, line)
                continue
            if _is_terminator(line):
                if pending is not None:
                    yield pending
                    pending = None
                continue
            if pending is not None:
                pending.extra_lines.append(line)
        if pending is not None:
            yield pending


class ColumnarSegmenter(GenericSegmenter):
    """Segmenter for the Date | Description | Withdrawals | Deposits | Balance table.

    Rows start with a short day-first date (``05/03/24``), possibly behind
    table borders or row counters. Everything before the first column
    header is preamble and ignored.
    """

    layout = COLUMNAR
    date_rx = SHORT_DATE_START_RX

    def __init__(self) -> None:
        self._in_table = False

    def prepare(self, line: str) -> str:
        line = TABLE_ARTIFACT_PREFIX_RX.sub("", line.strip())
        return line.replace("|", " ").strip()

    def date_token(self, raw: str) -> str:
        # Day-first; the dotted form is parsed as DD.MM.YY.
        return re.sub(r"[/\-]", ".", raw)

    def accepts(self, line: str) -> bool:
        if COLUMNAR_HEADER_RX.search(line):
            self._in_table = True
        return self._in_table

    def segment(self, lines: Sequence[str]) -> Iterator[PendingEntry]:
        self._in_table = False
        return super().segment(lines)


def detect_layout(lines: Sequence[str]) -> str:
    """Pick the columnar layout only when its header and a corroborating
    statement-period or statement-title phrase are both present."""
    header_at = None
    for idx, line in enumerate(lines[:LAYOUT_SCAN_LIMIT]):
        cleaned = TABLE_ARTIFACT_PREFIX_RX.sub("", line.strip()).replace("|", " ")
        if COLUMNAR_HEADER_RX.search(cleaned):
            header_at = idx
            break
    if header_at is None:
        return GENERIC
    corroborated = any(
        STATEMENT_PERIOD_RX.search(line) or STATEMENT_TITLE_RX.search(line)
        for idx, line in enumerate(lines)
        if idx != header_at
    )
    return COLUMNAR if corroborated else GENERIC


def _segmenter_for(layout: str) -> GenericSegmenter:
    if layout == COLUMNAR:
        return ColumnarSegmenter()
    if layout == GENERIC:
        return GenericSegmenter()
    raise ValueError(f"unknown statement layout: {layout!r}")


# ---------------- Resolution ---------------- #


def _locate_amounts(text: str) -> Tuple[Optional[str], Optional[str], List[Tuple[int, int]]]:
    """Return (amount_token, balance_token, spans) found in an entry's text."""
    m = TRAILING_PAIR_RX.search(text)
    if m:
        return m.group("amount"), m.group("balance"), [m.span("amount"), m.span("balance")]
    tokens = list(AMOUNT_TOKEN_RX.finditer(text))
    if len(tokens) >= 2:
        a, b = tokens[-2], tokens[-1]
        return a.group(), b.group(), [a.span(), b.span()]
    if tokens:
        return None, tokens[-1].group(), [tokens[-1].span()]
    return None, None, []


def _strip_spans(text: str, spans: Iterable[Tuple[int, int]]) -> str:
    for start, end in sorted(spans, reverse=True):
        text = text[:start] + " " + text[end:]
    return re.sub(r"\s+", " ", text).strip(" -|")


def keyword_sign(description: str) -> int:
    """+1 for credit-looking descriptions, -1 otherwise."""
    if CREDIT_KEYWORDS_RX.search(description) and not DEBIT_KEYWORDS_RX.search(description):
        return 1
    return -1


def resolve_entry(
    entry: PendingEntry,
    state: RunningBalanceState,
    account: str,
) -> Tuple[Optional[ParsedTransaction], List[LineError]]:
    """Resolve one entry against the running balance.

    Precedence for the signed amount: a non-zero balance delta, then the
    explicit amount token (its own sign marker, else description keywords).
    A first balance with no amount only seeds the running balance.
    """
    line = entry.line_number
    text = entry.text
    amount_raw, balance_raw, spans = _locate_amounts(text)
    description = _strip_spans(text, spans)
    try:
        amount_value = sanitize_amount(amount_raw) if amount_raw else None
        balance_value = sanitize_amount(balance_raw) if balance_raw else None
    except ValueError as exc:
        return None, [LineError(line=line, message=str(exc))]

    if entry.date_token is None or BALANCE_MARKER_RX.match(description):
        if balance_value is not None:
            state.previous_balance_cents = to_cents(balance_value)
        return None, []

    delta_cents: Optional[int] = None
    if balance_value is not None:
        if state.previous_balance_cents is not None:
            delta_cents = to_cents(balance_value) - state.previous_balance_cents
        seeding = state.previous_balance_cents is None
        state.previous_balance_cents = to_cents(balance_value)
    else:
        seeding = False

    warnings: List[LineError] = []
    if delta_cents:
        signed_cents = delta_cents
        if amount_value is not None and abs(abs(to_cents(amount_value)) - abs(delta_cents)) > 1:
            warnings.append(
                LineError(
                    line=line,
                    message=(
                        f"Amount {amount_raw} does not match balance change "
                        f"{from_cents(delta_cents)}; using balance change"
                    ),
                )
            )
    elif amount_value is not None:
        cents = to_cents(amount_value)
        if has_sign_marker(amount_raw):
            signed_cents = cents
        else:
            signed_cents = keyword_sign(description) * abs(cents)
    elif seeding:
        logger.debug("line %d seeds running balance at %s", line, balance_value)
        return None, []
    elif balance_value is not None:
        return None, [LineError(line=line, message="Balance unchanged and no amount found")]
    else:
        return None, [LineError(line=line, message="Unable to locate amount")]

    date = normalize_date(entry.date_token)
    if date is None:
        return None, [LineError(line=line, message=f"Unrecognized date: {entry.date_token}")]

    txn = ParsedTransaction(
        source_id=f"pdf-{line}",
        source_line=line,
        date=date,
        description=description or PLACEHOLDER_DESCRIPTION,
        amount=from_cents(abs(signed_cents)),
        type="income" if signed_cents >= 0 else "expense",
        account=account,
        balance=balance_value,
    )
    return txn, warnings


def resolve_entries(entries: Iterable[PendingEntry], account_name: Optional[str] = None) -> ImportResult:
    """Resolve segmented entries in order with a fresh running balance."""
    account = (account_name or "").strip() or DEFAULT_STATEMENT_ACCOUNT
    state = RunningBalanceState()
    transactions: List[ParsedTransaction] = []
    errors: List[LineError] = []
    for entry in entries:
        txn, entry_errors = resolve_entry(entry, state, account)
        if txn is not None:
            transactions.append(txn)
        errors.extend(entry_errors)
    return ImportResult(transactions=transactions, errors=errors)


# ---------------- Entry points ---------------- #


def parse_statement_lines(
    lines: Sequence[str],
    account_name: Optional[str] = None,
    layout: Optional[str] = None,
) -> ImportResult:
    lines = list(lines)
    layout = layout or detect_layout(lines)
    logger.debug("parsing %d statement lines as %s layout", len(lines), layout)
    return resolve_entries(_segmenter_for(layout).segment(lines), account_name)


def parse_statement_text(text: str, account_name: Optional[str] = None) -> ImportResult:
    return parse_statement_lines(lines_from_text(text), account_name)


def parse_statement_fragments(
    fragments: Iterable[TextFragment], account_name: Optional[str] = None
) -> ImportResult:
    return parse_statement_lines(lines_from_fragments(fragments), account_name)


def parse_bank_statement(
    pdf_file, account_name: Optional[str] = None
) -> tuple[ImportResult, str, List[str]]:
    """Parse a PDF statement; returns (result, layout, extracted lines).

    Raises :class:`~statement_import.pdf_parser.DocumentReadError` for an
    unreadable document.
    """
    lines = extract_document_lines(pdf_file)
    layout = detect_layout(lines)
    return parse_statement_lines(lines, account_name, layout), layout, lines


def compute_balance_mismatches(
    transactions: Sequence[ParsedTransaction], tolerance: float = 0.01
) -> list[dict]:
    """Find rows where balance does not match prior balance + amount."""
    mismatches: list[dict] = []
    df = transactions_to_frame(transactions)
    if df.empty or "balance" not in df.columns:
        return mismatches
    last_balance: Optional[float] = None
    for idx, row in df.iterrows():
        bal = row.get("balance")
        if bal is None or pd.isna(bal):
            continue
        bal = float(bal)
        if last_balance is not None:
            expected = round(last_balance + float(row["net"]), 2)
            provided = round(bal, 2)
            if abs(expected - provided) > tolerance:
                mismatches.append(
                    {
                        "index": int(idx),
                        "line": int(row["source_line"]) if pd.notna(row.get("source_line")) else None,
                        "date": row.get("date"),
                        "description": row.get("description"),
                        "amount": float(row["net"]),
                        "prev_balance": last_balance,
                        "expected_balance": expected,
                        "provided_balance": provided,
                        "delta": round(provided - expected, 2),
                    }
                )
        last_balance = bal
    return mismatches
