"""Small shared helpers: value normalizers and DataFrame summaries."""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING, Iterable, Optional

import pandas as pd

from .constants import (
    AMOUNT_MARKER_RX,
    CENTURY_PIVOT,
    CURRENCY_NOISE_RX,
    DATE_FORMATS,
    DOT_DATE_RX,
    MONTH_NAME_DATE_RX,
    MONTHS,
    THREE_PART_DATE_RX,
    TIME_SUFFIX_RX,
)

if TYPE_CHECKING:
    from .models import ParsedTransaction

CENT = Decimal("0.01")


def _expand_year(raw: str) -> int:
    year = int(raw)
    if len(raw) <= 2:
        year += 1900 if year >= CENTURY_PIVOT else 2000
    return year


def _safe_date(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _month_from_name(name: str) -> Optional[int]:
    return MONTHS.get(name[:3].lower())


def normalize_date(token: str | None) -> Optional[str]:
    """Return ``YYYY-MM-DD`` for a locale-ambiguous date token, or None.

    Forms are tried in order: ``DD.MM.YY(YY)``, ``D MonthName YYYY``, a
    generic slash/dash/dot three-part form (month first unless a component is
    out of range) and finally a handful of calendar-string formats.
    """
    if not token:
        return None
    s = re.sub(r"\s+", " ", token.strip())
    if not s:
        return None
    s = TIME_SUFFIX_RX.sub("", s) or s

    m = DOT_DATE_RX.match(s)
    if m:
        parsed = _safe_date(_expand_year(m.group(3)), int(m.group(2)), int(m.group(1)))
        if parsed:
            return parsed

    m = MONTH_NAME_DATE_RX.match(s)
    if m:
        month = _month_from_name(m.group(2))
        if month:
            parsed = _safe_date(_expand_year(m.group(3)), month, int(m.group(1)))
            if parsed:
                return parsed

    m = THREE_PART_DATE_RX.match(s)
    if m:
        p1, p2, p3 = m.groups()
        if len(p1) == 4:
            year, month, day = int(p1), int(p2), int(p3)
        else:
            month, day = int(p1), int(p2)
            year = _expand_year(p3) if len(p3) <= 2 else int(p3)
        if month > 12 and day <= 12:
            month, day = day, month
        if day > 31 and month <= 12:
            month, day = day, month
        parsed = _safe_date(year, month, day)
        if parsed:
            return parsed

    try:
        return datetime.fromisoformat(s).date().isoformat()
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date().isoformat()
        except ValueError:
            continue
    return None


def has_sign_marker(token: str) -> bool:
    """True when the token spells out its own sign (minus, parentheses, CR/DR)."""
    t = token.strip()
    return bool("-" in t or ("(" in t and ")" in t) or AMOUNT_MARKER_RX.search(t))


def sanitize_amount(token: str | None) -> Decimal:
    """Parse a currency-like token into a signed Decimal.

    ``(1,234.56)``, ``12.00-`` and ``45.20DR`` are negative, ``45.20CR`` is
    forced non-negative. The last of ``.``/``,`` is the decimal separator;
    a repeated or dangling separator means the token is a whole number.
    """
    if token is None:
        raise ValueError("Invalid amount: None")
    raw = token
    s = token.strip()
    negative = False
    force_positive = False

    marker = AMOUNT_MARKER_RX.search(s)
    if marker:
        if marker.group(1).upper() == "DR":
            negative = True
        else:
            force_positive = True
        s = s[: marker.start()]

    s = CURRENCY_NOISE_RX.sub("", s)
    if "(" in s and ")" in s:
        negative = True
    s = s.replace("(", "").replace(")", "")
    if s.endswith("-"):
        negative = True
        s = s[:-1]
    if s.startswith("-"):
        negative = True
        s = s[1:]
    elif s.startswith("+"):
        s = s[1:]
    if not any(ch.isdigit() for ch in s) or not re.fullmatch(r"[\d.,]+", s):
        raise ValueError(f"Invalid amount: {raw}")

    last_dot = s.rfind(".")
    last_comma = s.rfind(",")
    if last_dot >= 0 and last_comma >= 0:
        decimal_sep = "." if last_dot > last_comma else ","
        thousands_sep = "," if decimal_sep == "." else "."
        s = s.replace(thousands_sep, "")
        if s.endswith(decimal_sep):
            s = s[:-1]
        s = s.replace(decimal_sep, ".")
    elif last_dot >= 0 or last_comma >= 0:
        sep = "." if last_dot >= 0 else ","
        whole, _, frac = s.rpartition(sep)
        if s.count(sep) > 1 or not frac:
            s = s.replace(sep, "")
        elif sep == "," and len(frac) == 3 and whole:
            # 1,234 is a grouped integer, not a fraction.
            s = whole + frac
        else:
            s = (whole or "0") + "." + frac

    try:
        value = Decimal(s)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {raw}") from exc
    if force_positive:
        return abs(value)
    return -abs(value) if negative else value


def to_cents(value: Decimal) -> int:
    """Round a Decimal to whole cents."""
    return int((value.quantize(CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def transactions_to_frame(transactions: Iterable["ParsedTransaction"]) -> pd.DataFrame:
    """Build a DataFrame with a signed ``net`` column from parsed transactions."""
    records = [t.model_dump() for t in transactions]
    if not records:
        return pd.DataFrame(columns=["date", "description", "amount", "type", "net"])
    df = pd.DataFrame(records)
    df["amount"] = df["amount"].astype(float)
    df["net"] = df["amount"].where(df["type"] != "expense", -df["amount"])
    df.loc[df["type"] == "transfer", "net"] = 0.0
    return df


def summarize_transactions(transactions: Iterable["ParsedTransaction"]) -> dict:
    """Counts and totals for an import batch (JSON friendly)."""
    df = transactions_to_frame(transactions)
    if df.empty:
        return {"transaction_count": 0, "income": 0.0, "expenses": 0.0, "net_amount": 0.0}
    income = float(df.loc[df["type"] == "income", "amount"].sum())
    expenses = float(df.loc[df["type"] == "expense", "amount"].sum())
    metrics = {
        "transaction_count": int(len(df)),
        "income": round(income, 2),
        "expenses": round(expenses, 2),
        "net_amount": round(income - expenses, 2),
    }
    if "account" in df.columns:
        accounts = sorted(a for a in df["account"].dropna().unique())
        if accounts:  # omit if empty to reduce payload
            metrics["accounts"] = accounts
    return metrics


__all__ = [
    "normalize_date",
    "sanitize_amount",
    "has_sign_marker",
    "to_cents",
    "from_cents",
    "transactions_to_frame",
    "summarize_transactions",
]
