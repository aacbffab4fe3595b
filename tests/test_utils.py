from datetime import date
from decimal import Decimal

import pytest

from statement_import.models import ParsedTransaction
from statement_import.utils import (
    from_cents,
    has_sign_marker,
    normalize_date,
    sanitize_amount,
    summarize_transactions,
    to_cents,
    transactions_to_frame,
)


@pytest.mark.parametrize(
    "token,expected",
    [
        ("(1,234.56)", Decimal("-1234.56")),
        ("1.234,56", Decimal("1234.56")),
        ("45.20DR", Decimal("-45.20")),
        ("45.20CR", Decimal("45.20")),
        ("-45.20 cr", Decimal("45.20")),
        ("12.00-", Decimal("-12.00")),
        ("$1,234.50", Decimal("1234.50")),
        ("€ 1.234,56", Decimal("1234.56")),
        ("1,234", Decimal("1234")),
        ("12,", Decimal("12")),
        ("1.234.567", Decimal("1234567")),
        ("0,5", Decimal("0.5")),
        ("+7.25", Decimal("7.25")),
        ("USD 1'234.50", Decimal("1234.50")),
        ("1 234,56 eur", Decimal("1234.56")),
    ],
)
def test_sanitize_amount(token, expected):
    assert sanitize_amount(token) == expected


@pytest.mark.parametrize("token", ["", "abc", "CR", "--", None, "2 items", "1e5", "12.50 kg", "#42"])
def test_sanitize_amount_rejects_non_amount_tokens(token):
    with pytest.raises(ValueError):
        sanitize_amount(token)


@pytest.mark.parametrize(
    "token,expected",
    [
        ("05.03.24", "2024-03-05"),
        ("05.03.2024", "2024-03-05"),
        ("3 March 2024", "2024-03-03"),
        ("3rd Mar 2024", "2024-03-03"),
        ("02/13/2024", "2024-02-13"),
        ("13/02/2024", "2024-02-13"),
        ("2024-01-15", "2024-01-15"),
        ("2024/1/5", "2024-01-05"),
        ("2024-01-15T10:30:00", "2024-01-15"),
        ("Jan 5, 2024", "2024-01-05"),
        ("01/02/70", "1970-01-02"),
        ("01/02/69", "2069-01-02"),
    ],
)
def test_normalize_date(token, expected):
    assert normalize_date(token) == expected


@pytest.mark.parametrize("token", ["", None, "garbage", "2024-02-30", "32.13.24"])
def test_normalize_date_rejects_invalid(token):
    assert normalize_date(token) is None


def test_out_of_range_component_becomes_the_day():
    for day in range(13, 32):
        for month in range(1, 13):
            try:
                expected = date(2023, month, day).isoformat()
            except ValueError:
                continue
            assert normalize_date(f"{day:02d}/{month:02d}/2023") == expected
            assert normalize_date(f"{month}/{day}/2023") == expected


def test_has_sign_marker():
    assert has_sign_marker("-5.00")
    assert has_sign_marker("(5.00)")
    assert has_sign_marker("5.00 DR")
    assert has_sign_marker("5.00CR")
    assert not has_sign_marker("5.00")
    assert not has_sign_marker("$1,005.00")


def test_cents_conversion_is_exact():
    assert to_cents(Decimal("0.1") + Decimal("0.2")) == 30
    assert to_cents(Decimal("-1234.565")) == -123457
    assert from_cents(-5000) == Decimal("-50.00")
    assert str(from_cents(123)) == "1.23"


def _txn(amount, kind, account="Checking"):
    return ParsedTransaction(date="2024-01-01", description="x", amount=Decimal(amount), type=kind, account=account)


def test_frame_net_column_signs_by_type():
    df = transactions_to_frame([_txn("10", "income"), _txn("4", "expense"), _txn("7", "transfer")])
    assert list(df["net"]) == [10.0, -4.0, 0.0]


def test_summarize_transactions():
    metrics = summarize_transactions(
        [_txn("100.00", "income"), _txn("30.25", "expense", "Savings"), _txn("9.75", "expense")]
    )
    assert metrics == {
        "transaction_count": 3,
        "income": 100.0,
        "expenses": 40.0,
        "net_amount": 60.0,
        "accounts": ["Checking", "Savings"],
    }


def test_summarize_empty_batch():
    assert summarize_transactions([])["transaction_count"] == 0
