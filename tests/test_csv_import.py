import csv
from decimal import Decimal
from io import StringIO

import pytest

from statement_import.csv_import import (
    CsvFormatError,
    CsvMappingError,
    iter_delimited_rows,
    parse_csv_transactions,
    parse_delimited,
)
from statement_import.models import CsvMapping

MAPPING = {"date": "Date", "description": "Description", "amount": "Amount"}


def test_quoted_field_with_comma_and_escaped_quote():
    assert parse_delimited('"a,b""c"') == [['a,b"c']]


def test_crlf_rows_and_trailing_row_without_newline():
    assert parse_delimited("a,b\r\nc,d\ne,f") == [["a", "b"], ["c", "d"], ["e", "f"]]


def test_multiline_field_reports_starting_line():
    content = 'h1,h2\n"first\nsecond",x\ny,z\n'
    rows = iter_delimited_rows(content)
    assert rows == [(1, ["h1", "h2"]), (2, ["first\nsecond", "x"]), (4, ["y", "z"])]


def test_basic_mapping_derives_type_from_sign():
    content = "Date,Description,Amount\n2024-01-05,Salary,\"1,500.00\"\n01/06/2024,Coffee,(4.50)\n"
    result = parse_csv_transactions(content, MAPPING)
    assert result.errors == []
    salary, coffee = result.transactions
    assert (salary.date, salary.amount, salary.type) == ("2024-01-05", Decimal("1500.00"), "income")
    assert (coffee.date, coffee.amount, coffee.type) == ("2024-01-06", Decimal("4.50"), "expense")
    assert salary.source_id == "csv-2"
    assert coffee.source_line == 3


def test_header_lookup_is_case_insensitive_and_bom_tolerant():
    content = "\ufeffDATE, description ,AMOUNT\n2024-01-05,Rent,-900\n"
    result = parse_csv_transactions(content, CsvMapping(date="date", description="Description", amount="amount"))
    assert len(result.transactions) == 1
    assert result.transactions[0].amount == Decimal("900")


def test_missing_amount_cell_is_one_line_error():
    content = "Date,Description,Amount\n2024-01-01,Ok,1.00\n2024-01-02,Broken,\n2024-01-03,Ok too,2.00\n"
    result = parse_csv_transactions(content, MAPPING)
    assert [e.line for e in result.errors] == [3]
    assert result.errors[0].message == "Missing required values"
    assert [t.description for t in result.transactions] == ["Ok", "Ok too"]


def test_bad_date_and_bad_amount_are_row_errors():
    content = "Date,Description,Amount\nnot a date,A,1.00\n2024-01-02,B,abc\n2024-01-03,C,3.00\n"
    result = parse_csv_transactions(content, MAPPING)
    assert [(e.line, e.message) for e in result.errors] == [
        (2, "Invalid date: not a date"),
        (3, "Invalid amount: abc"),
    ]
    assert len(result.transactions) == 1


def test_unmapped_required_field_fails_whole_call():
    with pytest.raises(CsvMappingError, match="Missing mapping for amount"):
        parse_csv_transactions("Date,Description,Amount\n", {"date": "Date", "description": "Description"})


def test_mapped_column_missing_from_header_fails_whole_call():
    with pytest.raises(CsvMappingError, match="Column Value not found"):
        parse_csv_transactions(
            "Date,Description,Amount\n2024-01-01,x,1\n",
            {"date": "Date", "description": "Description", "amount": "Value"},
        )


def test_optional_columns_are_validated():
    content = (
        "Date,Description,Amount,Status,Type,Account,Category,Notes\n"
        "2024-01-01,Move,50.00,CLEARED,transfer,Savings,Moves,monthly\n"
        "2024-01-02,Odd,5.00,bogus,sideways,,,\n"
    )
    mapping = dict(MAPPING, status="Status", type="Type", account="Account", category="Category", notes="Notes")
    moved, odd = parse_csv_transactions(content, mapping).transactions
    assert (moved.status, moved.type, moved.account, moved.category_name, moved.notes) == (
        "cleared",
        "transfer",
        "Savings",
        "Moves",
        "monthly",
    )
    assert (odd.status, odd.type, odd.account, odd.category_name, odd.notes) == (None, "income", None, None, None)


def test_blank_rows_are_skipped():
    content = "Date,Description,Amount\n,,\n2024-01-01,x,1.00\n"
    result = parse_csv_transactions(content, MAPPING)
    assert result.errors == []
    assert len(result.transactions) == 1


def test_empty_content():
    result = parse_csv_transactions("", MAPPING)
    assert result.transactions == [] and result.errors == []


def test_round_trip_through_written_csv():
    originals = [
        ("2024-02-01", 'Shop "A", branch', Decimal("-12.34")),
        ("2024-02-02", "Refund\nline two", Decimal("99.99")),
        ("2024-02-03", "Rent", Decimal("-1250.00")),
    ]
    buf = StringIO()
    writer = csv.writer(buf)
    writer.writerow(["Date", "Description", "Amount"])
    for d, desc, amt in originals:
        writer.writerow([d, desc, f"{amt:.2f}"])

    result = parse_csv_transactions(buf.getvalue(), MAPPING)
    assert result.errors == []
    recovered = [
        (t.date, t.description, t.amount if t.type == "income" else -t.amount) for t in result.transactions
    ]
    assert recovered == originals


def test_unclosed_quote_swallowing_the_file_is_a_format_error():
    content = (
        "Date,Description,Amount\n"
        '2024-01-01,"Broken quote,1.00\n'
        + "2024-01-02,Row,1.00\n" * 8000
    )
    with pytest.raises(CsvFormatError, match="Malformed CSV near line 2"):
        parse_csv_transactions(content, MAPPING)
    assert issubclass(CsvFormatError, CsvMappingError)
