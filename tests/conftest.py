from __future__ import annotations

from typing import List, Optional

import pytest

from statement_import import pdf_parser


class FakePage:
    def __init__(self, words: Optional[List[dict]] = None, text: str = "", broken_words: bool = False):
        self._words = words or []
        self._text = text
        self._broken_words = broken_words

    def extract_words(self):
        if self._broken_words:
            raise RuntimeError("no geometry")
        return self._words

    def extract_text(self):
        return self._text


class FakePdf:
    def __init__(self, pages: List[FakePage]):
        self.pages = pages
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True
        return False


def word(text: str, x0: float, top: float, width: Optional[float] = None) -> dict:
    width = width if width is not None else len(text) * 5.0
    return {"text": text, "x0": x0, "x1": x0 + width, "top": top}


@pytest.fixture
def fake_pdf(monkeypatch):
    """Make pdfplumber.open return a FakePdf built from the given pages."""

    def install(pages: List[FakePage]) -> FakePdf:
        pdf = FakePdf(pages)
        monkeypatch.setattr(pdf_parser.pdfplumber, "open", lambda _file: pdf)
        return pdf

    return install


@pytest.fixture
def generic_statement() -> str:
    return "\n".join(
        [
            "Account number 12345678",
            "01.01.24 Opening balance 1,000.00",
            "02.01.24 Grocery store 50.00 950.00",
            "03.01.24 Salary ACME LTD 250.00 1,200.00",
            "Page 1 of 1",
        ]
    )


@pytest.fixture
def columnar_statement() -> str:
    return "\n".join(
        [
            "ACME BANK",
            "Statement of Account",
            "Statement period 01/03/24 to 31/03/24",
            "Date Description Withdrawals Deposits Balance",
            "01/03/24 Opening balance 1,000.00",
            "| 05/03/24 | Coffee shop | 4.50 | | 995.50",
            "12/03/24 Salary 2,000.00 2,995.50",
            "Page 1 of 1",
        ]
    )
