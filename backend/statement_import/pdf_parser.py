"""PDF text extraction helpers used by the statement parser.

Two producers yield the same thing, an ordered list of text lines with a
blank line between pages:

* :func:`lines_from_fragments` rebuilds rows from positioned text fragments
  (what ``pdfplumber``'s ``extract_words`` returns);
* :func:`lines_from_text` splits an already flattened text blob.

:func:`extract_document_lines` prefers the first and falls back to the
second when word geometry cannot be read.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from itertools import groupby
from typing import Iterable, List, Optional, Sequence

import pdfplumber

from .constants import APPROX_CHAR_WIDTH, COLUMN_GAP, COLUMN_SEPARATOR, ROW_QUANTUM

logger = logging.getLogger(__name__)

__all__ = [
    "DocumentReadError",
    "TextFragment",
    "lines_from_fragments",
    "lines_from_text",
    "extract_document_lines",
]


class DocumentReadError(RuntimeError):
    """The document could not be opened or no text could be read from it."""


@dataclass(frozen=True)
class TextFragment:
    """A run of text at a position on a page (y grows down the page)."""

    page: int
    x: float
    y: float
    text: str
    width: Optional[float] = None

    @property
    def right(self) -> float:
        width = self.width if self.width is not None else len(self.text) * APPROX_CHAR_WIDTH
        return self.x + width


def _normalize_space(s: str) -> str:
    return re.sub(r"[ \t]+", " ", s.replace("\u00a0", " ")).strip()


def _join_row(fragments: Sequence[TextFragment], column_gap: float) -> str:
    parts: List[str] = []
    prev: Optional[TextFragment] = None
    for frag in sorted(fragments, key=lambda f: f.x):
        text = _normalize_space(frag.text)
        if not text:
            continue
        if prev is not None:
            gap = frag.x - prev.right
            parts.append(COLUMN_SEPARATOR if gap >= column_gap else " ")
        parts.append(text)
        prev = frag
    return "".join(parts)


def _group_rows(page_frags: Iterable[TextFragment], row_quantum: float) -> List[List[TextFragment]]:
    rows: List[List[TextFragment]] = []
    for frag in sorted(page_frags, key=lambda f: (f.y, f.x)):
        if rows and frag.y - rows[-1][0].y <= row_quantum:
            rows[-1].append(frag)
        else:
            rows.append([frag])
    return rows


def lines_from_fragments(
    fragments: Iterable[TextFragment],
    row_quantum: float = ROW_QUANTUM,
    column_gap: float = COLUMN_GAP,
) -> List[str]:
    """Group positioned fragments into text rows, page by page.

    A fragment joins the current row while its ``y`` is within
    ``row_quantum`` of the row's top fragment; otherwise it starts a new
    row. Rows read left to right. A horizontal gap of at least
    ``column_gap`` becomes a wide column separator, anything smaller a
    single space.
    """
    lines: List[str] = []
    ordered = sorted(fragments, key=lambda f: f.page)
    for page_no, (_, page_frags) in enumerate(groupby(ordered, key=lambda f: f.page)):
        if page_no:
            lines.append("")
        for row in _group_rows(page_frags, row_quantum):
            text = _join_row(row, column_gap)
            if text:
                lines.append(text)
    return lines


def lines_from_text(text: str, pages: Optional[Sequence[str]] = None) -> List[str]:
    """Split flat text (or a list of page texts) into lines.

    Blank lines are dropped inside a page; pages are separated by one blank
    line, matching :func:`lines_from_fragments`.
    """
    chunks = list(pages) if pages is not None else [text]
    lines: List[str] = []
    for page_no, chunk in enumerate(chunks):
        if page_no:
            lines.append("")
        for raw_line in re.split(r"\r\n|\r|\n|\f", chunk or ""):
            s = raw_line.strip()
            if s:
                lines.append(s)
    return lines


def _page_fragments(page, page_no: int) -> List[TextFragment]:
    words = page.extract_words() or []
    return [
        TextFragment(
            page=page_no,
            x=float(w["x0"]),
            y=float(w["top"]),
            text=w["text"],
            width=float(w["x1"]) - float(w["x0"]),
        )
        for w in words
    ]


def _has_text(lines: Sequence[str]) -> bool:
    return any(line.strip() for line in lines)


def extract_document_lines(pdf_file) -> List[str]:
    """Extract ordered text lines from a PDF (path or binary file object).

    Raises :class:`DocumentReadError` when the file cannot be opened as a PDF
    or neither word geometry nor plain text can be pulled from it.
    """
    try:
        pdf = pdfplumber.open(pdf_file)
    except Exception as exc:
        raise DocumentReadError(f"Unreadable document: {exc}") from exc

    with pdf:
        try:
            fragments: List[TextFragment] = []
            for p_idx, page in enumerate(pdf.pages, start=1):
                fragments.extend(_page_fragments(page, p_idx))
            lines = lines_from_fragments(fragments)
            if _has_text(lines):
                logger.debug("extracted %d lines from word geometry", len(lines))
                return lines
        except Exception:
            logger.warning("word extraction failed; falling back to page text", exc_info=True)

        try:
            page_texts = [page.extract_text() or "" for page in pdf.pages]
        except Exception as exc:
            raise DocumentReadError(f"Unable to extract text: {exc}") from exc
    lines = lines_from_text("", pages=page_texts)
    if not _has_text(lines):
        # scanned or empty document
        raise DocumentReadError("No text could be extracted from the document")
    return lines
