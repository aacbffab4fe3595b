"""Regular expressions and keyword tables shared by the import parsers."""

import re

PLACEHOLDER_DESCRIPTION = "Statement entry"
DEFAULT_STATEMENT_ACCOUNT = "Statement"
DEFAULT_CSV_ACCOUNT = "Checking"
DEFAULT_STATUS = "completed"
UNCATEGORIZED = "Uncategorized"

VALID_STATUSES = ("pending", "completed", "cleared")
VALID_TYPES = ("income", "expense", "transfer")

# Two-digit years below this pivot land in the 2000s, the rest in the 1900s.
CENTURY_PIVOT = 70

MONTHS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

# Fallback formats for the direct calendar-string parse.
DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y%m%d",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
    "%d %B, %Y",
    "%d-%b-%Y",
    "%d-%b-%y",
    "%d %b %y",
    "%a %b %d %Y",
]

DOT_DATE_RX = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4}|\d{2})$")
MONTH_NAME_DATE_RX = re.compile(r"^(\d{1,2})(?:st|nd|rd|th)?\s+([A-Za-z]{3,})\.?,?\s+(\d{4}|\d{2})$")
THREE_PART_DATE_RX = re.compile(r"^(\d{1,4})[/.\-](\d{1,2})[/.\-](\d{1,4})$")
TIME_SUFFIX_RX = re.compile(r"[\sT]+\d{1,2}:\d{2}(?::\d{2}(?:\.\d+)?)?\s*(?:[AaPp][Mm]|Z|[+-]\d{2}:?\d{2})?$")

AMOUNT_MARKER_RX = re.compile(r"\s*(CR|DR)\.?$", re.IGNORECASE)
# Whitespace, digit-group apostrophes and currency marks; anything else left in
# an amount token makes it invalid.
CURRENCY_NOISE_RX = re.compile(r"\s+|'|[$€£¥]|USD|EUR|GBP", re.IGNORECASE)

# A date token at the start of a statement line. ``rest`` keeps its leading
# whitespace so the caller can tell a new record from a wrapped row.
DATE_START_RX = re.compile(
    r"^(?P<date>\d{1,2}[/.\-]\d{1,2}[/.\-]\d{2,4}"
    r"|\d{4}[/.\-]\d{1,2}[/.\-]\d{1,2}"
    r"|\d{1,2}\s+[A-Za-z]{3,9}\.?,?\s+\d{2,4})"
    r"(?P<rest>(?:\s.*)?)$"
)

# Short day-first date used by the columnar layout, e.g. 05/03/24.
SHORT_DATE_START_RX = re.compile(r"^(?P<date>\d{1,2}[/.\-]\d{1,2}[/.\-](?:\d{4}|\d{2}))(?P<rest>(?:\s.*)?)$")

# Report and table artifacts that sit in front of the date column.
TABLE_ARTIFACT_PREFIX_RX = re.compile(r"^(?:[|¦*>•#]+\s*|\d{1,4}\s*[|)]\s*)+")

# Money-like token: optional sign/currency/parentheses, grouped digits, exactly
# two fractional digits and an optional CR/DR suffix.
_AMOUNT_BODY = (
    r"[-+]?\(?[-+]?(?:[$€£¥]|USD|EUR|GBP)?\s?"
    r"(?:\d{1,3}(?:[,.']\d{3})+|\d+)[.,]\d{2}"
    r"\)?(?:\s?(?:CR|DR|cr|dr)\b)?-?"
)
AMOUNT_TOKEN_RX = re.compile(r"(?<![\w.,])" + _AMOUNT_BODY + r"(?![\w.,])")
TRAILING_PAIR_RX = re.compile(
    r"(?<![\w.,])(?P<amount>" + _AMOUNT_BODY + r")\s+(?P<balance>" + _AMOUNT_BODY + r")\s*$"
)

BALANCE_MARKER_RX = re.compile(
    r"^\s*(?:(?:opening|closing|beginning|ending|starting|previous|new|start|end)\s+balance"
    r"|balance\s+(?:brought|carried)\s+(?:forward|fwd)"
    r"|(?:brought|carried)\s+forward)\b",
    re.IGNORECASE,
)

# Lines that close an open entry without belonging to it.
TERMINATOR_PATTERNS_RX = [
    re.compile(r"^\s*page\s+\d+(?:\s+of\s+\d+)?\b", re.IGNORECASE),
    re.compile(r"\bcontinued\s+(?:on|from)\s+(?:next|previous)\s+page\b", re.IGNORECASE),
    re.compile(r"^\s*(?:transaction\s+)?date\s+(?:transaction\s+)?(?:description|details|particulars)\b", re.IGNORECASE),
    re.compile(r"^\s*(?:total|totals|subtotal)\b", re.IGNORECASE),
    re.compile(r"^\s*account\s+(?:holder|name|number|no\.?|summary)\b", re.IGNORECASE),
    re.compile(r"^\s*(?:sort\s+code|bsb|iban|bic|swift)\b", re.IGNORECASE),
    re.compile(r"^\s*statement\s+(?:period|date|number)\b", re.IGNORECASE),
    re.compile(r"^\s*(?:customer\s+service|member\s+fdic|important\s+information)\b", re.IGNORECASE),
]

# Sign hints used when no running balance is available. A credit hint only
# wins when no debit hint is present.
CREDIT_KEYWORDS_RX = re.compile(
    r"\b(?:deposits?|credits?|credited|interest\s+(?:earned|paid)|refunds?|reversals?|payroll|salary"
    r"|income|dividends?|transfer\s+from|payment\s+received|cash\s?back|direct\s+dep)\b",
    re.IGNORECASE,
)
DEBIT_KEYWORDS_RX = re.compile(
    r"\b(?:withdrawals?|withdrawn|debits?|debited|purchases?|payments?|pmt|fees?|charges?|checks?|cheques?"
    r"|bill\s?pay|atm|pos|transfer\s+to|direct\s+debit|standing\s+order)\b",
    re.IGNORECASE,
)

# Columnar layout: a Date/Description/Withdrawals/Deposits/Balance header
# plus a statement-period or statement-title phrase elsewhere.
COLUMNAR_HEADER_RX = re.compile(
    r"^\s*[|\s]*(?:transaction\s+)?date[|\s]+(?:description|details|particulars|narrative)[|\s]+"
    r"(?:(?:reference|ref\.?)[|\s]+)?"
    r"(?:withdrawals?|debits?|money\s+out|paid\s+out)[|\s]+"
    r"(?:deposits?|credits?|money\s+in|paid\s+in)[|\s]+balance\b",
    re.IGNORECASE,
)
STATEMENT_PERIOD_RX = re.compile(
    r"\b(?:statement\s+period|period\s+covered|for\s+the\s+period)\b"
    r"|\b\d{1,2}[/.\-]\d{1,2}[/.\-]\d{2,4}\s+(?:to|-|through)\s+\d{1,2}[/.\-]\d{1,2}[/.\-]\d{2,4}\b",
    re.IGNORECASE,
)
STATEMENT_TITLE_RX = re.compile(r"\b(?:statement\s+of\s+account|account\s+statement)\b", re.IGNORECASE)
# How far into the document the detector looks.
LAYOUT_SCAN_LIMIT = 300

# Line extractor geometry, in PDF points.
ROW_QUANTUM = 3.0
COLUMN_GAP = 12.0
COLUMN_SEPARATOR = "   "
APPROX_CHAR_WIDTH = 5.0

__all__ = [name for name in dir() if name.isupper()]
