"""Pydantic models exchanged between the import parsers and their callers."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

TransactionType = Literal["income", "expense", "transfer"]
TransactionStatus = Literal["pending", "completed", "cleared"]


class ParsedTransaction(BaseModel):
    """One normalized, not yet persisted, transaction candidate."""

    model_config = ConfigDict(frozen=True)

    source_id: Optional[str] = None
    source_line: Optional[int] = None
    date: str
    description: str
    amount: Decimal = Field(ge=0)
    type: TransactionType
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    account: Optional[str] = None
    status: Optional[TransactionStatus] = None
    notes: Optional[str] = None
    # Running balance printed next to a statement entry, when there was one.
    balance: Optional[Decimal] = None

    @field_validator("description")
    @classmethod
    def _description_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("description must not be empty")
        return v

    @field_serializer("amount", "balance", when_used="json")
    def _money_as_float(self, v: Optional[Decimal]) -> Optional[float]:
        return float(v) if v is not None else None


class LineError(BaseModel):
    model_config = ConfigDict(frozen=True)

    line: int
    message: str


class ImportResult(BaseModel):
    """Output of every ingestion path."""

    transactions: List[ParsedTransaction] = Field(default_factory=list)
    errors: List[LineError] = Field(default_factory=list)


class CsvMapping(BaseModel):
    """Header labels of the CSV columns that feed each transaction field."""

    date: str = ""
    description: str = ""
    amount: str = ""
    category: Optional[str] = None
    account: Optional[str] = None
    status: Optional[str] = None
    type: Optional[str] = None
    notes: Optional[str] = None


class RuleType(str, Enum):
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    EXACT = "exact"
    REGEX = "regex"


class AutomationRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = ""
    name: str = ""
    category_id: str = ""
    type: RuleType
    pattern: str
    priority: int = 0
    is_active: bool = True
    description: Optional[str] = None


class Category(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class RuleMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    category_id: str
    category_name: str


__all__ = [
    "ParsedTransaction",
    "LineError",
    "ImportResult",
    "CsvMapping",
    "RuleType",
    "AutomationRule",
    "Category",
    "RuleMatch",
    "TransactionType",
    "TransactionStatus",
]
