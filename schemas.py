from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models import TransactionType
from money import parse_amount


class _TransactionInput(BaseModel):
    @field_validator("amount", mode="before", check_fields=False)
    @classmethod
    def _parse_amount(cls, value):
        if value is None:
            return value
        return parse_amount(value)

    # length limits apply to the trimmed text
    @field_validator("category", "note", mode="before", check_fields=False)
    @classmethod
    def _strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value


class TransactionIn(_TransactionInput):
    model_config = ConfigDict(extra="forbid")

    type: TransactionType
    amount: Decimal
    # length is checked by the store after trimming
    category: str
    note: Optional[str] = Field(default=None, max_length=500)
    date: Optional[datetime] = None


class TransactionPatch(_TransactionInput):
    """Partial update. Only fields present in the payload are applied;
    ``note: null`` clears the note."""

    model_config = ConfigDict(extra="forbid")

    type: Optional[TransactionType] = None
    amount: Optional[Decimal] = None
    category: Optional[str] = None
    note: Optional[str] = Field(default=None, max_length=500)
    date: Optional[datetime] = None


class TransactionOut(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: int
    type: TransactionType
    amount: Decimal
    amount_cents: int
    category: str
    note: Optional[str]
    date: datetime
    created_at: datetime
    updated_at: datetime


class TransactionPageOut(BaseModel):
    items: list[TransactionOut]
    total: int
    page: int
    limit: int
    total_pages: int


class BreakdownRowOut(BaseModel):
    category: str
    type: TransactionType
    total: Decimal
    total_cents: int
    count: int


class SummaryOut(BaseModel):
    total_income: Decimal
    total_income_cents: int
    total_expense: Decimal
    total_expense_cents: int
    balance: Decimal
    balance_cents: int
    income_count: int
    expense_count: int
    category_breakdown: list[BreakdownRowOut]


class BalancePointOut(BaseModel):
    transaction_id: Optional[int]
    date: datetime
    type: TransactionType
    amount_cents: int
    balance: Decimal
    balance_cents: int


class SeriesBucketOut(BaseModel):
    start: date
    end: date
    income_cents: int
    expense_cents: int


class CategorySuggestionOut(BaseModel):
    name: str
    count: int


class DeletedOut(BaseModel):
    deleted: int
