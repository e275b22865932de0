import datetime as dt
from datetime import date, datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from models import IncomeFrequency, IncomeKind, SavingsGoalCategory


def _clean_category_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip().lower()
    return cleaned or None


class TransactionIn(BaseModel):
    amount_cents: int
    description: str = Field(default="", max_length=200)
    category: Optional[str] = Field(default=None, max_length=100)
    merchant: Optional[str] = Field(default=None, max_length=200)
    transaction_date: date

    @field_validator("category")
    @classmethod
    def clean_category(cls, value: Optional[str]) -> Optional[str]:
        return _clean_category_name(value)


class CategoryIn(BaseModel):
    category: str = Field(..., min_length=1, max_length=100)
    allocated_cents: int = Field(default=0, ge=0)
    color: Optional[str] = Field(default=None, max_length=9)
    icon: Optional[str] = Field(default=None, max_length=16)

    @field_validator("category")
    @classmethod
    def require_name(cls, value: str) -> str:
        cleaned = _clean_category_name(value)
        if not cleaned:
            raise ValueError("Category name must not be blank")
        return cleaned


class IncomeSourceIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    amount_cents: int = Field(..., ge=0)
    frequency: IncomeFrequency
    kind: Optional[IncomeKind] = None
    description: Optional[str] = Field(default=None, max_length=500)
    is_active: bool = True
    start_date: dt.date = Field(default_factory=dt.date.today)


class SavingsGoalIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    target_cents: int = Field(..., ge=0)
    current_cents: int = Field(default=0, ge=0)
    deadline: Optional[dt.date] = None
    priority: int = 0
    auto_contribution_cents: Optional[int] = Field(default=None, ge=0)
    category: SavingsGoalCategory = SavingsGoalCategory.custom
    is_active: bool = True


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)


class PeriodRecord(_Record):
    id: int
    user_id: int
    year: int
    month: int = Field(..., ge=1, le=12)
    start_date: date
    end_date: date
    total_budget_cents: Optional[int] = None
    is_active: bool
    created_at: Optional[datetime] = None


class CategoryRecord(_Record):
    period_id: int
    category: str
    allocated_cents: int = 0
    spent_cents: int = 0
    color: Optional[str] = None
    icon: Optional[str] = None
    is_custom: bool = False
    id: Optional[int] = None


class TransactionRecord(_Record):
    id: int
    user_id: int
    period_id: int
    category: Optional[str] = None
    amount_cents: int
    description: str = ""
    merchant: Optional[str] = None
    transaction_date: date
    created_at: Optional[datetime] = None


class TransactionKey(_Record):
    id: int


class CategoryKey(_Record):
    period_id: int
    category: str


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)


class TransactionUpsertEvent(_Event):
    entity: Literal["transaction"]
    op: Literal["insert", "update"]
    payload: TransactionRecord


class TransactionDeleteEvent(_Event):
    entity: Literal["transaction"]
    op: Literal["delete"]
    payload: TransactionKey


class CategoryUpsertEvent(_Event):
    entity: Literal["category"]
    op: Literal["insert", "update"]
    payload: CategoryRecord


class CategoryDeleteEvent(_Event):
    entity: Literal["category"]
    op: Literal["delete"]
    payload: CategoryKey


class PeriodEvent(_Event):
    entity: Literal["period"]
    op: Literal["insert", "update", "delete"]
    payload: PeriodRecord


RealtimeEvent = Union[
    TransactionUpsertEvent,
    TransactionDeleteEvent,
    CategoryUpsertEvent,
    CategoryDeleteEvent,
    PeriodEvent,
]

realtime_event_adapter: TypeAdapter[RealtimeEvent] = TypeAdapter(RealtimeEvent)
