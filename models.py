from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class IncomeFrequency(str, Enum):
    weekly = "weekly"
    bi_weekly = "bi-weekly"
    monthly = "monthly"
    quarterly = "quarterly"
    yearly = "yearly"
    one_time = "one-time"


class IncomeKind(str, Enum):
    salary = "salary"
    freelance = "freelance"
    investments = "investments"
    business = "business"
    other = "other"


class SavingsGoalCategory(str, Enum):
    emergency_fund = "emergency-fund"
    vacation = "vacation"
    major_purchase = "major-purchase"
    retirement = "retirement"
    custom = "custom"


def _values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


INCOME_FREQUENCY_ENUM = SAEnum(
    IncomeFrequency, name="incomefrequency", values_callable=_values
)
INCOME_KIND_ENUM = SAEnum(IncomeKind, name="incomekind", values_callable=_values)
SAVINGS_GOAL_CATEGORY_ENUM = SAEnum(
    SavingsGoalCategory, name="savingsgoalcategory", values_callable=_values
)


# Seeded into every first period and never deletable.
CORE_CATEGORIES: tuple[str, ...] = (
    "groceries",
    "housing",
    "transportation",
    "utilities",
    "dining",
    "shopping",
    "subscriptions",
    "debt-payments",
    "insurance",
)

CATEGORY_COLORS: dict[str, str] = {
    "groceries": "#10B981",
    "housing": "#8B5CF6",
    "transportation": "#F59E0B",
    "shopping": "#EC4899",
    "entertainment": "#3B82F6",
    "dining": "#EF4444",
    "utilities": "#FACC15",
    "debt-payments": "#DC2626",
    "credit-cards": "#7C2D12",
    "giving-charity": "#059669",
    "savings": "#0D9488",
    "insurance": "#1E40AF",
    "medical": "#BE185D",
    "education": "#7C3AED",
    "personal-care": "#EA580C",
    "investments": "#065F46",
    "subscriptions": "#4338CA",
    "miscellaneous": "#9333EA",
    "other": "#6B7280",
}

CATEGORY_ICONS: dict[str, str] = {
    "groceries": "🛒",
    "housing": "🏠",
    "transportation": "🚗",
    "shopping": "🛍️",
    "entertainment": "🎭",
    "dining": "🍽️",
    "utilities": "⚡",
    "debt-payments": "💳",
    "credit-cards": "💰",
    "giving-charity": "❤️",
    "savings": "🏦",
    "insurance": "🛡️",
    "medical": "🏥",
    "education": "📚",
    "personal-care": "✨",
    "investments": "📈",
    "subscriptions": "📱",
    "miscellaneous": "📦",
    "other": "📦",
}

DEFAULT_CATEGORY_COLOR = "#6B7280"
DEFAULT_CATEGORY_ICON = "📦"


def category_color(name: str) -> str:
    return CATEGORY_COLORS.get(name, DEFAULT_CATEGORY_COLOR)


def category_icon(name: str) -> str:
    return CATEGORY_ICONS.get(name, DEFAULT_CATEGORY_ICON)


def is_core_category(name: str) -> bool:
    return name in CORE_CATEGORIES


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class BudgetPeriod(Base, TimestampMixin):
    __tablename__ = "budget_periods"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_budget_cents: Mapped[Optional[int]] = mapped_column(Integer)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    categories: Mapped[list["BudgetCategory"]] = relationship(
        "BudgetCategory",
        back_populates="period",
        cascade="all, delete-orphan",
        order_by="BudgetCategory.category",
    )
    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="period"
    )

    __table_args__ = (
        UniqueConstraint("user_id", "year", "month", name="uq_period_user_month"),
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_period_month_range"),
        Index("ix_period_user_created", "user_id", "created_at"),
    )

    @property
    def year_month(self) -> tuple[int, int]:
        return (self.year, self.month)


# At most one active period per user, enforced by the database.
Index(
    "uq_period_user_active",
    BudgetPeriod.user_id,
    unique=True,
    sqlite_where=BudgetPeriod.is_active.is_(True),
    postgresql_where=BudgetPeriod.is_active.is_(True),
)


class BudgetCategory(Base, TimestampMixin):
    __tablename__ = "budget_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    period_id: Mapped[int] = mapped_column(
        ForeignKey("budget_periods.id", ondelete="CASCADE"), nullable=False
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    allocated_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    spent_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    color: Mapped[Optional[str]] = mapped_column(String(9))
    icon: Mapped[Optional[str]] = mapped_column(String(16))
    is_custom: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    period: Mapped["BudgetPeriod"] = relationship(
        "BudgetPeriod", back_populates="categories"
    )

    __table_args__ = (
        UniqueConstraint("period_id", "category", name="uq_category_period_name"),
        CheckConstraint(
            "allocated_cents >= 0", name="ck_category_allocated_positive"
        ),
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    period_id: Mapped[int] = mapped_column(
        ForeignKey("budget_periods.id"), nullable=False
    )
    category: Mapped[Optional[str]] = mapped_column(String(100))
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    merchant: Mapped[Optional[str]] = mapped_column(String(200))
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    period: Mapped["BudgetPeriod"] = relationship(
        "BudgetPeriod", back_populates="transactions"
    )

    __table_args__ = (
        Index("ix_transactions_period_category", "period_id", "category"),
        Index("ix_transactions_user_date", "user_id", "transaction_date"),
    )


class IncomeSource(Base, TimestampMixin):
    __tablename__ = "income_sources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    frequency: Mapped[IncomeFrequency] = mapped_column(
        INCOME_FREQUENCY_ENUM, nullable=False
    )
    kind: Mapped[Optional[IncomeKind]] = mapped_column(INCOME_KIND_ENUM)
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_income_amount_positive"),
        Index("ix_income_user_active", "user_id", "is_active"),
    )


class SavingsGoal(Base, TimestampMixin):
    __tablename__ = "savings_goals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    target_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    current_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    deadline: Mapped[Optional[date]] = mapped_column(Date)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    auto_contribution_cents: Mapped[Optional[int]] = mapped_column(Integer)
    category: Mapped[SavingsGoalCategory] = mapped_column(
        SAVINGS_GOAL_CATEGORY_ENUM,
        default=SavingsGoalCategory.custom,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint("target_cents >= 0", name="ck_goal_target_positive"),
        CheckConstraint("current_cents >= 0", name="ck_goal_current_positive"),
        Index("ix_goal_user_active", "user_id", "is_active"),
    )
