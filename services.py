from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from errors import IllegalMutation, NotFound
from health import (
    FinancialHealth,
    FinancialSummary,
    score,
    summarize,
    total_monthly_income,
)
from models import (
    BudgetCategory,
    BudgetPeriod,
    IncomeSource,
    SavingsGoal,
    Transaction,
    category_color,
    category_icon,
    is_core_category,
)
from periods import PeriodManager, resolve_user_id
from realtime import Snapshot
from schemas import (
    CategoryIn,
    CategoryRecord,
    IncomeSourceIn,
    PeriodRecord,
    SavingsGoalIn,
    TransactionIn,
    TransactionRecord,
)
from stores import CategoryStore, TransactionStore, store_operation


class LedgerService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = resolve_user_id(user_id)
        self.periods = PeriodManager(session, self.user_id)
        self.categories = CategoryStore(session)
        self.transactions = TransactionStore(session)

    def _writable_period(self, period_id: Optional[int]) -> BudgetPeriod:
        if period_id is None:
            return self.periods.resolve_active_period()
        period = self.periods.get(period_id)
        if not period.is_active:
            raise IllegalMutation("Superseded budget periods are read-only")
        return period

    def _new_category_fields(self, period_id: int, name: str) -> dict[str, object]:
        # A re-created name picks up the transactions that still carry it.
        spent = self.transactions.spent_by_category(period_id).get(name, 0)
        return {
            "spent_cents": spent,
            "color": category_color(name),
            "icon": category_icon(name),
            "is_custom": not is_core_category(name),
        }

    def _ensure_category(self, period_id: int, name: Optional[str]) -> None:
        if name is None or self.categories.get(period_id, name) is not None:
            return
        self.categories.upsert(
            period_id,
            name,
            allocated_cents=0,
            **self._new_category_fields(period_id, name),
        )

    def get_transaction(self, transaction_id: int) -> Transaction:
        txn = self.transactions.get(transaction_id)
        if txn is None or txn.user_id != self.user_id:
            raise NotFound("Transaction not found")
        return txn

    def add_transaction(
        self, data: TransactionIn, *, now: Optional[datetime] = None
    ) -> Transaction:
        period = self.periods.resolve_active_period(now)
        self._ensure_category(period.id, data.category)
        txn = self.transactions.insert(
            user_id=self.user_id,
            period_id=period.id,
            category=data.category,
            amount_cents=data.amount_cents,
            description=data.description,
            merchant=data.merchant,
            transaction_date=data.transaction_date,
        )
        if data.category is not None:
            self.categories.adjust_spent(period.id, data.category, data.amount_cents)
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def update_transaction(
        self, transaction_id: int, data: TransactionIn
    ) -> Transaction:
        txn = self.get_transaction(transaction_id)
        self._writable_period(txn.period_id)
        old_category = txn.category
        old_amount = txn.amount_cents

        self._ensure_category(txn.period_id, data.category)
        self.transactions.update(
            txn.id,
            category=data.category,
            amount_cents=data.amount_cents,
            description=data.description,
            merchant=data.merchant,
            transaction_date=data.transaction_date,
        )
        if old_category is not None:
            self.categories.adjust_spent(txn.period_id, old_category, -old_amount)
        if data.category is not None:
            self.categories.adjust_spent(
                txn.period_id, data.category, data.amount_cents
            )
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def delete_transaction(self, transaction_id: int) -> None:
        txn = self.get_transaction(transaction_id)
        self._writable_period(txn.period_id)
        period_id, category, amount = txn.period_id, txn.category, txn.amount_cents
        self.transactions.delete(txn.id)
        if category is not None:
            self.categories.adjust_spent(period_id, category, -amount)
        self.session.commit()

    def upsert_category(
        self, data: CategoryIn, period_id: Optional[int] = None
    ) -> BudgetCategory:
        period = self._writable_period(period_id)
        fields: dict[str, object] = {"allocated_cents": data.allocated_cents}
        if data.color is not None:
            fields["color"] = data.color
        if data.icon is not None:
            fields["icon"] = data.icon
        if self.categories.get(period.id, data.category) is None:
            fields = {**self._new_category_fields(period.id, data.category), **fields}
        category = self.categories.upsert(period.id, data.category, **fields)
        self.session.commit()
        return category

    def delete_category(self, name: str, period_id: Optional[int] = None) -> None:
        if is_core_category(name):
            raise IllegalMutation("Cannot delete core budget categories")
        period = self._writable_period(period_id)
        if not self.categories.delete(period.id, name):
            raise NotFound("Category not found")
        self.session.commit()

    def snapshot(self, period_id: Optional[int] = None) -> Snapshot:
        if period_id is None:
            period = self.periods.resolve_active_period()
        else:
            period = self.periods.get(period_id)
        return Snapshot(
            period=PeriodRecord.model_validate(period),
            categories=tuple(
                CategoryRecord.model_validate(row)
                for row in self.categories.list_by_period(period.id)
            ),
            transactions=tuple(
                TransactionRecord.model_validate(row)
                for row in self.transactions.list_by_period(period.id)
            ),
        )


class IncomeSourceService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = resolve_user_id(user_id)

    def list_all(self, include_inactive: bool = False) -> list[IncomeSource]:
        stmt = (
            select(IncomeSource)
            .where(IncomeSource.user_id == self.user_id)
            .order_by(IncomeSource.start_date, IncomeSource.id)
        )
        if not include_inactive:
            stmt = stmt.where(IncomeSource.is_active.is_(True))
        with store_operation("income_sources.list"):
            return list(self.session.scalars(stmt).all())

    def create(self, data: IncomeSourceIn) -> IncomeSource:
        source = IncomeSource(user_id=self.user_id, **data.model_dump())
        with store_operation("income_sources.insert"):
            self.session.add(source)
            self.session.commit()
        self.session.refresh(source)
        return source

    def deactivate(self, source_id: int) -> None:
        source = self.session.get(IncomeSource, source_id)
        if not source or source.user_id != self.user_id:
            raise NotFound("Income source not found")
        source.is_active = False
        self.session.commit()

    def monthly_total_cents(self) -> float:
        return total_monthly_income(self.list_all())


class SavingsGoalService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = resolve_user_id(user_id)

    def get(self, goal_id: int) -> SavingsGoal:
        goal = self.session.get(SavingsGoal, goal_id)
        if not goal or goal.user_id != self.user_id:
            raise NotFound("Savings goal not found")
        return goal

    def list_all(self, include_inactive: bool = False) -> list[SavingsGoal]:
        stmt = (
            select(SavingsGoal)
            .where(SavingsGoal.user_id == self.user_id)
            .order_by(SavingsGoal.priority, SavingsGoal.id)
        )
        if not include_inactive:
            stmt = stmt.where(SavingsGoal.is_active.is_(True))
        with store_operation("savings_goals.list"):
            return list(self.session.scalars(stmt).all())

    def create(self, data: SavingsGoalIn) -> SavingsGoal:
        goal = SavingsGoal(user_id=self.user_id, **data.model_dump())
        with store_operation("savings_goals.insert"):
            self.session.add(goal)
            self.session.commit()
        self.session.refresh(goal)
        return goal

    def contribute(self, goal_id: int, amount_cents: int) -> SavingsGoal:
        if amount_cents <= 0:
            raise ValueError("Contribution must be positive")
        goal = self.get(goal_id)
        goal.current_cents += amount_cents
        self.session.commit()
        return goal

    def deactivate(self, goal_id: int) -> None:
        goal = self.get(goal_id)
        goal.is_active = False
        self.session.commit()


@dataclass(frozen=True)
class HealthReport:
    summary: FinancialSummary
    health: FinancialHealth


class HealthService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = resolve_user_id(user_id)

    def report(self, today: Optional[date] = None) -> HealthReport:
        period = PeriodManager(self.session, self.user_id).resolve_active_period()
        categories = CategoryStore(self.session).list_by_period(period.id)
        sources = IncomeSourceService(self.session, self.user_id).list_all(
            include_inactive=True
        )
        goals = SavingsGoalService(self.session, self.user_id).list_all(
            include_inactive=True
        )
        summary = summarize(sources, categories, goals, today)
        return HealthReport(
            summary=summary,
            health=score(summary, goals, summary.total_budgeted_cents),
        )
