"""Session-bound stores for periods, categories and transactions.

Stores flush but never commit; the calling service owns the unit of work.
Database errors surface as ``StoreUnavailable`` tagged with the store call,
except uniqueness violations while activating a period, which surface as
``ActivePeriodConflict`` so the caller can re-read instead of failing.
"""

from contextlib import contextmanager
from datetime import date
from typing import Iterator, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from errors import ActivePeriodConflict, NotFound, StoreUnavailable
from models import BudgetCategory, BudgetPeriod, Transaction


@contextmanager
def store_operation(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        raise StoreUnavailable(operation, exc) from exc


@contextmanager
def period_activation(operation: str, user_id: int) -> Iterator[None]:
    try:
        yield
    except IntegrityError as exc:
        raise ActivePeriodConflict(user_id, operation) from exc
    except SQLAlchemyError as exc:
        raise StoreUnavailable(operation, exc) from exc


class PeriodStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, period_id: int) -> Optional[BudgetPeriod]:
        with store_operation("periods.get"):
            return self.session.get(BudgetPeriod, period_id)

    def get_active(self, user_id: int) -> Optional[BudgetPeriod]:
        stmt = select(BudgetPeriod).where(
            BudgetPeriod.user_id == user_id, BudgetPeriod.is_active.is_(True)
        )
        with store_operation("periods.get_active"):
            return self.session.scalars(stmt).first()

    def get_most_recent(self, user_id: int) -> Optional[BudgetPeriod]:
        stmt = (
            select(BudgetPeriod)
            .where(BudgetPeriod.user_id == user_id)
            .order_by(BudgetPeriod.created_at.desc(), BudgetPeriod.id.desc())
            .limit(1)
        )
        with store_operation("periods.get_most_recent"):
            return self.session.scalars(stmt).first()

    def insert(
        self,
        *,
        user_id: int,
        year: int,
        month: int,
        start_date: date,
        end_date: date,
        total_budget_cents: Optional[int] = 0,
        is_active: bool = True,
    ) -> BudgetPeriod:
        period = BudgetPeriod(
            user_id=user_id,
            year=year,
            month=month,
            start_date=start_date,
            end_date=end_date,
            total_budget_cents=total_budget_cents,
            is_active=is_active,
        )
        with period_activation("periods.insert", user_id):
            self.session.add(period)
            self.session.flush()
        return period

    def get_for_month(
        self, user_id: int, year: int, month: int
    ) -> Optional[BudgetPeriod]:
        stmt = select(BudgetPeriod).where(
            BudgetPeriod.user_id == user_id,
            BudgetPeriod.year == year,
            BudgetPeriod.month == month,
        )
        with store_operation("periods.get_for_month"):
            return self.session.scalars(stmt).first()

    def update(self, period_id: int, **fields: object) -> BudgetPeriod:
        period = self.get(period_id)
        if period is None:
            raise NotFound("Budget period not found")
        with store_operation("periods.update"):
            for name, value in fields.items():
                setattr(period, name, value)
            self.session.flush()
        return period

    def deactivate(self, period_id: int, user_id: int) -> None:
        # Compare-and-set: only a period that is still active may be superseded.
        stmt = (
            update(BudgetPeriod)
            .where(
                BudgetPeriod.id == period_id,
                BudgetPeriod.user_id == user_id,
                BudgetPeriod.is_active.is_(True),
            )
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )
        with store_operation("periods.deactivate"):
            result = self.session.execute(stmt)
        if result.rowcount == 0:
            raise ActivePeriodConflict(
                user_id, f"period {period_id} was already superseded"
            )

    def activate(self, period_id: int, user_id: int) -> None:
        stmt = (
            update(BudgetPeriod)
            .where(BudgetPeriod.id == period_id, BudgetPeriod.user_id == user_id)
            .values(is_active=True)
            .execution_options(synchronize_session="fetch")
        )
        with period_activation("periods.activate", user_id):
            self.session.execute(stmt)

    def list_inactive(
        self, user_id: int, limit: Optional[int] = None
    ) -> list[BudgetPeriod]:
        stmt = (
            select(BudgetPeriod)
            .where(BudgetPeriod.user_id == user_id, BudgetPeriod.is_active.is_(False))
            .order_by(BudgetPeriod.year.desc(), BudgetPeriod.month.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        with store_operation("periods.list_inactive"):
            return list(self.session.scalars(stmt).all())

    def active_user_ids(self) -> list[int]:
        stmt = (
            select(BudgetPeriod.user_id)
            .where(BudgetPeriod.is_active.is_(True))
            .distinct()
            .order_by(BudgetPeriod.user_id)
        )
        with store_operation("periods.active_user_ids"):
            return list(self.session.scalars(stmt).all())


class CategoryStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, period_id: int, name: str) -> Optional[BudgetCategory]:
        stmt = select(BudgetCategory).where(
            BudgetCategory.period_id == period_id, BudgetCategory.category == name
        )
        with store_operation("categories.get"):
            return self.session.scalars(stmt).first()

    def list_by_period(self, period_id: int) -> list[BudgetCategory]:
        stmt = (
            select(BudgetCategory)
            .where(BudgetCategory.period_id == period_id)
            .order_by(BudgetCategory.category)
        )
        with store_operation("categories.list_by_period"):
            return list(self.session.scalars(stmt).all())

    def upsert(self, period_id: int, name: str, **fields: object) -> BudgetCategory:
        category = self.get(period_id, name)
        with store_operation("categories.upsert"):
            if category is None:
                category = BudgetCategory(period_id=period_id, category=name)
                fields.setdefault("allocated_cents", 0)
                fields.setdefault("spent_cents", 0)
                fields.setdefault("is_custom", False)
                self.session.add(category)
            for field_name, value in fields.items():
                setattr(category, field_name, value)
            self.session.flush()
        return category

    def adjust_spent(self, period_id: int, name: str, delta_cents: int) -> None:
        if not delta_cents:
            return
        stmt = (
            update(BudgetCategory)
            .where(
                BudgetCategory.period_id == period_id,
                BudgetCategory.category == name,
            )
            .values(spent_cents=BudgetCategory.spent_cents + delta_cents)
            .execution_options(synchronize_session="fetch")
        )
        with store_operation("categories.adjust_spent"):
            self.session.execute(stmt)

    def delete(self, period_id: int, name: str) -> bool:
        stmt = delete(BudgetCategory).where(
            BudgetCategory.period_id == period_id, BudgetCategory.category == name
        )
        with store_operation("categories.delete"):
            result = self.session.execute(
                stmt.execution_options(synchronize_session="fetch")
            )
        return result.rowcount > 0


class TransactionStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, transaction_id: int) -> Optional[Transaction]:
        with store_operation("transactions.get"):
            return self.session.get(Transaction, transaction_id)

    def list_by_period(self, period_id: int) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.period_id == period_id)
            .order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
        )
        with store_operation("transactions.list_by_period"):
            return list(self.session.scalars(stmt).all())

    def insert(self, **fields: object) -> Transaction:
        txn = Transaction(**fields)
        with store_operation("transactions.insert"):
            self.session.add(txn)
            self.session.flush()
        return txn

    def update(self, transaction_id: int, **fields: object) -> Transaction:
        txn = self.get(transaction_id)
        if txn is None:
            raise NotFound("Transaction not found")
        with store_operation("transactions.update"):
            for name, value in fields.items():
                setattr(txn, name, value)
            self.session.flush()
        return txn

    def delete(self, transaction_id: int) -> Optional[Transaction]:
        txn = self.get(transaction_id)
        if txn is None:
            return None
        with store_operation("transactions.delete"):
            self.session.delete(txn)
            self.session.flush()
        return txn

    def spent_by_category(self, period_id: int) -> dict[Optional[str], int]:
        stmt = (
            select(
                Transaction.category,
                func.coalesce(func.sum(Transaction.amount_cents), 0).label("spent"),
            )
            .where(Transaction.period_id == period_id)
            .group_by(Transaction.category)
        )
        with store_operation("transactions.spent_by_category"):
            rows = self.session.execute(stmt).all()
        return {row.category: int(row.spent or 0) for row in rows}
