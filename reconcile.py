"""Repairs the cached ``spent_cents`` of budget categories.

The transaction ledger is the only source of truth for spend. A category's
``spent_cents`` is a cache of ``SUM(amount_cents)`` over the period's
transactions carrying that category name; uncategorized transactions count
toward no category and are reported on their own.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from errors import NotFound
from periods import resolve_user_id
from stores import CategoryStore, PeriodStore, TransactionStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CategoryDiff:
    category: str
    allocated_cents: int
    stored_spent_cents: int
    actual_spent_cents: int

    @property
    def is_correct(self) -> bool:
        return self.stored_spent_cents == self.actual_spent_cents

    @property
    def drift_cents(self) -> int:
        return self.stored_spent_cents - self.actual_spent_cents


@dataclass(frozen=True)
class ReconcileResult:
    period_id: int
    checked: int
    fixed: list[CategoryDiff]
    uncategorized_spent_cents: int

    @property
    def changed(self) -> bool:
        return bool(self.fixed)


@dataclass(frozen=True)
class BreakdownTransaction:
    id: int
    amount_cents: int
    description: str
    transaction_date: date


@dataclass(frozen=True)
class CategoryBreakdown:
    diff: CategoryDiff
    transactions: list[BreakdownTransaction] = field(default_factory=list)


@dataclass(frozen=True)
class SpendingBreakdown:
    period_id: int
    categories: list[CategoryBreakdown]
    total_stored_spent_cents: int
    total_actual_spent_cents: int
    uncategorized_spent_cents: int
    transaction_count: int


class AggregateReconciler:
    def __init__(self, session: Session) -> None:
        self.session = session
        self.periods = PeriodStore(session)
        self.categories = CategoryStore(session)
        self.transactions = TransactionStore(session)

    def diff_report(self, period_id: int) -> list[CategoryDiff]:
        actual = self.transactions.spent_by_category(period_id)
        return [
            CategoryDiff(
                category=row.category,
                allocated_cents=row.allocated_cents,
                stored_spent_cents=row.spent_cents,
                actual_spent_cents=actual.get(row.category, 0),
            )
            for row in self.categories.list_by_period(period_id)
        ]

    def recalculate(self, period_id: int) -> ReconcileResult:
        actual = self.transactions.spent_by_category(period_id)
        rows = self.categories.list_by_period(period_id)
        fixed: list[CategoryDiff] = []
        for row in rows:
            diff = CategoryDiff(
                category=row.category,
                allocated_cents=row.allocated_cents,
                stored_spent_cents=row.spent_cents,
                actual_spent_cents=actual.get(row.category, 0),
            )
            if diff.is_correct:
                continue
            self.categories.upsert(
                period_id, row.category, spent_cents=diff.actual_spent_cents
            )
            fixed.append(diff)
            logger.info(
                f"spent_repaired: period={period_id} category={row.category} "
                f"stored={diff.stored_spent_cents} actual={diff.actual_spent_cents}"
            )
        self.session.commit()

        uncategorized = actual.get(None, 0)
        logger.info(
            f"reconcile_done: period={period_id} checked={len(rows)} "
            f"fixed={len(fixed)} uncategorized={uncategorized}"
        )
        return ReconcileResult(
            period_id=period_id,
            checked=len(rows),
            fixed=fixed,
            uncategorized_spent_cents=uncategorized,
        )

    def recalculate_active(self, user_id: Optional[int] = None) -> ReconcileResult:
        uid = resolve_user_id(user_id)
        period = self.periods.get_active(uid)
        if period is None:
            raise NotFound("No active budget period found")
        return self.recalculate(period.id)

    def spending_breakdown(self, period_id: int) -> SpendingBreakdown:
        txns = self.transactions.list_by_period(period_id)
        by_category: dict[str, list[BreakdownTransaction]] = {}
        for txn in txns:
            if txn.category is None:
                continue
            by_category.setdefault(txn.category, []).append(
                BreakdownTransaction(
                    id=txn.id,
                    amount_cents=txn.amount_cents,
                    description=txn.description,
                    transaction_date=txn.transaction_date,
                )
            )

        diffs = self.diff_report(period_id)
        uncategorized = sum(t.amount_cents for t in txns if t.category is None)
        return SpendingBreakdown(
            period_id=period_id,
            categories=[
                CategoryBreakdown(diff=d, transactions=by_category.get(d.category, []))
                for d in diffs
            ],
            total_stored_spent_cents=sum(d.stored_spent_cents for d in diffs),
            total_actual_spent_cents=sum(
                t.amount_cents for t in txns if t.category is not None
            ),
            uncategorized_spent_cents=uncategorized,
            transaction_count=len(txns),
        )
