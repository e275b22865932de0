from datetime import date, datetime

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session

from database import Base
from errors import NotFound, StoreUnavailable
from periods import PeriodManager
from reconcile import AggregateReconciler
from stores import CategoryStore, TransactionStore


def make_session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def seed_drifted_period(session: Session):
    period = PeriodManager(session, user_id=1).resolve_active_period(
        datetime(2025, 2, 10)
    )
    categories = CategoryStore(session)
    categories.upsert(period.id, "groceries", allocated_cents=40_000, spent_cents=99)
    categories.upsert(period.id, "dining", allocated_cents=15_000, spent_cents=3_000)
    categories.upsert(period.id, "housing", allocated_cents=120_000, spent_cents=0)

    txns = TransactionStore(session)
    for amount, category in (
        (4_250, "groceries"),
        (6_100, "groceries"),
        (-1_000, "groceries"),
        (3_000, "dining"),
        (2_500, None),
    ):
        txns.insert(
            user_id=1,
            period_id=period.id,
            category=category,
            amount_cents=amount,
            description="seed",
            transaction_date=date(2025, 2, 5),
        )
    session.commit()
    return period


def test_diff_report_flags_drifted_categories() -> None:
    session = make_session()
    period = seed_drifted_period(session)

    diffs = AggregateReconciler(session).diff_report(period.id)
    report = {d.category: d for d in diffs}

    assert report["groceries"].actual_spent_cents == 9_350
    assert report["groceries"].drift_cents == 99 - 9_350
    assert not report["groceries"].is_correct
    assert report["dining"].is_correct
    assert report["housing"].actual_spent_cents == 0


def test_recalculate_converges_and_is_a_fixed_point() -> None:
    session = make_session()
    period = seed_drifted_period(session)
    reconciler = AggregateReconciler(session)

    first = reconciler.recalculate(period.id)

    assert [d.category for d in first.fixed] == ["groceries"]
    assert first.uncategorized_spent_cents == 2_500
    assert first.changed
    assert all(d.is_correct for d in reconciler.diff_report(period.id))

    categories = CategoryStore(session)
    assert categories.get(period.id, "groceries").spent_cents == 9_350
    assert categories.get(period.id, "groceries").allocated_cents == 40_000
    assert categories.get(period.id, "housing").allocated_cents == 120_000

    second = reconciler.recalculate(period.id)
    assert second.fixed == []
    assert not second.changed
    assert second.checked == first.checked


def test_category_without_transactions_is_reset_to_zero() -> None:
    session = make_session()
    period = seed_drifted_period(session)
    CategoryStore(session).upsert(period.id, "utilities", spent_cents=7_777)
    session.commit()

    result = AggregateReconciler(session).recalculate(period.id)

    assert "utilities" in [d.category for d in result.fixed]
    assert CategoryStore(session).get(period.id, "utilities").spent_cents == 0


def test_recalculate_active_uses_the_active_period() -> None:
    session = make_session()
    period = seed_drifted_period(session)

    result = AggregateReconciler(session).recalculate_active(user_id=1)

    assert result.period_id == period.id
    with pytest.raises(NotFound):
        AggregateReconciler(session).recalculate_active(user_id=2)


def test_spending_breakdown_groups_transactions() -> None:
    session = make_session()
    period = seed_drifted_period(session)

    breakdown = AggregateReconciler(session).spending_breakdown(period.id)

    by_name = {c.diff.category: c for c in breakdown.categories}
    assert len(by_name["groceries"].transactions) == 3
    assert by_name["housing"].transactions == []
    assert breakdown.total_actual_spent_cents == 12_350
    assert breakdown.uncategorized_spent_cents == 2_500
    assert breakdown.transaction_count == 5


def test_store_failure_is_tagged_with_operation() -> None:
    session = make_session()
    period = seed_drifted_period(session)
    session.execute(text("DROP TABLE transactions"))

    with pytest.raises(StoreUnavailable) as excinfo:
        AggregateReconciler(session).diff_report(period.id)

    assert excinfo.value.operation == "transactions.spent_by_category"
