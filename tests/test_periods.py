from datetime import date, datetime

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session

import periods
from config import Settings
from database import Base
from errors import ActivePeriodConflict, IllegalMutation, NotAuthenticated
from models import CORE_CATEGORIES, BudgetPeriod
from periods import PeriodManager, month_bounds
from stores import CategoryStore, PeriodStore


def make_session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def active_count(session: Session, user_id: int = 1) -> int:
    return session.execute(
        select(func.count(BudgetPeriod.id)).where(
            BudgetPeriod.user_id == user_id, BudgetPeriod.is_active.is_(True)
        )
    ).scalar_one()


def period_count(session: Session, user_id: int = 1) -> int:
    return session.execute(
        select(func.count(BudgetPeriod.id)).where(BudgetPeriod.user_id == user_id)
    ).scalar_one()


class StaleReadPeriodStore(PeriodStore):
    """Answers the first active-period lookup with an outdated row."""

    def __init__(self, session: Session, stale: BudgetPeriod) -> None:
        super().__init__(session)
        self._stale = stale

    def get_active(self, user_id: int):
        if self._stale is not None:
            stale, self._stale = self._stale, None
            return stale
        return super().get_active(user_id)


class RacingPeriodStore(PeriodStore):
    """Lets another session win the race right before this one inserts."""

    def __init__(self, session: Session, before_insert) -> None:
        super().__init__(session)
        self._before_insert = before_insert

    def insert(self, **fields):
        if self._before_insert is not None:
            hook, self._before_insert = self._before_insert, None
            hook()
        return super().insert(**fields)


def test_month_bounds_handles_december_and_leap_years() -> None:
    assert month_bounds(2025, 12) == (date(2025, 12, 1), date(2025, 12, 31))
    assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))


def test_first_period_seeds_core_categories() -> None:
    session = make_session()
    manager = PeriodManager(session, user_id=1)

    period = manager.resolve_active_period(datetime(2025, 1, 15, 9, 30))

    assert (period.year, period.month) == (2025, 1)
    assert period.start_date == date(2025, 1, 1)
    assert period.end_date == date(2025, 1, 31)
    assert period.is_active

    categories = CategoryStore(session).list_by_period(period.id)
    assert sorted(c.category for c in categories) == sorted(CORE_CATEGORIES)
    assert all(c.allocated_cents == 0 and c.spent_cents == 0 for c in categories)
    assert not any(c.is_custom for c in categories)


def test_same_month_reuses_the_active_period() -> None:
    session = make_session()
    manager = PeriodManager(session, user_id=1)

    first = manager.resolve_active_period(datetime(2025, 3, 1, 0, 5))
    second = manager.resolve_active_period(datetime(2025, 3, 31, 23, 59))

    assert first.id == second.id
    assert period_count(session) == 1


def test_rollover_carries_allocations_and_resets_spend() -> None:
    session = make_session()
    manager = PeriodManager(session, user_id=1)
    january = manager.resolve_active_period(datetime(2025, 1, 20))

    categories = CategoryStore(session)
    categories.upsert(
        january.id, "groceries", allocated_cents=40_000, spent_cents=25_000
    )
    categories.upsert(
        january.id, "pets", allocated_cents=5_000, spent_cents=1_000, is_custom=True
    )
    session.commit()

    february = manager.resolve_active_period(datetime(2025, 2, 1, 8, 0))

    assert february.id != january.id
    session.refresh(january)
    assert not january.is_active
    assert february.is_active

    rows = {c.category: c for c in categories.list_by_period(february.id)}
    assert rows["groceries"].allocated_cents == 40_000
    assert rows["groceries"].spent_cents == 0
    assert rows["pets"].allocated_cents == 5_000
    assert rows["pets"].spent_cents == 0
    assert rows["pets"].is_custom
    assert set(rows) == {c.category for c in categories.list_by_period(january.id)}


def test_single_active_period_across_month_sequence() -> None:
    session = make_session()
    manager = PeriodManager(session, user_id=1)
    other_user = PeriodManager(session, user_id=2)

    moments = [
        datetime(2025, 11, 3),
        datetime(2025, 11, 28),
        datetime(2025, 12, 31, 23, 59),
        datetime(2026, 1, 1, 0, 0),
        datetime(2026, 1, 15),
        datetime(2026, 2, 2),
    ]
    for moment in moments:
        manager.resolve_active_period(moment)
        other_user.resolve_active_period(moment)
        assert active_count(session, 1) == 1
        assert active_count(session, 2) == 1

    assert period_count(session, 1) == 4
    active = PeriodStore(session).get_active(1)
    assert active.year_month == (2026, 2)


def test_missing_active_flag_reactivates_most_recent_period() -> None:
    session = make_session()
    manager = PeriodManager(session, user_id=1)
    period = manager.resolve_active_period(datetime(2025, 5, 2))
    period.is_active = False
    session.commit()

    resolved = manager.resolve_active_period(datetime(2025, 5, 20))

    assert resolved.id == period.id
    assert resolved.is_active
    assert period_count(session) == 1


def test_reactivated_old_period_rolls_forward() -> None:
    session = make_session()
    manager = PeriodManager(session, user_id=1)
    january = manager.resolve_active_period(datetime(2025, 1, 5))
    CategoryStore(session).upsert(january.id, "housing", allocated_cents=120_000)
    january.is_active = False
    session.commit()

    march = manager.resolve_active_period(datetime(2025, 3, 5))

    assert march.year_month == (2025, 3)
    assert active_count(session) == 1
    assert period_count(session) == 2
    housing = CategoryStore(session).get(march.id, "housing")
    assert housing.allocated_cents == 120_000


def test_conflicting_rollover_rereads_winner() -> None:
    session = make_session()
    manager = PeriodManager(session, user_id=1)
    january = manager.resolve_active_period(datetime(2025, 1, 10))
    february = manager.resolve_active_period(datetime(2025, 2, 10))

    # Another tab already rolled over; this caller still sees January.
    manager.periods = StaleReadPeriodStore(session, stale=january)
    resolved = manager.resolve_active_period(datetime(2025, 2, 11))

    assert resolved.id == february.id
    assert active_count(session) == 1
    assert period_count(session) == 2


def test_store_rejects_second_active_period() -> None:
    session = make_session()
    store = PeriodStore(session)
    start, end = month_bounds(2025, 4)
    store.insert(user_id=1, year=2025, month=4, start_date=start, end_date=end)

    start, end = month_bounds(2025, 5)
    with pytest.raises(ActivePeriodConflict):
        store.insert(user_id=1, year=2025, month=5, start_date=start, end_date=end)


def test_missing_identity_is_rejected(monkeypatch) -> None:
    monkeypatch.setattr(
        periods,
        "get_settings",
        lambda: Settings(
            database_url="sqlite://",
            timezone="UTC",
            user_id=None,
            history_limit=12,
            maintenance_hour=0,
            maintenance_minute=5,
        ),
    )
    session = make_session()
    with pytest.raises(NotAuthenticated):
        PeriodManager(session)


def test_total_budget_is_editable_only_on_active_period() -> None:
    session = make_session()
    manager = PeriodManager(session, user_id=1)
    june = manager.resolve_active_period(datetime(2025, 6, 1))
    updated = manager.update_total_budget(june.id, 350_000)
    assert updated.total_budget_cents == 350_000

    manager.resolve_active_period(datetime(2025, 7, 1))
    with pytest.raises(IllegalMutation):
        manager.update_total_budget(june.id, 1)


def test_history_lists_superseded_periods_newest_first() -> None:
    session = make_session()
    manager = PeriodManager(session, user_id=1)
    january = manager.resolve_active_period(datetime(2025, 1, 1))
    CategoryStore(session).upsert(january.id, "dining", spent_cents=4_500)
    session.commit()
    manager.resolve_active_period(datetime(2025, 2, 1))
    manager.resolve_active_period(datetime(2025, 3, 1))

    history = manager.list_history()

    assert [h.period.year_month for h in history] == [(2025, 2), (2025, 1)]
    assert history[1].total_spent_cents == 4_500
    assert history[1].category_count == len(CORE_CATEGORIES)
    assert len(manager.list_history(limit=1)) == 1
    assert manager.list_history(limit=0) == []


def test_concurrent_first_resolution_settles_on_one_period(tmp_path) -> None:
    engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(engine)
    moment = datetime(2025, 3, 4)
    winner: dict[str, int] = {}

    with Session(engine) as first, Session(engine) as second:

        def other_tab_wins() -> None:
            period = PeriodManager(first, user_id=1).resolve_active_period(moment)
            winner["id"] = period.id

        manager = PeriodManager(second, user_id=1)
        manager.periods = RacingPeriodStore(second, before_insert=other_tab_wins)
        resolved = manager.resolve_active_period(moment)

        assert resolved.id == winner["id"]
        assert resolved.is_active
        assert active_count(second) == 1
        assert period_count(second) == 1
        names = [c.category for c in CategoryStore(second).list_by_period(resolved.id)]
        assert sorted(names) == sorted(CORE_CATEGORIES)
    engine.dispose()
