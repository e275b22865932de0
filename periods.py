import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from config import get_settings
from errors import ActivePeriodConflict, IllegalMutation, NotAuthenticated, NotFound
from models import (
    CORE_CATEGORIES,
    BudgetCategory,
    BudgetPeriod,
    category_color,
    category_icon,
)
from stores import CategoryStore, PeriodStore


logger = logging.getLogger(__name__)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    first = date(year, month, 1)
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return first, next_month - date.resolution


def local_now() -> datetime:
    return datetime.now(ZoneInfo(get_settings().timezone))


def resolve_user_id(user_id: Optional[int]) -> int:
    resolved = user_id if user_id is not None else get_settings().user_id
    if resolved is None:
        raise NotAuthenticated()
    return resolved


@dataclass(frozen=True)
class PeriodSummary:
    period: BudgetPeriod
    total_spent_cents: int
    category_count: int


class CategoryCarryOver:
    """Populates a period's categories.

    Flushes only; the caller commits together with the period change so a
    rollover is all-or-nothing.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self.categories = CategoryStore(session)

    def carry_over(
        self, from_period_id: int, to_period_id: int
    ) -> list[BudgetCategory]:
        copied: list[BudgetCategory] = []
        for source in self.categories.list_by_period(from_period_id):
            # spent_cents is left out so new rows start at 0 and a repeated
            # carry-over never wipes spend already recorded in the new period.
            copied.append(
                self.categories.upsert(
                    to_period_id,
                    source.category,
                    allocated_cents=source.allocated_cents,
                    color=source.color,
                    icon=source.icon,
                    is_custom=source.is_custom,
                )
            )
        logger.info(
            f"categories_carried_over: from={from_period_id} to={to_period_id} "
            f"count={len(copied)}"
        )
        return copied

    def seed_core_categories(self, period_id: int) -> list[BudgetCategory]:
        created = self._insert_missing_core(period_id)
        logger.info(f"core_categories_seeded: period={period_id} count={len(created)}")
        return created

    def ensure_core_categories(self, period_id: int) -> list[BudgetCategory]:
        created = self._insert_missing_core(period_id)
        if created:
            logger.info(
                f"core_categories_repaired: period={period_id} "
                f"added={[c.category for c in created]}"
            )
        return created

    def _insert_missing_core(self, period_id: int) -> list[BudgetCategory]:
        existing = {c.category for c in self.categories.list_by_period(period_id)}
        created: list[BudgetCategory] = []
        for name in CORE_CATEGORIES:
            if name in existing:
                continue
            created.append(
                self.categories.upsert(
                    period_id,
                    name,
                    allocated_cents=0,
                    spent_cents=0,
                    color=category_color(name),
                    icon=category_icon(name),
                    is_custom=False,
                )
            )
        return created


class PeriodManager:
    max_attempts = 2

    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = resolve_user_id(user_id)
        self.periods = PeriodStore(session)
        self.carry = CategoryCarryOver(session)

    def resolve_active_period(self, now: Optional[datetime] = None) -> BudgetPeriod:
        now = now or local_now()
        target = (now.year, now.month)
        for attempt in range(1, self.max_attempts + 1):
            try:
                period = self._resolve(*target)
                self.session.commit()
                return period
            except ActivePeriodConflict as exc:
                self.session.rollback()
                logger.warning(
                    f"period_conflict: user_id={self.user_id} attempt={attempt} "
                    f"detail={exc}"
                )
                existing = self.periods.get_active(self.user_id)
                if existing is not None and existing.year_month == target:
                    return existing
        raise ActivePeriodConflict(self.user_id, "could not settle the active period")

    def _resolve(self, year: int, month: int) -> BudgetPeriod:
        active = self.periods.get_active(self.user_id)
        if active is None:
            latest = self.periods.get_most_recent(self.user_id)
            if latest is not None:
                logger.warning(
                    f"period_reactivated: user_id={self.user_id} period={latest.id} "
                    f"month={latest.year}-{latest.month:02d}"
                )
                self.periods.activate(latest.id, self.user_id)
                active = latest
        if active is None:
            return self._start_period(year, month, previous=None)
        if active.year_month != (year, month):
            return self._start_period(year, month, previous=active)
        return active

    def _start_period(
        self, year: int, month: int, previous: Optional[BudgetPeriod]
    ) -> BudgetPeriod:
        # The old period must be inactive before the new one is written.
        if previous is not None:
            self.periods.deactivate(previous.id, self.user_id)

        existing = self.periods.get_for_month(self.user_id, year, month)
        if existing is not None:
            self.periods.activate(existing.id, self.user_id)
            logger.info(
                f"period_resumed: user_id={self.user_id} period={existing.id} "
                f"month={year}-{month:02d}"
            )
            return existing

        start, end = month_bounds(year, month)
        period = self.periods.insert(
            user_id=self.user_id,
            year=year,
            month=month,
            start_date=start,
            end_date=end,
            total_budget_cents=0,
            is_active=True,
        )
        if previous is not None:
            self.carry.carry_over(previous.id, period.id)
        else:
            self.carry.seed_core_categories(period.id)
        logger.info(
            f"period_started: user_id={self.user_id} period={period.id} "
            f"month={year}-{month:02d} previous={previous.id if previous else None}"
        )
        return period

    def get(self, period_id: int) -> BudgetPeriod:
        period = self.periods.get(period_id)
        if period is None or period.user_id != self.user_id:
            raise NotFound("Budget period not found")
        return period

    def ensure_core_categories(
        self, period_id: Optional[int] = None
    ) -> list[BudgetCategory]:
        if period_id is None:
            period = self.resolve_active_period()
        else:
            period = self.get(period_id)
        created = self.carry.ensure_core_categories(period.id)
        self.session.commit()
        return created

    def update_total_budget(
        self, period_id: int, total_budget_cents: Optional[int]
    ) -> BudgetPeriod:
        period = self.get(period_id)
        if not period.is_active:
            raise IllegalMutation("Only the active budget period can be edited")
        if total_budget_cents is not None and total_budget_cents < 0:
            raise ValueError("Total budget must not be negative")
        self.periods.update(period.id, total_budget_cents=total_budget_cents)
        self.session.commit()
        return period

    def list_history(self, limit: Optional[int] = None) -> list[PeriodSummary]:
        if limit is None:
            limit = get_settings().history_limit
        summaries: list[PeriodSummary] = []
        for period in self.periods.list_inactive(self.user_id, limit):
            categories = self.carry.categories.list_by_period(period.id)
            summaries.append(
                PeriodSummary(
                    period=period,
                    total_spent_cents=sum(c.spent_cents for c in categories),
                    category_count=len(categories),
                )
            )
        return summaries
