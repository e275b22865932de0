import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session

from config import get_settings
from database import session_scope
from errors import StoreUnavailable
from periods import PeriodManager
from reconcile import AggregateReconciler
from stores import PeriodStore


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@dataclass
class MaintenanceReport:
    users: int = 0
    rollovers: int = 0
    repaired_categories: int = 0
    failures: list[int] = field(default_factory=list)


def run_maintenance(
    session: Session, now: Optional[datetime] = None
) -> MaintenanceReport:
    """Rolls every active user into the current month and repairs drift."""
    report = MaintenanceReport()
    reconciler = AggregateReconciler(session)
    for user_id in PeriodStore(session).active_user_ids():
        report.users += 1
        try:
            manager = PeriodManager(session, user_id)
            before = manager.periods.get_active(user_id)
            before_id = before.id if before else None
            period = manager.resolve_active_period(now)
            if period.id != before_id:
                report.rollovers += 1
            result = reconciler.recalculate(period.id)
            report.repaired_categories += len(result.fixed)
        except StoreUnavailable as exc:
            session.rollback()
            report.failures.append(user_id)
            logger.error(
                f"maintenance_failed: user_id={user_id} operation={exc.operation}"
            )
    return report


class SchedulerManager:
    def __init__(self) -> None:
        settings = get_settings()
        self.settings = settings
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def _run_job(self, source: str = "manual") -> None:
        logger.info(f"scheduler_run: source={source}")
        with session_scope() as session:
            report = run_maintenance(session)
        logger.info(
            f"scheduler_run: source={source} users={report.users} "
            f"rollovers={report.rollovers} repaired={report.repaired_categories} "
            f"failures={len(report.failures)}"
        )

    def start(self) -> None:
        self._run_job("startup")

        trigger = CronTrigger(
            hour=self.settings.maintenance_hour,
            minute=self.settings.maintenance_minute,
        )
        self.scheduler.add_job(
            self._run_job,
            trigger,
            args=["daily_maintenance"],
            id="period_maintenance",
            replace_existing=True,
            misfire_grace_time=3600,
        )

        self.scheduler.start()
        hour = self.settings.maintenance_hour
        minute = self.settings.maintenance_minute
        logger.info(f"Scheduler started, maintenance at {hour:02d}:{minute:02d}")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")


def main() -> None:
    manager = SchedulerManager()
    manager.start()
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        manager.stop()


if __name__ == "__main__":
    main()
