"""Pure merge of push-update events into a client-held snapshot.

Optimistic local writes go through the same reducers as echoed events, so a
write that is applied locally and later echoed back lands exactly once.
Nothing here raises: malformed events are dropped and the caller can always
fall back to a full re-fetch.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Any, Optional, Union

from pydantic import ValidationError

from schemas import (
    CategoryDeleteEvent,
    CategoryRecord,
    CategoryUpsertEvent,
    PeriodEvent,
    PeriodRecord,
    RealtimeEvent,
    TransactionDeleteEvent,
    TransactionRecord,
    TransactionUpsertEvent,
    realtime_event_adapter,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    period: Optional[PeriodRecord] = None
    categories: tuple[CategoryRecord, ...] = ()
    transactions: tuple[TransactionRecord, ...] = ()

    @property
    def period_id(self) -> Optional[int]:
        return self.period.id if self.period else None

    def normalized(self) -> "Snapshot":
        """Orders rows the way a store re-fetch returns them."""
        return replace(
            self,
            categories=tuple(sorted(self.categories, key=lambda c: c.category)),
            transactions=tuple(
                sorted(
                    self.transactions,
                    key=lambda t: (t.transaction_date, t.id),
                    reverse=True,
                )
            ),
        )

    def category(self, name: str) -> Optional[CategoryRecord]:
        for row in self.categories:
            if row.category == name:
                return row
        return None


def _tracks(snapshot: Snapshot, period_id: int) -> bool:
    return snapshot.period is None or snapshot.period.id == period_id


def add_transaction(snapshot: Snapshot, txn: TransactionRecord) -> Snapshot:
    if not _tracks(snapshot, txn.period_id):
        return snapshot
    if any(t.id == txn.id for t in snapshot.transactions):
        return snapshot
    return replace(snapshot, transactions=(txn,) + snapshot.transactions)


def replace_transaction(snapshot: Snapshot, txn: TransactionRecord) -> Snapshot:
    if not any(t.id == txn.id for t in snapshot.transactions):
        return snapshot
    if not _tracks(snapshot, txn.period_id):
        return remove_transaction(snapshot, txn.id)
    return replace(
        snapshot,
        transactions=tuple(
            txn if t.id == txn.id else t for t in snapshot.transactions
        ),
    )


def remove_transaction(snapshot: Snapshot, transaction_id: int) -> Snapshot:
    kept = tuple(t for t in snapshot.transactions if t.id != transaction_id)
    if len(kept) == len(snapshot.transactions):
        return snapshot
    return replace(snapshot, transactions=kept)


def upsert_category(snapshot: Snapshot, category: CategoryRecord) -> Snapshot:
    if not _tracks(snapshot, category.period_id):
        return snapshot
    key = (category.period_id, category.category)
    found = False
    rows: list[CategoryRecord] = []
    for row in snapshot.categories:
        if (row.period_id, row.category) == key:
            rows.append(category)
            found = True
        else:
            rows.append(row)
    if not found:
        rows.append(category)
    return replace(snapshot, categories=tuple(rows))


def remove_category(snapshot: Snapshot, period_id: int, name: str) -> Snapshot:
    kept = tuple(
        row
        for row in snapshot.categories
        if (row.period_id, row.category) != (period_id, name)
    )
    if len(kept) == len(snapshot.categories):
        return snapshot
    return replace(snapshot, categories=kept)


def replace_period(snapshot: Snapshot, period: PeriodRecord) -> Snapshot:
    # A tab still subscribed to a superseded period must not overwrite state.
    if snapshot.period is None or snapshot.period.id != period.id:
        return snapshot
    return replace(snapshot, period=period)


def parse_event(raw: Any) -> Optional[RealtimeEvent]:
    try:
        return realtime_event_adapter.validate_python(raw)
    except ValidationError as exc:
        logger.debug(f"realtime_event_dropped: errors={exc.error_count()}")
        return None


def apply(
    snapshot: Snapshot, event: Union[RealtimeEvent, Mapping[str, Any]]
) -> Snapshot:
    if isinstance(event, Mapping):
        parsed = parse_event(event)
        if parsed is None:
            return snapshot
        event = parsed

    if isinstance(event, TransactionUpsertEvent):
        if event.op == "insert":
            return add_transaction(snapshot, event.payload)
        return replace_transaction(snapshot, event.payload)
    if isinstance(event, TransactionDeleteEvent):
        return remove_transaction(snapshot, event.payload.id)
    if isinstance(event, CategoryUpsertEvent):
        return upsert_category(snapshot, event.payload)
    if isinstance(event, CategoryDeleteEvent):
        return remove_category(
            snapshot, event.payload.period_id, event.payload.category
        )
    if isinstance(event, PeriodEvent) and event.op == "update":
        return replace_period(snapshot, event.payload)

    logger.debug(f"realtime_event_ignored: event={type(event).__name__}")
    return snapshot


def apply_all(
    snapshot: Snapshot, events: Iterable[Union[RealtimeEvent, Mapping[str, Any]]]
) -> Snapshot:
    for event in events:
        snapshot = apply(snapshot, event)
    return snapshot
