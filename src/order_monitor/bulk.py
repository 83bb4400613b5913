"""Bulk resolve/resume of selected watch records.

Both actions validate the selection before touching the network. A
validation rejection leaves everything as it was; a failed call also keeps
the selection so the operator can retry. Only a call *and* the refresh
that follows it succeeding clears the selection.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from order_monitor.data.client import ApiError
from order_monitor.monitoring.notices import Notice, NoticeCenter, Severity

if TYPE_CHECKING:
    from order_monitor.data.models import WatchRecord
    from order_monitor.data.provider import OrderApi
    from order_monitor.scope import EventScope
    from order_monitor.selection import WatchSelection
    from order_monitor.store import OrderRecordStore

logger = logging.getLogger(__name__)


class Refresher(Protocol):
    """Explicit refresh entry points; both raise ``ApiError`` on failure."""

    async def refresh_watched_orders(self, event_id: str | None = None) -> None: ...

    async def refresh_open_orders(self) -> None: ...


class OutcomeStatus(str, Enum):
    SUCCEEDED = "succeeded"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass(frozen=True)
class BulkOutcome:
    """What a bulk action did, plus the notice shown for it."""

    status: OutcomeStatus
    notice: Notice
    order_ids: tuple[str, ...] = ()
    event_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.SUCCEEDED


def _distinct(values: Iterable[str | None]) -> list[str]:
    """Unique, non-empty values in first-seen order."""
    return list(dict.fromkeys(v for v in values if v))


def _plural(count: int) -> str:
    return "order" if count == 1 else "orders"


class BulkActionCoordinator:
    """Run "resolve selected" and "resume selected" against the watch selection."""

    def __init__(
        self,
        api: OrderApi,
        store: OrderRecordStore,
        selection: WatchSelection,
        scope: EventScope,
        refresher: Refresher,
        notices: NoticeCenter,
    ) -> None:
        self._api = api
        self._store = store
        self._selection = selection
        self._scope = scope
        self._refresher = refresher
        self._notices = notices
        self.is_bulk_resolving = False
        self.is_bulk_resuming = False

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def busy(self) -> bool:
        return self.is_bulk_resolving or self.is_bulk_resuming

    def selected_records(self) -> list[WatchRecord]:
        return self._store.watch_records_for(self._selection.ids)

    def resolve_candidates(self) -> list[WatchRecord]:
        return [r for r in self.selected_records() if not r.resolved]

    def resume_candidates(self) -> list[WatchRecord]:
        return [r for r in self.selected_records() if r.is_paused]

    @property
    def can_resolve_selected(self) -> bool:
        return not self.busy and bool(self.resolve_candidates())

    @property
    def can_resume_selected(self) -> bool:
        return not self.busy and bool(self.resume_candidates())

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def resolve_selected(self) -> BulkOutcome:
        """Resolve every unresolved selected record under a single maintenance event."""
        if self.busy:
            return self._reject(Severity.WARNING, "Another bulk action is still running")

        records = self.resolve_candidates()
        if not records:
            return self._reject(Severity.INFO, "Select unresolved watched orders to resolve")

        order_ids = _distinct(r.order_id for r in records)
        if not order_ids:
            return self._reject(Severity.ERROR, "No valid order identifiers found for the selected watch records")

        viewed_event_id = self._scope.event_id
        event_ids = _distinct(r.maintenance_event_id for r in records)
        if viewed_event_id is None and len(event_ids) > 1:
            return self._reject(Severity.WARNING, "Select orders from a single maintenance event to resolve in bulk")

        target_event_id = viewed_event_id or (event_ids[0] if event_ids else None)
        if target_event_id is None:
            return self._reject(Severity.ERROR, "Unable to determine the maintenance event for the selected orders")

        logger.info(
            "Bulk resolving %d order(s) under event %s",
            len(order_ids),
            target_event_id,
            extra={"event_id": target_event_id, "action": "resolve"},
        )
        self.is_bulk_resolving = True
        try:
            response = await self._api.resolve_watched_orders_bulk(order_ids, target_event_id)
            await self._refresher.refresh_watched_orders(viewed_event_id or target_event_id)
        except ApiError as exc:
            notice = self._notices.error(f"Failed to resolve selected watch records: {exc}")
            return BulkOutcome(OutcomeStatus.FAILED, notice, tuple(order_ids), target_event_id)
        finally:
            self.is_bulk_resolving = False

        self._selection.clear()
        message = (response or {}).get("message") or f"Marked {len(order_ids)} {_plural(len(order_ids))} as resolved"
        notice = self._notices.success(message)
        return BulkOutcome(OutcomeStatus.SUCCEEDED, notice, tuple(order_ids), target_event_id)

    async def resume_selected(self) -> BulkOutcome:
        """Resume every selected record whose order is currently paused."""
        if self.busy:
            return self._reject(Severity.WARNING, "Another bulk action is still running")

        records = self.resume_candidates()
        if not records:
            return self._reject(Severity.INFO, "Select paused orders to resume")

        order_ids = _distinct(r.order_id for r in records)
        if not order_ids:
            return self._reject(Severity.ERROR, "No valid order identifiers found for the selected paused orders")

        logger.info("Bulk resuming %d order(s)", len(order_ids), extra={"action": "resume"})
        self.is_bulk_resuming = True
        try:
            response = await self._api.resume_watched_orders_bulk(order_ids)
            await self._refresher.refresh_watched_orders(self._scope.event_id)
            await self._refresher.refresh_open_orders()
        except ApiError as exc:
            notice = self._notices.error(f"Failed to resume selected orders: {exc}")
            return BulkOutcome(OutcomeStatus.FAILED, notice, tuple(order_ids))
        finally:
            self.is_bulk_resuming = False

        self._selection.clear()
        message = (response or {}).get("message") or f"Queued resume for {len(order_ids)} {_plural(len(order_ids))}"
        notice = self._notices.success(message)
        return BulkOutcome(OutcomeStatus.SUCCEEDED, notice, tuple(order_ids))

    async def resolve_one(self, watch_id: str) -> BulkOutcome:
        """Resolve a single watch record and drop it from the selection."""
        try:
            await self._api.resolve_watch_record(watch_id)
            await self._refresher.refresh_watched_orders(self._scope.event_id)
        except ApiError as exc:
            notice = self._notices.error(f"Failed to resolve watch record: {exc}")
            return BulkOutcome(OutcomeStatus.FAILED, notice)

        self._selection.discard(watch_id)
        return BulkOutcome(OutcomeStatus.SUCCEEDED, self._notices.success("Order watch record resolved"))

    def _reject(self, severity: Severity, message: str) -> BulkOutcome:
        logger.debug("Bulk action rejected: %s", message)
        return BulkOutcome(OutcomeStatus.REJECTED, self._notices.notify(severity, message))
