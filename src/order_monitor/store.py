"""OrderRecordStore: the single owner of polled order, watch and event snapshots."""

import logging
from datetime import datetime, timezone

from order_monitor.data.models import MaintenanceEvent, OpenOrder, WatchRecord

logger = logging.getLogger(__name__)


class OrderRecordStore:
    """Hold the latest snapshots returned by the order-management API.

    Every write replaces a whole collection; readers always get immutable
    tuples, so derived views can never reorder or patch the snapshot in
    place. Writers are the poll-success handlers and the bulk/toggle
    success paths in :class:`~order_monitor.monitor.OpenOrdersMonitor`.
    """

    def __init__(self) -> None:
        self._open_orders: tuple[OpenOrder, ...] = ()
        self._watch_records: tuple[WatchRecord, ...] = ()
        self._events: tuple[MaintenanceEvent, ...] = ()
        self._maintenance_enabled = False
        self._resolved_watch_ids: set[str] = set()
        self._open_orders_refreshed_at: datetime | None = None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def replace_open_orders(self, orders: list[OpenOrder]) -> None:
        self._open_orders = tuple(orders)

    def mark_open_orders_refreshed(self, at: datetime | None = None) -> None:
        self._open_orders_refreshed_at = at or datetime.now(timezone.utc)

    def replace_watch_records(self, records: list[WatchRecord]) -> None:
        """Replace the watch snapshot, keeping resolution monotonic.

        A record the client has already seen resolved stays resolved even if
        a lagging response reports it unresolved.
        """
        normalized: list[WatchRecord] = []
        for record in records:
            if record.resolved:
                self._resolved_watch_ids.add(record.watch_id)
            elif record.watch_id in self._resolved_watch_ids:
                record = record.model_copy(update={"resolved": True})
            normalized.append(record)
        self._watch_records = tuple(normalized)

    def replace_maintenance_events(self, events: list[MaintenanceEvent]) -> None:
        active = [e.id for e in events if e.is_active]
        if len(active) > 1:
            logger.warning("Server reported %d active maintenance events: %s", len(active), ", ".join(active))
        self._events = tuple(events)

    def set_maintenance_enabled(self, enabled: bool) -> None:
        self._maintenance_enabled = enabled

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def open_orders(self) -> tuple[OpenOrder, ...]:
        return self._open_orders

    @property
    def watch_records(self) -> tuple[WatchRecord, ...]:
        return self._watch_records

    @property
    def maintenance_events(self) -> tuple[MaintenanceEvent, ...]:
        return self._events

    @property
    def maintenance_enabled(self) -> bool:
        return self._maintenance_enabled

    @property
    def open_orders_refreshed_at(self) -> datetime | None:
        return self._open_orders_refreshed_at

    @property
    def active_event(self) -> MaintenanceEvent | None:
        return next((e for e in self._events if e.is_active), None)

    @property
    def historical_events(self) -> tuple[MaintenanceEvent, ...]:
        return tuple(e for e in self._events if not e.is_active)

    def unresolved_watch_ids(self) -> list[str]:
        return [w.watch_id for w in self._watch_records if not w.resolved]

    def watch_records_for(self, watch_ids: set[str] | frozenset[str]) -> list[WatchRecord]:
        """Return the current records whose ids are in ``watch_ids``, in snapshot order."""
        return [w for w in self._watch_records if w.watch_id in watch_ids]
