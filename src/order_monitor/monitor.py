"""OpenOrdersMonitor: wires polling, grouping, sorting, selection and actions together."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from order_monitor.bulk import BulkActionCoordinator, BulkOutcome
from order_monitor.config import AppConfig
from order_monitor.data.client import ApiError, OrderApiClient
from order_monitor.data.models import MaintenanceEvent, OpenOrder, WatchRecord, format_status_label
from order_monitor.data.provider import OrderApi
from order_monitor.hierarchy import Grouping, OrderGroup, build_hierarchy
from order_monitor.maintenance import MaintenanceModeController, ToggleTransition
from order_monitor.monitoring.notices import (
    ConsoleNoticeSink,
    Notice,
    NoticeCenter,
    NoticeHistory,
    WebhookNoticeSink,
)
from order_monitor.order_actions import OrderActions
from order_monitor.poller import Poller
from order_monitor.scope import EventScope
from order_monitor.selection import WatchSelection
from order_monitor.sorting import COLUMNS, Column, SortState, sort_grouping
from order_monitor.store import OrderRecordStore

logger = logging.getLogger(__name__)

_CURRENT_SCOPE: Any = object()


def _order_dict(order: OpenOrder) -> dict[str, Any]:
    data = order.model_dump(exclude={"raw"})
    data["status_label"] = format_status_label(order.status)
    data["order_type"] = order.order_type.value
    return data


def _group_dict(group: OrderGroup) -> dict[str, Any]:
    return {
        "parent_id": group.parent_id,
        "parent": _order_dict(group.parent) if group.parent is not None else None,
        "children": [_order_dict(child) for child in group.children],
    }


def _event_dict(event: MaintenanceEvent) -> dict[str, Any]:
    data = event.model_dump()
    data["duration_minutes"] = event.duration_minutes
    return data


@dataclass
class MonitorView:
    """Read-only snapshot of everything the rendering layer shows."""

    grouped: tuple[OrderGroup, ...]
    standalone: tuple[OpenOrder, ...]
    pending_parents: tuple[OpenOrder, ...]
    sort_state: SortState
    columns: tuple[Column, ...]
    excluded_statuses: list[str]
    watch_records: tuple[WatchRecord, ...]
    selected_watch_ids: list[str]
    selectable_count: int
    can_resolve_selected: bool
    can_resume_selected: bool
    is_bulk_resolving: bool
    is_bulk_resuming: bool
    maintenance_enabled: bool
    maintenance_pending: bool
    target_exchanges: list[str]
    viewed_event_id: str | None
    active_event: MaintenanceEvent | None
    historical_events: tuple[MaintenanceEvent, ...]
    open_orders_refreshed_at: datetime | None
    empty_message: str | None
    selected_count: int = field(init=False)
    all_selected: bool = field(init=False)

    def __post_init__(self) -> None:
        self.selected_count = len(self.selected_watch_ids)
        self.all_selected = self.selectable_count > 0 and self.selected_count == self.selectable_count

    def to_dict(self) -> dict[str, Any]:
        refreshed = self.open_orders_refreshed_at
        return {
            "grouped": [_group_dict(g) for g in self.grouped],
            "standalone": [_order_dict(o) for o in self.standalone],
            "pending_parent_ids": [o.id for o in self.pending_parents],
            "sort": {"column_id": self.sort_state.column_id, "direction": self.sort_state.direction},
            "columns": [{"id": c.id, "label": c.label, "sortable": c.sortable} for c in self.columns],
            "excluded_statuses": list(self.excluded_statuses),
            "watch_records": [w.model_dump() for w in self.watch_records],
            "selection": {
                "watch_ids": list(self.selected_watch_ids),
                "selected_count": self.selected_count,
                "selectable_count": self.selectable_count,
                "all_selected": self.all_selected,
            },
            "bulk": {
                "can_resolve_selected": self.can_resolve_selected,
                "can_resume_selected": self.can_resume_selected,
                "is_bulk_resolving": self.is_bulk_resolving,
                "is_bulk_resuming": self.is_bulk_resuming,
            },
            "maintenance": {
                "enabled": self.maintenance_enabled,
                "pending": self.maintenance_pending,
                "target_exchanges": list(self.target_exchanges),
                "viewed_event_id": self.viewed_event_id,
                "active_event": _event_dict(self.active_event) if self.active_event is not None else None,
                "historical_events": [_event_dict(e) for e in self.historical_events],
            },
            "open_orders_refreshed_at": refreshed.isoformat() if refreshed is not None else None,
            "empty_message": self.empty_message,
        }


class OpenOrdersMonitor:
    """Keep open orders, watch records and maintenance state fresh and actionable.

    The monitor owns the record store and hands it to the components that
    read it. Every refresh writes a whole collection; after :meth:`stop` no
    response that is still arriving is applied.
    """

    def __init__(self, config: AppConfig, *, api: OrderApi | None = None) -> None:
        self._config = config
        self._owns_api = api is None
        self._api: OrderApi = api if api is not None else OrderApiClient.from_config(config.api)
        self._closed = False

        self.store = OrderRecordStore()
        self.scope = EventScope()
        self.selection = WatchSelection()
        self.sort_state = SortState()
        self._excluded_statuses: list[str] = list(dict.fromkeys(config.excluded_statuses))

        self.history = NoticeHistory(config.monitoring.notice_history)
        self.notices = self._build_notice_center(config, self.history)
        self.bulk = BulkActionCoordinator(self._api, self.store, self.selection, self.scope, self, self.notices)
        self.maintenance = MaintenanceModeController(
            self._api,
            self.store,
            self.notices,
            self,
            self.displayed_order_ids,
            target_exchanges=config.maintenance.target_exchanges,
        )
        self.actions = OrderActions(self._api, self, self.notices)
        self.poller = Poller(
            refresh_open_orders=self.refresh_open_orders,
            refresh_watched_orders=self.refresh_watched_orders,
            refresh_maintenance=self.refresh_maintenance,
            open_orders_interval=config.polling.open_orders_interval,
            watched_orders_interval=config.polling.watched_orders_interval,
            maintenance_interval=config.polling.maintenance_interval,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Start all poll loops. Must be called from a running event loop."""
        if self._closed:
            raise RuntimeError("Monitor has been stopped")
        self.poller.start()

    async def stop(self) -> None:
        """Stop polling, flush webhook notices and release the HTTP client if this monitor created it."""
        if self._closed:
            return
        self._closed = True
        await self.poller.stop()
        await self.notices.aclose()
        if self._owns_api and isinstance(self._api, OrderApiClient):
            await self._api.close()

    # ------------------------------------------------------------------
    # Refresh entry points
    # ------------------------------------------------------------------

    async def refresh_open_orders(self) -> None:
        orders = await self._api.list_open_orders(self._config.open_orders)
        if self._closed:
            return
        self.store.replace_open_orders(orders)
        self.store.mark_open_orders_refreshed()
        logger.debug("Loaded %d open orders", len(orders))

    async def refresh_watched_orders(self, event_id: str | None = _CURRENT_SCOPE) -> None:
        """Reload watch records and prune the selection against them.

        Without an argument the viewed event is read now, so a scope change
        made since the loop started is honoured. ``None`` means the active event.
        """
        if event_id is _CURRENT_SCOPE:
            event_id = self.scope.event_id
        records = await self._api.list_watched_orders(event_id)
        if self._closed:
            return
        self.store.replace_watch_records(records)
        self.selection.reconcile(self.store.watch_records)

    async def refresh_maintenance_events(self) -> None:
        events = await self._api.list_maintenance_events()
        if self._closed:
            return
        self.store.replace_maintenance_events(events)

    async def refresh_maintenance(self) -> None:
        status = await self._api.get_maintenance_status()
        if self._closed:
            return
        self.maintenance.apply_polled_status(status.enabled)
        await self.refresh_maintenance_events()

    async def refresh_all(self) -> None:
        """Run every refresh once, in order. Raises on the first failure."""
        await self.refresh_open_orders()
        await self.refresh_watched_orders()
        await self.refresh_maintenance()

    # ------------------------------------------------------------------
    # Event scope
    # ------------------------------------------------------------------

    async def select_event(self, event_id: str | None) -> bool:
        """View another maintenance event (``None`` for the active one).

        Clears the selection and refreshes watched orders right away instead
        of waiting for the next tick. Returns False if the scope did not change.
        """
        if not self.scope.set(event_id):
            return False
        self.selection.clear()
        try:
            await self.refresh_watched_orders()
        except ApiError as exc:
            logger.warning("Watched orders refresh after scope change failed: %s", exc)
        return True

    # ------------------------------------------------------------------
    # Sort and filter
    # ------------------------------------------------------------------

    def sort_by(self, column_id: str) -> SortState:
        self.sort_state = self.sort_state.toggled(column_id, COLUMNS)
        return self.sort_state

    @property
    def excluded_statuses(self) -> list[str]:
        return list(self._excluded_statuses)

    def toggle_excluded_status(self, status: str) -> list[str]:
        if status in self._excluded_statuses:
            self._excluded_statuses.remove(status)
        else:
            self._excluded_statuses.append(status)
        return self.excluded_statuses

    def filtered_orders(self) -> list[OpenOrder]:
        excluded = set(self._excluded_statuses)
        return [o for o in self.store.open_orders if o.status not in excluded]

    def visible_grouping(self) -> Grouping:
        return sort_grouping(build_hierarchy(self.filtered_orders()), self.sort_state)

    def displayed_order_ids(self) -> list[str]:
        """Distinct ids from the whole open-orders snapshot, before the status filter."""
        return list(dict.fromkeys(o.id for o in self.store.open_orders if o.id))

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def toggle_watch(self, watch_id: str) -> bool:
        return self.selection.toggle(watch_id)

    def select_all(self, checked: bool) -> None:
        self.selection.select_all(checked, self.store.watch_records)

    def clear_selection(self) -> None:
        self.selection.clear()

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def resolve_selected(self) -> BulkOutcome:
        return await self.bulk.resolve_selected()

    async def resume_selected(self) -> BulkOutcome:
        return await self.bulk.resume_selected()

    async def resolve_watch(self, watch_id: str) -> BulkOutcome:
        return await self.bulk.resolve_one(watch_id)

    async def toggle_maintenance(self, enabled: bool | None = None) -> ToggleTransition | None:
        """Flip maintenance mode, or set it explicitly when ``enabled`` is given."""
        target = (not self.maintenance.enabled) if enabled is None else enabled
        return await self.maintenance.toggle(target)

    def find_order(self, order_id: str) -> OpenOrder | None:
        return next((o for o in self.store.open_orders if o.id == order_id), None)

    async def run_order_action(self, order_id: str, action: str) -> Notice:
        """Pause, resume or cancel one order. Raises KeyError for an unknown order."""
        order = self.find_order(order_id)
        if order is None:
            raise KeyError(order_id)
        return await self.actions.run(action, order)

    async def run_group_action(self, parent_id: str, action: str) -> Notice:
        return await self.actions.run_group(action, parent_id, self.find_order(parent_id))

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def empty_message(self, grouping: Grouping) -> str | None:
        if grouping.grouped or grouping.standalone:
            return None
        if self._excluded_statuses and self.store.open_orders:
            return "No open orders match the selected filters"
        return "No open orders"

    def view(self) -> MonitorView:
        grouping = self.visible_grouping()
        active = self.store.active_event
        return MonitorView(
            grouped=grouping.grouped,
            standalone=grouping.standalone,
            pending_parents=grouping.pending_parents,
            sort_state=self.sort_state,
            columns=COLUMNS,
            excluded_statuses=self.excluded_statuses,
            watch_records=self.store.watch_records,
            selected_watch_ids=self.selection.as_list(),
            selectable_count=len(self.store.unresolved_watch_ids()),
            can_resolve_selected=self.bulk.can_resolve_selected,
            can_resume_selected=self.bulk.can_resume_selected,
            is_bulk_resolving=self.bulk.is_bulk_resolving,
            is_bulk_resuming=self.bulk.is_bulk_resuming,
            maintenance_enabled=self.maintenance.enabled,
            maintenance_pending=self.maintenance.pending,
            target_exchanges=self.maintenance.target_exchanges,
            viewed_event_id=self.scope.event_id,
            active_event=active,
            historical_events=self.store.historical_events,
            open_orders_refreshed_at=self.store.open_orders_refreshed_at,
            empty_message=self.empty_message(grouping),
        )

    def summary(self) -> dict[str, Any]:
        """Counts for headless output."""
        grouping = self.visible_grouping()
        active = self.store.active_event
        return {
            "open_orders": len(self.store.open_orders),
            "groups": len(grouping.grouped),
            "standalone": len(grouping.standalone),
            "awaiting_children": len(grouping.pending_parents),
            "watched": len(self.store.watch_records),
            "unresolved": len(self.store.unresolved_watch_ids()),
            "selected": len(self.selection),
            "maintenance_enabled": self.maintenance.enabled,
            "active_event": active.id if active is not None else None,
        }

    @staticmethod
    def _build_notice_center(config: AppConfig, history: NoticeHistory) -> NoticeCenter:
        center = NoticeCenter()
        center.register(ConsoleNoticeSink())
        center.register(history)
        for url in config.monitoring.notice_webhooks:
            center.register(WebhookNoticeSink(url))
        return center
