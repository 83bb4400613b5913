"""Maintenance-mode toggle with optimistic display and rollback."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from order_monitor.data.client import ApiError
from order_monitor.monitoring.notices import Notice, NoticeCenter

if TYPE_CHECKING:
    from order_monitor.data.provider import OrderApi
    from order_monitor.store import OrderRecordStore

logger = logging.getLogger(__name__)


class MaintenanceRefresher(Protocol):
    async def refresh_watched_orders(self, event_id: str | None = None) -> None: ...

    async def refresh_maintenance_events(self) -> None: ...


class TransitionState(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class ToggleTransition:
    """One requested flip of the maintenance flag."""

    requested: bool
    previous: bool
    order_ids: tuple[str, ...]
    exchanges: tuple[str, ...]
    state: TransitionState = TransitionState.PENDING
    notice: Notice | None = None

    @property
    def displayed(self) -> bool:
        """Flag value the operator should see while and after this transition."""
        if self.state == TransitionState.ROLLED_BACK:
            return self.previous
        return self.requested


class MaintenanceModeController:
    """Turn global maintenance mode on or off.

    Turning it on submits the ids of every order in the open-orders snapshot
    (ignoring the status filter) and the selected target exchanges; turning
    it off submits an empty scope.
    """

    def __init__(
        self,
        api: OrderApi,
        store: OrderRecordStore,
        notices: NoticeCenter,
        refresher: MaintenanceRefresher,
        displayed_order_ids: Callable[[], Iterable[str]],
        *,
        target_exchanges: Iterable[str] = (),
    ) -> None:
        self._api = api
        self._store = store
        self._notices = notices
        self._refresher = refresher
        self._displayed_order_ids = displayed_order_ids
        self._exchanges: list[str] = []
        self.set_target_exchanges(target_exchanges)
        self._pending: ToggleTransition | None = None
        self.last_transition: ToggleTransition | None = None

    @property
    def enabled(self) -> bool:
        """Flag as displayed: the requested value while a toggle is pending."""
        if self._pending is not None:
            return self._pending.displayed
        return self._store.maintenance_enabled

    @property
    def pending(self) -> bool:
        return self._pending is not None

    @property
    def target_exchanges(self) -> list[str]:
        return list(self._exchanges)

    def set_target_exchanges(self, exchanges: Iterable[str]) -> None:
        self._exchanges = list(dict.fromkeys(str(e).lower() for e in exchanges if e))

    def toggle_exchange(self, exchange: str) -> list[str]:
        """Add or remove one target exchange (case-insensitive)."""
        name = str(exchange).lower()
        if name in self._exchanges:
            self._exchanges.remove(name)
        else:
            self._exchanges.append(name)
        return self.target_exchanges

    def apply_polled_status(self, enabled: bool) -> None:
        """Take the server's flag from a status poll unless a toggle is in flight."""
        if self._pending is not None:
            logger.debug("Ignoring polled maintenance status while a toggle is pending")
            return
        self._store.set_maintenance_enabled(enabled)

    async def toggle(self, enabled: bool) -> ToggleTransition | None:
        """Request a new flag value. Returns None if another toggle is still pending."""
        if self._pending is not None:
            self._notices.warning("A maintenance mode change is already in progress")
            return None

        order_ids = tuple(dict.fromkeys(i for i in self._displayed_order_ids() if i)) if enabled else ()
        exchanges = tuple(self._exchanges) if enabled else ()
        transition = ToggleTransition(
            requested=enabled,
            previous=self._store.maintenance_enabled,
            order_ids=order_ids,
            exchanges=exchanges,
        )
        self._pending = transition
        try:
            result = await self._api.set_maintenance_mode(enabled, list(order_ids), list(exchanges))
        except ApiError as exc:
            transition.state = TransitionState.ROLLED_BACK
            transition.notice = self._notices.error(f"Failed to toggle maintenance mode: {exc}")
            return transition
        finally:
            self._pending = None
            self.last_transition = transition

        self._store.set_maintenance_enabled(enabled)
        transition.state = TransitionState.COMMITTED
        default = "Maintenance mode enabled" if enabled else "Maintenance mode disabled"
        transition.notice = self._notices.success((result or {}).get("message") or default)
        logger.info(
            "Maintenance mode %s (%d orders, exchanges=%s)",
            "enabled" if enabled else "disabled",
            len(order_ids),
            ",".join(exchanges) or "all",
        )

        if enabled:
            await self._refresh_after_enable()
        return transition

    async def _refresh_after_enable(self) -> None:
        # New watch records exist as soon as the server commits the toggle.
        try:
            await self._refresher.refresh_watched_orders(None)
            await self._refresher.refresh_maintenance_events()
        except ApiError as exc:
            logger.warning("Refresh after enabling maintenance mode failed: %s", exc)
