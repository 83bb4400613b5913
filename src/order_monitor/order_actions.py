"""Per-row pause, resume and cancel actions, dispatched on the order type."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Protocol

from order_monitor.data.client import ApiError
from order_monitor.data.models import FINISHED_STATUSES, OpenOrder, OrderType
from order_monitor.monitoring.notices import Notice, NoticeCenter

if TYPE_CHECKING:
    from order_monitor.data.provider import OrderApi

logger = logging.getLogger(__name__)

ACTIONS = ("pause", "resume", "cancel")


class OpenOrdersRefresher(Protocol):
    async def refresh_open_orders(self) -> None: ...


class OrderActions:
    """Submit lifecycle requests for a single order or a whole group."""

    def __init__(self, api: OrderApi, refresher: OpenOrdersRefresher, notices: NoticeCenter) -> None:
        self._api = api
        self._refresher = refresher
        self._notices = notices

    # ------------------------------------------------------------------
    # Endpoint dispatch
    # ------------------------------------------------------------------

    def _pause_call(self, order_type: OrderType) -> Callable[[str], Awaitable[dict[str, Any]]]:
        match order_type:
            case OrderType.MULTI:
                return self._api.pause_multi_order
            case OrderType.BATCH:
                return self._api.pause_batch_order
            case OrderType.CHAINED | OrderType.SINGLE:
                return self._api.pause_order

    def _resume_call(self, order_type: OrderType) -> Callable[[str], Awaitable[dict[str, Any]]]:
        match order_type:
            case OrderType.MULTI:
                return self._api.resume_multi_order
            case OrderType.BATCH:
                return self._api.resume_batch_order
            case OrderType.CHAINED | OrderType.SINGLE:
                return self._api.resume_order

    def _cancel_call(self, order_type: OrderType) -> Callable[[str], Awaitable[dict[str, Any]]]:
        match order_type:
            case OrderType.MULTI:
                return self._api.cancel_multi_order
            case OrderType.CHAINED:
                return self._api.cancel_chained_order
            case OrderType.BATCH:
                return self._api.cancel_batch_order
            case OrderType.SINGLE:
                return self._api.cancel_single_order

    # ------------------------------------------------------------------
    # Single orders
    # ------------------------------------------------------------------

    async def pause(self, order: OpenOrder) -> Notice:
        return await self._submit(self._pause_call(order.order_type), order.id, "Pause request submitted.", "pause")

    async def resume(self, order: OpenOrder) -> Notice:
        return await self._submit(self._resume_call(order.order_type), order.id, "Resume request submitted.", "resume")

    async def cancel(self, order: OpenOrder) -> Notice:
        if order.status in FINISHED_STATUSES:
            return self._notices.warning(f"Order {order.id} is already {order.status.lower()}")
        return await self._submit(
            self._cancel_call(order.order_type), order.id, f"{order.order_type.value} order cancel requested.", "cancel"
        )

    async def run(self, action: str, order: OpenOrder) -> Notice:
        """Dispatch one of :data:`ACTIONS` by name."""
        if action == "pause":
            return await self.pause(order)
        if action == "resume":
            return await self.resume(order)
        if action == "cancel":
            return await self.cancel(order)
        raise ValueError(f"Unknown order action: {action}")

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    async def run_group(self, action: str, parent_id: str, parent: OpenOrder | None = None) -> Notice:
        """Act on a group through its parent id.

        Groups are composite orders, so the multi-order endpoints apply
        unless the parent itself says otherwise.
        """
        order_type = parent.order_type if parent is not None else OrderType.MULTI
        if order_type == OrderType.SINGLE:
            order_type = OrderType.MULTI
        if action == "pause":
            return await self._submit(self._pause_call(order_type), parent_id, "Pause request submitted.", action)
        if action == "resume":
            return await self._submit(self._resume_call(order_type), parent_id, "Resume request submitted.", action)
        if action == "cancel":
            if parent is not None and parent.status in FINISHED_STATUSES:
                return self._notices.warning(f"Order {parent_id} is already {parent.status.lower()}")
            return await self._submit(
                self._cancel_call(order_type), parent_id, f"{order_type.value} order cancel requested.", action
            )
        raise ValueError(f"Unknown order action: {action}")

    async def _submit(
        self, call: Callable[[str], Awaitable[dict[str, Any]]], order_id: str, default_message: str, action: str
    ) -> Notice:
        context = {"order_id": order_id, "action": action}
        logger.info("Submitting %s for order %s", action, order_id, extra=context)
        try:
            response = await call(order_id)
        except ApiError as exc:
            return self._notices.error(f"Failed to {action} order {order_id}: {exc}")

        try:
            await self._refresher.refresh_open_orders()
        except ApiError as exc:
            logger.warning("Refresh after %s of %s failed: %s", action, order_id, exc, extra=context)
        return self._notices.success((response or {}).get("message") or default_message)
