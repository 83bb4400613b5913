"""OrderApi protocol for the order-management API abstraction.

The live HTTP client (OrderApiClient) and the in-memory fakes used in tests
satisfy this protocol via structural typing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from order_monitor.config import OpenOrdersQuery
    from order_monitor.data.models import MaintenanceEvent, MaintenanceStatus, OpenOrder, WatchRecord


class OrderApi(Protocol):
    """Structural protocol for the operations the monitoring core consumes.

    Any class that implements these coroutines can be used by the monitor,
    the bulk coordinator, and the maintenance controller without modification.
    """

    async def list_open_orders(self, query: OpenOrdersQuery | None = None) -> list[OpenOrder]: ...

    async def list_watched_orders(self, maintenance_event_id: str | None = None) -> list[WatchRecord]: ...

    async def get_maintenance_status(self) -> MaintenanceStatus: ...

    async def list_maintenance_events(self) -> list[MaintenanceEvent]: ...

    async def set_maintenance_mode(
        self, enabled: bool, order_ids: list[str], exchange_names: list[str]
    ) -> dict[str, Any]: ...

    async def resolve_watch_record(self, watch_id: str) -> None: ...

    async def resolve_watched_orders_bulk(self, order_ids: list[str], maintenance_event_id: str) -> dict[str, Any]: ...

    async def resume_watched_orders_bulk(self, order_ids: list[str]) -> dict[str, Any]: ...

    async def pause_order(self, order_id: str) -> dict[str, Any]: ...

    async def resume_order(self, order_id: str) -> dict[str, Any]: ...

    async def pause_multi_order(self, multi_order_id: str) -> dict[str, Any]: ...

    async def resume_multi_order(self, multi_order_id: str) -> dict[str, Any]: ...

    async def pause_batch_order(self, batch_order_id: str) -> dict[str, Any]: ...

    async def resume_batch_order(self, batch_order_id: str) -> dict[str, Any]: ...

    async def cancel_multi_order(self, multi_order_id: str) -> dict[str, Any]: ...

    async def cancel_chained_order(self, chained_order_id: str) -> dict[str, Any]: ...

    async def cancel_batch_order(self, batch_order_id: str) -> dict[str, Any]: ...

    async def cancel_single_order(self, order_id: str) -> dict[str, Any]: ...
