"""Async HTTP client for the order-management API.

Wraps the REST endpoints the monitor needs, parsing JSON responses into
typed Pydantic models. Every request goes through :meth:`OrderApiClient._request`
so that transport and protocol failures surface as a single :class:`ApiError`.
"""

import logging
import os
from typing import Any

import httpx

from order_monitor.config import ApiConfig, OpenOrdersQuery
from order_monitor.data.models import MaintenanceEvent, MaintenanceStatus, OpenOrder, WatchRecord

logger = logging.getLogger(__name__)

_GENERIC_ERROR = "An error occurred. Please try again."


class ApiError(Exception):
    """Raised when an order-management API call fails for any reason."""


def _error_message(body: Any) -> str:
    """Pick the most useful human-readable message out of an error body."""
    if isinstance(body, str):
        return body
    if isinstance(body, dict):
        if body.get("error"):
            return str(body["error"])
        if body.get("message"):
            return str(body["message"])
        errors = body.get("errors")
        if errors:
            return ", ".join(str(e) for e in errors) if isinstance(errors, list) else str(errors)
    return _GENERIC_ERROR


def _flag(value: bool) -> str:
    return "true" if value else "false"


class OrderApiClient:
    """Thin async wrapper around the order-management REST API.

    If a shared ``httpx.AsyncClient`` is passed in it is not closed by
    :meth:`close`; otherwise the client is owned and closed here.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_token: str | None = None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {"Content-Type": "application/json", "Accept-Encoding": "gzip"}
        if api_token:
            headers["Authorization"] = f"Token {api_token}"
        if client is not None:
            self._client = client
            self._client.headers.update(headers)
            self._owns_client = False
        else:
            self._client = httpx.AsyncClient(base_url=base_url.rstrip("/") + "/", headers=headers, timeout=timeout)
            self._owns_client = True

    @classmethod
    def from_config(cls, config: ApiConfig) -> "OrderApiClient":
        """Build a client, reading the API token from the configured env var."""
        token = os.environ.get(config.api_token_env) or None
        if token is None:
            logger.warning("%s is not set; requests will be unauthenticated", config.api_token_env)
        return cls(config.base_url, api_token=token, timeout=config.timeout)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_open_orders(self, query: OpenOrdersQuery | None = None) -> list[OpenOrder]:
        """Return currently open orders."""
        query = query or OpenOrdersQuery()
        params = {
            "exclude_paused": _flag(query.exclude_paused),
            "include_conditions": _flag(query.include_conditions),
            "include_fills": _flag(query.include_fills),
            "include_meta": _flag(query.include_meta),
        }
        data = await self._request("GET", "api/active_orders/", params=params)
        if not isinstance(data, dict) or not isinstance(data.get("orders"), list):
            raise ApiError("Open orders response did not include an orders list")
        return [OpenOrder.from_api(o) for o in data["orders"] if o]

    async def list_watched_orders(self, maintenance_event_id: str | None = None) -> list[WatchRecord]:
        """Return watch records for an event, or for the active event when ``None``."""
        params = {"maintenance_event_id": maintenance_event_id} if maintenance_event_id else None
        data = await self._request("GET", "api/orders_on_watch", params=params)
        return [WatchRecord.from_api(w) for w in (data or {}).get("orders_on_watch") or []]

    async def get_maintenance_status(self) -> MaintenanceStatus:
        data = await self._request("GET", "api/maintenance_mode/status")
        return MaintenanceStatus.from_api(data)

    async def list_maintenance_events(self) -> list[MaintenanceEvent]:
        data = await self._request("GET", "api/maintenance_mode/events")
        return [MaintenanceEvent.from_api(e) for e in (data or {}).get("events") or []]

    # ------------------------------------------------------------------
    # Maintenance mutations
    # ------------------------------------------------------------------

    async def set_maintenance_mode(
        self, enabled: bool, order_ids: list[str], exchange_names: list[str]
    ) -> dict[str, Any]:
        payload = {"enabled": enabled, "order_ids": order_ids, "target_exchanges": exchange_names}
        return await self._post("api/maintenance_mode/toggle", payload)

    async def resolve_watch_record(self, watch_id: str) -> None:
        await self._post("api/orders_on_watch", {"watch_id": watch_id})

    async def resolve_watched_orders_bulk(self, order_ids: list[str], maintenance_event_id: str) -> dict[str, Any]:
        return await self._post(
            "api/orders_on_watch/bulk_resolve", {"order_ids": order_ids, "event_id": maintenance_event_id}
        )

    async def resume_watched_orders_bulk(self, order_ids: list[str]) -> dict[str, Any]:
        return await self._post("api/orders_on_watch/bulk_resume", {"order_ids": order_ids})

    # ------------------------------------------------------------------
    # Per-order lifecycle
    # ------------------------------------------------------------------

    async def pause_order(self, order_id: str) -> dict[str, Any]:
        return await self._post("api/pause_order/", {"order_id": order_id})

    async def resume_order(self, order_id: str) -> dict[str, Any]:
        return await self._post("api/resume_order/", {"order_id": order_id})

    async def pause_multi_order(self, multi_order_id: str) -> dict[str, Any]:
        return await self._post("api/pause_multi_order/", {"multi_order_id": multi_order_id})

    async def resume_multi_order(self, multi_order_id: str) -> dict[str, Any]:
        return await self._post("api/resume_multi_order/", {"multi_order_id": multi_order_id})

    async def pause_batch_order(self, batch_order_id: str) -> dict[str, Any]:
        return await self._post("api/pause_batch_order/", {"batch_order_id": batch_order_id})

    async def resume_batch_order(self, batch_order_id: str) -> dict[str, Any]:
        return await self._post("api/resume_batch_order/", {"batch_order_id": batch_order_id})

    async def cancel_multi_order(self, multi_order_id: str) -> dict[str, Any]:
        return await self._request("DELETE", f"api/multi_order/{multi_order_id}") or {}

    async def cancel_chained_order(self, chained_order_id: str) -> dict[str, Any]:
        return await self._request("DELETE", f"api/chained_orders/{chained_order_id}") or {}

    async def cancel_batch_order(self, batch_order_id: str) -> dict[str, Any]:
        return await self._post("api/cancel_batch_order/", {"batch_order_id": batch_order_id})

    async def cancel_single_order(self, order_id: str) -> dict[str, Any]:
        return await self._post(f"internal/oms/cancel_order/{order_id}", {})

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        data = await self._request("POST", path, json=payload)
        return data if isinstance(data, dict) else {}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Execute a request and return its decoded JSON body.

        Raises :class:`ApiError` on transport failures, undecodable bodies,
        and non-2xx responses. A 204 response returns ``None``.
        """
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.HTTPError as exc:
            msg = f"{method} {path} failed: {exc}"
            raise ApiError(msg) from exc

        if response.status_code == 204:
            return None
        try:
            data = response.json()
        except ValueError as exc:
            msg = f"{method} {path} returned a non-JSON body (status {response.status_code})"
            raise ApiError(msg) from exc
        if response.is_success:
            return data
        raise ApiError(_error_message(data))
