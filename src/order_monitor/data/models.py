"""Pydantic data models for order-management API JSON payloads."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def _id_field(data: dict[str, Any], key: str) -> str | None:
    """Extract an opaque identifier as a string, treating empty values as absent."""
    raw = data.get(key)
    if raw is None or raw == "":
        return None
    return str(raw)


def _id_list_field(data: dict[str, Any], key: str) -> list[str]:
    """Extract a list of identifiers, dropping empty entries."""
    raw = data.get(key)
    if not isinstance(raw, list):
        return []
    return [str(item) for item in raw if item is not None and item != ""]


def _str_field(data: dict[str, Any], key: str) -> str | None:
    """Extract an optional string field, keeping None for missing values."""
    raw = data.get(key)
    return None if raw is None else str(raw)


def _int_field(data: dict[str, Any], key: str) -> int:
    """Extract an optional integer counter, defaulting to 0."""
    try:
        return int(data.get(key) or 0)
    except (TypeError, ValueError):
        return 0


class OrderStatus(str, Enum):
    """Known order statuses. Orders may still carry raw strings outside this set."""

    SUBMITTED = "SUBMITTED"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    SCHEDULED = "SCHEDULED"
    COMPLETE = "COMPLETE"
    CANCELED = "CANCELED"


FINISHED_STATUSES = frozenset({OrderStatus.COMPLETE.value, OrderStatus.CANCELED.value})

_STATUS_LABELS = {
    OrderStatus.SUBMITTED.value: "Submitted",
    OrderStatus.CANCELED.value: "Canceled",
    OrderStatus.COMPLETE.value: "Finished",
    OrderStatus.SCHEDULED.value: "Scheduled",
    OrderStatus.PAUSED.value: "Paused",
}


def format_status_label(status: str | None) -> str:
    """Return a human label for a raw status string."""
    if not status:
        return "Unknown"
    if status in _STATUS_LABELS:
        return _STATUS_LABELS[status]
    return " ".join(segment.capitalize() for segment in status.lower().split("_"))


class OrderType(str, Enum):
    """Composite order kind, which decides the lifecycle endpoint to call."""

    MULTI = "Multi"
    CHAINED = "Chained"
    BATCH = "Batch"
    SINGLE = "Single"

    @classmethod
    def of(cls, order: "OpenOrder") -> "OrderType":
        """Derive the order type from the order's ``side`` column."""
        for member in (cls.MULTI, cls.CHAINED, cls.BATCH):
            if order.side == member.value:
                return member
        return cls.SINGLE


class OpenOrder(BaseModel):
    """One trading order visible to operators."""

    id: str
    parent_order_id: str | None = None
    child_order_ids: list[str] = Field(default_factory=list)
    status: str | None = None
    pair: str | None = None
    side: str | None = None
    target_qty: Any = None
    pct_filled: Any = None
    time_start: Any = None
    resume_condition_normal: str | None = None
    order_condition_normal: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "OpenOrder":
        """Parse an order dict from the ``active_orders`` endpoint."""
        return cls(
            id=str(data["id"]),
            parent_order_id=_id_field(data, "parent_order_id"),
            child_order_ids=_id_list_field(data, "child_order_ids"),
            status=_str_field(data, "status"),
            pair=_str_field(data, "pair"),
            side=_str_field(data, "side"),
            target_qty=data.get("target_qty"),
            pct_filled=data.get("pct_filled"),
            time_start=data.get("time_start"),
            resume_condition_normal=_str_field(data, "resume_condition_normal"),
            order_condition_normal=_str_field(data, "order_condition_normal"),
            raw=dict(data),
        )

    @property
    def is_child(self) -> bool:
        return self.parent_order_id is not None

    @property
    def is_parent(self) -> bool:
        return bool(self.child_order_ids)

    @property
    def order_type(self) -> OrderType:
        return OrderType.of(self)

    def get(self, key: str) -> Any:
        """Return a column value, falling back to the raw payload for unknown columns."""
        if key in type(self).model_fields and key != "raw":
            return getattr(self, key)
        return self.raw.get(key)


class WatchRecord(BaseModel):
    """An order that was on watch during a maintenance event."""

    watch_id: str
    order_id: str | None = None
    maintenance_event_id: str | None = None
    order_status_at_watch: str | None = None
    current_status: str | None = None
    resolved: bool = False
    resolved_at: str | None = None
    exchanges: list[str] = Field(default_factory=list)
    pair: str | None = None
    side: str | None = None
    target_order_qty: Any = None
    target_executed_qty: Any = None
    target_token: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "WatchRecord":
        """Parse a record from the ``orders_on_watch`` endpoint."""
        resolved_at = _str_field(data, "resolved_at")
        return cls(
            watch_id=str(data["watch_id"]),
            order_id=_id_field(data, "order_id"),
            maintenance_event_id=_id_field(data, "maintenance_event_id"),
            order_status_at_watch=_str_field(data, "order_status_at_watch"),
            current_status=_str_field(data, "current_status"),
            resolved=bool(data.get("resolved") or resolved_at),
            resolved_at=resolved_at,
            exchanges=[str(e) for e in (data.get("exchanges") or [])],
            pair=_str_field(data, "pair"),
            side=_str_field(data, "side"),
            target_order_qty=data.get("target_order_qty"),
            target_executed_qty=data.get("target_executed_qty"),
            target_token=_str_field(data, "target_token"),
        )

    @property
    def status_changed(self) -> bool:
        return self.order_status_at_watch != self.current_status

    @property
    def is_paused(self) -> bool:
        return self.current_status == OrderStatus.PAUSED.value


class MaintenanceEvent(BaseModel):
    """A window during which maintenance mode was enabled."""

    id: str
    enabled_at: str | None = None
    disabled_at: str | None = None
    is_active: bool = False
    duration_seconds: float | None = None
    watched_orders_count: int = 0
    resolved_orders_count: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "MaintenanceEvent":
        """Parse an event from the ``maintenance_mode/events`` endpoint."""
        duration = data.get("duration_seconds")
        return cls(
            id=str(data["id"]),
            enabled_at=_str_field(data, "enabled_at"),
            disabled_at=_str_field(data, "disabled_at"),
            is_active=bool(data.get("is_active")),
            duration_seconds=float(duration) if duration is not None else None,
            watched_orders_count=_int_field(data, "watched_orders_count"),
            resolved_orders_count=_int_field(data, "resolved_orders_count"),
        )

    @property
    def duration_minutes(self) -> int | None:
        if not self.duration_seconds:
            return None
        return round(self.duration_seconds / 60)


class MaintenanceStatus(BaseModel):
    """Global maintenance-mode flag."""

    enabled: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any] | None) -> "MaintenanceStatus":
        return cls(enabled=bool((data or {}).get("enabled")))
