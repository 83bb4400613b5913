"""Order-management API client, wire models, and the API protocol."""

from order_monitor.data.client import ApiError, OrderApiClient
from order_monitor.data.models import MaintenanceEvent, OpenOrder, WatchRecord
from order_monitor.data.provider import OrderApi

__all__ = ["ApiError", "MaintenanceEvent", "OpenOrder", "OrderApi", "OrderApiClient", "WatchRecord"]
