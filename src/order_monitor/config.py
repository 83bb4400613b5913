"""Configuration loading and validation."""

from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class ApiConfig(BaseModel):
    """Order-management API connection settings."""

    base_url: str = "http://localhost:8000"
    api_token_env: str = "ORDER_MONITOR_API_TOKEN"
    timeout: float = 10.0


class PollingConfig(BaseModel):
    """Refresh cadence for the three poll loops, in seconds."""

    open_orders_interval: float = Field(default=5.0, gt=0)
    watched_orders_interval: float = Field(default=5.0, gt=0)
    maintenance_interval: float = Field(default=30.0, gt=0)


class OpenOrdersQuery(BaseModel):
    """Filter options sent with every open-orders fetch."""

    exclude_paused: bool = False
    include_conditions: bool = True
    include_fills: bool = False
    include_meta: bool = False


class MaintenanceConfig(BaseModel):
    """Maintenance-mode defaults."""

    target_exchanges: list[str] = Field(default_factory=list)


class MonitoringConfig(BaseModel):
    """Logging, notices and dashboard configuration."""

    structured_logging: bool = False
    log_file: str | None = None
    log_level: str = "INFO"
    notice_webhooks: list[str] = Field(default_factory=list)
    notice_history: int = 50
    dashboard_host: str = "127.0.0.1"
    dashboard_port: int = 8080


class AppConfig(BaseModel):
    """Top-level application configuration."""

    api: ApiConfig = Field(default_factory=ApiConfig)
    polling: PollingConfig = Field(default_factory=PollingConfig)
    open_orders: OpenOrdersQuery = Field(default_factory=OpenOrdersQuery)
    maintenance: MaintenanceConfig = Field(default_factory=MaintenanceConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    excluded_statuses: list[str] = Field(default_factory=list)


def load_config(path: Path) -> AppConfig:
    """Load config from a YAML file."""
    load_dotenv(path.parent / ".env", override=False)
    return AppConfig(**(yaml.safe_load(path.read_text()) or {}))
