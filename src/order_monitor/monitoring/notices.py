"""Operator notices for bulk actions, maintenance toggles and per-row actions."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.SUCCESS: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


@dataclass(frozen=True)
class Notice:
    """A message surfaced to the operator."""

    severity: Severity
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, str]:
        return {"severity": self.severity.value, "message": self.message, "created_at": self.created_at.isoformat()}


class NoticeSink(ABC):
    """Base class for notice destinations."""

    @abstractmethod
    def send(self, notice: Notice) -> None:
        """Deliver a notice."""

    async def aclose(self) -> None:
        """Finish outstanding deliveries and release resources."""


class ConsoleNoticeSink(NoticeSink):
    """Write notices through the logging module at a level matching their severity."""

    def send(self, notice: Notice) -> None:
        logger.log(_LOG_LEVELS[notice.severity], "[%s] %s", notice.severity.value.upper(), notice.message)


class WebhookNoticeSink(NoticeSink):
    """POST notices to a webhook URL as JSON.

    Inside a running event loop each delivery is scheduled as a task so a
    slow webhook never holds up polling; :meth:`aclose` waits for them.
    Outside a loop the POST is made synchronously.
    """

    def __init__(self, url: str, *, timeout: float = 10.0, client: httpx.AsyncClient | None = None) -> None:
        self._url = url
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def send(self, notice: Notice) -> None:
        payload = {"text": f"[{notice.severity.value}] {notice.message}"}
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            try:
                httpx.post(self._url, json=payload, timeout=self._timeout).raise_for_status()
            except httpx.HTTPError:
                logger.exception("Failed to send webhook notice to %s", self._url)
            return
        task = loop.create_task(self._post(payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _post(self, payload: dict[str, Any]) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        try:
            resp = await self._client.post(self._url, json=payload)
            resp.raise_for_status()
        except httpx.HTTPError:
            logger.exception("Failed to send webhook notice to %s", self._url)

    async def aclose(self) -> None:
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


class NoticeHistory(NoticeSink):
    """Keep the most recent notices in memory for the rendering layer."""

    def __init__(self, maxlen: int = 50) -> None:
        self._items: deque[Notice] = deque(maxlen=maxlen)

    def send(self, notice: Notice) -> None:
        self._items.append(notice)

    def recent(self, limit: int | None = None) -> list[Notice]:
        """Return notices newest first."""
        items = list(reversed(self._items))
        return items if limit is None else items[:limit]

    def __len__(self) -> int:
        return len(self._items)


class NoticeCenter:
    """Dispatch notices to registered sinks."""

    def __init__(self) -> None:
        self._sinks: list[NoticeSink] = []

    def register(self, sink: NoticeSink) -> None:
        self._sinks.append(sink)

    def notify(self, severity: Severity, message: str) -> Notice:
        """Build a notice, send it to every sink and return it."""
        notice = Notice(severity=severity, message=message)
        for sink in self._sinks:
            try:
                sink.send(notice)
            except Exception:
                logger.exception("Notice sink %s failed", type(sink).__name__)
        return notice

    def info(self, message: str) -> Notice:
        return self.notify(Severity.INFO, message)

    def success(self, message: str) -> Notice:
        return self.notify(Severity.SUCCESS, message)

    def warning(self, message: str) -> Notice:
        return self.notify(Severity.WARNING, message)

    def error(self, message: str) -> Notice:
        return self.notify(Severity.ERROR, message)

    @property
    def sink_count(self) -> int:
        return len(self._sinks)

    async def aclose(self) -> None:
        for sink in self._sinks:
            await sink.aclose()
