"""Mutable cell holding the maintenance event currently being viewed."""

import logging

logger = logging.getLogger(__name__)


class EventScope:
    """The viewed maintenance-event id, or ``None`` for the active event.

    Poll ticks and bulk actions read :attr:`event_id` when they run rather
    than capturing it when they are scheduled, so a scope change is picked
    up by the very next request.
    """

    def __init__(self, event_id: str | None = None) -> None:
        self._event_id = event_id
        self._version = 0

    @property
    def event_id(self) -> str | None:
        return self._event_id

    @property
    def version(self) -> int:
        """Incremented on every effective scope change."""
        return self._version

    def set(self, event_id: str | None) -> bool:
        """Switch scope. Returns False when ``event_id`` is already the scope."""
        event_id = event_id or None
        if event_id == self._event_id:
            return False
        logger.info("Viewed maintenance event: %s -> %s", self._event_id or "active", event_id or "active")
        self._event_id = event_id
        self._version += 1
        return True
