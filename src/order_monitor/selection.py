"""Selected watch-record ids and the rules that keep them valid."""

import logging
from collections.abc import Iterable, Iterator

from order_monitor.data.models import WatchRecord

logger = logging.getLogger(__name__)


class WatchSelection:
    """Ordered set of selected ``watch_id`` values.

    After :meth:`reconcile` the selection only holds ids of records that are
    present and unresolved in the latest watch snapshot.
    """

    def __init__(self) -> None:
        self._ids: dict[str, None] = {}

    def toggle(self, watch_id: str) -> bool:
        """Flip membership of ``watch_id``. Returns True when it is now selected."""
        if watch_id in self._ids:
            del self._ids[watch_id]
            return False
        self._ids[watch_id] = None
        return True

    def select_all(self, checked: bool, records: Iterable[WatchRecord]) -> None:
        """Select every unresolved record when ``checked``, otherwise clear."""
        if not checked:
            self.clear()
            return
        self._ids = {w.watch_id: None for w in records if not w.resolved}

    def reconcile(self, records: Iterable[WatchRecord]) -> list[str]:
        """Drop ids that are missing or resolved in ``records``. Returns the dropped ids."""
        if not self._ids:
            return []
        valid = {w.watch_id for w in records if not w.resolved}
        dropped = [watch_id for watch_id in self._ids if watch_id not in valid]
        for watch_id in dropped:
            del self._ids[watch_id]
        if dropped:
            logger.debug("Pruned %d stale watch selection(s): %s", len(dropped), ", ".join(dropped))
        return dropped

    def discard(self, watch_id: str) -> None:
        self._ids.pop(watch_id, None)

    def clear(self) -> None:
        self._ids = {}

    @property
    def ids(self) -> frozenset[str]:
        return frozenset(self._ids)

    def as_list(self) -> list[str]:
        """Selected ids in selection order."""
        return list(self._ids)

    def __contains__(self, watch_id: object) -> bool:
        return watch_id in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._ids))

    def __len__(self) -> int:
        return len(self._ids)

    def __bool__(self) -> bool:
        return bool(self._ids)
