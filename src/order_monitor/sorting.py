"""Column-driven, type-aware sorting for open orders and their groups.

Sort keys are typed per column: numbers, epoch milliseconds, or lower-cased
text. Missing keys always sort last, whatever the direction. Remaining
values compare numerically when both are numbers and otherwise through a
case- and accent-insensitive natural collation, so ``"2"`` precedes ``"10"``.
"""

from __future__ import annotations

import math
import re
import unicodedata
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import cmp_to_key
from typing import Any, Literal

from order_monitor.data.models import OpenOrder
from order_monitor.hierarchy import Grouping

Direction = Literal["asc", "desc"]
SortKey = float | str | None

_NON_NUMERIC = re.compile(r"[^0-9+\-.]")
_LEADING_FLOAT = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)")
_DIGIT_RUNS = re.compile(r"(\d+)")


@dataclass(frozen=True)
class Column:
    id: str
    label: str
    sortable: bool = True


COLUMNS: tuple[Column, ...] = (
    Column("exchanges", "", sortable=False),
    Column("pair", "Pair"),
    Column("side", "Side"),
    Column("target_qty", "Target Qty"),
    Column("pct_filled", "Progress"),
    Column("status", "Status"),
    Column("time_start", "Time Start"),
    Column("resume_condition_normal", "Resume Condition"),
    Column("order_condition_normal", "Order Condition"),
)


@dataclass(frozen=True)
class SortState:
    """Active sort column (``None`` means unsorted) and direction."""

    column_id: str | None = None
    direction: Direction = "asc"

    def toggled(self, column_id: str, columns: tuple[Column, ...] = COLUMNS) -> SortState:
        """Advance the unsorted -> asc -> desc -> unsorted cycle for a column.

        Clicking a different column starts again at ascending. Unknown or
        non-sortable columns leave the state unchanged.
        """
        column = next((c for c in columns if c.id == column_id), None)
        if column is None or not column.sortable:
            return self
        if self.column_id != column_id:
            return SortState(column_id, "asc")
        if self.direction == "asc":
            return SortState(column_id, "desc")
        return SortState()


# ----------------------------------------------------------------------
# Value normalization
# ----------------------------------------------------------------------


def normalize_number(value: Any) -> float | None:
    """Parse a number out of a value, ignoring non-numeric characters.

    Parses the longest leading decimal after stripping everything but digits,
    signs and dots, so ``"$1,250.5 USDT"`` gives ``1250.5``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    match = _LEADING_FLOAT.match(_NON_NUMERIC.sub("", str(value)))
    return float(match.group(0)) if match else None


def normalize_date(value: Any) -> float | None:
    """Return epoch milliseconds for an ISO timestamp or a millisecond number."""
    if not value:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip())
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp() * 1000


def normalize_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).lower()


def _first_pair(pairs: Any) -> str | None:
    for part in str(pairs).split(","):
        if part.strip():
            return part.strip()
    return None


def _first_present(order: OpenOrder, *keys: str) -> Any:
    for key in keys:
        value = order.get(key)
        if value is not None:
            return value
    return None


def sort_value(order: OpenOrder | None, column_id: str | None) -> SortKey:
    """Extract the typed sort key of ``order`` for ``column_id``."""
    if order is None or not column_id:
        return None

    if column_id == "pair":
        if order.pair:
            return normalize_text(order.pair)
        pairs = order.get("pairs")
        return normalize_text(_first_pair(pairs)) if pairs else None
    if column_id in ("side", "status", "resume_condition_normal", "order_condition_normal"):
        return normalize_text(order.get(column_id))
    if column_id == "target_qty":
        return normalize_number(_first_present(order, "target_qty", "target_order_qty", "targetQty"))
    if column_id == "pct_filled":
        value = order.pct_filled
        if value is None:
            return None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        return normalize_number(str(value).replace("%", ""))
    if column_id == "time_start":
        return normalize_date(_first_present(order, "time_start", "start_time", "timeStart"))

    candidate = order.get(column_id)
    numeric = normalize_number(candidate)
    return numeric if numeric is not None else normalize_text(candidate)


# ----------------------------------------------------------------------
# Comparison
# ----------------------------------------------------------------------


def _stringify(value: float | str) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _collation_key(text: str) -> tuple[tuple[int, int, str], ...]:
    """Natural, case- and accent-insensitive collation key."""
    decomposed = unicodedata.normalize("NFKD", text)
    folded = "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()
    parts: list[tuple[int, int, str]] = []
    for index, chunk in enumerate(_DIGIT_RUNS.split(folded)):
        if not chunk:
            continue
        parts.append((0, int(chunk), "") if index % 2 else (1, 0, chunk))
    return tuple(parts)


def collate(a: str, b: str) -> int:
    key_a, key_b = _collation_key(a), _collation_key(b)
    return (key_a > key_b) - (key_a < key_b)


def compare_values(a: SortKey, b: SortKey, direction: Direction = "asc") -> int:
    """Compare two sort keys. ``None`` always loses, independent of ``direction``."""
    if a is None and b is None:
        return 0
    if a is None:
        return 1
    if b is None:
        return -1

    if isinstance(a, float) and isinstance(b, float):
        base = (a > b) - (a < b)
    else:
        base = collate(_stringify(a), _stringify(b))
    return -base if direction == "desc" else base


def order_comparator(state: SortState):
    """Return a ``cmp``-style function ordering two orders under ``state``."""

    def compare(a: OpenOrder | None, b: OpenOrder | None) -> int:
        return compare_values(sort_value(a, state.column_id), sort_value(b, state.column_id), state.direction)

    return compare


def sort_orders(orders: tuple[OpenOrder, ...] | list[OpenOrder], state: SortState) -> tuple[OpenOrder, ...]:
    """Return a new, stably sorted tuple. Unsorted state keeps input order."""
    if not state.column_id:
        return tuple(orders)
    return tuple(sorted(orders, key=cmp_to_key(order_comparator(state))))


def sort_grouping(grouping: Grouping, state: SortState) -> Grouping:
    """Sort standalone orders, each group's children, then the groups.

    Groups are ordered by their first child after the children themselves
    have been sorted. The input grouping is never modified.
    """
    if not state.column_id:
        return grouping

    compare = order_comparator(state)
    groups = [group.with_children(sort_orders(group.children, state)) for group in grouping.grouped]
    groups.sort(key=cmp_to_key(lambda g1, g2: compare(g1.children[0], g2.children[0])))
    return Grouping(
        grouped=tuple(groups),
        standalone=sort_orders(grouping.standalone, state),
        pending_parents=grouping.pending_parents,
    )
