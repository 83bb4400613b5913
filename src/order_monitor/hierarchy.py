"""Parent/child grouping of a flat open-order list."""

from dataclasses import dataclass, field, replace

from order_monitor.data.models import OpenOrder


@dataclass(frozen=True)
class OrderGroup:
    """A composite order and the child orders that belong to it.

    ``parent`` is ``None`` when the children arrived before their parent.
    """

    parent_id: str
    parent: OpenOrder | None
    children: tuple[OpenOrder, ...]

    def with_children(self, children: tuple[OpenOrder, ...]) -> "OrderGroup":
        return replace(self, children=children)


@dataclass(frozen=True)
class Grouping:
    grouped: tuple[OrderGroup, ...] = ()
    standalone: tuple[OpenOrder, ...] = ()
    pending_parents: tuple[OpenOrder, ...] = field(default=(), compare=False)


def build_hierarchy(orders: list[OpenOrder] | tuple[OpenOrder, ...]) -> Grouping:
    """Split orders into parent/child groups and standalone orders.

    1. An order with ``parent_order_id`` joins the children of that parent's
       group. This wins over rule 2 for orders carrying both signals.
    2. An order with non-empty ``child_order_ids`` becomes its group's parent.
    3. Groups without children are dropped; their parents are held back as
       ``pending_parents`` (children usually show up on a later poll) and are
       not listed as standalone.
    4. Everything else is standalone, in input order.
    """
    parents: dict[str, OpenOrder | None] = {}
    children: dict[str, list[OpenOrder]] = {}
    standalone: list[OpenOrder] = []

    for order in orders:
        if order.parent_order_id is not None:
            parents.setdefault(order.parent_order_id, None)
            children.setdefault(order.parent_order_id, []).append(order)
        elif order.child_order_ids:
            parents[order.id] = order
            children.setdefault(order.id, [])
        else:
            standalone.append(order)

    grouped: list[OrderGroup] = []
    pending: list[OpenOrder] = []
    for parent_id, parent in parents.items():
        members = children[parent_id]
        if members:
            grouped.append(OrderGroup(parent_id=parent_id, parent=parent, children=tuple(members)))
        elif parent is not None:
            pending.append(parent)

    return Grouping(grouped=tuple(grouped), standalone=tuple(standalone), pending_parents=tuple(pending))
