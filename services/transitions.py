"""
Order status transition table.

The normal path is linear; ASSIGNED_PICKUP may be skipped when the pickup agent
is bound outside the workflow. CANCELLED and RETURNED are reachable from every
non-terminal state. Terminal states accept nothing.
"""

from models.enums import OrderStatus

NORMAL_PATH: tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.ASSIGNED_PICKUP,
    OrderStatus.PICKED_UP,
    OrderStatus.AT_ORIGIN_HUB,
    OrderStatus.DISPATCHED_FROM_ORIGIN,
    OrderStatus.IN_TRANSIT,
    OrderStatus.AT_DESTINATION_HUB,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)

TERMINAL_STATES: frozenset[OrderStatus] = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.RETURNED}
)

SIDE_EXITS: frozenset[OrderStatus] = frozenset({OrderStatus.CANCELLED, OrderStatus.RETURNED})


def _build_transitions() -> dict[OrderStatus, frozenset[OrderStatus]]:
    table: dict[OrderStatus, frozenset[OrderStatus]] = {}
    for current, successor in zip(NORMAL_PATH, NORMAL_PATH[1:]):
        table[current] = frozenset({successor}) | SIDE_EXITS
    table[OrderStatus.PENDING] = table[OrderStatus.PENDING] | {OrderStatus.PICKED_UP}
    for terminal in TERMINAL_STATES:
        table[terminal] = frozenset()
    return table


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = _build_transitions()

# Share of the journey completed, as shown on the tracking page
PROGRESS_PERCENT: dict[OrderStatus, int] = {
    OrderStatus.PENDING: 0,
    OrderStatus.ASSIGNED_PICKUP: 10,
    OrderStatus.PICKED_UP: 20,
    OrderStatus.AT_ORIGIN_HUB: 30,
    OrderStatus.DISPATCHED_FROM_ORIGIN: 40,
    OrderStatus.IN_TRANSIT: 60,
    OrderStatus.AT_DESTINATION_HUB: 75,
    OrderStatus.OUT_FOR_DELIVERY: 90,
    OrderStatus.DELIVERED: 100,
    OrderStatus.CANCELLED: 0,
    OrderStatus.RETURNED: 0,
}


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATES


def allowed_next(status: OrderStatus) -> frozenset[OrderStatus]:
    return ALLOWED_TRANSITIONS.get(status, frozenset())


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """True when target is a permitted successor of current. Same-status is not a transition."""
    return target in allowed_next(current)
