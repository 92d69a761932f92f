"""
Delivery API — Order status state machine

    pending → confirmed → preparing → ready → on_way → delivered
       └──────────┴───────────┴─────────┴───────┴──→ cancelled

delivered and cancelled are terminal. A driver claim is only possible while
the order is pending or confirmed, and leaves it confirmed.
"""
from delivery_api.core.exceptions import InvalidTransition
from delivery_api.models.order import OrderStatus

S = OrderStatus

TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    S.PENDING:   frozenset({S.CONFIRMED, S.CANCELLED}),
    S.CONFIRMED: frozenset({S.PREPARING, S.CANCELLED}),
    S.PREPARING: frozenset({S.READY, S.CANCELLED}),
    S.READY:     frozenset({S.ON_WAY, S.CANCELLED}),
    S.ON_WAY:    frozenset({S.DELIVERED, S.CANCELLED}),
    S.DELIVERED: frozenset(),
    S.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, nxt in TRANSITIONS.items() if not nxt)
OPEN_STATUSES = frozenset(TRANSITIONS) - TERMINAL_STATUSES
CLAIMABLE_STATUSES = frozenset({S.PENDING, S.CONFIRMED})
CLAIMED_STATUS = S.CONFIRMED
# Statuses that only make sense once a driver holds the order
DRIVER_REQUIRED_STATUSES = frozenset({S.ON_WAY, S.DELIVERED})

STATUS_MESSAGES: dict[OrderStatus, str] = {
    S.PENDING:   "تم استلام الطلب وجاري المراجعة",
    S.CONFIRMED: "تم تأكيد الطلب وجاري التحضير",
    S.PREPARING: "جاري تحضير الطلب",
    S.READY:     "الطلب جاهز للاستلام",
    S.ON_WAY:    "الطلب في الطريق إليك",
    S.DELIVERED: "تم تسليم الطلب بنجاح",
    S.CANCELLED: "تم إلغاء الطلب",
}
DRIVER_ASSIGNED_MESSAGE = "تم تعيين سائق للطلب"


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in TRANSITIONS[current]


def ensure_transition(current: OrderStatus, target: OrderStatus, *, has_driver: bool) -> None:
    """Raise InvalidTransition unless `target` may follow `current`."""
    if not can_transition(current, target):
        raise InvalidTransition(current, target)
    if target in DRIVER_REQUIRED_STATUSES and not has_driver:
        raise InvalidTransition(current, target, "The order has no assigned driver.")
