"""
Order status state machine.

Statuses only move along TRANSITIONS. A few payment confirmations used by
staff also confirm a pending order; card payments deliberately do not.
"""
import logging
from typing import Callable, Dict, FrozenSet, List, Union

from bakery.models import Order, OrderStatus, PaymentStatus
from bakery.exceptions import BusinessLogicError, InvalidStateTransitionError

logger = logging.getLogger(__name__)

TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.PICKED_UP, OrderStatus.NO_SHOW, OrderStatus.CANCELLED}),
    OrderStatus.PICKED_UP: frozenset(),
    OrderStatus.NO_SHOW: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)

# Payment confirmations that also confirm a pending order
AUTO_CONFIRMING_PAYMENTS = frozenset({
    PaymentStatus.MANUAL_CONFIRMED,
    PaymentStatus.PAID_ON_PICKUP,
    PaymentStatus.BANK_TRANSFER_RECEIVED,
})

CancelHook = Callable[[Order], None]


def _as_status(value: Union[str, OrderStatus]) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise BusinessLogicError(f"Unknown order status: {value}")


def _as_payment_status(value: Union[str, PaymentStatus]) -> PaymentStatus:
    try:
        return PaymentStatus(value)
    except ValueError:
        raise BusinessLogicError(f"Unknown payment status: {value}")


def can_transition(current, requested) -> bool:
    return _as_status(requested) in TRANSITIONS[_as_status(current)]


def assert_transition(current, requested) -> None:
    if not can_transition(current, requested):
        raise InvalidStateTransitionError(_as_status(current).value, _as_status(requested).value)


class OrderStateMachine:
    """
    Applies status changes to orders.

    Hooks registered with `on_cancel` run after an order has moved to
    Cancelled (e.g. putting stock back). They are opt-in compensating
    actions; nothing is released by default.
    """

    def __init__(self):
        self._cancel_hooks: List[CancelHook] = []

    def on_cancel(self, hook: CancelHook) -> CancelHook:
        self._cancel_hooks.append(hook)
        return hook

    def apply_transition(self, order: Order, requested, run_hooks: bool = True) -> OrderStatus:
        """
        Move `order` to `requested` or raise, leaving the order untouched.

        `run_hooks=False` cancels without the registered compensating actions.
        """
        requested = _as_status(requested)
        previous = _as_status(order.status)
        assert_transition(previous, requested)

        order.status = requested.value
        logger.info(f"[ORDER] {order.order_number}: {previous.value} -> {requested.value}")

        if requested is OrderStatus.CANCELLED and run_hooks:
            for hook in self._cancel_hooks:
                hook(order)
        return previous

    def apply_payment_status(self, order: Order, payment_status) -> bool:
        """
        Record a payment status. Returns True when it also confirmed the order.

        Only manual confirmation, pay-on-pickup and bank-transfer-received
        advance Pending -> Confirmed.
        """
        payment_status = _as_payment_status(payment_status)
        order.payment_status = payment_status.value

        if (
            payment_status in AUTO_CONFIRMING_PAYMENTS
            and _as_status(order.status) is OrderStatus.PENDING
        ):
            self.apply_transition(order, OrderStatus.CONFIRMED)
            return True
        return False
