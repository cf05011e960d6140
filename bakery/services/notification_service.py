"""
Order notifications.

Dispatch is fire-and-forget: enqueue never raises and never waits for
delivery. Delivery itself runs in a Celery worker (see bakery.tasks).
"""
import enum
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from bakery.models import Order, OrderStatus

logger = logging.getLogger(__name__)


class NotificationEvent(str, enum.Enum):
    ORDER_PLACED = 'order_placed'
    ORDER_CONFIRMED = 'order_confirmed'
    ORDER_READY = 'order_ready'
    ORDER_CANCELLED = 'order_cancelled'
    ORDER_NO_SHOW = 'order_no_show'
    PAYMENT_CONFIRMED = 'payment_confirmed'


# Status changes customers hear about; others (e.g. preparing) stay silent
STATUS_EVENTS = {
    OrderStatus.CONFIRMED: NotificationEvent.ORDER_CONFIRMED,
    OrderStatus.READY: NotificationEvent.ORDER_READY,
    OrderStatus.CANCELLED: NotificationEvent.ORDER_CANCELLED,
    OrderStatus.NO_SHOW: NotificationEvent.ORDER_NO_SHOW,
}


class NotificationDispatcher(ABC):
    @abstractmethod
    def enqueue(self, event: str, recipient: Dict[str, Any], context: Dict[str, Any]) -> None:
        """Queue a notification. Must not raise."""


class NullNotificationDispatcher(NotificationDispatcher):
    """Drops notifications (CLI scripts, tools)."""

    def enqueue(self, event, recipient, context) -> None:
        logger.debug(f"[NOTIFY] Dropped {event} for order {context.get('order_number')}")


class CeleryNotificationDispatcher(NotificationDispatcher):
    """Hands notifications to the Celery `deliver_notification` task."""

    def enqueue(self, event, recipient, context) -> None:
        from bakery.tasks.notifications import deliver_notification
        try:
            deliver_notification.delay(str(getattr(event, 'value', event)), recipient, context)
        except Exception as e:
            # Broker down: the order is already committed, only the message is lost
            logger.error(f"[NOTIFY] Failed to enqueue {event} for order {context.get('order_number')}: {e}")


def build_recipient(order: Order) -> Dict[str, Optional[str]]:
    return {
        'name': order.customer_name or 'Guest Customer',
        'email': order.customer_email,
        'phone': order.customer_phone,
    }


def build_context(order: Order) -> Dict[str, Any]:
    """JSON-safe order summary for message rendering."""
    items: List[Dict[str, Any]] = [
        {
            'name': item.product_name,
            'quantity': item.quantity,
            'unit_price': str(item.unit_price),
            'subtotal': str(item.subtotal),
        }
        for item in order.items
    ]
    return {
        'order_id': order.id,
        'order_number': order.order_number,
        'status': order.status,
        'payment_status': order.payment_status,
        'payment_method': order.payment_method,
        'total_amount': str(order.total_amount),
        'discount_amount': str(order.discount_amount),
        'promo_code': order.promo_code,
        'preferred_pickup_date': order.preferred_pickup_date.isoformat() if order.preferred_pickup_date else None,
        'preferred_pickup_time': order.preferred_pickup_time,
        'items': items,
    }


def notify(dispatcher: Optional[NotificationDispatcher], event: NotificationEvent, order: Order) -> None:
    """Best-effort dispatch: every failure is logged and swallowed."""
    if dispatcher is None:
        return
    try:
        dispatcher.enqueue(event.value, build_recipient(order), build_context(order))
    except Exception:
        logger.exception(f"[NOTIFY] Failed to send {event.value} notification for order {order.order_number}")


SUBJECTS = {
    NotificationEvent.ORDER_PLACED: "We received your order {order_number}",
    NotificationEvent.ORDER_CONFIRMED: "Your order {order_number} is confirmed",
    NotificationEvent.ORDER_READY: "Your order {order_number} is ready for pickup",
    NotificationEvent.ORDER_CANCELLED: "Your order {order_number} was cancelled",
    NotificationEvent.ORDER_NO_SHOW: "We missed you: order {order_number}",
    NotificationEvent.PAYMENT_CONFIRMED: "Payment received for order {order_number}",
}


def render_message(event: str, recipient: Dict[str, Any], context: Dict[str, Any], business_name: str = '') -> tuple:
    """Subject and plain-text body for an event."""
    subject = SUBJECTS[NotificationEvent(event)].format(**context)
    lines = [f"Hi {recipient.get('name') or 'there'},", "", subject + "."]
    for item in context.get('items', []):
        lines.append(f"  {item['quantity']} x {item['name']}  ${item['subtotal']}")
    if context.get('discount_amount') and context['discount_amount'] != '0.00':
        lines.append(f"  Discount: -${context['discount_amount']}")
    lines.append(f"  Total: ${context['total_amount']}")
    if context.get('preferred_pickup_date'):
        lines.append(f"Pickup: {context['preferred_pickup_date']} {context.get('preferred_pickup_time') or ''}".rstrip())
    if business_name:
        lines.extend(["", business_name])
    return subject, "\n".join(lines)
