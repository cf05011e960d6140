"""
Unit tests for notification dispatch and rendering.
"""

from unittest.mock import patch

from bakery.models import Order, OrderItem
from bakery.services.notification_service import (
    CeleryNotificationDispatcher, NotificationDispatcher, NotificationEvent, notify, render_message
)


class ExplodingDispatcher(NotificationDispatcher):
    def enqueue(self, event, recipient, context):
        raise RuntimeError('broker unreachable')


def _order():
    order = Order(order_number='ORD20261019001', status='pending', payment_status='pending',
                  payment_method='cash', total_amount='46.78', discount_amount='5.20',
                  customer_name='Sam', customer_email='sam@example.com')
    order.items.append(OrderItem(product_id=1, product_name='Chocolate Cake', quantity=2,
                                 unit_price='25.99', subtotal='51.98'))
    return order


class TestNotify:
    """Tests for best-effort dispatch."""

    def test_dispatcher_failure_is_swallowed(self):
        notify(ExplodingDispatcher(), NotificationEvent.ORDER_PLACED, _order())

    def test_no_dispatcher_is_a_no_op(self):
        notify(None, NotificationEvent.ORDER_PLACED, _order())

    def test_celery_enqueue_failure_is_swallowed(self, app):
        with patch('bakery.tasks.notifications.deliver_notification.delay', side_effect=RuntimeError('down')):
            CeleryNotificationDispatcher().enqueue('order_placed', {'email': 'a@b.c'}, {'order_number': 'X'})


class TestRenderMessage:
    def test_placed_message(self):
        recipient = {'name': 'Sam', 'email': 'sam@example.com', 'phone': None}
        context = {
            'order_number': 'ORD20261019001',
            'total_amount': '46.78',
            'discount_amount': '5.20',
            'items': [{'name': 'Chocolate Cake', 'quantity': 2, 'unit_price': '25.99', 'subtotal': '51.98'}],
        }

        subject, body = render_message('order_placed', recipient, context, business_name='Sweet Crumbs')

        assert subject == 'We received your order ORD20261019001'
        assert 'Hi Sam,' in body
        assert '2 x Chocolate Cake' in body
        assert 'Discount: -$5.20' in body
        assert body.endswith('Sweet Crumbs')
