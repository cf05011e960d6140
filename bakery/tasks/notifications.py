import logging

from celery import shared_task
from flask import current_app

from bakery.services.email_service import send_email
from bakery.services.notification_service import render_message

logger = logging.getLogger(__name__)


@shared_task(name='bakery.tasks.notifications.deliver_notification')
def deliver_notification(event: str, recipient: dict, context: dict) -> dict:
    """Render and email an order notification. Phone-only customers are skipped."""
    order_number = context.get('order_number')
    email = recipient.get('email')
    if not email:
        logger.info(f"[NOTIFY] No email for order {order_number}, {event} not delivered")
        return {'event': event, 'order_number': order_number, 'status': 'skipped'}

    subject, body = render_message(
        event, recipient, context,
        business_name=current_app.config.get('BUSINESS_NAME', '')
    )
    sent = send_email(email, subject, body)
    logger.info(f"[NOTIFY] {event} for order {order_number}: {'sent' if sent else 'failed'}")
    return {'event': event, 'order_number': order_number, 'status': 'sent' if sent else 'failed'}
