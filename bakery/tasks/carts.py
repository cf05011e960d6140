import logging

from celery import shared_task
from flask import current_app

from bakery.services.cart_cleanup_service import sweep_expired_guest_carts
from bakery.services.cart_store import get_cart_store

logger = logging.getLogger(__name__)


@shared_task(name='bakery.tasks.carts.sweep_guest_carts')
def sweep_guest_carts() -> dict:
    logger.info("[SWEEP] Guest cart sweep task started")
    return sweep_expired_guest_carts(get_cart_store(), current_app.config.get('CART_KEY_PREFIX', 'cart'))
