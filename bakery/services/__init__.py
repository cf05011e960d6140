"""Service builders bound to the current application's configuration."""
from flask import current_app


def build_cart_service(session):
    """CartService over the app's cart store and a catalog on `session`."""
    from bakery.services.cart_service import CartService
    from bakery.services.cart_store import get_cart_store
    from bakery.services.catalog_service import Catalog

    return CartService(
        get_cart_store(),
        Catalog(session),
        key_prefix=current_app.config.get('CART_KEY_PREFIX', 'cart'),
        guest_ttl_days=current_app.config.get('GUEST_CART_TTL_DAYS', 7)
    )


def build_order_service(session, notifier=None):
    """OrderService configured from the app; notifications go through Celery by default."""
    from bakery.services.notification_service import CeleryNotificationDispatcher
    from bakery.services.order_service import OrderService

    return OrderService(
        build_cart_service(session),
        notifier=notifier or CeleryNotificationDispatcher(),
        prefix=current_app.config.get('ORDER_NUMBER_PREFIX', 'ORD'),
        promo_soft_fail=current_app.config.get('PROMO_SOFT_FAIL', True),
        restore_stock_on_cancel=current_app.config.get('RESTORE_STOCK_ON_CANCEL', False)
    )
