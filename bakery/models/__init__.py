"""Models package - exports all SQLAlchemy models."""
from bakery.models.app_user import AppUser
from bakery.models.product import Product
from bakery.models.product_stock import ProductStock
from bakery.models.promo_code import PromoCode, DiscountType
from bakery.models.order import Order, OrderStatus, PaymentStatus, PaymentMethod
from bakery.models.order_item import OrderItem
from bakery.models.custom_cake_configuration import CustomCakeConfiguration
from bakery.models.order_sequence import OrderSequence

__all__ = [
    'AppUser',
    # Catalog
    'Product', 'ProductStock',
    # Promotions
    'PromoCode', 'DiscountType',
    # Orders
    'Order', 'OrderStatus', 'PaymentStatus', 'PaymentMethod',
    'OrderItem', 'CustomCakeConfiguration', 'OrderSequence',
]
