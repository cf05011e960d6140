"""Cart Service - cart mutations for account and guest carts."""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional, Tuple

from bakery.domain.cart import Cart, CartLineItem, CustomConfig, GuestInfo
from bakery.domain.identity import CartIdentity, GuestIdentity, UserIdentity, cart_key
from bakery.exceptions import (
    BusinessLogicError, CartItemNotFoundError, IdentityError, InsufficientStockError,
    OutOfStockError, ProductNotFoundError
)
from bakery.services.cart_store import CartStore
from bakery.services.catalog_service import Catalog
from bakery.utils.money import utcnow

logger = logging.getLogger(__name__)

PRICE_CHANGED = 'price-changed'
INSUFFICIENT_STOCK = 'insufficient-stock'
PRODUCT_REMOVED = 'product-removed'


@dataclass
class CartIssue:
    kind: str
    product_id: str
    message: str
    item_index: int


@dataclass
class CartValidation:
    valid: bool
    issues: List[CartIssue] = field(default_factory=list)

    @property
    def messages(self) -> List[str]:
        return [issue.message for issue in self.issues]


class CartService:
    """
    Cart use cases on top of a CartStore and the Catalog.

    Fungible lines (plain products) merge by quantity; custom cake lines are
    always separate lines. Unit prices are never locked: refresh_cart
    overwrites them with the current catalog price.
    """

    def __init__(self, store: CartStore, catalog: Catalog, key_prefix: str = 'cart', guest_ttl_days: int = 7):
        self.store = store
        self.catalog = catalog
        self.key_prefix = key_prefix
        self.guest_ttl = timedelta(days=guest_ttl_days)

    # =====================================================
    # QUERIES
    # =====================================================

    def get_or_create(self, identity: CartIdentity) -> Cart:
        """Get the identity's cart, creating it lazily. Expired guest carts are replaced."""
        key = self._key(identity)
        cart = self.store.get(key)

        if cart is not None and cart.is_expired():
            logger.info(f"[CART] Guest cart {key} expired at {cart.expires_at}, recreating")
            self.store.delete(key)
            cart = None

        if cart is None:
            cart = self._new_cart(identity)
            self._save(identity, cart)

        return cart

    def find_cart(self, identity: CartIdentity) -> Optional[Cart]:
        """Stored, unexpired cart for the identity, or None. Never writes."""
        cart = self.store.get(self._key(identity))
        if cart is None or cart.is_expired():
            return None
        return cart

    def item_count(self, identity: CartIdentity) -> int:
        return self.get_or_create(identity).item_count

    def validate_cart(self, identity: CartIdentity) -> CartValidation:
        """Report price drift, stock shortfalls and removed products without touching the cart."""
        cart = self.get_or_create(identity)
        issues = []

        for index, item in enumerate(cart.items):
            product = self.catalog.get_product(item.product_id)
            if product is None:
                issues.append(CartIssue(
                    PRODUCT_REMOVED, item.product_id,
                    f"Product {item.product_id} is no longer available", index
                ))
                continue

            current_price = item.priced_at(product.price)
            if item.unit_price != current_price:
                issues.append(CartIssue(
                    PRICE_CHANGED, item.product_id,
                    f"Price for {product.name} has changed from ${item.unit_price} to ${current_price}", index
                ))

            if not item.is_custom and item.quantity > product.stock:
                issues.append(CartIssue(
                    INSUFFICIENT_STOCK, item.product_id,
                    f"Insufficient stock for {product.name}. Available: {product.stock}, In cart: {item.quantity}",
                    index
                ))

        return CartValidation(valid=not issues, issues=issues)

    # =====================================================
    # COMMANDS
    # =====================================================

    def add_item(
        self,
        identity: CartIdentity,
        product_id,
        quantity: int,
        custom_config: Optional[CustomConfig] = None
    ) -> Cart:
        """Add a product, merging into an existing fungible line when possible."""
        if quantity <= 0:
            raise BusinessLogicError('Quantity must be greater than 0')

        product = self.catalog.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)

        cart = self.get_or_create(identity)

        if custom_config is not None:
            # Each custom cake is its own physical product: always a new line
            cart.items.append(CartLineItem(
                product_id=product.id,
                quantity=quantity,
                unit_price=custom_config.unit_price_for(product.price),
                custom_config=custom_config
            ))
        else:
            if product.stock <= 0:
                raise OutOfStockError(product.name)

            index = cart.find_fungible(product.id)
            if index != -1:
                new_qty = cart.items[index].quantity + quantity
                if new_qty > product.stock:
                    raise InsufficientStockError(product.name, new_qty, product.stock)
                cart.items[index].quantity = new_qty
            else:
                if quantity > product.stock:
                    raise InsufficientStockError(product.name, quantity, product.stock)
                cart.items.append(CartLineItem(
                    product_id=product.id,
                    quantity=quantity,
                    unit_price=product.price
                ))

        cart.recalculate()
        self._save(identity, cart)
        logger.info(f"[CART] Added {quantity} x product {product.id} to {self._key(identity)}")
        return cart

    def update_item(
        self,
        identity: CartIdentity,
        quantity: int,
        product_id=None,
        item_index: Optional[int] = None
    ) -> Cart:
        """Set a line's quantity. Quantity <= 0 removes the line."""
        if quantity <= 0:
            return self.remove_item(identity, product_id=product_id, item_index=item_index)

        cart = self.get_or_create(identity)
        index = self._locate(cart, product_id, item_index)
        item = cart.items[index]

        if not item.is_custom:
            product = self.catalog.get_product(item.product_id)
            if product is None:
                raise ProductNotFoundError(item.product_id)
            if quantity > product.stock:
                raise InsufficientStockError(product.name, quantity, product.stock)

        item.quantity = quantity
        cart.recalculate()
        self._save(identity, cart)
        return cart

    def remove_item(self, identity: CartIdentity, product_id=None, item_index: Optional[int] = None) -> Cart:
        """Remove a line by index, or the first fungible line of a product."""
        cart = self.get_or_create(identity)
        index = self._locate(cart, product_id, item_index)
        del cart.items[index]

        cart.recalculate()
        self._save(identity, cart)
        return cart

    def clear_cart(self, identity: CartIdentity) -> None:
        self.store.delete(self._key(identity))

    def update_guest_info(self, identity: CartIdentity, guest_info: GuestInfo) -> Cart:
        """Remember guest contact details on the cart for checkout."""
        if not isinstance(identity, GuestIdentity):
            raise IdentityError('Cannot update guest info for authenticated user cart')

        cart = self.get_or_create(identity)
        cart.guest_info = (cart.guest_info or GuestInfo()).merged_with(guest_info)
        cart.updated_at = utcnow()
        self._save(identity, cart)
        return cart

    def refresh_cart(self, identity: CartIdentity) -> Tuple[Cart, bool]:
        """
        Re-read price and stock for every line.

        Prices are overwritten with the current catalog price, fungible
        quantities are clamped to stock and lines for missing or sold-out
        products are dropped. Returns the cart and whether anything changed.
        """
        cart = self.get_or_create(identity)
        changed = False
        kept = []

        for item in cart.items:
            product = self.catalog.get_product(item.product_id)
            if product is None:
                logger.info(f"[CART] Dropping unavailable product {item.product_id}")
                changed = True
                continue

            current_price = item.priced_at(product.price)
            if item.unit_price != current_price:
                item.unit_price = current_price
                changed = True

            if not item.is_custom and item.quantity > product.stock:
                changed = True
                if product.stock <= 0:
                    logger.info(f"[CART] Dropping sold-out product {product.id}")
                    continue
                item.quantity = product.stock

            kept.append(item)

        if changed:
            cart.items = kept
            cart.recalculate()
            self._save(identity, cart)

        return cart, changed

    def merge_guest_cart(self, session_id: str, user_id) -> Cart:
        """
        Move a guest cart into the user's cart on login.

        Lines are replayed through add_item, so fungible lines merge by
        quantity and custom lines are appended. A line that no longer fits
        the catalog is skipped; the guest cart is deleted regardless so a
        stale guest cart can never block login.
        """
        guest = GuestIdentity(session_id)
        user = UserIdentity(str(user_id))
        guest_cart = self.store.get(self._key(guest))

        try:
            if guest_cart is not None and not guest_cart.is_expired():
                for item in guest_cart.items:
                    try:
                        self.add_item(user, item.product_id, item.quantity, item.custom_config)
                    except (ProductNotFoundError, OutOfStockError, InsufficientStockError) as e:
                        logger.warning(f"[CART] Skipped guest line {item.product_id} during merge: {e.message}")
        finally:
            self.clear_cart(guest)

        return self.get_or_create(user)

    # =====================================================
    # PRIVATE HELPERS
    # =====================================================

    def _key(self, identity: CartIdentity) -> str:
        return cart_key(identity, self.key_prefix)

    def _new_cart(self, identity: CartIdentity) -> Cart:
        if isinstance(identity, UserIdentity):
            return Cart(id=identity.user_id, user_id=identity.user_id)
        return Cart(
            id=identity.session_id,
            session_id=identity.session_id,
            expires_at=utcnow() + self.guest_ttl
        )

    def _save(self, identity: CartIdentity, cart: Cart) -> None:
        ttl = None
        if cart.expires_at is not None:
            ttl = int((cart.expires_at - utcnow()).total_seconds())
        self.store.put(self._key(identity), cart, ttl)

    @staticmethod
    def _locate(cart: Cart, product_id, item_index: Optional[int]) -> int:
        if item_index is not None:
            if 0 <= item_index < len(cart.items):
                return item_index
            raise CartItemNotFoundError(f"No cart line at index {item_index}")
        if product_id is None:
            raise CartItemNotFoundError('A product id or line index is required')
        index = cart.find_fungible(product_id)
        if index == -1:
            raise CartItemNotFoundError()
        return index
