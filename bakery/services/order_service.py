"""
Order Service - checkout and order lifecycle.

create_order runs as one transaction: stock rows are locked and re-checked,
the order number is allocated, header/lines/custom cake rows are written and
stock is decremented. Any failure rolls everything back. Cart clearing,
promo usage and the confirmation notification only happen after commit.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, object_session

from bakery.domain.cart import CartLineItem, CustomConfig, GuestInfo
from bakery.domain.identity import CartIdentity, resolve_identity
from bakery.exceptions import (
    BakeryError, BusinessLogicError, EmptyCartError, IdentityError, InsufficientStockError,
    InvalidPromoError, NotFoundError, OrderCreationError, ProductNotFoundError
)
from bakery.models import (
    CustomCakeConfiguration, Order, OrderItem, OrderStatus, PaymentMethod, PaymentStatus
)
from bakery.services.account_service import AccountDirectory
from bakery.services.cart_service import CartService
from bakery.services.catalog_service import Catalog
from bakery.services.notification_service import (
    NotificationDispatcher, NotificationEvent, STATUS_EVENTS, notify
)
from bakery.services.order_number_service import next_order_number
from bakery.services.order_state import AUTO_CONFIRMING_PAYMENTS, OrderStateMachine
from bakery.services.promo_service import record_promo_usage, validate_promo
from bakery.utils.money import to_money

logger = logging.getLogger(__name__)


@dataclass
class CreateOrderData:
    """
    Checkout request.

    Identify the customer with `user_id` or with guest details (name plus
    email or phone). Lines come from the identity's cart (`user_id` or
    `session_id`); `items` is only used for direct checkout without a cart.
    Client-side prices in `items` are ignored.
    """
    user_id: Optional[Any] = None
    session_id: Optional[str] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    items: List[Any] = field(default_factory=list)
    promo_code: Optional[str] = None
    payment_method: str = PaymentMethod.CASH.value
    pickup_instructions: Optional[str] = None
    preferred_pickup_date: Optional[Any] = None
    preferred_pickup_time: Optional[str] = None


@dataclass
class _Customer:
    user_id: Optional[int]
    name: str
    email: Optional[str]
    phone: Optional[str]


def restore_order_stock(order: Order) -> None:
    """Put every line's quantity back on the shelf (cancel hook)."""
    catalog = Catalog(object_session(order))
    for item in order.items:
        catalog.restore_stock(item.product_id, item.quantity)
    logger.info(f"[ORDER] Stock restored for cancelled order {order.order_number}")


def _coerce_line(item) -> CartLineItem:
    if isinstance(item, CartLineItem):
        return item
    if not isinstance(item, dict) or item.get('product_id') in (None, ''):
        raise BusinessLogicError('Each order item needs a product_id')
    try:
        quantity = int(item.get('quantity', 1))
    except (TypeError, ValueError):
        raise BusinessLogicError(f"Invalid quantity: {item.get('quantity')}")
    custom = item.get('custom_config')
    if isinstance(custom, dict):
        try:
            custom = CustomConfig.from_dict(custom)
        except (KeyError, ValueError) as e:
            raise BusinessLogicError(f"Invalid custom cake configuration: {e}")
    return CartLineItem(
        product_id=item['product_id'],
        quantity=quantity,
        unit_price=Decimal('0'),
        custom_config=custom
    )


def _parse_pickup_date(value) -> Optional[date]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise BusinessLogicError(f"Invalid pickup date: {value}")


def _normalize_phone(phone: Optional[str]) -> str:
    return ''.join(ch for ch in (phone or '') if ch.isdigit())


class OrderService:
    """Checkout coordinator and staff-facing order lifecycle operations."""

    def __init__(
        self,
        cart_service: CartService,
        notifier: Optional[NotificationDispatcher] = None,
        prefix: str = 'ORD',
        promo_soft_fail: bool = True,
        restore_stock_on_cancel: bool = False
    ):
        self.cart_service = cart_service
        self.notifier = notifier
        self.prefix = prefix
        self.promo_soft_fail = promo_soft_fail
        self.restore_stock_on_cancel = restore_stock_on_cancel

        self.state_machine = OrderStateMachine()
        self.state_machine.on_cancel(restore_order_stock)

    # =====================================================
    # CHECKOUT
    # =====================================================

    def create_order(self, session: Session, data: CreateOrderData) -> Order:
        """
        Place an order from a cart (or an explicit item list).

        Raises:
            IdentityError: neither an account nor complete guest details
            EmptyCartError: nothing to order
            ProductNotFoundError, InsufficientStockError: catalog re-check failed
            InvalidPromoError: bad promo code while soft-fail is disabled
            OrderCreationError: the store failed; nothing was written
        """
        identity = self._resolve_identity(data)
        cart = self.cart_service.find_cart(identity) if identity else None
        customer = self._resolve_customer(session, data, cart)

        try:
            payment_method = PaymentMethod(data.payment_method).value
        except ValueError:
            raise BusinessLogicError(f"Unknown payment method: {data.payment_method}")
        pickup_date = _parse_pickup_date(data.preferred_pickup_date)

        from_cart = cart is not None and not cart.is_empty
        source = cart.items if from_cart else [_coerce_line(item) for item in data.items or []]
        if not source:
            raise EmptyCartError()

        catalog = Catalog(session)
        promo = None
        try:
            # 1. Re-price from the catalog and re-check stock under row locks
            lines, names = self._price_lines(catalog, source)
            self._check_stock(catalog, lines, names)

            # 2. Totals
            subtotal = to_money(sum((line.subtotal for line in lines), Decimal('0')))
            discount = Decimal('0.00')
            if data.promo_code:
                promo, discount = self._apply_promo(session, data.promo_code, subtotal)
            total = to_money(subtotal - discount)

            # 3. Order header
            order = Order(
                order_number=next_order_number(session, self.prefix),
                user_id=customer.user_id,
                guest_name=None if customer.user_id else customer.name,
                guest_email=None if customer.user_id else customer.email,
                guest_phone=None if customer.user_id else customer.phone,
                customer_name=customer.name,
                customer_email=customer.email,
                customer_phone=customer.phone,
                status=OrderStatus.PENDING.value,
                payment_status=PaymentStatus.PENDING.value,
                payment_method=payment_method,
                total_amount=total,
                discount_amount=discount,
                promo_code=promo.code if promo else None,
                pickup_instructions=data.pickup_instructions,
                preferred_pickup_date=pickup_date,
                preferred_pickup_time=data.preferred_pickup_time
            )
            session.add(order)
            session.flush()

            # 4. Line snapshots and custom cake rows
            for line in lines:
                order_item = OrderItem(
                    order_id=order.id,
                    product_id=int(line.product_id),
                    product_name=names[line.product_id],
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    subtotal=line.subtotal
                )
                session.add(order_item)
                session.flush()

                if line.custom_config is not None:
                    config = line.custom_config
                    session.add(CustomCakeConfiguration(
                        order_id=order.id,
                        order_item_id=order_item.id,
                        flavor=config.flavor,
                        size=config.size,
                        frosting=config.frosting,
                        message=config.message,
                        image_reference=config.image_reference,
                        extra_details=config.extras or None
                    ))

            # 5. Stock (compare-and-set per line)
            for line in lines:
                catalog.decrement_stock(line.product_id, line.quantity)

            session.commit()
            logger.info(f"[ORDER] Created order {order.order_number} total ${total}")

        except BakeryError:
            session.rollback()
            raise
        except Exception as e:
            session.rollback()
            logger.error(f"[ORDER] Order creation failed: {e}")
            raise OrderCreationError() from e

        self._after_commit(session, order, identity if from_cart else None, promo)
        return order

    # =====================================================
    # QUERIES
    # =====================================================

    def get_order(self, session: Session, order_id) -> Optional[Order]:
        return session.get(Order, order_id)

    def list_orders(
        self,
        session: Session,
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        limit: int = 20
    ) -> Dict[str, Any]:
        """
        Newest-first order listing for staff.

        Supported filters: status, payment_status, user_id, email,
        date_from, date_to (dates) and search (order number or customer name).
        """
        filters = filters or {}
        page = max(1, int(page))
        limit = max(1, min(int(limit), 100))

        query = session.query(Order)
        if filters.get('status'):
            query = query.filter(Order.status == OrderStatus(filters['status']).value)
        if filters.get('payment_status'):
            query = query.filter(Order.payment_status == PaymentStatus(filters['payment_status']).value)
        if filters.get('user_id'):
            query = query.filter(Order.user_id == int(filters['user_id']))
        if filters.get('email'):
            query = query.filter(func.lower(Order.customer_email) == filters['email'].strip().lower())
        if filters.get('date_from'):
            query = query.filter(Order.created_at >= datetime.combine(filters['date_from'], datetime.min.time()))
        if filters.get('date_to'):
            query = query.filter(Order.created_at <= datetime.combine(filters['date_to'], datetime.max.time()))
        if filters.get('search'):
            term = f"%{filters['search'].strip()}%"
            query = query.filter(or_(Order.order_number.ilike(term), Order.customer_name.ilike(term)))

        total = query.count()
        orders = query.order_by(Order.created_at.desc(), Order.id.desc()) \
            .offset((page - 1) * limit).limit(limit).all()

        return {
            'orders': orders,
            'total': total,
            'page': page,
            'limit': limit,
            'pages': (total + limit - 1) // limit,
        }

    def track_order(
        self,
        session: Session,
        order_number: str,
        email: Optional[str] = None,
        phone: Optional[str] = None
    ) -> Optional[Order]:
        """Order lookup for customers: the number plus a matching email OR phone."""
        if not order_number or not (email or phone):
            return None

        order = session.query(Order).filter(Order.order_number == order_number.strip()).first()
        if order is None:
            return None

        if email and order.customer_email and order.customer_email.lower() == email.strip().lower():
            return order
        if phone and order.customer_phone and _normalize_phone(order.customer_phone) == _normalize_phone(phone):
            return order
        return None

    # =====================================================
    # LIFECYCLE
    # =====================================================

    def update_order_status(self, session: Session, order_id, status) -> Order:
        order = self._get_or_404(session, order_id)
        try:
            self.state_machine.apply_transition(order, status, run_hooks=self.restore_stock_on_cancel)
            session.commit()
        except Exception:
            session.rollback()
            raise

        event = STATUS_EVENTS.get(OrderStatus(order.status))
        if event is not None:
            notify(self.notifier, event, order)
        return order

    def update_payment_status(
        self,
        session: Session,
        order_id,
        payment_status,
        payment_reference: Optional[str] = None,
        payment_method: Optional[str] = None
    ) -> Order:
        """Record a payment update; staff confirmations also confirm a pending order."""
        order = self._get_or_404(session, order_id)
        try:
            if payment_method is not None:
                try:
                    order.payment_method = PaymentMethod(payment_method).value
                except ValueError:
                    raise BusinessLogicError(f"Unknown payment method: {payment_method}")
            if payment_reference is not None:
                order.payment_reference = payment_reference
            confirmed = self.state_machine.apply_payment_status(order, payment_status)
            session.commit()
        except Exception:
            session.rollback()
            raise

        if confirmed:
            notify(self.notifier, NotificationEvent.ORDER_CONFIRMED, order)
        elif PaymentStatus(order.payment_status) in AUTO_CONFIRMING_PAYMENTS:
            notify(self.notifier, NotificationEvent.PAYMENT_CONFIRMED, order)
        return order

    def update_order_details(
        self,
        session: Session,
        order_id,
        pickup_instructions: Optional[str] = None,
        preferred_pickup_date=None,
        preferred_pickup_time: Optional[str] = None,
        staff_notes: Optional[str] = None
    ) -> Order:
        """Staff edits of pickup details and notes. Fields left as None are unchanged."""
        order = self._get_or_404(session, order_id)
        try:
            if pickup_instructions is not None:
                order.pickup_instructions = pickup_instructions
            if preferred_pickup_date is not None:
                order.preferred_pickup_date = _parse_pickup_date(preferred_pickup_date)
            if preferred_pickup_time is not None:
                order.preferred_pickup_time = preferred_pickup_time
            if staff_notes is not None:
                order.staff_notes = staff_notes
            session.commit()
        except Exception:
            session.rollback()
            raise

        logger.info(f"[ORDER] Details updated for order {order.order_number}")
        return order

    def cancel_order(
        self,
        session: Session,
        order_id,
        reason: Optional[str] = None,
        restore_stock: Optional[bool] = None
    ) -> Order:
        """
        Cancel an order. Stock is only put back when asked to, either per call
        or through RESTORE_STOCK_ON_CANCEL.
        """
        order = self._get_or_404(session, order_id)
        restore = self.restore_stock_on_cancel if restore_stock is None else restore_stock
        try:
            self.state_machine.apply_transition(order, OrderStatus.CANCELLED, run_hooks=restore)
            if reason:
                note = f"Cancelled: {reason}"
                order.staff_notes = f"{order.staff_notes}\n{note}" if order.staff_notes else note
            session.commit()
        except Exception:
            session.rollback()
            raise

        notify(self.notifier, NotificationEvent.ORDER_CANCELLED, order)
        return order

    # =====================================================
    # PRIVATE HELPERS
    # =====================================================

    @staticmethod
    def _get_or_404(session: Session, order_id) -> Order:
        order = session.get(Order, order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    @staticmethod
    def _resolve_identity(data: CreateOrderData) -> Optional[CartIdentity]:
        if data.user_id is None and not data.session_id:
            return None
        return resolve_identity(user_id=data.user_id, session_id=data.session_id)

    @staticmethod
    def _resolve_customer(session: Session, data: CreateOrderData, cart) -> _Customer:
        if data.user_id is not None:
            account = AccountDirectory(session).resolve(data.user_id)
            return _Customer(int(data.user_id), account.name, account.email, account.phone)

        info = GuestInfo(data.guest_name, data.guest_email, data.guest_phone)
        if cart is not None and cart.guest_info is not None:
            info = cart.guest_info.merged_with(info)

        if not info.name or not (info.email or info.phone):
            raise IdentityError('Guest checkout requires a name and an email or phone')
        return _Customer(None, info.name.strip(), info.email, info.phone)

    @staticmethod
    def _price_lines(catalog: Catalog, source: List[CartLineItem]) -> Tuple[List[CartLineItem], Dict[str, str]]:
        """Fresh line copies at the current catalog price."""
        lines = []
        names = {}
        for item in source:
            if item.quantity <= 0:
                raise BusinessLogicError('Quantity must be greater than 0')
            product = catalog.get_product(item.product_id)
            if product is None:
                raise ProductNotFoundError(item.product_id)
            names[product.id] = product.name
            lines.append(CartLineItem(
                product_id=product.id,
                quantity=item.quantity,
                unit_price=item.priced_at(product.price),
                custom_config=item.custom_config
            ))
        return lines, names

    @staticmethod
    def _check_stock(catalog: Catalog, lines: List[CartLineItem], names: Dict[str, str]) -> None:
        required: Dict[str, int] = {}
        for line in lines:
            required[line.product_id] = required.get(line.product_id, 0) + line.quantity

        levels = catalog.lock_stock(required.keys())
        for product_id, quantity in required.items():
            available = levels.get(product_id, 0)
            if available < quantity:
                raise InsufficientStockError(names[product_id], quantity, available)

    def _apply_promo(self, session: Session, code: str, subtotal: Decimal):
        validation = validate_promo(session, code, subtotal)
        if validation.valid:
            return validation.promo, validation.discount_amount

        if not self.promo_soft_fail:
            raise InvalidPromoError(code, validation.reason)
        logger.warning(f"[PROMO] Ignoring promo {code}: {validation.reason}")
        return None, Decimal('0.00')

    def _after_commit(self, session: Session, order: Order, identity: Optional[CartIdentity], promo) -> None:
        """Post-commit side effects. Failures are logged, the order stands."""
        if identity is not None:
            try:
                self.cart_service.clear_cart(identity)
            except Exception:
                logger.exception(f"[ORDER] Failed to clear cart after order {order.order_number}")

        if promo is not None:
            try:
                record_promo_usage(session, promo.id)
            except Exception:
                session.rollback()
                logger.exception(f"[PROMO] Failed to record usage for order {order.order_number}")

        notify(self.notifier, NotificationEvent.ORDER_PLACED, order)
