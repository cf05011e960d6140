"""
Integration tests for order creation (checkout).
"""

from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest

from bakery.domain.cart import CustomConfig, GuestInfo
from bakery.domain.identity import GuestIdentity, UserIdentity
from bakery.exceptions import (
    BusinessLogicError, EmptyCartError, IdentityError, InsufficientStockError, InvalidPromoError,
    OrderCreationError, ProductNotFoundError
)
from bakery.models import CustomCakeConfiguration, Order, OrderItem, PromoCode
from bakery.services.order_service import CreateOrderData, OrderService
from bakery.utils.money import utcnow


def _custom():
    return CustomConfig(flavor='vanilla', size='medium_8', frosting='buttercream', message='Congrats!')


class TestCheckoutScenario:
    """Chocolate cake plus a custom cake with WELCOME10."""

    def test_user_checkout_with_promo(self, session, cart_service, order_service, dispatcher,
                                      customer, chocolate_cake, custom_cake, welcome_promo, stock_of):
        user = UserIdentity(str(customer.id))
        cart_service.add_item(user, chocolate_cake.id, 2)
        cart_service.add_item(user, custom_cake.id, 1, _custom())

        order = order_service.create_order(session, CreateOrderData(
            user_id=customer.id,
            promo_code='welcome10',
            preferred_pickup_date=date(2026, 10, 24),
            preferred_pickup_time='10:00'
        ))

        # 51.98 + 45.00 = 96.98, 10% = 9.70
        assert order.status == 'pending'
        assert order.payment_status == 'pending'
        assert order.discount_amount == Decimal('9.70')
        assert order.total_amount == Decimal('87.28')
        assert order.promo_code == 'WELCOME10'
        assert order.customer_email == 'ana@example.com'
        assert order.customer_name == 'Ana Baker'
        assert order.is_guest_order is False
        assert order.subtotal_amount == Decimal('96.98')

        assert stock_of(chocolate_cake.id) == 8
        assert stock_of(custom_cake.id) == 4
        assert cart_service.get_or_create(user).is_empty

        cake_row = session.query(CustomCakeConfiguration).filter_by(order_id=order.id).one()
        assert cake_row.size == 'medium_8'
        assert cake_row.message == 'Congrats!'
        assert cake_row.order_item.unit_price == Decimal('45.00')

        assert session.get(PromoCode, welcome_promo.id).used_count == 1
        assert dispatcher.events == ['order_placed']
        assert dispatcher.sent[0][1]['email'] == 'ana@example.com'


class TestCheckoutSources:
    """Tests for where checkout lines and customer details come from."""

    def test_guest_checkout_from_cart_uses_stored_guest_info(self, session, cart_service, order_service,
                                                             chocolate_cake, stock_of):
        guest = GuestIdentity('guest_abc')
        cart_service.add_item(guest, chocolate_cake.id, 3)
        cart_service.update_guest_info(guest, GuestInfo(name='Sam', phone='555-0101'))

        order = order_service.create_order(session, CreateOrderData(session_id='guest_abc'))

        assert order.is_guest_order
        assert order.guest_name == 'Sam'
        assert order.customer_phone == '555-0101'
        assert len(order.items) == 1
        assert order.items[0].quantity == 3
        assert stock_of(chocolate_cake.id) == 7
        assert cart_service.get_or_create(guest).is_empty

    def test_direct_checkout_ignores_client_prices(self, session, order_service, chocolate_cake, custom_cake):
        order = order_service.create_order(session, CreateOrderData(
            guest_name='Lee',
            guest_email='lee@example.com',
            items=[
                {'product_id': chocolate_cake.id, 'quantity': 1, 'unit_price': '0.01'},
                {'product_id': custom_cake.id, 'quantity': 1,
                 'custom_config': {'flavor': 'lemon', 'size': 'small_6', 'frosting': 'meringue'}},
            ]
        ))

        assert [item.unit_price for item in order.items] == [Decimal('25.99'), Decimal('30.00')]
        assert order.total_amount == Decimal('55.99')
        assert len(order.custom_cakes) == 1

    def test_checkout_uses_current_catalog_price(self, session, cart_service, order_service, chocolate_cake):
        guest = GuestIdentity('guest_abc')
        cart_service.add_item(guest, chocolate_cake.id, 1)
        chocolate_cake.price = Decimal('28.00')
        session.commit()

        order = order_service.create_order(session, CreateOrderData(
            session_id='guest_abc', guest_name='Sam', guest_email='sam@example.com'))

        assert order.total_amount == Decimal('28.00')


class TestCheckoutRejections:
    """Rejections happen before anything is written."""

    def test_guest_without_contact(self, session, cart_service, order_service, chocolate_cake):
        cart_service.add_item(GuestIdentity('guest_abc'), chocolate_cake.id, 1)

        with pytest.raises(IdentityError):
            order_service.create_order(session, CreateOrderData(session_id='guest_abc', guest_name='Sam'))

        assert session.query(Order).count() == 0

    def test_unknown_user(self, session, order_service):
        with pytest.raises(IdentityError):
            order_service.create_order(session, CreateOrderData(user_id=424242))

    def test_empty_cart(self, session, order_service, customer):
        with pytest.raises(EmptyCartError):
            order_service.create_order(session, CreateOrderData(user_id=customer.id))

    def test_empty_direct_checkout(self, session, order_service):
        with pytest.raises(EmptyCartError):
            order_service.create_order(session, CreateOrderData(guest_name='Lee', guest_phone='555'))

    def test_rejected_guest_leaves_no_cart_behind(self, session, cart_store, order_service, chocolate_cake):
        with pytest.raises(IdentityError):
            order_service.create_order(session, CreateOrderData(
                session_id='guest_new',
                items=[{'product_id': chocolate_cake.id, 'quantity': 1}]
            ))

        assert cart_store.scan_keys('cart:*') == []

    def test_item_without_product_id(self, session, order_service):
        with pytest.raises(BusinessLogicError, match='product_id'):
            order_service.create_order(session, CreateOrderData(
                guest_name='Lee', guest_phone='555', items=[{'quantity': 2}]
            ))

    def test_non_numeric_quantity(self, session, order_service, chocolate_cake):
        with pytest.raises(BusinessLogicError, match='Invalid quantity'):
            order_service.create_order(session, CreateOrderData(
                guest_name='Lee', guest_phone='555',
                items=[{'product_id': chocolate_cake.id, 'quantity': 'two'}]
            ))

        assert session.query(Order).count() == 0

    def test_item_that_is_not_a_mapping(self, session, order_service, chocolate_cake):
        with pytest.raises(BusinessLogicError):
            order_service.create_order(session, CreateOrderData(
                guest_name='Lee', guest_phone='555', items=[chocolate_cake.id]
            ))

    def test_product_removed_since_added(self, session, cart_service, order_service, customer, chocolate_cake):
        cart_service.add_item(UserIdentity(str(customer.id)), chocolate_cake.id, 1)
        chocolate_cake.active = False
        session.commit()

        with pytest.raises(ProductNotFoundError):
            order_service.create_order(session, CreateOrderData(user_id=customer.id))


class TestCheckoutAtomicity:
    """All-or-nothing order creation."""

    def test_one_short_line_writes_nothing(self, session, cart_service, order_service, customer,
                                           chocolate_cake, make_product, stock_of):
        scone = make_product(name='Scone', price='2.50', stock=5)
        user = UserIdentity(str(customer.id))
        cart_service.add_item(user, chocolate_cake.id, 2)
        cart_service.add_item(user, scone.id, 4)

        # Someone else bought scones after they were added to the cart
        scone.stock.on_hand_qty = 1
        session.commit()

        with pytest.raises(InsufficientStockError):
            order_service.create_order(session, CreateOrderData(user_id=customer.id))

        assert session.query(Order).count() == 0
        assert session.query(OrderItem).count() == 0
        assert stock_of(chocolate_cake.id) == 10
        assert stock_of(scone.id) == 1
        assert len(cart_service.get_or_create(user).items) == 2

    def test_custom_lines_count_against_stock(self, session, order_service, custom_cake):
        items = [{'product_id': custom_cake.id, 'quantity': 3,
                  'custom_config': {'flavor': 'lemon', 'size': 'small_6', 'frosting': 'meringue'}},
                 {'product_id': custom_cake.id, 'quantity': 3}]

        with pytest.raises(InsufficientStockError):
            order_service.create_order(session, CreateOrderData(
                guest_name='Lee', guest_email='lee@example.com', items=items))

    def test_store_failure_is_retryable_and_rolls_back(self, session, cart_service, order_service,
                                                       customer, chocolate_cake, stock_of):
        cart_service.add_item(UserIdentity(str(customer.id)), chocolate_cake.id, 2)

        with patch('bakery.services.order_service.next_order_number', side_effect=RuntimeError('db gone')):
            with pytest.raises(OrderCreationError) as exc_info:
                order_service.create_order(session, CreateOrderData(user_id=customer.id))

        assert exc_info.value.retryable is True
        assert session.query(Order).count() == 0
        assert stock_of(chocolate_cake.id) == 10

    def test_full_stock_order(self, session, cart_service, order_service, customer,
                              chocolate_cake, make_product, stock_of):
        scone = make_product(name='Scone', price='2.50', stock=5)
        user = UserIdentity(str(customer.id))
        cart_service.add_item(user, chocolate_cake.id, 10)
        cart_service.add_item(user, scone.id, 5)

        order = order_service.create_order(session, CreateOrderData(user_id=customer.id))

        assert session.query(Order).count() == 1
        assert len(order.items) == 2
        assert stock_of(chocolate_cake.id) == 0
        assert stock_of(scone.id) == 0


class TestCheckoutPromos:
    """Promo handling during checkout."""

    def _exhausted(self, session):
        promo = PromoCode(code='ONCE', discount_type='fixed', amount=Decimal('5.00'),
                          valid_from=utcnow() - timedelta(days=1), valid_to=utcnow() + timedelta(days=1),
                          usage_limit=1, used_count=1)
        session.add(promo)
        session.commit()
        return promo

    def test_exhausted_promo_does_not_block_order(self, session, order_service, chocolate_cake):
        promo = self._exhausted(session)

        order = order_service.create_order(session, CreateOrderData(
            guest_name='Lee', guest_email='lee@example.com',
            items=[{'product_id': chocolate_cake.id, 'quantity': 1}], promo_code='ONCE'))

        assert order.discount_amount == Decimal('0.00')
        assert order.total_amount == Decimal('25.99')
        assert order.promo_code is None
        assert session.get(PromoCode, promo.id).used_count == 1

    def test_unknown_promo_is_ignored(self, session, order_service, chocolate_cake):
        order = order_service.create_order(session, CreateOrderData(
            guest_name='Lee', guest_email='lee@example.com',
            items=[{'product_id': chocolate_cake.id, 'quantity': 1}], promo_code='NOPE'))

        assert order.discount_amount == Decimal('0.00')

    def test_strict_promo_policy_rejects(self, session, cart_service, dispatcher, chocolate_cake, stock_of):
        self._exhausted(session)
        strict = OrderService(cart_service, notifier=dispatcher, promo_soft_fail=False)

        with pytest.raises(InvalidPromoError):
            strict.create_order(session, CreateOrderData(
                guest_name='Lee', guest_email='lee@example.com',
                items=[{'product_id': chocolate_cake.id, 'quantity': 1}], promo_code='ONCE'))

        assert session.query(Order).count() == 0
        assert stock_of(chocolate_cake.id) == 10


class TestOrderNumbers:
    def test_same_day_orders_are_sequential(self, session, order_service, chocolate_cake):
        data = dict(guest_name='Lee', guest_email='lee@example.com',
                    items=[{'product_id': chocolate_cake.id, 'quantity': 1}])

        first = order_service.create_order(session, CreateOrderData(**data))
        second = order_service.create_order(session, CreateOrderData(**data))

        today = utcnow().strftime('%Y%m%d')
        assert first.order_number == f'ORD{today}001'
        assert second.order_number == f'ORD{today}002'


class TestPostCommitFailures:
    def test_notification_failure_does_not_fail_order(self, session, cart_service, chocolate_cake):
        class Broken:
            def enqueue(self, event, recipient, context):
                raise RuntimeError('smtp down')

        service = OrderService(cart_service, notifier=Broken())
        order = service.create_order(session, CreateOrderData(
            guest_name='Lee', guest_email='lee@example.com',
            items=[{'product_id': chocolate_cake.id, 'quantity': 1}]))

        assert session.get(Order, order.id) is not None
