"""
Unit tests for cart value objects.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from bakery.domain.cart import Cart, CartLineItem, CustomConfig, GuestInfo
from bakery.utils.money import to_money, utcnow


class TestCustomConfig:
    """Tests for custom cake pricing."""

    def test_size_multiplier_applied(self):
        config = CustomConfig(flavor='vanilla', size='medium_8', frosting='buttercream')
        assert config.unit_price_for(Decimal('30.00')) == Decimal('45.00')

    def test_unknown_size_uses_base_price(self):
        config = CustomConfig(flavor='vanilla', size='giant', frosting='buttercream')
        assert config.unit_price_for(Decimal('30.00')) == Decimal('30.00')

    def test_price_rounds_to_cents(self):
        config = CustomConfig(flavor='lemon', size='large_10', frosting='ganache')
        assert config.unit_price_for(Decimal('25.99')) == Decimal('57.18')

    def test_required_fields(self):
        with pytest.raises(ValueError):
            CustomConfig(flavor='', size='small_6', frosting='buttercream')


class TestCart:
    """Tests for Cart totals and lookups."""

    def test_total_equals_sum_of_subtotals(self):
        cart = Cart(id='1', user_id='1')
        cart.items.append(CartLineItem(product_id=1, quantity=2, unit_price='25.99'))
        cart.items.append(CartLineItem(product_id=2, quantity=3, unit_price='0.10'))
        cart.recalculate()

        assert cart.items[0].subtotal == Decimal('51.98')
        assert cart.total_amount == Decimal('52.28')
        assert cart.total_amount == sum(item.subtotal for item in cart.items)
        assert cart.item_count == 5

    def test_find_fungible_skips_custom_lines(self):
        config = CustomConfig(flavor='vanilla', size='small_6', frosting='buttercream')
        cart = Cart(id='1', user_id='1', items=[
            CartLineItem(product_id=9, quantity=1, unit_price='30', custom_config=config),
            CartLineItem(product_id=9, quantity=1, unit_price='30'),
        ])
        assert cart.find_fungible('9') == 1
        assert cart.find_fungible(10) == -1

    def test_expiry(self):
        cart = Cart(id='g', session_id='g', expires_at=utcnow() - timedelta(seconds=1))
        assert cart.is_expired()
        assert not Cart(id='u', user_id='u').is_expired()

    def test_dict_round_trip_keeps_custom_config_and_guest_info(self):
        config = CustomConfig(flavor='red velvet', size='sheet_half', frosting='cream cheese',
                              message='Happy Birthday', extras={'candles': 3})
        cart = Cart(id='g', session_id='g', expires_at=utcnow() + timedelta(days=7),
                    guest_info=GuestInfo(name='Sam', phone='555'))
        cart.items.append(CartLineItem(product_id=4, quantity=1, unit_price='75.00', custom_config=config))
        cart.recalculate()

        restored = Cart.from_dict(cart.to_dict())

        assert restored.items[0].custom_config == config
        assert restored.guest_info.name == 'Sam'
        assert restored.total_amount == Decimal('75.00')
        assert restored.expires_at == cart.expires_at


class TestGuestInfo:
    def test_merge_prefers_new_non_empty_fields(self):
        merged = GuestInfo(name='Sam', email='old@example.com').merged_with(GuestInfo(email='new@example.com'))
        assert merged == GuestInfo(name='Sam', email='new@example.com', phone=None)


def test_to_money_handles_floats_exactly():
    assert to_money(25.99) == Decimal('25.99')
    assert to_money(None) == Decimal('0.00')
    assert to_money('9.695') == Decimal('9.70')


class TestLinePricing:
    """Tests for CartLineItem.priced_at."""

    def test_plain_line_uses_base_price(self):
        line = CartLineItem(product_id='1', quantity=2, unit_price=Decimal('1.00'))
        assert line.priced_at(Decimal('3.5')) == Decimal('3.50')

    def test_custom_line_applies_size_multiplier(self):
        config = CustomConfig(flavor='vanilla', size='medium_8', frosting='buttercream')
        line = CartLineItem(product_id='1', quantity=1, unit_price=Decimal('0'), custom_config=config)
        assert line.priced_at(Decimal('30.00')) == Decimal('45.00')
