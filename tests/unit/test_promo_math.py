"""
Unit tests for promo discount calculation.
"""

from decimal import Decimal

from bakery.models import PromoCode
from bakery.services.promo_service import calculate_discount


def _promo(discount_type, amount, usage_limit=None, used_count=0):
    return PromoCode(code='TEST', discount_type=discount_type, amount=Decimal(amount),
                     usage_limit=usage_limit, used_count=used_count)


class TestCalculateDiscount:
    """Tests for calculate_discount."""

    def test_percent(self):
        assert calculate_discount(_promo('percent', '10'), Decimal('96.98')) == Decimal('9.70')

    def test_fixed(self):
        assert calculate_discount(_promo('fixed', '5.00'), Decimal('20.00')) == Decimal('5.00')

    def test_fixed_clamped_to_subtotal(self):
        assert calculate_discount(_promo('fixed', '50.00'), Decimal('12.00')) == Decimal('12.00')

    def test_percent_over_100_clamped(self):
        assert calculate_discount(_promo('percent', '150'), Decimal('40.00')) == Decimal('40.00')


class TestExhaustion:
    def test_unlimited_never_exhausted(self):
        assert not _promo('percent', '10', usage_limit=None, used_count=1000).is_exhausted

    def test_limit_reached(self):
        assert _promo('percent', '10', usage_limit=5, used_count=5).is_exhausted
        assert not _promo('percent', '10', usage_limit=5, used_count=4).is_exhausted
