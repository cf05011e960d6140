"""
Unit tests for order number formatting.
"""

from datetime import date

from bakery.services.order_number_service import format_order_number, parse_sequence


class TestOrderNumberFormat:
    """Tests for format_order_number / parse_sequence."""

    def test_format(self):
        assert format_order_number('ORD', date(2026, 10, 19), 1) == 'ORD20261019001'
        assert format_order_number('ORD', date(2026, 10, 19), 42) == 'ORD20261019042'

    def test_sequence_beyond_width_is_not_truncated(self):
        assert format_order_number('ORD', date(2026, 10, 19), 1234) == 'ORD202610191234'

    def test_parse_same_day(self):
        assert parse_sequence('ORD20261019007', 'ORD', date(2026, 10, 19)) == 7

    def test_parse_other_day_or_prefix(self):
        assert parse_sequence('ORD20261018007', 'ORD', date(2026, 10, 19)) is None
        assert parse_sequence('WEB20261019007', 'ORD', date(2026, 10, 19)) is None
