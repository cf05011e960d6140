"""Money and clock helpers shared by cart and order services."""
from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime, timezone
from typing import Union, Optional

CENT = Decimal('0.01')


def to_money(value: Union[int, float, Decimal, str, None]) -> Decimal:
    """
    Normalize a numeric value to a 2-decimal Decimal.

    Floats go through str() first so 25.99 stays 25.99.

    Examples:
        to_money(25.99) -> Decimal('25.99')
        to_money('5') -> Decimal('5.00')
        to_money(None) -> Decimal('0.00')
    """
    if value is None:
        return Decimal('0.00')
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite returns them without tzinfo)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
