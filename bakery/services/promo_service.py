"""Promo code validation and usage accounting."""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from bakery.models import PromoCode, DiscountType
from bakery.exceptions import BusinessLogicError
from bakery.utils.money import as_utc, to_money, utcnow

logger = logging.getLogger(__name__)

REASON_NOT_FOUND = 'Invalid promo code'
REASON_NOT_ACTIVE = 'Promo code is not valid at this time'
REASON_EXHAUSTED = 'Promo code usage limit reached'


@dataclass
class PromoValidation:
    valid: bool
    discount_amount: Decimal = Decimal('0.00')
    reason: Optional[str] = None
    promo: Optional[PromoCode] = None


def find_promo(session: Session, code: str) -> Optional[PromoCode]:
    """Case-insensitive lookup."""
    if not code or not code.strip():
        return None
    return session.query(PromoCode).filter(
        func.upper(PromoCode.code) == code.strip().upper()
    ).first()


def create_promo_code(
    session: Session,
    code: str,
    discount_type: str,
    amount,
    valid_from: datetime,
    valid_to: datetime,
    usage_limit: Optional[int] = None
) -> PromoCode:
    """Create a promo code (stored upper-case)."""
    if find_promo(session, code) is not None:
        raise BusinessLogicError(f"Promo code {code.upper()} already exists")
    try:
        discount_type = DiscountType(discount_type).value
    except ValueError:
        raise BusinessLogicError(f"Unknown discount type: {discount_type}")
    if to_money(amount) <= 0:
        raise BusinessLogicError("Promo amount must be greater than 0")
    if valid_to < valid_from:
        raise BusinessLogicError("Promo validity window ends before it starts")

    promo = PromoCode(
        code=code.strip().upper(),
        discount_type=discount_type,
        amount=to_money(amount),
        valid_from=valid_from,
        valid_to=valid_to,
        usage_limit=usage_limit,
        used_count=0
    )
    session.add(promo)
    session.flush()
    return promo


def calculate_discount(promo: PromoCode, subtotal) -> Decimal:
    """Discount for a subtotal, never more than the subtotal itself."""
    subtotal = to_money(subtotal)
    amount = to_money(promo.amount)

    if promo.discount_type == DiscountType.PERCENT.value:
        discount = subtotal * amount / Decimal('100')
    else:
        discount = amount

    return to_money(max(Decimal('0'), min(discount, subtotal)))


def validate_promo(session: Session, code: str, subtotal, now: Optional[datetime] = None) -> PromoValidation:
    """
    Validate a promo code against an order subtotal.

    Checks in order: the code exists, now falls inside [valid_from, valid_to],
    and the usage limit (if any) is not reached.
    """
    promo = find_promo(session, code)
    if promo is None:
        return PromoValidation(valid=False, reason=REASON_NOT_FOUND)

    now = now or utcnow()
    if now < as_utc(promo.valid_from) or now > as_utc(promo.valid_to):
        return PromoValidation(valid=False, reason=REASON_NOT_ACTIVE, promo=promo)

    if promo.is_exhausted:
        return PromoValidation(valid=False, reason=REASON_EXHAUSTED, promo=promo)

    return PromoValidation(
        valid=True,
        discount_amount=calculate_discount(promo, subtotal),
        promo=promo
    )


def record_promo_usage(session: Session, promo_id: int) -> bool:
    """
    Count one use of a promo code. Call only after the order is committed.

    The increment is guarded by the usage limit in the same statement, so
    concurrent checkouts cannot push used_count past usage_limit.
    """
    result = session.execute(
        update(PromoCode)
        .where(
            PromoCode.id == promo_id,
            or_(PromoCode.usage_limit.is_(None), PromoCode.used_count < PromoCode.usage_limit)
        )
        .values(used_count=PromoCode.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    if result.rowcount != 1:
        logger.warning(f"[PROMO] Usage of promo {promo_id} not recorded (limit reached)")
        return False
    return True


def get_active_promos(session: Session, now: Optional[datetime] = None) -> List[PromoCode]:
    """Promo codes usable right now, soonest-expiring first."""
    now = now or utcnow()
    promos = session.query(PromoCode).order_by(PromoCode.valid_to.asc()).all()
    return [
        promo for promo in promos
        if as_utc(promo.valid_from) <= now <= as_utc(promo.valid_to) and not promo.is_exhausted
    ]
