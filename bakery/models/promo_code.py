"""Promo code model."""
import enum
from sqlalchemy import Column, String, Integer, Numeric, DateTime
from bakery.database import Base, BigIntPK


class DiscountType(str, enum.Enum):
    """How a promo amount is applied to the subtotal."""
    PERCENT = 'percent'
    FIXED = 'fixed'


class PromoCode(Base):
    """
    Promo code.

    Codes are stored upper-case and looked up case-insensitively.
    `used_count` only moves after an order using the code has committed.
    """

    __tablename__ = 'promo_code'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    discount_type = Column(String(10), nullable=False, default=DiscountType.PERCENT.value)
    amount = Column(Numeric(10, 2), nullable=False)
    valid_from = Column(DateTime(timezone=True), nullable=False)
    valid_to = Column(DateTime(timezone=True), nullable=False)
    usage_limit = Column(Integer, nullable=True)  # NULL = unlimited
    used_count = Column(Integer, nullable=False, default=0)

    @property
    def is_exhausted(self):
        return self.usage_limit is not None and (self.used_count or 0) >= self.usage_limit

    def __repr__(self):
        return f"<PromoCode(code='{self.code}', type={self.discount_type}, amount={self.amount})>"
