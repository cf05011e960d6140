"""Per-day order number counter."""
from sqlalchemy import Column, String, Integer
from bakery.database import Base


class OrderSequence(Base):
    """
    Last issued order sequence for a prefix and calendar day.

    Incremented with a single UPDATE so concurrent checkouts on the same day
    serialize on this row instead of racing on MAX(order_number).
    """

    __tablename__ = 'order_sequence'

    prefix = Column(String(10), primary_key=True)
    day = Column(String(8), primary_key=True)  # YYYYMMDD
    last_value = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<OrderSequence(prefix='{self.prefix}', day='{self.day}', last_value={self.last_value})>"
