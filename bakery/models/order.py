"""Order model."""
import enum
from sqlalchemy import Column, BigInteger, String, Text, Numeric, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from bakery.database import Base, BigIntPK


class OrderStatus(str, enum.Enum):
    """Order lifecycle status."""
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    PREPARING = 'preparing'
    READY = 'ready'
    PICKED_UP = 'picked_up'
    CANCELLED = 'cancelled'
    NO_SHOW = 'no_show'


class PaymentStatus(str, enum.Enum):
    """Payment status, updated by staff."""
    PENDING = 'pending'
    MANUAL_CONFIRMED = 'manual_confirmed'
    PAID_ON_PICKUP = 'paid_on_pickup'
    BANK_TRANSFER_RECEIVED = 'bank_transfer_received'
    FAILED = 'failed'
    REFUNDED = 'refunded'


class PaymentMethod(str, enum.Enum):
    """Accepted payment methods."""
    CASH = 'cash'
    CARD_ON_PICKUP = 'card_on_pickup'
    BANK_TRANSFER = 'bank_transfer'
    MANUAL_ENTRY = 'manual_entry'


class Order(Base):
    """
    Order (pickup order).

    Line items are point-in-time copies of the cart. The status only moves
    through the order state machine; cancelling never deletes the row.
    """

    __tablename__ = 'orders'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_number = Column(String(32), nullable=False, unique=True, index=True)

    # Customer: either an account or a guest triple
    user_id = Column(BigInteger, ForeignKey('app_user.id'), nullable=True, index=True)
    guest_name = Column(String(200), nullable=True)
    guest_email = Column(String(255), nullable=True)
    guest_phone = Column(String(50), nullable=True)

    # Denormalized contact snapshot (account or guest) for tracking and notifications
    customer_name = Column(String(200), nullable=True)
    customer_email = Column(String(255), nullable=True, index=True)
    customer_phone = Column(String(50), nullable=True, index=True)

    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    payment_status = Column(String(30), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.CASH.value)
    payment_reference = Column(String(100), nullable=True)

    total_amount = Column(Numeric(10, 2), nullable=False)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    promo_code = Column(String(50), nullable=True)

    # Pickup information
    pickup_instructions = Column(Text, nullable=True)
    preferred_pickup_date = Column(Date, nullable=True)
    preferred_pickup_time = Column(String(20), nullable=True)
    staff_notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship('AppUser', back_populates='orders')
    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan',
                         order_by='OrderItem.id')
    custom_cakes = relationship('CustomCakeConfiguration', back_populates='order', cascade='all, delete-orphan')

    @property
    def is_guest_order(self):
        return self.user_id is None

    @property
    def subtotal_amount(self):
        """Sum of line subtotals before discount."""
        return sum((item.subtotal for item in self.items), 0)

    def __repr__(self):
        return f"<Order(id={self.id}, number='{self.order_number}', status='{self.status}', total={self.total_amount})>"
