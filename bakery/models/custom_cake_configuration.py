"""Custom cake configuration model."""
from sqlalchemy import Column, BigInteger, String, ForeignKey, JSON
from sqlalchemy.orm import relationship
from bakery.database import Base, BigIntPK


class CustomCakeConfiguration(Base):
    """Options of a made-to-order cake, one row per custom order line."""

    __tablename__ = 'custom_cake_configuration'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_id = Column(BigInteger, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    order_item_id = Column(BigInteger, ForeignKey('order_item.id', ondelete='CASCADE'), nullable=True)
    flavor = Column(String(100), nullable=False)
    size = Column(String(50), nullable=False)
    frosting = Column(String(100), nullable=False)
    message = Column(String(255), nullable=True)
    image_reference = Column(String(255), nullable=True)
    extra_details = Column(JSON, nullable=True)

    # Relationships
    order = relationship('Order', back_populates='custom_cakes')
    order_item = relationship('OrderItem', back_populates='custom_cake')

    def __repr__(self):
        return f"<CustomCakeConfiguration(id={self.id}, flavor='{self.flavor}', size='{self.size}')>"
