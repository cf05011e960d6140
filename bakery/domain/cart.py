"""Cart value objects persisted in the cart store as JSON-ready dicts."""
from dataclasses import dataclass, field, asdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from bakery.utils.money import to_money, utcnow

# Custom cake sizes and their price multiplier over the base product price
SIZE_MULTIPLIERS = {
    'small_6': Decimal('1.0'),
    'medium_8': Decimal('1.5'),
    'large_10': Decimal('2.2'),
    'xlarge_12': Decimal('3.0'),
    'sheet_quarter': Decimal('1.8'),
    'sheet_half': Decimal('2.5'),
}


@dataclass
class CustomConfig:
    """Made-to-order cake options. A line carrying one is never merged."""
    flavor: str
    size: str
    frosting: str
    message: Optional[str] = None
    image_reference: Optional[str] = None
    extras: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        for name in ('flavor', 'size', 'frosting'):
            if not getattr(self, name):
                raise ValueError(f"Custom cake {name} is required")

    @property
    def price_multiplier(self) -> Decimal:
        """Unknown sizes are priced like the base product."""
        return SIZE_MULTIPLIERS.get(self.size, Decimal('1.0'))

    def unit_price_for(self, base_price) -> Decimal:
        return to_money(to_money(base_price) * self.price_multiplier)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional['CustomConfig']:
        if not data:
            return None
        return cls(
            flavor=data['flavor'],
            size=data['size'],
            frosting=data['frosting'],
            message=data.get('message'),
            image_reference=data.get('image_reference'),
            extras=dict(data.get('extras') or data.get('extra_details') or {}),
        )


@dataclass
class CartLineItem:
    product_id: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal = Decimal('0.00')
    custom_config: Optional[CustomConfig] = None

    def __post_init__(self):
        self.product_id = str(self.product_id)
        self.unit_price = to_money(self.unit_price)
        self.recalculate()

    @property
    def is_custom(self) -> bool:
        return self.custom_config is not None

    def recalculate(self) -> None:
        self.subtotal = to_money(self.unit_price * self.quantity)

    def priced_at(self, base_price) -> Decimal:
        """Unit price of this line for a catalog base price (size multiplier for custom cakes)."""
        if self.custom_config is not None:
            return self.custom_config.unit_price_for(base_price)
        return to_money(base_price)

    def to_dict(self) -> dict:
        return {
            'product_id': self.product_id,
            'quantity': self.quantity,
            'unit_price': self.unit_price,
            'subtotal': self.subtotal,
            'custom_config': self.custom_config.to_dict() if self.custom_config else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'CartLineItem':
        return cls(
            product_id=data['product_id'],
            quantity=int(data['quantity']),
            unit_price=data['unit_price'],
            custom_config=CustomConfig.from_dict(data.get('custom_config')),
        )


@dataclass
class GuestInfo:
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    def merged_with(self, other: 'GuestInfo') -> 'GuestInfo':
        """Non-empty fields of `other` win."""
        return GuestInfo(
            name=other.name or self.name,
            email=other.email or self.email,
            phone=other.phone or self.phone,
        )

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional['GuestInfo']:
        if not data:
            return None
        return cls(name=data.get('name'), email=data.get('email'), phone=data.get('phone'))


@dataclass
class Cart:
    """
    A staging cart owned by exactly one identity.

    `id` is the user id for account carts and the session id for guest carts.
    `total_amount` always equals the sum of line subtotals after `recalculate()`.
    """
    id: str
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    items: List[CartLineItem] = field(default_factory=list)
    total_amount: Decimal = Decimal('0.00')
    updated_at: datetime = field(default_factory=utcnow)
    expires_at: Optional[datetime] = None
    guest_info: Optional[GuestInfo] = None

    @property
    def is_guest(self) -> bool:
        return self.user_id is None

    @property
    def is_empty(self) -> bool:
        return not self.items

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utcnow())

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def recalculate(self) -> None:
        """Refresh line subtotals, the cart total and the timestamp."""
        for item in self.items:
            item.recalculate()
        self.total_amount = to_money(sum((item.subtotal for item in self.items), Decimal('0')))
        self.updated_at = utcnow()

    def find_fungible(self, product_id) -> int:
        """Index of the first non-custom line for a product, -1 if none."""
        product_id = str(product_id)
        for index, item in enumerate(self.items):
            if item.product_id == product_id and not item.is_custom:
                return index
        return -1

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'session_id': self.session_id,
            'items': [item.to_dict() for item in self.items],
            'total_amount': self.total_amount,
            'updated_at': self.updated_at,
            'expires_at': self.expires_at,
            'guest_info': self.guest_info.to_dict() if self.guest_info else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Cart':
        cart = cls(
            id=data['id'],
            user_id=data.get('user_id'),
            session_id=data.get('session_id'),
            items=[CartLineItem.from_dict(item) for item in data.get('items') or []],
            total_amount=to_money(data.get('total_amount')),
            updated_at=_parse_datetime(data.get('updated_at')) or utcnow(),
            expires_at=_parse_datetime(data.get('expires_at')),
            guest_info=GuestInfo.from_dict(data.get('guest_info')),
        )
        return cart


def _parse_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)
