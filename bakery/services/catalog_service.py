"""Read-only catalog lookups and stock movements used by carts and checkout."""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from bakery.models import Product, ProductStock
from bakery.exceptions import InsufficientStockError, ProductNotFoundError
from bakery.utils.money import to_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProductSnapshot:
    """Authoritative price and availability of a product at read time."""
    id: str
    name: str
    price: Decimal
    stock: int
    is_customizable: bool = False


def _parse_id(product_id) -> Optional[int]:
    try:
        return int(product_id)
    except (TypeError, ValueError):
        return None


class Catalog:
    """Catalog collaborator backed by the product tables."""

    def __init__(self, session: Session):
        self.session = session

    def get_product(self, product_id) -> Optional[ProductSnapshot]:
        """Current price/stock, or None if the product is unknown or inactive."""
        pid = _parse_id(product_id)
        if pid is None:
            return None
        product = self.session.query(Product).filter(Product.id == pid).first()
        if not product or not product.active:
            return None
        return ProductSnapshot(
            id=str(product.id),
            name=product.name,
            price=to_money(product.price),
            stock=self._on_hand(pid),
            is_customizable=bool(product.is_customizable)
        )

    def _on_hand(self, pid: int) -> int:
        # Column query: bypasses ProductStock rows cached in the identity map.
        qty = self.session.query(ProductStock.on_hand_qty).filter(
            ProductStock.product_id == pid
        ).scalar()
        return int(qty or 0)

    def lock_stock(self, product_ids: Iterable) -> Dict[str, int]:
        """Lock product_stock rows FOR UPDATE and return current levels."""
        ids = sorted({pid for pid in (_parse_id(p) for p in product_ids) if pid is not None})
        if not ids:
            return {}
        rows = self.session.query(ProductStock.product_id, ProductStock.on_hand_qty).filter(
            ProductStock.product_id.in_(ids)
        ).with_for_update().all()
        return {str(product_id): int(qty) for product_id, qty in rows}

    def decrement_stock(self, product_id, quantity: int) -> ProductStock:
        """
        Take `quantity` units off the shelf.

        Compare-and-set: the UPDATE only matches while on_hand_qty >= quantity,
        so two checkouts can never drive stock negative.
        """
        pid = _parse_id(product_id)
        if pid is None:
            raise ProductNotFoundError(product_id)

        result = self.session.execute(
            update(ProductStock)
            .where(ProductStock.product_id == pid, ProductStock.on_hand_qty >= quantity)
            .values(on_hand_qty=ProductStock.on_hand_qty - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            snapshot = self.get_product(pid)
            if snapshot is None:
                raise ProductNotFoundError(product_id)
            raise InsufficientStockError(snapshot.name, quantity, snapshot.stock)

        stock = self.session.get(ProductStock, pid)
        self.session.refresh(stock)
        return stock

    def restore_stock(self, product_id, quantity: int) -> None:
        """Put units back (compensating action for cancelled orders)."""
        pid = _parse_id(product_id)
        if pid is None:
            return
        self.session.execute(
            update(ProductStock)
            .where(ProductStock.product_id == pid)
            .values(on_hand_qty=ProductStock.on_hand_qty + quantity)
            .execution_options(synchronize_session=False)
        )
        stock = self.session.get(ProductStock, pid)
        if stock is not None:
            self.session.refresh(stock)
        logger.info(f"[CATALOG] Restored {quantity} unit(s) of product {pid}")
