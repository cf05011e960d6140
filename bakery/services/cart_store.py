"""
Cart storage backends.

Carts live in a shared Redis cache (per-key TTL gives guest carts automatic
expiry). When Redis is unreachable every call degrades to a process-local
map so cart reads and writes keep working; guest-cart durability is what
degrades, not availability.
"""

import fnmatch
import json
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, date
from decimal import Decimal
from typing import Any, Dict, List, Optional

import redis
from redis.exceptions import RedisError
from flask import Flask

from bakery.domain.cart import Cart

logger = logging.getLogger(__name__)


class CartStore(ABC):
    """Key/value persistence for carts with optional per-key expiry."""

    @abstractmethod
    def get(self, key: str) -> Optional[Cart]:
        """Return the stored cart or None."""

    @abstractmethod
    def put(self, key: str, cart: Cart, ttl: Optional[int] = None) -> None:
        """Store a cart; `ttl` is in seconds."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a cart if present."""

    @abstractmethod
    def scan_keys(self, pattern: str) -> List[str]:
        """All keys matching a glob pattern. Only for off-path maintenance jobs."""


class MemoryCartStore(CartStore):
    """
    Process-local cart map.

    Has no TTL of its own: expiry is evaluated lazily from the cart's
    `expires_at` when CartService reads it. Carts are stored as dicts so
    callers never share mutable state with the store.
    """

    def __init__(self):
        self._data: Dict[str, dict] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Cart]:
        with self._lock:
            data = self._data.get(key)
        return Cart.from_dict(data) if data is not None else None

    def put(self, key: str, cart: Cart, ttl: Optional[int] = None) -> None:
        with self._lock:
            self._data[key] = cart.to_dict()

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def scan_keys(self, pattern: str) -> List[str]:
        with self._lock:
            return [key for key in self._data if fnmatch.fnmatchcase(key, pattern)]

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self):
        return len(self._data)


class RedisCartStore(CartStore):
    """
    Redis-backed cart store with a local fallback.

    Every Redis failure is logged and the same call is served by the
    embedded MemoryCartStore instead of raising.
    """

    def __init__(self, client: redis.Redis, fallback: Optional[MemoryCartStore] = None):
        self.client = client
        self.fallback = fallback if fallback is not None else MemoryCartStore()

    @classmethod
    def from_url(cls, redis_url: str, socket_timeout: float = 0.5) -> 'RedisCartStore':
        """Build a client with short timeouts so a dead cache never blocks a request."""
        client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=socket_timeout,
            socket_timeout=socket_timeout,
            socket_keepalive=True,
            max_connections=50,
            health_check_interval=30
        )
        try:
            client.ping()
            logger.info(f"[CART-STORE] Redis connected: {redis_url}")
        except RedisError as e:
            logger.warning(f"[CART-STORE] Redis unreachable at startup: {e}. Using local fallback until it recovers.")
        return cls(client)

    def _serialize(self, value: Any) -> str:
        """Serialize a cart dict to JSON keeping Decimal precision."""
        def default_handler(obj: Any) -> Any:
            if isinstance(obj, (datetime, date)):
                return obj.isoformat()
            elif isinstance(obj, Decimal):
                return {"__decimal__": str(obj)}
            raise TypeError(f"Object of type {type(obj)} is not JSON serializable")
        return json.dumps(value, default=default_handler)

    def _deserialize(self, value: str) -> Any:
        """Deserialize JSON string, reconstructing Decimals."""
        def object_hook(dct: Dict[str, Any]) -> Any:
            if "__decimal__" in dct:
                return Decimal(dct["__decimal__"])
            return dct
        return json.loads(value, object_hook=object_hook)

    def get(self, key: str) -> Optional[Cart]:
        try:
            raw = self.client.get(key)
        except RedisError as e:
            logger.warning(f"[CART-STORE] Get error for {key}: {e}. Reading local fallback.")
            return self.fallback.get(key)

        if raw is None:
            # May have been written while Redis was down
            return self.fallback.get(key)
        try:
            return Cart.from_dict(self._deserialize(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"[CART-STORE] Corrupt cart payload at {key}: {e}")
            return None

    def put(self, key: str, cart: Cart, ttl: Optional[int] = None) -> None:
        if ttl is not None and ttl <= 0:
            self.delete(key)
            return
        try:
            payload = self._serialize(cart.to_dict())
            if ttl:
                self.client.setex(key, ttl, payload)
            else:
                self.client.set(key, payload)
        except RedisError as e:
            logger.warning(f"[CART-STORE] Set error for {key}: {e}. Writing local fallback.")
            self.fallback.put(key, cart, ttl)
            return
        # Redis now holds the authoritative copy
        self.fallback.delete(key)

    def delete(self, key: str) -> None:
        try:
            self.client.delete(key)
        except RedisError as e:
            logger.warning(f"[CART-STORE] Delete error for {key}: {e}")
        finally:
            self.fallback.delete(key)

    def scan_keys(self, pattern: str) -> List[str]:
        keys = set(self.fallback.scan_keys(pattern))
        try:
            keys.update(self.client.scan_iter(match=pattern, count=100))
        except RedisError as e:
            logger.warning(f"[CART-STORE] Scan error for {pattern}: {e}")
        return sorted(keys)


def build_cart_store(config) -> CartStore:
    """Pick the cart store implementation from configuration."""
    backend = (config.get('CART_STORE_BACKEND') or 'redis').lower()
    if backend == 'memory':
        logger.info("[CART-STORE] Using process-local cart store")
        return MemoryCartStore()
    if backend == 'redis':
        return RedisCartStore.from_url(
            config.get('REDIS_URL', 'redis://redis:6379/0'),
            socket_timeout=config.get('CACHE_SOCKET_TIMEOUT', 0.5)
        )
    raise ValueError(f"Unknown CART_STORE_BACKEND: {backend}")


_cart_store: Optional[CartStore] = None


def init_cart_store(app: Flask) -> None:
    """Initialize the cart store singleton once per application."""
    global _cart_store
    _cart_store = build_cart_store(app.config)
    if not hasattr(app, 'extensions'):
        app.extensions = {}
    app.extensions['cart_store'] = _cart_store


def get_cart_store() -> CartStore:
    """Get cart store instance."""
    if _cart_store is None:
        raise RuntimeError("Cart store not initialized.")
    return _cart_store
