"""
Guest cart maintenance.

Redis TTLs already expire guest carts; this sweep only catches carts whose
own `expires_at` has passed but are still stored (written during a cache
outage, or carrying a stale TTL). It is not authoritative: CartService
re-checks expiry on every read.
"""
import logging
from datetime import timedelta
from typing import Dict

from bakery.domain.identity import GuestIdentity, cart_key
from bakery.services.cart_store import CartStore
from bakery.utils.money import utcnow

logger = logging.getLogger(__name__)


def sweep_expired_guest_carts(store: CartStore, key_prefix: str = 'cart') -> Dict[str, int]:
    """Delete expired or unreadable guest carts. Returns cleaned/error counts."""
    cleaned = 0
    errors = 0
    now = utcnow()

    for key in store.scan_keys(f"{key_prefix}:session:*"):
        try:
            cart = store.get(key)
            if cart is None or cart.is_expired(now):
                store.delete(key)
                cleaned += 1
                logger.debug(f"[SWEEP] Removed guest cart {key}")
        except Exception as e:
            logger.error(f"[SWEEP] Error cleaning cart {key}: {e}")
            errors += 1

    logger.info(f"[SWEEP] Guest cart sweep completed. Cleaned: {cleaned}, Errors: {errors}")
    return {'cleaned': cleaned, 'errors': errors}


def cart_statistics(store: CartStore, key_prefix: str = 'cart') -> Dict[str, int]:
    """Counts of stored user carts, guest carts and expired guest carts."""
    user_keys = store.scan_keys(f"{key_prefix}:user:*")
    guest_keys = store.scan_keys(f"{key_prefix}:session:*")
    now = utcnow()

    expired = 0
    for key in guest_keys:
        cart = store.get(key)
        if cart is not None and cart.is_expired(now):
            expired += 1

    return {
        'total_user_carts': len(user_keys),
        'total_guest_carts': len(guest_keys),
        'expired_guest_carts': expired,
    }


def extend_guest_cart(store: CartStore, session_id: str, days: int = 7, key_prefix: str = 'cart') -> bool:
    """Push a guest cart's expiry `days` into the future. False if there is no such cart."""
    key = cart_key(GuestIdentity(session_id), key_prefix)
    cart = store.get(key)
    if cart is None:
        return False

    cart.expires_at = utcnow() + timedelta(days=days)
    store.put(key, cart, int(timedelta(days=days).total_seconds()))
    logger.info(f"[SWEEP] Extended guest cart {key} until {cart.expires_at.isoformat()}")
    return True
