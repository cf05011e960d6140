"""
Cart identity resolution.

Every cart operation is addressed either by an authenticated user or by an
anonymous guest session, never both and never neither.
"""
import uuid
from dataclasses import dataclass
from typing import Optional, Union

from bakery.exceptions import IdentityError


@dataclass(frozen=True)
class UserIdentity:
    user_id: str

    @property
    def is_guest(self) -> bool:
        return False


@dataclass(frozen=True)
class GuestIdentity:
    session_id: str

    @property
    def is_guest(self) -> bool:
        return True


CartIdentity = Union[UserIdentity, GuestIdentity]


def resolve_identity(user_id: Optional[object] = None, session_id: Optional[str] = None) -> CartIdentity:
    """
    Return the addressing identity for a request.

    An authenticated user always addresses their own cart, even if the client
    still carries a guest token.
    """
    if user_id is not None and str(user_id).strip():
        return UserIdentity(str(user_id))
    if session_id:
        return GuestIdentity(session_id)
    raise IdentityError()


def generate_session_id() -> str:
    """New opaque guest token. Always server-side, never derived from client input."""
    return f"guest_{uuid.uuid4()}"


def cart_key(identity: CartIdentity, prefix: str = 'cart') -> str:
    """Storage key for an identity's cart."""
    if isinstance(identity, UserIdentity):
        return f"{prefix}:user:{identity.user_id}"
    if isinstance(identity, GuestIdentity):
        return f"{prefix}:session:{identity.session_id}"
    raise IdentityError(f"Unsupported cart identity: {identity!r}")
