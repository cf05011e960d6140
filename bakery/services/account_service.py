"""Account directory: contact details of registered customers."""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from bakery.models import AppUser
from bakery.exceptions import IdentityError


@dataclass(frozen=True)
class AccountInfo:
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None


class AccountDirectory:
    def __init__(self, session: Session):
        self.session = session

    def resolve(self, user_id) -> AccountInfo:
        """Contact details for an active account, IdentityError otherwise."""
        try:
            pid = int(user_id)
        except (TypeError, ValueError):
            raise IdentityError(f"Unknown user: {user_id}")

        user = self.session.get(AppUser, pid)
        if not user or not user.active:
            raise IdentityError(f"Unknown user: {user_id}")

        return AccountInfo(
            name=user.full_name or user.email,
            email=user.email,
            phone=user.phone
        )
