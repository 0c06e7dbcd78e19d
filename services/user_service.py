"""
User service: remember identities handed over by the identity provider

Identities are never minted or validated here. The first time an id is seen
a User row is stored with its display name.
"""
from typing import Optional

from sqlalchemy.orm import Session

from models import User

DEFAULT_USER_NAME = "Anonymous"


def ensure_user(db: Session, user_id: str, name: Optional[str] = None) -> User:
    """
    Return the User for ``user_id``, creating it on first sight.

    An existing user's name is left untouched. Only flushes; the caller
    owns the transaction.
    """
    user = db.get(User, user_id)
    if user:
        return user

    user = User(id=user_id, name=(name or "").strip()[:100] or DEFAULT_USER_NAME)
    db.add(user)
    db.flush()
    return user
