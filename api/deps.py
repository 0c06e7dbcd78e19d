"""
Request identity

The identity provider sits in front of this service and forwards the
caller's stable id (X-User-Id) and display name (X-User-Name). Nothing
here validates or mints identities; a new id is only remembered.
"""
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from database import get_db
from core.exceptions import MissingIdentity
from services.user_service import ensure_user

logger = logging.getLogger(__name__)


def get_optional_user_id(
    x_user_id: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> Optional[str]:
    """Caller's user id if the identity headers are present"""
    user_id = (x_user_id or "").strip()
    if not user_id:
        return None

    try:
        ensure_user(db, user_id, x_user_name)
        db.commit()
    except IntegrityError:
        # Another request stored the same new identity first
        db.rollback()
        logger.info(f"User {user_id} was created concurrently")
    return user_id


def get_current_user_id(user_id: Optional[str] = Depends(get_optional_user_id)) -> str:
    """Caller's user id; the request is rejected without one"""
    if not user_id:
        raise MissingIdentity()
    return user_id
