"""
Membership Registry: who belongs to which group, in which role

Responsibilities:
1. Join a group (password check, duplicate check)
2. List / count members
3. Membership lookups used by GroupManager

Members are returned unredacted; hiding recipients before reveal is
GroupManager's job.
"""
import hmac
import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from models import Member, MemberRole
from core.exceptions import AlreadyMember, GroupNotFound, SecretMismatch
from core.locks import group_mutex, lock_group_members, with_group_lock
from core.state_machine import GroupStateMachine
from database import settings, transactional
from services.user_service import ensure_user

logger = logging.getLogger(__name__)


def secret_matches(expected: Optional[str], supplied: Optional[str]) -> bool:
    """
    Exact comparison of a group password.

    Passwords are stored in plaintext; the comparison only avoids leaking
    the match length through timing.
    """
    if not expected:
        return True
    if supplied is None:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))


class MembershipRegistry:
    """Group membership registry"""

    @staticmethod
    def join(
        db: Session,
        group_id: str,
        user_id: str,
        supplied_secret: Optional[str] = None,
        user_name: Optional[str] = None,
    ) -> Member:
        """
        Join a group as MEMBER

        Preconditions:
        1. Group exists
        2. Password matches, if the group has one
        3. User is not a member yet
        4. Group is still OPEN (unless settings.allow_join_after_assignment)

        Raises:
            GroupNotFound, SecretMismatch, AlreadyMember, JoinClosed
        """
        with group_mutex(group_id):
            return MembershipRegistry._join(db, group_id, user_id, supplied_secret, user_name)

    @staticmethod
    @transactional
    def _join(db, group_id, user_id, supplied_secret, user_name):
        # 1. Lock the group
        group = with_group_lock(group_id, db).first()
        if not group:
            raise GroupNotFound(group_id)

        # 2. Password
        if not secret_matches(group.password, supplied_secret):
            raise SecretMismatch()

        # 3. Duplicate membership
        members = lock_group_members(group_id, db).all()
        if any(m.user_id == user_id for m in members):
            raise AlreadyMember()

        # 4. Lifecycle
        GroupStateMachine.check_join(group, members, settings.allow_join_after_assignment)

        ensure_user(db, user_id, user_name)
        member = Member(group_id=group_id, user_id=user_id, role=MemberRole.MEMBER)
        db.add(member)
        try:
            db.flush()
        except IntegrityError:
            raise AlreadyMember()

        logger.info(f"User {user_id} joined group {group_id} ({len(members) + 1} members)")
        return member

    @staticmethod
    def list_members(db: Session, group_id: str) -> List[Member]:
        """All members of a group in join order, with their User loaded"""
        return db.query(Member).options(
            joinedload(Member.user)
        ).filter(
            Member.group_id == group_id
        ).order_by(Member.joined_at).all()

    @staticmethod
    def get_member(db: Session, group_id: str, user_id: str) -> Optional[Member]:
        return db.get(Member, (group_id, user_id))

    @staticmethod
    def member_count(db: Session, group_id: str) -> int:
        return db.query(Member).filter(Member.group_id == group_id).count()
