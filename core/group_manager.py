"""
Group Manager: the full lifecycle of a manito group

Responsibilities:
1. Create a group (with its captain)
2. Assign manito (derangement over the current members)
3. Reveal the assignment
4. Retire the group (delete members, then the group)
5. Group views and listings

Rules:
- Every transition is one transaction (@transactional) inside the group's
  mutex, with the group row locked before any precondition is checked
- All preconditions are checked before the first write
- Guards live in GroupStateMachine, matching lives in match_service
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import Group, Member, MemberRole
from core.exceptions import (
    AlreadyAssigned,
    GroupNameConflict,
    GroupNotFound,
    InvalidInput,
    NotCaptain,
)
from core.locks import group_mutex, lock_group_members, with_group_lock
from core.membership_registry import MembershipRegistry
from core.state_machine import GroupState, GroupStateMachine, derive_state
from database import transactional
from services.match_service import generate_matches
from services.user_service import ensure_user

logger = logging.getLogger(__name__)

LIST_MODES = ("all", "joined")


@dataclass
class MemberView:
    user_id: str
    name: str
    role: MemberRole
    recipient_id: Optional[str] = None


@dataclass
class GroupView:
    id: str
    name: str
    state: GroupState
    is_revealed: bool
    is_assigned: bool
    created_at: datetime
    members: List[MemberView] = field(default_factory=list)


def _require_captain(db: Session, group_id: str, actor_id: str) -> None:
    member = MembershipRegistry.get_member(db, group_id, actor_id)
    if member is None or not member.is_captain:
        raise NotCaptain()


class GroupManager:
    """Group lifecycle manager"""

    @staticmethod
    @transactional
    def create_group(
        db: Session,
        name: str,
        creator_id: str,
        password: Optional[str] = None,
        creator_name: Optional[str] = None,
    ) -> Group:
        """
        Create a group with its creator as CAPTAIN

        Flow:
        1. Validate name and creator
        2. Make sure the creator has a User row
        3. Insert Group and CAPTAIN Member

        Returns:
            The new Group

        Raises:
            InvalidInput: empty name or missing creator
            GroupNameConflict: a group with this name exists
        """
        # 1. Validate
        name = (name or "").strip()
        if not name:
            raise InvalidInput("Group name is required")
        if not creator_id:
            raise InvalidInput("Creator user id is required")

        if db.query(Group).filter(Group.name == name).first():
            raise GroupNameConflict(name)

        # 2. Creator
        ensure_user(db, creator_id, creator_name)

        # 3. Group + captain
        group = Group(name=name, password=password or None, is_revealed=False)
        db.add(group)
        try:
            db.flush()
        except IntegrityError:
            # Lost a race against a concurrent create with the same name
            raise GroupNameConflict(name)

        db.add(Member(group_id=group.id, user_id=creator_id, role=MemberRole.CAPTAIN))
        db.flush()

        logger.info(f"Created group {group.id} ({name!r}) with captain {creator_id}")
        return group

    @staticmethod
    def assign(db: Session, group_id: str, actor_id: str) -> Dict[str, str]:
        """
        Assign manito (OPEN -> ASSIGNED)

        Preconditions:
        1. Group exists
        2. Actor is the captain
        3. Nobody has a recipient yet
        4. At least 2 members

        Flow:
        1. Lock the group, check preconditions
        2. Generate the derangement
        3. Claim the group with a conditional update (assigned_at IS NULL)
        4. Write every member's recipient

        Returns:
            {giver_id: recipient_id}

        Raises:
            GroupNotFound, NotCaptain, AlreadyAssigned, TooFewMembers

        Notes:
            - at most one assign ever succeeds per group; concurrent calls
              are serialized by the group mutex and the row lock, and the
              conditional update rejects any that slip through
        """
        with group_mutex(group_id):
            return GroupManager._assign(db, group_id, actor_id)

    @staticmethod
    @transactional
    def _assign(db, group_id, actor_id):
        # 1. Lock and check
        group = with_group_lock(group_id, db).first()
        if not group:
            raise GroupNotFound(group_id)

        members = lock_group_members(group_id, db).all()
        _require_captain(db, group_id, actor_id)
        GroupStateMachine.check_assign(group, members)

        # 2. Match
        matches = generate_matches([m.user_id for m in members])

        # 3. Claim
        claimed = db.query(Group).filter(
            Group.id == group_id,
            Group.assigned_at.is_(None)
        ).update(
            {Group.assigned_at: datetime.now(timezone.utc), Group.is_revealed: False},
            synchronize_session=False
        )
        if claimed != 1:
            raise AlreadyAssigned()

        # 4. Recipients
        for giver_id, recipient_id in matches.items():
            db.query(Member).filter(
                Member.group_id == group_id,
                Member.user_id == giver_id,
                Member.recipient_id.is_(None)
            ).update({Member.recipient_id: recipient_id}, synchronize_session=False)

        logger.info(f"Assigned manito for group {group_id} ({len(matches)} members)")
        return matches

    @staticmethod
    def reveal(db: Session, group_id: str, actor_id: str) -> Group:
        """
        Reveal the assignment (ASSIGNED -> REVEALED)

        Repeatable: revealing a revealed group succeeds again.

        Raises:
            GroupNotFound, NotCaptain, IncompleteAssignment
        """
        with group_mutex(group_id):
            return GroupManager._reveal(db, group_id, actor_id)

    @staticmethod
    @transactional
    def _reveal(db, group_id, actor_id):
        group = with_group_lock(group_id, db).first()
        if not group:
            raise GroupNotFound(group_id)

        members = lock_group_members(group_id, db).all()
        _require_captain(db, group_id, actor_id)
        GroupStateMachine.check_reveal(group, members)

        group.is_revealed = True
        logger.info(f"Revealed manito for group {group_id}")
        return group

    @staticmethod
    def retire(db: Session, group_id: str, actor_id: str) -> None:
        """
        Delete the group (REVEALED -> gone, or a group with only its captain)

        Flow:
        1. Lock the group, check preconditions
        2. Delete all members
        3. Delete the group

        Raises:
            GroupNotFound, NotCaptain, RevealRequired
        """
        with group_mutex(group_id):
            GroupManager._retire(db, group_id, actor_id)

    @staticmethod
    @transactional
    def _retire(db, group_id, actor_id):
        # 1. Lock and check
        group = with_group_lock(group_id, db).first()
        if not group:
            raise GroupNotFound(group_id)

        _require_captain(db, group_id, actor_id)
        GroupStateMachine.check_retire(group, MembershipRegistry.member_count(db, group_id))

        # 2. Members first (they reference the group)
        deleted = db.query(Member).filter(
            Member.group_id == group_id
        ).delete(synchronize_session=False)

        # 3. Group
        db.query(Group).filter(Group.id == group_id).delete(synchronize_session=False)

        logger.info(f"Retired group {group_id} ({deleted} members removed)")

    @staticmethod
    def get_group(db: Session, group_id: str, viewer_id: Optional[str] = None) -> GroupView:
        """
        Group view with recipients redacted until reveal

        Before reveal only the viewer's own recipient is visible; every other
        recipient_id is None.

        Raises:
            GroupNotFound
            PartialAssignmentDetected: stored assignment is inconsistent
        """
        group = db.get(Group, group_id)
        if not group:
            raise GroupNotFound(group_id)

        members = MembershipRegistry.list_members(db, group_id)
        state = derive_state(group, members)

        views = []
        for m in members:
            visible = group.is_revealed or (viewer_id is not None and m.user_id == viewer_id)
            views.append(MemberView(
                user_id=m.user_id,
                name=m.user.name if m.user else "Anonymous",
                role=m.role,
                recipient_id=m.recipient_id if visible else None,
            ))

        return GroupView(
            id=group.id,
            name=group.name,
            state=state,
            is_revealed=bool(group.is_revealed),
            is_assigned=state != GroupState.OPEN,
            created_at=group.created_at,
            members=views,
        )

    @staticmethod
    def list_groups(db: Session, user_id: Optional[str] = None, mode: str = "all") -> List[dict]:
        """
        List groups

        Modes:
        - all: every group, with has_password and is_joined
          (is_joined is False without a user id)
        - joined: groups the user belongs to, with the user's role

        Raises:
            InvalidInput: unknown mode, or "joined" without a user id
        """
        if mode not in LIST_MODES:
            raise InvalidInput(f"Unknown list type {mode!r}, expected one of {LIST_MODES}")

        if mode == "joined":
            if not user_id:
                raise InvalidInput("User ID is required for joined groups")
            rows = db.query(Member, Group).join(
                Group, Member.group_id == Group.id
            ).filter(
                Member.user_id == user_id
            ).order_by(Group.created_at).all()
            return [
                {"id": group.id, "name": group.name, "role": member.role}
                for member, group in rows
            ]

        groups = db.query(Group).order_by(Group.created_at).all()
        joined_ids = set()
        if user_id:
            joined_ids = {
                group_id for (group_id,) in db.query(Member.group_id).filter(
                    Member.user_id == user_id
                ).all()
            }
        return [
            {
                "id": group.id,
                "name": group.name,
                "has_password": group.has_password,
                "is_joined": group.id in joined_ids,
            }
            for group in groups
        ]

