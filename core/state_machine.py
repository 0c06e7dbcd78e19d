"""
Group state machine

The lifecycle state is not stored; it is rebuilt from the members'
recipients and the group's reveal flag:

    OPEN ──assign──> ASSIGNED ──reveal──> REVEALED ──retire──> (deleted)
      └──────────────retire (single member)─────────────────────┘

Transition guards live in GroupStateMachine so GroupManager never compares
raw fields itself.
"""
import enum
from typing import Sequence

from models import Group, Member
from core.exceptions import (
    AlreadyAssigned,
    IncompleteAssignment,
    JoinClosed,
    PartialAssignmentDetected,
    RevealRequired,
    TooFewMembers,
)


class GroupState(str, enum.Enum):
    OPEN = "OPEN"
    ASSIGNED = "ASSIGNED"
    REVEALED = "REVEALED"


def derive_state(group: Group, members: Sequence[Member]) -> GroupState:
    """
    Rebuild the lifecycle state of a group.

    The members that have a recipient must form a closed set: every giver is
    somebody's recipient and vice versa. Members without a recipient are only
    possible when joining after assignment is allowed; they sit outside the
    assignment and do not change the state.

    Raises:
        PartialAssignmentDetected: the assignment is not a closed set, or
            recipients and the group's assigned_at disagree
    """
    givers = {m.user_id for m in members if m.recipient_id is not None}
    recipients = {m.recipient_id for m in members if m.recipient_id is not None}

    if not givers:
        if group.assigned_at is not None:
            raise PartialAssignmentDetected(
                "Group is marked assigned but no member has a recipient"
            )
        return GroupState.OPEN

    if group.assigned_at is None or givers != recipients:
        raise PartialAssignmentDetected(
            f"{len(givers)} of {len(members)} members have a recipient"
        )
    return GroupState.REVEALED if group.is_revealed else GroupState.ASSIGNED


class GroupStateMachine:
    """Guards for every group transition"""

    @staticmethod
    def check_assign(group: Group, members: Sequence[Member]) -> None:
        if group.assigned_at is not None or any(m.recipient_id is not None for m in members):
            raise AlreadyAssigned()
        if len(members) < 2:
            raise TooFewMembers(
                f"Need at least 2 members to assign manito, got {len(members)}"
            )

    @staticmethod
    def check_reveal(group: Group, members: Sequence[Member]) -> None:
        # An empty group cannot exist (the captain is created with it),
        # but "every member" over nothing must not count as assigned.
        if not members or any(m.recipient_id is None for m in members):
            raise IncompleteAssignment()

    @staticmethod
    def check_retire(group: Group, member_count: int) -> None:
        if not group.is_revealed and member_count != 1:
            raise RevealRequired()

    @staticmethod
    def check_join(group: Group, members: Sequence[Member], allow_after_assignment: bool) -> None:
        if allow_after_assignment:
            return
        if derive_state(group, members) != GroupState.OPEN:
            raise JoinClosed()
