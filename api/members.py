"""
Member API Endpoints

Responsibilities:
1. Join a group
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import GroupJoin, MemberInfo, MemberJoinedResponse
from core.membership_registry import MembershipRegistry
from api.deps import get_current_user_id

router = APIRouter(prefix="/api/groups", tags=["members"])
logger = logging.getLogger(__name__)


@router.post("/{group_id}/join", response_model=MemberJoinedResponse)
def join_group(
    group_id: str,
    join_data: Optional[GroupJoin] = None,
    user_id: str = Depends(get_current_user_id),
    x_user_name: Optional[str] = Header(default=None),
    db: Session = Depends(get_db)
):
    """
    Join a group as MEMBER

    Preconditions:
    - Group exists
    - Password matches (if the group has one)
    - Caller is not a member yet
    - Group has not been assigned yet (see settings.allow_join_after_assignment)

    Errors:
        - not_found / forbidden / conflict / precondition_failed
    """
    password = join_data.password if join_data else None
    member = MembershipRegistry.join(db, group_id, user_id, password, user_name=x_user_name)

    return MemberJoinedResponse(member=MemberInfo(
        user_id=member.user_id,
        name=member.user.name,
        role=member.role
    ))
