"""
Group API Endpoints

Responsibilities:
1. Create / list / view groups
2. Captain transitions: assign, reveal, retire

All business rules live in GroupManager; errors are turned into responses
by api.error_handlers.
"""
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import (
    GroupCreate,
    GroupCreatedResponse,
    GroupDetail,
    GroupDetailResponse,
    GroupListResponse,
    GroupSummary,
    MemberInfo,
    StatusResponse,
)
from core.group_manager import GroupManager
from api.deps import get_current_user_id, get_optional_user_id

router = APIRouter(prefix="/api/groups", tags=["groups"])
logger = logging.getLogger(__name__)


@router.post("", response_model=GroupCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_group(
    group_data: GroupCreate,
    user_id: str = Depends(get_current_user_id),
    x_user_name: Optional[str] = Header(default=None),
    db: Session = Depends(get_db)
):
    """
    Create a group; the caller becomes its CAPTAIN

    Errors:
        - invalid_input: empty name
        - conflict: name already taken
    """
    group = GroupManager.create_group(
        db,
        group_data.name,
        user_id,
        password=group_data.password,
        creator_name=x_user_name
    )
    return GroupCreatedResponse(group_id=group.id, name=group.name)


@router.get("", response_model=GroupListResponse)
def list_groups(
    type: Literal["all", "joined"] = Query(default="all"),
    user_id: Optional[str] = Depends(get_optional_user_id),
    db: Session = Depends(get_db)
):
    """
    List groups

    - type=all: every group with has_password / is_joined
    - type=joined: the caller's groups with their role (identity required)
    """
    groups = GroupManager.list_groups(db, user_id=user_id, mode=type)
    return GroupListResponse(groups=[GroupSummary(**g) for g in groups])


@router.get("/{group_id}", response_model=GroupDetailResponse)
def get_group(
    group_id: str,
    user_id: Optional[str] = Depends(get_optional_user_id),
    db: Session = Depends(get_db)
):
    """
    Group detail

    Recipients of other members stay hidden until the group is revealed;
    the caller always sees their own.
    """
    view = GroupManager.get_group(db, group_id, viewer_id=user_id)
    return GroupDetailResponse(group=GroupDetail(
        id=view.id,
        name=view.name,
        state=view.state.value,
        is_revealed=view.is_revealed,
        is_assigned=view.is_assigned,
        created_at=view.created_at,
        members=[
            MemberInfo(
                user_id=m.user_id,
                name=m.name,
                role=m.role,
                recipient_id=m.recipient_id
            )
            for m in view.members
        ]
    ))


@router.post("/{group_id}/assign", response_model=StatusResponse)
def assign_manito(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Assign manito (captain only)

    Errors:
        - not_found: group does not exist
        - conflict: manito already assigned
        - precondition_failed: fewer than 2 members
    """
    matches = GroupManager.assign(db, group_id, user_id)
    logger.info(f"Captain {user_id} assigned manito in group {group_id} ({len(matches)} members)")
    return StatusResponse()


@router.post("/{group_id}/reveal", response_model=StatusResponse)
def reveal_manito(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Reveal manito to every member (captain only)

    Errors:
        - not_found: group does not exist
        - precondition_failed: not every member has a recipient
    """
    GroupManager.reveal(db, group_id, user_id)
    return StatusResponse()


@router.delete("/{group_id}", response_model=StatusResponse)
def retire_group(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Delete the group and every membership (captain only)

    Allowed once revealed, or while the captain is the only member.
    """
    GroupManager.retire(db, group_id, user_id)
    return StatusResponse()
