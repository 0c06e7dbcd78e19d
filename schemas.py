"""
Request / response schemas

Every request body is validated here before any persistence call.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from models import MemberRole


# ============ Requests ============

class GroupCreate(BaseModel):
    name: str = Field(..., max_length=100)
    password: Optional[str] = Field(default=None, max_length=255)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Group name is required")
        return v

    @field_validator("password")
    @classmethod
    def empty_password_is_none(cls, v: Optional[str]) -> Optional[str]:
        # An empty string from a form means "no password"
        return v or None


class GroupJoin(BaseModel):
    password: Optional[str] = Field(default=None, max_length=255)


# ============ Responses ============

class StatusResponse(BaseModel):
    success: bool = True


class GroupCreatedResponse(BaseModel):
    success: bool = True
    group_id: str
    name: str


class MemberInfo(BaseModel):
    user_id: str
    name: str
    role: MemberRole
    recipient_id: Optional[str] = None


class MemberJoinedResponse(BaseModel):
    success: bool = True
    member: MemberInfo


class GroupDetail(BaseModel):
    id: str
    name: str
    state: Literal["OPEN", "ASSIGNED", "REVEALED"]
    is_revealed: bool
    is_assigned: bool
    created_at: datetime
    members: List[MemberInfo]


class GroupDetailResponse(BaseModel):
    success: bool = True
    group: GroupDetail


class GroupSummary(BaseModel):
    id: str
    name: str
    has_password: Optional[bool] = None
    is_joined: Optional[bool] = None
    role: Optional[MemberRole] = None


class GroupListResponse(BaseModel):
    success: bool = True
    groups: List[GroupSummary]
