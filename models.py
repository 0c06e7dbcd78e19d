"""
Database models

- User: identity seen from the external identity provider
- Group: a manito group (name, optional join password, reveal flag)
- Member: membership of a user in a group, with role and assigned recipient
"""
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from database import Base


def _utcnow():
    return datetime.now(timezone.utc)


def _new_id():
    return str(uuid.uuid4())


class MemberRole(str, enum.Enum):
    CAPTAIN = "CAPTAIN"
    MEMBER = "MEMBER"


class User(Base):
    __tablename__ = "users"

    # Opaque identifier issued by the identity provider
    id = Column(String(255), primary_key=True)
    name = Column(String(100), nullable=False, default="Anonymous")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    memberships = relationship(
        "Member", back_populates="user", foreign_keys="Member.user_id"
    )


class Group(Base):
    __tablename__ = "groups"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(100), nullable=False, unique=True)
    password = Column(String(255), nullable=True)
    is_revealed = Column(Boolean, nullable=False, default=False)
    # Set once by the assign transition; NULL means no assignment yet
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    members = relationship(
        "Member", back_populates="group", order_by="Member.joined_at"
    )

    @property
    def has_password(self) -> bool:
        return bool(self.password)


class Member(Base):
    __tablename__ = "members"
    __table_args__ = (
        CheckConstraint(
            "recipient_id IS NULL OR recipient_id <> user_id",
            name="ck_members_no_self_assignment",
        ),
        UniqueConstraint("group_id", "recipient_id", name="uq_members_group_recipient"),
    )

    group_id = Column(String(36), ForeignKey("groups.id"), primary_key=True)
    user_id = Column(String(255), ForeignKey("users.id"), primary_key=True)
    role = Column(Enum(MemberRole), nullable=False, default=MemberRole.MEMBER)
    recipient_id = Column(String(255), ForeignKey("users.id"), nullable=True)
    joined_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    group = relationship("Group", back_populates="members")
    user = relationship("User", back_populates="memberships", foreign_keys=[user_id])

    @property
    def is_captain(self) -> bool:
        return self.role == MemberRole.CAPTAIN
