"""
tournament_hub/orm/user.py
User accounts, application roles and player profiles.
"""
from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint, Enum as SQLEnum
)
from sqlalchemy.orm import relationship

from tournament_hub.core.db_types import UUIDString, new_uuid
from tournament_hub.orm.base import Base, BaseModel, iso, enum_values


class AppRole(str, Enum):
    """Application roles"""
    admin = "admin"
    user = "user"


class User(Base):
    """Login identity. Everything player-facing lives on Profile."""
    __tablename__ = "users"

    id = Column(UUIDString(), primary_key=True, default=new_uuid, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    roles = relationship("UserRole", lazy="selectin", cascade="all, delete-orphan")
    profile = relationship("Profile", uselist=False, lazy="selectin", back_populates="user")

    @property
    def is_admin(self) -> bool:
        return any(r.role == AppRole.admin for r in self.roles)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"


class UserRole(Base):
    """Role grant for a user."""
    __tablename__ = "user_roles"

    id = Column(UUIDString(), primary_key=True, default=new_uuid)
    user_id = Column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    role = Column(
        SQLEnum(AppRole, name="app_role", values_callable=enum_values),
        nullable=False,
        default=AppRole.user
    )

    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
    )


class Profile(BaseModel):
    """
    Player profile, one per user.
    is_banned gates login.
    """
    __tablename__ = "profiles"

    user_id = Column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True
    )
    username = Column(String(100), nullable=False)
    riot_id = Column(String(100), nullable=True)
    rank = Column(String(50), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    is_banned = Column(Boolean, nullable=False, default=False)

    user = relationship("User", back_populates="profile")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "username": self.username,
            "riot_id": self.riot_id,
            "rank": self.rank,
            "avatar_url": self.avatar_url,
            "is_banned": self.is_banned,
            "created_at": iso(self.created_at),
        }
