"""
tournament_hub/orm/team.py
Teams, their members and join requests.
Each team belongs to exactly one tournament.
"""
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Column, String, Boolean, DateTime, Text, ForeignKey, UniqueConstraint, Enum as SQLEnum
)
from sqlalchemy.orm import relationship

from tournament_hub.core.db_types import UUIDString, new_uuid
from tournament_hub.orm.base import Base, BaseModel, iso, enum_values


class TeamStatus(str, PyEnum):
    """Team registration status"""
    INCOMPLETE = "incomplete"            # Roster not full yet
    PENDING_PAYMENT = "pending_payment"  # Roster full, entry fee not approved
    REGISTERED = "registered"            # Payment approved
    QUALIFIED = "qualified"              # Advanced out of the group stage
    ELIMINATED = "eliminated"


class StatusSource(str, PyEnum):
    """Writer that last set Team.status"""
    ROSTER = "roster"
    PAYMENT_APPROVAL = "payment_approval"
    QUALIFICATION = "qualification"
    ADMIN = "admin"


class TeamRole(str, PyEnum):
    CAPTAIN = "captain"
    PLAYER = "player"


class JoinRequestStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Team(BaseModel):
    """
    Team registered for a tournament.

    group_name is a read-model copy of the assigned group's name; the
    canonical relation is the GroupStanding row.
    """
    __tablename__ = "teams"

    tournament_id = Column(
        UUIDString(),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name = Column(String(255), nullable=False)
    logo_url = Column(String(500), nullable=True)
    captain_id = Column(UUIDString(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    status = Column(
        SQLEnum(TeamStatus, name="team_status", values_callable=enum_values),
        nullable=False,
        default=TeamStatus.INCOMPLETE,
        index=True
    )
    status_source = Column(
        SQLEnum(StatusSource, name="team_status_source", values_callable=enum_values),
        nullable=True
    )

    group_name = Column(String(100), nullable=True)
    is_locked = Column(Boolean, nullable=False, default=False)

    members = relationship(
        "TeamMember",
        back_populates="team",
        lazy="selectin",
        cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Team(id={self.id}, name='{self.name}', status={self.status})>"

    def to_dict(self, include_members=False):
        data = {
            "id": self.id,
            "tournament_id": self.tournament_id,
            "name": self.name,
            "logo_url": self.logo_url,
            "captain_id": self.captain_id,
            "status": self.status.value if self.status else None,
            "status_source": self.status_source.value if self.status_source else None,
            "group_name": self.group_name,
            "is_locked": self.is_locked,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if include_members:
            data["members"] = [m.to_dict() for m in self.members]
            data["member_count"] = len(self.members)
        return data


class TeamMember(Base):
    """Membership of a user in a team."""
    __tablename__ = "team_members"

    id = Column(UUIDString(), primary_key=True, default=new_uuid, index=True)
    team_id = Column(
        UUIDString(),
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id = Column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    riot_id = Column(String(100), nullable=True)
    role = Column(String(20), nullable=False, default=TeamRole.PLAYER.value)
    joined_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    team = relationship("Team", back_populates="members")

    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "team_id": self.team_id,
            "user_id": self.user_id,
            "riot_id": self.riot_id,
            "role": self.role,
            "joined_at": iso(self.joined_at),
        }


class JoinRequest(BaseModel):
    """A player's request to join a team, reviewed by the captain."""
    __tablename__ = "team_join_requests"

    team_id = Column(
        UUIDString(),
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id = Column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    status = Column(String(20), nullable=False, default=JoinRequestStatus.PENDING.value)
    riot_id = Column(String(100), nullable=True)
    message = Column(Text, nullable=True)
    reviewed_by = Column(UUIDString(), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_join_requests_team_user"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "team_id": self.team_id,
            "user_id": self.user_id,
            "status": self.status,
            "riot_id": self.riot_id,
            "message": self.message,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": iso(self.reviewed_at),
            "created_at": iso(self.created_at),
        }
