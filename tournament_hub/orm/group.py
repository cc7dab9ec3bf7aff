"""
tournament_hub/orm/group.py
Group stage: groups and the per-team standing rows inside them.
"""
from datetime import datetime

from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, Index
)
from sqlalchemy import inspect
from sqlalchemy.orm import relationship

from tournament_hub.core.db_types import UUIDString, new_uuid
from tournament_hub.orm.base import Base, BaseModel, iso


# Numeric columns an admin may edit on a standing
STANDING_STAT_FIELDS = ("wins", "losses", "draws", "points", "games_played")


class Group(Base):
    """A named group ("Group A", ...) inside one tournament."""
    __tablename__ = "groups"

    id = Column(UUIDString(), primary_key=True, default=new_uuid, index=True)
    tournament_id = Column(
        UUIDString(),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    tournament = relationship("Tournament", back_populates="groups")
    standings = relationship("GroupStanding", back_populates="group", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self):
        return f"<Group(id={self.id}, name='{self.name}', tournament={self.tournament_id})>"

    def to_dict(self):
        return {
            "id": self.id,
            "tournament_id": self.tournament_id,
            "name": self.name,
            "created_at": iso(self.created_at),
        }


class GroupStanding(BaseModel):
    """
    One row per team per group.

    is_qualified is a derived flag owned by the qualification engine;
    admins edit the counters, never the flag.
    """
    __tablename__ = "group_standings"

    group_id = Column(
        UUIDString(),
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    team_id = Column(
        UUIDString(),
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    wins = Column(Integer, nullable=False, default=0)
    losses = Column(Integer, nullable=False, default=0)
    draws = Column(Integer, nullable=False, default=0)
    points = Column(Integer, nullable=False, default=0)
    games_played = Column(Integer, nullable=False, default=0)

    is_qualified = Column(Boolean, nullable=False, default=False)

    group = relationship("Group", back_populates="standings")
    team = relationship("Team", lazy="joined")

    __table_args__ = (
        UniqueConstraint("group_id", "team_id", name="uq_group_standings_group_team"),
        CheckConstraint(
            "wins >= 0 AND losses >= 0 AND draws >= 0 AND points >= 0 AND games_played >= 0",
            name="ck_group_standings_non_negative"
        ),
        Index("idx_group_standings_points", "group_id", "points"),
    )

    def __repr__(self):
        return (
            f"<GroupStanding(id={self.id}, group={self.group_id}, team={self.team_id}, "
            f"points={self.points}, qualified={self.is_qualified})>"
        )

    def to_dict(self, include_team=True):
        data = {
            "id": self.id,
            "group_id": self.group_id,
            "team_id": self.team_id,
            "wins": self.wins,
            "losses": self.losses,
            "draws": self.draws,
            "points": self.points,
            "games_played": self.games_played,
            "is_qualified": self.is_qualified,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        # Never trigger a lazy load from an async context
        if include_team and "team" not in inspect(self).unloaded and self.team is not None:
            data["team"] = {"name": self.team.name}
        return data
