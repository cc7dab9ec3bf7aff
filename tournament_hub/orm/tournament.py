"""
tournament_hub/orm/tournament.py
Tournament model and the enums shared with matches.
"""
from enum import Enum as PyEnum

from sqlalchemy import (
    Column, String, Integer, Numeric, Boolean, DateTime, Text, Index, Enum as SQLEnum
)
from sqlalchemy.orm import relationship

from tournament_hub.core.db_types import UniversalJSON
from tournament_hub.orm.base import BaseModel, iso, enum_values


class TournamentStatus(str, PyEnum):
    """Tournament lifecycle status"""
    UPCOMING = "upcoming"
    REGISTRATION_OPEN = "registration_open"
    REGISTRATION_CLOSED = "registration_closed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TournamentType(str, PyEnum):
    GROUP_KNOCKOUT = "group_knockout"
    SINGLE_ELIMINATION = "single_elimination"


class MatchType(str, PyEnum):
    BO1 = "bo1"
    BO3 = "bo3"
    BO5 = "bo5"


class Tournament(BaseModel):
    """
    Tournament owned by the admins.

    Groups and teams hang off a tournament by tournament_id. Once groups or
    teams reference it only status and metadata fields are expected to change.
    """
    __tablename__ = "tournaments"

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Schedule window
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=True)

    max_teams = Column(Integer, nullable=False, default=16)
    team_size = Column(Integer, nullable=False, default=5)
    entry_fee = Column(Numeric(10, 2), nullable=False, default=0)
    platform_fee_percentage = Column(Numeric(5, 2), nullable=False, default=0)

    tournament_type = Column(
        SQLEnum(TournamentType, name="tournament_type", values_callable=enum_values),
        nullable=False,
        default=TournamentType.GROUP_KNOCKOUT
    )
    match_type = Column(
        SQLEnum(MatchType, name="match_type", values_callable=enum_values),
        nullable=False,
        default=MatchType.BO1
    )
    status = Column(
        SQLEnum(TournamentStatus, name="tournament_status", values_callable=enum_values),
        nullable=False,
        default=TournamentStatus.UPCOMING,
        index=True
    )

    # Group stage
    num_groups = Column(Integer, nullable=True)
    teams_per_group_qualify = Column(Integer, nullable=True)

    # Prizes: list of percentages per payout place, summing to 100
    prize_pool = Column(Numeric(12, 2), nullable=True)
    prize_distribution = Column(UniversalJSON, nullable=True)

    is_locked = Column(Boolean, default=False, nullable=False)
    banner_url = Column(String(500), nullable=True)

    groups = relationship("Group", back_populates="tournament", cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        Index("idx_tournaments_start_date", "start_date"),
    )

    def __repr__(self):
        return f"<Tournament(id={self.id}, name='{self.name}', status={self.status})>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "start_date": iso(self.start_date),
            "end_date": iso(self.end_date),
            "max_teams": self.max_teams,
            "team_size": self.team_size,
            "entry_fee": float(self.entry_fee) if self.entry_fee is not None else 0.0,
            "platform_fee_percentage": float(self.platform_fee_percentage or 0),
            "tournament_type": self.tournament_type.value if self.tournament_type else None,
            "match_type": self.match_type.value if self.match_type else None,
            "status": self.status.value if self.status else None,
            "num_groups": self.num_groups,
            "teams_per_group_qualify": self.teams_per_group_qualify,
            "prize_pool": float(self.prize_pool) if self.prize_pool is not None else None,
            "prize_distribution": self.prize_distribution,
            "is_locked": self.is_locked,
            "banner_url": self.banner_url,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
