"""
tournament_hub/orm/match.py
Group-stage and knockout matches.
"""
from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, Text, ForeignKey, Index, Enum as SQLEnum
)

from tournament_hub.core.db_types import UUIDString
from tournament_hub.orm.base import BaseModel, iso, enum_values
from tournament_hub.orm.tournament import MatchType

GROUP_STAGE = "group"


class Match(BaseModel):
    """
    A single match.

    group_id is null for knockout matches; bracket_round/bracket_position
    place knockout matches in the bracket. Teams stay null until the slot
    is filled.
    """
    __tablename__ = "matches"

    tournament_id = Column(
        UUIDString(),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    group_id = Column(UUIDString(), ForeignKey("groups.id", ondelete="SET NULL"), nullable=True)

    team1_id = Column(UUIDString(), ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    team2_id = Column(UUIDString(), ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    team1_score = Column(Integer, nullable=False, default=0)
    team2_score = Column(Integer, nullable=False, default=0)
    winner_id = Column(UUIDString(), ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)

    match_type = Column(
        SQLEnum(MatchType, name="match_type", values_callable=enum_values),
        nullable=False,
        default=MatchType.BO1
    )
    stage = Column(String(50), nullable=False, default=GROUP_STAGE)
    bracket_round = Column(Integer, nullable=True)
    bracket_position = Column(Integer, nullable=True)

    scheduled_at = Column(DateTime, nullable=True)
    played_at = Column(DateTime, nullable=True)
    admin_notes = Column(Text, nullable=True)
    is_completed = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("idx_matches_tournament_stage", "tournament_id", "stage"),
    )

    def __repr__(self):
        return f"<Match(id={self.id}, stage='{self.stage}', round={self.bracket_round})>"

    def to_dict(self):
        return {
            "id": self.id,
            "tournament_id": self.tournament_id,
            "group_id": self.group_id,
            "team1_id": self.team1_id,
            "team2_id": self.team2_id,
            "team1_score": self.team1_score,
            "team2_score": self.team2_score,
            "winner_id": self.winner_id,
            "match_type": self.match_type.value if self.match_type else None,
            "stage": self.stage,
            "bracket_round": self.bracket_round,
            "bracket_position": self.bracket_position,
            "scheduled_at": iso(self.scheduled_at),
            "played_at": iso(self.played_at),
            "admin_notes": self.admin_notes,
            "is_completed": self.is_completed,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
