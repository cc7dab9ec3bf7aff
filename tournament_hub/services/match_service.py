"""
tournament_hub/services/match_service.py
Match scheduling and result recording
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tournament_hub.errors import ValidationError, NotFoundError, ErrorCode, translate_integrity_error
from tournament_hub.orm.group import Group
from tournament_hub.orm.match import Match, GROUP_STAGE
from tournament_hub.orm.team import Team
from tournament_hub.orm.tournament import Tournament, MatchType

logger = logging.getLogger(__name__)


class MatchService:

    @staticmethod
    async def _check_team(db: AsyncSession, team_id: Optional[str], tournament_id: str, label: str):
        if team_id is None:
            return
        team = await db.get(Team, team_id)
        if team is None:
            raise NotFoundError("Team", team_id)
        if team.tournament_id != tournament_id:
            raise ValidationError(f"{label} belongs to a different tournament", details={label: team_id})

    @staticmethod
    async def create_match(db: AsyncSession, tournament_id: str, fields: Dict[str, Any]) -> Match:
        """
        Schedule a match.

        Group-stage matches carry a group_id; knockout matches carry a
        bracket_round (>= 1) and bracket_position instead.
        """
        tournament = await db.get(Tournament, tournament_id)
        if tournament is None:
            raise NotFoundError("Tournament", tournament_id)

        stage = fields.get("stage") or GROUP_STAGE
        group_id = fields.get("group_id")
        team1_id = fields.get("team1_id")
        team2_id = fields.get("team2_id")

        if team1_id is not None and team1_id == team2_id:
            raise ValidationError("A team cannot play against itself")

        if group_id is not None:
            group = await db.get(Group, group_id)
            if group is None:
                raise NotFoundError("Group", group_id)
            if group.tournament_id != tournament_id:
                raise ValidationError("Group belongs to a different tournament")

        await MatchService._check_team(db, team1_id, tournament_id, "team1_id")
        await MatchService._check_team(db, team2_id, tournament_id, "team2_id")

        bracket_round = fields.get("bracket_round")
        if bracket_round is not None and bracket_round < 1:
            raise ValidationError("bracket_round must be at least 1")
        bracket_position = fields.get("bracket_position")
        if bracket_position is not None and bracket_position < 0:
            raise ValidationError("bracket_position must not be negative", code=ErrorCode.NEGATIVE_VALUE)

        match = Match(
            tournament_id=tournament_id,
            group_id=group_id,
            team1_id=team1_id,
            team2_id=team2_id,
            match_type=MatchType(fields.get("match_type") or tournament.match_type),
            stage=stage,
            bracket_round=bracket_round,
            bracket_position=bracket_position,
            scheduled_at=fields.get("scheduled_at"),
            admin_notes=fields.get("admin_notes"),
        )
        db.add(match)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise translate_integrity_error(e)

        logger.info(f"Match {match.id} created in tournament {tournament_id} (stage={stage})")
        return match

    @staticmethod
    async def get_match(db: AsyncSession, match_id: str) -> Match:
        match = await db.get(Match, match_id)
        if match is None:
            raise NotFoundError("Match", match_id)
        return match

    @staticmethod
    async def list_matches(
        db: AsyncSession,
        tournament_id: str,
        stage: Optional[str] = None,
        knockout_only: bool = False,
    ) -> List[Match]:
        query = (
            select(Match)
            .where(Match.tournament_id == tournament_id)
            .order_by(Match.bracket_round, Match.bracket_position, Match.scheduled_at, Match.created_at)
        )
        if stage is not None:
            query = query.where(Match.stage == stage)
        if knockout_only:
            query = query.where(Match.stage != GROUP_STAGE, Match.bracket_round.is_not(None))
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def record_result(
        db: AsyncSession,
        match_id: str,
        team1_score: int,
        team2_score: int,
        winner_id: Optional[str] = None,
        admin_notes: Optional[str] = None,
    ) -> Match:
        """
        Set the score of a match and mark it completed.

        Recording again overwrites the previous result. Standings are not
        touched; admins edit them separately.

        Raises:
            NotFoundError: match does not exist
            ValidationError: negative score or winner not playing in the match
        """
        for label, score in (("team1_score", team1_score), ("team2_score", team2_score)):
            if score is None or score < 0:
                raise ValidationError(f"{label} must not be negative", code=ErrorCode.NEGATIVE_VALUE)

        match = await MatchService.get_match(db, match_id)

        if winner_id is not None and winner_id not in (match.team1_id, match.team2_id):
            raise ValidationError(
                "Winner must be one of the teams in the match",
                details={"winner_id": winner_id}
            )

        match.team1_score = team1_score
        match.team2_score = team2_score
        match.winner_id = winner_id
        if admin_notes is not None:
            match.admin_notes = admin_notes
        match.is_completed = True
        match.played_at = datetime.utcnow()

        await db.commit()
        logger.info(f"Match {match_id} result: {team1_score}-{team2_score}, winner={winner_id}")
        return match
