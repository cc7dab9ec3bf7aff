"""
tournament_hub/services/standing_service.py
Admin edits to group standings
"""
import logging
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tournament_hub.config.settings import settings
from tournament_hub.errors import ValidationError, NotFoundError, ErrorCode, translate_integrity_error
from tournament_hub.events.bus import EventBus, StandingUpdated
from tournament_hub.orm.group import Group, GroupStanding, STANDING_STAT_FIELDS
from tournament_hub.services.qualification_service import StandingSnapshot, rank_standings

logger = logging.getLogger(__name__)


def validate_standing_updates(updates: Dict[str, Any]) -> Dict[str, int]:
    """
    Check a partial standing update.

    Only the counter fields are writable. is_qualified belongs to the
    qualification engine and is refused like any other unknown field.
    """
    if not updates:
        raise ValidationError("No fields to update")

    if "is_qualified" in updates:
        raise ValidationError(
            "is_qualified is computed by the qualification engine and cannot be set directly",
            details={"field": "is_qualified"}
        )

    unknown = sorted(set(updates) - set(STANDING_STAT_FIELDS))
    if unknown:
        raise ValidationError(
            f"Unknown standing field(s): {', '.join(unknown)}",
            details={"fields": unknown, "allowed": list(STANDING_STAT_FIELDS)}
        )

    clean = {}
    for key, value in updates.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"{key} must be an integer", details={"field": key})
        if value < 0:
            raise ValidationError(
                f"{key} must not be negative",
                code=ErrorCode.NEGATIVE_VALUE,
                details={"field": key, "value": value}
            )
        clean[key] = value
    return clean


class StandingService:

    @staticmethod
    async def update_standing(
        db: AsyncSession,
        standing_id: str,
        updates: Dict[str, Any],
        bus: EventBus,
    ) -> GroupStanding:
        """
        Write counter changes to a standing and announce them.

        The StandingUpdated event is published only after the commit, so the
        recompute always reads the new values. Whatever happens in the
        recompute, the write stands.

        Raises:
            ValidationError: unknown field, is_qualified, or negative value
            NotFoundError: standing does not exist
        """
        clean = validate_standing_updates(updates)

        standing = await db.get(GroupStanding, standing_id)
        if standing is None:
            raise NotFoundError("Standing", standing_id)

        for key, value in clean.items():
            setattr(standing, key, value)

        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise translate_integrity_error(e)

        logger.info(f"Standing {standing_id} updated in group {standing.group_id}: {clean}")

        await bus.publish(StandingUpdated(standing_id=standing.id, group_id=standing.group_id))
        return standing

    @staticmethod
    async def get_standing(db: AsyncSession, standing_id: str) -> GroupStanding:
        standing = await db.get(GroupStanding, standing_id)
        if standing is None:
            raise NotFoundError("Standing", standing_id)
        return standing

    @staticmethod
    async def list_group_standings(db: AsyncSession, group_id: str) -> List[GroupStanding]:
        """Standings of a group in the same order the qualification engine ranks them."""
        group = await db.get(Group, group_id)
        if group is None:
            raise NotFoundError("Group", group_id)

        result = await db.execute(select(GroupStanding).where(GroupStanding.group_id == group_id))
        rows = list(result.scalars().all())

        by_id = {row.id: row for row in rows}
        snapshots = [
            StandingSnapshot(
                standing_id=row.id,
                team_id=row.team_id,
                points=row.points,
                wins=row.wins,
                losses=row.losses,
                draws=row.draws,
                games_played=row.games_played,
                team_name=row.team.name if row.team is not None else "",
                created_at=row.created_at,
                is_qualified=row.is_qualified,
            )
            for row in rows
        ]
        return [by_id[s.standing_id] for s in rank_standings(snapshots, settings.QUALIFICATION_TIEBREAK)]
