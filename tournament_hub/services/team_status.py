"""
tournament_hub/services/team_status.py
Single writer for teams.status

Three flows change a team's status: payment approval, the qualification
engine and admin edits (plus roster completion). They all go through this
module so that one precedence table decides who may overwrite whom:

    admin (40) > qualification (20) > payment_approval (10) > roster (5)

A write is applied when the writer's precedence is >= the precedence of
the source that last set the status. A skipped write is logged, never raised.
"""
import logging
from typing import Iterable, Optional, List

from sqlalchemy import update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from tournament_hub.orm.team import Team, TeamStatus, StatusSource

logger = logging.getLogger(__name__)


SOURCE_PRECEDENCE = {
    StatusSource.ADMIN: 40,
    StatusSource.QUALIFICATION: 20,
    StatusSource.PAYMENT_APPROVAL: 10,
    StatusSource.ROSTER: 5,
}


def precedence(source: Optional[StatusSource]) -> int:
    """Precedence of a writer; a team nobody has written yet sits at 0."""
    if source is None:
        return 0
    return SOURCE_PRECEDENCE[StatusSource(source)]


def can_write(current_source: Optional[StatusSource], writer: StatusSource) -> bool:
    return precedence(writer) >= precedence(current_source)


def sources_writable_by(writer: StatusSource) -> List[StatusSource]:
    """Sources whose status the writer may overwrite."""
    return [s for s, level in SOURCE_PRECEDENCE.items() if level <= precedence(writer)]


def apply_status(
    team: Team,
    new_status: TeamStatus,
    source: StatusSource,
    only_from: Optional[Iterable[TeamStatus]] = None,
) -> bool:
    """
    Set team.status in memory if the precedence table allows it.

    Args:
        team: Loaded Team row (caller commits)
        new_status: Target status
        source: Writer requesting the change
        only_from: If given, the write only happens when the current status is one of these

    Returns:
        True if the status (or its source) changed
    """
    if only_from is not None and team.status not in set(only_from):
        return False

    if not can_write(team.status_source, source):
        logger.info(
            f"Status write skipped for team {team.id}: {source.value} cannot override "
            f"{team.status_source.value if team.status_source else None} "
            f"(current={team.status.value if team.status else None}, requested={new_status.value})"
        )
        return False

    changed = team.status != new_status or team.status_source != source
    team.status = new_status
    team.status_source = source
    return changed


def release_override(team: Team) -> None:
    """Drop an admin override so automatic writers may change the status again."""
    if team.status_source == StatusSource.ADMIN:
        team.status_source = None


async def bulk_apply_status(
    db: AsyncSession,
    team_ids: Iterable[str],
    new_status: TeamStatus,
    source: StatusSource,
    only_from: Optional[Iterable[TeamStatus]] = None,
) -> int:
    """
    Batched form of apply_status: one UPDATE over many teams.

    Returns:
        Number of team rows written
    """
    ids = list(team_ids)
    if not ids:
        return 0

    stmt = (
        update(Team)
        .where(Team.id.in_(ids))
        .where(or_(Team.status_source.is_(None), Team.status_source.in_(sources_writable_by(source))))
    )
    if only_from is not None:
        stmt = stmt.where(Team.status.in_(list(only_from)))

    result = await db.execute(
        stmt.values(status=new_status, status_source=source).execution_options(synchronize_session=False)
    )
    return result.rowcount or 0
