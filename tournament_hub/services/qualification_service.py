"""
tournament_hub/services/qualification_service.py
Group qualification engine

Two layers:
- rank_standings / compute_qualification: pure, deterministic ranking of a
  group's standings. No I/O, unit-testable on plain snapshots.
- QualificationService.recompute_group: reads the group, ranks it, and writes
  the derived state (is_qualified flags, team statuses) back in batches.

Recompute runs after every standing update as a post-commit event handler.
It is a best-effort projection: handler failures are logged and never reach
the request that changed the standing.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Set, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tournament_hub.config.settings import settings, TieBreakPolicy
from tournament_hub.errors import NotFoundError
from tournament_hub.events.bus import StandingUpdated
from tournament_hub.orm.group import Group, GroupStanding
from tournament_hub.orm.team import Team, TeamStatus, StatusSource
from tournament_hub.orm.tournament import Tournament
from tournament_hub.services.team_status import bulk_apply_status

logger = logging.getLogger(__name__)

FALLBACK_QUALIFY_COUNT = 2


# =============================================================================
# Pure ranking
# =============================================================================

@dataclass(frozen=True)
class StandingSnapshot:
    """The fields of a standing the ranking looks at."""
    standing_id: str
    team_id: str
    points: int
    wins: int = 0
    losses: int = 0
    draws: int = 0
    games_played: int = 0
    team_name: str = ""
    created_at: Optional[datetime] = None
    is_qualified: bool = False


def _creation_key(s: StandingSnapshot):
    # Rows without a timestamp sort last
    return (s.created_at is None, s.created_at or datetime.min)


def _stats_key(s: StandingSnapshot):
    return (
        -s.points,
        -s.wins,
        s.losses,
        s.games_played,
        (s.team_name or "").casefold(),
        _creation_key(s),
        s.standing_id,
    )


def _insertion_key(s: StandingSnapshot):
    return (-s.points, _creation_key(s), s.standing_id)


_SORT_KEYS = {
    TieBreakPolicy.STATS: _stats_key,
    TieBreakPolicy.INSERTION: _insertion_key,
}


def rank_standings(
    standings: Iterable[StandingSnapshot],
    tiebreak: str = TieBreakPolicy.STATS,
) -> List[StandingSnapshot]:
    """
    Order standings best-first.

    stats:     points desc, wins desc, losses asc, games_played asc,
               team name asc (case-insensitive), creation order, id
    insertion: points desc, creation order, id

    Both orderings are total, so the same input always yields the same list
    regardless of the order it arrives in.
    """
    try:
        key = _SORT_KEYS[tiebreak]
    except KeyError:
        raise ValueError(f"Unknown tie-break policy '{tiebreak}'. Must be one of: {', '.join(TieBreakPolicy.ALL)}")
    return sorted(standings, key=key)


def compute_qualification(
    standings: Iterable[StandingSnapshot],
    qualify_count: int,
    tiebreak: str = TieBreakPolicy.STATS,
) -> Set[str]:
    """
    Return the team ids that qualify out of one group.

    The top qualify_count standings by rank_standings qualify. A group with
    fewer teams than qualify_count qualifies all of them.
    """
    if qualify_count < 0:
        raise ValueError("qualify_count must not be negative")
    ranked = rank_standings(standings, tiebreak)
    return {s.team_id for s in ranked[:qualify_count]}


# =============================================================================
# Orchestrator
# =============================================================================

@dataclass
class QualificationResult:
    """Outcome of one recompute pass over a group."""
    group_id: str
    qualify_count: int
    qualified_team_ids: List[str] = field(default_factory=list)
    unqualified_team_ids: List[str] = field(default_factory=list)
    flags_changed: int = 0
    teams_qualified: int = 0
    teams_reverted: int = 0

    def to_dict(self):
        return {
            "group_id": self.group_id,
            "qualify_count": self.qualify_count,
            "qualified_team_ids": self.qualified_team_ids,
            "unqualified_team_ids": self.unqualified_team_ids,
            "flags_changed": self.flags_changed,
            "teams_qualified": self.teams_qualified,
            "teams_reverted": self.teams_reverted,
        }


class QualificationService:
    """Recomputes the qualified set of a group and cascades it into team statuses."""

    @staticmethod
    def resolve_qualify_count(tournament: Optional[Tournament]) -> int:
        """
        teams_per_group_qualify, or the configured default when absent or not
        positive. A configured default below 1 falls back to 2.
        """
        if tournament is not None and tournament.teams_per_group_qualify and tournament.teams_per_group_qualify > 0:
            return tournament.teams_per_group_qualify
        if settings.DEFAULT_TEAMS_PER_GROUP_QUALIFY and settings.DEFAULT_TEAMS_PER_GROUP_QUALIFY > 0:
            return settings.DEFAULT_TEAMS_PER_GROUP_QUALIFY
        logger.warning(
            f"DEFAULT_TEAMS_PER_GROUP_QUALIFY={settings.DEFAULT_TEAMS_PER_GROUP_QUALIFY} is not positive; "
            f"using {FALLBACK_QUALIFY_COUNT}"
        )
        return FALLBACK_QUALIFY_COUNT

    @staticmethod
    async def load_snapshots(db: AsyncSession, group_id: str) -> List[StandingSnapshot]:
        result = await db.execute(
            select(
                GroupStanding.id,
                GroupStanding.team_id,
                GroupStanding.points,
                GroupStanding.wins,
                GroupStanding.losses,
                GroupStanding.draws,
                GroupStanding.games_played,
                GroupStanding.created_at,
                GroupStanding.is_qualified,
                Team.name,
            )
            .outerjoin(Team, Team.id == GroupStanding.team_id)
            .where(GroupStanding.group_id == group_id)
        )
        return [
            StandingSnapshot(
                standing_id=row.id,
                team_id=row.team_id,
                points=row.points or 0,
                wins=row.wins or 0,
                losses=row.losses or 0,
                draws=row.draws or 0,
                games_played=row.games_played or 0,
                team_name=row.name or "",
                created_at=row.created_at,
                is_qualified=bool(row.is_qualified),
            )
            for row in result.all()
        ]

    @staticmethod
    async def recompute_group(
        db: AsyncSession,
        group_id: str,
        tiebreak: Optional[str] = None,
    ) -> QualificationResult:
        """
        Recompute qualification for one group and commit.

        Steps:
        1. Resolve the group's tournament and N
        2. Read every standing of the group
        3. Rank them (tie-break policy from settings unless given)
        4-5. Top N get is_qualified = true, the rest false (two batched writes)
        6. Top-N teams move to 'qualified'
        7. Other teams revert to 'registered' only if currently 'qualified'

        Raises:
            NotFoundError: group does not exist
        """
        group = await db.get(Group, group_id)
        if group is None:
            raise NotFoundError("Group", group_id)

        tournament = await db.get(Tournament, group.tournament_id)
        qualify_count = QualificationService.resolve_qualify_count(tournament)
        policy = tiebreak or settings.QUALIFICATION_TIEBREAK

        snapshots = await QualificationService.load_snapshots(db, group_id)
        result = QualificationResult(group_id=group_id, qualify_count=qualify_count)
        if not snapshots:
            logger.info(f"Group {group_id} has no standings; nothing to recompute")
            return result

        qualified = compute_qualification(snapshots, qualify_count, policy)
        ranked = rank_standings(snapshots, policy)
        top: Sequence[StandingSnapshot] = [s for s in ranked if s.team_id in qualified]
        rest: Sequence[StandingSnapshot] = [s for s in ranked if s.team_id not in qualified]

        top_ids = [s.standing_id for s in top]
        other_ids = [s.standing_id for s in rest]
        result.qualified_team_ids = [s.team_id for s in top]
        result.unqualified_team_ids = [s.team_id for s in rest]
        result.flags_changed = sum(1 for s in top if not s.is_qualified) + sum(1 for s in rest if s.is_qualified)

        if top_ids:
            await db.execute(
                update(GroupStanding)
                .where(GroupStanding.id.in_(top_ids))
                .values(is_qualified=True)
                .execution_options(synchronize_session=False)
            )
        if other_ids:
            await db.execute(
                update(GroupStanding)
                .where(GroupStanding.id.in_(other_ids))
                .values(is_qualified=False)
                .execution_options(synchronize_session=False)
            )

        result.teams_qualified = await bulk_apply_status(
            db, result.qualified_team_ids, TeamStatus.QUALIFIED, StatusSource.QUALIFICATION
        )
        result.teams_reverted = await bulk_apply_status(
            db,
            result.unqualified_team_ids,
            TeamStatus.REGISTERED,
            StatusSource.QUALIFICATION,
            only_from=[TeamStatus.QUALIFIED],
        )

        await db.commit()

        logger.info(
            f"Recomputed group {group_id}: N={qualify_count}, policy={policy}, "
            f"qualified={result.qualified_team_ids}, flags_changed={result.flags_changed}, "
            f"reverted={result.teams_reverted}"
        )
        return result

    @staticmethod
    def standing_updated_handler(session_factory: async_sessionmaker):
        """
        Build the StandingUpdated handler bound to a session factory.

        The handler opens its own session: the request session that
        published the event may already be closed when it runs.
        """
        async def handle_standing_updated(event: StandingUpdated) -> QualificationResult:
            async with session_factory() as session:
                try:
                    return await QualificationService.recompute_group(session, event.group_id)
                except Exception:
                    await session.rollback()
                    raise

        return handle_standing_updated
