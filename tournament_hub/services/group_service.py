"""
tournament_hub/services/group_service.py
Group creation and team-to-group assignment
"""
import logging
import string
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tournament_hub.errors import (
    ValidationError, NotFoundError, ConflictError, ErrorCode, translate_integrity_error
)
from tournament_hub.orm.group import Group, GroupStanding
from tournament_hub.orm.team import Team
from tournament_hub.orm.tournament import Tournament

logger = logging.getLogger(__name__)

GROUP_LETTERS = string.ascii_uppercase
MAX_GROUPS = len(GROUP_LETTERS)


def group_names(num_groups: int) -> List[str]:
    """["Group A", "Group B", ...] for 1 <= num_groups <= 26"""
    if num_groups < 1 or num_groups > MAX_GROUPS:
        raise ValidationError(
            f"num_groups must be between 1 and {MAX_GROUPS}",
            details={"num_groups": num_groups}
        )
    return [f"Group {GROUP_LETTERS[i]}" for i in range(num_groups)]


class GroupService:

    @staticmethod
    async def create_groups(db: AsyncSession, tournament_id: str, num_groups: int) -> List[Group]:
        """
        Insert num_groups groups for a tournament in one batch.

        Existing groups are left alone; calling this twice creates a second
        "Group A". Admins delete the extras by hand.

        Raises:
            ValidationError: num_groups out of range or unknown tournament
        """
        names = group_names(num_groups)

        tournament = await db.get(Tournament, tournament_id)
        if tournament is None:
            raise ValidationError(
                f"Tournament '{tournament_id}' does not exist",
                code=ErrorCode.INVALID_INPUT,
                details={"tournament_id": tournament_id}
            )

        groups = [Group(tournament_id=tournament_id, name=name) for name in names]
        db.add_all(groups)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise translate_integrity_error(e, fk_message=f"Tournament '{tournament_id}' does not exist")

        logger.info(f"Created {len(groups)} groups for tournament {tournament_id}")
        return groups

    @staticmethod
    async def list_groups(db: AsyncSession, tournament_id: str) -> List[Group]:
        result = await db.execute(
            select(Group)
            .where(Group.tournament_id == tournament_id)
            .order_by(Group.name, Group.created_at)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_group(db: AsyncSession, group_id: str) -> Group:
        group = await db.get(Group, group_id)
        if group is None:
            raise NotFoundError("Group", group_id)
        return group

    @staticmethod
    async def assign_team_to_group(
        db: AsyncSession,
        team_id: str,
        group_id: str,
        group_name: Optional[str] = None,
    ) -> GroupStanding:
        """
        Put a team in a group: set teams.group_name and add a zeroed standing.

        Both writes commit together. No recompute is triggered; the new
        standing stays unqualified until the next standing update in the
        group (or an explicit recompute).

        Raises:
            NotFoundError: team or group does not exist
            ValidationError: team and group belong to different tournaments
            ConflictError: team already has a standing in this group
        """
        group = await db.get(Group, group_id)
        if group is None:
            raise NotFoundError("Group", group_id)

        team = await db.get(Team, team_id)
        if team is None:
            raise NotFoundError("Team", team_id)

        if team.tournament_id != group.tournament_id:
            raise ValidationError(
                "Team and group belong to different tournaments",
                details={"team_tournament_id": team.tournament_id, "group_tournament_id": group.tournament_id}
            )

        existing = await db.execute(
            select(GroupStanding.id).where(
                GroupStanding.group_id == group_id,
                GroupStanding.team_id == team_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(
                "Team is already assigned to this group",
                code=ErrorCode.DUPLICATE_STANDING,
                details={"team_id": team_id, "group_id": group_id}
            )

        team.group_name = group_name or group.name
        standing = GroupStanding(group_id=group_id, team_id=team_id)
        db.add(standing)

        try:
            await db.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent assignment of the same pair
            await db.rollback()
            raise translate_integrity_error(
                e,
                conflict_message="Team is already assigned to this group",
                conflict_code=ErrorCode.DUPLICATE_STANDING,
            )

        await db.refresh(standing, ["team"])
        logger.info(f"Assigned team {team_id} to group {group_id} ({team.group_name})")
        return standing
