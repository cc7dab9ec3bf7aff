"""
tournament_hub/services/team_service.py
Teams, rosters and join requests

Roster size drives the early part of the team status:
incomplete <-> pending_payment as the member count crosses the tournament's
team_size. Those writes use the 'roster' source, the lowest in the
precedence table, so they never undo a payment approval or qualification.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tournament_hub.errors import (
    ValidationError, InvalidStateError, NotFoundError, ForbiddenError, ConflictError,
    ErrorCode, translate_integrity_error
)
from tournament_hub.orm.team import (
    Team, TeamMember, JoinRequest, TeamStatus, StatusSource, TeamRole, JoinRequestStatus
)
from tournament_hub.orm.tournament import Tournament, TournamentStatus
from tournament_hub.orm.user import User
from tournament_hub.services.team_status import apply_status, release_override

logger = logging.getLogger(__name__)

ADMIN_TEAM_FIELDS = ("name", "logo_url", "is_locked", "status", "release_status_override")


def sync_roster_status(team: Team, team_size: int) -> bool:
    """Move incomplete <-> pending_payment to match the member count."""
    if len(team.members) >= team_size:
        return apply_status(team, TeamStatus.PENDING_PAYMENT, StatusSource.ROSTER, only_from=[TeamStatus.INCOMPLETE])
    return apply_status(team, TeamStatus.INCOMPLETE, StatusSource.ROSTER, only_from=[TeamStatus.PENDING_PAYMENT])


def _require_captain_or_admin(team: Team, user: User):
    if team.captain_id != user.id and not user.is_admin:
        raise ForbiddenError("Only the team captain or an admin can do this")


class TeamService:

    @staticmethod
    async def get_team(db: AsyncSession, team_id: str) -> Team:
        team = await db.get(Team, team_id)
        if team is None:
            raise NotFoundError("Team", team_id)
        return team

    @staticmethod
    async def _tournament_of(db: AsyncSession, team: Team) -> Tournament:
        tournament = await db.get(Tournament, team.tournament_id)
        if tournament is None:
            raise NotFoundError("Tournament", team.tournament_id)
        return tournament

    @staticmethod
    async def _user_team_in_tournament(db: AsyncSession, user_id: str, tournament_id: str) -> Optional[str]:
        result = await db.execute(
            select(Team.id)
            .join(TeamMember, TeamMember.team_id == Team.id)
            .where(Team.tournament_id == tournament_id, TeamMember.user_id == user_id)
        )
        return result.scalars().first()

    @staticmethod
    async def create_team(
        db: AsyncSession,
        user: User,
        tournament_id: str,
        name: str,
        logo_url: Optional[str] = None,
        riot_id: Optional[str] = None,
    ) -> Team:
        """
        Create a team with the caller as captain and first member.

        Raises:
            NotFoundError: tournament does not exist
            InvalidStateError: registration is not open or tournament locked
            ValidationError: empty name or tournament full
            ConflictError: caller is already on a team in this tournament
        """
        if not (name or "").strip():
            raise ValidationError("Team name must not be empty")

        tournament = await db.get(Tournament, tournament_id)
        if tournament is None:
            raise NotFoundError("Tournament", tournament_id)
        if tournament.status != TournamentStatus.REGISTRATION_OPEN:
            raise InvalidStateError(
                "Tournament is not open for registration",
                details={"status": tournament.status.value}
            )
        if tournament.is_locked:
            raise InvalidStateError("Tournament is locked")

        existing = await db.execute(select(Team.id).where(Team.tournament_id == tournament_id))
        if len(existing.scalars().all()) >= tournament.max_teams:
            raise ValidationError("Tournament is full", details={"max_teams": tournament.max_teams})

        if await TeamService._user_team_in_tournament(db, user.id, tournament_id):
            raise ConflictError("You are already on a team in this tournament")

        captain = TeamMember(
            user_id=user.id,
            role=TeamRole.CAPTAIN.value,
            riot_id=riot_id or (user.profile.riot_id if user.profile else None),
        )
        team = Team(
            tournament_id=tournament_id,
            name=name.strip(),
            logo_url=logo_url,
            captain_id=user.id,
            status=TeamStatus.INCOMPLETE,
            members=[captain],
        )
        sync_roster_status(team, tournament.team_size)
        db.add(team)

        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise translate_integrity_error(e)

        logger.info(f"Team {team.id} ({team.name}) created by {user.id} in tournament {tournament_id}")
        return team

    @staticmethod
    async def list_teams(
        db: AsyncSession,
        tournament_id: Optional[str] = None,
        status: Optional[TeamStatus] = None,
    ) -> List[Team]:
        query = select(Team).order_by(Team.created_at, Team.id)
        if tournament_id is not None:
            query = query.where(Team.tournament_id == tournament_id)
        if status is not None:
            query = query.where(Team.status == status)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def list_user_teams(db: AsyncSession, user_id: str) -> List[Team]:
        result = await db.execute(
            select(Team)
            .join(TeamMember, TeamMember.team_id == Team.id)
            .where(TeamMember.user_id == user_id)
            .order_by(Team.created_at)
        )
        return list(result.scalars().all())

    # =========================================================================
    # Join requests
    # =========================================================================

    @staticmethod
    async def request_to_join(
        db: AsyncSession,
        user: User,
        team_id: str,
        riot_id: Optional[str] = None,
        message: Optional[str] = None,
    ) -> JoinRequest:
        """
        Ask to join a team.

        Raises:
            NotFoundError: team does not exist
            ValidationError: team locked or full
            ConflictError: already a member, already on another team in the
                tournament, or a request already exists
        """
        team = await TeamService.get_team(db, team_id)
        tournament = await TeamService._tournament_of(db, team)

        if team.is_locked:
            raise ValidationError("Team is locked", details={"team_id": team_id})
        if len(team.members) >= tournament.team_size:
            raise ValidationError("Team is full", details={"team_size": tournament.team_size})
        if any(m.user_id == user.id for m in team.members):
            raise ConflictError("You are already a member of this team")
        if await TeamService._user_team_in_tournament(db, user.id, team.tournament_id):
            raise ConflictError("You are already on a team in this tournament")

        request = JoinRequest(
            team_id=team_id,
            user_id=user.id,
            riot_id=riot_id or (user.profile.riot_id if user.profile else None),
            message=message,
            status=JoinRequestStatus.PENDING.value,
        )
        db.add(request)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise translate_integrity_error(
                e,
                conflict_message="You have already requested to join this team",
                conflict_code=ErrorCode.DUPLICATE_JOIN_REQUEST,
            )

        logger.info(f"Join request {request.id}: user {user.id} -> team {team_id}")
        return request

    @staticmethod
    async def list_join_requests(
        db: AsyncSession,
        team_id: str,
        status: Optional[JoinRequestStatus] = None,
    ) -> List[JoinRequest]:
        query = select(JoinRequest).where(JoinRequest.team_id == team_id).order_by(JoinRequest.created_at.desc())
        if status is not None:
            query = query.where(JoinRequest.status == JoinRequestStatus(status).value)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def respond_to_join_request(
        db: AsyncSession,
        actor: User,
        request_id: str,
        approve: bool,
    ) -> JoinRequest:
        """
        Approve or reject a pending join request. Approval adds the
        requester as a player and may complete the roster.

        Raises:
            NotFoundError: request or team does not exist
            ForbiddenError: actor is neither the captain nor an admin
            InvalidStateError: request already answered
            ValidationError: team filled up in the meantime
            ConflictError: requester joined another team in the tournament
        """
        request = await db.get(JoinRequest, request_id)
        if request is None:
            raise NotFoundError("Join request", request_id)

        team = await TeamService.get_team(db, request.team_id)
        _require_captain_or_admin(team, actor)

        if request.status != JoinRequestStatus.PENDING.value:
            raise InvalidStateError(
                f"Join request was already {request.status}",
                details={"status": request.status}
            )

        if approve:
            tournament = await TeamService._tournament_of(db, team)
            if len(team.members) >= tournament.team_size:
                raise ValidationError("Team is full", details={"team_size": tournament.team_size})
            current_team = await TeamService._user_team_in_tournament(db, request.user_id, team.tournament_id)
            if current_team is not None and current_team != team.id:
                raise ConflictError(
                    "User is already on another team in this tournament",
                    details={"team_id": current_team}
                )
            if not any(m.user_id == request.user_id for m in team.members):
                team.members.append(
                    TeamMember(user_id=request.user_id, riot_id=request.riot_id, role=TeamRole.PLAYER.value)
                )
            sync_roster_status(team, tournament.team_size)

        request.status = (JoinRequestStatus.APPROVED if approve else JoinRequestStatus.REJECTED).value
        request.reviewed_by = actor.id
        request.reviewed_at = datetime.utcnow()

        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise translate_integrity_error(e, conflict_message="User is already a member of this team")

        logger.info(f"Join request {request_id} {request.status} by {actor.id}")
        return request

    # =========================================================================
    # Roster
    # =========================================================================

    @staticmethod
    async def leave_team(db: AsyncSession, user: User, team_id: str) -> Team:
        team = await TeamService.get_team(db, team_id)
        if team.captain_id == user.id:
            raise ValidationError("The captain cannot leave the team")
        return await TeamService._remove(db, team, user.id)

    @staticmethod
    async def remove_member(db: AsyncSession, actor: User, team_id: str, user_id: str) -> Team:
        team = await TeamService.get_team(db, team_id)
        _require_captain_or_admin(team, actor)
        if team.captain_id == user_id:
            raise ValidationError("The captain cannot be removed from the team")
        return await TeamService._remove(db, team, user_id)

    @staticmethod
    async def _remove(db: AsyncSession, team: Team, user_id: str) -> Team:
        member = next((m for m in team.members if m.user_id == user_id), None)
        if member is None:
            raise NotFoundError("Team member", user_id)
        if team.is_locked:
            raise ValidationError("Team is locked", details={"team_id": team.id})

        tournament = await TeamService._tournament_of(db, team)
        team.members.remove(member)
        sync_roster_status(team, tournament.team_size)
        await db.commit()

        logger.info(f"User {user_id} left team {team.id}")
        return team

    # =========================================================================
    # Admin
    # =========================================================================

    @staticmethod
    async def admin_update_team(db: AsyncSession, team_id: str, updates: Dict[str, Any]) -> Team:
        """
        Admin edit of a team.

        Setting status is an admin override: automatic writers stop changing
        the status until release_status_override is sent.
        """
        unknown = sorted(set(updates) - set(ADMIN_TEAM_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown team field(s): {', '.join(unknown)}", details={"fields": unknown})

        team = await TeamService.get_team(db, team_id)

        if "name" in updates:
            if not (updates["name"] or "").strip():
                raise ValidationError("Team name must not be empty")
            team.name = updates["name"].strip()
        if "logo_url" in updates:
            team.logo_url = updates["logo_url"]
        if "is_locked" in updates:
            team.is_locked = bool(updates["is_locked"])

        if updates.get("status") is not None:
            try:
                new_status = TeamStatus(updates["status"])
            except ValueError:
                raise ValidationError(f"Invalid team status '{updates['status']}'")
            apply_status(team, new_status, StatusSource.ADMIN)
        elif updates.get("release_status_override"):
            release_override(team)

        await db.commit()
        logger.info(f"Team {team_id} updated by admin: {sorted(updates)}")
        return team

    @staticmethod
    async def delete_team(db: AsyncSession, team_id: str) -> None:
        team = await TeamService.get_team(db, team_id)
        await db.delete(team)
        await db.commit()
        logger.info(f"Team {team_id} deleted")
