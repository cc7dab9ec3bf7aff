"""
tournament_hub/routes/teams.py
Team registration, rosters, join requests and admin team edits
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from tournament_hub.database import get_db
from tournament_hub.orm.team import TeamStatus, JoinRequestStatus
from tournament_hub.orm.user import User
from tournament_hub.rbac import get_current_user, require_admin
from tournament_hub.services.team_service import TeamService

router = APIRouter(prefix="/api", tags=["teams"])


class TeamCreate(BaseModel):
    tournament_id: str
    name: str = Field(..., min_length=1, max_length=255)
    logo_url: Optional[str] = Field(None, max_length=500)
    riot_id: Optional[str] = Field(None, max_length=100)


class JoinRequestCreate(BaseModel):
    riot_id: Optional[str] = Field(None, max_length=100)
    message: Optional[str] = Field(None, max_length=1000)


class JoinRequestResponse(BaseModel):
    approve: bool


class AdminTeamUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    logo_url: Optional[str] = Field(None, max_length=500)
    is_locked: Optional[bool] = None
    status: Optional[TeamStatus] = None
    release_status_override: Optional[bool] = None


# =============================================================================
# Teams
# =============================================================================

@router.post("/teams", status_code=status.HTTP_201_CREATED)
async def create_team(
    data: TeamCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Register a team; the caller becomes its captain."""
    team = await TeamService.create_team(
        db, current_user, data.tournament_id, data.name, logo_url=data.logo_url, riot_id=data.riot_id
    )
    return {"success": True, "message": "Team created", "team": team.to_dict(include_members=True)}


@router.get("/teams")
async def list_teams(
    tournament_id: Optional[str] = None,
    status_filter: Optional[TeamStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
):
    teams = await TeamService.list_teams(db, tournament_id=tournament_id, status=status_filter)
    return [t.to_dict(include_members=True) for t in teams]


@router.get("/teams/mine")
async def my_teams(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    teams = await TeamService.list_user_teams(db, current_user.id)
    return [t.to_dict(include_members=True) for t in teams]


@router.get("/teams/{team_id}")
async def get_team(team_id: str, db: AsyncSession = Depends(get_db)):
    team = await TeamService.get_team(db, team_id)
    return team.to_dict(include_members=True)


@router.patch("/teams/{team_id}")
async def admin_update_team(
    team_id: str,
    data: AdminTeamUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """
    Admin edit. Setting status overrides the automatic status writers
    until release_status_override is sent.

    **Roles:** Admin
    """
    team = await TeamService.admin_update_team(db, team_id, data.model_dump(exclude_unset=True))
    return {"success": True, "message": "Team updated", "team": team.to_dict(include_members=True)}


@router.delete("/teams/{team_id}")
async def delete_team(
    team_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    await TeamService.delete_team(db, team_id)
    return {"success": True, "message": "Team deleted"}


# =============================================================================
# Roster
# =============================================================================

@router.post("/teams/{team_id}/leave")
async def leave_team(
    team_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    team = await TeamService.leave_team(db, current_user, team_id)
    return {"success": True, "message": "You left the team", "team": team.to_dict(include_members=True)}


@router.delete("/teams/{team_id}/members/{user_id}")
async def remove_member(
    team_id: str,
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    team = await TeamService.remove_member(db, current_user, team_id, user_id)
    return {"success": True, "message": "Member removed", "team": team.to_dict(include_members=True)}


# =============================================================================
# Join requests
# =============================================================================

@router.post("/teams/{team_id}/join-requests", status_code=status.HTTP_201_CREATED)
async def request_to_join(
    team_id: str,
    data: JoinRequestCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    request = await TeamService.request_to_join(db, current_user, team_id, riot_id=data.riot_id, message=data.message)
    return {"success": True, "message": "Join request sent", "request": request.to_dict()}


@router.get("/teams/{team_id}/join-requests")
async def list_join_requests(
    team_id: str,
    status_filter: Optional[JoinRequestStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    team = await TeamService.get_team(db, team_id)
    if team.captain_id != current_user.id and not current_user.is_admin:
        requests = [
            r for r in await TeamService.list_join_requests(db, team_id, status_filter)
            if r.user_id == current_user.id
        ]
    else:
        requests = await TeamService.list_join_requests(db, team_id, status_filter)
    return [r.to_dict() for r in requests]


@router.post("/join-requests/{request_id}/respond")
async def respond_to_join_request(
    request_id: str,
    data: JoinRequestResponse,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Captain (or admin) approves or rejects a pending request."""
    request = await TeamService.respond_to_join_request(db, current_user, request_id, data.approve)
    return {
        "success": True,
        "message": "Join request approved" if data.approve else "Join request rejected",
        "request": request.to_dict(),
    }
