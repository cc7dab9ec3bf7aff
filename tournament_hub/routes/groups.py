"""
tournament_hub/routes/groups.py
Group standings: listing, team assignment, standing edits and recompute
"""
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from tournament_hub.database import get_db
from tournament_hub.events.bus import EventBus, get_event_bus
from tournament_hub.orm.user import User
from tournament_hub.rbac import require_admin
from tournament_hub.services.group_service import GroupService
from tournament_hub.services.qualification_service import QualificationService
from tournament_hub.services.standing_service import StandingService

router = APIRouter(prefix="/api", tags=["groups"])


class AssignTeamRequest(BaseModel):
    team_id: str
    group_name: Optional[str] = Field(None, max_length=100)


class StandingUpdateRequest(BaseModel):
    """
    Partial standing update.

    Extra keys are kept so the service can name them in its error,
    including an attempt to set is_qualified.
    """
    model_config = ConfigDict(extra="allow")

    wins: Optional[int] = None
    losses: Optional[int] = None
    draws: Optional[int] = None
    points: Optional[int] = None
    games_played: Optional[int] = None


@router.get("/groups/{group_id}")
async def get_group(group_id: str, db: AsyncSession = Depends(get_db)):
    group = await GroupService.get_group(db, group_id)
    return group.to_dict()


@router.get("/groups/{group_id}/standings")
async def list_standings(group_id: str, db: AsyncSession = Depends(get_db)):
    """Standings in rank order, each with its team name."""
    standings = await StandingService.list_group_standings(db, group_id)
    return [s.to_dict() for s in standings]


@router.post("/groups/{group_id}/teams", status_code=status.HTTP_201_CREATED)
async def assign_team(
    group_id: str,
    data: AssignTeamRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """
    Put a team in a group with a zeroed standing.

    **Roles:** Admin

    Qualification is not recomputed; it catches up on the next standing
    update in the group or an explicit recompute.
    """
    standing = await GroupService.assign_team_to_group(db, data.team_id, group_id, data.group_name)
    return {"success": True, "message": "Team assigned to group", "standing": standing.to_dict()}


@router.post("/groups/{group_id}/recompute")
async def recompute_group(
    group_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """
    Run the qualification pass for a group now.

    **Roles:** Admin
    """
    result = await QualificationService.recompute_group(db, group_id)
    return {"success": True, "message": "Qualification recomputed", "result": result.to_dict()}


@router.get("/standings/{standing_id}")
async def get_standing(standing_id: str, db: AsyncSession = Depends(get_db)):
    standing = await StandingService.get_standing(db, standing_id)
    return standing.to_dict()


@router.patch("/standings/{standing_id}")
async def update_standing(
    standing_id: str,
    data: StandingUpdateRequest,
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
    admin: User = Depends(require_admin),
):
    """
    Edit a standing's counters.

    **Roles:** Admin

    The write is committed before qualification is recomputed. A failing
    recompute is logged and does not change this response.
    """
    standing = await StandingService.update_standing(db, standing_id, data.model_dump(exclude_unset=True), bus)
    return {"success": True, "message": "Standing updated", "standing": standing.to_dict()}
