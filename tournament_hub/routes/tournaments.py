"""
tournament_hub/routes/tournaments.py
Tournament CRUD, lifecycle transitions, group creation and the bracket view
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from tournament_hub.database import get_db
from tournament_hub.orm.match import GROUP_STAGE
from tournament_hub.orm.tournament import TournamentStatus, TournamentType, MatchType
from tournament_hub.orm.user import User
from tournament_hub.rbac import require_admin
from tournament_hub.services.bracket import layout, DEFAULT_SLOT_HEIGHT
from tournament_hub.services.group_service import GroupService
from tournament_hub.services.match_service import MatchService
from tournament_hub.services.tournament_service import TournamentService

router = APIRouter(prefix="/api/tournaments", tags=["tournaments"])


# =============================================================================
# Pydantic Request Models
# =============================================================================

class TournamentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    max_teams: int = 16
    team_size: int = 5
    entry_fee: Decimal = Decimal("0")
    platform_fee_percentage: Decimal = Decimal("0")
    tournament_type: TournamentType = TournamentType.GROUP_KNOCKOUT
    match_type: MatchType = MatchType.BO1
    num_groups: Optional[int] = None
    teams_per_group_qualify: Optional[int] = None
    prize_pool: Optional[Decimal] = None
    prize_distribution: Optional[List[float]] = None
    banner_url: Optional[str] = None


class TournamentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    max_teams: Optional[int] = None
    team_size: Optional[int] = None
    entry_fee: Optional[Decimal] = None
    platform_fee_percentage: Optional[Decimal] = None
    tournament_type: Optional[TournamentType] = None
    match_type: Optional[MatchType] = None
    num_groups: Optional[int] = None
    teams_per_group_qualify: Optional[int] = None
    prize_pool: Optional[Decimal] = None
    prize_distribution: Optional[List[float]] = None
    is_locked: Optional[bool] = None
    banner_url: Optional[str] = None


class TransitionRequest(BaseModel):
    new_status: TournamentStatus


class CreateGroupsRequest(BaseModel):
    num_groups: int


class MatchCreate(BaseModel):
    group_id: Optional[str] = None
    team1_id: Optional[str] = None
    team2_id: Optional[str] = None
    match_type: Optional[MatchType] = None
    stage: str = Field(GROUP_STAGE, min_length=1, max_length=50)
    bracket_round: Optional[int] = None
    bracket_position: Optional[int] = None
    scheduled_at: Optional[datetime] = None
    admin_notes: Optional[str] = None


# =============================================================================
# Tournaments
# =============================================================================

@router.get("")
async def list_tournaments(
    status_filter: Optional[TournamentStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
):
    tournaments = await TournamentService.list_tournaments(db, status=status_filter)
    return [t.to_dict() for t in tournaments]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_tournament(
    data: TournamentCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """
    Create a tournament.

    **Roles:** Admin
    """
    tournament = await TournamentService.create_tournament(db, data.model_dump())
    return {"success": True, "message": "Tournament created", "tournament": tournament.to_dict()}


@router.get("/{tournament_id}")
async def get_tournament(tournament_id: str, db: AsyncSession = Depends(get_db)):
    tournament = await TournamentService.get_tournament(db, tournament_id)
    return tournament.to_dict()


@router.patch("/{tournament_id}")
async def update_tournament(
    tournament_id: str,
    data: TournamentUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    tournament = await TournamentService.update_tournament(db, tournament_id, data.model_dump(exclude_unset=True))
    return {"success": True, "message": "Tournament updated", "tournament": tournament.to_dict()}


@router.post("/{tournament_id}/transition")
async def transition_tournament(
    tournament_id: str,
    data: TransitionRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """
    Move the tournament along its lifecycle.

    **Roles:** Admin
    """
    tournament = await TournamentService.transition(db, tournament_id, data.new_status)
    return {
        "success": True,
        "message": f"Tournament is now {tournament.status.value}",
        "tournament": tournament.to_dict(),
    }


@router.delete("/{tournament_id}")
async def delete_tournament(
    tournament_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    await TournamentService.delete_tournament(db, tournament_id)
    return {"success": True, "message": "Tournament deleted"}


# =============================================================================
# Groups
# =============================================================================

@router.post("/{tournament_id}/groups", status_code=status.HTTP_201_CREATED)
async def create_groups(
    tournament_id: str,
    data: CreateGroupsRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """
    Create "Group A".."Group <k>" for the tournament.

    **Roles:** Admin
    """
    groups = await GroupService.create_groups(db, tournament_id, data.num_groups)
    return {
        "success": True,
        "message": f"Created {len(groups)} groups",
        "groups": [g.to_dict() for g in groups],
    }


@router.get("/{tournament_id}/groups")
async def list_groups(tournament_id: str, db: AsyncSession = Depends(get_db)):
    groups = await GroupService.list_groups(db, tournament_id)
    return [g.to_dict() for g in groups]


# =============================================================================
# Matches and bracket
# =============================================================================

@router.get("/{tournament_id}/matches")
async def list_matches(
    tournament_id: str,
    stage: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    matches = await MatchService.list_matches(db, tournament_id, stage=stage)
    return [m.to_dict() for m in matches]


@router.post("/{tournament_id}/matches", status_code=status.HTTP_201_CREATED)
async def create_match(
    tournament_id: str,
    data: MatchCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    match = await MatchService.create_match(db, tournament_id, data.model_dump())
    return {"success": True, "message": "Match created", "match": match.to_dict()}


@router.get("/{tournament_id}/bracket")
async def get_bracket(
    tournament_id: str,
    rounds: Optional[int] = Query(None, ge=1, le=10),
    slot_height: int = Query(DEFAULT_SLOT_HEIGHT, ge=1),
    db: AsyncSession = Depends(get_db),
):
    """
    Knockout bracket laid out by round.

    rounds defaults to the highest bracket_round among the knockout matches.
    """
    await TournamentService.get_tournament(db, tournament_id)
    matches = await MatchService.list_matches(db, tournament_id, knockout_only=True)

    total_rounds = rounds
    if total_rounds is None:
        total_rounds = max((m.bracket_round for m in matches), default=0)

    return {
        "tournament_id": tournament_id,
        "total_rounds": total_rounds,
        "rounds": [r.to_dict() for r in layout(matches, total_rounds, slot_height)],
    }
