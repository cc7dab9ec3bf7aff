"""
tournament_hub/routes/matches.py
Single-match reads and result recording
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from tournament_hub.database import get_db
from tournament_hub.orm.user import User
from tournament_hub.rbac import require_admin
from tournament_hub.services.match_service import MatchService

router = APIRouter(prefix="/api/matches", tags=["matches"])


class MatchResult(BaseModel):
    team1_score: int
    team2_score: int
    winner_id: Optional[str] = None
    admin_notes: Optional[str] = None


@router.get("/{match_id}")
async def get_match(match_id: str, db: AsyncSession = Depends(get_db)):
    match = await MatchService.get_match(db, match_id)
    return match.to_dict()


@router.post("/{match_id}/result")
async def record_result(
    match_id: str,
    data: MatchResult,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """
    Record (or re-record) a match score.

    **Roles:** Admin
    """
    match = await MatchService.record_result(
        db, match_id, data.team1_score, data.team2_score, winner_id=data.winner_id, admin_notes=data.admin_notes
    )
    return {"success": True, "message": "Result recorded", "match": match.to_dict()}
