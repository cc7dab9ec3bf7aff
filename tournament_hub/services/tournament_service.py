"""
tournament_hub/services/tournament_service.py
Tournament CRUD and lifecycle state machine
"""
import logging
import math
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tournament_hub.errors import ValidationError, InvalidStateError, NotFoundError, ErrorCode
from tournament_hub.orm.tournament import Tournament, TournamentStatus
from tournament_hub.services.group_service import MAX_GROUPS

logger = logging.getLogger(__name__)

# Fields an admin may set through create/update; status goes through transition()
EDITABLE_FIELDS = (
    "name", "description", "start_date", "end_date", "max_teams", "team_size",
    "entry_fee", "platform_fee_percentage", "tournament_type", "match_type",
    "num_groups", "teams_per_group_qualify", "prize_pool", "prize_distribution",
    "is_locked", "banner_url",
)


def validate_prize_distribution(distribution: Optional[List[Any]]) -> Optional[List[float]]:
    """
    Percentages per payout place. Must be non-negative and sum to exactly 100.
    None means no distribution is configured.
    """
    if distribution is None:
        return None
    if not isinstance(distribution, list) or not distribution:
        raise ValidationError("prize_distribution must be a non-empty list of percentages")

    values = []
    for place, share in enumerate(distribution, start=1):
        if isinstance(share, bool) or not isinstance(share, (int, float)) or not math.isfinite(share):
            raise ValidationError(f"Prize share for place {place} must be a number", details={"place": place})
        if share < 0:
            raise ValidationError(
                f"Prize share for place {place} must not be negative",
                code=ErrorCode.NEGATIVE_VALUE,
                details={"place": place}
            )
        values.append(share)

    total = sum(values)
    if not math.isclose(total, 100, abs_tol=1e-9):
        raise ValidationError(
            f"Prize distribution must total 100%, got {total:g}%",
            details={"total": total}
        )
    return values


def _check_non_negative(fields: Dict[str, Any], *names: str):
    for name in names:
        value = fields.get(name)
        if value is not None and Decimal(str(value)) < 0:
            raise ValidationError(f"{name} must not be negative", code=ErrorCode.NEGATIVE_VALUE)


def validate_tournament_fields(fields: Dict[str, Any], current: Optional[Tournament] = None) -> Dict[str, Any]:
    """Check a create payload or a partial update against the current row."""
    unknown = sorted(set(fields) - set(EDITABLE_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown tournament field(s): {', '.join(unknown)}", details={"fields": unknown})

    if "name" in fields and not (fields["name"] or "").strip():
        raise ValidationError("name must not be empty")

    _check_non_negative(fields, "entry_fee", "prize_pool")

    fee = fields.get("platform_fee_percentage")
    if fee is not None and not (0 <= Decimal(str(fee)) <= 100):
        raise ValidationError("platform_fee_percentage must be between 0 and 100")

    for name, minimum in (("team_size", 1), ("max_teams", 2), ("teams_per_group_qualify", 1)):
        value = fields.get(name)
        if value is not None and value < minimum:
            raise ValidationError(f"{name} must be at least {minimum}", details={name: value})

    num_groups = fields.get("num_groups")
    if num_groups is not None and not (1 <= num_groups <= MAX_GROUPS):
        raise ValidationError(f"num_groups must be between 1 and {MAX_GROUPS}")

    if "prize_distribution" in fields:
        fields["prize_distribution"] = validate_prize_distribution(fields["prize_distribution"])

    start = fields.get("start_date", current.start_date if current is not None else None)
    end = fields.get("end_date", current.end_date if current is not None else None)
    if start is not None and end is not None and end < start:
        raise ValidationError("end_date must not be before start_date")

    return fields


class TournamentService:
    """
    Tournament lifecycle:

        upcoming -> registration_open -> registration_closed -> in_progress -> completed
        any non-terminal state -> cancelled

    completed and cancelled are terminal.
    """

    VALID_TRANSITIONS = {
        TournamentStatus.UPCOMING: [TournamentStatus.REGISTRATION_OPEN, TournamentStatus.CANCELLED],
        TournamentStatus.REGISTRATION_OPEN: [TournamentStatus.REGISTRATION_CLOSED, TournamentStatus.CANCELLED],
        TournamentStatus.REGISTRATION_CLOSED: [TournamentStatus.IN_PROGRESS, TournamentStatus.CANCELLED],
        TournamentStatus.IN_PROGRESS: [TournamentStatus.COMPLETED, TournamentStatus.CANCELLED],
        TournamentStatus.COMPLETED: [],
        TournamentStatus.CANCELLED: [],
    }

    TERMINAL_STATUSES = [TournamentStatus.COMPLETED, TournamentStatus.CANCELLED]

    @staticmethod
    def is_valid_transition(current: TournamentStatus, new: TournamentStatus) -> bool:
        return new in TournamentService.VALID_TRANSITIONS.get(current, [])

    @staticmethod
    async def create_tournament(db: AsyncSession, fields: Dict[str, Any]) -> Tournament:
        fields = validate_tournament_fields(dict(fields))
        if not fields.get("name"):
            raise ValidationError("name is required")
        if fields.get("start_date") is None:
            raise ValidationError("start_date is required")

        tournament = Tournament(**fields)
        db.add(tournament)
        await db.commit()

        logger.info(f"Tournament created: {tournament.id} ({tournament.name})")
        return tournament

    @staticmethod
    async def get_tournament(db: AsyncSession, tournament_id: str) -> Tournament:
        tournament = await db.get(Tournament, tournament_id)
        if tournament is None:
            raise NotFoundError("Tournament", tournament_id)
        return tournament

    @staticmethod
    async def list_tournaments(db: AsyncSession, status: Optional[TournamentStatus] = None) -> List[Tournament]:
        query = select(Tournament).order_by(Tournament.start_date.desc(), Tournament.id)
        if status is not None:
            query = query.where(Tournament.status == status)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def update_tournament(db: AsyncSession, tournament_id: str, updates: Dict[str, Any]) -> Tournament:
        """
        Partial update of tournament metadata.

        A locked tournament only accepts unlocking.

        Raises:
            NotFoundError, ValidationError, InvalidStateError
        """
        tournament = await TournamentService.get_tournament(db, tournament_id)

        if "status" in updates:
            raise ValidationError("Use the status transition endpoint to change status", details={"field": "status"})

        if tournament.is_locked and set(updates) - {"is_locked"}:
            raise InvalidStateError("Tournament is locked", details={"tournament_id": tournament_id})

        if tournament.status in TournamentService.TERMINAL_STATUSES and set(updates) - {"is_locked"}:
            raise InvalidStateError(
                f"Tournament is {tournament.status.value} and can no longer be edited",
                details={"status": tournament.status.value}
            )

        fields = validate_tournament_fields(dict(updates), current=tournament)
        for key, value in fields.items():
            setattr(tournament, key, value)

        await db.commit()
        logger.info(f"Tournament {tournament_id} updated: {sorted(fields)}")
        return tournament

    @staticmethod
    async def transition(db: AsyncSession, tournament_id: str, new_status: TournamentStatus) -> Tournament:
        """
        Move a tournament to a new lifecycle status.

        Raises:
            NotFoundError: tournament does not exist
            InvalidStateError: transition not allowed from the current status
        """
        tournament = await TournamentService.get_tournament(db, tournament_id)
        new_status = TournamentStatus(new_status)
        current = tournament.status

        if not TournamentService.is_valid_transition(current, new_status):
            allowed = [s.value for s in TournamentService.VALID_TRANSITIONS.get(current, [])]
            raise InvalidStateError(
                f"Cannot transition tournament from {current.value} to {new_status.value}",
                details={"current": current.value, "requested": new_status.value, "allowed": allowed}
            )

        tournament.status = new_status
        tournament.updated_at = datetime.utcnow()
        await db.commit()

        logger.info(f"Tournament {tournament_id} transitioned: {current.value} -> {new_status.value}")
        return tournament

    @staticmethod
    async def delete_tournament(db: AsyncSession, tournament_id: str) -> None:
        tournament = await TournamentService.get_tournament(db, tournament_id)
        await db.delete(tournament)
        await db.commit()
        logger.info(f"Tournament {tournament_id} deleted")
