"""
tournament_hub/services/payment_service.py
Entry-fee payments and their admin review

Approving a payment registers the team through the status precedence table,
so a team that has already qualified stays qualified. Rejecting a payment
bans the submitting user's profile and leaves the team untouched.
"""
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tournament_hub.errors import (
    ValidationError, NotFoundError, ForbiddenError, ErrorCode, translate_integrity_error
)
from tournament_hub.orm.payment import Payment, PaymentStatus
from tournament_hub.orm.team import Team, TeamMember, TeamStatus, StatusSource
from tournament_hub.orm.tournament import Tournament
from tournament_hub.orm.user import Profile
from tournament_hub.services.storage import ObjectStore, PAYMENT_SCREENSHOTS_BUCKET
from tournament_hub.services.team_status import apply_status

logger = logging.getLogger(__name__)

REVIEW_STATUSES = {PaymentStatus.APPROVED, PaymentStatus.REJECTED}


def parse_amount(amount: Any) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError("amount must be a number", details={"amount": str(amount)})
    if not value.is_finite():
        raise ValidationError("amount must be a number", details={"amount": str(amount)})
    if value < 0:
        raise ValidationError("amount must not be negative", code=ErrorCode.NEGATIVE_VALUE)
    return value


class PaymentService:

    @staticmethod
    async def create_payment(
        db: AsyncSession,
        user_id: str,
        team_id: str,
        amount: Any,
        screenshot_url: Optional[str] = None,
        payment_method: Optional[str] = None,
    ) -> Payment:
        """
        Record a payment submitted by a team member.

        Raises:
            ValidationError: negative or malformed amount
            NotFoundError: team does not exist
            ForbiddenError: user is not on the team
        """
        value = parse_amount(amount)

        team = await db.get(Team, team_id)
        if team is None:
            raise NotFoundError("Team", team_id)

        membership = await db.execute(
            select(TeamMember.id).where(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
        )
        if membership.scalar_one_or_none() is None:
            raise ForbiddenError("Only team members can submit payments for a team")

        if screenshot_url is not None and not screenshot_url.startswith(f"{user_id}/"):
            raise ValidationError(
                "Screenshot must be uploaded by the submitting user",
                code=ErrorCode.INVALID_INPUT,
                details={"screenshot_url": screenshot_url}
            )

        payment = Payment(
            user_id=user_id,
            team_id=team_id,
            tournament_id=team.tournament_id,
            amount=value,
            screenshot_url=screenshot_url,
            payment_method=payment_method,
            status=PaymentStatus.PENDING,
        )
        db.add(payment)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise translate_integrity_error(e)

        logger.info(f"Payment {payment.id} submitted by user {user_id} for team {team_id}: {value}")
        return payment

    @staticmethod
    async def list_payments(
        db: AsyncSession,
        store: Optional[ObjectStore] = None,
        status: Optional[PaymentStatus] = None,
        tournament_id: Optional[str] = None,
        team_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Payments newest first, each merged with its team, tournament and
        submitter profile. Screenshot paths become signed URLs when a store
        is given.
        """
        query = (
            select(Payment, Team.name, Tournament.name, Profile.username, Profile.riot_id)
            .outerjoin(Team, Team.id == Payment.team_id)
            .outerjoin(Tournament, Tournament.id == Payment.tournament_id)
            .outerjoin(Profile, Profile.user_id == Payment.user_id)
            .order_by(Payment.created_at.desc(), Payment.id)
        )
        if status is not None:
            query = query.where(Payment.status == status)
        if tournament_id is not None:
            query = query.where(Payment.tournament_id == tournament_id)
        if team_id is not None:
            query = query.where(Payment.team_id == team_id)
        if user_id is not None:
            query = query.where(Payment.user_id == user_id)

        result = await db.execute(query)

        payments = []
        for payment, team_name, tournament_name, username, riot_id in result.all():
            data = payment.to_dict()
            data["team"] = {"name": team_name} if team_name is not None else None
            data["tournament"] = {"name": tournament_name} if tournament_name is not None else None
            data["profile"] = {"username": username, "riot_id": riot_id} if username is not None else None
            data["screenshot_signed_url"] = None
            if store is not None and payment.screenshot_url:
                data["screenshot_signed_url"] = store.create_signed_url(
                    PAYMENT_SCREENSHOTS_BUCKET, payment.screenshot_url
                )
            payments.append(data)
        return payments

    @staticmethod
    async def review_payment(
        db: AsyncSession,
        payment_id: str,
        status: PaymentStatus,
        reviewer_id: str,
        admin_notes: Optional[str] = None,
    ) -> Payment:
        """
        Approve or reject a payment.

        approved: team -> registered (source payment_approval)
        rejected: submitter's profile is banned

        Raises:
            ValidationError: status is not approved/rejected
            NotFoundError: payment does not exist
        """
        try:
            status = PaymentStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid payment status '{status}'")
        if status not in REVIEW_STATUSES:
            raise ValidationError(
                "Payments can only be approved or rejected",
                details={"status": status.value}
            )

        payment = await db.get(Payment, payment_id)
        if payment is None:
            raise NotFoundError("Payment", payment_id)

        payment.status = status
        payment.admin_notes = admin_notes
        payment.reviewed_by = reviewer_id
        payment.reviewed_at = datetime.utcnow()

        if status == PaymentStatus.APPROVED:
            team = await db.get(Team, payment.team_id)
            if team is not None:
                apply_status(team, TeamStatus.REGISTERED, StatusSource.PAYMENT_APPROVAL)
        else:
            result = await db.execute(select(Profile).where(Profile.user_id == payment.user_id))
            profile = result.scalar_one_or_none()
            if profile is not None:
                profile.is_banned = True
                logger.warning(f"User {payment.user_id} banned after payment {payment_id} was rejected")

        await db.commit()

        logger.info(f"Payment {payment_id} {status.value} by {reviewer_id}")
        return payment
