"""
tournament_hub/routes/payments.py
Payment submission, screenshot upload and admin review
"""
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from tournament_hub.database import get_db
from tournament_hub.orm.payment import PaymentStatus
from tournament_hub.orm.user import User
from tournament_hub.rbac import get_current_user, require_admin
from tournament_hub.services.payment_service import PaymentService
from tournament_hub.services.storage import (
    ObjectStore, get_object_store, object_path, read_upload, PAYMENT_SCREENSHOTS_BUCKET
)

router = APIRouter(prefix="/api/payments", tags=["payments"])


class PaymentCreate(BaseModel):
    team_id: str
    amount: Decimal
    screenshot_url: Optional[str] = Field(None, max_length=500)
    payment_method: Optional[str] = Field(None, max_length=50)


class PaymentReview(BaseModel):
    status: PaymentStatus
    admin_notes: Optional[str] = None


@router.post("/screenshot", status_code=status.HTTP_201_CREATED)
async def upload_screenshot(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    store: ObjectStore = Depends(get_object_store),
):
    """
    Store a payment screenshot in the private bucket.

    Returns the storage path to send as screenshot_url when creating the
    payment, plus a signed URL for previewing it.
    """
    path = object_path(current_user.id, file.filename)
    await store.upload(PAYMENT_SCREENSHOTS_BUCKET, path, await read_upload(file))
    return {
        "success": True,
        "message": "Screenshot uploaded",
        "path": path,
        "signed_url": store.create_signed_url(PAYMENT_SCREENSHOTS_BUCKET, path),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_payment(
    data: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    payment = await PaymentService.create_payment(
        db,
        user_id=current_user.id,
        team_id=data.team_id,
        amount=data.amount,
        screenshot_url=data.screenshot_url,
        payment_method=data.payment_method,
    )
    return {"success": True, "message": "Payment submitted", "payment": payment.to_dict()}


@router.get("/mine")
async def my_payments(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    store: ObjectStore = Depends(get_object_store),
):
    return await PaymentService.list_payments(db, store, user_id=current_user.id)


@router.get("")
async def list_payments(
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    tournament_id: Optional[str] = None,
    team_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
    store: ObjectStore = Depends(get_object_store),
):
    """
    All payments, newest first, with team, tournament and submitter merged.

    **Roles:** Admin
    """
    return await PaymentService.list_payments(
        db, store, status=status_filter, tournament_id=tournament_id, team_id=team_id
    )


@router.post("/{payment_id}/review")
async def review_payment(
    payment_id: str,
    data: PaymentReview,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """
    Approve (registers the team) or reject (bans the submitter).

    **Roles:** Admin
    """
    payment = await PaymentService.review_payment(
        db, payment_id, data.status, reviewer_id=admin.id, admin_notes=data.admin_notes
    )
    message = "Payment approved" if payment.status == PaymentStatus.APPROVED else "Payment rejected and user banned"
    return {"success": True, "message": message, "payment": payment.to_dict()}
