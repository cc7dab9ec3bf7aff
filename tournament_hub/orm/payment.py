"""
tournament_hub/orm/payment.py
Entry-fee payments submitted by team captains and reviewed by admins.
"""
from enum import Enum as PyEnum

from sqlalchemy import Column, String, Numeric, DateTime, Text, ForeignKey, Enum as SQLEnum

from tournament_hub.core.db_types import UUIDString
from tournament_hub.orm.base import BaseModel, iso, enum_values


class PaymentStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Payment(BaseModel):
    """
    Payment proof for a team's entry fee.

    screenshot_url holds the storage path inside the private bucket;
    readers get a signed URL generated at read time.
    """
    __tablename__ = "payments"

    user_id = Column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    team_id = Column(
        UUIDString(),
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    tournament_id = Column(
        UUIDString(),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    amount = Column(Numeric(10, 2), nullable=False)
    screenshot_url = Column(String(500), nullable=True)
    payment_method = Column(String(50), nullable=True)
    status = Column(
        SQLEnum(PaymentStatus, name="payment_status", values_callable=enum_values),
        nullable=False,
        default=PaymentStatus.PENDING,
        index=True
    )
    admin_notes = Column(Text, nullable=True)
    reviewed_by = Column(UUIDString(), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<Payment(id={self.id}, team={self.team_id}, status={self.status})>"

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "team_id": self.team_id,
            "tournament_id": self.tournament_id,
            "amount": float(self.amount) if self.amount is not None else None,
            "screenshot_url": self.screenshot_url,
            "payment_method": self.payment_method,
            "status": self.status.value if self.status else None,
            "admin_notes": self.admin_notes,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": iso(self.reviewed_at),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
