"""
tournament_hub/orm/base.py
Declarative base shared by all ORM models
"""
from datetime import datetime

from sqlalchemy import Column, DateTime
from sqlalchemy.orm import declarative_base

from tournament_hub.core.db_types import UUIDString, new_uuid

Base = declarative_base()


class BaseModel(Base):
    """
    Abstract base model with common fields.
    Every table keyed by a UUID string inherits from this.
    """
    __abstract__ = True

    id = Column(
        UUIDString(),
        primary_key=True,
        default=new_uuid,
        index=True
    )

    created_at = Column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
        comment="Timestamp when record was created"
    )

    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
        comment="Timestamp when record was last updated"
    )


def iso(value):
    """Render an optional datetime for API payloads."""
    return value.isoformat() if value else None


def enum_values(enum_cls):
    """values_callable for SQLEnum so the stored labels match the enum values."""
    return [member.value for member in enum_cls]
