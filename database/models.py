"""
SQLAlchemy ORM models for the connections store.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class ServiceCredential(Base):
    """One encrypted credential payload per (principal, service)."""

    __tablename__ = "service_credentials"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # opaque host identity (agent id, user id, ...)
    principal_id = Column(String(255), nullable=False)
    service_name = Column(String(32), nullable=False)
    # key -> Fernet ciphertext; values are encrypted one by one
    credentials = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    expires_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("principal_id", "service_name", name="service_credentials_principal_service_unique"),
        Index("service_credentials_principal_id_idx", "principal_id"),
        Index("service_credentials_service_name_idx", "service_name"),
        Index("service_credentials_is_active_idx", "is_active"),
    )
