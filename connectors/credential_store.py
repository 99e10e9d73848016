"""
Credential store — durable, encrypted (principal, service) → payload mapping.

Knows nothing about OAuth.  Every write is a full-payload upsert keyed on
``(principal_id, service_name)``, so concurrent writes to one key resolve as
last-writer-wins and writes to different keys never conflict.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from connectors.encryption import CredentialCipher
from connectors.errors import StorageError
from connectors.schemas import CredentialRecord, ServiceName
from database.models import ServiceCredential

logger = logging.getLogger(__name__)

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class CredentialStore:
    """Encrypted credential persistence on top of an async SQLAlchemy engine."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cipher: CredentialCipher,
    ):
        self._session_factory = session_factory
        self._cipher = cipher

    async def put(
        self,
        principal_id: str,
        service: ServiceName,
        payload: Mapping[str, Optional[str]],
        *,
        expires_at: Optional[datetime] = None,
    ) -> None:
        """
        Encrypt ``payload`` and upsert it for (principal, service).

        The row is forced active and ``updated_at`` refreshed.  On backend
        failure the transaction is rolled back, leaving any previous record
        untouched, and ``StorageError`` is raised.
        """
        service = ServiceName.parse(service)
        encrypted = self._cipher.encrypt_values(payload)
        now = datetime.now(timezone.utc)

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    insert = _UPSERT_INSERTS.get(session.bind.dialect.name, pg_insert)
                    stmt = insert(ServiceCredential).values(
                        id=uuid.uuid4(),
                        principal_id=str(principal_id),
                        service_name=service.value,
                        credentials=encrypted,
                        is_active=True,
                        expires_at=expires_at,
                        created_at=now,
                        updated_at=now,
                    )
                    stmt = stmt.on_conflict_do_update(
                        index_elements=["principal_id", "service_name"],
                        set_={
                            "credentials": stmt.excluded.credentials,
                            "is_active": True,
                            "expires_at": stmt.excluded.expires_at,
                            "updated_at": stmt.excluded.updated_at,
                        },
                    )
                    await session.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error("Failed to store %s credentials for %s: %s", service.value, principal_id, exc)
            raise StorageError(f"Could not store {service.value} credentials") from None

        logger.info("Stored %s credentials for principal %s (%d keys)", service.value, principal_id, len(encrypted))

    async def get_record(self, principal_id: str, service: ServiceName) -> Optional[CredentialRecord]:
        """Return the decrypted active record, or ``None`` if there is none."""
        service = ServiceName.parse(service)
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(ServiceCredential).where(
                        ServiceCredential.principal_id == str(principal_id),
                        ServiceCredential.service_name == service.value,
                        ServiceCredential.is_active.is_(True),
                    ).limit(1)
                )
                row = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.error("Failed to read %s credentials for %s: %s", service.value, principal_id, exc)
            raise StorageError(f"Could not read {service.value} credentials") from None

        if row is None:
            return None

        # CredentialCorruptError propagates: a rotated secret is not "disconnected"
        payload = self._cipher.decrypt_values(row.credentials or {})
        return CredentialRecord(
            principal_id=str(row.principal_id),
            service=service,
            payload=payload,
            expires_at=row.expires_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    async def get(self, principal_id: str, service: ServiceName) -> Optional[Dict[str, str]]:
        record = await self.get_record(principal_id, service)
        return record.payload if record is not None else None

    async def exists(self, principal_id: str, service: ServiceName) -> bool:
        return await self.get(principal_id, service) is not None

    async def delete(self, principal_id: str, service: ServiceName) -> bool:
        """
        Remove the record for (principal, service).

        Idempotent; returns True if a row was actually removed.
        """
        service = ServiceName.parse(service)
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        delete(ServiceCredential).where(
                            ServiceCredential.principal_id == str(principal_id),
                            ServiceCredential.service_name == service.value,
                        )
                    )
        except SQLAlchemyError as exc:
            logger.error("Failed to delete %s credentials for %s: %s", service.value, principal_id, exc)
            raise StorageError(f"Could not delete {service.value} credentials") from None

        removed = bool(result.rowcount)
        if removed:
            logger.info("Deleted %s credentials for principal %s", service.value, principal_id)
        return removed
