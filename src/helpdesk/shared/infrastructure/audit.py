"""
Audit Trail
===========

Append-only audit log for administrative actions (policy changes, breach
sweeps). Entries are written in the caller's session so they commit or roll
back together with the change they describe.
"""

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import JSON, DateTime, Integer, String, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.infrastructure.database import Base, store_errors, utc_now
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class AuditLogModel(Base):
    """Maps to the 'audit_log' table."""
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)


class AuditLogger:
    """Writes and reads audit entries."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def record(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[Any] = None,
        details: Optional[dict] = None,
        user_id: Optional[int] = None
    ) -> AuditLogModel:
        entry = AuditLogModel(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            details=details,
        )
        self._session.add(entry)
        with store_errors("write audit entry"):
            await self._session.flush()

        logger.info(
            "Audit entry recorded",
            extra={"action": action, "entity_type": entity_type, "entity_id": entry.entity_id}
        )
        return entry

    async def list_for_entity(self, entity_type: str, entity_id: Any) -> List[AuditLogModel]:
        stmt = (
            select(AuditLogModel)
            .where(AuditLogModel.entity_type == entity_type)
            .where(AuditLogModel.entity_id == str(entity_id))
            .order_by(AuditLogModel.id)
        )
        with store_errors("list audit entries"):
            result = await self._session.execute(stmt)
        return list(result.scalars().all())
