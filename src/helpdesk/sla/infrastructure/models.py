"""
SLA Infrastructure Models
==========================

SQLAlchemy ORM models for the SLA module.

Per-ticket SLA state lives in the ``sla_*`` columns of ``tickets``
(see ``helpdesk.tickets.infrastructure.models``); the only table owned here
is the policy table.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.infrastructure.database import Base, utc_now


class SLAPolicyModel(Base):
    """
    Database model for SLA policies.

    Maps to the 'sla_policies' table. The partial unique index allows
    inactive duplicates but only one active policy per priority.
    """
    __tablename__ = "sla_policies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    priority: Mapped[str] = mapped_column(String(20), nullable=False)
    response_time_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    resolution_time_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        Index(
            "uq_sla_policies_active_priority",
            "priority",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )
