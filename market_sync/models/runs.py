"""Enables /stats, /health and sync observability"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from market_sync.core.timeutils import utcnow
from market_sync.models.base import Base


class SyncRun(Base):
    __tablename__ = "sync_runs"

    run_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    job_name: Mapped[str] = mapped_column(String(50), nullable=False)  # market_sync | enrichment

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,  # running | success | failure
    )

    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    records_processed: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    error_message: Mapped[str | None] = mapped_column(String, nullable=True)

    started_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
    )

    ended_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )
