"""Bookkeeping for ``sync_runs`` rows."""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from market_sync.core.errors import StorageError
from market_sync.core.timeutils import utcnow
from market_sync.models import SyncRun


def start_run(session_factory: sessionmaker[Session], job_name: str) -> uuid.UUID:
    try:
        with session_factory() as db, db.begin():
            run = SyncRun(job_name=job_name, status="running", attempts=0, records_processed=0)
            db.add(run)
            db.flush()
            return run.run_id
    except SQLAlchemyError as exc:
        raise StorageError(f"Could not record start of {job_name} run: {exc}") from exc


def finish_run(
    session_factory: sessionmaker[Session],
    run_id: Optional[uuid.UUID],
    status: str,
    attempts: int = 1,
    records_processed: int = 0,
    error_message: Optional[str] = None,
) -> None:
    if run_id is None:
        return
    try:
        with session_factory() as db, db.begin():
            run = db.get(SyncRun, run_id)
            if run is None:
                return
            run.status = status
            run.attempts = attempts
            run.records_processed = records_processed
            run.error_message = error_message
            run.ended_at = utcnow()
    except SQLAlchemyError as exc:
        raise StorageError(f"Could not record end of run {run_id}: {exc}") from exc
