"""
Batch progress store.

Status, progress and total for a domain's batch live on the domain row itself;
there is no separate cache. Writes are single-statement UPDATEs, each committed
on its own so a concurrent status reader sees every completed unit.

Lifecycle of one batch:
    claim(total)      pending|completed|stale running -> running, 0/N
    increment()       progress + 1 per finished unit
    complete()        -> completed (also on a pool-level fault)
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from app.core.run_config import get_run_settings
from app.models.domain import Domain, PromptRunStatus
from app.utils.error_handler import DomainNotFoundError
from app.utils.logger import get_logger

logger = get_logger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is written in UTC
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


@dataclass
class BatchStatus:
    """What a poller sees for one domain"""

    domain_id: str
    status: str
    progress: int
    total: int
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain_id": self.domain_id,
            "status": self.status,
            "progress": self.progress,
            "total": self.total,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class ProgressTracker:
    """Progress/status store for one domain"""

    def __init__(self, db_session: Session, domain_id: str):
        self.db = db_session
        self.domain_id = domain_id
        self.settings = get_run_settings()

    def _stale_cutoff(self, now: datetime) -> datetime:
        return now - timedelta(seconds=self.settings.PROMPT_RUN_STALE_AFTER_SECONDS)

    def claim(self, total: int) -> bool:
        """
        Move the domain to running/0/total unless a live batch holds it.

        A running batch whose start is older than the stale threshold can be
        claimed over. Returns False when the claim lost.
        """
        now = datetime.now(timezone.utc)
        stmt = (
            update(Domain)
            .where(Domain.id == self.domain_id)
            .where(
                or_(
                    Domain.prompt_run_status != PromptRunStatus.RUNNING.value,
                    Domain.prompt_run_started_at.is_(None),
                    Domain.prompt_run_started_at < self._stale_cutoff(now),
                )
            )
            .values(
                prompt_run_status=PromptRunStatus.RUNNING.value,
                prompt_run_progress=0,
                prompt_run_total=total,
                prompt_run_started_at=now,
                prompt_run_completed_at=None,
            )
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.commit()

        claimed = result.rowcount == 1
        logger.info(
            "Batch claim attempted",
            domain_id=self.domain_id,
            total=total,
            claimed=claimed,
        )
        return claimed

    def increment(self) -> int:
        """Durably add one finished unit; returns the new progress."""
        self.db.execute(
            update(Domain)
            .where(Domain.id == self.domain_id)
            .values(prompt_run_progress=Domain.prompt_run_progress + 1)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return self.db.execute(
            select(Domain.prompt_run_progress).where(Domain.id == self.domain_id)
        ).scalar_one()

    def complete(self) -> None:
        self.set_status(PromptRunStatus.COMPLETED)

    def set_status(
        self,
        status: PromptRunStatus,
        progress: Optional[int] = None,
        total: Optional[int] = None,
    ) -> None:
        """Write status, and progress/total when given."""
        values: Dict[str, Any] = {"prompt_run_status": status.value}
        if progress is not None:
            values["prompt_run_progress"] = progress
        if total is not None:
            values["prompt_run_total"] = total
        if status == PromptRunStatus.COMPLETED:
            values["prompt_run_completed_at"] = datetime.now(timezone.utc)
        elif status == PromptRunStatus.PENDING:
            values["prompt_run_started_at"] = None

        self.db.execute(
            update(Domain)
            .where(Domain.id == self.domain_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        logger.debug("Batch status written", domain_id=self.domain_id, status=status.value)

    def get_status(self, now: Optional[datetime] = None) -> BatchStatus:
        """
        Read the current status.

        A running batch started longer ago than the stale threshold is reported
        as failed; the stored row is left untouched.

        Raises:
            DomainNotFoundError: Unknown domain id
        """
        row = self.db.execute(
            select(
                Domain.prompt_run_status,
                Domain.prompt_run_progress,
                Domain.prompt_run_total,
                Domain.prompt_run_started_at,
                Domain.prompt_run_completed_at,
            ).where(Domain.id == self.domain_id)
        ).first()
        if row is None:
            raise DomainNotFoundError(self.domain_id)

        status, progress, total, started_at, completed_at = row
        started_at = _as_utc(started_at)
        now = now or datetime.now(timezone.utc)

        if (
            status == PromptRunStatus.RUNNING.value
            and started_at is not None
            and started_at < self._stale_cutoff(now)
        ):
            logger.warning(
                "Running batch is stale, reporting as failed",
                domain_id=self.domain_id,
                started_at=started_at.isoformat(),
            )
            status = PromptRunStatus.FAILED.value

        return BatchStatus(
            domain_id=self.domain_id,
            status=status,
            progress=progress or 0,
            total=total or 0,
            started_at=started_at,
            completed_at=_as_utc(completed_at),
        )


def create_progress_tracker(db_session: Session, domain_id: str) -> ProgressTracker:
    """Factory function to create a progress tracker"""
    return ProgressTracker(db_session, domain_id)


def set_status(
    db_session: Session,
    domain_id: str,
    status: PromptRunStatus,
    progress: Optional[int] = None,
    total: Optional[int] = None,
) -> None:
    ProgressTracker(db_session, domain_id).set_status(status, progress, total)


def get_status(db_session: Session, domain_id: str) -> BatchStatus:
    return ProgressTracker(db_session, domain_id).get_status()
