"""
Sync log repository.

One SyncAttemptLog row per attempted platform operation, opened as
``running`` and finalized with counters and the error list.
"""
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from platform_sync.constants.sync import SyncRunStatus
from platform_sync.models.integration_models import SyncAttemptLog
from platform_sync.utils.dates import utcnow


class SyncLogRepository:
    """Repository for sync attempt logs."""

    def __init__(self, db: Session):
        """
        Initialize repository with database session.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    def open(
        self,
        restaurant_id: int,
        platform: str,
        sync_type: str,
        reference: Optional[str] = None
    ) -> SyncAttemptLog:
        """
        Create a running log entry.

        Args:
            restaurant_id: Restaurant ID
            platform: Platform id
            sync_type: full, incremental, order_status, cancel, availability, order_pull
            reference: Order or product id the attempt concerns

        Returns:
            Created SyncAttemptLog record
        """
        log = SyncAttemptLog(
            restaurant_id=restaurant_id,
            platform=platform,
            sync_type=sync_type,
            status=SyncRunStatus.RUNNING,
            reference=reference,
            errors=[],
        )
        self.db.add(log)
        self.db.commit()
        self.db.refresh(log)
        return log

    def finalize(
        self,
        log: SyncAttemptLog,
        counters: Optional[Dict[str, int]] = None,
        errors: Optional[List[str]] = None,
        status: Optional[str] = None
    ) -> SyncAttemptLog:
        """
        Close a log entry.

        Without an explicit status: ``completed`` when nothing failed,
        ``failed`` when nothing succeeded, ``partial`` otherwise.
        """
        counters = counters or {}
        errors = list(errors or [])
        for name, value in counters.items():
            setattr(log, name, value)

        if status is None:
            synced = sum(v for k, v in counters.items() if k.startswith("synced_"))
            if not errors:
                status = SyncRunStatus.COMPLETED
            elif synced == 0:
                status = SyncRunStatus.FAILED
            else:
                status = SyncRunStatus.PARTIAL

        log.status = status
        log.errors = errors
        log.completed_at = utcnow()
        self.db.commit()
        self.db.refresh(log)
        return log

    def record(
        self,
        restaurant_id: int,
        platform: str,
        sync_type: str,
        succeeded: bool,
        reference: Optional[str] = None,
        error: Optional[str] = None
    ) -> SyncAttemptLog:
        """Open and finalize a single-item attempt in one step."""
        log = self.open(restaurant_id, platform, sync_type, reference)
        return self.finalize(
            log,
            counters={"synced_items": 1 if succeeded else 0, "failed_items": 0 if succeeded else 1},
            errors=[error] if error else [],
            status=SyncRunStatus.COMPLETED if succeeded else SyncRunStatus.FAILED,
        )

    def last_completed(self, restaurant_id: int, platform: str, sync_types: List[str]) -> Optional[SyncAttemptLog]:
        return self.db.query(SyncAttemptLog).filter(
            SyncAttemptLog.restaurant_id == restaurant_id,
            SyncAttemptLog.platform == platform,
            SyncAttemptLog.sync_type.in_(sync_types),
            SyncAttemptLog.status.in_([SyncRunStatus.COMPLETED, SyncRunStatus.PARTIAL])
        ).order_by(SyncAttemptLog.id.desc()).first()
