"""
Rollback service: restores the catalog to an import's pre-image.

Snapshots are single-use. The restore and the removal of the snapshot
row happen in the same transaction, so a second rollback of the same
import always reports not found.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog

from config import settings
from exceptions import (
    ImportSnapshotNotFoundError,
    RollbackConflictError,
    RollbackExecutionError,
    SequentialRollbackError,
)
from models.catalog import PartRecord
from models.import_history import (
    ImportHistoryRecord,
    ImportSnapshotSummary,
    RollbackResult,
)
from services.catalog_store import PARTS_TABLE, CatalogStore

logger = structlog.get_logger(__name__)

MANUAL_EDITOR = "manual"


class RollbackService:
    """Rolls back imports recorded in import_history."""

    def __init__(self, store: CatalogStore):
        self.store = store

    def list_available_snapshots(self, limit: Optional[int] = None) -> list[ImportSnapshotSummary]:
        """
        Newest imports that can still be rolled back.

        Args:
            limit: Max entries (defaults to settings.import_history_limit)
        """
        rows = self.store.list_import_history(limit or settings.import_history_limit)
        return [ImportSnapshotSummary(**row) for row in rows]

    def rollback_to_import(self, import_id: str) -> RollbackResult:
        """
        Restore the catalog to the state captured before an import.

        Checks run in order: snapshot exists, it is the newest import,
        no part was edited manually since. Then the snapshot is restored
        and consumed.

        Args:
            import_id: id returned by ImportService.execute_import

        Returns:
            RollbackResult with restored row counts

        Raises:
            ImportSnapshotNotFoundError: No such snapshot (or already rolled back)
            SequentialRollbackError: A newer import exists
            RollbackConflictError: Parts were edited manually after the import
            RollbackExecutionError: The store failed while restoring
        """
        logger.info("rollback_started", import_id=import_id)

        row = self.store.get_import_history(import_id)
        if row is None:
            logger.warning("rollback_snapshot_not_found", import_id=import_id)
            raise ImportSnapshotNotFoundError(import_id)
        record = ImportHistoryRecord(**row)

        newest = self.store.list_import_history(1)
        if newest and newest[0]["id"] != import_id:
            logger.warning(
                "rollback_not_newest",
                import_id=import_id,
                newest_import_id=newest[0]["id"],
            )
            raise SequentialRollbackError(import_id, newest[0]["id"])

        conflicts = self._find_manual_edits(record.created_at)
        if conflicts:
            logger.warning("rollback_conflict", import_id=import_id, conflicts=len(conflicts))
            raise RollbackConflictError(import_id, conflicts)

        try:
            self.store.restore_snapshot(import_id, record.snapshot_data)
        except ImportSnapshotNotFoundError:
            # Consumed by another rollback after the checks above
            logger.warning("rollback_snapshot_consumed", import_id=import_id)
            raise
        except Exception as e:
            logger.error("rollback_failed", import_id=import_id, error=str(e))
            raise RollbackExecutionError(import_id, str(e)) from e

        counts = record.snapshot_data.row_counts()
        logger.info("rollback_completed", import_id=import_id, **counts)
        return RollbackResult(
            import_id=import_id,
            restored_counts=counts,
            rolled_back_at=datetime.now(timezone.utc),
        )

    def _find_manual_edits(self, since: datetime) -> list[str]:
        conflicts = []
        for row in self.store.fetch_all(PARTS_TABLE):
            part = PartRecord(**row)
            if part.updated_by != MANUAL_EDITOR or part.updated_at is None:
                continue
            if _as_utc(part.updated_at) > _as_utc(since):
                conflicts.append(part.acr_sku)
        return sorted(conflicts)


def _as_utc(value: datetime) -> datetime:
    """Naive timestamps from the store are UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
