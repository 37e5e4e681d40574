"""
Import service: the only code path that mutates the catalog.

Order of work:
    1. Read every catalog table and persist it as a snapshot row
    2. Apply the diff as one atomic batch

A crash between 1 and 2 leaves an unused snapshot behind, which is
harmless. A failure in 2 is reported with the snapshot id so the caller
can roll back; nothing is retried or undone automatically.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

import structlog

from config import settings
from exceptions import (
    ImportExecutionError,
    NoChangesToImportError,
    SnapshotPersistError,
)
from models.catalog import ParsedExcelFile
from models.diff import DiffResult
from models.import_history import (
    ImportBatch,
    ImportMetadata,
    ImportResult,
    ImportSummary,
    SnapshotData,
)
from services.catalog_store import (
    ALIASES_TABLE,
    CROSS_REFERENCES_TABLE,
    PARTS_TABLE,
    VEHICLE_APPLICATIONS_TABLE,
    CatalogStore,
)

logger = structlog.get_logger(__name__)


class ImportService:
    """
    Executes imports against a CatalogStore.

    Args:
        store: Store to snapshot and mutate
        actor: Value stamped into updated_by on imported rows
    """

    def __init__(self, store: CatalogStore, actor: Optional[str] = None):
        self.store = store
        self.actor = actor or settings.import_actor

    def capture_snapshot(self) -> SnapshotData:
        """Read the full pre-image of every catalog table."""
        return SnapshotData(
            parts=self.store.fetch_all(PARTS_TABLE),
            vehicle_applications=self.store.fetch_all(VEHICLE_APPLICATIONS_TABLE),
            cross_references=self.store.fetch_all(CROSS_REFERENCES_TABLE),
            aliases=self.store.fetch_all(ALIASES_TABLE),
            timestamp=datetime.now(timezone.utc),
        )

    def execute_import(
        self,
        parsed_file: ParsedExcelFile,
        diff: DiffResult,
        metadata: ImportMetadata
    ) -> ImportResult:
        """
        Snapshot the catalog, then apply the diff atomically.

        Args:
            parsed_file: Workbook the diff was computed from
            diff: Change set from DiffEngine
            metadata: File name, size and uploader

        Returns:
            ImportResult with the snapshot id for undo

        Raises:
            NoChangesToImportError: Diff has nothing to apply
            SnapshotPersistError: Pre-image could not be saved (store untouched)
            ImportExecutionError: Store rejected the batch (snapshot saved)
        """
        if not diff.has_changes:
            raise NoChangesToImportError()

        summary = ImportSummary.from_diff(diff)
        import_id = str(uuid4())

        logger.info(
            "import_started",
            import_id=import_id,
            file_name=metadata.file_name,
            adds=summary.adds,
            updates=summary.updates,
            deletes=summary.deletes,
        )

        try:
            snapshot = self.capture_snapshot()
            saved = self.store.insert_import_history({
                "id": import_id,
                "imported_by": metadata.imported_by,
                "file_name": metadata.file_name,
                "file_size_bytes": metadata.file_size,
                "rows_imported": parsed_file.total_rows,
                "snapshot_data": snapshot.model_dump(mode="json"),
                "import_summary": summary.model_dump(mode="json"),
            })
        except Exception as e:
            logger.error("snapshot_persist_failed", import_id=import_id, error=str(e))
            raise SnapshotPersistError(str(e)) from e

        logger.info("snapshot_persisted", import_id=import_id, **snapshot.row_counts())

        batch = ImportBatch.from_diff(diff, self.actor)
        try:
            self.store.apply_import(batch)
        except Exception as e:
            logger.error(
                "atomic_import_failed",
                import_id=import_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ImportExecutionError(import_id, str(e)) from e

        logger.info("import_completed", import_id=import_id, operations=batch.operation_count)

        created_at = saved.get("created_at") or datetime.now(timezone.utc)
        return ImportResult(
            import_id=import_id,
            summary=summary,
            rows_imported=parsed_file.total_rows,
            created_at=created_at,
        )
