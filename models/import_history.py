"""
Import history schemas: snapshots, import batches and results.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from models.base import BaseSchema
from models.catalog import ParsedExcelFile
from models.diff import DiffResult


class ImportMetadata(BaseSchema):
    """Who uploaded what."""
    file_name: str = Field(..., min_length=1, max_length=255)
    file_size: int = Field(default=0, ge=0)
    imported_by: Optional[str] = Field(None, max_length=255)


class ImportSummary(BaseModel):
    """Per-type change counts stored with each snapshot."""
    adds: int = 0
    updates: int = 0
    deletes: int = 0
    changes_by_sheet: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_diff(cls, diff: DiffResult) -> "ImportSummary":
        return cls(
            adds=diff.summary.total_adds,
            updates=diff.summary.total_updates,
            deletes=diff.summary.total_deletes,
            changes_by_sheet=dict(diff.summary.changes_by_sheet),
        )


class SnapshotData(BaseModel):
    """Full pre-image of every catalog table, rows stored verbatim."""
    parts: list[dict[str, Any]] = Field(default_factory=list)
    vehicle_applications: list[dict[str, Any]] = Field(default_factory=list)
    cross_references: list[dict[str, Any]] = Field(default_factory=list)
    aliases: list[dict[str, Any]] = Field(default_factory=list)
    timestamp: datetime

    def row_counts(self) -> dict[str, int]:
        return {
            "parts": len(self.parts),
            "vehicle_applications": len(self.vehicle_applications),
            "cross_references": len(self.cross_references),
            "aliases": len(self.aliases),
        }


class ImportHistoryRecord(BaseModel):
    """Row of the import_history table."""
    id: str
    imported_by: Optional[str] = None
    file_name: str
    file_size_bytes: int = 0
    rows_imported: int = 0
    snapshot_data: SnapshotData
    import_summary: ImportSummary = Field(default_factory=ImportSummary)
    created_at: datetime


class ImportSnapshotSummary(BaseModel):
    """Import history entry without the snapshot payload."""
    id: str
    imported_by: Optional[str] = None
    file_name: str
    file_size_bytes: int = 0
    rows_imported: int = 0
    import_summary: ImportSummary = Field(default_factory=ImportSummary)
    created_at: datetime


class ImportBatch(BaseModel):
    """
    Heterogeneous mutation set applied in one transaction.

    Deletes carry ids only. Adds and updates carry full column payloads.
    """
    parts_to_add: list[dict[str, Any]] = Field(default_factory=list)
    parts_to_update: list[dict[str, Any]] = Field(default_factory=list)
    parts_to_delete: list[str] = Field(default_factory=list)
    vehicles_to_add: list[dict[str, Any]] = Field(default_factory=list)
    vehicles_to_update: list[dict[str, Any]] = Field(default_factory=list)
    vehicles_to_delete: list[str] = Field(default_factory=list)
    cross_refs_to_add: list[dict[str, Any]] = Field(default_factory=list)
    cross_refs_to_delete: list[str] = Field(default_factory=list)
    aliases_to_add: list[dict[str, Any]] = Field(default_factory=list)
    aliases_to_update: list[dict[str, Any]] = Field(default_factory=list)
    aliases_to_delete: list[str] = Field(default_factory=list)

    @classmethod
    def from_diff(cls, diff: DiffResult, actor: str) -> "ImportBatch":
        """
        Build the batch from a diff.

        Parts, vehicle applications and cross references are stamped with
        updated_by=actor so later manual edits can be told apart.
        """
        def stamped(items):
            return [{**item.after, "updated_by": actor} for item in items]

        def plain(items):
            return [dict(item.after) for item in items]

        def ids(items):
            return [item.before["id"] for item in items]

        return cls(
            parts_to_add=stamped(diff.parts.adds),
            parts_to_update=stamped(diff.parts.updates),
            parts_to_delete=ids(diff.parts.deletes),
            vehicles_to_add=stamped(diff.vehicle_applications.adds),
            vehicles_to_update=stamped(diff.vehicle_applications.updates),
            vehicles_to_delete=ids(diff.vehicle_applications.deletes),
            cross_refs_to_add=stamped(diff.cross_references.adds),
            cross_refs_to_delete=ids(diff.cross_references.deletes),
            aliases_to_add=plain(diff.aliases.adds),
            aliases_to_update=plain(diff.aliases.updates),
            aliases_to_delete=ids(diff.aliases.deletes),
        )

    @property
    def operation_count(self) -> int:
        return sum(len(v) for v in self.model_dump().values())


class ImportResult(BaseModel):
    """Returned after a successful import; import_id enables undo."""
    import_id: str
    summary: ImportSummary
    rows_imported: int
    created_at: datetime


class RollbackResult(BaseModel):
    import_id: str
    restored_counts: dict[str, int]
    rolled_back_at: datetime


# ===================
# REQUESTS
# ===================

class ExecuteImportRequest(BaseModel):
    """Body of POST /api/import/execute."""
    file: ParsedExcelFile
    imported_by: Optional[str] = Field(None, max_length=255)


class RollbackRequest(BaseModel):
    import_id: str = Field(..., min_length=1)
