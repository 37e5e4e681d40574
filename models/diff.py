"""
Diff result schemas.

One SheetDiff per entity type. Items carry database-shaped payloads in
before/after so the import batch can be built without re-reading rows.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from models.validation import ValidationResult


class DiffOperation(str, Enum):
    ADD = "ADD"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    UNCHANGED = "UNCHANGED"


class DiffItem(BaseModel):
    """
    Classification of one row or derived cross reference.

    before: stored payload (None for ADD)
    after: payload to write (None for DELETE)
    changes: field names that differ (UPDATE only)
    row: spreadsheet row the item came from, None for records absent from the file
    """
    operation: DiffOperation
    key: str
    row: Optional[int] = None
    before: Optional[dict[str, Any]] = None
    after: Optional[dict[str, Any]] = None
    changes: list[str] = Field(default_factory=list)


class SheetSummary(BaseModel):
    total_adds: int = 0
    total_updates: int = 0
    total_deletes: int = 0
    total_unchanged: int = 0
    total_changes: int = 0


class SheetDiff(BaseModel):
    """Diff for one entity type."""
    sheet: str
    adds: list[DiffItem] = Field(default_factory=list)
    updates: list[DiffItem] = Field(default_factory=list)
    deletes: list[DiffItem] = Field(default_factory=list)
    unchanged: list[DiffItem] = Field(default_factory=list)
    summary: SheetSummary = Field(default_factory=SheetSummary)

    def add(self, item: DiffItem) -> None:
        """File the item under its operation."""
        bucket = {
            DiffOperation.ADD: self.adds,
            DiffOperation.UPDATE: self.updates,
            DiffOperation.DELETE: self.deletes,
            DiffOperation.UNCHANGED: self.unchanged,
        }[item.operation]
        bucket.append(item)

    def summarize(self) -> SheetSummary:
        self.summary = SheetSummary(
            total_adds=len(self.adds),
            total_updates=len(self.updates),
            total_deletes=len(self.deletes),
            total_unchanged=len(self.unchanged),
            total_changes=len(self.adds) + len(self.updates) + len(self.deletes),
        )
        return self.summary


class DiffSummary(BaseModel):
    total_adds: int = 0
    total_updates: int = 0
    total_deletes: int = 0
    total_unchanged: int = 0
    total_changes: int = 0
    changes_by_sheet: dict[str, int] = Field(default_factory=dict)


class DiffResult(BaseModel):
    """Change set for one upload."""
    parts: SheetDiff
    vehicle_applications: SheetDiff
    aliases: SheetDiff
    cross_references: SheetDiff
    summary: DiffSummary = Field(default_factory=DiffSummary)

    @property
    def sheets(self) -> list[SheetDiff]:
        return [self.parts, self.vehicle_applications, self.aliases, self.cross_references]

    @property
    def has_changes(self) -> bool:
        return self.summary.total_changes > 0


class ImportPreview(BaseModel):
    """Validation plus diff, returned before the operator commits."""
    validation: ValidationResult
    diff: Optional[DiffResult] = None
