"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema
from models.catalog import (
    WorkflowStatus,
    decode_status,
    status_label,
    PartRow,
    VehicleApplicationRow,
    AliasRow,
    PartsSheet,
    VehicleApplicationsSheet,
    AliasesSheet,
    FileMetadata,
    ParsedExcelFile,
    PartRecord,
    VehicleApplicationRecord,
    CrossReferenceRecord,
    AliasRecord,
    ExistingCatalogState,
)
from models.validation import (
    IssueSeverity,
    ValidationErrorCode,
    ValidationWarningCode,
    ValidationIssue,
    ValidationSummary,
    ValidationResult,
)
from models.diff import (
    DiffOperation,
    DiffItem,
    SheetSummary,
    SheetDiff,
    DiffSummary,
    DiffResult,
    ImportPreview,
)
from models.import_history import (
    ImportMetadata,
    ImportSummary,
    SnapshotData,
    ImportHistoryRecord,
    ImportSnapshotSummary,
    ImportBatch,
    ImportResult,
    RollbackResult,
    ExecuteImportRequest,
    RollbackRequest,
)
