"""
Custom exception classes for the application.

Every error carries a stable code, an HTTP status and structured details.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.
    
    All custom exceptions inherit from this.
    
    Attributes:
        code: Error code (e.g., "PRODUCT_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """
    
    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)
    
    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""
    
    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""
    
    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""
    
    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""
    
    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# IMPORT ERRORS
# ===================

class ImportValidationFailedError(ValidationError):
    """Upload still has blocking validation errors."""

    def __init__(self, errors: list[dict]):
        super().__init__(
            code="IMPORT_VALIDATION_FAILED",
            message=f"Upload validation failed with {len(errors)} errors",
            details={"errors": errors}
        )


class NoChangesToImportError(ValidationError):
    """Diff contains no adds, updates or deletes."""

    def __init__(self):
        super().__init__(
            code="IMPORT_NO_CHANGES",
            message="Uploaded file contains no changes to import"
        )


class SnapshotPersistError(AppError):
    """Pre-image could not be captured or stored. Nothing was mutated."""

    def __init__(self, message: str):
        super().__init__(
            code="IMPORT_SNAPSHOT_FAILED",
            message=f"Could not save import snapshot: {message}",
            status_code=500,
            details={"original_error": message}
        )


class ImportExecutionError(AppError):
    """
    Store rejected the atomic apply.

    The snapshot was already persisted, so the caller may roll back
    using import_id.
    """

    def __init__(self, import_id: str, message: str):
        super().__init__(
            code="IMPORT_EXECUTION_FAILED",
            message=f"Import failed: {message}",
            status_code=500,
            details={"import_id": import_id, "original_error": message}
        )
        self.import_id = import_id


# ===================
# ROLLBACK ERRORS
# ===================

class ImportSnapshotNotFoundError(NotFoundError):
    """Snapshot missing or already consumed by a previous rollback."""

    def __init__(self, import_id: str):
        super().__init__(
            resource="Import snapshot",
            identifier=import_id,
            code="IMPORT_SNAPSHOT_NOT_FOUND"
        )


class SequentialRollbackError(ConflictError):
    """Only the newest import may be rolled back."""

    def __init__(self, requested_import_id: str, newest_import_id: str):
        super().__init__(
            code="ROLLBACK_NOT_NEWEST",
            message="Roll back the most recent import first",
            details={
                "requested_import_id": requested_import_id,
                "newest_import_id": newest_import_id
            }
        )


class RollbackConflictError(ConflictError):
    """Parts were edited manually after the import."""

    def __init__(self, import_id: str, conflicting_skus: list[str]):
        super().__init__(
            code="ROLLBACK_CONFLICT",
            message=(
                f"{len(conflicting_skus)} parts were edited manually after this import; "
                "rolling back would discard those edits"
            ),
            details={
                "import_id": import_id,
                "conflict_count": len(conflicting_skus),
                "conflicting_parts": conflicting_skus
            }
        )


class RollbackExecutionError(AppError):
    """Restore itself failed (as opposed to nothing to restore)."""

    def __init__(self, import_id: str, message: str):
        super().__init__(
            code="ROLLBACK_FAILED",
            message=f"Rollback failed: {message}",
            status_code=500,
            details={"import_id": import_id, "original_error": message}
        )


# ===================
# ENGINE ERRORS
# ===================

class CatalogStateError(AppError):
    """Existing catalog state is malformed. Indicates a bug, not bad input."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="CATALOG_STATE_INVALID",
            message=message,
            status_code=500,
            details=details
        )
