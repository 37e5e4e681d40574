"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    DatabaseError,

    # Import
    ImportValidationFailedError,
    NoChangesToImportError,
    SnapshotPersistError,
    ImportExecutionError,

    # Rollback
    ImportSnapshotNotFoundError,
    SequentialRollbackError,
    RollbackConflictError,
    RollbackExecutionError,

    # Engines
    CatalogStateError,
)

__all__ = [
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "DatabaseError",
    "ImportValidationFailedError",
    "NoChangesToImportError",
    "SnapshotPersistError",
    "ImportExecutionError",
    "ImportSnapshotNotFoundError",
    "SequentialRollbackError",
    "RollbackConflictError",
    "RollbackExecutionError",
    "CatalogStateError",
]
