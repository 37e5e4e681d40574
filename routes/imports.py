"""
Catalog import API routes.

Workflow: validate → preview (validate + diff) → execute → optional rollback.
The request body is the ParsedExcelFile produced by the spreadsheet reader.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
import structlog

from exceptions import AppError, ImportValidationFailedError, NoChangesToImportError
from models.catalog import ParsedExcelFile
from models.diff import ImportPreview
from models.import_history import (
    ExecuteImportRequest,
    ImportMetadata,
    ImportResult,
    ImportSnapshotSummary,
    RollbackRequest,
    RollbackResult,
)
from models.validation import ValidationResult
from services.catalog_state_service import CatalogStateService
from services.catalog_store import get_catalog_store
from services.diff_engine import get_diff_engine
from services.import_service import ImportService
from services.rollback_service import RollbackService
from services.validation_engine import get_validation_engine

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# ROUTES
# ===================

@router.post("/validate", response_model=ValidationResult)
async def validate_upload(parsed_file: ParsedExcelFile):
    """
    Validate an uploaded workbook against the current catalog.

    Never mutates anything. Safe to call on every edit.
    """
    try:
        existing = CatalogStateService(get_catalog_store()).load()
        return get_validation_engine().validate(parsed_file, existing)
    except Exception as e:
        return handle_error(e)


@router.post("/preview", response_model=ImportPreview)
async def preview_import(parsed_file: ParsedExcelFile):
    """
    Validate and, when valid, compute the change set.

    The diff is omitted while blocking errors remain.
    """
    try:
        existing = CatalogStateService(get_catalog_store()).load()
        validation = get_validation_engine().validate(parsed_file, existing)
        if not validation.valid:
            return ImportPreview(validation=validation)

        diff = get_diff_engine().generate_diff(parsed_file, existing)
        return ImportPreview(validation=validation, diff=diff)
    except Exception as e:
        return handle_error(e)


@router.post("/execute", response_model=ImportResult, status_code=201)
async def execute_import(request: ExecuteImportRequest):
    """
    Validate, diff and commit an upload.

    Validation and diff are recomputed from a fresh store read so the
    commit never acts on a stale preview.
    """
    try:
        store = get_catalog_store()
        parsed_file = request.file
        existing = CatalogStateService(store).load()

        validation = get_validation_engine().validate(parsed_file, existing)
        if not validation.valid:
            raise ImportValidationFailedError(
                [issue.model_dump(mode="json") for issue in validation.errors]
            )

        diff = get_diff_engine().generate_diff(parsed_file, existing)
        if not diff.has_changes:
            raise NoChangesToImportError()

        metadata = ImportMetadata(
            file_name=parsed_file.metadata.file_name,
            file_size=parsed_file.metadata.file_size,
            imported_by=request.imported_by,
        )
        return ImportService(store).execute_import(parsed_file, diff, metadata)
    except Exception as e:
        return handle_error(e)


@router.get("/history", response_model=list[ImportSnapshotSummary])
async def list_import_history(
    limit: int = Query(3, ge=1, le=50, description="Number of imports to return")
):
    """Most recent imports that can be rolled back, newest first."""
    try:
        return RollbackService(get_catalog_store()).list_available_snapshots(limit)
    except Exception as e:
        return handle_error(e)


@router.post("/rollback", response_model=RollbackResult)
async def rollback_import(request: RollbackRequest):
    """
    Undo an import.

    Only the newest import can be rolled back, and only once.
    """
    try:
        return RollbackService(get_catalog_store()).rollback_to_import(request.import_id)
    except Exception as e:
        return handle_error(e)
