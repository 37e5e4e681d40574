"""
Catalog export endpoint.

Returns the current catalog as workbook rows for the spreadsheet writer.
"""

import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from exceptions import AppError
from models.catalog import ParsedExcelFile
from services.catalog_export_service import CatalogExportService
from services.catalog_store import get_catalog_store

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/export", tags=["Export"])


@router.get("", response_model=ParsedExcelFile)
async def export_catalog():
    """Current catalog in the same shape the import endpoints accept."""
    try:
        return CatalogExportService(get_catalog_store()).export()
    except AppError as e:
        return JSONResponse(status_code=e.status_code, content=e.to_dict())
    except Exception as e:
        logger.error("export_failed", error=str(e), error_type=type(e).__name__)
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred"
                }
            }
        )
