"""
Business logic services.

Validation and diffing are pure; import and rollback are the only
services that write to the store.
"""

from services.validation_engine import ValidationEngine, get_validation_engine
from services.diff_engine import DiffEngine, get_diff_engine
from services.catalog_store import CatalogStore, SupabaseCatalogStore, get_catalog_store
from services.catalog_state_service import CatalogStateService
from services.catalog_export_service import CatalogExportService
from services.import_service import ImportService
from services.rollback_service import RollbackService
