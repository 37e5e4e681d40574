"""
Catalog store: the persistence boundary for imports and rollbacks.

CatalogStore is the interface the import and rollback services depend
on. SupabaseCatalogStore implements it with PostgREST selects and two
SECURITY DEFINER functions (see supabase/migrations) that apply an
import batch and restore a snapshot inside one transaction each.
"""

from typing import Any, Optional, Protocol

import structlog
from postgrest.exceptions import APIError
from supabase import Client

from config import get_admin_client, get_supabase_client, settings
from exceptions import DatabaseError, ImportSnapshotNotFoundError
from models.import_history import ImportBatch, SnapshotData

logger = structlog.get_logger(__name__)

PARTS_TABLE = "parts"
VEHICLE_APPLICATIONS_TABLE = "vehicle_applications"
CROSS_REFERENCES_TABLE = "cross_references"
ALIASES_TABLE = "vehicle_aliases"
IMPORT_HISTORY_TABLE = "import_history"

# SQLSTATE raised by restore_import_snapshot when the history row is gone
SNAPSHOT_NOT_FOUND_SQLSTATE = "P0002"

CATALOG_TABLES = (
    PARTS_TABLE,
    VEHICLE_APPLICATIONS_TABLE,
    CROSS_REFERENCES_TABLE,
    ALIASES_TABLE,
)

_HISTORY_SUMMARY_COLUMNS = (
    "id, imported_by, file_name, file_size_bytes, rows_imported, import_summary, created_at"
)


class CatalogStore(Protocol):
    """Operations the import pipeline needs from the store."""

    def fetch_all(self, table: str) -> list[dict[str, Any]]:
        """Every row of a catalog table."""
        ...

    def apply_import(self, batch: ImportBatch) -> None:
        """Apply deletes, adds and updates as one atomic unit."""
        ...

    def restore_snapshot(self, import_id: str, snapshot: SnapshotData) -> None:
        """
        Replace catalog tables with the snapshot and delete the history row, atomically.

        Raises ImportSnapshotNotFoundError when the history row is already gone.
        """
        ...

    def insert_import_history(self, row: dict[str, Any]) -> dict[str, Any]:
        ...

    def get_import_history(self, import_id: str) -> Optional[dict[str, Any]]:
        ...

    def list_import_history(self, limit: int) -> list[dict[str, Any]]:
        """Newest first, without snapshot payloads."""
        ...


class SupabaseCatalogStore:
    """
    CatalogStore backed by Supabase.

    Reads use the regular client. The two RPCs use the service-role
    client when one is configured.
    """

    def __init__(
        self,
        client: Optional[Client] = None,
        admin_client: Optional[Client] = None,
        page_size: Optional[int] = None
    ):
        self.db = client or get_supabase_client()
        self.admin = admin_client or get_admin_client() or self.db
        self.page_size = page_size or settings.catalog_page_size

    # ===================
    # READ OPERATIONS
    # ===================

    def fetch_all(self, table: str) -> list[dict[str, Any]]:
        """
        Read a whole table, page by page.

        PostgREST caps responses at 1000 rows, so tables are read in
        ranges ordered by id until a short page comes back.
        """
        rows: list[dict[str, Any]] = []
        offset = 0
        try:
            while True:
                result = (
                    self.db.table(table)
                    .select("*")
                    .order("id")
                    .range(offset, offset + self.page_size - 1)
                    .execute()
                )
                page = result.data or []
                rows.extend(page)
                if len(page) < self.page_size:
                    break
                offset += self.page_size
        except Exception as e:
            logger.error("fetch_table_failed", table=table, error=str(e))
            raise DatabaseError("select", str(e), {"table": table}) from e

        logger.debug("table_fetched", table=table, count=len(rows))
        return rows

    # ===================
    # ATOMIC OPERATIONS
    # ===================

    def apply_import(self, batch: ImportBatch) -> None:
        logger.info("atomic_import_rpc", operations=batch.operation_count)
        try:
            self.admin.rpc("execute_atomic_import", batch.model_dump()).execute()
        except Exception as e:
            logger.error("atomic_import_rpc_failed", error=str(e))
            raise DatabaseError("import", str(e)) from e

    def restore_snapshot(self, import_id: str, snapshot: SnapshotData) -> None:
        params = {
            "p_import_id": import_id,
            "p_parts": snapshot.parts,
            "p_vehicle_applications": snapshot.vehicle_applications,
            "p_cross_references": snapshot.cross_references,
            "p_aliases": snapshot.aliases,
        }
        logger.info("restore_snapshot_rpc", import_id=import_id, **snapshot.row_counts())
        try:
            self.admin.rpc("restore_import_snapshot", params).execute()
        except Exception as e:
            if isinstance(e, APIError) and e.code == SNAPSHOT_NOT_FOUND_SQLSTATE:
                logger.warning("restore_snapshot_missing", import_id=import_id)
                raise ImportSnapshotNotFoundError(import_id) from e
            logger.error("restore_snapshot_rpc_failed", import_id=import_id, error=str(e))
            raise DatabaseError("restore", str(e), {"import_id": import_id}) from e

    # ===================
    # IMPORT HISTORY
    # ===================

    def insert_import_history(self, row: dict[str, Any]) -> dict[str, Any]:
        try:
            result = self.admin.table(IMPORT_HISTORY_TABLE).insert(row).execute()
        except Exception as e:
            logger.error("insert_import_history_failed", error=str(e))
            raise DatabaseError("insert", str(e), {"table": IMPORT_HISTORY_TABLE}) from e

        if not result.data:
            raise DatabaseError("insert", "No data returned", {"table": IMPORT_HISTORY_TABLE})
        return result.data[0]

    def get_import_history(self, import_id: str) -> Optional[dict[str, Any]]:
        try:
            result = (
                self.db.table(IMPORT_HISTORY_TABLE)
                .select("*")
                .eq("id", import_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("get_import_history_failed", import_id=import_id, error=str(e))
            raise DatabaseError("select", str(e), {"table": IMPORT_HISTORY_TABLE}) from e

        return result.data[0] if result.data else None

    def list_import_history(self, limit: int) -> list[dict[str, Any]]:
        try:
            result = (
                self.db.table(IMPORT_HISTORY_TABLE)
                .select(_HISTORY_SUMMARY_COLUMNS)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            logger.error("list_import_history_failed", error=str(e))
            raise DatabaseError("select", str(e), {"table": IMPORT_HISTORY_TABLE}) from e

        return result.data or []


# Singleton instance for convenience
_catalog_store: Optional[SupabaseCatalogStore] = None


def get_catalog_store() -> CatalogStore:
    """Get or create the Supabase-backed store."""
    global _catalog_store
    if _catalog_store is None:
        _catalog_store = SupabaseCatalogStore()
    return _catalog_store
