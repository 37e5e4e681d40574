"""
Loads current catalog state for validation and diffing.
"""

import structlog

from models.catalog import ExistingCatalogState
from services.catalog_store import (
    ALIASES_TABLE,
    CROSS_REFERENCES_TABLE,
    PARTS_TABLE,
    VEHICLE_APPLICATIONS_TABLE,
    CatalogStore,
)

logger = structlog.get_logger(__name__)


class CatalogStateService:
    """Reads every catalog table and indexes it by business key."""

    def __init__(self, store: CatalogStore):
        self.store = store

    def load(self) -> ExistingCatalogState:
        """
        Build ExistingCatalogState from the store.

        Returns:
            ExistingCatalogState

        Raises:
            DatabaseError: If a table cannot be read
            CatalogStateError: If stored rows break key uniqueness
        """
        parts = self.store.fetch_all(PARTS_TABLE)
        vehicles = self.store.fetch_all(VEHICLE_APPLICATIONS_TABLE)
        cross_refs = self.store.fetch_all(CROSS_REFERENCES_TABLE)
        aliases = self.store.fetch_all(ALIASES_TABLE)

        state = ExistingCatalogState.from_rows(parts, vehicles, cross_refs, aliases)

        logger.info(
            "catalog_state_loaded",
            parts=len(state.parts),
            vehicle_applications=len(state.vehicle_applications),
            cross_references=len(state.cross_references),
            aliases=len(state.aliases),
        )
        return state
