"""
Catalog export: current store contents as a ParsedExcelFile.

This is the workbook operators download, edit and upload again. Brand
columns are rebuilt from cross references, statuses use the spreadsheet
labels. Re-uploading an untouched export produces an empty diff.
"""

from datetime import datetime, timezone

import structlog

from config.catalog import BRAND_TO_COLUMN
from models.catalog import (
    AliasRow,
    AliasesSheet,
    ExistingCatalogState,
    FileMetadata,
    ParsedExcelFile,
    PartRow,
    PartsSheet,
    VehicleApplicationRow,
    VehicleApplicationsSheet,
    WorkflowStatus,
    status_label,
)
from services.catalog_state_service import CatalogStateService
from services.catalog_store import CatalogStore
from utils.brand_columns import format_brand_cell

logger = structlog.get_logger(__name__)


class CatalogExportService:
    """Builds the round-trip workbook from the store."""

    def __init__(self, store: CatalogStore):
        self.store = store

    def export(self) -> ParsedExcelFile:
        """Read the store and render it as workbook rows."""
        state = CatalogStateService(self.store).load()
        return self.build_workbook(state)

    def build_workbook(self, state: ExistingCatalogState) -> ParsedExcelFile:
        """
        Render an ExistingCatalogState as workbook rows.

        Cross references whose brand has no column are left out; they
        stay untouched on re-upload.
        """
        skipped = 0
        part_rows = []
        for sku in sorted(state.parts):
            record = state.parts[sku]
            brand_skus: dict[str, list[str]] = {}
            for ref in state.cross_references_by_part.get(record.id, []):
                column = BRAND_TO_COLUMN.get(ref.brand_key)
                if column is None:
                    skipped += 1
                    continue
                brand_skus.setdefault(column, []).append(ref.competitor_sku)

            part_rows.append(PartRow(
                acr_sku=record.acr_sku,
                status=status_label(record.workflow_status),
                part_type=record.part_type,
                position_type=record.position_type,
                abs_type=record.abs_type,
                bolt_pattern=record.bolt_pattern,
                drive_type=record.drive_type,
                specifications=record.specifications,
                **{column: format_brand_cell(skus) for column, skus in brand_skus.items()},
            ))

        vehicle_rows = [
            VehicleApplicationRow(
                acr_sku=record.acr_sku,
                status=status_label(WorkflowStatus.ACTIVE),
                make=record.make,
                model=record.model,
                start_year=record.start_year,
                end_year=record.end_year,
            )
            for _key, record in sorted(state.vehicle_applications.items())
        ]

        alias_rows = [
            AliasRow(
                alias=record.alias,
                canonical_name=record.canonical_name,
                alias_type=record.alias_type,
                status=status_label(WorkflowStatus.ACTIVE),
            )
            for _key, record in sorted(state.aliases.items())
        ]

        now = datetime.now(timezone.utc)
        workbook = ParsedExcelFile(
            parts=PartsSheet(data=part_rows, row_count=len(part_rows)),
            vehicle_applications=VehicleApplicationsSheet(
                data=vehicle_rows, row_count=len(vehicle_rows)
            ),
            aliases=AliasesSheet(data=alias_rows, row_count=len(alias_rows)),
            metadata=FileMetadata(
                uploaded_at=now,
                file_name=f"acr_catalog_{now:%Y%m%d_%H%M%S}.xlsx",
                file_size=0,
            ),
        )

        logger.info(
            "catalog_exported",
            parts=len(part_rows),
            vehicle_applications=len(vehicle_rows),
            aliases=len(alias_rows),
            skipped_cross_references=skipped,
        )
        return workbook
