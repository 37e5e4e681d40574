"""
Diff engine: turns an uploaded workbook into a change set.

Rows are matched to stored records by business key, never by surrogate
id. Nothing is ever deleted because it is missing from the file; only
rows with status DELETE (or SKUs carrying the [DELETE] marker in a brand
column) produce DELETE items.

The diff runs in two phases. Phase 1 resolves every Part identity and
builds acr_sku → id, assigning ids to new parts. Phase 2 uses that map
for vehicle applications and cross references.
"""

from typing import Callable, Optional
from uuid import uuid4

import structlog

from config.catalog import (
    ALIASES_SHEET,
    CROSS_REFERENCES_SHEET,
    PART_ATTRIBUTE_FIELDS,
    PARTS_SHEET,
    VEHICLE_APPLICATIONS_SHEET,
)
from exceptions import CatalogStateError
from models.catalog import (
    AliasRow,
    ExistingCatalogState,
    ParsedExcelFile,
    PartRecord,
    PartRow,
    VehicleApplicationRow,
    WorkflowStatus,
    alias_key,
    vehicle_key,
)
from models.diff import DiffItem, DiffOperation, DiffResult, DiffSummary, SheetDiff
from services.validation_engine import spreadsheet_row
from utils.brand_columns import parse_brand_cell
from utils.text_utils import normalize_optional

logger = structlog.get_logger(__name__)


class _PartResolution:
    """Output of phase 1."""

    def __init__(self):
        self.sku_to_id: dict[str, str] = {}
        self.deleted_skus: set[str] = set()
        self.deleted_part_ids: set[str] = set()
        # First occurrence of each existing, non-deleted part in the file
        self.matched_rows: list[tuple[int, PartRow, PartRecord]] = []


class DiffEngine:
    """
    Computes the change set for an upload.

    Args:
        id_factory: Produces surrogate ids for added rows (uuid4 by default)
    """

    def __init__(self, id_factory: Optional[Callable[[], str]] = None):
        self.id_factory = id_factory or (lambda: str(uuid4()))

    def generate_diff(
        self,
        parsed_file: ParsedExcelFile,
        existing: ExistingCatalogState
    ) -> DiffResult:
        """
        Diff a validated workbook against current catalog state.

        Args:
            parsed_file: Rows from the spreadsheet reader (already validated)
            existing: Current store contents

        Returns:
            DiffResult with per-sheet items and summaries

        Raises:
            CatalogStateError: existing is not an ExistingCatalogState
        """
        if not isinstance(existing, ExistingCatalogState):
            raise CatalogStateError(
                "Existing catalog state must be an ExistingCatalogState",
                {"type": type(existing).__name__}
            )

        parts_diff = SheetDiff(sheet=PARTS_SHEET)
        resolution = self._diff_parts(parsed_file.parts.data, existing, parts_diff)

        vehicles_diff = SheetDiff(sheet=VEHICLE_APPLICATIONS_SHEET)
        self._diff_vehicle_applications(
            parsed_file.vehicle_applications.data, existing, resolution, vehicles_diff
        )

        aliases_diff = SheetDiff(sheet=ALIASES_SHEET)
        aliases = parsed_file.aliases.data if parsed_file.aliases else []
        self._diff_aliases(aliases, existing, aliases_diff)

        cross_refs_diff = SheetDiff(sheet=CROSS_REFERENCES_SHEET)
        self._diff_cross_references(existing, resolution, cross_refs_diff)

        result = DiffResult(
            parts=parts_diff,
            vehicle_applications=vehicles_diff,
            aliases=aliases_diff,
            cross_references=cross_refs_diff,
        )
        result.summary = self._summarize(result)

        logger.info(
            "diff_generated",
            file_name=parsed_file.metadata.file_name,
            adds=result.summary.total_adds,
            updates=result.summary.total_updates,
            deletes=result.summary.total_deletes,
            unchanged=result.summary.total_unchanged,
        )
        return result

    # ===================
    # PHASE 1: PARTS
    # ===================

    def _diff_parts(
        self,
        rows: list[PartRow],
        existing: ExistingCatalogState,
        diff: SheetDiff
    ) -> _PartResolution:
        resolution = _PartResolution()
        resolution.sku_to_id = {sku: record.id for sku, record in existing.parts.items()}
        seen: set[str] = set()

        for index, row in enumerate(rows):
            sku = normalize_optional(row.acr_sku)
            if sku is None or sku in seen:
                continue
            seen.add(sku)
            row_number = spreadsheet_row(index)
            record = existing.parts.get(sku)

            if row.is_delete:
                # Deleting something that does not exist is a no-op
                if record is not None:
                    resolution.deleted_skus.add(sku)
                    resolution.deleted_part_ids.add(record.id)
                    diff.add(DiffItem(
                        operation=DiffOperation.DELETE,
                        key=sku,
                        row=row_number,
                        before=record.to_payload(),
                    ))
                continue

            if record is None:
                part_id = self.id_factory()
                resolution.sku_to_id[sku] = part_id
                diff.add(DiffItem(
                    operation=DiffOperation.ADD,
                    key=sku,
                    row=row_number,
                    after=self._new_part_payload(part_id, sku, row),
                ))
                continue

            resolution.matched_rows.append((row_number, row, record))
            before = record.to_payload()
            after = dict(before)
            changes = []
            for field in PART_ATTRIBUTE_FIELDS:
                new_value = normalize_optional(getattr(row, field))
                # A blank cell clears the stored value
                if new_value != normalize_optional(before[field]):
                    after[field] = new_value
                    changes.append(field)
            if row.workflow_status is not None and row.workflow_status != record.workflow_status:
                after["workflow_status"] = row.workflow_status.value
                changes.append("workflow_status")

            diff.add(DiffItem(
                operation=DiffOperation.UPDATE if changes else DiffOperation.UNCHANGED,
                key=sku,
                row=row_number,
                before=before,
                after=after,
                changes=changes,
            ))

        for sku, record in existing.parts.items():
            if sku not in seen:
                payload = record.to_payload()
                diff.add(DiffItem(
                    operation=DiffOperation.UNCHANGED,
                    key=sku,
                    before=payload,
                    after=payload,
                ))

        diff.summarize()
        return resolution

    @staticmethod
    def _new_part_payload(part_id: str, sku: str, row: PartRow) -> dict:
        payload = {"id": part_id, "acr_sku": sku}
        for field in PART_ATTRIBUTE_FIELDS:
            payload[field] = normalize_optional(getattr(row, field))
        status = row.workflow_status or WorkflowStatus.ACTIVE
        payload["workflow_status"] = status.value
        return payload

    # ===================
    # PHASE 2: VEHICLE APPLICATIONS
    # ===================

    def _diff_vehicle_applications(
        self,
        rows: list[VehicleApplicationRow],
        existing: ExistingCatalogState,
        resolution: _PartResolution,
        diff: SheetDiff
    ) -> None:
        seen: set[tuple] = set()

        for index, row in enumerate(rows):
            key = vehicle_key(row.acr_sku, row.make, row.model, row.start_year)
            if key is None or key in seen:
                continue
            seen.add(key)
            row_number = spreadsheet_row(index)
            sku, make, model, start_year = key
            display = f"{sku} / {make} / {model} / {start_year}"
            record = existing.vehicle_applications.get(key)

            if row.is_delete:
                if record is not None:
                    diff.add(DiffItem(
                        operation=DiffOperation.DELETE,
                        key=display,
                        row=row_number,
                        before=record.to_payload(),
                    ))
                continue

            part_id = resolution.sku_to_id.get(sku)
            if part_id is None or sku in resolution.deleted_skus:
                # Orphans are blocked by validation
                continue

            end_year = row.end_year_value
            if record is None:
                diff.add(DiffItem(
                    operation=DiffOperation.ADD,
                    key=display,
                    row=row_number,
                    after={
                        "id": self.id_factory(),
                        "part_id": part_id,
                        "make": make,
                        "model": model,
                        "start_year": start_year,
                        "end_year": end_year,
                    },
                ))
                continue

            before = record.to_payload()
            after = dict(before)
            changes = []
            if end_year is not None and end_year != record.end_year:
                after["end_year"] = end_year
                changes.append("end_year")
            diff.add(DiffItem(
                operation=DiffOperation.UPDATE if changes else DiffOperation.UNCHANGED,
                key=display,
                row=row_number,
                before=before,
                after=after,
                changes=changes,
            ))

        for key, record in existing.vehicle_applications.items():
            if key not in seen:
                payload = record.to_payload()
                diff.add(DiffItem(
                    operation=DiffOperation.UNCHANGED,
                    key=" / ".join(str(k) for k in key),
                    before=payload,
                    after=payload,
                ))

        diff.summarize()

    # ===================
    # PHASE 2: ALIASES
    # ===================

    def _diff_aliases(
        self,
        rows: list[AliasRow],
        existing: ExistingCatalogState,
        diff: SheetDiff
    ) -> None:
        seen: set[tuple] = set()

        for index, row in enumerate(rows):
            key = alias_key(row.alias, row.canonical_name)
            if key is None or key in seen:
                continue
            seen.add(key)
            row_number = spreadsheet_row(index)
            display = f"{key[0]} → {key[1]}"
            record = existing.aliases.get(key)
            alias_type = normalize_optional(row.alias_type)

            if row.is_delete:
                if record is not None:
                    diff.add(DiffItem(
                        operation=DiffOperation.DELETE,
                        key=display,
                        row=row_number,
                        before=record.to_payload(),
                    ))
                continue

            if record is None:
                diff.add(DiffItem(
                    operation=DiffOperation.ADD,
                    key=display,
                    row=row_number,
                    after={
                        "id": self.id_factory(),
                        "alias": key[0],
                        "canonical_name": key[1],
                        "alias_type": alias_type,
                    },
                ))
                continue

            before = record.to_payload()
            after = dict(before)
            changes = []
            if alias_type is not None and alias_type != record.alias_type:
                after["alias_type"] = alias_type
                changes.append("alias_type")
            diff.add(DiffItem(
                operation=DiffOperation.UPDATE if changes else DiffOperation.UNCHANGED,
                key=display,
                row=row_number,
                before=before,
                after=after,
                changes=changes,
            ))

        for key, record in existing.aliases.items():
            if key not in seen:
                payload = record.to_payload()
                diff.add(DiffItem(
                    operation=DiffOperation.UNCHANGED,
                    key=f"{key[0]} → {key[1]}",
                    before=payload,
                    after=payload,
                ))

        diff.summarize()

    # ===================
    # PHASE 2: CROSS REFERENCES
    # ===================

    def _diff_cross_references(
        self,
        existing: ExistingCatalogState,
        resolution: _PartResolution,
        diff: SheetDiff
    ) -> None:
        deleted_ids: set[str] = set()

        # New parts are skipped: their cross references need a stored part id,
        # so they are picked up on the next upload.
        for row_number, row, record in resolution.matched_rows:
            stored = {
                (ref.brand_key, ref.competitor_sku): ref
                for ref in existing.cross_references_by_part.get(record.id, [])
            }
            pending: set[tuple[str, str]] = set()

            for _column, brand, cell in row.brand_cells():
                tokens = parse_brand_cell(cell)

                for sku in tokens.deletes:
                    ref = stored.get((brand, sku))
                    if ref is None or ref.id in deleted_ids:
                        continue
                    deleted_ids.add(ref.id)
                    diff.add(DiffItem(
                        operation=DiffOperation.DELETE,
                        key=f"{record.acr_sku} / {brand} / {sku}",
                        row=row_number,
                        before=ref.to_payload(),
                    ))

                for sku in tokens.adds:
                    if (brand, sku) in stored or (brand, sku) in pending:
                        continue
                    pending.add((brand, sku))
                    diff.add(DiffItem(
                        operation=DiffOperation.ADD,
                        key=f"{record.acr_sku} / {brand} / {sku}",
                        row=row_number,
                        after={
                            "id": self.id_factory(),
                            "acr_part_id": record.id,
                            "competitor_brand": brand,
                            "competitor_sku": sku,
                        },
                    ))

        for ref in existing.cross_references.values():
            if ref.id in deleted_ids:
                continue
            part = existing.parts_by_id.get(ref.acr_part_id)
            payload = ref.to_payload()
            diff.add(DiffItem(
                operation=DiffOperation.UNCHANGED,
                key=f"{part.acr_sku if part else ref.acr_part_id} / {ref.brand_key} / {ref.competitor_sku}",
                before=payload,
                after=payload,
            ))

        diff.summarize()

    # ===================
    # SUMMARY
    # ===================

    @staticmethod
    def _summarize(result: DiffResult) -> DiffSummary:
        summary = DiffSummary()
        for sheet in result.sheets:
            sheet_summary = sheet.summary
            summary.total_adds += sheet_summary.total_adds
            summary.total_updates += sheet_summary.total_updates
            summary.total_deletes += sheet_summary.total_deletes
            summary.total_unchanged += sheet_summary.total_unchanged
            summary.total_changes += sheet_summary.total_changes
            summary.changes_by_sheet[sheet.sheet] = sheet_summary.total_changes
        return summary


# Singleton instance for convenience
_diff_engine: Optional[DiffEngine] = None


def get_diff_engine() -> DiffEngine:
    """Get or create DiffEngine instance."""
    global _diff_engine
    if _diff_engine is None:
        _diff_engine = DiffEngine()
    return _diff_engine
