"""
Validation engine for uploaded catalog workbooks.

Pure: reads a ParsedExcelFile and an ExistingCatalogState, returns a
ValidationResult. Never touches the store and never raises for bad
input. Blocking problems go to errors, review items go to warnings.

Warnings are only produced for rows that match an existing record;
a brand-new row has nothing to be compared against. The exception is a
new key that equals a stored one after case and spacing folding (W1,
W8, W9), which usually means the operator edited the key.
"""

import re
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from config import settings
from config.catalog import (
    ALIAS_TYPES,
    ALIASES_SHEET,
    GENERAL_SHEET,
    IMAGE_URL_FIELDS,
    MAX_LENGTHS,
    PARTS_SHEET,
    SPECIFICATIONS_SHRINK_RATIO,
    VEHICLE_APPLICATIONS_SHEET,
    YEAR_MAX_OFFSET,
    YEAR_MIN,
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
from models.validation import (
    IssueSeverity,
    ValidationErrorCode as E,
    ValidationIssue,
    ValidationResult,
    ValidationSummary,
    ValidationWarningCode as W,
)
from utils.brand_columns import parse_brand_cell
from utils.text_utils import fold_key, is_blank, normalize_optional, parse_year

logger = structlog.get_logger(__name__)

_URL_RE = re.compile(r"^https?://\S+$", re.IGNORECASE)

# Statuses allowed on child sheets (no INACTIVE for fitments or aliases)
_CHILD_STATUSES = (WorkflowStatus.ACTIVE, WorkflowStatus.DELETE)

_PART_LENGTH_FIELDS = (
    "acr_sku",
    "part_type",
    "position_type",
    "abs_type",
    "bolt_pattern",
    "drive_type",
    "specifications",
)

# Optional attributes reported with W13 when they change
_PART_ATTRIBUTE_WARNING_FIELDS = ("abs_type", "bolt_pattern", "drive_type")


def spreadsheet_row(index: int) -> int:
    """Data index → spreadsheet row number (row 1 is the header)."""
    return index + 2


class _IssueCollector:
    """Accumulates issues for one validation run."""

    def __init__(self):
        self.errors: list[ValidationIssue] = []
        self.warnings: list[ValidationIssue] = []

    def error(
        self,
        code: E,
        message: str,
        sheet: Optional[str] = None,
        row: Optional[int] = None,
        column: Optional[str] = None,
        value: Any = None,
        expected: Optional[str] = None
    ) -> None:
        self.errors.append(ValidationIssue(
            code=code.value,
            severity=IssueSeverity.ERROR,
            message=message,
            sheet=sheet,
            row=row,
            column=column,
            value=value,
            expected=expected,
        ))

    def warning(
        self,
        code: W,
        message: str,
        sheet: Optional[str] = None,
        row: Optional[int] = None,
        column: Optional[str] = None,
        value: Any = None,
        expected: Optional[str] = None
    ) -> None:
        self.warnings.append(ValidationIssue(
            code=code.value,
            severity=IssueSeverity.WARNING,
            message=message,
            sheet=sheet,
            row=row,
            column=column,
            value=value,
            expected=expected,
        ))

    def result(self) -> ValidationResult:
        errors_by_sheet = Counter(i.sheet or GENERAL_SHEET for i in self.errors)
        warnings_by_sheet = Counter(i.sheet or GENERAL_SHEET for i in self.warnings)
        return ValidationResult(
            valid=not self.errors,
            errors=self.errors,
            warnings=self.warnings,
            summary=ValidationSummary(
                total_errors=len(self.errors),
                total_warnings=len(self.warnings),
                errors_by_sheet=dict(errors_by_sheet),
                warnings_by_sheet=dict(warnings_by_sheet),
            ),
        )


class ValidationEngine:
    """
    Validates uploaded catalog workbooks.

    Args:
        acr_sku_prefix: Prefix every acr_sku must start with
        current_year: Reference year for the upper year bound (defaults to today)
    """

    def __init__(self, acr_sku_prefix: str = "ACR", current_year: Optional[int] = None):
        self.acr_sku_prefix = acr_sku_prefix
        self.current_year = current_year

    @property
    def year_max(self) -> int:
        return (self.current_year or datetime.now(timezone.utc).year) + YEAR_MAX_OFFSET

    # ===================
    # ENTRY POINT
    # ===================

    def validate(
        self,
        parsed_file: ParsedExcelFile,
        existing: ExistingCatalogState
    ) -> ValidationResult:
        """
        Validate a workbook against current catalog state.

        Args:
            parsed_file: Rows from the spreadsheet reader
            existing: Current store contents

        Returns:
            ValidationResult (valid is False when any error exists)

        Raises:
            CatalogStateError: existing is not an ExistingCatalogState
        """
        if not isinstance(existing, ExistingCatalogState):
            raise CatalogStateError(
                "Existing catalog state must be an ExistingCatalogState",
                {"type": type(existing).__name__}
            )

        issues = _IssueCollector()
        parts = parsed_file.parts.data
        vehicles = parsed_file.vehicle_applications.data
        aliases = parsed_file.aliases.data if parsed_file.aliases else []

        if not parts and not vehicles and not aliases:
            issues.error(
                E.REQUIRED_SHEET_MISSING,
                "Workbook is empty: Parts and Vehicle Applications sheets have no rows",
                sheet=GENERAL_SHEET,
                expected=f"Rows in {PARTS_SHEET} or {VEHICLE_APPLICATIONS_SHEET}",
            )
            result = issues.result()
            logger.info("validation_completed", valid=False, errors=1, warnings=0)
            return result

        self._validate_parts(parts, existing, issues)
        self._validate_vehicle_applications(vehicles, parts, existing, issues)
        self._validate_aliases(aliases, existing, issues)

        result = issues.result()
        logger.info(
            "validation_completed",
            file_name=parsed_file.metadata.file_name,
            valid=result.valid,
            errors=result.summary.total_errors,
            warnings=result.summary.total_warnings,
        )
        return result

    # ===================
    # SHARED CHECKS
    # ===================

    def _check_flagged(self, row_obj, sheet: str, row: int, issues: _IssueCollector) -> None:
        if not is_blank(row_obj.errors):
            issues.error(
                E.ROW_FLAGGED_BY_SPREADSHEET,
                f"Row is flagged in the spreadsheet: {row_obj.errors}",
                sheet=sheet,
                row=row,
                column="errors",
                value=row_obj.errors,
                expected="Empty Errors column",
            )

    def _check_required(
        self,
        value: Any,
        column: str,
        sheet: str,
        row: int,
        issues: _IssueCollector
    ) -> bool:
        if is_blank(value):
            issues.error(
                E.EMPTY_REQUIRED_FIELD,
                f"{column} is required",
                sheet=sheet,
                row=row,
                column=column,
            )
            return False
        return True

    def _check_length(
        self,
        value: Any,
        column: str,
        limit_key: str,
        sheet: str,
        row: int,
        issues: _IssueCollector
    ) -> None:
        text = normalize_optional(value)
        limit = MAX_LENGTHS[limit_key]
        if text is not None and len(text) > limit:
            issues.error(
                E.STRING_EXCEEDS_MAX_LENGTH,
                f"{column} exceeds maximum length of {limit} characters ({len(text)})",
                sheet=sheet,
                row=row,
                column=column,
                value=text,
                expected=f"<= {limit} characters",
            )

    def _check_status(
        self,
        row_obj,
        allowed: tuple,
        sheet: str,
        row: int,
        issues: _IssueCollector
    ) -> None:
        if is_blank(row_obj.status):
            return
        if row_obj.workflow_status not in allowed:
            expected = ", ".join(s.value for s in allowed)
            issues.error(
                E.INVALID_ENUM_VALUE,
                f"Invalid status '{row_obj.status}'",
                sheet=sheet,
                row=row,
                column="status",
                value=row_obj.status,
                expected=expected,
            )

    # ===================
    # PARTS
    # ===================

    def _validate_parts(
        self,
        parts: list[PartRow],
        existing: ExistingCatalogState,
        issues: _IssueCollector
    ) -> None:
        first_seen: dict[str, int] = {}
        folded_existing = {fold_key(sku): sku for sku in existing.parts}

        for index, part in enumerate(parts):
            row = spreadsheet_row(index)
            sheet = PARTS_SHEET
            self._check_flagged(part, sheet, row, issues)
            self._check_status(part, tuple(WorkflowStatus), sheet, row, issues)

            sku = normalize_optional(part.acr_sku)
            if self._check_required(sku, "acr_sku", sheet, row, issues):
                if not sku.upper().startswith(self.acr_sku_prefix.upper()):
                    issues.error(
                        E.INVALID_ACR_SKU_FORMAT,
                        f"ACR_SKU must start with '{self.acr_sku_prefix}'",
                        sheet=sheet,
                        row=row,
                        column="acr_sku",
                        value=sku,
                        expected=f"{self.acr_sku_prefix}...",
                    )
                if sku in first_seen:
                    issues.error(
                        E.DUPLICATE_ACR_SKU,
                        f"Duplicate ACR_SKU {sku} (first seen on row {first_seen[sku]})",
                        sheet=sheet,
                        row=row,
                        column="acr_sku",
                        value=sku,
                    )
                else:
                    first_seen[sku] = row

            if not part.is_delete:
                self._check_required(part.part_type, "part_type", sheet, row, issues)

            for column in _PART_LENGTH_FIELDS:
                self._check_length(getattr(part, column), column, column, sheet, row, issues)

            for column in IMAGE_URL_FIELDS:
                url = normalize_optional(getattr(part, column))
                if url is None:
                    continue
                if not _URL_RE.match(url):
                    issues.error(
                        E.INVALID_URL_FORMAT,
                        f"{column} must be an absolute http(s) URL",
                        sheet=sheet,
                        row=row,
                        column=column,
                        value=url,
                        expected="http://... or https://...",
                    )
                else:
                    self._check_length(url, column, "image_url", sheet, row, issues)

            for column, _brand, cell in part.brand_cells():
                tokens = parse_brand_cell(cell)
                for token in tokens.adds + tokens.deletes:
                    self._check_length(token, column, "competitor_sku", sheet, row, issues)

            if sku is None or first_seen.get(sku) != row:
                continue

            record = existing.parts.get(sku)
            if record is not None:
                self._warn_part_changes(part, record, existing, row, issues)
            else:
                # New rows get no change warnings, except when the key is a
                # case or spacing variant of a stored one
                stored = folded_existing.get(fold_key(sku))
                if stored is not None:
                    issues.warning(
                        W.ACR_SKU_CHANGED,
                        f"ACR_SKU '{sku}' differs from stored '{stored}' only by case or "
                        "spacing; it will be imported as a new part",
                        sheet=sheet,
                        row=row,
                        column="acr_sku",
                        value=sku,
                        expected=stored,
                    )

    def _warn_part_changes(
        self,
        part: PartRow,
        record: PartRecord,
        existing: ExistingCatalogState,
        row: int,
        issues: _IssueCollector
    ) -> None:
        sheet = PARTS_SHEET

        if part.is_delete:
            vehicles = len(existing.vehicle_applications_by_part.get(record.id, []))
            refs = len(existing.cross_references_by_part.get(record.id, []))
            issues.warning(
                W.PART_DELETED,
                f"Part {record.acr_sku} will be deleted together with {vehicles} "
                f"vehicle applications and {refs} cross references",
                sheet=sheet,
                row=row,
                column="status",
                value=part.status,
            )
            return

        self._warn_changed(
            W.PART_TYPE_CHANGED, "part_type", part.part_type, record.part_type, row, issues
        )
        self._warn_changed(
            W.POSITION_TYPE_CHANGED, "position_type", part.position_type,
            record.position_type, row, issues
        )
        for column in _PART_ATTRIBUTE_WARNING_FIELDS:
            self._warn_changed(
                W.PART_ATTRIBUTE_CHANGED, column, getattr(part, column),
                getattr(record, column), row, issues
            )

        old_specs = normalize_optional(record.specifications)
        new_specs = normalize_optional(part.specifications)
        if old_specs and new_specs and len(new_specs) < len(old_specs) * SPECIFICATIONS_SHRINK_RATIO:
            reduction = round((1 - len(new_specs) / len(old_specs)) * 100)
            issues.warning(
                W.SPECIFICATIONS_SHORTENED,
                f"Specifications shortened by {reduction}% "
                f"({len(old_specs)} → {len(new_specs)} characters)",
                sheet=sheet,
                row=row,
                column="specifications",
                value=new_specs,
                expected=old_specs,
            )

        self._warn_brand_columns(part, record, existing, row, issues)

    def _warn_changed(
        self,
        code: W,
        column: str,
        new_value: Any,
        old_value: Any,
        row: int,
        issues: _IssueCollector
    ) -> None:
        new = normalize_optional(new_value)
        old = normalize_optional(old_value)
        if new == old:
            return
        issues.warning(
            code,
            f"{column} will change from '{old or ''}' to '{new or ''}'",
            sheet=PARTS_SHEET,
            row=row,
            column=column,
            value=new,
            expected=old,
        )

    def _warn_brand_columns(
        self,
        part: PartRow,
        record: PartRecord,
        existing: ExistingCatalogState,
        row: int,
        issues: _IssueCollector
    ) -> None:
        stored_refs = existing.cross_references_by_part.get(record.id, [])
        stored_keys = {(ref.brand_key, ref.competitor_sku) for ref in stored_refs}
        brands_by_sku: dict[str, set[str]] = {}
        for ref in stored_refs:
            brands_by_sku.setdefault(ref.competitor_sku, set()).add(ref.brand_key)

        for column, brand, cell in part.brand_cells():
            tokens = parse_brand_cell(cell)
            if tokens.is_empty:
                continue

            if tokens.legacy_format:
                issues.warning(
                    W.SPACE_DELIMITED_SKUS,
                    f"{column} uses spaces between SKUs; it will be read as "
                    f"{len(tokens.adds) + len(tokens.deletes)} SKUs. Use ';' instead",
                    sheet=PARTS_SHEET,
                    row=row,
                    column=column,
                    value=cell,
                    expected="SKU1;SKU2",
                )

            for sku in dict.fromkeys(tokens.duplicates):
                issues.warning(
                    W.DUPLICATE_SKU_IN_BRAND,
                    f"{sku} is listed more than once in {column}",
                    sheet=PARTS_SHEET,
                    row=row,
                    column=column,
                    value=sku,
                )

            for sku in tokens.deletes:
                if (brand, sku) in stored_keys:
                    issues.warning(
                        W.CROSS_REFERENCE_DELETED,
                        f"Cross reference {brand} {sku} will be deleted from {record.acr_sku}",
                        sheet=PARTS_SHEET,
                        row=row,
                        column=column,
                        value=sku,
                    )

            for sku in tokens.adds:
                if (brand, sku) in stored_keys:
                    continue
                other_brands = sorted(brands_by_sku.get(sku, set()) - {brand})
                if other_brands:
                    issues.warning(
                        W.COMPETITOR_BRAND_CHANGED,
                        f"{sku} is stored under {', '.join(other_brands)} for "
                        f"{record.acr_sku} and is now listed under {brand}",
                        sheet=PARTS_SHEET,
                        row=row,
                        column=column,
                        value=sku,
                        expected=", ".join(other_brands),
                    )

    # ===================
    # VEHICLE APPLICATIONS
    # ===================

    def _validate_vehicle_applications(
        self,
        vehicles: list[VehicleApplicationRow],
        parts: list[PartRow],
        existing: ExistingCatalogState,
        issues: _IssueCollector
    ) -> None:
        sheet = VEHICLE_APPLICATIONS_SHEET
        file_skus: set[str] = set()
        deleted_skus: set[str] = set()
        for part in parts:
            sku = normalize_optional(part.acr_sku)
            if sku is None:
                continue
            if part.is_delete:
                deleted_skus.add(sku)
            else:
                file_skus.add(sku)

        folded_existing: dict[tuple, tuple] = {}
        for key in existing.vehicle_applications:
            sku, make, model, start_year = key
            folded_existing[(sku, fold_key(make), fold_key(model), start_year)] = key

        first_seen: dict[tuple, int] = {}

        for index, vehicle in enumerate(vehicles):
            row = spreadsheet_row(index)
            self._check_flagged(vehicle, sheet, row, issues)
            self._check_status(vehicle, _CHILD_STATUSES, sheet, row, issues)

            sku = normalize_optional(vehicle.acr_sku)
            has_sku = self._check_required(sku, "acr_sku", sheet, row, issues)
            self._check_required(vehicle.make, "make", sheet, row, issues)
            self._check_required(vehicle.model, "model", sheet, row, issues)
            start_year = self._check_year(vehicle.start_year, "start_year", row, issues)
            end_year = None
            # Delete rows only need the key columns
            if not vehicle.is_delete or not is_blank(vehicle.end_year):
                end_year = self._check_year(vehicle.end_year, "end_year", row, issues)

            if start_year is not None and end_year is not None and end_year < start_year:
                issues.error(
                    E.INVALID_YEAR_RANGE,
                    f"end_year {end_year} is before start_year {start_year}",
                    sheet=sheet,
                    row=row,
                    column="end_year",
                    value=end_year,
                    expected=f">= {start_year}",
                )

            self._check_length(vehicle.make, "make", "make", sheet, row, issues)
            self._check_length(vehicle.model, "model", "model", sheet, row, issues)

            if has_sku:
                resolvable = sku in file_skus or (
                    sku in existing.parts and sku not in deleted_skus
                )
                if not resolvable and not (vehicle.is_delete and sku in deleted_skus):
                    reason = (
                        "is marked for deletion in this file"
                        if sku in deleted_skus
                        else "does not exist in the Parts sheet or the catalog"
                    )
                    issues.error(
                        E.ORPHANED_FOREIGN_KEY,
                        f"Part {sku} {reason}",
                        sheet=sheet,
                        row=row,
                        column="acr_sku",
                        value=sku,
                    )

            key = vehicle_key(sku, vehicle.make, vehicle.model, start_year)
            if key is None:
                continue
            if key in first_seen:
                issues.error(
                    E.DUPLICATE_COMPOSITE_KEY,
                    f"Duplicate vehicle application {self._format_vehicle(key)} "
                    f"(first seen on row {first_seen[key]})",
                    sheet=sheet,
                    row=row,
                    value=self._format_vehicle(key),
                )
                continue
            first_seen[key] = row

            record = existing.vehicle_applications.get(key)
            if record is not None:
                if vehicle.is_delete:
                    issues.warning(
                        W.VEHICLE_APPLICATION_DELETED,
                        f"Vehicle application {self._format_vehicle(key)} will be deleted",
                        sheet=sheet,
                        row=row,
                        column="status",
                        value=vehicle.status,
                    )
                elif end_year is not None and end_year < record.end_year:
                    issues.warning(
                        W.YEAR_RANGE_NARROWED,
                        f"Year range narrowed: {record.start_year}-{record.end_year} → "
                        f"{record.start_year}-{end_year}",
                        sheet=sheet,
                        row=row,
                        column="end_year",
                        value=end_year,
                        expected=str(record.end_year),
                    )
                continue

            # Unmatched key: warn only when it folds onto a stored fitment
            folded = folded_existing.get((key[0], fold_key(key[1]), fold_key(key[2]), key[3]))
            if folded is not None:
                if folded[1] != key[1]:
                    issues.warning(
                        W.VEHICLE_MAKE_CHANGED,
                        f"make '{key[1]}' differs from stored '{folded[1]}' only by case "
                        "or spacing; it will be imported as a new vehicle application",
                        sheet=sheet,
                        row=row,
                        column="make",
                        value=key[1],
                        expected=folded[1],
                    )
                if folded[2] != key[2]:
                    issues.warning(
                        W.VEHICLE_MODEL_CHANGED,
                        f"model '{key[2]}' differs from stored '{folded[2]}' only by case "
                        "or spacing; it will be imported as a new vehicle application",
                        sheet=sheet,
                        row=row,
                        column="model",
                        value=key[2],
                        expected=folded[2],
                    )

    def _check_year(
        self,
        value: Any,
        column: str,
        row: int,
        issues: _IssueCollector
    ) -> Optional[int]:
        sheet = VEHICLE_APPLICATIONS_SHEET
        if not self._check_required(value, column, sheet, row, issues):
            return None

        year = parse_year(value)
        if year is None:
            issues.error(
                E.INVALID_NUMBER_FORMAT,
                f"{column} must be an integer",
                sheet=sheet,
                row=row,
                column=column,
                value=value,
                expected="Whole number year",
            )
            return None

        if year < YEAR_MIN or year > self.year_max:
            issues.error(
                E.YEAR_OUT_OF_RANGE,
                f"{column} {year} is outside {YEAR_MIN}-{self.year_max}",
                sheet=sheet,
                row=row,
                column=column,
                value=year,
                expected=f"{YEAR_MIN}-{self.year_max}",
            )
            return None
        return year

    @staticmethod
    def _format_vehicle(key: tuple) -> str:
        sku, make, model, start_year = key
        return f"{sku} {make} {model} {start_year}"

    # ===================
    # ALIASES
    # ===================

    def _validate_aliases(
        self,
        aliases: list[AliasRow],
        existing: ExistingCatalogState,
        issues: _IssueCollector
    ) -> None:
        sheet = ALIASES_SHEET
        first_seen: dict[tuple, int] = {}

        for index, alias in enumerate(aliases):
            row = spreadsheet_row(index)
            self._check_flagged(alias, sheet, row, issues)
            self._check_status(alias, _CHILD_STATUSES, sheet, row, issues)

            self._check_required(alias.alias, "alias", sheet, row, issues)
            self._check_required(alias.canonical_name, "canonical_name", sheet, row, issues)
            alias_type = normalize_optional(alias.alias_type)
            if not alias.is_delete:
                self._check_required(alias_type, "alias_type", sheet, row, issues)
            if alias_type is not None and alias_type not in ALIAS_TYPES:
                issues.error(
                    E.INVALID_ENUM_VALUE,
                    f"Invalid alias_type '{alias_type}'",
                    sheet=sheet,
                    row=row,
                    column="alias_type",
                    value=alias_type,
                    expected=", ".join(ALIAS_TYPES),
                )

            self._check_length(alias.alias, "alias", "alias", sheet, row, issues)
            self._check_length(
                alias.canonical_name, "canonical_name", "canonical_name", sheet, row, issues
            )
            self._check_length(alias_type, "alias_type", "alias_type", sheet, row, issues)

            key = alias_key(alias.alias, alias.canonical_name)
            if key is None:
                continue
            if key in first_seen:
                issues.error(
                    E.DUPLICATE_COMPOSITE_KEY,
                    f"Duplicate alias {key[0]} → {key[1]} (first seen on row {first_seen[key]})",
                    sheet=sheet,
                    row=row,
                    value=f"{key[0]} → {key[1]}",
                )
                continue
            first_seen[key] = row

            if alias.is_delete and key in existing.aliases:
                issues.warning(
                    W.ALIAS_DELETED,
                    f"Alias {key[0]} → {key[1]} will be deleted",
                    sheet=sheet,
                    row=row,
                    column="status",
                    value=alias.status,
                )


# Singleton instance for convenience
_validation_engine: Optional[ValidationEngine] = None


def get_validation_engine() -> ValidationEngine:
    """Get or create ValidationEngine configured from settings."""
    global _validation_engine
    if _validation_engine is None:
        _validation_engine = ValidationEngine(acr_sku_prefix=settings.acr_sku_prefix)
    return _validation_engine
