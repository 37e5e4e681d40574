"""
Validation result schemas.

Errors block an import; warnings only need a human to look at them.
Every issue carries a stable code plus sheet/row/column so the UI can
highlight the offending cell.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class IssueSeverity(str, Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"


class ValidationErrorCode(str, Enum):
    """Blocking issues."""
    DUPLICATE_ACR_SKU = "E2_DUPLICATE_ACR_SKU"
    EMPTY_REQUIRED_FIELD = "E3_EMPTY_REQUIRED_FIELD"
    ORPHANED_FOREIGN_KEY = "E5_ORPHANED_FOREIGN_KEY"
    INVALID_YEAR_RANGE = "E6_INVALID_YEAR_RANGE"
    STRING_EXCEEDS_MAX_LENGTH = "E7_STRING_EXCEEDS_MAX_LENGTH"
    YEAR_OUT_OF_RANGE = "E8_YEAR_OUT_OF_RANGE"
    INVALID_NUMBER_FORMAT = "E9_INVALID_NUMBER_FORMAT"
    REQUIRED_SHEET_MISSING = "E10_REQUIRED_SHEET_MISSING"
    INVALID_ACR_SKU_FORMAT = "E20_INVALID_ACR_SKU_FORMAT"
    ROW_FLAGGED_BY_SPREADSHEET = "E21_ROW_FLAGGED_BY_SPREADSHEET"
    INVALID_URL_FORMAT = "E22_INVALID_URL_FORMAT"
    INVALID_ENUM_VALUE = "E23_INVALID_ENUM_VALUE"
    DUPLICATE_COMPOSITE_KEY = "E24_DUPLICATE_COMPOSITE_KEY"


class ValidationWarningCode(str, Enum):
    """Non-blocking issues on rows that match an existing record."""
    ACR_SKU_CHANGED = "W1_ACR_SKU_CHANGED"
    YEAR_RANGE_NARROWED = "W2_YEAR_RANGE_NARROWED"
    PART_TYPE_CHANGED = "W3_PART_TYPE_CHANGED"
    POSITION_TYPE_CHANGED = "W4_POSITION_TYPE_CHANGED"
    CROSS_REFERENCE_DELETED = "W5_CROSS_REFERENCE_DELETED"
    VEHICLE_APPLICATION_DELETED = "W6_VEHICLE_APPLICATION_DELETED"
    SPECIFICATIONS_SHORTENED = "W7_SPECIFICATIONS_SHORTENED"
    VEHICLE_MAKE_CHANGED = "W8_VEHICLE_MAKE_CHANGED"
    VEHICLE_MODEL_CHANGED = "W9_VEHICLE_MODEL_CHANGED"
    COMPETITOR_BRAND_CHANGED = "W10_COMPETITOR_BRAND_CHANGED"
    DUPLICATE_SKU_IN_BRAND = "W11_DUPLICATE_SKU_IN_BRAND"
    SPACE_DELIMITED_SKUS = "W12_SPACE_DELIMITED_SKUS"
    PART_ATTRIBUTE_CHANGED = "W13_PART_ATTRIBUTE_CHANGED"
    PART_DELETED = "W14_PART_DELETED"
    ALIAS_DELETED = "W15_ALIAS_DELETED"


class ValidationIssue(BaseModel):
    """A single error or warning."""
    code: str
    severity: IssueSeverity
    message: str
    sheet: Optional[str] = None
    row: Optional[int] = Field(None, ge=1, description="Spreadsheet row, header is row 1")
    column: Optional[str] = None
    value: Optional[Any] = None
    expected: Optional[str] = None


class ValidationSummary(BaseModel):
    total_errors: int = 0
    total_warnings: int = 0
    errors_by_sheet: dict[str, int] = Field(default_factory=dict)
    warnings_by_sheet: dict[str, int] = Field(default_factory=dict)


class ValidationResult(BaseModel):
    """Outcome of validating one uploaded workbook."""
    valid: bool
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)
    summary: ValidationSummary = Field(default_factory=ValidationSummary)

    def error_codes(self) -> set[str]:
        return {issue.code for issue in self.errors}

    def warning_codes(self) -> set[str]:
        return {issue.code for issue in self.warnings}
