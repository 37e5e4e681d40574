"""
Catalog schemas: uploaded spreadsheet rows and stored records.

Row models mirror what the spreadsheet reader hands us (snake_case field
names, raw cell values). Record models mirror database rows. Status
strings are decoded to WorkflowStatus once, when a row is built.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from config.catalog import (
    ALIASES_SHEET,
    BRAND_COLUMN_MAP,
    PARTS_SHEET,
    STATUS_ACTIVE_LABEL,
    STATUS_DELETE_LABEL,
    STATUS_INACTIVE_LABEL,
    VEHICLE_APPLICATIONS_SHEET,
)
from exceptions import CatalogStateError
from models.base import BaseSchema
from utils.text_utils import normalize_optional, parse_year


class WorkflowStatus(str, Enum):
    """Lifecycle flag for catalog rows."""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    DELETE = "DELETE"


_STATUS_DECODE = {
    STATUS_ACTIVE_LABEL.lower(): WorkflowStatus.ACTIVE,
    STATUS_INACTIVE_LABEL.lower(): WorkflowStatus.INACTIVE,
    STATUS_DELETE_LABEL.lower(): WorkflowStatus.DELETE,
    "active": WorkflowStatus.ACTIVE,
    "inactive": WorkflowStatus.INACTIVE,
    "delete": WorkflowStatus.DELETE,
}

_STATUS_LABELS = {
    WorkflowStatus.ACTIVE: STATUS_ACTIVE_LABEL,
    WorkflowStatus.INACTIVE: STATUS_INACTIVE_LABEL,
    WorkflowStatus.DELETE: STATUS_DELETE_LABEL,
}


def decode_status(value: Any) -> Optional[WorkflowStatus]:
    """
    Decode a status cell ("Activo", "ELIMINAR", "ACTIVE"...).

    Returns None for blanks and for unknown values; validation reports
    the unknown ones.
    """
    if isinstance(value, WorkflowStatus):
        return value
    text = normalize_optional(value)
    if text is None:
        return None
    return _STATUS_DECODE.get(text.lower())


def status_label(status: WorkflowStatus) -> str:
    """Spreadsheet display string for a status."""
    return _STATUS_LABELS[status]


# ===================
# UPLOADED ROWS
# ===================

class CatalogRow(BaseSchema):
    """
    Fields shared by every uploaded row.

    status: raw cell text, kept for error messages
    workflow_status: decoded status, None when blank or unrecognized
    errors: spreadsheet formula error column
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True,
        coerce_numbers_to_str=True
    )

    status: Optional[str] = None
    workflow_status: Optional[WorkflowStatus] = None
    errors: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def decode_row_status(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        raw = data.get("workflow_status")
        if isinstance(raw, WorkflowStatus):
            return data
        if normalize_optional(raw) is None:
            raw = data.get("status")
        data = dict(data)
        if normalize_optional(data.get("status")) is None and raw is not None:
            data["status"] = raw
        data["workflow_status"] = decode_status(raw)
        return data

    @property
    def is_delete(self) -> bool:
        return self.workflow_status == WorkflowStatus.DELETE


class PartRow(CatalogRow):
    """One row of the Parts sheet."""
    acr_sku: Optional[str] = None
    part_type: Optional[str] = None
    position_type: Optional[str] = None
    abs_type: Optional[str] = None
    bolt_pattern: Optional[str] = None
    drive_type: Optional[str] = None
    specifications: Optional[str] = None

    # Brand columns (see config.catalog.BRAND_COLUMN_MAP)
    national_skus: Optional[str] = None
    atv_skus: Optional[str] = None
    syd_skus: Optional[str] = None
    tmk_skus: Optional[str] = None
    grob_skus: Optional[str] = None
    race_skus: Optional[str] = None
    oem_skus: Optional[str] = None
    oem_2_skus: Optional[str] = None
    gmb_skus: Optional[str] = None
    gsp_skus: Optional[str] = None
    fag_skus: Optional[str] = None

    # Image references, validated only; images are managed elsewhere
    image_url_front: Optional[str] = None
    image_url_back: Optional[str] = None
    image_url_top: Optional[str] = None
    image_url_other: Optional[str] = None
    viewer_360_status: Optional[str] = None

    def brand_cells(self) -> list[tuple[str, str, Optional[str]]]:
        """(column, brand, raw cell) for every brand column."""
        return [
            (column, brand, getattr(self, column))
            for column, brand in BRAND_COLUMN_MAP.items()
        ]


class VehicleApplicationRow(CatalogRow):
    """One row of the Vehicle Applications sheet."""
    acr_sku: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    start_year: Optional[Union[int, float, str]] = None
    end_year: Optional[Union[int, float, str]] = None

    @property
    def start_year_value(self) -> Optional[int]:
        return parse_year(self.start_year)

    @property
    def end_year_value(self) -> Optional[int]:
        return parse_year(self.end_year)


class AliasRow(CatalogRow):
    """One row of the Vehicle Aliases sheet."""
    alias: Optional[str] = None
    canonical_name: Optional[str] = None
    alias_type: Optional[str] = None


class PartsSheet(BaseSchema):
    sheet_name: str = PARTS_SHEET
    data: list[PartRow] = Field(default_factory=list)
    row_count: int = 0


class VehicleApplicationsSheet(BaseSchema):
    sheet_name: str = VEHICLE_APPLICATIONS_SHEET
    data: list[VehicleApplicationRow] = Field(default_factory=list)
    row_count: int = 0


class AliasesSheet(BaseSchema):
    sheet_name: str = ALIASES_SHEET
    data: list[AliasRow] = Field(default_factory=list)
    row_count: int = 0


class FileMetadata(BaseSchema):
    """Source file details supplied by the spreadsheet reader."""
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    file_name: str = Field(..., min_length=1, max_length=255)
    file_size: int = Field(default=0, ge=0)


class ParsedExcelFile(BaseSchema):
    """
    Normalized workbook handed over by the spreadsheet reader.

    The aliases sheet is optional.
    """
    parts: PartsSheet = Field(default_factory=PartsSheet)
    vehicle_applications: VehicleApplicationsSheet = Field(
        default_factory=VehicleApplicationsSheet
    )
    aliases: Optional[AliasesSheet] = None
    metadata: FileMetadata

    @property
    def total_rows(self) -> int:
        aliases = len(self.aliases.data) if self.aliases else 0
        return len(self.parts.data) + len(self.vehicle_applications.data) + aliases


# ===================
# STORED RECORDS
# ===================

class PartRecord(BaseModel):
    """Row of the parts table."""
    id: str
    acr_sku: str
    part_type: Optional[str] = None
    position_type: Optional[str] = None
    abs_type: Optional[str] = None
    bolt_pattern: Optional[str] = None
    drive_type: Optional[str] = None
    specifications: Optional[str] = None
    workflow_status: WorkflowStatus = WorkflowStatus.ACTIVE
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None

    @field_validator("workflow_status", mode="before")
    @classmethod
    def default_status(cls, v: Any) -> Any:
        """Rows written before the status column existed have NULL."""
        return v if v is not None else WorkflowStatus.ACTIVE

    def to_payload(self) -> dict:
        return {
            "id": self.id,
            "acr_sku": self.acr_sku,
            "part_type": self.part_type,
            "position_type": self.position_type,
            "abs_type": self.abs_type,
            "bolt_pattern": self.bolt_pattern,
            "drive_type": self.drive_type,
            "specifications": self.specifications,
            "workflow_status": self.workflow_status.value,
        }


class VehicleApplicationRecord(BaseModel):
    """Row of the vehicle_applications table, with its part's acr_sku."""
    id: str
    part_id: str
    make: str
    model: str
    start_year: int
    end_year: int
    acr_sku: Optional[str] = None

    def to_payload(self) -> dict:
        return {
            "id": self.id,
            "part_id": self.part_id,
            "make": self.make,
            "model": self.model,
            "start_year": self.start_year,
            "end_year": self.end_year,
        }


class CrossReferenceRecord(BaseModel):
    """Row of the cross_references table."""
    id: str
    acr_part_id: str
    competitor_brand: Optional[str] = None
    competitor_sku: str

    @property
    def brand_key(self) -> str:
        return (normalize_optional(self.competitor_brand) or "").upper()

    def to_payload(self) -> dict:
        return {
            "id": self.id,
            "acr_part_id": self.acr_part_id,
            "competitor_brand": self.competitor_brand,
            "competitor_sku": self.competitor_sku,
        }


class AliasRecord(BaseModel):
    """Row of the vehicle_aliases table."""
    id: str
    alias: str
    canonical_name: str
    alias_type: str

    def to_payload(self) -> dict:
        return {
            "id": self.id,
            "alias": self.alias,
            "canonical_name": self.canonical_name,
            "alias_type": self.alias_type,
        }


VehicleKey = tuple[str, str, str, int]
AliasKey = tuple[str, str]


def vehicle_key(acr_sku: Any, make: Any, model: Any, start_year: Any) -> Optional[VehicleKey]:
    """Business key of a vehicle application, or None if any part is missing."""
    sku = normalize_optional(acr_sku)
    make_value = normalize_optional(make)
    model_value = normalize_optional(model)
    year = parse_year(start_year)
    if sku is None or make_value is None or model_value is None or year is None:
        return None
    return (sku, make_value, model_value, year)


def alias_key(alias: Any, canonical_name: Any) -> Optional[AliasKey]:
    """Business key of an alias, or None if either part is missing."""
    alias_value = normalize_optional(alias)
    canonical = normalize_optional(canonical_name)
    if alias_value is None or canonical is None:
        return None
    return (alias_value, canonical)


@dataclass
class ExistingCatalogState:
    """
    Current store contents indexed by business key.

    Built once per validate/diff call. Both engines only read it.
    """
    parts: dict[str, PartRecord] = field(default_factory=dict)
    vehicle_applications: dict[VehicleKey, VehicleApplicationRecord] = field(default_factory=dict)
    cross_references: dict[str, CrossReferenceRecord] = field(default_factory=dict)
    aliases: dict[AliasKey, AliasRecord] = field(default_factory=dict)
    parts_by_id: dict[str, PartRecord] = field(default_factory=dict)
    cross_references_by_part: dict[str, list[CrossReferenceRecord]] = field(default_factory=dict)
    vehicle_applications_by_part: dict[str, list[VehicleApplicationRecord]] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "ExistingCatalogState":
        return cls()

    @classmethod
    def from_rows(
        cls,
        parts: list[dict],
        vehicle_applications: list[dict],
        cross_references: list[dict],
        aliases: Optional[list[dict]] = None
    ) -> "ExistingCatalogState":
        """
        Index raw table rows.

        Raises:
            CatalogStateError: Duplicate business keys, dangling part ids or a
                stored DELETE status
        """
        state = cls()

        for row in parts:
            record = PartRecord(**row)
            sku = normalize_optional(record.acr_sku)
            if sku is None:
                raise CatalogStateError("Stored part has empty acr_sku", {"id": record.id})
            if sku in state.parts:
                raise CatalogStateError(
                    f"Stored acr_sku {sku} is not unique",
                    {"acr_sku": sku}
                )
            # DELETE is an upload marker, never a stored lifecycle state
            if record.workflow_status == WorkflowStatus.DELETE:
                raise CatalogStateError(
                    f"Stored part {sku} has workflow_status DELETE",
                    {"acr_sku": sku}
                )
            state.parts[sku] = record
            state.parts_by_id[record.id] = record

        for row in vehicle_applications:
            record = VehicleApplicationRecord(**row)
            part = state.parts_by_id.get(record.part_id)
            if part is None:
                raise CatalogStateError(
                    "Vehicle application references unknown part",
                    {"id": record.id, "part_id": record.part_id}
                )
            record.acr_sku = part.acr_sku
            key = vehicle_key(part.acr_sku, record.make, record.model, record.start_year)
            if key is None or key in state.vehicle_applications:
                raise CatalogStateError(
                    "Stored vehicle application key is empty or not unique",
                    {"id": record.id}
                )
            state.vehicle_applications[key] = record
            state.vehicle_applications_by_part.setdefault(record.part_id, []).append(record)

        for row in cross_references:
            record = CrossReferenceRecord(**row)
            if record.acr_part_id not in state.parts_by_id:
                raise CatalogStateError(
                    "Cross reference references unknown part",
                    {"id": record.id, "acr_part_id": record.acr_part_id}
                )
            state.cross_references[record.id] = record
            state.cross_references_by_part.setdefault(record.acr_part_id, []).append(record)

        for row in aliases or []:
            record = AliasRecord(**row)
            key = alias_key(record.alias, record.canonical_name)
            if key is None or key in state.aliases:
                raise CatalogStateError(
                    "Stored alias key is empty or not unique",
                    {"id": record.id}
                )
            state.aliases[key] = record

        return state
