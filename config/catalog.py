"""
Catalog spreadsheet contract.

Sheet names, brand columns, status display strings and column limits
shared by the validation engine, the diff engine and the exporter.
These are part of the public file format: changing a value here changes
what operators must type in the spreadsheet.
"""

# =============================================================================
# SHEETS
# =============================================================================

PARTS_SHEET = "Parts"
VEHICLE_APPLICATIONS_SHEET = "Vehicle Applications"
ALIASES_SHEET = "Vehicle Aliases"
CROSS_REFERENCES_SHEET = "Cross References"

# Issues that are not tied to one sheet are grouped under this name
GENERAL_SHEET = "General"


# =============================================================================
# BRAND COLUMNS
# =============================================================================
# One column per competitor. Key is the Part row field, value is the brand
# name stored on the cross_references row.

BRAND_COLUMN_MAP = {
    "national_skus": "NATIONAL",
    "atv_skus": "ATV",
    "syd_skus": "SYD",
    "tmk_skus": "TMK",
    "grob_skus": "GROB",
    "race_skus": "RACE",
    "oem_skus": "OEM",
    "oem_2_skus": "OEM_2",
    "gmb_skus": "GMB",
    "gsp_skus": "GSP",
    "fag_skus": "FAG",
}

# Reverse lookup for export: brand name -> column
BRAND_TO_COLUMN = {brand: column for column, brand in BRAND_COLUMN_MAP.items()}

# Cell mini-language: "NAT-100;[DELETE]NAT-200"
SKU_DELIMITER = ";"
DELETE_MARKER = "[DELETE]"


# =============================================================================
# STATUS DISPLAY STRINGS
# =============================================================================
# Spreadsheet shows Spanish labels; internal enum values are also accepted.

STATUS_ACTIVE_LABEL = "Activo"
STATUS_INACTIVE_LABEL = "Inactivo"
STATUS_DELETE_LABEL = "Eliminar"

ALIAS_TYPES = ("make", "model")


# =============================================================================
# COLUMN LIMITS
# =============================================================================
# Mirror the VARCHAR widths of the database columns.

MAX_LENGTHS = {
    "acr_sku": 50,
    "part_type": 100,
    "position_type": 50,
    "abs_type": 20,
    "bolt_pattern": 50,
    "drive_type": 50,
    "specifications": 2000,
    "make": 50,
    "model": 100,
    "competitor_brand": 50,
    "competitor_sku": 50,
    "alias": 50,
    "canonical_name": 100,
    "alias_type": 20,
    "image_url": 500,
}

IMAGE_URL_FIELDS = (
    "image_url_front",
    "image_url_back",
    "image_url_top",
    "image_url_other",
)

# Optional descriptive Part attributes compared during diff
PART_ATTRIBUTE_FIELDS = (
    "part_type",
    "position_type",
    "abs_type",
    "bolt_pattern",
    "drive_type",
    "specifications",
)


# =============================================================================
# YEARS
# =============================================================================

YEAR_MIN = 1900

# Upper bound is current year plus this many model years
YEAR_MAX_OFFSET = 2


# =============================================================================
# HEURISTICS
# =============================================================================

# Warn when new specifications are shorter than this fraction of the old text
SPECIFICATIONS_SHRINK_RATIO = 0.5
