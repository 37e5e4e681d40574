"""
Unit tests for ValidationEngine.

Run: pytest tests/unit/test_validation_engine.py -v
"""

import pytest

from exceptions import CatalogStateError
from models.catalog import ExistingCatalogState
from models.validation import IssueSeverity
from tests.factories import AliasRecordFactory, WorkbookFactory as WB


def codes(issues) -> list[str]:
    return [issue.code for issue in issues]


class TestValidationEngineBasics:
    """Tests for ValidationEngine.validate() result shape"""

    def test_clean_file_is_valid(self, validation_engine, seeded_state):
        """Should return valid with no issues for an unchanged row."""
        # Arrange
        workbook = WB.create(
            parts=[WB.rotor()],
            vehicle_applications=[WB.vehicle("ACR-1001")],
        )

        # Act
        result = validation_engine.validate(workbook, seeded_state)

        # Assert
        assert result.valid is True
        assert result.errors == []
        assert result.warnings == []
        assert result.summary.total_errors == 0

    def test_empty_workbook_is_blocked(self, validation_engine, empty_state):
        """Should report E10 when every sheet is empty."""
        result = validation_engine.validate(WB.create(), empty_state)

        assert result.valid is False
        assert codes(result.errors) == ["E10_REQUIRED_SHEET_MISSING"]
        assert "empty" in result.errors[0].message.lower()
        assert result.summary.errors_by_sheet == {"General": 1}

    def test_issue_location_and_severity(self, validation_engine, empty_state):
        """Should attach sheet, 1-indexed row and column to each issue."""
        workbook = WB.create(parts=[WB.part("ACR-1"), WB.part("ACR-2", part_type="")])

        result = validation_engine.validate(workbook, empty_state)

        issue = result.errors[0]
        assert issue.code == "E3_EMPTY_REQUIRED_FIELD"
        assert issue.severity == IssueSeverity.ERROR
        assert issue.sheet == "Parts"
        assert issue.row == 3
        assert issue.column == "part_type"

    def test_summary_counts_by_sheet(self, validation_engine, empty_state):
        workbook = WB.create(
            parts=[WB.part("BAD-1")],
            vehicle_applications=[WB.vehicle("ACR-9", start_year=1800)],
        )

        result = validation_engine.validate(workbook, empty_state)

        assert result.summary.total_errors == len(result.errors)
        assert result.summary.errors_by_sheet["Parts"] == 1
        assert result.summary.errors_by_sheet["Vehicle Applications"] == 2

    def test_malformed_state_raises(self, validation_engine):
        """Should raise for a programmer error, not return a result."""
        workbook = WB.create(parts=[WB.part()])

        with pytest.raises(CatalogStateError):
            validation_engine.validate(workbook, {"parts": []})


class TestPartErrors:
    """Blocking checks on the Parts sheet"""

    def test_duplicate_acr_sku(self, validation_engine, empty_state):
        """Should report E2 on the second occurrence."""
        workbook = WB.create(parts=[
            WB.part("ACR-1"),
            WB.part("ACR-2"),
            WB.part("ACR-1", part_type="Other"),
        ])

        result = validation_engine.validate(workbook, empty_state)

        assert result.valid is False
        assert codes(result.errors) == ["E2_DUPLICATE_ACR_SKU"]
        assert result.errors[0].row == 4
        assert "row 2" in result.errors[0].message

    def test_missing_acr_sku(self, validation_engine, empty_state):
        workbook = WB.create(parts=[WB.part(acr_sku="  ")])

        result = validation_engine.validate(workbook, empty_state)

        assert codes(result.errors) == ["E3_EMPTY_REQUIRED_FIELD"]
        assert result.errors[0].column == "acr_sku"

    def test_part_type_not_required_on_delete(self, validation_engine, seeded_state):
        workbook = WB.create(parts=[WB.part("ACR-2002", part_type=None, status="Eliminar")])

        result = validation_engine.validate(workbook, seeded_state)

        assert result.valid is True

    def test_acr_prefix(self, validation_engine, empty_state):
        """Should report E20 when the SKU lacks the ACR prefix."""
        workbook = WB.create(parts=[WB.part("XYZ-100")])

        result = validation_engine.validate(workbook, empty_state)

        assert codes(result.errors) == ["E20_INVALID_ACR_SKU_FORMAT"]
        assert "ACR" in result.errors[0].message

    def test_row_flagged_by_spreadsheet(self, validation_engine, empty_state):
        workbook = WB.create(parts=[WB.part("ACR-1", errors="Missing category")])

        result = validation_engine.validate(workbook, empty_state)

        assert codes(result.errors) == ["E21_ROW_FLAGGED_BY_SPREADSHEET"]

    def test_max_length(self, validation_engine, empty_state):
        long_sku = "ACR-" + "9" * 47
        workbook = WB.create(parts=[WB.part(long_sku)])

        result = validation_engine.validate(workbook, empty_state)

        assert codes(result.errors) == ["E7_STRING_EXCEEDS_MAX_LENGTH"]
        assert "exceeds maximum length of 50 characters" in result.errors[0].message

    def test_brand_sku_max_length(self, validation_engine, empty_state):
        workbook = WB.create(parts=[WB.part("ACR-1", atv_skus="OK-1;" + "X" * 51)])

        result = validation_engine.validate(workbook, empty_state)

        assert codes(result.errors) == ["E7_STRING_EXCEEDS_MAX_LENGTH"]
        assert result.errors[0].column == "atv_skus"

    def test_invalid_image_url(self, validation_engine, empty_state):
        workbook = WB.create(parts=[
            WB.part("ACR-1", image_url_front="ftp://cdn/img.jpg"),
            WB.part("ACR-2", image_url_back="https://cdn.example.com/a.jpg"),
        ])

        result = validation_engine.validate(workbook, empty_state)

        assert codes(result.errors) == ["E22_INVALID_URL_FORMAT"]
        assert "http" in result.errors[0].message

    def test_invalid_status(self, validation_engine, empty_state):
        workbook = WB.create(parts=[WB.part("ACR-1", status="Borrado")])

        result = validation_engine.validate(workbook, empty_state)

        assert codes(result.errors) == ["E23_INVALID_ENUM_VALUE"]
        assert result.errors[0].column == "status"

    def test_inactive_part_is_allowed(self, validation_engine, empty_state):
        workbook = WB.create(parts=[WB.part("ACR-1", status="Inactivo")])

        assert validation_engine.validate(workbook, empty_state).valid is True


class TestVehicleApplicationErrors:
    """Blocking checks on the Vehicle Applications sheet"""

    def test_orphan(self, validation_engine, seeded_state):
        """Should report E5 when the part is neither uploaded nor stored."""
        workbook = WB.create(vehicle_applications=[WB.vehicle("ACR-9999")])

        result = validation_engine.validate(workbook, seeded_state)

        assert codes(result.errors) == ["E5_ORPHANED_FOREIGN_KEY"]

    def test_resolves_to_uploaded_part(self, validation_engine, empty_state):
        workbook = WB.create(
            parts=[WB.part("ACR-NEW")],
            vehicle_applications=[WB.vehicle("ACR-NEW")],
        )

        assert validation_engine.validate(workbook, empty_state).valid is True

    def test_resolves_to_stored_part(self, validation_engine, seeded_state):
        workbook = WB.create(vehicle_applications=[WB.vehicle("ACR-2002", make="Ford")])

        assert validation_engine.validate(workbook, seeded_state).valid is True

    def test_part_deleted_in_same_file(self, validation_engine, seeded_state):
        """Should report E5 when the parent is marked for deletion."""
        workbook = WB.create(
            parts=[WB.part("ACR-2002", status="Eliminar")],
            vehicle_applications=[WB.vehicle("ACR-2002", make="Ford")],
        )

        result = validation_engine.validate(workbook, seeded_state)

        assert "E5_ORPHANED_FOREIGN_KEY" in codes(result.errors)
        assert "deletion" in result.errors[0].message

    def test_inverted_year_range(self, validation_engine, empty_state):
        workbook = WB.create(
            parts=[WB.part("ACR-1")],
            vehicle_applications=[WB.vehicle("ACR-1", start_year=2020, end_year=2019)],
        )

        result = validation_engine.validate(workbook, empty_state)

        assert codes(result.errors) == ["E6_INVALID_YEAR_RANGE"]

    @pytest.mark.parametrize("year", [1899, 2028])
    def test_year_out_of_range(self, validation_engine, empty_state, year):
        """Should allow 1900 through current year + 2 only."""
        workbook = WB.create(
            parts=[WB.part("ACR-1")],
            vehicle_applications=[WB.vehicle("ACR-1", start_year=year, end_year=year)],
        )

        result = validation_engine.validate(workbook, empty_state)

        assert set(codes(result.errors)) == {"E8_YEAR_OUT_OF_RANGE"}

    def test_upper_year_bound_is_inclusive(self, validation_engine, empty_state):
        workbook = WB.create(
            parts=[WB.part("ACR-1")],
            vehicle_applications=[WB.vehicle("ACR-1", start_year=2027, end_year=2027)],
        )

        assert validation_engine.validate(workbook, empty_state).valid is True

    def test_non_integer_year(self, validation_engine, empty_state):
        workbook = WB.create(
            parts=[WB.part("ACR-1")],
            vehicle_applications=[WB.vehicle("ACR-1", start_year="20x0")],
        )

        result = validation_engine.validate(workbook, empty_state)

        assert codes(result.errors) == ["E9_INVALID_NUMBER_FORMAT"]
        assert "must be an integer" in result.errors[0].message

    def test_required_fields(self, validation_engine, empty_state):
        workbook = WB.create(
            parts=[WB.part("ACR-1")],
            vehicle_applications=[WB.vehicle("ACR-1", make="", start_year=None)],
        )

        result = validation_engine.validate(workbook, empty_state)

        assert codes(result.errors) == ["E3_EMPTY_REQUIRED_FIELD", "E3_EMPTY_REQUIRED_FIELD"]
        assert {e.column for e in result.errors} == {"make", "start_year"}

    def test_duplicate_composite_key(self, validation_engine, empty_state):
        workbook = WB.create(
            parts=[WB.part("ACR-1")],
            vehicle_applications=[
                WB.vehicle("ACR-1", end_year=2020),
                WB.vehicle("ACR-1", end_year=2021),
            ],
        )

        result = validation_engine.validate(workbook, empty_state)

        assert codes(result.errors) == ["E24_DUPLICATE_COMPOSITE_KEY"]
        assert result.errors[0].row == 3

    def test_inactive_not_allowed(self, validation_engine, seeded_state):
        workbook = WB.create(vehicle_applications=[WB.vehicle("ACR-1001", status="Inactivo")])

        result = validation_engine.validate(workbook, seeded_state)

        assert codes(result.errors) == ["E23_INVALID_ENUM_VALUE"]


class TestAliasErrors:

    def test_invalid_alias_type(self, validation_engine, empty_state):
        workbook = WB.create(aliases=[WB.alias(alias_type="trim")])

        result = validation_engine.validate(workbook, empty_state)

        assert codes(result.errors) == ["E23_INVALID_ENUM_VALUE"]
        assert result.errors[0].sheet == "Vehicle Aliases"

    def test_duplicate_alias(self, validation_engine, empty_state):
        workbook = WB.create(aliases=[WB.alias(), WB.alias(alias_type="model")])

        result = validation_engine.validate(workbook, empty_state)

        assert codes(result.errors) == ["E24_DUPLICATE_COMPOSITE_KEY"]

    def test_missing_fields(self, validation_engine, empty_state):
        workbook = WB.create(aliases=[WB.alias(canonical_name="", alias_type=None)])

        result = validation_engine.validate(workbook, empty_state)

        assert {e.column for e in result.errors} == {"canonical_name", "alias_type"}


class TestPartWarnings:
    """Non-blocking checks on parts that match a stored record"""

    def test_new_rows_never_warn(self, validation_engine, empty_state):
        workbook = WB.create(parts=[
            WB.part("ACR-1", national_skus="A B C;A"),
        ])

        result = validation_engine.validate(workbook, empty_state)

        assert result.warnings == []

    def test_part_type_changed(self, validation_engine, seeded_state):
        workbook = WB.create(parts=[WB.rotor(part_type="Brake Drum")])

        result = validation_engine.validate(workbook, seeded_state)

        assert result.valid is True
        assert codes(result.warnings) == ["W3_PART_TYPE_CHANGED"]
        assert result.warnings[0].severity == IssueSeverity.WARNING

    def test_position_and_attributes_changed(self, validation_engine, seeded_state):
        workbook = WB.create(parts=[
            WB.rotor(position_type="Rear", abs_type="ABS", drive_type="4WD"),
        ])

        result = validation_engine.validate(workbook, seeded_state)

        assert codes(result.warnings) == [
            "W4_POSITION_TYPE_CHANGED",
            "W13_PART_ATTRIBUTE_CHANGED",
            "W13_PART_ATTRIBUTE_CHANGED",
        ]

    def test_blank_over_missing_value_does_not_warn(self, validation_engine, seeded_state):
        """Should treat "" and a missing stored value as equal."""
        workbook = WB.create(parts=[
            WB.part("ACR-2002", part_type="Hub Assembly", abs_type="", bolt_pattern="  "),
        ])

        result = validation_engine.validate(workbook, seeded_state)

        assert result.warnings == []

    def test_cleared_position_warns(self, validation_engine, seeded_state):
        """Should warn W4 when a blank cell clears a stored position_type."""
        workbook = WB.create(parts=[WB.rotor(position_type="")])

        result = validation_engine.validate(workbook, seeded_state)

        assert codes(result.warnings) == ["W4_POSITION_TYPE_CHANGED"]
        assert result.warnings[0].expected == "Front"
        assert result.warnings[0].value is None

    def test_specifications_shortened(self, validation_engine, seeded_state):
        workbook = WB.create(parts=[WB.rotor(specifications="Vented rotor")])

        result = validation_engine.validate(workbook, seeded_state)

        assert codes(result.warnings) == ["W7_SPECIFICATIONS_SHORTENED"]
        assert "%" in result.warnings[0].message

    def test_specifications_slightly_shorter(self, validation_engine, seeded_state):
        workbook = WB.create(parts=[
            WB.rotor(specifications="Vented rotor 280mm, 5 lug, coated finish"),
        ])

        result = validation_engine.validate(workbook, seeded_state)

        assert result.warnings == []

    def test_acr_sku_case_change(self, validation_engine, seeded_state):
        """Should warn W1 when only case separates the SKU from a stored one."""
        workbook = WB.create(parts=[WB.part("acr-1001")])

        result = validation_engine.validate(workbook, seeded_state)

        assert codes(result.warnings) == ["W1_ACR_SKU_CHANGED"]
        assert result.warnings[0].expected == "ACR-1001"

    def test_part_deleted(self, validation_engine, seeded_state):
        workbook = WB.create(parts=[WB.part("ACR-1001", status="Eliminar")])

        result = validation_engine.validate(workbook, seeded_state)

        assert codes(result.warnings) == ["W14_PART_DELETED"]
        assert "1 vehicle applications" in result.warnings[0].message


class TestBrandColumnWarnings:

    def test_cross_reference_deleted(self, validation_engine, seeded_state):
        workbook = WB.create(parts=[WB.rotor(national_skus="[DELETE]NAT-100")])

        result = validation_engine.validate(workbook, seeded_state)

        assert codes(result.warnings) == ["W5_CROSS_REFERENCE_DELETED"]

    def test_delete_of_unknown_sku_is_silent(self, validation_engine, seeded_state):
        workbook = WB.create(parts=[WB.rotor(national_skus="[DELETE]NAT-999")])

        assert validation_engine.validate(workbook, seeded_state).warnings == []

    def test_competitor_brand_changed(self, validation_engine, seeded_state):
        """Should warn W10 when a stored SKU shows up under another brand."""
        workbook = WB.create(parts=[WB.rotor(atv_skus="NAT-100")])

        result = validation_engine.validate(workbook, seeded_state)

        assert codes(result.warnings) == ["W10_COMPETITOR_BRAND_CHANGED"]
        assert result.warnings[0].expected == "NATIONAL"

    def test_duplicate_sku_in_brand(self, validation_engine, seeded_state):
        workbook = WB.create(parts=[WB.rotor(national_skus="NAT-100;NAT-100")])

        result = validation_engine.validate(workbook, seeded_state)

        assert codes(result.warnings) == ["W11_DUPLICATE_SKU_IN_BRAND"]

    def test_space_delimited(self, validation_engine, seeded_state):
        workbook = WB.create(parts=[WB.rotor(national_skus="NAT-100 NAT-200")])

        result = validation_engine.validate(workbook, seeded_state)

        assert codes(result.warnings) == ["W12_SPACE_DELIMITED_SKUS"]
        assert result.valid is True


class TestVehicleAndAliasWarnings:

    def test_year_range_narrowed(self, validation_engine, seeded_state):
        workbook = WB.create(vehicle_applications=[WB.vehicle("ACR-1001", end_year=2021)])

        result = validation_engine.validate(workbook, seeded_state)

        assert codes(result.warnings) == ["W2_YEAR_RANGE_NARROWED"]

    def test_year_range_extended_is_silent(self, validation_engine, seeded_state):
        workbook = WB.create(vehicle_applications=[WB.vehicle("ACR-1001", end_year=2025)])

        assert validation_engine.validate(workbook, seeded_state).warnings == []

    def test_vehicle_deleted(self, validation_engine, seeded_state):
        workbook = WB.create(vehicle_applications=[
            WB.vehicle("ACR-1001", status="Eliminar", end_year=None),
        ])

        result = validation_engine.validate(workbook, seeded_state)

        assert result.valid is True
        assert codes(result.warnings) == ["W6_VEHICLE_APPLICATION_DELETED"]

    def test_make_case_change(self, validation_engine, seeded_state):
        workbook = WB.create(vehicle_applications=[WB.vehicle("ACR-1001", make="TOYOTA")])

        result = validation_engine.validate(workbook, seeded_state)

        assert codes(result.warnings) == ["W8_VEHICLE_MAKE_CHANGED"]

    def test_model_case_change(self, validation_engine, seeded_state):
        workbook = WB.create(vehicle_applications=[WB.vehicle("ACR-1001", model="corolla")])

        result = validation_engine.validate(workbook, seeded_state)

        assert codes(result.warnings) == ["W9_VEHICLE_MODEL_CHANGED"]

    def test_alias_deleted(self, validation_engine):
        state = ExistingCatalogState.from_rows([], [], [], [AliasRecordFactory.create()])
        workbook = WB.create(aliases=[WB.alias(status="Eliminar")])

        result = validation_engine.validate(workbook, state)

        assert codes(result.warnings) == ["W15_ALIAS_DELETED"]
