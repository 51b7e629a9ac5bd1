"""Unit tests for model helpers and lookup tables."""

import pytest

from config.errors import ErrorCode, NotFoundError, ValidationError
from config.settings import Settings
from models.blueprint import BoundingBox, DeviceType, TemplatePattern, TextToken
from models.catalog import Assembly
from services.device_mapping import (
    DEFAULT_ASSEMBLY_CODE,
    DEFAULT_DEVICE_BUNDLE,
    DEVICE_KEYWORD_PATTERNS,
    assembly_code_for,
    device_bundle_for,
)


class TestDeviceMapping:
    """Device -> assembly and room -> bundle tables."""

    @pytest.mark.parametrize("device_type,code", [
        ("receptacle", "REC-STD"),
        ("gfci-receptacle", "REC-GFCI"),
        ("under-cabinet-light", "LT-UC"),
        ("custom", DEFAULT_ASSEMBLY_CODE),
        ("hot-tub-disconnect", DEFAULT_ASSEMBLY_CODE),
    ])
    def test_assembly_code_for(self, device_type, code):
        assert assembly_code_for(device_type) == code

    def test_unknown_room_type_gets_default_bundle(self):
        assert device_bundle_for("garage") == DEFAULT_DEVICE_BUNDLE
        assert device_bundle_for("sunroom") == DEFAULT_DEVICE_BUNDLE

    def test_master_rooms_share_bundles(self):
        assert device_bundle_for("master-bedroom") == device_bundle_for("bedroom")
        assert device_bundle_for("master-bathroom") == device_bundle_for("bathroom")

    def test_keyword_patterns(self):
        matched = [device for pattern, device in DEVICE_KEYWORD_PATTERNS if pattern.search("GFCI receptacle")]

        assert DeviceType.GFCI_RECEPTACLE in matched
        assert DeviceType.RECEPTACLE in matched
        assert DeviceType.SWITCH not in matched


class TestBlueprintModels:
    """Token geometry and template patterns."""

    def test_token_accepts_extractor_alias(self):
        token = TextToken(**{"str": "Kitchen", "x": 10, "y": 20, "width": 30, "height": 5})

        assert token.text == "Kitchen"

    def test_containment_is_inclusive(self):
        box = BoundingBox(x1=0, y1=0, x2=100, y2=50)

        assert TextToken(text="edge", x=0, y=0, width=100, height=50).within(box)
        assert not TextToken(text="over", x=1, y=0, width=100, height=50).within(box)

    def test_bounding_box_parse_error(self):
        pattern = TemplatePattern(dataType="jobAddress", patternType="coordinates", pattern="[1, 2]")

        with pytest.raises(ValueError):
            pattern.bounding_box()


class TestAssembly:
    def test_phase_key_normalized(self):
        assembly = Assembly(_id="asm-1", code="SVC-PNL", phase=" Service ")

        assert assembly.phase_key == "service"


class TestErrors:
    def test_not_found_code_from_entity(self):
        error = NotFoundError("estimate", "est-1")

        assert error.to_dict() == {
            "code": ErrorCode.ESTIMATE_NOT_FOUND,
            "message": "Estimate not found: est-1",
            "details": {"entity": "estimate", "id": "est-1"},
        }

    def test_validation_error_records_field(self):
        error = ValidationError("Unknown status", field="status")

        assert error.code == ErrorCode.VALIDATION_ERROR
        assert error.details == {"field": "status"}


class TestSettings:
    def test_project_id_required_outside_emulator(self):
        with pytest.raises(ValueError):
            Settings(firebase_project_id=None, use_firebase_emulators=False).validate()

    def test_emulator_needs_no_project_id(self):
        Settings(firebase_project_id=None, use_firebase_emulators=True).validate()
