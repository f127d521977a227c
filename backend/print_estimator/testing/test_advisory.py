# testing/test_advisory.py

import json

import pytest

from print_estimator.advisory import (
    OrientationSuggestion, PrintabilityVerdict, SettingsSuggestion, SupportEstimate,
    parse_advisory, resolve_support_percent, settings_suggestion_to_parameters
)
from print_estimator.core.common_types import ProcessSettings, Rotation
from print_estimator.core.exceptions import AdvisoryResponseError, ConfigurationError, MaterialNotFoundError


def test_parse_support_estimate_from_json_text():
    estimate = parse_advisory(SupportEstimate, '{"support_overhead_percent": 25, "reasoning": "bridges"}')
    assert estimate.support_overhead_percent == 25
    assert estimate.reasoning == "bridges"

def test_parse_orientation_from_bytes():
    payload = json.dumps({"rotation_degrees": {"x": 90, "y": 0, "z": 45}}).encode()
    suggestion = parse_advisory(OrientationSuggestion, payload)
    assert suggestion.rotation_degrees == Rotation(x=90, y=0, z=45)

def test_parse_printability_from_dict():
    verdict = parse_advisory(PrintabilityVerdict, {"is_printable": False, "errors": ["open mesh"]})
    assert not verdict.is_printable
    assert not verdict.is_repairable
    assert verdict.errors == ["open mesh"]

@pytest.mark.parametrize("payload", [
    "not json at all",
    "[1, 2, 3]",
    '{"support_overhead_percent": 140}',
    '{"support_overhead_percent": -1}',
    '{"support_overhead_percent": "lots"}',
    "{}",
])
def test_invalid_support_payloads(payload):
    with pytest.raises(AdvisoryResponseError):
        parse_advisory(SupportEstimate, payload)

def test_resolve_support_uses_estimate_or_default():
    process = ProcessSettings(support_overhead_percent=12)
    assert resolve_support_percent(SupportEstimate(support_overhead_percent=30), process) == 30
    assert resolve_support_percent(SupportEstimate(support_overhead_percent=0), process) == 0
    assert resolve_support_percent(None, process) == 12

def test_settings_suggestion_to_parameters(store):
    suggestion = SettingsSuggestion(material_id="petg", nozzle_diameter_mm=0.6, layer_height_mm=0.28,
                                    infill_percent=30, wall_count=3)
    params, material = settings_suggestion_to_parameters(suggestion, store)
    assert material.id == "petg"
    assert params.nozzle_diameter_mm == 0.6
    assert params.wall_count == 3

def test_settings_suggestion_outside_allowed_values(store):
    suggestion = SettingsSuggestion(material_id="pla", nozzle_diameter_mm=0.4, layer_height_mm=0.2,
                                    infill_percent=42, wall_count=2)
    with pytest.raises(ConfigurationError, match="infill"):
        settings_suggestion_to_parameters(suggestion, store)

def test_settings_suggestion_unknown_material(store):
    suggestion = SettingsSuggestion(material_id="resin", nozzle_diameter_mm=0.4, layer_height_mm=0.2,
                                    infill_percent=15, wall_count=2)
    with pytest.raises(MaterialNotFoundError):
        settings_suggestion_to_parameters(suggestion, store)
