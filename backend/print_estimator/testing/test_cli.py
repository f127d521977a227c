# testing/test_cli.py

import json

import pytest
import trimesh
from typer.testing import CliRunner

from print_estimator.core.common_types import DFMStatus, QuoteResult
from print_estimator.main_cli import app

runner = CliRunner()


@pytest.fixture
def cube_file(cube_20mm: trimesh.Trimesh, write_model):
    return write_model(cube_20mm, "cube.stl")


def test_list_materials():
    result = runner.invoke(app, ["list-materials"])
    assert result.exit_code == 0, result.output
    for name in ("PLA", "ABS", "PETG", "TPU"):
        assert name in result.output

def test_list_materials_in_toman():
    result = runner.invoke(app, ["list-materials", "--currency", "toman"])
    assert result.exit_code == 0, result.output
    assert "Toman" in result.output

def test_list_materials_bad_settings_file(tmp_path):
    result = runner.invoke(app, ["list-materials", "--settings", str(tmp_path / "missing.json")])
    assert result.exit_code == 1

def test_analyze(cube_file):
    result = runner.invoke(app, ["analyze", str(cube_file)])
    assert result.exit_code == 0, result.output
    assert "8.000" in result.output
    assert "20.00 x 20.00 x 20.00" in result.output

def test_analyze_with_rotation(tmp_path, write_model):
    box = write_model(trimesh.creation.box(extents=(30.0, 20.0, 10.0)), "box.stl")
    result = runner.invoke(app, ["analyze", str(box), "--rotate", "0", "0", "90"])
    assert result.exit_code == 0, result.output
    assert "20.00 x 30.00 x 10.00" in result.output

def test_quote_writes_json(cube_file, tmp_path):
    out = tmp_path / "out" / "quote.json"
    result = runner.invoke(app, ["quote", str(cube_file), "--material", "pla", "--infill", "30",
                                 "--walls", "3", "--quantity", "2", "--output", str(out)])
    assert result.exit_code == 0, result.output
    assert "Total Price" in result.output
    quote = QuoteResult.model_validate_json(out.read_text())
    assert quote.request.quantity == 2
    assert quote.request.parameters.wall_count == 3
    assert quote.price is not None

def test_quote_with_advisory_files(cube_file, tmp_path):
    support = tmp_path / "support.json"
    support.write_text(json.dumps({"support_overhead_percent": 25}))
    orientation = tmp_path / "orientation.json"
    orientation.write_text(json.dumps({"rotation_degrees": {"x": 45, "y": 0, "z": 0}}))
    out = tmp_path / "quote.json"
    result = runner.invoke(app, ["quote", str(cube_file), "-m", "petg", "--support-json", str(support),
                                 "--orientation-json", str(orientation), "-o", str(out)])
    assert result.exit_code == 0, result.output
    quote = QuoteResult.model_validate_json(out.read_text())
    assert quote.request.support_percent == 25
    assert quote.request.rotation.x == 45
    assert quote.dfm_report.status == DFMStatus.PASS

def test_quote_rejects_both_support_sources(cube_file, tmp_path):
    support = tmp_path / "support.json"
    support.write_text('{"support_overhead_percent": 5}')
    result = runner.invoke(app, ["quote", str(cube_file), "-m", "pla", "--support", "5",
                                 "--support-json", str(support)])
    assert result.exit_code == 1

def test_quote_invalid_advisory_file(cube_file, tmp_path):
    support = tmp_path / "support.json"
    support.write_text('{"support_overhead_percent": 500}')
    result = runner.invoke(app, ["quote", str(cube_file), "-m", "pla", "--support-json", str(support)])
    assert result.exit_code == 1

def test_quote_unknown_material(cube_file):
    result = runner.invoke(app, ["quote", str(cube_file), "--material", "wood"])
    assert result.exit_code == 1
    assert "MaterialNotFoundError" in result.output

def test_quote_oversized_model(cube_400mm: trimesh.Trimesh, write_model):
    big = write_model(cube_400mm, "big.stl")
    result = runner.invoke(app, ["quote", str(big), "--material", "abs"])
    assert result.exit_code == 0, result.output
    assert "DFM check failed" in result.output

def test_quote_requires_material_or_suggestion(cube_file):
    result = runner.invoke(app, ["quote", str(cube_file)])
    assert result.exit_code == 1

def test_quote_refuses_unprintable_model(cube_file, tmp_path):
    verdict = tmp_path / "printability.json"
    verdict.write_text(json.dumps({"is_printable": False, "is_repairable": True, "errors": ["non-manifold edges"]}))
    out = tmp_path / "quote.json"
    result = runner.invoke(app, ["quote", str(cube_file), "-m", "pla", "--printability-json", str(verdict),
                                 "-o", str(out)])
    assert result.exit_code == 1
    assert "non-manifold edges" in result.output
    assert not out.exists()

def test_quote_printable_verdict_goes_ahead(cube_file, tmp_path):
    verdict = tmp_path / "printability.json"
    verdict.write_text('{"is_printable": true}')
    result = runner.invoke(app, ["quote", str(cube_file), "-m", "pla", "--printability-json", str(verdict)])
    assert result.exit_code == 0, result.output
    assert "Total Price" in result.output

def test_quote_from_settings_suggestion(cube_file, tmp_path):
    suggestion = tmp_path / "suggestion.json"
    suggestion.write_text(json.dumps({"material_id": "petg", "nozzle_diameter_mm": 0.6, "layer_height_mm": 0.28,
                                      "infill_percent": 30, "wall_count": 3}))
    out = tmp_path / "quote.json"
    result = runner.invoke(app, ["quote", str(cube_file), "--suggestion-json", str(suggestion), "-o", str(out)])
    assert result.exit_code == 0, result.output
    quote = QuoteResult.model_validate_json(out.read_text())
    assert quote.material.id == "petg"
    assert quote.request.parameters.nozzle_diameter_mm == 0.6
    assert quote.request.parameters.wall_count == 3

def test_quote_rejects_suggestion_with_material(cube_file, tmp_path):
    suggestion = tmp_path / "suggestion.json"
    suggestion.write_text(json.dumps({"material_id": "petg", "nozzle_diameter_mm": 0.4, "layer_height_mm": 0.2,
                                      "infill_percent": 15, "wall_count": 2}))
    result = runner.invoke(app, ["quote", str(cube_file), "-m", "pla", "--suggestion-json", str(suggestion)])
    assert result.exit_code == 1

def test_quote_rejects_disallowed_suggestion(cube_file, tmp_path):
    suggestion = tmp_path / "suggestion.json"
    suggestion.write_text(json.dumps({"material_id": "pla", "nozzle_diameter_mm": 0.4, "layer_height_mm": 0.2,
                                      "infill_percent": 42, "wall_count": 2}))
    result = runner.invoke(app, ["quote", str(cube_file), "--suggestion-json", str(suggestion)])
    assert result.exit_code == 1
    assert "infill" in result.output
