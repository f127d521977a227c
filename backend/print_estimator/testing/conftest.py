# testing/conftest.py

import json
import logging
from pathlib import Path

import numpy as np
import pytest
import trimesh

from print_estimator.core import geometry
from print_estimator.core.common_types import (
    Dimensions, MaterialProfile, Price, PricingTier, ProcessSettings
)
from print_estimator.processes.print_3d.processor import Print3DProcessor
from print_estimator.settings_store import DEFAULT_SETTINGS_PATH, StoreSettings, load_store_settings

logger = logging.getLogger(__name__)

# --- Mesh Fixtures ---

@pytest.fixture(scope="session")
def cube_20mm() -> trimesh.Trimesh:
    """Closed 20 mm cube centered on the origin."""
    return trimesh.creation.box(extents=(20.0, 20.0, 20.0))

@pytest.fixture(scope="session")
def cube_100mm() -> trimesh.Trimesh:
    return trimesh.creation.box(extents=(100.0, 100.0, 100.0))

@pytest.fixture(scope="session")
def box_30x20x10() -> trimesh.Trimesh:
    return trimesh.creation.box(extents=(30.0, 20.0, 10.0))

@pytest.fixture(scope="session")
def cube_400mm() -> trimesh.Trimesh:
    """Larger than every default material's build volume."""
    return trimesh.creation.box(extents=(400.0, 400.0, 400.0))

@pytest.fixture(scope="session")
def cantilever() -> trimesh.Trimesh:
    """10 x 10 x 20 mm post with a 30 mm wide slab on top; the slab's underside hangs in the air."""
    post = trimesh.creation.box(extents=(10.0, 10.0, 20.0))
    slab = trimesh.creation.box(extents=(30.0, 10.0, 4.0),
                                transform=trimesh.transformations.translation_matrix([0.0, 0.0, 12.0]))
    return trimesh.util.concatenate([post, slab])

@pytest.fixture
def open_plane() -> geometry.MeshBuffer:
    """A single flat square: two facets and no enclosed volume."""
    positions = np.array([[0, 0, 0], [10, 0, 0], [10, 10, 0], [0, 10, 0]], dtype=float)
    return geometry.MeshBuffer(positions=positions, indices=np.array([[0, 1, 2], [0, 2, 3]]))

@pytest.fixture
def write_model(tmp_path):
    """Exports a mesh to a temporary file and returns its path."""
    def _writer(mesh: trimesh.Trimesh, filename: str = "model.stl") -> Path:
        file_path = tmp_path / filename
        mesh.export(str(file_path))
        logger.debug(f"Wrote test model: {file_path}")
        return file_path
    return _writer

# --- Settings Fixtures ---

@pytest.fixture(scope="session")
def store() -> StoreSettings:
    return load_store_settings()

@pytest.fixture(scope="session")
def default_settings_data() -> dict:
    with open(DEFAULT_SETTINGS_PATH, "r", encoding="utf-8") as f:
        return json.load(f)

@pytest.fixture
def write_settings(tmp_path):
    def _writer(data, filename: str = "settings.json") -> Path:
        file_path = tmp_path / filename
        file_path.write_text(data if isinstance(data, str) else json.dumps(data))
        return file_path
    return _writer

@pytest.fixture(scope="session")
def pla(store: StoreSettings) -> MaterialProfile:
    return store.get_material("pla")

@pytest.fixture
def process_settings() -> ProcessSettings:
    return ProcessSettings()

@pytest.fixture
def unlimited_material() -> MaterialProfile:
    """PLA-like material without a flow ceiling, so speeds are never derated."""
    return MaterialProfile(
        id="test_pla",
        name="Test PLA",
        price_per_kg=Price(toman=1700000, usd=28),
        density_g_cm3=1.24,
        max_size_mm=Dimensions(x=380, y=380, z=380),
        speed_modifier_percent=0,
        max_flow_rate_mm3_s=None,
    )

@pytest.fixture
def two_tiers():
    return [
        PricingTier(id="t1", from_hours=0, to_hours=500, discount_percent=0),
        PricingTier(id="t2", from_hours=500, to_hours=1500, discount_percent=10),
    ]

@pytest.fixture(scope="session")
def print3d_processor(store: StoreSettings) -> Print3DProcessor:
    return Print3DProcessor(store)
