# core/geometry.py

import os
import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np
import trimesh
from trimesh import transformations

from .common_types import Dimensions, GeometryAnalysis, Rotation
from .exceptions import FileFormatError, GeometryProcessingError

logger = logging.getLogger(__name__)

# Build direction. Layers stack along Z, so "up" for overhangs is +Z as well.
WORLD_UP = (0.0, 0.0, 1.0)
# 90 degrees (vertical wall) + 61 degrees past vertical. Only facets facing further
# down than this are flagged; vertical walls never are.
OVERHANG_THRESHOLD_DEG = 151.0

SUPPORTED_EXTENSIONS = (".stl", ".obj", ".ply", ".off", ".3mf")

_NORMAL_EPS = 1e-12
# Facets whose vertices all sit this close to the lowest point rest on the build plate
BED_CONTACT_TOLERANCE_MM = 0.01


@dataclass
class MeshBuffer:
    """
    Triangle soup as handed over by a mesh loader.

    ``positions`` is an (N, 3) array (a flat buffer of 3*N floats is also accepted).
    Without ``indices`` every three consecutive positions form one facet. With
    ``indices`` (flat or (M, 3)) each index triple references the shared vertex pool.
    """
    positions: np.ndarray
    indices: Optional[np.ndarray] = None

    def __post_init__(self):
        positions = np.asarray(self.positions, dtype=np.float64)
        if positions.ndim == 1 or positions.size == 0:
            if positions.size % 3 != 0:
                raise GeometryProcessingError(f"Position buffer length {positions.size} is not a multiple of 3.")
            positions = positions.reshape(-1, 3)
        if positions.ndim != 2 or positions.shape[1] != 3:
            raise GeometryProcessingError(f"Positions must have shape (N, 3), got {positions.shape}.")
        if not np.all(np.isfinite(positions)):
            raise GeometryProcessingError("Position buffer contains non-finite coordinates.")
        self.positions = positions

        if self.indices is not None:
            indices = np.asarray(self.indices)
            if indices.size and not np.issubdtype(indices.dtype, np.integer):
                raise GeometryProcessingError(f"Index buffer must be integral, got dtype {indices.dtype}.")
            if indices.size % 3 != 0:
                raise GeometryProcessingError(f"Index buffer length {indices.size} is not a multiple of 3.")
            indices = indices.astype(np.int64).reshape(-1, 3)
            if indices.size and (indices.min() < 0 or indices.max() >= len(positions)):
                raise GeometryProcessingError(
                    f"Index buffer references vertices outside 0..{len(positions) - 1}."
                )
            self.indices = indices
        elif len(positions) % 3 != 0:
            raise GeometryProcessingError(
                f"Non-indexed mesh needs a multiple of 3 positions, got {len(positions)}."
            )

    @property
    def facet_count(self) -> int:
        if self.indices is not None:
            return len(self.indices)
        return len(self.positions) // 3

    def triangles(self) -> np.ndarray:
        """Returns the facets as an (F, 3, 3) array of corner points."""
        if self.indices is not None:
            return self.positions[self.indices]
        return self.positions.reshape(-1, 3, 3)

    @classmethod
    def from_trimesh(cls, mesh: trimesh.Trimesh) -> "MeshBuffer":
        return cls(positions=np.array(mesh.vertices, dtype=np.float64),
                   indices=np.array(mesh.faces, dtype=np.int64))


MeshLike = Union[MeshBuffer, trimesh.Trimesh]


def as_mesh_buffer(mesh: MeshLike) -> MeshBuffer:
    if isinstance(mesh, MeshBuffer):
        return mesh
    if isinstance(mesh, trimesh.Trimesh):
        return MeshBuffer.from_trimesh(mesh)
    raise GeometryProcessingError(f"Unsupported mesh object: {type(mesh).__name__}")


def load_mesh(file_path: str) -> MeshBuffer:
    """
    Loads a model file into a triangle buffer using trimesh.

    Multi-body files (scenes) are concatenated into one buffer.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        FileFormatError: If the file extension is unsupported.
        GeometryProcessingError: If trimesh fails to load the mesh or it is empty.
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Input file not found: {file_path}")

    file_name = os.path.basename(file_path)
    file_ext = os.path.splitext(file_name)[1].lower()
    if file_ext not in SUPPORTED_EXTENSIONS:
        raise FileFormatError(
            f"Unsupported file format: '{file_ext}'. Use one of {', '.join(SUPPORTED_EXTENSIONS)}."
        )

    logger.info(f"Loading mesh from: {file_name} (Extension: {file_ext})")
    try:
        mesh = trimesh.load(file_path, force="mesh")
    except Exception as e:
        logger.error(f"Trimesh failed to load '{file_name}': {e}", exc_info=True)
        raise GeometryProcessingError(f"Failed to load mesh file '{file_name}': {e}") from e

    if not isinstance(mesh, trimesh.Trimesh):
        raise GeometryProcessingError(f"Loaded object from '{file_name}' is not a triangle mesh.")
    if len(mesh.vertices) == 0 or len(mesh.faces) == 0:
        raise GeometryProcessingError(
            f"Mesh loaded from '{file_name}' has no vertices or faces. It might be empty or corrupted."
        )

    logger.info(f"Loaded {file_name}: {len(mesh.vertices)} vertices, {len(mesh.faces)} faces")
    return MeshBuffer.from_trimesh(mesh)


def rotation_matrix(rotation: Optional[Rotation] = None) -> np.ndarray:
    """3x3 matrix for an intrinsic X->Y->Z Euler rotation (R = Rx @ Ry @ Rz)."""
    if rotation is None or rotation.is_identity:
        return np.eye(3)
    ax, ay, az = rotation.radians()
    return transformations.euler_matrix(ax, ay, az, axes="rxyz")[:3, :3]


def signed_volume_mm3(triangles: np.ndarray) -> float:
    """Sum of the signed tetrahedron volumes p1 . (p2 x p3) / 6 over all facets."""
    if len(triangles) == 0:
        return 0.0
    p1, p2, p3 = triangles[:, 0], triangles[:, 1], triangles[:, 2]
    return float(np.einsum("ij,ij->i", p1, np.cross(p2, p3)).sum() / 6.0)


def bounding_dimensions(positions: np.ndarray, rotation: Optional[Rotation] = None) -> Dimensions:
    """Axis-aligned extents of the (rotated) vertex pool."""
    if len(positions) == 0:
        return Dimensions(x=0.0, y=0.0, z=0.0)
    rotated = positions @ rotation_matrix(rotation).T
    size = rotated.max(axis=0) - rotated.min(axis=0)
    return Dimensions(x=float(size[0]), y=float(size[1]), z=float(size[2]))


def facet_normals(triangles: np.ndarray) -> np.ndarray:
    """Unit normals from (p2 - p1) x (p3 - p1). Zero-area facets get a zero vector."""
    if len(triangles) == 0:
        return np.zeros((0, 3))
    raw = np.cross(triangles[:, 1] - triangles[:, 0], triangles[:, 2] - triangles[:, 0])
    lengths = np.linalg.norm(raw, axis=1)
    normals = np.zeros_like(raw)
    valid = lengths > _NORMAL_EPS
    normals[valid] = raw[valid] / lengths[valid, np.newaxis]
    return normals


def classify_overhangs(mesh: MeshLike,
                       rotation: Optional[Rotation] = None,
                       threshold_deg: float = OVERHANG_THRESHOLD_DEG,
                       up: Sequence[float] = WORLD_UP) -> np.ndarray:
    """
    Flags facets whose rotated normal is more than ``threshold_deg`` away from ``up``.

    Returns a boolean array with one entry per facet. The result is advisory
    (highlighting / support context) and is not used by volume or time estimates.
    """
    buffer = as_mesh_buffer(mesh)
    normals = facet_normals(buffer.triangles())
    if len(normals) == 0:
        return np.zeros(0, dtype=bool)

    up_vec = np.asarray(up, dtype=np.float64)
    up_len = np.linalg.norm(up_vec)
    if up_len < _NORMAL_EPS:
        raise GeometryProcessingError("Up vector must be non-zero.")
    up_vec = up_vec / up_len

    world_normals = normals @ rotation_matrix(rotation).T
    has_normal = np.linalg.norm(world_normals, axis=1) > 0.5
    cosines = np.clip(world_normals @ up_vec, -1.0, 1.0)
    angles_deg = np.degrees(np.arccos(cosines))
    return has_normal & (angles_deg > threshold_deg)


def facet_areas(triangles: np.ndarray) -> np.ndarray:
    if len(triangles) == 0:
        return np.zeros(0)
    return 0.5 * np.linalg.norm(
        np.cross(triangles[:, 1] - triangles[:, 0], triangles[:, 2] - triangles[:, 0]), axis=1
    )


def bed_contact_facets(mesh: MeshLike,
                       rotation: Optional[Rotation] = None,
                       tolerance_mm: float = BED_CONTACT_TOLERANCE_MM) -> np.ndarray:
    """
    Flags facets lying on the build plate: every rotated vertex is within
    ``tolerance_mm`` of the rotated model's lowest Z.
    """
    buffer = as_mesh_buffer(mesh)
    triangles = buffer.triangles()
    if len(triangles) == 0:
        return np.zeros(0, dtype=bool)
    z = (triangles @ rotation_matrix(rotation).T)[:, :, 2]
    return np.all(z <= z.min() + tolerance_mm, axis=1)


def overhang_area_fraction(mesh: MeshLike, rotation: Optional[Rotation] = None,
                           threshold_deg: float = OVERHANG_THRESHOLD_DEG) -> float:
    """Share (0..1) of the total surface area that is flagged as overhang."""
    buffer = as_mesh_buffer(mesh)
    triangles = buffer.triangles()
    if len(triangles) == 0:
        return 0.0
    areas = facet_areas(triangles)
    total = areas.sum()
    if total <= 0:
        return 0.0
    mask = classify_overhangs(buffer, rotation=rotation, threshold_deg=threshold_deg)
    return float(areas[mask].sum() / total)


def analyze_geometry(mesh: MeshLike, rotation: Optional[Rotation] = None) -> GeometryAnalysis:
    """
    Measures enclosed volume (cm³) and bounding dimensions (mm) of a triangle mesh.

    The volume is exact for a closed, consistently wound surface and does not
    depend on where the mesh sits in space. Closure is not verified: an open or
    inverted mesh yields a wrong volume rather than an error. A mesh without
    facets yields a zero result whose ``is_degenerate`` is True.
    """
    buffer = as_mesh_buffer(mesh)
    triangles = buffer.triangles()

    volume_cm3 = abs(signed_volume_mm3(triangles)) / 1000.0
    dimensions = bounding_dimensions(buffer.positions, rotation)
    result = GeometryAnalysis(volume_cm3=volume_cm3, dimensions_mm=dimensions,
                              facet_count=buffer.facet_count)

    if result.is_degenerate:
        logger.warning(f"Degenerate geometry: {buffer.facet_count} facets, volume {volume_cm3:.6f} cm³")
    else:
        logger.debug(f"Geometry: volume={volume_cm3:.3f} cm³, "
                     f"dims={dimensions.x:.2f}x{dimensions.y:.2f}x{dimensions.z:.2f} mm")
    return result
