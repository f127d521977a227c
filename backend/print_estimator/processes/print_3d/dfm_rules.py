# processes/print_3d/dfm_rules.py

import time
import logging
from typing import List, Optional

import numpy as np

from ...core.common_types import (
    DFMIssue, DFMIssueType, DFMLevel, DFMStatus, GeometryAnalysis, MaterialProfile, Rotation
)
from ...core import geometry

logger = logging.getLogger(__name__)

# Face indices listed in an issue's visualization hint are capped to keep reports small
MAX_HINT_FACES = 5000

# --- DFM Check Functions ---

def check_degenerate_geometry(geometry_analysis: GeometryAnalysis) -> List[DFMIssue]:
    """A mesh with no facets or no enclosed volume cannot be quoted."""
    issues = []
    if geometry_analysis.facet_count == 0:
        issues.append(DFMIssue(issue_type=DFMIssueType.DEGENERATE_GEOMETRY, level=DFMLevel.CRITICAL,
                               message="Mesh contains no facets.",
                               recommendation="Re-export the model from the CAD tool."))
    elif geometry_analysis.volume_cm3 <= 0:
        issues.append(DFMIssue(issue_type=DFMIssueType.DEGENERATE_GEOMETRY, level=DFMLevel.CRITICAL,
                               message="Mesh encloses no volume (open or flat surface).",
                               recommendation="Make sure the model is a closed solid.",
                               details={"facet_count": geometry_analysis.facet_count}))
    return issues

def check_build_volume(geometry_analysis: GeometryAnalysis, material: MaterialProfile) -> List[DFMIssue]:
    """Compares the oriented bounding box against the material's printable size."""
    issues = []; dims = geometry_analysis.dimensions_mm; limit = material.max_size_mm; exceeded = []
    if dims.x > limit.x: exceeded.append(f"X ({dims.x:.1f}mm > {limit.x:g}mm)")
    if dims.y > limit.y: exceeded.append(f"Y ({dims.y:.1f}mm > {limit.y:g}mm)")
    if dims.z > limit.z: exceeded.append(f"Z ({dims.z:.1f}mm > {limit.z:g}mm)")
    if exceeded:
        issues.append(DFMIssue(issue_type=DFMIssueType.BOUNDING_BOX_LIMIT, level=DFMLevel.CRITICAL,
                               message=f"Model exceeds the {material.name} build volume: {', '.join(exceeded)}.",
                               recommendation=f"Scale, split or reorient the model to fit {limit.x:g}x{limit.y:g}x{limit.z:g} mm, or pick another material.",
                               details={"limit_mm": limit.model_dump(), "size_mm": dims.model_dump()}))
    return issues

def check_overhangs(mesh: geometry.MeshLike, rotation: Optional[Rotation] = None) -> List[DFMIssue]:
    """
    Flags facets that face down past the overhang threshold in the current orientation.

    Facets resting on the build plate face straight down but need no support,
    so they are left out of the warning.
    """
    issues = []; start_time = time.time()
    buffer = geometry.as_mesh_buffer(mesh)
    mask = geometry.classify_overhangs(buffer, rotation=rotation)
    on_bed = geometry.bed_contact_facets(buffer, rotation=rotation)
    mask = mask & ~on_bed
    logger.debug(f"{int(on_bed.sum())} facets rest on the build plate and are not treated as overhangs.")
    if np.any(mask):
        indices = np.flatnonzero(mask)
        areas = geometry.facet_areas(buffer.triangles())
        area_pct = float(areas[mask].sum() / areas.sum() * 100) if areas.sum() > 0 else 0.0
        issues.append(DFMIssue(issue_type=DFMIssueType.SUPPORT_OVERHANG, level=DFMLevel.WARN,
                               message=f"{len(indices)} facets overhang past {geometry.OVERHANG_THRESHOLD_DEG:g}° (~{area_pct:.1f}% of surface area).",
                               recommendation="Enable supports or reorient the model.",
                               visualization_hint={"type": "face_indices", "indices": indices[:MAX_HINT_FACES].tolist()},
                               details={"threshold_deg": geometry.OVERHANG_THRESHOLD_DEG, "facet_count": int(len(indices)), "area%": area_pct}))
    logger.debug(f"Overhang check completed in {time.time() - start_time:.3f}s")
    return issues

def determine_status(issues: List[DFMIssue]) -> DFMStatus:
    """Highest severity wins: CRITICAL/ERROR fail, WARN warns."""
    if any(issue.level in (DFMLevel.CRITICAL, DFMLevel.ERROR) for issue in issues): return DFMStatus.FAIL
    if any(issue.level == DFMLevel.WARN for issue in issues): return DFMStatus.WARNING
    return DFMStatus.PASS
