# processes/print_3d/simulator.py

import math
import logging
from typing import Any, Mapping, Optional, Union

from ...core.common_types import (
    Dimensions, GeometryAnalysis, MaterialProfile, PrintParameters,
    ProcessSettings, SimulationBreakdown, SimulationResult
)
from ...core.exceptions import InvalidParameterError, MissingGeometryError
from ...core import utils
from .flow import effective_speeds, line_width, speed_scaling_factor

logger = logging.getLogger(__name__)

# Travel heuristic: one move across half the bounding-box footprint (x + y) per layer
TRAVEL_DIAGONAL_FRACTION = 0.5
# Top and bottom skins each get this many solid layers' worth of thickness
SKIN_SIDES = 2


def _coerce_dimensions(dimensions_mm: Union[Dimensions, Mapping[str, Any], None]) -> Optional[Dimensions]:
    if dimensions_mm is None or isinstance(dimensions_mm, Dimensions):
        return dimensions_mm
    return Dimensions.model_validate(dimensions_mm)


def _check_parameters(nozzle_mm: float, layer_height_mm: float, infill_percent: float,
                      wall_count: int, support_percent: float, material: MaterialProfile):
    if nozzle_mm <= 0:
        raise InvalidParameterError(f"Nozzle diameter must be positive, got {nozzle_mm}.")
    if layer_height_mm <= 0:
        raise InvalidParameterError(f"Layer height must be positive, got {layer_height_mm}.")
    if not 0 <= infill_percent <= 100:
        raise InvalidParameterError(f"Infill must be between 0 and 100 %, got {infill_percent}.")
    if wall_count < 0:
        raise InvalidParameterError(f"Wall count cannot be negative, got {wall_count}.")
    if not 0 <= support_percent <= 100:
        raise InvalidParameterError(f"Support overhead must be between 0 and 100 %, got {support_percent}.")
    if material.speed_modifier_percent >= 100:
        raise InvalidParameterError(
            f"Material '{material.id}' speed modifier {material.speed_modifier_percent}% leaves no print time."
        )


def simulate_print(volume_cm3: Optional[float],
                   dimensions_mm: Union[Dimensions, Mapping[str, Any], None],
                   material: MaterialProfile,
                   nozzle_mm: float,
                   layer_height_mm: float,
                   infill_percent: float,
                   wall_count: int,
                   process_settings: ProcessSettings,
                   support_percent: float) -> SimulationResult:
    """
    Estimates print time and filament mass for one part.

    Every layer is treated as the same rectangular silhouette: its area is the
    average cross-section (volume / height) and its outline is the bounding box
    perimeter. Walls, sparse infill, solid top/bottom skins, travel and support
    are timed separately, then scaled by the acceleration overhead and the
    material's speed modifier.

    Args:
        volume_cm3: Enclosed model volume.
        dimensions_mm: Bounding box of the model in its print orientation.
        material: Material profile (density, flow ceiling, speed modifier).
        nozzle_mm, layer_height_mm, infill_percent, wall_count: Slicer parameters.
        process_settings: Speeds and overhead factors.
        support_percent: Support overhead (0-100) supplied by the caller.

    Returns:
        A SimulationResult with a per-component breakdown.

    Raises:
        MissingGeometryError: If volume or dimensions are absent or zero-sized.
        InvalidParameterError: If a process parameter is out of range.
        InvalidFlowRateError: If the material's flow ceiling is not positive.
    """
    dims = _coerce_dimensions(dimensions_mm)
    if volume_cm3 is None or dims is None:
        raise MissingGeometryError("Cannot simulate a print without model volume and dimensions.")
    if volume_cm3 <= 0 or dims.z <= 0:
        raise MissingGeometryError(
            f"Cannot simulate a print of degenerate geometry (volume={volume_cm3} cm³, height={dims.z} mm)."
        )
    _check_parameters(nozzle_mm, layer_height_mm, infill_percent, wall_count, support_percent, material)

    width = line_width(nozzle_mm)
    scaling = speed_scaling_factor(nozzle_mm, layer_height_mm, process_settings.speed_infill_mm_s,
                                   material.max_flow_rate_mm3_s)
    speeds = effective_speeds(process_settings, scaling)

    # --- Layer geometry ---
    layer_count = dims.z / layer_height_mm
    layer_area_mm2 = (volume_cm3 * 1000.0) / dims.z
    perimeter_mm = 2 * (dims.x + dims.y)

    # --- Path lengths per layer ---
    wall_path_mm = perimeter_mm * wall_count
    wall_area_mm2 = wall_path_mm * width
    # Thin parts: walls alone can cover the whole footprint, leaving no infill
    infill_area_mm2 = max(0.0, layer_area_mm2 - wall_area_mm2)
    infill_path_mm = (infill_area_mm2 * (infill_percent / 100)) / width
    top_bottom_thickness_mm = nozzle_mm * wall_count
    top_bottom_layers = math.ceil(top_bottom_thickness_mm / layer_height_mm) * SKIN_SIDES
    solid_layer_path_mm = layer_area_mm2 / width

    # --- Time (seconds) ---
    wall_time_s = (wall_path_mm * layer_count) / speeds.wall_mm_s
    infill_time_s = (infill_path_mm * layer_count) / speeds.infill_mm_s
    top_bottom_time_s = (solid_layer_path_mm * top_bottom_layers) / speeds.top_bottom_mm_s
    travel_time_s = layer_count * ((dims.x + dims.y) * TRAVEL_DIAGONAL_FRACTION) / speeds.travel_mm_s

    extrusion_time_s = wall_time_s + infill_time_s + top_bottom_time_s
    support_time_s = extrusion_time_s * (support_percent / 100)
    base_time_s = extrusion_time_s + travel_time_s + support_time_s

    speed_modifier = 1 - (material.speed_modifier_percent / 100)
    total_time_s = base_time_s * process_settings.acceleration_overhead_factor * speed_modifier
    time_hours = total_time_s / 3600

    # --- Material (mm³ -> cm³ -> g) ---
    wall_volume_mm3 = wall_path_mm * width * layer_height_mm * layer_count
    infill_volume_mm3 = infill_path_mm * width * layer_height_mm * layer_count
    top_bottom_volume_mm3 = solid_layer_path_mm * width * layer_height_mm * top_bottom_layers

    printed_volume_cm3 = (wall_volume_mm3 + infill_volume_mm3 + top_bottom_volume_mm3) / 1000
    support_volume_cm3 = printed_volume_cm3 * (support_percent / 100)
    material_grams = (printed_volume_cm3 + support_volume_cm3) * material.density_g_cm3

    breakdown = SimulationBreakdown(
        line_width_mm=width,
        layer_count=layer_count,
        layer_area_mm2=layer_area_mm2,
        perimeter_mm=perimeter_mm,
        wall_path_mm=wall_path_mm,
        infill_path_mm=infill_path_mm,
        solid_layer_path_mm=solid_layer_path_mm,
        top_bottom_layer_count=top_bottom_layers,
        wall_time_s=wall_time_s,
        infill_time_s=infill_time_s,
        top_bottom_time_s=top_bottom_time_s,
        travel_time_s=travel_time_s,
        support_time_s=support_time_s,
        wall_volume_cm3=wall_volume_mm3 / 1000,
        infill_volume_cm3=infill_volume_mm3 / 1000,
        top_bottom_volume_cm3=top_bottom_volume_mm3 / 1000,
        support_volume_cm3=support_volume_cm3,
    )

    logger.info(f"Simulated print ({material.id}, {nozzle_mm}mm nozzle, {layer_height_mm}mm layers, "
                f"{infill_percent}% infill, {wall_count} walls, {support_percent}% support): "
                f"{utils.format_print_time(time_hours)}, {material_grams:.2f} g, speed factor {scaling:.3f}")

    return SimulationResult(
        time_hours=time_hours,
        material_grams=material_grams,
        speed_scaling_factor=scaling,
        breakdown=breakdown,
    )


def simulate_with_parameters(geometry: GeometryAnalysis,
                             material: MaterialProfile,
                             parameters: PrintParameters,
                             process_settings: ProcessSettings,
                             support_percent: float) -> SimulationResult:
    """Runs simulate_print from the typed geometry and parameter records."""
    return simulate_print(
        volume_cm3=geometry.volume_cm3,
        dimensions_mm=geometry.dimensions_mm,
        material=material,
        nozzle_mm=parameters.nozzle_diameter_mm,
        layer_height_mm=parameters.layer_height_mm,
        infill_percent=parameters.infill_percent,
        wall_count=parameters.wall_count,
        process_settings=process_settings,
        support_percent=support_percent,
    )
