# processes/print_3d/flow.py

import logging
from dataclasses import dataclass
from typing import Optional

from ...core.common_types import ProcessSettings
from ...core.exceptions import InvalidFlowRateError, InvalidParameterError

logger = logging.getLogger(__name__)

# Extrusion width as a multiple of nozzle diameter (common slicer default)
LINE_WIDTH_FACTOR = 1.2


@dataclass(frozen=True)
class EffectiveSpeeds:
    """Print speeds after flow derating. Travel moves do not extrude and are never derated."""
    wall_mm_s: float
    infill_mm_s: float
    top_bottom_mm_s: float
    travel_mm_s: float


def line_width(nozzle_diameter_mm: float) -> float:
    """Extruded line width for a nozzle, in mm."""
    if nozzle_diameter_mm <= 0:
        raise InvalidParameterError(f"Nozzle diameter must be positive, got {nozzle_diameter_mm}.")
    return nozzle_diameter_mm * LINE_WIDTH_FACTOR


def theoretical_flow_rate(layer_height_mm: float, line_width_mm: float, speed_mm_s: float) -> float:
    """Volumetric flow (mm³/s) needed to extrude one line at the given speed."""
    return layer_height_mm * line_width_mm * speed_mm_s


def speed_scaling_factor(nozzle_diameter_mm: float,
                         layer_height_mm: float,
                         infill_speed_mm_s: float,
                         max_flow_rate_mm3_s: Optional[float] = None) -> float:
    """
    Fraction (0, 1] of the configured speeds the material can actually sustain.

    Infill is the fastest extruding move, so its flow demand is checked against
    the material's ceiling. Without a ceiling no derating is applied.

    Raises:
        InvalidFlowRateError: If a ceiling is given but is not positive.
    """
    if max_flow_rate_mm3_s is None:
        return 1.0
    if max_flow_rate_mm3_s <= 0:
        raise InvalidFlowRateError(
            f"Maximum flow rate must be positive when set, got {max_flow_rate_mm3_s} mm³/s."
        )

    demand = theoretical_flow_rate(layer_height_mm, line_width(nozzle_diameter_mm), infill_speed_mm_s)
    if demand > max_flow_rate_mm3_s:
        factor = max_flow_rate_mm3_s / demand
        logger.debug(f"Flow demand {demand:.2f} mm³/s exceeds {max_flow_rate_mm3_s:.2f} mm³/s; "
                     f"derating speeds to {factor:.3f}")
        return factor
    return 1.0


def effective_speeds(process: ProcessSettings, scaling_factor: float) -> EffectiveSpeeds:
    """Applies the derating factor to every extruding move."""
    return EffectiveSpeeds(
        wall_mm_s=process.speed_wall_mm_s * scaling_factor,
        infill_mm_s=process.speed_infill_mm_s * scaling_factor,
        top_bottom_mm_s=process.speed_top_bottom_mm_s * scaling_factor,
        travel_mm_s=process.speed_travel_mm_s,
    )
