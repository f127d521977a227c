# processes/print_3d/__init__.py

# This file makes the 'print_3d' directory a Python sub-package.

from .processor import Print3DProcessor
from .flow import line_width, speed_scaling_factor, effective_speeds
from .simulator import simulate_print, simulate_with_parameters
from .pricing import price_quote, validate_pricing_tiers, find_pricing_tier, apply_rounding
from .dfm_rules import (
    check_degenerate_geometry,
    check_build_volume,
    check_overhangs,
    determine_status
)

__all__ = [
    "Print3DProcessor",
    "line_width",
    "speed_scaling_factor",
    "effective_speeds",
    "simulate_print",
    "simulate_with_parameters",
    "price_quote",
    "validate_pricing_tiers",
    "find_pricing_tier",
    "apply_rounding",
    "check_degenerate_geometry",
    "check_build_volume",
    "check_overhangs",
    "determine_status"
]
