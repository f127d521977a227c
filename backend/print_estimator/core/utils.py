# core/utils.py

import math
import logging
from typing import Optional

logger = logging.getLogger(__name__)

def format_print_time(time_hours: Optional[float]) -> str:
    """
    Formats a print duration given in hours as whole hours and rounded minutes
    (e.g., "12h 34m").

    Args:
        time_hours: The duration in hours.

    Returns:
        A formatted string, "N/A" if the input is missing, negative or not finite.
    """
    if time_hours is None or not isinstance(time_hours, (int, float)) or time_hours < 0 or not math.isfinite(time_hours):
        return "N/A"

    hours = math.floor(time_hours)
    minutes = int(round((time_hours - hours) * 60))
    if minutes == 60:  # e.g. 1.9999h
        hours += 1
        minutes = 0

    return f"{hours}h {minutes}m"

def format_money(amount: float, currency_code: str) -> str:
    """Formats an amount for display; toman has no fractional part."""
    if currency_code.lower() == "toman":
        return f"{amount:,.0f} Toman"
    return f"${amount:,.2f}"
