# processes/print_3d/pricing.py

import math
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from ...core.common_types import Currency, PriceQuote, PricingTier, RoundingPolicy, SimulationResult
from ...core.exceptions import InvalidParameterError
from ...settings_store import validate_pricing_tiers

logger = logging.getLogger(__name__)

TOMAN_ROUNDING_UNIT = 1000
_CENT = Decimal("0.01")


def apply_rounding(amount: float, policy: RoundingPolicy) -> float:
    """Rounds a price for display according to the currency's policy."""
    if policy == RoundingPolicy.CEIL_TO_THOUSAND:
        return float(math.ceil(amount / TOMAN_ROUNDING_UNIT) * TOMAN_ROUNDING_UNIT)
    # Half-up on the exact binary value, the same digits toFixed(2) would print
    return float(Decimal(amount).quantize(_CENT, rounding=ROUND_HALF_UP))


def find_pricing_tier(total_hours: float, tiers: Iterable[PricingTier]) -> Optional[PricingTier]:
    """First tier, by ascending from_hours, whose [from, to) range holds total_hours."""
    for tier in sorted(tiers, key=lambda t: t.from_hours):
        if tier.contains(total_hours):
            return tier
    return None


def price_quote(simulation: SimulationResult,
                price_per_kg: float,
                rate_per_hour: float,
                quantity: int,
                pricing_tiers: Iterable[PricingTier],
                rounding: RoundingPolicy,
                currency: Optional[Currency] = None) -> PriceQuote:
    """
    Converts a simulated print into a price for ``quantity`` parts.

    The tier discount is looked up on cumulative machine hours
    (time_hours x quantity) and is taken off the machine-time cost only;
    material is never discounted.

    Raises:
        InvalidParameterError: If quantity is below 1 or a rate is negative.
        PricingTierError: If the tier table is malformed.
    """
    if quantity < 1:
        raise InvalidParameterError(f"Quantity must be at least 1, got {quantity}.")
    if price_per_kg < 0 or rate_per_hour < 0:
        raise InvalidParameterError(
            f"Rates cannot be negative (price_per_kg={price_per_kg}, rate_per_hour={rate_per_hour})."
        )
    tiers = validate_pricing_tiers(pricing_tiers)

    unit_material_cost = (simulation.material_grams / 1000) * price_per_kg
    unit_machine_cost = simulation.time_hours * rate_per_hour

    total_hours = simulation.time_hours * quantity
    tier = find_pricing_tier(total_hours, tiers)
    if tier is None:
        if tiers:
            logger.warning(f"No pricing tier covers {total_hours:.2f} machine-hours; applying no discount.")
        discount_percent = 0.0
    else:
        discount_percent = tier.discount_percent

    material_cost_total = unit_material_cost * quantity
    machine_cost_total = unit_machine_cost * quantity
    discount_amount = machine_cost_total * (discount_percent / 100)
    final_price = material_cost_total + (machine_cost_total - discount_amount)

    quote = PriceQuote(
        currency=currency,
        quantity=quantity,
        per_unit_cost=apply_rounding(unit_material_cost + unit_machine_cost, rounding),
        total_cost=apply_rounding(final_price, rounding),
        discount_amount=discount_amount,
        discount_percent=discount_percent,
        material_cost_total=material_cost_total,
        machine_cost_total=machine_cost_total,
    )
    logger.info(f"Priced {quantity} part(s) at {total_hours:.2f} machine-hours: "
                f"material={material_cost_total:.2f}, machine={machine_cost_total:.2f}, "
                f"discount={discount_percent:.0f}% ({discount_amount:.2f}), total={quote.total_cost}")
    return quote
