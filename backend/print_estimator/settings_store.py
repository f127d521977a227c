# settings_store.py

import copy
import json
import math
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .core.common_types import (
    Dimensions, MaterialProfile, Price, PricingTier, PrintParameters, ProcessSettings
)
from .core.exceptions import (
    ConfigurationError, InvalidFlowRateError, MaterialNotFoundError, PricingTierError
)

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "default_settings.json"

# Fallbacks for records written before these fields existed
LEGACY_DEFAULT_USD_PER_KG = 25.0
LEGACY_DEFAULT_MAX_FLOW_RATE = 20.0

_CAMEL_CASE_KEYS = {
    "machineRatePerHour": "machine_rate_per_hour",
    "pricingTiers": "pricing_tiers",
    "layerHeights": "layer_heights",
    "wallCounts": "wall_counts",
}
_FLAT_PROCESS_KEYS = (
    "speed_wall_mm_s", "speed_infill_mm_s", "speed_top_bottom_mm_s", "speed_travel_mm_s",
    "support_overhead_percent", "acceleration_overhead_factor",
)


def validate_pricing_tiers(tiers: Iterable[PricingTier]) -> List[PricingTier]:
    """
    Checks that the tiers form one contiguous run of half-open hour ranges.

    Returns the tiers sorted by ``from_hours``.

    Raises:
        PricingTierError: On an empty or inverted range, an overlap, or a gap
            between consecutive tiers.
    """
    ordered = sorted(tiers, key=lambda t: t.from_hours)
    for tier in ordered:
        if tier.to_hours is not None and tier.to_hours <= tier.from_hours:
            raise PricingTierError(
                f"Pricing tier {tier.id or tier.from_hours} has to_hours ({tier.to_hours}) "
                f"not above from_hours ({tier.from_hours})."
            )

    for prev, nxt in zip(ordered, ordered[1:]):
        if math.isclose(prev.upper_bound, nxt.from_hours, abs_tol=1e-9):
            continue
        if nxt.from_hours < prev.upper_bound:
            raise PricingTierError(
                f"Pricing tiers overlap: [{prev.from_hours}, {prev.upper_bound}) and "
                f"[{nxt.from_hours}, {nxt.upper_bound})."
            )
        raise PricingTierError(
            f"Pricing tiers leave a gap between {prev.upper_bound} and {nxt.from_hours} hours."
        )
    return ordered


class Option(BaseModel):
    """One allowed value for a slicer parameter (nozzle, layer height, infill, walls)."""
    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    value: float


class StoreSettings(BaseModel):
    """Material and process tables as supplied by the settings store."""
    model_config = ConfigDict(frozen=True)

    materials: List[MaterialProfile] = Field(..., min_length=1)
    nozzles: List[Option]
    layer_heights: List[Option]
    infills: List[Option]
    wall_counts: List[Option]
    pricing_tiers: List[PricingTier]
    machine_rate_per_hour: Price
    process: ProcessSettings = Field(default_factory=ProcessSettings)

    @model_validator(mode="after")
    def _check_tables(self):
        validate_pricing_tiers(self.pricing_tiers)
        for material in self.materials:
            if material.max_flow_rate_mm3_s is not None and material.max_flow_rate_mm3_s <= 0:
                raise InvalidFlowRateError(
                    f"Material '{material.id}' has a non-positive max flow rate ({material.max_flow_rate_mm3_s})."
                )
        return self

    def get_material(self, material_id: str) -> MaterialProfile:
        for material in self.materials:
            if material.id == material_id:
                return material
        available_ids = [m.id for m in self.materials]
        raise MaterialNotFoundError(
            f"Material '{material_id}' is not available. Available materials: {available_ids}"
        )

    def validate_selection(self, parameters: PrintParameters) -> None:
        """
        Ensures every chosen parameter is one of the store's allowed values.

        Raises:
            ConfigurationError: Naming the first parameter that is not allowed.
        """
        checks = (
            ("nozzle diameter", parameters.nozzle_diameter_mm, self.nozzles),
            ("layer height", parameters.layer_height_mm, self.layer_heights),
            ("infill", parameters.infill_percent, self.infills),
            ("wall count", parameters.wall_count, self.wall_counts),
        )
        for label, value, options in checks:
            if not any(math.isclose(value, option.value, abs_tol=1e-9) for option in options):
                allowed = [option.value for option in options]
                raise ConfigurationError(f"Unsupported {label} {value:g}. Allowed values: {allowed}")

    def overall_max_size(self) -> Dimensions:
        """Largest build box across all materials, per axis."""
        return Dimensions(
            x=max(m.max_size_mm.x for m in self.materials),
            y=max(m.max_size_mm.y for m in self.materials),
            z=max(m.max_size_mm.z for m in self.materials),
        )


def _read_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.error(f"Settings file not found: {path}")
        raise ConfigurationError(f"Settings file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Error decoding JSON from settings file {path}: {e}", exc_info=True)
        raise ConfigurationError(f"Invalid JSON in settings file: {path}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings file {path} must contain a JSON object.")
    return data


def migrate_legacy_settings(raw: Dict[str, Any], defaults: Dict[str, Any]) -> Dict[str, Any]:
    """
    Upgrades records written by older versions of the settings store.

    - camelCase table names and flat speed fields are mapped onto the current layout
    - single-currency prices become per-currency prices, borrowing the default USD value
    - materials without a max flow rate get their default (or 20 mm³/s)
    - tables missing entirely are filled from the defaults
    """
    data = copy.deepcopy(raw)

    for old_key, new_key in _CAMEL_CASE_KEYS.items():
        if old_key in data and new_key not in data:
            data[new_key] = data.pop(old_key)

    flat_process = {key: data.pop(key) for key in _FLAT_PROCESS_KEYS if key in data}
    if flat_process:
        process = dict(defaults.get("process", {}))
        process.update(data.get("process", {}))
        process.update(flat_process)
        data["process"] = process

    rate = data.get("machine_rate_per_hour")
    if isinstance(rate, (int, float)):
        logger.warning("Migrating single-currency machine rate to per-currency rates.")
        data["machine_rate_per_hour"] = {"toman": rate, "usd": defaults["machine_rate_per_hour"]["usd"]}

    default_materials = {m["id"]: m for m in defaults.get("materials", [])}
    for material in data.get("materials", []):
        default_material = default_materials.get(material.get("id"))
        price = material.get("price_per_kg")
        if isinstance(price, (int, float)):
            usd = default_material["price_per_kg"]["usd"] if default_material else LEGACY_DEFAULT_USD_PER_KG
            logger.warning(f"Migrating single-currency price for material '{material.get('id')}'.")
            material["price_per_kg"] = {"toman": price, "usd": usd}
        if material.get("max_flow_rate_mm3_s") is None and "max_flow_rate_mm3_s" not in material:
            material["max_flow_rate_mm3_s"] = (
                default_material.get("max_flow_rate_mm3_s", LEGACY_DEFAULT_MAX_FLOW_RATE)
                if default_material else LEGACY_DEFAULT_MAX_FLOW_RATE
            )

    # JSON has no Infinity; an unbounded last tier is stored as null (or a huge number)
    for tier in data.get("pricing_tiers", []):
        to_hours = tier.get("to_hours")
        if isinstance(to_hours, (int, float)) and math.isinf(to_hours):
            tier["to_hours"] = None

    for key, value in defaults.items():
        data.setdefault(key, copy.deepcopy(value))

    return data


def load_store_settings(path: Optional[Union[str, Path]] = None) -> StoreSettings:
    """
    Loads and validates the settings store table.

    Args:
        path: JSON file to read. The packaged defaults are used when omitted.

    Raises:
        ConfigurationError: If the file is missing, not valid JSON, or fails validation.
    """
    defaults = _read_json(DEFAULT_SETTINGS_PATH)
    if path is None:
        raw = defaults
        source = "packaged defaults"
    else:
        source = str(path)
        raw = migrate_legacy_settings(_read_json(Path(path)), defaults)

    try:
        store = StoreSettings.model_validate(raw)
    except ValidationError as e:
        logger.error(f"Invalid settings in {source}: {e}")
        raise ConfigurationError(f"Invalid settings in {source}: {e}") from e

    logger.info(f"Loaded {len(store.materials)} materials and {len(store.pricing_tiers)} pricing tiers from {source}.")
    return store
