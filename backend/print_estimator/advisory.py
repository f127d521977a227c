# advisory.py

import json
import logging
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .core.common_types import MaterialProfile, PrintParameters, ProcessSettings, Rotation
from .core.exceptions import AdvisoryResponseError
from .settings_store import StoreSettings

logger = logging.getLogger(__name__)

# --- Advisory Records ---
# The classifier is non-deterministic; only these fields are trusted, and only after validation.

class PrintabilityVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_printable: bool = Field(..., description="Whether the model can be printed as uploaded.")
    is_repairable: bool = Field(False, description="Whether the problems could be fixed by a repair pass.")
    errors: List[str] = Field(default_factory=list, description="Reasons the model is not printable.")

class SupportEstimate(BaseModel):
    model_config = ConfigDict(frozen=True)

    support_overhead_percent: float = Field(..., ge=0, le=100, description="Extra extrusion for supports, as a percent.")
    reasoning: Optional[str] = None

class OrientationSuggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    rotation_degrees: Rotation = Field(..., description="Euler rotation (degrees, XYZ) to apply before printing.")
    reasoning: Optional[str] = None

class SettingsSuggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    material_id: str
    nozzle_diameter_mm: float = Field(..., gt=0)
    layer_height_mm: float = Field(..., gt=0)
    infill_percent: float = Field(..., ge=0, le=100)
    wall_count: int = Field(..., ge=0)
    reasoning: Optional[str] = None


AdvisoryRecord = TypeVar("AdvisoryRecord", bound=BaseModel)


def parse_advisory(model: Type[AdvisoryRecord], payload: Union[str, bytes, Dict[str, Any]]) -> AdvisoryRecord:
    """
    Validates a classifier response against one of the advisory records.

    Args:
        model: The record type expected (e.g. SupportEstimate).
        payload: Raw JSON text/bytes or an already-decoded dict.

    Raises:
        AdvisoryResponseError: If the payload is not JSON or does not match the record.
    """
    if isinstance(payload, (str, bytes, bytearray)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            logger.error(f"Advisory response for {model.__name__} is not valid JSON: {e}")
            raise AdvisoryResponseError(f"{model.__name__}: response is not valid JSON ({e}).") from e

    if not isinstance(payload, dict):
        raise AdvisoryResponseError(f"{model.__name__}: expected a JSON object, got {type(payload).__name__}.")

    try:
        record = model.model_validate(payload)
    except ValidationError as e:
        logger.error(f"Advisory response failed validation for {model.__name__}: {e}")
        raise AdvisoryResponseError(f"{model.__name__}: {e}") from e

    logger.debug(f"Parsed advisory record: {record!r}")
    return record


def resolve_support_percent(estimate: Optional[SupportEstimate], process: ProcessSettings) -> float:
    """Support overhead to simulate with: the classifier's estimate, else the store default."""
    if estimate is None:
        logger.info(f"No support estimate available; using default {process.support_overhead_percent:g}%.")
        return process.support_overhead_percent
    return estimate.support_overhead_percent


def settings_suggestion_to_parameters(suggestion: SettingsSuggestion,
                                      store: StoreSettings) -> Tuple[PrintParameters, MaterialProfile]:
    """
    Turns a suggested setting set into parameters the simulator accepts.

    Raises:
        MaterialNotFoundError: If the suggested material is not in the store.
        ConfigurationError: If a suggested value is not one of the store's allowed options.
    """
    material = store.get_material(suggestion.material_id)
    parameters = PrintParameters(
        nozzle_diameter_mm=suggestion.nozzle_diameter_mm,
        layer_height_mm=suggestion.layer_height_mm,
        infill_percent=suggestion.infill_percent,
        wall_count=suggestion.wall_count,
    )
    store.validate_selection(parameters)
    return parameters, material
