# core/common_types.py
import math
import time
from enum import Enum
from typing import Dict, List, Optional, Any

from pydantic import BaseModel, ConfigDict, Field

# --- Currency & Rounding Enums ---

class RoundingPolicy(str, Enum):
    """How a final price is rounded for display."""
    CEIL_TO_THOUSAND = "ceil_to_thousand"  # Always rounds up to the next 1000 units
    TWO_DECIMALS = "two_decimals"          # Rounds to two fractional digits

class Currency(str, Enum):
    """Currencies the settings store carries prices for."""
    TOMAN = "toman"
    USD = "usd"

    @property
    def rounding_policy(self) -> RoundingPolicy:
        if self is Currency.TOMAN:
            return RoundingPolicy.CEIL_TO_THOUSAND
        return RoundingPolicy.TWO_DECIMALS

# --- DFM Related Enums and Models ---

class DFMStatus(str, Enum):
    """Overall DFM result status."""
    PASS = "Pass"
    WARNING = "Warning"
    FAIL = "Fail"

class DFMLevel(str, Enum):
    """Severity level of a specific DFM issue."""
    INFO = "Info"        # Useful information, not a problem
    WARN = "Warning"     # Printable, but may need supports or reorientation
    ERROR = "Error"      # Needs fixing before printing
    CRITICAL = "Critical"  # Cannot be quoted as-is (empty mesh, too large)

class DFMIssueType(str, Enum):
    """Categorization of DFM issues."""
    FILE_VALIDATION = "File Validation"
    GEOMETRY_ERROR = "Geometry Error"
    CONFIGURATION = "Material / Configuration"
    DEGENERATE_GEOMETRY = "Insufficient Geometry"
    BOUNDING_BOX_LIMIT = "Exceeds Bounding Box Limits"
    SUPPORT_OVERHANG = "Overhangs / Support Needed"

class DFMIssue(BaseModel):
    """Represents a single identified DFM issue."""
    issue_type: DFMIssueType = Field(..., description="Category of the issue.")
    level: DFMLevel = Field(..., description="Severity of the issue.")
    message: str = Field(..., description="Human-readable description of the issue.")
    recommendation: Optional[str] = Field(None, description="Suggestion on how to fix the issue.")
    visualization_hint: Optional[Any] = Field(None, description="Data hint for highlighting the issue area (e.g. face indices).")
    details: Dict[str, Any] = Field(default_factory=dict, description="Additional quantitative details.")

class DFMReport(BaseModel):
    """Consolidated report of all DFM checks for a model."""
    status: DFMStatus = Field(..., description="Overall pass/warning/fail status.")
    issues: List[DFMIssue] = Field(default_factory=list, description="List of identified DFM issues.")
    analysis_time_sec: float = Field(..., description="Time taken for DFM analysis in seconds.")

# --- Geometry Related Models ---

class Rotation(BaseModel):
    """Euler rotation in degrees, applied about X, then Y, then Z (intrinsic)."""
    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @property
    def is_identity(self) -> bool:
        return self.x == 0.0 and self.y == 0.0 and self.z == 0.0

    def radians(self) -> tuple:
        return (math.radians(self.x), math.radians(self.y), math.radians(self.z))

class Dimensions(BaseModel):
    """Axis-aligned extents in millimeters."""
    model_config = ConfigDict(frozen=True)

    x: float = Field(..., ge=0)
    y: float = Field(..., ge=0)
    z: float = Field(..., ge=0)

    def exceeds(self, limit: "Dimensions") -> bool:
        return self.x > limit.x or self.y > limit.y or self.z > limit.z

class GeometryAnalysis(BaseModel):
    """Volume and bounding dimensions measured directly from a triangle mesh."""
    model_config = ConfigDict(frozen=True)

    volume_cm3: float = Field(..., ge=0, description="Enclosed volume in cubic cm (absolute signed volume).")
    dimensions_mm: Dimensions = Field(..., description="Bounding box size after rotation, in mm.")
    facet_count: int = Field(0, ge=0, description="Number of triangles analyzed.")

    @property
    def is_degenerate(self) -> bool:
        """True when there is not enough geometry to quote (no facets or no volume)."""
        return self.facet_count == 0 or self.volume_cm3 <= 0.0

# --- Material & Process Models ---

class Price(BaseModel):
    """An amount expressed in every supported currency."""
    model_config = ConfigDict(frozen=True)

    toman: float = Field(..., ge=0)
    usd: float = Field(..., ge=0)

    def for_currency(self, currency: Currency) -> float:
        return self.toman if currency == Currency.TOMAN else self.usd

class MaterialProfile(BaseModel):
    """Read-only material record borrowed from the settings store for one calculation."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique identifier for the material (e.g., 'pla').")
    name: str = Field(..., description="User-friendly name (e.g., 'PLA').")
    price_per_kg: Price = Field(..., description="Filament price per kilogram.")
    density_g_cm3: float = Field(..., gt=0, description="Density in grams per cubic centimeter.")
    max_size_mm: Dimensions = Field(..., description="Largest printable bounding box for this material.")
    speed_modifier_percent: float = Field(0.0, description="Percent removed from total print time (negative slows the print).")
    max_flow_rate_mm3_s: Optional[float] = Field(None, description="Maximum volumetric flow rate; None disables derating.")

class ProcessSettings(BaseModel):
    """Global slicer-style process settings, passed explicitly into each calculation."""
    model_config = ConfigDict(frozen=True)

    speed_wall_mm_s: float = Field(70.0, gt=0)
    speed_infill_mm_s: float = Field(100.0, gt=0)
    speed_top_bottom_mm_s: float = Field(50.0, gt=0)
    speed_travel_mm_s: float = Field(200.0, gt=0)
    acceleration_overhead_factor: float = Field(1.15, gt=0, description="Multiplier for acceleration/deceleration time.")
    support_overhead_percent: float = Field(10.0, ge=0, le=100, description="Support percent used when no estimate is supplied.")

class PrintParameters(BaseModel):
    """Caller-chosen slicer parameters for one quote."""
    model_config = ConfigDict(frozen=True)

    nozzle_diameter_mm: float = Field(..., gt=0)
    layer_height_mm: float = Field(..., gt=0)
    infill_percent: float = Field(..., ge=0, le=100)
    wall_count: int = Field(..., ge=0)

# --- Simulation Models ---

class SimulationBreakdown(BaseModel):
    """Intermediate quantities of one simulated print (per unit)."""
    model_config = ConfigDict(frozen=True)

    line_width_mm: float
    layer_count: float
    layer_area_mm2: float
    perimeter_mm: float
    wall_path_mm: float
    infill_path_mm: float
    solid_layer_path_mm: float
    top_bottom_layer_count: int
    wall_time_s: float
    infill_time_s: float
    top_bottom_time_s: float
    travel_time_s: float
    support_time_s: float
    wall_volume_cm3: float
    infill_volume_cm3: float
    top_bottom_volume_cm3: float
    support_volume_cm3: float

class SimulationResult(BaseModel):
    """Deterministic estimate of print duration and consumed material for one unit."""
    model_config = ConfigDict(frozen=True)

    time_hours: float = Field(..., ge=0)
    material_grams: float = Field(..., ge=0)
    speed_scaling_factor: float = Field(..., gt=0, le=1)
    breakdown: Optional[SimulationBreakdown] = None

# --- Costing and Quoting Models ---

class PricingTier(BaseModel):
    """Discount applied to machine time when cumulative hours fall in [from_hours, to_hours)."""
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    from_hours: float = Field(..., ge=0)
    to_hours: Optional[float] = Field(None, description="Exclusive upper bound; None means unbounded.")
    discount_percent: float = Field(..., ge=0, le=100)

    @property
    def upper_bound(self) -> float:
        return math.inf if self.to_hours is None else self.to_hours

    def contains(self, hours: float) -> bool:
        return self.from_hours <= hours < self.upper_bound

class PriceQuote(BaseModel):
    """Final price for a quantity of identical parts."""
    model_config = ConfigDict(frozen=True)

    currency: Optional[Currency] = None
    quantity: int
    per_unit_cost: float = Field(..., description="Material + machine cost for a single part, rounded.")
    total_cost: float = Field(..., description="Final price for all parts after discount, rounded.")
    discount_amount: float = Field(..., description="Discount taken off the machine-time cost (unrounded).")
    discount_percent: float
    material_cost_total: float
    machine_cost_total: float

class QuoteRequest(BaseModel):
    """Everything a caller chooses for one quote."""
    material_id: str
    parameters: PrintParameters
    quantity: int = Field(1, ge=1)
    currency: Currency = Currency.USD
    rotation: Optional[Rotation] = None
    support_percent: Optional[float] = Field(None, ge=0, le=100, description="Externally estimated support overhead.")

class QuoteResult(BaseModel):
    """Final quote result including DFM, simulation, and price."""
    quote_id: str = Field(default_factory=lambda: f"Q-{int(time.time()*1000)}", description="Unique identifier for this quote request.")
    file_name: Optional[str] = Field(None, description="Original filename of the model, if loaded from disk.")
    material: Optional[MaterialProfile] = None
    request: QuoteRequest
    geometry: Optional[GeometryAnalysis] = None
    dfm_report: DFMReport
    simulation: Optional[SimulationResult] = Field(None, description="Only present if DFM status is not FAIL.")
    price: Optional[PriceQuote] = Field(None, description="Only present if DFM status is not FAIL.")
    estimated_process_time_str: Optional[str] = Field(None, description="Human-readable estimated print time (e.g., '2h 30m').")
    processing_time_sec: float = Field(..., description="Total time taken for the entire quote generation in seconds.")
    error_message: Optional[str] = Field(None, description="Error message if the quote generation failed.")
