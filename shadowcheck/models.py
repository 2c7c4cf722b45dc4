"""
Pydantic models for the Shadow Compliance Engine
"""

from datetime import date
from enum import Enum
from typing import List, Optional, Literal, Union, Annotated

from pydantic import BaseModel, ConfigDict, Field

from .geometry import Polygon


# ============================================================
# Enumerations
# ============================================================

class UsageCategory(str, Enum):
    RESIDENTIAL_MULTI = "residential_multi"
    RESIDENTIAL_SINGLE = "residential_single"
    COMMERCIAL = "commercial"
    OFFICE = "office"
    OTHER = "other"

    @property
    def is_residential(self) -> bool:
        return self in (UsageCategory.RESIDENTIAL_MULTI, UsageCategory.RESIDENTIAL_SINGLE)


class StructureType(str, Enum):
    WALL_TYPE_RC = "wall_type_rc"
    STEEL_FRAME = "steel_frame"
    TIMBER_FRAME = "timber_frame"
    OTHER = "other"


class ZoneCategory(str, Enum):
    LOW_RISE_EXCLUSIVE_1 = "low_rise_exclusive_residential_1"
    LOW_RISE_EXCLUSIVE_2 = "low_rise_exclusive_residential_2"
    RURAL_RESIDENTIAL = "rural_residential"
    MID_HIGH_RISE_EXCLUSIVE_1 = "mid_high_rise_exclusive_residential_1"
    MID_HIGH_RISE_EXCLUSIVE_2 = "mid_high_rise_exclusive_residential_2"
    RESIDENTIAL_1 = "residential_1"
    RESIDENTIAL_2 = "residential_2"
    QUASI_RESIDENTIAL = "quasi_residential"
    NEIGHBORHOOD_COMMERCIAL = "neighborhood_commercial"
    COMMERCIAL = "commercial"
    QUASI_INDUSTRIAL = "quasi_industrial"
    INDUSTRIAL = "industrial"
    EXCLUSIVE_INDUSTRIAL = "exclusive_industrial"
    URBANIZATION_CONTROL = "urbanization_control"
    UNKNOWN = "unknown"

    @property
    def is_low_rise(self) -> bool:
        return self in (
            ZoneCategory.LOW_RISE_EXCLUSIVE_1,
            ZoneCategory.LOW_RISE_EXCLUSIVE_2,
            ZoneCategory.RURAL_RESIDENTIAL,
        )

    @property
    def is_residential(self) -> bool:
        return self in (
            ZoneCategory.LOW_RISE_EXCLUSIVE_1,
            ZoneCategory.LOW_RISE_EXCLUSIVE_2,
            ZoneCategory.RURAL_RESIDENTIAL,
            ZoneCategory.MID_HIGH_RISE_EXCLUSIVE_1,
            ZoneCategory.MID_HIGH_RISE_EXCLUSIVE_2,
            ZoneCategory.RESIDENTIAL_1,
            ZoneCategory.RESIDENTIAL_2,
            ZoneCategory.QUASI_RESIDENTIAL,
        )


class FootprintShape(str, Enum):
    RECTANGLE = "rectangle"
    L_SHAPE = "l_shape"
    U_SHAPE = "u_shape"


class DistanceBand(str, Enum):
    NEAR = "near"
    FAR = "far"


class ComplianceStatus(str, Enum):
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"
    NOT_APPLICABLE = "not_applicable"
    ERROR = "error"


Priority = Literal["critical", "high", "medium", "low"]
CostTier = Literal["low", "medium", "high"]

PRIORITY_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}


# ============================================================
# Inputs
# ============================================================

class SiteLocation(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: str = ""  # display only


class BuildingParameters(BaseModel):
    """Scalar building description; validated by the massing generator"""
    usage: UsageCategory
    structure: StructureType = StructureType.OTHER
    floors: int
    building_area_sqm: float
    total_floor_area_sqm: Optional[float] = None
    max_height_m: Optional[float] = None
    units: Optional[int] = None  # residential only
    foundation_height_m: Optional[float] = None


class NeighborParcel(BaseModel):
    zone: str
    floor_area_ratio: float
    distance_m: float


class RegulationOverrides(BaseModel):
    """Previously confirmed values from the project store"""
    measurement_height_m: Optional[float] = None
    near_limit_hours: Optional[float] = None
    far_limit_hours: Optional[float] = None
    target_building: Optional[str] = None


# ============================================================
# Regulation
# ============================================================

class ZoneRegulation(BaseModel):
    model_config = ConfigDict(frozen=True)

    zone: str
    category: ZoneCategory
    is_regulated: bool = True
    target_height_m: float = 10.0
    target_floors: Optional[int] = None  # only low-rise zones trigger on floor count
    measurement_height_m: float = 4.0
    window_start_hour: float = 8.0
    window_end_hour: float = 16.0
    near_limit_hours: float = 0.0  # 5-10 m band
    far_limit_hours: float = 0.0   # beyond 10 m
    target_building: str = ""
    borrowed_from: Optional[str] = None
    degraded_confidence: bool = False
    note: Optional[str] = None


class PrimaryResolution(BaseModel):
    """Regulation computed from the decision table, an override, or a neighbour"""
    kind: Literal["primary"] = "primary"
    origin: Literal["table", "override", "borrowed", "not_regulated"]
    regulation: ZoneRegulation


class FallbackResolution(BaseModel):
    """Conservative regulation used when the zone could not be resolved"""
    kind: Literal["fallback"] = "fallback"
    reason: str
    regulation: ZoneRegulation


RegulationResolution = Annotated[
    Union[PrimaryResolution, FallbackResolution],
    Field(discriminator="kind")
]


# ============================================================
# Massing
# ============================================================

class StructuralGrid(BaseModel):
    column_spacing_m: float
    beam_depth_m: float
    slab_thickness_m: float
    default_floor_height_m: float


class FloorMassing(BaseModel):
    level: int  # 1-based
    footprint: Polygon
    elevation_m: float  # slab level
    height_m: float
    is_setback: bool = False

    @property
    def top_m(self) -> float:
        return self.elevation_m + self.height_m


class SetbackInfo(BaseModel):
    start_floor: int
    ratio: float
    setback_distance_m: float


class Balcony(BaseModel):
    floor: int
    x: float  # centre of the facade-side edge
    y: float
    width_m: float
    depth_m: float
    elevation_m: float

    @property
    def polygon(self) -> Polygon:
        # Hangs south of the facade line at y
        return Polygon.rectangle(self.x, self.y - self.depth_m / 2, self.width_m, self.depth_m)


class Foundation(BaseModel):
    footprint: Polygon
    top_m: float
    depth_m: float


class BuildingMassing(BaseModel):
    model_config = ConfigDict(frozen=True)

    usage: UsageCategory
    shape: FootprintShape
    floors: List[FloorMassing]
    width_m: float
    depth_m: float
    total_height_m: float
    structural_grid: StructuralGrid
    setback: Optional[SetbackInfo] = None
    balconies: List[Balcony] = Field(default_factory=list)
    foundation: Foundation

    @property
    def base_footprint(self) -> Polygon:
        return self.floors[0].footprint

    @property
    def floor_count(self) -> int:
        return len(self.floors)


# ============================================================
# Simulation output
# ============================================================

class SunPosition(BaseModel):
    altitude_deg: float
    azimuth_deg: float

    @property
    def above_horizon(self) -> bool:
        return self.altitude_deg > 0


class EphemerisStep(BaseModel):
    hour: float
    altitude_deg: float
    azimuth_deg: float


class ShadowSamplePoint(BaseModel):
    x: float
    y: float
    distance_to_boundary_m: float
    shadow_flags: List[int]  # one entry per window step, 1 = shadowed
    shadow_hours: float
    band: DistanceBand
    applicable_limit_hours: float
    is_compliant: bool
    violation_hours: float


class TimeStepCompliance(BaseModel):
    hour: float
    violation_points: int
    compliant: bool


class GeometryStats(BaseModel):
    effective_footprint_sqm: float = 0.0
    shadow_casting_volume_m3: float = 0.0
    critical_floors: List[int] = Field(default_factory=list)


class ShadowMap(BaseModel):
    """Shadow hours per grid cell, rows ordered south to north"""
    origin_x: float
    origin_y: float
    cell_size_m: float
    hours: List[List[float]]


# ============================================================
# Recommendations
# ============================================================

class ExpectedImprovement(BaseModel):
    compliance_rate_improvement: float
    shadow_reduction_area_sqm: float
    affected_floor_area_sqm: float


class _RecommendationBase(BaseModel):
    priority: Priority
    description: str
    expected_improvement: ExpectedImprovement
    implementation_cost: CostTier


class HeightReductionRecommendation(_RecommendationBase):
    type: Literal["height_reduction"] = "height_reduction"
    reduction_m: float
    mean_violation_hours: float


class SetbackRecommendation(_RecommendationBase):
    type: Literal["setback"] = "setback"
    setback_distance_m: float
    nearest_violation_distance_m: float


class FloorReductionRecommendation(_RecommendationBase):
    type: Literal["floor_reduction"] = "floor_reduction"
    from_floor: int
    floors_removed: int


class ShapeModificationRecommendation(_RecommendationBase):
    type: Literal["shape_modification"] = "shape_modification"
    current_aspect_ratio: float
    suggested_aspect_ratio: float


class BalconyAdjustmentRecommendation(_RecommendationBase):
    type: Literal["balcony_adjustment"] = "balcony_adjustment"
    balcony_count: int
    suggested_depth_m: float


Recommendation = Annotated[
    Union[
        HeightReductionRecommendation,
        SetbackRecommendation,
        FloorReductionRecommendation,
        ShapeModificationRecommendation,
        BalconyAdjustmentRecommendation,
    ],
    Field(discriminator="type")
]


# ============================================================
# Compliance result
# ============================================================

class ComplianceResult(BaseModel):
    """Complete outcome of one compliance run"""
    status: ComplianceStatus
    is_compliant: bool
    regulation: ZoneRegulation
    resolution: Optional[RegulationResolution] = None
    reference_date: Optional[date] = None
    fingerprint: Optional[str] = None

    sample_points: List[ShadowSamplePoint] = Field(default_factory=list)
    time_series: List[TimeStepCompliance] = Field(default_factory=list)
    peak_violation_time: Optional[float] = None
    minimum_compliance_time: Optional[float] = None
    geometry_stats: GeometryStats = Field(default_factory=GeometryStats)
    shadow_map: Optional[ShadowMap] = None

    compliance_rate: float = 100.0
    max_violation_hours: float = 0.0
    violation_area_sqm: float = 0.0
    recommendations: List[Recommendation] = Field(default_factory=list)

    error_reason: Optional[str] = None
    quick_recheck: bool = False

    @property
    def violating_points(self) -> List[ShadowSamplePoint]:
        return [p for p in self.sample_points if not p.is_compliant]
