"""
Core data models for the lab design pipeline.

These models define the artifacts that flow between agents:
- Layouts (dimensions, zones, connections)
- Budget line items, summaries and analyses
- Safety issues and analyses
- Equipment recommendations
- Parallel-universe variants
- Emotion scripts and emotion-driven design results

Wire names are camelCase (efficiencyScore, costBreakdown); Python attributes
are snake_case. Every model is frozen once validated and sequence fields are
tuples, so agents can share a layout across threads without copying it.
"""

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

SUM_TOLERANCE = 0.01


class DomainModel(BaseModel):
    """Base for all artifacts: camelCase aliases, accepts either name, immutable."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_wire(self) -> dict:
        """Dump with camelCase keys, omitting unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# ENUMS
# =============================================================================

class Unit(str, Enum):
    METERS = "m"
    FEET = "ft"


class ZoneType(str, Enum):
    COMPUTE = "compute"
    WORKSPACE = "workspace"
    MEETING = "meeting"
    STORAGE = "storage"
    UTILITY = "utility"
    ENTRANCE = "entrance"


class ConnectionType(str, Enum):
    DOOR = "door"
    PASSAGE = "passage"
    CABLE = "cable"


class EquipmentCategory(str, Enum):
    COMPUTE = "compute"
    FURNITURE = "furniture"
    TOOLS = "tools"
    SAFETY = "safety"
    UTILITIES = "utilities"
    ELECTRONICS = "electronics"
    SOFTWARE = "software"


class Currency(str, Enum):
    USD = "USD"
    CNY = "CNY"
    EUR = "EUR"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class InsightType(str, Enum):
    WARNING = "warning"
    INFO = "info"
    SUCCESS = "success"
    OPTIMIZATION = "optimization"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SafetyCategory(str, Enum):
    FIRE_SAFETY = "fire_safety"
    ELECTRICAL = "electrical"
    ACCESSIBILITY = "accessibility"
    ERGONOMICS = "ergonomics"
    EMERGENCY = "emergency"
    EQUIPMENT = "equipment"
    ENVIRONMENTAL = "environmental"
    GENERAL = "general"


class RiskLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"


class EmotionType(str, Enum):
    AWE = "awe"
    CURIOSITY = "curiosity"
    FOCUS = "focus"
    EXCITEMENT = "excitement"
    CALM = "calm"
    COLLABORATION = "collaboration"
    CREATIVITY = "creativity"
    SAFETY = "safety"


class SpatialCategory(str, Enum):
    HEIGHT = "height"
    LIGHTING = "lighting"
    COLOR = "color"
    ACOUSTICS = "acoustics"
    MATERIAL = "material"
    LAYOUT = "layout"
    FURNITURE = "furniture"


# Lower rank sorts first
SEVERITY_RANK: dict[Severity, int] = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
}

ZONE_COLORS: dict[ZoneType, str] = {
    ZoneType.COMPUTE: "#22d3ee",
    ZoneType.WORKSPACE: "#8b5cf6",
    ZoneType.MEETING: "#10b981",
    ZoneType.STORAGE: "#f59e0b",
    ZoneType.UTILITY: "#6b7280",
    ZoneType.ENTRANCE: "#ec4899",
}


def zone_color(zone_type: ZoneType | str) -> str:
    """Default display color for a zone type."""
    return ZONE_COLORS[ZoneType(zone_type)]


def risk_level_for_score(score: float) -> RiskLevel:
    """
    Map an overall safety score (0-100) to its risk band.

    >= 80 low, >= 60 moderate, >= 40 high, otherwise critical.
    """
    if score >= 80:
        return RiskLevel.LOW
    if score >= 60:
        return RiskLevel.MODERATE
    if score >= 40:
        return RiskLevel.HIGH
    return RiskLevel.CRITICAL


# =============================================================================
# LAYOUT
# =============================================================================

class Dimensions(DomainModel):
    width: float = Field(..., gt=0, description="Room width in `unit`")
    height: float = Field(..., gt=0, description="Room depth in `unit`")
    unit: Unit = Field(..., description="Length unit, fixed for the whole layout")


class Position(DomainModel):
    x: float = Field(..., ge=0)
    y: float = Field(..., ge=0)


class Size(DomainModel):
    width: float = Field(..., ge=1)
    height: float = Field(..., ge=1)


class ZoneEquipment(DomainModel):
    """A structured equipment assignment. Only these entries carry a price."""
    name: str = Field(..., min_length=1)
    equipment_id: Optional[str] = Field(default=None, description="Catalog ID, if known")
    quantity: int = Field(default=1, ge=1)
    price: Optional[float] = Field(default=None, ge=0, description="Unit price")
    category: Optional[EquipmentCategory] = None


class Zone(DomainModel):
    """A rectangular functional region of a layout."""
    id: str = Field(..., min_length=1, description="Unique zone ID within the layout")
    name: str = Field(..., description="Human-readable zone name")
    type: ZoneType
    position: Position
    size: Size
    color: str = Field(..., description="Display color, e.g. '#22d3ee'")
    equipment: Optional[tuple[Union[ZoneEquipment, str], ...]] = Field(
        default=None,
        description="Plain labels or structured equipment assignments",
    )
    requirements: Optional[tuple[str, ...]] = None

    @model_validator(mode="before")
    @classmethod
    def default_color(cls, data):
        """Fill a missing color from the zone-type palette."""
        if isinstance(data, dict) and not data.get("color"):
            zone_type = data.get("type")
            if isinstance(zone_type, str) and zone_type in ZoneType._value2member_map_:
                data = {**data, "color": zone_color(zone_type)}
        return data

    def structured_equipment(self) -> list[ZoneEquipment]:
        return [e for e in (self.equipment or []) if isinstance(e, ZoneEquipment)]

    def equipment_names(self) -> list[str]:
        return [e if isinstance(e, str) else e.name for e in (self.equipment or [])]


class Connection(DomainModel):
    from_zone: str = Field(..., alias="from", description="Source zone ID")
    to_zone: str = Field(..., alias="to", description="Target zone ID")
    type: ConnectionType


class Layout(DomainModel):
    """
    A complete floor plan.

    Invariants:
    - zone IDs are unique
    - every connection endpoint names an existing zone
    """
    name: str
    description: str
    dimensions: Dimensions
    zones: tuple[Zone, ...]
    connections: Optional[tuple[Connection, ...]] = None
    notes: Optional[tuple[str, ...]] = None

    @field_validator("zones")
    @classmethod
    def validate_unique_zone_ids(cls, zones: tuple[Zone, ...]) -> tuple[Zone, ...]:
        seen = set()
        for zone in zones:
            if zone.id in seen:
                raise ValueError(f"Duplicate zone id '{zone.id}'")
            seen.add(zone.id)
        return zones

    @field_validator("connections")
    @classmethod
    def validate_connection_endpoints(cls, connections, info: ValidationInfo):
        # zones failed validation; its own error is already reported
        if connections is None or "zones" not in info.data:
            return connections
        zone_ids = {z.id for z in info.data["zones"]}
        for conn in connections:
            for endpoint in (conn.from_zone, conn.to_zone):
                if endpoint not in zone_ids:
                    raise ValueError(f"Connection references unknown zone id '{endpoint}'")
        return connections

    def zone_names(self) -> list[str]:
        return [z.name for z in self.zones]

    def zone_by_id(self, zone_id: str) -> Optional[Zone]:
        for zone in self.zones:
            if zone.id == zone_id:
                return zone
        return None


# =============================================================================
# BUDGET
# =============================================================================

class BudgetItem(DomainModel):
    """One priced equipment line, derived from a zone's structured equipment."""
    equipment_id: Optional[str] = None
    equipment_name: str
    category: EquipmentCategory = EquipmentCategory.UTILITIES
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., ge=0)
    total_price: float = Field(..., ge=0)
    zone_id: str
    zone_name: str


class BudgetSummary(DomainModel):
    """Deterministic cost totals for a layout. cost_by_zone is keyed by zone name."""
    total_cost: float = Field(..., ge=0)
    currency: Currency = Currency.USD
    cost_by_category: dict[str, float]
    cost_by_zone: dict[str, float]
    item_count: int = Field(..., ge=0)
    items: tuple[BudgetItem, ...]


class CostBreakdown(DomainModel):
    by_category: dict[str, float]
    by_zone: dict[str, float]


class BudgetInsight(DomainModel):
    type: InsightType
    title: str
    description: str
    impact: Priority


class BudgetOptimization(DomainModel):
    title: str
    description: str
    potential_savings: float = Field(..., ge=0)
    difficulty: Difficulty


class BudgetForecast(DomainModel):
    six_months: float
    one_year: float
    three_years: float
    assumptions: tuple[str, ...] = Field(default=())


class ReturnOnInvestment(DomainModel):
    payback_period: str
    return_on_investment: float
    assumptions: tuple[str, ...] = Field(default=())


class BudgetAnalysis(DomainModel):
    """
    Generated budget analysis.

    Both breakdowns must sum to total_cost within SUM_TOLERANCE.
    """
    total_cost: float = Field(..., ge=0)
    cost_breakdown: CostBreakdown
    insights: tuple[BudgetInsight, ...] = Field(default=())
    optimizations: tuple[BudgetOptimization, ...] = Field(default=())
    forecast: Optional[BudgetForecast] = None
    roi: Optional[ReturnOnInvestment] = None
    currency: Currency = Currency.USD

    @field_validator("cost_breakdown")
    @classmethod
    def validate_breakdown_sums(cls, breakdown: CostBreakdown, info: ValidationInfo) -> CostBreakdown:
        if "total_cost" not in info.data:
            return breakdown
        total = info.data["total_cost"]
        for label, values in (("byCategory", breakdown.by_category), ("byZone", breakdown.by_zone)):
            subtotal = sum(values.values())
            if abs(subtotal - total) > SUM_TOLERANCE:
                raise ValueError(f"{label} sums to {subtotal:.2f}, expected totalCost {total:.2f}")
        return breakdown


# =============================================================================
# SAFETY
# =============================================================================

class SafetyIssue(DomainModel):
    id: str
    severity: Severity
    category: SafetyCategory
    title: str
    description: str
    location: Optional[str] = None
    recommendation: str
    regulation: Optional[str] = None


class SafetyAnalysis(DomainModel):
    """
    Generated safety analysis.

    risk_level must match the overall_score band (see risk_level_for_score).
    """
    overall_score: float = Field(..., ge=0, le=100)
    risk_level: RiskLevel
    issues: tuple[SafetyIssue, ...] = Field(default=())
    compliant_regulations: tuple[str, ...] = Field(default=())
    non_compliant_regulations: tuple[str, ...] = Field(default=())
    summary: str
    recommendations: tuple[str, ...] = Field(default=())

    @field_validator("risk_level")
    @classmethod
    def validate_risk_band(cls, risk_level: RiskLevel, info: ValidationInfo) -> RiskLevel:
        if "overall_score" not in info.data:
            return risk_level
        expected = risk_level_for_score(info.data["overall_score"])
        if risk_level != expected:
            raise ValueError(
                f"riskLevel '{risk_level.value}' does not match overallScore "
                f"{info.data['overall_score']} (expected '{expected.value}')"
            )
        return risk_level


class RegulationCheck(DomainModel):
    compliant: bool
    issues: tuple[str, ...] = Field(default=())
    recommendations: tuple[str, ...] = Field(default=())


# =============================================================================
# RECOMMENDATIONS
# =============================================================================

class EquipmentRecommendation(DomainModel):
    equipment_id: Optional[str] = None
    name: str
    reason: str
    priority: Priority
    category: str
    estimated_cost: Optional[float] = Field(default=None, ge=0)
    alternatives: Optional[tuple[str, ...]] = None


class RecommendationResponse(DomainModel):
    recommendations: tuple[EquipmentRecommendation, ...]
    insights: Optional[tuple[str, ...]] = None


# =============================================================================
# PARALLEL UNIVERSES
# =============================================================================

class UniverseVariant(DomainModel):
    """One alternate design. Not persisted."""
    name: str
    theme: str
    description: str
    layout: Layout
    pros: tuple[str, ...] = Field(default=())
    cons: tuple[str, ...] = Field(default=())
    estimated_cost: float = Field(..., gt=0)
    efficiency_score: float = Field(..., ge=0, le=1)


# =============================================================================
# EMOTION DESIGN
# =============================================================================

class EmotionNode(DomainModel):
    id: str
    emotion: EmotionType
    intensity: float = Field(..., ge=0, le=1)
    timestamp: float = Field(..., ge=0, description="Minutes from the start of the visit")
    description: Optional[str] = None


class EmotionScript(DomainModel):
    """Ordered emotional beats for a visit. The design agent requires at least one node."""
    id: str
    name: str
    nodes: tuple[EmotionNode, ...]
    total_duration: float = Field(..., ge=0, description="Minutes")


class SpatialElement(DomainModel):
    category: SpatialCategory
    recommendation: str
    rationale: str
    priority: Priority


class SuggestedZone(DomainModel):
    name: str
    purpose: str
    target_emotions: tuple[EmotionType, ...]
    suggested_size: Size
    key_features: tuple[str, ...] = Field(default=())


class EmotionDesignResult(DomainModel):
    emotion_script: EmotionScript
    spatial_elements: tuple[SpatialElement, ...]
    suggested_zones: tuple[SuggestedZone, ...]
    design_narrative: str


# =============================================================================
# DESIGN REVIEW
# =============================================================================

class DesignReview(DomainModel):
    """Safety and budget analyses computed over the same layout snapshot."""
    layout_name: str
    safety: SafetyAnalysis
    budget: BudgetAnalysis
    budget_summary: BudgetSummary
