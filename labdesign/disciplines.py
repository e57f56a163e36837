"""
Research disciplines: layout expertise prompts and starter templates.

Each of the five disciplines carries a system-prompt section with its
domain expertise, safety requirements and equipment placement rules, plus
a starter template (zones, recommended equipment, sizing metadata) loaded
from data/discipline_templates.yaml.
"""

import logging
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import Field

from .errors import PreconditionError
from .models import Dimensions, DomainModel, Layout, Position, Size, ZoneType

logger = logging.getLogger(__name__)

TEMPLATES_PATH = Path(__file__).parent / "data" / "discipline_templates.yaml"


class Discipline(str, Enum):
    LIFE_HEALTH = "life-health"
    DEEP_SPACE_OCEAN = "deep-space-ocean"
    SOCIAL_INNOVATION = "social-innovation"
    MICRO_NANO = "micro-nano"
    DIGITAL_INFO = "digital-info"


DISCIPLINE_PROMPTS: dict[Discipline, str] = {
    Discipline.LIFE_HEALTH: """DISCIPLINE: Life & Health (biomedicine, genetic engineering, drug discovery, neuroscience)

Domain expertise:
- Wet lab bench layout with sinks, fume hoods and biosafety cabinets
- Cell culture rooms separated from general traffic, with positive pressure
- Sample flow from receiving to preparation to analysis without backtracking

Safety requirements:
- Biosafety level zoning (BSL-1/BSL-2) with clear clean/dirty separation
- Eyewash stations and safety showers within 10 seconds of wet benches
- Dedicated biohazard waste route away from meeting and office areas

Equipment placement:
- Centrifuges and PCR machines on vibration-isolated benches
- Biosafety cabinets away from doors and supply air diffusers
- -80C freezers near power backup with ventilation for heat load""",

    Discipline.DEEP_SPACE_OCEAN: """DISCIPLINE: Deep Space & Ocean (aerospace engineering, astrophysics, ocean exploration, extreme environments)

Domain expertise:
- Environment simulation chambers (vacuum, pressure, thermal cycling)
- High-throughput data centers for telemetry and simulation workloads
- Sample storage for geological and biological specimens

Safety requirements:
- Pressure vessel exclusion zones and interlocked chamber access
- Cryogen handling with oxygen depletion monitoring
- Heavy equipment floor loading and overhead crane clearances

Equipment placement:
- Simulation chambers on reinforced slabs near utility feeds
- HPC racks in a cooled room separated from wet and dusty areas
- Cryogenic storage close to the loading path with exhaust ventilation""",

    Discipline.SOCIAL_INNOVATION: """DISCIPLINE: Social Innovation (education technology, urban planning, public policy, sustainability)

Domain expertise:
- Flexible collaborative workspaces with reconfigurable furniture
- User research rooms with observation and recording capability
- Prototyping workshops and public-facing showcase areas

Safety requirements:
- Accessible routes and entrances for visitors and study participants
- Maker tool areas separated from open collaboration zones
- Occupancy limits and clear egress for workshops and events

Equipment placement:
- Whiteboard walls and projection along the long walls of workspaces
- 3D printers and laser cutters in ventilated, enclosed maker zones
- Showcase displays near the entrance for visitor flow""",

    Discipline.MICRO_NANO: """DISCIPLINE: Micro & Nano (nanomaterials, quantum computing, microelectronics, precision manufacturing)

Domain expertise:
- Cleanroom classes, gowning sequences and airflow direction
- Vibration and electromagnetic isolation for metrology
- Process flow from preparation to fabrication to characterization

Safety requirements:
- Toxic and pyrophoric gas cabinets with detection and exhaust
- Chemical storage segregated by compatibility
- Emergency shutoffs for process gases at cleanroom exits

Equipment placement:
- Electron microscopes on isolated foundations far from elevators and pumps
- Gloveboxes inside or adjacent to the cleanroom
- Precision balances away from doors and air handling drafts""",

    Discipline.DIGITAL_INFO: """DISCIPLINE: Digital Intelligence (artificial intelligence, big data, IoT, cloud computing, cybersecurity)

Domain expertise:
- GPU server rooms with hot/cold aisle containment
- Developer workstation areas with ergonomic seating and quiet zones
- Device testing and demo labs for IoT and VR/AR work

Safety requirements:
- Clean-agent fire suppression for server rooms
- UPS and power distribution sized for peak GPU load
- Physical access control for compute and network equipment

Equipment placement:
- Server racks near power and cooling infrastructure, away from workstations
- Network cabling paths between server room and developer areas
- Demo equipment near meeting rooms for presentations""",
}

DISCIPLINE_CLOSING = (
    "When designing layouts for this discipline, prioritize the domain-specific "
    "safety requirements and equipment placement guidelines listed above."
)

# Template-only zone kinds and the layout zone type each becomes
TEMPLATE_ZONE_TYPES: dict[str, tuple[ZoneType, str]] = {
    "lab": (ZoneType.WORKSPACE, "Laboratory benches"),
    "maker": (ZoneType.WORKSPACE, "Prototyping tools and workbenches"),
    "cleanroom": (ZoneType.UTILITY, "Controlled cleanroom environment"),
    "common": (ZoneType.MEETING, "Open showcase and gathering space"),
}


# =============================================================================
# TEMPLATE MODELS
# =============================================================================

class TemplateZone(DomainModel):
    id: str
    name: str
    type: str = Field(..., description="Layout zone type or a template-only kind (lab, maker, ...)")
    position: Position
    size: Size
    color: str


class TemplateEquipment(DomainModel):
    id: str
    name: str
    category: str
    priority: Literal["essential", "recommended", "optional"]
    estimated_price: Optional[float] = Field(default=None, ge=0)


class ZoneEquipmentConfig(DomainModel):
    zone_type: str
    items: tuple[TemplateEquipment, ...]


class TemplateLayout(DomainModel):
    dimensions: Dimensions
    zones: tuple[TemplateZone, ...]


class TemplateMeta(DomainModel):
    min_area: float = Field(..., gt=0, description="Square units of the layout")
    capacity: int = Field(..., ge=1, description="People")
    budget_range: tuple[float, float]


class DisciplineTemplate(DomainModel):
    id: Discipline
    name: str
    description: str
    layout: TemplateLayout
    recommended_equipment: tuple[ZoneEquipmentConfig, ...] = Field(default=())
    meta: TemplateMeta

    def equipment_for(self, zone_type: str) -> tuple[TemplateEquipment, ...]:
        for config in self.recommended_equipment:
            if config.zone_type == zone_type:
                return config.items
        return ()


# =============================================================================
# PROMPTS
# =============================================================================

def coerce_discipline(discipline: Discipline | str) -> Discipline:
    try:
        return Discipline(discipline)
    except ValueError:
        raise PreconditionError(
            f"Unknown discipline '{discipline}'",
            {"allowed": [d.value for d in Discipline]},
        ) from None


def available_disciplines() -> list[Discipline]:
    return list(DISCIPLINE_PROMPTS)


def has_discipline_prompt(discipline: Optional[Discipline | str]) -> bool:
    if not discipline:
        return False
    value = discipline.value if isinstance(discipline, Discipline) else discipline
    return value in Discipline._value2member_map_ and Discipline(value) in DISCIPLINE_PROMPTS


def discipline_prompt(discipline: Optional[Discipline | str]) -> str:
    """Discipline section alone, or "" when no discipline is given."""
    if discipline is None:
        return ""
    return DISCIPLINE_PROMPTS[coerce_discipline(discipline)]


# =============================================================================
# TEMPLATES
# =============================================================================

@lru_cache(maxsize=1)
def load_templates() -> dict[Discipline, DisciplineTemplate]:
    """Parse and validate the bundled templates once."""
    with open(TEMPLATES_PATH, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    templates = {}
    for entry in data:
        template = DisciplineTemplate.model_validate(entry)
        templates[template.id] = template
    logger.debug(f"Loaded {len(templates)} discipline templates from {TEMPLATES_PATH.name}")
    return templates


def get_discipline_template(discipline: Discipline | str) -> DisciplineTemplate:
    return load_templates()[coerce_discipline(discipline)]


def template_to_layout(template: DisciplineTemplate) -> Layout:
    """
    Turn a template into a validated Layout with empty equipment lists.

    Template-only zone kinds are mapped onto layout zone types and the kind
    is kept as a zone requirement.
    """
    zones = []
    for zone in template.layout.zones:
        zone_type, requirement = TEMPLATE_ZONE_TYPES.get(zone.type, (zone.type, None))
        zones.append({
            "id": zone.id,
            "name": zone.name,
            "type": zone_type,
            "position": zone.position,
            "size": zone.size,
            "color": zone.color,
            "equipment": [],
            "requirements": [requirement] if requirement else None,
        })
    return Layout.model_validate({
        "name": template.name,
        "description": template.description,
        "dimensions": template.layout.dimensions,
        "zones": zones,
    })


def layout_from_discipline(discipline: Discipline | str) -> Layout:
    return template_to_layout(get_discipline_template(discipline))
