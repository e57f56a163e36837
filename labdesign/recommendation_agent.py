"""
Recommendation Agent

Equipment recommendations for a whole layout or a single zone, upgrade
suggestions, budget-tier recommendations, and complementary equipment.
"""

import logging
import re
from enum import Enum
from typing import Optional, Sequence

from .agent_base import StructuredAgent, describe_dimensions, describe_zones
from .errors import PreconditionError
from .extraction import extract_model
from .models import Layout, RecommendationResponse, Zone, ZoneEquipment

logger = logging.getLogger(__name__)


class BudgetTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


BUDGET_RANGES = {
    BudgetTier.LOW: "Under $10,000",
    BudgetTier.MEDIUM: "$10,000 - $50,000",
    BudgetTier.HIGH: "Above $50,000",
}

RECOMMENDATION_SYSTEM_PROMPT = """You are a laboratory equipment consultant for AI/ML research labs, \
maker spaces and educational facilities.

You recommend equipment based on zone types, existing equipment and lab
requirements: complementary items, missing critical equipment, budget-aware
choices, safety or compliance gaps, and upgrade paths.

Always give practical recommendations with clear priorities."""

RECOMMENDATION_JSON_STRUCTURE = """{
  "recommendations": [
    {
      "name": "string",
      "reason": "string",
      "priority": "high" | "medium" | "low",
      "category": "string",
      "estimatedCost": number (optional),
      "alternatives": ["string"] (optional)
    }
  ],
  "insights": ["string"]
}"""

_NUMBERED_LINE = re.compile(r"^\d+\.\s*")


def parse_recommendations(text: str) -> RecommendationResponse:
    return extract_model(text, RecommendationResponse)


def parse_numbered_list(text: str) -> list[str]:
    """Items of a '1. foo' style list, in order. Other lines are ignored."""
    items = []
    for line in text.splitlines():
        line = line.strip()
        if _NUMBERED_LINE.match(line):
            item = _NUMBERED_LINE.sub("", line).strip()
            if item:
                items.append(item)
    return items


class RecommendationAgent(StructuredAgent):
    SYSTEM_PROMPT = RECOMMENDATION_SYSTEM_PROMPT
    DEFAULT_TEMPERATURE = 0.6

    def recommend(
        self,
        layout: Layout,
        selected_zone: Optional[Zone] = None,
        current_equipment: Sequence[str] = (),
        budget_limit: Optional[float] = None,
        focus_category: Optional[str] = None,
        *,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> RecommendationResponse:
        """
        Recommend equipment for a layout, or for one zone when selected_zone is given.

        Both framings produce the same schema.

        Raises:
            PreconditionError: negative budget_limit.
        """
        if budget_limit is not None and budget_limit < 0:
            raise PreconditionError("budget_limit must be >= 0", {"budget_limit": budget_limit})

        prompt = "Analyze this laboratory layout and recommend appropriate equipment.\n\n"
        if selected_zone is not None:
            equipment = ", ".join(selected_zone.equipment_names()) or "None"
            prompt += (
                "Selected Zone:\n"
                f"- Name: {selected_zone.name}\n"
                f"- Type: {selected_zone.type.value}\n"
                f"- Size: {selected_zone.size.width:g}x{selected_zone.size.height:g}\n"
                f"- Current Equipment: {equipment}\n\n"
                f"Recommend 3-5 additional equipment items that would enhance this "
                f"{selected_zone.type.value} zone."
            )
        else:
            prompt += (
                "Layout Overview:\n"
                f"- Name: {layout.name}\n"
                f"- Total Zones: {len(layout.zones)}\n"
                f"- Dimensions: {describe_dimensions(layout)}\n\n"
                f"Zones:\n{describe_zones(layout)}\n\n"
                "Recommend equipment that is missing or would significantly improve functionality."
            )

        if current_equipment:
            prompt += f"\n\nCurrent Equipment in Lab:\n{', '.join(current_equipment)}"
        if budget_limit is not None:
            prompt += f"\n\nBudget Constraint: Maximum {budget_limit:,.0f} USD"
        if focus_category:
            prompt += f"\n\nFocus Category: {focus_category}"

        prompt += (
            "\n\nAlso provide 2-3 general insights about the equipment setup.\n\n"
            f"Respond ONLY with valid JSON matching this structure:\n{RECOMMENDATION_JSON_STRUCTURE}"
        )

        response = self._run_structured(prompt, parse_recommendations, temperature=temperature, model_key=model_key)
        scope = f"zone '{selected_zone.name}'" if selected_zone is not None else f"layout '{layout.name}'"
        logger.info("RecommendationAgent: %d recommendations for %s", len(response.recommendations), scope)
        return response

    def suggest_upgrades(
        self,
        equipment: Sequence[ZoneEquipment],
        *,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> RecommendationResponse:
        """Upgrade or replacement suggestions for existing equipment."""
        if not equipment:
            raise PreconditionError("equipment list must not be empty")

        lines = []
        for eq in equipment:
            category = eq.category.value if eq.category else "utilities"
            price = f" - ${eq.price:,.0f}" if eq.price is not None else ""
            lines.append(f"- {eq.name} ({category}){price}")

        prompt = (
            "Analyze this existing equipment and suggest upgrades or replacements that would "
            "provide significant improvements.\n\n"
            "Current Equipment:\n" + "\n".join(lines) + "\n\n"
            "For each suggestion explain what to replace, the recommended option, why it matters, "
            "and its priority.\n\n"
            f"Respond ONLY with valid JSON matching this structure:\n{RECOMMENDATION_JSON_STRUCTURE}"
        )
        return self._run_structured(
            prompt,
            parse_recommendations,
            temperature=0.5 if temperature is None else temperature,
            model_key=model_key,
        )

    def recommend_by_budget(
        self,
        zone_type: str,
        tier: str,
        *,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> RecommendationResponse:
        """
        Essential equipment for a zone type within a budget tier (low/medium/high).

        Raises:
            PreconditionError: unknown tier.
        """
        try:
            budget_tier = BudgetTier(tier)
        except ValueError:
            raise PreconditionError(
                f"Unknown budget tier '{tier}'",
                {"allowed": [t.value for t in BudgetTier]},
            ) from None

        prompt = (
            f"Recommend essential equipment for a {zone_type} zone with a "
            f"{BUDGET_RANGES[budget_tier]} budget.\n\n"
            "Provide 5-8 recommendations prioritized by importance, focusing on value for money "
            "at this budget tier. Include estimatedCost for every item.\n\n"
            f"Respond ONLY with valid JSON matching this structure:\n{RECOMMENDATION_JSON_STRUCTURE}"
        )
        return self._run_structured(prompt, parse_recommendations, temperature=temperature, model_key=model_key)

    def find_complementary(
        self,
        equipment_name: str,
        category: str,
        zone_type: Optional[str] = None,
        *,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> list[str]:
        """Equipment frequently used together with `equipment_name`, parsed from a numbered list."""
        prompt = f"Equipment: {equipment_name}\nCategory: {category}\n"
        if zone_type:
            prompt += f"Zone Type: {zone_type}\n"
        prompt += (
            "\nList 3-5 equipment items that are frequently used together with this equipment "
            "in a laboratory.\n\n"
            "Respond with a simple numbered list, one item per line:\n"
            "1. Equipment name\n"
            "2. Equipment name"
        )
        text = self._complete(prompt, temperature=0.5 if temperature is None else temperature, model_key=model_key)
        return parse_numbered_list(text)
