"""
Parallel-Universe Agent

Explores a design decision point by generating 2-3 alternative variants of a
base layout, and fuses several alternatives back into one Layout.

Variants are ephemeral: they are returned to the caller and never stored.
"""

import logging
from enum import Enum
from typing import Optional, Sequence, Union

from .agent_base import StructuredAgent, layout_to_json
from .errors import PreconditionError, SchemaViolationError
from .extraction import find_json_region, parse_json_region, validate_payload_list
from .layout_agent import LAYOUT_JSON_STRUCTURE, LAYOUT_RULES, parse_layout
from .models import Layout, UniverseVariant

logger = logging.getLogger(__name__)

MIN_VARIANTS = 2
MAX_VARIANTS = 3


class FusionStrategy(str, Enum):
    BEST_OF_EACH = "best-of-each"
    COMPROMISE = "compromise"
    INNOVATIVE = "innovative"


STRATEGY_INSTRUCTIONS = {
    FusionStrategy.BEST_OF_EACH: "Combine the strongest elements of each design.",
    FusionStrategy.COMPROMISE: "Find a balance point between the designs.",
    FusionStrategy.INNOVATIVE: "Use the designs as inspiration for an entirely new design.",
}

UNIVERSE_SYSTEM_PROMPT = """You are a spatial design expert who explores many possibilities for a design.

Given a design decision point, you produce 2-3 genuinely different design
directions, each with its own strengths and trade-offs. Every direction has a
clear theme, a complete layout, explicit pros and cons, and an estimated cost
and efficiency.

Output JSON."""

VARIANT_JSON_STRUCTURE = f"""[
  {{
    "name": "Variant name",
    "theme": "Design theme",
    "description": "Detailed description",
    "layout": {LAYOUT_JSON_STRUCTURE},
    "pros": ["..."],
    "cons": ["..."],
    "estimatedCost": number > 0,
    "efficiencyScore": number between 0 and 1
  }}
]"""


def _fill_variant_layouts(data):
    # Variant layouts often omit name/description; inherit them from the variant
    if not isinstance(data, list):
        return data
    filled = []
    for item in data:
        if isinstance(item, dict) and isinstance(item.get("layout"), dict):
            layout = dict(item["layout"])
            layout.setdefault("name", item.get("name", ""))
            layout.setdefault("description", item.get("description", ""))
            item = {**item, "layout": layout}
        filled.append(item)
    return filled


def parse_variants(text: str) -> list[UniverseVariant]:
    """
    Extract a 2-3 element list of UniverseVariants.

    Raises:
        SchemaViolationError: any variant fails validation, or the count is out of range.
    """
    data = _fill_variant_layouts(parse_json_region(find_json_region(text, "array")))
    variants = validate_payload_list(data, UniverseVariant)
    if not MIN_VARIANTS <= len(variants) <= MAX_VARIANTS:
        constraint = f"expected {MIN_VARIANTS}-{MAX_VARIANTS} variants, got {len(variants)}"
        raise SchemaViolationError(
            f"Variant list has the wrong length: {constraint}",
            field_path="<root>",
            constraint=constraint,
            violations=[{"field_path": "<root>", "constraint": constraint, "type": "too_short_or_long"}],
        )
    return variants


class ParallelUniverseAgent(StructuredAgent):
    SYSTEM_PROMPT = UNIVERSE_SYSTEM_PROMPT
    DEFAULT_TEMPERATURE = 0.8

    def generate_variants(
        self,
        base_layout: Layout,
        decision_point: str,
        constraints: Optional[str] = None,
        *,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> list[UniverseVariant]:
        """
        Generate 2-3 alternative designs around a decision point (e.g. "entrance position").

        Returns:
            Validated variants, each with efficiency_score in [0, 1] and
            estimated_cost > 0.

        Raises:
            PreconditionError: empty decision point.
            SchemaViolationError: a variant is invalid or the count is outside 2-3.
        """
        if not decision_point or not decision_point.strip():
            raise PreconditionError("decision_point must be a non-empty string")

        prompt = (
            f"Based on the current design below, generate {MAX_VARIANTS} parallel-universe design "
            f"variants for the decision point \"{decision_point.strip()}\".\n\n"
            f"Current design:\n{layout_to_json(base_layout)}\n"
        )
        if constraints:
            prompt += f"\nConstraints: {constraints.strip()}\n"
        prompt += (
            f"\nGenerate {MIN_VARIANTS}-{MAX_VARIANTS} completely different directions. Each variant's "
            "layout is a complete layout with unique zone ids.\n\n"
            f"Respond ONLY with a JSON array matching this structure:\n{VARIANT_JSON_STRUCTURE}"
        )

        variants = self._run_structured(prompt, parse_variants, temperature=temperature, model_key=model_key)
        logger.info(
            "ParallelUniverseAgent: %d variants for '%s': %s",
            len(variants), decision_point, ", ".join(v.name for v in variants),
        )
        return variants

    def fuse(
        self,
        variants: Sequence[Union[Layout, UniverseVariant]],
        strategy: str,
        *,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> Layout:
        """
        Fuse several designs into one Layout.

        Args:
            variants: Layouts, or UniverseVariants (their embedded layout is used).
            strategy: best-of-each, compromise or innovative.

        Raises:
            PreconditionError: no inputs, or unknown strategy. Checked before
                any backend call.
            GenerationFormatError / SchemaViolationError: the fused output is
                not a valid Layout.
        """
        if not variants:
            raise PreconditionError("At least one design is required for fusion")
        try:
            fusion = FusionStrategy(strategy)
        except ValueError:
            raise PreconditionError(
                f"Unknown fusion strategy '{strategy}'",
                {"allowed": [s.value for s in FusionStrategy]},
            ) from None

        layouts = [v.layout if isinstance(v, UniverseVariant) else v for v in variants]
        designs = "\n\n".join(f"Design {i + 1}:\n{layout_to_json(layout)}" for i, layout in enumerate(layouts))
        prompt = (
            f"Fuse the following {len(layouts)} designs into one new layout.\n\n"
            f"Fusion strategy ({fusion.value}): {STRATEGY_INSTRUCTIONS[fusion]}\n\n"
            f"{designs}\n\n"
            f"Output a single JSON object with the following structure:\n{LAYOUT_JSON_STRUCTURE}\n\n"
            f"{LAYOUT_RULES}"
        )

        fused = self._run_structured(
            prompt,
            parse_layout,
            temperature=0.7 if temperature is None else temperature,
            model_key=model_key,
        )
        logger.info("ParallelUniverseAgent: fused %d designs (%s) -> %d zones", len(layouts), fusion.value, len(fused.zones))
        return fused
