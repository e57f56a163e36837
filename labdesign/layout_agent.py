"""
Layout Agent

Maps free-text lab requirements to a validated Layout, revises an existing
layout, and produces unstructured critiques and suggestion streams.
"""

import logging
from typing import Iterator, Optional

from .agent_base import StructuredAgent, describe_dimensions, layout_to_json
from .disciplines import DISCIPLINE_CLOSING, Discipline, discipline_prompt
from .errors import PreconditionError
from .extraction import extract_model
from .llm import StreamChunk
from .models import Layout

logger = logging.getLogger(__name__)


LAYOUT_SYSTEM_PROMPT = """You are an expert lab space designer and architect. You design laboratory \
layouts for AI research, machine learning development and data science work.

Your expertise includes:
- GPU server room design and cooling requirements
- Collaborative workspace planning
- Equipment placement
- Safety and ergonomics
- Network and power distribution

When designing layouts, consider workflow between zones, ventilation for compute
equipment, ergonomic workstations, meeting areas, storage, and emergency exits.

You output structured JSON for layout elements when generating floor plans."""

LAYOUT_JSON_STRUCTURE = """{
  "name": "Layout name",
  "description": "Brief description",
  "dimensions": { "width": number, "height": number, "unit": "m" | "ft" },
  "zones": [
    {
      "id": "unique-id",
      "name": "Zone name",
      "type": "compute" | "workspace" | "meeting" | "storage" | "utility" | "entrance",
      "position": { "x": number >= 0, "y": number >= 0 },
      "size": { "width": number >= 1, "height": number >= 1 },
      "color": "#hex",
      "equipment": ["item1", { "name": "item2", "quantity": 1, "price": number, "category": "compute" }],
      "requirements": ["requirement1"]
    }
  ],
  "connections": [
    { "from": "zone-id", "to": "zone-id", "type": "door" | "passage" | "cable" }
  ],
  "notes": ["Important notes about the design"]
}"""

LAYOUT_RULES = """RULES:
- Zone ids must be unique.
- Every connection must reference existing zone ids.
- Use one unit for the whole layout.
- Respond ONLY with the JSON object."""


def build_layout_prompt(
    discipline: Optional[Discipline | str] = None,
    include_base_prompt: bool = True,
    additional_context: Optional[str] = None,
) -> str:
    """
    Assemble a layout system prompt from the base prompt, a discipline
    section and extra context, separated by "---" rules.

    Raises:
        PreconditionError: unknown discipline.
    """
    parts = []
    if include_base_prompt:
        parts.append(LAYOUT_SYSTEM_PROMPT)

    section = discipline_prompt(discipline)
    if section:
        parts += ["---", section]
    if additional_context:
        parts += ["---", additional_context]
    if section:
        parts += ["---", DISCIPLINE_CLOSING]

    return "\n\n".join(parts)


def layout_system_prompt(discipline: Optional[Discipline | str] = None) -> str:
    return build_layout_prompt(discipline)


def parse_layout(text: str) -> Layout:
    return extract_model(text, Layout)


class LayoutAgent(StructuredAgent):
    """
    Generates and revises Layouts.

    generate / modify return validated, frozen Layouts. analyze returns
    free text. stream_suggestions returns a StreamChunk iterator.
    """

    SYSTEM_PROMPT = LAYOUT_SYSTEM_PROMPT
    DEFAULT_TEMPERATURE = 0.7

    def generate(
        self,
        requirements: str,
        constraints: Optional[str] = None,
        *,
        discipline: Optional[str] = None,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> Layout:
        """
        Turn free-text requirements into a Layout.

        Args:
            requirements: What the lab needs, in prose.
            constraints: Optional extra constraints (size limits, budget, ...).
            discipline: Research discipline whose expertise is added to the system role.

        Raises:
            PreconditionError: empty requirements or unknown discipline.
            GenerationFormatError / SchemaViolationError: unusable output.
        """
        if not requirements or not requirements.strip():
            raise PreconditionError("requirements must be a non-empty string")
        system_role = layout_system_prompt(discipline)

        logger.debug(f"LayoutAgent.generate: requirements len={len(requirements)}")
        prompt = (
            "Based on the user's requirements, generate a detailed lab layout specification.\n\n"
            f"Output a JSON object with the following structure:\n{LAYOUT_JSON_STRUCTURE}\n\n"
            f"{LAYOUT_RULES}\n\n"
            f"User requirements:\n{requirements.strip()}"
        )
        if constraints:
            prompt += f"\n\nConstraints:\n{constraints.strip()}"

        layout = self._run_structured(
            prompt, parse_layout, temperature=temperature, model_key=model_key, system_role=system_role,
        )
        logger.info("LayoutAgent: generated '%s' with %d zones", layout.name, len(layout.zones))
        return layout

    def modify(
        self,
        existing_layout: Layout,
        requirements: str,
        *,
        discipline: Optional[str] = None,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> Layout:
        """
        Produce a new Layout revising `existing_layout`. The input is not mutated.

        Raises:
            PreconditionError: empty modification request or unknown discipline.
        """
        if not requirements or not requirements.strip():
            raise PreconditionError("modification request must be a non-empty string")
        system_role = layout_system_prompt(discipline)

        prompt = (
            "Revise the current lab layout according to the modification request. "
            "Keep zones that the request does not touch.\n\n"
            f"Output a JSON object with the following structure:\n{LAYOUT_JSON_STRUCTURE}\n\n"
            f"{LAYOUT_RULES}\n\n"
            f"Current layout:\n{layout_to_json(existing_layout)}\n\n"
            f"Modification request:\n{requirements.strip()}"
        )
        layout = self._run_structured(
            prompt, parse_layout, temperature=temperature, model_key=model_key, system_role=system_role,
        )
        logger.info("LayoutAgent: modified '%s' -> %d zones", existing_layout.name, len(layout.zones))
        return layout

    def analyze(
        self,
        layout: Layout,
        *,
        discipline: Optional[str] = None,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Unstructured critique of a layout (markdown)."""
        system_role = layout_system_prompt(discipline)
        prompt = (
            f"Analyze the following lab layout ({describe_dimensions(layout)}, "
            f"{len(layout.zones)} zones) and provide detailed feedback on:\n"
            "1. Workflow efficiency\n"
            "2. Safety considerations\n"
            "3. Potential improvements\n"
            "4. Equipment placement\n"
            "5. Scalability options\n\n"
            f"Layout:\n{layout_to_json(layout)}"
        )
        return self._complete(prompt, temperature=temperature, model_key=model_key, system_role=system_role)

    def stream_suggestions(
        self,
        requirements: str,
        *,
        discipline: Optional[str] = None,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> Iterator[StreamChunk]:
        """Stream free-text design suggestions for a set of requirements."""
        if not requirements or not requirements.strip():
            raise PreconditionError("requirements must be a non-empty string")
        system_role = layout_system_prompt(discipline)

        prompt = (
            "Provide design suggestions and considerations for the following lab requirements. "
            "Be specific and actionable.\n\n"
            f"Requirements: {requirements.strip()}"
        )
        return self._stream(prompt, temperature=temperature, model_key=model_key, system_role=system_role)
