"""
Documentation Agent

Markdown documentation for a layout: full documents (whole or streamed), an
equipment table, and a safety checklist. Output is not schema-validated.

Every zone of the layout must be named in a generated document. The prompt
lists all zone names; if the model still leaves any out, a "Zone Index"
section naming the missing zones is appended.
"""

import logging
from enum import Enum
from typing import Iterator, Optional, Sequence

from .agent_base import StructuredAgent, describe_zones, layout_to_json
from .errors import PreconditionError
from .llm import StreamChunk
from .models import Layout

logger = logging.getLogger(__name__)


class DocSection(str, Enum):
    OVERVIEW = "overview"
    ZONES = "zones"
    EQUIPMENT = "equipment"
    SAFETY = "safety"
    MAINTENANCE = "maintenance"


ALL_SECTIONS: tuple[DocSection, ...] = tuple(DocSection)

LANGUAGE_INSTRUCTIONS = {
    "en": "Write the documentation in English.",
    "zh": "Write the documentation in Chinese (Simplified).",
}

DOC_SYSTEM_PROMPT = """You are a technical writer who documents AI research facilities and laboratory spaces.

Your documentation is clear, professional, well structured with proper
headings, practical, and consistent with safety standards.

You output documentation in Markdown."""


def missing_zone_names(layout: Layout, text: str) -> list[str]:
    return [name for name in layout.zone_names() if name not in text]


def zone_index_section(layout: Layout, missing: Sequence[str]) -> str:
    by_name = {z.name: z for z in layout.zones}
    lines = ["", "", "## Zone Index", ""]
    for name in missing:
        zone = by_name[name]
        lines.append(f"- **{zone.name}** ({zone.type.value}, {zone.size.width:g}x{zone.size.height:g})")
    return "\n".join(lines) + "\n"


def ensure_zone_coverage(layout: Layout, text: str) -> str:
    """Append a Zone Index for any zone name the text does not mention."""
    missing = missing_zone_names(layout, text)
    if not missing:
        return text
    logger.warning("documentation omitted %d zone(s): %s", len(missing), ", ".join(missing))
    return text + zone_index_section(layout, missing)


def _language_instruction(locale: str) -> str:
    # Unknown locales fall back to English
    return LANGUAGE_INSTRUCTIONS.get(locale, LANGUAGE_INSTRUCTIONS["en"])


def _coerce_sections(sections: Optional[Sequence[str]]) -> list[DocSection]:
    if sections is None:
        return list(ALL_SECTIONS)
    result = []
    for section in sections:
        try:
            result.append(DocSection(section))
        except ValueError:
            raise PreconditionError(
                f"Unknown documentation section '{section}'",
                {"allowed": [s.value for s in DocSection]},
            ) from None
    if not result:
        raise PreconditionError("sections must not be empty")
    return result


class DocumentationAgent(StructuredAgent):
    SYSTEM_PROMPT = DOC_SYSTEM_PROMPT
    DEFAULT_TEMPERATURE = 0.7

    def _document_prompt(self, layout: Layout, locale: str, sections_line: str) -> str:
        return (
            "Generate comprehensive documentation for the following AI lab layout.\n\n"
            f"{_language_instruction(locale)}\n\n"
            f"{sections_line}\n\n"
            "Describe every zone by its exact name. The zones are:\n"
            f"{describe_zones(layout)}\n\n"
            f"Layout details:\n{layout_to_json(layout)}\n\n"
            "Generate professional documentation in Markdown."
        )

    def generate(
        self,
        layout: Layout,
        locale: str = "en",
        sections: Optional[Sequence[str]] = None,
        *,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """
        Full markdown documentation naming every zone.

        Args:
            layout: Layout to document.
            locale: 'en' or 'zh'; other values produce English.
            sections: Subset of overview, zones, equipment, safety, maintenance.

        Raises:
            PreconditionError: unknown section.
        """
        chosen = _coerce_sections(sections)
        prompt = self._document_prompt(
            layout, locale, f"Include the following sections: {', '.join(s.value for s in chosen)}"
        )
        text = self._complete(prompt, temperature=temperature, model_key=model_key)
        return ensure_zone_coverage(layout, text)

    def stream(
        self,
        layout: Layout,
        locale: str = "en",
        *,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> Iterator[StreamChunk]:
        """
        Stream documentation.

        Zone coverage is checked once the model finishes; a Zone Index chunk is
        emitted before the final done chunk when zones were left out. Closing
        the iterator early closes the underlying stream.
        """
        prompt = self._document_prompt(
            layout, locale,
            "Include:\n1. Executive Summary\n2. Zone Descriptions\n3. Equipment List\n"
            "4. Safety Guidelines\n5. Maintenance Schedule",
        )
        chunks = self._stream(prompt, temperature=temperature, model_key=model_key)
        return self._with_zone_index(layout, chunks)

    def _with_zone_index(self, layout: Layout, chunks: Iterator[StreamChunk]) -> Iterator[StreamChunk]:
        parts = []
        try:
            for chunk in chunks:
                if chunk.done:
                    missing = missing_zone_names(layout, "".join(parts))
                    if missing:
                        logger.warning("streamed documentation omitted %d zone(s)", len(missing))
                        yield StreamChunk(text=zone_index_section(layout, missing))
                    yield chunk
                    return
                parts.append(chunk.text)
                yield chunk
        finally:
            close = getattr(chunks, "close", None)
            if close is not None:
                close()

    def equipment_table(
        self,
        layout: Layout,
        *,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Markdown equipment table with specifications and estimated costs."""
        prompt = (
            "Based on this lab layout, generate an equipment list with specifications and estimated costs.\n\n"
            f"Layout:\n{layout_to_json(layout)}\n\n"
            "Output as a Markdown table with columns: Item, Zone, Quantity, Specifications, "
            "Estimated Cost, Priority"
        )
        return self._complete(prompt, temperature=temperature, model_key=model_key)

    def safety_checklist(
        self,
        layout: Layout,
        *,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Markdown safety checklist."""
        prompt = (
            "Based on this lab layout, generate a safety checklist.\n\n"
            f"Layout:\n{layout_to_json(layout)}\n\n"
            "Cover fire safety, electrical safety, ergonomics, emergency procedures, "
            "equipment handling and environmental controls.\n\n"
            "Output as a Markdown checklist (- [ ] item)."
        )
        return self._complete(prompt, temperature=temperature, model_key=model_key)
