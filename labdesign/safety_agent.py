"""
Safety Agent

Produces a SafetyAnalysis for a layout, checks a single regulation, writes a
markdown safety report, and streams improvement recommendations.

Issues in a returned SafetyAnalysis are always ordered critical -> low.
The sort is stable, so issues of equal severity keep the generated order.
"""

import logging
from enum import Enum
from typing import Iterable, Iterator, Optional, Sequence

from .agent_base import StructuredAgent, describe_dimensions
from .errors import PreconditionError
from .extraction import extract_model
from .llm import StreamChunk
from .models import SEVERITY_RANK, Layout, RegulationCheck, SafetyAnalysis, Severity

logger = logging.getLogger(__name__)


class FocusArea(str, Enum):
    FIRE = "fire"
    ELECTRICAL = "electrical"
    ACCESSIBILITY = "accessibility"
    ERGONOMICS = "ergonomics"
    EMERGENCY = "emergency"


class Regulation(str, Enum):
    OSHA = "OSHA"
    ADA = "ADA"
    NFPA = "NFPA"
    NEC = "NEC"


ALL_FOCUS_AREAS: tuple[FocusArea, ...] = tuple(FocusArea)

REGULATION_DETAILS = {
    Regulation.OSHA: "OSHA regulations for workplace safety (29 CFR 1910)",
    Regulation.ADA: "ADA Standards for Accessible Design",
    Regulation.NFPA: "NFPA 101: Life Safety Code",
    Regulation.NEC: "National Electrical Code (NFPA 70)",
}

SAFETY_SYSTEM_PROMPT = """You are a safety engineer and compliance specialist with deep knowledge of:
- OSHA workplace safety regulations
- ADA accessibility requirements
- NFPA fire codes and the National Electrical Code
- Laboratory safety protocols, ergonomics, and emergency egress

You analyze laboratory layouts and identify hazards, compliance gaps,
accessibility issues, emergency preparedness concerns and ergonomic problems.
Always give specific recommendations, regulation references and a severity
rating (critical, high, medium, low) for each issue."""

SAFETY_JSON_STRUCTURE = """{
  "overallScore": number (0-100, where 100 = perfect safety),
  "riskLevel": "low" | "moderate" | "high" | "critical",
  "issues": [
    {
      "id": "unique-id",
      "severity": "critical" | "high" | "medium" | "low",
      "category": "fire_safety" | "electrical" | "accessibility" | "ergonomics" | "emergency" | "equipment" | "environmental" | "general",
      "title": "Short issue title",
      "description": "What the issue is",
      "location": "Zone or area (optional)",
      "recommendation": "Specific recommendation",
      "regulation": "e.g. OSHA 1910.36 (optional)"
    }
  ],
  "compliantRegulations": ["..."],
  "nonCompliantRegulations": ["..."],
  "summary": "2-3 sentence assessment",
  "recommendations": ["Top 3-5 priority recommendations"]
}"""


def sort_issues(analysis: SafetyAnalysis) -> SafetyAnalysis:
    """Return a copy whose issues are stably ordered by severity rank."""
    ordered = tuple(sorted(analysis.issues, key=lambda issue: SEVERITY_RANK[issue.severity]))
    return analysis.model_copy(update={"issues": ordered})


def parse_safety_analysis(text: str) -> SafetyAnalysis:
    return sort_issues(extract_model(text, SafetyAnalysis))


def _coerce_focus_areas(focus_areas: Optional[Iterable[str]]) -> list[FocusArea]:
    if focus_areas is None:
        return list(ALL_FOCUS_AREAS)
    areas = []
    for area in focus_areas:
        try:
            areas.append(FocusArea(area))
        except ValueError:
            raise PreconditionError(
                f"Unknown focus area '{area}'",
                {"allowed": [a.value for a in FocusArea]},
            ) from None
    if not areas:
        raise PreconditionError("focus_areas must not be empty")
    return areas


def _coerce_regulation(regulation: str) -> Regulation:
    try:
        return Regulation(regulation)
    except ValueError:
        raise PreconditionError(
            f"Unknown regulation '{regulation}'",
            {"allowed": [r.value for r in Regulation]},
        ) from None


def _zone_details(layout: Layout) -> str:
    lines = []
    for zone in layout.zones:
        equipment = ", ".join(zone.equipment_names()) or "None"
        requirements = ", ".join(zone.requirements or []) or "None"
        lines.append(
            f"- {zone.name} ({zone.type.value}): {zone.size.width:g}x{zone.size.height:g} "
            f"at ({zone.position.x:g}, {zone.position.y:g})\n"
            f"  Equipment: {equipment}\n"
            f"  Requirements: {requirements}"
        )
    return "\n".join(lines)


class SafetyAgent(StructuredAgent):
    SYSTEM_PROMPT = SAFETY_SYSTEM_PROMPT
    DEFAULT_TEMPERATURE = 0.2

    def analyze(
        self,
        layout: Layout,
        focus_areas: Optional[Sequence[str]] = None,
        strict_mode: bool = False,
        *,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> SafetyAnalysis:
        """
        Analyze a layout for hazards and compliance.

        Args:
            layout: Layout to analyze (not mutated).
            focus_areas: Subset of FocusArea values; all areas when None.
            strict_mode: Apply commercial/university standards.

        Returns:
            SafetyAnalysis with issues ordered critical -> low and a risk
            level consistent with the overall score.

        Raises:
            PreconditionError: unknown focus area.
        """
        areas = _coerce_focus_areas(focus_areas)

        prompt = (
            "Analyze this laboratory layout for safety hazards and regulatory compliance.\n\n"
            f"Layout: {layout.name}\n"
            f"Description: {layout.description}\n"
            f"Dimensions: {describe_dimensions(layout)}\n"
            f"Total Zones: {len(layout.zones)}\n\n"
            f"Zones:\n{_zone_details(layout)}\n"
        )
        if layout.notes:
            prompt += "\nNotes:\n" + "\n".join(f"- {n}" for n in layout.notes) + "\n"
        prompt += (
            f"\nFocus Areas: {', '.join(a.value for a in areas)}\n"
            f"Compliance Mode: {'Strict (commercial/university standards)' if strict_mode else 'Standard'}\n\n"
            "Cover fire safety (exits, travel distance, suppression), electrical safety "
            "(panels, circuits, cutoffs), accessibility (32in doorways, 36in aisles), "
            "ergonomics, emergency preparedness, equipment clearance and ventilation.\n\n"
            f"Respond ONLY with valid JSON matching this structure:\n{SAFETY_JSON_STRUCTURE}\n\n"
            "riskLevel must follow overallScore: >= 80 low, >= 60 moderate, >= 40 high, otherwise critical."
        )

        analysis = self._run_structured(prompt, parse_safety_analysis, temperature=temperature, model_key=model_key)
        logger.info(
            "SafetyAgent: '%s' scored %.0f (%s), %d issues",
            layout.name, analysis.overall_score, analysis.risk_level.value, len(analysis.issues),
        )
        return analysis

    def check_regulation(
        self,
        layout: Layout,
        regulation: str,
        *,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> RegulationCheck:
        """
        Check a layout against one regulation (OSHA, ADA, NFPA or NEC).

        Raises:
            PreconditionError: unknown regulation.
        """
        reg = _coerce_regulation(regulation)
        zones = "\n".join(
            f"- {z.name} ({z.type.value}): {z.size.width:g}x{z.size.height:g} at ({z.position.x:g}, {z.position.y:g})"
            for z in layout.zones
        )
        prompt = (
            f"Check {reg.value} compliance for this lab layout.\n\n"
            f"Regulation: {REGULATION_DETAILS[reg]}\n\n"
            f"Layout: {layout.name}\n"
            f"Dimensions: {describe_dimensions(layout)}\n"
            f"Zones: {len(layout.zones)}\n\n"
            f"Zone Details:\n{zones}\n\n"
            "Respond ONLY with JSON:\n"
            '{\n  "compliant": boolean,\n  "issues": ["specific compliance issues"],\n'
            '  "recommendations": ["steps to achieve compliance"]\n}'
        )
        return self._run_structured(
            prompt,
            lambda text: extract_model(text, RegulationCheck),
            temperature=0.2 if temperature is None else temperature,
            model_key=model_key,
        )

    def generate_report(
        self,
        layout: Layout,
        analysis: SafetyAnalysis,
        *,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Markdown safety report built from a prior analysis."""
        counts = {s: 0 for s in Severity}
        for issue in analysis.issues:
            counts[issue.severity] += 1

        prompt = (
            "Generate a safety documentation report for this lab layout.\n\n"
            f"Layout: {layout.name}\n"
            f"Overall Safety Score: {analysis.overall_score:g}/100\n"
            f"Risk Level: {analysis.risk_level.value}\n"
            f"Critical Issues: {counts[Severity.CRITICAL]}\n"
            f"High Issues: {counts[Severity.HIGH]}\n"
            f"Non-compliant: {', '.join(analysis.non_compliant_regulations) or 'None'}\n\n"
            "Format as a professional Markdown report with:\n"
            "1. Executive Summary\n"
            "2. Safety Score and Risk Assessment\n"
            "3. Regulatory Compliance Status\n"
            "4. Critical Issues and Required Actions\n"
            "5. Medium/Low Priority Issues\n"
            "6. Recommended Improvements\n"
            "7. Compliance Checklist\n"
            "8. Emergency Procedures"
        )
        return self._complete(prompt, temperature=0.3 if temperature is None else temperature, model_key=model_key)

    def stream_recommendations(
        self,
        layout: Layout,
        focus_areas: Optional[Sequence[str]] = None,
        *,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> Iterator[StreamChunk]:
        """Stream prioritized safety improvements as free text."""
        prompt = (
            "Provide detailed safety improvement recommendations for this lab layout.\n\n"
            f"Layout: {layout.name}\n"
            f"Zones: {', '.join(f'{z.name} ({z.type.value})' for z in layout.zones)}\n"
        )
        if focus_areas is not None:
            prompt += f"Focus Areas: {', '.join(a.value for a in _coerce_focus_areas(focus_areas))}\n"
        prompt += (
            "\nProvide:\n"
            "1. Top 5 priority safety improvements\n"
            "2. Quick wins\n"
            "3. Long-term improvements\n"
            "4. Regulatory compliance gaps to address"
        )
        return self._stream(prompt, temperature=0.3 if temperature is None else temperature, model_key=model_key)
