"""
Emotion-Design Agent

Reverse-derives spatial design elements from a desired emotional journey
(an EmotionScript). The returned result always carries the caller's script
unchanged, whatever the generated payload echoed back.
"""

import json
import logging
from typing import Optional

from pydantic import Field

from .agent_base import StructuredAgent
from .errors import PreconditionError
from .extraction import find_json_region, parse_json_region, validate_payload
from .models import DomainModel, EmotionDesignResult, EmotionScript, Layout

logger = logging.getLogger(__name__)


EMOTION_DESIGN_SYSTEM_PROMPT = """You combine environmental psychology and spatial design. \
Given the emotional experience a visitor should have, you derive the spatial design elements that produce it.

Your knowledge base includes:
1. Environmental psychology (Kaplan's attention restoration, Ulrich's stress recovery theory)
2. Architectural phenomenology
3. Neuroarchitecture
4. Color psychology
5. Acoustic design and emotion

Emotion-to-space mappings:
- awe: high ceilings (>4m), large scale, symmetry, dark tones, reverberant acoustics
- curiosity: hidden corners, layered space, partial occlusion, varied materials
- focus: moderate height (2.4-3m), even light, neutral tones, quiet
- excitement: dynamic lighting, bright colors, open space
- calm: natural elements, warm tones, soft materials
- collaboration: circular layouts, transparent partitions, movable furniture
- creativity: reconfigurable space, varied stimuli, tolerance for mess
- safety: enclosure, warm lighting, familiar materials

Always output JSON."""

EMOTION_JSON_STRUCTURE = """{
  "spatialElements": [
    {
      "category": "height" | "lighting" | "color" | "acoustics" | "material" | "layout" | "furniture",
      "recommendation": "specific recommendation",
      "rationale": "scientific basis",
      "priority": "high" | "medium" | "low"
    }
  ],
  "suggestedZones": [
    {
      "name": "zone name",
      "purpose": "what it is for",
      "targetEmotions": ["emotion1", "emotion2"],
      "suggestedSize": { "width": number >= 1, "height": number >= 1 },
      "keyFeatures": ["feature1", "feature2"]
    }
  ],
  "designNarrative": "the visitor's full emotional journey through the space"
}"""


class DesignConstraints(DomainModel):
    """Optional limits for an emotion-driven design."""
    max_area: Optional[float] = Field(default=None, gt=0)
    max_budget: Optional[float] = Field(default=None, ge=0)
    existing_layout: Optional[Layout] = None


class EmotionDesignAgent(StructuredAgent):
    SYSTEM_PROMPT = EMOTION_DESIGN_SYSTEM_PROMPT
    DEFAULT_TEMPERATURE = 0.7

    def design(
        self,
        emotion_script: EmotionScript,
        constraints: Optional[DesignConstraints] = None,
        *,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> EmotionDesignResult:
        """
        Derive spatial elements, suggested zones and a narrative from an emotion script.

        Raises:
            PreconditionError: the script has no nodes. No backend call is made.
        """
        if not emotion_script.nodes:
            raise PreconditionError(
                "Emotion script must have at least one node",
                {"script_id": emotion_script.id},
            )

        script_json = json.dumps(emotion_script.to_wire(), indent=2, ensure_ascii=False)
        prompt = f"Generate spatial design recommendations for this emotion script.\n\nEmotion script:\n{script_json}\n"
        if constraints is not None:
            prompt += f"\nConstraints:\n{json.dumps(constraints.to_wire(), ensure_ascii=False)}\n"
        prompt += f"\nRespond ONLY with valid JSON matching this structure:\n{EMOTION_JSON_STRUCTURE}"

        script_wire = emotion_script.model_dump(mode="json", by_alias=True)

        def parse(text: str) -> EmotionDesignResult:
            data = parse_json_region(find_json_region(text, "object"))
            if isinstance(data, dict):
                data = {**data, "emotionScript": script_wire}
            return validate_payload(data, EmotionDesignResult)

        result = self._run_structured(prompt, parse, temperature=temperature, model_key=model_key)
        logger.info(
            "EmotionDesignAgent: '%s' -> %d spatial elements, %d zones",
            emotion_script.name, len(result.spatial_elements), len(result.suggested_zones),
        )
        return result
