"""
Shared agent cycle: prompt -> gateway -> extract -> validate.

Every structured agent subclasses StructuredAgent. The cycle is:

1. Build a task prompt from the inputs (agent-specific).
2. Invoke the gateway with the agent's system role and temperature.
3. Hand the full text to a parse callable (usually extract_model).
4. On GenerationFormatError / SchemaViolationError, re-prompt with the error
   appended, at most `retry_budget` times, then raise the last error.

Agents hold no mutable state besides the gateway reference, so one instance
can serve concurrent calls.
"""

import json
import logging
from typing import Callable, Iterator, Optional, TypeVar

from .config import DEFAULT_MODEL_KEY
from .errors import GenerationFormatError, SchemaViolationError
from .llm import ModelGateway, StreamChunk
from .models import Layout, Zone

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS = (GenerationFormatError, SchemaViolationError)


def layout_to_json(layout: Layout) -> str:
    """Pretty camelCase JSON for embedding a layout in a prompt."""
    return json.dumps(layout.to_wire(), indent=2, ensure_ascii=False)


def describe_zone(zone: Zone) -> str:
    equipment = ", ".join(zone.equipment_names()) or "None"
    return (
        f"- {zone.name} ({zone.type.value}): {zone.size.width:g}x{zone.size.height:g} "
        f"at ({zone.position.x:g}, {zone.position.y:g}), Equipment: {equipment}"
    )


def describe_zones(layout: Layout) -> str:
    return "\n".join(describe_zone(z) for z in layout.zones)


def describe_dimensions(layout: Layout) -> str:
    d = layout.dimensions
    return f"{d.width:g}x{d.height:g} {d.unit.value}"


def build_repair_prompt(task_prompt: str, error: GenerationFormatError | SchemaViolationError) -> str:
    """Append the previous failure to the original task so the model can correct it."""
    if isinstance(error, SchemaViolationError):
        problem = f"field '{error.field_path}' violated: {error.constraint}"
    else:
        problem = error.message
    return (
        f"{task_prompt}\n\n"
        f"Your previous response could not be used ({problem}).\n"
        f"Respond again with ONLY valid JSON matching the structure above."
    )


class StructuredAgent:
    """
    Base class for gateway-backed agents.

    Args:
        gateway: The ModelGateway used for every call.
        model_key: Default backend key for this agent (LABDESIGN_DEFAULT_MODEL if None).
        retry_budget: Extra attempts allowed after a format or schema failure.
    """

    SYSTEM_PROMPT = "You are a precise JSON-emitting assistant."
    DEFAULT_TEMPERATURE = 0.7

    def __init__(self, gateway: ModelGateway, model_key: Optional[str] = None, retry_budget: int = 0):
        if retry_budget < 0:
            raise ValueError("retry_budget must be >= 0")
        self.gateway = gateway
        self.model_key = model_key or DEFAULT_MODEL_KEY
        self.retry_budget = retry_budget

    @property
    def name(self) -> str:
        return type(self).__name__

    def _complete(
        self,
        task_prompt: str,
        *,
        temperature: Optional[float] = None,
        model_key: Optional[str] = None,
        system_role: Optional[str] = None,
    ) -> str:
        return self.gateway.invoke(
            model_key or self.model_key,
            system_role or self.SYSTEM_PROMPT,
            task_prompt,
            temperature=self.DEFAULT_TEMPERATURE if temperature is None else temperature,
        )

    def _stream(
        self,
        task_prompt: str,
        *,
        temperature: Optional[float] = None,
        model_key: Optional[str] = None,
        system_role: Optional[str] = None,
    ) -> Iterator[StreamChunk]:
        return self.gateway.invoke(
            model_key or self.model_key,
            system_role or self.SYSTEM_PROMPT,
            task_prompt,
            temperature=self.DEFAULT_TEMPERATURE if temperature is None else temperature,
            streaming=True,
        )

    def _run_structured(
        self,
        task_prompt: str,
        parse: Callable[[str], T],
        *,
        temperature: Optional[float] = None,
        model_key: Optional[str] = None,
        system_role: Optional[str] = None,
    ) -> T:
        """
        Run the cycle with retry-with-repair.

        Args:
            task_prompt: Initial task prompt.
            parse: Turns the full generated text into the artifact, raising
                GenerationFormatError or SchemaViolationError on bad output.

        Raises:
            GenerationFormatError / SchemaViolationError: after the retry budget is spent.
            ConfigurationError / TransportError: immediately, never retried.
        """
        prompt = task_prompt
        attempt = 0
        while True:
            text = self._complete(prompt, temperature=temperature, model_key=model_key, system_role=system_role)
            try:
                return parse(text)
            except RETRYABLE_ERRORS as e:
                if attempt >= self.retry_budget:
                    logger.debug(f"{self.name}: giving up after {attempt + 1} attempt(s): {e.code}")
                    raise
                attempt += 1
                logger.warning(
                    f"{self.name}: {e.code} on attempt {attempt}, retrying "
                    f"({self.retry_budget - attempt + 1} left): {e.message[:100]}"
                )
                prompt = build_repair_prompt(task_prompt, e)
