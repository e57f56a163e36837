"""
Tests for the Layout Agent and the shared retry-with-repair cycle.

Tests verify:
- Requirements text -> validated Layout (10x8 m, compute + meeting zones)
- Prose-only output raises GenerationFormatError and returns nothing
- retry_budget re-prompts with the previous error appended, then gives up
- Transport and configuration errors are never retried
- modify leaves the input layout untouched
- Per-call model_key / temperature overrides reach the gateway
- A discipline adds its expertise section to the system role of every operation
"""

import pytest

from labdesign.errors import (
    GenerationFormatError,
    PreconditionError,
    SchemaViolationError,
    TransportError,
)
from labdesign.disciplines import DISCIPLINE_CLOSING, DISCIPLINE_PROMPTS, Discipline
from labdesign.layout_agent import LAYOUT_SYSTEM_PROMPT, LayoutAgent, build_layout_prompt, layout_system_prompt
from labdesign.llm import StreamChunk
from labdesign.models import Layout, Unit, ZoneType
from labdesign.tests.conftest import SAMPLE_LAYOUT, wrap_json

TWO_ZONE_LAB = {
    "name": "Small ML Lab",
    "description": "One compute zone and one meeting zone",
    "dimensions": {"width": 10, "height": 8, "unit": "m"},
    "zones": [
        {"id": "compute-1", "name": "Compute", "type": "compute", "position": {"x": 0, "y": 0},
         "size": {"width": 5, "height": 8}, "color": "#22d3ee", "equipment": ["GPU workstation"]},
        {"id": "meeting-1", "name": "Meeting", "type": "meeting", "position": {"x": 5, "y": 0},
         "size": {"width": 5, "height": 8}},
    ],
    "connections": [{"from": "compute-1", "to": "meeting-1", "type": "door"}],
}


class TestGenerate:

    def test_requirements_to_layout(self, gateway, backend):
        backend.queue(wrap_json(TWO_ZONE_LAB))
        agent = LayoutAgent(gateway)

        layout = agent.generate("10×8 meter lab with one compute zone and one meeting zone")

        assert layout.dimensions.width == 10
        assert layout.dimensions.height == 8
        assert layout.dimensions.unit == Unit.METERS
        assert len(layout.zones) >= 2
        assert {z.type for z in layout.zones} >= {ZoneType.COMPUTE, ZoneType.MEETING}
        # Missing color filled from the palette
        assert layout.zone_by_id("meeting-1").color == "#10b981"

    def test_prompt_carries_requirements_and_constraints(self, gateway, backend):
        backend.queue(wrap_json(TWO_ZONE_LAB))
        LayoutAgent(gateway).generate("two zones please", constraints="max 80 square meters")

        call = backend.calls[0]
        assert call.system_role == LAYOUT_SYSTEM_PROMPT
        assert "two zones please" in call.task_prompt
        assert "max 80 square meters" in call.task_prompt
        assert call.temperature == 0.7
        assert call.backend_key == "claude-sonnet"

    def test_prose_only_raises_format_error(self, gateway, backend):
        backend.queue("I would suggest a bright open lab with a GPU room at the back.")
        with pytest.raises(GenerationFormatError):
            LayoutAgent(gateway).generate("a lab")
        assert len(backend.calls) == 1

    def test_schema_violation_names_field(self, gateway, backend):
        bad = {**TWO_ZONE_LAB, "zones": [dict(TWO_ZONE_LAB["zones"][0], size={"width": 0, "height": 8})],
               "connections": None}
        backend.queue(wrap_json(bad))
        with pytest.raises(SchemaViolationError) as exc_info:
            LayoutAgent(gateway).generate("a lab")
        assert exc_info.value.field_path == "zones[0].size.width"

    def test_empty_requirements_rejected_before_call(self, gateway, backend):
        with pytest.raises(PreconditionError):
            LayoutAgent(gateway).generate("   ")
        assert backend.calls == []

    def test_per_call_overrides(self, gateway, backend):
        backend.queue(wrap_json(TWO_ZONE_LAB))
        LayoutAgent(gateway, model_key="claude-haiku").generate("a lab", model_key="gpt-4o", temperature=0.1)
        assert backend.calls[0].backend_key == "gpt-4o"
        assert backend.calls[0].temperature == 0.1

    def test_agent_default_model_key(self, gateway, backend):
        backend.queue(wrap_json(TWO_ZONE_LAB))
        LayoutAgent(gateway, model_key="claude-haiku").generate("a lab")
        assert backend.calls[0].backend_key == "claude-haiku"


class TestRetryWithRepair:

    def test_no_retry_by_default(self, gateway, backend):
        backend.queue("no json here", wrap_json(TWO_ZONE_LAB))
        with pytest.raises(GenerationFormatError):
            LayoutAgent(gateway).generate("a lab")
        assert len(backend.calls) == 1

    def test_repairs_within_budget(self, gateway, backend):
        backend.queue("no json here", wrap_json(TWO_ZONE_LAB))
        layout = LayoutAgent(gateway, retry_budget=1).generate("a lab")

        assert isinstance(layout, Layout)
        assert len(backend.calls) == 2
        repair_prompt = backend.calls[1].task_prompt
        assert repair_prompt.startswith(backend.calls[0].task_prompt)
        assert "could not be used" in repair_prompt
        assert "No JSON object found" in repair_prompt

    def test_repair_prompt_names_violated_field(self, gateway, backend):
        bad = {**TWO_ZONE_LAB, "dimensions": {"width": 10, "height": 8, "unit": "yards"}}
        backend.queue(wrap_json(bad), wrap_json(TWO_ZONE_LAB))
        LayoutAgent(gateway, retry_budget=2).generate("a lab")
        assert "field 'dimensions.unit' violated" in backend.calls[1].task_prompt

    def test_budget_exhausted_raises_last_error(self, gateway, backend):
        backend.queue("prose", "more prose", wrap_json({"name": "incomplete"}))
        with pytest.raises(SchemaViolationError):
            LayoutAgent(gateway, retry_budget=2).generate("a lab")
        assert len(backend.calls) == 3

    def test_transport_error_not_retried(self, gateway, backend):
        backend.queue(RuntimeError("503 from upstream"), wrap_json(TWO_ZONE_LAB))
        with pytest.raises(TransportError):
            LayoutAgent(gateway, retry_budget=3).generate("a lab")
        assert len(backend.calls) == 1

    def test_negative_budget_rejected(self, gateway):
        with pytest.raises(ValueError):
            LayoutAgent(gateway, retry_budget=-1)


class TestModifyAnalyzeStream:

    def test_modify_returns_new_layout(self, gateway, backend, sample_layout):
        before = sample_layout.model_dump_json()
        backend.queue(wrap_json(TWO_ZONE_LAB))

        revised = LayoutAgent(gateway).modify(sample_layout, "drop the entrance")

        assert revised.name == "Small ML Lab"
        assert sample_layout.model_dump_json() == before
        assert '"GPU Room"' in backend.calls[0].task_prompt
        assert "drop the entrance" in backend.calls[0].task_prompt

    def test_modify_requires_request(self, gateway, sample_layout):
        with pytest.raises(PreconditionError):
            LayoutAgent(gateway).modify(sample_layout, "")

    def test_analyze_returns_text(self, gateway, backend, sample_layout):
        backend.queue("## Workflow\nThe GPU room is well placed.")
        text = LayoutAgent(gateway).analyze(sample_layout)
        assert text.startswith("## Workflow")
        assert "10x8 m" in backend.calls[0].task_prompt

    def test_stream_suggestions(self, gateway, backend):
        backend.queue("Put the servers near the cooling plant.")
        chunks = list(LayoutAgent(gateway).stream_suggestions("GPU lab"))
        assert chunks[-1].done
        assert "".join(c.text for c in chunks) == "Put the servers near the cooling plant."
        assert all(isinstance(c, StreamChunk) for c in chunks)


class TestDisciplines:

    def test_no_discipline_uses_base_prompt(self):
        assert layout_system_prompt() == LAYOUT_SYSTEM_PROMPT
        assert layout_system_prompt(None) == LAYOUT_SYSTEM_PROMPT

    def test_discipline_section_appended(self):
        prompt = layout_system_prompt("micro-nano")
        assert prompt.startswith(LAYOUT_SYSTEM_PROMPT)
        assert DISCIPLINE_PROMPTS[Discipline.MICRO_NANO] in prompt
        assert prompt.endswith(DISCIPLINE_CLOSING)

    def test_build_prompt_order(self):
        prompt = build_layout_prompt(Discipline.LIFE_HEALTH, include_base_prompt=False, additional_context="Budget is tight")
        parts = prompt.split("\n\n---\n\n")
        assert parts == [DISCIPLINE_PROMPTS[Discipline.LIFE_HEALTH], "Budget is tight", DISCIPLINE_CLOSING]

    def test_context_without_discipline_has_no_closing(self):
        prompt = build_layout_prompt(additional_context="Budget is tight")
        assert prompt == f"{LAYOUT_SYSTEM_PROMPT}\n\n---\n\nBudget is tight"

    def test_generate_with_discipline(self, gateway, backend):
        backend.queue(wrap_json(TWO_ZONE_LAB))
        LayoutAgent(gateway).generate("AI lab", discipline="digital-info")

        system_role = backend.calls[0].system_role
        assert system_role.startswith(LAYOUT_SYSTEM_PROMPT)
        assert "DISCIPLINE: Digital Intelligence" in system_role

    def test_every_operation_takes_discipline(self, gateway, backend, sample_layout):
        backend.queue(wrap_json(TWO_ZONE_LAB), "Critique", "Suggestions")
        agent = LayoutAgent(gateway)

        agent.modify(sample_layout, "add a wet lab", discipline="life-health")
        agent.analyze(sample_layout, discipline="life-health")
        list(agent.stream_suggestions("wet lab", discipline="life-health"))

        assert len(backend.calls) == 3
        assert all("DISCIPLINE: Life & Health" in c.system_role for c in backend.calls)

    def test_retry_keeps_discipline_role(self, gateway, backend):
        backend.queue("no json", wrap_json(TWO_ZONE_LAB))
        LayoutAgent(gateway, retry_budget=1).generate("clean lab", discipline="micro-nano")
        assert backend.calls[0].system_role == backend.calls[1].system_role == layout_system_prompt("micro-nano")

    def test_unknown_discipline_rejected_before_call(self, gateway, backend):
        with pytest.raises(PreconditionError, match="Unknown discipline 'alchemy'") as exc_info:
            LayoutAgent(gateway).generate("lab", discipline="alchemy")
        assert "life-health" in exc_info.value.details["allowed"]
        assert backend.calls == []


def test_sample_layout_is_valid_agent_output(gateway, backend):
    backend.queue(wrap_json(SAMPLE_LAYOUT, prose=False))
    layout = LayoutAgent(gateway).generate("compact lab")
    assert layout.zone_names() == ["GPU Room", "Huddle Room", "Main Entrance"]
