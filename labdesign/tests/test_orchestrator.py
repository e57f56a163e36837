"""
Tests for the design review orchestration.

Tests verify:
- Safety and budget analyses run concurrently over the same layout
- The review carries both analyses and the grounding budget summary
- A failure in either agent propagates to the caller
"""

import threading

import pytest

from labdesign.config import GatewayConfig, Provider
from labdesign.errors import SchemaViolationError
from labdesign.llm import ModelGateway
from labdesign.models import Currency, DesignReview, Severity
from labdesign.orchestrator import run_design_review
from labdesign.tests.conftest import SAMPLE_BUDGET_ANALYSIS, SAMPLE_SAFETY_ANALYSIS, wrap_json


class RoutingBackend:
    """Answers by agent role; optionally waits until both agents are in flight."""

    def __init__(self, safety_reply: str, budget_reply: str, barrier: threading.Barrier | None = None):
        self.replies = {"safety engineer": safety_reply, "financial analyst": budget_reply}
        self.barrier = barrier
        self.prompts: list[str] = []
        self._lock = threading.Lock()

    def complete(self, model, system_role, task_prompt, temperature):
        with self._lock:
            self.prompts.append(task_prompt)
        if self.barrier is not None:
            self.barrier.wait()
        for marker, reply in self.replies.items():
            if marker in system_role:
                return reply
        raise AssertionError(f"unexpected system role: {system_role[:40]}")

    def stream(self, model, system_role, task_prompt, temperature):
        raise AssertionError("design review does not stream")


def _gateway(backend) -> ModelGateway:
    return ModelGateway(GatewayConfig(), backends={p: backend for p in Provider})


class TestRunDesignReview:

    def test_review_contents(self, sample_layout):
        backend = RoutingBackend(wrap_json(SAMPLE_SAFETY_ANALYSIS), wrap_json(SAMPLE_BUDGET_ANALYSIS))

        review = run_design_review(sample_layout, _gateway(backend))

        assert isinstance(review, DesignReview)
        assert review.layout_name == "Compact ML Lab"
        assert review.safety.issues[0].severity == Severity.CRITICAL
        assert review.budget.total_cost == review.budget_summary.total_cost == 250
        assert review.budget_summary.currency == Currency.USD
        assert len(backend.prompts) == 2

    def test_agents_run_concurrently(self, sample_layout):
        # Both calls must be in flight at once for the barrier to release
        barrier = threading.Barrier(2, timeout=5)
        backend = RoutingBackend(wrap_json(SAMPLE_SAFETY_ANALYSIS), wrap_json(SAMPLE_BUDGET_ANALYSIS), barrier)

        review = run_design_review(sample_layout, _gateway(backend))

        assert review.safety.overall_score == 72
        assert not barrier.broken

    def test_currency_and_model_key(self, sample_layout):
        backend = RoutingBackend(wrap_json(SAMPLE_SAFETY_ANALYSIS), wrap_json(SAMPLE_BUDGET_ANALYSIS))

        review = run_design_review(sample_layout, _gateway(backend), currency="EUR", model_key="gpt-4o")

        assert review.budget.currency == Currency.EUR
        assert review.budget_summary.currency == Currency.EUR
        assert any("All amounts are in EUR" in p for p in backend.prompts)

    def test_budget_failure_propagates(self, sample_layout):
        inflated = {**SAMPLE_BUDGET_ANALYSIS, "totalCost": 500, "costBreakdown": {
            "byCategory": {"compute": 500}, "byZone": {"GPU Room": 500}}}
        backend = RoutingBackend(wrap_json(SAMPLE_SAFETY_ANALYSIS), wrap_json(inflated))

        with pytest.raises(SchemaViolationError) as exc_info:
            run_design_review(sample_layout, _gateway(backend))
        assert exc_info.value.field_path == "totalCost"

    def test_layout_shared_unchanged(self, sample_layout):
        before = sample_layout.model_dump_json()
        backend = RoutingBackend(wrap_json(SAMPLE_SAFETY_ANALYSIS), wrap_json(SAMPLE_BUDGET_ANALYSIS))
        run_design_review(sample_layout, _gateway(backend))
        assert sample_layout.model_dump_json() == before
