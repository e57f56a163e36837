"""
Shared fixtures: a fake text backend injected into ModelGateway, and sample
artifacts in wire (camelCase) form.

No test reaches the network or needs an API key.
"""

import json
from dataclasses import dataclass
from typing import Any

import pytest

from labdesign.config import GatewayConfig, Provider
from labdesign.llm import ModelGateway
from labdesign.models import Layout


@dataclass
class RecordedCall:
    backend_key: str
    system_role: str
    task_prompt: str
    temperature: float
    streaming: bool


class FakeBackend:
    """
    Stand-in for OpenAIBackend / AnthropicBackend.

    Replies are consumed in order, one per call. An Exception instance in the
    queue is raised instead of returned. Streams are cut into chunk_size pieces.
    """

    def __init__(self, responses=None, chunk_size: int = 16):
        self.responses = list(responses or [])
        self.chunk_size = chunk_size
        self.calls: list[RecordedCall] = []
        self.streams_closed = 0

    def queue(self, *responses) -> "FakeBackend":
        self.responses.extend(responses)
        return self

    def _next(self) -> str:
        if not self.responses:
            raise AssertionError("FakeBackend has no queued response")
        reply = self.responses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def complete(self, model, system_role, task_prompt, temperature):
        self.calls.append(RecordedCall(model.key, system_role, task_prompt, temperature, False))
        return self._next()

    def stream(self, model, system_role, task_prompt, temperature):
        self.calls.append(RecordedCall(model.key, system_role, task_prompt, temperature, True))
        text = self._next()
        try:
            for i in range(0, len(text), self.chunk_size):
                yield text[i:i + self.chunk_size]
        finally:
            self.streams_closed += 1


def wrap_json(payload: Any, prose: bool = True) -> str:
    """Render a payload the way models tend to: prose around a fenced JSON block."""
    body = json.dumps(payload, indent=2, ensure_ascii=False)
    if not prose:
        return body
    return f"Here is the result you asked for:\n\n```json\n{body}\n```\n\nLet me know if you want changes."


SAMPLE_LAYOUT: dict = {
    "name": "Compact ML Lab",
    "description": "Small lab with a GPU room, a huddle room and an entrance",
    "dimensions": {"width": 10, "height": 8, "unit": "m"},
    "zones": [
        {
            "id": "compute-1",
            "name": "GPU Room",
            "type": "compute",
            "position": {"x": 0, "y": 0},
            "size": {"width": 4, "height": 3},
            "color": "#22d3ee",
            "equipment": [
                {"name": "GPU Server", "quantity": 2, "price": 100, "category": "compute"},
                "Cooling unit",
            ],
            "requirements": ["dedicated cooling"],
        },
        {
            "id": "meeting-1",
            "name": "Huddle Room",
            "type": "meeting",
            "position": {"x": 5, "y": 0},
            "size": {"width": 4, "height": 3},
            "color": "#10b981",
            "equipment": [{"name": "Display", "quantity": 1, "price": 50, "category": "electronics"}],
        },
        {
            "id": "entrance-1",
            "name": "Main Entrance",
            "type": "entrance",
            "position": {"x": 0, "y": 6},
            "size": {"width": 2, "height": 2},
            "color": "#ec4899",
        },
    ],
    "connections": [
        {"from": "entrance-1", "to": "compute-1", "type": "door"},
        {"from": "compute-1", "to": "meeting-1", "type": "passage"},
    ],
    "notes": ["Keep the GPU room door closed"],
}

SAMPLE_BUDGET_ANALYSIS: dict = {
    "totalCost": 250,
    "costBreakdown": {
        "byCategory": {"compute": 200, "electronics": 50},
        "byZone": {"GPU Room": 200, "Huddle Room": 50},
    },
    "insights": [
        {"type": "info", "title": "Compute heavy", "description": "80% goes to compute", "impact": "medium"},
    ],
    "optimizations": [
        {"title": "Lease servers", "description": "Lease instead of buying", "potentialSavings": 40, "difficulty": "medium"},
    ],
    "forecast": {"sixMonths": 270, "oneYear": 290, "threeYears": 360, "assumptions": ["12% maintenance"]},
    "roi": {"paybackPeriod": "18 months", "returnOnInvestment": 35, "assumptions": ["2 extra papers/year"]},
}

SAMPLE_SAFETY_ANALYSIS: dict = {
    "overallScore": 72,
    "riskLevel": "moderate",
    "issues": [
        {"id": "s1", "severity": "low", "category": "ergonomics", "title": "Chair height",
         "description": "Chairs not adjustable", "recommendation": "Buy adjustable chairs"},
        {"id": "s2", "severity": "critical", "category": "fire_safety", "title": "Single exit",
         "description": "Only one exit", "location": "GPU Room", "recommendation": "Add a second exit",
         "regulation": "NFPA 101"},
        {"id": "s3", "severity": "medium", "category": "electrical", "title": "Circuit load",
         "description": "Servers share a circuit", "recommendation": "Split circuits"},
        {"id": "s4", "severity": "critical", "category": "emergency", "title": "No eyewash",
         "description": "No eyewash station", "recommendation": "Install eyewash"},
    ],
    "compliantRegulations": ["ADA"],
    "nonCompliantRegulations": ["NFPA 101"],
    "summary": "Moderate risk, driven by egress.",
    "recommendations": ["Add a second exit"],
}


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def gateway_config() -> GatewayConfig:
    return GatewayConfig(credentials={Provider.ANTHROPIC: "test-anthropic-key", Provider.OPENAI: "test-openai-key"})


@pytest.fixture
def gateway(gateway_config, backend) -> ModelGateway:
    """Gateway whose every provider is served by the fake backend."""
    return ModelGateway(gateway_config, backends={p: backend for p in Provider})


@pytest.fixture
def sample_layout() -> Layout:
    return Layout.model_validate(SAMPLE_LAYOUT)
