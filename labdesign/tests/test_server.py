"""
Tests for the FastAPI server.

Tests verify:
- Every endpoint returns the artifact in camelCase wire form
- Pipeline errors map to HTTP statuses with a structured detail body
  (400 precondition, 422 format/schema, 502 transport, 503 configuration)
- Streaming documentation is served as text/markdown
- /api/budget/summary and the discipline endpoints need no backend
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from labdesign.budget import calculate_budget_summary
from labdesign.config import GatewayConfig, Provider
from labdesign.llm import ModelGateway
from labdesign.models import BudgetAnalysis, DesignReview, Layout, SafetyAnalysis
from labdesign.server import app, get_gateway
from labdesign.tests.conftest import (
    SAMPLE_BUDGET_ANALYSIS,
    SAMPLE_LAYOUT,
    SAMPLE_SAFETY_ANALYSIS,
    wrap_json,
)


@pytest.fixture
def client(gateway):
    """TestClient whose gateway is served by the fake backend."""
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def unconfigured_client():
    """TestClient whose gateway has no credentials and no injected backends."""
    app.dependency_overrides[get_gateway] = lambda: ModelGateway(GatewayConfig(credentials={}))
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealthAndModels:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_models_availability(self, client):
        data = client.get("/api/models").json()
        by_key = {m["key"]: m for m in data["models"]}
        assert by_key["claude-sonnet"]["available"] is True
        assert by_key["gpt-4o"]["available"] is True
        assert by_key["poe-claude"]["available"] is False
        assert by_key["sdxl"]["capabilities"] == ["image"]
        assert set(data["providers"]) == {Provider.ANTHROPIC.value, Provider.OPENAI.value}

    def test_models_capability_filter(self, client):
        data = client.get("/api/models", params={"capability": "image"}).json()
        assert {m["key"] for m in data["models"]} == {"sdxl", "flux-schnell"}


class TestGenerateLayout:

    def test_generate(self, client, backend):
        backend.queue(wrap_json(SAMPLE_LAYOUT))
        response = client.post("/api/ai/generate-layout", json={"requirements": "compact ML lab"})

        assert response.status_code == 200
        layout = response.json()["layout"]
        assert layout["dimensions"] == {"width": 10, "height": 8, "unit": "m"}
        assert layout["connections"][0]["from"] == "entrance-1"

    def test_modify(self, client, backend):
        backend.queue(wrap_json({**SAMPLE_LAYOUT, "name": "Revised Lab"}))
        response = client.post("/api/ai/generate-layout", json={
            "action": "modify",
            "requirements": "rename it",
            "existingLayout": SAMPLE_LAYOUT,
        })
        assert response.status_code == 200
        assert response.json()["layout"]["name"] == "Revised Lab"

    def test_analyze(self, client, backend):
        backend.queue("Looks efficient.")
        response = client.post("/api/ai/generate-layout", json={"action": "analyze", "existingLayout": SAMPLE_LAYOUT})
        assert response.json() == {"analysis": "Looks efficient."}

    def test_generate_with_discipline(self, client, backend):
        backend.queue(wrap_json(SAMPLE_LAYOUT))
        response = client.post("/api/ai/generate-layout", json={"requirements": "wet lab", "discipline": "life-health"})

        assert response.status_code == 200
        assert "DISCIPLINE: Life & Health" in backend.calls[0].system_role

    def test_unknown_discipline_is_400(self, client, backend):
        response = client.post("/api/ai/generate-layout", json={"requirements": "lab", "discipline": "alchemy"})

        assert response.status_code == 400
        assert response.json()["detail"]["details"]["allowed"][0] == "life-health"
        assert backend.calls == []

    def test_missing_requirements_is_400(self, client, backend):
        response = client.post("/api/ai/generate-layout", json={"action": "generate"})

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["code"] == "PRECONDITION"
        assert "requirements" in detail["message"]
        assert backend.calls == []

    def test_prose_output_is_422(self, client, backend):
        backend.queue("Sorry, I can only describe it in words.")
        response = client.post("/api/ai/generate-layout", json={"requirements": "a lab"})

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["code"] == "GENERATION_FORMAT"
        assert detail["details"]["substring"].startswith("Sorry")

    def test_schema_violation_is_422(self, client, backend):
        backend.queue(wrap_json({"name": "x"}))
        response = client.post("/api/ai/generate-layout", json={"requirements": "a lab"})

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["code"] == "SCHEMA_VIOLATION"
        assert detail["details"]["field_path"] == "description"

    def test_transport_failure_is_502(self, client, backend):
        backend.queue(TimeoutError("read timed out"))
        response = client.post("/api/ai/generate-layout", json={"requirements": "a lab"})

        assert response.status_code == 502
        assert response.json()["detail"] == {
            "code": "TRANSPORT",
            "message": "read timed out",
            "details": {"backend_key": "claude-sonnet"},
        }

    def test_missing_credential_is_503(self, unconfigured_client):
        response = unconfigured_client.post("/api/ai/generate-layout", json={"requirements": "a lab"})
        assert response.status_code == 503
        assert response.json()["detail"]["code"] == "CONFIGURATION"

    def test_unknown_model_is_503(self, client):
        response = client.post("/api/ai/generate-layout", json={"requirements": "a lab", "modelKey": "gpt-9"})
        assert response.status_code == 503

    def test_invalid_layout_body_is_422(self, client):
        bad = {**SAMPLE_LAYOUT, "zones": [{**SAMPLE_LAYOUT["zones"][0], "type": "kitchen"}]}
        response = client.post("/api/ai/generate-layout", json={"action": "analyze", "existingLayout": bad})
        assert response.status_code == 422


class TestAnalysisEndpoints:

    def test_recommend_equipment(self, client, backend):
        backend.queue(wrap_json({"recommendations": [
            {"name": "UPS", "reason": "outages", "priority": "high", "category": "utilities"},
        ]}))
        response = client.post("/api/ai/recommend-equipment", json={
            "layout": SAMPLE_LAYOUT,
            "selectedZone": SAMPLE_LAYOUT["zones"][0],
            "budgetLimit": 5000,
        })
        assert response.status_code == 200
        assert response.json()["recommendations"][0]["name"] == "UPS"
        assert "- Name: GPU Room" in backend.calls[0].task_prompt

    def test_safety_analysis(self, client, backend):
        backend.queue(wrap_json(SAMPLE_SAFETY_ANALYSIS))
        response = client.post("/api/ai/safety-analysis", json={"layout": SAMPLE_LAYOUT, "focusAreas": ["fire"]})

        data = response.json()
        assert response.status_code == 200
        assert data["riskLevel"] == "moderate"
        assert [i["severity"] for i in data["issues"]] == ["critical", "critical", "medium", "low"]

    def test_check_regulation(self, client, backend):
        backend.queue(wrap_json({"compliant": True, "issues": [], "recommendations": []}))
        response = client.post(
            "/api/ai/safety-analysis",
            params={"action": "check-regulation"},
            json={"layout": SAMPLE_LAYOUT, "regulation": "ADA"},
        )
        assert response.json() == {"compliant": True, "issues": [], "recommendations": []}

    def test_check_regulation_requires_regulation(self, client):
        response = client.post(
            "/api/ai/safety-analysis",
            params={"action": "check-regulation"},
            json={"layout": SAMPLE_LAYOUT},
        )
        assert response.status_code == 400

    def test_safety_documentation_with_prior_analysis(self, client, backend):
        backend.queue("# Safety Report")
        response = client.post(
            "/api/ai/safety-analysis",
            params={"action": "generate-documentation"},
            json={"layout": SAMPLE_LAYOUT, "analysis": SAMPLE_SAFETY_ANALYSIS},
        )
        assert response.json() == {"documentation": "# Safety Report"}
        assert len(backend.calls) == 1

    def test_budget_analysis(self, client, backend):
        backend.queue(wrap_json(SAMPLE_BUDGET_ANALYSIS))
        response = client.post("/api/ai/budget-analysis", json={"layout": SAMPLE_LAYOUT, "currency": "USD"})

        data = response.json()
        assert data["totalCost"] == 250
        assert data["costBreakdown"]["byZone"] == {"GPU Room": 200, "Huddle Room": 50}
        assert data["currency"] == "USD"

    def test_budget_compare(self, client, backend):
        backend.queue("Scenario 1 is better.")
        response = client.post(
            "/api/ai/budget-analysis",
            params={"action": "compare"},
            json={"layout": SAMPLE_LAYOUT, "compareLayout": {**SAMPLE_LAYOUT, "name": "Other"}},
        )
        assert response.json() == {"comparison": "Scenario 1 is better."}

    def test_budget_bad_currency_is_400(self, client, backend):
        response = client.post("/api/ai/budget-analysis", json={"layout": SAMPLE_LAYOUT, "currency": "GBP"})
        assert response.status_code == 400
        assert backend.calls == []

    def test_design_review(self, client, gateway):
        layout = Layout.model_validate(SAMPLE_LAYOUT)
        review = DesignReview(
            layout_name=layout.name,
            safety=SafetyAnalysis.model_validate(SAMPLE_SAFETY_ANALYSIS),
            budget=BudgetAnalysis.model_validate(SAMPLE_BUDGET_ANALYSIS),
            budget_summary=calculate_budget_summary(layout),
        )
        with patch("labdesign.server.run_design_review", return_value=review) as mock_review:
            response = client.post("/api/ai/design-review", json={"layout": SAMPLE_LAYOUT, "currency": "USD"})

        assert response.status_code == 200
        data = response.json()
        assert data["layoutName"] == "Compact ML Lab"
        assert data["budgetSummary"]["totalCost"] == 250
        assert mock_review.call_args.args[1] is gateway


class TestGenerativeEndpoints:

    def test_emotion_design(self, client, backend):
        backend.queue(wrap_json({
            "spatialElements": [{"category": "color", "recommendation": "warm tones",
                                 "rationale": "calm", "priority": "low"}],
            "suggestedZones": [],
            "designNarrative": "A calm walk.",
        }))
        script = {"id": "s", "name": "Calm", "totalDuration": 5,
                  "nodes": [{"id": "n", "emotion": "calm", "intensity": 0.5, "timestamp": 0}]}

        response = client.post("/api/ai/emotion-design", json={"emotionScript": script})

        data = response.json()
        assert data["emotionScript"]["name"] == "Calm"
        assert data["designNarrative"] == "A calm walk."

    def test_emotion_design_empty_script_is_400(self, client):
        script = {"id": "s", "name": "Empty", "totalDuration": 0, "nodes": []}
        response = client.post("/api/ai/emotion-design", json={"emotionScript": script})
        assert response.status_code == 400

    def test_parallel_universes_generate(self, client, backend):
        variant = {"name": "A", "theme": "t", "description": "d", "layout": SAMPLE_LAYOUT,
                   "pros": [], "cons": [], "estimatedCost": 1000, "efficiencyScore": 0.5}
        backend.queue(wrap_json([variant, {**variant, "name": "B"}]))

        response = client.post("/api/ai/parallel-universes", json={
            "layout": SAMPLE_LAYOUT, "decisionPoint": "entrance placement",
        })

        assert [v["name"] for v in response.json()["variants"]] == ["A", "B"]

    def test_parallel_universes_fuse(self, client, backend):
        backend.queue(wrap_json({**SAMPLE_LAYOUT, "name": "Fused"}))
        response = client.post("/api/ai/parallel-universes", json={
            "action": "fuse", "variants": [SAMPLE_LAYOUT, SAMPLE_LAYOUT], "strategy": "compromise",
        })
        assert response.json()["layout"]["name"] == "Fused"

    def test_fuse_nothing_is_400(self, client, backend):
        response = client.post("/api/ai/parallel-universes", json={
            "action": "fuse", "variants": [], "strategy": "compromise",
        })
        assert response.status_code == 400
        assert backend.calls == []

    def test_documentation_full(self, client, backend):
        backend.queue("GPU Room, Huddle Room and Main Entrance are described here.")
        response = client.post("/api/ai/documentation", json={"layout": SAMPLE_LAYOUT, "locale": "zh"})
        assert response.json()["documentation"].startswith("GPU Room")

    def test_documentation_stream(self, client, backend):
        backend.queue("# Docs\n\nOnly the GPU Room is covered.")
        response = client.post("/api/ai/documentation", json={"layout": SAMPLE_LAYOUT, "mode": "stream"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/markdown")
        assert response.text.startswith("# Docs")
        assert "## Zone Index" in response.text
        assert "Huddle Room" in response.text

    def test_documentation_stream_unconfigured_is_503(self, unconfigured_client):
        response = unconfigured_client.post("/api/ai/documentation", json={"layout": SAMPLE_LAYOUT, "mode": "stream"})
        assert response.status_code == 503

    def test_documentation_equipment(self, client, backend):
        backend.queue("| Item |")
        response = client.post("/api/ai/documentation", json={"layout": SAMPLE_LAYOUT, "mode": "equipment"})
        assert response.json() == {"documentation": "| Item |"}


class TestBudgetSummary:

    def test_summary(self, unconfigured_client):
        response = unconfigured_client.post("/api/budget/summary", json={"layout": SAMPLE_LAYOUT})

        assert response.status_code == 200
        data = response.json()
        assert data["summary"]["totalCost"] == 250
        assert data["summary"]["costByZone"] == {"GPU Room": 200, "Huddle Room": 50}
        assert data["formattedTotal"] == "$250"
        assert data["csv"].splitlines()[-1] == '"Total","","","","","250.00"'

    def test_cny(self, unconfigured_client):
        response = unconfigured_client.post("/api/budget/summary", json={"layout": SAMPLE_LAYOUT, "currency": "CNY"})
        assert response.json()["formattedTotal"] == "¥250"

    def test_bad_currency_is_400(self, unconfigured_client):
        response = unconfigured_client.post("/api/budget/summary", json={"layout": SAMPLE_LAYOUT, "currency": "GBP"})
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "PRECONDITION"


class TestDisciplines:

    def test_list(self, unconfigured_client):
        response = unconfigured_client.get("/api/disciplines")

        assert response.status_code == 200
        disciplines = {d["id"]: d for d in response.json()["disciplines"]}
        assert set(disciplines) == {"life-health", "deep-space-ocean", "social-innovation", "micro-nano", "digital-info"}
        assert disciplines["digital-info"]["meta"] == {"minArea": 80, "capacity": 12, "budgetRange": [300000, 1000000]}
        assert disciplines["digital-info"]["recommendedEquipment"][0]["zoneType"] == "compute"

    def test_template_layout(self, unconfigured_client):
        response = unconfigured_client.get("/api/disciplines/micro-nano/layout")

        assert response.status_code == 200
        layout = response.json()["layout"]
        assert layout["dimensions"] == {"width": 14, "height": 10, "unit": "m"}
        assert layout["zones"][0]["type"] == "utility"
        assert Layout.model_validate(layout).zone_by_id("zone-compute").name == "Data Processing"

    def test_unknown_template_is_400(self, unconfigured_client):
        response = unconfigured_client.get("/api/disciplines/alchemy/layout")
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "PRECONDITION"
