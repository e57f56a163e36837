"""
FastAPI HTTP server for the lab design pipeline.

Exposes:
- POST /api/ai/generate-layout      - generate / modify / analyze layouts
- POST /api/ai/recommend-equipment  - equipment recommendations
- POST /api/ai/safety-analysis      - ?action=analyze|check-regulation|generate-documentation
- POST /api/ai/budget-analysis      - ?action=analyze|compare
- POST /api/ai/emotion-design       - emotion script -> spatial design
- POST /api/ai/parallel-universes   - generate variants / fuse
- POST /api/ai/documentation        - full | stream | equipment | safety-checklist
- POST /api/budget/summary          - deterministic budget summary (no model call)
- GET  /api/models                  - registered models and availability
- GET  /api/disciplines             - research disciplines and their starter templates
- GET  /api/disciplines/{id}/layout - starter layout for one discipline
- GET  /health

Pipeline errors map to HTTP statuses:
PreconditionError 400, ConfigurationError 503, TransportError 502,
GenerationFormatError / SchemaViolationError 422. The body is
{"detail": {"code", "message", "details"}}.
"""

import logging
import os
import sys
from functools import lru_cache
from typing import Literal, Optional, Union

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import Field

from .budget import calculate_budget_summary, export_budget_to_csv, format_currency
from .budget_agent import BudgetAgent
from .config import Capability, GatewayConfig
from .disciplines import get_discipline_template, load_templates, template_to_layout
from .doc_agent import DocumentationAgent
from .emotion_agent import DesignConstraints, EmotionDesignAgent
from .errors import (
    ConfigurationError,
    DesignPipelineError,
    GenerationFormatError,
    PreconditionError,
    SchemaViolationError,
    TransportError,
)
from .layout_agent import LayoutAgent
from .llm import ModelGateway
from .models import (
    DomainModel,
    EmotionScript,
    Layout,
    SafetyAnalysis,
    UniverseVariant,
    Zone,
)
from .orchestrator import run_design_review
from .recommendation_agent import RecommendationAgent
from .safety_agent import SafetyAgent
from .universe_agent import ParallelUniverseAgent

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    stream=sys.stdout,
    force=True
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Lab Design API",
    description="REST API for AI-assisted lab layout design and analysis",
    version="1.0.0",
)

# Configure CORS
origins_env = os.getenv("BACKEND_CORS_ORIGINS")
if origins_env:
    allow_origins = [o.strip() for o in origins_env.split(",") if o.strip()]
else:
    allow_origins = ["*"]

logger.info("CORS allow_origins = %r", allow_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS: dict[type[DesignPipelineError], int] = {
    PreconditionError: 400,
    ConfigurationError: 503,
    TransportError: 502,
    GenerationFormatError: 422,
    SchemaViolationError: 422,
}


def status_for(exc: DesignPipelineError) -> int:
    for error_type, status in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status
    return 500


@app.exception_handler(DesignPipelineError)
async def pipeline_error_handler(request: Request, exc: DesignPipelineError) -> JSONResponse:
    status = status_for(exc)
    logger.warning("%s %s -> %d %s: %s", request.method, request.url.path, status, exc.code, exc.message)
    return JSONResponse(status_code=status, content={"detail": exc.to_dict()})


@lru_cache(maxsize=1)
def get_gateway() -> ModelGateway:
    """Process-wide gateway built from the environment. Tests override this dependency."""
    return ModelGateway(GatewayConfig.from_env())


# =============================================================================
# REQUEST MODELS
# =============================================================================

class GenerateLayoutRequest(DomainModel):
    """Request body for POST /api/ai/generate-layout."""
    action: Literal["generate", "modify", "analyze"] = "generate"
    requirements: Optional[str] = None
    constraints: Optional[str] = None
    existing_layout: Optional[Layout] = Field(default=None, description="Layout to modify or analyze")
    discipline: Optional[str] = Field(default=None, description="Research discipline, e.g. 'life-health'")
    model_key: Optional[str] = None


class RecommendEquipmentRequest(DomainModel):
    layout: Layout
    selected_zone: Optional[Zone] = None
    current_equipment: list[str] = Field(default_factory=list)
    budget_limit: Optional[float] = None
    focus_category: Optional[str] = None
    model_key: Optional[str] = None


class SafetyRequest(DomainModel):
    layout: Layout
    focus_areas: Optional[list[str]] = None
    strict_mode: bool = False
    regulation: Optional[str] = None
    analysis: Optional[SafetyAnalysis] = Field(default=None, description="Prior analysis for documentation")
    model_key: Optional[str] = None


class BudgetRequest(DomainModel):
    layout: Layout
    compare_layout: Optional[Layout] = Field(default=None, description="Second scenario for action=compare")
    currency: str = "USD"
    include_forecast: bool = True
    include_roi: bool = True
    model_key: Optional[str] = None


class EmotionDesignRequest(DomainModel):
    emotion_script: EmotionScript
    constraints: Optional[DesignConstraints] = None
    model_key: Optional[str] = None


class ParallelUniverseRequest(DomainModel):
    action: Literal["generate", "fuse"] = "generate"
    layout: Optional[Layout] = None
    decision_point: Optional[str] = None
    constraints: Optional[str] = None
    variants: list[Union[UniverseVariant, Layout]] = Field(default_factory=list)
    strategy: Optional[str] = None
    model_key: Optional[str] = None


class DocumentationRequest(DomainModel):
    layout: Layout
    mode: Literal["full", "stream", "equipment", "safety-checklist"] = "full"
    locale: str = "en"
    sections: Optional[list[str]] = None
    model_key: Optional[str] = None


class BudgetSummaryRequest(DomainModel):
    layout: Layout
    currency: str = "USD"


class DesignReviewRequest(DomainModel):
    layout: Layout
    currency: str = "USD"
    model_key: Optional[str] = None


def _require(value, name: str):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise PreconditionError(f"'{name}' is required for this action")
    return value


# =============================================================================
# ENDPOINTS
# =============================================================================

@app.post("/api/ai/generate-layout")
def generate_layout(req: GenerateLayoutRequest, gateway: ModelGateway = Depends(get_gateway)):
    agent = LayoutAgent(gateway, model_key=req.model_key)
    logger.info("generate-layout action=%s discipline=%s", req.action, req.discipline)

    if req.action == "analyze":
        analysis = agent.analyze(_require(req.existing_layout, "existingLayout"), discipline=req.discipline)
        return {"analysis": analysis}

    requirements = _require(req.requirements, "requirements")
    if req.action == "modify":
        layout = agent.modify(_require(req.existing_layout, "existingLayout"), requirements, discipline=req.discipline)
    else:
        layout = agent.generate(requirements, req.constraints, discipline=req.discipline)
    return {"layout": layout.to_wire()}


@app.post("/api/ai/recommend-equipment")
def recommend_equipment(req: RecommendEquipmentRequest, gateway: ModelGateway = Depends(get_gateway)):
    agent = RecommendationAgent(gateway, model_key=req.model_key)
    response = agent.recommend(
        req.layout,
        selected_zone=req.selected_zone,
        current_equipment=req.current_equipment,
        budget_limit=req.budget_limit,
        focus_category=req.focus_category,
    )
    return response.to_wire()


@app.post("/api/ai/safety-analysis")
def safety_analysis(
    req: SafetyRequest,
    action: Literal["analyze", "check-regulation", "generate-documentation"] = Query("analyze"),
    gateway: ModelGateway = Depends(get_gateway),
):
    agent = SafetyAgent(gateway, model_key=req.model_key)
    logger.info("safety-analysis action=%s", action)

    if action == "check-regulation":
        check = agent.check_regulation(req.layout, _require(req.regulation, "regulation"))
        return check.to_wire()
    if action == "generate-documentation":
        analysis = req.analysis
        if analysis is None:
            analysis = agent.analyze(req.layout, req.focus_areas, req.strict_mode)
        return {"documentation": agent.generate_report(req.layout, analysis)}

    analysis = agent.analyze(req.layout, req.focus_areas, req.strict_mode)
    return analysis.to_wire()


@app.post("/api/ai/budget-analysis")
def budget_analysis(
    req: BudgetRequest,
    action: Literal["analyze", "compare"] = Query("analyze"),
    gateway: ModelGateway = Depends(get_gateway),
):
    agent = BudgetAgent(gateway, model_key=req.model_key)
    logger.info("budget-analysis action=%s", action)

    if action == "compare":
        other = _require(req.compare_layout, "compareLayout")
        return {"comparison": agent.compare_scenarios(req.layout, other, req.currency)}

    analysis = agent.analyze(
        req.layout,
        currency=req.currency,
        include_forecast=req.include_forecast,
        include_roi=req.include_roi,
    )
    return analysis.to_wire()


@app.post("/api/ai/emotion-design")
def emotion_design(req: EmotionDesignRequest, gateway: ModelGateway = Depends(get_gateway)):
    agent = EmotionDesignAgent(gateway, model_key=req.model_key)
    return agent.design(req.emotion_script, req.constraints).to_wire()


@app.post("/api/ai/parallel-universes")
def parallel_universes(req: ParallelUniverseRequest, gateway: ModelGateway = Depends(get_gateway)):
    agent = ParallelUniverseAgent(gateway, model_key=req.model_key)
    logger.info("parallel-universes action=%s", req.action)

    if req.action == "fuse":
        fused = agent.fuse(req.variants, _require(req.strategy, "strategy"))
        return {"layout": fused.to_wire()}

    variants = agent.generate_variants(
        _require(req.layout, "layout"),
        _require(req.decision_point, "decisionPoint"),
        req.constraints,
    )
    return {"variants": [v.to_wire() for v in variants]}


@app.post("/api/ai/documentation")
def documentation(req: DocumentationRequest, gateway: ModelGateway = Depends(get_gateway)):
    agent = DocumentationAgent(gateway, model_key=req.model_key)
    logger.info("documentation mode=%s locale=%s", req.mode, req.locale)

    if req.mode == "stream":
        # Created before the response starts so configuration errors still map to a status
        chunks = agent.stream(req.layout, req.locale)
        return StreamingResponse(
            (chunk.text for chunk in chunks if chunk.text),
            media_type="text/markdown; charset=utf-8",
        )
    if req.mode == "equipment":
        return {"documentation": agent.equipment_table(req.layout)}
    if req.mode == "safety-checklist":
        return {"documentation": agent.safety_checklist(req.layout)}
    return {"documentation": agent.generate(req.layout, req.locale, req.sections)}


@app.post("/api/ai/design-review")
def design_review(req: DesignReviewRequest, gateway: ModelGateway = Depends(get_gateway)):
    review = run_design_review(req.layout, gateway, currency=req.currency, model_key=req.model_key)
    return review.to_wire()


@app.post("/api/budget/summary")
def budget_summary(req: BudgetSummaryRequest):
    try:
        summary = calculate_budget_summary(req.layout, req.currency)
    except ValueError:
        raise PreconditionError(f"Unsupported currency '{req.currency}'") from None
    return {
        "summary": summary.to_wire(),
        "formattedTotal": format_currency(summary.total_cost, summary.currency),
        "csv": export_budget_to_csv(summary),
    }


@app.get("/api/models")
def list_models(capability: Optional[Capability] = None, gateway: ModelGateway = Depends(get_gateway)):
    available = {m.key for m in gateway.config.available_models(capability)}
    models = [
        {
            "key": m.key,
            "name": m.name,
            "provider": m.provider.value,
            "capabilities": [c.value for c in m.capabilities],
            "description": m.description,
            "available": m.key in available,
        }
        for m in gateway.config.models.values()
        if capability is None or capability in m.capabilities
    ]
    return {"models": models, "providers": [p.value for p in gateway.config.available_providers()]}


@app.get("/api/disciplines")
def list_disciplines():
    """Research disciplines with template metadata. No model call."""
    disciplines = [
        {
            "id": template.id.value,
            "name": template.name,
            "description": template.description,
            "meta": template.meta.to_wire(),
            "recommendedEquipment": [c.to_wire() for c in template.recommended_equipment],
        }
        for template in load_templates().values()
    ]
    return {"disciplines": disciplines}


@app.get("/api/disciplines/{discipline}/layout")
def discipline_layout(discipline: str):
    """Starter layout for one discipline. Unknown ids are 400s."""
    return {"layout": template_to_layout(get_discipline_template(discipline)).to_wire()}


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok"}


def main():
    import uvicorn

    uvicorn.run(
        "labdesign.server:app",
        host=os.getenv("LABDESIGN_HOST", "127.0.0.1"),
        port=int(os.getenv("LABDESIGN_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
