"""
Design review orchestration.

Runs the Safety and Budget agents concurrently over one immutable layout
snapshot. Errors from either agent propagate to the caller.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from .budget import calculate_budget_summary
from .budget_agent import BudgetAgent
from .llm import ModelGateway
from .models import DesignReview, Layout
from .safety_agent import SafetyAgent

logger = logging.getLogger(__name__)


def run_design_review(
    layout: Layout,
    gateway: ModelGateway,
    currency: str = "USD",
    model_key: Optional[str] = None,
    retry_budget: int = 0,
) -> DesignReview:
    """
    Safety analysis and budget analysis of the same layout.

    Args:
        layout: Frozen layout shared read-only by both agents.
        gateway: Gateway used by both agents.
        currency: Budget currency (USD, CNY, EUR).
        model_key: Backend key for both agents (agent default if None).
        retry_budget: Repair attempts allowed per agent.

    Returns:
        DesignReview with both analyses and the grounding budget summary.
    """
    safety_agent = SafetyAgent(gateway, model_key=model_key, retry_budget=retry_budget)
    budget_agent = BudgetAgent(gateway, model_key=model_key, retry_budget=retry_budget)

    logger.info("design review: '%s' (%d zones)", layout.name, len(layout.zones))
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="design-review") as pool:
        safety_future = pool.submit(safety_agent.analyze, layout)
        budget_future = pool.submit(budget_agent.analyze, layout, currency)
        safety = safety_future.result()
        budget = budget_future.result()

    return DesignReview(
        layout_name=layout.name,
        safety=safety,
        budget=budget,
        budget_summary=calculate_budget_summary(layout, budget.currency),
    )
