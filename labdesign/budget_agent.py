"""
Budget Agent

Generated budget analysis grounded on the deterministic budget calculator.

The prompt carries the computed BudgetSummary, and with verify_total=True the
reported totalCost and both breakdowns must agree with it. A disagreement is
a SchemaViolationError and goes through the same retry budget as malformed
output.
"""

import logging
from typing import Iterator, Optional

from .agent_base import StructuredAgent, describe_dimensions
from .budget import assert_budget_consistent, calculate_budget_summary
from .errors import PreconditionError
from .extraction import extract_model
from .llm import StreamChunk
from .models import BudgetAnalysis, BudgetSummary, Currency, Layout

logger = logging.getLogger(__name__)


BUDGET_SYSTEM_PROMPT = """You are a financial analyst specializing in laboratory and research facility budgets.

You analyze equipment costs, find optimization opportunities and produce
realistic forecasts: allocation across categories and zones, inefficiencies,
maintenance and replacement costs, ROI for equipment investments, and cheaper
alternatives that keep quality.

Always give actionable, data-driven insights with clear reasoning."""

BUDGET_JSON_STRUCTURE = """{
  "totalCost": number,
  "costBreakdown": {
    "byCategory": { "category": number },
    "byZone": { "zone name": number }
  },
  "insights": [
    {
      "type": "warning" | "info" | "success" | "optimization",
      "title": "string",
      "description": "string",
      "impact": "high" | "medium" | "low"
    }
  ],
  "optimizations": [
    {
      "title": "string",
      "description": "string",
      "potentialSavings": number,
      "difficulty": "easy" | "medium" | "hard"
    }
  ],
  "forecast": { "sixMonths": number, "oneYear": number, "threeYears": number, "assumptions": ["string"] },
  "roi": { "paybackPeriod": "string", "returnOnInvestment": number, "assumptions": ["string"] }
}"""


def _coerce_currency(currency: str) -> Currency:
    try:
        return Currency(currency)
    except ValueError:
        raise PreconditionError(
            f"Unsupported currency '{currency}'",
            {"allowed": [c.value for c in Currency]},
        ) from None


def _money(amount: float, currency: Currency) -> str:
    return f"{currency.value} {amount:,.2f}"


def describe_summary(summary: BudgetSummary) -> str:
    """Budget summary block shared by the analysis and optimization prompts."""
    cur = summary.currency
    lines = [
        f"Total Cost: {_money(summary.total_cost, cur)}",
        f"Equipment Items: {summary.item_count}",
        "",
        "Cost by Category:",
    ]
    lines += [f"- {cat}: {_money(cost, cur)}" for cat, cost in summary.cost_by_category.items()] or ["- (none)"]
    lines += ["", "Cost by Zone:"]
    lines += [f"- {zone}: {_money(cost, cur)}" for zone, cost in summary.cost_by_zone.items()] or ["- (none)"]
    lines += ["", "Equipment List:"]
    lines += [
        f"- {item.equipment_name} ({item.category.value}) in {item.zone_name}: "
        f"{item.quantity}x {_money(item.unit_price, cur)} = {_money(item.total_price, cur)}"
        for item in summary.items
    ] or ["- (no priced equipment)"]
    return "\n".join(lines)


class BudgetAgent(StructuredAgent):
    SYSTEM_PROMPT = BUDGET_SYSTEM_PROMPT
    DEFAULT_TEMPERATURE = 0.3

    def analyze(
        self,
        layout: Layout,
        currency: str = "USD",
        include_forecast: bool = True,
        include_roi: bool = True,
        verify_total: bool = True,
        *,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> BudgetAnalysis:
        """
        Analyze a layout's budget.

        Args:
            layout: Layout to analyze (not mutated).
            currency: USD, CNY or EUR. All amounts are in this currency; no
                conversion is done.
            include_forecast: Ask for a 6-month/1-year/3-year forecast.
            include_roi: Ask for an ROI estimate.
            verify_total: Require totalCost and both breakdowns to match the
                computed summary.

        Returns:
            BudgetAnalysis whose currency is the requested one.

        Raises:
            PreconditionError: unsupported currency.
            SchemaViolationError: breakdowns do not sum to totalCost, or
                (verify_total) the analysis disagrees with the computed summary.
        """
        cur = _coerce_currency(currency)
        summary = calculate_budget_summary(layout, cur)

        prompt = (
            "Analyze the following laboratory budget and provide detailed insights.\n\n"
            f"Layout: {layout.name}\n"
            f"Zones: {len(layout.zones)}\n"
            f"Dimensions: {describe_dimensions(layout)}\n\n"
            f"{describe_summary(summary)}\n\n"
            "Provide 3-5 insights (allocation efficiency, cost concentrations, risks, good decisions) "
            "and 3-5 optimizations (savings, alternatives, bulk purchasing, phased procurement)."
        )
        if include_forecast:
            prompt += "\nInclude a cost forecast for 6 months, 1 year and 3 years (maintenance at 10-15% annually)."
        if include_roi:
            prompt += "\nInclude an ROI analysis (payback period, return on investment percentage)."
        prompt += (
            f"\n\nAll amounts are in {cur.value}. totalCost and costBreakdown must reproduce the "
            "figures above exactly; costBreakdown.byZone is keyed by zone name.\n\n"
            f"Respond ONLY with valid JSON matching this structure:\n{BUDGET_JSON_STRUCTURE}"
        )

        def parse(text: str) -> BudgetAnalysis:
            analysis = extract_model(text, BudgetAnalysis).model_copy(update={"currency": cur})
            if not include_forecast:
                analysis = analysis.model_copy(update={"forecast": None})
            if not include_roi:
                analysis = analysis.model_copy(update={"roi": None})
            if verify_total:
                assert_budget_consistent(analysis, summary, check_breakdowns=True)
            return analysis

        analysis = self._run_structured(prompt, parse, temperature=temperature, model_key=model_key)
        logger.info(
            "BudgetAgent: '%s' total %s, %d insights, %d optimizations",
            layout.name, _money(analysis.total_cost, cur), len(analysis.insights), len(analysis.optimizations),
        )
        return analysis

    def stream_optimizations(
        self,
        layout: Layout,
        currency: str = "USD",
        *,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> Iterator[StreamChunk]:
        """Stream free-text cost optimization strategies."""
        summary = calculate_budget_summary(layout, _coerce_currency(currency))
        prompt = (
            "Analyze this laboratory budget and provide detailed optimization strategies.\n\n"
            f"{describe_summary(summary)}\n\n"
            "Focus on:\n"
            "1. Alternative equipment that maintains quality\n"
            "2. Bulk purchasing opportunities\n"
            "3. Phased procurement\n"
            "4. Equipment sharing across zones\n"
            "5. Lease vs. buy for expensive items"
        )
        return self._stream(prompt, temperature=0.5 if temperature is None else temperature, model_key=model_key)

    def compare_scenarios(
        self,
        scenario_a: Layout,
        scenario_b: Layout,
        currency: str = "USD",
        *,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Free-text comparison of two layouts' budgets with a recommendation."""
        cur = _coerce_currency(currency)
        blocks = []
        for label, layout in (("Scenario 1", scenario_a), ("Scenario 2", scenario_b)):
            summary = calculate_budget_summary(layout, cur)
            blocks.append(
                f"{label}: {layout.name}\n"
                f"- Total Cost: {_money(summary.total_cost, cur)}\n"
                f"- Items: {summary.item_count}\n"
                f"- Categories: {', '.join(summary.cost_by_category) or 'None'}"
            )
        prompt = (
            "Compare these two laboratory budget scenarios and recommend which is better.\n\n"
            + "\n\n".join(blocks)
            + "\n\nProvide:\n"
            "1. Cost difference analysis\n"
            "2. Value-for-money assessment\n"
            "3. Which scenario offers better ROI and why\n"
            "4. Recommendation with reasoning"
        )
        return self._complete(prompt, temperature=0.4 if temperature is None else temperature, model_key=model_key)

    def suggest_alternatives(
        self,
        equipment_name: str,
        current_price: float,
        category: str,
        currency: str = "USD",
        *,
        model_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Free-text list of cheaper alternatives for one equipment item."""
        if current_price < 0:
            raise PreconditionError("current_price must be >= 0", {"current_price": current_price})
        cur = _coerce_currency(currency)

        prompt = (
            "Suggest cost-effective alternatives for this laboratory equipment.\n\n"
            f"Equipment: {equipment_name}\n"
            f"Current Price: {_money(current_price, cur)}\n"
            f"Category: {category}\n\n"
            "Provide 3-5 options that cost 20-50% less, keep acceptable quality, come from "
            "reputable vendors, and explain the trade-offs. Format as a numbered list."
        )
        return self._complete(prompt, temperature=0.6 if temperature is None else temperature, model_key=model_key)
