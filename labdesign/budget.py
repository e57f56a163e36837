"""
Budget calculator.

Pure functions over a Layout. No generative calls, no I/O, deterministic
output for a given input. Only structured equipment entries carry a price;
plain label strings are skipped.
"""

import csv
import io
import logging
from dataclasses import dataclass

from .errors import SchemaViolationError
from .models import (
    SUM_TOLERANCE,
    BudgetAnalysis,
    BudgetItem,
    BudgetSummary,
    Currency,
    EquipmentCategory,
    Layout,
)

logger = logging.getLogger(__name__)

CURRENCY_SYMBOLS = {
    Currency.USD: "$",
    Currency.CNY: "¥",
    Currency.EUR: "€",
}


def calculate_budget_items(layout: Layout) -> list[BudgetItem]:
    """One line item per structured equipment entry, in zone order."""
    items = []
    for zone in layout.zones:
        for equip in zone.structured_equipment():
            unit_price = equip.price or 0
            items.append(BudgetItem(
                equipment_id=equip.equipment_id,
                equipment_name=equip.name,
                category=equip.category or EquipmentCategory.UTILITIES,
                quantity=equip.quantity,
                unit_price=unit_price,
                total_price=unit_price * equip.quantity,
                zone_id=zone.id,
                zone_name=zone.name,
            ))
    return items


def calculate_budget_summary(layout: Layout, currency: Currency | str = Currency.USD) -> BudgetSummary:
    """
    Aggregate a layout's priced equipment.

    cost_by_zone is keyed by zone name. Amounts are taken in `currency` as-is;
    no conversion happens anywhere in the pipeline.
    """
    items = calculate_budget_items(layout)

    cost_by_category: dict[str, float] = {}
    cost_by_zone: dict[str, float] = {}
    for item in items:
        category = item.category.value
        cost_by_category[category] = cost_by_category.get(category, 0) + item.total_price
        cost_by_zone[item.zone_name] = cost_by_zone.get(item.zone_name, 0) + item.total_price

    return BudgetSummary(
        total_cost=sum(item.total_price for item in items),
        currency=Currency(currency),
        cost_by_category=cost_by_category,
        cost_by_zone=cost_by_zone,
        item_count=len(items),
        items=items,
    )


@dataclass(frozen=True)
class BudgetReconciliation:
    """How a generated analysis compares with the computed summary."""
    matches: bool
    difference: float
    currency_mismatch: bool
    mismatched_fields: tuple[str, ...] = ()


def _breakdown_differs(reported: dict[str, float], expected: dict[str, float]) -> bool:
    # Unpriced zones are absent from the summary; a missing key counts as 0
    return any(
        abs(reported.get(k, 0) - expected.get(k, 0)) > SUM_TOLERANCE
        for k in set(reported) | set(expected)
    )


def reconcile_budget(
    analysis: BudgetAnalysis,
    summary: BudgetSummary,
    check_breakdowns: bool = False,
) -> BudgetReconciliation:
    """
    Compare a generated BudgetAnalysis against the deterministic summary.

    Args:
        analysis: The generated analysis.
        summary: Output of calculate_budget_summary for the same layout.
        check_breakdowns: Also require byCategory/byZone amounts to match, with
            missing keys counted as 0.
    """
    difference = analysis.total_cost - summary.total_cost
    mismatched = []
    if abs(difference) > SUM_TOLERANCE:
        mismatched.append("totalCost")
    if check_breakdowns:
        if _breakdown_differs(analysis.cost_breakdown.by_category, summary.cost_by_category):
            mismatched.append("costBreakdown.byCategory")
        if _breakdown_differs(analysis.cost_breakdown.by_zone, summary.cost_by_zone):
            mismatched.append("costBreakdown.byZone")
    currency_mismatch = analysis.currency != summary.currency

    return BudgetReconciliation(
        matches=not mismatched and not currency_mismatch,
        difference=difference,
        currency_mismatch=currency_mismatch,
        mismatched_fields=tuple(mismatched),
    )


def assert_budget_consistent(
    analysis: BudgetAnalysis,
    summary: BudgetSummary,
    check_breakdowns: bool = False,
) -> None:
    """
    Raise if a generated analysis disagrees with the computed summary.

    Raises:
        SchemaViolationError: on the first mismatched field.
    """
    result = reconcile_budget(analysis, summary, check_breakdowns)
    if result.matches:
        return

    if result.currency_mismatch:
        field_path = "currency"
        constraint = f"expected {summary.currency.value}, got {analysis.currency.value}"
    else:
        field_path = result.mismatched_fields[0]
        if field_path == "totalCost":
            constraint = f"expected {summary.total_cost:.2f}, got {analysis.total_cost:.2f}"
        else:
            constraint = "breakdown does not match the computed summary"

    logger.warning("budget mismatch at %s: %s", field_path, constraint)
    raise SchemaViolationError(
        f"Budget analysis disagrees with computed summary at {field_path}: {constraint}",
        field_path=field_path,
        constraint=constraint,
        violations=[{"field_path": f, "constraint": "mismatch"} for f in result.mismatched_fields],
    )


def format_currency(amount: float, currency: Currency | str = Currency.USD) -> str:
    """Whole-unit amount with symbol and thousands separators, e.g. '$12,500'."""
    symbol = CURRENCY_SYMBOLS[Currency(currency)]
    return f"{symbol}{amount:,.0f}"


def export_budget_to_csv(summary: BudgetSummary) -> str:
    """Line items plus a trailing total row, every cell quoted."""
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(["Equipment", "Category", "Zone", "Quantity", "Unit Price", "Total Price"])
    for item in summary.items:
        writer.writerow([
            item.equipment_name,
            item.category.value,
            item.zone_name,
            str(item.quantity),
            f"{item.unit_price:.2f}",
            f"{item.total_price:.2f}",
        ])
    writer.writerow([])
    writer.writerow(["Total", "", "", "", "", f"{summary.total_cost:.2f}"])
    return buf.getvalue().rstrip("\n")
