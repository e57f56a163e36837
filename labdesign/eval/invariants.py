"""
Invariant validation helpers for the evaluation harness.

These functions check properties of generated artifacts without raising
exceptions, returning a list of human-readable violation messages instead.
Most of these are already enforced by the schemas; the harness re-checks
them so a report states exactly which properties held.
"""

from typing import Optional

from labdesign.budget import reconcile_budget
from labdesign.models import (
    SEVERITY_RANK,
    SUM_TOLERANCE,
    BudgetAnalysis,
    BudgetSummary,
    Layout,
    SafetyAnalysis,
    UniverseVariant,
    risk_level_for_score,
)


def check_layout_invariants(layout: Layout, min_zones: int = 1) -> list[str]:
    """
    Validate a Layout against structural invariants.

    Args:
        layout: The layout to validate.
        min_zones: Minimum number of zones the case expects.

    Returns:
        List of violation messages. Empty list means all invariants passed.
    """
    violations = []

    # Invariant 1: enough zones
    if len(layout.zones) < min_zones:
        violations.append(f"Layout has {len(layout.zones)} zones, expected at least {min_zones}")

    # Invariant 2: unique zone ids
    ids = [z.id for z in layout.zones]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        violations.append(f"Duplicate zone ids: {duplicates}")

    # Invariant 3: geometry bounds
    for zone in layout.zones:
        if zone.position.x < 0 or zone.position.y < 0:
            violations.append(f"Zone {zone.id}: negative position ({zone.position.x}, {zone.position.y})")
        if zone.size.width < 1 or zone.size.height < 1:
            violations.append(f"Zone {zone.id}: size {zone.size.width}x{zone.size.height} below 1")

    # Invariant 4: connections reference existing zones
    zone_ids = set(ids)
    for conn in layout.connections or []:
        for endpoint in (conn.from_zone, conn.to_zone):
            if endpoint not in zone_ids:
                violations.append(f"Connection {conn.from_zone}->{conn.to_zone}: unknown zone '{endpoint}'")

    return violations


def check_budget_invariants(
    analysis: BudgetAnalysis,
    summary: Optional[BudgetSummary] = None,
) -> list[str]:
    """
    Validate a BudgetAnalysis, optionally against the computed summary.

    Returns:
        List of violation messages. Empty list means all invariants passed.
    """
    violations = []

    # Invariant 1: breakdowns sum to the total
    for label, values in (
        ("byCategory", analysis.cost_breakdown.by_category),
        ("byZone", analysis.cost_breakdown.by_zone),
    ):
        subtotal = sum(values.values())
        if abs(subtotal - analysis.total_cost) > SUM_TOLERANCE:
            violations.append(f"{label} sums to {subtotal:.2f}, totalCost is {analysis.total_cost:.2f}")

    # Invariant 2: savings are non-negative
    for idx, opt in enumerate(analysis.optimizations):
        if opt.potential_savings < 0:
            violations.append(f"optimizations[{idx}]: potentialSavings={opt.potential_savings} is negative")

    # Invariant 3: grounded on the computed summary
    if summary is not None:
        result = reconcile_budget(analysis, summary, check_breakdowns=True)
        if result.currency_mismatch:
            violations.append(
                f"currency {analysis.currency.value} differs from summary currency {summary.currency.value}"
            )
        for field in result.mismatched_fields:
            violations.append(f"{field} disagrees with computed summary (total difference {result.difference:.2f})")

    return violations


def check_safety_invariants(analysis: SafetyAnalysis) -> list[str]:
    """
    Validate a SafetyAnalysis: score range, risk band, severity ordering.

    Returns:
        List of violation messages. Empty list means all invariants passed.
    """
    violations = []

    if not (0 <= analysis.overall_score <= 100):
        violations.append(f"overallScore={analysis.overall_score} not in range [0, 100]")
    else:
        expected = risk_level_for_score(analysis.overall_score)
        if analysis.risk_level != expected:
            violations.append(
                f"riskLevel '{analysis.risk_level.value}' does not match score "
                f"{analysis.overall_score} (expected '{expected.value}')"
            )

    ranks = [SEVERITY_RANK[issue.severity] for issue in analysis.issues]
    for idx in range(1, len(ranks)):
        if ranks[idx] < ranks[idx - 1]:
            violations.append(
                f"issues[{idx}] ({analysis.issues[idx].severity.value}) follows a less severe issue"
            )

    return violations


def check_variant_invariants(variants: list[UniverseVariant]) -> list[str]:
    """
    Validate a parallel-universe variant list.

    Returns:
        List of violation messages. Empty list means all invariants passed.
    """
    violations = []

    if not (2 <= len(variants) <= 3):
        violations.append(f"Expected 2-3 variants, got {len(variants)}")

    for idx, variant in enumerate(variants):
        if not (0.0 <= variant.efficiency_score <= 1.0):
            violations.append(f"Variant[{idx}]: efficiencyScore={variant.efficiency_score} not in range [0.0, 1.0]")
        if variant.estimated_cost <= 0:
            violations.append(f"Variant[{idx}]: estimatedCost={variant.estimated_cost} is not positive")
        for v in check_layout_invariants(variant.layout):
            violations.append(f"Variant[{idx}] layout: {v}")

    return violations


def check_documentation_invariants(layout: Layout, text: str) -> list[str]:
    """Every zone name must appear in the documentation."""
    return [f"Zone name '{name}' missing from documentation" for name in layout.zone_names() if name not in text]
