"""
Evaluation Harness CLI

Runs curated requirement texts through the agents against a real backend,
checks invariants on every artifact, and writes one JSON report per case.

Usage:
    python -m labdesign.eval.run_eval [OPTIONS]

Options:
    --model KEY         Backend key to use (default: LABDESIGN_DEFAULT_MODEL)
    --retry-budget N    Repair attempts per agent call (default: 1)
    --case-id ID        Run only specific case(s); may be repeated
    --cases FILE        Cases YAML (default: labdesign/eval/eval_cases.yaml)
    --out-dir DIR       Output directory for reports (default: labdesign/eval/reports)

Examples:
    # Run all cases with the default model
    python -m labdesign.eval.run_eval

    # Run one case against GPT-4o
    python -m labdesign.eval.run_eval --model gpt-4o --case-id small_ml_lab
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import yaml

from labdesign.budget import calculate_budget_summary
from labdesign.config import DEFAULT_MODEL_KEY, GatewayConfig
from labdesign.doc_agent import DocumentationAgent
from labdesign.errors import DesignPipelineError
from labdesign.eval.invariants import (
    check_budget_invariants,
    check_documentation_invariants,
    check_layout_invariants,
    check_safety_invariants,
    check_variant_invariants,
)
from labdesign.layout_agent import LayoutAgent
from labdesign.llm import ModelGateway
from labdesign.orchestrator import run_design_review
from labdesign.universe_agent import ParallelUniverseAgent

logger = logging.getLogger(__name__)

CASE_KINDS = ("layout", "review", "universes", "documentation")


def load_cases(yaml_path: str) -> list[dict[str, Any]]:
    """Load eval cases from YAML file."""
    with open(yaml_path) as f:
        data = yaml.safe_load(f)
    return data.get("cases", [])


def run_case(
    case: dict[str, Any],
    gateway: ModelGateway,
    model_key: Optional[str] = None,
    retry_budget: int = 1,
) -> tuple[dict[str, Any], str]:
    """
    Run a single case: generate a layout, then the kind-specific stage.

    Returns:
        (report_dict, status_line)
    """
    case_id = case["id"]
    kind = case.get("kind", "layout")
    report: dict[str, Any] = {"case": case, "artifacts": {}, "violations": [], "error": None}

    if kind not in CASE_KINDS:
        report["error"] = {"code": "BAD_CASE", "message": f"unknown case kind '{kind}'", "details": {}}
        return report, f"[{case_id}] ERROR: unknown case kind '{kind}'"

    try:
        layout_agent = LayoutAgent(gateway, model_key=model_key, retry_budget=retry_budget)
        layout = layout_agent.generate(case["requirements"], case.get("constraints"), discipline=case.get("discipline"))
        report["artifacts"]["layout"] = layout.to_wire()
        report["violations"] += check_layout_invariants(layout, min_zones=case.get("min_zones", 1))

        if kind == "review":
            review = run_design_review(
                layout, gateway,
                currency=case.get("currency", "USD"),
                model_key=model_key,
                retry_budget=retry_budget,
            )
            report["artifacts"]["review"] = review.to_wire()
            report["violations"] += check_safety_invariants(review.safety)
            report["violations"] += check_budget_invariants(
                review.budget, calculate_budget_summary(layout, review.budget.currency)
            )

        elif kind == "universes":
            agent = ParallelUniverseAgent(gateway, model_key=model_key, retry_budget=retry_budget)
            variants = agent.generate_variants(layout, case["decision_point"], case.get("constraints"))
            report["artifacts"]["variants"] = [v.to_wire() for v in variants]
            report["violations"] += check_variant_invariants(variants)

            fused = agent.fuse(variants, case.get("strategy", "best-of-each"))
            report["artifacts"]["fused"] = fused.to_wire()
            report["violations"] += [f"fused: {v}" for v in check_layout_invariants(fused)]

        elif kind == "documentation":
            agent = DocumentationAgent(gateway, model_key=model_key, retry_budget=retry_budget)
            text = agent.generate(layout, locale=case.get("locale", "en"))
            report["artifacts"]["documentation"] = text
            report["violations"] += check_documentation_invariants(layout, text)

    except DesignPipelineError as e:
        report["error"] = e.to_dict()
        return report, f"[{case_id}] kind={kind} ERROR {e.code}: {e.message[:120]}"

    if report["violations"]:
        status = f"FAILED ({len(report['violations'])} violations)"
    else:
        status = "OK"
    return report, f"[{case_id}] kind={kind} invariants={status}"


def main():
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Evaluation Harness for the lab design pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--model", default=DEFAULT_MODEL_KEY, help="Backend key (default: %(default)s)")
    parser.add_argument("--retry-budget", type=int, default=1, help="Repair attempts per agent call")
    parser.add_argument(
        "--case-id",
        action="append",
        dest="case_ids",
        help="Run only specific case(s); may be repeated",
    )
    parser.add_argument(
        "--cases",
        default=str(Path(__file__).parent / "eval_cases.yaml"),
        help="Cases YAML file",
    )
    parser.add_argument(
        "--out-dir",
        default="labdesign/eval/reports",
        help="Output directory for JSON reports (default: labdesign/eval/reports)",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format='%(asctime)s [%(levelname)s] %(name)s: %(message)s')

    cases_yaml = Path(args.cases)
    if not cases_yaml.exists():
        print(f"ERROR: Cases file not found: {cases_yaml}", file=sys.stderr)
        sys.exit(1)

    all_cases = load_cases(str(cases_yaml))
    print(f"Loaded {len(all_cases)} cases from {cases_yaml}")

    if args.case_ids:
        selected_cases = [c for c in all_cases if c["id"] in set(args.case_ids)]
        if not selected_cases:
            print(f"WARNING: No cases matched specified IDs: {args.case_ids}", file=sys.stderr)
            sys.exit(1)
    else:
        selected_cases = all_cases

    # Fail fast on a missing credential instead of once per case
    config = GatewayConfig.from_env()
    try:
        model = config.resolve_text_model(args.model)
        config.credential_for(model.provider)
    except DesignPipelineError as e:
        print(f"ERROR: {e.message}", file=sys.stderr)
        sys.exit(1)
    gateway = ModelGateway(config)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    report_dir = Path(args.out_dir) / timestamp
    report_dir.mkdir(parents=True, exist_ok=True)

    print(f"Running {len(selected_cases)} case(s) with {args.model}...\n")

    reports = []
    for case in selected_cases:
        report, status_line = run_case(case, gateway, model_key=args.model, retry_budget=args.retry_budget)
        reports.append(report)
        print(status_line)
        with open(report_dir / f"{case['id']}.json", "w") as f:
            json.dump(report, f, indent=2, default=str, ensure_ascii=False)

    print()
    ok_count = sum(1 for r in reports if not r["violations"] and r["error"] is None)
    print(f"ran {len(reports)} cases: {ok_count} OK, {len(reports) - ok_count} with violations or errors")
    print(f"reports written to {report_dir}")


if __name__ == "__main__":
    main()
