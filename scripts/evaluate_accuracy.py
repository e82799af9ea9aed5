"""LOCAL-only CLI to measure detector accuracy against a labeled corpus."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(ROOT.parent / "src"))

REPORT_SCHEMA = "accuracy_report_v0.1"
REPORT_OPERATION = "accuracy_evaluation"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Score detected conventions against ground-truth labels.",
    )
    parser.add_argument(
        "corpus",
        type=Path,
        help="Ground-truth corpus JSON; case paths resolve relative to it.",
    )
    parser.add_argument(
        "--measure",
        action="append",
        help="Facet key or key:label to score; repeatable. Defaults to all.",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=1,
        help="Number of corpus cases scanned in parallel.",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(message)s")

    from mcp_patternscout.mcp import schema_registry
    from mcp_patternscout.services.accuracy_evaluator import AccuracyEvaluator
    from mcp_patternscout.services.ground_truth import GroundTruthError, load_corpus

    try:
        corpus = load_corpus(args.corpus)
        reports = AccuracyEvaluator(concurrency=args.concurrency).evaluate(
            corpus, args.measure
        )
    except GroundTruthError as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 2

    payload = {
        "operation": REPORT_OPERATION,
        "reports": [report.to_mapping() for report in reports],
    }
    schema_registry.validate(REPORT_SCHEMA, payload)
    sys.stdout.write(json.dumps(payload, ensure_ascii=False, indent=2))
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
