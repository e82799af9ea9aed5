"""Accuracy measurement over a small labeled corpus of fixture projects."""

from __future__ import annotations

import json
import shutil
from pathlib import Path

import pytest

from mcp_patternscout.services.accuracy_evaluator import AccuracyEvaluator, evaluate
from mcp_patternscout.services.ground_truth import GroundTruthError, load_corpus

FIXTURES = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture
def corpus_path(tmp_path: Path) -> Path:
    for name in ("express_cookie_api", "express_header_api"):
        shutil.copytree(FIXTURES / name, tmp_path / "projects" / name)
    payload = {
        "version": "0.1",
        "cases": [
            {
                "project": "cookie-api",
                "path": "projects/express_cookie_api",
                "framework": "express",
                "expected": {
                    "authentication": "cookie",
                    "authentication.user_property": "req.user",
                    "apiResponses": "data-wrapper",
                    "errorHandling": "global-middleware",
                },
            },
            {
                "project": "header-api",
                "path": "projects/express_header_api",
                "framework": "express",
                "expected": {
                    "authentication": "authorization-header",
                    "authentication.user_property": "req.context.user",
                    "apiResponses": "data-wrapper",
                    "errorHandling": "try-catch",
                },
            },
            {
                "project": "gone",
                "path": "projects/missing",
                "framework": "koa",
                "expected": {"authentication": "session"},
            },
        ],
    }
    path = tmp_path / "corpus.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_reports_accuracy_per_framework(corpus_path: Path) -> None:
    reports = evaluate(load_corpus(corpus_path))

    assert [report.framework for report in reports] == ["express", "koa"]
    express, koa = reports
    assert express.cases_evaluated == 2
    assert express.accuracy_by_category["authentication"] == 1.0
    assert express.accuracy_by_category["authentication.user_property"] == 1.0
    assert express.accuracy_by_category["errorHandling"] == 1.0
    assert express.accuracy_by_category["apiResponses"] == 0.5
    assert express.accuracy_by_label["authentication:cookie"] == 1.0
    assert koa.cases_evaluated == 0
    assert koa.skipped_cases == ("gone",)


def test_failures_explain_what_was_found(corpus_path: Path) -> None:
    express = evaluate(load_corpus(corpus_path))[0]

    assert len(express.failures) == 1
    failure = express.failures[0]
    assert failure.project == "header-api"
    assert failure.expected == "data-wrapper"
    assert failure.actual == "bare-object"
    assert "server.js:" in failure.describe()
    assert express.recommendations
    assert "bare-object" in express.recommendations[0]


def test_measuring_a_subset(corpus_path: Path) -> None:
    evaluator = AccuracyEvaluator(concurrency=2)

    express = evaluator.evaluate(load_corpus(corpus_path), ["authentication:cookie"])[0]

    assert express.accuracy_by_category == {"authentication": 1.0}
    assert express.accuracy_by_label == {"authentication:cookie": 1.0}
    assert express.failures == ()


def test_measuring_something_unlabeled_fails(corpus_path: Path) -> None:
    with pytest.raises(GroundTruthError):
        evaluate(load_corpus(corpus_path), ["authentication:local-storage"])


def test_report_mapping_matches_the_public_schema(corpus_path: Path) -> None:
    from mcp_patternscout.mcp import schema_registry

    reports = evaluate(load_corpus(corpus_path))
    payload = {
        "operation": "accuracy_evaluation",
        "reports": [report.to_mapping() for report in reports],
    }

    schema_registry.validate("accuracy_report_v0.1", payload)
