"""Utility to surface shared JSON schemas and examples."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from jsonschema import Draft7Validator, ValidationError

PROJECT_ROOT = Path(__file__).resolve().parents[3]
SCHEMA_DIR = PROJECT_ROOT / "schemas"
EXAMPLE_DIR = SCHEMA_DIR / "examples"

SchemaValidationError = ValidationError
"""Alias for jsonschema.ValidationError.
Keeps callers unaware of the implementation.
"""

SCHEMA_FILES = {
    "scan_request_v0.1": "scan_request_schema_v0.1.json",
    "project_context_response_v0.1": "project_context_response_schema_v0.1.json",
    "ground_truth_corpus_v0.1": "ground_truth_corpus_schema_v0.1.json",
    "accuracy_report_v0.1": "accuracy_report_schema_v0.1.json",
}

EXAMPLE_FILES = {
    "scan_request_example_min": "scan_request_example_min.json",
    "project_context_response_example_min": (
        "project_context_response_example_min.json"
    ),
    "ground_truth_corpus_example_min": "ground_truth_corpus_example_min.json",
    "accuracy_report_example_min": "accuracy_report_example_min.json",
}

_SCHEMAS: dict[str, Mapping[str, Any]] = {}
_EXAMPLES: dict[str, Mapping[str, Any]] = {}


def _load_json_file(path: Path) -> Mapping[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def get_schema(name: str) -> Mapping[str, Any]:
    """Return the JSON schema with the given registry name."""

    if name not in _SCHEMAS:
        _SCHEMAS[name] = _load_json_file(SCHEMA_DIR / SCHEMA_FILES[name])
    return _SCHEMAS[name]


def get_example(name: str) -> Mapping[str, Any]:
    """Return a representative example payload by name."""

    if name not in _EXAMPLES:
        _EXAMPLES[name] = _load_json_file(EXAMPLE_DIR / EXAMPLE_FILES[name])
    return _EXAMPLES[name]


def validate(name: str, instance: Any) -> None:
    """Validate an instance against a named schema."""

    Draft7Validator(get_schema(name)).validate(instance)
