"""Ensure each JSON schema is exercised by its published example."""

from mcp_patternscout.mcp import schema_registry

SCHEMA_EXAMPLE_MAP = {
    "scan_request_v0.1": "scan_request_example_min",
    "project_context_response_v0.1": "project_context_response_example_min",
    "ground_truth_corpus_v0.1": "ground_truth_corpus_example_min",
    "accuracy_report_v0.1": "accuracy_report_example_min",
}


def test_all_examples_validate_against_their_schemas() -> None:
    """Every example file should match its declared schema contract."""

    for schema_name, example_name in SCHEMA_EXAMPLE_MAP.items():
        example = schema_registry.get_example(example_name)
        schema_registry.validate(schema_name, example)
