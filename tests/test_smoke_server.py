"""Smoke tests for the FastMCP resource registry."""

from __future__ import annotations

from pathlib import Path

from mcp_patternscout.mcp import reason_codes, schema_registry, server
from mcp_patternscout.services.evidence_cache import EvidenceCache

SCAN_RESOURCE = "project://conventions/scan"


def test_server_exposes_health_resource() -> None:
    """Registry must contain the health resource and publish a status."""

    resources = server.create_server()["resources"]
    assert "health" in resources
    response = resources["health"]()

    assert response["status"] == "ok"
    assert "PatternScout" in response["detail"]


def test_scan_resource_returns_a_valid_context(make_project) -> None:
    root = make_project(
        {
            "package.json": '{"dependencies": {"express": "4"}}',
            "src/app.js": """
                const app = require('express')();
                app.get('/me', (req, res) => {
                  res.json({ data: req.user });
                });
            """,
        }
    )
    cache = EvidenceCache()
    resource = server.create_server(cache)["resources"][SCAN_RESOURCE]

    response = resource({"root": str(root)})

    assert response["operation"] == server.SCAN_OPERATION
    schema_registry.validate(server.CONTEXT_RESPONSE_SCHEMA, response)
    patterns = response["context"]["patterns"]
    assert patterns["apiResponses"]["label"] == "data-wrapper"
    assert len(cache) == 1


def test_invalid_request_is_rejected() -> None:
    resource = server.create_server()["resources"][SCAN_RESOURCE]

    response = resource({"root": "", "max_files": 0})

    assert response["status"] == "error"
    assert response["reason"] == reason_codes.INVALID_INPUT


def test_unreadable_root_does_not_leak_the_path(tmp_path: Path) -> None:
    resource = server.create_server()["resources"][SCAN_RESOURCE]
    missing = tmp_path / "nowhere"

    response = resource({"root": str(missing)})

    assert response["reason"] == reason_codes.SCAN_FAILED
    assert str(missing) not in str(response)
