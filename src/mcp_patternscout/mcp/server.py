"""Minimal FastMCP server entrypoint for PatternScout."""

from __future__ import annotations

import sys
from typing import Any, Mapping

from ..services.evidence_cache import EvidenceCache
from ..services.project_scanner import ProjectScanner, ScanError
from ..services.sanitizer import sanitize_public_response
from ..services.scan_limits import ScanOptions
from . import reason_codes, schema_registry
from .schema_registry import SchemaValidationError

SCAN_REQUEST_SCHEMA = "scan_request_v0.1"
CONTEXT_RESPONSE_SCHEMA = "project_context_response_v0.1"
SCAN_OPERATION = "project_conventions_scan"


def _sanitized_error(reason: str, detail: str) -> dict[str, str]:
    """Return a sanitized error payload with a stable reason code."""

    payload = {"status": "error", "reason": reason, "detail": detail}
    return sanitize_public_response(payload)


class HealthResource:
    """Simple wellbeing resource returning sanitized payloads."""

    __slots__ = ()

    def get_status(self) -> Mapping[str, str]:
        """Return a public-safe status digest."""

        raw_payload = {
            "status": "ok",
            "detail": "PatternScout MCP FastMCP server ready",
        }
        return sanitize_public_response(raw_payload)

    def __call__(self) -> Mapping[str, str]:
        return self.get_status()


class ProjectScanResource:
    """Scan a project root and return its detected conventions."""

    __slots__ = ("_scanner",)

    def __init__(self, scanner: ProjectScanner) -> None:
        self._scanner = scanner

    def __call__(self, request: Mapping[str, Any]) -> Mapping[str, Any]:
        return self.scan(request)

    def get_status(self) -> Mapping[str, str]:
        """Expose a sanitized status for diagnostic tooling."""

        payload = {
            "status": "ok",
            "detail": "project convention scan resource ready",
        }
        return sanitize_public_response(payload)

    def scan(self, request: Mapping[str, Any]) -> Mapping[str, Any]:
        try:
            schema_registry.validate(SCAN_REQUEST_SCHEMA, request)
        except SchemaValidationError:
            return _sanitized_error(
                reason_codes.INVALID_INPUT, "Request failed validation."
            )

        options = ScanOptions.from_request(request)
        try:
            context = self._scanner.scan(request["root"], options)
        except ScanError:
            return _sanitized_error(
                reason_codes.SCAN_FAILED, "Project root could not be read."
            )

        response = {"operation": SCAN_OPERATION, "context": context.to_mapping()}

        try:
            schema_registry.validate(CONTEXT_RESPONSE_SCHEMA, response)
        except SchemaValidationError:
            return _sanitized_error(
                reason_codes.RESPONSE_VALIDATION_FAILED,
                "Service output did not meet the public contract.",
            )

        return response


def build_resource_registry(cache: EvidenceCache) -> dict[str, Any]:
    """Wire resources around one explicitly owned evidence cache."""

    return {
        "health": HealthResource(),
        "project://conventions/scan": ProjectScanResource(
            ProjectScanner(cache=cache)
        ),
    }


def create_server(
    cache: EvidenceCache | None = None,
) -> Mapping[str, Mapping[str, Any]]:
    """Return the configured resources for this FastMCP server."""

    if cache is None:
        cache = EvidenceCache()
    return {"resources": build_resource_registry(cache)}


def main() -> None:
    """Log available resources without launching networking."""

    resources = create_server()["resources"]
    sys.stdout.write("FastMCP PatternScout server initialized with resources:\n\n")
    for name, resource in resources.items():
        sys.stdout.write(f"- {name}: {resource.get_status()}\n")


if __name__ == "__main__":
    main()
