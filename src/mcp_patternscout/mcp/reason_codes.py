"""Reason codes used for public error responses."""

from __future__ import annotations

INVALID_INPUT = "invalid_input"
"""Input failed schema validation or format checks."""

SCAN_FAILED = "scan_failed"
"""The project root could not be read, so no context was produced."""

RESPONSE_VALIDATION_FAILED = "response_validation_failed"
"""The service produced output that violated the public response schema."""
