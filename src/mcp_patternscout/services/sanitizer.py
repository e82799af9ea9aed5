"""Business rules to keep public responses and evidence excerpts scrubbed."""

from __future__ import annotations

import re
from typing import Any, Mapping

RAW_PATH_PATTERN = re.compile(
    r"(?i)(?:[A-Za-z]:\\\\|/home/|/root/|/Users/|/tmp/|/var/|\./|\.\.)"
)
"""Pattern that catches obvious raw paths in error details."""

IDENTIFIER_PATTERNS = [
    r"(?:\b(?:\d{1,3}\.){3}\d{1,3}\b)",
    r"(?:\b[0-9a-f]{1,4}(?::[0-9a-f]{1,4}){2,7}\b)",
    r"(?:\b(?:[0-9a-f]{2}[:-]){5}[0-9a-f]{2}\b)",
]
"""Regex fragments describing IPv4/IPv6/MAC identifiers to redact."""

IDENTIFIER_PATTERN = re.compile("|".join(IDENTIFIER_PATTERNS), re.IGNORECASE)
"""Compiled pattern that matches any identifier-like fragment."""

SECRET_PATTERNS = [
    r"eyJ[A-Za-z0-9_-]{8,}\.[A-Za-z0-9_-]{8,}\.[A-Za-z0-9_-]{8,}",
    r"(?:sk|pk|rk|ghp|gho|xox[abp])[_-][A-Za-z0-9_-]{12,}",
    r"(?<=['\"`])[A-Za-z0-9+/_=-]{32,}(?=['\"`])",
]
"""JWTs, vendor-prefixed keys and long opaque literals found in source text."""

SECRET_PATTERN = re.compile("|".join(SECRET_PATTERNS))

SECRET_ASSIGNMENT_PATTERN = re.compile(
    r"(?i)((?:password|passwd|secret|api[_-]?key|private[_-]?key)\s*[:=]\s*)"
    r"(['\"`])[^'\"`]+\2"
)
"""`secret: '...'` style literals whose value is replaced, key kept."""


def redact_identifiers(value: str) -> str:
    """Replace identifier tokens (IP/MAC) with a placeholder."""

    return IDENTIFIER_PATTERN.sub("[redacted]", value)


def redact_secrets(excerpt: str) -> str:
    """Strip secret-looking literals from a code excerpt, keeping its shape."""

    scrubbed = SECRET_ASSIGNMENT_PATTERN.sub(r"\1\2[redacted]\2", excerpt)
    return SECRET_PATTERN.sub("[redacted]", scrubbed)


def _scrub_value(value: str) -> str:
    """Remove raw path fragments from a single string."""

    scrubbed = RAW_PATH_PATTERN.sub("[redacted]", value)
    return redact_identifiers(scrubbed)


def sanitize_public_response(payload: Mapping[str, Any]) -> dict[str, str]:
    """Return a copy with every value stripped of raw path fragments."""

    return {key: _scrub_value(str(value)) for key, value in payload.items()}
