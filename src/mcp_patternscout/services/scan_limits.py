"""Configurable limits and inclusion rules for project scans."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Mapping

DEFAULT_MAX_FILES = 500
"""Default cap on the number of source files extracted per scan."""

DEFAULT_MAX_FILE_BYTES = 1_048_576
"""Files larger than this are skipped rather than parsed."""

DEFAULT_SCAN_CONCURRENCY = 8
"""Default worker count for parallel extraction."""

MAX_SCAN_CONCURRENCY = 64

DEFAULT_EXTENSIONS = (".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx", ".mts", ".cts")

DEFAULT_EXCLUDED_DIRS = (
    ".git",
    ".next",
    ".nuxt",
    ".nyc_output",
    ".turbo",
    "build",
    "coverage",
    "dist",
    "node_modules",
    "out",
    "vendor",
)

DEFAULT_EXCLUDE_PATTERNS = ("*.d.ts", "*.min.js", "*.bundle.js")

DEFAULT_MAIN_ENTRY_NAMES = (
    "app",
    "index",
    "main",
    "server",
)
"""Base names of top-level entry files that directory scoping never skips."""


def _env_int(
    name: str,
    default: int,
    *,
    min_value: int = 0,
    max_value: int | None = None,
) -> int:
    """Return a bounded integer limit sourced from the environment."""

    raw = os.getenv(name)
    if not raw or not raw.strip():
        return default
    try:
        parsed = int(raw)
    except ValueError:
        return default
    if parsed < min_value:
        return default
    if max_value is not None and parsed > max_value:
        return max_value
    return parsed


def _env_seconds(name: str) -> float | None:
    """Return a positive float from the environment, or None when unset."""

    raw = os.getenv(name)
    if not raw or not raw.strip():
        return None
    try:
        parsed = float(raw)
    except ValueError:
        return None
    if parsed <= 0:
        return None
    return parsed


@dataclass(frozen=True)
class ScanOptions:
    """Inclusion rules and resource ceilings for one scan."""

    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = DEFAULT_EXCLUDE_PATTERNS
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    excluded_dirs: tuple[str, ...] = DEFAULT_EXCLUDED_DIRS
    main_entry_names: tuple[str, ...] = DEFAULT_MAIN_ENTRY_NAMES
    max_files: int = DEFAULT_MAX_FILES
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    concurrency: int = DEFAULT_SCAN_CONCURRENCY
    timeout_seconds: float | None = None

    @classmethod
    def from_env(cls) -> "ScanOptions":
        """Return options whose ceilings come from the environment."""

        return cls(
            max_files=_env_int(
                "PATTERNSCOUT_MAX_FILES", DEFAULT_MAX_FILES, min_value=1
            ),
            max_file_bytes=_env_int(
                "PATTERNSCOUT_MAX_FILE_BYTES", DEFAULT_MAX_FILE_BYTES, min_value=1
            ),
            concurrency=_env_int(
                "PATTERNSCOUT_SCAN_CONCURRENCY",
                DEFAULT_SCAN_CONCURRENCY,
                min_value=1,
                max_value=MAX_SCAN_CONCURRENCY,
            ),
            timeout_seconds=_env_seconds("PATTERNSCOUT_SCAN_TIMEOUT_SECONDS"),
        )

    @classmethod
    def from_request(cls, request: Mapping[str, Any]) -> "ScanOptions":
        """Overlay a validated request's options onto the environment defaults."""

        options = cls.from_env()
        overrides: dict[str, Any] = {}
        if "include" in request:
            overrides["include"] = tuple(request["include"])
        if "exclude" in request:
            overrides["exclude"] = tuple(request["exclude"])
        if "extensions" in request:
            overrides["extensions"] = tuple(
                ext.lower() if ext.startswith(".") else f".{ext.lower()}"
                for ext in request["extensions"]
            )
        if "max_files" in request:
            overrides["max_files"] = int(request["max_files"])
        if "max_file_bytes" in request:
            overrides["max_file_bytes"] = int(request["max_file_bytes"])
        if "concurrency" in request:
            overrides["concurrency"] = min(
                int(request["concurrency"]), MAX_SCAN_CONCURRENCY
            )
        if "timeout_seconds" in request:
            overrides["timeout_seconds"] = float(request["timeout_seconds"])
        return replace(options, **overrides)

    def limits(self) -> dict[str, object]:
        """Summarize the ceilings in effect for audit events."""

        return {
            "max_files": self.max_files,
            "max_file_bytes": self.max_file_bytes,
            "concurrency": self.concurrency,
            "timeout_seconds": self.timeout_seconds,
        }


DEFAULT_SCAN_OPTIONS = ScanOptions()
