"""Environment and request overrides for scan ceilings."""

from __future__ import annotations

import pytest

from mcp_patternscout.services.scan_limits import (
    DEFAULT_MAX_FILES,
    DEFAULT_SCAN_CONCURRENCY,
    MAX_SCAN_CONCURRENCY,
    ScanOptions,
)


@pytest.fixture(autouse=True)
def clear_limit_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "PATTERNSCOUT_MAX_FILES",
        "PATTERNSCOUT_MAX_FILE_BYTES",
        "PATTERNSCOUT_SCAN_CONCURRENCY",
        "PATTERNSCOUT_SCAN_TIMEOUT_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_environment() -> None:
    options = ScanOptions.from_env()

    assert options.max_files == DEFAULT_MAX_FILES
    assert options.concurrency == DEFAULT_SCAN_CONCURRENCY
    assert options.timeout_seconds is None


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PATTERNSCOUT_MAX_FILES", "25")
    monkeypatch.setenv("PATTERNSCOUT_SCAN_CONCURRENCY", "1000")
    monkeypatch.setenv("PATTERNSCOUT_SCAN_TIMEOUT_SECONDS", "2.5")

    options = ScanOptions.from_env()

    assert options.max_files == 25
    assert options.concurrency == MAX_SCAN_CONCURRENCY
    assert options.timeout_seconds == 2.5


@pytest.mark.parametrize("raw", ["abc", "0", "-4", "  "])
def test_unusable_environment_values_fall_back(
    monkeypatch: pytest.MonkeyPatch, raw: str
) -> None:
    monkeypatch.setenv("PATTERNSCOUT_MAX_FILES", raw)
    monkeypatch.setenv("PATTERNSCOUT_SCAN_TIMEOUT_SECONDS", raw)

    options = ScanOptions.from_env()

    assert options.max_files == DEFAULT_MAX_FILES
    assert options.timeout_seconds is None


def test_request_overlays_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PATTERNSCOUT_MAX_FILES", "25")

    options = ScanOptions.from_request(
        {
            "root": "ignored",
            "include": ["src"],
            "extensions": ["ts", ".TSX"],
            "concurrency": 4,
        }
    )

    assert options.max_files == 25
    assert options.include == ("src",)
    assert options.extensions == (".ts", ".tsx")
    assert options.concurrency == 4
    assert options.limits()["max_files"] == 25
