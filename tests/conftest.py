"""Shared fixtures: isolated audit sink and throwaway project trees."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Callable, Mapping

import pytest

from mcp_patternscout.services.audit_log import (
    AuditConfig,
    reset_audit_config,
    set_audit_config,
)
from mcp_patternscout.services.scan_audit import clear_scan_events


ProjectFactory = Callable[..., Path]


@pytest.fixture(autouse=True)
def isolated_audit(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """Route audit writes to a temp file and drop recorded cap events."""

    audit_dir = tmp_path_factory.mktemp("audit")
    set_audit_config(AuditConfig(audit_file=audit_dir / "audit.jsonl", max_bytes=None))
    clear_scan_events()
    yield audit_dir
    clear_scan_events()
    reset_audit_config()


@pytest.fixture
def make_project(tmp_path: Path) -> ProjectFactory:
    """Return a helper that writes ``{relative path: source}`` under tmp_path."""

    def build(files: Mapping[str, str], name: str = "project") -> Path:
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        for relative, text in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(text).lstrip(), encoding="utf-8")
        return root

    return build
