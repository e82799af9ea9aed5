"""Smoke tests for the local scan and accuracy CLIs."""

from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]


def _run(*args: str) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        [sys.executable, *args],
        cwd=REPO_ROOT,
        capture_output=True,
        text=True,
    )


def test_scan_project_prints_context(make_project, tmp_path: Path) -> None:
    root = make_project(
        {"src/auth.js": "export const read = (req) => req.headers.authorization;\n"}
    )
    cache_file = tmp_path / "cache.json"

    result = _run("scripts/scan_project.py", str(root), "--cache-file", str(cache_file))

    assert result.returncode == 0, result.stderr
    payload = json.loads(result.stdout)
    assert payload["context"]["patterns"]["authentication"]["label"] == (
        "authorization-header"
    )
    assert cache_file.exists()


def test_scan_project_reports_missing_root(tmp_path: Path) -> None:
    result = _run("scripts/scan_project.py", str(tmp_path / "missing"))

    assert result.returncode == 1
    assert json.loads(result.stdout)["reason"] == "scan_failed"


def test_evaluate_accuracy_rejects_bad_corpus(tmp_path: Path) -> None:
    corpus = tmp_path / "corpus.json"
    corpus.write_text('{"version": "0.1", "cases": []}', encoding="utf-8")

    result = _run("scripts/evaluate_accuracy.py", str(corpus))

    assert result.returncode == 2
    assert result.stderr.startswith("error:")
    assert result.stdout == ""
