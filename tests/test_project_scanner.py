"""End-to-end scans over temporary project trees."""

from __future__ import annotations

import os
import time
from dataclasses import replace
from pathlib import Path

import pytest

from mcp_patternscout.domain.models import ExtractionResult, SourceFile
from mcp_patternscout.services.evidence_cache import EvidenceCache
from mcp_patternscout.services.project_scanner import (
    ProjectScanner,
    ScanError,
    discover_files,
    is_main_entry,
    scan,
)
from mcp_patternscout.services.scan_audit import EVENT_NAME, get_scan_events
from mcp_patternscout.services.scan_limits import ScanOptions

OPTIONS = ScanOptions(concurrency=2)

DATA_ROUTE = """
export function list(req, res) {
  res.json({ data: [] });
}
"""


def _age(path: Path, seconds: float) -> None:
    os.utime(path, (seconds, seconds))


def test_newer_local_storage_code_wins_over_older_cookie(make_project) -> None:
    root = make_project(
        {
            "src/client/storage.js": """
                export function readToken() {
                  return localStorage.getItem('token');
                }
            """,
            "src/auth/cookies.js": """
                export function readToken(req) {
                  return req.cookies.token;
                }
            """,
        }
    )
    _age(root / "src/auth/cookies.js", 1_000_000)
    _age(root / "src/client/storage.js", 2_000_000)

    context = scan(root, OPTIONS)
    verdict = context.verdict("authentication")

    assert verdict.label == "local-storage"
    assert verdict.conflict
    assert verdict.resolution == "most-recent"
    assert [item.label for item in verdict.rejected] == ["cookie"]
    assert verdict.rejected[0].evidence[0].file == "src/auth/cookies.js"


def test_corroborating_files_raise_confidence(make_project) -> None:
    route = """
        export function load(req) {
          return req.session.userId;
        }
    """
    single = make_project({"src/a.js": route}, name="single")
    several = make_project(
        {f"src/r{index}.js": route for index in range(5)}, name="several"
    )

    one = scan(single, OPTIONS).verdict("authentication")
    five = scan(several, OPTIONS).verdict("authentication")

    assert one.label == five.label == "session"
    assert five.confidence > one.confidence


def test_broken_file_does_not_sink_the_scan(make_project) -> None:
    files = {f"src/routes/r{index}.js": DATA_ROUTE for index in range(4)}
    files["src/routes/broken.js"] = "export const = ;\n"
    root = make_project(files)

    context = scan(root, OPTIONS)

    assert context.diagnostics.parse_failures == ("src/routes/broken.js",)
    assert context.diagnostics.files_scanned == 5
    assert context.verdict("apiResponses").label == "data-wrapper"


def test_empty_project_reports_unknown_everywhere(make_project) -> None:
    root = make_project({"README.md": "# nothing here\n"})

    context = scan(root, OPTIONS)

    for category in ("authentication", "apiResponses", "errorHandling"):
        verdict = context.verdict(category)
        assert verdict.label == "unknown"
        assert verdict.confidence == 0
    assert context.diagnostics.files_discovered == 0


def test_main_entries_survive_include_globs(make_project) -> None:
    root = make_project(
        {
            "server.js": DATA_ROUTE,
            "src/index.ts": "export {};\n",
            "lib/other.js": DATA_ROUTE,
            "src/routes/a.js": DATA_ROUTE,
            "node_modules/pkg/index.js": DATA_ROUTE,
            "types/api.d.ts": "export {};\n",
        }
    )

    selection = discover_files(root, replace(OPTIONS, include=("src/routes",)))

    assert selection.selected == ("server.js", "src/index.ts", "src/routes/a.js")
    assert not selection.capped


def test_dotted_names_are_not_main_entries(make_project) -> None:
    root = make_project(
        {
            "server.test.js": DATA_ROUTE,
            "src/app.spec.ts": "export {};\n",
            "lib/a.js": DATA_ROUTE,
        }
    )

    selection = discover_files(root, replace(OPTIONS, include=("lib/*",)))

    assert selection.selected == ("lib/a.js",)
    assert is_main_entry("src/app.ts", ("app",))
    assert not is_main_entry("app.spec.ts", ("app",))


def test_file_ceiling_marks_partial_and_audits(make_project) -> None:
    root = make_project({f"src/r{index}.js": DATA_ROUTE for index in range(3)})

    context = scan(root, replace(OPTIONS, max_files=2))

    assert context.diagnostics.partial
    assert context.diagnostics.cap_reason == "MAX_FILES"
    assert context.diagnostics.files_discovered == 3
    assert context.diagnostics.files_scanned == 2
    events = get_scan_events()
    assert len(events) == 1
    assert events[0]["event"] == EVENT_NAME
    assert events[0]["cap_reason"] == "MAX_FILES"
    assert events[0]["files_scanned"] == 2
    assert events[0]["files_unscanned"] == 1
    assert str(root) not in str(events[0])


def test_oversized_files_are_skipped(make_project) -> None:
    root = make_project({"src/big.js": DATA_ROUTE, "src/small.js": "export {};\n"})

    context = scan(root, replace(OPTIONS, max_file_bytes=20))

    assert context.diagnostics.skipped == (("src/big.js", "too-large"),)
    assert context.diagnostics.files_scanned == 1


def test_timeout_returns_partial_results(make_project) -> None:
    root = make_project({f"src/r{index}.js": DATA_ROUTE for index in range(3)})

    def slow(file: SourceFile) -> ExtractionResult:
        time.sleep(0.5)
        return ExtractionResult(evidence=())

    scanner = ProjectScanner(extractor=slow)
    context = scanner.scan(root, replace(OPTIONS, concurrency=1, timeout_seconds=0.05))

    assert context.diagnostics.partial
    assert context.diagnostics.cap_reason == "SCAN_TIMEOUT"
    assert context.diagnostics.files_scanned < 3
    assert get_scan_events()[-1]["cap_reason"] == "SCAN_TIMEOUT"


def test_rescan_reuses_cache_and_matches(make_project) -> None:
    root = make_project({f"src/r{index}.js": DATA_ROUTE for index in range(3)})
    scanner = ProjectScanner(cache=EvidenceCache())

    first = scanner.scan(root, OPTIONS)
    second = scanner.scan(root, OPTIONS)

    assert first == second
    assert second.diagnostics.extractions == 0
    assert second.diagnostics.cache_hits == 3


def test_editing_one_file_reextracts_only_that_file(make_project) -> None:
    root = make_project({f"src/r{index}.js": DATA_ROUTE for index in range(3)})
    scanner = ProjectScanner(cache=EvidenceCache())
    scanner.scan(root, OPTIONS)

    (root / "src/r1.js").write_text(
        "export function list(req, res) {\n  res.json({ success: true });\n}\n",
        encoding="utf-8",
    )
    context = scanner.scan(root, OPTIONS)

    assert context.diagnostics.extractions == 1
    assert context.diagnostics.cache_hits == 2


def test_deleted_files_are_evicted(make_project) -> None:
    root = make_project({f"src/r{index}.js": DATA_ROUTE for index in range(3)})
    cache = EvidenceCache()
    scanner = ProjectScanner(cache=cache)
    scanner.scan(root, OPTIONS)

    (root / "src/r2.js").unlink()
    scanner.scan(root, OPTIONS)

    assert len(cache) == 2


def test_missing_root_is_a_scan_error(tmp_path: Path) -> None:
    with pytest.raises(ScanError):
        scan(tmp_path / "absent", OPTIONS)


def test_scan_includes_project_metadata(make_project) -> None:
    root = make_project(
        {
            "package.json": '{"dependencies": {"express": "^4.18.0"}}',
            "src/app.js": DATA_ROUTE,
        }
    )

    context = scan(root, OPTIONS)

    assert context.metadata.framework == "Express.js"
    assert ("src", "source code") in context.metadata.directories


def test_shared_cache_reports_paths_under_each_root(make_project) -> None:
    cookie_route = """
        export function readToken(req) {
          return req.cookies.token;
        }
    """
    root = make_project(
        {
            "api/storage.js": """
                export function readToken() {
                  return localStorage.getItem('token');
                }
            """,
            "api/auth/cookies.js": cookie_route,
            "api/auth/legacy.js": cookie_route,
        }
    )
    api = root / "api"
    _age(api / "auth/cookies.js", 1_000_000)
    _age(api / "auth/legacy.js", 1_000_000)
    _age(api / "storage.js", 2_000_000)
    scanner = ProjectScanner(cache=EvidenceCache())

    scanner.scan(root, OPTIONS)
    warm = scanner.scan(api, OPTIONS)
    fresh = scan(api, OPTIONS)

    assert warm.diagnostics.extractions == 0
    assert warm == fresh
    verdict = warm.verdict("authentication")
    assert verdict.label == "local-storage"
    assert verdict.resolution == "most-recent"
    assert [item.file for item in verdict.evidence] == ["storage.js"]
    assert {
        item.file for rejected in verdict.rejected for item in rejected.evidence
    } == {"auth/cookies.js", "auth/legacy.js"}
