"""Discover project files, extract evidence through the cache, build verdicts."""

from __future__ import annotations

import fnmatch
import hashlib
import logging
import os
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, replace
from pathlib import Path, PurePosixPath
from typing import Iterable

from ..domain.models import (
    Evidence,
    ExtractionResult,
    ProjectContext,
    ScanDiagnostics,
    SourceFile,
)
from .cap_reason import CapReason
from .confidence_scorer import score_category
from .evidence_cache import EvidenceCache, Extractor
from .evidence_extractor import extract_file
from .project_metadata import detect_metadata
from .scan_audit import ScanCapEvent, record_scan_cap_event
from .scan_limits import ScanOptions
from .vocabulary import Category

_LOG = logging.getLogger(__name__)

_GLOB_CHARS = frozenset("*?[")


class ScanError(RuntimeError):
    """Raised when the scan root itself cannot be read."""


def fingerprint(content: bytes) -> str:
    """Content-derived identity used as the cache key."""

    return hashlib.sha256(content).hexdigest()


@dataclass(frozen=True)
class FileSelection:
    """Ordered candidate files and whether the file ceiling cut any."""

    selected: tuple[str, ...]
    discovered: int
    capped: bool


@dataclass(frozen=True)
class _FileOutcome:
    path: str
    modified_at: float
    result: ExtractionResult | None
    cached: bool = False
    skip_reason: str = ""


def _rebased(result: ExtractionResult, relative: str) -> ExtractionResult:
    """Point evidence at `relative`, whichever root first filled the cache."""

    if all(item.file == relative for item in result.evidence):
        return result
    evidence = tuple(replace(item, file=relative) for item in result.evidence)
    return replace(result, evidence=evidence)


def _matches(relative: str, pattern: str) -> bool:
    if pattern.startswith("./"):
        pattern = pattern[2:]
    if not any(char in _GLOB_CHARS for char in pattern):
        prefix = pattern.rstrip("/")
        return relative == prefix or relative.startswith(prefix + "/")
    name = PurePosixPath(relative).name
    return fnmatch.fnmatchcase(relative, pattern) or fnmatch.fnmatchcase(name, pattern)


def is_main_entry(relative: str, names: Iterable[str]) -> bool:
    """
    True for `app.js`, `server.ts`, `src/index.ts` and similar entry files.

    Only the final suffix is dropped, so `server.test.js` is not an entry.
    """

    parts = PurePosixPath(relative).parts
    stem = PurePosixPath(parts[-1]).stem
    if "." in stem or stem not in set(names):
        return False
    return len(parts) == 1 or (len(parts) == 2 and parts[0] == "src")


def discover_files(root: Path, options: ScanOptions) -> FileSelection:
    """
    List candidate source files under ``root`` in a stable order.

    Main entry files are listed first and are never dropped by include
    globs; the remaining files follow in path order. Files beyond
    ``options.max_files`` are cut and the selection is flagged as capped.
    """

    extensions = tuple(ext.lower() for ext in options.extensions)
    excluded_dirs = set(options.excluded_dirs)
    entries: list[str] = []
    others: list[str] = []

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if name not in excluded_dirs)
        base = Path(dirpath).relative_to(root)
        for filename in sorted(filenames):
            relative = (base / filename).as_posix()
            if not filename.lower().endswith(extensions):
                continue
            if any(_matches(relative, pattern) for pattern in options.exclude):
                continue
            if is_main_entry(relative, options.main_entry_names):
                entries.append(relative)
                continue
            if options.include and not any(
                _matches(relative, pattern) for pattern in options.include
            ):
                continue
            others.append(relative)

    ordered = list(dict.fromkeys(sorted(entries) + sorted(others)))
    capped = len(ordered) > options.max_files
    return FileSelection(
        selected=tuple(ordered[: options.max_files]),
        discovered=len(ordered),
        capped=capped,
    )


class ProjectScanner:
    """
    Drive extraction for one project root and aggregate the verdicts.

    The scanner only reads the target tree. Its :class:`EvidenceCache` is
    injected so several scanners, or several scans, can share one cache.
    """

    def __init__(
        self,
        cache: EvidenceCache | None = None,
        extractor: Extractor = extract_file,
    ) -> None:
        self._cache = cache if cache is not None else EvidenceCache()
        self._extractor = extractor

    @property
    def cache(self) -> EvidenceCache:
        return self._cache

    def scan(
        self, root: str | os.PathLike[str], options: ScanOptions | None = None
    ) -> ProjectContext:
        """Scan ``root`` and return its metadata plus one verdict per category."""

        options = options or ScanOptions.from_env()
        started = time.monotonic()
        root_path = self._check_root(root)

        selection = discover_files(root_path, options)
        outcomes, timed_out = self._extract_all(root_path, selection.selected, options)

        evidence: list[Evidence] = []
        mtimes: dict[str, float] = {}
        parse_failures: list[str] = []
        skipped: list[tuple[str, str]] = []
        hits = extractions = 0
        for outcome in sorted(outcomes, key=lambda item: item.path):
            if outcome.result is None:
                skipped.append((outcome.path, outcome.skip_reason))
                continue
            mtimes[outcome.path] = outcome.modified_at
            if outcome.cached:
                hits += 1
            else:
                extractions += 1
            if outcome.result.parse_failed:
                parse_failures.append(outcome.path)
            evidence.extend(outcome.result.evidence)

        reasons = [CapReason.MAX_FILES] if selection.capped else []
        if timed_out:
            reasons.append(CapReason.SCAN_TIMEOUT)
        for reason in reasons:
            record_scan_cap_event(
                ScanCapEvent(
                    reason=reason,
                    limits=options.limits(),
                    files_discovered=selection.discovered,
                    files_scanned=len(mtimes),
                    files_skipped=len(skipped),
                    elapsed_seconds=time.monotonic() - started,
                )
            )
        cap_reason = reasons[-1] if reasons else None
        if timed_out:
            _LOG.warning(
                "Scan timed out after %.2fs; %d of %d files completed",
                options.timeout_seconds or 0.0,
                len(outcomes),
                len(selection.selected),
            )
        elif not selection.capped:
            self._cache.retain_paths(
                str(root_path), (str(root_path / path) for path in selection.selected)
            )

        verdicts = {
            category.value: score_category(category, evidence, mtimes)
            for category in Category
        }
        diagnostics = ScanDiagnostics(
            files_discovered=selection.discovered,
            files_scanned=len(mtimes),
            parse_failures=tuple(parse_failures),
            skipped=tuple(skipped),
            cache_hits=hits,
            extractions=extractions,
            partial=timed_out or selection.capped,
            cap_reason=cap_reason.value if cap_reason else None,
            elapsed_seconds=time.monotonic() - started,
        )
        _LOG.debug(
            "Scanned %d files (%d extracted, %d cached, %d parse failures)",
            diagnostics.files_scanned,
            extractions,
            hits,
            len(parse_failures),
        )
        return ProjectContext(
            root=str(root_path),
            metadata=detect_metadata(root_path),
            verdicts=verdicts,
            diagnostics=diagnostics,
        )

    @staticmethod
    def _check_root(root: str | os.PathLike[str]) -> Path:
        root_path = Path(root).expanduser().resolve()
        if not root_path.is_dir():
            raise ScanError("Scan root is not a readable directory.")
        try:
            with os.scandir(root_path) as listing:
                next(listing, None)
        except OSError as exc:
            raise ScanError("Scan root is not a readable directory.") from exc
        return root_path

    def _extract_all(
        self, root: Path, selected: tuple[str, ...], options: ScanOptions
    ) -> tuple[list[_FileOutcome], bool]:
        if not selected:
            return [], False
        executor = ThreadPoolExecutor(
            max_workers=max(1, options.concurrency),
            thread_name_prefix="patternscout-scan",
        )
        try:
            futures: list[Future[_FileOutcome]] = [
                executor.submit(self._process, root, relative, options)
                for relative in selected
            ]
            done, not_done = wait(futures, timeout=options.timeout_seconds)
        finally:
            # a timed-out scan abandons whatever is still queued
            executor.shutdown(wait=False, cancel_futures=True)
        return [future.result() for future in done], bool(not_done)

    def _process(self, root: Path, relative: str, options: ScanOptions) -> _FileOutcome:
        absolute = root / relative
        try:
            stat = absolute.stat()
            if stat.st_size > options.max_file_bytes:
                return _FileOutcome(
                    relative, stat.st_mtime, None, skip_reason="too-large"
                )
            content = absolute.read_bytes()
        except OSError as exc:
            _LOG.warning("Unable to read %s: %s", relative, exc.strerror or exc)
            return _FileOutcome(relative, 0.0, None, skip_reason="unreadable")

        source = SourceFile(
            path=relative,
            fingerprint=fingerprint(content),
            modified_at=stat.st_mtime,
            content=content,
        )
        try:
            result, cached = self._cache.get_or_extract(
                str(absolute), source, self._extractor
            )
        except Exception as exc:
            _LOG.warning("Extraction failed for %s: %s", relative, exc)
            result = ExtractionResult(evidence=(), parse_failed=True, detail=str(exc))
            cached = False
        return _FileOutcome(
            relative, stat.st_mtime, _rebased(result, relative), cached=cached
        )


def scan(
    root: str | os.PathLike[str],
    options: ScanOptions | None = None,
    cache: EvidenceCache | None = None,
) -> ProjectContext:
    """One-shot scan with a private cache unless one is supplied."""

    return ProjectScanner(cache=cache).scan(root, options)
