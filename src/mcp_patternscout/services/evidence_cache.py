"""Content-addressed memo of per-file extraction results."""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from concurrent.futures import Future
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

from ..domain.models import CacheEntry, Evidence, ExtractionResult, SourceFile

_LOG = logging.getLogger(__name__)

CACHE_FORMAT_VERSION = 1

Extractor = Callable[[SourceFile], ExtractionResult]
CacheKey = tuple[str, str]


class EvidenceCache:
    """
    Thread-safe cache keyed by (path, content fingerprint).

    Concurrent requests for the same key share one extraction: the first
    caller extracts while later callers wait on its result. A changed file
    has a new fingerprint and therefore misses; a reverted file hits its old
    entry again until evicted. Instances are independent, so each scan
    session or test owns its own cache.

    Stored evidence keeps the relative path of the scan that extracted it;
    readers scanning from another root re-point it at their own path.
    """

    def __init__(self, store_path: Path | None = None) -> None:
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._inflight: dict[CacheKey, Future[ExtractionResult]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._extractions = 0
        self._store_path = store_path

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, path: str, fingerprint: str) -> ExtractionResult | None:
        """Return the cached result, or None on a miss."""

        with self._lock:
            entry = self._entries.get((path, fingerprint))
            if entry is None or entry.fingerprint != fingerprint:
                self._misses += 1
                return None
            self._hits += 1
            return entry.result

    def put(self, path: str, fingerprint: str, result: ExtractionResult) -> None:
        entry = CacheEntry(
            fingerprint=fingerprint, result=result, extracted_at=time.time()
        )
        with self._lock:
            self._entries[(path, fingerprint)] = entry

    def get_or_extract(
        self, path: str, file: SourceFile, extractor: Extractor
    ) -> tuple[ExtractionResult, bool]:
        """
        Return ``(result, cached)`` extracting at most once per key.

        ``cached`` is False only for the caller that actually ran the
        extractor. Extractor exceptions propagate to every waiter and leave
        no entry behind.
        """

        key = (path, file.fingerprint)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._hits += 1
                return entry.result, True
            pending = self._inflight.get(key)
            if pending is None:
                pending = Future()
                self._inflight[key] = pending
                owner = True
                self._misses += 1
            else:
                owner = False
                self._hits += 1

        if not owner:
            return pending.result(), True

        try:
            result = extractor(file)
        except BaseException as exc:
            with self._lock:
                self._inflight.pop(key, None)
            pending.set_exception(exc)
            raise

        with self._lock:
            self._entries[key] = CacheEntry(
                fingerprint=file.fingerprint, result=result, extracted_at=time.time()
            )
            self._extractions += 1
            self._inflight.pop(key, None)
        pending.set_result(result)
        return result, False

    def retain_paths(self, root: str, present: Iterable[str]) -> int:
        """Evict entries under ``root`` whose path was not seen; return count."""

        keep = set(present)
        prefix = root.rstrip(os.sep) + os.sep
        with self._lock:
            stale = [
                key
                for key in self._entries
                if key[0].startswith(prefix) and key[0] not in keep
            ]
            for key in stale:
                del self._entries[key]
        if stale:
            _LOG.debug("Evicted %d cache entries under %s", len(stale), root)
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "extractions": self._extractions,
            }

    def load(self) -> int:
        """Load persisted entries; unreadable or mismatched data loads as empty."""

        if self._store_path is None or not self._store_path.exists():
            return 0
        try:
            payload = json.loads(self._store_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            _LOG.warning(
                "Ignoring unreadable evidence cache %s: %s", self._store_path, exc
            )
            return 0
        if (
            not isinstance(payload, dict)
            or payload.get("version") != CACHE_FORMAT_VERSION
        ):
            _LOG.warning("Ignoring evidence cache with unexpected format.")
            return 0

        loaded: dict[CacheKey, CacheEntry] = {}
        for record in payload.get("entries", []):
            try:
                path, entry = _entry_from_record(record)
            except (KeyError, TypeError, ValueError):
                continue
            loaded[(path, entry.fingerprint)] = entry
        with self._lock:
            self._entries.update(loaded)
        return len(loaded)

    def flush(self) -> None:
        """Write current entries to the store path, if one is configured."""

        if self._store_path is None:
            return
        with self._lock:
            records = [
                _entry_to_record(path, entry)
                for (path, _), entry in sorted(self._entries.items())
            ]
        payload = {"version": CACHE_FORMAT_VERSION, "entries": records}
        self._store_path.parent.mkdir(parents=True, exist_ok=True)
        self._store_path.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8"
        )


def _entry_to_record(path: str, entry: CacheEntry) -> dict[str, Any]:
    return {
        "path": path,
        "fingerprint": entry.fingerprint,
        "extracted_at": entry.extracted_at,
        "parse_failed": entry.result.parse_failed,
        "detail": entry.result.detail,
        "evidence": [asdict(item) for item in entry.result.evidence],
    }


def _entry_from_record(record: Mapping[str, Any]) -> tuple[str, CacheEntry]:
    result = ExtractionResult(
        evidence=tuple(Evidence.from_mapping(item) for item in record["evidence"]),
        parse_failed=bool(record.get("parse_failed", False)),
        detail=str(record.get("detail", "")),
    )
    entry = CacheEntry(
        fingerprint=str(record["fingerprint"]),
        result=result,
        extracted_at=float(record["extracted_at"]),
    )
    return str(record["path"]), entry
