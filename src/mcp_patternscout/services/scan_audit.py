"""SCAN_CAP_APPLIED events for scans cut short by a file or time ceiling."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Mapping

from .audit_log import append_audit_event
from .cap_reason import CapReason

EVENT_NAME = "SCAN_CAP_APPLIED"

AuditWriter = Callable[[Mapping[str, object]], object]


@dataclass(frozen=True)
class ScanCapEvent:
    """How much of a capped scan was covered. Never carries paths or source."""

    reason: CapReason
    limits: Mapping[str, object]
    files_discovered: int
    files_scanned: int
    files_skipped: int = 0
    elapsed_seconds: float = 0.0

    @property
    def files_unscanned(self) -> int:
        done = self.files_scanned + self.files_skipped
        return max(self.files_discovered - done, 0)

    def to_mapping(self) -> dict[str, object]:
        return {
            "event": EVENT_NAME,
            "cap_reason": self.reason.value,
            "limits": dict(self.limits),
            "files_discovered": self.files_discovered,
            "files_scanned": self.files_scanned,
            "files_skipped": self.files_skipped,
            "files_unscanned": self.files_unscanned,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }


class ScanAuditTrail:
    """
    Every cap event of the process, kept in memory and forwarded to a writer.

    The default writer appends to the JSONL audit log; a trail built with
    ``writer=None`` only keeps events in memory.
    """

    def __init__(self, writer: AuditWriter | None = append_audit_event) -> None:
        self._writer = writer
        self._events: list[dict[str, object]] = []
        self._lock = threading.Lock()

    def swap_writer(self, writer: AuditWriter | None) -> AuditWriter | None:
        """Install ``writer`` and return the one it replaces."""

        with self._lock:
            previous, self._writer = self._writer, writer
        return previous

    def record(self, event: ScanCapEvent) -> dict[str, object]:
        entry = event.to_mapping()
        with self._lock:
            self._events.append(entry)
            writer = self._writer
        if writer is not None:
            writer(dict(entry))
        return entry

    def events(self) -> list[dict[str, object]]:
        with self._lock:
            return [dict(entry) for entry in self._events]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


_TRAIL = ScanAuditTrail()


def record_scan_cap_event(event: ScanCapEvent) -> dict[str, object]:
    return _TRAIL.record(event)


def set_scan_audit_writer(writer: AuditWriter | None) -> AuditWriter | None:
    """Replace (or with None, disable) the persistent writer; returns the old one."""

    return _TRAIL.swap_writer(writer)


def get_scan_events() -> list[dict[str, object]]:
    return _TRAIL.events()


def clear_scan_events() -> None:
    _TRAIL.clear()
