"""Append-only JSON-lines audit file shared by PatternScout services."""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

_LOG = logging.getLogger(__name__)

STATE_DIR = Path(__file__).resolve().parents[3] / "state"
AUDIT_FILENAME = "audit.jsonl"
DEFAULT_MAX_AUDIT_BYTES = 1_000_000
DEFAULT_WARNING_INTERVAL = 60.0
AUDIT_DIR_ENV = "PATTERNSCOUT_AUDIT_DIR"
AUDIT_MAX_BYTES_ENV = "PATTERNSCOUT_AUDIT_MAX_BYTES"


def _max_bytes_from(raw: str | None) -> int | None:
    """Unset or invalid means the default; zero or less disables rotation."""

    try:
        parsed = int(raw) if raw and raw.strip() else DEFAULT_MAX_AUDIT_BYTES
    except ValueError:
        return DEFAULT_MAX_AUDIT_BYTES
    return parsed if parsed > 0 else None


@dataclass(frozen=True)
class AuditConfig:
    """Where audit lines go and when the file rolls over."""

    audit_file: Path
    max_bytes: int | None = DEFAULT_MAX_AUDIT_BYTES
    warning_interval: float = DEFAULT_WARNING_INTERVAL

    @classmethod
    def from_env(cls) -> "AuditConfig":
        base_dir = Path(os.getenv(AUDIT_DIR_ENV) or STATE_DIR)
        return cls(
            audit_file=base_dir / AUDIT_FILENAME,
            max_bytes=_max_bytes_from(os.getenv(AUDIT_MAX_BYTES_ENV)),
        )


class AuditLog:
    """
    Writer for one audit file.

    Once the file reaches ``max_bytes`` it is moved to ``<name>.1`` and a
    fresh file is started. Auditing never fails the caller: I/O errors are
    logged as warnings, at most one per operation per ``warning_interval``.
    """

    def __init__(self, config: AuditConfig) -> None:
        self.config = config
        self._lock = threading.Lock()
        self._warned_at: dict[str, float] = {}

    def append(self, event: Mapping[str, object]) -> bool:
        """Write ``event`` as one line; return False if it was not written."""

        path = self.config.audit_file
        line = json.dumps(dict(event), ensure_ascii=False, sort_keys=True)
        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                self._warn("create directory for", path, exc)
                return False
            self._roll_over(path)
            try:
                with path.open("a", encoding="utf-8") as fh:
                    fh.write(line + "\n")
            except OSError as exc:
                self._warn("write", path, exc)
                return False
        return True

    def _roll_over(self, path: Path) -> None:
        limit = self.config.max_bytes
        if limit is None:
            return
        try:
            if path.stat().st_size < limit:
                return
            path.replace(path.with_name(path.name + ".1"))
        except FileNotFoundError:
            return
        except OSError as exc:
            self._warn("rotate", path, exc)

    def _warn(self, operation: str, path: Path, exc: OSError) -> None:
        now = time.monotonic()
        last = self._warned_at.get(operation)
        if last is not None and now - last < self.config.warning_interval:
            return
        self._warned_at[operation] = now
        _LOG.warning("Unable to %s audit log %s: %s", operation, path, exc)


_ACTIVE: AuditLog | None = None
_ACTIVE_LOCK = threading.Lock()


def get_audit_log() -> AuditLog:
    """Return the process-wide log, configured from the environment on first use."""

    global _ACTIVE
    with _ACTIVE_LOCK:
        if _ACTIVE is None:
            _ACTIVE = AuditLog(AuditConfig.from_env())
        return _ACTIVE


def set_audit_config(config: AuditConfig | None) -> None:
    """Point the process-wide log at ``config``; None re-reads the environment."""

    global _ACTIVE
    with _ACTIVE_LOCK:
        _ACTIVE = AuditLog(config) if config is not None else None


def reset_audit_config() -> None:
    set_audit_config(None)


def append_audit_event(event: Mapping[str, object]) -> bool:
    return get_audit_log().append(event)
