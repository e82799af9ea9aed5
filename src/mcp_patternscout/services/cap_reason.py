"""Reasons a scan returned less than the full candidate file set."""

from __future__ import annotations

from enum import Enum


class CapReason(Enum):
    """Enumerate ceilings that can truncate a scan."""

    MAX_FILES = "MAX_FILES"
    SCAN_TIMEOUT = "SCAN_TIMEOUT"
