"""Core entities without I/O for PatternScout MCP."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

UNKNOWN_LABEL = "unknown"
"""Universal no-signal label carried by every empty verdict."""


@dataclass(frozen=True)
class SourceFile:
    """Immutable snapshot of one candidate file for a single scan."""

    path: str
    fingerprint: str
    modified_at: float
    content: bytes = field(default=b"", repr=False, compare=False)

    @property
    def extension(self) -> str:
        name = self.path.rsplit("/", 1)[-1]
        if "." not in name:
            return ""
        return "." + name.rsplit(".", 1)[-1].lower()


@dataclass(frozen=True)
class Evidence:
    """A single, file-located, labeled observation supporting a pattern."""

    category: str
    facet: str
    label: str
    excerpt: str
    file: str
    line: int
    strength: float
    shape: str = ""

    @property
    def reference(self) -> str:
        return f"{self.file}:{self.line}"

    def to_mapping(self) -> dict[str, object]:
        return {
            "label": self.label,
            "excerpt": self.excerpt,
            "file": self.file,
            "line": self.line,
            "strength": round(self.strength, 3),
            "shape": self.shape,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Evidence":
        return cls(
            category=str(data["category"]),
            facet=str(data["facet"]),
            label=str(data["label"]),
            excerpt=str(data["excerpt"]),
            file=str(data["file"]),
            line=int(data["line"]),
            strength=float(data["strength"]),
            shape=str(data.get("shape", "")),
        )


@dataclass(frozen=True)
class ExtractionResult:
    """Evidence extracted from one file plus its soft-failure status."""

    evidence: tuple[Evidence, ...]
    parse_failed: bool = False
    detail: str = ""


@dataclass(frozen=True)
class CacheEntry:
    """Memoized extraction output for one (path, fingerprint) key."""

    fingerprint: str
    result: ExtractionResult
    extracted_at: float


@dataclass(frozen=True)
class RejectedLabel:
    """A label that lost conflict resolution, kept with its own evidence."""

    label: str
    confidence: int
    evidence_count: int
    file_count: int
    evidence: tuple[Evidence, ...] = ()

    def to_mapping(self) -> dict[str, object]:
        return {
            "label": self.label,
            "confidence": self.confidence,
            "evidence_count": self.evidence_count,
            "file_count": self.file_count,
            "evidence": [item.to_mapping() for item in self.evidence],
        }


@dataclass(frozen=True)
class PatternVerdict:
    """The resolved, confidence-scored claim for one category or facet."""

    category: str
    facet: str
    label: str
    confidence: int
    evidence: tuple[Evidence, ...] = ()
    rejected: tuple[RejectedLabel, ...] = ()
    conflict: bool = False
    resolution: str = "no-evidence"
    evidence_count: int = 0
    facets: Mapping[str, "PatternVerdict"] = field(default_factory=dict)

    @property
    def level(self) -> str:
        if self.confidence >= 90:
            return "very-high"
        if self.confidence >= 75:
            return "high"
        if self.confidence >= 60:
            return "medium"
        return "low"

    @property
    def is_unknown(self) -> bool:
        return self.label == UNKNOWN_LABEL

    def to_mapping(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "category": self.category,
            "facet": self.facet,
            "label": self.label,
            "confidence": self.confidence,
            "level": self.level,
            "conflict": self.conflict,
            "resolution": self.resolution,
            "evidence_count": self.evidence_count,
            "evidence": [item.to_mapping() for item in self.evidence],
            "rejected": [item.to_mapping() for item in self.rejected],
        }
        if self.facets:
            payload["facets"] = {
                name: verdict.to_mapping()
                for name, verdict in sorted(self.facets.items())
            }
        return payload


@dataclass(frozen=True)
class ProjectMetadata:
    """Project-level facts detected from manifests and directory layout."""

    project_type: str = "Unknown"
    language: str = "Unknown"
    framework: str = "None detected"
    package_manager: str = "Unknown"
    dependencies: tuple[str, ...] = ()
    scripts: Mapping[str, str] = field(default_factory=dict)
    directories: tuple[tuple[str, str], ...] = ()

    def to_mapping(self) -> dict[str, object]:
        return {
            "project_type": self.project_type,
            "language": self.language,
            "framework": self.framework,
            "package_manager": self.package_manager,
            "dependencies": list(self.dependencies),
            "scripts": dict(self.scripts),
            "directories": [
                {"path": path, "purpose": purpose}
                for path, purpose in self.directories
            ],
        }


@dataclass(frozen=True)
class ScanDiagnostics:
    """Per-invocation bookkeeping; excluded from ProjectContext equality."""

    files_discovered: int = 0
    files_scanned: int = 0
    parse_failures: tuple[str, ...] = ()
    skipped: tuple[tuple[str, str], ...] = ()
    cache_hits: int = 0
    extractions: int = 0
    partial: bool = False
    cap_reason: str | None = None
    elapsed_seconds: float = 0.0

    def to_mapping(self) -> dict[str, object]:
        return {
            "files_discovered": self.files_discovered,
            "files_scanned": self.files_scanned,
            "parse_failures": list(self.parse_failures),
            "skipped": [
                {"path": path, "reason": reason} for path, reason in self.skipped
            ],
            "cache_hits": self.cache_hits,
            "extractions": self.extractions,
            "partial": self.partial,
            "cap_reason": self.cap_reason,
            "elapsed_seconds": round(self.elapsed_seconds, 4),
        }


@dataclass(frozen=True)
class ProjectContext:
    """Project metadata plus one verdict per category, owned by one scan."""

    root: str
    metadata: ProjectMetadata
    verdicts: Mapping[str, PatternVerdict]
    diagnostics: ScanDiagnostics = field(
        default_factory=ScanDiagnostics, compare=False
    )

    def verdict(self, category: str) -> PatternVerdict:
        return self.verdicts[category]

    def to_mapping(self) -> dict[str, object]:
        return {
            "metadata": self.metadata.to_mapping(),
            "patterns": {
                name: verdict.to_mapping()
                for name, verdict in sorted(self.verdicts.items())
            },
            "diagnostics": self.diagnostics.to_mapping(),
        }


@dataclass(frozen=True)
class GroundTruthCase:
    """A labeled project with its expected label per facet key."""

    project: str
    path: str
    framework: str
    expected: Mapping[str, str]


@dataclass(frozen=True)
class CaseFailure:
    """One incorrect (project, facet) judgement with its diagnostics."""

    project: str
    facet_key: str
    expected: str
    actual: str
    confidence: int
    evidence: tuple[str, ...] = ()
    rejected: tuple[str, ...] = ()

    def describe(self) -> str:
        if self.evidence:
            found = "; ".join(self.evidence)
        else:
            found = "no evidence found"
        return (
            f"{self.project} [{self.facet_key}]: expected '{self.expected}', "
            f"detected '{self.actual}' ({self.confidence}%): {found}"
        )

    def to_mapping(self) -> dict[str, object]:
        return {
            "project": self.project,
            "facet_key": self.facet_key,
            "expected": self.expected,
            "actual": self.actual,
            "confidence": self.confidence,
            "evidence": list(self.evidence),
            "rejected": list(self.rejected),
            "description": self.describe(),
        }


@dataclass(frozen=True)
class AccuracyReport:
    """Per-framework accuracy, failing cases and recommendations."""

    framework: str
    cases_evaluated: int
    accuracy_by_category: Mapping[str, float]
    accuracy_by_label: Mapping[str, float]
    failures: tuple[CaseFailure, ...] = ()
    recommendations: tuple[str, ...] = ()
    skipped_cases: tuple[str, ...] = ()

    @property
    def average_accuracy(self) -> float:
        if not self.accuracy_by_category:
            return 0.0
        values = list(self.accuracy_by_category.values())
        return sum(values) / len(values)

    def to_mapping(self) -> dict[str, object]:
        return {
            "framework": self.framework,
            "cases_evaluated": self.cases_evaluated,
            "average_accuracy": round(self.average_accuracy, 4),
            "accuracy_by_category": {
                key: round(value, 4)
                for key, value in sorted(self.accuracy_by_category.items())
            },
            "accuracy_by_label": {
                key: round(value, 4)
                for key, value in sorted(self.accuracy_by_label.items())
            },
            "failures": [failure.to_mapping() for failure in self.failures],
            "recommendations": list(self.recommendations),
            "skipped_cases": list(self.skipped_cases),
        }
