"""Load and validate the labeled corpus used to measure detector accuracy."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping

from ..domain.models import GroundTruthCase
from ..mcp.schema_registry import SchemaValidationError, validate
from .vocabulary import VocabularyError, parse_facet_key, validate_label

CORPUS_SCHEMA = "ground_truth_corpus_v0.1"


class GroundTruthError(ValueError):
    """Raised when a corpus or a measurement request cannot be trusted."""


@dataclass(frozen=True)
class GroundTruthCorpus:
    """Validated cases plus the directory their paths are relative to."""

    base_dir: Path
    cases: tuple[GroundTruthCase, ...]

    def facet_keys(self) -> set[str]:
        return {key for case in self.cases for key in case.expected}

    def labels(self) -> set[tuple[str, str]]:
        """Every (facet key, label) pair that at least one case expects."""

        return {
            (key, label) for case in self.cases for key, label in case.expected.items()
        }

    def project_dir(self, case: GroundTruthCase) -> Path:
        return (self.base_dir / case.path).resolve()


@dataclass(frozen=True)
class MeasurePlan:
    """Facet keys to score, optionally narrowed to specific labels."""

    keys: tuple[str, ...]
    labels: Mapping[str, frozenset[str]] = field(default_factory=dict)

    def includes(self, key: str, label: str) -> bool:
        if key not in self.keys:
            return False
        allowed = self.labels.get(key)
        return allowed is None or label in allowed


def parse_corpus(payload: Any, base_dir: Path) -> GroundTruthCorpus:
    """
    Validate a decoded corpus against its schema and the label vocabulary.

    Any unknown category, facet or label is fatal here so that accuracy is
    never reported for a label the detector cannot emit.
    """

    try:
        validate(CORPUS_SCHEMA, payload)
    except SchemaValidationError as exc:
        raise GroundTruthError(f"Corpus violates schema: {exc.message}") from exc

    cases: list[GroundTruthCase] = []
    seen: set[str] = set()
    for raw in payload["cases"]:
        project = raw["project"]
        if project in seen:
            raise GroundTruthError(f"Duplicate project '{project}' in corpus.")
        seen.add(project)
        expected: dict[str, str] = {}
        for key, label in raw["expected"].items():
            try:
                parse_facet_key(key)
                validate_label(key, label)
            except VocabularyError as exc:
                raise GroundTruthError(f"Case '{project}': {exc}") from exc
            expected[key] = label
        cases.append(
            GroundTruthCase(
                project=project,
                path=raw["path"],
                framework=raw["framework"],
                expected=expected,
            )
        )
    return GroundTruthCorpus(base_dir=base_dir, cases=tuple(cases))


def load_corpus(path: str | Path) -> GroundTruthCorpus:
    """Read a corpus file; case paths resolve relative to its directory."""

    corpus_path = Path(path)
    try:
        payload = json.loads(corpus_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise GroundTruthError(f"Unable to read corpus: {exc.strerror}") from exc
    except json.JSONDecodeError as exc:
        raise GroundTruthError(f"Corpus is not valid JSON: {exc.msg}") from exc
    return parse_corpus(payload, corpus_path.resolve().parent)


def plan_measurement(
    corpus: GroundTruthCorpus, measure: Iterable[str] | None = None
) -> MeasurePlan:
    """
    Resolve the requested measurement against what the corpus labels.

    Entries are facet keys (``authentication``) or ``key:label`` pairs.
    Requesting a key or label that no case expects raises
    :class:`GroundTruthError`.
    """

    present_keys = corpus.facet_keys()
    if measure is None:
        return MeasurePlan(keys=tuple(sorted(present_keys)))

    present_labels = corpus.labels()
    keys: list[str] = []
    labels: dict[str, set[str]] = {}
    whole_keys: set[str] = set()
    for entry in measure:
        key, _, label = entry.partition(":")
        try:
            parse_facet_key(key)
            if label:
                validate_label(key, label)
        except VocabularyError as exc:
            raise GroundTruthError(str(exc)) from exc
        if key not in present_keys:
            raise GroundTruthError(f"No ground-truth case labels '{key}'.")
        if label and (key, label) not in present_labels:
            raise GroundTruthError(
                f"No ground-truth case expects '{label}' for '{key}'."
            )
        if key not in keys:
            keys.append(key)
        if label:
            labels.setdefault(key, set()).add(label)
        else:
            whole_keys.add(key)
    if not keys:
        raise GroundTruthError("Nothing to measure.")

    narrowed = {
        key: frozenset(values)
        for key, values in labels.items()
        if key not in whole_keys
    }
    return MeasurePlan(keys=tuple(sorted(keys)), labels=narrowed)
