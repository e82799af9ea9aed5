"""Turn one source file into labeled evidence using the construct catalogue."""

from __future__ import annotations

import logging

from ..domain.models import Evidence, ExtractionResult, SourceFile
from .evidence_catalogue import SHAPES_BY_NODE_TYPE
from .sanitizer import redact_secrets
from .source_parser import SourceParseError, excerpt_of, line_of, parse_source, walk

_LOG = logging.getLogger(__name__)


def extract(file: SourceFile) -> list[Evidence]:
    """
    Return every evidence item the catalogue recognizes in a single file.

    The same file content always yields the same list in the same order.
    Raises :class:`SourceParseError` when the file has no clean syntax tree.
    """

    tree = parse_source(file.path, file.content, file.extension)
    evidence: list[Evidence] = []
    seen: set[tuple[str, str, str, int, int]] = set()
    for node in walk(tree.root):
        for shape in SHAPES_BY_NODE_TYPE.get(node.type, ()):
            proof = shape.matcher(node)
            if proof is None:
                continue
            # nested handlers may cite the same statement twice
            key = (
                shape.category.value,
                shape.facet,
                shape.label,
                proof.start_byte,
                proof.end_byte,
            )
            if key in seen:
                continue
            seen.add(key)
            evidence.append(
                Evidence(
                    category=shape.category.value,
                    facet=shape.facet,
                    label=shape.label,
                    excerpt=redact_secrets(excerpt_of(proof)),
                    file=file.path,
                    line=line_of(proof),
                    strength=shape.strength,
                    shape=shape.name,
                )
            )
    evidence.sort(
        key=lambda item: (item.line, item.category, item.facet, item.label, item.shape)
    )
    return evidence


def extract_file(file: SourceFile) -> ExtractionResult:
    """Extract evidence, converting parse failures into a soft result."""

    try:
        evidence = extract(file)
    except SourceParseError as exc:
        _LOG.debug("Parse failure for %s: %s", file.path, exc)
        return ExtractionResult(evidence=(), parse_failed=True, detail=str(exc))
    return ExtractionResult(evidence=tuple(evidence))
