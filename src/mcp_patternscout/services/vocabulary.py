"""Shared category, facet and label taxonomy for convention detection."""

from __future__ import annotations

from enum import Enum

from ..domain.models import UNKNOWN_LABEL


class Category(Enum):
    """Cross-cutting concerns whose conventions are inferred."""

    AUTHENTICATION = "authentication"
    API_RESPONSES = "apiResponses"
    ERROR_HANDLING = "errorHandling"


PRIMARY_FACETS: dict[Category, str] = {
    Category.AUTHENTICATION: "token_location",
    Category.API_RESPONSES: "envelope",
    Category.ERROR_HANDLING: "catch_style",
}
"""Facet whose verdict stands for the whole category."""

FACET_LABELS: dict[tuple[Category, str], tuple[str, ...]] = {
    (Category.AUTHENTICATION, "token_location"): (
        "cookie",
        "authorization-header",
        "local-storage",
        "session-storage",
        "session",
        "query-param",
        "api-key-header",
    ),
    (Category.AUTHENTICATION, "user_property"): (
        "req.user",
        "req.context.user",
        "req.auth",
        "res.locals.user",
    ),
    (Category.API_RESPONSES, "envelope"): (
        "data-wrapper",
        "result-wrapper",
        "success-flag",
        "status-wrapper",
        "bare-object",
    ),
    (Category.API_RESPONSES, "status_codes"): (
        "explicit-status",
        "implicit-status",
    ),
    (Category.API_RESPONSES, "error_format"): (
        "error-string",
        "error-object",
        "message-only",
    ),
    (Category.ERROR_HANDLING, "catch_style"): (
        "global-middleware",
        "try-catch",
        "promise-catch",
        "result-type",
    ),
    (Category.ERROR_HANDLING, "propagation"): (
        "rethrow",
        "next-error",
        "respond-inline",
        "return-error",
    ),
    (Category.ERROR_HANDLING, "logging"): (
        "structured-logger",
        "console",
    ),
}
"""Known label vocabulary per (category, facet)."""


class VocabularyError(ValueError):
    """Raised when a facet key or label is outside the known vocabulary."""


def facets_for(category: Category) -> tuple[str, ...]:
    """Return the facets of a category, primary first."""

    primary = PRIMARY_FACETS[category]
    others = sorted(
        facet for cat, facet in FACET_LABELS if cat is category and facet != primary
    )
    return (primary, *others)


def facet_key(category: Category, facet: str) -> str:
    """Return the public key for a facet; the primary facet uses the bare name."""

    if PRIMARY_FACETS[category] == facet:
        return category.value
    return f"{category.value}.{facet}"


def all_facet_keys() -> tuple[str, ...]:
    """Every facet key in stable category order."""

    return tuple(
        facet_key(category, facet)
        for category in Category
        for facet in facets_for(category)
    )


def parse_facet_key(key: str) -> tuple[Category, str]:
    """Resolve `category` or `category.facet` to its (category, facet) pair."""

    category_name, _, facet = key.partition(".")
    try:
        category = Category(category_name)
    except ValueError as exc:
        raise VocabularyError(f"Unknown category '{category_name}'.") from exc
    if not facet:
        facet = PRIMARY_FACETS[category]
    if (category, facet) not in FACET_LABELS:
        raise VocabularyError(f"Unknown facet '{key}'.")
    return category, facet


def labels_for(key: str) -> tuple[str, ...]:
    """Return the known labels (including `unknown`) for a facet key."""

    return (*FACET_LABELS[parse_facet_key(key)], UNKNOWN_LABEL)


def validate_label(key: str, label: str) -> None:
    """Raise VocabularyError when the label does not belong to the facet."""

    if label not in labels_for(key):
        raise VocabularyError(f"Label '{label}' is not known for '{key}'.")
