"""
Catalog taxonomy: product categories, deployment models and access tokens.

``ProductCategory`` declaration order is the canonical enumeration order.
The comparison manager walks categories in exactly this order when it has
to pick a replacement active category, so reordering members changes
observable behaviour.

``access_depth`` used to be a free-text comma-separated field that was
matched by substring search. It is now a tuple of normalized tokens;
``parse_access_depth()`` converts the legacy string form.

This module has NO imports from any other ``catalog_engine`` package.
"""

from __future__ import annotations

from enum import StrEnum


class ProductCategory(StrEnum):
    """Top-level marketplace category."""

    HR = "hr"
    """Human resources tools and services."""

    LEGAL = "legal"
    """Legal services and tools."""

    MARKETING = "marketing"
    """Marketing automation and analytics platforms."""

    DEVTOOLS = "devtools"
    """Development tools and services."""


class DeploymentModel(StrEnum):
    """Where the product runs (``cloud_client_classification``)."""

    CLOUD = "cloud"
    CLIENT = "client"
    HYBRID = "hybrid"


CATEGORY_ORDER: tuple[ProductCategory, ...] = tuple(ProductCategory)

CATEGORY_DISPLAY_NAMES: dict[ProductCategory, str] = {
    ProductCategory.HR:        "HR Tools",
    ProductCategory.LEGAL:     "Legal Tools",
    ProductCategory.MARKETING: "Marketing Tools",
    ProductCategory.DEVTOOLS:  "Developer Tools",
}

# Tokens that mean the product exposes a programmatic integration surface.
API_ACCESS_TOKENS: frozenset[str] = frozenset({
    "api", "rest_api", "graphql_api", "webhooks", "sdk",
})


def normalize_access_token(raw: str) -> str:
    """Lowercase, strip and snake-case a single access token."""
    return "_".join(raw.strip().lower().replace("-", " ").split())


def parse_access_depth(raw: str | None) -> tuple[str, ...]:
    """Parse the legacy comma-separated ``access_depth`` string.

    Empty fragments are dropped and duplicates removed; first-seen order is
    preserved.

    >>> parse_access_depth("API, read-only, api")
    ('api', 'read_only')
    """
    if not raw:
        return ()
    tokens: list[str] = []
    for fragment in raw.split(","):
        token = normalize_access_token(fragment)
        if token and token not in tokens:
            tokens.append(token)
    return tuple(tokens)


def parse_category(value: str | ProductCategory) -> ProductCategory:
    """Return the ``ProductCategory`` for ``value``.

    Raises:
        ValueError: If ``value`` is not a known category slug.
    """
    if isinstance(value, ProductCategory):
        return value
    try:
        return ProductCategory(str(value).strip().lower())
    except ValueError:
        raise ValueError(
            f"Unknown category '{value}'. Must be one of {[c.value for c in CATEGORY_ORDER]}."
        ) from None
