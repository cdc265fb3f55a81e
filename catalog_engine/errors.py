"""
Engine error taxonomy.

All engine exceptions derive from ``CatalogEngineError`` so callers (CLI,
web layer) can catch the family in one place. Each error carries the
structured context that produced it so the UI layer can render a specific
message (e.g. the comparison hard-cap notice) without parsing strings.

Score computation never raises: missing optional product attributes fall
back to documented default contributions instead.
"""

from __future__ import annotations


class CatalogEngineError(Exception):
    """Base class for all catalog engine errors."""


class ComparisonFull(CatalogEngineError):
    """Raised when adding a product to a category that is already at capacity.

    Recoverable. The selection is left untouched.
    """

    def __init__(self, category: str, product_id: str, max_products: int) -> None:
        self.category = category
        self.product_id = product_id
        self.max_products = max_products
        super().__init__(
            f"Comparison for category '{category}' already holds {max_products} "
            f"products; remove one before adding '{product_id}'."
        )


class InvalidCategory(CatalogEngineError, ValueError):
    """Raised when a category string is not part of the fixed enumeration."""

    def __init__(self, category: object) -> None:
        self.category = category
        super().__init__(f"Unknown product category: {category!r}.")


class ProductNotFound(CatalogEngineError, LookupError):
    """Raised when a referenced product id is not available."""

    def __init__(self, product_id: str) -> None:
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id!r}.")


class InvalidBundle(CatalogEngineError, ValueError):
    """Raised for empty bundles, duplicate ids, or out-of-range overrides."""


class QuoteStateError(CatalogEngineError):
    """Raised on a quote transition that the lifecycle does not allow."""

    def __init__(self, quote_id: str | None, status: str, action: str) -> None:
        self.quote_id = quote_id
        self.status = status
        self.action = action
        super().__init__(
            f"Quote {quote_id or '<unsaved>'} cannot be {action} (status: {status})."
        )


class UnknownScoreStrategy(CatalogEngineError, LookupError):
    """Raised when no score strategy is registered for a model version."""

    def __init__(self, model_version: str) -> None:
        self.model_version = model_version
        super().__init__(f"No score strategy registered for model version '{model_version}'.")
