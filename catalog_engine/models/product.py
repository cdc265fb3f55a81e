"""
Product, feature, review and buyer-context models.

``Product`` is owned by the Catalog Repository collaborator; the engine only
ever reads it. Every optional business attribute has a documented default
contribution in the score rules, so a sparsely filled product still scores.

``BuyerProfile`` and ``InteractionHistory`` are supplied per request by the
session/identity collaborator and treated as opaque read-only inputs.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from catalog_engine.taxonomy.catalog_taxonomy import (
    DeploymentModel,
    ProductCategory,
    normalize_access_token,
    parse_access_depth,
)


class ProductFeature(BaseModel):
    """One named capability listed on a product page.

    Attributes:
        name: Feature name, unique within its product.
        description: Short description shown on the product page.
        relevance_score: Seller-assigned relevance in [0, 100].
        category: Free-form feature grouping (e.g. ``"integration"``).
        display_order: Position in the product's feature list.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    relevance_score: int = Field(default=50, ge=0, le=100)
    category: Optional[str] = None
    display_order: int = 0


class Product(BaseModel):
    """A marketplace listing with the attributes the engine scores on.

    Attributes:
        product_id: Opaque immutable identifier.
        name: Display name.
        short_description: One-line summary.
        long_description: Full description; drives description-quality bonuses.
        price_cents: List price in cents (non-negative).
        category: One of ``ProductCategory``.
        seller_id: Owning seller, if known.
        implementation_time_days: Typical rollout time in days.
        cloud_client_classification: Deployment model.
        access_depth: Normalized access tokens (see ``parse_access_depth``).
        roi_percentage: Claimed ROI percentage.
        retention_rate: Customer retention rate in [0, 100].
        quarter_over_quarter_change: Signed QoQ change percentage.
        demo_visual_url: Demo screenshot / video URL.
        is_featured: Editorially featured.
        is_new: Flagged as a new listing.
        is_quote_only: Price is only available through a quote.
        created_at: Listing creation time (UTC).
    """

    model_config = ConfigDict(frozen=True)

    product_id: str
    name: str
    short_description: str = ""
    long_description: Optional[str] = None
    price_cents: int = Field(ge=0)
    category: ProductCategory
    seller_id: Optional[str] = None
    implementation_time_days: Optional[int] = None
    cloud_client_classification: Optional[DeploymentModel] = None
    access_depth: tuple[str, ...] = ()
    roi_percentage: Optional[float] = None
    retention_rate: Optional[float] = None
    quarter_over_quarter_change: Optional[float] = None
    demo_visual_url: Optional[str] = None
    is_featured: bool = False
    is_new: bool = False
    is_quote_only: bool = False
    created_at: datetime

    @field_validator("product_id")
    @classmethod
    def validate_product_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("product_id must not be empty.")
        return v

    @field_validator("implementation_time_days")
    @classmethod
    def validate_implementation_time(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError(f"implementation_time_days must be positive, got {v}.")
        return v

    @field_validator("access_depth", mode="before")
    @classmethod
    def normalize_access_depth(cls, v: object) -> tuple[str, ...]:
        if v is None:
            return ()
        if isinstance(v, str):
            return parse_access_depth(v)
        tokens: list[str] = []
        for raw in v:  # type: ignore[union-attr]
            token = normalize_access_token(str(raw))
            if token and token not in tokens:
                tokens.append(token)
        return tuple(tokens)

    @field_validator("roi_percentage")
    @classmethod
    def validate_roi(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError(f"roi_percentage must be non-negative, got {v}.")
        return v

    @field_validator("retention_rate")
    @classmethod
    def validate_retention(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not 0.0 <= v <= 100.0:
            raise ValueError(f"retention_rate must be in [0, 100], got {v}.")
        return v

    @property
    def requires_quote_base_rate(self) -> bool:
        """True when quotes must start from the category base rate."""
        return self.is_quote_only or self.price_cents == 0


class ReviewStats(BaseModel):
    """Aggregate review statistics for one product.

    With no reviews the average is ``0.0``; the review score rule maps that
    below the 1-star floor, so it clamps to 0.
    """

    model_config = ConfigDict(frozen=True)

    average_rating: float = Field(default=0.0, ge=0.0, le=5.0)
    review_count: int = Field(default=0, ge=0)

    @classmethod
    def from_ratings(cls, ratings: list[int | float]) -> "ReviewStats":
        """Aggregate raw 1–5 star ratings, ignoring ``None`` entries."""
        valid = [float(r) for r in ratings if r is not None]
        if not valid:
            return cls()
        return cls(average_rating=sum(valid) / len(valid), review_count=len(valid))


class BuyerProfile(BaseModel):
    """Buyer context used for personalised scores and recommendations.

    Attributes:
        buyer_id: Buyer identifier.
        company_size: Head count (positive).
        interested_categories: Categories picked during onboarding.
        priority_metrics: Metric codes the buyer cares about most.
        budget_range: Free-form budget bucket, e.g. ``"10k-50k"``.
    """

    model_config = ConfigDict(frozen=True)

    buyer_id: Optional[str] = None
    company_size: Optional[int] = None
    interested_categories: frozenset[ProductCategory] = frozenset()
    priority_metrics: frozenset[str] = frozenset()
    budget_range: Optional[str] = None

    @field_validator("company_size")
    @classmethod
    def validate_company_size(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError(f"company_size must be positive, got {v}.")
        return v


class InteractionHistory(BaseModel):
    """Product ids the buyer has viewed, bookmarked or purchased."""

    model_config = ConfigDict(frozen=True)

    viewed: frozenset[str] = frozenset()
    bookmarked: frozenset[str] = frozenset()
    purchased: frozenset[str] = frozenset()

    @property
    def excluded_ids(self) -> frozenset[str]:
        """Ids that personalised recommendations should not repeat."""
        return self.bookmarked | self.purchased
