"""
Bundle, quote and cart-line models.

``Quote`` is frozen like every other output model; lifecycle transitions
produce a *new* ``Quote`` via ``model_copy(update=...)``. The only field a
transition may change is ``status`` (and ``valid_until`` through an
explicit extension of a pending quote). ``quoted_price_cents`` never
changes after generation, which is what makes acceptance price-locking.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

QuoteStatus = Literal["pending", "accepted", "rejected", "expired"]
VALID_QUOTE_STATUSES: frozenset[str] = frozenset({"pending", "accepted", "rejected", "expired"})


class BundlePrice(BaseModel):
    """Result of pricing a list of products together."""

    model_config = ConfigDict(frozen=True)

    total_price_cents: int = Field(ge=0)
    discount_percentage: float = Field(ge=0.0, le=100.0)
    discounted_price_cents: int = Field(ge=0)

    @model_validator(mode="after")
    def validate_discount_not_above_total(self) -> "BundlePrice":
        if self.discounted_price_cents > self.total_price_cents:
            raise ValueError(
                f"discounted_price_cents ({self.discounted_price_cents}) must not exceed "
                f"total_price_cents ({self.total_price_cents})."
            )
        return self

    @property
    def savings_cents(self) -> int:
        return self.total_price_cents - self.discounted_price_cents


class Bundle(BaseModel):
    """A group of products sold together under a discount tier.

    Attributes:
        bundle_id: Identifier; ``None`` before persistence.
        name: Display name.
        description: Short description.
        product_ids: Ordered distinct product ids (at least two).
        price: Total / discount / discounted price.
        discount_override: Seller-defined discount that replaced the tier.
        seller_id: Seller who defined the bundle, if any.
    """

    model_config = ConfigDict(frozen=True)

    bundle_id: Optional[str] = None
    name: str
    description: str = ""
    product_ids: tuple[str, ...]
    price: BundlePrice
    discount_override: Optional[float] = None
    seller_id: Optional[str] = None

    @field_validator("product_ids")
    @classmethod
    def validate_product_ids(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if len(v) < 2:
            raise ValueError(f"A bundle needs at least 2 products, got {len(v)}.")
        if len(set(v)) != len(v):
            raise ValueError("A bundle must not contain duplicate product ids.")
        return v


class QuoteRequirements(BaseModel):
    """Buyer-specified requirements that drive quote surcharges and discounts.

    Attributes:
        requested_features: Feature names the buyer needs.
        custom_implementation: Buyer needs bespoke implementation work.
        license_seats: Number of license seats requested.
        notes: Free-form notes passed through to the seller.
    """

    model_config = ConfigDict(frozen=True)

    requested_features: tuple[str, ...] = ()
    custom_implementation: bool = False
    license_seats: int = Field(default=1, ge=1)
    notes: Optional[str] = None


class Quote(BaseModel):
    """A buyer-specific price offer with a validity window.

    Attributes:
        quote_id: Identifier; ``None`` before persistence.
        product_id: Quoted product.
        buyer_id: Requesting buyer.
        seller_id: Seller of the product, if known.
        company_size: Buyer head count used for the size multiplier.
        requirements: Requirements the price was computed from.
        quoted_price_cents: Final price; frozen for the quote's lifetime.
        pricing_breakdown: Named price components in cents (sums to the
            pre-floor total).
        status: Lifecycle status.
        created_at: Issue time (UTC).
        valid_until: Expiry time (UTC).
    """

    model_config = ConfigDict(frozen=True)

    quote_id: Optional[str] = None
    product_id: str
    buyer_id: str
    seller_id: Optional[str] = None
    company_size: int = Field(gt=0)
    requirements: QuoteRequirements = QuoteRequirements()
    quoted_price_cents: int = Field(ge=0)
    pricing_breakdown: dict[str, int]
    status: QuoteStatus = "pending"
    created_at: datetime
    valid_until: datetime

    @model_validator(mode="after")
    def validate_window(self) -> "Quote":
        if self.valid_until <= self.created_at:
            raise ValueError("valid_until must be after created_at.")
        return self

    def is_expired(self, now: datetime) -> bool:
        """Derived read-only predicate: ``now > valid_until``."""
        return now > self.valid_until


class CartLine(BaseModel):
    """A cart entry produced from an accepted quote."""

    model_config = ConfigDict(frozen=True)

    product_id: str
    buyer_id: str
    quantity: int = Field(default=1, ge=1)
    unit_price_cents: int = Field(ge=0)
    quote_id: Optional[str] = None
