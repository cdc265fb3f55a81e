"""
Rule-based quotes and the quote lifecycle.

Pricing rules (all amounts in integer cents, each component rounded half-up)
---------------------------------------------------------------------------
base_price                 list price, or the category base rate when the
                           product is quote-only / has no list price
company_size_adjustment    base × (multiplier − 1)
                             < 10 → 0.8    < 50 → 1.0    < 200 → 1.5
                             < 500 → 2.0   else 3.0
feature_requirements       base × 10 % per requested feature that is not
                           already one of the product's features
custom_implementation      base × 50 % when custom work is requested
volume_discount            −(base × multiplier) × 10 % for > 5 seats,
                           15 % for > 10 seats

quoted price = max(sum of components, base × 50 %)

Lifecycle
---------
pending ─accept→ accepted      (price frozen; may become a cart line)
pending ─reject→ rejected
pending ─(now > valid_until)→ reported as expired on accept / reject

Transitions return new ``Quote`` objects; ``quoted_price_cents`` is never
recomputed after generation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from catalog_engine.config import PricingConfig
from catalog_engine.errors import QuoteStateError
from catalog_engine.models.pricing import CartLine, Quote, QuoteRequirements
from catalog_engine.models.product import Product, ProductFeature
from catalog_engine.scoring.rules import round_half_up
from catalog_engine.utils.time_utils import ensure_utc

logger = logging.getLogger(__name__)

_SIZE_TIERS: tuple[tuple[int, float], ...] = (
    (10, 0.8),
    (50, 1.0),
    (200, 1.5),
    (500, 2.0),
)
_ENTERPRISE_MULTIPLIER = 3.0

_VOLUME_TIERS: tuple[tuple[int, float], ...] = (
    (10, 0.15),
    (5, 0.10),
)


@dataclass(frozen=True)
class QuoteDecision:
    """Outcome of accepting or rejecting a quote.

    Attributes:
        quote:   The quote after the decision.
        expired: True when the quote had expired; ``quote.status`` is then
                 ``"expired"`` and the buyer must request a new quote.
    """

    quote:   Quote
    expired: bool = False


# ── Pricing ───────────────────────────────────────────────────────────────────


def company_size_multiplier(company_size: int) -> float:
    """Step multiplier, non-decreasing in company size."""
    for upper, multiplier in _SIZE_TIERS:
        if company_size < upper:
            return multiplier
    return _ENTERPRISE_MULTIPLIER


def volume_discount_rate(license_seats: int) -> float:
    for above, rate in _VOLUME_TIERS:
        if license_seats > above:
            return rate
    return 0.0


def base_price_cents(product: Product, config: PricingConfig) -> int:
    if product.requires_quote_base_rate:
        return config.category_base_rates_cents[product.category.value]
    return product.price_cents


def extra_feature_count(
    requested: Iterable[str],
    features:  Optional[Iterable[ProductFeature]],
) -> int:
    """Requested features (case-insensitive, de-duplicated) the product lacks."""
    baseline = {f.name.strip().casefold() for f in features or ()}
    wanted = {name.strip().casefold() for name in requested if name.strip()}
    return len(wanted - baseline)


def calculate_quote_breakdown(
    base_cents:     int,
    company_size:   int,
    requirements:   QuoteRequirements,
    extra_features: int,
    config:         PricingConfig,
) -> dict[str, int]:
    """Named price components in cents, in application order."""
    multiplier = company_size_multiplier(company_size)
    breakdown: dict[str, int] = {
        "base_price": base_cents,
        "company_size_adjustment": round_half_up(base_cents * (multiplier - 1.0)),
    }
    if extra_features:
        breakdown["feature_requirements"] = round_half_up(
            base_cents * config.extra_feature_rate * extra_features
        )
    if requirements.custom_implementation:
        breakdown["custom_implementation"] = round_half_up(
            base_cents * config.custom_implementation_rate
        )
    rate = volume_discount_rate(requirements.license_seats)
    if rate:
        breakdown["volume_discount"] = -round_half_up(base_cents * multiplier * rate)
    return breakdown


def generate_quote(
    product:      Product,
    buyer_id:     str,
    company_size: int,
    requirements: QuoteRequirements,
    now:          datetime,
    features:     Optional[Iterable[ProductFeature]] = None,
    config:       PricingConfig = PricingConfig(),
) -> Quote:
    """Compute a pending quote for ``product``.

    Args:
        product:      Quoted product.
        buyer_id:     Requesting buyer.
        company_size: Buyer head count (positive).
        requirements: Requested features, custom work and seats.
        now:          Issue time; ``valid_until`` is ``now`` plus the
                      configured validity window.
        features:     The product's existing features (baseline set).
        config:       Pricing rates and validity window.

    Raises:
        ValueError: ``company_size`` is not positive.
    """
    if company_size <= 0:
        raise ValueError(f"company_size must be positive, got {company_size}.")

    base = base_price_cents(product, config)
    extras = extra_feature_count(requirements.requested_features, features)
    breakdown = calculate_quote_breakdown(base, company_size, requirements, extras, config)
    floor = round_half_up(base * config.minimum_price_ratio)
    quoted = max(floor, sum(breakdown.values()))

    issued = ensure_utc(now)
    quote = Quote(
        product_id=product.product_id,
        buyer_id=buyer_id,
        seller_id=product.seller_id,
        company_size=company_size,
        requirements=requirements,
        quoted_price_cents=quoted,
        pricing_breakdown=breakdown,
        created_at=issued,
        valid_until=issued + timedelta(days=config.quote_validity_days),
    )
    logger.info(
        "Quoted product=%s buyer=%s size=%d: %d cents (base %d, floor %d)",
        product.product_id, buyer_id, company_size, quoted, base, floor,
    )
    return quote


# ── Lifecycle ─────────────────────────────────────────────────────────────────


def _decide(quote: Quote, now: datetime, status: str, action: str) -> QuoteDecision:
    if quote.status != "pending":
        raise QuoteStateError(quote.quote_id, quote.status, action)
    if quote.is_expired(ensure_utc(now)):
        logger.info("Quote %s expired before it could be %s.", quote.quote_id, action)
        return QuoteDecision(quote=quote.model_copy(update={"status": "expired"}), expired=True)
    logger.info("Quote %s %s at %d cents.", quote.quote_id, action, quote.quoted_price_cents)
    return QuoteDecision(quote=quote.model_copy(update={"status": status}))


def accept_quote(quote: Quote, now: datetime) -> QuoteDecision:
    """pending → accepted, freezing ``quoted_price_cents``."""
    return _decide(quote, now, "accepted", "accepted")


def reject_quote(quote: Quote, now: datetime) -> QuoteDecision:
    return _decide(quote, now, "rejected", "rejected")


def extend_validity(quote: Quote, new_valid_until: datetime) -> Quote:
    """Move the expiry of a pending quote later; the price is unchanged."""
    if quote.status != "pending":
        raise QuoteStateError(quote.quote_id, quote.status, "extended")
    new_valid_until = ensure_utc(new_valid_until)
    if new_valid_until <= quote.valid_until:
        raise ValueError("new_valid_until must be later than the current valid_until.")
    return quote.model_copy(update={"valid_until": new_valid_until})


def cart_line_for_quote(quote: Quote) -> CartLine:
    """Cart entry priced at the quote's frozen price."""
    if quote.status != "accepted":
        raise QuoteStateError(quote.quote_id, quote.status, "added to cart")
    return CartLine(
        product_id=quote.product_id,
        buyer_id=quote.buyer_id,
        quantity=1,
        unit_price_cents=quote.quoted_price_cents,
        quote_id=quote.quote_id,
    )
