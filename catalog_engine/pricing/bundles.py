"""
Bundle pricing.

Discount tiers
--------------
    1 product      →  0 %
    2 products     →  5 %
    3 products     → 10 %
    4+ products    → 15 %

A seller-defined override replaces the tier. The discounted price is
``total × (1 − discount / 100)`` rounded half-up to whole cents.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from typing import Optional

from catalog_engine.errors import InvalidBundle
from catalog_engine.models.activity import OrderRecord
from catalog_engine.models.pricing import Bundle, BundlePrice
from catalog_engine.models.product import Product
from catalog_engine.scoring.rules import round_half_up

logger = logging.getLogger(__name__)

_TIERS: tuple[tuple[int, float], ...] = (
    (4, 15.0),
    (3, 10.0),
    (2, 5.0),
)


def discount_percentage_for(count: int) -> float:
    """Tier discount for a bundle of ``count`` products."""
    for minimum, pct in _TIERS:
        if count >= minimum:
            return pct
    return 0.0


def _validate_override(override: Optional[float]) -> None:
    if override is not None and not 0.0 <= override <= 100.0:
        raise InvalidBundle(f"Discount override must be in [0, 100], got {override}.")


def price_bundle(
    products: Sequence[Product],
    override: Optional[float] = None,
) -> BundlePrice:
    """Price a list of products sold together.

    Args:
        products: Products in the bundle; at least one, no repeated ids.
        override: Seller-defined discount percentage; wins over the tier.

    Raises:
        InvalidBundle: Empty list, duplicate ids, or override out of range.
    """
    if not products:
        raise InvalidBundle("Cannot price an empty bundle.")
    dupes = [pid for pid, n in Counter(p.product_id for p in products).items() if n > 1]
    if dupes:
        raise InvalidBundle(f"Bundle contains duplicate product ids: {sorted(dupes)}.")
    _validate_override(override)

    total = sum(p.price_cents for p in products)
    pct = override if override is not None else discount_percentage_for(len(products))
    discounted = min(total, round_half_up(total * (1.0 - pct / 100.0)))
    return BundlePrice(
        total_price_cents=total,
        discount_percentage=pct,
        discounted_price_cents=discounted,
    )


def create_bundle(
    name:        str,
    products:    Sequence[Product],
    description: str = "",
    override:    Optional[float] = None,
    seller_id:   Optional[str] = None,
    bundle_id:   Optional[str] = None,
) -> Bundle:
    """Build a seller-defined bundle of at least two distinct products."""
    if len(products) < 2:
        raise InvalidBundle(f"A bundle needs at least 2 products, got {len(products)}.")
    price = price_bundle(products, override)
    bundle = Bundle(
        bundle_id=bundle_id,
        name=name,
        description=description,
        product_ids=tuple(p.product_id for p in products),
        price=price,
        discount_override=override,
        seller_id=seller_id,
    )
    logger.info(
        "Created bundle '%s' with %d products: %d → %d cents (%.0f%% off)",
        name, len(products), price.total_price_cents, price.discounted_price_cents,
        price.discount_percentage,
    )
    return bundle


def suggest_bundles(
    cart_product_ids: Sequence[str],
    catalog:          Mapping[str, Product],
    orders:           Iterable[OrderRecord],
    limit:            int = 3,
) -> list[Bundle]:
    """Propose bundles of the cart plus one frequently co-purchased product.

    Companions are products that appeared in orders containing any cart
    product, counted once per (order, companion) and ranked by count desc,
    then product id. Companions missing from ``catalog`` are skipped.
    """
    if limit < 0:
        raise ValueError(f"limit must be non-negative, got {limit}.")
    cart_ids = list(dict.fromkeys(cart_product_ids))
    cart_products = [catalog[pid] for pid in cart_ids if pid in catalog]
    if not cart_products:
        return []

    in_cart = set(cart_ids)
    counts: Counter[str] = Counter()
    for order in orders:
        ids = set(order.product_ids)
        if ids & in_cart:
            counts.update(ids - in_cart)

    companions = [
        pid for pid, _ in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
        if pid in catalog
    ][:limit]

    bundles: list[Bundle] = []
    for i, pid in enumerate(companions):
        companion = catalog[pid]
        products = [*cart_products, companion]
        price = price_bundle(products)
        bundles.append(Bundle(
            bundle_id=f"suggested-{i}",
            name=f"Bundle with {companion.name}",
            description=(
                f"Save {price.discount_percentage:g}% when you add {companion.name} to your cart"
            ),
            product_ids=tuple(p.product_id for p in products),
            price=price,
        ))
    logger.debug("Suggested %d bundle(s) for a cart of %d product(s)", len(bundles), len(cart_products))
    return bundles
