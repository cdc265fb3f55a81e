"""
Ranking signals shared by the recommendation strategies.

All functions are pure: given the same inputs they return the same values,
and none of them reads the clock (``now`` is always passed in).

Signals
-------
engagement_scores():
    Weighted count of engagement events per product inside a trailing
    window. Default weights: view 1, bookmark 1, cart_add 2, purchase 3.

co_occurrence_counts():
    For a source product, the number of distinct orders in which each other
    product appeared alongside it.

feature_overlap():
    Jaccard index of two products' (case-folded) feature names, in [0, 1].

score_proximity():
    1 − euclidean distance between (fit, feature, integration, review)
    vectors / 200, in [0, 1]. 200 is the largest possible distance.

recency_bonus():
    Linear decay from ``max_bonus`` at age 0 to 0 at ``horizon_days``.

affinity_bonus():
    Weighted count of the buyer's past interactions with products of the
    same category, capped.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable, Mapping
from datetime import datetime

from catalog_engine.config import PersonalizationWeights
from catalog_engine.models.activity import EngagementEvent, OrderRecord
from catalog_engine.models.product import InteractionHistory, Product, ProductFeature
from catalog_engine.models.score import ProductScore
from catalog_engine.utils.time_utils import age_in_days, ensure_utc, window_start

_MAX_VECTOR_DISTANCE = 200.0  # sqrt(4 * 100²)


def engagement_scores(
    events:      Iterable[EngagementEvent],
    now:         datetime,
    window_days: int,
    weights:     Mapping[str, float],
) -> dict[str, float]:
    """Weighted engagement per product within ``(now - window_days, now]``."""
    start = window_start(now, window_days)
    end = ensure_utc(now)
    totals: dict[str, float] = {}
    for event in events:
        occurred = ensure_utc(event.occurred_at)
        if occurred <= start or occurred > end:
            continue
        totals[event.product_id] = totals.get(event.product_id, 0.0) + weights.get(event.kind, 0.0)
    return totals


def co_occurrence_counts(
    orders:            Iterable[OrderRecord],
    source_product_id: str,
) -> Counter[str]:
    """Count orders in which each product was bought with the source product."""
    counts: Counter[str] = Counter()
    for order in orders:
        ids = set(order.product_ids)
        if source_product_id not in ids:
            continue
        ids.discard(source_product_id)
        counts.update(ids)
    return counts


def feature_overlap(
    left:  Iterable[ProductFeature],
    right: Iterable[ProductFeature],
) -> float:
    """Jaccard index of feature names (case-insensitive)."""
    a = {f.name.strip().casefold() for f in left}
    b = {f.name.strip().casefold() for f in right}
    if not a and not b:
        return 0.0
    return len(a & b) / len(a | b)


def score_proximity(left: ProductScore | None, right: ProductScore | None) -> float:
    """Closeness of two score vectors in [0, 1]; 0 when either is unknown."""
    if left is None or right is None:
        return 0.0
    distance = math.dist(left.component_vector, right.component_vector)
    return max(0.0, 1.0 - distance / _MAX_VECTOR_DISTANCE)


def recency_bonus(
    created_at:   datetime,
    now:          datetime,
    max_bonus:    float,
    horizon_days: int,
) -> float:
    """Linearly decaying bonus for recently created products."""
    if horizon_days <= 0:
        return 0.0
    age = age_in_days(created_at, now)
    return max(0.0, max_bonus * (1.0 - age / horizon_days))


def affinity_bonus(
    product:  Product,
    history:  InteractionHistory,
    catalog:  Mapping[str, Product],
    weights:  PersonalizationWeights,
) -> float:
    """Bonus for categories the buyer has already interacted with.

    Interactions with products missing from ``catalog`` are ignored.
    """
    total = 0.0
    for ids, weight in (
        (history.viewed, weights.affinity_view),
        (history.bookmarked, weights.affinity_bookmark),
        (history.purchased, weights.affinity_purchase),
    ):
        for product_id in ids:
            other = catalog.get(product_id)
            if (
                other is not None
                and other.product_id != product.product_id
                and other.category == product.category
            ):
                total += weight
    return min(total, weights.affinity_cap)
