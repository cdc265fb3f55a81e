"""
Recommendation ranker: orders candidate products under a named strategy.

Usage flow
----------
1. Build a ``RecommendationContext`` (scores, review stats, features, buyer
   context, order history, engagement events).

2. score_candidates(candidates, strategy, context, limit)
   -> list[RankedProduct]  (ordered, with primary value and reason)

3. rank(candidates, strategy, context, limit)
   -> list[Product]  (same order, products only)

Every call recomputes from its inputs; nothing is cached between calls,
so ranking twice over identical inputs yields identical output.

Tie-break
---------
When a strategy's primary key is equal, candidates are ordered by
average rating desc → featured desc → created_at desc → product_id asc.
``limit`` truncates after ranking, never before.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Optional

from catalog_engine.errors import ProductNotFound
from catalog_engine.models.product import Product
from catalog_engine.recommendations.context import (
    SOURCE_STRATEGIES,
    RankedProduct,
    RecommendationContext,
    RecommendationStrategy,
)
from catalog_engine.recommendations.signals import (
    affinity_bonus,
    co_occurrence_counts,
    engagement_scores,
    feature_overlap,
    recency_bonus,
    score_proximity,
)
from catalog_engine.utils.time_utils import ensure_utc

logger = logging.getLogger(__name__)


# ── Tie-break helpers ─────────────────────────────────────────────────────────


def _tie_break_key(product: Product, context: RecommendationContext) -> tuple:
    """Ascending sort key implementing the general tie-break order."""
    return (
        -context.average_rating(product.product_id),
        0 if product.is_featured else 1,
        -ensure_utc(product.created_at).timestamp(),
        product.product_id,
    )


def _sorted(
    ranked:  list[RankedProduct],
    context: RecommendationContext,
    extra:   Callable[[RankedProduct], tuple] = lambda r: (),
) -> list[RankedProduct]:
    """Sort by rank_score desc, then ``extra``, then the general tie-break."""
    return sorted(
        ranked,
        key=lambda r: (-r.rank_score, *extra(r), *_tie_break_key(r.product, context)),
    )


def _require_source(
    candidates: Sequence[Product],
    context:    RecommendationContext,
    strategy:   RecommendationStrategy,
) -> Product:
    if context.source_product_id is None:
        raise ValueError(f"Strategy '{strategy}' requires context.source_product_id.")
    for product in candidates:
        if product.product_id == context.source_product_id:
            return product
    raise ProductNotFound(context.source_product_id)


# ── Strategies ────────────────────────────────────────────────────────────────


def _new_and_notable(
    candidates: Sequence[Product],
    context:    RecommendationContext,
) -> list[RankedProduct]:
    ranked = [
        RankedProduct(
            product=p,
            rank_score=1.0 if p.is_featured else 0.0,
            reason="Featured" if p.is_featured else "Recently added",
        )
        for p in candidates
    ]
    return _sorted(
        ranked,
        context,
        extra=lambda r: (-ensure_utc(r.product.created_at).timestamp(),),
    )


def _personalized(
    candidates: Sequence[Product],
    context:    RecommendationContext,
) -> list[RankedProduct]:
    profile = context.buyer_profile
    if profile is None:
        raise ValueError("Strategy 'personalized' requires context.buyer_profile.")

    weights = context.config.personalization
    excluded = context.history.excluded_ids
    catalog = {p.product_id: p for p in candidates}

    ranked: list[RankedProduct] = []
    for product in candidates:
        if product.product_id in excluded:
            continue
        overall = context.overall_score(product.product_id) * weights.overall_score
        category = weights.category_match if product.category in profile.interested_categories else 0.0
        recency = recency_bonus(
            product.created_at, context.now, weights.recency_max, weights.recency_horizon_days
        )
        affinity = affinity_bonus(product, context.history, catalog, weights)

        parts = [f"overall {overall:.0f}"]
        if category:
            parts.append("matches your interests")
        if recency >= 1.0:
            parts.append("recently added")
        if affinity:
            parts.append("similar to products you engaged with")
        ranked.append(RankedProduct(
            product=product,
            rank_score=round(overall + category + recency + affinity, 6),
            reason="; ".join(parts),
        ))

    return _sorted(
        ranked,
        context,
        extra=lambda r: (-ensure_utc(r.product.created_at).timestamp(),),
    )


def _frequently_bought_together(
    candidates: Sequence[Product],
    context:    RecommendationContext,
) -> list[RankedProduct]:
    source = _require_source(candidates, context, RecommendationStrategy.FREQUENTLY_BOUGHT_TOGETHER)
    counts = co_occurrence_counts(context.orders, source.product_id)

    ranked = [
        RankedProduct(
            product=p,
            rank_score=float(counts[p.product_id]),
            reason=f"Bought together in {counts[p.product_id]} order(s)",
        )
        for p in candidates
        if p.product_id != source.product_id and counts[p.product_id] > 0
    ]
    return _sorted(
        ranked,
        context,
        extra=lambda r: (-context.overall_score(r.product.product_id),),
    )


def _similar(
    candidates: Sequence[Product],
    context:    RecommendationContext,
) -> list[RankedProduct]:
    source = _require_source(candidates, context, RecommendationStrategy.SIMILAR)
    w = context.config.similar_feature_weight
    source_features = context.features.get(source.product_id, [])
    source_score = context.scores.get(source.product_id)

    ranked: list[RankedProduct] = []
    for product in candidates:
        if product.product_id == source.product_id or product.category != source.category:
            continue
        overlap = feature_overlap(source_features, context.features.get(product.product_id, []))
        proximity = score_proximity(source_score, context.scores.get(product.product_id))
        ranked.append(RankedProduct(
            product=product,
            rank_score=round(w * overlap + (1.0 - w) * proximity, 6),
            reason=f"feature overlap {overlap:.0%}, score proximity {proximity:.0%}",
        ))
    return _sorted(ranked, context)


def _trending(
    candidates: Sequence[Product],
    context:    RecommendationContext,
) -> list[RankedProduct]:
    cfg = context.config
    engagement = engagement_scores(
        context.events, context.now, cfg.trending_window_days, cfg.engagement_weights
    )
    ranked = [
        RankedProduct(
            product=p,
            rank_score=engagement[p.product_id],
            reason=f"Engagement {engagement[p.product_id]:g} in the last {cfg.trending_window_days} days",
        )
        for p in candidates
        if engagement.get(p.product_id, 0.0) > 0
    ]
    if not ranked:
        logger.debug("No engagement in trending window; falling back to new_and_notable.")
        return _new_and_notable(candidates, context)
    return _sorted(ranked, context)


_STRATEGY_FUNCS: dict[
    RecommendationStrategy,
    Callable[[Sequence[Product], RecommendationContext], list[RankedProduct]],
] = {
    RecommendationStrategy.NEW_AND_NOTABLE:            _new_and_notable,
    RecommendationStrategy.PERSONALIZED:               _personalized,
    RecommendationStrategy.FREQUENTLY_BOUGHT_TOGETHER: _frequently_bought_together,
    RecommendationStrategy.SIMILAR:                    _similar,
    RecommendationStrategy.TRENDING:                   _trending,
}


# ── Public API ────────────────────────────────────────────────────────────────


def score_candidates(
    candidates: Sequence[Product],
    strategy:   RecommendationStrategy | str,
    context:    RecommendationContext,
    limit:      Optional[int] = None,
) -> list[RankedProduct]:
    """Rank candidates and return them with their primary ranking value.

    Args:
        candidates: Products to rank. Not mutated.
        strategy:   A ``RecommendationStrategy`` or its string value.
        context:    Signals and configuration for the strategy.
        limit:      Maximum number of results; ``None`` returns all.

    Returns:
        Ranked products, best first.

    Raises:
        ValueError:      Unknown strategy, negative limit, or missing
                         buyer profile / source product id.
        ProductNotFound: Source product is not among the candidates.
    """
    if limit is not None and limit < 0:
        raise ValueError(f"limit must be non-negative, got {limit}.")
    strategy = RecommendationStrategy(strategy)

    ranked = _STRATEGY_FUNCS[strategy](candidates, context)
    if limit is not None:
        ranked = ranked[:limit]

    logger.debug(
        "Ranked %d/%d candidates with strategy=%s%s",
        len(ranked),
        len(candidates),
        strategy,
        f" source={context.source_product_id}" if strategy in SOURCE_STRATEGIES else "",
    )
    return ranked


def rank(
    candidates: Sequence[Product],
    strategy:   RecommendationStrategy | str,
    context:    RecommendationContext,
    limit:      Optional[int] = None,
) -> list[Product]:
    """Ordered products for ``strategy``; see ``score_candidates``."""
    return [r.product for r in score_candidates(candidates, strategy, context, limit)]
