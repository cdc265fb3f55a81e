"""
Score engine entry points.

``compute_scores()`` is the single-product contract used by the rendering
and recommendation layers. ``compute_scores_batch()`` recomputes a whole
catalog; each product is independent and deterministic, so the work is
fanned out over a thread pool with no ordering requirement and the result
is keyed by product id.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from catalog_engine.models.product import BuyerProfile, Product, ProductFeature, ReviewStats
from catalog_engine.models.score import ProductScore
from catalog_engine.scoring.strategy import ScoreStrategy, get_score_strategy
from catalog_engine.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class ScoringInput:
    """Everything needed to score one product.

    Attributes:
        product:      The product to score.
        features:     Its feature list (any order).
        review_stats: Aggregate review statistics.
    """

    product:      Product
    features:     list[ProductFeature] = field(default_factory=list)
    review_stats: ReviewStats = field(default_factory=ReviewStats)


def compute_scores(
    product:       Product,
    features:      list[ProductFeature],
    review_stats:  ReviewStats,
    buyer_profile: Optional[BuyerProfile] = None,
    strategy:      Optional[ScoreStrategy] = None,
    calculated_at: Optional[datetime] = None,
) -> ProductScore:
    """Compute all five scores for one product.

    Args:
        product:       Product to score.
        features:      Product features.
        review_stats:  Average rating and review count.
        buyer_profile: Optional buyer context for personalised fit/integration.
        strategy:      Score strategy; defaults to ``rule_based_v1``.
        calculated_at: Timestamp to stamp on the snapshot; defaults to now.
            Pass a fixed value when byte-identical output is required.

    Returns:
        ``ProductScore`` with every score in [0, 100].
    """
    strategy = strategy or get_score_strategy()
    breakdown = strategy.breakdown(product, features, review_stats, buyer_profile)
    overall = strategy.overall(breakdown)

    return ProductScore(
        product_id=product.product_id,
        fit_score=breakdown.fit.score,
        feature_score=breakdown.feature.score,
        integration_score=breakdown.integration.score,
        review_score=breakdown.review.score,
        overall_score=overall,
        breakdown=breakdown,
        model_version=strategy.model_version,
        calculated_at=calculated_at or utcnow(),
    )


def compute_scores_batch(
    inputs:        list[ScoringInput],
    strategy:      Optional[ScoreStrategy] = None,
    max_workers:   int = 4,
    calculated_at: Optional[datetime] = None,
) -> dict[str, ProductScore]:
    """Recompute scores for many products in parallel.

    Args:
        inputs:        One ``ScoringInput`` per product.
        strategy:      Score strategy shared by every worker (stateless).
        max_workers:   Thread pool size.
        calculated_at: Shared timestamp for every snapshot in the batch.

    Returns:
        Dict mapping product_id → ``ProductScore``.
    """
    if not inputs:
        return {}

    strategy = strategy or get_score_strategy()
    stamp = calculated_at or utcnow()

    def _score_one(item: ScoringInput) -> ProductScore:
        return compute_scores(
            item.product,
            item.features,
            item.review_stats,
            strategy=strategy,
            calculated_at=stamp,
        )

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        scores = list(pool.map(_score_one, inputs))

    logger.info(
        "Scored %d product(s) | model_version=%s | workers=%d",
        len(scores), strategy.model_version, max_workers,
    )
    return {s.product_id: s for s in scores}


def build_score_reasoning(score: ProductScore) -> str:
    """Assemble a short human-readable explanation of a score.

    Returns a semicolon-separated list of explanation tokens such as:
        "Fast rollout (cloud deployment); API available; Strong reviews (83)"
    """
    reasons: list[str] = []
    fit = score.breakdown.fit.factors
    integration = score.breakdown.integration.factors
    review = score.breakdown.review.factors

    if fit.get("implementation_time", 0) <= -20:
        reasons.append("Long implementation time")
    elif fit.get("deployment_model", 0) >= 10:
        reasons.append("Fast rollout (cloud deployment)")

    if integration.get("api_availability", 0) > 0:
        reasons.append("API available")
    if integration.get("buyer_compatibility", 0) > 0:
        reasons.append("Matches your category interests")

    if review.get("review_count", 0) == 0:
        reasons.append("No reviews yet")
    elif score.review_score >= 80:
        reasons.append(f"Strong reviews ({score.review_score})")
    elif score.review_score < 40:
        reasons.append(f"Weak reviews ({score.review_score})")

    if score.feature_score >= 90:
        reasons.append("Comprehensive listing")

    return "; ".join(reasons) or "No notable signals detected"
