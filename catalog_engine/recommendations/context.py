"""
Inputs and outputs of the recommendation ranker.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Optional

from catalog_engine.config import RecommendationConfig
from catalog_engine.models.activity import EngagementEvent, OrderRecord
from catalog_engine.models.product import (
    BuyerProfile,
    InteractionHistory,
    Product,
    ProductFeature,
    ReviewStats,
)
from catalog_engine.models.score import ProductScore


class RecommendationStrategy(StrEnum):
    NEW_AND_NOTABLE = "new_and_notable"
    PERSONALIZED = "personalized"
    FREQUENTLY_BOUGHT_TOGETHER = "frequently_bought_together"
    SIMILAR = "similar"
    TRENDING = "trending"


# Strategies that rank relative to a source product.
SOURCE_STRATEGIES: frozenset[RecommendationStrategy] = frozenset({
    RecommendationStrategy.FREQUENTLY_BOUGHT_TOGETHER,
    RecommendationStrategy.SIMILAR,
})


@dataclass
class RecommendationContext:
    """Everything a strategy may read besides the candidate list.

    The ranker never mutates the context, and nothing is cached on it
    between calls.

    Attributes:
        now:               Reference time for recency and trailing windows.
        scores:            product_id → ProductScore.
        review_stats:      product_id → ReviewStats (rating tie-break).
        features:          product_id → feature list (similarity).
        buyer_profile:     Buyer context (personalized).
        history:           Buyer's viewed / bookmarked / purchased ids.
        orders:            Historical orders (frequently bought together).
        events:            Engagement events (trending).
        source_product_id: Anchor product for FBT / similar.
        config:            Weights and windows.
    """

    now:               datetime
    scores:            dict[str, ProductScore] = field(default_factory=dict)
    review_stats:      dict[str, ReviewStats] = field(default_factory=dict)
    features:          dict[str, list[ProductFeature]] = field(default_factory=dict)
    buyer_profile:     Optional[BuyerProfile] = None
    history:           InteractionHistory = field(default_factory=InteractionHistory)
    orders:            list[OrderRecord] = field(default_factory=list)
    events:            list[EngagementEvent] = field(default_factory=list)
    source_product_id: Optional[str] = None
    config:            RecommendationConfig = field(default_factory=RecommendationConfig)

    def overall_score(self, product_id: str) -> int:
        score = self.scores.get(product_id)
        return score.overall_score if score is not None else 0

    def average_rating(self, product_id: str) -> float:
        stats = self.review_stats.get(product_id)
        return stats.average_rating if stats is not None else 0.0


@dataclass
class RankedProduct:
    """A candidate with the primary ranking value its strategy assigned.

    Attributes:
        product:    The ranked product.
        rank_score: Strategy-specific primary value (higher ranks first).
        reason:     Short explanation for the UI.
    """

    product:    Product
    rank_score: float
    reason:     str
