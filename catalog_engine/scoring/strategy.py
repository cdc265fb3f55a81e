"""
Pluggable score strategies.

Callers never invoke the rule functions directly; they go through a
``ScoreStrategy`` looked up by ``model_version``. Adding an ML-backed
strategy later means registering another subclass — ``compute_scores()``
and everything downstream stay unchanged.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar, Optional

from catalog_engine.errors import UnknownScoreStrategy
from catalog_engine.models.product import BuyerProfile, Product, ProductFeature, ReviewStats
from catalog_engine.models.score import ScoreBreakdown
from catalog_engine.scoring import rules


class ScoreStrategy(ABC):
    """Capability interface for anything that can score a product."""

    model_version: ClassVar[str]

    @abstractmethod
    def breakdown(
        self,
        product: Product,
        features: list[ProductFeature],
        review_stats: ReviewStats,
        buyer_profile: Optional[BuyerProfile] = None,
    ) -> ScoreBreakdown:
        """Return the four component scores with their factor contributions."""

    @abstractmethod
    def overall(self, breakdown: ScoreBreakdown) -> int:
        """Combine the component scores into the overall score."""


class RuleBasedV1Strategy(ScoreStrategy):
    """Deterministic rule-based scoring (see ``scoring.rules``)."""

    model_version = "rule_based_v1"

    def breakdown(
        self,
        product: Product,
        features: list[ProductFeature],
        review_stats: ReviewStats,
        buyer_profile: Optional[BuyerProfile] = None,
    ) -> ScoreBreakdown:
        return ScoreBreakdown(
            fit=rules.calculate_fit(product, buyer_profile),
            feature=rules.calculate_feature(product, features),
            integration=rules.calculate_integration(product, buyer_profile),
            review=rules.calculate_review(review_stats),
        )

    def overall(self, breakdown: ScoreBreakdown) -> int:
        return rules.calculate_overall(
            fit=breakdown.fit.score,
            feature=breakdown.feature.score,
            integration=breakdown.integration.score,
            review=breakdown.review.score,
        )


_STRATEGIES: dict[str, type[ScoreStrategy]] = {
    RuleBasedV1Strategy.model_version: RuleBasedV1Strategy,
}

DEFAULT_MODEL_VERSION = RuleBasedV1Strategy.model_version


def registered_versions() -> list[str]:
    """Model versions with a registered strategy, sorted."""
    return sorted(_STRATEGIES)


def get_score_strategy(model_version: str = DEFAULT_MODEL_VERSION) -> ScoreStrategy:
    """Instantiate the strategy registered for ``model_version``.

    Raises:
        UnknownScoreStrategy: If nothing is registered under that version.
    """
    try:
        return _STRATEGIES[model_version]()
    except KeyError:
        raise UnknownScoreStrategy(model_version) from None
