"""
Score snapshot models.

``ProductScore`` is a derived record: it is always recomputable from the
product, its features, its review stats and an optional buyer profile. It
has no hidden mutable state, so persisting it is purely a cache.

``model_version`` names the ``ScoreStrategy`` that produced the snapshot
(currently only ``"rule_based_v1"``), so snapshots from future strategies
can coexist in the same table.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

ModelVersion = Literal["rule_based_v1"]

SCORE_FIELDS: tuple[str, ...] = (
    "fit_score",
    "feature_score",
    "integration_score",
    "review_score",
    "overall_score",
)


class FactorBreakdown(BaseModel):
    """One component score and the factor contributions behind it."""

    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=100)
    factors: dict[str, float]


class ScoreBreakdown(BaseModel):
    """Per-component explanation of a ``ProductScore``."""

    model_config = ConfigDict(frozen=True)

    fit: FactorBreakdown
    feature: FactorBreakdown
    integration: FactorBreakdown
    review: FactorBreakdown


class ProductScore(BaseModel):
    """Five 0–100 quality scores for one product.

    Attributes:
        product_id: Owning product (1:1).
        fit_score: Implementation / deployment suitability.
        feature_score: Listing completeness and capability richness.
        integration_score: Ease of integration.
        review_score: Confidence-adjusted customer satisfaction.
        overall_score: Fixed-weight composite of the four above.
        breakdown: Factor contributions per component.
        model_version: Strategy that produced this snapshot.
        calculated_at: UTC time of calculation.
    """

    model_config = ConfigDict(frozen=True)

    product_id: str
    fit_score: int = Field(ge=0, le=100)
    feature_score: int = Field(ge=0, le=100)
    integration_score: int = Field(ge=0, le=100)
    review_score: int = Field(ge=0, le=100)
    overall_score: int = Field(ge=0, le=100)
    breakdown: ScoreBreakdown
    model_version: ModelVersion = "rule_based_v1"
    calculated_at: datetime

    @model_validator(mode="after")
    def validate_breakdown_matches(self) -> "ProductScore":
        pairs = (
            (self.fit_score, self.breakdown.fit.score),
            (self.feature_score, self.breakdown.feature.score),
            (self.integration_score, self.breakdown.integration.score),
            (self.review_score, self.breakdown.review.score),
        )
        for top_level, nested in pairs:
            if top_level != nested:
                raise ValueError(
                    f"Breakdown score {nested} does not match component score {top_level}."
                )
        return self

    @property
    def component_vector(self) -> tuple[int, int, int, int]:
        """(fit, feature, integration, review) — used for similarity ranking."""
        return (self.fit_score, self.feature_score, self.integration_score, self.review_score)

    def as_flat_dict(self) -> dict[str, Any]:
        """Scores only, without the nested breakdown."""
        return {
            "product_id": self.product_id,
            **{name: getattr(self, name) for name in SCORE_FIELDS},
            "model_version": self.model_version,
            "calculated_at": self.calculated_at,
        }
