"""
Rule-based score components (model version ``rule_based_v1``).

Every component starts from a base value, adds signed factor
contributions, then rounds half-up and clamps to [0, 100]. The factor
contributions are returned alongside the score so the breakdown shown to
buyers is exactly the arithmetic that produced the number.

Fit (base 100)
--------------
    implementation_time : >90d −40 | >30d −20 | >7d −10 | else / unknown 0
    deployment_model    : cloud +10 | hybrid +5 | client / unknown 0
    complexity          : −min(20, 2 × number of access-depth tokens)
    buyer_match         : company < 50 and implementation < 14d → +10
                          company > 500 and implementation > 30d → +5
                          (only when both values are known)

Feature (base 60)
-----------------
    completeness        : ROI +4, retention +4, QoQ +3, demo visual +3,
                          long description > 500 chars +6        (≤ 20)
    description_quality : > 200 words +10 | > 100 words +5       (≤ 10)
    feature_count       : > 20 → 20 | > 10 → 15 | > 5 → 10 | else 2 × count
    high_value_features : min(10, 2 × features with relevance > 80)

Integration (base 70)
---------------------
    deployment_type     : cloud +10 | hybrid +5 | client / unknown −10
    category_ecosystem  : devtools +10 | hr +5 | others 0
    api_availability    : +15 if any access token is an API token
    buyer_compatibility : +10 if the buyer is interested in the category

Review
------
    ((average − 1) / 4) × 100 × confidence
    confidence: < 5 reviews ×0.8 | < 10 ×0.9 | < 20 ×0.95 | else ×1.0

Overall
-------
    0.30 × fit + 0.25 × feature + 0.25 × integration + 0.20 × review
"""

from __future__ import annotations

import math
from typing import Optional

from catalog_engine.models.product import BuyerProfile, Product, ProductFeature, ReviewStats
from catalog_engine.models.score import FactorBreakdown
from catalog_engine.taxonomy.catalog_taxonomy import (
    API_ACCESS_TOKENS,
    DeploymentModel,
    ProductCategory,
)

FIT_BASE = 100
FEATURE_BASE = 60
INTEGRATION_BASE = 70

OVERALL_WEIGHTS: dict[str, float] = {
    "fit":         0.30,
    "feature":     0.25,
    "integration": 0.25,
    "review":      0.20,
}

_FIT_DEPLOYMENT_BONUS: dict[DeploymentModel, int] = {
    DeploymentModel.CLOUD:  10,
    DeploymentModel.HYBRID: 5,
    DeploymentModel.CLIENT: 0,
}

_INTEGRATION_DEPLOYMENT: dict[DeploymentModel, int] = {
    DeploymentModel.CLOUD:  10,
    DeploymentModel.HYBRID: 5,
}
# Client-only and unclassified products both lose integration points.
_INTEGRATION_DEPLOYMENT_DEFAULT = -10

CATEGORY_ECOSYSTEM_BONUS: dict[ProductCategory, int] = {
    ProductCategory.DEVTOOLS:  10,
    ProductCategory.HR:        5,
    ProductCategory.LEGAL:     0,
    ProductCategory.MARKETING: 0,
}

_LONG_DESCRIPTION_CHARS = 500


# ── Fit ───────────────────────────────────────────────────────────────────────

def calculate_fit(
    product: Product,
    buyer_profile: Optional[BuyerProfile] = None,
) -> FactorBreakdown:
    """Fit score: how easily the product can be rolled out."""
    days = product.implementation_time_days

    if days is None:
        implementation = 0
    elif days > 90:
        implementation = -40
    elif days > 30:
        implementation = -20
    elif days > 7:
        implementation = -10
    else:
        implementation = 0

    deployment = _FIT_DEPLOYMENT_BONUS.get(product.cloud_client_classification, 0)
    complexity = -min(20, 2 * len(product.access_depth))

    factors: dict[str, float] = {
        "base": FIT_BASE,
        "implementation_time": implementation,
        "deployment_model": deployment,
        "complexity": complexity,
    }

    if buyer_profile is not None and buyer_profile.company_size and days is not None:
        size = buyer_profile.company_size
        if size < 50 and days < 14:
            factors["buyer_match"] = 10
        elif size > 500 and days > 30:
            factors["buyer_match"] = 5
        else:
            factors["buyer_match"] = 0

    return FactorBreakdown(score=_to_score(sum(factors.values())), factors=factors)


# ── Feature ───────────────────────────────────────────────────────────────────

def calculate_feature(
    product: Product,
    features: list[ProductFeature],
) -> FactorBreakdown:
    """Feature score: listing completeness and capability richness."""
    completeness = 0
    if product.roi_percentage is not None:
        completeness += 4
    if product.retention_rate is not None:
        completeness += 4
    if product.quarter_over_quarter_change is not None:
        completeness += 3
    if product.demo_visual_url:
        completeness += 3
    if product.long_description and len(product.long_description) > _LONG_DESCRIPTION_CHARS:
        completeness += 6

    description_quality = 0
    if product.long_description:
        words = len(product.long_description.split())
        if words > 200:
            description_quality = 10
        elif words > 100:
            description_quality = 5

    count = len(features)
    if count > 20:
        feature_count = 20
    elif count > 10:
        feature_count = 15
    elif count > 5:
        feature_count = 10
    else:
        feature_count = count * 2

    high_relevance = sum(1 for f in features if f.relevance_score > 80)
    high_value = min(high_relevance * 2, 10)

    factors: dict[str, float] = {
        "base": FEATURE_BASE,
        "completeness": completeness,
        "description_quality": description_quality,
        "feature_count": feature_count,
        "high_value_features": high_value,
    }
    return FactorBreakdown(score=_to_score(sum(factors.values())), factors=factors)


# ── Integration ───────────────────────────────────────────────────────────────

def has_api_access(product: Product) -> bool:
    """True if any access-depth token advertises a programmatic interface."""
    return any(token in API_ACCESS_TOKENS for token in product.access_depth)


def calculate_integration(
    product: Product,
    buyer_profile: Optional[BuyerProfile] = None,
) -> FactorBreakdown:
    """Integration score: how well the product plugs into an existing stack."""
    deployment = _INTEGRATION_DEPLOYMENT.get(
        product.cloud_client_classification, _INTEGRATION_DEPLOYMENT_DEFAULT
    )
    ecosystem = CATEGORY_ECOSYSTEM_BONUS.get(product.category, 0)
    api = 15 if has_api_access(product) else 0

    factors: dict[str, float] = {
        "base": INTEGRATION_BASE,
        "deployment_type": deployment,
        "category_ecosystem": ecosystem,
        "api_availability": api,
    }

    if buyer_profile is not None and buyer_profile.interested_categories:
        factors["buyer_compatibility"] = (
            10 if product.category in buyer_profile.interested_categories else 0
        )

    return FactorBreakdown(score=_to_score(sum(factors.values())), factors=factors)


# ── Review ────────────────────────────────────────────────────────────────────

def review_confidence(review_count: int) -> float:
    """Confidence multiplier applied to sparse review sets."""
    if review_count < 5:
        return 0.8
    if review_count < 10:
        return 0.9
    if review_count < 20:
        return 0.95
    return 1.0


def calculate_review(stats: ReviewStats) -> FactorBreakdown:
    """Review score: star rating mapped to 0–100, discounted for few reviews."""
    rating_factor = ((stats.average_rating - 1.0) / 4.0) * 100.0
    confidence = review_confidence(stats.review_count)
    factors: dict[str, float] = {
        "average_rating": round(rating_factor, 4),
        "review_count": stats.review_count,
        "confidence_adjustment": confidence,
    }
    return FactorBreakdown(score=_to_score(rating_factor * confidence), factors=factors)


# ── Overall ───────────────────────────────────────────────────────────────────

def calculate_overall(
    fit: int,
    feature: int,
    integration: int,
    review: int,
) -> int:
    """Fixed-weight composite, rounded half-up and clamped to [0, 100]."""
    weighted = (
        fit           * OVERALL_WEIGHTS["fit"]
        + feature     * OVERALL_WEIGHTS["feature"]
        + integration * OVERALL_WEIGHTS["integration"]
        + review      * OVERALL_WEIGHTS["review"]
    )
    return _to_score(weighted)


# ── Helpers ───────────────────────────────────────────────────────────────────

def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from negative infinity.

    Python's ``round()`` uses banker's rounding (``round(82.5) == 82``);
    scores must round ``x.5`` up.
    """
    # Small epsilon absorbs binary noise such as 0.1 * 3 == 0.30000000000000004.
    return math.floor(value + 0.5 + 1e-9)


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def _to_score(value: float) -> int:
    return int(_clamp(round_half_up(value), 0, 100))
