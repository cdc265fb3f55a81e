"""
Tests for catalog_engine/recommendations/ranker.py.

What we test
------------
new_and_notable:
  - Featured first, then newest first, then the general tie-break.
personalized:
  - Category match and recency lift products; bookmarked / purchased excluded.
  - Missing buyer profile → ValueError.
frequently_bought_together:
  - Ordered by co-occurrence count; never-co-bought products excluded.
  - Missing source id → ValueError; unknown source → ProductNotFound.
similar:
  - Same category only, ordered by feature overlap and score proximity.
trending:
  - Ordered by windowed engagement; ties broken by average rating.
  - No engagement → falls back to new_and_notable.
General:
  - Tie-break order: avg rating desc → featured → newest → product_id.
  - Deterministic for identical inputs; input list not mutated.
  - limit truncates after ranking; negative limit → ValueError.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from catalog_engine.errors import ProductNotFound
from catalog_engine.models.activity import EngagementEvent, OrderRecord
from catalog_engine.models.product import (
    BuyerProfile,
    InteractionHistory,
    ProductFeature,
    ReviewStats,
)
from catalog_engine.recommendations.context import (
    RecommendationContext,
    RecommendationStrategy,
)
from catalog_engine.recommendations.ranker import rank, score_candidates


def _ids(products):
    return [p.product_id for p in products]


def _feats(*names):
    return [ProductFeature(name=n) for n in names]


# ── new_and_notable ───────────────────────────────────────────────────────────

class TestNewAndNotable:
    def test_featured_then_newest(self, make_product, now):
        candidates = [
            make_product("old", created_at=now - timedelta(days=100)),
            make_product("new", created_at=now - timedelta(days=1)),
            make_product("feat-old", is_featured=True, created_at=now - timedelta(days=200)),
            make_product("feat-new", is_featured=True, created_at=now - timedelta(days=10)),
        ]
        result = rank(candidates, "new_and_notable", RecommendationContext(now=now))
        assert _ids(result) == ["feat-new", "feat-old", "new", "old"]

    def test_reason_text(self, make_product, now):
        ranked = score_candidates(
            [make_product("f", is_featured=True), make_product("n")],
            RecommendationStrategy.NEW_AND_NOTABLE,
            RecommendationContext(now=now),
        )
        assert [r.reason for r in ranked] == ["Featured", "Recently added"]


# ── General tie-break ─────────────────────────────────────────────────────────

class TestTieBreak:
    def test_rating_then_id(self, make_product, now):
        created = now - timedelta(days=5)
        candidates = [make_product(pid, created_at=created) for pid in ("c", "a", "b", "d")]
        context = RecommendationContext(
            now=now,
            review_stats={
                "d": ReviewStats(average_rating=4.9, review_count=3),
                "b": ReviewStats(average_rating=3.0, review_count=3),
            },
        )
        assert _ids(rank(candidates, "new_and_notable", context)) == ["d", "b", "a", "c"]

    def test_similar_ties_use_rating_then_featured(self, make_product, now):
        created = now - timedelta(days=5)
        candidates = [
            make_product("src", created_at=created),
            make_product("x", created_at=created),
            make_product("y", created_at=created, is_featured=True),
            make_product("z", created_at=created),
        ]
        context = RecommendationContext(
            now=now,
            source_product_id="src",
            review_stats={"z": ReviewStats(average_rating=5.0, review_count=1)},
        )
        # No features and no scores: every candidate ties at 0.
        assert _ids(rank(candidates, "similar", context)) == ["z", "y", "x"]


# ── personalized ──────────────────────────────────────────────────────────────

class TestPersonalized:
    @pytest.fixture
    def candidates(self, make_product, now):
        return [
            make_product("hr-1", category="hr", created_at=now - timedelta(days=30)),
            make_product("legal-1", category="legal", created_at=now - timedelta(days=30)),
            make_product("legal-old", category="legal", created_at=now - timedelta(days=365)),
        ]

    @pytest.fixture
    def scores(self, make_score):
        return {
            "hr-1": make_score("hr-1", overall=80),
            "legal-1": make_score("legal-1", overall=70),
            "legal-old": make_score("legal-old", overall=75),
        }

    def test_category_match_lifts_product(self, candidates, scores, now):
        context = RecommendationContext(
            now=now,
            scores=scores,
            buyer_profile=BuyerProfile(interested_categories={"legal"}),
        )
        ranked = score_candidates(candidates, "personalized", context)
        assert _ids(r.product for r in ranked) == ["legal-1", "legal-old", "hr-1"]
        # 70 + 20 (category) + 10 * (1 - 30/90) recency
        assert ranked[0].rank_score == pytest.approx(70 + 20 + 10 * (1 - 30 / 90))
        assert "matches your interests" in ranked[0].reason

    def test_without_interests_overall_dominates(self, candidates, scores, now):
        context = RecommendationContext(now=now, scores=scores, buyer_profile=BuyerProfile())
        assert _ids(rank(candidates, "personalized", context)) == ["hr-1", "legal-1", "legal-old"]
        ranked = score_candidates(candidates, "personalized", context)
        values = {r.product.product_id: r.rank_score for r in ranked}
        assert values["hr-1"] == pytest.approx(80 + 10 * (1 - 30 / 90))
        assert values["legal-old"] == pytest.approx(75.0)

    def test_excludes_bookmarked_and_purchased(self, candidates, scores, now):
        context = RecommendationContext(
            now=now,
            scores=scores,
            buyer_profile=BuyerProfile(interested_categories={"legal"}),
            history=InteractionHistory(bookmarked={"legal-1"}, purchased={"hr-1"}),
        )
        assert _ids(rank(candidates, "personalized", context)) == ["legal-old"]

    def test_viewed_products_add_affinity(self, candidates, scores, now):
        context = RecommendationContext(
            now=now,
            scores=scores,
            buyer_profile=BuyerProfile(),
            history=InteractionHistory(viewed={"legal-1"}),
        )
        ranked = {r.product.product_id: r for r in score_candidates(candidates, "personalized", context)}
        assert ranked["legal-old"].rank_score == pytest.approx(75.0 + 2.0)
        assert "similar to products you engaged with" in ranked["legal-old"].reason

    def test_unscored_products_still_rank(self, candidates, now):
        context = RecommendationContext(now=now, buyer_profile=BuyerProfile())
        assert len(rank(candidates, "personalized", context)) == 3

    def test_requires_profile(self, candidates, now):
        with pytest.raises(ValueError, match="buyer_profile"):
            rank(candidates, "personalized", RecommendationContext(now=now))


# ── frequently_bought_together ────────────────────────────────────────────────

class TestFrequentlyBoughtTogether:
    @pytest.fixture
    def candidates(self, make_product):
        return [make_product(pid) for pid in ("src", "x", "y", "z")]

    @pytest.fixture
    def orders(self, now):
        return [
            OrderRecord(order_id="o1", product_ids=("src", "x", "y"), created_at=now),
            OrderRecord(order_id="o2", product_ids=("src", "x"), created_at=now),
            OrderRecord(order_id="o3", product_ids=("y", "z"), created_at=now),
        ]

    def test_orders_by_count(self, candidates, orders, now):
        context = RecommendationContext(now=now, orders=orders, source_product_id="src")
        ranked = score_candidates(candidates, "frequently_bought_together", context)
        assert _ids(r.product for r in ranked) == ["x", "y"]
        assert [r.rank_score for r in ranked] == [2.0, 1.0]

    def test_equal_counts_break_on_overall(self, make_product, make_score, now):
        candidates = [make_product(pid) for pid in ("src", "a", "b")]
        orders = [OrderRecord(order_id="o1", product_ids=("src", "a", "b"), created_at=now)]
        context = RecommendationContext(
            now=now,
            orders=orders,
            source_product_id="src",
            scores={"a": make_score("a", overall=40), "b": make_score("b", overall=90)},
        )
        assert _ids(rank(candidates, "frequently_bought_together", context)) == ["b", "a"]

    def test_no_orders(self, candidates, now):
        context = RecommendationContext(now=now, source_product_id="src")
        assert rank(candidates, "frequently_bought_together", context) == []

    def test_missing_source_id(self, candidates, now):
        with pytest.raises(ValueError, match="source_product_id"):
            rank(candidates, "frequently_bought_together", RecommendationContext(now=now))

    def test_unknown_source(self, candidates, now):
        context = RecommendationContext(now=now, source_product_id="ghost")
        with pytest.raises(ProductNotFound):
            rank(candidates, "frequently_bought_together", context)


# ── similar ───────────────────────────────────────────────────────────────────

class TestSimilar:
    def test_feature_overlap_and_category(self, make_product, now):
        candidates = [
            make_product("src", category="hr"),
            make_product("close", category="hr"),
            make_product("far", category="hr"),
            make_product("other-cat", category="legal"),
        ]
        context = RecommendationContext(
            now=now,
            source_product_id="src",
            features={
                "src": _feats("sso", "payroll", "audit"),
                "close": _feats("SSO", "Payroll", "Audit"),
                "far": _feats("sso"),
                "other-cat": _feats("sso", "payroll", "audit"),
            },
        )
        ranked = score_candidates(candidates, "similar", context)
        assert _ids(r.product for r in ranked) == ["close", "far"]
        assert ranked[0].rank_score == pytest.approx(0.5)
        assert ranked[1].rank_score == pytest.approx(0.5 / 3)

    def test_score_proximity_contributes(self, make_product, make_score, now):
        candidates = [make_product(pid) for pid in ("src", "near", "distant")]
        context = RecommendationContext(
            now=now,
            source_product_id="src",
            scores={
                "src": make_score("src", fit=80, feature=80, integration=80, review=80),
                "near": make_score("near", fit=80, feature=80, integration=80, review=80),
                "distant": make_score("distant", fit=0, feature=0, integration=0, review=0),
            },
        )
        assert _ids(rank(candidates, "similar", context)) == ["near", "distant"]


# ── trending ──────────────────────────────────────────────────────────────────

class TestTrending:
    def test_engagement_order(self, make_product, now):
        candidates = [make_product(pid) for pid in ("p1", "p2", "p3", "p4")]
        events = [
            EngagementEvent(product_id="p1", kind="view", occurred_at=now - timedelta(days=1)),
            EngagementEvent(product_id="p1", kind="view", occurred_at=now - timedelta(days=2)),
            EngagementEvent(product_id="p1", kind="view", occurred_at=now - timedelta(days=3)),
            EngagementEvent(product_id="p2", kind="purchase", occurred_at=now - timedelta(days=1)),
            EngagementEvent(product_id="p3", kind="cart_add", occurred_at=now - timedelta(days=1)),
            EngagementEvent(product_id="p4", kind="purchase", occurred_at=now - timedelta(days=10)),
        ]
        context = RecommendationContext(
            now=now,
            events=events,
            review_stats={
                "p1": ReviewStats(average_rating=4.0, review_count=5),
                "p2": ReviewStats(average_rating=4.8, review_count=5),
            },
        )
        ranked = score_candidates(candidates, "trending", context)
        assert _ids(r.product for r in ranked) == ["p2", "p1", "p3"]
        assert [r.rank_score for r in ranked] == [3.0, 3.0, 2.0]

    def test_falls_back_to_new_and_notable(self, make_product, now):
        candidates = [
            make_product("old", created_at=now - timedelta(days=50)),
            make_product("new", created_at=now - timedelta(days=2)),
        ]
        stale_event = EngagementEvent(product_id="old", kind="purchase", occurred_at=now - timedelta(days=30))
        context = RecommendationContext(now=now, events=[stale_event])
        assert _ids(rank(candidates, "trending", context)) == _ids(
            rank(candidates, "new_and_notable", context)
        ) == ["new", "old"]


# ── General behaviour ─────────────────────────────────────────────────────────

class TestGeneral:
    @pytest.fixture
    def candidates(self, make_product, now):
        return [
            make_product(f"p{i}", is_featured=i % 3 == 0, created_at=now - timedelta(days=i))
            for i in range(10)
        ]

    def test_limit_truncates_after_ranking(self, candidates, now):
        context = RecommendationContext(now=now)
        full = rank(candidates, "new_and_notable", context)
        assert rank(candidates, "new_and_notable", context, limit=4) == full[:4]

    def test_limit_zero(self, candidates, now):
        assert rank(candidates, "new_and_notable", RecommendationContext(now=now), limit=0) == []

    def test_limit_larger_than_candidates(self, candidates, now):
        assert len(rank(candidates, "new_and_notable", RecommendationContext(now=now), limit=50)) == 10

    def test_negative_limit(self, candidates, now):
        with pytest.raises(ValueError, match="limit"):
            rank(candidates, "new_and_notable", RecommendationContext(now=now), limit=-1)

    def test_unknown_strategy(self, candidates, now):
        with pytest.raises(ValueError):
            rank(candidates, "bestsellers", RecommendationContext(now=now))

    def test_deterministic(self, candidates, now):
        context = RecommendationContext(now=now)
        first = rank(candidates, "new_and_notable", context)
        second = rank(list(reversed(candidates)), "new_and_notable", context)
        assert _ids(first) == _ids(second)

    def test_input_not_mutated(self, candidates, now):
        before = _ids(candidates)
        rank(candidates, "new_and_notable", RecommendationContext(now=now))
        assert _ids(candidates) == before

    def test_empty_candidates(self, now):
        assert rank([], "new_and_notable", RecommendationContext(now=now)) == []
