"""
Shared pytest fixtures for the catalog engine test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the full
    schema applied. Created anew for each test that requests it.
  - ``now``: A fixed reference time so ranking and quote tests never
    depend on the wall clock.
  - ``make_product`` / ``make_features`` / ``make_score``: factories for
    catalog objects.
  - ``product_a`` / ``product_a_features`` / ``product_a_reviews``: the
    reference product used by the end-to-end score scenario.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Callable, Generator

import pytest

from catalog_engine.db.schema import apply_schema
from catalog_engine.models.product import Product, ProductFeature, ReviewStats
from catalog_engine.models.score import FactorBreakdown, ProductScore, ScoreBreakdown

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


# ── Database fixture ──────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the full schema applied."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    apply_schema(conn)
    yield conn
    conn.close()


# ── Time ──────────────────────────────────────────────────────────────────────

@pytest.fixture
def now() -> datetime:
    return NOW


# ── Domain object factories ───────────────────────────────────────────────────

@pytest.fixture
def make_product() -> Callable[..., Product]:
    """Factory for ``Product`` with sensible defaults; override any field."""

    def _make(product_id: str = "p-1", **overrides) -> Product:
        fields = {
            "product_id": product_id,
            "name": f"Product {product_id}",
            "short_description": "A product",
            "price_cents": 10_000,
            "category": "hr",
            "created_at": NOW - timedelta(days=30),
        }
        fields.update(overrides)
        return Product(**fields)

    return _make


@pytest.fixture
def make_features() -> Callable[..., list[ProductFeature]]:
    """Factory: ``count`` features, the first ``high`` with relevance 90."""

    def _make(count: int, high: int = 0, prefix: str = "feature") -> list[ProductFeature]:
        return [
            ProductFeature(
                name=f"{prefix} {i}",
                relevance_score=90 if i < high else 50,
                display_order=i,
            )
            for i in range(count)
        ]

    return _make


@pytest.fixture
def product_a(make_product) -> Product:
    """Cloud HR product, 5-day rollout, API access, ROI and retention reported."""
    return make_product(
        "product-a",
        name="Product A",
        category="hr",
        implementation_time_days=5,
        cloud_client_classification="cloud",
        access_depth="API, read-only",
        roi_percentage=150.0,
        retention_rate=92.0,
    )


@pytest.fixture
def product_a_features(make_features) -> list[ProductFeature]:
    """10 features, 3 with relevance above 80."""
    return make_features(10, high=3)


@pytest.fixture
def product_a_reviews() -> ReviewStats:
    return ReviewStats(average_rating=4.5, review_count=12)


@pytest.fixture
def make_score() -> Callable[..., ProductScore]:
    """Factory for ``ProductScore`` with a minimal, consistent breakdown."""

    def _make(
        product_id: str,
        overall: int = 50,
        fit: int = 50,
        feature: int = 50,
        integration: int = 50,
        review: int = 50,
    ) -> ProductScore:
        return ProductScore(
            product_id=product_id,
            fit_score=fit,
            feature_score=feature,
            integration_score=integration,
            review_score=review,
            overall_score=overall,
            breakdown=ScoreBreakdown(
                fit=FactorBreakdown(score=fit, factors={}),
                feature=FactorBreakdown(score=feature, factors={}),
                integration=FactorBreakdown(score=integration, factors={}),
                review=FactorBreakdown(score=review, factors={}),
            ),
            calculated_at=NOW,
        )

    return _make
