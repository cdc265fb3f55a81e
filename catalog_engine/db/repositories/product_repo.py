"""
Repository for products, their features, and reviews.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Sequence
from typing import Optional

from catalog_engine.db.repositories.base import BaseRepository, placeholders
from catalog_engine.errors import ProductNotFound
from catalog_engine.models.product import Product, ProductFeature, ReviewStats
from catalog_engine.taxonomy.catalog_taxonomy import ProductCategory
from catalog_engine.utils.time_utils import from_iso, to_iso

logger = logging.getLogger(__name__)


class ProductRepository(BaseRepository):
    """Read/write access to ``products``, ``product_features`` and ``reviews``."""

    # ── Products ──────────────────────────────────────────────────────────────

    def upsert_product(self, product: Product) -> None:
        """Insert ``product`` or replace every column of the existing row."""
        self.execute(
            """
            INSERT INTO products (
                product_id, name, short_description, long_description,
                price_cents, category, seller_id, implementation_time_days,
                cloud_client_classification, access_depth, roi_percentage,
                retention_rate, quarter_over_quarter_change, demo_visual_url,
                is_featured, is_new, is_quote_only, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(product_id) DO UPDATE SET
                name                        = excluded.name,
                short_description           = excluded.short_description,
                long_description            = excluded.long_description,
                price_cents                 = excluded.price_cents,
                category                    = excluded.category,
                seller_id                   = excluded.seller_id,
                implementation_time_days    = excluded.implementation_time_days,
                cloud_client_classification = excluded.cloud_client_classification,
                access_depth                = excluded.access_depth,
                roi_percentage              = excluded.roi_percentage,
                retention_rate              = excluded.retention_rate,
                quarter_over_quarter_change = excluded.quarter_over_quarter_change,
                demo_visual_url             = excluded.demo_visual_url,
                is_featured                 = excluded.is_featured,
                is_new                      = excluded.is_new,
                is_quote_only               = excluded.is_quote_only,
                created_at                  = excluded.created_at;
            """,
            (
                product.product_id,
                product.name,
                product.short_description,
                product.long_description,
                product.price_cents,
                product.category.value,
                product.seller_id,
                product.implementation_time_days,
                product.cloud_client_classification.value if product.cloud_client_classification else None,
                ",".join(product.access_depth),
                product.roi_percentage,
                product.retention_rate,
                product.quarter_over_quarter_change,
                product.demo_visual_url,
                int(product.is_featured),
                int(product.is_new),
                int(product.is_quote_only),
                to_iso(product.created_at),
            ),
        )

    def get_product(self, product_id: str) -> Optional[Product]:
        row = self.fetchone("SELECT * FROM products WHERE product_id = ?;", (product_id,))
        return _row_to_product(row) if row else None

    def require_product(self, product_id: str) -> Product:
        """Like ``get_product`` but raises ``ProductNotFound`` when missing."""
        product = self.get_product(product_id)
        if product is None:
            raise ProductNotFound(product_id)
        return product

    def list_products(self, category: Optional[ProductCategory] = None) -> list[Product]:
        """All products, optionally in one category, ordered by id."""
        if category is not None:
            rows = self.fetchall(
                "SELECT * FROM products WHERE category = ? ORDER BY product_id;",
                (ProductCategory(category).value,),
            )
        else:
            rows = self.fetchall("SELECT * FROM products ORDER BY product_id;")
        return [_row_to_product(r) for r in rows]

    def count_products(self) -> int:
        row = self.fetchone("SELECT COUNT(*) AS n FROM products;")
        return int(row["n"]) if row else 0

    # ── Features ──────────────────────────────────────────────────────────────

    def replace_features(self, product_id: str, features: Sequence[ProductFeature]) -> int:
        """Replace the product's feature list. Returns the number written."""
        self.execute("DELETE FROM product_features WHERE product_id = ?;", (product_id,))
        self.executemany(
            """
            INSERT INTO product_features (
                product_id, name, description, relevance_score, category, display_order
            ) VALUES (?, ?, ?, ?, ?, ?);
            """,
            [
                (product_id, f.name, f.description, f.relevance_score, f.category, f.display_order)
                for f in features
            ],
        )
        return len(features)

    def get_features(self, product_id: str) -> list[ProductFeature]:
        return self.get_features_map([product_id]).get(product_id, [])

    def get_features_map(
        self,
        product_ids: Optional[Iterable[str]] = None,
    ) -> dict[str, list[ProductFeature]]:
        """product_id → features in display order (all products when ``None``)."""
        sql = "SELECT * FROM product_features"
        params: tuple[str, ...] = ()
        if product_ids is not None:
            params = tuple(product_ids)
            if not params:
                return {}
            sql += f" WHERE product_id IN ({placeholders(len(params))})"
        rows = self.fetchall(sql + " ORDER BY product_id, display_order, feature_id;", params)

        result: dict[str, list[ProductFeature]] = {}
        for row in rows:
            result.setdefault(row["product_id"], []).append(_row_to_feature(row))
        return result

    # ── Reviews ───────────────────────────────────────────────────────────────

    def add_reviews(
        self,
        product_id: str,
        ratings:    Iterable[int],
        buyer_id:   Optional[str] = None,
    ) -> int:
        rows = [(product_id, buyer_id, int(r)) for r in ratings]
        self.executemany(
            "INSERT INTO reviews (product_id, buyer_id, rating) VALUES (?, ?, ?);",
            rows,
        )
        return len(rows)

    def replace_reviews(self, product_id: str, ratings: Iterable[int]) -> int:
        """Replace every review of the product with ``ratings``."""
        self.execute("DELETE FROM reviews WHERE product_id = ?;", (product_id,))
        return self.add_reviews(product_id, ratings)

    def get_review_stats(self, product_id: str) -> ReviewStats:
        return self.get_review_stats_map([product_id]).get(product_id, ReviewStats())

    def get_review_stats_map(
        self,
        product_ids: Optional[Iterable[str]] = None,
    ) -> dict[str, ReviewStats]:
        """product_id → aggregate rating; products without reviews are omitted."""
        sql = "SELECT product_id, AVG(rating) AS avg_rating, COUNT(*) AS n FROM reviews"
        params: tuple[str, ...] = ()
        if product_ids is not None:
            params = tuple(product_ids)
            if not params:
                return {}
            sql += f" WHERE product_id IN ({placeholders(len(params))})"
        rows = self.fetchall(sql + " GROUP BY product_id;", params)
        return {
            row["product_id"]: ReviewStats(
                average_rating=float(row["avg_rating"]),
                review_count=int(row["n"]),
            )
            for row in rows
        }


# ── Private helpers ───────────────────────────────────────────────────────────

def _row_to_product(row: sqlite3.Row) -> Product:
    return Product(
        product_id=row["product_id"],
        name=row["name"],
        short_description=row["short_description"],
        long_description=row["long_description"],
        price_cents=row["price_cents"],
        category=row["category"],
        seller_id=row["seller_id"],
        implementation_time_days=row["implementation_time_days"],
        cloud_client_classification=row["cloud_client_classification"],
        access_depth=row["access_depth"],
        roi_percentage=row["roi_percentage"],
        retention_rate=row["retention_rate"],
        quarter_over_quarter_change=row["quarter_over_quarter_change"],
        demo_visual_url=row["demo_visual_url"],
        is_featured=bool(row["is_featured"]),
        is_new=bool(row["is_new"]),
        is_quote_only=bool(row["is_quote_only"]),
        created_at=from_iso(row["created_at"]),
    )


def _row_to_feature(row: sqlite3.Row) -> ProductFeature:
    return ProductFeature(
        name=row["name"],
        description=row["description"] or "",
        relevance_score=row["relevance_score"],
        category=row["category"],
        display_order=row["display_order"],
    )
