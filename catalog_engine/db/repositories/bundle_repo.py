"""
Repository for seller-defined bundles.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from typing import Optional

from catalog_engine.db.repositories.base import BaseRepository
from catalog_engine.models.pricing import Bundle, BundlePrice

logger = logging.getLogger(__name__)


class BundleRepository(BaseRepository):
    """Read/write access to ``bundles`` and ``bundle_items``."""

    def insert_bundle(self, bundle: Bundle) -> Bundle:
        """Persist a bundle and its items; assigns a UUID id when missing."""
        if bundle.bundle_id is None:
            bundle = bundle.model_copy(update={"bundle_id": str(uuid.uuid4())})
        self.execute(
            """
            INSERT INTO bundles (
                bundle_id, name, description, seller_id, total_price_cents,
                discount_percentage, discounted_price_cents, discount_override
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                bundle.bundle_id,
                bundle.name,
                bundle.description,
                bundle.seller_id,
                bundle.price.total_price_cents,
                bundle.price.discount_percentage,
                bundle.price.discounted_price_cents,
                bundle.discount_override,
            ),
        )
        self.executemany(
            "INSERT INTO bundle_items (bundle_id, product_id, position) VALUES (?, ?, ?);",
            [(bundle.bundle_id, pid, i) for i, pid in enumerate(bundle.product_ids)],
        )
        return bundle

    def get_bundle(self, bundle_id: str) -> Optional[Bundle]:
        row = self.fetchone("SELECT * FROM bundles WHERE bundle_id = ?;", (bundle_id,))
        return self._hydrate(row) if row else None

    def list_bundles(self, seller_id: Optional[str] = None) -> list[Bundle]:
        if seller_id:
            rows = self.fetchall(
                "SELECT * FROM bundles WHERE seller_id = ? ORDER BY created_at, bundle_id;",
                (seller_id,),
            )
        else:
            rows = self.fetchall("SELECT * FROM bundles ORDER BY created_at, bundle_id;")
        return [self._hydrate(r) for r in rows]

    def _hydrate(self, row: sqlite3.Row) -> Bundle:
        items = self.fetchall(
            "SELECT product_id FROM bundle_items WHERE bundle_id = ? ORDER BY position;",
            (row["bundle_id"],),
        )
        return Bundle(
            bundle_id=row["bundle_id"],
            name=row["name"],
            description=row["description"],
            product_ids=tuple(r["product_id"] for r in items),
            price=BundlePrice(
                total_price_cents=row["total_price_cents"],
                discount_percentage=row["discount_percentage"],
                discounted_price_cents=row["discounted_price_cents"],
            ),
            discount_override=row["discount_override"],
            seller_id=row["seller_id"],
        )
