"""
Repository for order history and engagement events.

These are the inputs of the frequently-bought-together, trending and
bundle-suggestion signals.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from catalog_engine.db.repositories.base import BaseRepository
from catalog_engine.models.activity import EngagementEvent, OrderRecord
from catalog_engine.utils.time_utils import from_iso, to_iso

logger = logging.getLogger(__name__)


class ActivityRepository(BaseRepository):
    """Read/write access to ``orders``, ``order_items`` and ``engagement_events``."""

    def insert_order(self, order: OrderRecord) -> None:
        self.execute(
            """
            INSERT INTO orders (order_id, buyer_id, created_at) VALUES (?, ?, ?)
            ON CONFLICT(order_id) DO NOTHING;
            """,
            (order.order_id, order.buyer_id, to_iso(order.created_at)),
        )
        self.executemany(
            "INSERT OR IGNORE INTO order_items (order_id, product_id) VALUES (?, ?);",
            [(order.order_id, pid) for pid in order.product_ids],
        )

    def list_orders(self, since: Optional[datetime] = None) -> list[OrderRecord]:
        """Orders with their product ids, oldest first."""
        sql = """
            SELECT o.order_id, o.buyer_id, o.created_at, i.product_id
            FROM orders o JOIN order_items i ON i.order_id = o.order_id
        """
        params: tuple[str, ...] = ()
        if since is not None:
            sql += " WHERE o.created_at >= ?"
            params = (to_iso(since),)
        rows = self.fetchall(sql + " ORDER BY o.created_at, o.order_id, i.product_id;", params)

        grouped: dict[str, dict] = {}
        for row in rows:
            entry = grouped.setdefault(row["order_id"], {
                "order_id": row["order_id"],
                "buyer_id": row["buyer_id"],
                "created_at": from_iso(row["created_at"]),
                "product_ids": [],
            })
            entry["product_ids"].append(row["product_id"])
        return [OrderRecord(**entry) for entry in grouped.values()]

    def record_event(self, event: EngagementEvent) -> int:
        self.execute(
            """
            INSERT INTO engagement_events (product_id, kind, buyer_id, occurred_at)
            VALUES (?, ?, ?, ?);
            """,
            (event.product_id, event.kind, event.buyer_id, to_iso(event.occurred_at)),
        )
        return self.last_insert_rowid()

    def list_events(self, since: Optional[datetime] = None) -> list[EngagementEvent]:
        if since is not None:
            rows = self.fetchall(
                "SELECT * FROM engagement_events WHERE occurred_at >= ? ORDER BY occurred_at, event_id;",
                (to_iso(since),),
            )
        else:
            rows = self.fetchall("SELECT * FROM engagement_events ORDER BY occurred_at, event_id;")
        return [
            EngagementEvent(
                product_id=r["product_id"],
                kind=r["kind"],
                buyer_id=r["buyer_id"],
                occurred_at=from_iso(r["occurred_at"]),
            )
            for r in rows
        ]
