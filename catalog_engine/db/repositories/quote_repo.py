"""
Repository for quotes.

``quoted_price_cents`` is written once on insert; ``update_quote`` only
touches ``status`` and ``valid_until``.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from typing import Optional

from catalog_engine.db.repositories.base import BaseRepository
from catalog_engine.models.pricing import Quote, QuoteRequirements
from catalog_engine.utils.time_utils import from_iso, to_iso

logger = logging.getLogger(__name__)


class QuoteRepository(BaseRepository):
    """Read/write access to ``quotes``."""

    def insert_quote(self, quote: Quote) -> Quote:
        """Persist a quote, assigning a UUID ``quote_id`` when it has none.

        Returns:
            The stored quote (with its id).
        """
        if quote.quote_id is None:
            quote = quote.model_copy(update={"quote_id": str(uuid.uuid4())})
        self.execute(
            """
            INSERT INTO quotes (
                quote_id, product_id, buyer_id, seller_id, company_size,
                requirements, quoted_price_cents, pricing_breakdown,
                status, created_at, valid_until
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                quote.quote_id,
                quote.product_id,
                quote.buyer_id,
                quote.seller_id,
                quote.company_size,
                quote.requirements.model_dump_json(),
                quote.quoted_price_cents,
                json.dumps(quote.pricing_breakdown),
                quote.status,
                to_iso(quote.created_at),
                to_iso(quote.valid_until),
            ),
        )
        return quote

    def update_quote(self, quote: Quote) -> None:
        """Write back the lifecycle fields of a stored quote.

        Raises:
            ValueError: The quote has no id or does not exist.
        """
        if quote.quote_id is None:
            raise ValueError("Cannot update a Quote without a quote_id.")
        cursor = self.execute(
            "UPDATE quotes SET status = ?, valid_until = ? WHERE quote_id = ?;",
            (quote.status, to_iso(quote.valid_until), quote.quote_id),
        )
        if cursor.rowcount == 0:
            raise ValueError(f"Quote {quote.quote_id} does not exist.")

    def get_quote(self, quote_id: str) -> Optional[Quote]:
        row = self.fetchone("SELECT * FROM quotes WHERE quote_id = ?;", (quote_id,))
        return _row_to_quote(row) if row else None

    def list_quotes_for_buyer(self, buyer_id: str, status: Optional[str] = None) -> list[Quote]:
        """Buyer's quotes, newest first, optionally filtered by status."""
        if status:
            rows = self.fetchall(
                "SELECT * FROM quotes WHERE buyer_id = ? AND status = ? ORDER BY created_at DESC;",
                (buyer_id, status),
            )
        else:
            rows = self.fetchall(
                "SELECT * FROM quotes WHERE buyer_id = ? ORDER BY created_at DESC;",
                (buyer_id,),
            )
        return [_row_to_quote(r) for r in rows]


def _row_to_quote(row: sqlite3.Row) -> Quote:
    return Quote(
        quote_id=row["quote_id"],
        product_id=row["product_id"],
        buyer_id=row["buyer_id"],
        seller_id=row["seller_id"],
        company_size=row["company_size"],
        requirements=QuoteRequirements.model_validate_json(row["requirements"]),
        quoted_price_cents=row["quoted_price_cents"],
        pricing_breakdown=json.loads(row["pricing_breakdown"]),
        status=row["status"],
        created_at=from_iso(row["created_at"]),
        valid_until=from_iso(row["valid_until"]),
    )
