"""
Repository for computed product score snapshots.

Scores are append-only: each refresh inserts new rows, and readers take the
most recent snapshot per product.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Sequence
from typing import Optional

from catalog_engine.db.repositories.base import BaseRepository, placeholders
from catalog_engine.models.score import ProductScore, ScoreBreakdown
from catalog_engine.utils.time_utils import from_iso, to_iso

logger = logging.getLogger(__name__)

_INSERT_SQL = """
INSERT INTO product_scores (
    product_id, run_id, fit_score, feature_score, integration_score,
    review_score, overall_score, breakdown, model_version, calculated_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""


class ScoreRepository(BaseRepository):
    """Read/write access to ``product_scores``."""

    def insert_score(self, score: ProductScore, run_id: Optional[int] = None) -> int:
        """Persist one snapshot and return its ``score_id``."""
        self.execute(_INSERT_SQL, _score_params(score, run_id))
        return self.last_insert_rowid()

    def insert_scores(self, scores: Sequence[ProductScore], run_id: Optional[int] = None) -> int:
        """Persist many snapshots. Returns the number of rows written."""
        self.executemany(_INSERT_SQL, [_score_params(s, run_id) for s in scores])
        logger.debug("Inserted %d score snapshot(s) (run_id=%s)", len(scores), run_id)
        return len(scores)

    def get_latest_score(self, product_id: str) -> Optional[ProductScore]:
        row = self.fetchone(
            """
            SELECT * FROM product_scores
            WHERE product_id = ?
            ORDER BY calculated_at DESC, score_id DESC
            LIMIT 1;
            """,
            (product_id,),
        )
        return _row_to_score(row) if row else None

    def get_latest_scores(
        self,
        product_ids: Optional[Iterable[str]] = None,
    ) -> dict[str, ProductScore]:
        """product_id → most recent snapshot (all scored products when ``None``)."""
        where = ""
        params: tuple[str, ...] = ()
        if product_ids is not None:
            params = tuple(product_ids)
            if not params:
                return {}
            where = f"WHERE product_id IN ({placeholders(len(params))})"
        rows = self.fetchall(
            f"""
            SELECT * FROM product_scores
            {where}
            ORDER BY product_id, calculated_at, score_id;
            """,
            params,
        )
        latest: dict[str, ProductScore] = {}
        for row in rows:
            latest[row["product_id"]] = _row_to_score(row)
        return latest

    def get_scores_for_run(self, run_id: int) -> list[ProductScore]:
        rows = self.fetchall(
            "SELECT * FROM product_scores WHERE run_id = ? ORDER BY product_id;",
            (run_id,),
        )
        return [_row_to_score(r) for r in rows]


# ── Private helpers ───────────────────────────────────────────────────────────

def _score_params(score: ProductScore, run_id: Optional[int]) -> tuple:
    return (
        score.product_id,
        run_id,
        score.fit_score,
        score.feature_score,
        score.integration_score,
        score.review_score,
        score.overall_score,
        score.breakdown.model_dump_json(),
        score.model_version,
        to_iso(score.calculated_at),
    )


def _row_to_score(row: sqlite3.Row) -> ProductScore:
    return ProductScore(
        product_id=row["product_id"],
        fit_score=row["fit_score"],
        feature_score=row["feature_score"],
        integration_score=row["integration_score"],
        review_score=row["review_score"],
        overall_score=row["overall_score"],
        breakdown=ScoreBreakdown.model_validate_json(row["breakdown"]),
        model_version=row["model_version"],
        calculated_at=from_iso(row["calculated_at"]),
    )
