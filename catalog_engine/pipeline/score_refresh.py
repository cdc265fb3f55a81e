"""
ScoreRefreshStage: recompute every product's scores and store a snapshot.

Flow
----
1. Record the run (so score rows can reference ``run_id``).
2. Load products, features and review statistics from the catalog store.
3. Score all products in parallel with the configured strategy
   (``compute_scores_batch``); products are independent.
4. Insert one ``product_scores`` row per product, tagged with the run.
5. Optionally export the snapshot as CSV, JSON and Parquet.

Returns the number of products scored.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from catalog_engine.models.meta import RunMetadata
from catalog_engine.pipeline.base import PipelineStage

logger = logging.getLogger(__name__)


class ScoreRefreshStage(PipelineStage):
    """Batch recomputation of product scores."""

    stage_name = "score_refresh"

    def _execute(
        self,
        run:        RunMetadata,
        category:   Optional[str] = None,
        export_dir: Optional[Path] = None,
        **kwargs,
    ) -> int:
        """Score the catalog (or one category) and persist the snapshot.

        Args:
            run:        In-progress run record.
            category:   Restrict the refresh to one category.
            export_dir: Write report files here when given.
        """
        from catalog_engine.db.connection import get_connection
        from catalog_engine.db.repositories.product_repo import ProductRepository
        from catalog_engine.db.repositories.run_repo import RunMetadataRepository
        from catalog_engine.db.repositories.score_repo import ScoreRepository
        from catalog_engine.models.product import ReviewStats
        from catalog_engine.reporting.export import export_scores
        from catalog_engine.scoring.engine import ScoringInput, compute_scores_batch
        from catalog_engine.scoring.strategy import get_score_strategy
        from catalog_engine.taxonomy.catalog_taxonomy import parse_category

        self._persist_run(run)
        strategy = get_score_strategy(self.config.scoring.model_version)
        db_cfg = self.config.database

        with get_connection(self.db_path, db_cfg.wal_mode, db_cfg.busy_timeout_ms) as conn:
            previous = RunMetadataRepository(conn).latest_successful_run(self.stage_name)
            repo = ProductRepository(conn)
            products = repo.list_products(parse_category(category) if category else None)
            ids = [p.product_id for p in products]
            features = repo.get_features_map(ids)
            reviews = repo.get_review_stats_map(ids)

        if previous is not None:
            logger.info(
                "Previous refresh %s at %s scored %d product(s)",
                previous.run_slug, previous.finished_at, previous.rows_processed,
            )

        if not products:
            logger.warning("No products to score (category=%s).", category)
            return 0

        inputs = [
            ScoringInput(
                product=p,
                features=features.get(p.product_id, []),
                review_stats=reviews.get(p.product_id, ReviewStats()),
            )
            for p in products
        ]
        scores = compute_scores_batch(
            inputs,
            strategy=strategy,
            max_workers=self.config.scoring.batch_workers,
            calculated_at=run.started_at,
        )

        with get_connection(self.db_path, db_cfg.wal_mode, db_cfg.busy_timeout_ms) as conn:
            written = ScoreRepository(conn).insert_scores(
                [scores[pid] for pid in sorted(scores)], run_id=run.run_id
            )

        if export_dir is not None:
            stem = f"scores_{run.started_at.strftime('%Y%m%dT%H%M%S')}"
            paths = export_scores(list(scores.values()), Path(export_dir), stem)
            logger.info("Exported score snapshot: %s", ", ".join(p.name for p in paths))

        return written
