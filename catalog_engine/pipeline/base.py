"""
Base class for batch stages.

A stage is built with an ``AppConfig`` and driven through ``run(**kwargs)``:

  1. ``run()`` opens a ``RunMetadata`` audit record (status ``started``).
  2. ``_execute()`` does the stage's work and returns a row count.
  3. The record is finalised as ``success`` or ``failed`` and written to
     ``run_metadata``. Exceptions from ``_execute()`` are re-raised after
     the failure is recorded.

Usage::

    class MyStage(PipelineStage):
        stage_name = "score_refresh"

        def _execute(self, run: RunMetadata, **kwargs) -> int:
            return 42

    run = MyStage(config=app_config).run()
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from uuid import uuid4

from catalog_engine.config import AppConfig
from catalog_engine.models.meta import RunMetadata
from catalog_engine.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class PipelineStage(ABC):
    """Abstract batch stage with run auditing.

    Attributes:
        stage_name: A valid ``RunMetadata.pipeline_stage`` value.
        config:     Application configuration.
        db_path:    SQLite database path (defaults to ``config.database.db_path``).
    """

    stage_name: str

    def __init__(self, config: AppConfig, db_path: str | None = None) -> None:
        self.config = config
        self.db_path = db_path or config.database.db_path

    def run(self, **kwargs) -> RunMetadata:
        """Execute the stage and return its finalised run record.

        Raises:
            Exception: Whatever ``_execute()`` raised, after the failure
                has been recorded.
        """
        run = RunMetadata(
            run_slug=str(uuid4()),
            pipeline_stage=self.stage_name,
            model_version=self.config.scoring.model_version,
            config_snapshot=self.config.model_dump(mode="json"),
            started_at=utcnow(),
        )
        logger.info("Stage [%s] starting | run_slug=%s", self.stage_name, run.run_slug)

        try:
            rows = self._execute(run=run, **kwargs)
        except Exception as exc:
            run.mark_failed(exc, utcnow())
            logger.error(
                "Stage [%s] FAILED: %s | run_slug=%s", self.stage_name, exc, run.run_slug
            )
            self._persist_run(run)
            raise

        run.mark_success(rows, utcnow())
        logger.info(
            "Stage [%s] completed | rows=%d | %.2fs | run_slug=%s",
            self.stage_name, rows, run.duration_seconds, run.run_slug,
        )
        self._persist_run(run)
        return run

    @abstractmethod
    def _execute(self, run: RunMetadata, **kwargs) -> int:
        """Stage work. ``run`` is mutable; return the number of rows processed."""
        ...

    def _persist_run(self, run: RunMetadata) -> None:
        """Insert or update the run record.

        Persistence errors are logged, not raised, so they never mask the
        stage's own exception.
        """
        from catalog_engine.db.connection import get_connection
        from catalog_engine.db.repositories.run_repo import RunMetadataRepository

        try:
            with get_connection(
                self.db_path,
                wal_mode=self.config.database.wal_mode,
                busy_timeout_ms=self.config.database.busy_timeout_ms,
            ) as conn:
                repo = RunMetadataRepository(conn)
                if run.run_id is None:
                    run.run_id = repo.insert_run(run)
                else:
                    repo.update_run(run)
        except Exception as exc:
            logger.error("Failed to persist RunMetadata for run_slug=%s: %s", run.run_slug, exc)
