"""
Repository for ``run_metadata``: one row per batch score refresh.
"""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Optional

from catalog_engine.db.repositories.base import BaseRepository
from catalog_engine.models.meta import RunMetadata
from catalog_engine.utils.time_utils import from_iso, to_iso

_INSERT_COLUMNS = (
    "run_slug", "pipeline_stage", "status", "model_version", "config_snapshot",
    "rows_processed", "error_message", "started_at", "finished_at",
)


def _optional_iso(value) -> Optional[str]:
    return to_iso(value) if value is not None else None


class RunMetadataRepository(BaseRepository):

    def insert_run(self, run: RunMetadata) -> int:
        """Insert ``run`` and return the new ``run_id``."""
        placeholders = ", ".join("?" for _ in _INSERT_COLUMNS)
        self.execute(
            f"INSERT INTO run_metadata ({', '.join(_INSERT_COLUMNS)}) VALUES ({placeholders});",
            (
                run.run_slug,
                run.pipeline_stage,
                run.status,
                run.model_version,
                json.dumps(run.config_snapshot, default=str),
                run.rows_processed,
                run.error_message,
                to_iso(run.started_at),
                _optional_iso(run.finished_at),
            ),
        )
        return self.last_insert_rowid()

    def update_run(self, run: RunMetadata) -> None:
        """Persist the outcome fields of an inserted run.

        Raises:
            ValueError: ``run`` was never inserted.
        """
        if run.run_id is None:
            raise ValueError(f"Run {run.run_slug} has no run_id; insert it first.")
        self.execute(
            "UPDATE run_metadata"
            " SET status = ?, rows_processed = ?, error_message = ?, finished_at = ?"
            " WHERE run_id = ?;",
            (
                run.status,
                run.rows_processed,
                run.error_message,
                _optional_iso(run.finished_at),
                run.run_id,
            ),
        )

    def get_run_by_slug(self, run_slug: str) -> Optional[RunMetadata]:
        row = self.fetchone("SELECT * FROM run_metadata WHERE run_slug = ?;", (run_slug,))
        return _row_to_run(row) if row else None

    def get_recent_runs(
        self,
        pipeline_stage: Optional[str] = None,
        limit: int = 20,
        status: Optional[str] = None,
    ) -> list[RunMetadata]:
        """Newest first, optionally filtered by stage and/or status."""
        clauses: list[str] = []
        params: list[Any] = []
        if pipeline_stage:
            clauses.append("pipeline_stage = ?")
            params.append(pipeline_stage)
        if status:
            clauses.append("status = ?")
            params.append(status)
        where = f"WHERE {' AND '.join(clauses)} " if clauses else ""
        rows = self.fetchall(
            f"SELECT * FROM run_metadata {where}ORDER BY started_at DESC, run_id DESC LIMIT ?;",
            (*params, limit),
        )
        return [_row_to_run(r) for r in rows]

    def latest_successful_run(self, pipeline_stage: str) -> Optional[RunMetadata]:
        runs = self.get_recent_runs(pipeline_stage, limit=1, status="success")
        return runs[0] if runs else None


def _row_to_run(row: sqlite3.Row) -> RunMetadata:
    data = dict(row)
    data["config_snapshot"] = json.loads(data["config_snapshot"])
    data["started_at"] = from_iso(data["started_at"])
    data["finished_at"] = from_iso(data["finished_at"]) if data["finished_at"] else None
    return RunMetadata(**data)
