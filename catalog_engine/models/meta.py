"""
Audit record for batch score refreshes.

Each refresh gets one ``RunMetadata`` row. The row keeps the score strategy
version and a JSON copy of the configuration in force, so a stored score
snapshot can always be traced to the settings that produced it.

Unlike every other model here, ``RunMetadata`` is mutable: the stage fills
in the outcome through ``mark_success`` / ``mark_failed``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict

PipelineStageName = Literal["score_refresh"]
RunStatus = Literal["started", "success", "failed"]


class RunMetadata(BaseModel):
    """One execution of a pipeline stage.

    ``run_id`` stays ``None`` until the row is inserted. ``rows_processed``
    counts products scored; ``config_snapshot`` is ``AppConfig`` dumped in
    JSON mode at start.
    """

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    run_id: Optional[int] = None
    run_slug: str
    pipeline_stage: PipelineStageName
    status: RunStatus = "started"
    model_version: Optional[str] = None
    config_snapshot: dict[str, Any]
    rows_processed: int = 0
    error_message: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None

    def mark_success(self, rows: int, finished_at: datetime) -> None:
        self.status = "success"
        self.rows_processed = rows
        self.finished_at = finished_at

    def mark_failed(self, error: BaseException | str, finished_at: datetime) -> None:
        self.status = "failed"
        self.error_message = str(error)
        self.finished_at = finished_at

    @property
    def duration_seconds(self) -> Optional[float]:
        """Wall time of a finished run; ``None`` while still running."""
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()
