"""
Export helpers for score snapshots and recommendation lists.

Every writer creates missing parent directories and returns the written
``Path``. CSV output is flat (one column per score and factor) so it loads
directly in a spreadsheet.

``flatten_score_for_export()`` turns a ``ProductScore`` with its nested
factor breakdown into a single flat row:

    product_id, fit_score, ..., overall_score, model_version, calculated_at,
    fit__base, fit__implementation_time, ..., review__confidence_adjustment
"""

from __future__ import annotations

import csv
import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pyarrow as pa
import pyarrow.parquet as pq

from catalog_engine.models.score import SCORE_FIELDS, ProductScore
from catalog_engine.recommendations.context import RankedProduct
from catalog_engine.utils.time_utils import to_iso

logger = logging.getLogger(__name__)

_COMPONENTS = ("fit", "feature", "integration", "review")

SCORE_SNAPSHOT_SCHEMA = pa.schema([
    pa.field("product_id",        pa.string(), nullable=False),
    pa.field("fit_score",         pa.int32(),  nullable=False),
    pa.field("feature_score",     pa.int32(),  nullable=False),
    pa.field("integration_score", pa.int32(),  nullable=False),
    pa.field("review_score",      pa.int32(),  nullable=False),
    pa.field("overall_score",     pa.int32(),  nullable=False),
    pa.field("model_version",     pa.string(), nullable=False),
    pa.field("calculated_at",     pa.timestamp("us", tz="UTC"), nullable=False),
    pa.field("breakdown_json",    pa.string(), nullable=False),
])


def export_to_csv(
    records:    list[dict],
    path:       Path,
    fieldnames: list[str] | None = None,
) -> Path:
    """Write ``records`` as UTF-8 CSV; columns default to the first record's keys."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if not records:
        path.write_text("", encoding="utf-8")
        return path
    cols = fieldnames or list(records[0].keys())
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=cols, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(records)
    return path


def export_to_json(data: dict | list, path: Path) -> Path:
    """Write ``data`` as indented JSON (datetimes via ``str``)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
    return path


def flatten_score_for_export(score: ProductScore) -> dict[str, Any]:
    """One flat row per score: the five scores plus every factor as ``component__factor``."""
    row: dict[str, Any] = {
        "product_id": score.product_id,
        **{name: getattr(score, name) for name in SCORE_FIELDS},
        "model_version": score.model_version,
        "calculated_at": to_iso(score.calculated_at),
    }
    for component in _COMPONENTS:
        factors = getattr(score.breakdown, component).factors
        for factor, value in sorted(factors.items()):
            row[f"{component}__{factor}"] = value
    return row


def score_export_fieldnames(rows: Sequence[dict[str, Any]]) -> list[str]:
    """Stable column order: fixed columns first, then factor columns sorted."""
    fixed = ["product_id", *SCORE_FIELDS, "model_version", "calculated_at"]
    extra = sorted({k for row in rows for k in row} - set(fixed))
    return fixed + extra


def flatten_ranked_for_export(ranked: Sequence[RankedProduct], strategy: str) -> list[dict]:
    """Rows of a recommendation list, ``rank`` starting at 1."""
    return [
        {
            "strategy":   strategy,
            "rank":       i,
            "product_id": r.product.product_id,
            "name":       r.product.name,
            "category":   r.product.category.value,
            "rank_score": r.rank_score,
            "reason":     r.reason,
        }
        for i, r in enumerate(ranked, start=1)
    ]


def write_scores_parquet(scores: Sequence[ProductScore], path: Path) -> int:
    """Write a score snapshot Parquet file. Returns the number of rows."""
    path.parent.mkdir(parents=True, exist_ok=True)
    ordered = sorted(scores, key=lambda s: s.product_id)
    columns: dict[str, list[Any]] = {
        "product_id":     [s.product_id for s in ordered],
        **{name: [getattr(s, name) for s in ordered] for name in SCORE_FIELDS},
        "model_version":  [s.model_version for s in ordered],
        "calculated_at":  [s.calculated_at for s in ordered],
        "breakdown_json": [s.breakdown.model_dump_json() for s in ordered],
    }
    arrays = {
        field.name: pa.array(columns[field.name], type=field.type)
        for field in SCORE_SNAPSHOT_SCHEMA
    }
    table = pa.table(arrays, schema=SCORE_SNAPSHOT_SCHEMA)
    pq.write_table(table, str(path), compression="snappy")
    logger.info("Score snapshot Parquet written: %s (%d rows)", path.name, len(ordered))
    return len(ordered)


def export_scores(scores: Sequence[ProductScore], output_dir: Path, stem: str) -> list[Path]:
    """Write ``{stem}.csv``, ``{stem}.json`` and ``{stem}.parquet`` under ``output_dir``."""
    rows = [flatten_score_for_export(s) for s in sorted(scores, key=lambda s: s.product_id)]
    csv_path = export_to_csv(rows, output_dir / f"{stem}.csv", score_export_fieldnames(rows))
    json_path = export_to_json(
        [s.model_dump(mode="json") for s in sorted(scores, key=lambda s: s.product_id)],
        output_dir / f"{stem}.json",
    )
    parquet_path = output_dir / f"{stem}.parquet"
    write_scores_parquet(scores, parquet_path)
    return [csv_path, json_path, parquet_path]
