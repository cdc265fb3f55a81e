"""
JSON import parser for catalog seed files.

Accepted shapes
---------------
A top-level array of product objects, or an object with any of these keys::

    {
      "products": [ {...product fields..., "features": [...], "ratings": [5, 4]} ],
      "orders":   [ {"order_id": "o1", "product_ids": ["p1", "p2"], "created_at": "..."} ],
      "events":   [ {"product_id": "p1", "kind": "view", "occurred_at": "..."} ]
    }

Product objects use the ``Product`` field names. ``features`` is a list of
``ProductFeature`` objects (or bare names); ``ratings`` is a list of 1–5
star values. ``access_depth`` may be a comma-separated string or a list.

Every record is validated before anything is returned; failures are
collected and reported together.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from catalog_engine.models.activity import EngagementEvent, OrderRecord
from catalog_engine.models.product import Product, ProductFeature

logger = logging.getLogger(__name__)

_MAX_REPORTED_ERRORS = 10


@dataclass
class CatalogEntry:
    product:  Product
    features: list[ProductFeature] = field(default_factory=list)
    ratings:  list[int] = field(default_factory=list)


@dataclass
class CatalogImport:
    """Validated contents of a catalog seed file."""

    entries: list[CatalogEntry] = field(default_factory=list)
    orders:  list[OrderRecord] = field(default_factory=list)
    events:  list[EngagementEvent] = field(default_factory=list)


def _parse_features(raw: list[Any]) -> list[ProductFeature]:
    features: list[ProductFeature] = []
    for i, item in enumerate(raw):
        if isinstance(item, str):
            features.append(ProductFeature(name=item, display_order=i))
        else:
            features.append(ProductFeature(**{"display_order": i, **item}))
    return features


def _parse_ratings(raw: list[Any]) -> list[int]:
    ratings = [int(r) for r in raw if r is not None]
    bad = [r for r in ratings if not 1 <= r <= 5]
    if bad:
        raise ValueError(f"ratings must be between 1 and 5, got {bad}.")
    return ratings


def parse_catalog_payload(payload: Any) -> CatalogImport:
    """Validate an already-decoded catalog payload.

    Raises:
        ValueError: Wrong top-level shape, or one or more records are invalid.
    """
    if isinstance(payload, list):
        payload = {"products": payload}
    if not isinstance(payload, dict):
        raise ValueError("Catalog file must contain an array or an object.")

    result = CatalogImport()
    errors: list[str] = []

    for i, raw in enumerate(payload.get("products", [])):
        try:
            data = dict(raw)
            features = _parse_features(data.pop("features", []) or [])
            ratings = _parse_ratings(data.pop("ratings", []) or [])
            result.entries.append(CatalogEntry(Product(**data), features, ratings))
        except (ValidationError, ValueError, TypeError) as exc:
            errors.append(f"products[{i}]: {exc}")

    for i, raw in enumerate(payload.get("orders", [])):
        try:
            result.orders.append(OrderRecord(**raw))
        except (ValidationError, TypeError) as exc:
            errors.append(f"orders[{i}]: {exc}")

    for i, raw in enumerate(payload.get("events", [])):
        try:
            result.events.append(EngagementEvent(**raw))
        except (ValidationError, TypeError) as exc:
            errors.append(f"events[{i}]: {exc}")

    if errors:
        shown = "\n".join(errors[:_MAX_REPORTED_ERRORS])
        more = len(errors) - _MAX_REPORTED_ERRORS
        suffix = f"\n... and {more} more." if more > 0 else ""
        raise ValueError(f"{len(errors)} catalog record(s) failed validation:\n{shown}{suffix}")

    logger.info(
        "Parsed catalog: %d product(s), %d order(s), %d event(s)",
        len(result.entries), len(result.orders), len(result.events),
    )
    return result


def parse_catalog_json(path: Path) -> CatalogImport:
    """Read and validate a catalog seed file.

    Raises:
        FileNotFoundError: ``path`` does not exist.
        ValueError: Invalid JSON or invalid records.
    """
    if not path.exists():
        raise FileNotFoundError(f"Catalog file not found: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            payload = json.load(f)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    return parse_catalog_payload(payload)
