"""
Tests for catalog_engine/ingestion/catalog_json.py.

What we test
------------
parse_catalog_payload():
  - Top-level array and object shapes.
  - Features given as names or objects keep their list order.
  - Legacy comma-separated access_depth is normalised.
  - Invalid records are collected and reported together.
  - Out-of-range ratings rejected.

parse_catalog_json():
  - Missing file → FileNotFoundError; malformed JSON → ValueError.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from catalog_engine.ingestion.catalog_json import parse_catalog_json, parse_catalog_payload


def _product(pid: str = "p1", **extra) -> dict:
    return {
        "product_id": pid,
        "name": f"Product {pid}",
        "price_cents": 12_000,
        "category": "hr",
        "created_at": "2025-05-01T00:00:00Z",
        **extra,
    }


class TestPayloadShapes:
    def test_top_level_array(self):
        result = parse_catalog_payload([_product("p1"), _product("p2")])
        assert [e.product.product_id for e in result.entries] == ["p1", "p2"]
        assert result.orders == []
        assert result.events == []

    def test_object_with_orders_and_events(self):
        payload = {
            "products": [_product("p1"), _product("p2")],
            "orders": [{"order_id": "o1", "product_ids": ["p1", "p2"], "created_at": "2025-05-02T00:00:00Z"}],
            "events": [{"product_id": "p1", "kind": "view", "occurred_at": "2025-05-03T00:00:00Z"}],
        }
        result = parse_catalog_payload(payload)
        assert len(result.entries) == 2
        assert result.orders[0].product_ids == ("p1", "p2")
        assert result.events[0].kind == "view"

    def test_scalar_payload_rejected(self):
        with pytest.raises(ValueError, match="array or an object"):
            parse_catalog_payload("nope")


class TestProductRecords:
    def test_features_as_names_and_objects(self):
        raw = _product(features=["SSO", {"name": "Payroll", "relevance_score": 85}])
        entry = parse_catalog_payload([raw]).entries[0]
        assert [f.name for f in entry.features] == ["SSO", "Payroll"]
        assert [f.display_order for f in entry.features] == [0, 1]
        assert entry.features[1].relevance_score == 85

    def test_access_depth_string(self):
        entry = parse_catalog_payload([_product(access_depth="REST API, Webhooks")]).entries[0]
        assert entry.product.access_depth == ("rest_api", "webhooks")

    def test_ratings(self):
        entry = parse_catalog_payload([_product(ratings=[5, 4, None, 3])]).entries[0]
        assert entry.ratings == [5, 4, 3]

    def test_bad_rating(self):
        with pytest.raises(ValueError, match=r"products\[0\]"):
            parse_catalog_payload([_product(ratings=[6])])

    def test_errors_collected(self):
        payload = {
            "products": [_product("ok"), _product("bad", category="finance"), _product("neg", price_cents=-1)],
            "events": [{"product_id": "ok", "kind": "like", "occurred_at": "2025-05-03T00:00:00Z"}],
        }
        with pytest.raises(ValueError) as exc_info:
            parse_catalog_payload(payload)
        message = str(exc_info.value)
        assert message.startswith("3 catalog record(s) failed validation")
        assert "products[1]" in message
        assert "products[2]" in message
        assert "events[0]" in message

    def test_error_report_truncated(self):
        payload = [_product(f"p{i}", price_cents=-1) for i in range(15)]
        with pytest.raises(ValueError, match=r"and 5 more"):
            parse_catalog_payload(payload)


class TestParseFile:
    def test_reads_file(self, tmp_path: Path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({"products": [_product()]}), encoding="utf-8")
        assert len(parse_catalog_json(path).entries) == 1

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            parse_catalog_json(tmp_path / "missing.json")

    def test_malformed_json(self, tmp_path: Path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid JSON"):
            parse_catalog_json(path)
