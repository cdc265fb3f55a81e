"""
Tests for catalog_engine/taxonomy/catalog_taxonomy.py.

What we test
------------
  - Category enumeration order (drives active-category reassignment).
  - parse_category(): case / whitespace tolerant, unknown → ValueError.
  - parse_access_depth(): token normalisation, dedupe, empty fragments.
  - API_ACCESS_TOKENS are exact tokens, not substrings.
"""

from __future__ import annotations

import pytest

from catalog_engine.taxonomy.catalog_taxonomy import (
    API_ACCESS_TOKENS,
    CATEGORY_DISPLAY_NAMES,
    CATEGORY_ORDER,
    DeploymentModel,
    ProductCategory,
    normalize_access_token,
    parse_access_depth,
    parse_category,
)


class TestProductCategory:
    def test_enumeration_order(self):
        assert [c.value for c in CATEGORY_ORDER] == ["hr", "legal", "marketing", "devtools"]

    def test_every_category_has_display_name(self):
        assert set(CATEGORY_DISPLAY_NAMES) == set(ProductCategory)

    def test_deployment_values(self):
        assert {d.value for d in DeploymentModel} == {"cloud", "client", "hybrid"}


class TestParseCategory:
    @pytest.mark.parametrize("raw", ["hr", "HR", "  Hr "])
    def test_tolerant(self, raw):
        assert parse_category(raw) is ProductCategory.HR

    def test_enum_passthrough(self):
        assert parse_category(ProductCategory.LEGAL) is ProductCategory.LEGAL

    @pytest.mark.parametrize("raw", ["finance", "", "h r"])
    def test_unknown(self, raw):
        with pytest.raises(ValueError, match="Unknown category"):
            parse_category(raw)


class TestAccessDepth:
    def test_legacy_string(self):
        assert parse_access_depth("API, read-only, api") == ("api", "read_only")

    def test_empty_fragments_dropped(self):
        assert parse_access_depth(" , ,Webhooks,") == ("webhooks",)

    @pytest.mark.parametrize("raw", [None, ""])
    def test_empty(self, raw):
        assert parse_access_depth(raw) == ()

    def test_normalize_token(self):
        assert normalize_access_token("  GraphQL   API ") == "graphql_api"

    def test_api_tokens_are_exact(self):
        # "rapid_setup" contains "api" as a substring but is not an API token.
        assert "rapid_setup" not in API_ACCESS_TOKENS
        assert {"api", "rest_api", "graphql_api", "webhooks", "sdk"} == API_ACCESS_TOKENS
