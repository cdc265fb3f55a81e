"""
Tests for the typer CLI (catalog_engine/cli.py).

What we test
------------
End-to-end through ``CliRunner`` against a file database under ``tmp_path``:
  - init-db / validate-config succeed with a temporary config.
  - import-catalog validates (``--dry-run``) and then writes the seed file.
  - score, refresh-scores and recommend read the imported catalog; a buyer
    profile built from --interest alone carries no company size.
  - refresh-scores --export-default writes to the configured export dir.
  - compare applies the configured per-category cap and warns on overflow.
  - price-bundle prints the tiered discount; bad ids exit 1.
  - quote → accept-quote prints a cart line at the quoted price; a second
    accept exits 1.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from catalog_engine.cli import app

runner = CliRunner()

_CATALOG = {
    "products": [
        {
            "product_id": "p-hr-1",
            "name": "People Suite",
            "price_cents": 10_000,
            "category": "hr",
            "implementation_time_days": 5,
            "cloud_client_classification": "cloud",
            "access_depth": "API, read-only",
            "created_at": "2025-05-01T00:00:00Z",
            "features": ["SSO", "Payroll"],
            "ratings": [5, 4, 5],
        },
        {
            "product_id": "p-hr-2",
            "name": "Onboard Pro",
            "price_cents": 20_000,
            "category": "hr",
            "created_at": "2025-05-10T00:00:00Z",
            "features": ["SSO"],
        },
        {
            "product_id": "p-legal-1",
            "name": "Contract Desk",
            "price_cents": 30_000,
            "category": "legal",
            "is_featured": True,
            "created_at": "2025-04-01T00:00:00Z",
        },
    ],
    "orders": [
        {"order_id": "o1", "product_ids": ["p-hr-1", "p-legal-1"], "created_at": "2025-05-20T00:00:00Z"},
    ],
}


@pytest.fixture
def cli_env(tmp_path: Path) -> dict[str, str]:
    db_path = tmp_path / "catalog.db"
    config_path = tmp_path / "config" / "default.toml"
    config_path.parent.mkdir()
    config_path.write_text(
        f'[database]\ndb_path = "{db_path.as_posix()}"\n\n'
        '[logging]\nlevel = "WARNING"\nlog_file = ""\n\n'
        '[comparison]\nmax_products = 1\n\n'
        f'[export]\noutput_dir = "{(tmp_path / "exports").as_posix()}"\n',
        encoding="utf-8",
    )
    catalog_path = tmp_path / "catalog.json"
    catalog_path.write_text(json.dumps(_CATALOG), encoding="utf-8")
    return {
        "config": str(config_path),
        "catalog": str(catalog_path),
        "db": str(db_path),
        "exports": str(tmp_path / "exports"),
    }


@pytest.fixture
def imported(cli_env) -> dict[str, str]:
    result = runner.invoke(app, ["import-catalog", "--file", cli_env["catalog"], "--config", cli_env["config"]])
    assert result.exit_code == 0, result.output
    return cli_env


def _invoke(env: dict[str, str], *args: str):
    return runner.invoke(app, [*args, "--config", env["config"]])


class TestSetupCommands:
    def test_init_db(self, cli_env):
        result = _invoke(cli_env, "init-db")
        assert result.exit_code == 0, result.output
        assert "[OK] Database ready." in result.output
        assert Path(cli_env["db"]).exists()

    def test_validate_config(self, cli_env):
        result = _invoke(cli_env, "validate-config")
        assert result.exit_code == 0
        assert "rule_based_v1" in result.output

    def test_missing_config(self, tmp_path):
        result = runner.invoke(app, ["validate-config", "--config", str(tmp_path / "nope.toml")])
        assert result.exit_code == 1

    def test_import_dry_run(self, cli_env):
        result = _invoke(cli_env, "import-catalog", "--file", cli_env["catalog"], "--dry-run")
        assert result.exit_code == 0
        assert "Validated 3 product(s), 1 order(s), 0 event(s)" in result.output
        assert not Path(cli_env["db"]).exists()

    def test_import_invalid_file(self, cli_env, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("[{\"product_id\": \"x\"}]", encoding="utf-8")
        result = _invoke(cli_env, "import-catalog", "--file", str(bad))
        assert result.exit_code == 1


class TestScoringCommands:
    def test_score(self, imported):
        result = _invoke(imported, "score", "p-hr-1")
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["product_id"] == "p-hr-1"
        assert 0 <= payload["overall_score"] <= 100
        assert payload["reasoning"]

    def test_interest_only_profile_has_no_size_bonus(self, imported):
        result = _invoke(imported, "score", "p-hr-1", "--interest", "legal")
        assert result.exit_code == 0, result.output
        breakdown = json.loads(result.stdout)["breakdown"]
        assert "buyer_match" not in breakdown["fit"]["factors"]
        assert breakdown["integration"]["factors"]["buyer_compatibility"] == 0

    def test_company_size_drives_buyer_match(self, imported):
        result = _invoke(imported, "score", "p-hr-1", "--company-size", "20")
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["breakdown"]["fit"]["factors"]["buyer_match"] == 10

    def test_zero_company_size_rejected(self, imported):
        assert _invoke(imported, "score", "p-hr-1", "--company-size", "0").exit_code == 1

    def test_score_unknown_product(self, imported):
        assert _invoke(imported, "score", "ghost").exit_code == 1

    def test_refresh_scores(self, imported, tmp_path):
        result = _invoke(imported, "refresh-scores", "--export", str(tmp_path / "out"))
        assert result.exit_code == 0, result.output
        assert "Products scored: 3" in result.output
        assert len(list((tmp_path / "out").iterdir())) == 3

    def test_refresh_scores_to_configured_export_dir(self, imported):
        result = _invoke(imported, "refresh-scores", "--export-default")
        assert result.exit_code == 0, result.output
        assert len(list(Path(imported["exports"]).iterdir())) == 3


class TestRecommendCommand:
    def test_new_and_notable_json(self, imported):
        result = _invoke(imported, "recommend", "--json")
        assert result.exit_code == 0, result.output
        rows = json.loads(result.stdout)
        assert rows[0]["product_id"] == "p-legal-1"
        assert [r["rank"] for r in rows] == [1, 2, 3]

    def test_frequently_bought_together(self, imported):
        result = _invoke(imported, "recommend", "-s", "frequently_bought_together", "--source", "p-hr-1", "--json")
        assert result.exit_code == 0, result.output
        assert [r["product_id"] for r in json.loads(result.stdout)] == ["p-legal-1"]

    def test_unknown_source(self, imported):
        result = _invoke(imported, "recommend", "-s", "similar", "--source", "ghost")
        assert result.exit_code == 1

    def test_unknown_strategy(self, imported):
        assert _invoke(imported, "recommend", "-s", "bestsellers").exit_code == 1


class TestCompareCommand:
    def test_cap_comes_from_config(self, imported):
        result = _invoke(imported, "compare", "p-hr-1", "p-hr-2", "p-legal-1")
        assert result.exit_code == 0, result.output
        assert "[WARN]" in result.output
        assert "hr (active): 1/1" in result.output
        assert "legal: 1/1" in result.output
        assert "p-hr-2" not in result.output.split("[WARN]")[1].split("\n", 1)[1]

    def test_unknown_product(self, imported):
        assert _invoke(imported, "compare", "p-hr-1", "ghost").exit_code == 1


class TestPricingCommands:
    def test_price_bundle(self, imported):
        result = _invoke(imported, "price-bundle", "p-hr-1", "p-hr-2", "p-legal-1")
        assert result.exit_code == 0, result.output
        assert "Discount:   10%" in result.output
        assert "Discounted: $540.00" in result.output

    def test_price_bundle_unknown_product(self, imported):
        assert _invoke(imported, "price-bundle", "p-hr-1", "ghost").exit_code == 1

    def test_quote_then_accept(self, imported):
        result = _invoke(imported, "quote", "p-hr-1", "--company-size", "50")
        assert result.exit_code == 0, result.output
        assert "Quoted:      $150.00" in result.output
        quote_id = next(
            line.split()[-1] for line in result.output.splitlines() if line.strip().startswith("Quote:")
        )

        accepted = _invoke(imported, "accept-quote", quote_id)
        assert accepted.exit_code == 0, accepted.output
        assert '"unit_price_cents": 15000' in accepted.output

        again = _invoke(imported, "accept-quote", quote_id)
        assert again.exit_code == 1

    def test_accept_unknown_quote(self, imported):
        assert _invoke(imported, "accept-quote", "missing").exit_code == 1
