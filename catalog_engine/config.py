"""
Configuration for the catalog engine.

``load_config()`` reads ``config/default.toml``, overlays ``config/local.toml``
(gitignored) and then the ``CATALOG_ENGINE_DB_PATH``, ``CATALOG_ENGINE_LOG_LEVEL``
and ``CATALOG_ENGINE_DEBUG`` variables, which may also come from a ``.env`` file.
Every section is a frozen pydantic model.

Engine entry points take only the section they need (``ScoringConfig``,
``PricingConfig``, ...) with a default instance, so the pure functions stay
callable without loading any file.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from catalog_engine.taxonomy.catalog_taxonomy import ProductCategory

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite database connection settings for the reference repository."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/catalog.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class ScoringConfig(BaseModel):
    """Score engine settings."""

    model_config = ConfigDict(frozen=True)

    model_version: str = "rule_based_v1"
    batch_workers: int = 4

    @field_validator("batch_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"batch_workers must be >= 1, got {v}.")
        return v


class ComparisonConfig(BaseModel):
    """Comparison selection settings."""

    model_config = ConfigDict(frozen=True)

    max_products: int = 3

    @field_validator("max_products")
    @classmethod
    def validate_max_products(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_products must be >= 1, got {v}.")
        return v


class PersonalizationWeights(BaseModel):
    """Weights of the personalised ranking score."""

    model_config = ConfigDict(frozen=True)

    overall_score: float = 1.0
    category_match: float = 20.0
    recency_max: float = 10.0
    recency_horizon_days: int = 90
    affinity_view: float = 2.0
    affinity_bookmark: float = 5.0
    affinity_purchase: float = 8.0
    affinity_cap: float = 15.0


class RecommendationConfig(BaseModel):
    """Recommendation engine settings."""

    model_config = ConfigDict(frozen=True)

    default_limit: int = 20
    trending_window_days: int = 7
    engagement_weights: dict[str, float] = {
        "view": 1.0,
        "bookmark": 1.0,
        "cart_add": 2.0,
        "purchase": 3.0,
    }
    personalization: PersonalizationWeights = PersonalizationWeights()
    similar_feature_weight: float = 0.5

    @field_validator("similar_feature_weight")
    @classmethod
    def validate_similarity_weight(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"similar_feature_weight must be in [0, 1], got {v}.")
        return v


class PricingConfig(BaseModel):
    """Bundle and quote pricing settings."""

    model_config = ConfigDict(frozen=True)

    quote_validity_days: int = 30
    category_base_rates_cents: dict[str, int] = {
        "hr": 500_00,
        "legal": 750_00,
        "marketing": 400_00,
        "devtools": 600_00,
    }
    extra_feature_rate: float = 0.10
    custom_implementation_rate: float = 0.50
    minimum_price_ratio: float = 0.50

    @model_validator(mode="after")
    def validate_base_rates(self) -> "PricingConfig":
        missing = {c.value for c in ProductCategory} - set(self.category_base_rates_cents)
        if missing:
            raise ValueError(f"category_base_rates_cents is missing: {sorted(missing)}.")
        return self


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/catalog_engine.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class ExportConfig(BaseModel):
    """Report output settings."""

    model_config = ConfigDict(frozen=True)

    output_dir: str = "data/exports"


class AppConfig(BaseModel):
    """Complete application configuration — the single source of truth."""

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    scoring: ScoringConfig = ScoringConfig()
    comparison: ComparisonConfig = ComparisonConfig()
    recommendations: RecommendationConfig = RecommendationConfig()
    pricing: PricingConfig = PricingConfig()
    logging: LoggingConfig = LoggingConfig()
    export: ExportConfig = ExportConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

ENV_PREFIX = "CATALOG_ENGINE_"

# env suffix -> (section or None for top level, key)
_ENV_OVERRIDES: dict[str, tuple[Optional[str], str]] = {
    "DB_PATH":   ("database", "db_path"),
    "LOG_LEVEL": ("logging", "level"),
    "DEBUG":     (None, "debug"),
}
_TRUTHY = frozenset({"1", "true", "yes", "on"})

_SECTIONS: dict[str, type[BaseModel]] = {
    "database":        DatabaseConfig,
    "scoring":         ScoringConfig,
    "comparison":      ComparisonConfig,
    "recommendations": RecommendationConfig,
    "pricing":         PricingConfig,
    "logging":         LoggingConfig,
    "export":          ExportConfig,
}


def project_root() -> Path:
    """Nearest ancestor of this package holding ``pyproject.toml``.

    Falls back to the package's parent directory for non-editable installs.
    """
    here = Path(__file__).resolve().parent
    for candidate in (here, *here.parents[:4]):
        if (candidate / "pyproject.toml").is_file():
            return candidate
    return here.parent


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Build the validated ``AppConfig``.

    Layers, later wins: ``config_path`` (default ``config/default.toml``),
    ``local.toml`` beside it, ``.env`` at the project root, then
    ``CATALOG_ENGINE_*`` environment variables.

    Raises:
        FileNotFoundError: ``config_path`` is missing.
        pydantic.ValidationError: A merged value is invalid.
    """
    root = project_root()
    load_dotenv(root / ".env", override=False)

    path = Path(config_path) if config_path is not None else root / "config" / "default.toml"
    if not path.is_file():
        raise FileNotFoundError(
            f"Config file not found: {path} (create config/default.toml or pass --config)"
        )

    raw = _read_toml(path)
    local = path.with_name("local.toml")
    if local.is_file():
        raw = _merge(raw, _read_toml(local))

    _apply_env(raw, os.environ)
    return _to_app_config(raw)


def _read_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as fh:
        return tomllib.load(fh)


def _merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Nested-table merge; ``overlay`` values replace scalars and lists."""
    merged = dict(base)
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _merge(current, value)
        else:
            merged[key] = value
    return merged


def _apply_env(raw: dict[str, Any], environ) -> None:
    for suffix, (section, key) in _ENV_OVERRIDES.items():
        value = environ.get(ENV_PREFIX + suffix)
        if not value:
            continue
        if key == "debug":
            raw[key] = value.strip().lower() in _TRUTHY
        else:
            raw.setdefault(section, {})[key] = value


def _to_app_config(raw: dict[str, Any]) -> AppConfig:
    # [project] debug is the file-level switch; a top-level debug (env) wins.
    debug = raw.get("debug", raw.get("project", {}).get("debug", False))
    sections = {name: model(**raw.get(name, {})) for name, model in _SECTIONS.items()}
    return AppConfig(debug=debug, **sections)
