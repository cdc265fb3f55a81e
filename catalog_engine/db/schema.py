"""
Catalog store DDL.

Every statement is guarded with ``IF NOT EXISTS``; ``apply_schema()`` can be
run repeatedly against the same database.

Tables, in foreign-key order:
  1. products
  2. product_features   (→ products)
  3. reviews            (→ products)
  4. run_metadata
  5. product_scores     (→ products, run_metadata)
  6. quotes             (→ products)
  7. bundles
  8. bundle_items       (→ bundles, products)
  9. orders
  10. order_items       (→ orders, products)
  11. engagement_events (→ products)

Timestamps are ISO-8601 UTC strings. Money is integer cents.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── Catalog ───────────────────────────────────────────────────────────────────

_DDL_PRODUCTS = """
CREATE TABLE IF NOT EXISTS products (
    product_id                  TEXT    PRIMARY KEY,
    name                        TEXT    NOT NULL,
    short_description           TEXT    NOT NULL DEFAULT '',
    long_description            TEXT,
    price_cents                 INTEGER NOT NULL CHECK (price_cents >= 0),
    category                    TEXT    NOT NULL,
    seller_id                   TEXT,
    implementation_time_days    INTEGER,
    cloud_client_classification TEXT,
    access_depth                TEXT    NOT NULL DEFAULT '',
    roi_percentage              REAL,
    retention_rate              REAL,
    quarter_over_quarter_change REAL,
    demo_visual_url             TEXT,
    is_featured                 INTEGER NOT NULL DEFAULT 0,
    is_new                      INTEGER NOT NULL DEFAULT 0,
    is_quote_only               INTEGER NOT NULL DEFAULT 0,
    created_at                  TEXT    NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_products_category ON products(category);
"""

_DDL_PRODUCT_FEATURES = """
CREATE TABLE IF NOT EXISTS product_features (
    feature_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id      TEXT    NOT NULL REFERENCES products(product_id) ON DELETE CASCADE,
    name            TEXT    NOT NULL,
    description     TEXT,
    relevance_score INTEGER NOT NULL DEFAULT 50,
    category        TEXT,
    display_order   INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_features_product ON product_features(product_id);
"""

_DDL_REVIEWS = """
CREATE TABLE IF NOT EXISTS reviews (
    review_id   INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id  TEXT    NOT NULL REFERENCES products(product_id) ON DELETE CASCADE,
    buyer_id    TEXT,
    rating      INTEGER NOT NULL CHECK (rating BETWEEN 1 AND 5),
    created_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
CREATE INDEX IF NOT EXISTS idx_reviews_product ON reviews(product_id);
"""

# ── Engine outputs ────────────────────────────────────────────────────────────

_DDL_RUN_METADATA = """
CREATE TABLE IF NOT EXISTS run_metadata (
    run_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    run_slug        TEXT    NOT NULL UNIQUE,
    pipeline_stage  TEXT    NOT NULL,
    status          TEXT    NOT NULL DEFAULT 'started',
    model_version   TEXT,
    config_snapshot TEXT    NOT NULL,
    rows_processed  INTEGER NOT NULL DEFAULT 0,
    error_message   TEXT,
    started_at      TEXT    NOT NULL,
    finished_at     TEXT
);
"""

_DDL_PRODUCT_SCORES = """
CREATE TABLE IF NOT EXISTS product_scores (
    score_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id        TEXT    NOT NULL REFERENCES products(product_id) ON DELETE CASCADE,
    run_id            INTEGER REFERENCES run_metadata(run_id),
    fit_score         INTEGER NOT NULL,
    feature_score     INTEGER NOT NULL,
    integration_score INTEGER NOT NULL,
    review_score      INTEGER NOT NULL,
    overall_score     INTEGER NOT NULL,
    breakdown         TEXT    NOT NULL,
    model_version     TEXT    NOT NULL,
    calculated_at     TEXT    NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_scores_product_time
    ON product_scores(product_id, calculated_at);
"""

_DDL_QUOTES = """
CREATE TABLE IF NOT EXISTS quotes (
    quote_id           TEXT    PRIMARY KEY,
    product_id         TEXT    NOT NULL REFERENCES products(product_id),
    buyer_id           TEXT    NOT NULL,
    seller_id          TEXT,
    company_size       INTEGER NOT NULL,
    requirements       TEXT    NOT NULL,
    quoted_price_cents INTEGER NOT NULL,
    pricing_breakdown  TEXT    NOT NULL,
    status             TEXT    NOT NULL DEFAULT 'pending',
    created_at         TEXT    NOT NULL,
    valid_until        TEXT    NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_quotes_buyer ON quotes(buyer_id, status);
"""

_DDL_BUNDLES = """
CREATE TABLE IF NOT EXISTS bundles (
    bundle_id              TEXT    PRIMARY KEY,
    name                   TEXT    NOT NULL,
    description            TEXT    NOT NULL DEFAULT '',
    seller_id              TEXT,
    total_price_cents      INTEGER NOT NULL,
    discount_percentage    REAL    NOT NULL,
    discounted_price_cents INTEGER NOT NULL,
    discount_override      REAL,
    created_at             TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_BUNDLE_ITEMS = """
CREATE TABLE IF NOT EXISTS bundle_items (
    bundle_id  TEXT    NOT NULL REFERENCES bundles(bundle_id) ON DELETE CASCADE,
    product_id TEXT    NOT NULL REFERENCES products(product_id),
    position   INTEGER NOT NULL,
    PRIMARY KEY (bundle_id, product_id)
);
"""

# ── Activity ──────────────────────────────────────────────────────────────────

_DDL_ORDERS = """
CREATE TABLE IF NOT EXISTS orders (
    order_id   TEXT PRIMARY KEY,
    buyer_id   TEXT,
    created_at TEXT NOT NULL
);
"""

_DDL_ORDER_ITEMS = """
CREATE TABLE IF NOT EXISTS order_items (
    order_id   TEXT NOT NULL REFERENCES orders(order_id) ON DELETE CASCADE,
    product_id TEXT NOT NULL REFERENCES products(product_id),
    PRIMARY KEY (order_id, product_id)
);
CREATE INDEX IF NOT EXISTS idx_order_items_product ON order_items(product_id);
"""

_DDL_ENGAGEMENT_EVENTS = """
CREATE TABLE IF NOT EXISTS engagement_events (
    event_id    INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id  TEXT NOT NULL REFERENCES products(product_id) ON DELETE CASCADE,
    kind        TEXT NOT NULL,
    buyer_id    TEXT,
    occurred_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_events_time ON engagement_events(occurred_at);
"""

_ALL_DDL: list[str] = [
    _DDL_PRODUCTS,
    _DDL_PRODUCT_FEATURES,
    _DDL_REVIEWS,
    _DDL_RUN_METADATA,
    _DDL_PRODUCT_SCORES,
    _DDL_QUOTES,
    _DDL_BUNDLES,
    _DDL_BUNDLE_ITEMS,
    _DDL_ORDERS,
    _DDL_ORDER_ITEMS,
    _DDL_ENGAGEMENT_EVENTS,
]

ALL_TABLE_NAMES = [
    "products",
    "product_features",
    "reviews",
    "run_metadata",
    "product_scores",
    "quotes",
    "bundles",
    "bundle_items",
    "orders",
    "order_items",
    "engagement_events",
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Create every table and index that does not exist yet."""
    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            conn.execute(statement)
    conn.commit()
    logger.info("Schema applied: %d tables verified.", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Table names present in the database, sorted."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]
