"""
Catalog Intelligence Engine — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Run the engine against the SQLite catalog store.
  5. Report the result to stdout.

Install and run::

    pip install -e .
    catalog-engine --help
    catalog-engine init-db
    catalog-engine import-catalog --file catalog.json
    catalog-engine refresh-scores --export data/exports
    catalog-engine recommend --strategy trending --limit 5
    catalog-engine compare p-hr-1 p-hr-2 p-legal-2
    catalog-engine price-bundle p-hr-1 p-legal-2
    catalog-engine quote p-hr-1 --company-size 120 --seats 8
    catalog-engine accept-quote <quote-id>
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="catalog-engine",
    help="Catalog Intelligence Engine: scoring, recommendations and pricing for a B2B catalog.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from catalog_engine.config import load_config

    try:
        return load_config(Path(config_path) if config_path else None)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    from catalog_engine.utils.logging import configure_logging
    configure_logging(config.logging, debug=config.debug)


def _open(config, db_path: Optional[str] = None):
    from catalog_engine.db.connection import get_connection

    return get_connection(
        db_path or config.database.db_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    )


def _fmt_cents(cents: int) -> str:
    return f"${cents / 100:,.2f}"


# ── Database / config ─────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Initialize the SQLite database and apply the schema.

    Safe to run multiple times; all DDL uses IF NOT EXISTS.
    """
    from catalog_engine.db.schema import ALL_TABLE_NAMES, apply_schema

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")
    with _open(config, target_path) as conn:
        apply_schema(conn)

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
    show_full: bool = typer.Option(False, "--full", help="Print the full config as JSON."),
) -> None:
    """Validate the configuration file and print the parsed values."""
    from catalog_engine.scoring.strategy import registered_versions

    config = _load_config_or_exit(config_path)

    if config.scoring.model_version not in registered_versions():
        typer.echo(
            f"[ERROR] Unknown scoring.model_version '{config.scoring.model_version}'. "
            f"Registered: {', '.join(registered_versions())}",
            err=True,
        )
        raise typer.Exit(code=1)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:     {config.database.db_path}")
    typer.echo(f"  Score model:       {config.scoring.model_version}")
    typer.echo(f"  Batch workers:     {config.scoring.batch_workers}")
    typer.echo(f"  Comparison cap:    {config.comparison.max_products}")
    typer.echo(f"  Trending window:   {config.recommendations.trending_window_days} days")
    typer.echo(f"  Quote validity:    {config.pricing.quote_validity_days} days")
    typer.echo(f"  Log level:         {config.logging.level}")
    typer.echo(f"  Debug mode:        {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(mode="json"), indent=2))


@app.command("import-catalog")
def import_catalog(
    catalog_file: str = typer.Option(..., "--file", "-f", help="Catalog JSON seed file."),
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate only; write nothing."),
) -> None:
    """Import products (with features and ratings), orders and engagement events.

    Products are upserted and their features and ratings replaced. Orders
    already present are skipped; events are appended.
    """
    from catalog_engine.db.repositories.activity_repo import ActivityRepository
    from catalog_engine.db.repositories.product_repo import ProductRepository
    from catalog_engine.db.schema import apply_schema
    from catalog_engine.ingestion.catalog_json import parse_catalog_json

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        catalog = parse_catalog_json(Path(catalog_file))
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(
        f"  Validated {len(catalog.entries)} product(s), "
        f"{len(catalog.orders)} order(s), {len(catalog.events)} event(s)."
    )
    if dry_run:
        typer.echo("[DRY RUN] Nothing written to the database.")
        return

    with _open(config, db_path) as conn:
        apply_schema(conn)
        products = ProductRepository(conn)
        activity = ActivityRepository(conn)
        for entry in catalog.entries:
            products.upsert_product(entry.product)
            products.replace_features(entry.product.product_id, entry.features)
            products.replace_reviews(entry.product.product_id, entry.ratings)
        for order in catalog.orders:
            activity.insert_order(order)
        for event in catalog.events:
            activity.record_event(event)

    typer.echo("[OK] Catalog imported.")


# ── Scoring ───────────────────────────────────────────────────────────────────

@app.command("score")
def score(
    product_id: str = typer.Argument(..., help="Product to score."),
    company_size: Optional[int] = typer.Option(None, "--company-size", help="Buyer head count."),
    interests: list[str] = typer.Option([], "--interest", help="Buyer category interest (repeatable)."),
    save: bool = typer.Option(False, "--save", help="Persist the snapshot."),
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Compute the five scores for one product and print them as JSON."""
    from catalog_engine.db.repositories.product_repo import ProductRepository
    from catalog_engine.db.repositories.score_repo import ScoreRepository
    from catalog_engine.errors import ProductNotFound
    from catalog_engine.models.product import BuyerProfile
    from catalog_engine.scoring.engine import build_score_reasoning, compute_scores
    from catalog_engine.scoring.strategy import get_score_strategy

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    profile = None
    if company_size is not None or interests:
        try:
            profile = BuyerProfile(
                buyer_id="cli",
                company_size=company_size,
                interested_categories=frozenset(interests),
            )
        except ValueError as exc:
            typer.echo(f"[ERROR] Invalid buyer profile: {exc}", err=True)
            raise typer.Exit(code=1)

    with _open(config, db_path) as conn:
        repo = ProductRepository(conn)
        try:
            product = repo.require_product(product_id)
        except ProductNotFound as exc:
            typer.echo(f"[ERROR] {exc}", err=True)
            raise typer.Exit(code=1)
        result = compute_scores(
            product,
            repo.get_features(product_id),
            repo.get_review_stats(product_id),
            buyer_profile=profile,
            strategy=get_score_strategy(config.scoring.model_version),
        )
        if save:
            ScoreRepository(conn).insert_score(result)

    payload = result.model_dump(mode="json")
    payload["reasoning"] = build_score_reasoning(result)
    typer.echo(json.dumps(payload, indent=2))


@app.command("refresh-scores")
def refresh_scores(
    category: Optional[str] = typer.Option(None, "--category", help="Only this category."),
    export_dir: Optional[str] = typer.Option(
        None, "--export", help="Also write CSV/JSON/Parquet snapshots to this directory."
    ),
    export_default: bool = typer.Option(
        False, "--export-default", help="Write the snapshots to [export] output_dir."
    ),
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Recompute and store scores for every product (batch stage)."""
    from catalog_engine.pipeline.score_refresh import ScoreRefreshStage

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target = export_dir or (config.export.output_dir if export_default else None)
    stage = ScoreRefreshStage(config=config, db_path=db_path)
    try:
        run = stage.run(category=category, export_dir=Path(target) if target else None)
    except Exception as exc:
        typer.echo(f"[ERROR] Score refresh failed: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"  Run: {run.run_slug}")
    typer.echo(f"  Products scored: {run.rows_processed}")
    typer.echo("[OK] Scores refreshed.")


# ── Recommendations ───────────────────────────────────────────────────────────

@app.command("recommend")
def recommend(
    strategy: str = typer.Option("new_and_notable", "--strategy", "-s", help="Ranking strategy."),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum results."),
    source: Optional[str] = typer.Option(
        None, "--source", help="Source product (frequently_bought_together / similar)."
    ),
    category: Optional[str] = typer.Option(None, "--category", help="Restrict candidates."),
    company_size: Optional[int] = typer.Option(None, "--company-size"),
    interests: list[str] = typer.Option([], "--interest", help="Category interest (repeatable)."),
    viewed: list[str] = typer.Option([], "--viewed", help="Viewed product id (repeatable)."),
    bookmarked: list[str] = typer.Option([], "--bookmarked", help="Bookmarked product id (repeatable)."),
    purchased: list[str] = typer.Option([], "--purchased", help="Purchased product id (repeatable)."),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table."),
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Rank catalog products under a recommendation strategy."""
    from catalog_engine.db.repositories.activity_repo import ActivityRepository
    from catalog_engine.db.repositories.product_repo import ProductRepository
    from catalog_engine.db.repositories.score_repo import ScoreRepository
    from catalog_engine.errors import ProductNotFound
    from catalog_engine.models.product import BuyerProfile, InteractionHistory, ReviewStats
    from catalog_engine.recommendations.context import (
        RecommendationContext,
        RecommendationStrategy,
    )
    from catalog_engine.recommendations.ranker import score_candidates
    from catalog_engine.reporting.export import flatten_ranked_for_export
    from catalog_engine.scoring.engine import ScoringInput, compute_scores_batch
    from catalog_engine.scoring.strategy import get_score_strategy
    from catalog_engine.taxonomy.catalog_taxonomy import parse_category
    from catalog_engine.utils.time_utils import utcnow, window_start

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        chosen = RecommendationStrategy(strategy)
        wanted_category = parse_category(category) if category else None
        profile = None
        if chosen is RecommendationStrategy.PERSONALIZED or company_size is not None or interests:
            profile = BuyerProfile(
                buyer_id="cli",
                company_size=company_size,
                interested_categories=frozenset(interests),
            )
    except ValueError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    now = utcnow()
    with _open(config, db_path) as conn:
        products_repo = ProductRepository(conn)
        products = products_repo.list_products()
        ids = [p.product_id for p in products]
        features = products_repo.get_features_map(ids)
        reviews = products_repo.get_review_stats_map(ids)
        scores = ScoreRepository(conn).get_latest_scores(ids)
        activity = ActivityRepository(conn)
        orders = activity.list_orders()
        events = activity.list_events(
            since=window_start(now, config.recommendations.trending_window_days)
        )

    missing = [p for p in products if p.product_id not in scores]
    if missing:
        scores.update(compute_scores_batch(
            [
                ScoringInput(p, features.get(p.product_id, []), reviews.get(p.product_id, ReviewStats()))
                for p in missing
            ],
            strategy=get_score_strategy(config.scoring.model_version),
            max_workers=config.scoring.batch_workers,
            calculated_at=now,
        ))

    candidates = products
    if wanted_category is not None:
        candidates = [
            p for p in products
            if p.category == wanted_category or p.product_id == source
        ]

    context = RecommendationContext(
        now=now,
        scores=scores,
        review_stats=reviews,
        features=features,
        buyer_profile=profile,
        history=InteractionHistory(
            viewed=frozenset(viewed),
            bookmarked=frozenset(bookmarked),
            purchased=frozenset(purchased),
        ),
        orders=orders,
        events=events,
        source_product_id=source,
        config=config.recommendations,
    )
    try:
        ranked = score_candidates(
            candidates,
            chosen,
            context,
            limit if limit is not None else config.recommendations.default_limit,
        )
    except (ProductNotFound, ValueError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    rows = flatten_ranked_for_export(ranked, chosen.value)
    if as_json:
        typer.echo(json.dumps(rows, indent=2))
        return
    if not rows:
        typer.echo("No recommendations.")
        return
    typer.echo(f"{'#':>3}  {'product':<20} {'category':<10} {'score':>8}  reason")
    for row in rows:
        typer.echo(
            f"{row['rank']:>3}  {row['product_id']:<20} {row['category']:<10} "
            f"{row['rank_score']:>8.2f}  {row['reason']}"
        )


# ── Comparison ────────────────────────────────────────────────────────────────

@app.command("compare")
def compare(
    product_ids: list[str] = typer.Argument(..., help="Products to compare, in selection order."),
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Select products into per-category comparisons and print them side by side.

    Products beyond ``[comparison] max_products`` in a category are skipped
    with a warning, exactly as the comparison tray rejects them.
    """
    from catalog_engine.comparison.manager import ComparisonManager
    from catalog_engine.comparison.store import ComparisonStore
    from catalog_engine.db.repositories.product_repo import ProductRepository
    from catalog_engine.db.repositories.score_repo import ScoreRepository
    from catalog_engine.errors import ComparisonFull, ProductNotFound

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    manager = ComparisonManager(ComparisonStore(config.comparison), "cli")
    with _open(config, db_path) as conn:
        repo = ProductRepository(conn)
        try:
            products = {pid: repo.require_product(pid) for pid in product_ids}
        except ProductNotFound as exc:
            typer.echo(f"[ERROR] {exc}", err=True)
            raise typer.Exit(code=1)
        scores = ScoreRepository(conn).get_latest_scores(list(products))

    for pid, product in products.items():
        try:
            manager.add(product.category, pid)
        except ComparisonFull as exc:
            typer.echo(f"[WARN] {exc}")

    snapshot = manager.snapshot()
    for category, ids in snapshot.selections.items():
        marker = " (active)" if category == snapshot.active_category else ""
        typer.echo(f"\n  {category.value}{marker}: {len(ids)}/{snapshot.max_products}")
        for pid in ids:
            score = scores.get(pid)
            overall = f"{score.overall_score:>3}" if score else "  -"
            typer.echo(
                f"    {pid:<20} overall {overall}  {_fmt_cents(products[pid].price_cents)}"
            )


# ── Pricing ───────────────────────────────────────────────────────────────────

@app.command("price-bundle")
def price_bundle_cmd(
    product_ids: list[str] = typer.Argument(..., help="Products in the bundle."),
    override: Optional[float] = typer.Option(None, "--discount", help="Seller discount override (%)."),
    save_as: Optional[str] = typer.Option(None, "--save-as", help="Persist as a named bundle."),
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Price a set of products with the bundle discount tiers."""
    from catalog_engine.db.repositories.bundle_repo import BundleRepository
    from catalog_engine.db.repositories.product_repo import ProductRepository
    from catalog_engine.errors import InvalidBundle, ProductNotFound
    from catalog_engine.pricing.bundles import create_bundle, price_bundle

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open(config, db_path) as conn:
        try:
            products = [ProductRepository(conn).require_product(pid) for pid in product_ids]
            price = price_bundle(products, override)
            if save_as:
                bundle = create_bundle(save_as, products, override=override)
                bundle = BundleRepository(conn).insert_bundle(bundle)
                typer.echo(f"  Saved bundle: {bundle.bundle_id}")
        except (ProductNotFound, InvalidBundle) as exc:
            typer.echo(f"[ERROR] {exc}", err=True)
            raise typer.Exit(code=1)

    typer.echo(f"  Products:   {len(products)}")
    typer.echo(f"  Total:      {_fmt_cents(price.total_price_cents)}")
    typer.echo(f"  Discount:   {price.discount_percentage:g}%")
    typer.echo(f"  Discounted: {_fmt_cents(price.discounted_price_cents)}")
    typer.echo(f"  Savings:    {_fmt_cents(price.savings_cents)}")


@app.command("quote")
def quote(
    product_id: str = typer.Argument(..., help="Product to quote."),
    buyer_id: str = typer.Option("cli-buyer", "--buyer", help="Requesting buyer id."),
    company_size: int = typer.Option(..., "--company-size", help="Buyer head count."),
    seats: int = typer.Option(1, "--seats", help="License seats."),
    custom: bool = typer.Option(False, "--custom", help="Custom implementation required."),
    features: list[str] = typer.Option([], "--feature", help="Requested feature (repeatable)."),
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Generate and store a pending quote."""
    from catalog_engine.db.repositories.product_repo import ProductRepository
    from catalog_engine.db.repositories.quote_repo import QuoteRepository
    from catalog_engine.errors import ProductNotFound
    from catalog_engine.models.pricing import QuoteRequirements
    from catalog_engine.pricing.quotes import generate_quote
    from catalog_engine.utils.time_utils import utcnow

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        requirements = QuoteRequirements(
            requested_features=tuple(features),
            custom_implementation=custom,
            license_seats=seats,
        )
    except ValueError as exc:
        typer.echo(f"[ERROR] Invalid requirements: {exc}", err=True)
        raise typer.Exit(code=1)

    with _open(config, db_path) as conn:
        repo = ProductRepository(conn)
        try:
            product = repo.require_product(product_id)
            issued = generate_quote(
                product,
                buyer_id,
                company_size,
                requirements,
                now=utcnow(),
                features=repo.get_features(product_id),
                config=config.pricing,
            )
        except (ProductNotFound, ValueError) as exc:
            typer.echo(f"[ERROR] {exc}", err=True)
            raise typer.Exit(code=1)
        issued = QuoteRepository(conn).insert_quote(issued)

    typer.echo(f"  Quote:       {issued.quote_id}")
    for name, cents in issued.pricing_breakdown.items():
        typer.echo(f"    {name:<26} {_fmt_cents(cents):>14}")
    typer.echo(f"  Quoted:      {_fmt_cents(issued.quoted_price_cents)}")
    typer.echo(f"  Valid until: {issued.valid_until.isoformat()}")


@app.command("accept-quote")
def accept_quote_cmd(
    quote_id: str = typer.Argument(..., help="Quote to accept."),
    reject: bool = typer.Option(False, "--reject", help="Reject instead of accept."),
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Accept (or reject) a pending quote; accepted quotes print their cart line."""
    from catalog_engine.db.repositories.quote_repo import QuoteRepository
    from catalog_engine.errors import QuoteStateError
    from catalog_engine.pricing.quotes import accept_quote, cart_line_for_quote, reject_quote
    from catalog_engine.utils.time_utils import utcnow

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open(config, db_path) as conn:
        repo = QuoteRepository(conn)
        current = repo.get_quote(quote_id)
        if current is None:
            typer.echo(f"[ERROR] Quote not found: {quote_id}", err=True)
            raise typer.Exit(code=1)
        try:
            decision = (reject_quote if reject else accept_quote)(current, utcnow())
        except QuoteStateError as exc:
            typer.echo(f"[ERROR] {exc}", err=True)
            raise typer.Exit(code=1)
        repo.update_quote(decision.quote)

    if decision.expired:
        typer.echo("[EXPIRED] Quote has expired; request a new quote.", err=True)
        raise typer.Exit(code=2)

    typer.echo(f"  Quote {quote_id}: {decision.quote.status}")
    if decision.quote.status == "accepted":
        line = cart_line_for_quote(decision.quote)
        typer.echo(json.dumps(line.model_dump(mode="json"), indent=2))


if __name__ == "__main__":
    app()
