"""
Tests for catalog_engine/pricing/quotes.py.

What we test
------------
Pricing rules:
  - Company size multiplier steps (0.8 / 1.0 / 1.5 / 2.0 / 3.0), monotone.
  - Volume discount only above 5 and 10 seats.
  - Extra features counted against the product's own features.
  - Breakdown components sum to the pre-floor price; floor at 50 % of base.
  - Quote-only products start from the category base rate.

Lifecycle:
  - accept / reject a pending quote; any other state → QuoteStateError.
  - An expired quote is reported, not accepted.
  - Price lock: changing the product after quoting never changes the
    accepted price or the cart line.
  - extend_validity() only moves the expiry later.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from catalog_engine.config import PricingConfig
from catalog_engine.errors import QuoteStateError
from catalog_engine.models.pricing import QuoteRequirements
from catalog_engine.models.product import ProductFeature
from catalog_engine.pricing.quotes import (
    accept_quote,
    base_price_cents,
    calculate_quote_breakdown,
    cart_line_for_quote,
    company_size_multiplier,
    extend_validity,
    extra_feature_count,
    generate_quote,
    reject_quote,
    volume_discount_rate,
)


@pytest.fixture
def product(make_product):
    return make_product("q-1", price_cents=10_000, category="hr", seller_id="seller-9")


@pytest.fixture
def pending(product, now):
    return generate_quote(product, "buyer-1", 50, QuoteRequirements(), now)


# ── Pricing rules ─────────────────────────────────────────────────────────────

class TestCompanySizeMultiplier:
    @pytest.mark.parametrize(
        "size,expected",
        [(1, 0.8), (9, 0.8), (10, 1.0), (49, 1.0), (50, 1.5), (199, 1.5), (200, 2.0), (499, 2.0), (500, 3.0), (10_000, 3.0)],
    )
    def test_steps(self, size, expected):
        assert company_size_multiplier(size) == expected

    def test_monotone(self):
        values = [company_size_multiplier(s) for s in range(1, 1_000)]
        assert values == sorted(values)


class TestVolumeDiscount:
    @pytest.mark.parametrize("seats,rate", [(1, 0.0), (5, 0.0), (6, 0.10), (10, 0.10), (11, 0.15), (500, 0.15)])
    def test_rates(self, seats, rate):
        assert volume_discount_rate(seats) == rate


class TestExtraFeatures:
    def test_counts_missing_features_case_insensitively(self):
        features = [ProductFeature(name="SSO"), ProductFeature(name="Payroll")]
        assert extra_feature_count(["sso", "Reports", "reports ", "Audit"], features) == 2

    def test_no_baseline(self):
        assert extra_feature_count(["a", "b"], None) == 2

    def test_blank_names_ignored(self):
        assert extra_feature_count(["", "  "], []) == 0


class TestBreakdown:
    def test_full_breakdown(self):
        requirements = QuoteRequirements(custom_implementation=True, license_seats=11)
        breakdown = calculate_quote_breakdown(10_000, 50, requirements, 1, PricingConfig())
        assert breakdown == {
            "base_price": 10_000,
            "company_size_adjustment": 5_000,
            "feature_requirements": 1_000,
            "custom_implementation": 5_000,
            "volume_discount": -2_250,
        }

    def test_zero_components_omitted(self):
        breakdown = calculate_quote_breakdown(10_000, 20, QuoteRequirements(), 0, PricingConfig())
        assert breakdown == {"base_price": 10_000, "company_size_adjustment": 0}

    def test_small_company_adjustment_is_negative(self):
        breakdown = calculate_quote_breakdown(10_000, 5, QuoteRequirements(), 0, PricingConfig())
        assert breakdown["company_size_adjustment"] == -2_000


class TestGenerateQuote:
    def test_basic_quote(self, pending, now):
        assert pending.quoted_price_cents == 15_000
        assert pending.status == "pending"
        assert pending.seller_id == "seller-9"
        assert pending.created_at == now
        assert pending.valid_until == now + timedelta(days=30)

    def test_breakdown_sums_to_price(self, product, now):
        requirements = QuoteRequirements(
            requested_features=("SSO", "Reports"),
            custom_implementation=True,
            license_seats=8,
        )
        quote = generate_quote(
            product, "b", 120, requirements, now, features=[ProductFeature(name="sso")]
        )
        assert sum(quote.pricing_breakdown.values()) == quote.quoted_price_cents
        # 10000 + 5000 + 1000 + 5000 − 1500
        assert quote.quoted_price_cents == 19_500

    def test_floor_applies(self, product, now):
        config = PricingConfig(minimum_price_ratio=0.9)
        quote = generate_quote(product, "b", 5, QuoteRequirements(), now, config=config)
        assert sum(quote.pricing_breakdown.values()) == 8_000
        assert quote.quoted_price_cents == 9_000

    def test_quote_only_product_uses_category_rate(self, make_product, now):
        product = make_product("legal-q", price_cents=0, category="legal", is_quote_only=True)
        config = PricingConfig()
        assert base_price_cents(product, config) == config.category_base_rates_cents["legal"]
        quote = generate_quote(product, "b", 20, QuoteRequirements(), now, config=config)
        assert quote.quoted_price_cents == 75_000

    def test_larger_company_never_cheaper(self, product, now):
        prices = [
            generate_quote(product, "b", size, QuoteRequirements(), now).quoted_price_cents
            for size in (1, 10, 50, 200, 500, 5_000)
        ]
        assert prices == sorted(prices)

    def test_validity_from_config(self, product, now):
        quote = generate_quote(product, "b", 1, QuoteRequirements(), now, config=PricingConfig(quote_validity_days=7))
        assert quote.valid_until - quote.created_at == timedelta(days=7)

    @pytest.mark.parametrize("size", [0, -3])
    def test_non_positive_company_size(self, product, now, size):
        with pytest.raises(ValueError, match="company_size"):
            generate_quote(product, "b", size, QuoteRequirements(), now)


# ── Lifecycle ─────────────────────────────────────────────────────────────────

class TestLifecycle:
    def test_accept(self, pending, now):
        decision = accept_quote(pending, now + timedelta(days=1))
        assert not decision.expired
        assert decision.quote.status == "accepted"
        assert pending.status == "pending"

    def test_reject(self, pending, now):
        decision = reject_quote(pending, now + timedelta(days=1))
        assert decision.quote.status == "rejected"

    def test_accept_at_exact_expiry_is_allowed(self, pending):
        assert accept_quote(pending, pending.valid_until).quote.status == "accepted"

    def test_expired_quote(self, pending):
        decision = accept_quote(pending, pending.valid_until + timedelta(seconds=1))
        assert decision.expired
        assert decision.quote.status == "expired"
        assert decision.quote.quoted_price_cents == pending.quoted_price_cents

    @pytest.mark.parametrize("action", [accept_quote, reject_quote])
    def test_decided_quote_cannot_be_decided_again(self, pending, now, action):
        accepted = accept_quote(pending, now).quote
        with pytest.raises(QuoteStateError) as exc_info:
            action(accepted, now)
        assert exc_info.value.status == "accepted"

    def test_expired_status_is_terminal(self, pending):
        expired = accept_quote(pending, pending.valid_until + timedelta(days=1)).quote
        with pytest.raises(QuoteStateError):
            reject_quote(expired, pending.valid_until + timedelta(days=2))


class TestPriceLock:
    def test_price_change_after_quote_does_not_affect_acceptance(self, product, now):
        quote = generate_quote(product, "buyer-1", 50, QuoteRequirements(), now)
        locked = quote.quoted_price_cents

        repriced = product.model_copy(update={"price_cents": 99_999})
        assert generate_quote(repriced, "buyer-1", 50, QuoteRequirements(), now).quoted_price_cents != locked

        accepted = accept_quote(quote, now + timedelta(days=2)).quote
        assert accepted.quoted_price_cents == locked
        line = cart_line_for_quote(accepted)
        assert line.unit_price_cents == locked
        assert line.quantity == 1
        assert line.product_id == "q-1"

    def test_cart_line_requires_accepted(self, pending):
        with pytest.raises(QuoteStateError):
            cart_line_for_quote(pending)


class TestExtendValidity:
    def test_extends(self, pending):
        later = pending.valid_until + timedelta(days=10)
        extended = extend_validity(pending, later)
        assert extended.valid_until == later
        assert extended.quoted_price_cents == pending.quoted_price_cents

    def test_rejects_earlier_date(self, pending):
        with pytest.raises(ValueError):
            extend_validity(pending, pending.valid_until - timedelta(days=1))

    def test_only_pending(self, pending, now):
        accepted = accept_quote(pending, now).quote
        with pytest.raises(QuoteStateError):
            extend_validity(accepted, accepted.valid_until + timedelta(days=1))
