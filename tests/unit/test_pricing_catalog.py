from billing_backend.pricing import catalog
from billing_backend.pricing import repository as pricing_repo


def test_catalog_base_prices():
    plans = catalog.resolve_plan_catalog(None, None)
    assert plans["professional_monthly_usd"] == {"amount": 2000, "currency": "USD", "interval": "month"}
    assert plans["professional_annual_usd"]["amount"] == 20000
    assert plans["professional_monthly_lkr"]["amount"] == 500000
    assert plans["professional_annual_lkr"]["amount"] == 5000000


def test_new_customer_definition():
    assert catalog.is_new_customer({"wallet_months": 0, "payment_done": False}) is True
    assert catalog.is_new_customer({"wallet_months": None, "payment_done": None}) is True
    assert catalog.is_new_customer({"wallet_months": 1, "payment_done": False}) is False
    assert catalog.is_new_customer({"wallet_months": 0, "payment_done": True}) is False


def test_disabled_or_unknown_scope_override_is_ignored():
    base = catalog.PLAN_CATALOG["professional_monthly_usd"]["amount"]
    disabled = {"enabled": False, "applies_to": "all_customers", "monthly_usd": 10}
    unknown = {"enabled": True, "applies_to": "vip_only", "monthly_usd": 10}
    assert catalog.resolve_plan_catalog(disabled, {})["professional_monthly_usd"]["amount"] == base
    assert catalog.resolve_plan_catalog(unknown, {})["professional_monthly_usd"]["amount"] == base


def test_invalid_override_values_fall_back_per_plan():
    override = {
        "enabled": True,
        "applies_to": "all_customers",
        "monthly_usd": "abc",
        "annual_usd": 0.2,
        "monthly_lkr": 4500,
        "annual_lkr": None,
    }
    plans = catalog.resolve_plan_catalog(override, {"wallet_months": 3, "payment_done": True})
    assert plans["professional_monthly_usd"]["amount"] == 2000
    # 0.20 USD = 20 cents < minimum facturable
    assert plans["professional_annual_usd"]["amount"] == 20000
    assert plans["professional_monthly_lkr"]["amount"] == 450000
    assert plans["professional_annual_lkr"]["amount"] == 5000000


def test_resolve_plan_catalog_does_not_mutate_constant():
    override = {"enabled": True, "applies_to": "all_customers", "monthly_usd": 9}
    catalog.resolve_plan_catalog(override, {})
    assert catalog.PLAN_CATALOG["professional_monthly_usd"]["amount"] == 2000


def test_repository_reads_singleton_override(store):
    store.seed("pricing_settings", {"id": "stripe_pricing", "enabled": True, "applies_to": "all_customers"})
    assert pricing_repo.get_pricing_override()["applies_to"] == "all_customers"


def test_repository_override_degrades_to_none_on_error(store):
    store.fail("pricing_settings", "select")
    assert pricing_repo.get_pricing_override() is None


def test_repository_promo_lookup_is_case_insensitive(store):
    store.seed("promo_codes", {"code": "WELCOME10", "percent_off": 10, "is_active": True})
    assert pricing_repo.find_promo_code(" welcome10 ")["percent_off"] == 10
    assert pricing_repo.find_promo_code("other") is None
