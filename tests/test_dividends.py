"""
Unit Tests for the Dividend Waterfall Engine
============================================
"""

import pytest

from lbo_projection.model.assumptions import (
    DividendPolicySettings,
    DividendTier,
    EquityInjection,
    WaterfallRule,
    default_dividend_policy,
    default_tiers,
    default_waterfall_rules,
)
from lbo_projection.model.dividends import (
    DEFAULT_PAYOUT_RATIO,
    allocate_waterfall,
    distribute,
    distributions_df,
    preferred_issued_by,
    select_tier,
)

PREF_RULES = [
    WaterfallRule(1, "preferredRedemption", "fixed", value=90),
    WaterfallRule(2, "preferredDividend", "formula", value=0.08),
    WaterfallRule(3, "commonDividend", "percentage", value=1.0),
]


def _distribute(policy, **kw):
    params = dict(year=1, policy=policy, all_compliant=True, failed=(), ending_cash=1_000,
                  minimum_cash_reserve=0.0, ebitda=100_000, fcff=100_000, net_leverage=0.5,
                  preferred_outstanding=0.0, preferred_rate=0.0)
    params.update(kw)
    return distribute(**params)


class TestWaterfall:

    def test_allocation_order(self):
        allocations = allocate_waterfall(100, PREF_RULES, preferred_outstanding=90)
        assert [a.amount for a in allocations] == pytest.approx([90, 7.2, 2.8])
        assert sum(a.amount for a in allocations) == pytest.approx(100)

    def test_rules_sorted_by_priority(self):
        allocations = allocate_waterfall(100, list(reversed(PREF_RULES)), preferred_outstanding=90)
        assert [a.priority for a in allocations] == [1, 2, 3]
        assert [a.amount for a in allocations] == pytest.approx([90, 7.2, 2.8])

    def test_pool_exhausted_by_senior_claim(self):
        allocations = allocate_waterfall(50, PREF_RULES, preferred_outstanding=90)
        assert [a.amount for a in allocations] == pytest.approx([50, 0, 0])
        assert allocations[1].claim == pytest.approx(7.2)

    def test_redemption_capped_at_outstanding(self):
        allocations = allocate_waterfall(100, PREF_RULES, preferred_outstanding=40)
        assert allocations[0].amount == pytest.approx(40)
        assert allocations[1].amount == pytest.approx(3.2)
        assert allocations[2].amount == pytest.approx(56.8)

    def test_formula_rate_falls_back_to_preferred_rate(self):
        rules = [WaterfallRule(1, "preferredDividend", "formula")]
        allocations = allocate_waterfall(100, rules, preferred_outstanding=50, preferred_rate=0.1)
        assert allocations[0].amount == pytest.approx(5)

    def test_percentage_of_distributable(self):
        rules = [
            WaterfallRule(1, "commonDividend", "percentage", value=0.5, basis="distributable"),
            WaterfallRule(2, "carried", "percentage", value=0.5, basis="distributable"),
        ]
        allocations = allocate_waterfall(80, rules)
        assert [a.amount for a in allocations] == pytest.approx([40, 40])

    def test_no_rules_pays_common(self):
        allocations = allocate_waterfall(60, [])
        assert len(allocations) == 1
        assert allocations[0].claim_type == "commonDividend"
        assert allocations[0].amount == 60

    def test_default_policy(self):
        policy = default_dividend_policy(preferred_rate=0.10)
        assert [t.name for t in policy.tiers] == ["Basic", "Standard", "Aggressive"]
        allocations = allocate_waterfall(100, policy.waterfall_rules, preferred_outstanding=50)
        assert [a.amount for a in allocations] == pytest.approx([50, 5, 45])

    def test_default_rules(self):
        rules = default_waterfall_rules(preferred_rate=0.08, redemption_amount=90)
        allocations = allocate_waterfall(100, rules, preferred_outstanding=90)
        assert [a.amount for a in allocations] == pytest.approx([90, 7.2, 2.8])


class TestTierSelection:

    def test_most_aggressive_first(self):
        tier = select_tier(default_tiers(), ebitda=120_000, fcff=70_000, net_leverage=2.0)
        assert tier.name == "Aggressive"

    def test_falls_back_to_conservative(self):
        tier = select_tier(default_tiers(), ebitda=60_000, fcff=25_000, net_leverage=4.5)
        assert tier.name == "Basic"

    def test_no_match(self):
        assert select_tier(default_tiers(), ebitda=10_000, fcff=5_000, net_leverage=1.0) is None

    def test_order_of_configuration_does_not_matter(self):
        tiers = list(reversed(default_tiers()))
        assert select_tier(tiers, 120_000, 70_000, 2.0).name == "Aggressive"


class TestDistribute:

    def test_covenant_breach_blocks_distribution(self):
        policy = DividendPolicySettings(tiers=[DividendTier("All", 0, 0, 100, 1.0)],
                                        waterfall_rules=PREF_RULES)
        record = _distribute(policy, all_compliant=False, failed=("dscr",),
                             ending_cash=1_000_000, preferred_outstanding=90)
        assert record.total_distributed == 0.0
        assert record.pool == 0.0
        assert "dscr" in record.reason

    def test_pool_from_cash_above_reserve(self):
        policy = DividendPolicySettings(tiers=[DividendTier("Half", 0, 0, 10, 0.5)])
        record = _distribute(policy, ending_cash=1_000, minimum_cash_reserve=400)
        assert record.available_cash == pytest.approx(600)
        assert record.pool == pytest.approx(300)
        assert record.common_dividend == pytest.approx(300)
        assert record.tier == "Half"

    def test_no_tier_no_distribution(self):
        policy = DividendPolicySettings(tiers=default_tiers())
        record = _distribute(policy, ebitda=1_000)
        assert record.total_distributed == 0.0
        assert record.tier is None

    def test_no_tiers_configured_uses_default_payout(self):
        record = _distribute(DividendPolicySettings(), ending_cash=1_000)
        assert record.payout_ratio == DEFAULT_PAYOUT_RATIO
        assert record.pool == pytest.approx(500)

    def test_cash_below_reserve(self):
        record = _distribute(DividendPolicySettings(), ending_cash=100, minimum_cash_reserve=500)
        assert record.total_distributed == 0.0

    def test_unused_is_forfeited_by_default(self):
        policy = DividendPolicySettings(
            waterfall_rules=[WaterfallRule(1, "commonDividend", "fixed", value=100)])
        record = _distribute(policy, ending_cash=1_000)
        assert record.pool == pytest.approx(500)
        assert record.unused == pytest.approx(400)
        assert record.carried_out == 0.0
        follow = _distribute(policy, ending_cash=1_000, carried_in=400)
        assert follow.pool == pytest.approx(500)

    def test_unused_carried_forward(self):
        policy = DividendPolicySettings(
            waterfall_rules=[WaterfallRule(1, "commonDividend", "fixed", value=100)],
            carry_forward_unused=True)
        first = _distribute(policy, ending_cash=1_000)
        assert first.carried_out == pytest.approx(400)
        second = _distribute(policy, ending_cash=1_000, carried_in=first.carried_out)
        assert second.pool == pytest.approx(900)
        capped = _distribute(policy, ending_cash=1_000, carried_in=5_000)
        assert capped.pool == pytest.approx(1_000)

    def test_carried_interest_not_investor_cash(self):
        policy = DividendPolicySettings(waterfall_rules=[
            WaterfallRule(1, "carried", "percentage", value=0.2),
            WaterfallRule(2, "commonDividend", "percentage", value=1.0),
        ])
        record = _distribute(policy, ending_cash=1_000)
        assert record.carried_interest == pytest.approx(100)
        assert record.investor_distributions == pytest.approx(400)
        assert record.total_distributed == pytest.approx(500)

    def test_distributions_df(self):
        record = _distribute(DividendPolicySettings(), ending_cash=1_000)
        df = distributions_df([record])
        assert df.loc[0, "Common Dividend"] == pytest.approx(500)


class TestPreferredBalance:

    def test_entry_timing(self):
        injections = [
            EquityInjection("Pref A", 90, 0, "preferred", entry_year=0, dividend_rate=0.08),
            EquityInjection("Pref B", 50, 0, "preferred", entry_year=2, entry_timing="end",
                            dividend_rate=0.1),
            EquityInjection("Common", 500, 100),
        ]
        assert preferred_issued_by(injections, 0) == 0
        assert preferred_issued_by(injections, 1) == 90
        assert preferred_issued_by(injections, 2) == 90
        assert preferred_issued_by(injections, 3) == 140
