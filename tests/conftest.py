"""
Pytest Configuration and Fixtures
==================================
Shared deal fixtures.  Amounts read as $K.

  deal_inputs     : lightly levered deal that passes every covenant and
                    pays dividends from year 1
  levered_inputs  : heavily levered deal that breaches DSCR and runs
                    out of cash
"""

import pytest

from lbo_projection.model.assumptions import (
    BusinessMetrics,
    DebtProtectionCovenants,
    DealDesign,
    DividendPolicySettings,
    DividendTier,
    EquityInjection,
    FinancingTranche,
    LBOInputs,
    ScenarioAssumptions,
    WaterfallRule,
    default_waterfall_rules,
)


@pytest.fixture
def business_metrics():
    return BusinessMetrics(
        revenue                   = 100_000,
        ebitda                    = 25_000,
        cogs                      = 60_000,
        operating_expenses        = 15_000,
        accounts_receivable       = 12_000,
        inventory                 = 10_000,
        property_plant_equipment  = 40_000,
        accounts_payable          = 6_000,
        other_current_liabilities = 2_000,
        shareholders_equity       = 50_000,
    )


@pytest.fixture
def assumptions():
    return ScenarioAssumptions()


@pytest.fixture
def common_only_rules():
    return [WaterfallRule(1, "commonDividend", "percentage", value=1.0,
                          description="Common dividend")]


@pytest.fixture
def standard_tier():
    return DividendTier("Standard", ebitda_threshold=20_000, fcff_threshold=10_000,
                        leverage_threshold=3.0, payout_ratio=0.5)


@pytest.fixture
def deal_inputs(business_metrics, assumptions, standard_tier, common_only_rules):
    # Sources: 40,000 debt + 240,000 equity = 280,000
    # Uses:    250,000 EV + 5,000 fees      = 255,000  → 25,000 cash at close
    deal = DealDesign(
        financing_plans=[
            FinancingTranche("Senior Term Loan", amount=40_000, interest_rate=0.06,
                             maturity=5, repayment_method="equalPrincipal"),
        ],
        equity_injections=[
            EquityInjection("Sponsor Equity", amount=240_000, ownership_pct=100.0),
        ],
        dividend_policy=DividendPolicySettings(
            covenants       = DebtProtectionCovenants(),
            tiers           = [standard_tier],
            waterfall_rules = common_only_rules,
        ),
    )
    return LBOInputs(business_metrics, assumptions, deal, planning_horizon=5)


@pytest.fixture
def levered_inputs(business_metrics, assumptions):
    deal = DealDesign(
        financing_plans=[
            FinancingTranche("Senior Term Loan", amount=120_000, interest_rate=0.06,
                             maturity=5, repayment_method="equalPayment"),
            FinancingTranche("Subordinated Notes", amount=30_000, interest_rate=0.09,
                             maturity=5, repayment_method="bullet"),
        ],
        equity_injections=[
            EquityInjection("Sponsor Equity", amount=110_000, ownership_pct=100.0),
        ],
        dividend_policy=DividendPolicySettings(
            tiers           = [DividendTier("Any", 0, -1e12, 1e6, 1.0)],
            waterfall_rules = default_waterfall_rules(),
        ),
    )
    return LBOInputs(business_metrics, assumptions, deal, planning_horizon=5)
