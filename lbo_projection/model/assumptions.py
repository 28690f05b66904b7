"""
assumptions.py
--------------
Central dataclasses for all LBO projection inputs.
Separates the target's baseline financials, the per-scenario operating
assumptions, and the deal design (tranches, equity, dividend policy)
so scenarios can be constructed by swapping just the assumptions record.

All rates as decimals (e.g., 0.08 = 8%).  Monetary values are in whatever
unit the caller supplies (the defaults below read as $K).
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional


# ---------------------------------------------------------------------------
# Engine constants
# ---------------------------------------------------------------------------
DAYS_IN_YEAR = 365
MONTHS_IN_YEAR = 12
UNCONSTRAINED_RATIO = 999.0        # reported when a ratio's denominator is zero
CONSISTENCY_TOLERANCE = 0.01       # balance / continuity tolerance
HEALTHY_INTEREST_COVERAGE = 2.0    # below this a warning is raised, not a breach
MAX_PLANNING_HORIZON = 10
SCENARIO_KEYS = ("base", "upside", "downside")


class RepaymentMethod(str, Enum):
    EQUAL_PAYMENT   = "equalPayment"
    EQUAL_PRINCIPAL = "equalPrincipal"
    BULLET          = "bullet"
    INTEREST_ONLY   = "interestOnly"
    REVOLVING       = "revolving"


class EntryTiming(str, Enum):
    BEGINNING = "beginning"
    END       = "end"


class EquityType(str, Enum):
    COMMON    = "common"
    PREFERRED = "preferred"


class ClaimType(str, Enum):
    PREFERRED_REDEMPTION = "preferredRedemption"
    PREFERRED_DIVIDEND   = "preferredDividend"
    COMMON_DIVIDEND      = "commonDividend"
    CARRIED              = "carried"


class CalculationMode(str, Enum):
    FIXED      = "fixed"
    PERCENTAGE = "percentage"
    FORMULA    = "formula"


class ClaimBasis(str, Enum):
    REMAINING             = "remaining"
    DISTRIBUTABLE         = "distributable"
    PREFERRED_OUTSTANDING = "preferredOutstanding"


# ---------------------------------------------------------------------------
# Deal structure
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FinancingTranche:
    """Represents one piece of the capital structure."""
    name: str
    amount: float                  # drawn on entry
    interest_rate: float           # annual rate
    maturity: int                  # contractual years (ignored for revolvers)
    repayment_method: str = RepaymentMethod.EQUAL_PAYMENT.value
    entry_year: int = 0
    entry_timing: str = EntryTiming.BEGINNING.value
    repayment_frequency: str = "annual"   # informational only

    @property
    def method(self) -> RepaymentMethod:
        return RepaymentMethod(self.repayment_method)

    @property
    def timing(self) -> EntryTiming:
        return EntryTiming(self.entry_timing)

    @property
    def is_revolver(self) -> bool:
        return self.method is RepaymentMethod.REVOLVING


@dataclass(frozen=True)
class EquityInjection:
    """One equity cheque: sponsor common, co-invest, or a preferred class."""
    name: str
    amount: float
    ownership_pct: float           # 0..100
    equity_type: str = EquityType.COMMON.value
    entry_year: int = 0
    entry_timing: str = EntryTiming.BEGINNING.value
    dividend_rate: Optional[float] = None   # required for preferred
    participating: bool = False
    liquidation_preference: float = 1.0     # multiple of amount

    @property
    def is_preferred(self) -> bool:
        return self.equity_type == EquityType.PREFERRED.value


@dataclass(frozen=True)
class Covenant:
    threshold: float
    enabled: bool = True


@dataclass(frozen=True)
class DebtProtectionCovenants:
    dscr: Covenant               = Covenant(1.25)
    net_leverage: Covenant       = Covenant(4.0)
    interest_coverage: Covenant  = Covenant(3.0)
    min_cash_months: Covenant    = Covenant(3.0)


@dataclass(frozen=True)
class DividendTier:
    name: str
    ebitda_threshold: float
    fcff_threshold: float
    leverage_threshold: float
    payout_ratio: float


@dataclass(frozen=True)
class WaterfallRule:
    priority: int
    claim_type: str
    calculation: str
    value: Optional[float] = None
    basis: Optional[str] = None    # None → mode default (see dividends.py)
    description: str = ""


@dataclass(frozen=True)
class DividendPolicySettings:
    covenants: DebtProtectionCovenants = field(default_factory=DebtProtectionCovenants)
    tiers: List[DividendTier] = field(default_factory=list)
    waterfall_rules: List[WaterfallRule] = field(default_factory=list)
    carry_forward_unused: bool = False


@dataclass(frozen=True)
class DealDesign:
    financing_plans: List[FinancingTranche] = field(default_factory=list)
    equity_injections: List[EquityInjection] = field(default_factory=list)
    dividend_policy: DividendPolicySettings = field(default_factory=DividendPolicySettings)
    transaction_fee_pct: float = 0.02   # of purchase price, paid at close

    @property
    def total_debt(self) -> float:
        return sum(t.amount for t in self.financing_plans)

    @property
    def total_equity(self) -> float:
        return sum(e.amount for e in self.equity_injections)

    @property
    def preferred_dividend_rate(self) -> float:
        """Amount-weighted dividend rate across preferred classes."""
        prefs = [e for e in self.equity_injections if e.is_preferred]
        total = sum(e.amount for e in prefs)
        if total <= 0:
            return 0.0
        return sum(e.amount * (e.dividend_rate or 0.0) for e in prefs) / total


# ---------------------------------------------------------------------------
# Target baseline and forward assumptions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BusinessMetrics:
    """
    Year-0 actuals of the target.  Required fields default to None so that
    a missing input is detectable by validation rather than read as zero.
    Optional fields fall back to an estimate when None; an explicit 0 is kept.
    """
    revenue: Optional[float] = None
    ebitda: Optional[float] = None       # LTM EBITDA used for entry pricing
    cogs: Optional[float] = None         # None → revenue × COGS%
    operating_expenses: Optional[float] = None
    depreciation_amortization: float = 0.0
    interest_expense: float = 0.0
    tax_expense: float = 0.0
    accounts_receivable: Optional[float] = None        # None → day-count estimate
    inventory: Optional[float] = None
    property_plant_equipment: Optional[float] = None   # None → capex × multiple
    accounts_payable: Optional[float] = None
    other_current_liabilities: float = 0.0
    shareholders_equity: float = 0.0


@dataclass(frozen=True)
class ScenarioAssumptions:
    """
    Forward-looking assumptions for one scenario key.

    The EBITDA margin is never an input on its own: it is always
    1 − COGS% − OPEX%, floored at zero.
    """
    entry_ev_multiple: float = 10.0
    exit_ev_multiple: float = 12.0
    revenue_growth_rate: float = 0.05
    cogs_pct_revenue: float = 0.60
    opex_pct_revenue: float = 0.15
    capex_pct_revenue: float = 0.04
    capex_growth_rate: float = 0.03          # informational
    ar_days: float = 45.0
    inventory_days: float = 60.0
    ap_days: float = 35.0
    tax_rate: float = 0.20
    discount_rate: float = 0.10
    depreciation_to_capex_ratio: float = 0.20
    fixed_assets_to_capex_multiple: float = 10.0
    revolver_repayment_rate: float = 0.20

    @property
    def ebitda_margin(self) -> float:
        return max(0.0, 1.0 - self.cogs_pct_revenue - self.opex_pct_revenue)


@dataclass(frozen=True)
class LBOInputs:
    """Everything one pipeline run needs."""
    business_metrics: BusinessMetrics
    assumptions: ScenarioAssumptions
    deal_design: DealDesign
    planning_horizon: int = 5

    def with_assumptions(self, assumptions: ScenarioAssumptions) -> "LBOInputs":
        return replace(self, assumptions=assumptions)

    @property
    def purchase_price(self) -> float:
        """Entry EV = LTM EBITDA × entry multiple (cash-free, debt-free)."""
        return (self.business_metrics.ebitda or 0.0) * self.assumptions.entry_ev_multiple

    @property
    def transaction_fees(self) -> float:
        return self.purchase_price * self.deal_design.transaction_fee_pct


@dataclass(frozen=True)
class EngineConfig:
    tolerance: float = CONSISTENCY_TOLERANCE
    healthy_interest_coverage: float = HEALTHY_INTEREST_COVERAGE
    strict: bool = False        # raise ConsistencyError instead of only reporting


# ---------------------------------------------------------------------------
# Convenience: build scenario variants
# ---------------------------------------------------------------------------

def base_case() -> ScenarioAssumptions:
    return ScenarioAssumptions()


def upside_case(base: ScenarioAssumptions | None = None) -> ScenarioAssumptions:
    b = base or base_case()
    return replace(
        b,
        exit_ev_multiple    = b.exit_ev_multiple + 2.0,
        revenue_growth_rate = b.revenue_growth_rate + 0.02,
        cogs_pct_revenue    = b.cogs_pct_revenue - 0.02,
        opex_pct_revenue    = b.opex_pct_revenue - 0.01,
        capex_pct_revenue   = b.capex_pct_revenue - 0.005,
        ar_days             = b.ar_days - 5,
        inventory_days      = b.inventory_days - 5,
        ap_days             = b.ap_days + 3,
    )


def downside_case(base: ScenarioAssumptions | None = None) -> ScenarioAssumptions:
    b = base or base_case()
    return replace(
        b,
        exit_ev_multiple    = max(0.0, b.exit_ev_multiple - 2.0),
        revenue_growth_rate = b.revenue_growth_rate - 0.02,
        cogs_pct_revenue    = b.cogs_pct_revenue + 0.02,
        opex_pct_revenue    = b.opex_pct_revenue + 0.01,
        capex_pct_revenue   = b.capex_pct_revenue + 0.005,
        ar_days             = b.ar_days + 5,
        inventory_days      = b.inventory_days + 5,
        ap_days             = max(0.0, b.ap_days - 3),
    )


def default_scenarios(base: ScenarioAssumptions | None = None) -> dict[str, ScenarioAssumptions]:
    b = base or base_case()
    return {
        "base":     b,
        "upside":   upside_case(b),
        "downside": downside_case(b),
    }


def default_tiers() -> List[DividendTier]:
    # Thresholds in $K: basic → standard → aggressive
    return [
        DividendTier("Basic",      ebitda_threshold=50_000,  fcff_threshold=20_000,
                     leverage_threshold=5.0, payout_ratio=0.30),
        DividendTier("Standard",   ebitda_threshold=80_000,  fcff_threshold=40_000,
                     leverage_threshold=3.5, payout_ratio=0.50),
        DividendTier("Aggressive", ebitda_threshold=100_000, fcff_threshold=60_000,
                     leverage_threshold=2.5, payout_ratio=0.70),
    ]


def default_waterfall_rules(preferred_rate: float = 0.08,
                            redemption_amount: float = 90_000) -> List[WaterfallRule]:
    return [
        WaterfallRule(1, ClaimType.PREFERRED_REDEMPTION.value, CalculationMode.FIXED.value,
                      value=redemption_amount, description="Preferred principal redemption"),
        WaterfallRule(2, ClaimType.PREFERRED_DIVIDEND.value, CalculationMode.FORMULA.value,
                      value=preferred_rate,
                      description=f"Preferred dividend ({preferred_rate:.1%} p.a.)"),
        WaterfallRule(3, ClaimType.COMMON_DIVIDEND.value, CalculationMode.PERCENTAGE.value,
                      value=1.0, description="Common dividend (remaining distributable cash)"),
    ]


def default_dividend_policy(preferred_rate: float = 0.08) -> DividendPolicySettings:
    return DividendPolicySettings(
        covenants       = DebtProtectionCovenants(),
        tiers           = default_tiers(),
        waterfall_rules = default_waterfall_rules(preferred_rate),
    )
