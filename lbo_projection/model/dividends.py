"""
dividends.py
------------
Dividend policy: tier selection and the cash-distribution waterfall.

Per year, only when every enabled covenant passes:
  1. Tier selection: tiers scanned from highest payout ratio to lowest;
     the first whose EBITDA ≥, FCFF ≥ and net leverage ≤ thresholds all
     hold is applied.  No matching tier → no distribution.
     No tiers configured at all → DEFAULT_PAYOUT_RATIO.
  2. Pool = max(0, ending cash − minimum cash reserve) × payout ratio
     (+ amount carried forward, when enabled, capped at cash above reserve).
  3. Waterfall: rules walked in ascending priority, each taking
     min(claim, remaining pool).

Claim calculation by mode:
  fixed      : rule value
  percentage : value × basis            (basis default: remaining pool)
  formula    : basis × rate             (basis default: preferred outstanding
                                         at start of year; rate default:
                                         weighted preferred dividend rate)

Preferred redemptions are capped at the preferred balance outstanding.
No rules configured → whole pool is paid as a common dividend.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import pandas as pd

from lbo_projection.model.assumptions import (
    CalculationMode,
    ClaimBasis,
    ClaimType,
    DividendPolicySettings,
    DividendTier,
    EntryTiming,
    EquityInjection,
    WaterfallRule,
)

logger = logging.getLogger(__name__)

DEFAULT_PAYOUT_RATIO = 0.5      # used only when no tiers are configured

_DEFAULT_BASIS = {
    CalculationMode.PERCENTAGE: ClaimBasis.REMAINING,
    CalculationMode.FORMULA:    ClaimBasis.PREFERRED_OUTSTANDING,
}


@dataclass(frozen=True)
class WaterfallAllocation:
    priority: int
    claim_type: str
    description: str
    claim: float        # computed entitlement before the pool limit
    amount: float       # actually allocated


@dataclass(frozen=True)
class DistributionRecord:
    year: int
    tier: Optional[str] = None
    payout_ratio: float = 0.0
    minimum_cash_reserve: float = 0.0
    available_cash: float = 0.0         # cash above the reserve
    carried_in: float = 0.0
    pool: float = 0.0
    allocations: tuple = ()
    unused: float = 0.0
    carried_out: float = 0.0
    reason: str = ""

    def _by_claim(self, claim_type: ClaimType) -> float:
        return sum(a.amount for a in self.allocations if a.claim_type == claim_type.value)

    @property
    def preferred_redemption(self) -> float:
        return self._by_claim(ClaimType.PREFERRED_REDEMPTION)

    @property
    def preferred_dividend(self) -> float:
        return self._by_claim(ClaimType.PREFERRED_DIVIDEND)

    @property
    def common_dividend(self) -> float:
        return self._by_claim(ClaimType.COMMON_DIVIDEND)

    @property
    def carried_interest(self) -> float:
        return self._by_claim(ClaimType.CARRIED)

    @property
    def total_distributed(self) -> float:
        return sum(a.amount for a in self.allocations)

    @property
    def investor_distributions(self) -> float:
        """Cash to equity holders (carried interest excluded)."""
        return self.total_distributed - self.carried_interest


# ---------------------------------------------------------------------------
# Tier selection
# ---------------------------------------------------------------------------

def select_tier(
    tiers: list[DividendTier],
    ebitda: float,
    fcff: float,
    net_leverage: float,
) -> Optional[DividendTier]:
    """Most aggressive tier whose three thresholds all hold (None if none)."""
    for tier in sorted(tiers, key=lambda t: t.payout_ratio, reverse=True):
        if (ebitda >= tier.ebitda_threshold
                and fcff >= tier.fcff_threshold
                and net_leverage <= tier.leverage_threshold):
            return tier
    return None


# ---------------------------------------------------------------------------
# Preferred balances
# ---------------------------------------------------------------------------

def preferred_issued_by(injections: list[EquityInjection], year: int) -> float:
    """Preferred face amount outstanding at the start of `year`, before redemptions."""
    total = 0.0
    for e in injections:
        if not e.is_preferred:
            continue
        first_year = e.entry_year + (1 if e.entry_timing == EntryTiming.END.value else 0)
        if e.entry_year == 0:
            first_year = 1
        if first_year <= year:
            total += e.amount
    return total


# ---------------------------------------------------------------------------
# Waterfall
# ---------------------------------------------------------------------------

def _basis_amount(basis: ClaimBasis, pool: float, remaining: float, preferred: float) -> float:
    if basis is ClaimBasis.REMAINING:
        return remaining
    if basis is ClaimBasis.DISTRIBUTABLE:
        return pool
    return preferred


def _claim(rule: WaterfallRule, pool: float, remaining: float,
           preferred_outstanding: float, preferred_rate: float) -> float:
    mode = CalculationMode(rule.calculation)
    if mode is CalculationMode.FIXED:
        return rule.value or 0.0

    basis  = ClaimBasis(rule.basis) if rule.basis else _DEFAULT_BASIS[mode]
    amount = _basis_amount(basis, pool, remaining, preferred_outstanding)
    if mode is CalculationMode.PERCENTAGE:
        return amount * (rule.value if rule.value is not None else 1.0)

    rate = rule.value if rule.value is not None else preferred_rate
    return amount * rate


def allocate_waterfall(
    pool: float,
    rules: list[WaterfallRule],
    preferred_outstanding: float = 0.0,
    preferred_rate: float = 0.0,
) -> list[WaterfallAllocation]:
    """
    Walk the rules in ascending priority and allocate `pool`.

    Parameters
    ----------
    pool                  : distributable cash for the year
    rules                 : waterfall rules (any order)
    preferred_outstanding : preferred balance at the start of the year
    preferred_rate        : fallback rate for formula rules with no value

    Returns
    -------
    One WaterfallAllocation per rule, in the order they were applied.
    """
    if not rules:
        return [WaterfallAllocation(0, ClaimType.COMMON_DIVIDEND.value,
                                    "Common dividend (no waterfall configured)",
                                    claim=pool, amount=max(0.0, pool))]

    remaining   = max(0.0, pool)
    pref_left   = preferred_outstanding
    allocations = []
    for rule in sorted(rules, key=lambda r: r.priority):
        claim = max(0.0, _claim(rule, pool, remaining, preferred_outstanding, preferred_rate))
        if rule.claim_type == ClaimType.PREFERRED_REDEMPTION.value:
            claim = min(claim, pref_left)
        amount = min(claim, remaining)
        if rule.claim_type == ClaimType.PREFERRED_REDEMPTION.value:
            pref_left -= amount
        remaining -= amount
        allocations.append(WaterfallAllocation(
            priority    = rule.priority,
            claim_type  = rule.claim_type,
            description = rule.description,
            claim       = claim,
            amount      = amount,
        ))
    return allocations


def distribute(
    year: int,
    policy: DividendPolicySettings,
    all_compliant: bool,
    failed: tuple,
    ending_cash: float,
    minimum_cash_reserve: float,
    ebitda: float,
    fcff: float,
    net_leverage: float,
    preferred_outstanding: float,
    preferred_rate: float,
    carried_in: float = 0.0,
) -> DistributionRecord:
    """
    One year's distribution decision.  `ending_cash` is pre-distribution.
    Never distributes when covenants fail, regardless of tier thresholds.
    """
    available = max(0.0, ending_cash - minimum_cash_reserve)
    carry     = carried_in if policy.carry_forward_unused else 0.0
    base = dict(year=year, minimum_cash_reserve=minimum_cash_reserve,
                available_cash=available, carried_in=carry, carried_out=carry)

    if not all_compliant:
        return DistributionRecord(**base, reason=f"Covenant breach: {', '.join(failed)}")

    if policy.tiers:
        tier = select_tier(policy.tiers, ebitda, fcff, net_leverage)
        if tier is None:
            return DistributionRecord(**base, reason="No dividend tier thresholds met")
        tier_name, payout = tier.name, tier.payout_ratio
    else:
        tier_name, payout = None, DEFAULT_PAYOUT_RATIO

    if available <= 0:
        return DistributionRecord(**base, tier=tier_name, payout_ratio=payout,
                                  reason="No cash above the minimum reserve")

    pool = min(available, available * payout + carry)
    allocations = allocate_waterfall(pool, policy.waterfall_rules,
                                     preferred_outstanding, preferred_rate)
    unused = pool - sum(a.amount for a in allocations)
    return DistributionRecord(
        **{**base, "carried_out": unused if policy.carry_forward_unused else 0.0},
        tier         = tier_name,
        payout_ratio = payout,
        pool         = pool,
        allocations  = tuple(allocations),
        unused       = unused,
        reason       = "Distributed",
    )


def distributions_df(records: list[DistributionRecord]) -> pd.DataFrame:
    rows = []
    for r in records:
        rows.append({
            "Year":                 r.year,
            "Tier":                 r.tier or "—",
            "Payout Ratio":         r.payout_ratio,
            "Min Cash Reserve":     round(r.minimum_cash_reserve, 1),
            "Distributable Pool":   round(r.pool, 1),
            "Preferred Redemption": round(r.preferred_redemption, 1),
            "Preferred Dividend":   round(r.preferred_dividend, 1),
            "Common Dividend":      round(r.common_dividend, 1),
            "Carried Interest":     round(r.carried_interest, 1),
            "Unused":               round(r.unused, 1),
            "Reason":               r.reason,
        })
    return pd.DataFrame(rows)
