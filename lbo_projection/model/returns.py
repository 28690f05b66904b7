"""
returns.py
----------
Equity returns: builds the sponsor cash-flow series and derives IRR,
MOIC, payback period and NPV, plus a value-creation bridge.

Cash-flow series (index = year):
  outflows : equity injected, placed at each injection's entry year
  inflows  : investor distributions actually paid each year
             (preferred redemption + preferred / common dividends;
             carried interest is excluded)
  terminal : (exit EV − net debt) × ownership share, at the horizon
             exit EV = terminal EBITDA × exit multiple

IRR is solved with scipy brentq on NPV = 0; NaN when the series has no
sign change (no root exists).
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np
from scipy.optimize import brentq

from lbo_projection.model.assumptions import LBOInputs
from lbo_projection.model.balance_sheet import BalanceSheetRecord
from lbo_projection.model.dividends import DistributionRecord
from lbo_projection.model.income_statement import IncomeStatementRecord

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# IRR / MOIC helpers
# ---------------------------------------------------------------------------

def _npv(rate: float, cash_flows: list[float]) -> float:
    return sum(cf / (1 + rate) ** t for t, cf in enumerate(cash_flows))


def _irr(cash_flows: list[float]) -> float:
    """Compute IRR given a list of cash flows (index 0 = t=0)."""
    if not (any(cf < 0 for cf in cash_flows) and any(cf > 0 for cf in cash_flows)):
        return np.nan
    try:
        return brentq(lambda r: _npv(r, cash_flows), -0.999, 100.0, xtol=1e-8, maxiter=500)
    except ValueError:
        # f(a) and f(b) share a sign: no root inside the bracket
        return np.nan


def _moic(invested: float, proceeds: float) -> float:
    if invested <= 0:
        return np.nan
    return proceeds / invested


def _payback_year(invested: float, inflows: list[float]) -> Optional[int]:
    """First year in which cumulative inflows recover `invested`."""
    if invested <= 0:
        return None
    cumulative = 0.0
    for yr, cf in enumerate(inflows):
        cumulative += cf
        if cumulative >= invested:
            return yr
    return None


# ---------------------------------------------------------------------------
# KPI record
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class KPIMetrics:
    irr: float
    moic: float
    payback_period: Optional[int]
    npv: float
    equity_invested: float
    total_inflows: float
    exit_ebitda: float
    exit_ev: float
    exit_net_debt: float
    exit_equity: float
    ownership_share: float
    equity_cash_flows: list = field(default_factory=list)
    bridge: dict = field(default_factory=dict)


def equity_legs(
    inputs: LBOInputs,
    distributions: list[DistributionRecord],
    terminal_value: float,
) -> tuple[list[float], list[float]]:
    """(outflows, inflows) by year, both as positive amounts."""
    n = inputs.planning_horizon
    outflows = [0.0] * (n + 1)
    inflows  = [0.0] * (n + 1)
    for e in inputs.deal_design.equity_injections:
        if 0 <= e.entry_year <= n:
            outflows[e.entry_year] += e.amount
    for d in distributions:
        if 0 < d.year <= n:
            inflows[d.year] += d.investor_distributions
    inflows[n] += terminal_value
    return outflows, inflows


def calculate_kpis(
    inputs: LBOInputs,
    income: list[IncomeStatementRecord],
    balance: list[BalanceSheetRecord],
    distributions: list[DistributionRecord],
) -> KPIMetrics:
    """
    Parameters
    ----------
    inputs        : run inputs (exit multiple, discount rate, equity terms)
    income        : income statements, years 0..N
    balance       : closed balance sheets, years 0..N
    distributions : waterfall results, years 0..N

    Returns
    -------
    KPIMetrics
    """
    a    = inputs.assumptions
    deal = inputs.deal_design
    last = balance[-1]

    # ---- EXIT ANALYSIS ----
    exit_ebitda   = income[-1].ebitda
    exit_ev       = exit_ebitda * a.exit_ev_multiple
    exit_net_debt = last.net_debt
    exit_equity   = max(0.0, exit_ev - exit_net_debt)

    ownership = sum(e.ownership_pct for e in deal.equity_injections) / 100.0
    share     = min(1.0, max(0.0, ownership))
    terminal  = exit_equity * share

    outflows, inflows = equity_legs(inputs, distributions, terminal)
    flows    = [i - o for o, i in zip(outflows, inflows)]
    invested = sum(outflows)
    proceeds = sum(inflows)

    irr  = _irr(flows)
    moic = _moic(invested, proceeds)

    # ---- VALUE CREATION BRIDGE ----
    # EBITDA growth at entry multiple, multiple expansion on exit EBITDA,
    # and deleveraging between close and exit.
    entry_ebitda   = inputs.business_metrics.ebitda or 0.0
    entry_net_debt = balance[0].net_debt
    bridge = {
        "Entry Equity Value":            inputs.purchase_price - entry_net_debt,
        "EBITDA Growth":                 (exit_ebitda - entry_ebitda) * a.entry_ev_multiple,
        "Multiple Expansion":            exit_ebitda * (a.exit_ev_multiple - a.entry_ev_multiple),
        "Deleveraging":                  entry_net_debt - exit_net_debt,
        "Exit Equity Value":             exit_ev - exit_net_debt,
    }

    kpi = KPIMetrics(
        irr               = irr,
        moic              = moic,
        payback_period    = _payback_year(invested, inflows),
        npv               = _npv(a.discount_rate, flows),
        equity_invested   = invested,
        total_inflows     = proceeds,
        exit_ebitda       = exit_ebitda,
        exit_ev           = exit_ev,
        exit_net_debt     = exit_net_debt,
        exit_equity       = exit_equity,
        ownership_share   = share,
        equity_cash_flows = flows,
        bridge            = bridge,
    )
    logger.debug("KPIs: IRR=%s MOIC=%s payback=%s", irr, moic, kpi.payback_period)
    return kpi
