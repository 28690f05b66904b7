"""
covenants.py
------------
Debt-protection covenant tests on the projected capital structure.

Computed ratios (by year, on pre-distribution statements):
  - DSCR              (EBITDA − Cash Taxes) / (Interest + Principal)
  - Net Leverage      max(0, Debt − Cash) / EBITDA
  - Interest Coverage EBITDA / Interest
  - Cash Months       Cash / monthly cash operating expense (ex D&A)

Each ratio is tested only when its covenant is enabled.  Ratios whose
denominator is zero report UNCONSTRAINED_RATIO instead of inf / NaN.
Net leverage with non-positive EBITDA but positive net debt reports the
sentinel as well, and fails.

Also builds a covenant headroom DataFrame for disclosure.
"""

import logging
from dataclasses import dataclass, field

import pandas as pd

from lbo_projection.model.assumptions import (
    MONTHS_IN_YEAR,
    UNCONSTRAINED_RATIO,
    DebtProtectionCovenants,
)
from lbo_projection.model.balance_sheet import BalanceSheetRecord
from lbo_projection.model.debt_schedule import DebtPosition
from lbo_projection.model.income_statement import IncomeStatementRecord

logger = logging.getLogger(__name__)


# Covenant key → (ratio attribute, direction)
_TESTS = {
    "dscr":              ("dscr",              ">="),
    "net_leverage":      ("net_leverage",      "<="),
    "interest_coverage": ("interest_coverage", ">="),
    "min_cash_months":   ("cash_months",       ">="),
}


@dataclass(frozen=True)
class CovenantRecord:
    year: int
    dscr: float
    net_leverage: float
    interest_coverage: float
    cash_months: float
    monthly_cash_opex: float
    all_compliant: bool
    failed: tuple = ()
    headroom: dict = field(default_factory=dict)


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else UNCONSTRAINED_RATIO


def evaluate_covenants(
    year: int,
    income: IncomeStatementRecord,
    balance: BalanceSheetRecord,
    debt: DebtPosition,
    covenants: DebtProtectionCovenants,
) -> CovenantRecord:
    """
    Parameters
    ----------
    income, balance : pre-distribution statements of `year`
    debt            : consolidated debt position of `year`
    covenants       : thresholds + enabled flags

    Returns
    -------
    CovenantRecord with ratios, compliance flag, failed covenant names and
    headroom (positive = inside the covenant) for enabled tests.
    """
    ebitda   = income.ebitda
    net_debt = max(0.0, balance.total_debt - balance.cash)

    dscr = _ratio(ebitda - income.taxes, debt.debt_service)

    if ebitda > 0:
        net_leverage = net_debt / ebitda
    else:
        net_leverage = UNCONSTRAINED_RATIO if net_debt > 0 else 0.0

    interest_coverage = _ratio(ebitda, debt.interest_expense)

    monthly_opex = income.cash_operating_expenses / MONTHS_IN_YEAR
    cash_months  = _ratio(balance.cash, monthly_opex)

    ratios = {
        "dscr":              dscr,
        "net_leverage":      net_leverage,
        "interest_coverage": interest_coverage,
        "cash_months":       cash_months,
    }

    failed   = []
    headroom = {}
    for key, (attr, direction) in _TESTS.items():
        cov = getattr(covenants, key)
        if not cov.enabled:
            continue
        actual = ratios[attr]
        if direction == ">=":
            ok = actual >= cov.threshold
            headroom[key] = actual - cov.threshold
        else:
            ok = actual <= cov.threshold
            headroom[key] = cov.threshold - actual
        if not ok:
            failed.append(key)

    if failed:
        logger.debug("Year %d covenant failures: %s", year, ", ".join(failed))

    return CovenantRecord(
        year              = year,
        monthly_cash_opex = monthly_opex,
        all_compliant     = not failed,
        failed            = tuple(failed),
        headroom          = headroom,
        **ratios,
    )


def minimum_cash_reserve(record: CovenantRecord, covenants: DebtProtectionCovenants) -> float:
    """Cash held back before any distribution (zero if the covenant is off)."""
    if not covenants.min_cash_months.enabled:
        return 0.0
    return record.monthly_cash_opex * covenants.min_cash_months.threshold


def covenant_df(records: list[CovenantRecord], covenants: DebtProtectionCovenants) -> pd.DataFrame:
    """Covenant headroom table, one row per year."""
    rows = []
    for r in records:
        row = {"Year": r.year}
        for key, (attr, _direction) in _TESTS.items():
            cov   = getattr(covenants, key)
            label = key.replace("_", " ").title()
            row[f"{label}"]           = round(getattr(r, attr), 2)
            row[f"{label} Covenant"]  = cov.threshold if cov.enabled else None
            row[f"{label} Headroom"]  = round(r.headroom[key], 2) if key in r.headroom else None
        row["In Compliance"] = "YES" if r.all_compliant else "NO"
        rows.append(row)
    return pd.DataFrame(rows)
