"""
income_statement.py
-------------------
Projects the Income Statement for each year 0..N.

Revenue drivers → Gross Profit → EBITDA → EBIT → EBT → Net Income

Notes:
  - Year 0 reports the target's actuals (COGS / OPEX fall back to the
    scenario ratios when not supplied); later years grow revenue at the
    scenario growth rate.
  - EBITDA is always Revenue − COGS − OPEX, never an input.
  - D&A is tied to capex (depreciation_to_capex_ratio × capex).
  - Interest expense comes from the consolidated debt schedule, so the
    debt → income ordering has no circularity.
  - Taxes are cash taxes on positive pre-tax income only.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Optional

import pandas as pd

from lbo_projection.errors import InputValidationError
from lbo_projection.model.assumptions import LBOInputs
from lbo_projection.model.debt_schedule import DebtPosition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IncomeStatementRecord:
    year: int
    revenue: float
    cogs: float
    operating_expenses: float
    gross_profit: float
    ebitda: float
    capex: float
    depreciation_amortization: float
    ebit: float
    interest_expense: float
    pre_tax_income: float
    taxes: float
    net_income: float

    @property
    def ebitda_margin(self) -> float:
        return self.ebitda / self.revenue if self.revenue else 0.0

    @property
    def cash_operating_expenses(self) -> float:
        """COGS + OPEX, i.e. everything above EBITDA excluding D&A."""
        return max(0.0, self.revenue - self.ebitda)


def _required(value: Optional[float], label: str) -> float:
    if value is None:
        raise InputValidationError([f"Business metrics: {label} is required"])
    return value


def project_income_statement(
    year: int,
    inputs: LBOInputs,
    prior: Optional[IncomeStatementRecord],
    debt: DebtPosition,
) -> IncomeStatementRecord:
    """
    One year of the income statement.

    Parameters
    ----------
    year   : 0 for the closing-year actuals, 1..N for projections
    inputs : full run inputs (read-only)
    prior  : previous year's record (None for year 0)
    debt   : consolidated debt position for `year`
    """
    a  = inputs.assumptions
    bm = inputs.business_metrics

    # --- Revenue ---
    if year == 0:
        revenue = _required(bm.revenue, "revenue")
        _required(bm.ebitda, "EBITDA")
        cogs = bm.cogs if bm.cogs is not None else revenue * a.cogs_pct_revenue
        opex = (bm.operating_expenses if bm.operating_expenses is not None
                else revenue * a.opex_pct_revenue)
    else:
        if prior is None:
            raise InputValidationError([f"Year {year}: prior-year income statement missing"])
        revenue = prior.revenue * (1 + a.revenue_growth_rate)
        cogs    = revenue * a.cogs_pct_revenue
        opex    = revenue * a.opex_pct_revenue

    gross_profit = revenue - cogs
    ebitda       = gross_profit - opex

    # --- D&A (tied to capex) ---
    capex = revenue * a.capex_pct_revenue
    if year == 0 and bm.depreciation_amortization:
        da = bm.depreciation_amortization
    else:
        da = capex * a.depreciation_to_capex_ratio
    ebit = ebitda - da

    # --- Interest ---
    interest = bm.interest_expense if year == 0 else debt.interest_expense

    # --- EBT and Taxes ---
    ebt = ebit - interest
    if year == 0 and bm.tax_expense:
        tax = bm.tax_expense
    else:
        tax = max(0.0, ebt * a.tax_rate)

    return IncomeStatementRecord(
        year                      = year,
        revenue                   = revenue,
        cogs                      = cogs,
        operating_expenses        = opex,
        gross_profit              = gross_profit,
        ebitda                    = ebitda,
        capex                     = capex,
        depreciation_amortization = da,
        ebit                      = ebit,
        interest_expense          = interest,
        pre_tax_income            = ebt,
        taxes                     = tax,
        net_income                = ebt - tax,
    )


# Presentation row labels, in display order
_IS_ROWS = [
    ("Revenue",          "revenue"),
    ("COGS",             "cogs"),
    ("Gross Profit",     "gross_profit"),
    ("OPEX",             "operating_expenses"),
    ("EBITDA",           "ebitda"),
    ("D&A",              "depreciation_amortization"),
    ("EBIT",             "ebit"),
    ("Interest Expense", "interest_expense"),
    ("EBT",              "pre_tax_income"),
    ("Tax",              "taxes"),
    ("Net Income",       "net_income"),
]


def income_statement_df(records: list[IncomeStatementRecord]) -> pd.DataFrame:
    """
    Wide DataFrame with one column per year.
    Index = line item labels; EBITDA Margin kept unrounded.
    """
    data = {}
    for r in records:
        values = asdict(r)
        col = {label: round(values[key], 1) for label, key in _IS_ROWS}
        col["EBITDA Margin"] = r.ebitda_margin
        data[f"Year {r.year}"] = col
    return pd.DataFrame(data)
