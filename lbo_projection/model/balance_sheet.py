"""
balance_sheet.py
----------------
Builds the Balance Sheet for year 0 (post-close) and each projected year.

Balance sheet identity enforced: Assets = Liabilities + Equity.
Equity is the plug (Total Assets − Total Liabilities) and is never computed
independently; the equity roll-forward is checked later in validation.

Opening (year 0) construction:
  Working capital   : target actuals, day-count fallback when not supplied
  Fixed assets      : PP&E, or year-0 capex × fixed-assets-to-capex multiple
  Goodwill          : max(0, purchase price − target book equity), held flat
  Debt              : year-0 ending balance of the debt schedule

Projected years:
  AR        : revenue / 365 × AR days
  Inventory : COGS    / 365 × inventory days
  AP        : COGS    / 365 × AP days
  Other CL  : prior × revenue growth factor
  Fixed assets: prior + capex − D&A
  Cash      : supplied by the cash flow statement (see with_cash)
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional

import pandas as pd

from lbo_projection.model.assumptions import DAYS_IN_YEAR, LBOInputs
from lbo_projection.model.debt_schedule import DebtPosition
from lbo_projection.model.income_statement import IncomeStatementRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BalanceSheetRecord:
    year: int
    cash: float
    accounts_receivable: float
    inventory: float
    fixed_assets: float
    goodwill: float
    accounts_payable: float
    other_current_liabilities: float
    total_debt: float
    total_assets: float = 0.0
    total_liabilities: float = 0.0
    equity: float = 0.0              # plug

    @property
    def total_liabilities_equity(self) -> float:
        return self.total_liabilities + self.equity

    @property
    def net_working_capital(self) -> float:
        return (self.accounts_receivable + self.inventory
                - self.accounts_payable - self.other_current_liabilities)

    @property
    def net_debt(self) -> float:
        return self.total_debt - self.cash


def _plugged(bs: BalanceSheetRecord) -> BalanceSheetRecord:
    total_assets = (bs.cash + bs.accounts_receivable + bs.inventory
                    + bs.fixed_assets + bs.goodwill)
    total_liab   = bs.accounts_payable + bs.other_current_liabilities + bs.total_debt
    return replace(
        bs,
        total_assets      = total_assets,
        total_liabilities = total_liab,
        equity            = total_assets - total_liab,
    )


def with_cash(bs: BalanceSheetRecord, cash: float) -> BalanceSheetRecord:
    """New record with `cash` replaced and totals / equity re-plugged."""
    return _plugged(replace(bs, cash=cash))


def _days(base: float, days: float) -> float:
    return base / DAYS_IN_YEAR * days if base > 0 else 0.0


def _actual(value: Optional[float], estimate: float) -> float:
    return estimate if value is None else value


def opening_goodwill(inputs: LBOInputs) -> float:
    return max(0.0, inputs.purchase_price - inputs.business_metrics.shareholders_equity)


def project_balance_sheet(
    year: int,
    inputs: LBOInputs,
    income: IncomeStatementRecord,
    prior: Optional[BalanceSheetRecord],
    prior_income: Optional[IncomeStatementRecord],
    debt: DebtPosition,
    cash: float,
) -> BalanceSheetRecord:
    """
    Balance sheet for one year.  `cash` is provisional until the cash flow
    statement for the year is known; callers re-plug via `with_cash`.
    """
    a  = inputs.assumptions
    bm = inputs.business_metrics

    if year == 0 or prior is None:
        receivables = _actual(bm.accounts_receivable, _days(income.revenue, a.ar_days))
        inventory   = _actual(bm.inventory, _days(income.cogs, a.inventory_days))
        payables    = _actual(bm.accounts_payable, _days(income.cogs, a.ap_days))
        other_cl    = bm.other_current_liabilities
        fixed       = _actual(bm.property_plant_equipment,
                              income.capex * a.fixed_assets_to_capex_multiple)
        goodwill    = opening_goodwill(inputs)
    else:
        receivables = _days(income.revenue, a.ar_days)
        inventory   = _days(income.cogs, a.inventory_days)
        payables    = _days(income.cogs, a.ap_days)
        growth_factor = (income.revenue / prior_income.revenue
                         if prior_income is not None and prior_income.revenue else 1.0)
        other_cl    = prior.other_current_liabilities * growth_factor
        fixed       = prior.fixed_assets + income.capex - income.depreciation_amortization
        goodwill    = prior.goodwill

    return _plugged(BalanceSheetRecord(
        year                      = year,
        cash                      = cash,
        accounts_receivable       = receivables,
        inventory                 = inventory,
        fixed_assets              = fixed,
        goodwill                  = goodwill,
        accounts_payable          = payables,
        other_current_liabilities = other_cl,
        total_debt                = debt.ending_balance,
    ))


def balance_sheet_df(records: list[BalanceSheetRecord]) -> pd.DataFrame:
    """Wide DataFrame (cols = Year 0..N, index = line items)."""
    data = {}
    for r in records:
        data[f"Year {r.year}"] = {
            "Cash & Equivalents":        round(r.cash, 1),
            "Accounts Receivable":       round(r.accounts_receivable, 1),
            "Inventory":                 round(r.inventory, 1),
            "Fixed Assets (net)":        round(r.fixed_assets, 1),
            "Goodwill":                  round(r.goodwill, 1),
            "Total Assets":              round(r.total_assets, 1),
            "Accounts Payable":          round(r.accounts_payable, 1),
            "Other Current Liabilities": round(r.other_current_liabilities, 1),
            "Total Debt":                round(r.total_debt, 1),
            "Total Liabilities":         round(r.total_liabilities, 1),
            "Total Equity":              round(r.equity, 1),
            "Total L+E":                 round(r.total_liabilities_equity, 1),
            "BS Check (Assets - L+E)":   round(r.total_assets - r.total_liabilities_equity, 2),
        }
    return pd.DataFrame(data)
