"""
cash_flow.py
------------
Derives the Cash Flow Statement from the Income Statement, the change in
balance-sheet working capital, and the debt schedule.

Structure (projected years):
  Operating Cash Flow
    EBITDA
    − Cash Taxes
    − Increase in Net Working Capital
  Investing Cash Flow
    − Capital Expenditures
  Financing Cash Flow
    + New Debt / New Equity entering this year
    − Principal Repayment
    − Interest Paid
    − Distributions (waterfall)
  Net Change in Cash
  Ending Cash Balance

Year 0 is the closing transaction: beginning cash 0, investing outflow
= purchase price + transaction fee, financing = debt and equity funded at
close.

Distributions are not known when the statement is first built (they
depend on covenants tested on pre-distribution cash); `close_cash_flow`
produces the final record.
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional

import pandas as pd

from lbo_projection.model.assumptions import LBOInputs
from lbo_projection.model.balance_sheet import BalanceSheetRecord
from lbo_projection.model.debt_schedule import DebtPosition
from lbo_projection.model.income_statement import IncomeStatementRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CashFlowRecord:
    year: int
    beginning_cash: float
    ebitda: float = 0.0
    cash_taxes: float = 0.0
    nwc_change: float = 0.0                 # increase = cash outflow
    operating_cash_flow: float = 0.0
    capex: float = 0.0
    acquisition_payment: float = 0.0
    transaction_fee_paid: float = 0.0
    investing_cash_flow: float = 0.0
    new_debt: float = 0.0
    new_equity: float = 0.0
    principal_repayment: float = 0.0
    interest_paid: float = 0.0
    distributions: float = 0.0
    financing_cash_flow: float = 0.0
    net_change_in_cash: float = 0.0
    ending_cash: float = 0.0

    @property
    def fcff(self) -> float:
        """Unlevered free cash flow: OCF − capex."""
        return self.operating_cash_flow - self.capex

    @property
    def pre_distribution_cash(self) -> float:
        return self.ending_cash + self.distributions


def new_equity_in_year(inputs: LBOInputs, year: int) -> float:
    return sum(e.amount for e in inputs.deal_design.equity_injections if e.entry_year == year)


def project_cash_flow(
    year: int,
    inputs: LBOInputs,
    income: IncomeStatementRecord,
    balance: BalanceSheetRecord,
    prior_balance: Optional[BalanceSheetRecord],
    prior_cash: Optional["CashFlowRecord"],
    debt: DebtPosition,
) -> CashFlowRecord:
    """Pre-distribution cash flow statement for one year."""
    beginning  = prior_cash.ending_cash if prior_cash is not None else 0.0
    new_equity = new_equity_in_year(inputs, year)

    if year == 0 or prior_balance is None:
        acquisition = inputs.purchase_price
        fee         = inputs.transaction_fees
        investing   = -(acquisition + fee)
        financing   = debt.new_borrowing + new_equity - debt.principal_repayment - debt.interest_expense
        net_change  = investing + financing
        return CashFlowRecord(
            year                 = year,
            beginning_cash       = beginning,
            acquisition_payment  = acquisition,
            transaction_fee_paid = fee,
            investing_cash_flow  = investing,
            new_debt             = debt.new_borrowing,
            new_equity           = new_equity,
            principal_repayment  = debt.principal_repayment,
            interest_paid        = debt.interest_expense,
            financing_cash_flow  = financing,
            net_change_in_cash   = net_change,
            ending_cash          = beginning + net_change,
        )

    # --- Operating ---
    nwc_change = balance.net_working_capital - prior_balance.net_working_capital
    ocf        = income.ebitda - income.taxes - nwc_change

    # --- Investing ---
    investing = -income.capex

    # --- Financing ---
    financing = (debt.new_borrowing + new_equity
                 - debt.principal_repayment - debt.interest_expense)

    net_change = ocf + investing + financing
    return CashFlowRecord(
        year                = year,
        beginning_cash      = beginning,
        ebitda              = income.ebitda,
        cash_taxes          = income.taxes,
        nwc_change          = nwc_change,
        operating_cash_flow = ocf,
        capex               = income.capex,
        investing_cash_flow = investing,
        new_debt            = debt.new_borrowing,
        new_equity          = new_equity,
        principal_repayment = debt.principal_repayment,
        interest_paid       = debt.interest_expense,
        financing_cash_flow = financing,
        net_change_in_cash  = net_change,
        ending_cash         = beginning + net_change,
    )


def close_cash_flow(cf: CashFlowRecord, distributions: float) -> CashFlowRecord:
    """Final record for the year with waterfall distributions paid out."""
    if not distributions:
        return cf
    return replace(
        cf,
        distributions       = cf.distributions + distributions,
        financing_cash_flow = cf.financing_cash_flow - distributions,
        net_change_in_cash  = cf.net_change_in_cash - distributions,
        ending_cash         = cf.ending_cash - distributions,
    )


def cash_flow_df(records: list[CashFlowRecord]) -> pd.DataFrame:
    """Wide DataFrame (one column per year, index = CFS line items)."""
    data = {}
    for r in records:
        data[f"Year {r.year}"] = {
            "Beginning Cash":       r.beginning_cash,
            "EBITDA":               r.ebitda,
            "(-) Cash Taxes":       -r.cash_taxes,
            "Δ NWC":                -r.nwc_change,
            "Operating CF":         r.operating_cash_flow,
            "(-) CapEx":            -r.capex,
            "(-) Acquisition":      -r.acquisition_payment,
            "(-) Transaction Fees": -r.transaction_fee_paid,
            "Investing CF":         r.investing_cash_flow,
            "(+) New Debt":         r.new_debt,
            "(+) New Equity":       r.new_equity,
            "(-) Debt Repaid":      -r.principal_repayment,
            "(-) Interest Paid":    -r.interest_paid,
            "(-) Distributions":    -r.distributions,
            "Financing CF":         r.financing_cash_flow,
            "Net Change in Cash":   r.net_change_in_cash,
            "Ending Cash":          r.ending_cash,
            "Free Cash Flow":       r.fcff,
        }
    return pd.DataFrame(data).round(1)
