"""
debt_schedule.py
----------------
Builds the full debt schedule for all tranches across the planning horizon.

Key mechanics:
  - Every (tranche × year) cell is computed exactly once via
    amortization.amortize; no balance math lives here
  - Per-tranche rows are kept for disclosure tables
  - Rows are summed into one consolidated position per year
  - New borrowings are recorded in the year a tranche enters (cash in)

Returns a DebtSchedule holding rows + positions, plus pandas summary tables.
"""

import logging
from dataclasses import dataclass, field

import pandas as pd

from lbo_projection.model.amortization import amortize
from lbo_projection.model.assumptions import FinancingTranche

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DebtScheduleRow:
    tranche: str
    year: int
    beginning_balance: float
    interest_expense: float
    principal_repayment: float
    ending_balance: float
    new_borrowing: float = 0.0


@dataclass(frozen=True)
class DebtPosition:
    """Consolidated debt across all tranches for one year."""
    year: int
    beginning_balance: float = 0.0
    interest_expense: float = 0.0
    principal_repayment: float = 0.0
    ending_balance: float = 0.0
    new_borrowing: float = 0.0

    @property
    def debt_service(self) -> float:
        return self.interest_expense + self.principal_repayment


@dataclass(frozen=True)
class DebtSchedule:
    rows: list[DebtScheduleRow] = field(default_factory=list)
    positions: list[DebtPosition] = field(default_factory=list)   # index = year

    def position(self, year: int) -> DebtPosition:
        return self.positions[year]

    def rows_for(self, tranche: str) -> list[DebtScheduleRow]:
        return [r for r in self.rows if r.tranche == tranche]

    def summary_df(self) -> pd.DataFrame:
        """Year-by-year consolidated schedule."""
        records = []
        for p in self.positions:
            row = {
                "Year":                p.year,
                "Beginning Balance":   round(p.beginning_balance, 1),
                "New Borrowing":       round(p.new_borrowing, 1),
                "Interest Expense":    round(p.interest_expense, 1),
                "Principal Repayment": round(p.principal_repayment, 1),
                "Ending Balance":      round(p.ending_balance, 1),
            }
            # Per-tranche ending balances
            for r in self.rows:
                if r.year == p.year:
                    row[f"{r.tranche} (End)"] = round(r.ending_balance, 1)
            records.append(row)
        return pd.DataFrame(records)

    def tranche_dfs(self) -> dict[str, pd.DataFrame]:
        """Per-tranche detail tables keyed by tranche name."""
        names = list(dict.fromkeys(r.tranche for r in self.rows))
        return {
            name: pd.DataFrame([{
                "Year":                r.year,
                "Beginning Balance":   round(r.beginning_balance, 1),
                "Interest Expense":    round(r.interest_expense, 1),
                "Principal Repayment": round(r.principal_repayment, 1),
                "Ending Balance":      round(r.ending_balance, 1),
            } for r in self.rows_for(name)])
            for name in names
        }


def build_debt_schedule(
    tranches: list[FinancingTranche],
    horizon: int,
    revolver_repayment_rate: float = 0.0,
) -> DebtSchedule:
    """
    Parameters
    ----------
    tranches                : financing plans (read-only)
    horizon                 : last projected year (schedule covers 0..horizon)
    revolver_repayment_rate : scenario-level annual paydown for revolvers

    Returns
    -------
    DebtSchedule with one row per (tranche, year) and one position per year.
    """
    rows: list[DebtScheduleRow] = []
    totals = {yr: dict(beginning=0.0, interest=0.0, principal=0.0, ending=0.0, new=0.0)
              for yr in range(horizon + 1)}

    for t in tranches:
        for yr in range(horizon + 1):
            pay = amortize(t, yr, revolver_repayment_rate)
            new = t.amount if yr == t.entry_year else 0.0
            rows.append(DebtScheduleRow(
                tranche             = t.name,
                year                = yr,
                beginning_balance   = pay.beginning_balance,
                interest_expense    = pay.interest_expense,
                principal_repayment = pay.principal_repayment,
                ending_balance      = pay.ending_balance,
                new_borrowing       = new,
            ))
            agg = totals[yr]
            agg["beginning"] += pay.beginning_balance
            agg["interest"]  += pay.interest_expense
            agg["principal"] += pay.principal_repayment
            agg["ending"]    += pay.ending_balance
            agg["new"]       += new

    positions = [
        DebtPosition(
            year                = yr,
            beginning_balance   = agg["beginning"],
            interest_expense    = agg["interest"],
            principal_repayment = agg["principal"],
            ending_balance      = agg["ending"],
            new_borrowing       = agg["new"],
        )
        for yr, agg in totals.items()
    ]
    logger.debug("Debt schedule built: %d tranches × %d years", len(tranches), horizon + 1)
    return DebtSchedule(rows=rows, positions=positions)


def get_interest_expense_by_year(schedule: DebtSchedule) -> list[float]:
    """Extract total interest expense list from the schedule."""
    return [p.interest_expense for p in schedule.positions]


def get_ending_debt_by_year(schedule: DebtSchedule) -> list[float]:
    """Extract ending total debt by year."""
    return [p.ending_balance for p in schedule.positions]


def get_principal_by_year(schedule: DebtSchedule) -> list[float]:
    return [p.principal_repayment for p in schedule.positions]


def sources_uses_df(inputs) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Build Sources & Uses tables for the closing (year-0) transaction."""
    deal = inputs.deal_design

    sources = [
        {"Item": f"{t.name} ({t.interest_rate:.2%}, {t.repayment_method})", "Amount": t.amount}
        for t in deal.financing_plans if t.entry_year == 0
    ]
    sources += [
        {"Item": f"{e.name} ({e.equity_type})", "Amount": e.amount}
        for e in deal.equity_injections if e.entry_year == 0
    ]
    uses = [
        {"Item": "Purchase Price (EV)", "Amount": inputs.purchase_price},
        {"Item": "Transaction Fees",    "Amount": inputs.transaction_fees},
    ]
    total_sources = sum(s["Amount"] for s in sources)
    total_uses    = sum(u["Amount"] for u in uses)
    uses.append({"Item": "Cash to Balance Sheet", "Amount": total_sources - total_uses})

    for rows, total in ((sources, total_sources), (uses, total_sources)):
        for r in rows:
            r["% of Total"] = f"{r['Amount'] / total:.1%}" if total else "—"

    sources_df = pd.concat([
        pd.DataFrame(sources),
        pd.DataFrame([{"Item": "Total Sources", "Amount": round(total_sources, 1), "% of Total": "100.0%"}]),
    ], ignore_index=True)
    uses_df = pd.concat([
        pd.DataFrame(uses),
        pd.DataFrame([{"Item": "Total Uses", "Amount": round(total_sources, 1), "% of Total": "100.0%"}]),
    ], ignore_index=True)
    return sources_df, uses_df
