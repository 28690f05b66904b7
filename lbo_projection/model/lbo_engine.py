"""
lbo_engine.py
-------------
Master orchestrator: runs the full projection for one LBOInputs and
returns every output in a single ModelResult.

Pipeline (strict order, nothing fused):
  1. Input validation                  → errors abort the run
  2. Debt schedule (tranche × year)    → built once, read by every stage
  3. For each year 0..N, YEAR_STAGES:
       income → balance sheet → cash flow → covenants → dividends → close
  4. KPI calculation
  5. Result validation                 → consistency issues

Covenants are tested on the pre-distribution statements of a year;
distributions then reduce that same year's ending cash.  Closing a year
builds new records (dataclasses.replace), earlier records are never
mutated.

run_model never raises for bad input: errors are returned on the result.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

import pandas as pd

from lbo_projection.errors import ComputationWarning, ConsistencyError, InputValidationError
from lbo_projection.model.assumptions import EngineConfig, LBOInputs
from lbo_projection.model.balance_sheet import (
    BalanceSheetRecord,
    balance_sheet_df,
    project_balance_sheet,
    with_cash,
)
from lbo_projection.model.cash_flow import (
    CashFlowRecord,
    cash_flow_df,
    close_cash_flow,
    project_cash_flow,
)
from lbo_projection.model.covenants import (
    CovenantRecord,
    covenant_df,
    evaluate_covenants,
    minimum_cash_reserve,
)
from lbo_projection.model.debt_schedule import DebtPosition, DebtSchedule, build_debt_schedule
from lbo_projection.model.dividends import (
    DistributionRecord,
    distribute,
    distributions_df,
    preferred_issued_by,
)
from lbo_projection.model.income_statement import (
    IncomeStatementRecord,
    income_statement_df,
    project_income_statement,
)
from lbo_projection.model.returns import KPIMetrics, calculate_kpis
from lbo_projection.model.validation import check_consistency, validate_inputs
from lbo_projection.utils.formatting import (
    fmt_amount,
    fmt_irr,
    fmt_moic,
    fmt_multiple,
    fmt_years,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result container
# ---------------------------------------------------------------------------

@dataclass
class ModelResult:
    inputs: Optional[LBOInputs] = None
    income_statement: list[IncomeStatementRecord] = field(default_factory=list)
    balance_sheet: list[BalanceSheetRecord] = field(default_factory=list)
    cash_flow: list[CashFlowRecord] = field(default_factory=list)
    debt_schedule: Optional[DebtSchedule] = None
    covenants: list[CovenantRecord] = field(default_factory=list)
    distributions: list[DistributionRecord] = field(default_factory=list)
    kpi_metrics: Optional[KPIMetrics] = None
    errors: list[str] = field(default_factory=list)
    warnings: list[ComputationWarning] = field(default_factory=list)
    consistency_issues: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def raise_for_consistency(self):
        if self.consistency_issues:
            raise ConsistencyError(self.consistency_issues)

    # ---- pandas views ----
    def income_statement_df(self) -> pd.DataFrame:
        return income_statement_df(self.income_statement)

    def balance_sheet_df(self) -> pd.DataFrame:
        return balance_sheet_df(self.balance_sheet)

    def cash_flow_df(self) -> pd.DataFrame:
        return cash_flow_df(self.cash_flow)

    def covenant_df(self) -> pd.DataFrame:
        return covenant_df(self.covenants, self.inputs.deal_design.dividend_policy.covenants)

    def distributions_df(self) -> pd.DataFrame:
        return distributions_df(self.distributions)

    def debt_summary_df(self) -> pd.DataFrame:
        return self.debt_schedule.summary_df() if self.debt_schedule else pd.DataFrame()

    def summary(self) -> dict:
        """Headline figures, formatted for display."""
        if not self.is_valid or self.kpi_metrics is None:
            return {"Errors": "; ".join(self.errors)}
        k = self.kpi_metrics
        a = self.inputs.assumptions
        return {
            "Entry EV":           fmt_amount(self.inputs.purchase_price),
            "Entry EV/EBITDA":    fmt_multiple(a.entry_ev_multiple, 1),
            "Equity Invested":    fmt_amount(k.equity_invested),
            "Exit EBITDA":        fmt_amount(k.exit_ebitda),
            "Exit EV":            fmt_amount(k.exit_ev),
            "Exit EV/EBITDA":     fmt_multiple(a.exit_ev_multiple, 1),
            "Exit Net Debt":      fmt_amount(k.exit_net_debt),
            "Exit Equity":        fmt_amount(k.exit_equity),
            "IRR":                fmt_irr(k.irr),
            "MOIC":               fmt_moic(k.moic),
            "Payback Period":     fmt_years(k.payback_period),
            "Hold Period":        f"{self.inputs.planning_horizon} years",
            "Warnings":           len(self.warnings),
        }


# ---------------------------------------------------------------------------
# Year pipeline
# ---------------------------------------------------------------------------

@dataclass
class _RunState:
    inputs: LBOInputs
    config: EngineConfig
    schedule: DebtSchedule
    income: list = field(default_factory=list)
    balance: list = field(default_factory=list)
    cash_flow: list = field(default_factory=list)
    covenants: list = field(default_factory=list)
    distributions: list = field(default_factory=list)
    warnings: list = field(default_factory=list)
    carried: float = 0.0          # unused pool carried forward
    redeemed: float = 0.0         # cumulative preferred redemptions

    def warn(self, code: str, message: str, year: Optional[int] = None):
        w = ComputationWarning(code, message, year)
        logger.warning("%s", w)
        self.warnings.append(w)


@dataclass
class _Year:
    year: int
    debt: DebtPosition
    income: Optional[IncomeStatementRecord] = None
    balance: Optional[BalanceSheetRecord] = None
    cash_flow: Optional[CashFlowRecord] = None
    covenants: Optional[CovenantRecord] = None
    distribution: Optional[DistributionRecord] = None


def _last(records: list):
    return records[-1] if records else None


def _income_stage(state: _RunState, yr: _Year):
    yr.income = project_income_statement(yr.year, state.inputs, _last(state.income), yr.debt)


def _balance_sheet_stage(state: _RunState, yr: _Year):
    prior = _last(state.balance)
    yr.balance = project_balance_sheet(
        yr.year, state.inputs, yr.income, prior, _last(state.income), yr.debt,
        cash=prior.cash if prior is not None else 0.0,
    )


def _cash_flow_stage(state: _RunState, yr: _Year):
    yr.cash_flow = project_cash_flow(
        yr.year, state.inputs, yr.income, yr.balance,
        _last(state.balance), _last(state.cash_flow), yr.debt,
    )
    yr.balance = with_cash(yr.balance, yr.cash_flow.ending_cash)
    if yr.year == 0 and yr.cash_flow.ending_cash < -state.config.tolerance:
        state.warn("funding_shortfall",
                   f"Sources fall short of uses at close by {fmt_amount(-yr.cash_flow.ending_cash)}",
                   yr.year)


def _covenant_stage(state: _RunState, yr: _Year):
    covenants = state.inputs.deal_design.dividend_policy.covenants
    yr.covenants = evaluate_covenants(yr.year, yr.income, yr.balance, yr.debt, covenants)
    if yr.year == 0:
        return
    if not yr.covenants.all_compliant:
        state.warn("covenant_breach",
                   f"Covenant breach ({', '.join(yr.covenants.failed)}); distributions suspended",
                   yr.year)
    coverage = yr.covenants.interest_coverage
    if (yr.debt.interest_expense > 0 and coverage < state.config.healthy_interest_coverage
            and "interest_coverage" not in yr.covenants.failed):
        state.warn("low_interest_coverage",
                   f"Interest coverage {fmt_multiple(coverage)} is below "
                   f"{fmt_multiple(state.config.healthy_interest_coverage)}",
                   yr.year)


def _dividend_stage(state: _RunState, yr: _Year):
    if yr.year == 0:
        yr.distribution = DistributionRecord(year=0, reason="Closing year")
        return
    deal     = state.inputs.deal_design
    policy   = deal.dividend_policy
    reserve  = minimum_cash_reserve(yr.covenants, policy.covenants)
    pref_out = max(0.0, preferred_issued_by(deal.equity_injections, yr.year) - state.redeemed)
    yr.distribution = distribute(
        year                  = yr.year,
        policy                = policy,
        all_compliant         = yr.covenants.all_compliant,
        failed                = yr.covenants.failed,
        ending_cash           = yr.cash_flow.ending_cash,
        minimum_cash_reserve  = reserve,
        ebitda                = yr.income.ebitda,
        fcff                  = yr.cash_flow.fcff,
        net_leverage          = yr.covenants.net_leverage,
        preferred_outstanding = pref_out,
        preferred_rate        = deal.preferred_dividend_rate,
        carried_in            = state.carried,
    )
    state.carried   = yr.distribution.carried_out
    state.redeemed += yr.distribution.preferred_redemption


def _close_stage(state: _RunState, yr: _Year):
    cf = close_cash_flow(yr.cash_flow, yr.distribution.total_distributed)
    bs = with_cash(yr.balance, cf.ending_cash)
    if yr.year > 0 and cf.ending_cash < -state.config.tolerance:
        state.warn("negative_cash", f"Ending cash is negative ({fmt_amount(cf.ending_cash)})", yr.year)

    state.income.append(yr.income)
    state.balance.append(bs)
    state.cash_flow.append(cf)
    state.covenants.append(yr.covenants)
    state.distributions.append(yr.distribution)


YEAR_STAGES: tuple[Callable[[_RunState, _Year], None], ...] = (
    _income_stage,
    _balance_sheet_stage,
    _cash_flow_stage,
    _covenant_stage,
    _dividend_stage,
    _close_stage,
)


# ---------------------------------------------------------------------------
# Main model run
# ---------------------------------------------------------------------------

def run_model(inputs: LBOInputs, config: Optional[EngineConfig] = None) -> ModelResult:
    """
    Run the full projection.

    Returns
    -------
    ModelResult.  On invalid input only `errors` (and `warnings`) are set
    and every statement list is empty.

    Raises
    ------
    ConsistencyError only when config.strict is set and the statements do
    not tie out.
    """
    config = config or EngineConfig()

    # ---- INPUT VALIDATION ----
    check = validate_inputs(inputs)
    if not check.is_valid:
        logger.warning("Input validation failed: %s", "; ".join(check.errors))
        return ModelResult(inputs=inputs, errors=list(check.errors), warnings=list(check.warnings))

    n = inputs.planning_horizon
    a = inputs.assumptions

    # ---- DEBT SCHEDULE (computed once) ----
    schedule = build_debt_schedule(inputs.deal_design.financing_plans, n, a.revolver_repayment_rate)

    state = _RunState(inputs=inputs, config=config, schedule=schedule,
                      warnings=list(check.warnings))
    try:
        for year in range(n + 1):
            yr = _Year(year=year, debt=schedule.position(year))
            for stage in YEAR_STAGES:
                stage(state, yr)
            logger.debug("Year %d closed: ending cash %s", year, fmt_amount(state.cash_flow[-1].ending_cash))
    except InputValidationError as exc:
        logger.warning("Projection aborted: %s", exc)
        return ModelResult(inputs=inputs, errors=exc.messages, warnings=state.warnings)

    # ---- KPIs ----
    kpis = calculate_kpis(inputs, state.income, state.balance, state.distributions)
    if kpis.ownership_share <= 0:
        state.warn("zero_ownership",
                   "Equity ownership totals 0%: exit proceeds are not attributed to investors")

    result = ModelResult(
        inputs           = inputs,
        income_statement = state.income,
        balance_sheet    = state.balance,
        cash_flow        = state.cash_flow,
        debt_schedule    = schedule,
        covenants        = state.covenants,
        distributions    = state.distributions,
        kpi_metrics      = kpis,
        warnings         = state.warnings,
    )

    # ---- RESULT VALIDATION ----
    result.consistency_issues = check_consistency(
        inputs, state.income, state.balance, state.cash_flow, schedule, config.tolerance)
    for issue in result.consistency_issues:
        logger.error("Consistency check failed: %s", issue)
    if config.strict:
        result.raise_for_consistency()
    return result
