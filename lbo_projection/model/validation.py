"""
validation.py
-------------
Two gates around the pipeline:

  validate_inputs    : before any statement is computed.  Missing or
                       out-of-range fields become error messages; unusual
                       but legal inputs become warnings.
  check_consistency  : after the run.  Balance-sheet identity, cash
                       continuity, equity roll-forward, amortization
                       completeness and finite outputs.  Any issue here is
                       an engine defect, not a user-input problem.
"""

import logging
import math
from dataclasses import dataclass, field, fields

from lbo_projection.errors import ComputationWarning, InputValidationError
from lbo_projection.model.amortization import final_repayment_year
from lbo_projection.model.assumptions import (
    CONSISTENCY_TOLERANCE,
    MAX_PLANNING_HORIZON,
    CalculationMode,
    ClaimBasis,
    ClaimType,
    EntryTiming,
    LBOInputs,
    RepaymentMethod,
)

logger = logging.getLogger(__name__)

# Range checks (inclusive): field → (low, high, label)
ASSUMPTION_RANGES = {
    "revenue_growth_rate":            (-0.5, 1.0,  "Revenue growth rate"),
    "cogs_pct_revenue":               (0.0,  1.0,  "COGS % of revenue"),
    "opex_pct_revenue":               (0.0,  1.0,  "OPEX % of revenue"),
    "capex_pct_revenue":              (0.0,  1.0,  "Capex % of revenue"),
    "tax_rate":                       (0.0,  1.0,  "Tax rate"),
    "depreciation_to_capex_ratio":    (0.0,  1.0,  "D&A / capex ratio"),
    "fixed_assets_to_capex_multiple": (1.0,  50.0, "Fixed assets / capex multiple"),
    "revolver_repayment_rate":        (0.0,  1.0,  "Revolver repayment rate"),
    "ar_days":                        (0.0,  365.0, "AR days"),
    "inventory_days":                 (0.0,  365.0, "Inventory days"),
    "ap_days":                        (0.0,  365.0, "AP days"),
}
MAX_EV_MULTIPLE      = 50.0
MAX_TRANSACTION_FEE  = 0.10
MAX_TRANCHE_RATE     = 0.50
MAX_TRANCHE_MATURITY = 30

# Warning thresholds
LOW_EBITDA_MARGIN     = 0.05
HIGH_TRANSACTION_FEE  = 0.05
HIGH_DEBT_TO_EQUITY   = 10.0


@dataclass
class ValidationResult:
    errors: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _enum_ok(enum_cls, value) -> bool:
    try:
        enum_cls(value)
    except ValueError:
        return False
    return True


# Business metrics that may be None (estimated from assumptions instead)
OPTIONAL_METRICS = frozenset({
    "cogs", "operating_expenses", "accounts_receivable", "inventory",
    "property_plant_equipment", "accounts_payable",
})


def _validate_business_metrics(inputs: LBOInputs, errors: list):
    bm = inputs.business_metrics
    if bm is None:
        errors.append("Business metrics are missing")
        return
    for name, label in (("revenue", "Revenue"), ("ebitda", "EBITDA")):
        value = getattr(bm, name)
        if value is None:
            errors.append(f"{label} is required")
        elif not _is_number(value):
            errors.append(f"{label} must be a finite number")
        elif value <= 0:
            errors.append(f"{label} must be greater than 0")
    for f in fields(bm):
        if f.name in ("revenue", "ebitda"):
            continue
        value = getattr(bm, f.name)
        if value is None:
            if f.name not in OPTIONAL_METRICS:
                errors.append(f"Business metric {f.name} is not set")
        elif not _is_number(value):
            errors.append(f"Business metric {f.name} must be a finite number")


def _validate_assumptions(inputs: LBOInputs, errors: list):
    a = inputs.assumptions
    if a is None:
        errors.append("Scenario assumptions are missing")
        return
    for name, (low, high, label) in ASSUMPTION_RANGES.items():
        value = getattr(a, name)
        if value is None:
            errors.append(f"{label} is not set")
        elif not _is_number(value) or not low <= value <= high:
            errors.append(f"{label} must be between {low:g} and {high:g}")
    for name, label in (("entry_ev_multiple", "Entry EV/EBITDA multiple"),
                        ("exit_ev_multiple", "Exit EV/EBITDA multiple")):
        value = getattr(a, name)
        if not _is_number(value) or not 0 < value <= MAX_EV_MULTIPLE:
            errors.append(f"{label} must be between 0 and {MAX_EV_MULTIPLE:g}")
    if not _is_number(a.discount_rate) or a.discount_rate <= -1:
        errors.append("Discount rate must be greater than -100%")


def _validate_financing(inputs: LBOInputs, errors: list, warnings: list):
    horizon = inputs.planning_horizon
    names = [t.name for t in inputs.deal_design.financing_plans if t.name]
    for dup in sorted({n for n in names if names.count(n) > 1}):
        errors.append(f'Financing plan name "{dup}" is used more than once')
    for i, t in enumerate(inputs.deal_design.financing_plans, start=1):
        name = t.name or f"Financing plan {i}"
        if not t.name:
            errors.append(f"Financing plan {i} is missing a name")
        if not _is_number(t.amount) or t.amount <= 0:
            errors.append(f'Financing plan "{name}": amount must be greater than 0')
        if not _is_number(t.interest_rate) or not 0 <= t.interest_rate <= MAX_TRANCHE_RATE:
            errors.append(f'Financing plan "{name}": interest rate must be between 0% and 50%')
        if not _enum_ok(RepaymentMethod, t.repayment_method):
            errors.append(f'Financing plan "{name}": unknown repayment method {t.repayment_method!r}')
        elif not t.is_revolver and not (isinstance(t.maturity, int)
                                        and 1 <= t.maturity <= MAX_TRANCHE_MATURITY):
            errors.append(f'Financing plan "{name}": maturity must be between 1 and 30 years')
        if not _enum_ok(EntryTiming, t.entry_timing):
            errors.append(f'Financing plan "{name}": unknown entry timing {t.entry_timing!r}')
        if not isinstance(t.entry_year, int) or t.entry_year < 0:
            errors.append(f'Financing plan "{name}": entry year must be a non-negative integer')
        elif t.entry_year > horizon:
            warnings.append(ComputationWarning(
                "tranche_outside_horizon",
                f'Financing plan "{name}" enters after the planning horizon and is ignored'))


def _validate_equity(inputs: LBOInputs, errors: list):
    injections = inputs.deal_design.equity_injections
    if not injections:
        errors.append("At least one equity injection is required")
        return
    total_ownership = 0.0
    for i, e in enumerate(injections, start=1):
        name = e.name or f"Equity injection {i}"
        if not e.name:
            errors.append(f"Equity injection {i} is missing a name")
        if not _is_number(e.amount) or e.amount <= 0:
            errors.append(f'Equity injection "{name}": amount must be greater than 0')
        if not _is_number(e.ownership_pct) or not 0 <= e.ownership_pct <= 100:
            errors.append(f'Equity injection "{name}": ownership must be between 0% and 100%')
        else:
            total_ownership += e.ownership_pct
        if e.is_preferred and e.dividend_rate is None:
            errors.append(f'Equity injection "{name}": preferred equity requires a dividend rate')
        elif e.dividend_rate is not None and not _is_number(e.dividend_rate):
            errors.append(f'Equity injection "{name}": dividend rate must be a finite number')
        if not isinstance(e.entry_year, int) or e.entry_year < 0:
            errors.append(f'Equity injection "{name}": entry year must be a non-negative integer')
    if total_ownership > 100:
        errors.append(f"Total ownership {total_ownership:g}% exceeds 100%")


def _validate_dividend_policy(inputs: LBOInputs, errors: list):
    policy = inputs.deal_design.dividend_policy
    for key in ("dscr", "net_leverage", "interest_coverage", "min_cash_months"):
        cov = getattr(policy.covenants, key)
        if cov.enabled and (not _is_number(cov.threshold) or cov.threshold < 0):
            errors.append(f"Covenant {key}: threshold must be a non-negative number")
    for tier in policy.tiers:
        if not _is_number(tier.payout_ratio) or not 0 <= tier.payout_ratio <= 1:
            errors.append(f'Dividend tier "{tier.name}": payout ratio must be between 0% and 100%')
        for name in ("ebitda_threshold", "fcff_threshold", "leverage_threshold"):
            if not _is_number(getattr(tier, name)):
                errors.append(f'Dividend tier "{tier.name}": {name} must be a finite number')
    for rule in policy.waterfall_rules:
        label = f"Waterfall rule {rule.priority}"
        if not isinstance(rule.priority, int) or isinstance(rule.priority, bool):
            errors.append(f"{label}: priority must be an integer")
        if not _enum_ok(ClaimType, rule.claim_type):
            errors.append(f"{label}: unknown claim type {rule.claim_type!r}")
        if not _enum_ok(CalculationMode, rule.calculation):
            errors.append(f"{label}: unknown calculation mode {rule.calculation!r}")
        elif rule.calculation == CalculationMode.FIXED.value and rule.value is None:
            errors.append(f"{label}: fixed rules require a value")
        if rule.value is not None and not _is_number(rule.value):
            errors.append(f"{label}: value must be a finite number")
        if rule.basis is not None and not _enum_ok(ClaimBasis, rule.basis):
            errors.append(f"{label}: unknown basis {rule.basis!r}")


def validate_inputs(inputs: LBOInputs) -> ValidationResult:
    """Collect every input problem at once (never raises)."""
    result = ValidationResult()
    errors, warnings = result.errors, result.warnings

    horizon = inputs.planning_horizon
    if not isinstance(horizon, int) or not 1 <= horizon <= MAX_PLANNING_HORIZON:
        errors.append(f"Planning horizon must be between 1 and {MAX_PLANNING_HORIZON} years")
        return result

    _validate_business_metrics(inputs, errors)
    _validate_assumptions(inputs, errors)

    deal = inputs.deal_design
    if deal is None:
        errors.append("Deal design is missing")
        return result
    fee = deal.transaction_fee_pct
    if fee is None:
        errors.append("Transaction fee percentage is not set")
    elif not _is_number(fee) or not 0 <= fee <= MAX_TRANSACTION_FEE:
        errors.append("Transaction fee percentage must be between 0% and 10%")

    _validate_financing(inputs, errors, warnings)
    _validate_equity(inputs, errors)
    _validate_dividend_policy(inputs, errors)

    if errors:
        return result

    if deal.total_debt + deal.total_equity <= 0:
        errors.append("Total financing must be greater than 0")
        return result

    # ---- Warnings (legal but unusual) ----
    if inputs.assumptions.ebitda_margin < LOW_EBITDA_MARGIN:
        warnings.append(ComputationWarning(
            "low_ebitda_margin",
            f"EBITDA margin {inputs.assumptions.ebitda_margin:.1%} is below 5%"))
    if fee > HIGH_TRANSACTION_FEE:
        warnings.append(ComputationWarning(
            "high_transaction_fee", f"Transaction fee {fee:.1%} is unusually high"))
    if deal.total_debt > 0 and deal.total_equity > 0:
        ratio = deal.total_debt / deal.total_equity
        if ratio > HIGH_DEBT_TO_EQUITY:
            warnings.append(ComputationWarning(
                "high_debt_to_equity", f"Debt/equity of {ratio:.1f}:1 is very high"))
    return result


def require_valid(inputs: LBOInputs) -> ValidationResult:
    """validate_inputs, raising InputValidationError on any error."""
    result = validate_inputs(inputs)
    if not result.is_valid:
        raise InputValidationError(result.errors)
    return result


# ---------------------------------------------------------------------------
# Result validation
# ---------------------------------------------------------------------------

def check_consistency(
    inputs: LBOInputs,
    income: list,
    balance: list,
    cash_flow: list,
    debt_schedule,
    tolerance: float = CONSISTENCY_TOLERANCE,
) -> list[str]:
    """
    Returns a list of issue descriptions (empty when everything ties out).
    """
    issues = []

    for bs in balance:
        gap = bs.total_assets - bs.total_liabilities_equity
        if abs(gap) > tolerance:
            issues.append(f"Year {bs.year}: balance sheet off by {gap:,.2f}")

    for prev, cur in zip(cash_flow, cash_flow[1:]):
        if abs(cur.beginning_cash - prev.ending_cash) > tolerance:
            issues.append(
                f"Year {cur.year}: beginning cash {cur.beginning_cash:,.2f} "
                f"≠ prior ending cash {prev.ending_cash:,.2f}")

    for bs, cf in zip(balance, cash_flow):
        if abs(bs.cash - cf.ending_cash) > tolerance:
            issues.append(f"Year {bs.year}: balance sheet cash does not match cash flow")

    for prev_bs, bs, inc, cf in zip(balance, balance[1:], income[1:], cash_flow[1:]):
        expected = prev_bs.equity + inc.net_income + cf.new_equity - cf.distributions
        if abs(bs.equity - expected) > tolerance:
            issues.append(
                f"Year {bs.year}: equity roll-forward off by {bs.equity - expected:,.2f}")

    # Amortization completeness (only for tranches fully repaid inside the horizon)
    for t in inputs.deal_design.financing_plans:
        final = final_repayment_year(t)
        if final is None or final > inputs.planning_horizon:
            continue
        repaid = sum(r.principal_repayment for r in debt_schedule.rows_for(t.name))
        if abs(repaid - t.amount) > tolerance:
            issues.append(f'Tranche "{t.name}": repaid {repaid:,.2f} of {t.amount:,.2f}')

    for label, records in (("income statement", income), ("balance sheet", balance),
                           ("cash flow", cash_flow)):
        for rec in records:
            for f in fields(rec):
                value = getattr(rec, f.name)
                if isinstance(value, float) and not math.isfinite(value):
                    issues.append(f"Year {rec.year}: {label} {f.name} is not finite")

    return issues
