"""
scenarios.py
------------
Runs the projection once per named scenario (base / upside / downside by
default) and ranks the results.

Each scenario is an independent ScenarioAssumptions swapped into the same
LBOInputs; inputs are frozen, so no run can affect another.
Returns individual ModelResults plus a comparison DataFrame.
"""

import logging
import math
from typing import Optional

import pandas as pd

from lbo_projection.model.assumptions import (
    SCENARIO_KEYS,
    LBOInputs,
    ScenarioAssumptions,
    default_scenarios,
)
from lbo_projection.model.lbo_engine import ModelResult, run_model
from lbo_projection.utils.formatting import fmt_amount, fmt_irr, fmt_moic, fmt_multiple, fmt_years

logger = logging.getLogger(__name__)


def run_scenarios(
    inputs: LBOInputs,
    scenarios: Optional[dict[str, ScenarioAssumptions]] = None,
) -> dict[str, ModelResult]:
    """
    Parameters
    ----------
    inputs    : shared business metrics, deal design and horizon
    scenarios : {key: assumptions}; defaults to base / upside / downside
                derived from inputs.assumptions

    Returns
    -------
    {key: ModelResult}, in the order of `scenarios`.
    """
    if scenarios is None:
        scenarios = default_scenarios(inputs.assumptions)
    results = {}
    for key, assumptions in scenarios.items():
        logger.info("Running scenario %r", key)
        results[key] = run_model(inputs.with_assumptions(assumptions))
    return results


def _irr_sort_key(item: tuple[str, ModelResult]):
    _key, result = item
    irr = result.kpi_metrics.irr if result.kpi_metrics is not None else math.nan
    # NaN (and failed runs) rank last
    return (math.isnan(irr), -irr if not math.isnan(irr) else 0.0)


def compare_scenarios(results: dict[str, ModelResult]) -> dict:
    """
    Rank scenario results by IRR (highest first, NaN last).

    Returns
    -------
    {
      "ranking": [key, ...],
      "best"   : key,
      "worst"  : key,
      "median" : key,
    }
    Empty input gives None for best / worst / median.
    """
    ranked = [key for key, _r in sorted(results.items(), key=_irr_sort_key)]
    if not ranked:
        return {"ranking": [], "best": None, "worst": None, "median": None}
    return {
        "ranking": ranked,
        "best":    ranked[0],
        "worst":   ranked[-1],
        "median":  ranked[len(ranked) // 2],
    }


def comparison_df(results: dict[str, ModelResult]) -> pd.DataFrame:
    """Key metrics across scenarios (one row per scenario)."""
    order = [k for k in SCENARIO_KEYS if k in results] + \
            [k for k in results if k not in SCENARIO_KEYS]
    rows = []
    for key in order:
        r = results[key]
        if not r.is_valid or r.kpi_metrics is None:
            rows.append({"Scenario": key, "Status": "; ".join(r.errors)})
            continue
        k = r.kpi_metrics
        a = r.inputs.assumptions
        last_cov = r.covenants[-1] if r.covenants else None
        rows.append({
            "Scenario":          key,
            "Status":            "OK",
            "Revenue Growth":    f"{a.revenue_growth_rate:.1%}",
            "EBITDA Margin":     f"{a.ebitda_margin:.1%}",
            "Exit EV/EBITDA":    fmt_multiple(a.exit_ev_multiple, 1),
            "Exit EBITDA":       fmt_amount(k.exit_ebitda),
            "Exit EV":           fmt_amount(k.exit_ev),
            "Exit Net Debt":     fmt_amount(k.exit_net_debt),
            "Exit Equity":       fmt_amount(k.exit_equity),
            "IRR":               fmt_irr(k.irr),
            "MOIC":              fmt_moic(k.moic),
            "Payback":           fmt_years(k.payback_period),
            "Exit Net Leverage": fmt_multiple(last_cov.net_leverage) if last_cov else "N/A",
            "Warnings":          len(r.warnings),
        })
    return pd.DataFrame(rows).set_index("Scenario")
