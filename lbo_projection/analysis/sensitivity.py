"""
sensitivity.py
--------------
Sensitivity sweeps over ScenarioAssumptions fields.

  run_sensitivity  : one-way sweep, one full ModelResult per value, all
                     other assumptions held at the base scenario.
  two_way_table    : grid of a KPI (IRR by default) over two fields.
  entry_vs_exit_multiple : the classic entry × exit multiple IRR/MOIC grid.

Sweep points are independent and run sequentially.
"""

import logging
from dataclasses import dataclass, fields, replace

import numpy as np
import pandas as pd

from lbo_projection.model.assumptions import LBOInputs, ScenarioAssumptions
from lbo_projection.model.lbo_engine import ModelResult, run_model

logger = logging.getLogger(__name__)

SWEEPABLE = frozenset(f.name for f in fields(ScenarioAssumptions))


@dataclass(frozen=True)
class SensitivityPoint:
    parameter: str
    value: float
    result: ModelResult

    def metric(self, name: str) -> float:
        kpi = self.result.kpi_metrics
        if kpi is None:
            return np.nan
        value = getattr(kpi, name)
        return np.nan if value is None else value


def _check_parameter(parameter: str):
    if parameter not in SWEEPABLE:
        raise ValueError(
            f"Unknown sensitivity parameter {parameter!r}; "
            f"expected one of: {', '.join(sorted(SWEEPABLE))}")


def _run_point(inputs: LBOInputs, **overrides) -> ModelResult:
    """Run model with scalar assumption overrides."""
    return run_model(inputs.with_assumptions(replace(inputs.assumptions, **overrides)))


def run_sensitivity(inputs: LBOInputs, parameter: str, values) -> list[SensitivityPoint]:
    """
    Re-run the pipeline once per value of `parameter`.

    Raises
    ------
    ValueError if `parameter` is not a ScenarioAssumptions field.
    """
    _check_parameter(parameter)
    values = list(values)
    logger.info("Sensitivity sweep on %s: %d points", parameter, len(values))
    return [
        SensitivityPoint(parameter, v, _run_point(inputs, **{parameter: v}))
        for v in values
    ]


def sensitivity_df(points: list[SensitivityPoint]) -> pd.DataFrame:
    """One row per sweep point with headline KPIs."""
    rows = []
    for p in points:
        rows.append({
            p.parameter:       p.value,
            "IRR":             p.metric("irr"),
            "MOIC":            p.metric("moic"),
            "Payback (years)": p.metric("payback_period"),
            "Exit Equity":     p.metric("exit_equity"),
            "NPV":             p.metric("npv"),
            "Errors":          len(p.result.errors),
            "Warnings":        len(p.result.warnings),
        })
    return pd.DataFrame(rows).set_index(points[0].parameter if points else "value")


def two_way_table(
    inputs: LBOInputs,
    row_parameter: str,
    row_values: list[float],
    col_parameter: str,
    col_values: list[float],
    metric: str = "irr",
) -> pd.DataFrame:
    """
    KPI grid: rows = row_parameter values, cols = col_parameter values.
    Invalid points show NaN.
    """
    _check_parameter(row_parameter)
    _check_parameter(col_parameter)
    data = {}
    for col_v in col_values:
        col = {}
        for row_v in row_values:
            result = _run_point(inputs, **{row_parameter: row_v, col_parameter: col_v})
            col[row_v] = SensitivityPoint(row_parameter, row_v, result).metric(metric)
        data[col_v] = col
    df = pd.DataFrame(data)
    df.index.name   = row_parameter
    df.columns.name = col_parameter
    return df


def entry_vs_exit_multiple(
    inputs: LBOInputs,
    entry_multiples: list[float] = (8.0, 9.0, 10.0, 11.0, 12.0),
    exit_multiples:  list[float] = (8.0, 10.0, 12.0, 14.0),
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """
    Returns (irr_table, moic_table).
    Rows = entry EV/EBITDA, Columns = exit EV/EBITDA.
    """
    irr_df  = two_way_table(inputs, "entry_ev_multiple", list(entry_multiples),
                            "exit_ev_multiple", list(exit_multiples), metric="irr")
    moic_df = two_way_table(inputs, "entry_ev_multiple", list(entry_multiples),
                            "exit_ev_multiple", list(exit_multiples), metric="moic")
    return irr_df, moic_df
