"""
formatting.py
-------------
Number formatting helpers for summary tables and log messages.
Monetary values are unit-agnostic, so amounts carry no currency suffix.
"""

import numpy as np
import pandas as pd

from lbo_projection.model.assumptions import UNCONSTRAINED_RATIO


def fmt_amount(val, decimals: int = 1) -> str:
    if val is None or pd.isna(val):
        return "—"
    return f"{val:,.{decimals}f}"


def fmt_pct(val, decimals: int = 1) -> str:
    if val is None or pd.isna(val):
        return "—"
    return f"{val:.{decimals}%}"


def fmt_multiple(val, decimals: int = 2) -> str:
    if val is None or pd.isna(val):
        return "—"
    if val >= UNCONSTRAINED_RATIO:
        return "n.m."
    return f"{val:.{decimals}f}x"


def fmt_irr(val) -> str:
    if val is None or (isinstance(val, float) and np.isnan(val)):
        return "N/A"
    return f"{val:.1%}"


def fmt_moic(val) -> str:
    if val is None or (isinstance(val, float) and np.isnan(val)):
        return "N/A"
    return f"{val:.2f}x"


def fmt_years(val) -> str:
    if val is None:
        return "Not reached"
    return f"{val} years" if val != 1 else "1 year"


# Row-level statement formatter: amount rows vs percent rows
PCT_ROWS = {"EBITDA Margin", "Payout Ratio"}


def format_statement_df(df: pd.DataFrame) -> pd.DataFrame:
    """Format a wide statement DataFrame for display."""
    out = df.copy().astype(object)
    for row_label in df.index:
        for col in df.columns:
            v = df.loc[row_label, col]
            out.loc[row_label, col] = fmt_pct(v) if row_label in PCT_ROWS else fmt_amount(v)
    return out
