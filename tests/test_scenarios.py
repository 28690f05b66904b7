"""
Unit Tests for Scenario and Sensitivity Analysis
================================================
"""

import math
from dataclasses import replace

import pytest

from lbo_projection.analysis.scenarios import compare_scenarios, comparison_df, run_scenarios
from lbo_projection.analysis.sensitivity import (
    entry_vs_exit_multiple,
    run_sensitivity,
    sensitivity_df,
    two_way_table,
)
from lbo_projection.model.assumptions import SCENARIO_KEYS, downside_case, upside_case
from lbo_projection.model.lbo_engine import ModelResult, run_model


class TestScenarios:

    @pytest.fixture
    def results(self, deal_inputs):
        return run_scenarios(deal_inputs)

    def test_default_scenarios(self, results):
        assert tuple(results) == SCENARIO_KEYS
        assert all(r.is_valid for r in results.values())

    def test_scenarios_are_independent(self, results, deal_inputs):
        assert results["base"].inputs.assumptions == deal_inputs.assumptions
        assert results["upside"].inputs.assumptions == upside_case(deal_inputs.assumptions)
        assert results["downside"].inputs.assumptions == downside_case(deal_inputs.assumptions)
        assert results["base"].inputs.deal_design is deal_inputs.deal_design

    def test_ranking(self, results):
        cmp = compare_scenarios(results)
        assert cmp["ranking"] == ["upside", "base", "downside"]
        assert cmp["best"] == "upside"
        assert cmp["worst"] == "downside"
        assert cmp["median"] == "base"

    def test_custom_scenarios(self, deal_inputs):
        flat = replace(deal_inputs.assumptions, revenue_growth_rate=0.0)
        results = run_scenarios(deal_inputs, {"flat": flat})
        assert list(results) == ["flat"]
        assert results["flat"].income_statement[5].revenue == pytest.approx(100_000)

    def test_failed_run_ranks_last(self, results):
        mixed = dict(results, broken=ModelResult(errors=["EBITDA is required"]))
        cmp = compare_scenarios(mixed)
        assert cmp["worst"] == "broken"
        assert cmp["best"] == "upside"

    def test_empty(self):
        assert compare_scenarios({}) == {"ranking": [], "best": None, "worst": None, "median": None}

    def test_comparison_df(self, results):
        df = comparison_df(results)
        assert list(df.index) == ["base", "upside", "downside"]
        assert (df["Status"] == "OK").all()
        assert df.loc["base", "Exit EV/EBITDA"] == "12.0x"

    def test_comparison_df_reports_errors(self, results):
        mixed = dict(results, broken=ModelResult(errors=["EBITDA is required"]))
        df = comparison_df(mixed)
        assert df.loc["broken", "Status"] == "EBITDA is required"


class TestSensitivity:

    def test_exit_multiple_sweep(self, deal_inputs):
        points = run_sensitivity(deal_inputs, "exit_ev_multiple", [10.0, 12.0, 14.0])
        irrs = [p.metric("irr") for p in points]
        assert irrs == sorted(irrs)
        assert [p.value for p in points] == [10.0, 12.0, 14.0]

    def test_base_point_matches_plain_run(self, deal_inputs):
        base = run_model(deal_inputs).kpi_metrics
        point = run_sensitivity(deal_inputs, "exit_ev_multiple", [12.0])[0]
        assert point.metric("moic") == pytest.approx(base.moic)

    def test_unknown_parameter(self, deal_inputs):
        with pytest.raises(ValueError, match="Unknown sensitivity parameter"):
            run_sensitivity(deal_inputs, "leverage", [1.0])

    def test_invalid_point_is_nan(self, deal_inputs):
        points = run_sensitivity(deal_inputs, "tax_rate", [0.2, 1.5])
        assert not math.isnan(points[0].metric("irr"))
        assert math.isnan(points[1].metric("irr"))
        assert points[1].result.errors

    def test_sensitivity_df(self, deal_inputs):
        points = run_sensitivity(deal_inputs, "revenue_growth_rate", [0.0, 0.05])
        df = sensitivity_df(points)
        assert df.index.name == "revenue_growth_rate"
        assert list(df.index) == [0.0, 0.05]
        assert df.loc[0.05, "Errors"] == 0

    def test_two_way_table(self, deal_inputs):
        df = two_way_table(deal_inputs, "revenue_growth_rate", [0.0, 0.05],
                           "exit_ev_multiple", [10.0, 12.0], metric="moic")
        assert df.shape == (2, 2)
        assert df.index.name == "revenue_growth_rate"
        assert df.columns.name == "exit_ev_multiple"
        assert df.loc[0.05, 12.0] > df.loc[0.0, 10.0]

    def test_entry_vs_exit_multiple(self, deal_inputs):
        irr_df, moic_df = entry_vs_exit_multiple(deal_inputs, [9.0, 10.0], [10.0, 12.0])
        assert irr_df.shape == moic_df.shape == (2, 2)
        # Cheaper entry leaves more cash on the balance sheet at the same exit
        assert moic_df.loc[9.0, 12.0] > moic_df.loc[10.0, 12.0]
