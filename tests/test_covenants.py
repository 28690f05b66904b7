"""
Unit Tests for the Covenant Evaluator
=====================================
"""

import pytest

from lbo_projection.model.assumptions import (
    UNCONSTRAINED_RATIO,
    Covenant,
    DebtProtectionCovenants,
)
from lbo_projection.model.balance_sheet import BalanceSheetRecord
from lbo_projection.model.covenants import covenant_df, evaluate_covenants, minimum_cash_reserve
from lbo_projection.model.debt_schedule import DebtPosition
from lbo_projection.model.income_statement import IncomeStatementRecord


def _income(revenue=120_000, ebitda=11_000, taxes=0.0, interest=2_500):
    return IncomeStatementRecord(
        year=1, revenue=revenue, cogs=revenue - ebitda, operating_expenses=0.0,
        gross_profit=ebitda, ebitda=ebitda, capex=0.0, depreciation_amortization=0.0,
        ebit=ebitda, interest_expense=interest, pre_tax_income=ebitda - interest,
        taxes=taxes, net_income=ebitda - interest - taxes,
    )


def _balance(cash=50_000, debt=30_000):
    return BalanceSheetRecord(
        year=1, cash=cash, accounts_receivable=0.0, inventory=0.0, fixed_assets=0.0,
        goodwill=0.0, accounts_payable=0.0, other_current_liabilities=0.0, total_debt=debt,
    )


def _debt(interest=2_500, principal=7_500):
    return DebtPosition(year=1, interest_expense=interest, principal_repayment=principal)


class TestRatios:

    def test_dscr(self):
        rec = evaluate_covenants(1, _income(), _balance(), _debt(), DebtProtectionCovenants())
        assert rec.dscr == pytest.approx(1.10)

    def test_dscr_below_threshold_fails(self):
        rec = evaluate_covenants(1, _income(), _balance(), _debt(), DebtProtectionCovenants())
        assert not rec.all_compliant
        assert "dscr" in rec.failed
        assert rec.headroom["dscr"] == pytest.approx(1.10 - 1.25)

    def test_other_ratios(self):
        rec = evaluate_covenants(1, _income(ebitda=20_000, taxes=2_000),
                                 _balance(cash=10_000, debt=40_000), _debt(),
                                 DebtProtectionCovenants())
        assert rec.net_leverage == pytest.approx(30_000 / 20_000)
        assert rec.interest_coverage == pytest.approx(20_000 / 2_500)
        assert rec.monthly_cash_opex == pytest.approx(100_000 / 12)
        assert rec.cash_months == pytest.approx(10_000 / (100_000 / 12))

    def test_net_cash_position(self):
        rec = evaluate_covenants(1, _income(), _balance(cash=50_000, debt=30_000), _debt(),
                                 DebtProtectionCovenants())
        assert rec.net_leverage == 0.0


class TestUndefinedDenominators:

    def test_no_debt_service(self):
        rec = evaluate_covenants(1, _income(interest=0.0), _balance(debt=0.0),
                                 _debt(interest=0.0, principal=0.0), DebtProtectionCovenants())
        assert rec.dscr == UNCONSTRAINED_RATIO
        assert rec.interest_coverage == UNCONSTRAINED_RATIO
        assert "dscr" not in rec.failed

    def test_negative_ebitda_with_net_debt(self):
        rec = evaluate_covenants(1, _income(ebitda=-1_000), _balance(cash=0.0, debt=30_000),
                                 _debt(), DebtProtectionCovenants())
        assert rec.net_leverage == UNCONSTRAINED_RATIO
        assert "net_leverage" in rec.failed

    def test_no_operating_expense(self):
        rec = evaluate_covenants(1, _income(revenue=11_000, ebitda=11_000), _balance(),
                                 _debt(), DebtProtectionCovenants())
        assert rec.cash_months == UNCONSTRAINED_RATIO


class TestEnabledFlags:

    def test_disabled_covenants_are_skipped(self):
        covenants = DebtProtectionCovenants(dscr=Covenant(1.25, enabled=False))
        rec = evaluate_covenants(1, _income(), _balance(), _debt(), covenants)
        assert "dscr" not in rec.failed
        assert "dscr" not in rec.headroom
        assert rec.all_compliant

    def test_all_disabled_is_compliant(self):
        off = Covenant(0.0, enabled=False)
        covenants = DebtProtectionCovenants(off, off, off, off)
        rec = evaluate_covenants(1, _income(ebitda=-5_000), _balance(cash=-1.0), _debt(), covenants)
        assert rec.all_compliant
        assert rec.failed == ()

    def test_minimum_cash_reserve(self):
        rec = evaluate_covenants(1, _income(), _balance(), _debt(), DebtProtectionCovenants())
        assert minimum_cash_reserve(rec, DebtProtectionCovenants()) == pytest.approx(
            (120_000 - 11_000) / 12 * 3)
        disabled = DebtProtectionCovenants(min_cash_months=Covenant(3.0, enabled=False))
        assert minimum_cash_reserve(rec, disabled) == 0.0

    def test_covenant_df(self):
        covenants = DebtProtectionCovenants()
        rec = evaluate_covenants(1, _income(), _balance(), _debt(), covenants)
        df = covenant_df([rec], covenants)
        assert df.loc[0, "In Compliance"] == "NO"
        assert df.loc[0, "Dscr Covenant"] == 1.25
