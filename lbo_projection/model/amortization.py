"""
amortization.py
---------------
Single source of truth for tranche-level debt math.  Every consumer
(debt schedule, covenant monitor, dividend preview) calls `amortize`
rather than re-deriving balances.

Timing rules:
  - Before the entry year nothing is outstanding.
  - Year 0 is the closing date: anything entering at year 0 is drawn at
    close and starts repaying in year 1, whatever its timing flag.
  - `end` entries: cash arrives at year-end, repayment year 1 is the
    following year, final repayment = entry + maturity.
  - `beginning` entries: the entry year is repayment year 1, final
    repayment = entry + maturity − 1.

Repayment methods:
  equalPrincipal : amount / maturity each year, interest on beginning balance
  equalPayment   : level annuity payment, interest on beginning balance
  bullet         : interest on full amount, principal in the final year
  interestOnly   : same cash profile as bullet
  revolving      : declining balance, repaid at the scenario's revolver
                   repayment rate (an assumption, not a tranche term)
"""

from dataclasses import dataclass

from lbo_projection.model.assumptions import (
    EntryTiming,
    FinancingTranche,
    RepaymentMethod,
)


@dataclass(frozen=True)
class LoanPayment:
    beginning_balance: float = 0.0
    interest_expense: float = 0.0
    principal_repayment: float = 0.0
    ending_balance: float = 0.0

    @property
    def debt_service(self) -> float:
        return self.interest_expense + self.principal_repayment


ZERO = LoanPayment()


def annuity_payment(amount: float, rate: float, periods: int) -> float:
    """Level annual payment that retires `amount` over `periods` years."""
    if periods <= 0:
        return 0.0
    if rate == 0:
        return amount / periods
    growth = (1 + rate) ** periods
    return amount * rate * growth / (growth - 1)


def _annuity_balance(payment: float, rate: float, remaining: int) -> float:
    """Present value of `remaining` level payments."""
    if remaining <= 0:
        return 0.0
    if rate == 0:
        return payment * remaining
    return payment * (1 - (1 + rate) ** -remaining) / rate


def repayment_year(tranche: FinancingTranche, year: int) -> int:
    """1-based repayment year; ≤ 0 when repayment has not started."""
    if tranche.entry_year > 0 and tranche.timing is EntryTiming.BEGINNING:
        return year - tranche.entry_year + 1
    return year - tranche.entry_year


def final_repayment_year(tranche: FinancingTranche) -> int | None:
    """Calendar year of the last scheduled payment (None for revolvers)."""
    if tranche.is_revolver:
        return None
    return tranche.entry_year + repayment_offset(tranche) + tranche.maturity - 1


def repayment_offset(tranche: FinancingTranche) -> int:
    return 0 if tranche.entry_year > 0 and tranche.timing is EntryTiming.BEGINNING else 1


def _clamped(beginning: float, interest: float, principal: float) -> LoanPayment:
    beginning = max(0.0, beginning)
    principal = max(0.0, min(principal, beginning))
    return LoanPayment(
        beginning_balance   = beginning,
        interest_expense    = max(0.0, interest),
        principal_repayment = principal,
        ending_balance      = max(0.0, beginning - principal),
    )


def amortize(
    tranche: FinancingTranche,
    year: int,
    revolver_repayment_rate: float = 0.0,
) -> LoanPayment:
    """
    Beginning balance, interest, principal and ending balance of one
    tranche in one year.
    """
    amount = tranche.amount
    rate   = tranche.interest_rate

    if year < tranche.entry_year:
        return ZERO

    k = repayment_year(tranche, year)
    if k <= 0:
        # Drawn this year, amortization starts next year
        return LoanPayment(ending_balance=amount)

    method = tranche.method

    if method is RepaymentMethod.REVOLVING:
        beginning = amount * (1 - revolver_repayment_rate) ** (k - 1)
        return _clamped(beginning, beginning * rate, beginning * revolver_repayment_rate)

    m = max(1, int(tranche.maturity))
    if k > m:
        return ZERO

    if method is RepaymentMethod.EQUAL_PRINCIPAL:
        principal = amount / m
        beginning = amount - principal * (k - 1)
        return _clamped(beginning, beginning * rate, principal)

    if method is RepaymentMethod.EQUAL_PAYMENT:
        pmt       = annuity_payment(amount, rate, m)
        beginning = _annuity_balance(pmt, rate, m - k + 1)
        interest  = beginning * rate
        principal = pmt - interest
        if k == m:
            principal = beginning     # absorb floating-point residue
        return _clamped(beginning, interest, principal)

    if method in (RepaymentMethod.BULLET, RepaymentMethod.INTEREST_ONLY):
        principal = amount if k == m else 0.0
        return _clamped(amount, amount * rate, principal)

    raise ValueError(f"Unsupported repayment method: {method!r}")


def tranche_lifetime(
    tranche: FinancingTranche,
    horizon: int,
    revolver_repayment_rate: float = 0.0,
) -> list[LoanPayment]:
    """Payments for years 0..horizon (index = year)."""
    return [amortize(tranche, yr, revolver_repayment_rate) for yr in range(horizon + 1)]
