"""
LBO projection engine: debt schedules, three-statement projections,
covenant-gated dividend waterfalls and equity returns for leveraged buyouts.
"""

from lbo_projection.analysis.scenarios import compare_scenarios, run_scenarios
from lbo_projection.analysis.sensitivity import run_sensitivity
from lbo_projection.errors import ComputationWarning, ConsistencyError, InputValidationError
from lbo_projection.model.assumptions import (
    BusinessMetrics,
    Covenant,
    DealDesign,
    DebtProtectionCovenants,
    DividendPolicySettings,
    DividendTier,
    EngineConfig,
    EquityInjection,
    FinancingTranche,
    LBOInputs,
    ScenarioAssumptions,
    WaterfallRule,
)
from lbo_projection.model.lbo_engine import ModelResult, run_model

__version__ = "0.1.0"
