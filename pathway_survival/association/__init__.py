"""
Association

Per-unit covariate assembly and survival / two-class association models.
"""

from .keys import UnitKey
from .models import (
    MODEL_FOR_OUTCOME,
    ModelFit,
    ModelKind,
    check_design,
    fit_cox,
    fit_logistic,
    fit_model,
)
from .tester import AnalysisUnit, TesterConfig, UnitTester, block_to_frame

__all__ = [
    # Units
    "UnitKey",
    "AnalysisUnit",
    "UnitTester",
    "TesterConfig",
    "block_to_frame",
    # Models
    "ModelKind",
    "ModelFit",
    "MODEL_FOR_OUTCOME",
    "check_design",
    "fit_cox",
    "fit_logistic",
    "fit_model",
]
