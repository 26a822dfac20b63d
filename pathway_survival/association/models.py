"""
Association Models

Fits the per-unit association model: Cox proportional hazards for survival
outcomes (lifelines) and logistic regression for two-class outcomes
(statsmodels). Degenerate designs are rejected before fitting, and numerical
trouble during fitting is reported as ModelFitError.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
import logging
import warnings

import numpy as np
import pandas as pd
import statsmodels.api as sm
from lifelines import CoxPHFitter
from lifelines.exceptions import ConvergenceError, ConvergenceWarning
from statsmodels.tools import sm_exceptions

from ..data.omics import ClassOutcome, Outcome, OutcomeKind, SurvivalOutcome
from ..exceptions import ModelFitError

logger = logging.getLogger(__name__)

# Fitted probabilities this close to 0 or 1 for every sample mean separation
SEPARATION_TOLERANCE = 1e-6

# statsmodels warnings that mark a logistic fit as unusable
LOGISTIC_FAILURE_WARNINGS = (
    sm_exceptions.PerfectSeparationWarning,
    sm_exceptions.ConvergenceWarning,
    sm_exceptions.HessianInversionWarning,
)


class ModelKind(Enum):
    """Association models, one per outcome kind."""

    COX = "cox"
    LOGISTIC = "logistic"


MODEL_FOR_OUTCOME: Dict[OutcomeKind, ModelKind] = {
    OutcomeKind.SURVIVAL: ModelKind.COX,
    OutcomeKind.TWO_CLASS: ModelKind.LOGISTIC,
}


@dataclass
class ModelFit:
    """
    Result of fitting one association model.

    Attributes:
        kind: Model that was fitted
        p_value: Global likelihood-ratio test p-value
        covariate_p_values: Wald test p-value per covariate
        coefficients: Fitted coefficient per covariate
        statistic: Likelihood-ratio statistic
        degrees_of_freedom: Degrees of freedom of the global test
        n_samples: Number of samples in the fit
        n_events: Number of observed events (survival only)
        model: The fitted lifelines or statsmodels object
        warnings: Warnings emitted while fitting
    """

    kind: ModelKind
    p_value: float
    covariate_p_values: Dict[str, float]
    coefficients: Dict[str, float]
    statistic: float
    degrees_of_freedom: int
    n_samples: int
    n_events: Optional[int] = None
    model: Any = field(default=None, repr=False)
    warnings: List[str] = field(default_factory=list)


def check_design(covariates: pd.DataFrame, n_params: int) -> None:
    """
    Reject designs no model can be fitted on.

    Args:
        covariates: Samples x covariates design (without intercept)
        n_params: Number of model parameters, intercept included

    Raises:
        ModelFitError: For zero-variance covariates, collinear covariates or
            too few samples
    """
    n_samples = covariates.shape[0]
    if n_samples < n_params + 1:
        raise ModelFitError(
            f"{n_samples} samples for {n_params} parameters", covariates
        )

    values = covariates.to_numpy(dtype=float)
    if not np.all(np.isfinite(values)):
        raise ModelFitError("Non-finite covariate values", covariates)

    variances = values.var(axis=0)
    constant = [c for c, v in zip(covariates.columns, variances) if v <= 1e-12]
    if constant:
        raise ModelFitError(f"Zero-variance covariates: {constant}", covariates)

    centered = values - values.mean(axis=0)
    rank = np.linalg.matrix_rank(centered)
    if rank < values.shape[1]:
        raise ModelFitError(
            f"Rank-deficient design: rank {rank} for {values.shape[1]} covariates",
            covariates,
        )


def _finite_p(p_value: float, covariates: pd.DataFrame) -> float:
    p_value = float(np.squeeze(p_value))
    if not np.isfinite(p_value):
        raise ModelFitError("Non-finite p-value", covariates)
    return p_value


def fit_cox(
    covariates: pd.DataFrame,
    outcome: SurvivalOutcome,
    penalizer: float = 0.0,
    max_iter: int = 100,
) -> ModelFit:
    """
    Fit a Cox proportional hazards model.

    Args:
        covariates: Samples x covariates design, rows in outcome order
        outcome: Survival times and events
        penalizer: L2 penalty passed to CoxPHFitter
        max_iter: Maximum Newton-Raphson steps

    Returns:
        ModelFit with the likelihood-ratio global p-value

    Raises:
        ModelFitError: If the design is degenerate, the fit fails or lifelines
            reports a convergence problem (e.g. near-complete separation)
    """
    if outcome.n_events == 0:
        raise ModelFitError("No events observed", covariates)
    check_design(covariates, n_params=covariates.shape[1])

    data = covariates.copy()
    data["_duration"] = outcome.time
    data["_event"] = outcome.event

    cph = CoxPHFitter(penalizer=penalizer)
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        try:
            cph.fit(
                data,
                duration_col="_duration",
                event_col="_event",
                fit_options={"max_steps": max_iter},
            )
            lrt = cph.log_likelihood_ratio_test()
        except (ConvergenceError, np.linalg.LinAlgError, ValueError) as e:
            raise ModelFitError(f"Cox fit failed: {e}", covariates) from e

    messages = [str(w.message) for w in caught]
    for message in messages:
        logger.debug(f"Cox fit warning: {message}")
    for w in caught:
        if issubclass(w.category, ConvergenceWarning):
            raise ModelFitError(f"Cox fit did not converge: {w.message}", covariates)

    summary = cph.summary
    covariate_p = {str(c): float(summary.loc[c, "p"]) for c in covariates.columns}
    if not all(np.isfinite(list(covariate_p.values()))):
        raise ModelFitError("Non-finite covariate p-value", covariates)

    return ModelFit(
        kind=ModelKind.COX,
        p_value=_finite_p(lrt.p_value, covariates),
        covariate_p_values=covariate_p,
        coefficients={str(c): float(cph.params_[c]) for c in covariates.columns},
        statistic=float(np.squeeze(lrt.test_statistic)),
        degrees_of_freedom=covariates.shape[1],
        n_samples=covariates.shape[0],
        n_events=outcome.n_events,
        model=cph,
        warnings=messages,
    )


def fit_logistic(
    covariates: pd.DataFrame,
    outcome: ClassOutcome,
    max_iter: int = 100,
) -> ModelFit:
    """
    Fit a logistic regression model with intercept.

    The first class of the outcome is the reference level.

    Args:
        covariates: Samples x covariates design, rows in outcome order
        outcome: Two-class outcome
        max_iter: Maximum optimizer iterations

    Returns:
        ModelFit with the likelihood-ratio global p-value

    Raises:
        ModelFitError: If the design is degenerate, the classes are perfectly
            separated or the fit does not converge
    """
    y = pd.Series(outcome.indicator(), index=covariates.index, name="class")
    n_positive = int(y.sum())
    if n_positive == 0 or n_positive == len(y):
        raise ModelFitError("Only one class present", covariates)
    check_design(covariates, n_params=covariates.shape[1] + 1)

    design = sm.add_constant(covariates.astype(float), has_constant="add")
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        try:
            result = sm.Logit(y, design).fit(disp=0, maxiter=max_iter)
            bse = np.asarray(result.bse, dtype=float)
        except (
            sm_exceptions.PerfectSeparationError,
            np.linalg.LinAlgError,
            ValueError,
        ) as e:
            raise ModelFitError(f"Logistic fit failed: {e}", covariates) from e

    messages = [str(w.message) for w in caught]
    for message in messages:
        logger.debug(f"Logistic fit warning: {message}")
    for w in caught:
        if issubclass(w.category, LOGISTIC_FAILURE_WARNINGS):
            raise ModelFitError(f"Logistic fit failed: {w.message}", covariates)

    if not result.mle_retvals.get("converged", True):
        raise ModelFitError("Logistic fit did not converge", covariates)
    if not np.all(np.isfinite(bse)):
        raise ModelFitError("Singular information matrix", covariates)
    fitted = np.asarray(result.predict(design))
    if np.all((fitted < SEPARATION_TOLERANCE) | (fitted > 1 - SEPARATION_TOLERANCE)):
        raise ModelFitError("Perfect separation of the classes", covariates)

    covariate_p = {str(c): float(result.pvalues[c]) for c in covariates.columns}
    if not all(np.isfinite(list(covariate_p.values()))):
        raise ModelFitError("Non-finite covariate p-value", covariates)

    return ModelFit(
        kind=ModelKind.LOGISTIC,
        p_value=_finite_p(result.llr_pvalue, covariates),
        covariate_p_values=covariate_p,
        coefficients={str(c): float(result.params[c]) for c in covariates.columns},
        statistic=float(result.llr),
        degrees_of_freedom=int(result.df_model),
        n_samples=covariates.shape[0],
        model=result,
        warnings=messages,
    )


def fit_model(
    kind: ModelKind,
    covariates: pd.DataFrame,
    outcome: Outcome,
    penalizer: float = 0.0,
    max_iter: int = 100,
) -> ModelFit:
    """Fit the model of the given kind."""
    if kind == ModelKind.COX:
        if not isinstance(outcome, SurvivalOutcome):
            raise ValueError("Cox model requires a survival outcome")
        return fit_cox(covariates, outcome, penalizer=penalizer, max_iter=max_iter)
    if not isinstance(outcome, ClassOutcome):
        raise ValueError("Logistic model requires a class outcome")
    return fit_logistic(covariates, outcome, max_iter=max_iter)
