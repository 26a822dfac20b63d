"""
Tests for Cox and logistic association models.
"""

import numpy as np
import pandas as pd
import pytest

from pathway_survival.association.models import (
    MODEL_FOR_OUTCOME,
    ModelKind,
    check_design,
    fit_cox,
    fit_logistic,
    fit_model,
)
from pathway_survival.data.omics import ClassOutcome, OutcomeKind, SurvivalOutcome
from pathway_survival.exceptions import ModelFitError


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def samples():
    return [f"S{i}" for i in range(60)]


@pytest.fixture
def risk(samples):
    rng = np.random.default_rng(11)
    return pd.DataFrame(
        {"expr_PC1": rng.normal(size=len(samples)), "cnv_events": rng.poisson(2, len(samples))},
        index=samples,
    )


@pytest.fixture
def survival(samples, risk):
    """Hazard rises steeply with expr_PC1."""
    rng = np.random.default_rng(12)
    hazard = np.exp(1.5 * risk["expr_PC1"].to_numpy())
    time = rng.exponential(1.0 / hazard)
    event = (rng.uniform(size=len(samples)) < 0.85).astype(int)
    return SurvivalOutcome(samples=samples, time=time, event=event)


@pytest.fixture
def classes(samples, risk):
    rng = np.random.default_rng(13)
    prob = 1.0 / (1.0 + np.exp(-2.0 * risk["expr_PC1"].to_numpy()))
    labels = np.where(rng.uniform(size=len(samples)) < prob, "tumor", "normal")
    return ClassOutcome(samples=samples, labels=labels)


# ============================================================================
# Design Checks
# ============================================================================


class TestCheckDesign:
    """Tests for pre-fit design checks."""

    def test_valid(self, risk):
        check_design(risk, n_params=2)

    def test_too_few_samples(self, risk):
        with pytest.raises(ModelFitError, match="samples for"):
            check_design(risk.iloc[:2], n_params=2)

    def test_zero_variance(self, risk):
        design = risk.assign(flat=1.0)
        with pytest.raises(ModelFitError, match="Zero-variance") as excinfo:
            check_design(design, n_params=3)
        assert list(excinfo.value.covariates.columns) == ["expr_PC1", "cnv_events", "flat"]

    def test_rank_deficient(self, risk):
        design = risk.assign(shifted=2.0 * risk["expr_PC1"] + 1.0)
        with pytest.raises(ModelFitError, match="Rank-deficient"):
            check_design(design, n_params=3)


# ============================================================================
# Cox Model
# ============================================================================


class TestFitCox:
    """Tests for the Cox proportional hazards fit."""

    def test_detects_association(self, risk, survival):
        fit = fit_cox(risk, survival)
        assert fit.kind == ModelKind.COX
        assert fit.p_value < 0.05
        assert set(fit.covariate_p_values) == {"expr_PC1", "cnv_events"}
        assert fit.covariate_p_values["expr_PC1"] < 0.05
        assert fit.coefficients["expr_PC1"] > 0
        assert fit.degrees_of_freedom == 2
        assert fit.n_samples == 60
        assert fit.n_events == survival.n_events
        assert fit.statistic > 0

    def test_no_events(self, risk, samples):
        censored = SurvivalOutcome(samples=samples, time=np.ones(len(samples)), event=np.zeros(len(samples)))
        with pytest.raises(ModelFitError, match="No events"):
            fit_cox(risk, censored)

    def test_collinear_covariates(self, risk, survival):
        design = risk.assign(copy=risk["expr_PC1"])
        with pytest.raises(ModelFitError) as excinfo:
            fit_cox(design, survival)
        assert "copy" in excinfo.value.covariates.columns

    def test_penalized(self, risk, survival):
        fit = fit_cox(risk, survival, penalizer=0.5)
        assert abs(fit.coefficients["expr_PC1"]) < abs(fit_cox(risk, survival).coefficients["expr_PC1"])

    def test_monotone_risk_is_rejected(self):
        # Every death happens in covariate order, so the coefficient diverges
        samples = [f"S{i}" for i in range(20)]
        x = pd.DataFrame({"expr_PC1": np.arange(20, dtype=float)}, index=samples)
        outcome = SurvivalOutcome(samples=samples, time=20.0 - np.arange(20), event=np.ones(20))
        with pytest.raises(ModelFitError, match="(?i)converge"):
            fit_cox(x, outcome)


# ============================================================================
# Logistic Model
# ============================================================================


class TestFitLogistic:
    """Tests for the logistic regression fit."""

    def test_detects_association(self, risk, classes):
        fit = fit_logistic(risk, classes)
        assert fit.kind == ModelKind.LOGISTIC
        assert fit.p_value < 0.05
        assert set(fit.covariate_p_values) == {"expr_PC1", "cnv_events"}
        assert fit.coefficients["expr_PC1"] > 0
        assert fit.degrees_of_freedom == 2
        assert fit.n_events is None

    def test_perfect_separation(self):
        samples = [f"S{i}" for i in range(20)]
        x = pd.DataFrame({"expr_PC1": np.arange(20, dtype=float)}, index=samples)
        labels = ["low"] * 10 + ["high"] * 10
        outcome = ClassOutcome(samples=samples, labels=labels, classes=("low", "high"))
        with pytest.raises(ModelFitError):
            fit_logistic(x, outcome)

    def test_single_class(self, risk, samples):
        outcome = ClassOutcome(samples=samples, labels=["a"] * len(samples), classes=("a", "b"))
        with pytest.raises(ModelFitError, match="one class"):
            fit_logistic(risk, outcome)


# ============================================================================
# Dispatch
# ============================================================================


class TestFitModel:
    """Tests for model selection."""

    def test_lookup(self):
        assert MODEL_FOR_OUTCOME[OutcomeKind.SURVIVAL] == ModelKind.COX
        assert MODEL_FOR_OUTCOME[OutcomeKind.TWO_CLASS] == ModelKind.LOGISTIC

    def test_dispatch(self, risk, survival, classes):
        assert fit_model(ModelKind.COX, risk, survival).kind == ModelKind.COX
        assert fit_model(ModelKind.LOGISTIC, risk, classes).kind == ModelKind.LOGISTIC

    def test_outcome_mismatch(self, risk, classes):
        with pytest.raises(ValueError):
            fit_model(ModelKind.COX, risk, classes)
