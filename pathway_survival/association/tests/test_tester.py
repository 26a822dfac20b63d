"""
Tests for the per-unit association tester.
"""

import numpy as np
import pandas as pd
import pytest

from pathway_survival.association import (
    AnalysisUnit,
    ModelKind,
    TesterConfig,
    UnitKey,
    UnitTester,
    block_to_frame,
)
from pathway_survival.data.omics import ClassOutcome, OmicsDataset, SurvivalOutcome
from pathway_survival.exceptions import EmptyUnitError, ModelFitError
from pathway_survival.reduction import CovariateBlock


# ============================================================================
# Fixtures
# ============================================================================


N_SAMPLES = 30


@pytest.fixture
def samples():
    return [f"S{i}" for i in range(N_SAMPLES)]


@pytest.fixture
def survival(samples):
    rng = np.random.default_rng(21)
    return SurvivalOutcome(
        samples=samples,
        time=rng.exponential(5.0, N_SAMPLES),
        event=(rng.uniform(size=N_SAMPLES) < 0.7).astype(int),
    )


@pytest.fixture
def expression(samples):
    rng = np.random.default_rng(22)
    return pd.DataFrame(
        rng.normal(size=(4, N_SAMPLES)), index=["G1", "G2", "G3", "G4"], columns=samples
    )


@pytest.fixture
def cnv(samples):
    rng = np.random.default_rng(23)
    return pd.DataFrame(
        rng.choice([-1, 0, 0, 0, 1], size=(3, N_SAMPLES)), index=["G1", "G2", "G5"], columns=samples
    )


@pytest.fixture
def methylation(samples):
    """Two probes of G1 splitting the samples into two clear groups."""
    rng = np.random.default_rng(24)
    pattern = np.where(np.arange(N_SAMPLES) % 3 == 0, 4.0, -4.0)
    values = np.vstack([pattern, pattern]) + rng.normal(scale=0.1, size=(2, N_SAMPLES))
    return pd.DataFrame(values, index=["cg1", "cg2"], columns=samples)


@pytest.fixture
def dataset(expression, cnv, survival):
    return OmicsDataset(
        matrices={"expr": expression, "cnv": cnv},
        outcome=survival,
        reductions={
            "expr": {"method": "pca", "params": {"max_components": 2}},
            "cnv": {"method": "events", "params": {"min_prop": 0.05}},
        },
    )


# ============================================================================
# Covariate Assembly
# ============================================================================


class TestBlockToFrame:
    """Tests for covariate naming and encoding."""

    def test_numeric(self):
        block = CovariateBlock(names=["PC1", "PC2"], values=[[1, 2, 3], [3, 1, 2]], categorical=[False, False])
        frame = block_to_frame("expr", block, ["a", "b", "c"])
        assert list(frame.columns) == ["expr_PC1", "expr_PC2"]
        assert list(frame.index) == ["a", "b", "c"]

    def test_categorical_drop_first(self):
        block = CovariateBlock(names=["clusters"], values=[[1, 2, 3, 1]], categorical=[True])
        frame = block_to_frame("meth", block, list("abcd"))
        assert list(frame.columns) == ["meth_clusters_2", "meth_clusters_3"]
        assert frame["meth_clusters_2"].tolist() == [0.0, 1.0, 0.0, 0.0]


# ============================================================================
# UnitTester
# ============================================================================


class TestUnitTester:
    """Tests for UnitTester."""

    def test_model_kind_from_outcome(self, dataset):
        assert UnitTester(dataset).model_kind == ModelKind.COX

    def test_unit(self, dataset):
        unit = UnitTester(dataset).test(UnitKey("p53", 1), ["G1", "G2", "G3"])
        assert isinstance(unit, AnalysisUnit)
        assert unit.key == UnitKey("p53", 1)
        assert unit.genes == ("G1", "G2", "G3")
        assert list(unit.covariates.columns) == ["expr_PC1", "expr_PC2", "cnv_events"]
        assert unit.covariate_omics == {"expr_PC1": "expr", "expr_PC2": "expr", "cnv_events": "cnv"}
        assert unit.omics_used == ("expr", "cnv")
        assert unit.dropped_omics == {}
        assert 0.0 <= unit.p_value <= 1.0
        assert set(unit.covariate_p_values) == set(unit.covariates.columns)
        assert unit.fit.n_samples == N_SAMPLES

    def test_omic_without_features_is_dropped(self, dataset):
        unit = UnitTester(dataset).test(UnitKey("p"), ["G3", "G4"])
        assert unit.omics_used == ("expr",)
        assert "cnv" in unit.dropped_omics

    def test_insufficient_omic_is_dropped(self, dataset, samples):
        flat = dataset.matrices["cnv"].copy()
        flat.loc[:, :] = 0
        flat_dataset = OmicsDataset(
            matrices={"expr": dataset.matrices["expr"], "cnv": flat},
            outcome=dataset.outcome,
            reductions=dataset.reductions,
        )
        unit = UnitTester(flat_dataset).test(UnitKey("p"), ["G1", "G2"])
        assert unit.omics_used == ("expr",)
        assert "qualifying events" in unit.dropped_omics["cnv"]

    def test_no_covariates(self, dataset):
        with pytest.raises(EmptyUnitError):
            UnitTester(dataset).test(UnitKey("p"), ["NOT_MEASURED"])

    def test_categorical_covariate(self, expression, methylation, survival):
        dataset = OmicsDataset(
            matrices={"expr": expression, "meth": methylation},
            outcome=survival,
            reductions={
                "expr": {"method": "pca", "params": {"max_components": 1}},
                "meth": {
                    "method": "cluster",
                    "params": {"dictionary": {"cg1": "G1", "cg2": "G1"}, "max_clusters": 2},
                },
            },
        )
        unit = UnitTester(dataset).test(UnitKey("p"), ["G1", "G2"])
        assert list(unit.covariates.columns) == ["expr_PC1", "meth_clusters_2"]
        assert unit.covariate_omics["meth_clusters_2"] == "meth"

    def test_degenerate_fit_keeps_covariates(self, expression, survival):
        dataset = OmicsDataset(
            matrices={"expr": expression, "copy": expression.copy()},
            outcome=survival,
            reductions={
                "expr": {"method": "pca", "params": {"max_components": 1}},
                "copy": {"method": "pca", "params": {"max_components": 1}},
            },
        )
        with pytest.raises(ModelFitError) as excinfo:
            UnitTester(dataset).test(UnitKey("p"), ["G1", "G2"])
        assert list(excinfo.value.covariates.columns) == ["expr_PC1", "copy_PC1"]

    def test_two_class_outcome(self, expression, samples):
        labels = ["a" if i % 2 else "b" for i in range(N_SAMPLES)]
        dataset = OmicsDataset(
            matrices={"expr": expression},
            outcome=ClassOutcome(samples=samples, labels=labels),
            reductions={"expr": {"method": "pca", "params": {"max_components": 1}}},
        )
        tester = UnitTester(dataset)
        assert tester.model_kind == ModelKind.LOGISTIC
        unit = tester.test(UnitKey("p"), ["G1", "G2"])
        assert list(unit.covariates.columns) == ["expr_PC1"]

    def test_more_than_two_classes(self, expression, samples):
        labels = ["a", "b", "c"] * (N_SAMPLES // 3)
        dataset = OmicsDataset(
            matrices={"expr": expression},
            outcome=ClassOutcome(samples=samples, labels=labels),
            reductions={"expr": "pca"},
        )
        with pytest.raises(ValueError, match="exactly 2 classes"):
            UnitTester(dataset)

    def test_config(self):
        assert TesterConfig().penalizer == 0.0
        with pytest.raises(ValueError):
            TesterConfig(penalizer=-1.0)
