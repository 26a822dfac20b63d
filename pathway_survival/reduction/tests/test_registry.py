"""
Tests for the reduction strategy registry.
"""

import numpy as np
import pandas as pd
import pytest

from pathway_survival.reduction import (
    REGISTRY,
    ClusterParams,
    EventParams,
    OmicReduction,
    PCAParams,
    ReductionMethod,
    build_params,
    reduce,
    resolve_method,
)


class TestResolveMethod:
    """Tests for method identifier resolution."""

    def test_every_method_registered(self):
        assert set(REGISTRY) == set(ReductionMethod)

    @pytest.mark.parametrize(
        "identifier,expected",
        [
            ("pca", ReductionMethod.PCA),
            ("CLUSTER", ReductionMethod.CLUSTER),
            (ReductionMethod.EVENTS, ReductionMethod.EVENTS),
        ],
    )
    def test_resolve(self, identifier, expected):
        assert resolve_method(identifier) == expected

    def test_unknown_lists_valid_methods(self):
        with pytest.raises(ValueError, match="pca.*cluster.*events"):
            resolve_method("nmf")


class TestBuildParams:
    """Tests for parameter construction."""

    def test_defaults(self):
        assert build_params(ReductionMethod.PCA, None) == PCAParams()

    def test_from_mapping(self):
        params = build_params(ReductionMethod.EVENTS, {"min_prop": 0.1, "binary": True})
        assert params == EventParams(min_prop=0.1, binary=True)

    def test_passthrough(self):
        params = ClusterParams(max_clusters=4)
        assert build_params(ReductionMethod.CLUSTER, params) is params

    def test_unknown_parameter(self):
        with pytest.raises(ValueError, match="max_components"):
            build_params(ReductionMethod.CLUSTER, {"max_components": 2})

    def test_wrong_type(self):
        with pytest.raises(ValueError):
            build_params(ReductionMethod.PCA, EventParams())


class TestOmicReduction:
    """Tests for OmicReduction."""

    def test_create_from_config_mapping(self):
        reduction = OmicReduction.create({"method": "pca", "params": {"max_components": 2}})
        assert reduction.method == ReductionMethod.PCA
        assert reduction.params.max_components == 2

    def test_with_params_is_pure(self):
        reduction = OmicReduction.create("pca")
        updated = reduction.with_params(shrink=True)
        assert updated.params.shrink
        assert not reduction.params.shrink
        assert reduction.with_params() is reduction

    def test_to_dict_round_trip(self):
        reduction = OmicReduction.create(
            "cluster", {"dictionary": {"cg1": "TP53"}, "representation": "average"}
        )
        assert OmicReduction.create(reduction.to_dict()) == reduction

    def test_dictionary(self):
        assert OmicReduction.create("pca").dictionary is None
        reduction = OmicReduction.create("cluster", {"dictionary": {"cg1": "TP53"}})
        assert reduction.dictionary == {"cg1": "TP53"}

    def test_same_config_gives_identical_covariates(self):
        rng = np.random.default_rng(5)
        matrix = pd.DataFrame(rng.normal(size=(4, 12)), index=list("ABCD"))
        config = {"method": "pca", "params": {"max_components": 2, "shrink": True}}
        first = OmicReduction.create(config).reduce(matrix)
        second = OmicReduction.create(OmicReduction.create(config).to_dict()).reduce(matrix)
        assert first.values.tobytes() == second.values.tobytes()


def test_reduce_by_identifier():
    matrix = pd.DataFrame([[0, 1, 0, 1], [1, 1, 0, 0]], index=["KRAS", "TP53"])
    block = reduce("events", matrix, {"min_prop": 0.0})
    assert block.names == ["events"]
    assert block.values[0].tolist() == [1, 2, 0, 1]
