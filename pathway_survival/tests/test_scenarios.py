"""
End-to-end scenarios over the library API.
"""

import numpy as np
import pandas as pd
import pytest

from pathway_survival.association import UnitKey
from pathway_survival.batch import (
    BatchConfig,
    BatchRunner,
    Resampler,
    ResamplingConfig,
    UnitStatus,
)
from pathway_survival.data import (
    OmicsDataset,
    PathwayCollection,
    PathwayGraph,
    SurvivalOutcome,
    align_to_common_samples,
)
from pathway_survival.exceptions import AlignmentError
from pathway_survival.partitioning import ModulePartitioner


GENES = ["G1", "G2", "G3"]


@pytest.fixture
def two_omic_dataset():
    """Expression and mutations over 3 genes and 10 samples."""
    samples = [f"S{i}" for i in range(10)]
    rng = np.random.default_rng(7)
    expression = pd.DataFrame(rng.normal(size=(3, 10)), index=GENES, columns=samples)
    mutations = pd.DataFrame(
        [
            [1, 0, 0, 1, 0, 0, 0, 1, 0, 0],
            [0, 1, 0, 0, 0, 1, 0, 0, 0, 0],
            [1, 0, 0, 0, 1, 0, 0, 0, 0, 1],
        ],
        index=GENES,
        columns=samples,
    )
    outcome = SurvivalOutcome(
        samples=samples,
        time=[5.1, 3.2, 8.4, 1.9, 6.6, 2.8, 9.5, 4.3, 7.7, 2.2],
        event=[1, 1, 0, 1, 1, 1, 0, 1, 1, 0],
    )
    return OmicsDataset(
        matrices={"expr": expression, "mut": mutations},
        outcome=outcome,
        reductions={
            "expr": {"method": "pca", "params": {"max_components": 1}},
            "mut": "events",
        },
    )


def test_single_module_two_omics(two_omic_dataset):
    pathways = PathwayCollection.from_graphs(
        [PathwayGraph.from_edges("P", [("G1", "G2"), ("G2", "G3")])]
    )
    result = BatchRunner(BatchConfig(level="module")).run(two_omic_dataset, pathways)

    assert len(result) == 1
    assert len(result.tested) == 1
    unit = result.tested[0]
    assert unit.key == UnitKey("P", 1)
    assert unit.genes == tuple(GENES)
    assert np.isfinite(unit.p_value)
    assert 0.0 <= unit.p_value <= 1.0
    assert set(unit.covariate_omics.values()) == {"expr", "mut"}
    assert set(unit.covariate_p_values) == {"expr_PC1", "mut_events"}


def test_disjoint_samples_fail_fast():
    expression = pd.DataFrame(np.ones((3, 4)), index=GENES, columns=["A1", "A2", "A3", "A4"])
    mutations = pd.DataFrame(np.ones((3, 4)), index=GENES, columns=["B1", "B2", "B3", "B4"])
    outcome = SurvivalOutcome(samples=["A1", "A2", "A3", "A4"], time=[1, 2, 3, 4], event=[1, 1, 0, 1])

    with pytest.raises(AlignmentError):
        OmicsDataset(
            matrices={"expr": expression, "mut": mutations},
            outcome=outcome,
            reductions={"expr": "pca", "mut": "events"},
        )
    with pytest.raises(AlignmentError):
        align_to_common_samples({"expr": expression, "mut": mutations}, outcome)


def test_pathway_outside_gene_universe(two_omic_dataset):
    pathway = PathwayGraph.from_edges("elsewhere", [("X1", "X2")])
    assert ModulePartitioner().partition(pathway, two_omic_dataset.gene_universe()) == []

    result = BatchRunner(BatchConfig(level="module")).run(
        two_omic_dataset, PathwayCollection.from_graphs([pathway])
    )
    outcome = result.outcomes[UnitKey("elsewhere")]
    assert outcome.status == UnitStatus.NOT_TESTED
    assert outcome.error_type == "EmptyUnitError"
    assert result.tested == []


@pytest.mark.slow
def test_always_significant_unit_is_fully_stable():
    """Strong hazard trend in a single expression direction."""
    samples = [f"S{i}" for i in range(20)]
    x = np.arange(1, 21, dtype=float)
    expression = pd.DataFrame(np.vstack([x, 2 * x + 1]), index=["a", "b"], columns=samples)

    # Hazard rises with x; alternating delays keep the fit away from separation
    time = (21 - x) + 6 * np.tile([0, 1], 10)

    dataset = OmicsDataset(
        matrices={"expr": expression},
        outcome=SurvivalOutcome(samples=samples, time=time, event=np.ones(20)),
        reductions={"expr": {"method": "pca", "params": {"max_components": 1}}},
    )
    pathways = PathwayCollection.from_graphs([PathwayGraph.from_edges("P", [("a", "b")])])
    runner = BatchRunner(BatchConfig(level="module"))
    assert runner.run(dataset, pathways).significant(0.05) == [UnitKey("P", 1)]

    result = Resampler(
        ResamplingConfig(n_iterations=100, n_remove=3, alpha=0.05, random_state=42), runner
    ).run(dataset, pathways, [UnitKey("P", 1)])

    assert result.success_counts[UnitKey("P", 1)] == 100
    assert result.success_rate(UnitKey("P", 1)) == 1.0
