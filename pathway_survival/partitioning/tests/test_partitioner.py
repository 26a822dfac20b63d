"""
Tests for pathway module partitioning.
"""

import networkx as nx
import pytest

from pathway_survival.association.keys import UnitKey
from pathway_survival.data.pathways import PathwayCollection, PathwayGraph
from pathway_survival.partitioning import Module, ModulePartitioner, PartitionConfig


@pytest.fixture
def pathway():
    """Two components once gene 'C' is missing from the data."""
    return PathwayGraph.from_edges(
        "signaling",
        [("A", "B"), ("B", "C"), ("C", "D"), ("X", "Y")],
        nodes=["Z"],
    )


@pytest.fixture
def partitioner():
    return ModulePartitioner()


class TestModulePartitioner:
    """Tests for ModulePartitioner.partition."""

    def test_connected_components(self, partitioner, pathway):
        modules = partitioner.partition(pathway, {"A", "B", "D", "X", "Y", "Z"})
        assert [m.genes for m in modules] == [("A", "B"), ("D",), ("X", "Y"), ("Z",)]
        assert [m.module_index for m in modules] == [1, 2, 3, 4]
        assert all(m.parent_pathway == "signaling" for m in modules)

    def test_module_graph(self, partitioner, pathway):
        modules = partitioner.partition(pathway, pathway.nodes)
        assert modules[0].genes == ("A", "B", "C", "D")
        assert modules[0].graph.number_of_edges() == 3
        assert len(modules[0]) == 4

    def test_key(self, partitioner, pathway):
        module = partitioner.partition(pathway, pathway.nodes)[1]
        assert module.key == UnitKey("signaling", 2)
        assert module.key.label == "signaling#2"

    def test_min_module_size(self, pathway):
        partitioner = ModulePartitioner(PartitionConfig(min_module_size=2))
        modules = partitioner.partition(pathway, {"A", "B", "D", "X", "Y", "Z"})
        assert [m.genes for m in modules] == [("A", "B"), ("X", "Y")]
        assert [m.module_index for m in modules] == [1, 2]

    def test_no_overlap(self, partitioner, pathway):
        assert partitioner.partition(pathway, {"Q", "R"}) == []

    def test_directed_graph_treated_as_undirected(self, partitioner):
        directed = PathwayGraph.from_edges("d", [("B", "A"), ("C", "A")], directed=True)
        modules = partitioner.partition(directed, {"A", "B", "C"})
        assert len(modules) == 1
        assert modules[0].genes == ("A", "B", "C")
        assert not modules[0].graph.is_directed()

    def test_independent_of_insertion_order(self, partitioner):
        edges = [("M", "N"), ("A", "B"), ("K", "L")]
        first = PathwayGraph.from_edges("p", edges)
        second = PathwayGraph.from_edges("p", list(reversed(edges)))
        universe = set("ABKLMN")
        assert [m.genes for m in partitioner.partition(first, universe)] == [
            m.genes for m in partitioner.partition(second, universe)
        ]

    def test_repeatable(self, partitioner, pathway):
        universe = {"A", "B", "D", "X", "Y"}
        runs = [partitioner.partition(pathway, universe) for _ in range(3)]
        assert all([m.genes for m in run] == [m.genes for m in runs[0]] for run in runs)

    def test_source_graph_untouched(self, partitioner, pathway):
        before = nx.to_dict_of_lists(pathway.graph)
        partitioner.partition(pathway, {"A", "B"})
        assert nx.to_dict_of_lists(pathway.graph) == before

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            PartitionConfig(min_module_size=0)


def test_partition_collection(partitioner, pathway):
    collection = PathwayCollection.from_graphs(
        [pathway, PathwayGraph.from_genes("absent", ["Q"])]
    )
    result = partitioner.partition_collection(collection, {"A", "B", "X"})
    assert list(result) == ["signaling", "absent"]
    assert [m.genes for m in result["signaling"]] == [("A", "B"), ("X",)]
    assert result["absent"] == []
    assert all(isinstance(m, Module) for m in result["signaling"])
