"""
Pathway Module Partitioning

Splits a pathway graph into modules: the connected components of the graph
restricted to the genes actually measured. Numbering is reproducible for
identical (graph, gene universe) inputs.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set, Tuple
import logging

import networkx as nx

from ..association.keys import UnitKey
from ..data.pathways import PathwayCollection, PathwayGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Module:
    """
    A connected sub-mechanism of a pathway.

    Attributes:
        parent_pathway: Name of the originating pathway (lookup only)
        module_index: 1-based position among the pathway's modules
        genes: Sorted genes of the module
        graph: Induced undirected subgraph
    """

    parent_pathway: str
    module_index: int
    genes: Tuple[str, ...]
    graph: nx.Graph

    @property
    def key(self) -> UnitKey:
        return UnitKey(self.parent_pathway, self.module_index)

    @property
    def size(self) -> int:
        return len(self.genes)

    def __len__(self) -> int:
        return len(self.genes)


@dataclass
class PartitionConfig:
    """Configuration for module partitioning."""

    min_module_size: int = 1  # Components smaller than this are not modules

    def __post_init__(self):
        if self.min_module_size < 1:
            raise ValueError("min_module_size must be at least 1")


class ModulePartitioner:
    """
    Partitions pathway graphs into connected modules.

    The graph is restricted to the gene universe and treated as undirected.
    Components are discovered by visiting nodes in sorted order, which fixes
    module numbering independently of graph insertion order.
    """

    def __init__(self, config: Optional[PartitionConfig] = None):
        """
        Initialize partitioner.

        Args:
            config: Partitioning configuration
        """
        self.config = config or PartitionConfig()

    def partition(self, pathway: PathwayGraph, gene_universe: Iterable[str]) -> List[Module]:
        """
        Partition one pathway.

        Args:
            pathway: Pathway graph
            gene_universe: Genes present in the data

        Returns:
            Ordered list of modules; empty if no gene of the pathway is present
        """
        restricted = pathway.restricted_to(gene_universe)
        if restricted.is_directed():
            restricted = restricted.to_undirected()

        modules: List[Module] = []
        visited: Set[str] = set()
        for node in sorted(restricted.nodes):
            if node in visited:
                continue
            component = nx.node_connected_component(restricted, node)
            visited |= component
            if len(component) < self.config.min_module_size:
                continue
            genes = tuple(sorted(component))
            modules.append(
                Module(
                    parent_pathway=pathway.name,
                    module_index=len(modules) + 1,
                    genes=genes,
                    graph=restricted.subgraph(genes).copy(),
                )
            )

        logger.debug(
            f"{pathway.name}: {restricted.number_of_nodes()}/{pathway.n_nodes} genes "
            f"in data, {len(modules)} modules"
        )
        return modules

    def partition_collection(
        self, pathways: PathwayCollection, gene_universe: Iterable[str]
    ) -> Dict[str, List[Module]]:
        """
        Partition every pathway of a collection.

        Returns:
            Mapping from pathway name to its modules, in collection order
        """
        universe = set(gene_universe)
        result = {p.name: self.partition(p, universe) for p in pathways}
        n_modules = sum(len(m) for m in result.values())
        logger.info(f"Partitioned {len(result)} pathways into {n_modules} modules")
        return result
