"""
Pathway Graphs

Named gene-interaction graphs from a pathway knowledge base. Graphs are
treated as read-only for the duration of an analysis.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple
import hashlib
import logging

import networkx as nx

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class PathwayGraph:
    """
    A named pathway with its gene-interaction topology.

    Attributes:
        name: Pathway identifier
        graph: NetworkX graph over gene identifiers (directed or undirected)
        description: Human-readable description
        source: Knowledge base the pathway comes from
    """

    name: str
    graph: nx.Graph
    description: str = ""
    source: str = "unknown"

    @classmethod
    def from_edges(
        cls,
        name: str,
        edges: Iterable[Tuple[str, str]],
        nodes: Optional[Iterable[str]] = None,
        directed: bool = False,
        **kwargs: Any,
    ) -> "PathwayGraph":
        """
        Build a pathway from an edge list.

        Args:
            name: Pathway identifier
            edges: (source, target) gene pairs
            nodes: Extra genes without interactions
            directed: Build a directed graph
        """
        graph = nx.DiGraph() if directed else nx.Graph()
        graph.add_nodes_from(str(n) for n in nodes or [])
        graph.add_edges_from((str(u), str(v)) for u, v in edges)
        return cls(name=name, graph=graph, **kwargs)

    @classmethod
    def from_genes(cls, name: str, genes: Iterable[str], **kwargs: Any) -> "PathwayGraph":
        """Build a pathway without topology (a plain gene set)."""
        return cls.from_edges(name, edges=[], nodes=genes, **kwargs)

    @property
    def nodes(self) -> Set[str]:
        return set(self.graph.nodes)

    @property
    def edges(self) -> List[Tuple[str, str]]:
        return list(self.graph.edges)

    @property
    def n_nodes(self) -> int:
        return self.graph.number_of_nodes()

    @property
    def n_edges(self) -> int:
        return self.graph.number_of_edges()

    @property
    def is_directed(self) -> bool:
        return self.graph.is_directed()

    def restricted_to(self, genes: Iterable[str]) -> nx.Graph:
        """Copy of the subgraph induced by the given genes."""
        return self.graph.subgraph(set(genes) & self.nodes).copy()

    def __len__(self) -> int:
        return self.n_nodes


@dataclass
class PathwayCollection:
    """
    Ordered collection of pathway graphs.

    Attributes:
        pathways: Mapping from pathway name to PathwayGraph, in analysis order
        source: Knowledge base name
        metadata: Additional metadata about the collection
    """

    pathways: Dict[str, PathwayGraph] = field(default_factory=dict)
    source: str = "unknown"
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_graphs(cls, graphs: Iterable[PathwayGraph], **kwargs: Any) -> "PathwayCollection":
        pathways: Dict[str, PathwayGraph] = {}
        for graph in graphs:
            if graph.name in pathways:
                raise ValueError(f"Duplicate pathway name: {graph.name}")
            pathways[graph.name] = graph
        return cls(pathways=pathways, **kwargs)

    def __len__(self) -> int:
        return len(self.pathways)

    def __iter__(self) -> Iterator[PathwayGraph]:
        return iter(self.pathways.values())

    def __contains__(self, name: str) -> bool:
        return name in self.pathways

    def __getitem__(self, name: str) -> PathwayGraph:
        return self.pathways[name]

    @property
    def names(self) -> List[str]:
        return list(self.pathways)

    def get(self, name: str) -> Optional[PathwayGraph]:
        return self.pathways.get(name)

    def get_all_genes(self) -> Set[str]:
        """Get all genes across all pathways."""
        all_genes: Set[str] = set()
        for pathway in self.pathways.values():
            all_genes |= pathway.nodes
        return all_genes

    def filter_by_size(
        self, min_size: int = 1, max_size: Optional[int] = None
    ) -> "PathwayCollection":
        """
        Filter pathways by number of genes.

        Args:
            min_size: Minimum number of genes
            max_size: Maximum number of genes (no limit if None)

        Returns:
            New PathwayCollection with the pathways in range
        """
        kept = {
            name: p
            for name, p in self.pathways.items()
            if p.n_nodes >= min_size and (max_size is None or p.n_nodes <= max_size)
        }
        logger.info(
            f"Size filter [{min_size}, {max_size}] kept {len(kept)}/{len(self)} pathways"
        )
        return PathwayCollection(
            pathways=kept,
            source=self.source,
            metadata={**self.metadata, "min_size": min_size, "max_size": max_size},
        )

    def subset_by_genes(self, genes: Iterable[str]) -> "PathwayCollection":
        """
        Restrict every pathway to the given genes, dropping pathways left empty.

        Args:
            genes: Genes to keep

        Returns:
            New PathwayCollection of induced subgraphs
        """
        genes = set(genes)
        subset = {}
        for name, pathway in self.pathways.items():
            sub = pathway.restricted_to(genes)
            if sub.number_of_nodes():
                subset[name] = PathwayGraph(
                    name=name,
                    graph=sub,
                    description=pathway.description,
                    source=pathway.source,
                )
        return PathwayCollection(
            pathways=subset,
            source=self.source,
            metadata={**self.metadata, "subset": True, "n_query_genes": len(genes)},
        )

    def select(self, names: Iterable[str]) -> "PathwayCollection":
        """Collection with the named pathways, in collection order."""
        wanted = set(names)
        return PathwayCollection(
            pathways={n: p for n, p in self.pathways.items() if n in wanted},
            source=self.source,
            metadata=dict(self.metadata),
        )

    def fingerprint(self) -> str:
        """SHA-256 digest of pathway names, nodes and edges."""
        digest = hashlib.sha256()
        for name, pathway in self.pathways.items():
            digest.update(name.encode())
            digest.update(b"D" if pathway.is_directed else b"U")
            digest.update("\x1f".join(sorted(pathway.nodes)).encode())
            edges = sorted(f"{u}\x1e{v}" for u, v in pathway.edges)
            digest.update("\x1f".join(edges).encode())
        return digest.hexdigest()

    @staticmethod
    def merge(collections: List["PathwayCollection"]) -> "PathwayCollection":
        """
        Merge collections, prefixing pathway names with their source.

        Args:
            collections: Collections to merge

        Returns:
            Merged PathwayCollection
        """
        if not collections:
            raise ValueError("No collections to merge")
        if len(collections) == 1:
            return collections[0]

        merged: Dict[str, PathwayGraph] = {}
        sources = []
        for collection in collections:
            sources.append(collection.source)
            for name, pathway in collection.pathways.items():
                prefixed = f"{collection.source}:{name}"
                merged[prefixed] = PathwayGraph(
                    name=prefixed,
                    graph=pathway.graph,
                    description=pathway.description,
                    source=collection.source,
                )

        logger.info(
            f"Merged {len(collections)} collections: {sources} "
            f"-> {len(merged)} total pathways"
        )
        return PathwayCollection(
            pathways=merged,
            source="+".join(sources),
            metadata={"merged_from": sources},
        )
