"""
Component Summarization

Reduces the genes of a unit to a few orthogonal components. Supports a
shrinkage covariance estimate for small sample sizes and a topological variant
that only keeps covariance between genes linked in the pathway graph.
"""

from dataclasses import dataclass
from typing import Optional
import logging

import networkx as nx
import numpy as np
import pandas as pd
from sklearn.covariance import LedoitWolf
from sklearn.decomposition import PCA

from ..exceptions import InsufficientDataError
from .base import CovariateBlock, prepare_numeric

logger = logging.getLogger(__name__)

PCA_METHODS = ("regular", "topological")


@dataclass(frozen=True)
class PCAParams:
    """Parameters for component summarization."""

    max_components: int = 3
    shrink: bool = False
    method: str = "regular"  # regular, topological
    scale: bool = False

    def __post_init__(self):
        if self.max_components < 1:
            raise ValueError("max_components must be at least 1")
        if self.method not in PCA_METHODS:
            raise ValueError(f"PCA method must be one of {PCA_METHODS}, got {self.method!r}")


def _topology_mask(genes, topology: Optional[nx.Graph]) -> Optional[np.ndarray]:
    """Adjacency (plus identity) among `genes`, or None without usable edges."""
    if topology is None:
        return None
    undirected = topology.to_undirected() if topology.is_directed() else topology
    sub = undirected.subgraph(genes)
    if sub.number_of_edges() == 0:
        return None
    index = {gene: i for i, gene in enumerate(genes)}
    adjacency = np.eye(len(genes))
    for u, v in sub.edges():
        adjacency[index[u], index[v]] = 1.0
        adjacency[index[v], index[u]] = 1.0
    return adjacency


def summarize_with_pca(
    matrix: pd.DataFrame,
    params: PCAParams,
    topology: Optional[nx.Graph] = None,
) -> CovariateBlock:
    """
    Summarize a genes x samples matrix with principal components.

    Args:
        matrix: Features x samples values
        params: Component summarization parameters
        topology: Pathway graph, used by the topological method

    Returns:
        CovariateBlock with covariates PC1..PCk
    """
    values = prepare_numeric(matrix)
    genes = list(values.index)
    data = values.T.values  # samples x genes
    data = data - data.mean(axis=0)
    if params.scale:
        data = data / data.std(axis=0, ddof=1)

    method = params.method
    mask = None
    if method == "topological":
        mask = _topology_mask(genes, topology)
        if mask is None:
            logger.warning(
                "Topological PCA requested but no pathway edges among "
                f"{len(genes)} genes; using regular covariance"
            )
            method = "regular"

    if method == "regular" and not params.shrink:
        pca = PCA(svd_solver="full").fit(data)
        eigvals = pca.explained_variance_
        eigvecs = pca.components_.T
    else:
        # Shrunk and graph-masked covariances are decomposed directly
        if params.shrink:
            cov = LedoitWolf(assume_centered=True).fit(data).covariance_
        else:
            cov = np.atleast_2d(np.cov(data, rowvar=False))
        if mask is not None:
            cov = cov * mask
        eigvals, eigvecs = np.linalg.eigh(cov)
        order = np.argsort(eigvals)[::-1]
        eigvals = eigvals[order]
        eigvecs = eigvecs[:, order]

    tol = max(eigvals.max(), 0.0) * 1e-10
    usable = int(np.sum(eigvals > tol))
    n_components = min(params.max_components, usable, data.shape[0] - 1)
    if n_components < 1:
        raise InsufficientDataError("No component with positive variance")

    loadings = np.array(eigvecs[:, :n_components])
    # Deterministic sign: largest-magnitude loading is positive
    for j in range(n_components):
        if loadings[np.argmax(np.abs(loadings[:, j])), j] < 0:
            loadings[:, j] = -loadings[:, j]

    scores = data @ loadings  # samples x components
    total = eigvals[eigvals > 0].sum()

    return CovariateBlock(
        names=[f"PC{i + 1}" for i in range(n_components)],
        values=scores.T,
        categorical=[False] * n_components,
        features_used=genes,
        metadata={
            "method": method,
            "shrink": params.shrink,
            "explained_variance_ratio": (eigvals[:n_components] / total).tolist(),
            "loadings": pd.DataFrame(
                loadings, index=genes, columns=[f"PC{i + 1}" for i in range(n_components)]
            ),
        },
    )
