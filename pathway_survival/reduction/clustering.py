"""
Cluster Summarization

Summarizes sub-feature level omics (e.g. methylation probes mapped to genes)
through hierarchical clustering. Either the samples are grouped into a small
number of clusters (one categorical covariate), or the sub-features are grouped
by correlation and each group is averaged (one numeric covariate per group).
"""

from dataclasses import dataclass
from typing import Mapping, Optional
import logging

import networkx as nx
import numpy as np
import pandas as pd
from scipy.cluster.hierarchy import fcluster, linkage
from scipy.spatial.distance import squareform
from sklearn.metrics import silhouette_score

from ..exceptions import InsufficientDataError
from .base import CovariateBlock, prepare_numeric

logger = logging.getLogger(__name__)

REPRESENTATIONS = ("categorical", "average")
LINKAGES = ("ward", "complete", "average", "single")


@dataclass(frozen=True)
class ClusterParams:
    """
    Parameters for cluster summarization.

    `dictionary` maps sub-feature identifiers (rows of the omic matrix) to the
    gene they belong to. Without it, rows are taken to be genes.
    """

    max_clusters: int = 3
    dictionary: Optional[Mapping[str, str]] = None
    representation: str = "categorical"  # categorical, average
    linkage: str = "ward"

    def __post_init__(self):
        if self.max_clusters < 2:
            raise ValueError("max_clusters must be at least 2")
        if self.representation not in REPRESENTATIONS:
            raise ValueError(
                f"representation must be one of {REPRESENTATIONS}, got {self.representation!r}"
            )
        if self.linkage not in LINKAGES:
            raise ValueError(f"linkage must be one of {LINKAGES}, got {self.linkage!r}")


def _standardize(values: pd.DataFrame) -> np.ndarray:
    """Row-wise z-scores (features x samples)."""
    data = values.values
    return (data - data.mean(axis=1, keepdims=True)) / data.std(axis=1, ddof=1, keepdims=True)


def _relabel_by_appearance(labels: np.ndarray) -> np.ndarray:
    mapping = {}
    for label in labels:
        if label not in mapping:
            mapping[label] = len(mapping) + 1
    return np.array([mapping[label] for label in labels])


def _cluster_samples(values: pd.DataFrame, params: ClusterParams) -> CovariateBlock:
    z = _standardize(values).T  # samples x features
    n_samples = z.shape[0]
    tree = linkage(z, method=params.linkage, metric="euclidean")

    best_k, best_score, best_labels = None, -np.inf, None
    scores = {}
    for k in range(2, min(params.max_clusters, n_samples - 1) + 1):
        labels = fcluster(tree, t=k, criterion="maxclust")
        if len(np.unique(labels)) < 2:
            continue
        score = silhouette_score(z, labels)
        scores[k] = float(score)
        if score > best_score:
            best_k, best_score, best_labels = k, score, labels

    if best_labels is None:
        raise InsufficientDataError("Samples could not be split into clusters")

    labels = _relabel_by_appearance(best_labels)
    return CovariateBlock(
        names=["clusters"],
        values=labels[np.newaxis, :],
        categorical=[True],
        features_used=list(values.index),
        metadata={
            "representation": "categorical",
            "n_clusters": int(len(np.unique(labels))),
            "chosen_k": best_k,
            "silhouette_by_k": scores,
        },
    )


def _cluster_features(values: pd.DataFrame, params: ClusterParams) -> CovariateBlock:
    z = _standardize(values)  # features x samples
    features = list(values.index)

    if len(features) == 1:
        groups = np.array([1])
    else:
        corr = np.corrcoef(z)
        distance = np.clip(1.0 - corr, 0.0, 2.0)
        np.fill_diagonal(distance, 0.0)
        distance = (distance + distance.T) / 2.0
        tree = linkage(squareform(distance, checks=False), method="average")
        groups = _relabel_by_appearance(
            fcluster(tree, t=params.max_clusters, criterion="maxclust")
        )

    n_groups = int(groups.max())
    averaged = np.vstack([z[groups == g].mean(axis=0) for g in range(1, n_groups + 1)])
    return CovariateBlock(
        names=[f"cl{g}" for g in range(1, n_groups + 1)],
        values=averaged,
        categorical=[False] * n_groups,
        features_used=features,
        metadata={
            "representation": "average",
            "feature_groups": dict(zip(features, groups.tolist())),
        },
    )


def summarize_in_clusters(
    matrix: pd.DataFrame,
    params: ClusterParams,
    topology: Optional[nx.Graph] = None,
) -> CovariateBlock:
    """
    Summarize a sub-features x samples matrix by hierarchical clustering.

    Args:
        matrix: Sub-features x samples values, already restricted to the unit
        params: Cluster summarization parameters
        topology: Unused; accepted for a uniform strategy signature

    Returns:
        CovariateBlock with one categorical covariate ("clusters") or one
        averaged covariate per feature group ("cl1".."clk")
    """
    values = prepare_numeric(matrix, min_samples=3)
    if params.representation == "categorical":
        return _cluster_samples(values, params)
    return _cluster_features(values, params)
