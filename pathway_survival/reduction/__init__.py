"""
Reduction Strategies

Summarize the genes of an analysis unit into a few covariates per omic.
"""

from .base import CovariateBlock
from .clustering import ClusterParams, summarize_in_clusters
from .events import EventParams, summarize_to_events
from .pca import PCAParams, summarize_with_pca
from .registry import (
    REGISTRY,
    OmicReduction,
    ReductionMethod,
    ReductionStrategy,
    build_params,
    reduce,
    resolve_method,
)

__all__ = [
    "CovariateBlock",
    "ReductionMethod",
    "ReductionStrategy",
    "OmicReduction",
    "REGISTRY",
    "resolve_method",
    "build_params",
    "reduce",
    "PCAParams",
    "ClusterParams",
    "EventParams",
    "summarize_with_pca",
    "summarize_in_clusters",
    "summarize_to_events",
]
