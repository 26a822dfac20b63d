"""
Data

Omics container, outcome annotations, pathway graphs and input loaders.
"""

from .loaders import (
    align_to_common_samples,
    load_class_outcome,
    load_gmt,
    load_omic_matrix,
    load_pathway_edges,
    load_survival_outcome,
)
from .omics import ClassOutcome, OmicsDataset, Outcome, OutcomeKind, SurvivalOutcome
from .pathways import PathwayCollection, PathwayGraph

__all__ = [
    # Container
    "OmicsDataset",
    "Outcome",
    "OutcomeKind",
    "SurvivalOutcome",
    "ClassOutcome",
    # Pathways
    "PathwayGraph",
    "PathwayCollection",
    # Loaders
    "load_omic_matrix",
    "load_survival_outcome",
    "load_class_outcome",
    "load_pathway_edges",
    "load_gmt",
    "align_to_common_samples",
]
