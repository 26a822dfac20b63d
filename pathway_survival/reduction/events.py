"""
Event-Count Summarization

Summarizes discrete omics (somatic mutations, copy-number states) as the number
of genes of a unit that carry an event in each sample.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple
import logging

import networkx as nx
import numpy as np
import pandas as pd

from ..exceptions import InsufficientDataError
from .base import CovariateBlock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventParams:
    """
    Parameters for event-count summarization.

    A value counts as an event when |x| >= event_threshold. In directional
    mode gains (x >= threshold) and losses (x <= -threshold) are counted
    separately. Genes affected in fewer than `min_prop` of the samples are
    ignored.
    """

    min_prop: float = 0.05
    event_threshold: float = 1.0
    directional: bool = False
    binary: bool = False

    def __post_init__(self):
        if not 0.0 <= self.min_prop <= 1.0:
            raise ValueError("min_prop must be within [0, 1]")
        if self.event_threshold <= 0:
            raise ValueError("event_threshold must be positive")


def _count_events(
    events: np.ndarray, genes: List[str], min_prop: float
) -> Tuple[np.ndarray, List[str]]:
    """Per-sample counts over the genes affected in at least `min_prop` of samples."""
    proportion = events.mean(axis=1)
    keep = proportion >= min_prop
    if min_prop == 0.0:
        keep &= proportion > 0
    kept = [g for g, k in zip(genes, keep) if k]
    return events[keep].sum(axis=0), kept


def summarize_to_events(
    matrix: pd.DataFrame,
    params: EventParams,
    topology: Optional[nx.Graph] = None,
) -> CovariateBlock:
    """
    Count qualifying events per sample.

    Args:
        matrix: Genes x samples event values (0/1 mutations, copy-number states)
        params: Event summarization parameters
        topology: Unused; accepted for a uniform strategy signature

    Returns:
        CovariateBlock with "events", or "gain_events"/"loss_events" when
        directional
    """
    if matrix.shape[0] == 0:
        raise InsufficientDataError("No features for this unit")

    values = matrix.astype(float).fillna(0.0).values
    genes = [str(g) for g in matrix.index]
    t = params.event_threshold

    if params.directional:
        channels = [
            ("gain_events", (values >= t).astype(int)),
            ("loss_events", (values <= -t).astype(int)),
        ]
    else:
        channels = [("events", (np.abs(values) >= t).astype(int))]

    names, rows, used = [], [], {}
    for name, events in channels:
        counts, kept = _count_events(events, genes, params.min_prop)
        if not kept:
            logger.debug(f"{name}: no gene reaches min_prop={params.min_prop}")
            continue
        if params.binary:
            counts = (counts > 0).astype(int)
        if np.var(counts) == 0:
            logger.debug(f"{name}: constant across samples")
            continue
        names.append(name)
        rows.append(counts)
        used[name] = kept

    if not names:
        raise InsufficientDataError("No gene carries qualifying events")

    features_used = sorted({g for kept in used.values() for g in kept})
    return CovariateBlock(
        names=names,
        values=np.vstack(rows),
        categorical=[False] * len(names),
        features_used=features_used,
        metadata={"genes_by_covariate": used, "binary": params.binary},
    )
