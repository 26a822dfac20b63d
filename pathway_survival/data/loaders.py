"""
Input Loaders

Reads omic matrices, outcome tables and pathway knowledge bases from delimited
text files, and offers the explicit sample-intersection step that callers run
before building an OmicsDataset from independently prepared tables.
"""

from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Set, Tuple
import logging

import numpy as np
import pandas as pd

from ..exceptions import AlignmentError
from .omics import ClassOutcome, Outcome, SurvivalOutcome
from .pathways import PathwayCollection, PathwayGraph

logger = logging.getLogger(__name__)


def _separator(path: Path, sep: Optional[str]) -> str:
    if sep is not None:
        return sep
    return "," if path.suffix.lower() == ".csv" else "\t"


def _require(path: str, what: str) -> Path:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"{what} not found: {path}")
    return p


def load_omic_matrix(path: str, sep: Optional[str] = None) -> pd.DataFrame:
    """
    Load a features x samples matrix.

    The first column holds feature identifiers, the header row holds sample
    identifiers.

    Args:
        path: Matrix file (.tsv/.txt tab-separated, .csv comma-separated)
        sep: Explicit separator

    Returns:
        DataFrame with string feature index and sample columns
    """
    p = _require(path, "Omic matrix")
    matrix = pd.read_csv(p, sep=_separator(p, sep), index_col=0)
    matrix.index = matrix.index.map(str)
    matrix.columns = matrix.columns.map(str)
    if matrix.empty:
        raise ValueError(f"Empty omic matrix: {path}")

    logger.info(f"Loaded {matrix.shape[0]} features x {matrix.shape[1]} samples from {path}")
    return matrix


def _read_table(path: str, sep: Optional[str], sample_col: Optional[str]) -> pd.DataFrame:
    p = _require(path, "Outcome table")
    if sample_col is None:
        table = pd.read_csv(p, sep=_separator(p, sep), index_col=0)
    else:
        table = pd.read_csv(p, sep=_separator(p, sep)).set_index(sample_col)
    table.index = table.index.map(str)
    return table


def load_survival_outcome(
    path: str,
    time_col: str = "time",
    event_col: str = "event",
    sample_col: Optional[str] = None,
    sep: Optional[str] = None,
) -> SurvivalOutcome:
    """
    Load follow-up times and event indicators.

    Rows with a missing time or event are dropped.

    Args:
        path: Outcome table
        time_col: Column with follow-up times
        event_col: Column with 0/1 event indicators
        sample_col: Column with sample identifiers (first column if None)
    """
    table = _read_table(path, sep, sample_col)
    for col in (time_col, event_col):
        if col not in table.columns:
            raise ValueError(f"Column {col!r} not found in {path}")

    complete = table[[time_col, event_col]].dropna()
    if len(complete) < len(table):
        logger.warning(
            f"Dropped {len(table) - len(complete)} samples with missing survival data"
        )
    return SurvivalOutcome(
        samples=tuple(complete.index),
        time=complete[time_col].to_numpy(dtype=float),
        event=complete[event_col].to_numpy(dtype=float),
    )


def load_class_outcome(
    path: str,
    class_col: str = "class",
    sample_col: Optional[str] = None,
    classes: Optional[List[str]] = None,
    sep: Optional[str] = None,
) -> ClassOutcome:
    """
    Load a categorical class label per sample.

    Args:
        path: Outcome table
        class_col: Column with class labels
        sample_col: Column with sample identifiers (first column if None)
        classes: Class order; the first class is the reference level
    """
    table = _read_table(path, sep, sample_col)
    if class_col not in table.columns:
        raise ValueError(f"Column {class_col!r} not found in {path}")

    labels = table[class_col].dropna()
    return ClassOutcome(
        samples=tuple(labels.index),
        labels=labels.astype(str).to_numpy(),
        classes=tuple(classes or ()),
    )


def load_pathway_edges(
    path: str,
    directed: bool = False,
    source: str = "edges",
    sep: str = "\t",
) -> PathwayCollection:
    """
    Load pathway graphs from an edge list.

    Format: pathway<TAB>source_gene<TAB>target_gene. A line with an empty
    target adds an isolated gene. Lines starting with '#' are ignored.

    Args:
        path: Edge list file
        directed: Build directed graphs
        source: Knowledge base name recorded on the collection

    Returns:
        PathwayCollection in order of first appearance
    """
    p = _require(path, "Pathway edge list")

    edges: Dict[str, List[Tuple[str, str]]] = defaultdict(list)
    nodes: Dict[str, Set[str]] = defaultdict(set)
    order: List[str] = []

    with open(p, "r") as f:
        for line_num, line in enumerate(f, 1):
            line = line.rstrip("\n")
            if not line.strip() or line.startswith("#"):
                continue
            fields = line.split(sep)
            if len(fields) < 2 or not fields[1]:
                logger.warning(f"Skipping malformed line {line_num} in {path}")
                continue

            name = fields[0]
            if name not in nodes:
                order.append(name)
            nodes[name].add(fields[1])
            target = fields[2].strip() if len(fields) > 2 else ""
            if target:
                edges[name].append((fields[1], target))

    graphs = [
        PathwayGraph.from_edges(
            name, edges[name], nodes=sorted(nodes[name]), directed=directed, source=source
        )
        for name in order
    ]
    logger.info(
        f"Loaded {len(graphs)} pathways from {path} "
        f"({sum(len(e) for e in edges.values())} interactions)"
    )
    return PathwayCollection.from_graphs(graphs, source=source, metadata={"file": str(p)})


def load_gmt(path: str, source: str = "GMT") -> PathwayCollection:
    """
    Load gene sets from GMT format as pathways without topology.

    GMT format: pathway_id<TAB>description<TAB>gene1<TAB>gene2<TAB>...

    Args:
        path: Path to GMT file
        source: Source name for the collection
    """
    p = _require(path, "GMT file")
    graphs = []

    with open(p, "r") as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue

            fields = line.split("\t")
            if len(fields) < 3:
                logger.warning(f"Skipping malformed line {line_num} in {path}")
                continue

            genes = set(fields[2:]) - {"", "na", "NA"}
            if not genes:
                continue
            graphs.append(
                PathwayGraph.from_genes(
                    fields[0], sorted(genes), description=fields[1], source=source
                )
            )

    logger.info(f"Loaded {len(graphs)} gene sets from {path}")
    return PathwayCollection.from_graphs(graphs, source=source, metadata={"file": str(p)})


def align_to_common_samples(
    matrices: Mapping[str, pd.DataFrame],
    outcome: Outcome,
) -> Tuple[Dict[str, pd.DataFrame], Outcome]:
    """
    Restrict matrices and outcome to the samples they all share.

    This is a deliberate, logged preprocessing step; OmicsDataset itself
    never reconciles mismatched samples.

    Args:
        matrices: Omic name to features x samples DataFrame
        outcome: Survival or class outcome

    Returns:
        (aligned matrices, aligned outcome), samples in outcome order

    Raises:
        AlignmentError: If no sample is shared by all inputs
    """
    shared = set(outcome.samples)
    for matrix in matrices.values():
        shared &= set(map(str, matrix.columns))

    common = [s for s in outcome.samples if s in shared]
    if not common:
        raise AlignmentError("No sample is shared by all omics and the outcome")

    dropped = len(outcome.samples) - len(common)
    if dropped:
        logger.warning(f"Dropped {dropped} outcome samples missing from some omic")
    for name, matrix in matrices.items():
        extra = matrix.shape[1] - len(common)
        if extra:
            logger.warning(f"Dropped {extra} samples of '{name}' without outcome or other omics")

    aligned = {}
    for name, matrix in matrices.items():
        m = matrix.copy()
        m.columns = m.columns.map(str)
        aligned[name] = m.loc[:, common]
    return aligned, outcome.subset(common)
