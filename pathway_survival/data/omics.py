"""
Omics Container

Holds aligned multi-omic matrices together with the per-sample outcome and the
reduction configuration of every omic. Alignment is checked once, at
construction; every derived container is built through the same check.
"""

from collections import Counter
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union
import hashlib
import logging

import numpy as np
import pandas as pd

from ..exceptions import AlignmentError
from ..reduction.registry import OmicReduction, ReductionMethod

logger = logging.getLogger(__name__)


class OutcomeKind(Enum):
    """Kinds of per-sample outcome annotation."""

    SURVIVAL = "survival"
    TWO_CLASS = "two_class"


def _check_unique(ids: Sequence[str], what: str) -> None:
    if len(set(ids)) != len(ids):
        dupes = sorted(i for i, n in Counter(ids).items() if n > 1)
        raise AlignmentError(f"Duplicate {what} identifiers: {dupes[:5]}")


def _with_string_labels(matrix: pd.DataFrame) -> pd.DataFrame:
    """
    Private copy of a matrix with string labels.

    Feature and sample labels are compared as strings everywhere. The copy
    keeps later changes to the caller's frame out of the dataset.
    """
    matrix = matrix.copy()
    matrix.index = matrix.index.map(str)
    matrix.columns = matrix.columns.map(str)
    return matrix


@dataclass(frozen=True, eq=False)
class SurvivalOutcome:
    """
    Survival annotation: follow-up time and event indicator per sample.

    Attributes:
        samples: Sample identifiers, in analysis order
        time: Follow-up times (non-negative)
        event: Event indicators (1 = event observed, 0 = censored)
    """

    samples: Tuple[str, ...]
    time: np.ndarray
    event: np.ndarray

    def __post_init__(self):
        samples = tuple(str(s) for s in self.samples)
        time = np.array(self.time, dtype=float)
        event = np.asarray(self.event, dtype=float)

        if not (len(samples) == len(time) == len(event)):
            raise ValueError(
                f"Outcome lengths differ: {len(samples)} samples, "
                f"{len(time)} times, {len(event)} events"
            )
        _check_unique(samples, "sample")
        if not np.all(np.isfinite(time)) or np.any(time < 0):
            raise ValueError("Survival times must be finite and non-negative")
        if not np.all(np.isin(event, [0.0, 1.0])):
            raise ValueError("Event indicators must be 0 or 1")

        object.__setattr__(self, "samples", samples)
        object.__setattr__(self, "time", time)
        object.__setattr__(self, "event", event.astype(int))

    @property
    def kind(self) -> OutcomeKind:
        return OutcomeKind.SURVIVAL

    @property
    def n_events(self) -> int:
        return int(self.event.sum())

    def subset(self, samples: Sequence[str]) -> "SurvivalOutcome":
        index = {s: i for i, s in enumerate(self.samples)}
        idx = [index[s] for s in samples]
        return SurvivalOutcome(
            samples=tuple(samples), time=self.time[idx], event=self.event[idx]
        )

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {"time": self.time, "event": self.event}, index=list(self.samples)
        )

    def _hash_bytes(self) -> bytes:
        return self.time.tobytes() + self.event.tobytes()


@dataclass(frozen=True, eq=False)
class ClassOutcome:
    """
    Categorical class label per sample.

    Attributes:
        samples: Sample identifiers, in analysis order
        labels: Class label of each sample
        classes: Ordered class levels; the first one is the reference level
    """

    samples: Tuple[str, ...]
    labels: np.ndarray
    classes: Tuple[str, ...] = ()

    def __post_init__(self):
        samples = tuple(str(s) for s in self.samples)
        labels = np.asarray([str(l) for l in self.labels], dtype=object)

        if len(samples) != len(labels):
            raise ValueError(
                f"Outcome lengths differ: {len(samples)} samples, {len(labels)} labels"
            )
        _check_unique(samples, "sample")

        classes = tuple(self.classes) if self.classes else tuple(sorted(set(labels)))
        unknown = set(labels) - set(classes)
        if unknown:
            raise ValueError(f"Labels not among declared classes: {sorted(unknown)}")

        object.__setattr__(self, "samples", samples)
        object.__setattr__(self, "labels", labels)
        object.__setattr__(self, "classes", classes)

    @property
    def kind(self) -> OutcomeKind:
        return OutcomeKind.TWO_CLASS

    def subset(self, samples: Sequence[str]) -> "ClassOutcome":
        index = {s: i for i, s in enumerate(self.samples)}
        idx = [index[s] for s in samples]
        return ClassOutcome(
            samples=tuple(samples), labels=self.labels[idx], classes=self.classes
        )

    def indicator(self) -> np.ndarray:
        """0/1 vector, 1 for samples not in the reference (first) class."""
        return (self.labels != self.classes[0]).astype(int)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"class": self.labels}, index=list(self.samples))

    def _hash_bytes(self) -> bytes:
        return "\x1f".join(self.labels.tolist() + list(self.classes)).encode()


Outcome = Union[SurvivalOutcome, ClassOutcome]


@dataclass(frozen=True, eq=False)
class OmicsDataset:
    """
    Aligned multi-omic data for one analysis run.

    Attributes:
        matrices: Mapping from omic name to a features x samples DataFrame
        outcome: Survival or two-class annotation over the same samples
        reductions: Mapping from omic name to its reduction configuration

    Raises:
        AlignmentError: If sample identifiers differ (in set or order) between
            any matrix and the outcome, or identifiers are duplicated
    """

    matrices: Mapping[str, pd.DataFrame]
    outcome: Outcome
    reductions: Mapping[str, OmicReduction] = field(default_factory=dict)

    def __post_init__(self):
        if not self.matrices:
            raise ValueError("At least one omic matrix is required")

        reductions = {
            name: OmicReduction.create(r) if not isinstance(r, OmicReduction) else r
            for name, r in self.reductions.items()
        }
        missing = [name for name in self.matrices if name not in reductions]
        if missing:
            raise ValueError(f"No reduction configured for omics: {missing}")
        extra = [name for name in reductions if name not in self.matrices]
        if extra:
            raise ValueError(f"Reduction configured for unknown omics: {extra}")

        matrices = {
            name: _with_string_labels(matrix) for name, matrix in self.matrices.items()
        }
        expected = list(self.outcome.samples)
        for name, matrix in matrices.items():
            columns = list(matrix.columns)
            _check_unique(list(matrix.index), f"feature ({name})")
            if columns != expected:
                if set(columns) != set(expected):
                    only_matrix = sorted(set(columns) - set(expected))[:5]
                    only_outcome = sorted(set(expected) - set(columns))[:5]
                    raise AlignmentError(
                        f"Samples of omic '{name}' differ from the outcome: "
                        f"only in matrix {only_matrix}, only in outcome {only_outcome}"
                    )
                raise AlignmentError(
                    f"Samples of omic '{name}' are not in outcome order"
                )

        object.__setattr__(self, "matrices", matrices)
        object.__setattr__(self, "reductions", reductions)

    @property
    def omics(self) -> Tuple[str, ...]:
        return tuple(self.matrices)

    @property
    def samples(self) -> Tuple[str, ...]:
        return self.outcome.samples

    @property
    def n_samples(self) -> int:
        return len(self.outcome.samples)

    @property
    def outcome_kind(self) -> OutcomeKind:
        return self.outcome.kind

    def subset_samples(self, sample_ids: Iterable[str]) -> "OmicsDataset":
        """
        Restrict every matrix and the outcome to a sample subset.

        The original sample order is kept regardless of the order of
        `sample_ids`.

        Args:
            sample_ids: Samples to keep

        Returns:
            New OmicsDataset over the subset
        """
        wanted = set(sample_ids)
        unknown = wanted - set(self.samples)
        if unknown:
            raise ValueError(f"Unknown samples: {sorted(unknown)[:5]}")
        kept = [s for s in self.samples if s in wanted]
        if not kept:
            raise ValueError("Sample subset is empty")

        return OmicsDataset(
            matrices={name: m.loc[:, kept] for name, m in self.matrices.items()},
            outcome=self.outcome.subset(kept),
            reductions=self.reductions,
        )

    def with_reduction(
        self,
        omic: str,
        method: Optional[Union[str, ReductionMethod]] = None,
        **param_overrides: Any,
    ) -> "OmicsDataset":
        """
        Return a copy with one omic's reduction method or parameters changed.

        When the method changes, parameters start from that method's defaults
        before overrides are applied.

        Args:
            omic: Omic to reconfigure
            method: New reduction method (keeps the current one if None)
            **param_overrides: Parameter values to change

        Returns:
            New OmicsDataset with the same matrix values
        """
        if omic not in self.reductions:
            raise KeyError(f"Omic not found: {omic}")

        current = self.reductions[omic]
        if method is not None and OmicReduction.create(method).method != current.method:
            updated = OmicReduction.create(method, param_overrides)
        else:
            updated = current.with_params(**param_overrides)

        reductions = dict(self.reductions)
        reductions[omic] = updated
        return replace(self, reductions=reductions)

    def get_matrix(self, omic: str, genes: Iterable[str]) -> pd.DataFrame:
        """
        Get the part of an omic matrix that belongs to a gene set.

        Features are matched directly against `genes`, or through the omic's
        feature-to-gene dictionary when its reduction provides one.

        Args:
            omic: Omic name
            genes: Genes of the analysis unit

        Returns:
            DataFrame (features x samples), possibly empty
        """
        if omic not in self.matrices:
            raise KeyError(f"Omic not found: {omic}")

        matrix = self.matrices[omic]
        dictionary = self.reductions[omic].dictionary
        genes = list(genes)

        if dictionary is not None:
            gene_set = set(genes)
            rows = [f for f in matrix.index if dictionary.get(f) in gene_set]
        else:
            present = set(matrix.index)
            rows = [g for g in genes if g in present]
        return matrix.loc[rows]

    def genes(self, omic: str) -> Set[str]:
        """Genes measured by an omic (mapped through its dictionary if any)."""
        matrix = self.matrices[omic]
        dictionary = self.reductions[omic].dictionary
        if dictionary is not None:
            return {dictionary[f] for f in matrix.index if f in dictionary}
        return set(str(g) for g in matrix.index)

    def gene_universe(self, omics: Optional[List[str]] = None) -> Set[str]:
        """Union of genes across the given omics (all omics by default)."""
        universe: Set[str] = set()
        for name in omics or self.omics:
            universe |= self.genes(name)
        return universe

    def fingerprint(self) -> str:
        """SHA-256 digest of matrices, outcome and reduction configuration."""
        digest = hashlib.sha256()
        digest.update(self.outcome.kind.value.encode())
        digest.update("\x1f".join(self.samples).encode())
        digest.update(self.outcome._hash_bytes())
        for name in self.omics:
            matrix = self.matrices[name]
            digest.update(name.encode())
            digest.update("\x1f".join(map(str, matrix.index)).encode())
            digest.update(
                pd.util.hash_pandas_object(matrix, index=True).values.tobytes()
            )
            digest.update(repr(self.reductions[name]).encode())
        return digest.hexdigest()

    def describe(self) -> Dict[str, Any]:
        """Small summary used in logs and run summaries."""
        return {
            "n_samples": self.n_samples,
            "outcome": self.outcome.kind.value,
            "omics": {
                name: {
                    "n_features": int(m.shape[0]),
                    "method": self.reductions[name].method.value,
                }
                for name, m in self.matrices.items()
            },
        }
