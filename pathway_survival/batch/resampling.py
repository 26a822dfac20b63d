"""
Resampling Stability

Estimates how stable unit significance is by repeatedly removing a few random
samples and re-testing. A unit's success count is the number of iterations in
which it was tested and reached p <= alpha.
"""

from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field, replace
from itertools import repeat
from typing import Dict, Iterable, List, Optional, Tuple
import logging

import numpy as np

from ..association.keys import UnitKey
from ..data.omics import OmicsDataset
from ..data.pathways import PathwayCollection
from .runner import BatchRunner, UnitStatus

logger = logging.getLogger(__name__)


@dataclass
class ResamplingConfig:
    """Configuration for resampling."""

    n_iterations: int = 100
    n_remove: int = 3  # Samples dropped per iteration
    alpha: float = 0.05
    random_state: Optional[int] = 42
    n_jobs: int = 1

    def __post_init__(self):
        if self.n_iterations < 0:
            raise ValueError("n_iterations must be non-negative")
        if self.n_remove < 0:
            raise ValueError("n_remove must be non-negative")
        if not 0 < self.alpha <= 1:
            raise ValueError("alpha must be in (0, 1]")
        if self.n_jobs < 1:
            raise ValueError("n_jobs must be at least 1")


@dataclass
class ResamplingResult:
    """
    Per-unit success counts over resampling iterations.

    Attributes:
        success_counts: Unit key to number of significant iterations
        n_iterations: Number of iterations run
        n_removed: Samples dropped per iteration
        alpha: Significance threshold
        removed_samples: Samples dropped in each iteration
        iteration_p_values: Unit key to its p-value per iteration (None if untested)
    """

    success_counts: Dict[UnitKey, int]
    n_iterations: int
    n_removed: int
    alpha: float
    removed_samples: List[Tuple[str, ...]] = field(default_factory=list)
    iteration_p_values: Dict[UnitKey, List[Optional[float]]] = field(default_factory=dict)

    def __post_init__(self):
        for key, count in self.success_counts.items():
            if not 0 <= count <= self.n_iterations:
                raise ValueError(
                    f"Success count {count} of {key} outside [0, {self.n_iterations}]"
                )

    def success_rate(self, key: UnitKey) -> float:
        if self.n_iterations == 0:
            return float("nan")
        return self.success_counts[key] / self.n_iterations

    def stable_units(self, min_success: int) -> List[UnitKey]:
        """Units significant in at least `min_success` iterations."""
        return [k for k, c in self.success_counts.items() if c >= min_success]


def run_iteration(
    runner: BatchRunner,
    dataset: OmicsDataset,
    pathways: PathwayCollection,
    units: List[UnitKey],
    removed: Tuple[str, ...],
) -> Dict[UnitKey, Optional[float]]:
    """P-value of each unit with `removed` left out (None when not tested)."""
    dropped = set(removed)
    subset = dataset.subset_samples([s for s in dataset.samples if s not in dropped])
    batch = runner.run(subset, pathways, units=units)

    p_values: Dict[UnitKey, Optional[float]] = {}
    for key in units:
        outcome = batch.outcomes.get(key)
        tested = outcome is not None and outcome.status == UnitStatus.TESTED
        p_values[key] = outcome.p_value if tested else None
    return p_values


class Resampler:
    """
    Leave-k-out resampling over a batch runner.

    Removal subsets are drawn up front from one seeded generator, so results
    depend only on the seed and never on execution order.
    """

    def __init__(self, config: Optional[ResamplingConfig] = None, runner: Optional[BatchRunner] = None):
        """
        Initialize resampler.

        Args:
            config: Resampling configuration
            runner: Batch runner used for every iteration
        """
        self.config = config or ResamplingConfig()
        self.runner = runner or BatchRunner()

    def draw_removals(self, samples: Tuple[str, ...]) -> List[Tuple[str, ...]]:
        """Samples to remove in each iteration."""
        rng = np.random.default_rng(self.config.random_state)
        removals = []
        for _ in range(self.config.n_iterations):
            idx = np.sort(rng.choice(len(samples), size=self.config.n_remove, replace=False))
            removals.append(tuple(samples[i] for i in idx))
        return removals

    def run(
        self,
        dataset: OmicsDataset,
        pathways: PathwayCollection,
        units: Optional[Iterable[UnitKey]] = None,
    ) -> ResamplingResult:
        """
        Run resampling.

        Args:
            dataset: Full dataset (never modified)
            pathways: Pathway collection
            units: Units to track (all units of the collection if None)

        Returns:
            ResamplingResult with per-unit success counts

        Raises:
            ValueError: If n_remove is not smaller than the number of samples
        """
        config = self.config
        if config.n_remove >= dataset.n_samples:
            raise ValueError(
                f"Cannot remove {config.n_remove} of {dataset.n_samples} samples"
            )

        units = list(units) if units is not None else self.runner.unit_keys(dataset, pathways)
        removals = self.draw_removals(dataset.samples)
        logger.info(
            f"Resampling {len(units)} units: {config.n_iterations} iterations, "
            f"{config.n_remove} samples removed each"
        )

        runner = self.runner
        if config.n_jobs > 1 and len(removals) > 1:
            # Iterations run in worker processes; units inside one run serially
            if isinstance(runner, BatchRunner) and runner.config.n_jobs > 1:
                runner = BatchRunner(replace(runner.config, n_jobs=1))
            chunksize = max(1, len(removals) // (4 * config.n_jobs))
            with ProcessPoolExecutor(max_workers=config.n_jobs) as executor:
                per_iteration = list(
                    executor.map(
                        run_iteration,
                        repeat(runner),
                        repeat(dataset),
                        repeat(pathways),
                        repeat(units),
                        removals,
                        chunksize=chunksize,
                    )
                )
        else:
            per_iteration = [
                run_iteration(runner, dataset, pathways, units, removed) for removed in removals
            ]

        iteration_p = {key: [it[key] for it in per_iteration] for key in units}
        counts = {
            key: sum(1 for p in ps if p is not None and p <= config.alpha)
            for key, ps in iteration_p.items()
        }

        result = ResamplingResult(
            success_counts=counts,
            n_iterations=config.n_iterations,
            n_removed=config.n_remove,
            alpha=config.alpha,
            removed_samples=removals,
            iteration_p_values=iteration_p,
        )
        if units:
            logger.info(
                f"Mean success rate {np.mean(list(counts.values())) / max(config.n_iterations, 1):.2f}"
            )
        return result
