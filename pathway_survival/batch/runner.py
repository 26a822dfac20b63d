"""
Batch Runner

Tests every pathway (or every module of every pathway) of a collection against
one dataset. Units are independent: a unit whose reduction or model fit fails
is recorded with a structured status and never stops its siblings.
"""

from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from itertools import repeat
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union
import logging

import networkx as nx
import pandas as pd

from ..association.keys import UnitKey
from ..association.tester import AnalysisUnit, TesterConfig, UnitTester
from ..data.omics import OmicsDataset
from ..data.pathways import PathwayCollection
from ..exceptions import EmptyUnitError, ModelFitError
from ..partitioning.partitioner import ModulePartitioner, PartitionConfig

logger = logging.getLogger(__name__)

LEVELS = ("pathway", "module")


class UnitStatus(Enum):
    """Outcome status of one analysis unit."""

    TESTED = "tested"
    NOT_TESTED = "not_tested"  # No covariates (EmptyUnitError)
    FIT_FAILED = "fit_failed"  # Degenerate model (ModelFitError)


@dataclass
class UnitOutcome:
    """
    What happened to one unit in a batch.

    Attributes:
        key: Unit identifier
        status: Tested, not tested or fit failed
        unit: The AnalysisUnit when tested
        reason: Error message when not tested or failed
        error_type: Name of the absorbed exception class
        covariates: Design of a failed fit, kept for audit
    """

    key: UnitKey
    status: UnitStatus
    unit: Optional[AnalysisUnit] = None
    reason: str = ""
    error_type: Optional[str] = None
    covariates: Optional[pd.DataFrame] = field(default=None, repr=False)

    @property
    def p_value(self) -> Optional[float]:
        return self.unit.p_value if self.unit is not None else None


@dataclass
class BatchConfig:
    """Configuration for a batch run."""

    level: str = "pathway"  # pathway, module
    n_jobs: int = 1
    min_module_size: int = 1
    tester: TesterConfig = field(default_factory=TesterConfig)

    def __post_init__(self):
        if self.level not in LEVELS:
            raise ValueError(f"level must be one of {LEVELS}, got {self.level!r}")
        if self.n_jobs < 1:
            raise ValueError("n_jobs must be at least 1")
        if self.min_module_size < 1:
            raise ValueError("min_module_size must be at least 1")


@dataclass(frozen=True)
class UnitTask:
    """One unit to test."""

    key: UnitKey
    genes: Tuple[str, ...]
    topology: Optional[nx.Graph] = None


@dataclass
class BatchResult:
    """
    Outcomes of a batch run, in unit order.

    Attributes:
        outcomes: Mapping from unit key to its outcome
        level: Analysis level of the run
    """

    outcomes: Dict[UnitKey, UnitOutcome] = field(default_factory=dict)
    level: str = "pathway"

    def __len__(self) -> int:
        return len(self.outcomes)

    @property
    def tested(self) -> List[AnalysisUnit]:
        return [o.unit for o in self.outcomes.values() if o.status == UnitStatus.TESTED]

    @property
    def failures(self) -> List[UnitOutcome]:
        """Units not tested or with a failed fit, each listed once."""
        return [o for o in self.outcomes.values() if o.status != UnitStatus.TESTED]

    def by_pathway(self, name: str) -> List[UnitOutcome]:
        return [o for k, o in self.outcomes.items() if k.pathway == name]

    def p_values(self) -> Dict[UnitKey, float]:
        return {u.key: u.p_value for u in self.tested}

    def significant(self, alpha: float = 0.05) -> List[UnitKey]:
        """Keys of tested units with p <= alpha."""
        return [k for k, p in self.p_values().items() if p <= alpha]

    def status_counts(self) -> Dict[str, int]:
        counts = {s.value: 0 for s in UnitStatus}
        for o in self.outcomes.values():
            counts[o.status.value] += 1
        return counts


def run_unit(tester: UnitTester, task: UnitTask) -> UnitOutcome:
    """Test one unit, absorbing per-unit errors into its outcome."""
    try:
        unit = tester.test(task.key, task.genes, task.topology)
    except EmptyUnitError as e:
        logger.debug(f"{task.key}: not tested ({e})")
        return UnitOutcome(
            task.key, UnitStatus.NOT_TESTED, reason=str(e), error_type=type(e).__name__
        )
    except ModelFitError as e:
        logger.warning(f"{task.key}: model fit failed ({e})")
        return UnitOutcome(
            task.key,
            UnitStatus.FIT_FAILED,
            reason=str(e),
            error_type=type(e).__name__,
            covariates=e.covariates,
        )
    return UnitOutcome(task.key, UnitStatus.TESTED, unit=unit)


class BatchRunner:
    """
    Runs the per-unit tester over a pathway collection.

    Example:
        >>> runner = BatchRunner(BatchConfig(level="module"))
        >>> result = runner.run(dataset, pathways)
        >>> result.significant(0.05)
    """

    def __init__(self, config: Optional[BatchConfig] = None):
        """
        Initialize runner.

        Args:
            config: Batch configuration
        """
        self.config = config or BatchConfig()
        self.partitioner = ModulePartitioner(
            PartitionConfig(min_module_size=self.config.min_module_size)
        )

    def plan(
        self, dataset: OmicsDataset, pathways: PathwayCollection
    ) -> List[Union[UnitTask, UnitOutcome]]:
        """
        Build the ordered list of units.

        Pathways come in collection order, modules in module order. A pathway
        with no gene in the data (or no module) is returned as a NOT_TESTED
        outcome in its place.
        """
        universe = dataset.gene_universe()
        plan: List[Union[UnitTask, UnitOutcome]] = []

        for pathway in pathways:
            if self.config.level == "module":
                modules = self.partitioner.partition(pathway, universe)
                if not modules:
                    plan.append(self._empty(pathway.name, "pathway yields no modules"))
                for module in modules:
                    plan.append(UnitTask(module.key, module.genes, module.graph))
            else:
                restricted = pathway.restricted_to(universe)
                if restricted.number_of_nodes() == 0:
                    plan.append(self._empty(pathway.name, "no pathway gene in the data"))
                    continue
                plan.append(
                    UnitTask(UnitKey(pathway.name), tuple(sorted(restricted.nodes)), restricted)
                )
        return plan

    def unit_keys(self, dataset: OmicsDataset, pathways: PathwayCollection) -> List[UnitKey]:
        return [item.key for item in self.plan(dataset, pathways)]

    @staticmethod
    def _empty(pathway: str, reason: str) -> UnitOutcome:
        logger.debug(f"{pathway}: skipped ({reason})")
        return UnitOutcome(
            UnitKey(pathway),
            UnitStatus.NOT_TESTED,
            reason=reason,
            error_type=EmptyUnitError.__name__,
        )

    def run(
        self,
        dataset: OmicsDataset,
        pathways: PathwayCollection,
        units: Optional[Iterable[UnitKey]] = None,
    ) -> BatchResult:
        """
        Test all units of a collection.

        Args:
            dataset: Aligned omics and outcome
            pathways: Pathway collection
            units: Restrict the run to these unit keys

        Returns:
            BatchResult with one outcome per unit, in unit order
        """
        plan = self.plan(dataset, pathways)
        if units is not None:
            wanted: Set[UnitKey] = set(units)
            plan = [item for item in plan if item.key in wanted]

        tester = UnitTester(dataset, self.config.tester)
        tasks = [(i, item) for i, item in enumerate(plan) if isinstance(item, UnitTask)]
        results: List[UnitOutcome] = [
            item if isinstance(item, UnitOutcome) else None for item in plan
        ]

        if self.config.n_jobs > 1 and len(tasks) > 1:
            # Worker processes, so each fit owns the process-wide warning filters
            chunksize = max(1, len(tasks) // (4 * self.config.n_jobs))
            with ProcessPoolExecutor(max_workers=self.config.n_jobs) as executor:
                outcomes = executor.map(
                    run_unit, repeat(tester), [task for _, task in tasks], chunksize=chunksize
                )
                for (i, _), outcome in zip(tasks, outcomes):
                    results[i] = outcome
        else:
            for i, task in tasks:
                results[i] = run_unit(tester, task)

        batch = BatchResult(
            outcomes={outcome.key: outcome for outcome in results},
            level=self.config.level,
        )
        message = f"Batch of {len(batch)} {self.config.level} units: {batch.status_counts()}"
        if units is None:
            logger.info(message)
        else:
            logger.debug(message)
        return batch
