"""
Per-Unit Association Tester

Builds the covariates of one analysis unit (a pathway or a module) by reducing
every omic over the unit's genes, and fits the association model that matches
the dataset's outcome.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple
import logging

import networkx as nx
import pandas as pd

from ..data.omics import ClassOutcome, OmicsDataset
from ..exceptions import EmptyUnitError, InsufficientDataError
from ..reduction.base import CovariateBlock
from .keys import UnitKey
from .models import MODEL_FOR_OUTCOME, ModelFit, ModelKind, fit_model

logger = logging.getLogger(__name__)


@dataclass
class TesterConfig:
    """Configuration for model fitting."""

    penalizer: float = 0.0  # L2 penalty of the Cox model
    max_iter: int = 100

    def __post_init__(self):
        if self.penalizer < 0:
            raise ValueError("penalizer must be non-negative")
        if self.max_iter < 1:
            raise ValueError("max_iter must be at least 1")


@dataclass(frozen=True, eq=False)
class AnalysisUnit:
    """
    A tested pathway or module.

    Attributes:
        key: Unit identifier
        genes: Genes of the unit
        covariates: Samples x covariates design the model was fitted on
        covariate_omics: Omic each covariate column comes from
        omics_used: Omics that contributed covariates, in dataset order
        dropped_omics: Omics that contributed nothing, with the reason
        fit: Fitted association model
        blocks: Raw reduction output per contributing omic
    """

    key: UnitKey
    genes: Tuple[str, ...]
    covariates: pd.DataFrame
    covariate_omics: Dict[str, str]
    omics_used: Tuple[str, ...]
    dropped_omics: Dict[str, str]
    fit: ModelFit
    blocks: Dict[str, CovariateBlock] = field(default_factory=dict, repr=False)

    @property
    def p_value(self) -> float:
        return self.fit.p_value

    @property
    def covariate_p_values(self) -> Dict[str, float]:
        return self.fit.covariate_p_values

    @property
    def n_genes(self) -> int:
        return len(self.genes)


def block_to_frame(omic: str, block: CovariateBlock, samples: List[str]) -> pd.DataFrame:
    """
    Samples x covariates frame of one reduction block.

    Columns are named '{omic}_{covariate}'; categorical covariates are expanded
    into drop-first indicator columns '{omic}_{covariate}_{level}'.
    """
    columns = []
    for name, values, categorical in zip(block.names, block.values, block.categorical):
        column = f"{omic}_{name}"
        if categorical:
            labels = pd.Series(values, index=samples).astype(str)
            columns.append(
                pd.get_dummies(labels, prefix=column, drop_first=True, dtype=float)
            )
        else:
            columns.append(pd.DataFrame({column: values.astype(float)}, index=samples))
    return pd.concat(columns, axis=1)


class UnitTester:
    """
    Tests analysis units of one dataset.

    The model kind follows from the outcome kind: Cox for survival, logistic
    for two-class outcomes.
    """

    def __init__(self, dataset: OmicsDataset, config: Optional[TesterConfig] = None):
        """
        Initialize tester.

        Args:
            dataset: Aligned omics and outcome
            config: Model fitting configuration

        Raises:
            ValueError: If a class outcome does not have exactly two classes
        """
        self.dataset = dataset
        self.config = config or TesterConfig()
        self.model_kind: ModelKind = MODEL_FOR_OUTCOME[dataset.outcome_kind]

        outcome = dataset.outcome
        if isinstance(outcome, ClassOutcome) and len(outcome.classes) != 2:
            raise ValueError(
                f"Two-class analysis needs exactly 2 classes, got {list(outcome.classes)}"
            )

    def build_covariates(
        self, key: UnitKey, genes: Iterable[str], topology: Optional[nx.Graph] = None
    ) -> Tuple[pd.DataFrame, Dict[str, str], Dict[str, str], Dict[str, CovariateBlock]]:
        """
        Reduce every omic over the unit's genes.

        Returns:
            (covariates, covariate -> omic, dropped omic -> reason, blocks)
        """
        genes = list(genes)
        samples = list(self.dataset.samples)
        frames = []
        covariate_omics: Dict[str, str] = {}
        dropped: Dict[str, str] = {}
        blocks: Dict[str, CovariateBlock] = {}

        for omic in self.dataset.omics:
            matrix = self.dataset.get_matrix(omic, genes)
            if matrix.shape[0] == 0:
                dropped[omic] = "no features for the unit's genes"
                logger.debug(f"{key}: omic '{omic}' has no features")
                continue
            try:
                block = self.dataset.reductions[omic].reduce(matrix, topology)
            except InsufficientDataError as e:
                dropped[omic] = str(e)
                logger.debug(f"{key}: omic '{omic}' dropped ({e})")
                continue

            frame = block_to_frame(omic, block, samples)
            if frame.shape[1] == 0:
                dropped[omic] = "no covariate after encoding"
                continue
            frames.append(frame)
            blocks[omic] = block
            covariate_omics.update({c: omic for c in frame.columns})

        if frames:
            covariates = pd.concat(frames, axis=1)
        else:
            covariates = pd.DataFrame(index=samples)
        return covariates, covariate_omics, dropped, blocks

    def test(
        self, key: UnitKey, genes: Iterable[str], topology: Optional[nx.Graph] = None
    ) -> AnalysisUnit:
        """
        Test one analysis unit.

        Args:
            key: Unit identifier
            genes: Genes of the unit
            topology: Unit graph, used by topology-aware reductions

        Returns:
            AnalysisUnit with the fitted model

        Raises:
            EmptyUnitError: If no omic yields covariates
            ModelFitError: If the model cannot be fitted
        """
        genes = tuple(genes)
        covariates, covariate_omics, dropped, blocks = self.build_covariates(
            key, genes, topology
        )
        if covariates.shape[1] == 0:
            raise EmptyUnitError(f"No omic produced covariates for {key}")

        fit = fit_model(
            self.model_kind,
            covariates,
            self.dataset.outcome,
            penalizer=self.config.penalizer,
            max_iter=self.config.max_iter,
        )
        logger.debug(f"{key}: p={fit.p_value:.3g} with {covariates.shape[1]} covariates")

        return AnalysisUnit(
            key=key,
            genes=genes,
            covariates=covariates,
            covariate_omics=covariate_omics,
            omics_used=tuple(blocks),
            dropped_omics=dropped,
            fit=fit,
            blocks=blocks,
        )
