"""
Covariate Blocks

Shared result type and input preparation for the reduction strategies.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List
import logging

import numpy as np
import pandas as pd

from ..exceptions import InsufficientDataError

logger = logging.getLogger(__name__)


@dataclass
class CovariateBlock:
    """
    Covariates produced by reducing one omic over one analysis unit.

    Attributes:
        names: Covariate names (unprefixed, e.g. "PC1", "events")
        values: Array of shape (n_covariates, n_samples)
        categorical: Whether each covariate holds category labels
        features_used: Features that entered the reduction
        metadata: Strategy-specific details (loadings, chosen k, ...)
    """

    names: List[str]
    values: np.ndarray
    categorical: List[bool]
    features_used: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.values = np.atleast_2d(np.asarray(self.values))
        if self.values.shape[0] != len(self.names):
            raise ValueError(
                f"{len(self.names)} covariate names for {self.values.shape[0]} rows"
            )
        if len(self.categorical) != len(self.names):
            raise ValueError("One categorical flag is needed per covariate")

    @property
    def n_covariates(self) -> int:
        return len(self.names)

    @property
    def n_samples(self) -> int:
        return self.values.shape[1]


def prepare_numeric(matrix: pd.DataFrame, min_samples: int = 2) -> pd.DataFrame:
    """
    Common input checks for the numeric strategies.

    Missing values are replaced by the feature mean, features that are
    entirely missing or have zero variance are dropped.

    Raises:
        InsufficientDataError: If no usable feature or too few samples remain
    """
    if matrix.shape[0] == 0:
        raise InsufficientDataError("No features for this unit")
    if matrix.shape[1] < min_samples:
        raise InsufficientDataError(
            f"Need at least {min_samples} samples, got {matrix.shape[1]}"
        )

    values = matrix.astype(float)
    values = values.loc[values.notna().any(axis=1)]
    if values.isna().values.any():
        values = values.apply(lambda row: row.fillna(row.mean()), axis=1)

    variances = values.var(axis=1, ddof=1)
    values = values.loc[variances > 1e-12]
    if values.shape[0] == 0:
        raise InsufficientDataError("All features have zero variance")
    return values
