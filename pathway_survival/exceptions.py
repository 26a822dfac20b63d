"""
Error Taxonomy

Only AlignmentError (and plain ValueError for malformed input) is fatal to a
run. The per-unit errors are absorbed by the batch runner and reported as
structured statuses.
"""

from typing import Optional

import pandas as pd


class PathwaySurvivalError(Exception):
    """Base class for all analysis errors."""


class AlignmentError(PathwaySurvivalError, ValueError):
    """Sample identifiers disagree across omic matrices and the outcome."""


class InsufficientDataError(PathwaySurvivalError):
    """A reduction strategy cannot summarize one omic for one unit."""


class EmptyUnitError(PathwaySurvivalError):
    """No omic produced any covariate for a unit."""


class ModelFitError(PathwaySurvivalError):
    """
    The association model is degenerate for a unit.

    Attributes:
        covariates: Design matrix the fit was attempted on, kept for audit
    """

    def __init__(self, message: str, covariates: Optional[pd.DataFrame] = None):
        super().__init__(message)
        self.covariates = covariates
