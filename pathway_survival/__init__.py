"""
Pathway Survival

Multi-omic pathway and module association analysis for survival and two-class
outcomes, with resampling-based stability estimates.
"""

__version__ = "0.1.0"

from .association import AnalysisUnit, TesterConfig, UnitKey, UnitTester
from .batch import (
    BatchConfig,
    BatchResult,
    BatchRunner,
    Resampler,
    ResamplingConfig,
    ResamplingResult,
    ResultCache,
    ResultReport,
    UnitStatus,
    build_report,
)
from .data import (
    ClassOutcome,
    OmicsDataset,
    PathwayCollection,
    PathwayGraph,
    SurvivalOutcome,
)
from .exceptions import (
    AlignmentError,
    EmptyUnitError,
    InsufficientDataError,
    ModelFitError,
    PathwaySurvivalError,
)
from .partitioning import Module, ModulePartitioner
from .pipeline import PipelineConfig, PipelineResult, SurvivalAnalysisPipeline
from .reduction import OmicReduction, ReductionMethod

__all__ = [
    "__version__",
    # Data
    "OmicsDataset",
    "SurvivalOutcome",
    "ClassOutcome",
    "PathwayGraph",
    "PathwayCollection",
    # Reduction
    "ReductionMethod",
    "OmicReduction",
    # Partitioning
    "Module",
    "ModulePartitioner",
    # Association
    "UnitKey",
    "UnitTester",
    "TesterConfig",
    "AnalysisUnit",
    # Batch
    "BatchConfig",
    "BatchRunner",
    "BatchResult",
    "UnitStatus",
    "Resampler",
    "ResamplingConfig",
    "ResamplingResult",
    "ResultReport",
    "build_report",
    "ResultCache",
    # Pipeline
    "PipelineConfig",
    "PipelineResult",
    "SurvivalAnalysisPipeline",
    # Errors
    "PathwaySurvivalError",
    "AlignmentError",
    "InsufficientDataError",
    "EmptyUnitError",
    "ModelFitError",
]
