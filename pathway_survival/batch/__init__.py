"""
Batch

Batch testing over pathway collections, resampling stability, result
reports and the result cache.
"""

from .cache import MemoryCacheBackend, PickleCacheBackend, ResultCache
from .report import ResultReport, build_report, summarize_omics_by_min_pvalue
from .resampling import Resampler, ResamplingConfig, ResamplingResult
from .runner import (
    BatchConfig,
    BatchResult,
    BatchRunner,
    UnitOutcome,
    UnitStatus,
    UnitTask,
    run_unit,
)

__all__ = [
    # Runner
    "BatchConfig",
    "BatchResult",
    "BatchRunner",
    "UnitOutcome",
    "UnitStatus",
    "UnitTask",
    "run_unit",
    # Resampling
    "Resampler",
    "ResamplingConfig",
    "ResamplingResult",
    # Report
    "ResultReport",
    "build_report",
    "summarize_omics_by_min_pvalue",
    # Cache
    "ResultCache",
    "MemoryCacheBackend",
    "PickleCacheBackend",
]
