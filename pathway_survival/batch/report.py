"""
Result Report

Aggregates a batch (and optionally its resampling stability) into a ranked
table of tested units, plus a separate table of units that were not tested or
whose model failed.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional
import logging

import numpy as np
import pandas as pd
from statsmodels.stats.multitest import multipletests

from ..association.tester import AnalysisUnit
from .resampling import ResamplingResult
from .runner import BatchResult

logger = logging.getLogger(__name__)

FAILURE_COLUMNS = ["unit", "pathway", "module", "status", "error_type", "reason"]


def summarize_omics_by_min_pvalue(unit: AnalysisUnit) -> Dict[str, float]:
    """Smallest covariate p-value of each contributing omic."""
    summary: Dict[str, float] = {}
    for covariate, p in unit.covariate_p_values.items():
        omic = unit.covariate_omics[covariate]
        summary[omic] = min(p, summary.get(omic, np.inf))
    return summary


def _format_p_values(p_values: Dict[str, float]) -> str:
    return ";".join(f"{name}={p:.4g}" for name, p in p_values.items())


@dataclass
class ResultReport:
    """
    Ranked results of one analysis.

    Attributes:
        table: One row per tested unit, ascending by p-value
        failures: One row per unit that was not tested or failed
        fdr_method: Multiple-testing correction used for adjusted_p_value
    """

    table: pd.DataFrame
    failures: pd.DataFrame
    fdr_method: str = "fdr_bh"
    omics: List[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.table)

    def filter_stable(self, min_success: int) -> pd.DataFrame:
        """Rows whose resampling success count is at least `min_success`."""
        mask = (self.table["success_count"] >= min_success).fillna(False).astype(bool)
        return self.table[mask].reset_index(drop=True)

    def top(self, n: int = 10) -> pd.DataFrame:
        return self.table.head(n)

    def to_csv(self, directory: str) -> Dict[str, Path]:
        """
        Write report.csv and failures.csv.

        Returns:
            Mapping from table name to written path
        """
        out = Path(directory)
        out.mkdir(parents=True, exist_ok=True)
        paths = {"report": out / "report.csv", "failures": out / "failures.csv"}
        self.table.to_csv(paths["report"], index=False)
        self.failures.to_csv(paths["failures"], index=False)
        logger.info(f"Report written to {out}")
        return paths


def build_report(
    batch: BatchResult,
    resampling: Optional[ResamplingResult] = None,
    fdr_method: str = "fdr_bh",
) -> ResultReport:
    """
    Build the result report of a batch.

    Args:
        batch: Batch outcomes
        resampling: Stability counts of (some of) the tested units
        fdr_method: Method name accepted by statsmodels multipletests

    Returns:
        ResultReport; failed and untested units appear only in `failures`
    """
    units = batch.tested
    omics: List[str] = []
    for unit in units:
        for omic in unit.covariate_omics.values():
            if omic not in omics:
                omics.append(omic)

    rows = []
    for unit in units:
        min_p = summarize_omics_by_min_pvalue(unit)
        row = {
            "unit": unit.key.label,
            "pathway": unit.key.pathway,
            "module": unit.key.module,
            "n_genes": unit.n_genes,
            "p_value": unit.p_value,
        }
        for omic in omics:
            row[f"{omic}_min_p"] = min_p.get(omic, np.nan)
        row["covariate_p_values"] = _format_p_values(unit.covariate_p_values)
        row["omics_used"] = ";".join(unit.omics_used)
        if resampling is not None and unit.key in resampling.success_counts:
            row["success_count"] = resampling.success_counts[unit.key]
            row["n_iterations"] = resampling.n_iterations
        else:
            row["success_count"] = pd.NA
            row["n_iterations"] = pd.NA
        rows.append(row)

    columns = (
        ["unit", "pathway", "module", "n_genes", "p_value", "adjusted_p_value"]
        + [f"{omic}_min_p" for omic in omics]
        + ["covariate_p_values", "omics_used", "success_count", "n_iterations"]
    )
    table = pd.DataFrame(rows, columns=[c for c in columns if c != "adjusted_p_value"])
    if len(table):
        table["adjusted_p_value"] = multipletests(table["p_value"].to_numpy(), method=fdr_method)[1]
    else:
        table["adjusted_p_value"] = pd.Series(dtype=float)
    table = table[columns].copy()
    for column in ("module", "success_count", "n_iterations"):
        table[column] = table[column].astype("Int64")
    table = table.sort_values("p_value", kind="mergesort").reset_index(drop=True)

    failures = pd.DataFrame(
        [
            {
                "unit": o.key.label,
                "pathway": o.key.pathway,
                "module": o.key.module,
                "status": o.status.value,
                "error_type": o.error_type,
                "reason": o.reason,
            }
            for o in batch.failures
        ],
        columns=FAILURE_COLUMNS,
    )
    failures["module"] = failures["module"].astype("Int64")

    logger.info(f"Report: {len(table)} tested units, {len(failures)} not tested or failed")
    return ResultReport(table=table, failures=failures, fdr_method=fdr_method, omics=omics)
