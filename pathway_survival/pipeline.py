"""
Survival Analysis Pipeline

Runs the complete workflow from input files to the ranked report:
load omics, outcome and pathways, test every pathway or module, resample the
significant units for stability, and write the result tables.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

import pandas as pd
import yaml

from .association.tester import TesterConfig
from .batch.cache import PickleCacheBackend, ResultCache
from .batch.report import ResultReport, build_report
from .batch.resampling import Resampler, ResamplingConfig, ResamplingResult
from .batch.runner import BatchConfig, BatchResult, BatchRunner
from .data.loaders import (
    align_to_common_samples,
    load_class_outcome,
    load_gmt,
    load_omic_matrix,
    load_pathway_edges,
    load_survival_outcome,
)
from .data.omics import OmicsDataset, OutcomeKind
from .data.pathways import PathwayCollection
from .reduction.registry import OmicReduction

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Dataclasses
# =============================================================================

@dataclass
class OmicInputConfig:
    """One omic matrix file and its reduction."""

    path: str
    method: str = "pca"
    params: Dict[str, Any] = field(default_factory=dict)
    sep: Optional[str] = None

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "OmicInputConfig":
        return cls(
            path=config["path"],
            method=config.get("method", "pca"),
            params=dict(config.get("params") or {}),
            sep=config.get("sep"),
        )

    def reduction(self) -> OmicReduction:
        return OmicReduction.create(self.method, self.params)


@dataclass
class DataConfig:
    """Configuration for data loading."""

    omics: Dict[str, OmicInputConfig] = field(default_factory=dict)

    # Outcome table
    outcome_path: str = ""
    outcome_type: str = "survival"  # survival, two_class
    time_col: str = "time"
    event_col: str = "event"
    class_col: str = "class"
    sample_col: Optional[str] = None
    classes: Optional[List[str]] = None

    # Pathway knowledge base
    pathways_path: str = ""
    pathways_format: str = "edges"  # edges, gmt
    directed: bool = False

    # Intersect samples across inputs before building the dataset
    align_samples: bool = True

    def __post_init__(self):
        valid_outcomes = [k.value for k in OutcomeKind]
        if self.outcome_type not in valid_outcomes:
            raise ValueError(
                f"outcome type must be one of {valid_outcomes}, got {self.outcome_type!r}"
            )
        if self.pathways_format not in ("edges", "gmt"):
            raise ValueError(
                f"pathway format must be 'edges' or 'gmt', got {self.pathways_format!r}"
            )


@dataclass
class AnalysisConfig:
    """Configuration for unit testing."""

    level: str = "pathway"  # pathway, module
    min_module_size: int = 1
    n_jobs: int = 1
    penalizer: float = 0.0
    max_iter: int = 100
    min_pathway_size: int = 1
    max_pathway_size: Optional[int] = None
    fdr_method: str = "fdr_bh"

    def batch_config(self) -> BatchConfig:
        return BatchConfig(
            level=self.level,
            n_jobs=self.n_jobs,
            min_module_size=self.min_module_size,
            tester=TesterConfig(penalizer=self.penalizer, max_iter=self.max_iter),
        )


@dataclass
class ResamplingPipelineConfig:
    """Configuration for resampling stability."""

    run: bool = True
    n_iterations: int = 100
    n_remove: int = 3
    alpha: float = 0.05
    min_success: int = 0
    n_jobs: int = 1


@dataclass
class PipelineConfig:
    """Complete pipeline configuration."""

    name: str = "survival_run"
    data: DataConfig = field(default_factory=DataConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    resampling: ResamplingPipelineConfig = field(default_factory=ResamplingPipelineConfig)

    # Output
    output_dir: Optional[str] = None
    cache_dir: Optional[str] = None

    # Pipeline behavior
    seed: Optional[int] = 42
    verbose: bool = True

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "PipelineConfig":
        """Build a configuration from nested sections."""
        pipeline = config_dict.get("pipeline", {}) or {}
        data = config_dict.get("data", {}) or {}
        outcome = data.get("outcome", {}) or {}
        pathways = data.get("pathways", {}) or {}
        analysis = config_dict.get("analysis", {}) or {}
        resampling = config_dict.get("resampling", {}) or {}

        return cls(
            name=pipeline.get("name", "survival_run"),
            output_dir=pipeline.get("output_dir"),
            cache_dir=pipeline.get("cache_dir"),
            seed=pipeline.get("seed", 42),
            verbose=pipeline.get("verbose", True),
            data=DataConfig(
                omics={
                    name: OmicInputConfig.from_dict(omic)
                    for name, omic in (data.get("omics") or {}).items()
                },
                outcome_path=outcome.get("path", ""),
                outcome_type=outcome.get("type", "survival"),
                time_col=outcome.get("time_col", "time"),
                event_col=outcome.get("event_col", "event"),
                class_col=outcome.get("class_col", "class"),
                sample_col=outcome.get("sample_col"),
                classes=outcome.get("classes"),
                pathways_path=pathways.get("path", ""),
                pathways_format=pathways.get("format", "edges"),
                directed=pathways.get("directed", False),
                align_samples=data.get("align_samples", True),
            ),
            analysis=AnalysisConfig(
                level=analysis.get("level", "pathway"),
                min_module_size=analysis.get("min_module_size", 1),
                n_jobs=analysis.get("n_jobs", 1),
                penalizer=float(analysis.get("penalizer", 0.0)),
                max_iter=analysis.get("max_iter", 100),
                min_pathway_size=analysis.get("min_pathway_size", 1),
                max_pathway_size=analysis.get("max_pathway_size"),
                fdr_method=analysis.get("fdr_method", "fdr_bh"),
            ),
            resampling=ResamplingPipelineConfig(
                run=resampling.get("run", True),
                n_iterations=resampling.get("n_iterations", 100),
                n_remove=resampling.get("n_remove", 3),
                alpha=float(resampling.get("alpha", 0.05)),
                min_success=resampling.get("min_success", 0),
                n_jobs=resampling.get("n_jobs", 1),
            ),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "PipelineConfig":
        """Load configuration from YAML file."""
        with open(yaml_path, "r") as f:
            config_dict = yaml.safe_load(f) or {}
        return cls.from_dict(config_dict)


# =============================================================================
# Pipeline Result
# =============================================================================

@dataclass
class PipelineResult:
    """Complete results from the survival analysis pipeline."""

    batch: BatchResult
    report: ResultReport
    resampling: Optional[ResamplingResult] = None

    # Metadata
    dataset_summary: Dict[str, Any] = field(default_factory=dict)
    n_pathways: int = 0
    config: Optional[PipelineConfig] = None
    runtime_seconds: float = 0.0
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def summary(self) -> str:
        """Generate a summary of the pipeline results."""
        counts = self.batch.status_counts()
        omics = self.dataset_summary.get("omics", {})
        lines = [
            "=" * 60,
            "PATHWAY SURVIVAL ANALYSIS RESULTS",
            "=" * 60,
            f"Timestamp: {self.timestamp}",
            f"Runtime: {self.runtime_seconds:.1f} seconds",
            "",
            "DATA SUMMARY:",
            f"  Samples: {self.dataset_summary.get('n_samples', 0)}",
            f"  Outcome: {self.dataset_summary.get('outcome', '')}",
            f"  Pathways: {self.n_pathways}",
        ]
        for name, info in omics.items():
            lines.append(f"  {name}: {info['n_features']} features ({info['method']})")

        lines.extend([
            "",
            f"UNITS ({self.batch.level} level):",
            f"  Tested: {counts['tested']}",
            f"  Not tested: {counts['not_tested']}",
            f"  Fit failed: {counts['fit_failed']}",
        ])

        if self.resampling is not None:
            lines.extend([
                "",
                "RESAMPLING:",
                f"  Units resampled: {len(self.resampling.success_counts)}",
                f"  Iterations: {self.resampling.n_iterations}",
                f"  Samples removed per iteration: {self.resampling.n_removed}",
                f"  Alpha: {self.resampling.alpha}",
            ])

        lines.extend(["", "TOP UNITS:"])
        for _, row in self.report.top(10).iterrows():
            stability = ""
            if pd.notna(row["success_count"]):
                stability = f", {row['success_count']}/{row['n_iterations']} stable"
            lines.append(f"  {row['unit']}: p={row['p_value']:.3g}{stability}")

        lines.append("=" * 60)
        return "\n".join(lines)


# =============================================================================
# Main Pipeline
# =============================================================================

class SurvivalAnalysisPipeline:
    """
    End-to-end pipeline for pathway survival analysis.

    Takes omic matrices, an outcome and a pathway knowledge base through
    per-unit testing and resampling stability to the ranked report.
    """

    def __init__(self, config: PipelineConfig):
        """
        Initialize the pipeline.

        Args:
            config: Complete pipeline configuration
        """
        self.config = config
        self._setup_logging()
        self.runner = BatchRunner(config.analysis.batch_config())
        self.cache: Optional[ResultCache] = None
        if config.cache_dir:
            self.cache = ResultCache(PickleCacheBackend(config.cache_dir))

    def _setup_logging(self) -> None:
        """Configure logging based on verbosity setting."""
        level = logging.INFO if self.config.verbose else logging.WARNING
        logging.basicConfig(
            level=level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    def run(
        self,
        dataset: Optional[OmicsDataset] = None,
        pathways: Optional[PathwayCollection] = None,
    ) -> PipelineResult:
        """
        Execute the complete pipeline.

        Args:
            dataset: Pre-built dataset (loaded from the configured files if None)
            pathways: Pre-built pathway collection (loaded if None)

        Returns:
            PipelineResult with batch, resampling and report
        """
        start_time = datetime.now()
        logger.info(f"Starting pipeline '{self.config.name}'")

        # Step 1: Load data
        logger.info("Step 1: Loading data")
        if dataset is None:
            dataset = self._load_dataset()
        if pathways is None:
            pathways = self._load_pathways()
        logger.info(f"Dataset: {dataset.describe()}")

        # Step 2: Filter pathways
        logger.info("Step 2: Filtering pathways by size")
        analysis = self.config.analysis
        pathways = pathways.filter_by_size(analysis.min_pathway_size, analysis.max_pathway_size)

        # Step 3: Test units
        logger.info(f"Step 3: Testing {analysis.level}-level units")
        batch = self._run_batch(dataset, pathways)

        # Step 4: Resampling (optional)
        resampling = None
        if self.config.resampling.run:
            logger.info("Step 4: Resampling significant units")
            resampling = self._run_resampling(dataset, pathways, batch)

        # Step 5: Report
        logger.info("Step 5: Building report")
        report = build_report(batch, resampling, fdr_method=analysis.fdr_method)

        result = PipelineResult(
            batch=batch,
            report=report,
            resampling=resampling,
            dataset_summary=dataset.describe(),
            n_pathways=len(pathways),
            config=self.config,
            runtime_seconds=(datetime.now() - start_time).total_seconds(),
        )

        # Step 6: Save results
        if self.config.output_dir:
            logger.info("Step 6: Saving results")
            self._save_results(result)

        logger.info(f"Pipeline complete in {result.runtime_seconds:.1f}s")
        return result

    # =========================================================================
    # Step 1: Data Loading
    # =========================================================================

    def _load_dataset(self) -> OmicsDataset:
        data = self.config.data
        if not data.omics:
            raise ValueError("No omics configured")

        matrices = {
            name: load_omic_matrix(omic.path, sep=omic.sep) for name, omic in data.omics.items()
        }
        if data.outcome_type == OutcomeKind.SURVIVAL.value:
            outcome = load_survival_outcome(
                data.outcome_path,
                time_col=data.time_col,
                event_col=data.event_col,
                sample_col=data.sample_col,
            )
        else:
            outcome = load_class_outcome(
                data.outcome_path,
                class_col=data.class_col,
                sample_col=data.sample_col,
                classes=data.classes,
            )

        if data.align_samples:
            matrices, outcome = align_to_common_samples(matrices, outcome)

        return OmicsDataset(
            matrices=matrices,
            outcome=outcome,
            reductions={name: omic.reduction() for name, omic in data.omics.items()},
        )

    def _load_pathways(self) -> PathwayCollection:
        data = self.config.data
        if not data.pathways_path:
            raise ValueError("No pathway source configured")
        if data.pathways_format == "gmt":
            return load_gmt(data.pathways_path)
        return load_pathway_edges(data.pathways_path, directed=data.directed)

    # =========================================================================
    # Steps 3-4: Testing and Resampling
    # =========================================================================

    def _run_batch(self, dataset: OmicsDataset, pathways: PathwayCollection) -> BatchResult:
        if self.cache is None:
            return self.runner.run(dataset, pathways)
        key = self.cache.key_for(dataset, pathways, "batch", self.runner.config)
        return self.cache.get_or_compute(key, lambda: self.runner.run(dataset, pathways))

    def _run_resampling(
        self, dataset: OmicsDataset, pathways: PathwayCollection, batch: BatchResult
    ) -> Optional[ResamplingResult]:
        settings = self.config.resampling
        units = batch.significant(settings.alpha)
        if not units:
            logger.info(f"No unit reached p <= {settings.alpha}; skipping resampling")
            return None

        resampler = Resampler(
            ResamplingConfig(
                n_iterations=settings.n_iterations,
                n_remove=settings.n_remove,
                alpha=settings.alpha,
                random_state=self.config.seed,
                n_jobs=settings.n_jobs,
            ),
            self.runner,
        )
        if self.cache is None:
            return resampler.run(dataset, pathways, units)
        key = self.cache.key_for(
            dataset,
            pathways,
            "resampling",
            self.runner.config,
            resampler.config,
            [u.label for u in units],
        )
        return self.cache.get_or_compute(key, lambda: resampler.run(dataset, pathways, units))

    # =========================================================================
    # Step 6: Output
    # =========================================================================

    def _save_results(self, result: PipelineResult) -> None:
        """Save pipeline results to output directory."""
        output_dir = Path(self.config.output_dir)
        result.report.to_csv(str(output_dir))

        min_success = self.config.resampling.min_success
        if result.resampling is not None and min_success > 0:
            stable = result.report.filter_stable(min_success)
            stable.to_csv(output_dir / "stable_units.csv", index=False)

        with open(output_dir / "summary.txt", "w") as f:
            f.write(result.summary)

        logger.info(f"Results saved to {output_dir}")
