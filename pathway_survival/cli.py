"""
Command-line interface for Pathway Survival.

Usage:
    python -m pathway_survival --config configs/example.yaml
    pathway-survival --config configs/example.yaml
"""

import sys
from pathlib import Path

import click

from . import __version__
from .exceptions import PathwaySurvivalError
from .pipeline import PipelineConfig, SurvivalAnalysisPipeline


@click.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Path to YAML configuration file",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default=None,
    help="Override output directory from config",
)
@click.option(
    "--seed",
    "-s",
    type=int,
    default=None,
    help="Override resampling seed from config",
)
@click.option(
    "--verbose/--quiet",
    "-v/-q",
    default=True,
    help="Enable/disable verbose output",
)
@click.version_option(version=__version__, prog_name="pathway-survival")
def main(config: str, output: str, seed: int, verbose: bool) -> None:
    """
    Pathway Survival - Multi-omic Pathway Association Analysis

    Test pathways or pathway modules for association with survival or a
    two-class outcome, and estimate how stable the results are.

    Example:
        python -m pathway_survival --config configs/example.yaml
    """
    click.echo(f"Pathway Survival v{__version__}")
    click.echo("=" * 50)

    config_path = Path(config)
    click.echo(f"Loading config: {config_path}")

    try:
        pipeline_config = PipelineConfig.from_yaml(str(config_path))

        # Apply overrides
        if output:
            pipeline_config.output_dir = output
        if seed is not None:
            pipeline_config.seed = seed
        pipeline_config.verbose = verbose

        pipeline = SurvivalAnalysisPipeline(pipeline_config)
        result = pipeline.run()

        click.echo("")
        click.echo(
            f"Pipeline completed: {len(result.report)} units tested, "
            f"{len(result.report.failures)} not tested or failed"
        )
        if pipeline_config.output_dir:
            click.echo(f"Results: {pipeline_config.output_dir}")

    except FileNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except (PathwaySurvivalError, ValueError) as e:
        click.echo(f"Invalid input: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"Pipeline failed: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
