"""
Tests for the command-line interface.
"""

import numpy as np
import pandas as pd
import pytest
import yaml
from click.testing import CliRunner

from pathway_survival import __version__
from pathway_survival.cli import main


@pytest.fixture
def config_path(tmp_path):
    samples = [f"S{i}" for i in range(12)]
    x = np.arange(1, 13, dtype=float)
    time = (13 - x) + 4 * np.tile([0, 1], 6)

    pd.DataFrame(
        np.vstack([x, 3 * x - 2]), index=["a", "b"], columns=samples
    ).to_csv(tmp_path / "expr.tsv", sep="\t")
    pd.DataFrame({"time": time, "event": 1}, index=samples).to_csv(
        tmp_path / "outcome.tsv", sep="\t"
    )
    (tmp_path / "pathways.gmt").write_text("P1\tdesc\ta\tb\nP2\tdesc\tQ1\tQ2\n")

    config = {
        "pipeline": {"output_dir": str(tmp_path / "config_out"), "verbose": False},
        "data": {
            "omics": {
                "expr": {
                    "path": str(tmp_path / "expr.tsv"),
                    "params": {"max_components": 1},
                }
            },
            "outcome": {"path": str(tmp_path / "outcome.tsv")},
            "pathways": {"path": str(tmp_path / "pathways.gmt"), "format": "gmt"},
        },
        "resampling": {"run": False},
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(config))
    return path


def test_version():
    result = CliRunner().invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_run(config_path, tmp_path):
    out = tmp_path / "cli_out"
    result = CliRunner().invoke(main, ["-c", str(config_path), "-o", str(out), "-q"])

    assert result.exit_code == 0, result.output
    assert "Pipeline completed: 1 units tested, 1 not tested or failed" in result.output
    assert (out / "report.csv").exists()
    assert (out / "failures.csv").exists()
    assert (out / "summary.txt").exists()


def test_missing_config():
    result = CliRunner().invoke(main, ["-c", "does_not_exist.yaml"])
    assert result.exit_code != 0


def test_invalid_config(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text(yaml.safe_dump({"data": {"outcome": {"type": "ordinal"}}}))
    result = CliRunner().invoke(main, ["-c", str(path), "-q"])
    assert result.exit_code == 1
    assert "Invalid input" in result.output


def test_missing_input_file(config_path, tmp_path):
    config = yaml.safe_load(config_path.read_text())
    config["data"]["omics"]["expr"]["path"] = str(tmp_path / "missing.tsv")
    config_path.write_text(yaml.safe_dump(config))

    result = CliRunner().invoke(main, ["-c", str(config_path), "-q"])
    assert result.exit_code == 1
    assert "not found" in result.output
