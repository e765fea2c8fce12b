"""Tests for the CLI commands that need no log files."""

from typer.testing import CliRunner

from honeyguard.cli import app

runner = CliRunner()


def test_models_lists_strategies():
    result = runner.invoke(app, ["models"])

    assert result.exit_code == 0
    assert "GradientStyle" in result.output
    assert "WeightedFeature" in result.output
    assert "PathLengthEstimate" in result.output
    assert "gradient_boosting" in result.output
