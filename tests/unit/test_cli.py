"""
Unit tests for the tutor CLI commands that do not touch the learner's session file.

Run: pytest tests/unit/test_cli.py -v
"""

from typer.testing import CliRunner

from src.cli.tutor_cli import app

runner = CliRunner()


class TestCommands:
    def test_graph(self):
        result = runner.invoke(app, ["graph"])
        assert result.exit_code == 0
        assert "Level" in result.output

    def test_benchmark(self):
        result = runner.invoke(app, ["benchmark"])
        assert result.exit_code == 0
        assert "No strategy regressions" in result.output

    def test_info(self):
        result = runner.invoke(app, ["info"])
        assert result.exit_code == 0
        assert "Max retries" in result.output

    def test_generate_local(self):
        result = runner.invoke(app, ["generate", "tri.pyth.solve_missing_side", "--difficulty", "2", "--local"])
        assert result.exit_code == 0
        assert "Attempts" in result.output

    def test_generate_unknown_concept(self):
        result = runner.invoke(app, ["generate", "tri.advanced.similarity", "--local"])
        assert result.exit_code == 1
        assert "Unknown concept" in result.output

    def test_simulate(self):
        result = runner.invoke(app, ["simulate", "--steps", "6", "--accuracy", "1.0", "--seed", "3"])
        assert result.exit_code == 0
        assert "Answered 6 items" in result.output
