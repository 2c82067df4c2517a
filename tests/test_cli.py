"""Tests for the CLI entry point."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from vfp.cli import main
from vfp.errors import SocketSetupError

from conftest import FakeSocketPair


class _OneShotScheduler:
    """Scheduler stand-in that runs exactly one tick."""

    def __init__(self, interval, tick, immediate=True) -> None:
        self.interval = interval
        self.immediate = immediate
        self.ticks = 0
        self._tick = tick

    def run(self) -> None:
        self._tick()
        self.ticks += 1

    def stop(self) -> None:
        pass


@pytest.fixture
def files(tmp_path):
    """Valid config and targets files; returns their paths as strings."""
    cfg_file = tmp_path / "config.yml"
    cfg_file.write_text("id: 1\nprobe:\n  interval: 1s\nnodes:\n  1: ams\n  2: nyc\n")
    targets_file = tmp_path / "targets.txt"
    targets_file.write_text("10.0.0.1\n::1\n")
    return str(cfg_file), str(targets_file)


def _json_summary(output: str) -> dict:
    return json.loads(output[output.index("{"):])


class TestCliHelp:
    """--help flag produces usage information."""

    def test_help_exits_zero(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "Map anycast catchments" in result.output

    @pytest.mark.parametrize(
        "option", ["--config", "--targets", "--policy", "--format", "--verbose"]
    )
    def test_help_shows_option(self, option: str) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])
        assert option in result.output


class TestSetupErrors:
    """Configuration and socket failures exit with status 1."""

    def test_missing_config_file(self, tmp_path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["--config", str(tmp_path / "nope.yml")])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_invalid_config(self, tmp_path, files) -> None:
        _, targets = files
        bad = tmp_path / "bad.yml"
        bad.write_text("id: 1\nprobe:\n  interval: never\n")
        runner = CliRunner()
        result = runner.invoke(main, ["-c", str(bad), "-t", targets])
        assert result.exit_code == 1
        assert "Invalid duration" in result.output

    def test_missing_targets_file(self, tmp_path, files) -> None:
        config, _ = files
        runner = CliRunner()
        result = runner.invoke(main, ["-c", config, "-t", str(tmp_path / "none.txt")])
        assert result.exit_code == 1
        assert "Targets file not found" in result.output

    @patch("vfp.cli.open_socket_pair")
    def test_socket_setup_failure(self, mock_open, files) -> None:
        config, targets = files
        mock_open.side_effect = SocketSetupError(
            "unable to listen on IPv4: [Errno 1] Operation not permitted"
        )
        runner = CliRunner()
        result = runner.invoke(main, ["-c", config, "-t", targets])
        assert result.exit_code == 1
        assert "unable to listen on IPv4" in result.output

    def test_invalid_policy_rejected(self, files) -> None:
        config, targets = files
        runner = CliRunner()
        result = runner.invoke(main, ["-c", config, "-t", targets, "--policy", "sometimes"])
        assert result.exit_code != 0
        assert "Invalid value" in result.output


class TestRun:
    """Full wiring with in-memory sockets and a one-tick scheduler."""

    @patch("vfp.cli.Scheduler", _OneShotScheduler)
    @patch("vfp.cli.open_socket_pair")
    def test_one_round_probes_every_target(self, mock_open, files) -> None:
        config, targets = files
        pair = FakeSocketPair()
        mock_open.return_value = pair

        runner = CliRunner()
        result = runner.invoke(main, ["-c", config, "-t", targets, "-f", "json"])

        assert result.exit_code == 0, result.output
        summary = _json_summary(result.output)
        assert summary["source"] == "ams"
        assert summary["probes_sent"] == 2
        assert [addr for _, addr in pair.v4.sent] == ["10.0.0.1"]
        assert [addr for _, addr in pair.v6.sent] == ["::1"]
        mock_open.assert_called_once_with("0.0.0.0", "::")

    @patch("vfp.cli.Scheduler", _OneShotScheduler)
    @patch("vfp.cli.open_socket_pair")
    def test_random_policy_override(self, mock_open, files) -> None:
        config, targets = files
        mock_open.return_value = FakeSocketPair()

        runner = CliRunner()
        result = runner.invoke(
            main, ["-c", config, "-t", targets, "-f", "json", "--policy", "random"]
        )

        assert result.exit_code == 0, result.output
        assert _json_summary(result.output)["probes_sent"] == 1

    @patch("vfp.cli.Scheduler", _OneShotScheduler)
    @patch("vfp.cli.open_socket_pair")
    def test_sockets_closed_on_exit(self, mock_open, files) -> None:
        config, targets = files
        pair = FakeSocketPair()
        mock_open.return_value = pair

        runner = CliRunner()
        result = runner.invoke(main, ["-c", config, "-t", targets])

        assert result.exit_code == 0, result.output
        assert pair.v4.closed
        assert pair.v6.closed
        assert "2 probes sent" in result.output
