"""
Tests for the command line entry point.
"""

import json

import pytest
from unittest.mock import AsyncMock, patch

from docker.errors import DockerException

from rollout_manager import cli
from rollout_manager.models import (
    RollbackOutcome,
    RollbackStatus,
    RunOutcome,
    RunStatus,
    Stage,
    StageReport,
    StageResult,
    Unit,
)


def outcome_with(status, timed_out=False):
    unit = Unit(name="api", version="v2")
    if timed_out:
        result = StageResult.timed_out(unit, Stage.VERIFY_DEPLOYED, 300)
    else:
        result = StageResult.success(unit, Stage.VERIFY_DEPLOYED)
    outcome = RunOutcome(
        status=status, stages=[StageReport(Stage.VERIFY_DEPLOYED, [result])], run_id="run-1"
    )
    if status in (RunStatus.ROLLED_BACK, RunStatus.ROLLBACK_FAILED):
        rollback_status = (
            RollbackStatus.RECOVERED if status is RunStatus.ROLLED_BACK else RollbackStatus.FAILED
        )
        outcome.rollback = RollbackOutcome(units=[unit], status=rollback_status)
    return outcome


class TestExitCodes:
    """Test mapping of run outcomes to exit codes."""

    @pytest.mark.parametrize(
        "status,timed_out,expected",
        [
            (RunStatus.SUCCEEDED, False, 0),
            (RunStatus.ROLLED_BACK, False, 1),
            (RunStatus.ROLLED_BACK, True, 2),
            (RunStatus.ROLLBACK_FAILED, True, 3),
            (RunStatus.DEGRADED, True, 4),
        ],
    )
    def test_exit_code_for(self, status, timed_out, expected):
        assert cli.exit_code_for(outcome_with(status, timed_out)) == expected


class TestMain:
    """Test the CLI flow with the run itself mocked out."""

    @pytest.fixture(autouse=True)
    def no_file_logging(self):
        with patch("rollout_manager.cli.setup_logging") as setup:
            yield setup

    def test_successful_run(self, config_file, capsys):
        with patch(
            "rollout_manager.cli.run",
            new=AsyncMock(return_value=outcome_with(RunStatus.SUCCEEDED)),
        ) as run:
            code = cli.main(["--version", "v2", "--config", str(config_file)])

        assert code == 0
        config, version = run.await_args.args
        assert version == "v2"
        assert set(config.services) == {"api", "worker"}
        assert "Run run-1: succeeded" in capsys.readouterr().out

    def test_rolled_back_on_deadline(self, config_file):
        outcome = outcome_with(RunStatus.ROLLED_BACK, timed_out=True)
        with patch("rollout_manager.cli.run", new=AsyncMock(return_value=outcome)):
            code = cli.main(["-V", "v2", "-c", str(config_file)])

        assert code == 2

    def test_json_output(self, config_file, capsys):
        outcome = outcome_with(RunStatus.DEGRADED)
        with patch("rollout_manager.cli.run", new=AsyncMock(return_value=outcome)):
            code = cli.main(["-V", "v2", "-c", str(config_file), "--json"])

        assert code == 4
        assert json.loads(capsys.readouterr().out)["status"] == "degraded"

    def test_timing_overrides(self, config_file):
        with patch(
            "rollout_manager.cli.run",
            new=AsyncMock(return_value=outcome_with(RunStatus.SUCCEEDED)),
        ) as run:
            cli.main(
                ["-V", "v2", "-c", str(config_file), "--check-interval", "5", "--timeout", "60"]
            )

        config, _ = run.await_args.args
        assert config.timing.check_interval == 5.0
        assert config.timing.timeout == 60.0

    def test_verbose_flag(self, config_file, no_file_logging):
        with patch(
            "rollout_manager.cli.run",
            new=AsyncMock(return_value=outcome_with(RunStatus.SUCCEEDED)),
        ):
            cli.main(["-V", "v2", "-c", str(config_file), "-v"])

        _, verbose = no_file_logging.call_args.args
        assert verbose is True

    def test_missing_version(self, config_file, capsys):
        assert cli.main(["-c", str(config_file)]) == 1
        assert "--version is required" in capsys.readouterr().err

    def test_missing_config(self, tmp_path, capsys):
        code = cli.main(["-V", "v2", "-c", str(tmp_path / "missing.yml")])

        assert code == 1
        assert "Configuration invalid" in capsys.readouterr().err

    def test_docker_unavailable(self, config_file, capsys):
        with patch(
            "rollout_manager.cli.run", new=AsyncMock(side_effect=DockerException("no socket"))
        ):
            code = cli.main(["-V", "v2", "-c", str(config_file)])

        assert code == 1
        assert "no socket" in capsys.readouterr().err

    def test_generate_config(self, tmp_path, capsys):
        path = tmp_path / "generated.yml"

        assert cli.main(["--generate-config", "-c", str(path)]) == 0
        assert path.exists()
        assert cli.main(["--validate-config", "-c", str(path)]) == 0
        assert "Configuration valid" in capsys.readouterr().out

    def test_validate_invalid_config(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("services: {}\n")

        assert cli.main(["--validate-config", "-c", str(path)]) == 1


class TestRun:
    """Test wiring of the backend, prober and orchestrator."""

    @pytest.mark.asyncio
    async def test_run_wires_collaborators(self, config_file, tmp_path):
        from rollout_manager.config.settings import load_config

        config = load_config(config_file)
        expected = outcome_with(RunStatus.SUCCEEDED)

        with patch("rollout_manager.cli.SwarmBackend") as backend_cls, patch(
            "rollout_manager.cli.DeploymentOrchestrator"
        ) as orchestrator_cls:
            orchestrator_cls.return_value.run_deployment = AsyncMock(return_value=expected)
            outcome = await cli.run(config, "v2")

        assert outcome is expected
        backend = backend_cls.from_config.return_value
        backend.close.assert_called_once()
        args = orchestrator_cls.call_args.args
        assert args[0] is backend
        assert args[2] == config.timing
        assert str(args[3].path) == str(tmp_path / "events.jsonl")
        services, jobs = orchestrator_cls.return_value.run_deployment.await_args.args
        assert [u.name for u in services] == ["api", "worker"]
        assert [u.name for u in jobs] == ["nightly-report"]
