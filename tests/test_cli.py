import importlib
from pathlib import Path

import pytest
from click.testing import CliRunner

from leadbridge.interfaces.cli import cli
from leadbridge.services.jobs import JobResult

job_module = importlib.import_module("leadbridge.interfaces.cli.job")
pull_module = importlib.import_module("leadbridge.interfaces.cli.pull")


@pytest.fixture
def env_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    monkeypatch.setenv("BOARDS_CONFIG", str(tmp_path / "config.json"))
    return tmp_path / "missing.env"


def test_help_lists_commands() -> None:
    result = CliRunner().invoke(cli, ["--help"])

    assert result.exit_code == 0
    for command in ("serve", "pull", "job"):
        assert command in result.output


def test_unknown_job_is_rejected() -> None:
    result = CliRunner().invoke(cli, ["job", "does-not-exist", "--once"])

    assert result.exit_code != 0
    assert "does-not-exist" in result.output


def test_job_once_prints_summary(monkeypatch: pytest.MonkeyPatch, env_file: Path) -> None:
    class StubJob:
        def run(self) -> JobResult:
            return JobResult(job="sales-updater", boards=2, updated=5)

    built: list[str] = []

    def fake_build_job(name, settings):
        built.append(name)
        return StubJob()

    monkeypatch.setattr(job_module, "build_job", fake_build_job)

    result = CliRunner().invoke(
        cli, ["job", "sales-updater", "--once", "--env-file", str(env_file)]
    )

    assert result.exit_code == 0, result.output
    assert built == ["sales-updater"]
    assert "sales-updater summary" in result.output


def test_job_once_failure_exits_non_zero(
    monkeypatch: pytest.MonkeyPatch, env_file: Path
) -> None:
    class BrokenJob:
        def run(self) -> JobResult:
            raise RuntimeError("board API down")

    monkeypatch.setattr(job_module, "build_job", lambda name, settings: BrokenJob())

    result = CliRunner().invoke(
        cli, ["job", "lead-intake", "--once", "--env-file", str(env_file)]
    )

    assert result.exit_code == 1
    assert "board API down" in result.output


def test_serve_refuses_to_start_without_credentials(
    monkeypatch: pytest.MonkeyPatch, env_file: Path
) -> None:
    for name in ("API_USERNAME", "API_PASSWORD", "REPORTS_API_KEY", "AFFILIATE_ID"):
        monkeypatch.delenv(name, raising=False)

    result = CliRunner().invoke(cli, ["serve", "--env-file", str(env_file)])

    assert result.exit_code == 1
    assert "Missing environment variables" in result.output


def test_pull_failure_is_reported(monkeypatch: pytest.MonkeyPatch, env_file: Path) -> None:
    async def failing_pull(settings):
        raise RuntimeError("affiliate API unreachable")

    monkeypatch.setattr(pull_module, "_pull", failing_pull)

    result = CliRunner().invoke(cli, ["pull", "--env-file", str(env_file)])

    assert result.exit_code == 1
    assert "affiliate API unreachable" in result.output
    assert not (env_file.parent / "data.json").exists()
