"""CLI tests for configuration commands."""

import os
from pathlib import Path
from typing import Any

from click.testing import CliRunner

from reelshelf.cli import cli
from reelshelf.config import ConfigManager


def _env_with_home(tmp_path: Path) -> dict[str, Any]:
    env = {key: value for key, value in os.environ.items() if not key.startswith("REELSHELF__")}
    env["HOME"] = str(tmp_path)
    return env


def _config_path(tmp_path: Path) -> Path:
    return tmp_path / ".reelshelf" / "config.yaml"


def test_config_view_creates_and_displays_config(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(cli, ["config", "view"], env=env)

    assert result.exit_code == 0
    assert "library:" in result.output
    assert "crawler:" in result.output
    assert _config_path(tmp_path).exists()


def test_config_set_updates_value_and_writes_diff(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(
        cli, ["config", "set", "crawler.poll_interval_seconds", "--value", "2.5"], env=env
    )

    assert result.exit_code == 0
    assert "2.5" in result.output
    assert "Updated crawler.poll_interval_seconds." in result.output

    config = ConfigManager(config_path=_config_path(tmp_path)).load(include_env=False)
    assert config.crawler.poll_interval_seconds == 2.5


def test_config_set_reports_when_value_is_unchanged(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(cli, ["config", "set", "library.policy", "--value", "release"], env=env)

    assert result.exit_code == 0
    assert "No changes applied" in result.output


def test_config_set_rejects_invalid_value(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)
    runner.invoke(cli, ["config", "view"], env=env)
    before = _config_path(tmp_path).read_text(encoding="utf-8")

    result = runner.invoke(cli, ["config", "set", "library.policy", "--value", "maybe"], env=env)

    assert result.exit_code != 0
    assert "Invalid configuration values" in result.output
    assert _config_path(tmp_path).read_text(encoding="utf-8") == before
