"""Tests for Bulwark CLI commands."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from bulwark.cli import app

runner = CliRunner()

VALID_CONFIG = """\
retry:
  max_attempts: 4
  base_delay: 0.5
  max_delay: 2
circuit_breaker:
  failure_threshold: 3
progress:
  preset: session_refresh
  timeout: 5
notifications:
  - type: console
    min_severity: high
"""


class TestVersion:
    """Tests for the --version flag."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "Bulwark v0.3.0" in result.stdout

    def test_invalid_log_level(self) -> None:
        result = runner.invoke(app, ["--log-level", "LOUD", "backoff"])
        assert result.exit_code == 2


class TestClassifyCommand:
    """Tests for the classify command."""

    def test_json_output(self) -> None:
        result = runner.invoke(app, ["classify", "Too many requests", "--code", "429", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["type"] == "rate_limit"
        assert data["retryable"] is True
        assert data["context"]["component"] == "cli"

    def test_offline(self) -> None:
        result = runner.invoke(app, ["classify", "Something broke", "--offline", "--json"])
        data = json.loads(result.stdout)
        assert data["type"] == "network"
        assert data["severity"] == "high"

    def test_custom_context(self) -> None:
        result = runner.invoke(
            app,
            ["classify", "Session expired", "--component", "auth", "--action", "refresh", "-j"],
        )
        data = json.loads(result.stdout)
        assert data["type"] == "authentication"
        assert data["requires_auth"] is True
        assert data["context"]["action"] == "refresh"

    def test_panel_output(self) -> None:
        result = runner.invoke(app, ["classify", "Email is required"])
        assert result.exit_code == 0
        assert "validation" in result.stdout
        assert "low" in result.stdout


class TestBackoffCommand:
    """Tests for the backoff command."""

    def test_default_schedule(self) -> None:
        result = runner.invoke(app, ["backoff"])
        assert result.exit_code == 0
        assert "Retry Schedule" in result.stdout
        assert "Worst case wait: 3s" in result.stdout

    def test_single_attempt(self) -> None:
        result = runner.invoke(app, ["backoff", "--attempts", "1"])
        assert result.exit_code == 0
        assert "A single attempt never waits." in result.stdout

    def test_from_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        Path("bulwark.yaml").write_text(VALID_CONFIG)

        result = runner.invoke(app, ["backoff", "--config", "bulwark.yaml"])

        # 0.5 + 1 + 2
        assert result.exit_code == 0
        assert "Worst case wait: 3.5s" in result.stdout

    def test_invalid_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        Path("bad.yaml").write_text("retry:\n  max_attempts: 0\n")

        result = runner.invoke(app, ["backoff", "--config", "bad.yaml"])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.stdout


class TestValidateCommand:
    """Tests for the validate command."""

    def test_valid_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        Path("bulwark.yaml").write_text(VALID_CONFIG)

        result = runner.invoke(app, ["validate", "bulwark.yaml"])

        assert result.exit_code == 0
        assert "bulwark.yaml is valid" in result.stdout
        assert "refreshing" in result.stdout
        assert "restoring" in result.stdout

    def test_invalid_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        Path("bad.yaml").write_text("circuit_breaker:\n  failure_threshold: 0\n")

        result = runner.invoke(app, ["validate", "bad.yaml"])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.stdout

    def test_unknown_preset(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        Path("bad.yaml").write_text("progress:\n  preset: warp_speed\n")

        result = runner.invoke(app, ["validate", "bad.yaml"])

        assert result.exit_code == 1
        assert "Unknown progress preset" in result.stdout

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["validate", str(tmp_path / "missing.yaml")])
        assert result.exit_code != 0


class TestProgressCommand:
    """Tests for the progress command."""

    def test_times_out(self) -> None:
        result = runner.invoke(
            app, ["progress", "--preset", "session_refresh", "--timeout", "0.2"]
        )
        assert result.exit_code == 1
        assert "timeout after" in result.stdout

    def test_completes(self) -> None:
        result = runner.invoke(
            app,
            ["progress", "--preset", "session_refresh", "--timeout", "5", "--complete-after", "0.05"],
        )
        assert result.exit_code == 0
        assert "success after" in result.stdout

    def test_unknown_preset(self) -> None:
        result = runner.invoke(app, ["progress", "--preset", "warp_speed"])
        assert result.exit_code == 1
        assert "Unknown progress preset" in result.stdout
