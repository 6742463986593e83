"""Tests for the command-line entry point."""

import pytest
from typer.testing import CliRunner

from shared.config import get_settings

runner = CliRunner()


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    for name in ("GITHUB_TOKEN", "SLACK_USER_TOKEN", "SLACK_CHANNEL_ID", "LLM_PROVIDER", "LLM_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    # The runner swaps stderr per invocation; keep structlog on its defaults.
    monkeypatch.setattr("orchestrator.main.setup_logging", lambda *args, **kwargs: None)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _write_config(tmp_path, complete: bool = True) -> str:
    path = tmp_path / "settings.yaml"
    credentials = """
github:
  token: ghp_test
slack:
  user_token: xoxp-test
  channel_id: C123
""" if complete else ""
    path.write_text(
        f"""
llm:
  provider: mock
{credentials}
standup:
  team_members: [alice]
  github_repos: [acme/api]
  audit_log_path: {tmp_path / "audit.log"}
"""
    )
    return str(path)


class TestCLI:
    """Tests for the Typer app."""

    def test_status_complete(self, tmp_path):
        from orchestrator.main import app

        result = runner.invoke(app, ["status", "--config", _write_config(tmp_path)])

        assert result.exit_code == 0
        assert "acme/api" in result.output
        assert "Configuration complete." in result.output

    def test_status_reports_missing(self, tmp_path):
        from orchestrator.main import app

        result = runner.invoke(app, ["status", "--config", _write_config(tmp_path, complete=False)])

        assert result.exit_code == 1
        assert "GITHUB_TOKEN" in result.output

    def test_run_refuses_incomplete_config(self, tmp_path):
        from orchestrator.main import app

        result = runner.invoke(app, ["run", "--config", _write_config(tmp_path, complete=False)])

        assert result.exit_code == 1

    def test_run_with_mock_provider(self, tmp_path):
        from orchestrator.main import app

        result = runner.invoke(app, ["run", "--config", _write_config(tmp_path), "--log-level", "WARNING"])

        assert result.exit_code == 0
