"""Tests for CLI argument handling in main.py."""
from pathlib import Path
from unittest.mock import MagicMock, patch

from click.testing import CliRunner

from clipmirror.config import AgentConfig, load_config, save_config
from clipmirror.errors import InvalidCredentialError
from clipmirror.main import main


def write_config(tmp_path: Path, **fields) -> Path:
    """Write a configuration file and return its path."""
    path = tmp_path / "config.json"
    save_config(AgentConfig(device_id="dev", device_name="box", **fields), path)
    return path


class TestCLIArguments:
    """Tests for command-line argument validation."""

    def test_test_and_reset_auth_are_mutually_exclusive(self, tmp_path: Path):
        """Test that --test with --reset-auth gives usage error."""
        runner = CliRunner()
        result = runner.invoke(
            main, ["--test", "--reset-auth", "--config", str(tmp_path / "c.json")]
        )
        assert result.exit_code == 2
        assert "mutually exclusive" in result.output

    def test_help_exits_with_code_0(self):
        """Test that --help exits cleanly with code 0."""
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "--reset-auth" in result.output
        assert "--no-push" in result.output

    def test_missing_token_exits_with_code_1(self, tmp_path: Path, monkeypatch):
        """Test that running without an access token fails."""
        monkeypatch.delenv("CLIPMIRROR_API_KEY", raising=False)
        path = write_config(tmp_path)
        runner = CliRunner()
        result = runner.invoke(main, ["--config", str(path), "--passphrase", "pw"])
        assert result.exit_code == 1
        assert "no access token" in result.output

    def test_invalid_config_exits_with_code_1(self, tmp_path: Path):
        """Test that an unreadable configuration fails."""
        path = tmp_path / "config.json"
        path.write_text("{broken")
        runner = CliRunner()
        result = runner.invoke(main, ["--config", str(path)])
        assert result.exit_code == 1
        assert "Error" in result.output


class TestResetAuth:
    """Tests for --reset-auth."""

    def test_reset_auth_clears_token(self, tmp_path: Path):
        """Test that --reset-auth wipes stored credentials and exits 0."""
        path = write_config(tmp_path, access_token="tok", user_id="u", last_seq=5)
        runner = CliRunner()
        result = runner.invoke(main, ["--reset-auth", "--config", str(path)])
        assert result.exit_code == 0
        config = load_config(path)
        assert config.access_token == ""
        assert config.last_seq == 0

    def test_reset_auth_without_config(self, tmp_path: Path):
        """Test that --reset-auth with no configuration still exits 0."""
        runner = CliRunner()
        result = runner.invoke(main, ["--reset-auth", "--config", str(tmp_path / "c.json")])
        assert result.exit_code == 0
        assert "nothing to clear" in result.output


class TestRunModes:
    """Tests for dispatching to the agent and the self-test."""

    def test_self_test_exit_code(self, tmp_path: Path):
        """Test that --test exits 0 on success and 1 on failure."""
        path = write_config(tmp_path, access_token="tok")
        runner = CliRunner()
        with patch("clipmirror.self_test.run_self_test", new=MagicMock(return_value=True)) as mock_test, \
            patch("asyncio.run", side_effect=lambda coro: coro):
            result = runner.invoke(main, ["--test", "--config", str(path), "--passphrase", "pw"])
        assert result.exit_code == 0
        assert mock_test.call_args.args[1] == "pw"

        with patch("clipmirror.self_test.run_self_test", new=MagicMock(return_value=False)), \
            patch("asyncio.run", side_effect=lambda coro: coro):
            result = runner.invoke(main, ["--test", "--config", str(path), "--passphrase", "pw"])
        assert result.exit_code == 1

    def test_agent_receives_overrides(self, tmp_path: Path, monkeypatch):
        """Test --api and --no-push reach the agent configuration."""
        monkeypatch.setenv("CLIPMIRROR_API_KEY", "env-token")
        monkeypatch.delenv("CLIPMIRROR_PASSPHRASE", raising=False)
        path = write_config(tmp_path)
        runner = CliRunner()
        with patch("clipmirror.agent.run_agent", new=MagicMock(return_value=None)) as mock_agent, \
            patch("asyncio.run", side_effect=lambda coro: coro):
            result = runner.invoke(
                main,
                ["--config", str(path), "--api", "https://clip.example.com", "--no-push"],
                input="secret\n",
            )
        assert result.exit_code == 0
        _store, config, passphrase = mock_agent.call_args.args
        assert config.api_url == "https://clip.example.com"
        assert config.access_token == "env-token"
        assert not config.push_enabled
        assert passphrase == "secret"

    def test_rejected_credential_exits_with_code_1(self, tmp_path: Path):
        """Test that a rejected token at startup fails with exit code 1."""
        path = write_config(tmp_path, access_token="tok")
        runner = CliRunner()
        with patch("clipmirror.agent.run_agent", new=MagicMock(return_value=None)), \
            patch("asyncio.run", side_effect=InvalidCredentialError(401, "expired")):
            result = runner.invoke(main, ["--config", str(path), "--passphrase", "pw"])
        assert result.exit_code == 1
        assert "expired" in result.output
        assert "--reset-auth" in result.output
