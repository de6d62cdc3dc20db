"""Tests for CLI module."""

import logging

from click.testing import CliRunner

from lhcli import __version__
from lhcli.cli import main, setup_logging
from lhcli.commands.common import CLIContext
from lhcli.settings import Settings


def test_cli_help() -> None:
    """Test that CLI help works."""
    runner = CliRunner()
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    assert "Longhorn" in result.output
    for group in ("volume", "node", "replica", "snapshot", "backup", "settings", "monitor", "troubleshoot"):
        assert group in result.output


def test_cli_version() -> None:
    """Test that version flag works."""
    runner = CliRunner()
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "version" in result.output.lower()
    assert __version__ in result.output


def test_version_command() -> None:
    """Test that the version subcommand prints the version."""
    runner = CliRunner()
    result = runner.invoke(main, ["version"])
    assert result.exit_code == 0
    assert f"Version: {__version__}" in result.output


def test_diag_is_alias_for_diagnostics(invoke) -> None:
    """Test that diag runs diagnostics."""
    assert invoke("diag").output == invoke("diagnostics").output


def test_global_options_reach_context(backend, config) -> None:
    """Test that root options are stored on the shared context."""
    obj = CLIContext(config=config, client=backend)
    runner = CliRunner()
    result = runner.invoke(
        main,
        ["--context", "lab", "-n", "storage", "-o", "json", "-q", "--dry-run", "volume", "list"],
        obj=obj,
    )
    assert result.exit_code == 0
    assert obj.context_name == "lab"
    assert obj.namespace == "storage"
    assert obj.output_format == "json"
    assert obj.quiet and obj.dry_run


def test_invalid_output_format_rejected(invoke) -> None:
    """Test that an unknown output format is a usage error."""
    result = invoke("-o", "xml", "volume", "list")
    assert result.exit_code == 2


def test_setup_logging_levels() -> None:
    """Test that verbose switches the root logger to debug."""
    setup_logging(verbose=True)
    assert logging.getLogger().level == logging.DEBUG
    setup_logging(verbose=False)
    assert logging.getLogger().level == logging.WARNING


def test_settings_from_environment(monkeypatch) -> None:
    """Test that LHCLI_ variables override the defaults."""
    monkeypatch.setenv("LHCLI_DEBUG", "1")
    monkeypatch.setenv("LHCLI_REQUEST_TIMEOUT", "7.5")
    monkeypatch.delenv("LHCLI_CONFIG_PATH", raising=False)
    env_settings = Settings()
    assert env_settings.debug is True
    assert env_settings.request_timeout == 7.5
    assert env_settings.config_path == "~/.lhcli/config.yaml"


def test_built_client_closed_after_command(backend, config, monkeypatch) -> None:
    """Test that a client created for the invocation is closed when it ends."""
    closed = []
    backend.close = lambda: closed.append(True)
    monkeypatch.setattr("lhcli.commands.common.build_client", lambda *args: backend)

    result = CliRunner().invoke(main, ["volume", "list"], obj=CLIContext(config=config))
    assert result.exit_code == 0
    assert closed == [True]

    closed.clear()
    CliRunner().invoke(main, ["volume", "list"], obj=CLIContext(config=config, client=backend))
    assert closed == []
