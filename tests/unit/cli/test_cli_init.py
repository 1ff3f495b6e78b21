"""Test cases for the locman CLI app."""

import io
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List
from unittest.mock import patch

import httpx
import pytest
from typer.testing import CliRunner

from fakes import LLAMA, FakeDaemon, make_console, make_entry
from locman.cli import _build_transport, app
from locman.cli.prompts import Prompter, StreamPrompter
from locman.client.transport import BodyBufferPool, Transport
from locman.config import ManagerConfig
from locman.errors import (
    EXIT_DEPENDENCY_MISSING,
    EXIT_FATAL,
    EXIT_OK,
    EXIT_UNAVAILABLE,
    TerminalUnavailable,
)

ENV = {"OLLAMA_IP": "10.0.0.5", "OLLAMA_PORT": "11434"}


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI runner for testing."""
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in list(ENV) + ["LOCMAN_VERBOSE", "CURL_TIMEOUT", "RETRY_COUNT"]:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def _wire(daemon: FakeDaemon, answers: List[str]) -> tuple:
    """Patch the CLI's transport and terminal to use *daemon* and *answers*."""
    pools: List[BodyBufferPool] = []

    def build_transport(config: ManagerConfig, pool: BodyBufferPool) -> Transport:
        pools.append(pool)
        return Transport(
            config.base_url,
            retry_count=0,
            pool=pool,
            http_transport=httpx.MockTransport(daemon.handle),
        )

    @contextmanager
    def terminal() -> Iterator[Prompter]:
        text = "".join(f"{a}\n" for a in answers)
        yield StreamPrompter(io.StringIO(text), make_console())

    return (
        patch("locman.cli._build_transport", side_effect=build_transport),
        patch("locman.cli._terminal", side_effect=terminal),
        pools,
    )


class TestAppInitialization:
    """Test cases for app initialization."""

    def test_app_name_and_help(self) -> None:
        assert app.info.name == "locman"
        assert "Local Model Manager" in (app.info.help or "")

    def test_help_output(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("menu", "list", "pull", "delete", "update-all", "select"):
            assert command in result.stdout

    def test_unknown_command(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["unknown-command"])
        assert result.exit_code == 2


class TestBuildTransport:
    """Test cases for wiring configuration into the transport."""

    def test_passes_timeouts_and_retries(self) -> None:
        config = ManagerConfig(
            host="10.0.0.5",
            port=11434,
            connect_timeout=3.0,
            max_time=7.0,
            retry_count=4,
            retry_delay=0.5,
        )

        with BodyBufferPool() as pool, _build_transport(config, pool) as transport:
            assert transport.base_url == "http://10.0.0.5:11434"
            assert transport.connect_timeout == 3.0
            assert transport.max_time == 7.0
            assert transport._client.timeout.connect == 3.0
            assert transport._client.timeout.read == 7.0
            assert transport.retry_count == 4
            assert transport.retry_delay == 0.5
            assert transport.pool is pool

    def test_default_max_time_is_unbounded(self) -> None:
        config = ManagerConfig(host="10.0.0.5", port=11434)

        with BodyBufferPool() as pool, _build_transport(config, pool) as transport:
            assert transport.max_time is None
            assert transport._client.timeout.connect == 10.0
            assert transport._client.timeout.read is None


class TestStartup:
    """Test cases for fatal startup conditions."""

    def test_missing_config_exits_before_network(self, runner: CliRunner) -> None:
        daemon = FakeDaemon([LLAMA])
        transport_patch, terminal_patch, _ = _wire(daemon, ["q"])

        with transport_patch as build, terminal_patch:
            result = runner.invoke(app, [])

        assert result.exit_code == EXIT_UNAVAILABLE
        build.assert_not_called()
        assert daemon.requests == []

    def test_unreachable_daemon_exits_before_menu(self, runner: CliRunner) -> None:
        daemon = FakeDaemon([LLAMA])
        daemon.down = True
        transport_patch, terminal_patch, _ = _wire(daemon, ["q"])

        with transport_patch, terminal_patch:
            result = runner.invoke(app, [], env=ENV)

        assert result.exit_code == EXIT_UNAVAILABLE
        assert "Installed models" not in result.output
        assert [r[1] for r in daemon.requests] == ["/api/version"]

    def test_missing_terminal_exits_dependency_missing(self, runner: CliRunner) -> None:
        daemon = FakeDaemon([LLAMA])
        transport_patch, _, _ = _wire(daemon, [])

        with transport_patch, patch(
            "locman.cli.TerminalPrompter.open",
            side_effect=TerminalUnavailable("No interactive TTY."),
        ):
            result = runner.invoke(app, [], env=ENV)

        assert result.exit_code == EXIT_DEPENDENCY_MISSING
        assert daemon.requests == []

    def test_unexpected_error_is_fatal(self, runner: CliRunner) -> None:
        with patch("locman.cli._build_transport", side_effect=RuntimeError("boom")):
            result = runner.invoke(app, ["list"], env=ENV)
        assert result.exit_code == EXIT_FATAL

    def test_interrupt_exit_code(self, runner: CliRunner) -> None:
        with patch("locman.cli._build_transport", side_effect=KeyboardInterrupt):
            result = runner.invoke(app, ["list"], env=ENV)
        assert result.exit_code == 130


class TestMenuCommand:
    """Test cases for the interactive menu entry points."""

    @pytest.mark.parametrize("args", [[], ["menu"]])
    def test_quit_exits_zero(self, runner: CliRunner, args: List[str]) -> None:
        daemon = FakeDaemon([LLAMA])
        transport_patch, terminal_patch, pools = _wire(daemon, ["q"])

        with transport_patch, terminal_patch:
            result = runner.invoke(app, args, env=ENV)

        assert result.exit_code == EXIT_OK
        assert pools and pools[0].outstanding == 0

    def test_eof_exits_zero(self, runner: CliRunner) -> None:
        transport_patch, terminal_patch, _ = _wire(FakeDaemon([LLAMA]), [])
        with transport_patch, terminal_patch:
            result = runner.invoke(app, [], env=ENV)
        assert result.exit_code == EXIT_OK

    def test_host_option_overrides_env(self, runner: CliRunner) -> None:
        daemon = FakeDaemon([LLAMA])
        transport_patch, terminal_patch, _ = _wire(daemon, ["q"])

        with transport_patch as build, terminal_patch:
            runner.invoke(app, ["--host", "192.168.1.9", "--port", "8080"], env=ENV)

        config = build.call_args.args[0]
        assert config.base_url == "http://192.168.1.9:8080"


class TestScriptingCommands:
    """Test cases for the non-interactive subcommands."""

    def test_version(self, runner: CliRunner) -> None:
        transport_patch, terminal_patch, _ = _wire(FakeDaemon(), [])
        with transport_patch, terminal_patch:
            result = runner.invoke(app, ["version"], env=ENV)
        assert result.exit_code == EXIT_OK
        assert "0.5.7" in result.output

    def test_list(self, runner: CliRunner) -> None:
        transport_patch, terminal_patch, _ = _wire(FakeDaemon([LLAMA]), [])
        with transport_patch, terminal_patch:
            result = runner.invoke(app, ["list"], env=ENV)
        assert result.exit_code == EXIT_OK
        assert "1) llama3.2:latest | 8B / Q4_0 | 2024-01-01" in result.output

    def test_pull(self, runner: CliRunner) -> None:
        daemon = FakeDaemon()
        transport_patch, terminal_patch, _ = _wire(daemon, [])
        with transport_patch, terminal_patch:
            result = runner.invoke(app, ["pull", "phi3"], env=ENV)
        assert result.exit_code == EXIT_OK
        assert daemon.mutations[0][2] == {"model": "phi3", "stream": False}

    def test_pull_failure_exit_code(self, runner: CliRunner) -> None:
        daemon = FakeDaemon()
        daemon.failing = {"phi3"}
        transport_patch, terminal_patch, _ = _wire(daemon, [])
        with transport_patch, terminal_patch:
            result = runner.invoke(app, ["pull", "phi3"], env=ENV)
        assert result.exit_code == 1

    def test_delete_asks_for_confirmation(self, runner: CliRunner) -> None:
        daemon = FakeDaemon([LLAMA])
        transport_patch, terminal_patch, _ = _wire(daemon, ["n"])
        with transport_patch, terminal_patch:
            result = runner.invoke(app, ["delete", "llama3.2:latest"], env=ENV)
        assert result.exit_code == EXIT_OK
        assert daemon.mutations == []

    def test_delete_with_yes(self, runner: CliRunner) -> None:
        daemon = FakeDaemon([LLAMA])
        transport_patch, terminal_patch, _ = _wire(daemon, [])
        with transport_patch, terminal_patch as terminal:
            result = runner.invoke(app, ["delete", "llama3.2:latest", "--yes"], env=ENV)
        assert result.exit_code == EXIT_OK
        assert daemon.models == []
        terminal.assert_not_called()

    def test_update_all_reports_failures(self, runner: CliRunner) -> None:
        daemon = FakeDaemon([make_entry("a"), make_entry("b"), make_entry("c")])
        daemon.failing = {"b"}
        transport_patch, terminal_patch, _ = _wire(daemon, [])
        with transport_patch, terminal_patch:
            result = runner.invoke(app, ["update-all"], env=ENV)
        assert result.exit_code == 1
        assert "2 succeeded, 1 failed" in result.output

    def test_select_prints_name(self, runner: CliRunner) -> None:
        transport_patch, terminal_patch, _ = _wire(FakeDaemon([LLAMA]), ["1"])
        with transport_patch, terminal_patch:
            result = runner.invoke(app, ["select"], env=ENV)
        assert result.exit_code == EXIT_OK
        assert "llama3.2:latest" in result.stdout

    def test_select_cancelled(self, runner: CliRunner) -> None:
        transport_patch, terminal_patch, _ = _wire(FakeDaemon([LLAMA]), [""])
        with transport_patch, terminal_patch:
            result = runner.invoke(app, ["select"], env=ENV)
        assert result.exit_code == 1


def test_verbose_flag_sets_debug(runner: CliRunner) -> None:
    transport_patch, terminal_patch, _ = _wire(FakeDaemon(), [])
    with transport_patch, terminal_patch, patch("locman.cli.set_verbosity") as verbosity:
        runner.invoke(app, ["--verbose", "version"], env=ENV)
    verbosity.assert_called_once_with(True)
