"""CLI module for locman.

Running ``locman`` with no subcommand starts the interactive menu. The
subcommands expose the same operations for scripting; ``locman select`` is
the one that writes to stdout, and it writes only the chosen model name.
"""

import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

import typer
from rich.console import Console
from rich.markup import escape

from locman.cli.menu import MenuController
from locman.cli.prompts import Prompter, TerminalPrompter, confirm
from locman.cli.render import print_table
from locman.cli.selection import Chosen, select_model
from locman.client.registry import RegistryClient
from locman.client.transport import BodyBufferPool, Transport
from locman.config import DEFAULT_ENV_FILE, ManagerConfig, load_config
from locman.errors import (
    EXIT_FATAL,
    EXIT_INTERRUPTED,
    EXIT_OPERATION_FAILED,
    LocmanError,
)
from locman.utils.logging import configure_module_logger, set_verbosity

logger = configure_module_logger(__name__)

app = typer.Typer(
    name="locman",
    help="locman - Local Model Manager for Ollama",
    add_completion=False,
)
console = Console(stderr=True)


def _build_transport(config: ManagerConfig, pool: BodyBufferPool) -> Transport:
    return Transport(
        config.base_url,
        connect_timeout=config.connect_timeout,
        max_time=config.max_time,
        retry_count=config.retry_count,
        retry_delay=config.retry_delay,
        pool=pool,
    )


@contextmanager
def _terminal() -> Iterator[Prompter]:
    with TerminalPrompter.open() as prompter:
        yield prompter


@contextmanager
def _guarded() -> Iterator[None]:
    """Translate errors escaping a command into exit codes."""
    try:
        yield
    except typer.Exit:
        raise
    except LocmanError as exc:
        console.print(f"[red]ERROR:[/red] {escape(str(exc))}", highlight=False)
        raise typer.Exit(code=exc.exit_code) from exc
    except KeyboardInterrupt as exc:
        console.print("\nInterrupted.")
        raise typer.Exit(code=EXIT_INTERRUPTED) from exc
    except Exception as exc:
        logger.exception(f"Unexpected error: {type(exc).__name__}: {exc}")
        raise typer.Exit(code=EXIT_FATAL) from exc


@contextmanager
def _session(ctx: typer.Context) -> Iterator[RegistryClient]:
    """Load configuration and yield a client; all body buffers die with it."""
    options: dict[str, Any] = ctx.obj or {}
    config = load_config(
        host=options.get("host"),
        port=options.get("port"),
        verbose=options.get("verbose"),
        env_file=options.get("env_file", Path(DEFAULT_ENV_FILE)),
    )
    set_verbosity(config.verbose)
    with BodyBufferPool() as pool, _build_transport(config, pool) as transport:
        yield RegistryClient(transport)


def _announce(client: RegistryClient) -> None:
    version = client.check_server()
    console.print(
        f"[green]✓[/green] Ollama at {escape(client.base_url)} "
        f"(version {escape(version)})",
        highlight=False,
    )


def _run_menu(ctx: typer.Context) -> None:
    with _guarded(), _session(ctx) as client, _terminal() as prompter:
        _announce(client)
        code = MenuController(client, prompter, console).run()
    raise typer.Exit(code=code)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(
        None, "--host", help="Daemon address (overrides OLLAMA_IP)"
    ),
    port: Optional[int] = typer.Option(
        None, "--port", help="Daemon port (overrides OLLAMA_PORT)"
    ),
    env_file: Path = typer.Option(
        Path(DEFAULT_ENV_FILE), "--env-file", help="Dotenv file with OLLAMA_IP/OLLAMA_PORT"
    ),
    verbose: Optional[bool] = typer.Option(
        None, "--verbose", "-v", help="Enable debug logging"
    ),
) -> None:
    """Manage the models installed on an Ollama daemon."""
    ctx.obj = {"host": host, "port": port, "env_file": env_file, "verbose": verbose}
    if ctx.invoked_subcommand is None:
        _run_menu(ctx)


@app.command()
def menu(ctx: typer.Context) -> None:
    """Start the interactive model menu."""
    _run_menu(ctx)


@app.command()
def version(ctx: typer.Context) -> None:
    """Check that the daemon is reachable and show its version."""
    with _guarded(), _session(ctx) as client:
        _announce(client)


@app.command(name="list")
def list_models(ctx: typer.Context) -> None:
    """List installed models."""
    with _guarded(), _session(ctx) as client:
        print_table(client.list_models(), console)


@app.command()
def pull(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Model tag to pull (e.g. llama3.2:latest)"),
) -> None:
    """Pull (download or update) a model."""
    with _guarded(), _session(ctx) as client:
        reply = client.pull_model(name)
        if isinstance(reply, (dict, list)):
            console.print_json(data=reply)


@app.command()
def delete(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Model tag to delete"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation"),
) -> None:
    """Delete one model."""
    with _guarded(), _session(ctx) as client:
        if not yes:
            with _terminal() as prompter:
                approved = confirm(prompter, f"Delete '{name}'?")
            if not approved:
                console.print("Skipped.")
                return
        client.delete_model(name)


@app.command(name="update-all")
def update_all(ctx: typer.Context) -> None:
    """Re-pull every installed model, continuing past failures."""
    with _guarded(), _session(ctx) as client:
        summary = client.pull_all()
        if summary.nothing_to_do:
            console.print("No models to update.")
            return
        console.print(
            f"Update summary: {summary.succeeded} succeeded, {summary.failed} failed."
        )
        if summary.failed:
            raise typer.Exit(code=EXIT_OPERATION_FAILED)


@app.command()
def select(ctx: typer.Context) -> None:
    """Pick a model interactively and print its name to stdout."""
    with _guarded(), _session(ctx) as client, _terminal() as prompter:
        selection = select_model(client, prompter, console, output=sys.stdout)
    if not isinstance(selection, Chosen):
        raise typer.Exit(code=EXIT_OPERATION_FAILED)


if __name__ == "__main__":
    app()
