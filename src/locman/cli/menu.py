"""Interactive menu loop for managing installed models.

The loop is strictly sequential: render the listing, read one command,
run it to completion, repeat. Failures of individual operations are
reported and the loop carries on; only quitting or end of input ends it.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, Optional

from rich.console import Console
from rich.markup import escape

from locman.cli.prompts import Prompter, confirm
from locman.cli.render import print_table
from locman.cli.selection import Chosen, select_model
from locman.client.models import BatchSummary
from locman.client.registry import DELETE_ALL_TOKEN, RegistryClient
from locman.errors import (
    EXIT_OK,
    AbortedByUser,
    DeleteFailed,
    ListFailed,
    PullFailed,
)

CHOICE_PROMPT = "Choice: "
PULL_PROMPT = "Enter model (e.g., llama3.2:latest): "
DELETE_ALL_PROMPT = f"Type '{DELETE_ALL_TOKEN}' to delete ALL models: "

LEGEND = (
    "[U]pdate one  [A] Update all  [R]emove one  [X] Remove all  "
    "[P]ull new by name  [L]ist  [Q]uit"
)


class MenuCommand(str, Enum):
    UPDATE_ONE = "U"
    UPDATE_ALL = "A"
    REMOVE_ONE = "R"
    REMOVE_ALL = "X"
    PULL_NEW = "P"
    LIST = "L"
    QUIT = "Q"


def parse_command(raw: str) -> Optional[MenuCommand]:
    """Map operator input to a command, ignoring case and surrounding blanks.

    Returns ``None`` for anything that is not a known command.
    """
    try:
        return MenuCommand(raw.strip().upper())
    except ValueError:
        return None


def _print_error(console: Console, exc: Exception) -> None:
    console.print(f"[red]ERROR:[/red] {escape(str(exc))}", highlight=False)


class MenuController:
    """Dispatches single-letter commands to the registry client."""

    def __init__(
        self,
        client: RegistryClient,
        prompter: Prompter,
        console: Console,
    ) -> None:
        self.client = client
        self.prompter = prompter
        self.console = console
        self._handlers: Dict[MenuCommand, Callable[[], None]] = {
            MenuCommand.UPDATE_ONE: self.update_one,
            MenuCommand.UPDATE_ALL: self.update_all,
            MenuCommand.REMOVE_ONE: self.remove_one,
            MenuCommand.REMOVE_ALL: self.remove_all,
            MenuCommand.PULL_NEW: self.pull_new,
            MenuCommand.LIST: lambda: None,
        }

    def run(self) -> int:
        """Run the loop until quit or end of input; returns the exit code."""
        while True:
            self.render()
            try:
                raw = self.prompter.ask(CHOICE_PROMPT)
            except EOFError:
                self.console.print("No input; exiting.")
                return EXIT_OK

            command = parse_command(raw)
            if command is None:
                self.console.print("Unknown choice.")
                continue
            if command is MenuCommand.QUIT:
                self.console.print("Bye.")
                return EXIT_OK
            self.dispatch(command)

    def render(self) -> None:
        self.console.print()
        try:
            models = self.client.list_models()
        except ListFailed as exc:
            _print_error(self.console, exc)
        else:
            print_table(models, self.console)
        self.console.print()
        self.console.print(LEGEND, markup=False, highlight=False)

    def dispatch(self, command: MenuCommand) -> None:
        handler = self._handlers.get(command)
        if handler is None:
            return
        try:
            handler()
        except (ListFailed, PullFailed, DeleteFailed) as exc:
            _print_error(self.console, exc)

    def update_one(self) -> None:
        selection = select_model(self.client, self.prompter, self.console)
        if isinstance(selection, Chosen):
            self._pull(selection.name)

    def update_all(self) -> None:
        if not confirm(self.prompter, "Update ALL models?"):
            self.console.print("Skipped.")
            return
        summary = self.client.pull_all()
        if summary.nothing_to_do:
            self.console.print("No models to update.")
            return
        self._print_summary("Update", summary)

    def remove_one(self) -> None:
        selection = select_model(self.client, self.prompter, self.console)
        if not isinstance(selection, Chosen):
            return
        if not confirm(self.prompter, f"Delete '{selection.name}'?"):
            self.console.print("Skipped.")
            return
        self.client.delete_model(selection.name)

    def remove_all(self) -> None:
        try:
            summary = self.client.delete_all(
                lambda: self.prompter.ask(DELETE_ALL_PROMPT)
            )
        except AbortedByUser:
            self.console.print("Aborted.")
            return
        if summary.nothing_to_do:
            self.console.print("No models to remove.")
            return
        self._print_summary("Delete", summary)

    def pull_new(self) -> None:
        try:
            name = self.prompter.ask(PULL_PROMPT)
        except EOFError:
            name = ""
        if not name:
            self.console.print("No model specified.")
            return
        self._pull(name)

    def _pull(self, name: str) -> None:
        reply = self.client.pull_model(name)
        self._show_reply(reply)

    def _show_reply(self, reply: Any) -> None:
        if isinstance(reply, (dict, list)):
            self.console.print_json(data=reply)
        elif reply:
            self.console.print(str(reply), markup=False)

    def _print_summary(self, action: str, summary: BatchSummary) -> None:
        self.console.print(
            f"{action} summary: {summary.succeeded} succeeded, "
            f"{summary.failed} failed."
        )
        for result in summary.results:
            if not result.ok:
                self.console.print(
                    f"  [red]✗[/red] {escape(result.model)}", highlight=False
                )
