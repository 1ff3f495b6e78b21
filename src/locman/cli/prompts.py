"""Reading operator input from the controlling terminal.

Prompts are read from ``/dev/tty`` rather than stdin and drawn on stderr, so
``locman select`` keeps working when its stdout is captured by another
program.
"""

from __future__ import annotations

import sys
from typing import IO, Optional, Protocol

from prompt_toolkit import PromptSession
from prompt_toolkit.input import create_input
from prompt_toolkit.output import create_output
from rich.console import Console

from locman.errors import TerminalUnavailable

TTY_PATH = "/dev/tty"


class Prompter(Protocol):
    """Something that can ask the operator for one line of input."""

    def ask(self, message: str) -> str:
        """Show *message* and return the reply without its line terminator.

        Raises:
            EOFError: The input reached end-of-file.
        """
        ...


def _strip_terminator(line: str) -> str:
    if line.endswith("\r\n"):
        return line[:-2]
    if line.endswith("\n"):
        return line[:-1]
    return line


class StreamPrompter:
    """Prompter reading lines from an arbitrary text stream."""

    def __init__(self, stream: IO[str], console: Optional[Console] = None) -> None:
        self.stream = stream
        self.console = console if console is not None else Console(stderr=True)

    def ask(self, message: str) -> str:
        self.console.print(message, end="", markup=False, highlight=False)
        line = self.stream.readline()
        if line == "":
            self.console.print()
            raise EOFError
        return _strip_terminator(line)


class TerminalPrompter:
    """Prompter bound to the controlling terminal via prompt_toolkit."""

    def __init__(self, session: PromptSession[str], tty: IO[str]) -> None:
        self._session = session
        self._tty = tty

    @classmethod
    def open(cls, tty_path: str = TTY_PATH) -> TerminalPrompter:
        """Open the controlling terminal for prompting.

        Raises:
            TerminalUnavailable: No readable terminal at *tty_path*.
        """
        try:
            tty = open(tty_path, encoding="utf-8")
        except OSError as exc:
            raise TerminalUnavailable(
                "No interactive TTY. Run this in a terminal."
            ) from exc

        session: PromptSession[str] = PromptSession(
            input=create_input(stdin=tty),
            output=create_output(stdout=sys.stderr),
        )
        return cls(session, tty)

    def ask(self, message: str) -> str:
        # KeyboardInterrupt propagates; only Ctrl-D maps to end of input.
        return self._session.prompt(message)

    def close(self) -> None:
        self._tty.close()

    def __enter__(self) -> TerminalPrompter:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def confirm(prompter: Prompter, message: str) -> bool:
    """Ask a y/N question; only ``y`` (any case) counts as yes."""
    try:
        answer = prompter.ask(f"{message} [y/N]: ")
    except EOFError:
        return False
    return answer.lower() == "y"
