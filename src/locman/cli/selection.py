"""Choosing one model by list position or by literal name."""

import re
from dataclasses import dataclass
from typing import IO, Optional, Sequence, Union

from rich.console import Console

from locman.cli.prompts import Prompter
from locman.cli.render import print_table
from locman.client.registry import RegistryClient

SELECT_PROMPT = "Enter number or exact model (blank cancels): "

_DIGITS = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class Chosen:
    name: str


@dataclass(frozen=True)
class Cancelled:
    reason: str = "Cancelled."


Selection = Union[Chosen, Cancelled]


def resolve_selection(raw: str, names: Sequence[str]) -> Selection:
    """Turn operator input into a selection.

    All-digit input is a 1-based position in *names*; anything else is taken
    verbatim as a model name, which need not be installed.
    """
    if raw == "":
        return Cancelled()
    if _DIGITS.fullmatch(raw):
        index = int(raw) - 1
        if 0 <= index < len(names):
            return Chosen(names[index])
        return Cancelled("Invalid selection.")
    return Chosen(raw)


def select_model(
    client: RegistryClient,
    prompter: Prompter,
    console: Console,
    output: Optional[IO[str]] = None,
) -> Selection:
    """Show the installed models and let the operator pick one.

    Everything except the chosen name goes to *console* (stderr). When
    *output* is given the chosen name, and nothing else, is written to it.

    Args:
        client: Registry client used to fetch the listing.
        prompter: Source of operator input.
        console: Diagnostic console.
        output: Machine-readable stream for the chosen name.

    Raises:
        ListFailed: The listing could not be fetched.
    """
    models = client.list_models()
    if not models:
        console.print("No models installed.")
        return Cancelled("No models installed.")

    print_table(models, console)
    console.print()

    try:
        raw = prompter.ask(SELECT_PROMPT)
    except EOFError:
        selection: Selection = Cancelled()
    else:
        selection = resolve_selection(raw, [m.name for m in models])

    if isinstance(selection, Cancelled):
        console.print(selection.reason)
    elif output is not None:
        output.write(f"{selection.name}\n")
        output.flush()
    return selection
