"""Installed-model table for the diagnostic stream."""

from typing import Sequence

from rich.console import Console
from rich.text import Text

from locman.client.models import ModelSummary

UNKNOWN = "?"
EMPTY_MESSAGE = "No models installed."
HEADER = "📦 Installed models:"


def format_row(index: int, model: ModelSummary) -> str:
    """Format one table line, e.g. ``1) llama3.2:latest | 8B / Q4_0 | 2024-01-01``."""
    size = model.parameter_size or UNKNOWN
    quant = model.quantization_level or UNKNOWN
    modified = model.modified_at or UNKNOWN
    return f"{index}) {model.name} | {size} / {quant} | {modified}"


def render_table(models: Sequence[ModelSummary]) -> str:
    """Render *models* as a header plus one numbered line each.

    Numbering is 1-based and follows listing order.
    """
    if not models:
        return EMPTY_MESSAGE
    lines = [HEADER]
    lines.extend(format_row(i, m) for i, m in enumerate(models, start=1))
    return "\n".join(lines)


def print_table(models: Sequence[ModelSummary], console: Console) -> None:
    console.print(Text(render_table(models)), soft_wrap=True)
