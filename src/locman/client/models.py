"""Value types exchanged between the registry client and the CLI."""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field


class ModelSummary(BaseModel):
    """One installed model as reported by ``/api/tags``."""

    name: str = Field(min_length=1)
    parameter_size: Optional[str] = None
    quantization_level: Optional[str] = None
    modified_at: Optional[str] = None

    model_config = {"frozen": True}

    @classmethod
    def from_entry(cls, entry: Mapping[str, Any]) -> Optional["ModelSummary"]:
        """Build a summary from one raw listing entry.

        Returns ``None`` for entries without a usable name.
        """
        name = entry.get("name")
        if not isinstance(name, str) or not name:
            return None
        details = entry.get("details")
        if not isinstance(details, Mapping):
            details = {}
        return cls(
            name=name,
            parameter_size=_optional_str(details.get("parameter_size")),
            quantization_level=_optional_str(details.get("quantization_level")),
            modified_at=_optional_str(entry.get("modified_at")),
        )


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


@dataclass(frozen=True)
class OperationResult:
    """Outcome of one pull or delete inside a batch."""

    model: str
    ok: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class BatchSummary:
    """Per-model results of a batch operation, in the order they ran."""

    results: tuple[OperationResult, ...] = ()

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    @property
    def nothing_to_do(self) -> bool:
        return not self.results
