"""Model registry operations against the daemon's REST API.

``RegistryClient`` keeps no listing of its own: every call that needs the
installed models fetches a fresh one, so the staleness window is a single
round trip.
"""

import json
import logging
from typing import Any, Callable, Optional, Sequence

from rich.markup import escape

from locman.client.models import BatchSummary, ModelSummary, OperationResult
from locman.client.transport import RequestOutcome, Transport
from locman.errors import (
    AbortedByUser,
    DeleteFailed,
    ListFailed,
    PullFailed,
    TransportError,
    Unreachable,
    UnexpectedResponse,
)
from locman.utils.logging import configure_module_logger

logger = configure_module_logger(__name__, level=logging.INFO)

VERSION_PATH = "/api/version"
TAGS_PATH = "/api/tags"
PULL_PATH = "/api/pull"
DELETE_PATH = "/api/delete"

DELETE_ALL_TOKEN = "YES"

BodyBuilder = Callable[[str], dict[str, Any]]


def _pull_body_model(name: str) -> dict[str, Any]:
    return {"model": name, "stream": False}


def _pull_body_name(name: str) -> dict[str, Any]:
    return {"name": name, "stream": False}


def _delete_body_name(name: str) -> dict[str, Any]:
    return {"name": name}


def _delete_body_model(name: str) -> dict[str, Any]:
    return {"model": name}


# Daemon releases disagree on the key; each tuple is tried in order.
PULL_BODIES: tuple[BodyBuilder, ...] = (_pull_body_model, _pull_body_name)
DELETE_BODIES: tuple[BodyBuilder, ...] = (_delete_body_name, _delete_body_model)


class RegistryClient:
    """Version, list, pull and delete operations for installed models."""

    def __init__(self, transport: Transport) -> None:
        self.transport = transport

    @property
    def base_url(self) -> str:
        return self.transport.base_url

    def check_server(self) -> str:
        """Return the daemon's version string.

        Raises:
            Unreachable: The version endpoint could not be reached.
            UnexpectedResponse: The reply carried no version.
        """
        try:
            outcome = self.transport.request("GET", VERSION_PATH)
        except TransportError as exc:
            raise Unreachable(f"Cannot reach {self.base_url}{VERSION_PATH}") from exc

        with outcome:
            try:
                payload = outcome.json()
            except ValueError as exc:
                raise UnexpectedResponse(
                    f"Unexpected {VERSION_PATH} response"
                ) from exc

        version = payload.get("version") if isinstance(payload, dict) else None
        if not version:
            raise UnexpectedResponse(f"Unexpected {VERSION_PATH} response")
        return str(version)

    def list_models(self) -> list[ModelSummary]:
        """Fetch the installed models in the daemon's listing order.

        An absent or empty ``models`` array is an empty list, not an error.

        Raises:
            ListFailed: The request failed or the body is not a listing.
        """
        try:
            outcome = self.transport.request("GET", TAGS_PATH)
        except TransportError as exc:
            raise ListFailed(str(exc)) from exc

        with outcome:
            try:
                payload = outcome.json()
            except ValueError as exc:
                raise ListFailed(f"{TAGS_PATH} did not return JSON") from exc

        if not isinstance(payload, dict):
            raise ListFailed(f"{TAGS_PATH} returned {type(payload).__name__}")
        entries = payload.get("models") or []
        if not isinstance(entries, list):
            raise ListFailed(f"'models' in {TAGS_PATH} is not a list")

        summaries: list[ModelSummary] = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            summary = ModelSummary.from_entry(entry)
            if summary is not None:
                summaries.append(summary)
        return summaries

    def model_names(self) -> list[str]:
        return [m.name for m in self.list_models()]

    def pull_model(self, name: str) -> Any:
        """Pull (download or update) *name*.

        Returns:
            The decoded JSON reply, or its raw text when it is not JSON.

        Raises:
            PullFailed: Every body shape was rejected.
        """
        logger.info(f"🔄 Pulling [bold cyan]{escape(name)}[/bold cyan] …")
        try:
            outcome = self._first_success("POST", PULL_PATH, PULL_BODIES, name)
        except TransportError as exc:
            logger.error(f"Pull failed for {escape(name)}")
            raise PullFailed(name, exc) from exc

        with outcome:
            raw = outcome.text()
        logger.info(
            f"[green]✓[/green] Pull completed for [bold cyan]{escape(name)}[/bold cyan]"
        )
        try:
            return json.loads(raw) if raw else None
        except ValueError:
            return raw

    def delete_model(self, name: str) -> None:
        """Delete *name* from the daemon.

        Raises:
            DeleteFailed: Every body shape was rejected.
        """
        logger.info(f"🗑️  Deleting [bold cyan]{escape(name)}[/bold cyan] …")
        try:
            outcome = self._first_success("DELETE", DELETE_PATH, DELETE_BODIES, name)
        except TransportError as exc:
            logger.error(f"Delete failed for {escape(name)}")
            raise DeleteFailed(name, exc) from exc

        outcome.release()
        logger.info(f"[green]✓[/green] Deleted [bold cyan]{escape(name)}[/bold cyan]")

    def pull_all(self) -> BatchSummary:
        """Re-pull every installed model, one after another.

        A failing model is recorded and the batch moves on.

        Raises:
            ListFailed: The current listing could not be fetched.
        """
        return self._run_batch(self.model_names(), self.pull_model)

    def delete_all(self, confirm: Callable[[], str]) -> BatchSummary:
        """Delete every installed model after an exact ``YES`` confirmation.

        Args:
            confirm: Reads the confirmation token from the operator. Only
                called when there is something to delete.

        Raises:
            ListFailed: The current listing could not be fetched.
            AbortedByUser: The token was anything but ``YES``.
        """
        names = self.model_names()
        if not names:
            return BatchSummary()

        try:
            token = confirm()
        except EOFError as exc:
            raise AbortedByUser("No confirmation received") from exc
        if token != DELETE_ALL_TOKEN:
            raise AbortedByUser(f"Confirmation was not '{DELETE_ALL_TOKEN}'")

        return self._run_batch(names, self.delete_model)

    def _first_success(
        self,
        method: str,
        path: str,
        builders: Sequence[BodyBuilder],
        name: str,
    ) -> RequestOutcome:
        """Try each body shape in order and return the first accepted one.

        Raises:
            TransportError: The last shape's failure when none succeeded.
            ValueError: *builders* is empty.
        """
        last_error: Optional[TransportError] = None
        for build in builders:
            try:
                return self.transport.request(method, path, build(name))
            except TransportError as exc:
                last_error = exc
        if last_error is None:
            raise ValueError("no body shapes given")
        raise last_error

    @staticmethod
    def _run_batch(
        names: Sequence[str],
        operation: Callable[[str], Any],
    ) -> BatchSummary:
        results: list[OperationResult] = []
        for name in names:
            try:
                operation(name)
            except (PullFailed, DeleteFailed) as exc:
                results.append(OperationResult(name, False, str(exc)))
            else:
                results.append(OperationResult(name, True))
        return BatchSummary(tuple(results))
