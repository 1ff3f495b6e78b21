"""Exception hierarchy and process exit codes for locman.

Only configuration, dependency and initial connectivity failures end the
process. Everything raised while a single model is being listed, pulled or
deleted is recoverable: the menu reports it and keeps running.
"""

from typing import Optional

EXIT_OK = 0
EXIT_UNAVAILABLE = 1
EXIT_OPERATION_FAILED = 1
EXIT_FATAL = 70
EXIT_DEPENDENCY_MISSING = 127
EXIT_INTERRUPTED = 130

NO_RESPONSE = 0


class LocmanError(Exception):
    """Base class for every error raised by locman."""

    exit_code: int = EXIT_FATAL


class ConfigError(LocmanError):
    """Required configuration is missing or invalid."""

    exit_code = EXIT_UNAVAILABLE


class DependencyMissing(LocmanError):
    """Something the process needs from its environment is not available."""

    exit_code = EXIT_DEPENDENCY_MISSING


class TerminalUnavailable(DependencyMissing):
    """No controlling terminal could be opened for prompts."""


class Unreachable(LocmanError):
    """The daemon did not answer the startup version check."""

    exit_code = EXIT_UNAVAILABLE


class UnexpectedResponse(LocmanError):
    """The daemon answered, but not with what we asked for."""

    exit_code = EXIT_UNAVAILABLE


class TransportError(LocmanError):
    """A single HTTP request failed.

    Attributes:
        status_code: HTTP status, or ``NO_RESPONSE`` when nothing came back.
        url: Full request URL.
        body: Captured response body (may be empty).
        reason: Transport-level failure description, if any.
    """

    exit_code = EXIT_OPERATION_FAILED

    def __init__(
        self,
        status_code: int,
        url: str,
        body: bytes = b"",
        reason: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self.url = url
        self.body = body
        self.reason = reason
        super().__init__(self._describe())

    @property
    def no_response(self) -> bool:
        return self.status_code == NO_RESPONSE

    def body_text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def _describe(self) -> str:
        message = f"HTTP {self.status_code:03d} {self.url}"
        if self.reason:
            message += f" ({self.reason})"
        return message


class OperationFailed(LocmanError):
    """A registry operation on one model failed at the transport level."""

    action = "Operation"
    exit_code = EXIT_OPERATION_FAILED

    def __init__(self, model: str, cause: Optional[TransportError] = None) -> None:
        self.model = model
        self.cause = cause
        message = f"{self.action} failed for {model}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class ListFailed(LocmanError):
    """The installed-model listing could not be fetched or parsed."""

    exit_code = EXIT_OPERATION_FAILED

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Failed to list models: {detail}")


class PullFailed(OperationFailed):
    action = "Pull"


class DeleteFailed(OperationFailed):
    action = "Delete"


class AbortedByUser(LocmanError):
    """A confirmation gate was not passed."""

    exit_code = EXIT_OPERATION_FAILED
