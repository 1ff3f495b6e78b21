"""HTTP transport for talking to the model-serving daemon.

One request at a time, with a bounded connect timeout, an optional overall
timeout and curl-style retries. Response bodies are streamed into temporary
buffers owned by a ``BodyBufferPool`` so that a multi-gigabyte pull response
never has to sit in memory, and so that every buffer can be reclaimed in one
place when the session ends.
"""

import json
import logging
import tempfile
import time
from typing import IO, Any, Callable, Optional

import httpx
from rich.markup import escape

from locman.errors import NO_RESPONSE, TransportError
from locman.utils.logging import configure_module_logger

logger = configure_module_logger(__name__, level=logging.INFO)

ALLOWED_METHODS = frozenset({"GET", "POST", "DELETE"})
# Same set curl treats as transient for --retry.
RETRYABLE_STATUS = frozenset({408, 429, 500, 502, 503, 504})

_SPOOL_LIMIT = 1024 * 1024
_BODY_PREVIEW = 2000


class BodyBufferPool:
    """Tracks every response buffer allocated during a session.

    Buffers are released individually by whoever consumes them; ``close()``
    releases whatever is still outstanding. Use as a context manager around
    the whole session.
    """

    def __init__(self, spool_limit: int = _SPOOL_LIMIT) -> None:
        self._spool_limit = spool_limit
        self._buffers: list[IO[bytes]] = []

    def allocate(self) -> IO[bytes]:
        buffer: IO[bytes] = tempfile.SpooledTemporaryFile(  # type: ignore[assignment]
            max_size=self._spool_limit, mode="w+b"
        )
        self._buffers.append(buffer)
        return buffer

    def release(self, buffer: IO[bytes]) -> None:
        if buffer in self._buffers:
            self._buffers.remove(buffer)
        buffer.close()

    @property
    def outstanding(self) -> int:
        return len(self._buffers)

    def close(self) -> None:
        while self._buffers:
            self._buffers.pop().close()

    def __enter__(self) -> "BodyBufferPool":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class RequestOutcome:
    """Status and captured body of one completed request.

    Owned by the caller that issued the request. Call ``release()`` (or use
    it as a context manager) once the body has been read.
    """

    def __init__(
        self,
        status_code: int,
        url: str,
        buffer: IO[bytes],
        pool: BodyBufferPool,
    ) -> None:
        self.status_code = status_code
        self.url = url
        self._buffer: Optional[IO[bytes]] = buffer
        self._pool = pool

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def released(self) -> bool:
        return self._buffer is None

    def read(self) -> bytes:
        if self._buffer is None:
            raise ValueError(f"Body of {self.url} was already released")
        self._buffer.seek(0)
        return self._buffer.read()

    def text(self) -> str:
        return self.read().decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.read())

    def release(self) -> None:
        if self._buffer is not None:
            self._pool.release(self._buffer)
            self._buffer = None

    def __enter__(self) -> "RequestOutcome":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"RequestOutcome(status_code={self.status_code}, url={self.url!r})"


def encode_body(body: Any) -> str:
    """Serialize *body* to compact JSON."""
    return json.dumps(body, separators=(",", ":"))


class Transport:
    """Issues HTTP requests against the daemon's base URL.

    Args:
        base_url: ``http://host:port`` of the daemon.
        connect_timeout: Seconds allowed to establish a connection.
        max_time: Wall-clock limit in seconds for each attempt, covering the
            whole body; ``0``/``None`` means unbounded.
        retry_count: Extra attempts after a transient failure.
        retry_delay: Fixed seconds to wait between attempts.
        pool: Buffer pool for response bodies; a private one is created if omitted.
        http_transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
        sleep: Delay function, replaceable in tests.
        clock: Monotonic clock used for the ``max_time`` deadline.
    """

    def __init__(
        self,
        base_url: str,
        connect_timeout: float = 10.0,
        max_time: Optional[float] = None,
        retry_count: int = 2,
        retry_delay: float = 2.0,
        pool: Optional[BodyBufferPool] = None,
        http_transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if retry_count < 0:
            raise ValueError("retry_count must be >= 0")
        self.base_url = base_url.rstrip("/")
        self.connect_timeout = connect_timeout
        self.max_time = max_time or None
        self.retry_count = retry_count
        self.retry_delay = retry_delay
        self.pool = pool if pool is not None else BodyBufferPool()
        self._sleep = sleep
        self._clock = clock
        # httpx only bounds each read; the overall cap is the deadline in _send.
        self._client = httpx.Client(
            timeout=httpx.Timeout(self.max_time, connect=connect_timeout),
            transport=http_transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
    ) -> RequestOutcome:
        """Send one request, retrying transient failures.

        Args:
            method: GET, POST or DELETE.
            path: Daemon route, e.g. ``/api/tags``.
            body: JSON-encodable payload, or ``None`` for no body.

        Returns:
            The outcome of a 2xx response. The caller must release it.

        Raises:
            ValueError: Unsupported method.
            TransportError: Non-2xx status, or no response after all attempts.
        """
        method = method.upper()
        if method not in ALLOWED_METHODS:
            raise ValueError(
                f"Unsupported method '{method}'. "
                f"Use one of: {', '.join(sorted(ALLOWED_METHODS))}"
            )

        url = f"{self.base_url}{path}"
        content: Optional[str] = None
        headers: dict[str, str] = {}
        if body is not None:
            content = encode_body(body)
            headers["Content-Type"] = "application/json"

        attempts = self.retry_count + 1
        reason = "no response"
        for attempt in range(attempts):
            if attempt:
                logger.debug(
                    f"Retrying {method} {url} in {self.retry_delay:g}s "
                    f"(attempt {attempt + 1}/{attempts})"
                )
                self._sleep(self.retry_delay)

            buffer = self.pool.allocate()
            try:
                status_code = self._send(method, url, content, headers, buffer)
            except httpx.RequestError as exc:
                self.pool.release(buffer)
                reason = str(exc) or type(exc).__name__
                logger.debug(f"{method} {url} failed: {reason}")
                continue

            outcome = RequestOutcome(status_code, url, buffer, self.pool)
            if status_code in RETRYABLE_STATUS and attempt < attempts - 1:
                logger.debug(f"{method} {url} returned HTTP {status_code}")
                outcome.release()
                continue
            break
        else:
            error = TransportError(NO_RESPONSE, url, reason=reason)
            self._report(error)
            raise error

        if outcome.ok:
            return outcome

        payload = outcome.read()
        outcome.release()
        error = TransportError(outcome.status_code, url, payload)
        self._report(error)
        raise error

    def _send(
        self,
        method: str,
        url: str,
        content: Optional[str],
        headers: dict[str, str],
        buffer: IO[bytes],
    ) -> int:
        deadline = self._clock() + self.max_time if self.max_time else None
        with self._client.stream(
            method, url, content=content, headers=headers
        ) as response:
            for chunk in response.iter_bytes():
                buffer.write(chunk)
                if deadline is not None and self._clock() > deadline:
                    raise httpx.ReadTimeout(
                        f"max-time of {self.max_time:g}s exceeded",
                        request=response.request,
                    )
        buffer.seek(0)
        return response.status_code

    @staticmethod
    def _report(error: TransportError) -> None:
        logger.warning(f"[red]{escape(str(error))}[/red]")
        if error.body:
            text = error.body_text()
            if len(text) > _BODY_PREVIEW:
                text = text[:_BODY_PREVIEW] + " …"
            logger.warning(text, extra={"markup": False})
