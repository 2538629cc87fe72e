"""Shared HTTP transport for the baza REST adapter.

This module provides a thin wrapper around ``requests`` so every public
client operation shares the same header set, body compression, bounded retry
loop and status classification.

Dependencies:
    - ``requests`` for network I/O.
    - ``baza.adapters.api_errors`` for the typed failure taxonomy.

Call context:
    - Constructed by ``baza/adapters/baza_rest.py``.
    - Callers pass path segments and the accepted statuses, and receive an
      ``HttpOutcome`` or one of ``TimedOut``, ``ServerFailure`` or
      ``BadResponse``.
"""

from __future__ import annotations

import gzip
import io
import logging
import os
import time
from dataclasses import dataclass
from typing import IO, Any, Callable, Dict, Iterable, Mapping, Optional, Sequence
from urllib.parse import quote

import requests
from requests import exceptions as req_exc
from requests.structures import CaseInsensitiveDict
from urllib3.exceptions import ReadTimeoutError

from baza.adapters.api_errors import (
    TimedOut,
    describe_timeout,
    error_for_status,
)
from baza.version import VERSION

USER_AGENT = f"baza.py {VERSION}"
TOKEN_HEADER = "X-Zerocracy-Token"

_CHUNK_SIZE = 8192
_TRUTHY = {"1", "true", "yes", "on"}


def _env_truthy(value: Optional[str], fallback: bool) -> bool:
    if value is None or not value.strip():
        return fallback
    return value.strip().lower() in _TRUTHY


def _params(query: Optional[Mapping[str, Any]]) -> Optional[Dict[str, str]]:
    if not query:
        return None
    return {key: str(value) for key, value in query.items()}


@dataclass(frozen=True)
class HttpConfig:
    """Connection, timeout and retry configuration for one client.

    Attributes:
        host: Host name of the service.
        port: TCP port of the service.
        token: Secret token sent in ``X-Zerocracy-Token``.
        ssl: Use ``https`` when true, ``http`` otherwise.
        timeout_s: Connect timeout and total request lifetime, in seconds.
        retries: Number of retry attempts after the initial request.
        backoff_s: Linear backoff step between attempts, in seconds.
        compress: Gzip outgoing job payloads by default.
    """

    host: str
    port: int
    token: str
    ssl: bool = True
    timeout_s: float = 30.0
    retries: int = 3
    backoff_s: float = 1.0
    compress: bool = True

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("The host may not be empty")
        if not 0 < int(self.port) < 65536:
            raise ValueError(f"The port must be in 1..65535, got {self.port}")
        if self.token is None:
            raise ValueError("The token is nil")
        if self.timeout_s <= 0:
            raise ValueError(f"The timeout must be positive, got {self.timeout_s}")
        if self.retries < 0:
            raise ValueError(f"The retries may not be negative, got {self.retries}")
        if self.backoff_s < 0:
            raise ValueError(f"The backoff may not be negative, got {self.backoff_s}")

    @property
    def base_url(self) -> str:
        scheme = "https" if self.ssl else "http"
        return f"{scheme}://{self.host}:{self.port}"

    @classmethod
    def from_env(
        cls,
        prefix: str = "BAZA_",
        environ: Optional[Mapping[str, str]] = None,
    ) -> "HttpConfig":
        """Build a config from ``<prefix>HOST``, ``<prefix>TOKEN`` and friends.

        Raises:
            ValueError: If the host or token variable is missing, or a
                numeric variable cannot be parsed.
        """
        env = os.environ if environ is None else environ

        def read(name: str) -> Optional[str]:
            value = env.get(prefix + name)
            if value is None:
                return None
            return value.strip() or None

        host = read("HOST")
        token = read("TOKEN")
        if not host:
            raise ValueError(f"{prefix}HOST is not set")
        if token is None:
            raise ValueError(f"{prefix}TOKEN is not set")
        ssl = _env_truthy(read("SSL"), True)
        try:
            port = int(read("PORT") or (443 if ssl else 80))
            timeout_s = float(read("TIMEOUT") or 30.0)
            retries = int(read("RETRIES") or 3)
            backoff_s = float(read("BACKOFF") or 1.0)
        except ValueError as exc:
            raise ValueError(f"Invalid numeric {prefix}* variable: {exc}") from exc
        return cls(
            host=host,
            port=port,
            token=token,
            ssl=ssl,
            timeout_s=timeout_s,
            retries=retries,
            backoff_s=backoff_s,
            compress=_env_truthy(read("COMPRESS"), True),
        )


@dataclass(frozen=True)
class HttpOutcome:
    """A response whose status was in the accepted set."""

    method: str
    url: str
    status: int
    headers: Mapping[str, str]
    body: bytes
    elapsed_s: float

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class RetryingSession:
    """Request executor with standard headers, gzip and a bounded retry loop.

    This class is intentionally transport-only and holds no per-call state:
    each attempt opens its own ``requests.Session``, so one instance may be
    shared by several threads.
    """

    def __init__(
        self,
        cfg: HttpConfig,
        *,
        logger: Optional[logging.Logger] = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Create an executor bound to one configuration.

        Args:
            cfg: Frozen connection and retry settings.
            logger: Logging sink, defaults to this module's logger.
            session_factory: Builds a fresh ``requests.Session`` per attempt.
            sleep: Backoff sleeper, replaceable in tests.
            clock: Monotonic clock used for elapsed time and deadlines.
        """
        self.cfg = cfg
        self._log = logger or logging.getLogger(__name__)
        self._session_factory = session_factory
        self._sleep = sleep
        self._clock = clock

    def url_for(
        self,
        segments: Iterable[Any],
        query: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Join the base URL with quoted path segments and a query string.

        The query is encoded by ``requests`` exactly as it will be sent.
        """
        path = "".join("/" + quote(str(segment), safe="") for segment in segments)
        url = f"{self.cfg.base_url}{path}"
        if not query:
            return url
        prepared = requests.PreparedRequest()
        prepared.prepare_url(url, _params(query))
        return prepared.url

    def _headers(self, accept: str) -> Dict[str, str]:
        headers = {
            "User-Agent": USER_AGENT,
            "Connection": "close",
            "Accept": accept,
        }
        if self.cfg.token is not None:
            headers[TOKEN_HEADER] = self.cfg.token
        return headers

    def execute(
        self,
        method: str,
        segments: Sequence[Any],
        *,
        query: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[bytes] = None,
        data: Optional[Mapping[str, str]] = None,
        files: Optional[Dict[str, Any]] = None,
        accept: str = "*/*",
        allowed: Iterable[int] = (200,),
        sink: Optional[IO[bytes]] = None,
        compress: Optional[bool] = None,
    ) -> HttpOutcome:
        """Perform one logical exchange, retrying on transport timeouts.

        Args:
            method: HTTP method name.
            segments: Path segments appended to the base URL.
            query: Optional query parameters.
            headers: Extra headers merged over the standard ones.
            body: Raw request body.
            data: Plain multipart form fields, used together with ``files``.
            files: Multipart file fields in ``requests`` format.
            accept: ``Accept`` header value.
            allowed: Statuses considered successful for this call.
            sink: Binary stream receiving the response body chunk by chunk.
            compress: Gzip ``body``; ``None`` means ``HttpConfig.compress``.

        Returns:
            ``HttpOutcome`` for the first attempt with an accepted status.

        Raises:
            TimedOut: If every attempt timed out.
            ServerFailure: For HTTP 500 and 503.
            BadResponse: For any other status outside ``allowed``.
        """
        method = method.upper()
        target = self.url_for(segments)
        params = _params(query)
        url = self.url_for(segments, query)
        accepted = frozenset(allowed)
        hdrs = self._headers(accept)
        if headers:
            hdrs.update(headers)
        payload = body
        if body is not None:
            hdrs.setdefault("Content-Type", "application/octet-stream")
            if self.cfg.compress if compress is None else compress:
                payload = gzip.compress(body)
                hdrs["Content-Type"] = "application/zip"
                hdrs["Content-Encoding"] = "gzip"
            hdrs["Content-Length"] = str(len(payload))

        started = self._clock()
        attempts = self.cfg.retries + 1
        for attempt in range(1, attempts + 1):
            self._rewind(files)
            self._reset(sink)
            begun = self._clock()
            try:
                return self._attempt(
                    method,
                    url,
                    target=target,
                    params=params,
                    headers=hdrs,
                    payload=payload if payload is not None else data,
                    files=files,
                    accepted=accepted,
                    sink=sink,
                )
            except req_exc.Timeout:
                self._log.debug(
                    "%s %s timed out (%.2fs, attempt %d of %d)",
                    method,
                    url,
                    self._clock() - begun,
                    attempt,
                    attempts,
                )
                if attempt < attempts:
                    self._sleep(self.cfg.backoff_s * attempt)
        spent = self._clock() - started
        message = describe_timeout(method, url, spent)
        self._log.error(message)
        raise TimedOut(
            message,
            method=method,
            url=url,
            elapsed_s=spent,
            context=f"{method} {url}",
        )

    def _attempt(
        self,
        method: str,
        url: str,
        *,
        target: str,
        params: Optional[Dict[str, str]],
        headers: Dict[str, str],
        payload: Any,
        files: Optional[Dict[str, Any]],
        accepted: frozenset,
        sink: Optional[IO[bytes]],
    ) -> HttpOutcome:
        begun = self._clock()
        deadline = begun + self.cfg.timeout_s
        timeout = (self.cfg.timeout_s, self.cfg.timeout_s)
        try:
            with self._session_factory() as session:
                # always streamed, so the whole exchange is bound by the deadline
                resp = session.request(
                    method,
                    target,
                    params=params,
                    headers=headers,
                    data=payload,
                    files=files,
                    timeout=timeout,
                    stream=True,
                    allow_redirects=False,
                )
                try:
                    url = resp.url or url
                    status = resp.status_code
                    response_headers = CaseInsensitiveDict(resp.headers)
                    if sink is not None and status in accepted:
                        self._drain(resp, sink, deadline=deadline)
                        content = b""
                    else:
                        buffer = io.BytesIO()
                        self._drain(resp, buffer, deadline=deadline)
                        content = buffer.getvalue()
                finally:
                    resp.close()
        except req_exc.Timeout:
            raise
        except req_exc.RequestException as exc:
            # requests reports a read timeout inside a streamed body as ConnectionError
            if isinstance(exc, req_exc.ConnectionError) and exc.args and isinstance(
                exc.args[0], ReadTimeoutError
            ):
                raise req_exc.ReadTimeout(str(exc)) from exc
            spent = self._clock() - begun
            self._log.debug("%s %s -> 0 (%.2fs): %s", method, url, spent, exc)
            err = error_for_status(
                method, url, 0, elapsed_s=spent, context=f"{method} {url}"
            )
            self._log.error("%s", err)
            raise err from exc

        spent = self._clock() - begun
        line = f"{method} {url} -> {status} ({spent:.2f}s)"
        if status in accepted:
            self._log.debug(line)
            return HttpOutcome(
                method=method,
                url=url,
                status=status,
                headers=response_headers,
                body=content,
                elapsed_s=spent,
            )
        self._log.debug(
            "%s\n  %s",
            line,
            "\n  ".join(f"{key}: {value}" for key, value in response_headers.items()),
        )
        err = error_for_status(
            method,
            url,
            status,
            response_headers,
            elapsed_s=spent,
            context=f"{method} {url}",
        )
        self._log.error("%s", err)
        raise err

    def _drain(self, resp: requests.Response, sink: IO[bytes], *, deadline: float) -> None:
        for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
            if chunk:
                sink.write(chunk)
            if self._clock() > deadline:
                raise req_exc.ReadTimeout(
                    f"Body of {resp.url} not received in {self.cfg.timeout_s}s"
                )

    @staticmethod
    def _reset(sink: Optional[IO[bytes]]) -> None:
        """Drop a partial body left in the sink by a failed attempt."""
        if sink is None:
            return
        seekable = getattr(sink, "seekable", None)
        if callable(seekable) and seekable():
            sink.seek(0)
            sink.truncate()

    @staticmethod
    def _rewind(files: Optional[Dict[str, Any]]) -> None:
        if not files:
            return
        # Multipart retries must rewind file handles so each attempt sends
        # the full file payload from the beginning.
        for value in files.values():
            handle = None
            if hasattr(value, "seek"):
                handle = value
            elif isinstance(value, tuple) and len(value) >= 2:
                candidate = value[1]
                if hasattr(candidate, "seek"):
                    handle = candidate
            if handle is not None:
                handle.seek(0)


__all__ = ["HttpConfig", "HttpOutcome", "RetryingSession", "TOKEN_HEADER", "USER_AGENT"]
