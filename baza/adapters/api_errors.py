from __future__ import annotations

from typing import Any, Mapping, Optional

FLASH_HEADER = "X-Zerocracy-Flash"
FAILURE_HEADER = "X-Zerocracy-Failure"
ISSUES_URL = "https://github.com/zerocracy/baza"


class ApiError(RuntimeError):
    """Base class for REST adapter failures."""

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        method: Optional[str] = None,
        url: Optional[str] = None,
        elapsed_s: Optional[float] = None,
        flash: Optional[str] = None,
        failure: Optional[str] = None,
        context: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.method = method
        self.url = url
        self.elapsed_s = elapsed_s
        self.flash = flash
        self.failure = failure
        self.context = context


class TimedOut(ApiError):
    """Transport did not complete within the timeout, retries exhausted."""

    def __init__(
        self,
        message: str,
        *,
        method: Optional[str] = None,
        url: Optional[str] = None,
        elapsed_s: Optional[float] = None,
        context: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            method=method,
            url=url,
            elapsed_s=elapsed_s,
            context=context,
        )


class ServerFailure(ApiError):
    """HTTP 500 or 503 from the service."""


class BadResponse(ApiError):
    """Any other unexpected status, including 0 for a broken connection."""


def header_value(headers: Optional[Mapping[str, Any]], name: str) -> Optional[str]:
    """Case-insensitive header lookup that tolerates plain dicts."""
    if not headers:
        return None
    value = headers.get(name)
    if value is None:
        lowered = name.lower()
        for key, candidate in headers.items():
            if str(key).lower() == lowered:
                value = candidate
                break
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def describe_timeout(method: str, url: str, elapsed_s: float) -> str:
    return f"{method} {url} timed out in {elapsed_s:.2f}s"


def build_error_message(
    method: str,
    url: str,
    status: int,
    headers: Optional[Mapping[str, Any]] = None,
) -> str:
    """Compose the diagnostic for a status outside the accepted set.

    The message always carries the status, method and URL. Vendor headers
    are quoted when the server sent them, and the well-known statuses get
    a hint about the most probable cause.
    """
    flash = header_value(headers, FLASH_HEADER)
    parts = [f"Invalid response code #{status} at {method} {url}"]
    if flash:
        parts.append(f" ({flash!r})")
    if status == 500:
        parts.append(
            ", most probably it's an internal error on the server, "
            f"please report this to {ISSUES_URL}"
        )
    elif status == 503:
        failure = header_value(headers, FAILURE_HEADER)
        parts.append(
            f", most probably it's an internal error on the server ({failure!r}), "
            f"please report this to {ISSUES_URL}"
        )
    elif status == 404:
        parts.append(
            ", most probably you are trying to reach a wrong server, which doesn't "
            "have the URL that it is expected to have"
        )
    elif status == 0:
        parts.append(", most likely an internal error")
    return "".join(parts)


def error_for_status(
    method: str,
    url: str,
    status: int,
    headers: Optional[Mapping[str, Any]] = None,
    *,
    elapsed_s: Optional[float] = None,
    context: Optional[str] = None,
) -> ApiError:
    """Build the typed error for a status bucket, without raising it."""
    message = build_error_message(method, url, status, headers)
    kind = ServerFailure if status in (500, 503) else BadResponse
    return kind(
        message,
        status=status,
        method=method,
        url=url,
        elapsed_s=elapsed_s,
        flash=header_value(headers, FLASH_HEADER),
        failure=header_value(headers, FAILURE_HEADER),
        context=context,
    )


__all__ = [
    "ApiError",
    "BadResponse",
    "FAILURE_HEADER",
    "FLASH_HEADER",
    "ServerFailure",
    "TimedOut",
    "build_error_message",
    "describe_timeout",
    "error_for_status",
    "header_value",
]
