"""Translate adapter errors into user-facing UseCaseError instances."""

from __future__ import annotations

from typing import Optional

from baza.adapters.api_errors import ApiError, BadResponse, ServerFailure, TimedOut
from baza.domain.ports import UseCaseError


def map_api_error(
    exc: Exception,
    *,
    default_code: str,
    default_message: Optional[str] = None,
) -> UseCaseError:
    """Map adapter exceptions to stable UseCaseError codes.

    Args:
        exc: Exception raised by a port call.
        default_code: Code used for exceptions outside the adapter taxonomy.
        default_message: Message used when ``exc`` carries none.

    Returns:
        UseCaseError: The mapped error; ``exc`` itself if already mapped.
    """
    if isinstance(exc, UseCaseError):
        return exc
    if isinstance(exc, TimedOut):
        return UseCaseError("REQUEST_TIMEOUT", "Request timed out. Check connection.")
    if isinstance(exc, ServerFailure):
        return UseCaseError(
            "SERVER_ERROR",
            _compose_error_message("Server error, try again later", exc.failure),
            meta={"status": exc.status},
        )
    if isinstance(exc, BadResponse):
        status = exc.status or 0
        if status == 404:
            return UseCaseError(
                "NOT_FOUND",
                _compose_error_message("Not found on the server", exc.flash),
                meta={"status": status},
            )
        if status in (401, 403):
            return UseCaseError("AUTH_FAILED", "Auth failed / token invalid.")
        label = f"Unexpected response (HTTP {status})" if status else "Connection failed"
        return UseCaseError(
            "BAD_RESPONSE",
            _compose_error_message(label, exc.flash),
            meta={"status": status},
        )
    if isinstance(exc, ApiError):
        return UseCaseError("API_ERROR", str(exc))
    if isinstance(exc, (ValueError, FileNotFoundError)):
        return UseCaseError("INVALID_ARGUMENT", str(exc))

    message = default_message or str(exc) or "Unexpected error."
    return UseCaseError(default_code, message)


def _compose_error_message(base: str, hint: Optional[str]) -> str:
    hint_text = (hint or "").strip()
    if hint_text:
        return f"{base}: {hint_text}"
    if base.endswith("."):
        return base
    return f"{base}."


__all__ = ["map_api_error"]
