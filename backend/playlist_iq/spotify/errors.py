from __future__ import annotations

from typing import Mapping

import httpx


class CatalogError(Exception):
    """Base error for every failed call against the music catalog.

    ``operation`` and ``attempts`` are filled in by the request executor once
    it gives up, so the message a caller sees names the call that failed and
    how many times it was tried.
    """

    retryable = False

    def __init__(
        self,
        detail: str,
        *,
        status: int | None = None,
        retry_after: float | None = None,
        operation: str | None = None,
        attempts: int | None = None,
    ) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status = status
        self.retry_after = retry_after
        self.operation = operation
        self.attempts = attempts

    def tag(self, operation: str, attempts: int) -> "CatalogError":
        self.operation = operation
        self.attempts = attempts
        return self

    def __str__(self) -> str:
        if self.operation is None:
            return self.detail
        noun = "attempt" if self.attempts == 1 else "attempts"
        return f"{self.operation} failed after {self.attempts} {noun}: {self.detail}"


class AuthError(CatalogError):
    pass


class RateLimitError(CatalogError):
    retryable = True


class UpstreamServerError(CatalogError):
    retryable = True


class UpstreamNetworkError(CatalogError):
    retryable = True


class UpstreamClientError(CatalogError):
    pass


RETRYABLE_STATUSES = frozenset({408, 429, 504})


def parse_retry_after(headers: Mapping[str, str]) -> float | None:
    raw = headers.get("Retry-After") or headers.get("retry-after")
    if raw is None:
        return None
    try:
        return max(0.0, float(raw))
    except (TypeError, ValueError):
        return None


def error_for_response(response: httpx.Response) -> CatalogError:
    status = response.status_code
    text = response.text[:300]
    detail = f"spotify api error {status}: {text}" if text else f"spotify api error {status}"
    if status == 429:
        return RateLimitError(detail, status=status, retry_after=parse_retry_after(response.headers))
    if status >= 500 or status in RETRYABLE_STATUSES:
        return UpstreamServerError(detail, status=status)
    return UpstreamClientError(detail, status=status)
