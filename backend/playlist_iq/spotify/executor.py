from __future__ import annotations

import asyncio
import logging
import random
import re
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, TypeVar

import httpx

from .errors import (
    RETRYABLE_STATUSES,
    AuthError,
    CatalogError,
    UpstreamClientError,
    UpstreamNetworkError,
)

if TYPE_CHECKING:
    from .auth import CredentialManager

T = TypeVar("T")
RequestFn = Callable[[Optional[str]], Awaitable[T]]

logger = logging.getLogger("spotify.executor")

NETWORK_SIGNATURE = re.compile(
    r"timeout|timed out|econnreset|econnrefused|etimedout|enotfound|eai_again"
    r"|socket hang up|connection (?:reset|refused|aborted)|network error",
    re.IGNORECASE,
)


def _status_is_retryable(status: int | None) -> bool:
    return status is not None and (status >= 500 or status in RETRYABLE_STATUSES)


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, AuthError):
        return False
    if isinstance(exc, CatalogError):
        return exc.retryable or _status_is_retryable(exc.status)
    if isinstance(exc, (httpx.TransportError, asyncio.TimeoutError, ConnectionError)):
        return True
    status = getattr(exc, "status", None) or getattr(exc, "status_code", None)
    if isinstance(status, int):
        return _status_is_retryable(status)
    return bool(NETWORK_SIGNATURE.search(str(exc)))


class RequestExecutor:
    """Runs a single upstream call with token refresh, retry and backoff.

    ``request_fn`` receives the current access token (``None`` when the
    executor has no credential manager, as for the token exchange itself).
    Only the awaiting task sleeps between attempts.
    """

    def __init__(
        self,
        credentials: "CredentialManager | None" = None,
        *,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        jitter: Callable[[], float] = random.random,
    ) -> None:
        self.credentials = credentials
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep
        self._jitter = jitter

    def compute_delay(self, attempt: int, retry_after: float | None = None) -> float:
        if retry_after is not None:
            return min(retry_after, self.max_delay)
        backoff = self.base_delay * (2 ** (attempt - 1)) + self._jitter()
        return min(backoff, self.max_delay)

    async def execute(self, operation: str, request_fn: RequestFn[T]) -> T:
        attempt = 0
        while True:
            attempt += 1
            token = None
            if self.credentials is not None:
                token = (await self.credentials.get_token()).value

            logger.debug("upstream attempt", extra={"operation": operation, "attempt": attempt})
            try:
                result = await request_fn(token)
            except Exception as exc:
                retryable = is_retryable(exc)
                if (
                    self.credentials is not None
                    and isinstance(exc, UpstreamClientError)
                    and exc.status == 401
                ):
                    self.credentials.invalidate()

                if not retryable or attempt >= self.max_attempts:
                    logger.error(
                        "upstream call failed",
                        extra={
                            "operation": operation,
                            "attempt": attempt,
                            "retryable": retryable,
                            "error": str(exc),
                        },
                    )
                    raise self._final_error(exc, operation, attempt, retryable)

                delay = self.compute_delay(attempt, getattr(exc, "retry_after", None))
                logger.warning(
                    "upstream call failed, retrying",
                    extra={
                        "operation": operation,
                        "attempt": attempt,
                        "delay": round(delay, 3),
                        "error": str(exc),
                    },
                )
                await self._sleep(delay)
                continue

            if attempt > 1:
                logger.info("upstream call recovered", extra={"operation": operation, "attempt": attempt})
            return result

    @staticmethod
    def _final_error(exc: Exception, operation: str, attempts: int, retryable: bool) -> CatalogError:
        if isinstance(exc, CatalogError):
            return exc.tag(operation, attempts)
        detail = str(exc) or type(exc).__name__
        cls = UpstreamNetworkError if retryable else CatalogError
        error = cls(detail, operation=operation, attempts=attempts)
        error.__cause__ = exc
        return error
