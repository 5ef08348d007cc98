from __future__ import annotations

import asyncio

import httpx
import pytest

from conftest import RecordingSleep, StubCredentials

from playlist_iq.spotify.errors import (
    AuthError,
    CatalogError,
    RateLimitError,
    UpstreamClientError,
    UpstreamNetworkError,
    UpstreamServerError,
)
from playlist_iq.spotify.executor import RequestExecutor, is_retryable


def _executor(sleeper: RecordingSleep, credentials=None, jitter: float = 0.0) -> RequestExecutor:
    return RequestExecutor(credentials, sleep=sleeper, jitter=lambda: jitter)


class FailingCall:
    def __init__(self, *errors: Exception, result=None) -> None:
        self.errors = list(errors)
        self.result = result
        self.calls = 0
        self.tokens = []

    async def __call__(self, token):
        self.calls += 1
        self.tokens.append(token)
        if self.errors:
            error = self.errors.pop(0)
            if error is not None:
                raise error
        return self.result


def test_rate_limited_call_is_attempted_three_times(sleeper):
    call = FailingCall(*[RateLimitError("too many requests", status=429) for _ in range(5)])

    with pytest.raises(RateLimitError) as excinfo:
        asyncio.run(_executor(sleeper).execute("get_audio_features", call))

    assert call.calls == 3
    assert excinfo.value.attempts == 3
    assert "3 attempts" in str(excinfo.value)
    assert "get_audio_features" in str(excinfo.value)
    assert len(sleeper.delays) == 2


def test_not_found_is_attempted_once(sleeper):
    call = FailingCall(UpstreamClientError("spotify api error 404: not found", status=404))

    with pytest.raises(UpstreamClientError) as excinfo:
        asyncio.run(_executor(sleeper).execute("get_playlist", call))

    assert call.calls == 1
    assert sleeper.delays == []
    assert str(excinfo.value) == "get_playlist failed after 1 attempt: spotify api error 404: not found"


def test_server_error_then_success_returns_result(sleeper):
    call = FailingCall(UpstreamServerError("bad gateway", status=502), result={"ok": True})

    result = asyncio.run(_executor(sleeper, jitter=0.25).execute("get_artists", call))

    assert result == {"ok": True}
    assert call.calls == 2
    assert sleeper.delays == [1.25]


def test_retry_after_is_honoured_and_capped(sleeper):
    call = FailingCall(
        RateLimitError("slow down", status=429, retry_after=2.0),
        RateLimitError("slow down", status=429, retry_after=120.0),
        result=[],
    )

    asyncio.run(_executor(sleeper).execute("get_recommendations", call))

    assert sleeper.delays == [2.0, 30.0]


def test_backoff_doubles_and_is_capped():
    executor = RequestExecutor(jitter=lambda: 0.5)
    assert [executor.compute_delay(attempt) for attempt in (1, 2, 3)] == [1.5, 2.5, 4.5]
    assert executor.compute_delay(10) == 30.0
    assert executor.compute_delay(1, retry_after=0.0) == 0.0


def test_token_is_refreshed_before_every_attempt(sleeper):
    credentials = StubCredentials("abc")
    call = FailingCall(UpstreamServerError("unavailable", status=503), result="done")

    asyncio.run(_executor(sleeper, credentials).execute("search_tracks", call))

    assert credentials.calls == 2
    assert call.tokens == ["abc", "abc"]


def test_executor_without_credentials_passes_no_token(sleeper):
    call = FailingCall(result=1)
    asyncio.run(_executor(sleeper).execute("client_credentials_grant", call))
    assert call.tokens == [None]


def test_auth_failure_propagates_without_calling_upstream(sleeper):
    class BrokenCredentials(StubCredentials):
        async def get_token(self):
            raise AuthError("invalid_client", status=400)

    call = FailingCall(result=1)

    with pytest.raises(AuthError):
        asyncio.run(_executor(sleeper, BrokenCredentials()).execute("get_playlist", call))
    assert call.calls == 0


def test_unauthorized_response_drops_cached_token(sleeper):
    credentials = StubCredentials()
    call = FailingCall(UpstreamClientError("unauthorized", status=401))

    with pytest.raises(UpstreamClientError):
        asyncio.run(_executor(sleeper, credentials).execute("get_playlist", call))
    assert credentials.invalidations == 1
    assert call.calls == 1


def test_transport_errors_are_retried_and_wrapped(sleeper):
    request = httpx.Request("GET", "https://api.spotify.com/v1/artists")
    errors = [httpx.ConnectError("connection refused", request=request) for _ in range(3)]
    call = FailingCall(*errors)

    with pytest.raises(UpstreamNetworkError) as excinfo:
        asyncio.run(_executor(sleeper).execute("get_artists", call))

    assert call.calls == 3
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)
    assert excinfo.value.attempts == 3


def test_unexpected_errors_are_not_retried(sleeper):
    call = FailingCall(KeyError("audio_features"))

    with pytest.raises(CatalogError) as excinfo:
        asyncio.run(_executor(sleeper).execute("get_audio_features", call))

    assert call.calls == 1
    assert isinstance(excinfo.value.__cause__, KeyError)
    assert excinfo.value.operation == "get_audio_features"


@pytest.mark.parametrize(
    "error, expected",
    [
        (RateLimitError("x", status=429), True),
        (UpstreamServerError("x", status=500), True),
        (CatalogError("x", status=504), True),
        (CatalogError("x", status=408), True),
        (UpstreamClientError("x", status=403), False),
        (UpstreamClientError("x", status=404), False),
        (AuthError("x", status=503), False),
        (RuntimeError("socket hang up"), True),
        (RuntimeError("read ETIMEDOUT"), True),
        (OSError("Connection reset by peer"), True),
        (asyncio.TimeoutError(), True),
        (ValueError("invalid literal"), False),
    ],
)
def test_retry_classification(error, expected):
    assert is_retryable(error) is expected
