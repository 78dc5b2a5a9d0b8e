"""
Tests for the error taxonomy and the retry harness.
"""

import logging
import socket
from unittest.mock import AsyncMock

import pytest

from echodiary.imaging.errors import ApiError, ErrorKind, classify_error
from echodiary.imaging.retry import RetryPolicy, call_with_retry


class FakeStatusError(Exception):
    """Stand-in for an SDK error carrying an HTTP status."""

    def __init__(self, code: int, message: str = "failed"):
        super().__init__(f"{code} {message}")
        self.code = code


class TestErrorKind:
    def test_codes(self):
        assert ErrorKind.AUTH.value == "AUTH_ERROR"
        assert ErrorKind.RATE_LIMIT.value == "RATE_LIMIT"
        assert ErrorKind.NETWORK.value == "NETWORK_ERROR"
        assert ErrorKind.REQUEST.value == "REQUEST_ERROR"

    def test_retryability(self):
        assert {kind for kind in ErrorKind if kind.retryable} == {ErrorKind.RATE_LIMIT, ErrorKind.NETWORK}

    def test_api_error_exposes_kind_code_and_flag(self):
        error = ApiError.rate_limit()
        assert error.kind is ErrorKind.RATE_LIMIT
        assert error.code == "RATE_LIMIT"
        assert error.retryable is True
        assert error.message == "Rate limit exceeded"
        assert str(error) == "Rate limit exceeded"


class TestClassifyError:
    @pytest.mark.parametrize("status,kind", [
        (401, ErrorKind.AUTH),
        (403, ErrorKind.AUTH),
        (429, ErrorKind.RATE_LIMIT),
        (400, ErrorKind.REQUEST),
        (500, ErrorKind.REQUEST),
    ])
    def test_http_status(self, status, kind):
        error = classify_error(FakeStatusError(status))
        assert error.kind is kind
        assert error.status_code == status

    def test_status_code_attribute(self):
        error = Exception("Too many requests")
        error.status_code = 429
        assert classify_error(error).kind is ErrorKind.RATE_LIMIT

    def test_connection_errors_are_network(self):
        assert classify_error(ConnectionRefusedError("refused")).kind is ErrorKind.NETWORK
        assert classify_error(socket.gaierror("lookup failed")).kind is ErrorKind.NETWORK

    def test_network_messages(self):
        assert classify_error(RuntimeError("connect ECONNREFUSED 127.0.0.1")).kind is ErrorKind.NETWORK
        assert classify_error(RuntimeError("getaddrinfo ENOTFOUND example")).kind is ErrorKind.NETWORK

    def test_unknown_errors_are_request_errors(self):
        error = classify_error(ValueError("bad prompt"))
        assert error.kind is ErrorKind.REQUEST
        assert error.retryable is False
        assert error.message == "bad prompt"

    def test_classified_errors_pass_through(self):
        original = ApiError.auth()
        assert classify_error(original) is original


def sequence(*outcomes):
    """AsyncMock operation that raises or returns each outcome in turn."""
    return AsyncMock(side_effect=list(outcomes))


class TestCallWithRetry:
    """Exponential backoff behavior."""

    @pytest.mark.asyncio
    async def test_success_returns_immediately(self):
        operation = sequence("image")
        sleep = AsyncMock()

        result = await call_with_retry(operation, RetryPolicy(), sleep=sleep)

        assert result == "image"
        assert operation.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_auth_error_is_not_retried(self):
        error = ApiError.auth("Invalid API key")
        operation = sequence(error, "image")
        sleep = AsyncMock()

        with pytest.raises(ApiError) as exc_info:
            await call_with_retry(operation, RetryPolicy(), sleep=sleep)

        assert exc_info.value is error
        assert operation.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rate_limit_twice_then_success(self):
        """Three calls with waits of delay and delay * 2."""
        operation = sequence(ApiError.rate_limit(), ApiError.rate_limit(), "image")
        sleep = AsyncMock()

        result = await call_with_retry(operation, RetryPolicy(retry_delay_ms=1000), sleep=sleep)

        assert result == "image"
        assert operation.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_backoff_uses_configured_delay(self):
        operation = sequence(ApiError.network(), ApiError.network(), ApiError.network(), "image")
        sleep = AsyncMock()

        await call_with_retry(operation, RetryPolicy(retry_delay_ms=250), sleep=sleep)

        assert [c.args[0] for c in sleep.await_args_list] == [0.25, 0.5, 1.0]

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_last_error(self):
        errors = [ApiError.network(f"down {i}") for i in range(4)]
        operation = sequence(*errors)
        sleep = AsyncMock()

        with pytest.raises(ApiError) as exc_info:
            await call_with_retry(operation, RetryPolicy(max_retries=3), sleep=sleep)

        assert exc_info.value is errors[-1]
        assert operation.await_count == 4
        assert sleep.await_count == 3

    @pytest.mark.asyncio
    async def test_zero_retries(self):
        operation = sequence(ApiError.rate_limit())
        sleep = AsyncMock()

        with pytest.raises(ApiError):
            await call_with_retry(operation, RetryPolicy(max_retries=0), sleep=sleep)

        assert operation.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_request_error_after_retryable_stops(self):
        operation = sequence(ApiError.rate_limit(), ApiError.request("bad"), "image")
        sleep = AsyncMock()

        with pytest.raises(ApiError) as exc_info:
            await call_with_retry(operation, RetryPolicy(), sleep=sleep)

        assert exc_info.value.kind is ErrorKind.REQUEST
        assert operation.await_count == 2

    @pytest.mark.asyncio
    async def test_unclassified_exceptions_propagate(self):
        operation = sequence(KeyError("bug"))

        with pytest.raises(KeyError):
            await call_with_retry(operation, RetryPolicy(), sleep=AsyncMock())

        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_log_levels(self, caplog):
        caplog.set_level(logging.DEBUG, logger="echodiary.imaging.retry")
        operation = sequence(ApiError.rate_limit(), ApiError.auth())

        with pytest.raises(ApiError):
            await call_with_retry(operation, RetryPolicy(), sleep=AsyncMock(), description="Test call")

        levels = {record.levelno for record in caplog.records}
        assert levels == {logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR}
        assert any("attempt 1/4" in r.getMessage() for r in caplog.records if r.levelno == logging.DEBUG)

    @pytest.mark.asyncio
    async def test_quiet_policy_only_logs_errors(self, caplog):
        caplog.set_level(logging.DEBUG, logger="echodiary.imaging.retry")
        operation = sequence(ApiError.rate_limit(), ApiError.auth())

        with pytest.raises(ApiError):
            await call_with_retry(operation, RetryPolicy(log_level=logging.ERROR), sleep=AsyncMock())

        assert [r.levelno for r in caplog.records] == [logging.ERROR]


class TestRetryPolicy:
    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.max_retries == 3
        assert policy.retry_delay_ms == 1000

    def test_backoff_doubles(self):
        policy = RetryPolicy(retry_delay_ms=100)
        assert [policy.backoff_ms(i) for i in range(4)] == [100, 200, 400, 800]

    def test_rejects_negative_values(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=-1)
        with pytest.raises(ValueError):
            RetryPolicy(retry_delay_ms=-5)

    def test_is_immutable(self):
        policy = RetryPolicy()
        with pytest.raises(AttributeError):
            policy.max_retries = 10
