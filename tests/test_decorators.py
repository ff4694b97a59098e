"""
Unit tests for decorators module.

Tests httpx error mapping, execution logging and performance monitoring.
"""

import logging
import pytest
import httpx
from jira_assistant.decorators import (
    handle_jira_error,
    log_execution,
    PerformanceMonitor
)
from jira_assistant.errors import (
    JiraAPIError,
    IssueNotFoundError,
    PermissionDeniedError,
    RateLimitError,
    TransientError
)


def status_error(status_code, text="", headers=None):
    request = httpx.Request("GET", "https://acme.atlassian.net/rest/api/2/issue/A-1")
    response = httpx.Response(status_code, text=text, headers=headers, request=request)
    return httpx.HTTPStatusError("error", request=request, response=response)


class TestHandleJiraError:
    """Test handle_jira_error decorator."""

    @pytest.mark.asyncio
    async def test_success_passthrough(self):
        """Test successful calls are untouched."""
        @handle_jira_error
        async def ok():
            return "success"

        assert await ok() == "success"

    @pytest.mark.asyncio
    async def test_maps_status_error(self):
        """Test HTTP status errors become the matching class."""
        @handle_jira_error
        async def get_issue(issue_key):
            raise status_error(404, "Issue does not exist")

        with pytest.raises(IssueNotFoundError) as exc_info:
            await get_issue(issue_key="A-1")

        assert "A-1" in str(exc_info.value)
        assert exc_info.value.details == "Issue does not exist"
        assert isinstance(exc_info.value.original_error, httpx.HTTPStatusError)

    @pytest.mark.asyncio
    async def test_operation_name_in_permission_error(self):
        """Test 403 names the decorated function."""
        @handle_jira_error
        async def create_issue():
            raise status_error(403)

        with pytest.raises(PermissionDeniedError, match="create_issue"):
            await create_issue()

    @pytest.mark.asyncio
    async def test_retry_after_parsed(self):
        """Test 429 carries the Retry-After hint and is not retried."""
        calls = 0

        @handle_jira_error
        async def limited():
            nonlocal calls
            calls += 1
            raise status_error(429, headers={'Retry-After': "12"})

        with pytest.raises(RateLimitError) as exc_info:
            await limited()

        assert exc_info.value.retry_after == 12
        assert calls == 1

    @pytest.mark.asyncio
    async def test_unparseable_retry_after(self):
        """Test an HTTP-date Retry-After falls back to a default hint."""
        @handle_jira_error
        async def limited():
            raise status_error(429, headers={'Retry-After': "Wed, 21 Oct 2015 07:28:00 GMT"})

        with pytest.raises(RateLimitError) as exc_info:
            await limited()
        assert exc_info.value.retry_after == 60

    @pytest.mark.asyncio
    async def test_transient_not_retried(self):
        """Test 5xx errors surface immediately."""
        calls = 0

        @handle_jira_error
        async def flaky():
            nonlocal calls
            calls += 1
            raise status_error(503)

        with pytest.raises(TransientError):
            await flaky()
        assert calls == 1

    @pytest.mark.asyncio
    async def test_body_is_sanitized(self):
        """Test credentials echoed in the body are redacted."""
        @handle_jira_error
        async def leak():
            raise status_error(400, 'bad request: api_token="ATATTabcdefghijk"')

        with pytest.raises(JiraAPIError) as exc_info:
            await leak()
        assert "ATATTabcdefghijk" not in exc_info.value.details

    @pytest.mark.asyncio
    async def test_request_error(self):
        """Test transport failures become JiraAPIError."""
        @handle_jira_error
        async def unreachable():
            raise httpx.ConnectTimeout("timed out")

        with pytest.raises(JiraAPIError, match="timed out") as exc_info:
            await unreachable()
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_existing_error_reraised(self):
        """Test JiraAPIErrors pass through unchanged."""
        original = IssueNotFoundError(issue_key="A-9")

        @handle_jira_error
        async def already():
            raise original

        with pytest.raises(IssueNotFoundError) as exc_info:
            await already()
        assert exc_info.value is original


class TestLogExecution:
    """Test log_execution decorator."""

    @pytest.mark.asyncio
    async def test_logs_call_and_completion(self, caplog):
        """Test entry and exit are logged."""
        @log_execution(level=logging.INFO)
        async def work():
            return 1

        with caplog.at_level(logging.INFO, logger="jira_assistant.decorators"):
            assert await work() == 1

        assert "Calling work" in caplog.text
        assert "work completed successfully" in caplog.text

    @pytest.mark.asyncio
    async def test_logs_failure_and_reraises(self, caplog):
        """Test failures are logged and re-raised."""
        @log_execution(level=logging.INFO)
        async def broken():
            raise ValueError("nope")

        with caplog.at_level(logging.INFO, logger="jira_assistant.decorators"):
            with pytest.raises(ValueError):
                await broken()

        assert "broken failed with error: nope" in caplog.text


class TestPerformanceMonitor:
    """Test PerformanceMonitor."""

    @pytest.mark.asyncio
    async def test_context_manager_measures(self):
        """Test duration is recorded."""
        async with PerformanceMonitor("op") as monitor:
            pass
        assert monitor.duration_ms is not None
        assert monitor.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_slow_operation_warns(self, caplog):
        """Test operations over the threshold log a warning."""
        with caplog.at_level(logging.WARNING, logger="jira_assistant.decorators"):
            async with PerformanceMonitor("slow_op", warn_threshold_ms=-1):
                pass
        assert "Slow operation: slow_op" in caplog.text

    @pytest.mark.asyncio
    async def test_as_decorator(self):
        """Test decorator form returns the wrapped result."""
        @PerformanceMonitor("ignored")
        async def compute():
            return 42

        assert await compute() == 42
