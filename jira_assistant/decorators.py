"""
Decorators for error handling and request instrumentation.

Maps httpx failures raised inside Jira client calls to the JiraAPIError
family and provides lightweight execution logging and timing.
"""

import asyncio
import logging
from functools import wraps
from typing import Callable, TypeVar, Optional

import httpx

from .errors import (
    JiraAPIError,
    map_status_code_to_error,
)
from .log_sanitizer import sanitize_log_message, safe_log_error

# Type variable for generic function signatures
T = TypeVar('T')

logger = logging.getLogger(__name__)


def _parse_retry_after(response: httpx.Response) -> Optional[int]:
    header = response.headers.get('Retry-After')
    if not header:
        return None
    try:
        return int(header)
    except (ValueError, TypeError):
        # HTTP-date form; no point parsing it, callers only need a hint
        logger.warning(f"Could not parse Retry-After header: {header}")
        return 60


def handle_jira_error(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator to turn httpx failures into JiraAPIError subclasses.

    Non-success responses become the error class for their status code,
    carrying the response body text as details. Transport failures
    (DNS, connection reset, timeouts) become a plain JiraAPIError.

    Example:
        @handle_jira_error
        async def get_issue(self, issue_key: str):
            return await self._get(f"/rest/api/2/issue/{issue_key}")
    """
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except JiraAPIError:
            # Already a custom error, re-raise as-is
            raise
        except httpx.HTTPStatusError as e:
            response = e.response
            status_code = response.status_code
            body = sanitize_log_message(response.text)

            error = map_status_code_to_error(
                status_code,
                original_error=e,
                details=body,
                retry_after=_parse_retry_after(response) if status_code == 429 else None,
                issue_key=kwargs.get('issue_key'),
                operation=func.__name__,
            )
            logger.error(
                f"Jira API error in {func.__name__}: {error} - {body[:500]}",
                exc_info=True
            )
            raise error
        except httpx.RequestError as e:
            logger.error(safe_log_error(e, func.__name__), exc_info=True)
            raise JiraAPIError(
                message=f"Request to Jira failed in {func.__name__}: {sanitize_log_message(str(e))}",
                original_error=e
            )

    return wrapper


def log_execution(
    level: int = logging.INFO,
    log_args: bool = False,
    log_result: bool = False
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator to log function execution.

    Args:
        level: Logging level (default: INFO)
        log_args: Whether to log function arguments (default: False)
        log_result: Whether to log function result (default: False)

    Returns:
        Decorator function
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            func_name = func.__name__

            if log_args:
                logger.log(level, f"Calling {func_name} with args={args[1:]}, kwargs={kwargs}")
            else:
                logger.log(level, f"Calling {func_name}")

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.log(level, f"{func_name} failed with error: {sanitize_log_message(str(e))}")
                raise

            if log_result:
                logger.log(level, f"{func_name} completed with result: {result}")
            else:
                logger.log(level, f"{func_name} completed successfully")
            return result

        return wrapper
    return decorator


class PerformanceMonitor:
    """
    Async context manager and decorator for monitoring operation performance.

    Tracks execution time and logs slow operations.
    """

    def __init__(self, operation_name: str, warn_threshold_ms: float = 1000.0):
        """
        Initialize performance monitor.

        Args:
            operation_name: Name of the operation being monitored
            warn_threshold_ms: Threshold in milliseconds to log warnings (default: 1000)
        """
        self.operation_name = operation_name
        self.warn_threshold_ms = warn_threshold_ms
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None

    @property
    def duration_ms(self) -> Optional[float]:
        if self.start_time is None or self.end_time is None:
            return None
        return (self.end_time - self.start_time) * 1000

    async def __aenter__(self):
        """Start monitoring."""
        self.start_time = asyncio.get_running_loop().time()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """End monitoring and log results."""
        self.end_time = asyncio.get_running_loop().time()
        duration_ms = self.duration_ms

        if duration_ms > self.warn_threshold_ms:
            logger.warning(
                f"Slow operation: {self.operation_name} took {duration_ms:.1f}ms "
                f"(threshold: {self.warn_threshold_ms:.1f}ms)"
            )
        else:
            logger.debug(
                f"Operation {self.operation_name} completed in {duration_ms:.1f}ms"
            )

    def __call__(self, func: Callable[..., T]) -> Callable[..., T]:
        """Use as a decorator."""
        @wraps(func)
        async def wrapper(*args, **kwargs):
            async with PerformanceMonitor(
                operation_name=func.__name__,
                warn_threshold_ms=self.warn_threshold_ms
            ):
                return await func(*args, **kwargs)
        return wrapper
