"""
Custom exception classes for the Jira PM assistant.

Provides structured error handling with helpful messages for common
Jira API errors, configuration gaps, and language-model transport failures.
"""

from typing import Optional, Any, List


class JiraAPIError(Exception):
    """
    Base exception for Jira API errors.

    Attributes:
        status_code: HTTP status code from the API response
        message: Human-readable error message
        original_error: The original exception that was caught
        details: Additional error details (usually the response body text)
    """

    def __init__(
        self,
        status_code: Optional[int] = None,
        message: str = "Jira API error",
        original_error: Optional[Exception] = None,
        details: Optional[Any] = None
    ):
        self.status_code = status_code
        self.message = message
        self.original_error = original_error
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        """String representation of the error."""
        if self.status_code:
            return f"[{self.status_code}] {self.message}"
        return self.message

    def to_dict(self) -> dict:
        """Convert error to dictionary for JSON serialization."""
        return {
            'error': self.__class__.__name__,
            'status_code': self.status_code,
            'message': self.message,
            'details': str(self.details) if self.details else None
        }


class IssueNotFoundError(JiraAPIError):
    """
    Raised when an issue (or other resource) is not found (HTTP 404).

    This can occur when:
    - The issue key doesn't exist
    - The issue was deleted or moved to another project
    - User doesn't have permission to browse the project
    """

    def __init__(
        self,
        issue_key: Optional[str] = None,
        original_error: Optional[Exception] = None,
        details: Optional[Any] = None
    ):
        message = "Resource not found. Please verify the key exists and you have access."
        if issue_key:
            message = f"Issue {issue_key} not found. Please verify it exists and you have access."

        super().__init__(
            status_code=404,
            message=message,
            original_error=original_error,
            details=details if details is not None else ({'issue_key': issue_key} if issue_key else None)
        )


class AuthenticationError(JiraAPIError):
    """
    Raised when authentication fails (HTTP 401).

    Usually means JIRA_EMAIL / JIRA_API_TOKEN are missing, revoked or mistyped.
    """

    def __init__(
        self,
        message: str = "Authentication failed. Check JIRA_EMAIL and JIRA_API_TOKEN.",
        original_error: Optional[Exception] = None,
        details: Optional[Any] = None
    ):
        super().__init__(
            status_code=401,
            message=message,
            original_error=original_error,
            details=details
        )


class PermissionDeniedError(JiraAPIError):
    """
    Raised when the user lacks permission for an operation (HTTP 403).

    This can occur when:
    - The API token's account cannot browse the board's project
    - The account lacks "Create issues" or "Transition issues" permission
    """

    def __init__(
        self,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
        details: Optional[Any] = None
    ):
        if operation:
            message = f"Permission denied for {operation}. Please check your project permissions."
        else:
            message = "Permission denied. Please check your credentials and project permissions."

        super().__init__(
            status_code=403,
            message=message,
            original_error=original_error,
            details=details
        )


class RateLimitError(JiraAPIError):
    """
    Raised when the API rate limit is exceeded (HTTP 429).

    Nothing in the assistant retries automatically; the retry-after hint
    is carried so the caller can decide.
    """

    def __init__(
        self,
        retry_after: Optional[int] = None,
        original_error: Optional[Exception] = None,
        details: Optional[Any] = None
    ):
        if retry_after:
            message = f"Rate limit exceeded. Please retry after {retry_after} seconds."
        else:
            message = "Rate limit exceeded. Please retry after a brief delay."

        super().__init__(
            status_code=429,
            message=message,
            original_error=original_error,
            details=details
        )
        self.retry_after = retry_after


class TransientError(JiraAPIError):
    """
    Raised for temporary service errors (HTTP 500, 502, 503, 504).
    """

    def __init__(
        self,
        status_code: int,
        original_error: Optional[Exception] = None,
        details: Optional[Any] = None
    ):
        message = f"Jira service temporarily unavailable (HTTP {status_code})."

        super().__init__(
            status_code=status_code,
            message=message,
            original_error=original_error,
            details=details
        )


class BadRequestError(JiraAPIError):
    """
    Raised for malformed requests (HTTP 400).

    This can occur when:
    - An issue type doesn't exist in the project
    - The story points custom field is not on the create screen
    - The assignee can't be assigned in the project
    """

    def __init__(
        self,
        message: str = "Bad request. Please check your input values.",
        original_error: Optional[Exception] = None,
        details: Optional[Any] = None
    ):
        super().__init__(
            status_code=400,
            message=message,
            original_error=original_error,
            details=details
        )


class TransitionNotAvailableError(JiraAPIError):
    """
    Raised when a requested status has no matching workflow transition.

    The issue itself already exists; it stays in its initial status.
    """

    def __init__(
        self,
        issue_key: str,
        requested_status: str,
        available: List[str]
    ):
        self.issue_key = issue_key
        self.requested_status = requested_status
        self.available = list(available)
        message = (
            f"Issue {issue_key} was created but could not be moved to '{requested_status}'. "
            f"Available transitions: {', '.join(self.available) or 'none'}"
        )
        super().__init__(
            message=message,
            details={'issue_key': issue_key, 'available_transitions': self.available}
        )


class ConfigurationError(Exception):
    """Raised when a required setting (e.g. DEFAULT_BOARD_ID) is missing."""
    pass


class LLMError(Exception):
    """
    Raised when the chat-completions endpoint returns a non-success status.

    Attributes:
        status_code: HTTP status code, if a response was received
        body: Response body text
    """

    def __init__(self, status_code: Optional[int], body: str = ""):
        self.status_code = status_code
        self.body = body
        if status_code is not None:
            message = f"LLM API error: {status_code} - {body}"
        else:
            message = f"LLM API error: {body}"
        super().__init__(message)


def map_status_code_to_error(
    status_code: int,
    original_error: Optional[Exception] = None,
    **kwargs
) -> JiraAPIError:
    """
    Map HTTP status code to appropriate error class.

    Args:
        status_code: HTTP status code from the Jira API
        original_error: The original exception
        **kwargs: Additional error-specific parameters (details, retry_after,
            issue_key, operation)

    Returns:
        Appropriate JiraAPIError subclass instance
    """
    details = kwargs.get('details')

    if status_code == 400:
        return BadRequestError(original_error=original_error, details=details)
    elif status_code == 401:
        return AuthenticationError(original_error=original_error, details=details)
    elif status_code == 403:
        return PermissionDeniedError(
            operation=kwargs.get('operation'),
            original_error=original_error,
            details=details
        )
    elif status_code == 404:
        return IssueNotFoundError(
            issue_key=kwargs.get('issue_key'),
            original_error=original_error,
            details=details
        )
    elif status_code == 429:
        return RateLimitError(
            retry_after=kwargs.get('retry_after'),
            original_error=original_error,
            details=details
        )
    elif status_code in [500, 502, 503, 504]:
        return TransientError(status_code=status_code, original_error=original_error, details=details)
    else:
        return JiraAPIError(
            status_code=status_code,
            message=f"Jira API error: HTTP {status_code}",
            original_error=original_error,
            details=details
        )
