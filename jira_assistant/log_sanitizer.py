"""
Log sanitization utilities to prevent credential leakage.

Jira API tokens and LLM API keys travel in request headers; error bodies
and exception strings can echo them back. Everything that reaches a log
line from an HTTP failure goes through here first.
"""

import re
from typing import Mapping, Dict


REDACTED = '***REDACTED***'

# Patterns that might indicate sensitive data
SENSITIVE_PATTERNS = [
    (re.compile(r'(api[_-]?key["\']?\s*[:=]\s*["\']?)([^"\'\s,}]+)', re.IGNORECASE), r'\1' + REDACTED),
    (re.compile(r'(api[_-]?token["\']?\s*[:=]\s*["\']?)([^"\'\s,}]+)', re.IGNORECASE), r'\1' + REDACTED),
    (re.compile(r'(password["\']?\s*[:=]\s*["\']?)([^"\'\s,}]+)', re.IGNORECASE), r'\1' + REDACTED),
    (re.compile(r'(bearer\s+)([a-zA-Z0-9\-._~+/]+=*)', re.IGNORECASE), r'\1' + REDACTED),
    (re.compile(r'(basic\s+)([a-zA-Z0-9+/]+=*)', re.IGNORECASE), r'\1' + REDACTED),
    # Groq keys
    (re.compile(r'\bgsk_[A-Za-z0-9]{8,}'), REDACTED),
    # Atlassian API tokens
    (re.compile(r'\bATATT[A-Za-z0-9_\-=]{8,}'), REDACTED),
]

SENSITIVE_HEADERS = {'authorization', 'x-api-key', 'cookie', 'set-cookie'}


def sanitize_log_message(message: str) -> str:
    """
    Sanitize a log message by redacting sensitive information.

    Args:
        message: The log message to sanitize

    Returns:
        Sanitized log message with sensitive data redacted
    """
    if not message:
        return message

    sanitized = message
    for pattern, replacement in SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)

    return sanitized


def sanitize_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Return a copy of request headers with credential headers redacted."""
    return {
        name: (REDACTED if name.lower() in SENSITIVE_HEADERS else value)
        for name, value in headers.items()
    }


def safe_log_error(error: Exception, context: str = "") -> str:
    """
    Create a safe error message for logging.

    Args:
        error: The exception
        context: Additional context (e.g., "get_issue")

    Returns:
        Safe error message for logging
    """
    sanitized_error = sanitize_log_message(str(error))
    error_type = type(error).__name__

    if context:
        return f"{context}: {error_type}: {sanitized_error}"
    return f"{error_type}: {sanitized_error}"
