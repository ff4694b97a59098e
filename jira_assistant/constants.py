"""
Constants and field definitions for Jira operations.

Defines field sets, fetch limits, sprint states and the status synonym
vocabulary used by the filter pipeline.
"""

import re
from enum import Enum
from typing import List, Optional, Pattern


# ============================================================================
# Field Names
# ============================================================================

class FieldNames:
    """Jira issue field names."""

    SUMMARY = "summary"
    DESCRIPTION = "description"
    STATUS = "status"
    ASSIGNEE = "assignee"
    REPORTER = "reporter"
    ISSUE_TYPE = "issuetype"
    PRIORITY = "priority"
    LABELS = "labels"
    CREATED = "created"
    UPDATED = "updated"
    PROJECT = "project"
    SPRINT = "sprint"

    # Story points live in a site-specific custom field
    DEFAULT_STORY_POINTS = "customfield_10016"


# Fields fetched for sprint issue listings
SPRINT_ISSUE_FIELDS: List[str] = [
    FieldNames.SUMMARY,
    FieldNames.STATUS,
    FieldNames.ASSIGNEE,
    FieldNames.ISSUE_TYPE,
    FieldNames.PRIORITY,
    FieldNames.LABELS,
    FieldNames.CREATED,
    FieldNames.UPDATED,
]

# Fields fetched for a single issue view
DETAILED_ISSUE_FIELDS: List[str] = [
    *SPRINT_ISSUE_FIELDS,
    FieldNames.DESCRIPTION,
    FieldNames.REPORTER,
    FieldNames.SPRINT,
]


# ============================================================================
# Query Limits
# ============================================================================

class QueryLimits:
    """Default limits for backend fetches."""

    # Sprints kept in the fact cache
    CACHE_SPRINT_LIMIT = 20

    # Recent sprints scanned to derive statuses and the team roster
    ROSTER_SCAN_SPRINTS = 5

    # Sprints fetched when validating ids inside a tool call
    BOARD_SPRINT_LIMIT = 50

    # Page size for sprint issue listings
    SPRINT_ISSUE_LIMIT = 200

    # Jira caps maxResults for agile endpoints at 50
    SPRINT_PAGE_SIZE = 50


# ============================================================================
# Defaults
# ============================================================================

class Defaults:
    """Defaults for the orchestration core."""

    CACHE_TTL_DAYS = 7
    MAX_TOOL_ITERATIONS = 10
    MAX_OUTPUT_TOKENS = 4096
    CONTEXT_WINDOW = 2
    HTTP_TIMEOUT_SECONDS = 30

    ISSUE_TYPE = "Story"

    # Status every newly created issue starts in
    INITIAL_STATUS = "Backlog"

    JIRA_BASE_URL = "https://your-domain.atlassian.net"
    LLM_API_URL = "https://api.groq.com/openai/v1/chat/completions"
    LLM_MODEL = "llama-3.3-70b-versatile"


# ============================================================================
# Sprint States
# ============================================================================

class SprintState(str, Enum):
    """Lifecycle state of a sprint."""

    FUTURE = "future"
    ACTIVE = "active"
    CLOSED = "closed"

    @classmethod
    def parse(cls, value: str) -> "SprintState":
        """Parse a backend state string (case-insensitive)."""
        return cls((value or "").strip().lower())


# States surfaced to the rest of the system from the fact cache
VISIBLE_SPRINT_STATES = {SprintState.ACTIVE, SprintState.CLOSED}


# ============================================================================
# Status Synonyms
# ============================================================================

class StatusCategory(Enum):
    """
    Status filter tokens that match a family of backend spellings.

    Backend statuses are free text and differ across languages, so these
    three tokens expand to a pattern instead of an exact comparison.
    """

    DONE = ("done", r"done|conclu[íi]do|completed")
    IN_PROGRESS = ("in_progress", r"progress|progresso")
    TODO = ("todo", r"backlog|todo|to do|new")

    def __init__(self, token: str, pattern: str):
        self.token = token
        self.pattern: Pattern[str] = re.compile(pattern, re.IGNORECASE)

    def matches(self, status: str) -> bool:
        """Check whether a backend status belongs to this category."""
        return bool(self.pattern.search(status or ""))

    @classmethod
    def from_filter(cls, token: str) -> Optional["StatusCategory"]:
        """Return the category for a filter token, or None for a literal status."""
        lowered = (token or "").strip().lower()
        for category in cls:
            if category.token == lowered:
                return category
        return None
