"""
Tool registry: names, JSON-schema definitions and typed argument records.

The model sends untyped argument maps as JSON text. They are parsed exactly once, at
dispatch, into the record for the named tool.
"""
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from .constants import Defaults
from .validation import ArgumentValidator, UnknownToolError, ValidationError, validate_issue_key


class ToolName(str, Enum):
    """Registered tool names"""

    PREPARE_SEARCH = "prepare_search"
    GET_SPRINT_ISSUES = "get_sprint_issues"
    GET_ISSUE = "get_issue"
    CREATE_ISSUE = "create_issue"

    @classmethod
    def parse(cls, name: str) -> "ToolName":
        """Parse a tool name, failing fast on anything unregistered."""
        try:
            return cls(name)
        except ValueError:
            raise UnknownToolError(name)


@dataclass
class PrepareSearchArgs:
    names: List[str] = field(default_factory=list)
    sprint_ids: List[int] = field(default_factory=list)

    @classmethod
    def from_arguments(cls, args: Mapping[str, Any]) -> "PrepareSearchArgs":
        return cls(
            names=ArgumentValidator.optional_string_list(args, 'names') or [],
            sprint_ids=ArgumentValidator.optional_int_list(args, 'sprint_ids') or [],
        )


@dataclass
class GetSprintIssuesArgs:
    sprint_ids: List[int]
    assignees: Optional[List[str]] = None
    status_filters: Optional[List[str]] = None
    keyword: Optional[str] = None
    include_breakdown: bool = False

    @classmethod
    def from_arguments(cls, args: Mapping[str, Any]) -> "GetSprintIssuesArgs":
        sprint_ids = ArgumentValidator.optional_int_list(args, 'sprint_ids')
        if not sprint_ids:
            raise ValidationError("sprint_ids is required")

        # Older prompts used assignee_emails
        assignees = ArgumentValidator.optional_string_list(args, 'assignees')
        if assignees is None:
            assignees = ArgumentValidator.optional_string_list(args, 'assignee_emails')

        return cls(
            sprint_ids=sprint_ids,
            assignees=assignees or None,
            status_filters=ArgumentValidator.optional_string_list(args, 'status_filters') or None,
            keyword=ArgumentValidator.optional_string(args, 'keyword'),
            include_breakdown=ArgumentValidator.optional_bool(args, 'include_breakdown'),
        )


@dataclass
class GetIssueArgs:
    issue_key: str

    @classmethod
    def from_arguments(cls, args: Mapping[str, Any]) -> "GetIssueArgs":
        return cls(issue_key=validate_issue_key(args.get('issue_key')))


@dataclass
class CreateIssueArgs:
    summary: str
    description: Optional[str] = None
    issue_type: str = Defaults.ISSUE_TYPE
    assignee: Optional[str] = None
    sprint_id: Optional[int] = None
    story_points: Optional[float] = None
    status: Optional[str] = None

    @classmethod
    def from_arguments(cls, args: Mapping[str, Any]) -> "CreateIssueArgs":
        return cls(
            summary=ArgumentValidator.required_string(args, 'summary'),
            description=ArgumentValidator.optional_string(args, 'description'),
            issue_type=ArgumentValidator.optional_string(args, 'issue_type') or Defaults.ISSUE_TYPE,
            assignee=ArgumentValidator.optional_string(args, 'assignee'),
            sprint_id=ArgumentValidator.optional_int(args, 'sprint_id'),
            story_points=ArgumentValidator.optional_number(args, 'story_points'),
            status=ArgumentValidator.optional_string(args, 'status'),
        )


ToolArguments = Union[PrepareSearchArgs, GetSprintIssuesArgs, GetIssueArgs, CreateIssueArgs]

ARGUMENT_TYPES = {
    ToolName.PREPARE_SEARCH: PrepareSearchArgs,
    ToolName.GET_SPRINT_ISSUES: GetSprintIssuesArgs,
    ToolName.GET_ISSUE: GetIssueArgs,
    ToolName.CREATE_ISSUE: CreateIssueArgs,
}


def parse_arguments(name: str, arguments: Union[Mapping[str, Any], str, None]) -> ToolArguments:
    """
    Parse a raw tool call into its typed argument record.

    Arguments may be a mapping or the JSON text the model sent.

    Raises:
        UnknownToolError: Tool name is not registered
        ValidationError: Arguments are not valid JSON, or are missing or mistyped
    """
    tool = ToolName.parse(name)
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments) if arguments.strip() else None
        except json.JSONDecodeError as e:
            raise ValidationError(
                f"Arguments for {tool.value} are not valid JSON: {e.msg} at position {e.pos}. "
                f"Received: {arguments[:200]}"
            )
    if arguments is not None and not isinstance(arguments, Mapping):
        raise ValidationError(f"Arguments for {tool.value} must be an object")
    return ARGUMENT_TYPES[tool].from_arguments(arguments or {})


def _function(name: ToolName, description: str, properties: Dict[str, Any], required: List[str]) -> Dict[str, Any]:
    return {
        'type': 'function',
        'function': {
            'name': name.value,
            'description': description,
            'parameters': {
                'type': 'object',
                'properties': properties,
                'required': required,
            },
        },
    }


TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    _function(
        ToolName.PREPARE_SEARCH,
        """Resolve names to emails.

Examples:
- prepare_search() - get all team members for active sprint
- prepare_search(names: ["John"]) - resolve John's email
- prepare_search(sprint_ids: [9887]) - get all team for specific sprint

Returns: { people: [{name, resolved_email}], sprints: [{id, name}] }""",
        {
            'names': {
                'type': 'array',
                'items': {'type': 'string'},
                'description': 'Names to resolve (omit or empty = all team members)',
            },
            'sprint_ids': {
                'type': 'array',
                'items': {'type': 'integer'},
                'description': 'Sprint IDs (defaults to active sprint if omitted)',
            },
        },
        [],
    ),
    _function(
        ToolName.GET_SPRINT_ISSUES,
        """Get issues from sprints with filtering.

Examples:
- get_sprint_issues(sprint_ids: [9887]) - all issues
- get_sprint_issues(sprint_ids: [9887], status_filters: ["done"]) - done tasks
- get_sprint_issues(sprint_ids: [9887], status_filters: ["UI Review"]) - in UI review
- get_sprint_issues(sprint_ids: [9887], include_breakdown: true) - with breakdown chart

Returns: { total_issues, total_story_points, sprints: { "Sprint Name": { issues: [...] } } }""",
        {
            'sprint_ids': {
                'type': 'array',
                'items': {'type': 'integer'},
                'description': 'Sprint IDs from AVAILABLE SPRINTS in prompt',
            },
            'assignees': {
                'type': 'array',
                'items': {'type': 'string'},
                'description': 'Filter by assignee name(s) or email(s)',
            },
            'status_filters': {
                'type': 'array',
                'items': {'type': 'string'},
                'description': (
                    "Exact status names from AVAILABLE STATUSES (e.g. 'UI Review', 'In QA'), "
                    "or one of the groups 'done', 'in_progress', 'todo'"
                ),
            },
            'keyword': {
                'type': 'string',
                'description': 'Filter by keyword in summary',
            },
            'include_breakdown': {
                'type': 'boolean',
                'description': 'Show assignee breakdown chart (for productivity questions)',
            },
        },
        ['sprint_ids'],
    ),
    _function(
        ToolName.GET_ISSUE,
        """Get details of a specific issue by key, including comments.

Examples:
- get_issue(issue_key: "ODPP-1097") - get full details and comments

Returns: { key, summary, description, status, assignee, comments: [...] }""",
        {
            'issue_key': {
                'type': 'string',
                'description': 'The issue key (e.g. ODPP-1097)',
            },
        },
        ['issue_key'],
    ),
    _function(
        ToolName.CREATE_ISSUE,
        """Create a new issue in Jira. ONLY call this AFTER user confirms.

Examples:
- create_issue(summary: "Add cart badge feature") - basic story
- create_issue(summary: "Login broken", issue_type: "Bug", assignee: "Daniel") - bug with assignee
- create_issue(summary: "User authentication", sprint_id: 9887, story_points: 5) - story with sprint and points

Returns: { key, url, summary, issue_type, assignee, sprint, story_points, status }""",
        {
            'summary': {
                'type': 'string',
                'description': 'The issue title/summary (required)',
            },
            'description': {
                'type': 'string',
                'description': 'Detailed description of the issue',
            },
            'issue_type': {
                'type': 'string',
                'description': 'Issue type: Story (default) or Bug',
            },
            'assignee': {
                'type': 'string',
                'description': 'Name of the assignee from TEAM MEMBERS list',
            },
            'sprint_id': {
                'type': 'integer',
                'description': 'Sprint ID to add the issue to (from AVAILABLE SPRINTS)',
            },
            'story_points': {
                'type': 'number',
                'description': 'Story point estimate',
            },
            'status': {
                'type': 'string',
                'description': (
                    "Target status from AVAILABLE STATUSES (e.g. 'UI Review'). "
                    "If omitted, stays in initial status."
                ),
            },
        },
        ['summary'],
    ),
]
