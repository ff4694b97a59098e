"""
Data models for the Jira PM assistant
"""
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Tuple, Union

from .constants import SprintState


@dataclass(frozen=True)
class Sprint:
    """Represents a sprint on the board"""
    id: int
    name: str
    state: SprintState
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    goal: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'state': self.state.value,
            'start_date': self.start_date,
            'end_date': self.end_date,
            'goal': self.goal,
        }


@dataclass(frozen=True)
class Member:
    """A team member derived from issue assignees"""
    name: str
    email: str


@dataclass
class Issue:
    """Represents a Jira issue"""
    key: str
    summary: str
    status: str
    issue_type: str = ""
    assignee: Optional[str] = None
    assignee_display_name: Optional[str] = None
    story_points: Optional[float] = None
    priority: Optional[str] = None
    labels: List[str] = field(default_factory=list)
    created: Optional[str] = None
    updated: Optional[str] = None
    description: Optional[str] = None
    reporter: Optional[str] = None
    sprint: Optional[str] = None


@dataclass
class Comment:
    """A single comment on an issue"""
    author: str
    body: str
    created: str


@dataclass
class IssueDetail:
    """An issue together with its comment thread"""
    issue: Issue
    comments: List[Comment] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        issue = self.issue
        return {
            'key': issue.key,
            'summary': issue.summary,
            'description': issue.description,
            'status': issue.status,
            'priority': issue.priority,
            'issue_type': issue.issue_type,
            'assignee': issue.assignee,
            'assignee_display_name': issue.assignee_display_name,
            'reporter': issue.reporter,
            'created': issue.created,
            'updated': issue.updated,
            'labels': list(issue.labels),
            'sprint': issue.sprint,
            'story_points': issue.story_points,
            'comments': [
                {'author': c.author, 'body': c.body, 'created': c.created}
                for c in self.comments
            ],
        }


@dataclass
class SprintIssues:
    """Issues of one sprint as returned by the backend"""
    sprint_id: int
    issues: List[Issue] = field(default_factory=list)


@dataclass(frozen=True)
class BoardInfo:
    """Board metadata and its project linkage"""
    id: int
    name: str
    type: str
    project_key: str
    project_name: str


@dataclass(frozen=True)
class Transition:
    """A workflow transition available for an issue"""
    id: str
    name: str
    to_status: Optional[str] = None


@dataclass(frozen=True)
class CreatedIssue:
    """Result of creating an issue"""
    key: str
    url: str


@dataclass(frozen=True)
class CachedFacts:
    """
    Snapshot of board facts held by the fact cache.

    Replaced wholesale on every refresh; never mutated.
    """
    sprints: Tuple[Sprint, ...]
    statuses: Tuple[str, ...]
    team_members: Tuple[Member, ...]
    fetched_at: float


@dataclass
class ToolCall:
    """
    A tool invocation requested by the model

    arguments holds the raw text when the model sent something that is not
    valid JSON; it is rejected when the call is dispatched.
    """
    name: str
    arguments: Union[Dict[str, Any], str] = field(default_factory=dict)
    id: Optional[str] = None


@dataclass
class ChatMessage:
    """One role-tagged message of a conversation"""
    role: str
    content: str = ""
    tool_calls: Optional[List[ToolCall]] = None
    tool_call_id: Optional[str] = None
    name: Optional[str] = None


@dataclass
class ModelResponse:
    """What one completion round returned"""
    content: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
