"""
Jira REST client
Thin async adapter over the Jira Cloud platform and agile REST APIs
"""
import asyncio
import logging
from typing import List, Dict, Any, Optional

import httpx

from ..config import Settings
from ..constants import (
    QueryLimits,
    FieldNames,
    Defaults,
    SprintState,
    SPRINT_ISSUE_FIELDS,
    DETAILED_ISSUE_FIELDS,
)
from ..decorators import handle_jira_error, log_execution
from ..errors import JiraAPIError
from ..log_sanitizer import sanitize_headers
from ..models import (
    Sprint,
    Issue,
    Comment,
    IssueDetail,
    SprintIssues,
    BoardInfo,
    Transition,
    CreatedIssue,
)

logger = logging.getLogger(__name__)

AGILE_API = "/rest/agile/1.0"
PLATFORM_API = "/rest/api/2"


class JiraClient:
    """Async client for the Jira operations the assistant needs"""

    def __init__(
        self,
        base_url: str,
        email: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout: int = Defaults.HTTP_TIMEOUT_SECONDS,
        story_points_field: str = FieldNames.DEFAULT_STORY_POINTS,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the Jira client

        Args:
            base_url: Jira site URL (e.g. https://your-domain.atlassian.net)
            email: Account email for basic auth
            api_token: Atlassian API token for basic auth
            timeout: Request timeout in seconds
            story_points_field: Custom field id holding story points
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.story_points_field = story_points_field
        self._auth = httpx.BasicAuth(email, api_token) if email and api_token else None
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "JiraClient":
        return cls(
            base_url=settings.jira_base_url,
            email=settings.jira_email,
            api_token=settings.jira_api_token,
            timeout=settings.http_timeout_seconds,
            story_points_field=settings.story_points_field,
            **kwargs
        )

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy load the HTTP client"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                auth=self._auth,
                timeout=httpx.Timeout(self.timeout),
                headers={"Accept": "application/json", "Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    def browse_url(self, issue_key: str) -> str:
        return f"{self.base_url}/browse/{issue_key}"

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None
    ) -> Any:
        response = await self.client.request(method, path, params=params, json=json)
        logger.debug(
            f"{method} {path} -> {response.status_code} "
            f"(headers: {sanitize_headers(response.request.headers)})"
        )
        response.raise_for_status()
        if not response.content:
            return {}
        return response.json()

    # ------------------------------------------------------------------
    # Boards and sprints
    # ------------------------------------------------------------------

    @handle_jira_error
    async def get_board_info(self, board_id: int) -> BoardInfo:
        """
        Get board metadata including its project

        Args:
            board_id: Agile board id

        Returns:
            BoardInfo
        """
        data = await self._request("GET", f"{AGILE_API}/board/{board_id}")
        location = data.get('location') or {}
        return BoardInfo(
            id=data.get('id', board_id),
            name=data.get('name', ''),
            type=data.get('type', ''),
            project_key=location.get('projectKey', ''),
            project_name=location.get('projectName') or location.get('name', ''),
        )

    @handle_jira_error
    @log_execution(level=logging.DEBUG, log_args=True)
    async def list_sprints(
        self,
        board_id: int,
        state: str = "all",
        limit: int = QueryLimits.CACHE_SPRINT_LIMIT
    ) -> List[Sprint]:
        """
        List the most recent sprints on a board

        The agile API pages sprints oldest-first without a total, so every
        page is read and the tail is returned newest-first.

        Args:
            board_id: Agile board id
            state: "all" or a comma-separated subset of future,active,closed
            limit: Maximum number of sprints to return

        Returns:
            Sprints ordered newest first
        """
        params: Dict[str, Any] = {'maxResults': QueryLimits.SPRINT_PAGE_SIZE}
        if state and state != "all":
            params['state'] = state

        raw: List[Dict[str, Any]] = []
        start_at = 0
        while True:
            params['startAt'] = start_at
            data = await self._request("GET", f"{AGILE_API}/board/{board_id}/sprint", params=params)
            values = data.get('values', [])
            raw.extend(values)
            if data.get('isLast', True) or not values:
                break
            start_at += len(values)

        recent = raw[-limit:] if limit else raw
        return [self._format_sprint(s) for s in reversed(recent)]

    @handle_jira_error
    async def get_sprint_issues(
        self,
        sprint_id: int,
        story_points_field: Optional[str] = None
    ) -> SprintIssues:
        """
        Get all issues in a sprint

        Args:
            sprint_id: Sprint id
            story_points_field: Custom field id for story points (defaults to
                the client's configured field)

        Returns:
            SprintIssues with assignee email and display name per issue
        """
        sp_field = story_points_field or self.story_points_field
        fields = ','.join([*SPRINT_ISSUE_FIELDS, sp_field])

        issues: List[Issue] = []
        start_at = 0
        while True:
            data = await self._request(
                "GET",
                f"{AGILE_API}/sprint/{sprint_id}/issue",
                params={
                    'startAt': start_at,
                    'maxResults': QueryLimits.SPRINT_ISSUE_LIMIT,
                    'fields': fields,
                },
            )
            page = data.get('issues', [])
            issues.extend(self._format_issue(raw, sp_field) for raw in page)
            start_at += len(page)
            if not page or start_at >= data.get('total', 0):
                break

        return SprintIssues(sprint_id=sprint_id, issues=issues)

    @handle_jira_error
    async def move_issues_to_sprint(self, sprint_id: int, issue_keys: List[str]) -> None:
        """Move issues into a sprint"""
        await self._request(
            "POST",
            f"{AGILE_API}/sprint/{sprint_id}/issue",
            json={'issues': list(issue_keys)},
        )

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    @handle_jira_error
    async def get_issue(self, issue_key: str) -> IssueDetail:
        """
        Get an issue with its comment thread

        Args:
            issue_key: Issue key (e.g. ODPP-1097)

        Returns:
            IssueDetail
        """
        fields = ','.join([*DETAILED_ISSUE_FIELDS, self.story_points_field])
        issue_data, comment_data = await asyncio.gather(
            self._request("GET", f"{AGILE_API}/issue/{issue_key}", params={'fields': fields}),
            self._request("GET", f"{PLATFORM_API}/issue/{issue_key}/comment"),
        )

        comments = [
            Comment(
                author=(c.get('author') or {}).get('displayName', ''),
                body=c.get('body', ''),
                created=c.get('created', ''),
            )
            for c in comment_data.get('comments', [])
        ]

        return IssueDetail(
            issue=self._format_issue(issue_data, self.story_points_field),
            comments=comments,
        )

    @handle_jira_error
    @log_execution(log_args=True)
    async def create_issue(
        self,
        project_key: str,
        summary: str,
        description: Optional[str] = None,
        issue_type: str = Defaults.ISSUE_TYPE,
        assignee_email: Optional[str] = None,
        story_points: Optional[float] = None
    ) -> CreatedIssue:
        """
        Create a new issue

        Args:
            project_key: Project key (e.g. ODPP)
            summary: Issue title
            description: Optional description
            issue_type: Issue type name (Story, Bug, Task, ...)
            assignee_email: Optional assignee email; looked up to an account id
            story_points: Optional estimate

        Returns:
            CreatedIssue with key and browse URL
        """
        fields: Dict[str, Any] = {
            FieldNames.PROJECT: {'key': project_key},
            FieldNames.SUMMARY: summary,
            FieldNames.ISSUE_TYPE: {'name': issue_type},
        }
        if description:
            fields[FieldNames.DESCRIPTION] = description
        if assignee_email:
            account_id = await self._find_account_id(assignee_email)
            fields[FieldNames.ASSIGNEE] = {'accountId': account_id}
        if story_points is not None:
            fields[self.story_points_field] = story_points

        data = await self._request("POST", f"{PLATFORM_API}/issue", json={'fields': fields})
        key = data['key']
        return CreatedIssue(key=key, url=self.browse_url(key))

    async def _find_account_id(self, email: str) -> str:
        """
        Look up the account id for an email.

        An exact email match wins. Jira hides emails under some privacy
        settings, so a lone search result is accepted as well.

        Raises:
            JiraAPIError: No account, or several accounts and none with that email
        """
        users = await self._request("GET", f"{PLATFORM_API}/user/search", params={'query': email}) or []
        for user in users:
            if (user.get('emailAddress') or '').lower() == email.lower():
                return user['accountId']
        if len(users) == 1:
            return users[0]['accountId']
        if not users:
            raise JiraAPIError(message=f"No Jira account found for {email}")
        raise JiraAPIError(
            message=(
                f"{len(users)} Jira accounts match {email} but none has that exact email. "
                "Ask the user which team member to assign."
            )
        )

    @handle_jira_error
    async def get_transitions(self, issue_key: str) -> List[Transition]:
        """List workflow transitions currently available for an issue"""
        data = await self._request("GET", f"{PLATFORM_API}/issue/{issue_key}/transitions")
        return [
            Transition(
                id=str(t.get('id')),
                name=t.get('name', ''),
                to_status=(t.get('to') or {}).get('name'),
            )
            for t in data.get('transitions', [])
        ]

    @handle_jira_error
    async def transition_issue(self, issue_key: str, transition_id: str) -> None:
        """Execute a workflow transition"""
        await self._request(
            "POST",
            f"{PLATFORM_API}/issue/{issue_key}/transitions",
            json={'transition': {'id': transition_id}},
        )

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    @staticmethod
    def _format_sprint(raw: Dict[str, Any]) -> Sprint:
        return Sprint(
            id=raw['id'],
            name=raw.get('name', f"Sprint {raw['id']}"),
            state=SprintState.parse(raw.get('state', '')),
            start_date=raw.get('startDate'),
            end_date=raw.get('endDate'),
            goal=raw.get('goal') or None,
        )

    @staticmethod
    def _format_issue(raw: Dict[str, Any], story_points_field: str) -> Issue:
        fields = raw.get('fields') or {}
        assignee = fields.get(FieldNames.ASSIGNEE) or {}
        reporter = fields.get(FieldNames.REPORTER) or {}
        sprint = fields.get(FieldNames.SPRINT) or {}
        points = fields.get(story_points_field)

        return Issue(
            key=raw.get('key', ''),
            summary=fields.get(FieldNames.SUMMARY) or '',
            status=(fields.get(FieldNames.STATUS) or {}).get('name', ''),
            issue_type=(fields.get(FieldNames.ISSUE_TYPE) or {}).get('name', ''),
            assignee=(assignee.get('emailAddress') or None),
            assignee_display_name=assignee.get('displayName'),
            story_points=points if isinstance(points, (int, float)) else None,
            priority=(fields.get(FieldNames.PRIORITY) or {}).get('name'),
            labels=list(fields.get(FieldNames.LABELS) or []),
            created=fields.get(FieldNames.CREATED),
            updated=fields.get(FieldNames.UPDATED),
            description=fields.get(FieldNames.DESCRIPTION),
            reporter=reporter.get('displayName'),
            sprint=sprint.get('name'),
        )
