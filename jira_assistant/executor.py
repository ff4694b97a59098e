"""
Tool executor.

Stateless dispatch of model tool calls to their handlers. Each handler
reads the fact cache and the backend, and returns a plain dict result
that is serialised into the conversation as-is.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from .cache import FactCache
from .config import Settings
from .constants import Defaults, QueryLimits, SprintState
from .decorators import PerformanceMonitor
from .errors import TransitionNotAvailableError
from .filters import IssueFilterPipeline
from .models import Issue, Member, Sprint, ToolCall
from .resolver import match_members, resolve
from .tools import (
    ToolName,
    PrepareSearchArgs,
    GetSprintIssuesArgs,
    GetIssueArgs,
    CreateIssueArgs,
    parse_arguments,
)
from .validation import validate_sprint_ids

logger = logging.getLogger(__name__)


def sprint_label(sprints: Sequence[Sprint], sprint_id: int) -> str:
    """Name of a sprint by id, or a generic label when it is not listed."""
    for sprint in sprints:
        if sprint.id == sprint_id:
            return sprint.name
    return f"Sprint {sprint_id}"


class ToolExecutor:
    """
    Executes tool calls against the fact cache and the Jira backend.

    Example:
        executor = ToolExecutor(jira_client, fact_cache, settings)
        result = await executor.execute(ToolCall("get_issue", {"issue_key": "ODPP-1"}))
    """

    def __init__(self, client: Any, fact_cache: FactCache, settings: Settings):
        self.client = client
        self.fact_cache = fact_cache
        self.settings = settings

        self._handlers = {
            ToolName.PREPARE_SEARCH: self.prepare_search,
            ToolName.GET_SPRINT_ISSUES: self.get_sprint_issues,
            ToolName.GET_ISSUE: self.get_issue,
            ToolName.CREATE_ISSUE: self.create_issue,
        }

    async def execute(self, tool_call: ToolCall) -> Dict[str, Any]:
        """
        Parse and run one tool call.

        Raises:
            UnknownToolError: Tool name is not registered
            ValidationError: Bad arguments or sprint ids
            ConfigurationError: Board id missing
            NameResolutionError: Strict assignee resolution failed
            JiraAPIError: Backend failure
        """
        args = parse_arguments(tool_call.name, tool_call.arguments)
        tool = ToolName.parse(tool_call.name)
        logger.info(f"Executing tool {tool.value}")

        async with PerformanceMonitor(f"tool:{tool.value}", warn_threshold_ms=5000):
            return await self._handlers[tool](args)

    # ------------------------------------------------------------------
    # prepare_search
    # ------------------------------------------------------------------

    async def prepare_search(self, args: PrepareSearchArgs) -> Dict[str, Any]:
        """Resolve people names to emails and pin down the sprint scope."""
        board_id = self.settings.require_board_id()

        board, all_sprints, team = await asyncio.gather(
            self.client.get_board_info(board_id),
            self.client.list_sprints(board_id, "all", QueryLimits.BOARD_SPRINT_LIMIT),
            self.fact_cache.get_team_members(),
        )

        if args.sprint_ids:
            validate_sprint_ids(args.sprint_ids, all_sprints)
            by_id = {s.id: s for s in all_sprints}
            scope = [by_id[sprint_id] for sprint_id in dict.fromkeys(args.sprint_ids)]
        else:
            active = next((s for s in all_sprints if s.state == SprintState.ACTIVE), None)
            scope = [active] if active else list(all_sprints[:1])

        result: Dict[str, Any] = {
            'board': {'name': board.name, 'project_name': board.project_name},
            'sprints': [
                {'id': s.id, 'name': s.name, 'state': s.state.value} for s in scope
            ],
        }

        if not args.names:
            result['all_team'] = True
            result['team_members'] = [m.email for m in team]
            return result

        result['all_team'] = False
        result['people'] = [self._describe_match(name, team) for name in args.names]
        return result

    @staticmethod
    def _describe_match(name: str, team: Sequence[Member]) -> Dict[str, Any]:
        emails = [m.email for m in match_members(name, team)]
        return {
            'name': name,
            'resolved_email': emails[0] if len(emails) == 1 else None,
            'possible_matches': emails if len(emails) > 1 else [],
            'not_found': not emails,
        }

    # ------------------------------------------------------------------
    # get_sprint_issues
    # ------------------------------------------------------------------

    async def get_sprint_issues(self, args: GetSprintIssuesArgs) -> Dict[str, Any]:
        """List, filter and aggregate issues across sprints."""
        board_id = self.settings.require_board_id()
        # Each sprint is counted once, in request order
        sprint_ids = list(dict.fromkeys(args.sprint_ids))

        board_sprints, team = await asyncio.gather(
            self.client.list_sprints(board_id, "all", QueryLimits.BOARD_SPRINT_LIMIT),
            self.fact_cache.get_team_members(),
        )
        validate_sprint_ids(sprint_ids, board_sprints)

        resolved_emails: Optional[List[str]] = None
        if args.assignees:
            resolved_emails = [resolve(name, team) for name in args.assignees]

        pipeline = IssueFilterPipeline.build(
            assignee_emails=resolved_emails,
            status_filters=args.status_filters,
            keyword=args.keyword,
        )

        sprint_results = await asyncio.gather(
            *(self.client.get_sprint_issues(sprint_id) for sprint_id in sprint_ids)
        )

        total_issues = 0
        total_points = 0
        sprints: Dict[str, Dict[str, Any]] = {}
        breakdown: List[Dict[str, Any]] = []

        for sprint_id, sprint_issues in zip(sprint_ids, sprint_results):
            name = sprint_label(board_sprints, sprint_id)
            issues = pipeline.apply(sprint_issues.issues)

            total_issues += len(issues)
            total_points += sum(issue.story_points or 0 for issue in issues)
            sprints[name] = {
                'issue_count': len(issues),
                'issues': [self._format_issue(issue) for issue in issues],
            }
            if args.include_breakdown:
                breakdown.append(self._build_breakdown(name, issues, team))

        result: Dict[str, Any] = {
            'total_issues': total_issues,
            'total_story_points': total_points,
            'filters_applied': {
                'sprint_ids': sprint_ids,
                'assignees': resolved_emails,
                'status_filters': args.status_filters,
                'keyword': args.keyword,
            },
            'sprints': sprints,
        }
        if args.include_breakdown:
            result['breakdown'] = breakdown

        logger.info(
            f"get_sprint_issues: {total_issues} issues across {len(sprint_ids)} sprint(s) "
            f"after {len(pipeline)} filter(s)"
        )
        return result

    def _format_issue(self, issue: Issue) -> Dict[str, Any]:
        return {
            'key': issue.key,
            'key_link': f"[{issue.key}]({self.settings.browse_url(issue.key)})",
            'summary': issue.summary,
            'status': issue.status,
            'assignee': issue.assignee,
            'story_points': issue.story_points,
        }

    @staticmethod
    def _build_breakdown(
        sprint_name: str,
        issues: Sequence[Issue],
        team: Sequence[Member]
    ) -> Dict[str, Any]:
        names = {m.email.lower(): m.name for m in team}
        stats: Dict[str, Dict[str, Any]] = {}

        for issue in issues:
            email = issue.assignee.lower() if issue.assignee else ""
            entry = stats.get(email)
            if entry is None:
                if email:
                    display = names.get(email) or issue.assignee
                else:
                    display = "Unassigned"
                entry = stats[email] = {'name': display, 'email': email, 'points': 0, 'tasks': 0}
            entry['points'] += issue.story_points or 0
            entry['tasks'] += 1

        assignees = sorted(stats.values(), key=lambda e: (-e['points'], e['name']))
        return {
            'type': 'assignee_breakdown',
            'sprint_name': sprint_name,
            'total_points': sum(e['points'] for e in assignees),
            'total_tasks': len(issues),
            'assignees': assignees,
        }

    # ------------------------------------------------------------------
    # get_issue
    # ------------------------------------------------------------------

    async def get_issue(self, args: GetIssueArgs) -> Dict[str, Any]:
        """Fetch one issue with its comments."""
        detail = await self.client.get_issue(issue_key=args.issue_key)
        return detail.to_dict()

    # ------------------------------------------------------------------
    # create_issue
    # ------------------------------------------------------------------

    async def create_issue(self, args: CreateIssueArgs) -> Dict[str, Any]:
        """
        Create an issue, optionally placing it in a sprint and a status.

        The assignee must resolve to exactly one team member before anything
        is created. A failed status transition leaves the issue in place.
        """
        board_id = self.settings.require_board_id()

        assignee_email: Optional[str] = None
        if args.assignee:
            team = await self.fact_cache.get_team_members()
            assignee_email = resolve(args.assignee, team, strict=True)

        project_key = self.settings.project_key
        if not project_key:
            project_key = (await self.client.get_board_info(board_id)).project_key

        created = await self.client.create_issue(
            project_key=project_key,
            summary=args.summary,
            description=args.description,
            issue_type=args.issue_type,
            assignee_email=assignee_email,
            story_points=args.story_points,
        )
        logger.info(f"Created issue {created.key} in project {project_key}")

        sprint_name: Optional[str] = None
        if args.sprint_id is not None:
            await self.client.move_issues_to_sprint(args.sprint_id, [created.key])
            sprints = await self.client.list_sprints(board_id, "all", QueryLimits.BOARD_SPRINT_LIMIT)
            sprint_name = sprint_label(sprints, args.sprint_id)

        status = Defaults.INITIAL_STATUS
        if args.status and args.status.lower() != Defaults.INITIAL_STATUS.lower():
            transitions = await self.client.get_transitions(issue_key=created.key)
            wanted = args.status.lower()
            match = next((t for t in transitions if t.name.lower() == wanted), None)
            if match is None:
                raise TransitionNotAvailableError(
                    created.key, args.status, [t.name for t in transitions]
                )
            await self.client.transition_issue(created.key, match.id)
            status = match.name

        return {
            'key': created.key,
            'url': created.url,
            'summary': args.summary,
            'issue_type': args.issue_type,
            'assignee': assignee_email,
            'sprint': sprint_name,
            'story_points': args.story_points,
            'status': status,
        }
