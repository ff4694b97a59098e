"""
Jira PM Assistant MCP Server
Exposes sprint and issue tools plus a natural-language `ask` entry point backed by a tool-calling model
"""
from fastmcp import FastMCP, Context
from typing import Optional, List, Dict, Any
import os
import json
import logging
from datetime import datetime, timezone
from contextlib import asynccontextmanager
from dotenv import load_dotenv

from .config import Settings
from .models import ChatMessage, ToolCall
from .orchestrator import history_from_dicts
from .service_manager import ServiceManager
from .tools import ToolName

logger = logging.getLogger(__name__)

# Global service manager
# Initialized during lifespan startup
_service_manager: Optional[ServiceManager] = None


@asynccontextmanager
async def lifespan(app):
    """Initialize services on startup"""
    global _service_manager

    # Load environment variables from .env file
    load_dotenv()

    settings = Settings.from_env(load_dotenv_file=False)
    if settings.board_id is None:
        logger.warning("DEFAULT_BOARD_ID is not set; board-dependent tools will fail until it is")

    _service_manager = ServiceManager(settings)

    yield  # Server runs

    # Cleanup on shutdown
    await _service_manager.close()


# Initialize FastMCP server with lifespan
mcp = FastMCP(
    name="Jira PM Assistant",
    lifespan=lifespan
)


def _manager() -> ServiceManager:
    if _service_manager is None:
        raise RuntimeError("Service manager not initialized")
    return _service_manager


async def _run_tool(name: ToolName, arguments: Dict[str, Any]) -> Dict[str, Any]:
    # Drop unset optionals so the executor applies its own defaults
    arguments = {k: v for k, v in arguments.items() if v is not None}
    return await _manager().executor.execute(ToolCall(name=name.value, arguments=arguments))


# ============================================================================
# TOOLS (Domain tools, the same ones the model calls)
# ============================================================================

@mcp.tool()
async def prepare_search(
    names: Optional[List[str]] = None,
    sprint_ids: Optional[List[int]] = None,
    ctx: Context = None
) -> Dict[str, Any]:
    """
    Resolve people names to team member emails and pick the sprint scope.

    Args:
        names: Names to resolve. Omit for the whole team.
        sprint_ids: Sprint IDs. Omit for the active sprint.

    Returns:
        Dictionary with board, sprints and either people matches or all team emails
    """
    await ctx.info(f"Resolving {len(names or [])} name(s)...")
    return await _run_tool(ToolName.PREPARE_SEARCH, {'names': names, 'sprint_ids': sprint_ids})


@mcp.tool()
async def get_sprint_issues(
    sprint_ids: List[int],
    assignees: Optional[List[str]] = None,
    status_filters: Optional[List[str]] = None,
    keyword: Optional[str] = None,
    include_breakdown: bool = False,
    ctx: Context = None
) -> Dict[str, Any]:
    """
    Get issues from one or more sprints with optional filters.

    Args:
        sprint_ids: Sprint IDs on the configured board
        assignees: Assignee names or emails
        status_filters: Exact status names, or the groups "done", "in_progress", "todo"
        keyword: Case-insensitive text to look for in summaries
        include_breakdown: Add a per-assignee points/tasks breakdown

    Returns:
        Dictionary with totals, applied filters and issues grouped by sprint name
    """
    await ctx.info(f"Fetching issues for sprint(s): {sprint_ids}")
    result = await _run_tool(ToolName.GET_SPRINT_ISSUES, {
        'sprint_ids': sprint_ids,
        'assignees': assignees,
        'status_filters': status_filters,
        'keyword': keyword,
        'include_breakdown': include_breakdown,
    })
    await ctx.info(f"Found {result['total_issues']} issues")
    return result


@mcp.tool()
async def get_issue(issue_key: str, ctx: Context = None) -> Dict[str, Any]:
    """
    Get full details of an issue, including its comments.

    Args:
        issue_key: Issue key (e.g., "ODPP-1097")

    Returns:
        Issue fields and comment thread
    """
    await ctx.info(f"Fetching issue {issue_key}...")
    return await _run_tool(ToolName.GET_ISSUE, {'issue_key': issue_key})


@mcp.tool()
async def create_issue(
    summary: str,
    description: Optional[str] = None,
    issue_type: Optional[str] = None,
    assignee: Optional[str] = None,
    sprint_id: Optional[int] = None,
    story_points: Optional[float] = None,
    status: Optional[str] = None,
    ctx: Context = None
) -> Dict[str, Any]:
    """
    Create a new issue.

    Args:
        summary: Issue title
        description: Optional description
        issue_type: "Story" (default) or "Bug"
        assignee: Team member name; must match exactly one member
        sprint_id: Sprint to add the issue to
        story_points: Story point estimate
        status: Target status; the issue starts in Backlog

    Returns:
        Created issue key, URL and final field values
    """
    await ctx.info(f"Creating issue: {summary}")
    result = await _run_tool(ToolName.CREATE_ISSUE, {
        'summary': summary,
        'description': description,
        'issue_type': issue_type,
        'assignee': assignee,
        'sprint_id': sprint_id,
        'story_points': story_points,
        'status': status,
    })
    await ctx.info(f"Created {result['key']}")
    return result


@mcp.tool()
async def ask(
    question: str,
    history: Optional[List[Dict[str, str]]] = None,
    ctx: Context = None
) -> Dict[str, Any]:
    """
    Answer a natural-language project-management question.

    The model picks and calls the domain tools itself, then answers.

    Args:
        question: The current user question
        history: Earlier messages as [{"role": "user"|"assistant", "content": "..."}]

    Returns:
        Dictionary with answer, completion flag, tool responses and structured data
    """
    messages = history_from_dicts(history or [])
    messages.append(ChatMessage(role='user', content=question))

    await ctx.info("Asking the assistant...")
    result = await _manager().ask(messages)
    await ctx.info(f"Answered after {result.iterations} iteration(s)")
    return result.to_dict()


# ============================================================================
# CACHE TOOLS
# ============================================================================

@mcp.tool()
async def refresh_cache(ctx: Context = None) -> Dict[str, Any]:
    """
    Force a refresh of cached sprints, statuses and team members.

    Returns:
        Counts of refreshed facts and the new cache state
    """
    await ctx.info("Refreshing fact cache...")
    cache = _manager().fact_cache
    facts = await cache.force_refresh()
    return {
        "sprints": len(facts.sprints),
        "statuses": len(facts.statuses),
        "team_members": len(facts.team_members),
        "cache": cache.get_cache_info(),
    }


@mcp.tool()
async def get_cache_info(ctx: Context = None) -> Dict[str, Any]:
    """
    Describe the fact cache: validity, age and time until expiry.

    Returns:
        Cache info plus hit/miss statistics
    """
    cache = _manager().fact_cache
    return {**cache.get_cache_info(), "stats": cache.get_stats()}


# ============================================================================
# RESOURCES (Read-only data access)
# ============================================================================

@mcp.resource("sprints://available")
async def available_sprints_resource(ctx: Context = None) -> str:
    """
    Active and closed sprints of the configured board as JSON.
    """
    sprints = await _manager().fact_cache.get_sprints()
    return json.dumps([s.to_dict() for s in sprints], indent=2)


@mcp.resource("issue://{issue_key}")
async def issue_resource(issue_key: str, ctx: Context = None) -> str:
    """
    A single issue with comments as JSON.
    """
    result = await _run_tool(ToolName.GET_ISSUE, {'issue_key': issue_key})
    return json.dumps(result, indent=2, default=str)


# ============================================================================
# MONITORING TOOLS (Health and Statistics)
# ============================================================================

@mcp.tool()
async def health_check(ctx: Context = None) -> Dict[str, Any]:
    """
    Get server health status for monitoring.

    Returns configuration state, cache state and service statistics.
    Never calls Jira or the model endpoint.

    Returns:
        Dictionary with health status and configuration summary
    """
    try:
        manager = _manager()
        settings = manager.settings
        return {
            "status": "healthy",
            "service": "Jira PM Assistant",
            "jira_base_url": settings.jira_base_url,
            "jira_credentials": bool(settings.jira_email and settings.jira_api_token),
            "llm_configured": bool(settings.llm_api_key),
            "llm_model": settings.llm_model,
            "board_id": settings.board_id,
            "cache": manager.fact_cache.get_cache_info(),
            "service_manager": manager.get_statistics(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e)
        }


# Entry point for running the server
if __name__ == "__main__":
    # Support both STDIO and HTTP transports via configuration
    transport_mode = os.getenv("MCP_TRANSPORT", "http").lower()

    if transport_mode == "stdio":
        # STDIO mode for desktop clients
        import sys
        print("Starting MCP server in STDIO mode", file=sys.stderr)
        print("Server ready for JSON-RPC messages on stdin/stdout", file=sys.stderr)
        mcp.run()  # Default transport is stdio
    else:
        port = int(os.getenv("PORT", 8000))

        print(f"Starting MCP server with HTTP streaming on port {port}")
        print(f"Server URL: http://localhost:{port}/mcp")
        print("Health check: Use 'health_check' tool")

        mcp.run(transport="streamable-http", port=port, host="0.0.0.0")
