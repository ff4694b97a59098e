"""
Service Manager for the Jira PM assistant
Builds the backend client, model client, fact cache, executor and orchestrator lazily from settings
"""
import logging
from typing import Any, Dict, Optional

from .cache import FactCache, get_fact_cache
from .config import Settings
from .executor import ToolExecutor
from .orchestrator import Orchestrator
from .prompts import generate_system_prompt
from .services.jira_client import JiraClient
from .services.llm_client import ChatCompletionClient

logger = logging.getLogger(__name__)


class ServiceManager:
    """
    Owns every long-lived component of the assistant

    Features:
    - Lazy-loading: each component is created on first access
    - One shared HTTP client per upstream (Jira, model endpoint)
    - Process-wide fact cache shared with anything else in the process
    - Usage statistics for health reporting

    Example:
        manager = ServiceManager(Settings.from_env())

        result = await manager.orchestrator.run(history)
        await manager.close()
    """

    def __init__(
        self,
        settings: Settings,
        jira_client: Optional[JiraClient] = None,
        llm_client: Optional[ChatCompletionClient] = None
    ):
        """
        Initialize service manager

        Args:
            settings: Loaded settings
            jira_client: Optional pre-built backend client
            llm_client: Optional pre-built model client
        """
        self.settings = settings

        self._jira_client = jira_client
        self._llm_client = llm_client
        self._fact_cache: Optional[FactCache] = None
        self._executor: Optional[ToolExecutor] = None
        self._orchestrator: Optional[Orchestrator] = None

        # Statistics
        self._component_creation_count = 0
        self._runs = 0

    @property
    def jira_client(self) -> JiraClient:
        if self._jira_client is None:
            self._jira_client = JiraClient.from_settings(self.settings)
            self._component_creation_count += 1
        return self._jira_client

    @property
    def llm_client(self) -> ChatCompletionClient:
        if self._llm_client is None:
            self._llm_client = ChatCompletionClient.from_settings(self.settings)
            self._component_creation_count += 1
        return self._llm_client

    @property
    def fact_cache(self) -> FactCache:
        if self._fact_cache is None:
            self._fact_cache = get_fact_cache(
                self.jira_client,
                self.settings.board_id,
                ttl_seconds=self.settings.cache_ttl_seconds,
            )
            self._component_creation_count += 1
        return self._fact_cache

    @property
    def executor(self) -> ToolExecutor:
        if self._executor is None:
            self._executor = ToolExecutor(self.jira_client, self.fact_cache, self.settings)
            self._component_creation_count += 1
        return self._executor

    @property
    def orchestrator(self) -> Orchestrator:
        if self._orchestrator is None:
            self._orchestrator = Orchestrator(
                complete=self.llm_client.complete,
                executor=self.executor,
                system_prompt=self.render_system_prompt,
                max_iterations=self.settings.max_tool_iterations,
                context_window=self.settings.context_window,
                stream=self.llm_client.stream,
            )
            self._component_creation_count += 1
        return self._orchestrator

    async def render_system_prompt(self) -> str:
        """Render the system prompt from the current (possibly refreshed) facts"""
        facts = await self.fact_cache.get_all()
        return generate_system_prompt(facts)

    async def ask(self, history):
        """Run one orchestration over the given conversation"""
        self._runs += 1
        return await self.orchestrator.run(history)

    async def close(self) -> None:
        """Close the HTTP clients that were created"""
        if self._jira_client is not None:
            await self._jira_client.close()
        if self._llm_client is not None:
            await self._llm_client.close()
        logger.info("Service manager closed")

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get service manager statistics

        Returns:
            Dictionary with usage statistics:
            - components_created: Number of lazily built components
            - orchestration_runs: Number of ask() calls
            - board_id: Configured board (None when missing)
            - project_key: Configured default project (None when missing)
            - cache: Fact cache statistics, when the cache exists
        """
        stats: Dict[str, Any] = {
            "components_created": self._component_creation_count,
            "orchestration_runs": self._runs,
            "board_id": self.settings.board_id,
            "project_key": self.settings.project_key,
        }
        if self._fact_cache is not None:
            stats["cache"] = self._fact_cache.get_stats()
        return stats

    def __repr__(self) -> str:
        """String representation for debugging"""
        return (
            f"ServiceManager(board={self.settings.board_id}, "
            f"components={self._component_creation_count})"
        )
