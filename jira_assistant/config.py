"""
Environment-driven settings for the Jira PM assistant.

Values are read when `Settings.from_env()` is called. Nothing here is
validated eagerly: a missing board id only fails the operation that needs it.
"""
import os
from dataclasses import dataclass
from typing import Optional, Mapping

from dotenv import load_dotenv

from .constants import Defaults, FieldNames
from .errors import ConfigurationError


def _get_int(env: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got '{raw}'")


@dataclass
class Settings:
    """Runtime configuration"""

    jira_base_url: str = Defaults.JIRA_BASE_URL
    jira_email: Optional[str] = None
    jira_api_token: Optional[str] = None
    board_id: Optional[int] = None
    project_key: Optional[str] = None
    story_points_field: str = FieldNames.DEFAULT_STORY_POINTS

    llm_api_key: Optional[str] = None
    llm_api_url: str = Defaults.LLM_API_URL
    llm_model: str = Defaults.LLM_MODEL
    max_output_tokens: int = Defaults.MAX_OUTPUT_TOKENS
    max_tool_iterations: int = Defaults.MAX_TOOL_ITERATIONS
    cache_ttl_days: int = Defaults.CACHE_TTL_DAYS
    context_window: int = Defaults.CONTEXT_WINDOW
    http_timeout_seconds: int = Defaults.HTTP_TIMEOUT_SECONDS

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_days * 24 * 60 * 60

    def require_board_id(self) -> int:
        """Return the configured board id or fail loudly."""
        if not self.board_id:
            raise ConfigurationError("DEFAULT_BOARD_ID not configured in environment")
        return self.board_id

    def browse_url(self, issue_key: str) -> str:
        return f"{self.jira_base_url}/browse/{issue_key}"

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        load_dotenv_file: bool = True
    ) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env: Mapping to read from (defaults to os.environ)
            load_dotenv_file: Load a .env file into os.environ first

        Returns:
            Settings instance
        """
        if env is None:
            if load_dotenv_file:
                load_dotenv()
            env = os.environ

        return cls(
            jira_base_url=(env.get("JIRA_BASE_URL") or Defaults.JIRA_BASE_URL).rstrip("/"),
            jira_email=env.get("JIRA_EMAIL"),
            jira_api_token=env.get("JIRA_API_TOKEN"),
            board_id=_get_int(env, "DEFAULT_BOARD_ID", None),
            project_key=env.get("DEFAULT_PROJECT_KEY") or None,
            story_points_field=env.get("JIRA_STORY_POINTS_FIELD") or FieldNames.DEFAULT_STORY_POINTS,
            llm_api_key=env.get("GROQ_API_KEY"),
            llm_api_url=env.get("GROQ_API_URL") or Defaults.LLM_API_URL,
            llm_model=env.get("GROQ_MODEL") or Defaults.LLM_MODEL,
            max_output_tokens=_get_int(env, "MAX_OUTPUT_TOKENS", Defaults.MAX_OUTPUT_TOKENS),
            max_tool_iterations=_get_int(env, "MAX_TOOL_ITERATIONS", Defaults.MAX_TOOL_ITERATIONS),
            cache_ttl_days=_get_int(env, "CACHE_TTL_DAYS", Defaults.CACHE_TTL_DAYS),
            context_window=_get_int(env, "CONTEXT_WINDOW", Defaults.CONTEXT_WINDOW),
            http_timeout_seconds=_get_int(env, "HTTP_TIMEOUT_SECONDS", Defaults.HTTP_TIMEOUT_SECONDS),
        )
