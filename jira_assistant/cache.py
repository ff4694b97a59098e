"""
Fact cache for board-level Jira data.

Holds one snapshot of sprints, status names and the team roster, valid for
a fixed TTL. Readers refresh transparently when the snapshot is missing or
expired. Refreshes are not de-duplicated: concurrent readers hitting an
expired snapshot may each refresh, and the last one to finish wins.
"""

import asyncio
import logging
import time
from typing import Any, Optional, Dict, List, Callable, Tuple

from .constants import Defaults, QueryLimits, VISIBLE_SPRINT_STATES
from .errors import ConfigurationError
from .models import CachedFacts, Sprint, Member

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = Defaults.CACHE_TTL_DAYS * 24 * 60 * 60


class FactCache:
    """
    TTL-bound snapshot of sprints, statuses and team members.

    Features:
    - Whole-snapshot replacement on refresh, never incremental merges
    - Concurrent sprint listing and roster scan during refresh
    - Cache statistics (hits, misses, refreshes)
    - Injectable clock for deterministic expiry
    """

    def __init__(
        self,
        client: Any,
        board_id: Optional[int],
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the fact cache.

        Args:
            client: Backend client exposing list_sprints and get_sprint_issues
            board_id: Board to read facts from; checked on every refresh
            ttl_seconds: Snapshot lifetime (default: 7 days)
            clock: Returns the current time in seconds
        """
        self.client = client
        self.board_id = board_id
        self.ttl_seconds = ttl_seconds
        self.clock = clock

        self._facts: Optional[CachedFacts] = None
        self._stats = {
            'hits': 0,
            'misses': 0,
            'refreshes': 0,
        }

    def is_valid(self) -> bool:
        """Check whether a snapshot exists and is younger than the TTL."""
        if self._facts is None:
            return False
        return self.clock() - self._facts.fetched_at < self.ttl_seconds

    async def get_all(self) -> CachedFacts:
        """
        Get the current snapshot, refreshing first if needed.

        Returns:
            CachedFacts snapshot
        """
        if self.is_valid():
            self._stats['hits'] += 1
            logger.debug(f"Fact cache hit (age: {self.clock() - self._facts.fetched_at:.1f}s)")
            return self._facts

        self._stats['misses'] += 1
        return await self.refresh()

    async def get_sprints(self) -> List[Sprint]:
        return list((await self.get_all()).sprints)

    async def get_statuses(self) -> List[str]:
        return list((await self.get_all()).statuses)

    async def get_team_members(self) -> List[Member]:
        return list((await self.get_all()).team_members)

    async def force_refresh(self) -> CachedFacts:
        """Refresh regardless of the current snapshot's age."""
        return await self.refresh()

    async def refresh(self) -> CachedFacts:
        """
        Fetch fresh facts from the backend and replace the snapshot.

        Raises:
            ConfigurationError: If no board id is configured
        """
        if not self.board_id:
            raise ConfigurationError("DEFAULT_BOARD_ID not configured in environment")

        board_id = self.board_id
        logger.info(f"Refreshing fact cache for board {board_id}")

        all_sprints, (statuses, team_members) = await asyncio.gather(
            self.client.list_sprints(board_id, "all", QueryLimits.CACHE_SPRINT_LIMIT),
            self._scan_statuses_and_team(board_id),
        )

        sprints = tuple(s for s in all_sprints if s.state in VISIBLE_SPRINT_STATES)

        facts = CachedFacts(
            sprints=sprints,
            statuses=statuses,
            team_members=team_members,
            fetched_at=self.clock(),
        )
        self._facts = facts
        self._stats['refreshes'] += 1

        logger.info(
            f"Fact cache refreshed: {len(sprints)} sprints, {len(statuses)} statuses, "
            f"{len(team_members)} team members"
        )
        return facts

    async def _scan_statuses_and_team(
        self,
        board_id: int
    ) -> Tuple[Tuple[str, ...], Tuple[Member, ...]]:
        """Derive status names and the roster from recent sprints' issues."""
        sprints = await self.client.list_sprints(board_id, "all", QueryLimits.ROSTER_SCAN_SPRINTS)
        results = await asyncio.gather(
            *(self.client.get_sprint_issues(sprint.id) for sprint in sprints)
        )

        statuses = set()
        members: Dict[str, str] = {}
        for sprint_issues in results:
            for issue in sprint_issues.issues:
                if issue.status:
                    statuses.add(issue.status)
                if issue.assignee and issue.assignee_display_name:
                    members[issue.assignee] = issue.assignee_display_name

        team = sorted(
            (Member(name=name, email=email) for email, name in members.items()),
            key=lambda m: m.name
        )
        return tuple(sorted(statuses)), tuple(team)

    def get_cache_info(self) -> Dict[str, Any]:
        """
        Describe the current snapshot.

        Returns:
            Dictionary with validity, age and time left, in seconds
        """
        if self._facts is None:
            return {'valid': False, 'age_seconds': None, 'expires_in_seconds': None}

        age = self.clock() - self._facts.fetched_at
        return {
            'valid': self.is_valid(),
            'age_seconds': round(age, 3),
            'expires_in_seconds': round(self.ttl_seconds - age, 3),
        }

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_requests = self._stats['hits'] + self._stats['misses']
        hit_rate = (
            (self._stats['hits'] / total_requests * 100)
            if total_requests > 0
            else 0
        )
        return {
            **self._stats,
            'hit_rate_percent': round(hit_rate, 2),
            'total_requests': total_requests,
        }


# Global fact cache instance
_fact_cache: Optional[FactCache] = None


def get_fact_cache(
    client: Any = None,
    board_id: Optional[int] = None,
    ttl_seconds: float = DEFAULT_TTL_SECONDS
) -> FactCache:
    """
    Get or create the process-wide fact cache.

    Args:
        client: Backend client (only used on first call)
        board_id: Board id (only used on first call)
        ttl_seconds: Snapshot lifetime (only used on first call)

    Returns:
        Global FactCache instance
    """
    global _fact_cache

    if _fact_cache is None:
        if client is None:
            raise ValueError("A backend client is required to create the fact cache")
        _fact_cache = FactCache(client, board_id, ttl_seconds=ttl_seconds)

    return _fact_cache


def reset_fact_cache() -> None:
    """Drop the process-wide fact cache (tests and reconfiguration)."""
    global _fact_cache
    _fact_cache = None
