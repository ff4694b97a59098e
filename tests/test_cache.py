"""
Unit tests for cache module.

Tests TTL-based validity, refresh contents, failure handling and statistics.
"""

import pytest
from unittest.mock import AsyncMock
from jira_assistant.cache import (
    FactCache,
    get_fact_cache,
    reset_fact_cache,
    DEFAULT_TTL_SECONDS
)
from jira_assistant.constants import SprintState
from jira_assistant.errors import ConfigurationError, TransientError
from jira_assistant.models import Issue, Sprint, SprintIssues


class FakeClock:
    """Settable clock."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


SPRINTS = [
    Sprint(id=4, name="Sprint 4", state=SprintState.FUTURE),
    Sprint(id=3, name="Sprint 3", state=SprintState.ACTIVE),
    Sprint(id=2, name="Sprint 2", state=SprintState.CLOSED),
    Sprint(id=1, name="Sprint 1", state=SprintState.CLOSED),
]

ISSUES = {
    4: [],
    3: [
        Issue(key="A-3", summary="s", status="In QA", assignee="zoe@acme.com", assignee_display_name="Zoe"),
        Issue(key="A-4", summary="s", status="Backlog"),
    ],
    2: [
        Issue(key="A-1", summary="s", status="Done", assignee="ana@acme.com", assignee_display_name="Ana"),
        Issue(key="A-2", summary="s", status="", assignee="bob@acme.com", assignee_display_name="Bob"),
    ],
    1: [
        Issue(key="A-0", summary="s", status="Done", assignee="ana@acme.com", assignee_display_name="Ana C."),
    ],
}


def make_client():
    client = AsyncMock()

    async def list_sprints(board_id, state="all", limit=20):
        return SPRINTS[:limit]

    async def get_sprint_issues(sprint_id, story_points_field=None):
        return SprintIssues(sprint_id=sprint_id, issues=ISSUES[sprint_id])

    client.list_sprints.side_effect = list_sprints
    client.get_sprint_issues.side_effect = get_sprint_issues
    return client


class TestFactCacheValidity:
    """Test TTL handling."""

    def test_empty_cache_is_invalid(self):
        """Test a new cache has no valid snapshot."""
        cache = FactCache(make_client(), board_id=10, clock=FakeClock())
        assert not cache.is_valid()
        assert cache.get_cache_info() == {'valid': False, 'age_seconds': None, 'expires_in_seconds': None}

    def test_default_ttl_is_seven_days(self):
        """Test default TTL."""
        assert DEFAULT_TTL_SECONDS == 7 * 24 * 60 * 60

    @pytest.mark.asyncio
    async def test_snapshot_reused_within_ttl(self):
        """Test reads inside the TTL do not hit the backend."""
        client = make_client()
        clock = FakeClock()
        cache = FactCache(client, board_id=10, ttl_seconds=100, clock=clock)

        first = await cache.get_all()
        clock.now += 99
        second = await cache.get_all()

        assert first is second
        assert cache.get_stats()['refreshes'] == 1
        assert cache.get_stats()['hits'] == 1

    @pytest.mark.asyncio
    async def test_snapshot_refreshed_after_ttl(self):
        """Test a read at or past the TTL refreshes."""
        client = make_client()
        clock = FakeClock()
        cache = FactCache(client, board_id=10, ttl_seconds=100, clock=clock)

        first = await cache.get_all()
        clock.now += 100
        assert not cache.is_valid()
        second = await cache.get_all()

        assert first is not second
        assert second.fetched_at == clock.now
        assert cache.get_stats()['refreshes'] == 2

    @pytest.mark.asyncio
    async def test_force_refresh_ignores_validity(self):
        """Test force_refresh always refetches."""
        cache = FactCache(make_client(), board_id=10, clock=FakeClock())
        first = await cache.get_all()
        second = await cache.force_refresh()
        assert first is not second

    @pytest.mark.asyncio
    async def test_cache_info(self):
        """Test age and expiry are reported."""
        clock = FakeClock()
        cache = FactCache(make_client(), board_id=10, ttl_seconds=100, clock=clock)
        await cache.get_all()
        clock.now += 40

        info = cache.get_cache_info()
        assert info == {'valid': True, 'age_seconds': 40, 'expires_in_seconds': 60}


class TestFactCacheRefresh:
    """Test refresh contents."""

    @pytest.mark.asyncio
    async def test_only_active_and_closed_sprints(self):
        """Test future sprints are hidden."""
        cache = FactCache(make_client(), board_id=10, clock=FakeClock())
        sprints = await cache.get_sprints()
        assert [s.id for s in sprints] == [3, 2, 1]

    @pytest.mark.asyncio
    async def test_fetch_limits(self):
        """Test 20 sprints are listed and 5 scanned for the roster."""
        client = make_client()
        cache = FactCache(client, board_id=10, clock=FakeClock())
        await cache.refresh()

        limits = sorted(call.args[2] for call in client.list_sprints.call_args_list)
        assert limits == [5, 20]
        assert all(call.args[0] == 10 for call in client.list_sprints.call_args_list)
        assert client.get_sprint_issues.call_count == 4

    @pytest.mark.asyncio
    async def test_statuses_sorted_and_distinct(self):
        """Test statuses are distinct, non-empty and sorted."""
        cache = FactCache(make_client(), board_id=10, clock=FakeClock())
        assert await cache.get_statuses() == ["Backlog", "Done", "In QA"]

    @pytest.mark.asyncio
    async def test_team_sorted_by_name_last_write_wins(self):
        """Test roster is keyed by email and sorted by display name."""
        cache = FactCache(make_client(), board_id=10, clock=FakeClock())
        team = await cache.get_team_members()

        assert [(m.name, m.email) for m in team] == [
            ("Ana C.", "ana@acme.com"),
            ("Bob", "bob@acme.com"),
            ("Zoe", "zoe@acme.com"),
        ]

    @pytest.mark.asyncio
    async def test_missing_board_id(self):
        """Test refresh without a board id is a configuration error."""
        client = make_client()
        cache = FactCache(client, board_id=None, clock=FakeClock())

        with pytest.raises(ConfigurationError, match="DEFAULT_BOARD_ID"):
            await cache.get_all()
        client.list_sprints.assert_not_called()

    @pytest.mark.asyncio
    async def test_backend_failure_keeps_previous_snapshot(self):
        """Test a failed refresh propagates and leaves the old snapshot."""
        client = make_client()
        clock = FakeClock()
        cache = FactCache(client, board_id=10, ttl_seconds=100, clock=clock)
        first = await cache.get_all()

        client.list_sprints.side_effect = TransientError(status_code=503)
        clock.now += 200

        with pytest.raises(TransientError):
            await cache.get_all()
        assert cache._facts is first

    @pytest.mark.asyncio
    async def test_snapshot_is_immutable(self):
        """Test callers cannot mutate the cached collections."""
        cache = FactCache(make_client(), board_id=10, clock=FakeClock())
        facts = await cache.get_all()
        assert isinstance(facts.sprints, tuple)
        assert isinstance(facts.team_members, tuple)

        sprints = await cache.get_sprints()
        sprints.clear()
        assert len(await cache.get_sprints()) == 3


class TestGlobalFactCache:
    """Test global cache accessor."""

    def setup_method(self):
        reset_fact_cache()

    def teardown_method(self):
        reset_fact_cache()

    def test_returns_same_instance(self):
        """Test the accessor returns a singleton."""
        client = make_client()
        first = get_fact_cache(client, 10)
        second = get_fact_cache()
        assert first is second
        assert first.board_id == 10

    def test_requires_client_on_first_call(self):
        """Test the first call needs a client."""
        with pytest.raises(ValueError):
            get_fact_cache()

    def test_reset(self):
        """Test reset drops the instance."""
        first = get_fact_cache(make_client(), 10)
        reset_fact_cache()
        assert get_fact_cache(make_client(), 11) is not first
