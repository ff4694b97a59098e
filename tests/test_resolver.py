"""
Unit tests for resolver module.

Tests two-pass name matching, strict and non-strict resolution.
"""

import pytest
from jira_assistant.models import Member
from jira_assistant.resolver import (
    match_members,
    resolve,
    NameResolutionError,
    NameNotFoundError,
    AmbiguousNameError
)


ROSTER = [
    Member(name="Ana Costa", email="ana.costa@acme.com"),
    Member(name="Daniel Souza", email="daniel.souza@acme.com"),
    Member(name="Daniel Lima", email="dlima@acme.com"),
    Member(name="John Smith", email="john@acme.com"),
]


class TestMatchMembers:
    """Test the two-pass matcher."""

    def test_all_tokens_pass(self):
        """Test pass one requires every token."""
        matches = match_members("daniel souza", ROSTER)
        assert [m.email for m in matches] == ["daniel.souza@acme.com"]

    def test_any_token_fallback(self):
        """Test pass two runs only when pass one finds nothing."""
        matches = match_members("Daniel Nobody", ROSTER)
        assert [m.email for m in matches] == ["daniel.souza@acme.com", "dlima@acme.com"]

    def test_matches_email(self):
        """Test tokens are matched against the email too."""
        matches = match_members("dlima", ROSTER)
        assert [m.name for m in matches] == ["Daniel Lima"]

    def test_roster_order_kept(self):
        """Test matches keep roster order."""
        matches = match_members("daniel", ROSTER)
        assert [m.name for m in matches] == ["Daniel Souza", "Daniel Lima"]

    def test_no_match(self):
        """Test an unknown name matches nobody."""
        assert match_members("zelda", ROSTER) == []

    def test_blank_input(self):
        """Test blank input matches nobody."""
        assert match_members("   ", ROSTER) == []


class TestResolveNonStrict:
    """Test non-strict resolution."""

    def test_email_passthrough(self):
        """Test anything with @ is only lower-cased."""
        assert resolve("Someone@Elsewhere.COM", ROSTER) == "someone@elsewhere.com"

    def test_unique_match(self):
        """Test a unique name resolves to its email."""
        assert resolve("John", ROSTER) == "john@acme.com"

    def test_ambiguous_takes_first(self):
        """Test ambiguity picks the first roster match."""
        assert resolve("Daniel", ROSTER) == "daniel.souza@acme.com"

    def test_unmatched_echoed(self):
        """Test an unknown name is echoed lower-cased."""
        assert resolve("Zelda", ROSTER) == "zelda"


class TestResolveStrict:
    """Test strict resolution."""

    def test_unique_match(self):
        """Test a unique name resolves."""
        assert resolve("ana", ROSTER, strict=True) == "ana.costa@acme.com"

    def test_not_found_lists_roster(self):
        """Test zero matches names the whole roster."""
        with pytest.raises(NameNotFoundError) as exc_info:
            resolve("Zelda", ROSTER, strict=True)

        assert exc_info.value.roster == [m.name for m in ROSTER]
        assert "John Smith" in str(exc_info.value)

    def test_ambiguous_lists_candidates(self):
        """Test several matches name every candidate."""
        with pytest.raises(AmbiguousNameError) as exc_info:
            resolve("Daniel", ROSTER, strict=True)

        assert exc_info.value.candidates == ["Daniel Souza", "Daniel Lima"]
        assert "Daniel Souza, Daniel Lima" in str(exc_info.value)

    def test_errors_share_base(self):
        """Test both failures are NameResolutionErrors."""
        with pytest.raises(NameResolutionError):
            resolve("Zelda", ROSTER, strict=True)
        with pytest.raises(NameResolutionError):
            resolve("Daniel", ROSTER, strict=True)

    def test_email_skips_lookup(self):
        """Test strict mode still passes emails through."""
        assert resolve("Nobody@Acme.com", ROSTER, strict=True) == "nobody@acme.com"
