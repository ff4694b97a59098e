"""
Name resolution: free-text person references to roster emails.

Matching is two-pass substring search over lower-cased display names and
emails. The first pass requires every token to match; only if nothing
matches does the second pass accept members matching any token. Matches
keep roster order, so the first match is stable for a given roster.
"""
import logging
from typing import List, Sequence

from .models import Member

logger = logging.getLogger(__name__)


class NameResolutionError(Exception):
    """Base class for strict resolution failures."""
    pass


class NameNotFoundError(NameResolutionError):
    """No roster member matches the name."""

    def __init__(self, name: str, roster: Sequence[Member]):
        self.name = name
        self.roster = [m.name for m in roster]
        super().__init__(
            f"Could not find team member matching '{name}'. "
            f"Available team members: {', '.join(self.roster) or 'none'}"
        )


class AmbiguousNameError(NameResolutionError):
    """More than one roster member matches the name."""

    def __init__(self, name: str, candidates: Sequence[Member]):
        self.name = name
        self.candidates = [m.name for m in candidates]
        super().__init__(
            f"Multiple team members match '{name}': {', '.join(self.candidates)}. "
            "Please ask the user which one they mean."
        )


def _member_matches(member: Member, token: str) -> bool:
    return token in member.name.lower() or token in member.email.lower()


def match_members(name: str, roster: Sequence[Member]) -> List[Member]:
    """
    Find roster members matching a free-text name.

    Args:
        name: Name fragment(s) as typed by the user
        roster: Team members in roster order

    Returns:
        Matching members in roster order (possibly empty)
    """
    tokens = name.lower().split()
    if not tokens:
        return []

    matches = [m for m in roster if all(_member_matches(m, t) for t in tokens)]
    if not matches:
        matches = [m for m in roster if any(_member_matches(m, t) for t in tokens)]

    return matches


def resolve(name: str, roster: Sequence[Member], strict: bool = False) -> str:
    """
    Resolve a name or email to a roster email.

    Anything containing "@" is taken as an email and only lower-cased.

    Args:
        name: Name or email
        roster: Team members
        strict: Fail on zero or multiple matches instead of guessing

    Returns:
        Lower-cased email. In non-strict mode an unmatched name is echoed
        back lower-cased.

    Raises:
        NameNotFoundError: strict mode, no match
        AmbiguousNameError: strict mode, more than one match
    """
    if "@" in name:
        return name.lower()

    matches = match_members(name, roster)

    if strict:
        if not matches:
            raise NameNotFoundError(name, roster)
        if len(matches) > 1:
            raise AmbiguousNameError(name, matches)
        return matches[0].email.lower()

    if not matches:
        logger.debug(f"No roster match for '{name}', passing it through")
        return name.lower()

    return matches[0].email.lower()
