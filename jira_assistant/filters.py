"""
Issue filter pipeline.

Each filter is a pure predicate over a single issue. The pipeline holds
only the filters that were actually requested and keeps an issue when
every one of them accepts it.
"""
import re
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

from .constants import StatusCategory
from .models import Issue

IssuePredicate = Callable[[Issue], bool]

_DIGITS = re.compile(r'(\d+)')


class AssigneeFilter:
    """Accept issues assigned to one of the given emails (case-insensitive)."""

    def __init__(self, emails: Iterable[str]):
        self.emails = {e.lower() for e in emails}

    def __call__(self, issue: Issue) -> bool:
        return bool(issue.assignee) and issue.assignee.lower() in self.emails


class StatusFilter:
    """
    Accept issues whose status matches any of the filter tokens.

    Tokens ``done``, ``in_progress`` and ``todo`` match a family of spellings;
    anything else is a case-insensitive exact status name.
    """

    def __init__(self, tokens: Iterable[str]):
        self.tokens = list(tokens)
        self._matchers: List[Union[StatusCategory, str]] = []
        for token in self.tokens:
            category = StatusCategory.from_filter(token)
            self._matchers.append(category if category else token.lower())

    def __call__(self, issue: Issue) -> bool:
        status = issue.status or ""
        for matcher in self._matchers:
            if isinstance(matcher, StatusCategory):
                if matcher.matches(status):
                    return True
            elif status.lower() == matcher:
                return True
        return False


class KeywordFilter:
    """Accept issues whose summary contains the keyword (case-insensitive)."""

    def __init__(self, keyword: str):
        self.keyword = keyword.lower()

    def __call__(self, issue: Issue) -> bool:
        return self.keyword in (issue.summary or "").lower()


class IssueFilterPipeline:
    """Sequential intersection of issue predicates."""

    def __init__(self, filters: Optional[Sequence[IssuePredicate]] = None):
        self.filters: List[IssuePredicate] = list(filters or [])

    def __len__(self) -> int:
        return len(self.filters)

    @classmethod
    def build(
        cls,
        assignee_emails: Optional[Sequence[str]] = None,
        status_filters: Optional[Sequence[str]] = None,
        keyword: Optional[str] = None
    ) -> "IssueFilterPipeline":
        """
        Build a pipeline from optional filter inputs.

        Empty or missing inputs add no filter at all.
        """
        filters: List[IssuePredicate] = []
        if assignee_emails:
            filters.append(AssigneeFilter(assignee_emails))
        if status_filters:
            filters.append(StatusFilter(status_filters))
        if keyword:
            filters.append(KeywordFilter(keyword))
        return cls(filters)

    def apply(self, issues: Iterable[Issue]) -> List[Issue]:
        """Filter issues, then sort them by key in natural order."""
        result = list(issues)
        for predicate in self.filters:
            result = [issue for issue in result if predicate(issue)]
        return sort_issues_by_key(result)


def natural_key(value: str) -> Tuple:
    """
    Sort key comparing digit runs numerically.

    ``"PRJ-9"`` sorts before ``"PRJ-10"``.
    """
    parts = _DIGITS.split(value or "")
    return tuple(
        (0, int(part), "") if part.isdigit() else (1, 0, part.lower())
        for part in parts
        if part != ""
    )


def sort_issues_by_key(issues: Iterable[Issue]) -> List[Issue]:
    return sorted(issues, key=lambda issue: natural_key(issue.key))
