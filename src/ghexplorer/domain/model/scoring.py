"""Derived metrics computed from enriched GitHub profiles and pull requests."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from ghexplorer.domain.model.enums import ContributorRole

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ghexplorer.domain.model.github import Contributor, MergeRequest

MAX_SCORE = 100
_DAYS_PER_YEAR = 365.25

type Tiers = Sequence[tuple[int, int]]

_REPO_TIERS: Tiers = ((100, 25), (50, 20), (20, 15), (5, 10))
_FOLLOWER_TIERS: Tiers = ((1000, 25), (500, 20), (100, 15), (10, 10))
_ACCOUNT_AGE_TIERS: Tiers = ((10, 20), (5, 15), (2, 10), (1, 5))

_LINES_CHANGED_TIERS: Tiers = ((1000, 40), (500, 30), (200, 20), (50, 10))
_FILES_CHANGED_TIERS: Tiers = ((20, 30), (10, 20), (5, 10))
_COMMIT_TIERS: Tiers = ((20, 20), (10, 15), (5, 10))


def _tier(value: float, tiers: Tiers, default: int) -> int:
    for threshold, points in tiers:
        if value > threshold:
            return points
    return default


def calculate_impact_score(contributor: Contributor, *, now: datetime | None = None) -> int:
    """Score a contributor profile between 0 and 100."""

    score = _tier(contributor.public_repos, _REPO_TIERS, 5)
    score += _tier(contributor.followers, _FOLLOWER_TIERS, 5)

    if contributor.account_created_at is not None:
        reference = now or datetime.now(UTC)
        age_years = (reference - contributor.account_created_at).days / _DAYS_PER_YEAR
        score += _tier(age_years, _ACCOUNT_AGE_TIERS, 0)

    profile_fields = (
        contributor.name,
        contributor.bio,
        contributor.location,
        contributor.company,
        contributor.blog,
        contributor.twitter_username,
    )
    score += 5 * sum(1 for value in profile_fields if value)

    return min(score, MAX_SCORE)


def classify_contributor_role(contributor: Contributor) -> ContributorRole:
    repos = contributor.public_repos
    followers = contributor.followers
    if repos > 100 and followers > 1000:
        return ContributorRole.PROJECT_LEAD
    if repos > 50 and followers > 500:
        return ContributorRole.MAINTAINER
    if repos > 20 and followers > 100:
        return ContributorRole.REGULAR_CONTRIBUTOR
    if repos > 5:
        return ContributorRole.OCCASIONAL_CONTRIBUTOR
    return ContributorRole.FIRST_TIME_CONTRIBUTOR


def _hours_between(start: datetime, end: datetime) -> float:
    return round((end - start).total_seconds() / 3600, 1)


def cycle_time_hours(merge_request: MergeRequest) -> float | None:
    """Hours from opening to merge, rounded to one decimal."""

    if merge_request.merged_at is None or merge_request.github_created_at is None:
        return None
    return _hours_between(merge_request.github_created_at, merge_request.merged_at)


def review_time_hours(merge_request: MergeRequest) -> float | None:
    """Hours from the last update before merge to the merge itself.

    ``updated_at`` stands in for the first review; a pull request never touched
    after creation has no review period.
    """

    created = merge_request.github_created_at
    updated = merge_request.github_updated_at
    merged = merge_request.merged_at
    if merged is None or created is None or updated is None:
        return None
    if updated == created:
        return 0.0
    return _hours_between(updated, merged)


def calculate_complexity_score(merge_request: MergeRequest) -> int:
    score = _tier(merge_request.additions + merge_request.deletions, _LINES_CHANGED_TIERS, 5)
    score += _tier(merge_request.changed_files, _FILES_CHANGED_TIERS, 5)
    score += _tier(merge_request.commits_count, _COMMIT_TIERS, 5)

    discussion = max(merge_request.comments, merge_request.review_comments)
    if discussion > 20:
        score += 10
    elif discussion > 10:
        score += 5

    return min(score, MAX_SCORE)
