"""Frecency scoring: ranks repositories by visit count weighted by recency.

The buckets follow zoxide's scoring: a visit within the last hour is worth 16,
within a day 8, within a week 2, and anything older 1.
"""

from __future__ import annotations

import time

from gitdeck.models import Repository

HOUR_SECONDS = 60 * 60
DAY_SECONDS = 24 * HOUR_SECONDS
WEEK_SECONDS = 7 * DAY_SECONDS


def now() -> int:
    """Current time as epoch seconds."""
    return int(time.time())


def score(visit_count: int, seconds_since_last_visit: int) -> int:
    """Frecency score for a visit count and the time elapsed since the last visit."""
    if seconds_since_last_visit < HOUR_SECONDS:
        return visit_count * 16
    if seconds_since_last_visit < DAY_SECONDS:
        return visit_count * 8
    if seconds_since_last_visit < WEEK_SECONDS:
        return visit_count * 2
    return visit_count


def init_score(repo: Repository, timestamp: int | None = None) -> None:
    """Initialize the visit fields of a repository seen for the first time."""
    timestamp = now() if timestamp is None else timestamp
    repo.visit_count = 1
    repo.visit_time = timestamp
    repo.score = score(1, 0)


def update_on_visit(repo: Repository, timestamp: int | None = None) -> None:
    """Record a visit. Recency is measured against the previous visit time."""
    timestamp = now() if timestamp is None else timestamp
    delta = max(timestamp - repo.visit_time, 0)
    repo.visit_count += 1
    repo.visit_time = timestamp
    repo.score = score(repo.visit_count, delta)
