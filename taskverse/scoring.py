"""
Points, levels, badge unlocks and leaderboard ranking.

Pure functions over records; nothing here touches the database.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, Optional, Sequence

from taskverse.db import BadgeRecord, SubmissionRecord, SubmissionStatus

POINTS_PER_LEVEL = 100


class RequirementType:
    TASKS_COMPLETED = "tasks_completed"
    POINTS = "points"
    AVERAGE_RATING = "average_rating"
    CATEGORY_TASKS = "category_tasks"
    DISTINCT_BUSINESSES = "distinct_businesses"


DEFAULT_BADGES: list[BadgeRecord] = [
    BadgeRecord(
        id="first-task",
        name="First Task",
        description="Complete your first task",
        icon="🎯",
        requirement_type=RequirementType.TASKS_COMPLETED,
        requirement_value=1,
    ),
    BadgeRecord(
        id="top-rated",
        name="Top Rated",
        description="Maintain 4.5+ average rating",
        icon="⭐",
        requirement_type=RequirementType.AVERAGE_RATING,
        requirement_value=4.5,
    ),
    BadgeRecord(
        id="fast-learner",
        name="Fast Learner",
        description="Complete 5 tasks",
        icon="⚡",
        requirement_type=RequirementType.TASKS_COMPLETED,
        requirement_value=5,
    ),
    BadgeRecord(
        id="team-player",
        name="Team Player",
        description="Work with 5 different businesses",
        icon="🤝",
        requirement_type=RequirementType.DISTINCT_BUSINESSES,
        requirement_value=5,
    ),
    BadgeRecord(
        id="specialist",
        name="Specialist",
        description="Complete 10 tasks in one category",
        icon="🏆",
        requirement_type=RequirementType.CATEGORY_TASKS,
        requirement_value=10,
    ),
    BadgeRecord(
        id="point-master",
        name="Point Master",
        description="Earn 500 points",
        icon="💎",
        requirement_type=RequirementType.POINTS,
        requirement_value=500,
    ),
]


def level_for_points(points: int) -> int:
    """Level 1 covers 0-99 points, level 2 covers 100-199, and so on."""
    return max(points or 0, 0) // POINTS_PER_LEVEL + 1


@dataclass
class LevelProgress:
    current_points: int
    level: int
    points_into_level: int
    points_for_next_level: int
    points_remaining: int
    percent: float


def level_progress(points: Optional[int], level: Optional[int]) -> LevelProgress:
    """
    Progress towards the next level as shown on the intern dashboard.

    The bar fills with ``points % 100`` against a target of ``level * 100``,
    so the percentage only reaches 100 at level 1.
    """
    current_points = points or 0
    current_level = level or 1
    into_level = current_points % POINTS_PER_LEVEL
    target = current_level * POINTS_PER_LEVEL
    return LevelProgress(
        current_points=current_points,
        level=current_level,
        points_into_level=into_level,
        points_for_next_level=target,
        points_remaining=target - into_level,
        percent=into_level / target * 100,
    )


@dataclass
class InternStats:
    points: int = 0
    tasks_completed: int = 0
    average_rating: Optional[float] = None
    max_category_tasks: int = 0
    distinct_businesses: int = 0


def compute_intern_stats(
    points: int,
    submissions: Iterable[SubmissionRecord],
    task_categories: dict[str, str],
    task_owners: dict[str, str],
) -> InternStats:
    """
    Aggregate an intern's approved submissions.

    ``task_categories`` and ``task_owners`` map task ids to the task's category
    and owning business id.
    """
    approved = [s for s in submissions if s.status == SubmissionStatus.APPROVED.value]
    ratings = [s.rating for s in approved if s.rating]
    per_category: dict[str, int] = {}
    for submission in approved:
        category = task_categories.get(submission.task_id)
        if category:
            per_category[category] = per_category.get(category, 0) + 1
    businesses = {
        task_owners[s.task_id] for s in approved if s.task_id in task_owners
    }
    return InternStats(
        points=points or 0,
        tasks_completed=len(approved),
        average_rating=sum(ratings) / len(ratings) if ratings else None,
        max_category_tasks=max(per_category.values(), default=0),
        distinct_businesses=len(businesses),
    )


def badge_requirement_met(badge: BadgeRecord, stats: InternStats) -> bool:
    value = badge.requirement_value
    kind = badge.requirement_type
    if kind == RequirementType.TASKS_COMPLETED:
        return stats.tasks_completed >= value
    if kind == RequirementType.POINTS:
        return stats.points >= value
    if kind == RequirementType.AVERAGE_RATING:
        return stats.average_rating is not None and stats.average_rating >= value
    if kind == RequirementType.CATEGORY_TASKS:
        return stats.max_category_tasks >= value
    if kind == RequirementType.DISTINCT_BUSINESSES:
        return stats.distinct_businesses >= value
    return False


def compute_unlocked_badges(
    badges: Iterable[BadgeRecord], stats: InternStats
) -> set[str]:
    """Ids of every badge whose requirement the stats satisfy."""
    return {badge.id for badge in badges if badge_requirement_met(badge, stats)}


def next_badge(
    badges: Sequence[BadgeRecord], unlocked_ids: set[str]
) -> Optional[BadgeRecord]:
    for badge in badges:
        if badge.id not in unlocked_ids:
            return badge
    return None


@dataclass
class LeaderboardEntry:
    intern_id: str
    name: str
    points: int = 0
    level: int = 1
    tasks_completed: int = 0
    badges: int = 0
    rank: int = 0


def rank_leaderboard(entries: Iterable[LeaderboardEntry]) -> list[LeaderboardEntry]:
    """
    Sort by points, then badges, then tasks completed (all descending) and
    assign ranks 1..n. Full ties keep their incoming order.
    """
    ordered = sorted(
        entries,
        key=lambda e: (e.points, e.badges, e.tasks_completed),
        reverse=True,
    )
    return [replace(entry, rank=index + 1) for index, entry in enumerate(ordered)]


def find_rank(
    leaderboard: Sequence[LeaderboardEntry],
    intern_id: str,
    fallback: LeaderboardEntry,
) -> LeaderboardEntry:
    """
    The intern's own entry, or ``fallback`` ranked just below the list when
    the intern is not on it.
    """
    for entry in leaderboard:
        if entry.intern_id == intern_id:
            return entry
    return replace(fallback, rank=len(leaderboard) + 1)
