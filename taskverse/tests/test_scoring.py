import unittest

from taskverse.db import BadgeRecord, SubmissionRecord, SubmissionStatus
from taskverse.scoring import (
    DEFAULT_BADGES,
    InternStats,
    LeaderboardEntry,
    RequirementType,
    badge_requirement_met,
    compute_intern_stats,
    compute_unlocked_badges,
    find_rank,
    level_for_points,
    level_progress,
    next_badge,
    rank_leaderboard,
)


def _approved(task_id, rating=5):
    return SubmissionRecord(
        task_id=task_id,
        intern_id="intern-1",
        description="done",
        submitted_date="2024-01-01",
        status=SubmissionStatus.APPROVED.value,
        rating=rating,
    )


class LevelTests(unittest.TestCase):
    def test_level_for_points(self):
        self.assertEqual(level_for_points(0), 1)
        self.assertEqual(level_for_points(99), 1)
        self.assertEqual(level_for_points(100), 2)
        self.assertEqual(level_for_points(250), 3)
        self.assertEqual(level_for_points(None), 1)

    def test_level_progress_matches_dashboard(self):
        progress = level_progress(250, 3)
        self.assertEqual(progress.points_into_level, 50)
        self.assertEqual(progress.points_for_next_level, 300)
        self.assertEqual(progress.points_remaining, 250)
        self.assertAlmostEqual(progress.percent, 50 / 300 * 100)

    def test_level_progress_defaults_for_new_profile(self):
        progress = level_progress(None, None)
        self.assertEqual(progress.level, 1)
        self.assertEqual(progress.current_points, 0)
        self.assertEqual(progress.percent, 0)


class BadgeTests(unittest.TestCase):
    def test_default_catalog_ids(self):
        self.assertEqual(
            [b.id for b in DEFAULT_BADGES],
            [
                "first-task",
                "top-rated",
                "fast-learner",
                "team-player",
                "specialist",
                "point-master",
            ],
        )

    def test_compute_intern_stats(self):
        submissions = [_approved("t1", 5), _approved("t2", 4), _approved("t3", 3)]
        submissions.append(
            SubmissionRecord(
                task_id="t4",
                intern_id="intern-1",
                description="wip",
                submitted_date="2024-01-02",
            )
        )
        stats = compute_intern_stats(
            120,
            submissions,
            task_categories={"t1": "Design", "t2": "Design", "t3": "Writing"},
            task_owners={"t1": "b1", "t2": "b2", "t3": "b2"},
        )
        self.assertEqual(stats.points, 120)
        self.assertEqual(stats.tasks_completed, 3)
        self.assertAlmostEqual(stats.average_rating, 4.0)
        self.assertEqual(stats.max_category_tasks, 2)
        self.assertEqual(stats.distinct_businesses, 2)

    def test_requirements(self):
        stats = InternStats(
            points=500,
            tasks_completed=1,
            average_rating=4.5,
            max_category_tasks=1,
            distinct_businesses=1,
        )
        unlocked = compute_unlocked_badges(DEFAULT_BADGES, stats)
        self.assertEqual(unlocked, {"first-task", "top-rated", "point-master"})

    def test_rating_badge_needs_ratings(self):
        badge = BadgeRecord(
            id="rated",
            name="Rated",
            description="",
            icon="*",
            requirement_type=RequirementType.AVERAGE_RATING,
            requirement_value=1,
        )
        self.assertFalse(badge_requirement_met(badge, InternStats()))

    def test_unknown_requirement_is_never_met(self):
        badge = BadgeRecord(
            id="mystery",
            name="Mystery",
            description="",
            icon="?",
            requirement_type="streak_days",
            requirement_value=0,
        )
        self.assertFalse(badge_requirement_met(badge, InternStats(points=1000)))

    def test_next_badge_skips_unlocked(self):
        self.assertEqual(next_badge(DEFAULT_BADGES, {"first-task"}).id, "top-rated")
        self.assertIsNone(next_badge(DEFAULT_BADGES, {b.id for b in DEFAULT_BADGES}))


class LeaderboardTests(unittest.TestCase):
    def test_rank_orders_by_points_then_badges_then_tasks(self):
        entries = [
            LeaderboardEntry(intern_id="a", name="A", points=100, badges=1),
            LeaderboardEntry(intern_id="b", name="B", points=300),
            LeaderboardEntry(intern_id="c", name="C", points=100, badges=2),
            LeaderboardEntry(
                intern_id="d", name="D", points=100, badges=1, tasks_completed=3
            ),
        ]
        ranked = rank_leaderboard(entries)
        self.assertEqual([e.intern_id for e in ranked], ["b", "c", "d", "a"])
        self.assertEqual([e.rank for e in ranked], [1, 2, 3, 4])

    def test_full_ties_keep_incoming_order(self):
        ranked = rank_leaderboard(
            [
                LeaderboardEntry(intern_id="x", name="X", points=50, badges=1),
                LeaderboardEntry(intern_id="y", name="Y", points=50, badges=1),
            ]
        )
        self.assertEqual([e.intern_id for e in ranked], ["x", "y"])
        self.assertEqual([e.rank for e in ranked], [1, 2])

    def test_find_rank_falls_back_below_list(self):
        ranked = rank_leaderboard(
            [
                LeaderboardEntry(intern_id="a", name="A", points=10),
                LeaderboardEntry(intern_id="b", name="B", points=5),
            ]
        )
        self.assertEqual(find_rank(ranked, "b", ranked[0]).rank, 2)

        me = find_rank(ranked, "z", LeaderboardEntry(intern_id="z", name="Z"))
        self.assertEqual(me.intern_id, "z")
        self.assertEqual(me.rank, 3)


if __name__ == "__main__":
    unittest.main()
