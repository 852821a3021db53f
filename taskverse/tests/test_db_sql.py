import unittest

from taskverse.db import (
    ApplicationFilters,
    ApplicationRecord,
    ProfileRecord,
    SqlDbClient,
    SubmissionFilters,
    SubmissionRecord,
    TaskFilters,
    TaskRecord,
)
from taskverse.scoring import DEFAULT_BADGES


class SqlDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the SQL client logic.
    """

    def setUp(self):
        self.db = SqlDbClient("sqlite+pysqlite:///:memory:")
        self.business = self.db.create_profile(
            ProfileRecord(
                id="biz-1",
                email="acme@example.com",
                name="Jane",
                role="business",
                business_name="Acme",
            )
        )
        self.intern = self.db.create_profile(
            ProfileRecord(id="intern-1", email="ada@example.com", name="Ada", role="intern")
        )

    def _task(self, **overrides):
        fields = {
            "business_id": self.business.id,
            "title": "Design a logo",
            "description": "Vector logo, 100% original",
            "category": "Design",
            "difficulty": "Beginner",
            "points": 50,
            "posted_date": "2024-03-01",
            "skills": ["Figma"],
        }
        fields.update(overrides)
        return self.db.create_task(TaskRecord(**fields))

    def test_profile_roundtrip_and_update(self):
        fetched = self.db.get_profile("intern-1")
        self.assertEqual(fetched.name, "Ada")
        updated = self.db.update_profile("intern-1", {"points": 150, "level": 2})
        self.assertEqual(updated.points, 150)
        self.assertIsNone(self.db.update_profile("missing", {"points": 1}))
        with self.assertRaises(ValueError):
            self.db.update_profile("intern-1", {"unknown": 1})

    def test_duplicate_profile(self):
        with self.assertRaises(ValueError):
            self.db.create_profile(
                ProfileRecord(id="intern-1", email="x@example.com", name="X", role="intern")
            )

    def test_list_profiles_ordered_by_points(self):
        self.db.create_profile(
            ProfileRecord(id="intern-2", email="b@example.com", name="Bob", role="intern", points=90)
        )
        interns = self.db.list_profiles(role="intern", order_by_points=True, limit=1)
        self.assertEqual([p.id for p in interns], ["intern-2"])

    def test_task_joins_business_name(self):
        task = self._task()
        self.assertEqual(task.business_name, "Acme")
        self.assertEqual(task.skills, ["Figma"])
        updated = self.db.update_task(task.id, {"status": "in-progress", "skills": ["A", "B"]})
        self.assertEqual(updated.status, "in-progress")
        self.assertEqual(updated.skills, ["A", "B"])

    def test_list_tasks_filters(self):
        self._task(title="Logo")
        self._task(
            title="Blog post",
            description="Write 500 words",
            category="Writing",
            posted_date="2024-03-02",
        )
        self._task(title="Closed", status="completed")

        open_tasks = self.db.list_tasks(TaskFilters(status="open"))
        self.assertEqual([t.title for t in open_tasks], ["Blog post", "Logo"])
        self.assertEqual(
            [t.title for t in self.db.list_tasks(TaskFilters(category="Writing"))],
            ["Blog post"],
        )
        self.assertEqual(len(self.db.list_tasks(TaskFilters(category="all"))), 3)
        self.assertEqual(
            [t.title for t in self.db.list_tasks(TaskFilters(search="BLOG"))],
            ["Blog post"],
        )

    def test_search_escapes_wildcards(self):
        self._task(title="Logo")
        self._task(title="Other", description="Nothing special")
        found = self.db.list_tasks(TaskFilters(search="100%"))
        self.assertEqual([t.title for t in found], ["Logo"])

    def test_application_unique_per_intern(self):
        task = self._task()
        first = self.db.create_application(
            ApplicationRecord(task_id=task.id, intern_id="intern-1", application_text="Me")
        )
        second = self.db.create_application(
            ApplicationRecord(task_id=task.id, intern_id="intern-1", application_text="Again")
        )
        self.assertEqual(first.id, second.id)
        self.assertEqual(
            len(self.db.list_applications(ApplicationFilters(business_id="biz-1"))), 1
        )
        self.assertEqual(
            self.db.list_applications(ApplicationFilters(business_id="nobody")), []
        )

    def test_submission_joins_and_filters(self):
        task = self._task()
        submission = self.db.create_submission(
            SubmissionRecord(
                task_id=task.id,
                intern_id="intern-1",
                description="Done",
                submitted_date="2024-03-05",
            )
        )
        self.assertEqual(submission.intern_name, "Ada")
        self.assertEqual(submission.task_title, "Design a logo")

        self.db.update_submission(submission.id, {"status": "approved", "rating": 4})
        approved = self.db.list_submissions(
            SubmissionFilters(business_id="biz-1", status="approved")
        )
        self.assertEqual([s.rating for s in approved], [4])
        self.assertEqual(
            self.db.list_submissions(SubmissionFilters(status="pending")), []
        )

    def test_delete_task_cascades(self):
        task = self._task()
        self.db.create_application(
            ApplicationRecord(task_id=task.id, intern_id="intern-1")
        )
        self.db.create_submission(
            SubmissionRecord(
                task_id=task.id,
                intern_id="intern-1",
                description="Done",
                submitted_date="2024-03-05",
            )
        )
        self.assertTrue(self.db.delete_task(task.id))
        self.assertFalse(self.db.delete_task(task.id))
        self.assertEqual(self.db.list_applications(), [])
        self.assertEqual(self.db.list_submissions(), [])

    def test_badges(self):
        for badge in DEFAULT_BADGES:
            self.db.save_badge(badge)
        badges = self.db.list_badges()
        self.assertEqual(badges[0].id, "first-task")
        self.assertEqual(badges[-1].id, "point-master")

        first = self.db.award_badge("intern-1", "first-task")
        again = self.db.award_badge("intern-1", "first-task")
        self.assertEqual(first.id, again.id)
        self.assertEqual(
            [b.badge_id for b in self.db.list_intern_badges("intern-1")], ["first-task"]
        )


if __name__ == "__main__":
    unittest.main()
