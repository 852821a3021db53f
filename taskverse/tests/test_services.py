import unittest

from taskverse import services
from taskverse.auth import InMemoryAuthClient
from taskverse.db import InMemoryDbClient, SubmissionFilters
from taskverse.storage import InMemoryStorageClient


class MarketplaceTestCase(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.auth = InMemoryAuthClient()
        services.ensure_badge_catalog(self.db)
        self.business = self._register("acme@example.com", "business", "Acme")
        self.intern = self._register("ada@example.com", "intern", "Ada")

    def _register(self, email, role, name=None):
        return services.register_user(
            self.db, self.auth, email=email, password="secret1", name=name, role=role
        )

    def _post_task(self, business=None, **overrides):
        fields = {
            "title": "Design a logo",
            "description": "Simple vector logo",
            "category": "Design",
            "difficulty": "Beginner",
            "points": 50,
            "skills": "Figma, Branding, ",
        }
        fields.update(overrides)
        return services.create_task(self.db, business or self.business, **fields)

    def _complete(self, task, intern=None, rating=5, business=None):
        intern = intern or self.intern
        services.apply_to_task(self.db, intern, task.id, "Pick me")
        submission = services.submit_work(self.db, intern, task.id, "Done")
        return services.review_submission(
            self.db,
            business or self.business,
            submission.id,
            decision="approve",
            rating=rating,
            feedback="Great",
        )


class RegistrationTests(MarketplaceTestCase):
    def test_register_creates_profile(self):
        self.assertEqual(self.intern.role, "intern")
        self.assertEqual(self.intern.points, 0)
        self.assertEqual(self.intern.level, 1)
        self.assertEqual(self.db.get_profile(self.intern.id).email, "ada@example.com")

    def test_name_defaults_to_email_prefix(self):
        profile = self._register("grace@example.com", "intern")
        self.assertEqual(profile.name, "grace")

    def test_invalid_role(self):
        with self.assertRaises(services.MarketplaceValidationError):
            self._register("x@example.com", "admin")

    def test_badge_catalog_seeded_once(self):
        self.assertEqual(services.ensure_badge_catalog(self.db), 0)
        self.assertEqual(len(self.db.list_badges()), 6)

    def test_update_profile_whitelists_fields(self):
        updated = services.update_profile(
            self.db, self.business, {"industry": "Retail", "location": "Remote"}
        )
        self.assertEqual(updated.industry, "Retail")
        with self.assertRaises(services.MarketplaceValidationError):
            services.update_profile(self.db, self.intern, {"points": 1000})
        with self.assertRaises(services.MarketplaceValidationError):
            services.update_profile(self.db, self.intern, {"name": "  "})


class TaskTests(MarketplaceTestCase):
    def test_create_task_normalizes_skills(self):
        task = self._post_task()
        self.assertEqual(task.status, "open")
        self.assertEqual(task.skills, ["Figma", "Branding"])
        self.assertEqual(task.business_name, "Acme")

    def test_interns_cannot_post(self):
        with self.assertRaises(services.PermissionDeniedError):
            self._post_task(business=self.intern)

    def test_validation(self):
        with self.assertRaises(services.MarketplaceValidationError):
            self._post_task(points=0)
        with self.assertRaises(services.MarketplaceValidationError):
            self._post_task(difficulty="Expert")
        with self.assertRaises(services.MarketplaceValidationError):
            self._post_task(title=" ")

    def test_other_business_cannot_edit(self):
        task = self._post_task()
        other = self._register("other@example.com", "business", "Other")
        with self.assertRaises(services.PermissionDeniedError):
            services.update_task(self.db, other, task.id, {"title": "Mine"})
        with self.assertRaises(services.PermissionDeniedError):
            services.delete_task(self.db, other, task.id)

    def test_browse_filters_open_tasks(self):
        self._post_task(title="Logo", category="Design")
        self._post_task(title="Blog post", category="Writing", difficulty="Advanced")
        taken = self._post_task(title="Banner")
        services.apply_to_task(self.db, self.intern, taken.id, "Me")

        titles = {t.title for t in services.browse_tasks(self.db)}
        self.assertEqual(titles, {"Logo", "Blog post"})
        writing = services.browse_tasks(self.db, category="Writing")
        self.assertEqual([t.title for t in writing], ["Blog post"])
        self.assertEqual(len(services.browse_tasks(self.db, category="all")), 2)
        self.assertEqual(
            [t.title for t in services.browse_tasks(self.db, search="blog")],
            ["Blog post"],
        )
        self.assertEqual(
            [t.title for t in services.browse_tasks(self.db, difficulty="Advanced")],
            ["Blog post"],
        )

    def test_delete_task_removes_applications(self):
        task = self._post_task()
        services.apply_to_task(self.db, self.intern, task.id, "Me")
        services.delete_task(self.db, self.business, task.id)
        self.assertIsNone(self.db.get_task(task.id))
        self.assertEqual(self.db.applications, {})


class WorkflowTests(MarketplaceTestCase):
    def test_apply_moves_task_in_progress(self):
        task = self._post_task()
        application = services.apply_to_task(self.db, self.intern, task.id, "Me")
        self.assertEqual(application.status, "accepted")
        self.assertEqual(self.db.get_task(task.id).status, "in-progress")

    def test_apply_twice_returns_first(self):
        task = self._post_task()
        first = services.apply_to_task(self.db, self.intern, task.id, "Me")
        second = services.apply_to_task(self.db, self.intern, task.id, "Again")
        self.assertEqual(first.id, second.id)
        self.assertEqual(second.application_text, "Me")

    def test_apply_to_taken_task(self):
        task = self._post_task()
        services.apply_to_task(self.db, self.intern, task.id, "Me")
        other = self._register("bob@example.com", "intern", "Bob")
        with self.assertRaises(services.MarketplaceValidationError):
            services.apply_to_task(self.db, other, task.id, "Me too")

    def test_apply_requires_text(self):
        task = self._post_task()
        with self.assertRaises(services.MarketplaceValidationError):
            services.apply_to_task(self.db, self.intern, task.id, "  ")

    def test_submit_requires_application(self):
        task = self._post_task()
        with self.assertRaises(services.PermissionDeniedError):
            services.submit_work(self.db, self.intern, task.id, "Done")

    def test_submit_moves_task_under_review(self):
        task = self._post_task()
        services.apply_to_task(self.db, self.intern, task.id, "Me")
        submission = services.submit_work(
            self.db, self.intern, task.id, "Done", "https://files/x.png"
        )
        self.assertEqual(submission.status, "pending")
        self.assertEqual(submission.intern_name, "Ada")
        self.assertEqual(self.db.get_task(task.id).status, "under-review")
        with self.assertRaises(services.MarketplaceValidationError):
            services.submit_work(self.db, self.intern, task.id, "Again")

    def test_approve_awards_points_and_badges(self):
        task = self._post_task(points=120)
        outcome = self._complete(task, rating=5)

        self.assertEqual(outcome.points_awarded, 120)
        self.assertEqual(outcome.submission.status, "approved")
        self.assertEqual(outcome.submission.rating, 5)
        self.assertEqual(
            {b.id for b in outcome.unlocked_badges}, {"first-task", "top-rated"}
        )
        intern = self.db.get_profile(self.intern.id)
        self.assertEqual(intern.points, 120)
        self.assertEqual(intern.level, 2)
        self.assertEqual(self.db.get_task(task.id).status, "completed")
        self.assertEqual(self.db.get_profile(self.business.id).average_rating, 5.0)

    def test_badges_unlock_once(self):
        self._complete(self._post_task())
        outcome = self._complete(self._post_task(title="Second"))
        self.assertEqual(outcome.unlocked_badges, [])
        self.assertEqual(len(self.db.list_intern_badges(self.intern.id)), 2)

    def test_approve_requires_rating(self):
        task = self._post_task()
        services.apply_to_task(self.db, self.intern, task.id, "Me")
        submission = services.submit_work(self.db, self.intern, task.id, "Done")
        for rating in (None, 0, 6):
            with self.assertRaises(services.MarketplaceValidationError):
                services.review_submission(
                    self.db,
                    self.business,
                    submission.id,
                    decision="approve",
                    rating=rating,
                )

    def test_reject_needs_feedback_and_allows_resubmission(self):
        task = self._post_task()
        services.apply_to_task(self.db, self.intern, task.id, "Me")
        submission = services.submit_work(self.db, self.intern, task.id, "Draft")
        with self.assertRaises(services.MarketplaceValidationError):
            services.review_submission(
                self.db, self.business, submission.id, decision="reject"
            )

        outcome = services.review_submission(
            self.db,
            self.business,
            submission.id,
            decision="reject",
            feedback="Needs more contrast",
        )
        self.assertEqual(outcome.submission.status, "rejected")
        self.assertEqual(outcome.points_awarded, 0)
        self.assertEqual(self.db.get_task(task.id).status, "in-progress")
        self.assertEqual(self.db.get_profile(self.intern.id).points, 0)

        statuses = [item.status for item in services.get_my_tasks(self.db, self.intern)]
        self.assertEqual(statuses, ["needs-revision"])
        services.submit_work(self.db, self.intern, task.id, "Final")
        statuses = [item.status for item in services.get_my_tasks(self.db, self.intern)]
        self.assertEqual(statuses, ["submitted"])

    def test_review_twice(self):
        task = self._post_task()
        outcome = self._complete(task)
        with self.assertRaises(services.MarketplaceValidationError):
            services.review_submission(
                self.db,
                self.business,
                outcome.submission.id,
                decision="approve",
                rating=4,
            )

    def test_review_other_business_submission(self):
        task = self._post_task()
        services.apply_to_task(self.db, self.intern, task.id, "Me")
        submission = services.submit_work(self.db, self.intern, task.id, "Done")
        other = self._register("other@example.com", "business", "Other")
        with self.assertRaises(services.PermissionDeniedError):
            services.review_submission(
                self.db, other, submission.id, decision="approve", rating=5
            )

    def test_upload_attachment(self):
        storage = InMemoryStorageClient()
        url = services.upload_attachment(
            storage, self.intern, "shot.PNG", b"png", "image/png", timestamp_ms=42
        )
        self.assertEqual(url, f"{storage.base_url}/{self.intern.id}/42.png")
        self.assertEqual(storage.get_bytes(f"{self.intern.id}/42.png"), b"png")
        with self.assertRaises(services.MarketplaceValidationError):
            services.upload_attachment(storage, self.intern, "empty.txt", b"")


class DashboardTests(MarketplaceTestCase):
    def test_business_stats(self):
        self._complete(self._post_task(), rating=4)
        active = self._post_task(title="Active")
        bob = self._register("bob@example.com", "intern", "Bob")
        services.apply_to_task(self.db, bob, active.id, "Me")
        self._post_task(title="Open")

        stats = services.get_business_stats(self.db, self.business.id)
        self.assertEqual(stats.total_tasks, 3)
        self.assertEqual(stats.active_tasks, 1)
        self.assertEqual(stats.completed_tasks, 1)
        self.assertEqual(stats.total_interns, 2)
        self.assertEqual(stats.average_rating, 4.0)

        home = services.get_business_home(self.db, self.business.id)
        self.assertEqual(home.open_tasks, 1)
        self.assertEqual(home.total_applications, 2)
        self.assertEqual(home.pending_submissions, 0)

    def test_recent_collaborators_grouped(self):
        self._complete(self._post_task(), rating=5)
        self._complete(self._post_task(title="Again"), rating=4)
        collaborators = services.get_recent_collaborators(self.db, self.business.id)
        self.assertEqual(len(collaborators), 1)
        self.assertEqual(collaborators[0].name, "Ada")
        self.assertEqual(collaborators[0].tasks_completed, 2)
        self.assertEqual(collaborators[0].rating, 4.5)

    def test_intern_home_and_badges(self):
        self._complete(self._post_task(points=30))
        self._post_task(title="Fresh")
        home = services.get_intern_home(self.db, self.db.get_profile(self.intern.id))
        self.assertEqual(home.progress.current_points, 30)
        self.assertEqual(home.badges_total, 6)
        self.assertEqual(home.badges_unlocked, 2)
        self.assertEqual(home.next_badge.id, "fast-learner")
        self.assertEqual([t.title for t in home.recent_tasks], ["Fresh"])
        self.assertEqual(home.active_tasks, 1)

        views = services.get_intern_badges_view(self.db, self.intern.id)
        unlocked = {v.badge.id for v in views if v.unlocked}
        self.assertEqual(unlocked, {"first-task", "top-rated"})

    def test_leaderboard(self):
        bob = self._register("bob@example.com", "intern", "Bob")
        self._complete(self._post_task(points=80), intern=bob)
        self._complete(self._post_task(title="Small", points=20))
        board = services.get_leaderboard(self.db)
        self.assertEqual([e.name for e in board], ["Bob", "Ada"])
        self.assertEqual(board[0].rank, 1)
        self.assertEqual(board[0].tasks_completed, 1)
        self.assertEqual(board[0].badges, 2)

    def test_portfolio_and_public_profile(self):
        self._complete(self._post_task(points=60), rating=4)
        items = services.get_intern_portfolio(self.db, self.intern.id)
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].business_name, "Acme")
        self.assertEqual(items[0].skills, ["Figma", "Branding"])
        self.assertEqual(items[0].review, "Great")
        self.assertEqual(items[0].points, 60)

        public = services.get_public_profile(self.db, self.intern.id)
        self.assertEqual(public.tasks_completed, 1)
        self.assertEqual(len(public.badges), 1)
        with self.assertRaises(services.NotFoundError):
            services.get_public_profile(self.db, "missing")

    def test_business_submission_listing(self):
        task = self._post_task()
        services.apply_to_task(self.db, self.intern, task.id, "Me")
        services.submit_work(self.db, self.intern, task.id, "Done")
        pending = self.db.list_submissions(
            SubmissionFilters(business_id=self.business.id, status="pending")
        )
        self.assertEqual([s.task_title for s in pending], ["Design a logo"])


if __name__ == "__main__":
    unittest.main()
