"""
Marketplace operations on top of the data-access layer.

Routes call into these functions; they enforce role and ownership checks and
the task status transitions that follow applications, submissions and
reviews.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from taskverse.auth import AuthClient
from taskverse.db import (
    ApplicationFilters,
    ApplicationRecord,
    ApplicationStatus,
    BadgeRecord,
    DbClient,
    Difficulty,
    ProfileRecord,
    Role,
    SubmissionFilters,
    SubmissionRecord,
    SubmissionStatus,
    TaskFilters,
    TaskRecord,
    TaskStatus,
    count_by,
)
from taskverse.scoring import (
    DEFAULT_BADGES,
    LeaderboardEntry,
    LevelProgress,
    compute_intern_stats,
    compute_unlocked_badges,
    level_for_points,
    level_progress,
    next_badge,
    rank_leaderboard,
)
from taskverse.storage import StorageClient, attachment_path

logger = logging.getLogger(__name__)

MAX_ATTACHMENT_BYTES = 50 * 1024 * 1024
MIN_RATING = 1
MAX_RATING = 5

INTERN_EDITABLE_FIELDS = {"name"}
BUSINESS_EDITABLE_FIELDS = {
    "name",
    "business_name",
    "industry",
    "location",
    "website",
    "description",
}


class MarketplaceError(Exception):
    """Base class for marketplace rule violations."""


class NotFoundError(MarketplaceError):
    pass


class PermissionDeniedError(MarketplaceError):
    pass


class MarketplaceValidationError(MarketplaceError):
    pass


def today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def _require_role(profile: ProfileRecord, role: Role) -> None:
    if profile.role != role.value:
        raise PermissionDeniedError(f"Only {role.value} accounts can do this")


def _require_text(value: Optional[str], label: str) -> str:
    if value is None or not value.strip():
        raise MarketplaceValidationError(f"{label} is required")
    return value.strip()


# Profiles


def ensure_badge_catalog(
    db: DbClient, badges: Iterable[BadgeRecord] = DEFAULT_BADGES
) -> int:
    """Insert catalog badges that are missing. Returns how many were added."""
    existing = {badge.id for badge in db.list_badges()}
    added = 0
    for badge in badges:
        if badge.id not in existing:
            db.save_badge(badge)
            added += 1
    return added


def register_user(
    db: DbClient,
    auth: AuthClient,
    *,
    email: str,
    password: str,
    name: Optional[str],
    role: str,
) -> ProfileRecord:
    """Create the auth account, then the matching profile row."""
    if role not in (Role.INTERN.value, Role.BUSINESS.value):
        raise MarketplaceValidationError("Role must be 'intern' or 'business'")
    display_name = (name or "").strip() or email.split("@")[0]
    user = auth.sign_up(email, password, {"name": display_name, "role": role})
    profile = db.create_profile(
        ProfileRecord(
            id=user.id,
            email=user.email or email,
            name=display_name,
            role=role,
        )
    )
    logger.info("Registered %s account %s", role, profile.id)
    return profile


def get_profile(db: DbClient, user_id: str) -> ProfileRecord:
    profile = db.get_profile(user_id)
    if not profile:
        raise NotFoundError("Profile not found")
    return profile


def update_profile(
    db: DbClient, profile: ProfileRecord, updates: dict
) -> ProfileRecord:
    allowed = (
        BUSINESS_EDITABLE_FIELDS
        if profile.role == Role.BUSINESS.value
        else INTERN_EDITABLE_FIELDS
    )
    forbidden = set(updates) - allowed
    if forbidden:
        raise MarketplaceValidationError(
            f"Fields cannot be updated: {', '.join(sorted(forbidden))}"
        )
    if "name" in updates:
        updates = {**updates, "name": _require_text(updates["name"], "Name")}
    if not updates:
        return profile
    updated = db.update_profile(profile.id, updates)
    if not updated:
        raise NotFoundError("Profile not found")
    return updated


# Tasks


def normalize_skills(skills) -> list[str]:
    """Accept a list or a comma-separated string; trim and drop empties."""
    if skills is None:
        return []
    if isinstance(skills, str):
        skills = skills.split(",")
    return [s.strip() for s in skills if s and s.strip()]


def _validate_task_fields(fields: dict) -> dict:
    cleaned = dict(fields)
    for key, label in (
        ("title", "Title"),
        ("description", "Description"),
        ("category", "Category"),
    ):
        if key in cleaned:
            cleaned[key] = _require_text(cleaned[key], label)
    if "difficulty" in cleaned:
        allowed = [d.value for d in Difficulty]
        if cleaned["difficulty"] not in allowed:
            raise MarketplaceValidationError(
                f"Difficulty must be one of {', '.join(allowed)}"
            )
    if "points" in cleaned:
        points = cleaned["points"]
        if not isinstance(points, int) or isinstance(points, bool) or points <= 0:
            raise MarketplaceValidationError("Points must be a positive integer")
    if "skills" in cleaned:
        cleaned["skills"] = normalize_skills(cleaned["skills"])
    for key in ("duration", "deadline"):
        if key in cleaned:
            cleaned[key] = (cleaned[key] or "").strip() or None
    return cleaned


def create_task(
    db: DbClient,
    business: ProfileRecord,
    *,
    title: str,
    description: str,
    category: str,
    difficulty: str,
    points: int,
    duration: Optional[str] = None,
    deadline: Optional[str] = None,
    skills=None,
) -> TaskRecord:
    _require_role(business, Role.BUSINESS)
    fields = _validate_task_fields(
        {
            "title": title,
            "description": description,
            "category": category,
            "difficulty": difficulty,
            "points": points,
            "duration": duration,
            "deadline": deadline,
            "skills": skills,
        }
    )
    task = db.create_task(
        TaskRecord(
            business_id=business.id,
            status=TaskStatus.OPEN.value,
            posted_date=today(),
            **fields,
        )
    )
    logger.info("Business %s posted task %s", business.id, task.id)
    return task


def get_task(db: DbClient, task_id: str) -> TaskRecord:
    task = db.get_task(task_id)
    if not task:
        raise NotFoundError("Task not found")
    return task


def _owned_task(db: DbClient, business: ProfileRecord, task_id: str) -> TaskRecord:
    _require_role(business, Role.BUSINESS)
    task = get_task(db, task_id)
    if task.business_id != business.id:
        raise PermissionDeniedError("Task belongs to another business")
    return task


def update_task(
    db: DbClient, business: ProfileRecord, task_id: str, updates: dict
) -> TaskRecord:
    _owned_task(db, business, task_id)
    if "status" in updates:
        allowed = [s.value for s in TaskStatus]
        if updates["status"] not in allowed:
            raise MarketplaceValidationError(
                f"Status must be one of {', '.join(allowed)}"
            )
    updated = db.update_task(task_id, _validate_task_fields(updates))
    if not updated:
        raise NotFoundError("Task not found")
    return updated


def delete_task(db: DbClient, business: ProfileRecord, task_id: str) -> None:
    _owned_task(db, business, task_id)
    db.delete_task(task_id)
    logger.info("Business %s deleted task %s", business.id, task_id)


def browse_tasks(
    db: DbClient,
    *,
    category: Optional[str] = None,
    difficulty: Optional[str] = None,
    search: Optional[str] = None,
) -> list[TaskRecord]:
    """Open tasks, newest first."""
    return db.list_tasks(
        TaskFilters(
            status=TaskStatus.OPEN.value,
            category=category,
            difficulty=difficulty,
            search=(search or "").strip() or None,
        )
    )


def task_categories(tasks: Iterable[TaskRecord]) -> list[str]:
    """Distinct categories in first-seen order, for the browse filter."""
    seen: list[str] = []
    for task in tasks:
        if task.category not in seen:
            seen.append(task.category)
    return seen


# Applications and submissions


def apply_to_task(
    db: DbClient,
    intern: ProfileRecord,
    task_id: str,
    application_text: Optional[str],
) -> ApplicationRecord:
    """
    Apply to a task. Applying twice returns the first application unchanged.

    Applications are accepted on creation and move the task to in-progress.
    """
    _require_role(intern, Role.INTERN)
    text = _require_text(application_text, "Application text")
    task = get_task(db, task_id)

    existing = db.find_application(task.id, intern.id)
    if existing:
        return existing
    if task.status != TaskStatus.OPEN.value:
        raise MarketplaceValidationError("Task is not open for applications")

    application = db.create_application(
        ApplicationRecord(
            task_id=task.id,
            intern_id=intern.id,
            application_text=text,
            status=ApplicationStatus.ACCEPTED.value,
        )
    )
    db.update_task(task.id, {"status": TaskStatus.IN_PROGRESS.value})
    logger.info("Intern %s applied to task %s", intern.id, task.id)
    return application


def submit_work(
    db: DbClient,
    intern: ProfileRecord,
    task_id: str,
    description: Optional[str],
    attachment_url: Optional[str] = None,
) -> SubmissionRecord:
    """Submit work for an accepted task and move the task to under-review."""
    _require_role(intern, Role.INTERN)
    text = _require_text(description, "Submission description")
    task = get_task(db, task_id)

    application = db.find_application(task.id, intern.id)
    if not application or application.status != ApplicationStatus.ACCEPTED.value:
        raise PermissionDeniedError("You are not working on this task")

    previous = db.list_submissions(
        SubmissionFilters(task_id=task.id, intern_id=intern.id)
    )
    if previous and previous[0].status == SubmissionStatus.PENDING.value:
        raise MarketplaceValidationError("A submission is already awaiting review")
    if previous and previous[0].status == SubmissionStatus.APPROVED.value:
        raise MarketplaceValidationError("This task has already been completed")

    submission = db.create_submission(
        SubmissionRecord(
            task_id=task.id,
            intern_id=intern.id,
            description=text,
            attachment_url=attachment_url or None,
            status=SubmissionStatus.PENDING.value,
            submitted_date=today(),
        )
    )
    db.update_task(task.id, {"status": TaskStatus.UNDER_REVIEW.value})
    logger.info("Intern %s submitted work for task %s", intern.id, task.id)
    return submission


def upload_attachment(
    storage: StorageClient,
    user: ProfileRecord,
    filename: str,
    data: bytes,
    content_type: Optional[str] = None,
    *,
    timestamp_ms: Optional[int] = None,
) -> str:
    """Store an attachment and return its public URL."""
    if not data:
        raise MarketplaceValidationError("File is empty")
    if len(data) > MAX_ATTACHMENT_BYTES:
        raise MarketplaceValidationError("File is too large")
    millis = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    path = attachment_path(user.id, filename or "upload", millis)
    storage.upload_bytes(path, data, content_type or "application/octet-stream")
    return storage.public_url(path)


@dataclass
class ReviewOutcome:
    submission: SubmissionRecord
    points_awarded: int = 0
    unlocked_badges: list[BadgeRecord] = field(default_factory=list)


def review_submission(
    db: DbClient,
    business: ProfileRecord,
    submission_id: str,
    *,
    decision: str,
    rating: Optional[int] = None,
    feedback: Optional[str] = None,
) -> ReviewOutcome:
    """
    Approve or reject a pending submission.

    Approval needs a 1-5 rating; it completes the task, awards the task's
    points, recomputes the intern's level and badges and refreshes the
    business's average rating. Rejection needs feedback and reopens the task
    for the same intern.
    """
    _require_role(business, Role.BUSINESS)
    submission = db.get_submission(submission_id)
    if not submission:
        raise NotFoundError("Submission not found")
    task = _owned_task(db, business, submission.task_id)
    if submission.status != SubmissionStatus.PENDING.value:
        raise MarketplaceValidationError("Submission has already been reviewed")

    note = (feedback or "").strip() or None
    if decision == "approve":
        if (
            not isinstance(rating, int)
            or isinstance(rating, bool)
            or not MIN_RATING <= rating <= MAX_RATING
        ):
            raise MarketplaceValidationError("Please provide a rating from 1 to 5")
        updated = db.update_submission(
            submission.id,
            {
                "status": SubmissionStatus.APPROVED.value,
                "rating": rating,
                "feedback": note,
            },
        )
        db.update_task(task.id, {"status": TaskStatus.COMPLETED.value})
        _award_points(db, submission.intern_id, task.points)
        unlocked = sync_intern_badges(db, submission.intern_id)
        _refresh_business_rating(db, business.id)
        logger.info(
            "Business %s approved submission %s (%s pts)",
            business.id,
            submission.id,
            task.points,
        )
        return ReviewOutcome(
            submission=updated, points_awarded=task.points, unlocked_badges=unlocked
        )

    if decision == "reject":
        if not note:
            raise MarketplaceValidationError("Please provide feedback for rejection")
        updated = db.update_submission(
            submission.id,
            {"status": SubmissionStatus.REJECTED.value, "feedback": note},
        )
        db.update_task(task.id, {"status": TaskStatus.IN_PROGRESS.value})
        logger.info("Business %s rejected submission %s", business.id, submission.id)
        return ReviewOutcome(submission=updated)

    raise MarketplaceValidationError("Decision must be 'approve' or 'reject'")


def _award_points(db: DbClient, intern_id: str, points: int) -> ProfileRecord:
    intern = get_profile(db, intern_id)
    total = (intern.points or 0) + (points or 0)
    return db.update_profile(
        intern_id, {"points": total, "level": level_for_points(total)}
    )


def _refresh_business_rating(db: DbClient, business_id: str) -> None:
    ratings = [
        s.rating
        for s in db.list_submissions(
            SubmissionFilters(
                business_id=business_id, status=SubmissionStatus.APPROVED.value
            )
        )
        if s.rating
    ]
    average = round(sum(ratings) / len(ratings), 2) if ratings else 0.0
    db.update_profile(business_id, {"average_rating": average})


def _tasks_by_id(db: DbClient, task_ids: Iterable[str]) -> dict[str, TaskRecord]:
    tasks = {}
    for task_id in set(task_ids):
        task = db.get_task(task_id)
        if task:
            tasks[task_id] = task
    return tasks


def sync_intern_badges(db: DbClient, intern_id: str) -> list[BadgeRecord]:
    """Unlock every badge the intern now qualifies for. Returns new unlocks."""
    intern = get_profile(db, intern_id)
    approved = db.list_submissions(
        SubmissionFilters(intern_id=intern_id, status=SubmissionStatus.APPROVED.value)
    )
    tasks = _tasks_by_id(db, (s.task_id for s in approved))
    stats = compute_intern_stats(
        intern.points,
        approved,
        task_categories={tid: t.category for tid, t in tasks.items()},
        task_owners={tid: t.business_id for tid, t in tasks.items()},
    )
    catalog = db.list_badges()
    already = {record.badge_id for record in db.list_intern_badges(intern_id)}
    earned = compute_unlocked_badges(catalog, stats)
    unlocked = []
    for badge in catalog:
        if badge.id in earned and badge.id not in already:
            db.award_badge(intern_id, badge.id)
            unlocked.append(badge)
            logger.info("Intern %s unlocked badge %s", intern_id, badge.id)
    return unlocked


# Business dashboards


@dataclass
class BusinessStats:
    total_tasks: int
    active_tasks: int
    completed_tasks: int
    total_interns: int
    average_rating: float


def get_business_stats(db: DbClient, business_id: str) -> BusinessStats:
    profile = get_profile(db, business_id)
    tasks = db.list_tasks(TaskFilters(business_id=business_id))
    by_status = count_by(tasks, "status")
    accepted = db.list_applications(
        ApplicationFilters(
            business_id=business_id, status=ApplicationStatus.ACCEPTED.value
        )
    )
    return BusinessStats(
        total_tasks=len(tasks),
        active_tasks=by_status.get(TaskStatus.IN_PROGRESS.value, 0),
        completed_tasks=by_status.get(TaskStatus.COMPLETED.value, 0),
        total_interns=len({a.intern_id for a in accepted}),
        average_rating=profile.average_rating or 0.0,
    )


@dataclass
class BusinessHome:
    open_tasks: int
    completed_tasks: int
    total_applications: int
    pending_submissions: int
    recent_submissions: list[SubmissionRecord]
    tasks: list[TaskRecord]


def get_business_home(db: DbClient, business_id: str) -> BusinessHome:
    tasks = db.list_tasks(TaskFilters(business_id=business_id))
    submissions = db.list_submissions(SubmissionFilters(business_id=business_id))
    applications = db.list_applications(ApplicationFilters(business_id=business_id))
    by_status = count_by(tasks, "status")
    return BusinessHome(
        open_tasks=by_status.get(TaskStatus.OPEN.value, 0),
        completed_tasks=by_status.get(TaskStatus.COMPLETED.value, 0),
        total_applications=len(applications),
        pending_submissions=sum(
            1 for s in submissions if s.status == SubmissionStatus.PENDING.value
        ),
        recent_submissions=submissions[:3],
        tasks=tasks,
    )


@dataclass
class Collaborator:
    intern_id: str
    name: str
    email: str
    rating: float
    tasks_completed: int


def get_recent_collaborators(
    db: DbClient, business_id: str, limit: int = 5
) -> list[Collaborator]:
    """Interns with approved work for this business, most recent first."""
    approved = db.list_submissions(
        SubmissionFilters(business_id=business_id, status=SubmissionStatus.APPROVED.value)
    )
    grouped: dict[str, list[SubmissionRecord]] = {}
    for submission in approved:
        grouped.setdefault(submission.intern_id, []).append(submission)

    collaborators = []
    for intern_id, items in grouped.items():
        profile = db.get_profile(intern_id)
        if not profile:
            continue
        ratings = [s.rating for s in items if s.rating]
        collaborators.append(
            Collaborator(
                intern_id=intern_id,
                name=profile.name,
                email=profile.email,
                rating=round(sum(ratings) / len(ratings), 1) if ratings else 0,
                tasks_completed=len(items),
            )
        )
        if len(collaborators) >= limit:
            break
    return collaborators


# Intern dashboards


@dataclass
class BadgeView:
    badge: BadgeRecord
    unlocked: bool
    unlocked_at: Optional[float] = None


def get_intern_badges_view(db: DbClient, intern_id: str) -> list[BadgeView]:
    unlocked = {r.badge_id: r.unlocked_at for r in db.list_intern_badges(intern_id)}
    return [
        BadgeView(
            badge=badge,
            unlocked=badge.id in unlocked,
            unlocked_at=unlocked.get(badge.id),
        )
        for badge in db.list_badges()
    ]


@dataclass
class InternHome:
    progress: LevelProgress
    badges_total: int
    badges_unlocked: int
    next_badge: Optional[BadgeRecord]
    recent_tasks: list[TaskRecord]
    active_tasks: int


def get_intern_home(db: DbClient, intern: ProfileRecord) -> InternHome:
    catalog = db.list_badges()
    unlocked_ids = {r.badge_id for r in db.list_intern_badges(intern.id)}
    open_tasks = db.list_tasks(TaskFilters(status=TaskStatus.OPEN.value))
    accepted = db.list_applications(
        ApplicationFilters(intern_id=intern.id, status=ApplicationStatus.ACCEPTED.value)
    )
    return InternHome(
        progress=level_progress(intern.points, intern.level),
        badges_total=len(catalog),
        badges_unlocked=sum(1 for b in catalog if b.id in unlocked_ids),
        next_badge=next_badge(catalog, unlocked_ids),
        recent_tasks=open_tasks[:3],
        active_tasks=len(accepted),
    )


MY_TASK_STATUS = {
    SubmissionStatus.PENDING.value: "submitted",
    SubmissionStatus.APPROVED.value: "completed",
    SubmissionStatus.REJECTED.value: "needs-revision",
}


@dataclass
class MyTask:
    task: TaskRecord
    application: ApplicationRecord
    submission: Optional[SubmissionRecord]
    status: str


def get_my_tasks(db: DbClient, intern: ProfileRecord) -> list[MyTask]:
    applications = db.list_applications(ApplicationFilters(intern_id=intern.id))
    submissions = db.list_submissions(SubmissionFilters(intern_id=intern.id))
    items = []
    for application in applications:
        task = db.get_task(application.task_id)
        if not task:
            continue
        # Submissions are newest first, so the first match is the latest.
        latest = next((s for s in submissions if s.task_id == task.id), None)
        status = MY_TASK_STATUS.get(latest.status, "in-progress") if latest else "in-progress"
        items.append(
            MyTask(task=task, application=application, submission=latest, status=status)
        )
    return items


def get_leaderboard(db: DbClient, limit: int = 50) -> list[LeaderboardEntry]:
    interns = db.list_profiles(
        role=Role.INTERN.value, order_by_points=True, limit=limit
    )
    completed = count_by(
        db.list_submissions(SubmissionFilters(status=SubmissionStatus.APPROVED.value)),
        "intern_id",
    )
    entries = [
        LeaderboardEntry(
            intern_id=intern.id,
            name=intern.name,
            points=intern.points or 0,
            level=intern.level or 1,
            tasks_completed=completed.get(intern.id, 0),
            badges=len(db.list_intern_badges(intern.id)),
        )
        for intern in interns
    ]
    return rank_leaderboard(entries)


@dataclass
class PortfolioItem:
    id: str
    task_title: str
    business_name: str
    completed_date: str
    description: str
    task_description: str
    review: Optional[str]
    skills: list[str]
    rating: int
    points: int


def get_intern_portfolio(db: DbClient, intern_id: str) -> list[PortfolioItem]:
    approved = db.list_submissions(
        SubmissionFilters(intern_id=intern_id, status=SubmissionStatus.APPROVED.value)
    )
    tasks = _tasks_by_id(db, (s.task_id for s in approved))
    items = []
    for submission in approved:
        task = tasks.get(submission.task_id)
        items.append(
            PortfolioItem(
                id=submission.id,
                task_title=task.title if task else (submission.task_title or ""),
                business_name=(task.business_name if task else None) or "Business",
                completed_date=submission.submitted_date,
                description=submission.description,
                task_description=task.description if task else "",
                review=submission.feedback,
                skills=list(task.skills) if task else [],
                rating=submission.rating or 0,
                points=task.points if task else 0,
            )
        )
    return items


@dataclass
class PublicProfile:
    profile: ProfileRecord
    tasks_completed: int
    badges: list[BadgeRecord]


def get_public_profile(db: DbClient, user_id: str) -> PublicProfile:
    profile = get_profile(db, user_id)
    if profile.role == Role.BUSINESS.value:
        return PublicProfile(profile=profile, tasks_completed=0, badges=[])
    completed = db.list_submissions(
        SubmissionFilters(intern_id=user_id, status=SubmissionStatus.APPROVED.value)
    )
    badges = [view.badge for view in get_intern_badges_view(db, user_id) if view.unlocked]
    return PublicProfile(
        profile=profile, tasks_completed=len(completed), badges=badges
    )
