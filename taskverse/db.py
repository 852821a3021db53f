"""
Database abstraction for Postgres and an in-memory test implementation.

Both clients expose the same typed query functions per entity. Filters are
composed from optional fields; an unset field applies no constraint.
"""

from __future__ import annotations

import enum
import logging
import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Optional, Protocol

from sqlalchemy import (
    JSON,
    Column,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    or_,
    select,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased, declarative_base, sessionmaker

logger = logging.getLogger(__name__)


class Role(str, enum.Enum):
    INTERN = "intern"
    BUSINESS = "business"


class TaskStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    UNDER_REVIEW = "under-review"
    COMPLETED = "completed"


class Difficulty(str, enum.Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


class ApplicationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class SubmissionStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def new_id() -> str:
    return uuid.uuid4().hex


def _now() -> float:
    return time.time()


@dataclass
class ProfileRecord:
    id: str
    email: str
    name: str
    role: str
    points: int = 0
    level: int = 1
    business_name: Optional[str] = None
    industry: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None
    average_rating: float = 0.0
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)

    @property
    def display_name(self) -> str:
        return self.business_name or self.name


@dataclass
class TaskRecord:
    business_id: str
    title: str
    description: str
    category: str
    difficulty: str
    points: int
    posted_date: str
    status: str = TaskStatus.OPEN.value
    duration: Optional[str] = None
    deadline: Optional[str] = None
    skills: list[str] = field(default_factory=list)
    # Joined from the owning business profile on reads.
    business_name: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)


@dataclass
class ApplicationRecord:
    task_id: str
    intern_id: str
    application_text: Optional[str] = None
    status: str = ApplicationStatus.PENDING.value
    id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)


@dataclass
class SubmissionRecord:
    task_id: str
    intern_id: str
    description: str
    submitted_date: str
    attachment_url: Optional[str] = None
    status: str = SubmissionStatus.PENDING.value
    rating: Optional[int] = None
    feedback: Optional[str] = None
    # Joined on reads.
    intern_name: Optional[str] = None
    task_title: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)


@dataclass
class BadgeRecord:
    id: str
    name: str
    description: str
    icon: str
    requirement_type: str
    requirement_value: float
    created_at: float = field(default_factory=_now)


@dataclass
class InternBadgeRecord:
    intern_id: str
    badge_id: str
    id: str = field(default_factory=new_id)
    unlocked_at: float = field(default_factory=_now)


@dataclass
class TaskFilters:
    business_id: Optional[str] = None
    status: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None
    search: Optional[str] = None


@dataclass
class ApplicationFilters:
    task_id: Optional[str] = None
    intern_id: Optional[str] = None
    status: Optional[str] = None
    business_id: Optional[str] = None


@dataclass
class SubmissionFilters:
    task_id: Optional[str] = None
    intern_id: Optional[str] = None
    status: Optional[str] = None
    business_id: Optional[str] = None


PROFILE_FIELDS = {
    "email",
    "name",
    "role",
    "points",
    "level",
    "business_name",
    "industry",
    "location",
    "website",
    "description",
    "average_rating",
}
TASK_FIELDS = {
    "title",
    "description",
    "category",
    "difficulty",
    "points",
    "duration",
    "deadline",
    "status",
    "skills",
}
APPLICATION_FIELDS = {"application_text", "status"}
SUBMISSION_FIELDS = {"description", "attachment_url", "status", "rating", "feedback"}


def _active(value: Optional[str]) -> bool:
    """Category/difficulty filters treat 'all' like an unset value."""
    return bool(value) and value != "all"


def _clean_updates(updates: dict, allowed: set[str]) -> dict:
    unknown = set(updates) - allowed
    if unknown:
        raise ValueError(f"Unknown fields: {', '.join(sorted(unknown))}")
    return dict(updates)


class DbClient(Protocol):
    """Interface for database access."""

    # Profiles
    def create_profile(self, profile: ProfileRecord) -> ProfileRecord:
        ...

    def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        ...

    def update_profile(
        self, user_id: str, updates: dict
    ) -> Optional[ProfileRecord]:
        ...

    def list_profiles(
        self,
        *,
        role: Optional[str] = None,
        order_by_points: bool = False,
        limit: Optional[int] = None,
    ) -> list[ProfileRecord]:
        ...

    # Tasks
    def create_task(self, task: TaskRecord) -> TaskRecord:
        ...

    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        ...

    def update_task(self, task_id: str, updates: dict) -> Optional[TaskRecord]:
        ...

    def delete_task(self, task_id: str) -> bool:
        ...

    def list_tasks(self, filters: Optional[TaskFilters] = None) -> list[TaskRecord]:
        ...

    # Applications
    def create_application(self, application: ApplicationRecord) -> ApplicationRecord:
        ...

    def get_application(self, application_id: str) -> Optional[ApplicationRecord]:
        ...

    def find_application(
        self, task_id: str, intern_id: str
    ) -> Optional[ApplicationRecord]:
        ...

    def update_application(
        self, application_id: str, updates: dict
    ) -> Optional[ApplicationRecord]:
        ...

    def list_applications(
        self, filters: Optional[ApplicationFilters] = None
    ) -> list[ApplicationRecord]:
        ...

    # Submissions
    def create_submission(self, submission: SubmissionRecord) -> SubmissionRecord:
        ...

    def get_submission(self, submission_id: str) -> Optional[SubmissionRecord]:
        ...

    def update_submission(
        self, submission_id: str, updates: dict
    ) -> Optional[SubmissionRecord]:
        ...

    def list_submissions(
        self, filters: Optional[SubmissionFilters] = None
    ) -> list[SubmissionRecord]:
        ...

    # Badges
    def save_badge(self, badge: BadgeRecord) -> BadgeRecord:
        ...

    def list_badges(self) -> list[BadgeRecord]:
        ...

    def list_intern_badges(self, intern_id: str) -> list[InternBadgeRecord]:
        ...

    def award_badge(self, intern_id: str, badge_id: str) -> InternBadgeRecord:
        ...


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.profiles: Dict[str, ProfileRecord] = {}
        self.tasks: Dict[str, TaskRecord] = {}
        self.applications: Dict[str, ApplicationRecord] = {}
        self.submissions: Dict[str, SubmissionRecord] = {}
        self.badges: Dict[str, BadgeRecord] = {}
        self.intern_badges: Dict[str, InternBadgeRecord] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.profiles.clear()
        self.tasks.clear()
        self.applications.clear()
        self.submissions.clear()
        self.badges.clear()
        self.intern_badges.clear()

    # Profiles

    def create_profile(self, profile: ProfileRecord) -> ProfileRecord:
        if profile.id in self.profiles:
            raise ValueError(f"Profile {profile.id} already exists")
        self.profiles[profile.id] = replace(profile)
        return replace(profile)

    def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        profile = self.profiles.get(user_id)
        return replace(profile) if profile else None

    def update_profile(
        self, user_id: str, updates: dict
    ) -> Optional[ProfileRecord]:
        profile = self.profiles.get(user_id)
        if not profile:
            return None
        for key, value in _clean_updates(updates, PROFILE_FIELDS).items():
            setattr(profile, key, value)
        profile.updated_at = _now()
        return replace(profile)

    def list_profiles(
        self,
        *,
        role: Optional[str] = None,
        order_by_points: bool = False,
        limit: Optional[int] = None,
    ) -> list[ProfileRecord]:
        items = [p for p in self.profiles.values() if not role or p.role == role]
        if order_by_points:
            items.sort(key=lambda p: p.created_at)
            items.sort(key=lambda p: p.points, reverse=True)
        if limit is not None:
            items = items[:limit]
        return [replace(p) for p in items]

    # Tasks

    def _with_business(self, task: TaskRecord) -> TaskRecord:
        owner = self.profiles.get(task.business_id)
        return replace(
            task,
            skills=list(task.skills),
            business_name=owner.display_name if owner else None,
        )

    def create_task(self, task: TaskRecord) -> TaskRecord:
        stored = replace(task, skills=list(task.skills), business_name=None)
        self.tasks[stored.id] = stored
        return self._with_business(stored)

    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        task = self.tasks.get(task_id)
        return self._with_business(task) if task else None

    def update_task(self, task_id: str, updates: dict) -> Optional[TaskRecord]:
        task = self.tasks.get(task_id)
        if not task:
            return None
        for key, value in _clean_updates(updates, TASK_FIELDS).items():
            setattr(task, key, list(value) if key == "skills" else value)
        task.updated_at = _now()
        return self._with_business(task)

    def delete_task(self, task_id: str) -> bool:
        if self.tasks.pop(task_id, None) is None:
            return False
        for key in [k for k, a in self.applications.items() if a.task_id == task_id]:
            del self.applications[key]
        for key in [k for k, s in self.submissions.items() if s.task_id == task_id]:
            del self.submissions[key]
        return True

    def list_tasks(self, filters: Optional[TaskFilters] = None) -> list[TaskRecord]:
        filters = filters or TaskFilters()
        needle = filters.search.lower() if filters.search else None
        items = []
        for task in self.tasks.values():
            if filters.business_id and task.business_id != filters.business_id:
                continue
            if filters.status and task.status != filters.status:
                continue
            if _active(filters.category) and task.category != filters.category:
                continue
            if _active(filters.difficulty) and task.difficulty != filters.difficulty:
                continue
            if needle and not (
                needle in task.title.lower() or needle in task.description.lower()
            ):
                continue
            items.append(task)
        items.sort(key=lambda t: (t.posted_date, t.created_at), reverse=True)
        return [self._with_business(t) for t in items]

    # Applications

    def create_application(self, application: ApplicationRecord) -> ApplicationRecord:
        existing = self.find_application(application.task_id, application.intern_id)
        if existing:
            return existing
        self.applications[application.id] = replace(application)
        return replace(application)

    def get_application(self, application_id: str) -> Optional[ApplicationRecord]:
        application = self.applications.get(application_id)
        return replace(application) if application else None

    def find_application(
        self, task_id: str, intern_id: str
    ) -> Optional[ApplicationRecord]:
        for application in self.applications.values():
            if application.task_id == task_id and application.intern_id == intern_id:
                return replace(application)
        return None

    def update_application(
        self, application_id: str, updates: dict
    ) -> Optional[ApplicationRecord]:
        application = self.applications.get(application_id)
        if not application:
            return None
        for key, value in _clean_updates(updates, APPLICATION_FIELDS).items():
            setattr(application, key, value)
        application.updated_at = _now()
        return replace(application)

    def _business_task_ids(self, business_id: str) -> set[str]:
        return {t.id for t in self.tasks.values() if t.business_id == business_id}

    def list_applications(
        self, filters: Optional[ApplicationFilters] = None
    ) -> list[ApplicationRecord]:
        filters = filters or ApplicationFilters()
        task_ids = (
            self._business_task_ids(filters.business_id)
            if filters.business_id
            else None
        )
        if task_ids is not None and not task_ids:
            return []
        items = [
            a
            for a in self.applications.values()
            if (not filters.task_id or a.task_id == filters.task_id)
            and (not filters.intern_id or a.intern_id == filters.intern_id)
            and (not filters.status or a.status == filters.status)
            and (task_ids is None or a.task_id in task_ids)
        ]
        items.sort(key=lambda a: a.created_at, reverse=True)
        return [replace(a) for a in items]

    # Submissions

    def _with_meta(self, submission: SubmissionRecord) -> SubmissionRecord:
        intern = self.profiles.get(submission.intern_id)
        task = self.tasks.get(submission.task_id)
        return replace(
            submission,
            intern_name=intern.name if intern else None,
            task_title=task.title if task else None,
        )

    def create_submission(self, submission: SubmissionRecord) -> SubmissionRecord:
        stored = replace(submission, intern_name=None, task_title=None)
        self.submissions[stored.id] = stored
        return self._with_meta(stored)

    def get_submission(self, submission_id: str) -> Optional[SubmissionRecord]:
        submission = self.submissions.get(submission_id)
        return self._with_meta(submission) if submission else None

    def update_submission(
        self, submission_id: str, updates: dict
    ) -> Optional[SubmissionRecord]:
        submission = self.submissions.get(submission_id)
        if not submission:
            return None
        for key, value in _clean_updates(updates, SUBMISSION_FIELDS).items():
            setattr(submission, key, value)
        submission.updated_at = _now()
        return self._with_meta(submission)

    def list_submissions(
        self, filters: Optional[SubmissionFilters] = None
    ) -> list[SubmissionRecord]:
        filters = filters or SubmissionFilters()
        task_ids = (
            self._business_task_ids(filters.business_id)
            if filters.business_id
            else None
        )
        if task_ids is not None and not task_ids:
            return []
        items = [
            s
            for s in self.submissions.values()
            if (not filters.task_id or s.task_id == filters.task_id)
            and (not filters.intern_id or s.intern_id == filters.intern_id)
            and (not filters.status or s.status == filters.status)
            and (task_ids is None or s.task_id in task_ids)
        ]
        items.sort(key=lambda s: (s.submitted_date, s.created_at), reverse=True)
        return [self._with_meta(s) for s in items]

    # Badges

    def save_badge(self, badge: BadgeRecord) -> BadgeRecord:
        self.badges[badge.id] = replace(badge)
        return replace(badge)

    def list_badges(self) -> list[BadgeRecord]:
        items = sorted(self.badges.values(), key=lambda b: b.requirement_value)
        return [replace(b) for b in items]

    def list_intern_badges(self, intern_id: str) -> list[InternBadgeRecord]:
        items = [b for b in self.intern_badges.values() if b.intern_id == intern_id]
        items.sort(key=lambda b: b.unlocked_at)
        return [replace(b) for b in items]

    def award_badge(self, intern_id: str, badge_id: str) -> InternBadgeRecord:
        for record in self.intern_badges.values():
            if record.intern_id == intern_id and record.badge_id == badge_id:
                return replace(record)
        record = InternBadgeRecord(intern_id=intern_id, badge_id=badge_id)
        self.intern_badges[record.id] = record
        return replace(record)


def _like_pattern(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class SqlDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    # Row conversion

    @staticmethod
    def _to_profile(row: "ProfileRow") -> ProfileRecord:
        return ProfileRecord(
            id=row.id,
            email=row.email,
            name=row.name,
            role=row.role,
            points=row.points,
            level=row.level,
            business_name=row.business_name,
            industry=row.industry,
            location=row.location,
            website=row.website,
            description=row.description,
            average_rating=row.average_rating,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_task(
        row: "TaskRow",
        owner_name: Optional[str] = None,
        owner_business_name: Optional[str] = None,
    ) -> TaskRecord:
        return TaskRecord(
            id=row.id,
            business_id=row.business_id,
            title=row.title,
            description=row.description,
            category=row.category,
            difficulty=row.difficulty,
            points=row.points,
            duration=row.duration,
            deadline=row.deadline,
            status=row.status,
            skills=list(row.skills or []),
            posted_date=row.posted_date,
            business_name=owner_business_name or owner_name,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_application(row: "ApplicationRow") -> ApplicationRecord:
        return ApplicationRecord(
            id=row.id,
            task_id=row.task_id,
            intern_id=row.intern_id,
            application_text=row.application_text,
            status=row.status,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_submission(
        row: "SubmissionRow",
        intern_name: Optional[str] = None,
        task_title: Optional[str] = None,
    ) -> SubmissionRecord:
        return SubmissionRecord(
            id=row.id,
            task_id=row.task_id,
            intern_id=row.intern_id,
            description=row.description,
            attachment_url=row.attachment_url,
            status=row.status,
            rating=row.rating,
            feedback=row.feedback,
            submitted_date=row.submitted_date,
            intern_name=intern_name,
            task_title=task_title,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_badge(row: "BadgeRow") -> BadgeRecord:
        return BadgeRecord(
            id=row.id,
            name=row.name,
            description=row.description,
            icon=row.icon,
            requirement_type=row.requirement_type,
            requirement_value=row.requirement_value,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_intern_badge(row: "InternBadgeRow") -> InternBadgeRecord:
        return InternBadgeRecord(
            id=row.id,
            intern_id=row.intern_id,
            badge_id=row.badge_id,
            unlocked_at=row.unlocked_at,
        )

    @staticmethod
    def _apply(row, updates: dict, allowed: set[str]) -> None:
        for key, value in _clean_updates(updates, allowed).items():
            setattr(row, key, value)
        row.updated_at = _now()

    # Profiles

    def create_profile(self, profile: ProfileRecord) -> ProfileRecord:
        with self.Session() as session:
            row = ProfileRow(
                id=profile.id,
                email=profile.email,
                name=profile.name,
                role=profile.role,
                points=profile.points,
                level=profile.level,
                business_name=profile.business_name,
                industry=profile.industry,
                location=profile.location,
                website=profile.website,
                description=profile.description,
                average_rating=profile.average_rating,
                created_at=profile.created_at,
                updated_at=profile.updated_at,
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ValueError(f"Profile {profile.id} already exists") from exc
            return self._to_profile(row)

    def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        with self.Session() as session:
            row = session.get(ProfileRow, user_id)
            return self._to_profile(row) if row else None

    def update_profile(
        self, user_id: str, updates: dict
    ) -> Optional[ProfileRecord]:
        with self.Session() as session:
            row = session.get(ProfileRow, user_id)
            if not row:
                return None
            self._apply(row, updates, PROFILE_FIELDS)
            session.commit()
            return self._to_profile(row)

    def list_profiles(
        self,
        *,
        role: Optional[str] = None,
        order_by_points: bool = False,
        limit: Optional[int] = None,
    ) -> list[ProfileRecord]:
        with self.Session() as session:
            stmt = select(ProfileRow)
            if role:
                stmt = stmt.where(ProfileRow.role == role)
            if order_by_points:
                stmt = stmt.order_by(
                    ProfileRow.points.desc(), ProfileRow.created_at.asc()
                )
            if limit is not None:
                stmt = stmt.limit(limit)
            rows = session.execute(stmt).scalars().all()
            return [self._to_profile(row) for row in rows]

    # Tasks

    def _task_query(self):
        return select(TaskRow, ProfileRow.name, ProfileRow.business_name).outerjoin(
            ProfileRow, ProfileRow.id == TaskRow.business_id
        )

    def create_task(self, task: TaskRecord) -> TaskRecord:
        with self.Session() as session:
            row = TaskRow(
                id=task.id,
                business_id=task.business_id,
                title=task.title,
                description=task.description,
                category=task.category,
                difficulty=task.difficulty,
                points=task.points,
                duration=task.duration,
                deadline=task.deadline,
                status=task.status,
                skills=list(task.skills),
                posted_date=task.posted_date,
                created_at=task.created_at,
                updated_at=task.updated_at,
            )
            session.add(row)
            session.commit()
        return self.get_task(task.id)

    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        with self.Session() as session:
            result = session.execute(
                self._task_query().where(TaskRow.id == task_id)
            ).first()
            if not result:
                return None
            row, owner_name, owner_business_name = result
            return self._to_task(row, owner_name, owner_business_name)

    def update_task(self, task_id: str, updates: dict) -> Optional[TaskRecord]:
        with self.Session() as session:
            row = session.get(TaskRow, task_id)
            if not row:
                return None
            if "skills" in updates:
                updates = {**updates, "skills": list(updates["skills"] or [])}
            self._apply(row, updates, TASK_FIELDS)
            session.commit()
        return self.get_task(task_id)

    def delete_task(self, task_id: str) -> bool:
        with self.Session() as session:
            row = session.get(TaskRow, task_id)
            if not row:
                return False
            session.query(SubmissionRow).filter(
                SubmissionRow.task_id == task_id
            ).delete(synchronize_session=False)
            session.query(ApplicationRow).filter(
                ApplicationRow.task_id == task_id
            ).delete(synchronize_session=False)
            session.delete(row)
            session.commit()
            return True

    def list_tasks(self, filters: Optional[TaskFilters] = None) -> list[TaskRecord]:
        filters = filters or TaskFilters()
        stmt = self._task_query()
        if filters.business_id:
            stmt = stmt.where(TaskRow.business_id == filters.business_id)
        if filters.status:
            stmt = stmt.where(TaskRow.status == filters.status)
        if _active(filters.category):
            stmt = stmt.where(TaskRow.category == filters.category)
        if _active(filters.difficulty):
            stmt = stmt.where(TaskRow.difficulty == filters.difficulty)
        if filters.search:
            pattern = _like_pattern(filters.search)
            stmt = stmt.where(
                or_(
                    TaskRow.title.ilike(pattern, escape="\\"),
                    TaskRow.description.ilike(pattern, escape="\\"),
                )
            )
        stmt = stmt.order_by(TaskRow.posted_date.desc(), TaskRow.created_at.desc())
        with self.Session() as session:
            return [
                self._to_task(row, owner_name, owner_business_name)
                for row, owner_name, owner_business_name in session.execute(stmt).all()
            ]

    # Applications

    def create_application(self, application: ApplicationRecord) -> ApplicationRecord:
        with self.Session() as session:
            row = ApplicationRow(
                id=application.id,
                task_id=application.task_id,
                intern_id=application.intern_id,
                application_text=application.application_text,
                status=application.status,
                created_at=application.created_at,
                updated_at=application.updated_at,
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                # Unique (task_id, intern_id): another request created it.
                session.rollback()
                logger.info(
                    "Application for task %s by %s already exists",
                    application.task_id,
                    application.intern_id,
                )
                existing = self.find_application(
                    application.task_id, application.intern_id
                )
                if existing is None:
                    raise
                return existing
            return self._to_application(row)

    def get_application(self, application_id: str) -> Optional[ApplicationRecord]:
        with self.Session() as session:
            row = session.get(ApplicationRow, application_id)
            return self._to_application(row) if row else None

    def find_application(
        self, task_id: str, intern_id: str
    ) -> Optional[ApplicationRecord]:
        with self.Session() as session:
            row = session.execute(
                select(ApplicationRow).where(
                    ApplicationRow.task_id == task_id,
                    ApplicationRow.intern_id == intern_id,
                )
            ).scalar_one_or_none()
            return self._to_application(row) if row else None

    def update_application(
        self, application_id: str, updates: dict
    ) -> Optional[ApplicationRecord]:
        with self.Session() as session:
            row = session.get(ApplicationRow, application_id)
            if not row:
                return None
            self._apply(row, updates, APPLICATION_FIELDS)
            session.commit()
            return self._to_application(row)

    def _business_task_ids(self, session: Session, business_id: str) -> list[str]:
        return list(
            session.execute(
                select(TaskRow.id).where(TaskRow.business_id == business_id)
            ).scalars()
        )

    def list_applications(
        self, filters: Optional[ApplicationFilters] = None
    ) -> list[ApplicationRecord]:
        filters = filters or ApplicationFilters()
        with self.Session() as session:
            stmt = select(ApplicationRow)
            if filters.task_id:
                stmt = stmt.where(ApplicationRow.task_id == filters.task_id)
            if filters.intern_id:
                stmt = stmt.where(ApplicationRow.intern_id == filters.intern_id)
            if filters.status:
                stmt = stmt.where(ApplicationRow.status == filters.status)
            if filters.business_id:
                task_ids = self._business_task_ids(session, filters.business_id)
                if not task_ids:
                    return []
                stmt = stmt.where(ApplicationRow.task_id.in_(task_ids))
            stmt = stmt.order_by(ApplicationRow.created_at.desc())
            return [
                self._to_application(row)
                for row in session.execute(stmt).scalars().all()
            ]

    # Submissions

    def _submission_query(self):
        intern = aliased(ProfileRow)
        return (
            select(SubmissionRow, intern.name, TaskRow.title)
            .outerjoin(intern, intern.id == SubmissionRow.intern_id)
            .outerjoin(TaskRow, TaskRow.id == SubmissionRow.task_id)
        )

    def create_submission(self, submission: SubmissionRecord) -> SubmissionRecord:
        with self.Session() as session:
            row = SubmissionRow(
                id=submission.id,
                task_id=submission.task_id,
                intern_id=submission.intern_id,
                description=submission.description,
                attachment_url=submission.attachment_url,
                status=submission.status,
                rating=submission.rating,
                feedback=submission.feedback,
                submitted_date=submission.submitted_date,
                created_at=submission.created_at,
                updated_at=submission.updated_at,
            )
            session.add(row)
            session.commit()
        return self.get_submission(submission.id)

    def get_submission(self, submission_id: str) -> Optional[SubmissionRecord]:
        with self.Session() as session:
            result = session.execute(
                self._submission_query().where(SubmissionRow.id == submission_id)
            ).first()
            if not result:
                return None
            row, intern_name, task_title = result
            return self._to_submission(row, intern_name, task_title)

    def update_submission(
        self, submission_id: str, updates: dict
    ) -> Optional[SubmissionRecord]:
        with self.Session() as session:
            row = session.get(SubmissionRow, submission_id)
            if not row:
                return None
            self._apply(row, updates, SUBMISSION_FIELDS)
            session.commit()
        return self.get_submission(submission_id)

    def list_submissions(
        self, filters: Optional[SubmissionFilters] = None
    ) -> list[SubmissionRecord]:
        filters = filters or SubmissionFilters()
        with self.Session() as session:
            stmt = self._submission_query()
            if filters.task_id:
                stmt = stmt.where(SubmissionRow.task_id == filters.task_id)
            if filters.intern_id:
                stmt = stmt.where(SubmissionRow.intern_id == filters.intern_id)
            if filters.status:
                stmt = stmt.where(SubmissionRow.status == filters.status)
            if filters.business_id:
                task_ids = self._business_task_ids(session, filters.business_id)
                if not task_ids:
                    return []
                stmt = stmt.where(SubmissionRow.task_id.in_(task_ids))
            stmt = stmt.order_by(
                SubmissionRow.submitted_date.desc(), SubmissionRow.created_at.desc()
            )
            return [
                self._to_submission(row, intern_name, task_title)
                for row, intern_name, task_title in session.execute(stmt).all()
            ]

    # Badges

    def save_badge(self, badge: BadgeRecord) -> BadgeRecord:
        with self.Session() as session:
            row = session.get(BadgeRow, badge.id)
            if row:
                row.name = badge.name
                row.description = badge.description
                row.icon = badge.icon
                row.requirement_type = badge.requirement_type
                row.requirement_value = badge.requirement_value
            else:
                row = BadgeRow(
                    id=badge.id,
                    name=badge.name,
                    description=badge.description,
                    icon=badge.icon,
                    requirement_type=badge.requirement_type,
                    requirement_value=badge.requirement_value,
                    created_at=badge.created_at,
                )
                session.add(row)
            session.commit()
            return self._to_badge(row)

    def list_badges(self) -> list[BadgeRecord]:
        with self.Session() as session:
            rows = (
                session.execute(
                    select(BadgeRow).order_by(
                        BadgeRow.requirement_value.asc(), BadgeRow.created_at.asc()
                    )
                )
                .scalars()
                .all()
            )
            return [self._to_badge(row) for row in rows]

    def list_intern_badges(self, intern_id: str) -> list[InternBadgeRecord]:
        with self.Session() as session:
            rows = (
                session.execute(
                    select(InternBadgeRow)
                    .where(InternBadgeRow.intern_id == intern_id)
                    .order_by(InternBadgeRow.unlocked_at.asc())
                )
                .scalars()
                .all()
            )
            return [self._to_intern_badge(row) for row in rows]

    def _find_intern_badge(
        self, session: Session, intern_id: str, badge_id: str
    ) -> Optional["InternBadgeRow"]:
        return session.execute(
            select(InternBadgeRow).where(
                InternBadgeRow.intern_id == intern_id,
                InternBadgeRow.badge_id == badge_id,
            )
        ).scalar_one_or_none()

    def award_badge(self, intern_id: str, badge_id: str) -> InternBadgeRecord:
        with self.Session() as session:
            existing = self._find_intern_badge(session, intern_id, badge_id)
            if existing:
                return self._to_intern_badge(existing)
            record = InternBadgeRecord(intern_id=intern_id, badge_id=badge_id)
            row = InternBadgeRow(
                id=record.id,
                intern_id=intern_id,
                badge_id=badge_id,
                unlocked_at=record.unlocked_at,
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                existing = self._find_intern_badge(session, intern_id, badge_id)
                if existing is None:
                    raise
                return self._to_intern_badge(existing)
            return record


def count_by(records: Iterable, attribute: str) -> Dict[str, int]:
    """Tally records by the value of one attribute."""
    counts: Dict[str, int] = {}
    for record in records:
        key = getattr(record, attribute)
        counts[key] = counts.get(key, 0) + 1
    return counts


Base = declarative_base()


class ProfileRow(Base):
    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    role = Column(String, nullable=False, index=True)
    points = Column(Integer, nullable=False, default=0)
    level = Column(Integer, nullable=False, default=1)
    business_name = Column(String, nullable=True)
    industry = Column(String, nullable=True)
    location = Column(String, nullable=True)
    website = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    average_rating = Column(Float, nullable=False, default=0.0)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class TaskRow(Base):
    __tablename__ = "tasks"

    id = Column(String, primary_key=True)
    business_id = Column(
        String, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String, nullable=False, index=True)
    difficulty = Column(String, nullable=False)
    points = Column(Integer, nullable=False)
    duration = Column(String, nullable=True)
    deadline = Column(String, nullable=True)
    status = Column(String, nullable=False, index=True)
    skills = Column(JSON, nullable=False, default=list)
    posted_date = Column(String, nullable=False)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class ApplicationRow(Base):
    __tablename__ = "applications"
    __table_args__ = (UniqueConstraint("task_id", "intern_id"),)

    id = Column(String, primary_key=True)
    task_id = Column(
        String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    intern_id = Column(
        String, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    application_text = Column(Text, nullable=True)
    status = Column(String, nullable=False, index=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class SubmissionRow(Base):
    __tablename__ = "submissions"

    id = Column(String, primary_key=True)
    task_id = Column(
        String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    intern_id = Column(
        String, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    description = Column(Text, nullable=False)
    attachment_url = Column(String, nullable=True)
    status = Column(String, nullable=False, index=True)
    rating = Column(Integer, nullable=True)
    feedback = Column(Text, nullable=True)
    submitted_date = Column(String, nullable=False)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class BadgeRow(Base):
    __tablename__ = "badges"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=False)
    icon = Column(String, nullable=False)
    requirement_type = Column(String, nullable=False)
    requirement_value = Column(Float, nullable=False)
    created_at = Column(Float, nullable=False)


class InternBadgeRow(Base):
    __tablename__ = "intern_badges"
    __table_args__ = (UniqueConstraint("intern_id", "badge_id"),)

    id = Column(String, primary_key=True)
    intern_id = Column(
        String, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    badge_id = Column(String, ForeignKey("badges.id"), nullable=False)
    unlocked_at = Column(Float, nullable=False)
