"""
Pydantic schemas for the TaskVerse API.
"""

from __future__ import annotations

from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class RecordModel(BaseModel):
    """Response model that can be built straight from a db record."""

    model_config = ConfigDict(from_attributes=True)


# Auth


class SignUpRequest(BaseModel):
    email: str = Field(..., max_length=320)
    password: str = Field(..., min_length=1, max_length=128)
    name: Optional[str] = Field(default=None, max_length=200)
    role: Literal["intern", "business"] = "intern"


class SignInRequest(BaseModel):
    email: str = Field(..., max_length=320)
    password: str = Field(..., max_length=128)


class PasswordResetRequest(BaseModel):
    email: str = Field(..., max_length=320)
    redirect_to: Optional[str] = None


class PasswordUpdateRequest(BaseModel):
    new_password: str = Field(..., min_length=1, max_length=128)


class StatusResponse(BaseModel):
    status: Literal["ok"]


# Profiles


class ProfileResponse(RecordModel):
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


class SessionResponse(BaseModel):
    access_token: str
    token_type: str
    expires_at: float
    profile: Optional[ProfileResponse] = None


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=200)
    business_name: Optional[str] = Field(default=None, max_length=200)
    industry: Optional[str] = Field(default=None, max_length=200)
    location: Optional[str] = Field(default=None, max_length=200)
    website: Optional[str] = Field(default=None, max_length=500)
    description: Optional[str] = Field(default=None, max_length=5000)


class BadgeResponse(RecordModel):
    id: str
    name: str
    description: str
    icon: str
    requirement_type: str
    requirement_value: float


class BadgeStatusResponse(BaseModel):
    badge: BadgeResponse
    unlocked: bool
    unlocked_at: Optional[float] = None


class PublicProfileResponse(BaseModel):
    id: str
    name: str
    role: str
    points: int
    level: int
    business_name: Optional[str] = None
    industry: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None
    average_rating: float = 0.0
    tasks_completed: int = 0
    badges: list[BadgeResponse] = []


# Tasks


class TaskResponse(RecordModel):
    id: str
    business_id: str
    business_name: Optional[str] = None
    title: str
    description: str
    category: str
    difficulty: str
    points: int
    duration: Optional[str] = None
    deadline: Optional[str] = None
    status: str
    skills: list[str]
    posted_date: str


class TaskListResponse(BaseModel):
    tasks: list[TaskResponse]
    categories: list[str]


class TaskCreateRequest(BaseModel):
    title: str = Field(..., max_length=200)
    description: str = Field(..., max_length=10000)
    category: str = Field(..., max_length=100)
    difficulty: str
    points: int
    duration: Optional[str] = Field(default=None, max_length=100)
    deadline: Optional[str] = Field(default=None, max_length=32)
    skills: Union[list[str], str, None] = None


class TaskUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=10000)
    category: Optional[str] = Field(default=None, max_length=100)
    difficulty: Optional[str] = None
    points: Optional[int] = None
    duration: Optional[str] = Field(default=None, max_length=100)
    deadline: Optional[str] = Field(default=None, max_length=32)
    skills: Union[list[str], str, None] = None
    status: Optional[str] = None


# Applications and submissions


class ApplyRequest(BaseModel):
    application_text: str = Field(..., max_length=5000)


class ApplicationResponse(RecordModel):
    id: str
    task_id: str
    intern_id: str
    application_text: Optional[str] = None
    status: str
    created_at: float


class SubmissionCreateRequest(BaseModel):
    description: str = Field(..., max_length=10000)
    attachment_url: Optional[str] = Field(default=None, max_length=2048)


class SubmissionResponse(RecordModel):
    id: str
    task_id: str
    intern_id: str
    intern_name: Optional[str] = None
    task_title: Optional[str] = None
    description: str
    attachment_url: Optional[str] = None
    status: str
    rating: Optional[int] = None
    feedback: Optional[str] = None
    submitted_date: str


class ReviewRequest(BaseModel):
    decision: Literal["approve", "reject"]
    rating: Optional[int] = None
    feedback: Optional[str] = Field(default=None, max_length=5000)


class ReviewResponse(BaseModel):
    submission: SubmissionResponse
    points_awarded: int
    unlocked_badges: list[BadgeResponse]


class UploadResponse(BaseModel):
    url: str


# Dashboards


class LevelProgressResponse(RecordModel):
    current_points: int
    level: int
    points_into_level: int
    points_for_next_level: int
    points_remaining: int
    percent: float


class InternHomeResponse(BaseModel):
    progress: LevelProgressResponse
    badges_total: int
    badges_unlocked: int
    next_badge: Optional[BadgeResponse] = None
    recent_tasks: list[TaskResponse]
    active_tasks: int


class MyTaskResponse(BaseModel):
    task: TaskResponse
    application: ApplicationResponse
    submission: Optional[SubmissionResponse] = None
    status: Literal["in-progress", "submitted", "completed", "needs-revision"]


class LeaderboardEntryResponse(RecordModel):
    rank: int
    intern_id: str
    name: str
    points: int
    level: int
    tasks_completed: int
    badges: int


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntryResponse]
    me: Optional[LeaderboardEntryResponse] = None


class PortfolioItemResponse(RecordModel):
    id: str
    task_title: str
    business_name: str
    completed_date: str
    description: str
    task_description: str
    review: Optional[str] = None
    skills: list[str]
    rating: int
    points: int


class PortfolioSummaryResponse(RecordModel):
    level: int
    points: int
    projects_completed: int
    average_rating: str
    skills: list[str]


class PortfolioResponse(BaseModel):
    summary: PortfolioSummaryResponse
    items: list[PortfolioItemResponse]


class BusinessStatsResponse(RecordModel):
    total_tasks: int
    active_tasks: int
    completed_tasks: int
    total_interns: int
    average_rating: float


class BusinessHomeResponse(BaseModel):
    open_tasks: int
    completed_tasks: int
    total_applications: int
    pending_submissions: int
    recent_submissions: list[SubmissionResponse]
    tasks: list[TaskResponse]


class CollaboratorResponse(RecordModel):
    intern_id: str
    name: str
    email: str
    rating: float
    tasks_completed: int
