"""
HTTP routes for the TaskVerse API.

One group per dashboard tab: auth and profile, intern (browse, my tasks,
leaderboard, badges, portfolio) and business (tasks, submissions, stats).
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import Response

from taskverse import portfolio, services
from taskverse.auth import AuthClient, session_expires_at
from taskverse.config import get_settings
from taskverse.db import (
    ApplicationFilters,
    DbClient,
    ProfileRecord,
    Role,
    SubmissionFilters,
    TaskFilters,
)
from taskverse.dependencies import (
    get_access_token,
    get_auth_client,
    get_current_profile,
    get_db_client,
    get_storage_client,
    require_business,
    require_intern,
)
from taskverse.schemas import (
    ApplicationResponse,
    ApplyRequest,
    BadgeResponse,
    BadgeStatusResponse,
    BusinessHomeResponse,
    BusinessStatsResponse,
    CollaboratorResponse,
    InternHomeResponse,
    LeaderboardEntryResponse,
    LeaderboardResponse,
    LevelProgressResponse,
    MyTaskResponse,
    PasswordResetRequest,
    PasswordUpdateRequest,
    PortfolioItemResponse,
    PortfolioResponse,
    PortfolioSummaryResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    PublicProfileResponse,
    ReviewRequest,
    ReviewResponse,
    SessionResponse,
    SignInRequest,
    SignUpRequest,
    StatusResponse,
    SubmissionCreateRequest,
    SubmissionResponse,
    TaskCreateRequest,
    TaskListResponse,
    TaskResponse,
    TaskUpdateRequest,
    UploadResponse,
)
from taskverse.scoring import LeaderboardEntry, find_rank
from taskverse.storage import StorageClient

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=StatusResponse)
def health_check():
    return StatusResponse(status="ok")


# ============ Auth ============


@router.post("/auth/signup", response_model=ProfileResponse, status_code=201)
def sign_up(
    payload: SignUpRequest,
    db: DbClient = Depends(get_db_client),
    auth: AuthClient = Depends(get_auth_client),
):
    profile = services.register_user(
        db,
        auth,
        email=payload.email,
        password=payload.password,
        name=payload.name,
        role=payload.role,
    )
    return ProfileResponse.model_validate(profile)


@router.post("/auth/signin", response_model=SessionResponse)
def sign_in(
    payload: SignInRequest,
    db: DbClient = Depends(get_db_client),
    auth: AuthClient = Depends(get_auth_client),
):
    session = auth.sign_in(payload.email, payload.password)
    profile = db.get_profile(session.user.id)
    if not profile:
        logger.warning("User %s signed in without a profile", session.user.id)
    return SessionResponse(
        access_token=session.access_token,
        token_type=session.token_type,
        expires_at=session_expires_at(session),
        profile=ProfileResponse.model_validate(profile) if profile else None,
    )


@router.post("/auth/signout", response_model=StatusResponse)
def sign_out(
    token: str = Depends(get_access_token),
    auth: AuthClient = Depends(get_auth_client),
):
    auth.sign_out(token)
    return StatusResponse(status="ok")


@router.post("/auth/password-reset", response_model=StatusResponse)
def request_password_reset(
    payload: PasswordResetRequest,
    auth: AuthClient = Depends(get_auth_client),
):
    redirect_to = payload.redirect_to or get_settings().password_reset_redirect_url
    auth.request_password_reset(payload.email, redirect_to)
    return StatusResponse(status="ok")


@router.post("/auth/password-update", response_model=StatusResponse)
def update_password(
    payload: PasswordUpdateRequest,
    token: str = Depends(get_access_token),
    auth: AuthClient = Depends(get_auth_client),
):
    auth.update_password(token, payload.new_password)
    return StatusResponse(status="ok")


# ============ Profiles ============


@router.get("/me", response_model=ProfileResponse)
def get_me(profile: ProfileRecord = Depends(get_current_profile)):
    return ProfileResponse.model_validate(profile)


@router.patch("/me", response_model=ProfileResponse)
def update_me(
    payload: ProfileUpdateRequest,
    profile: ProfileRecord = Depends(get_current_profile),
    db: DbClient = Depends(get_db_client),
):
    updated = services.update_profile(
        db, profile, payload.model_dump(exclude_unset=True)
    )
    return ProfileResponse.model_validate(updated)


@router.get("/profiles/{user_id}", response_model=PublicProfileResponse)
def get_public_profile(
    user_id: str,
    _: ProfileRecord = Depends(get_current_profile),
    db: DbClient = Depends(get_db_client),
):
    public = services.get_public_profile(db, user_id)
    profile = public.profile
    return PublicProfileResponse(
        id=profile.id,
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
        tasks_completed=public.tasks_completed,
        badges=[BadgeResponse.model_validate(b) for b in public.badges],
    )


@router.get("/badges", response_model=list[BadgeResponse])
def list_badges(db: DbClient = Depends(get_db_client)):
    return [BadgeResponse.model_validate(b) for b in db.list_badges()]


# ============ Intern ============


@router.get("/intern/home", response_model=InternHomeResponse)
def intern_home(
    intern: ProfileRecord = Depends(require_intern),
    db: DbClient = Depends(get_db_client),
):
    home = services.get_intern_home(db, intern)
    return InternHomeResponse(
        progress=LevelProgressResponse.model_validate(home.progress),
        badges_total=home.badges_total,
        badges_unlocked=home.badges_unlocked,
        next_badge=BadgeResponse.model_validate(home.next_badge)
        if home.next_badge
        else None,
        recent_tasks=[TaskResponse.model_validate(t) for t in home.recent_tasks],
        active_tasks=home.active_tasks,
    )


@router.get("/tasks", response_model=TaskListResponse)
def browse_tasks(
    category: Optional[str] = Query(None),
    difficulty: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    _: ProfileRecord = Depends(get_current_profile),
    db: DbClient = Depends(get_db_client),
):
    tasks = services.browse_tasks(
        db, category=category, difficulty=difficulty, search=search
    )
    return TaskListResponse(
        tasks=[TaskResponse.model_validate(t) for t in tasks],
        categories=["all", *services.task_categories(tasks)],
    )


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: str,
    _: ProfileRecord = Depends(get_current_profile),
    db: DbClient = Depends(get_db_client),
):
    return TaskResponse.model_validate(services.get_task(db, task_id))


@router.post("/tasks/{task_id}/apply", response_model=ApplicationResponse)
def apply_to_task(
    task_id: str,
    payload: ApplyRequest,
    intern: ProfileRecord = Depends(require_intern),
    db: DbClient = Depends(get_db_client),
):
    application = services.apply_to_task(
        db, intern, task_id, payload.application_text
    )
    return ApplicationResponse.model_validate(application)


@router.post(
    "/tasks/{task_id}/submissions", response_model=SubmissionResponse, status_code=201
)
def submit_work(
    task_id: str,
    payload: SubmissionCreateRequest,
    intern: ProfileRecord = Depends(require_intern),
    db: DbClient = Depends(get_db_client),
):
    submission = services.submit_work(
        db, intern, task_id, payload.description, payload.attachment_url
    )
    return SubmissionResponse.model_validate(submission)


@router.post("/uploads", response_model=UploadResponse, status_code=201)
async def upload_attachment(
    file: UploadFile = File(...),
    profile: ProfileRecord = Depends(get_current_profile),
    storage: StorageClient = Depends(get_storage_client),
):
    data = await file.read()
    url = services.upload_attachment(
        storage, profile, file.filename or "upload", data, file.content_type
    )
    return UploadResponse(url=url)


@router.get("/intern/my-tasks", response_model=list[MyTaskResponse])
def my_tasks(
    intern: ProfileRecord = Depends(require_intern),
    db: DbClient = Depends(get_db_client),
):
    return [
        MyTaskResponse(
            task=TaskResponse.model_validate(item.task),
            application=ApplicationResponse.model_validate(item.application),
            submission=SubmissionResponse.model_validate(item.submission)
            if item.submission
            else None,
            status=item.status,
        )
        for item in services.get_my_tasks(db, intern)
    ]


@router.get("/intern/badges", response_model=list[BadgeStatusResponse])
def intern_badges(
    intern: ProfileRecord = Depends(require_intern),
    db: DbClient = Depends(get_db_client),
):
    return [
        BadgeStatusResponse(
            badge=BadgeResponse.model_validate(view.badge),
            unlocked=view.unlocked,
            unlocked_at=view.unlocked_at,
        )
        for view in services.get_intern_badges_view(db, intern.id)
    ]


@router.get("/leaderboard", response_model=LeaderboardResponse)
def leaderboard(
    limit: Optional[int] = Query(None, ge=1, le=500),
    profile: ProfileRecord = Depends(get_current_profile),
    db: DbClient = Depends(get_db_client),
):
    entries = services.get_leaderboard(
        db, limit=limit or get_settings().leaderboard_limit
    )
    me = None
    if profile.role == Role.INTERN.value:
        me = find_rank(
            entries,
            profile.id,
            fallback=LeaderboardEntry(
                intern_id=profile.id,
                name=profile.name,
                points=profile.points or 0,
                level=profile.level or 1,
            ),
        )
    return LeaderboardResponse(
        entries=[LeaderboardEntryResponse.model_validate(e) for e in entries],
        me=LeaderboardEntryResponse.model_validate(me) if me else None,
    )


@router.get("/intern/portfolio", response_model=PortfolioResponse)
def intern_portfolio(
    intern: ProfileRecord = Depends(require_intern),
    db: DbClient = Depends(get_db_client),
):
    items = services.get_intern_portfolio(db, intern.id)
    summary = portfolio.summarize_portfolio(intern, items)
    return PortfolioResponse(
        summary=PortfolioSummaryResponse.model_validate(summary),
        items=[PortfolioItemResponse.model_validate(item) for item in items],
    )


@router.get("/intern/portfolio.pdf")
def intern_portfolio_pdf(
    intern: ProfileRecord = Depends(require_intern),
    db: DbClient = Depends(get_db_client),
):
    items = services.get_intern_portfolio(db, intern.id)
    try:
        pdf_bytes = portfolio.generate_portfolio_pdf(intern, items)
    except ImportError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    filename = portfolio.portfolio_filename(intern.name)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": portfolio.content_disposition(filename)},
    )


# ============ Business ============


@router.get("/business/home", response_model=BusinessHomeResponse)
def business_home(
    business: ProfileRecord = Depends(require_business),
    db: DbClient = Depends(get_db_client),
):
    home = services.get_business_home(db, business.id)
    return BusinessHomeResponse(
        open_tasks=home.open_tasks,
        completed_tasks=home.completed_tasks,
        total_applications=home.total_applications,
        pending_submissions=home.pending_submissions,
        recent_submissions=[
            SubmissionResponse.model_validate(s) for s in home.recent_submissions
        ],
        tasks=[TaskResponse.model_validate(t) for t in home.tasks],
    )


@router.get("/business/stats", response_model=BusinessStatsResponse)
def business_stats(
    business: ProfileRecord = Depends(require_business),
    db: DbClient = Depends(get_db_client),
):
    stats = services.get_business_stats(db, business.id)
    return BusinessStatsResponse.model_validate(stats)


@router.get("/business/tasks", response_model=list[TaskResponse])
def business_tasks(
    status: Optional[str] = Query(None),
    business: ProfileRecord = Depends(require_business),
    db: DbClient = Depends(get_db_client),
):
    tasks = db.list_tasks(TaskFilters(business_id=business.id, status=status))
    return [TaskResponse.model_validate(t) for t in tasks]


@router.post("/business/tasks", response_model=TaskResponse, status_code=201)
def create_task(
    payload: TaskCreateRequest,
    business: ProfileRecord = Depends(require_business),
    db: DbClient = Depends(get_db_client),
):
    task = services.create_task(db, business, **payload.model_dump())
    return TaskResponse.model_validate(task)


@router.patch("/business/tasks/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: str,
    payload: TaskUpdateRequest,
    business: ProfileRecord = Depends(require_business),
    db: DbClient = Depends(get_db_client),
):
    task = services.update_task(
        db, business, task_id, payload.model_dump(exclude_unset=True)
    )
    return TaskResponse.model_validate(task)


@router.delete("/business/tasks/{task_id}", response_model=StatusResponse)
def delete_task(
    task_id: str,
    business: ProfileRecord = Depends(require_business),
    db: DbClient = Depends(get_db_client),
):
    services.delete_task(db, business, task_id)
    return StatusResponse(status="ok")


@router.get("/business/applications", response_model=list[ApplicationResponse])
def business_applications(
    task_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    business: ProfileRecord = Depends(require_business),
    db: DbClient = Depends(get_db_client),
):
    applications = db.list_applications(
        ApplicationFilters(business_id=business.id, task_id=task_id, status=status)
    )
    return [ApplicationResponse.model_validate(a) for a in applications]


@router.get("/business/submissions", response_model=list[SubmissionResponse])
def business_submissions(
    status: Optional[str] = Query(None),
    business: ProfileRecord = Depends(require_business),
    db: DbClient = Depends(get_db_client),
):
    submissions = db.list_submissions(
        SubmissionFilters(business_id=business.id, status=status)
    )
    return [SubmissionResponse.model_validate(s) for s in submissions]


@router.post(
    "/business/submissions/{submission_id}/review", response_model=ReviewResponse
)
def review_submission(
    submission_id: str,
    payload: ReviewRequest,
    business: ProfileRecord = Depends(require_business),
    db: DbClient = Depends(get_db_client),
):
    outcome = services.review_submission(
        db,
        business,
        submission_id,
        decision=payload.decision,
        rating=payload.rating,
        feedback=payload.feedback,
    )
    return ReviewResponse(
        submission=SubmissionResponse.model_validate(outcome.submission),
        points_awarded=outcome.points_awarded,
        unlocked_badges=[
            BadgeResponse.model_validate(b) for b in outcome.unlocked_badges
        ],
    )


@router.get("/business/collaborators", response_model=list[CollaboratorResponse])
def business_collaborators(
    limit: int = Query(5, ge=1, le=50),
    business: ProfileRecord = Depends(require_business),
    db: DbClient = Depends(get_db_client),
):
    collaborators = services.get_recent_collaborators(db, business.id, limit=limit)
    return [CollaboratorResponse.model_validate(c) for c in collaborators]
