"""
Application Routes

POST /applications - Apply to a post, get presigned CV / cover letter URLs (student)
GET /applications/me - My applications (student)
GET /applications/post/{post_id} - Applications received on a post (owning company)
GET /applications/{application_id} - Get one application
PATCH /applications/{application_id}/status - Update status (owning company)
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from stagora.core.auth import get_current_user, get_current_student
from stagora.services.application_service import ApplicationService, get_application_service
from stagora.schemas.schemas import (
    ApplicationCreate, ApplicationCreatedResponse, ApplicationPaginationQuery,
    ApplicationStatus, ApplicationStatusUpdate, PaginatedResponse
)

router = APIRouter(prefix="/applications", tags=["Applications"])


def application_query(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[List[ApplicationStatus]] = Query(None),
    sort: Optional[str] = Query(None, description="dateAsc or dateDesc (default)")
) -> ApplicationPaginationQuery:
    return ApplicationPaginationQuery(page=page, limit=limit, status=status, sort=sort)


@router.post("", response_model=ApplicationCreatedResponse, status_code=201)
async def apply(
    data: ApplicationCreate,
    student: dict = Depends(get_current_student),
    service: ApplicationService = Depends(get_application_service)
):
    """
    Apply to a post.

    Upload the CV (and the cover letter when `lm_extension` was given)
    with a PUT on the returned URLs.
    """
    return service.create_application(student["user_id"], data)


@router.get("/me", response_model=PaginatedResponse)
async def my_applications(
    query: ApplicationPaginationQuery = Depends(application_query),
    student: dict = Depends(get_current_student),
    service: ApplicationService = Depends(get_application_service)
):
    return service.list_for_student(student["user_id"], query)


@router.get("/post/{post_id}", response_model=PaginatedResponse)
async def post_applications(
    post_id: str,
    query: ApplicationPaginationQuery = Depends(application_query),
    user: dict = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service)
):
    return service.list_for_post(post_id, query, user)


@router.get("/{application_id}")
async def get_application(
    application_id: str,
    user: dict = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service)
):
    return service.get_application(application_id, user)


@router.patch("/{application_id}/status")
async def update_status(
    application_id: str,
    data: ApplicationStatusUpdate,
    user: dict = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service)
):
    return service.update_status(application_id, data.status, user)
