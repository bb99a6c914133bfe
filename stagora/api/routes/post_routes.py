"""
Post Routes

GET /posts - Search visible posts (filters + pagination)
GET /posts/{post_id} - Get one post (hidden posts: owner or admin only)
PUT /posts/{post_id} - Update (owning company or admin)
DELETE /posts/{post_id} - Soft delete (owning company or admin)

Posts are created under their company: POST /companies/{company_id}/posts
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from stagora.core.auth import get_current_user, get_optional_user, ensure_owner_or_admin
from stagora.services.post_service import PostService, get_post_service
from stagora.schemas.schemas import OBJECT_ID_PATTERN, PaginatedResponse, PostQuery, PostUpdate, WorkMode

router = APIRouter(prefix="/posts", tags=["Posts"])


@router.get("", response_model=PaginatedResponse)
async def search_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort: Optional[str] = Query(None, description="dateAsc or dateDesc (default)"),
    search_query: Optional[str] = Query(None, alias="searchQuery"),
    sector: Optional[str] = Query(None),
    type: Optional[WorkMode] = Query(None),
    company: Optional[str] = Query(None, pattern=OBJECT_ID_PATTERN),
    min_salary: Optional[int] = Query(None, ge=0, alias="minSalary"),
    max_salary: Optional[int] = Query(None, ge=0, alias="maxSalary"),
    service: PostService = Depends(get_post_service)
):
    """
    Search internship posts.

    `searchQuery` matches title, description, sector, duration and key
    skills (case-insensitive). Salary bounds keep posts whose range
    overlaps the requested one.
    """
    query = PostQuery(
        page=page, limit=limit, sort=sort, search_query=search_query, sector=sector,
        type=type, company=company, min_salary=min_salary, max_salary=max_salary
    )
    return service.search_posts(query)


@router.get("/{post_id}")
async def get_post(
    post_id: str,
    user: Optional[dict] = Depends(get_optional_user),
    service: PostService = Depends(get_post_service)
):
    return service.get_post(post_id, viewer=user)


@router.put("/{post_id}")
async def update_post(
    post_id: str,
    data: PostUpdate,
    user: dict = Depends(get_current_user),
    service: PostService = Depends(get_post_service)
):
    post = service.find_post(post_id)
    ensure_owner_or_admin(user, post["company"])
    return service.update_post(post_id, data)


@router.delete("/{post_id}", status_code=204)
async def delete_post(
    post_id: str,
    user: dict = Depends(get_current_user),
    service: PostService = Depends(get_post_service)
):
    post = service.find_post(post_id)
    ensure_owner_or_admin(user, post["company"])
    service.remove_post(post_id)
    return Response(status_code=204)
