"""
Company Routes

POST /companies - Create a company account and profile (admin)
GET /companies - List companies
GET /companies/{company_id} - Get one company
PUT /companies/{company_id} - Update profile (owner or admin)
DELETE /companies/{company_id} - Soft delete company and its posts (admin)
POST /companies/{company_id}/posts - Publish a post (owner)
"""

from fastapi import APIRouter, HTTPException, Depends, Query, Response

from stagora.core.auth import get_current_user, get_current_admin, ensure_owner_or_admin
from stagora.services.company_service import CompanyService, get_company_service
from stagora.services.post_service import PostService, get_post_service
from stagora.schemas.schemas import CompanyCreate, CompanyUpdate, PaginatedResponse, PostCreate

router = APIRouter(prefix="/companies", tags=["Companies"])


@router.post("", status_code=201)
async def create_company(
    data: CompanyCreate,
    admin: dict = Depends(get_current_admin),
    service: CompanyService = Depends(get_company_service)
):
    return service.create_company(data)


@router.get("", response_model=PaginatedResponse)
async def list_companies(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: dict = Depends(get_current_user),
    service: CompanyService = Depends(get_company_service)
):
    return service.list_companies(page, limit)


@router.get("/{company_id}")
async def get_company(
    company_id: str,
    user: dict = Depends(get_current_user),
    service: CompanyService = Depends(get_company_service)
):
    return service.get_company(company_id)


@router.put("/{company_id}")
async def update_company(
    company_id: str,
    data: CompanyUpdate,
    user: dict = Depends(get_current_user),
    service: CompanyService = Depends(get_company_service)
):
    """Update a company profile. Only admins may change `is_valid`."""
    ensure_owner_or_admin(user, company_id)
    if data.is_valid is not None and user["role"] != "admin":
        raise HTTPException(status_code=403, detail="Only admins can validate companies")
    return service.update_company(company_id, data)


@router.delete("/{company_id}", status_code=204)
async def delete_company(
    company_id: str,
    admin: dict = Depends(get_current_admin),
    service: CompanyService = Depends(get_company_service)
):
    service.delete_company(company_id)
    return Response(status_code=204)


@router.post("/{company_id}/posts", status_code=201)
async def create_post(
    company_id: str,
    data: PostCreate,
    user: dict = Depends(get_current_user),
    service: PostService = Depends(get_post_service)
):
    """Publish an internship post for this company."""
    ensure_owner_or_admin(user, company_id)
    return service.create_post(company_id, data)
