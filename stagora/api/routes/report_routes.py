"""
Report Routes - moderation of forum messages

POST /reports - Report a message
GET /reports - Reports grouped by reported user (admin)
GET /reports/my-reports - Reports I filed
GET /reports/stats/summary - Count per status (admin)
GET /reports/message/{message_id} - Reports on a message
GET /reports/{report_id} - Get one report (admin)
PATCH /reports/{report_id} - Change status (admin)
DELETE /reports/{report_id} - Delete (admin)
"""

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response

from stagora.core.auth import get_current_user, get_current_admin
from stagora.services.report_service import ReportService, get_report_service
from stagora.schemas.schemas import (
    CreateReport, PaginatedResponse, ReportCreatedResponse, ReportPaginationQuery, ReportStatus, UpdateReport
)

router = APIRouter(prefix="/reports", tags=["Reports"])


def report_query(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    status: Optional[ReportStatus] = Query(None)
) -> ReportPaginationQuery:
    return ReportPaginationQuery(page=page, limit=limit, status=status)


@router.post("", response_model=ReportCreatedResponse, status_code=201)
async def create_report(
    data: CreateReport,
    user: dict = Depends(get_current_user),
    service: ReportService = Depends(get_report_service)
):
    """
    Report a forum message.

    - 400 malformed message id, or message already reported by the caller
    - 404 message or its author not found
    """
    result = service.create_report(data, user["user_id"])
    return ReportCreatedResponse(message="Report created successfully", **result)


@router.get("", response_model=PaginatedResponse)
async def list_reports(
    query: ReportPaginationQuery = Depends(report_query),
    admin: dict = Depends(get_current_admin),
    service: ReportService = Depends(get_report_service)
):
    """
    Reports grouped by reported user.

    A page holds whole groups, so it may contain a few more than `limit`
    reports.
    """
    status = query.status.value if query.status else None
    return service.get_all_reports(query.page, query.limit, status)


@router.get("/my-reports", response_model=List[dict])
async def my_reports(user: dict = Depends(get_current_user), service: ReportService = Depends(get_report_service)):
    return service.get_reports_by_reporter(user["user_id"])


@router.get("/stats/summary", response_model=Dict[str, int])
async def report_stats(admin: dict = Depends(get_current_admin), service: ReportService = Depends(get_report_service)):
    return service.get_report_stats()


@router.get("/message/{message_id}", response_model=List[dict])
async def message_reports(
    message_id: str,
    user: dict = Depends(get_current_user),
    service: ReportService = Depends(get_report_service)
):
    return service.get_reports_by_message(message_id)


@router.get("/{report_id}")
async def get_report(
    report_id: str,
    admin: dict = Depends(get_current_admin),
    service: ReportService = Depends(get_report_service)
):
    return service.get_report_by_id(report_id)


@router.patch("/{report_id}")
async def update_report(
    report_id: str,
    data: UpdateReport,
    admin: dict = Depends(get_current_admin),
    service: ReportService = Depends(get_report_service)
):
    return service.update_report_status(report_id, data.status)


@router.delete("/{report_id}", status_code=204)
async def delete_report(
    report_id: str,
    admin: dict = Depends(get_current_admin),
    service: ReportService = Depends(get_report_service)
):
    service.delete_report(report_id)
    return Response(status_code=204)
