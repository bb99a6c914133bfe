"""
User Routes - account moderation

POST /users/{user_id}/ban - Ban an account (admin)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from stagora.core.auth import get_current_admin
from stagora.services.mailer_service import MailerService, get_mailer_service
from stagora.services.user_service import UserService, get_user_service

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("/{user_id}/ban", status_code=204)
async def ban_user(
    user_id: str,
    reason: Optional[str] = Query(None, max_length=500),
    admin: dict = Depends(get_current_admin),
    service: UserService = Depends(get_user_service),
    mailer: MailerService = Depends(get_mailer_service)
):
    """
    Ban an account. The user is told by mail and every later request
    made with their token is refused.

    - 404 unknown or already banned user
    """
    service.ban_user(user_id, reason, mailer=mailer)
    return Response(status_code=204)
