"""
Notification Routes

GET /notifications - All notifications (admin)
POST /notifications - Send a notification to a user (admin)
GET /notifications/user/{user_id} - A user's notifications
GET /notifications/user/{user_id}/unread - A user's unread notifications
GET /notifications/user/{user_id}/unread/count - Unread count
PUT /notifications/user/{user_id}/read-all - Mark all as read
DELETE /notifications/user/{user_id} - Delete all of a user's notifications
GET /notifications/{notification_id} - Get one
PUT /notifications/{notification_id} - Update
PUT /notifications/{notification_id}/read - Mark as read
DELETE /notifications/{notification_id} - Delete

Users only reach their own notifications; admins reach all of them.
"""

from typing import Dict, List

from fastapi import APIRouter, Depends, Response

from stagora.core.auth import get_current_user, get_current_admin, ensure_owner_or_admin
from stagora.services.notification_service import NotificationService, get_notification_service
from stagora.schemas.schemas import NotificationCreate, NotificationUpdate, UnreadCountResponse

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _owned(notification_id: str, user: dict, service: NotificationService) -> None:
    notification = service.find_notification(notification_id)
    ensure_owner_or_admin(user, notification["user_id"])


@router.get("", response_model=List[dict])
async def list_notifications(
    admin: dict = Depends(get_current_admin),
    service: NotificationService = Depends(get_notification_service)
):
    return service.list_all()


@router.post("", status_code=201)
async def create_notification(
    data: NotificationCreate,
    admin: dict = Depends(get_current_admin),
    service: NotificationService = Depends(get_notification_service)
):
    return service.create(data.user_id, data.message, data.return_link)


# ============================================================
# PER USER
# ============================================================

@router.get("/user/{user_id}", response_model=List[dict])
async def user_notifications(
    user_id: str,
    user: dict = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    ensure_owner_or_admin(user, user_id)
    return service.list_for_user(user_id)


@router.get("/user/{user_id}/unread", response_model=List[dict])
async def unread_notifications(
    user_id: str,
    user: dict = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    ensure_owner_or_admin(user, user_id)
    return service.list_for_user(user_id, unread_only=True)


@router.get("/user/{user_id}/unread/count", response_model=UnreadCountResponse)
async def unread_count(
    user_id: str,
    user: dict = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    ensure_owner_or_admin(user, user_id)
    return UnreadCountResponse(count=service.count_unread(user_id))


@router.put("/user/{user_id}/read-all", response_model=Dict[str, int])
async def read_all(
    user_id: str,
    user: dict = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    ensure_owner_or_admin(user, user_id)
    return {"modified": service.mark_all_as_read(user_id)}


@router.delete("/user/{user_id}", response_model=Dict[str, int])
async def delete_user_notifications(
    user_id: str,
    user: dict = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    ensure_owner_or_admin(user, user_id)
    return {"deleted": service.delete_all_for_user(user_id)}


# ============================================================
# SINGLE NOTIFICATION
# ============================================================

@router.get("/{notification_id}")
async def get_notification(
    notification_id: str,
    user: dict = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    _owned(notification_id, user, service)
    return service.get_notification(notification_id)


@router.put("/{notification_id}")
async def update_notification(
    notification_id: str,
    data: NotificationUpdate,
    user: dict = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    _owned(notification_id, user, service)
    return service.update(notification_id, data)


@router.put("/{notification_id}/read")
async def mark_as_read(
    notification_id: str,
    user: dict = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    _owned(notification_id, user, service)
    return service.mark_as_read(notification_id)


@router.delete("/{notification_id}", status_code=204)
async def delete_notification(
    notification_id: str,
    user: dict = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    _owned(notification_id, user, service)
    service.delete(notification_id)
    return Response(status_code=204)
