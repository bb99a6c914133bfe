"""
Notification Service - in-app messages addressed to one user.

Notifications are created by other services (an application status change
notifies the student) or by an admin, and read by their recipient.
"""

import logging
from typing import List, Optional

from fastapi import HTTPException
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from stagora.db.mongodb import get_mongo_db, COLLECTIONS
from stagora.schemas.schemas import NotificationUpdate
from stagora.services.mongo_service import serialize_doc, serialize_docs, to_object_id, utcnow

logger = logging.getLogger(__name__)

NEWEST_FIRST = [("created_at", DESCENDING)]


class NotificationService:

    def __init__(self, db: Optional[Database] = None):
        db = db if db is not None else get_mongo_db()
        self.collection = db[COLLECTIONS["notifications"]]

    def create(self, user_id, message: str, return_link: str = "") -> dict:
        now = utcnow()
        doc = {
            "user_id": to_object_id(user_id, detail="Invalid user id"),
            "message": message,
            "return_link": return_link,
            "read": False,
            "created_at": now,
            "updated_at": now,
        }
        result = self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.debug("Notification %s sent to %s", result.inserted_id, user_id)
        return serialize_doc(doc)

    def list_all(self) -> List[dict]:
        return serialize_docs(self.collection.find({}).sort(NEWEST_FIRST))

    def list_for_user(self, user_id: str, unread_only: bool = False) -> List[dict]:
        filter = self._user_filter(user_id)
        if unread_only:
            filter["read"] = False
        return serialize_docs(self.collection.find(filter).sort(NEWEST_FIRST))

    def count_unread(self, user_id: str) -> int:
        return self.collection.count_documents({**self._user_filter(user_id), "read": False})

    def find_notification(self, notification_id: str) -> dict:
        """Raw document; 404 when missing."""
        oid = to_object_id(notification_id, detail="Invalid notification id")
        notification = self.collection.find_one({"_id": oid})
        if not notification:
            raise HTTPException(status_code=404, detail=f"Notification with id {notification_id} not found")
        return notification

    def get_notification(self, notification_id: str) -> dict:
        return serialize_doc(self.find_notification(notification_id))

    def update(self, notification_id: str, data: NotificationUpdate) -> dict:
        updates = data.model_dump(exclude_unset=True)
        if not updates:
            raise HTTPException(status_code=400, detail="No fields to update")
        return self._set(notification_id, updates)

    def mark_as_read(self, notification_id: str) -> dict:
        return self._set(notification_id, {"read": True})

    def mark_all_as_read(self, user_id: str) -> int:
        """Returns how many notifications changed."""
        result = self.collection.update_many(
            {**self._user_filter(user_id), "read": False},
            {"$set": {"read": True, "updated_at": utcnow()}}
        )
        return result.modified_count

    def delete(self, notification_id: str) -> None:
        oid = to_object_id(notification_id, detail="Invalid notification id")
        result = self.collection.delete_one({"_id": oid})
        if result.deleted_count == 0:
            raise HTTPException(status_code=404, detail=f"Notification with id {notification_id} not found")

    def delete_all_for_user(self, user_id: str) -> int:
        return self.collection.delete_many(self._user_filter(user_id)).deleted_count

    # ------------------------------------------------------------

    def _user_filter(self, user_id: str) -> dict:
        return {"user_id": to_object_id(user_id, detail="Invalid user id")}

    def _set(self, notification_id: str, updates: dict) -> dict:
        oid = to_object_id(notification_id, detail="Invalid notification id")
        updates["updated_at"] = utcnow()
        notification = self.collection.find_one_and_update(
            {"_id": oid},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
        if not notification:
            raise HTTPException(status_code=404, detail=f"Notification with id {notification_id} not found")
        return serialize_doc(notification)


def get_notification_service() -> NotificationService:
    return NotificationService()
