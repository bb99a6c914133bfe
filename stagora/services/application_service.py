"""
Application Service - students applying to posts.

Applying returns presigned upload URLs; the client then PUTs the CV (and
the optional cover letter) straight to the bucket.
"""

import logging
from typing import Optional

from fastapi import HTTPException
from pymongo.database import Database

from stagora.core.auth import ensure_owner_or_admin
from stagora.db.mongodb import get_mongo_db, COLLECTIONS
from stagora.schemas.schemas import ApplicationCreate, ApplicationPaginationQuery, ApplicationStatus
from stagora.services.mongo_service import populate, serialize_doc, serialize_docs, to_object_id, utcnow
from stagora.services.notification_service import NotificationService
from stagora.services.storage_service import StorageService
from stagora.utils.pagination import NOT_DELETED, ApplicationQueryBuilder, paginate

logger = logging.getLogger(__name__)

POST_FIELDS = {
    "title": 1, "description": 1, "duration": 1, "start_date": 1, "min_salary": 1,
    "max_salary": 1, "sector": 1, "key_skills": 1, "address": 1, "type": 1, "company": 1,
}
STUDENT_FIELDS = {"first_name": 1, "last_name": 1, "email": 1}


class ApplicationService:

    def __init__(self, db: Optional[Database] = None, storage: Optional[StorageService] = None):
        db = db if db is not None else get_mongo_db()
        self.collection = db[COLLECTIONS["applications"]]
        self.posts = db[COLLECTIONS["posts"]]
        self.students = db[COLLECTIONS["students"]]
        self.notifications = NotificationService(db)
        self._storage = storage

    @property
    def storage(self) -> StorageService:
        if self._storage is None:
            self._storage = StorageService()
        return self._storage

    def create_application(self, student_id: str, data: ApplicationCreate) -> dict:
        """
        Register an application and presign its document uploads.

        Returns:
            {"cv_url": ..., "lm_url": ... or None}

        Raises:
            404 unknown student or post, 409 already applied
        """
        student_oid = to_object_id(student_id, detail="Invalid student id")
        post_oid = to_object_id(data.post_id, detail="Invalid post id")

        if not self.students.find_one({"_id": student_oid, **NOT_DELETED}, {"_id": 1}):
            raise HTTPException(status_code=404, detail=f"Student with id {student_id} not found")
        if not self.posts.find_one({"_id": post_oid, **NOT_DELETED}, {"_id": 1}):
            raise HTTPException(status_code=404, detail=f"Post with id {data.post_id} not found")

        if self.collection.find_one({"student": student_oid, "post": post_oid, **NOT_DELETED}, {"_id": 1}):
            raise HTTPException(status_code=409, detail="Application already exists for this student and post")

        prefix = f"{student_id}_{data.post_id}"
        cv_key = f"{prefix}_cv.{data.cv_extension}"
        cv_url = self.storage.presign_put(cv_key, student_id)

        lm_key, lm_url = None, None
        if data.lm_extension:
            lm_key = f"{prefix}_lm.{data.lm_extension}"
            lm_url = self.storage.presign_put(lm_key, student_id)

        now = utcnow()
        doc = {
            "student": student_oid,
            "post": post_oid,
            "status": ApplicationStatus.pending.value,
            "cv": cv_key,
            "created_at": now,
            "updated_at": now,
        }
        if lm_key:
            doc["cover_letter"] = lm_key
        result = self.collection.insert_one(doc)

        logger.info("Application %s: student %s -> post %s", result.inserted_id, student_id, data.post_id)
        return {"cv_url": cv_url, "lm_url": lm_url}

    def list_for_post(self, post_id: str, query: ApplicationPaginationQuery, user: dict) -> dict:
        """Applications received on a post, for the company that owns it."""
        post = self._find_post(post_id)
        ensure_owner_or_admin(user, post["company"])

        params = query.model_dump()
        params["post"] = post_id
        builder = ApplicationQueryBuilder(params)
        result = paginate(
            self.collection, builder.build(), query.page, query.limit,
            sort=builder.build_sort(), serialize=False
        )
        populate(result["data"], "student", self.students, STUDENT_FIELDS)
        result["data"] = serialize_docs(result["data"])
        return result

    def list_for_student(self, student_id: str, query: ApplicationPaginationQuery) -> dict:
        builder = ApplicationQueryBuilder(query.model_dump())
        filter = builder.build()
        filter["student"] = to_object_id(student_id, detail="Invalid student id")
        result = paginate(
            self.collection, filter, query.page, query.limit,
            sort=builder.build_sort(), serialize=False
        )
        populate(result["data"], "post", self.posts, POST_FIELDS)
        result["data"] = serialize_docs(result["data"])
        return result

    def get_application(self, application_id: str, user: dict) -> dict:
        application = self._find(application_id)
        self._ensure_can_view(application, user)
        populate([application], "post", self.posts, POST_FIELDS)
        populate([application], "student", self.students, STUDENT_FIELDS)
        return serialize_doc(application)

    def update_status(self, application_id: str, status: ApplicationStatus, user: dict) -> dict:
        """
        Only the company owning the post (or an admin) moves the status.
        The student is notified of the change.
        """
        application = self._find(application_id)
        post = self.posts.find_one({"_id": application["post"]}, {"company": 1, "title": 1})
        if user["role"] != "admin" and (not post or str(post["company"]) != user["user_id"]):
            raise HTTPException(status_code=403, detail="You do not have access to this resource")

        self.collection.update_one(
            {"_id": application["_id"]},
            {"$set": {"status": status.value, "updated_at": utcnow()}}
        )
        application["status"] = status.value
        title = (post or {}).get("title") or "a post"
        self.notifications.create(
            application["student"],
            f"Your application to \"{title}\" is now {status.value}",
            return_link=f"/applications/{application['_id']}",
        )
        return serialize_doc(application)

    # ------------------------------------------------------------

    def _find(self, application_id: str) -> dict:
        oid = to_object_id(application_id, detail="Invalid application id")
        application = self.collection.find_one({"_id": oid, **NOT_DELETED})
        if not application:
            raise HTTPException(status_code=404, detail=f"Application with id {application_id} not found")
        return application

    def _find_post(self, post_id: str) -> dict:
        oid = to_object_id(post_id, detail="Invalid post id")
        post = self.posts.find_one({"_id": oid, **NOT_DELETED}, {"company": 1})
        if not post:
            raise HTTPException(status_code=404, detail=f"Post with id {post_id} not found")
        return post

    def _ensure_can_view(self, application: dict, user: dict) -> None:
        if user["role"] == "admin" or str(application["student"]) == user["user_id"]:
            return
        post = self.posts.find_one({"_id": application["post"]}, {"company": 1})
        if user["role"] == "company" and post and str(post["company"]) == user["user_id"]:
            return
        raise HTTPException(status_code=403, detail="You do not have access to this resource")


def get_application_service() -> ApplicationService:
    return ApplicationService()
