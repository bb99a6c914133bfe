"""
Post Service - internship offers published by companies.
"""

import logging
from typing import Optional

from bson import ObjectId
from fastapi import HTTPException
from pymongo.database import Database

from stagora.db.mongodb import get_mongo_db, COLLECTIONS
from stagora.schemas.schemas import PostCreate, PostQuery, PostUpdate
from stagora.services.mongo_service import populate, serialize_doc, serialize_docs, to_object_id, utcnow
from stagora.utils.pagination import NOT_DELETED, PostQueryBuilder, paginate

logger = logging.getLogger(__name__)

COMPANY_FIELDS = {"name": 1, "logo": 1, "city": 1, "sector": 1}


class PostService:

    def __init__(self, db: Optional[Database] = None):
        db = db if db is not None else get_mongo_db()
        self.collection = db[COLLECTIONS["posts"]]
        self.companies = db[COLLECTIONS["companies"]]

    def create_post(self, company_id: str, data: PostCreate) -> dict:
        """
        Publish a post for a company.

        Raises:
            404 when the company does not exist or was deleted
        """
        oid = to_object_id(company_id, detail="Invalid company id")
        if not self.companies.find_one({"_id": oid, **NOT_DELETED}, {"_id": 1}):
            raise HTTPException(status_code=404, detail=f"Company with ID {company_id} not found")

        now = utcnow()
        doc = data.model_dump(mode="json")
        # keep start_date a real date in Mongo
        doc["start_date"] = data.start_date
        doc.update({"company": oid, "created_at": now, "updated_at": now})
        result = self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id

        logger.info("Post %s created by company %s", result.inserted_id, company_id)
        return serialize_doc(doc)

    def search_posts(self, query: PostQuery) -> dict:
        """Visible posts matching the search filters, company resolved."""
        builder = PostQueryBuilder(query.model_dump())
        result = paginate(
            self.collection, builder.build(), query.page, query.limit,
            sort=builder.build_sort(), serialize=False
        )
        populate(result["data"], "company", self.companies, COMPANY_FIELDS)
        result["data"] = serialize_docs(result["data"])
        return result

    def find_post(self, post_id: str) -> dict:
        """Raw post document; 404 when missing or deleted."""
        oid = to_object_id(post_id, detail="Invalid post id")
        post = self.collection.find_one({"_id": oid, **NOT_DELETED})
        if not post:
            raise HTTPException(status_code=404, detail=f"Post with ID {post_id} not found")
        return post

    def get_post(self, post_id: str, viewer: Optional[dict] = None) -> dict:
        """
        One post with its company. Hidden posts are only shown to the
        owning company and to admins, everyone else gets a 404.
        """
        post = self.find_post(post_id)
        if not post.get("is_visible", True) and not self._can_manage(post, viewer):
            raise HTTPException(status_code=404, detail=f"Post with ID {post_id} not found")
        return self._present(post)

    def update_post(self, post_id: str, data: PostUpdate) -> dict:
        post = self.find_post(post_id)
        updates = data.model_dump(exclude_unset=True, mode="json")
        if not updates:
            raise HTTPException(status_code=400, detail="No fields to update")
        if "start_date" in updates:
            updates["start_date"] = data.start_date

        min_salary = updates.get("min_salary", post.get("min_salary"))
        max_salary = updates.get("max_salary", post.get("max_salary"))
        if min_salary is not None and max_salary is not None and min_salary > max_salary:
            raise HTTPException(status_code=400, detail="min_salary cannot be greater than max_salary")

        updates["updated_at"] = utcnow()
        self.collection.update_one({"_id": post["_id"]}, {"$set": updates})
        return self._present(self.find_post(post_id))

    def remove_post(self, post_id: str) -> None:
        oid = to_object_id(post_id, detail="Invalid post id")
        now = utcnow()
        result = self.collection.update_one(
            {"_id": oid, **NOT_DELETED},
            {"$set": {"deleted_at": now, "updated_at": now}}
        )
        if result.matched_count == 0:
            raise HTTPException(status_code=404, detail="Post not found or already deleted")
        logger.info("Post %s deleted", post_id)

    def remove_all_by_company(self, company_id: ObjectId) -> int:
        """Soft delete every live post of a company. Returns how many."""
        now = utcnow()
        result = self.collection.update_many(
            {"company": company_id, **NOT_DELETED},
            {"$set": {"deleted_at": now, "updated_at": now}}
        )
        return result.modified_count

    # ------------------------------------------------------------

    def _can_manage(self, post: dict, viewer: Optional[dict]) -> bool:
        if not viewer:
            return False
        return viewer["role"] == "admin" or viewer["user_id"] == str(post["company"])

    def _present(self, post: dict) -> dict:
        populate([post], "company", self.companies, COMPANY_FIELDS)
        return serialize_doc(post)


def get_post_service() -> PostService:
    return PostService()
