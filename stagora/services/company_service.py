"""
Company Service - company profiles.

A company profile shares its `_id` with the company's user account.
Deleting a company is a soft delete that also hides all of its posts.
"""

import logging
from typing import Optional

from fastapi import HTTPException
from pymongo import ASCENDING
from pymongo.database import Database

from stagora.db.mongodb import get_mongo_db, COLLECTIONS
from stagora.schemas.schemas import CompanyCreate, CompanyUpdate, UserRole
from stagora.services.mongo_service import serialize_doc, to_object_id, utcnow
from stagora.services.post_service import PostService
from stagora.services.user_service import UserService
from stagora.utils.pagination import NOT_DELETED, paginate

logger = logging.getLogger(__name__)


class CompanyService:

    def __init__(self, db: Optional[Database] = None):
        db = db if db is not None else get_mongo_db()
        self.collection = db[COLLECTIONS["companies"]]
        self.users = UserService(db)
        self.posts = PostService(db)

    def create_company(self, data: CompanyCreate) -> dict:
        """Create the company user account and its profile."""
        user = self.users.create_user(data.email, data.password, UserRole.company.value)

        now = utcnow()
        doc = data.model_dump(exclude={"password"}, mode="json", exclude_none=True)
        doc.update({"email": user["email"], "created_at": now, "updated_at": now})
        self.users.attach_profile(user, self.collection, doc)

        logger.info("Company %s created", user["_id"])
        return serialize_doc(doc)

    def list_companies(self, page: int = 1, limit: int = 10) -> dict:
        return paginate(self.collection, dict(NOT_DELETED), page, limit, sort=[("name", ASCENDING)])

    def get_company(self, company_id: str) -> dict:
        oid = to_object_id(company_id, detail="Invalid company id")
        company = self.collection.find_one({"_id": oid, **NOT_DELETED})
        if not company:
            raise HTTPException(status_code=404, detail=f"Company with ID {company_id} not found")
        return serialize_doc(company)

    def update_company(self, company_id: str, data: CompanyUpdate) -> dict:
        oid = to_object_id(company_id, detail="Invalid company id")
        updates = data.model_dump(exclude_unset=True, mode="json")
        if not updates:
            raise HTTPException(status_code=400, detail="No fields to update")
        updates["updated_at"] = utcnow()

        result = self.collection.update_one({"_id": oid, **NOT_DELETED}, {"$set": updates})
        if result.matched_count == 0:
            raise HTTPException(status_code=404, detail=f"Company with ID {company_id} not found")
        return self.get_company(company_id)

    def delete_company(self, company_id: str) -> None:
        """Soft delete the company and every post it published."""
        oid = to_object_id(company_id, detail="Invalid company id")
        now = utcnow()
        result = self.collection.update_one(
            {"_id": oid, **NOT_DELETED},
            {"$set": {"deleted_at": now, "updated_at": now}}
        )
        if result.matched_count == 0:
            raise HTTPException(status_code=404, detail=f"Company with ID {company_id} not found")

        removed = self.posts.remove_all_by_company(oid)
        logger.info("Company %s deleted along with %d posts", company_id, removed)


def get_company_service() -> CompanyService:
    return CompanyService()
