"""
User Service - accounts shared by every role.

Registration creates the user and, for students and companies, the profile
document that shares its `_id`.
"""

import logging
from typing import Optional

from fastapi import HTTPException
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from stagora.core.auth import hash_password, verify_password, create_access_token
from stagora.db.mongodb import get_mongo_db, COLLECTIONS
from stagora.schemas.schemas import RegisterRequest, UserRole
from stagora.services.mongo_service import serialize_doc, to_object_id, utcnow

logger = logging.getLogger(__name__)

PUBLIC_FIELDS = {"password_hash": 0, "email_verification_code": 0, "password_reset_code": 0}


class UserService:

    def __init__(self, db: Optional[Database] = None):
        db = db if db is not None else get_mongo_db()
        self.collection = db[COLLECTIONS["users"]]
        self.companies = db[COLLECTIONS["companies"]]
        self.students = db[COLLECTIONS["students"]]

    def find_by_email(self, email: str) -> Optional[dict]:
        return self.collection.find_one({"email": email.lower()})

    def get_user(self, user_id: str) -> dict:
        user = self.collection.find_one({"_id": to_object_id(user_id, detail="Invalid user id")}, PUBLIC_FIELDS)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return serialize_doc(user)

    def create_user(
        self,
        email: str,
        password: str,
        role: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> dict:
        """
        Insert a user account.

        Raises:
            HTTPException 400 when the email is taken
        """
        email = email.lower()
        if self.collection.find_one({"email": email}, {"_id": 1}):
            raise HTTPException(status_code=400, detail="Email already registered")

        now = utcnow()
        doc = {
            "email": email,
            "password_hash": hash_password(password),
            "role": role,
            "first_name": first_name,
            "last_name": last_name,
            "is_verified": False,
            "created_at": now,
            "updated_at": now,
        }
        try:
            result = self.collection.insert_one(doc)
        except DuplicateKeyError:
            raise HTTPException(status_code=400, detail="Email already registered")
        doc["_id"] = result.inserted_id
        return doc

    def attach_profile(self, user: dict, collection, profile: dict) -> dict:
        """
        Insert the profile that shares the user's `_id`.

        The user account is removed again when the profile cannot be
        stored, so a failed signup can be retried.
        """
        profile["_id"] = user["_id"]
        try:
            collection.insert_one(profile)
        except DuplicateKeyError:
            self.collection.delete_one({"_id": user["_id"]})
            logger.warning("Profile for %s already exists, user %s rolled back", user["email"], user["_id"])
            raise HTTPException(status_code=409, detail="A profile already exists for this email")
        return profile

    def register(self, data: RegisterRequest) -> dict:
        """Self-signup for students and companies. Returns the token payload."""
        if data.role not in (UserRole.student, UserRole.company):
            raise HTTPException(status_code=400, detail="Admin accounts cannot be self-registered")

        # imported students have a profile but no account yet
        if data.role == UserRole.student and self.students.find_one({"email": data.email.lower()}, {"_id": 1}):
            raise HTTPException(
                status_code=409,
                detail="A student profile already exists for this email. Contact an administrator."
            )

        user = self.create_user(data.email, data.password, data.role.value, data.first_name, data.last_name)
        now = utcnow()

        if data.role == UserRole.company:
            self.attach_profile(user, self.companies, {
                "name": data.company_name,
                "email": user["email"],
                "is_valid": False,
                "created_at": now,
                "updated_at": now,
            })
        elif data.role == UserRole.student:
            self.attach_profile(user, self.students, {
                "email": user["email"],
                "first_name": data.first_name,
                "last_name": data.last_name,
                "created_at": now,
                "updated_at": now,
            })

        logger.info("Registered %s account %s", data.role.value, user["_id"])
        return self._token(user)

    def authenticate(self, email: str, password: str) -> dict:
        user = self.find_by_email(email)
        if not user or not verify_password(password, user["password_hash"]):
            raise HTTPException(status_code=401, detail="Invalid email or password")
        if user.get("ban"):
            raise HTTPException(status_code=403, detail="This account has been banned")
        return self._token(user)

    def ban_user(self, user_id: str, reason: Optional[str] = None, mailer=None) -> dict:
        """
        Ban an account and tell its owner by mail.

        Raises:
            404 when the user does not exist or is already banned
        """
        oid = to_object_id(user_id, detail="Invalid user id")
        ban = {"date": utcnow(), "reason": reason}
        user = self.collection.find_one_and_update(
            {"_id": oid, "ban": {"$exists": False}},
            {"$set": {"ban": ban, "updated_at": ban["date"]}},
            projection={"email": 1},
        )
        if not user:
            raise HTTPException(status_code=404, detail="User not found or already banned")
        logger.info("User %s banned", user_id)

        # the ban stands even when the mail cannot be delivered
        if mailer is not None:
            try:
                mailer.send_account_ban_email(user["email"], reason)
            except OSError:
                logger.exception("Failed to send ban email to %s", user["email"])
        return serialize_doc({"_id": oid, "email": user["email"], "ban": ban})

    def _token(self, user: dict) -> dict:
        user_id = str(user["_id"])
        token = create_access_token({"sub": user_id, "role": user["role"]})
        return {"access_token": token, "token_type": "bearer", "user_id": user_id, "role": user["role"]}


def get_user_service() -> UserService:
    return UserService()
