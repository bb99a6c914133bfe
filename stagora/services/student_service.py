"""
Student Service - student profiles and bulk import.

Imports accept the rows produced by utils.file_upload.parse_import_content.
Column names may be snake_case or camelCase (studentNumber, firstName, ...).
"""

import logging
from typing import Dict, List, Optional

from fastapi import HTTPException
from pydantic import ValidationError
from pymongo import ASCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from stagora.db.mongodb import get_mongo_db, COLLECTIONS
from stagora.schemas.schemas import StudentCreate, StudentUpdate
from stagora.services.mongo_service import serialize_doc, to_object_id, utcnow
from stagora.utils.pagination import NOT_DELETED, paginate

logger = logging.getLogger(__name__)

COLUMN_ALIASES = {
    "studentnumber": "student_number",
    "student_number": "student_number",
    "firstname": "first_name",
    "first_name": "first_name",
    "lastname": "last_name",
    "last_name": "last_name",
    "email": "email",
}


def normalize_row(row: dict) -> dict:
    """Map known column names onto the StudentCreate fields, drop the rest."""
    normalized = {}
    for key, value in row.items():
        field = COLUMN_ALIASES.get(str(key).strip().lower())
        if field:
            normalized[field] = value
    if isinstance(normalized.get("email"), str):
        normalized["email"] = normalized["email"].strip().lower()
    return normalized


class StudentService:

    def __init__(self, db: Optional[Database] = None):
        db = db if db is not None else get_mongo_db()
        self.collection = db[COLLECTIONS["students"]]

    def create_student(self, data: StudentCreate) -> dict:
        if self.collection.find_one(
            {"$or": [{"email": data.email.lower()}, {"student_number": data.student_number}]},
            {"_id": 1}
        ):
            raise HTTPException(status_code=409, detail="Student already exists")

        now = utcnow()
        doc = data.model_dump()
        doc["email"] = doc["email"].lower()
        doc.update({"created_at": now, "updated_at": now})
        try:
            result = self.collection.insert_one(doc)
        except DuplicateKeyError:
            raise HTTPException(status_code=409, detail="Student already exists")
        doc["_id"] = result.inserted_id
        logger.info("Student %s created", result.inserted_id)
        return serialize_doc(doc)

    def list_students(self, page: int = 1, limit: int = 10) -> dict:
        return paginate(
            self.collection, dict(NOT_DELETED), page, limit,
            sort=[("last_name", ASCENDING), ("first_name", ASCENDING)]
        )

    def get_student(self, student_id: str) -> dict:
        oid = to_object_id(student_id, detail="Invalid student id")
        student = self.collection.find_one({"_id": oid, **NOT_DELETED})
        if not student:
            raise HTTPException(status_code=404, detail=f"Student with ID {student_id} not found")
        return serialize_doc(student)

    def update_student(self, student_id: str, data: StudentUpdate) -> dict:
        oid = to_object_id(student_id, detail="Invalid student id")
        updates = data.model_dump(exclude_unset=True)
        if not updates:
            raise HTTPException(status_code=400, detail="No fields to update")
        updates["updated_at"] = utcnow()

        result = self.collection.update_one({"_id": oid, **NOT_DELETED}, {"$set": updates})
        if result.matched_count == 0:
            raise HTTPException(status_code=404, detail=f"Student with ID {student_id} not found")
        return self.get_student(student_id)

    def remove_student(self, student_id: str) -> None:
        oid = to_object_id(student_id, detail="Invalid student id")
        now = utcnow()
        result = self.collection.update_one(
            {"_id": oid, **NOT_DELETED},
            {"$set": {"deleted_at": now, "updated_at": now}}
        )
        if result.matched_count == 0:
            raise HTTPException(status_code=404, detail="Student not found or already deleted")

    # ============================================================
    # BULK IMPORT
    # ============================================================

    def import_students(self, rows: List[dict], skip_existing_records: bool = False) -> Dict[str, int]:
        """
        Insert the valid, previously unknown students of an import file.

        Rows that fail validation and rows repeating an email or student
        number already seen in the file are skipped. Rows that collide with
        stored students abort the import (409) unless skip_existing_records.

        Returns:
            {"added": n, "skipped": m} where added + skipped == len(rows)
        """
        candidates: List[StudentCreate] = []
        seen_emails, seen_numbers = set(), set()
        for index, row in enumerate(rows):
            if not isinstance(row, dict):
                continue
            try:
                student = StudentCreate(**normalize_row(row))
            except ValidationError as e:
                logger.debug("Import row %d rejected: %s", index, e.errors())
                continue
            email = student.email.lower()
            if email in seen_emails or student.student_number in seen_numbers:
                continue
            seen_emails.add(email)
            seen_numbers.add(student.student_number)
            candidates.append(student)

        to_insert = self._raise_conflicts(candidates, skip_existing_records)

        if to_insert:
            now = utcnow()
            docs = []
            for student in to_insert:
                doc = student.model_dump()
                doc["email"] = doc["email"].lower()
                doc.update({"created_at": now, "updated_at": now})
                docs.append(doc)
            self.collection.insert_many(docs)

        logger.info("Student import: %d added, %d skipped", len(to_insert), len(rows) - len(to_insert))
        return {"added": len(to_insert), "skipped": len(rows) - len(to_insert)}

    def _raise_conflicts(self, students: List[StudentCreate], skip_existing_records: bool) -> List[StudentCreate]:
        """
        Compare against stored students.

        Returns the students that do not exist yet, or raises 409 listing
        the conflicts when skip_existing_records is False.
        """
        if not students:
            return []

        emails = [s.email.lower() for s in students]
        numbers = [s.student_number for s in students]
        existing = list(self.collection.find(
            {"$or": [{"email": {"$in": emails}}, {"student_number": {"$in": numbers}}]},
            {"email": 1, "student_number": 1}
        ))
        existing_emails = {doc.get("email") for doc in existing}
        existing_numbers = {doc.get("student_number") for doc in existing}

        conflicted_emails = sorted({e for e in emails if e in existing_emails})
        conflicted_numbers = sorted({n for n in numbers if n in existing_numbers})

        if (conflicted_emails or conflicted_numbers) and not skip_existing_records:
            message = ["Import failed. Some data already exists in the database:"]
            if conflicted_emails:
                message.append(f"=> Existing emails: {', '.join(conflicted_emails)}")
            if conflicted_numbers:
                message.append(f"=> Existing student numbers: {', '.join(conflicted_numbers)}")
            raise HTTPException(status_code=409, detail=message)

        return [
            s for s in students
            if s.email.lower() not in existing_emails and s.student_number not in existing_numbers
        ]


def get_student_service() -> StudentService:
    return StudentService()
