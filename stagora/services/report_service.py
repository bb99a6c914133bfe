"""
Report Service - moderation of forum messages.

A report ties a reporter to a forum message with a reason. Each user may
report a given message once. Admins list reports grouped by the reported
user, and move them through pending -> reviewed -> resolved / rejected.
"""

import logging
from typing import Dict, List, Optional

from fastapi import HTTPException
from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from stagora.db.mongodb import get_mongo_db, COLLECTIONS
from stagora.schemas.schemas import CreateReport, ReportStatus
from stagora.services.mongo_service import (
    populate, serialize_doc, serialize_docs, to_object_id, utcnow
)
from stagora.utils.pagination import pagination_envelope

logger = logging.getLogger(__name__)

USER_FIELDS = {"email": 1, "first_name": 1, "last_name": 1, "ban": 1}
ALREADY_REPORTED = "You have already reported this message"


class ReportService:
    """
    Handles report storage and the lookups around it (messages, users).
    """

    def __init__(self, db: Optional[Database] = None):
        db = db if db is not None else get_mongo_db()
        self.collection = db[COLLECTIONS["reports"]]
        self.messages = db[COLLECTIONS["messages"]]
        self.topics = db[COLLECTIONS["topics"]]
        self.users = db[COLLECTIONS["users"]]

    def create_report(self, data: CreateReport, reporter_id: str) -> dict:
        """
        File a report against a forum message.

        Returns:
            {"report": <report>, "reported_user_email": <author email>}

        Raises:
            400 malformed message id or duplicate report, 404 missing
            message or author
        """
        message_id = to_object_id(data.message_id, detail="Invalid message id")
        reporter_oid = to_object_id(reporter_id, detail="Invalid reporter id")

        message = self.messages.find_one({"_id": message_id})
        if not message:
            raise HTTPException(status_code=404, detail="Message not found")

        reported_user = self.users.find_one({"_id": message.get("author")}, {"email": 1})
        if not reported_user:
            raise HTTPException(status_code=404, detail="Reported user not found")

        existing = self.collection.find_one({"message_id": message_id, "reporter_id": reporter_oid})
        if existing:
            raise HTTPException(status_code=400, detail=ALREADY_REPORTED)

        now = utcnow()
        doc = {
            "message_id": message_id,
            "reporter_id": reporter_oid,
            "reason": data.reason.value,
            "explanation": data.explanation,
            "status": ReportStatus.pending.value,
            "created_at": now,
            "updated_at": now,
        }
        try:
            result = self.collection.insert_one(doc)
        except DuplicateKeyError:
            # lost a race against a concurrent identical report
            raise HTTPException(status_code=400, detail=ALREADY_REPORTED)
        doc["_id"] = result.inserted_id

        logger.info("Report %s filed by %s on message %s", result.inserted_id, reporter_id, message_id)
        return {"report": serialize_doc(doc), "reported_user_email": reported_user["email"]}

    def get_all_reports(self, page: int = 1, limit: int = 50, status: Optional[str] = None) -> dict:
        """
        List reports grouped by reported user (the message author).

        Groups are ordered by their most recent report and never split across
        pages: a page takes whole groups until it holds at least `limit`
        reports. Within a group, reports are newest first.
        """
        filter = {"status": status} if status else {}
        reports = list(self.collection.find(filter))
        total = len(reports)

        self._populate_messages(reports)

        groups: Dict[str, List[dict]] = {}
        for report in reports:
            message = report.get("message_id")
            author = message.get("author") if isinstance(message, dict) else None
            if not author:
                continue
            key = str(author["_id"]) if isinstance(author, dict) else str(author)
            groups.setdefault(key, []).append(report)

        ordered = sorted(
            groups.values(),
            key=lambda group: max(r["created_at"] for r in group),
            reverse=True
        )

        pages: List[List[List[dict]]] = []
        current: List[List[dict]] = []
        count = 0
        for group in ordered:
            if current and count >= limit:
                pages.append(current)
                current = []
                count = 0
            current.append(group)
            count += len(group)
        if current:
            pages.append(current)

        selected = pages[page - 1] if 0 < page <= len(pages) else []
        data = []
        for group in selected:
            data.extend(sorted(group, key=lambda r: r["created_at"], reverse=True))

        return pagination_envelope(
            serialize_docs(data), total=total, page=page, limit=limit, total_pages=len(pages)
        )

    def get_report_by_id(self, report_id: str) -> dict:
        report = self.collection.find_one({"_id": to_object_id(report_id, detail="Invalid report id")})
        if not report:
            raise HTTPException(status_code=404, detail=f"Report with ID {report_id} not found")
        return self._with_refs([report])[0]

    def get_reports_by_message(self, message_id: str) -> List[dict]:
        """All reports on one message, newest first."""
        oid = to_object_id(message_id, detail="Invalid message id")
        reports = list(self.collection.find({"message_id": oid}).sort("created_at", DESCENDING))
        return self._with_refs(reports)

    def get_reports_by_reporter(self, reporter_id: str) -> List[dict]:
        oid = to_object_id(reporter_id, detail="Invalid reporter id")
        reports = list(self.collection.find({"reporter_id": oid}).sort("created_at", DESCENDING))
        self._populate_messages(reports)
        return serialize_docs(reports)

    def update_report_status(self, report_id: str, status: ReportStatus) -> dict:
        oid = to_object_id(report_id, detail="Invalid report id")
        result = self.collection.update_one(
            {"_id": oid},
            {"$set": {"status": status.value, "updated_at": utcnow()}}
        )
        if result.matched_count == 0:
            raise HTTPException(status_code=404, detail=f"Report with ID {report_id} not found")
        logger.info("Report %s moved to %s", report_id, status.value)
        return self.get_report_by_id(report_id)

    def delete_report(self, report_id: str) -> None:
        oid = to_object_id(report_id, detail="Invalid report id")
        result = self.collection.delete_one({"_id": oid})
        if result.deleted_count == 0:
            raise HTTPException(status_code=404, detail=f"Report with ID {report_id} not found")
        logger.info("Report %s deleted", report_id)

    def get_report_stats(self) -> Dict[str, int]:
        """Count of reports per status."""
        pipeline = [{"$group": {"_id": "$status", "count": {"$sum": 1}}}]
        return {row["_id"]: row["count"] for row in self.collection.aggregate(pipeline)}

    # ------------------------------------------------------------

    def _populate_messages(self, reports: List[dict]) -> List[dict]:
        """message_id -> message, with its author and topic resolved."""
        populate(reports, "message_id", self.messages)
        messages = [r["message_id"] for r in reports if isinstance(r.get("message_id"), dict)]
        populate(messages, "author", self.users, USER_FIELDS)
        populate(messages, "topic_id", self.topics, {"title": 1})
        return reports

    def _with_refs(self, reports: List[dict]) -> List[dict]:
        self._populate_messages(reports)
        populate(reports, "reporter_id", self.users, USER_FIELDS)
        return serialize_docs(reports)


def get_report_service() -> ReportService:
    """FastAPI dependency."""
    return ReportService()
