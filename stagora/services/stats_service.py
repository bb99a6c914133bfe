"""
Stats Service - dashboard aggregates, computed on every call.
"""

from datetime import datetime
from typing import Optional

from pymongo.database import Database

from stagora.db.mongodb import get_mongo_db, COLLECTIONS
from stagora.schemas.schemas import ApplicationStatus
from stagora.services.mongo_service import utcnow
from stagora.utils.pagination import NOT_DELETED

TOP_COMPANIES_LIMIT = 5
HISTORY_MONTHS = 6


def months_ago(now: datetime, months: int) -> datetime:
    """Same day `months` calendar months earlier, clamped to the month's end."""
    year, month = divmod(now.year * 12 + now.month - 1 - months, 12)
    month += 1
    day = now.day
    while day > 28:
        try:
            return now.replace(year=year, month=month, day=day)
        except ValueError:
            day -= 1
    return now.replace(year=year, month=month, day=day)


class StatsService:

    def __init__(self, db: Optional[Database] = None):
        db = db if db is not None else get_mongo_db()
        self.users = db[COLLECTIONS["users"]]
        self.companies = db[COLLECTIONS["companies"]]
        self.students = db[COLLECTIONS["students"]]
        self.applications = db[COLLECTIONS["applications"]]
        self.posts = db[COLLECTIONS["posts"]]

    def get_stats(self) -> dict:
        """Everything the admin dashboard charts."""
        orphan = list(self.posts.aggregate(self._orphan_posts_pipeline()))
        return {
            "total_users": self.users.count_documents({}),
            "total_companies": self.companies.count_documents({}),
            "total_students": self.students.count_documents({}),
            "total_applications": self.applications.count_documents({}),
            "total_posts": self.posts.count_documents({}),
            "applications_by_status": list(self.applications.aggregate([
                {"$group": {"_id": "$status", "value": {"$sum": 1}}},
                {"$project": {"name": "$_id", "value": 1, "_id": 0}},
            ])),
            "applications_over_time": list(self.applications.aggregate(
                self._applications_over_time_pipeline(utcnow())
            )),
            "top_companies": list(self.posts.aggregate(self._top_companies_pipeline())),
            "orphan_offers_count": orphan[0]["count"] if orphan else 0,
        }

    def get_public_stats(self) -> dict:
        """Landing page counters, no authentication needed."""
        return {
            "total_posts": self.posts.count_documents({"is_visible": True, **NOT_DELETED}),
            "total_companies": self.companies.count_documents({"is_valid": True, **NOT_DELETED}),
            "total_students": self.students.count_documents(dict(NOT_DELETED)),
        }

    # ------------------------------------------------------------
    # pipelines
    # ------------------------------------------------------------

    def _applications_over_time_pipeline(self, now: datetime) -> list:
        return [
            {"$match": {"created_at": {"$gte": months_ago(now, HISTORY_MONTHS)}}},
            {"$group": {
                "_id": {"$dateToString": {"format": "%Y-%m", "date": "$created_at"}},
                "count": {"$sum": 1},
            }},
            {"$sort": {"_id": 1}},
            {"$project": {"name": "$_id", "count": 1, "_id": 0}},
        ]

    def _top_companies_pipeline(self) -> list:
        # response rate: share of applications that left Pending, in percent
        answered = {"$size": {"$filter": {
            "input": "$company_applications",
            "as": "app",
            "cond": {"$ne": ["$$app.status", ApplicationStatus.pending.value]},
        }}}
        return [
            {"$group": {"_id": "$company", "offers_count": {"$sum": 1}, "post_ids": {"$push": "$_id"}}},
            {"$sort": {"offers_count": -1}},
            {"$limit": TOP_COMPANIES_LIMIT},
            {"$lookup": {
                "from": COLLECTIONS["companies"],
                "localField": "_id",
                "foreignField": "_id",
                "as": "company_info",
            }},
            {"$unwind": "$company_info"},
            {"$lookup": {
                "from": COLLECTIONS["applications"],
                "let": {"posts": "$post_ids"},
                "pipeline": [
                    {"$match": {"$expr": {"$in": ["$post", "$$posts"]}}},
                    {"$project": {"status": 1}},
                ],
                "as": "company_applications",
            }},
            {"$project": {
                "_id": 0,
                "name": "$company_info.name",
                "offers_count": 1,
                "response_rate": {"$cond": {
                    "if": {"$eq": [{"$size": "$company_applications"}, 0]},
                    "then": 0,
                    "else": {"$multiply": [{"$divide": [answered, {"$size": "$company_applications"}]}, 100]},
                }},
            }},
            {"$addFields": {"response_rate": {"$round": ["$response_rate", 0]}}},
        ]

    def _orphan_posts_pipeline(self) -> list:
        return [
            {"$lookup": {
                "from": COLLECTIONS["applications"],
                "localField": "_id",
                "foreignField": "post",
                "as": "applications",
            }},
            {"$match": {"applications": {"$size": 0}}},
            {"$count": "count"},
        ]


def get_stats_service() -> StatsService:
    return StatsService()
