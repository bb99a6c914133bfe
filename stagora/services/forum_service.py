"""
Forum Service - topics and their messages.

A message may answer another message of the same topic through
`parent_message`.
"""

import logging
from typing import Optional

from fastapi import HTTPException
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

from stagora.db.mongodb import get_mongo_db, COLLECTIONS
from stagora.schemas.schemas import MessageCreate, TopicCreate
from stagora.services.mongo_service import populate, serialize_doc, serialize_docs, to_object_id, utcnow
from stagora.utils.pagination import paginate

logger = logging.getLogger(__name__)

AUTHOR_FIELDS = {"email": 1, "first_name": 1, "last_name": 1, "role": 1}


class ForumService:

    def __init__(self, db: Optional[Database] = None):
        db = db if db is not None else get_mongo_db()
        self.topics = db[COLLECTIONS["topics"]]
        self.messages = db[COLLECTIONS["messages"]]
        self.users = db[COLLECTIONS["users"]]

    def create_topic(self, data: TopicCreate, author_id: str) -> dict:
        now = utcnow()
        doc = {
            "title": data.title,
            "description": data.description,
            "author": to_object_id(author_id),
            "messages": [],
            "created_at": now,
            "updated_at": now,
        }
        result = self.topics.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info("Topic %s opened by %s", result.inserted_id, author_id)
        return serialize_doc(doc)

    def list_topics(self, page: int = 1, limit: int = 10) -> dict:
        result = paginate(
            self.topics, {}, page, limit,
            sort=[("created_at", DESCENDING)],
            projection={"messages": 0},
            serialize=False
        )
        populate(result["data"], "author", self.users, AUTHOR_FIELDS)
        result["data"] = serialize_docs(result["data"])
        return result

    def get_topic(self, topic_id: str) -> dict:
        topic = self._find_topic(topic_id)
        populate([topic], "author", self.users, AUTHOR_FIELDS)
        return serialize_doc(topic)

    def post_message(self, topic_id: str, data: MessageCreate, author_id: str) -> dict:
        """
        Add a message to a topic.

        Raises:
            404 unknown topic, 400 parent message outside this topic
        """
        topic = self._find_topic(topic_id)

        parent_id = None
        if data.parent_message_id:
            parent_id = to_object_id(data.parent_message_id, detail="Invalid parent message id")
            parent = self.messages.find_one({"_id": parent_id}, {"topic_id": 1})
            if not parent or parent.get("topic_id") != topic["_id"]:
                raise HTTPException(status_code=400, detail="Parent message does not belong to this topic")

        now = utcnow()
        doc = {
            "author": to_object_id(author_id),
            "content": data.content,
            "topic_id": topic["_id"],
            "parent_message": parent_id,
            "created_at": now,
            "updated_at": now,
        }
        result = self.messages.insert_one(doc)
        doc["_id"] = result.inserted_id
        self.topics.update_one(
            {"_id": topic["_id"]},
            {"$push": {"messages": result.inserted_id}, "$set": {"updated_at": now}}
        )
        return serialize_doc(doc)

    def list_messages(self, topic_id: str, page: int = 1, limit: int = 10) -> dict:
        """Messages of a topic in conversation order (oldest first)."""
        topic = self._find_topic(topic_id)
        result = paginate(
            self.messages, {"topic_id": topic["_id"]}, page, limit,
            sort=[("created_at", ASCENDING)],
            serialize=False
        )
        populate(result["data"], "author", self.users, AUTHOR_FIELDS)
        result["data"] = serialize_docs(result["data"])
        return result

    def _find_topic(self, topic_id: str) -> dict:
        oid = to_object_id(topic_id, detail="Invalid topic id")
        topic = self.topics.find_one({"_id": oid})
        if not topic:
            raise HTTPException(status_code=404, detail="Topic not found")
        return topic


def get_forum_service() -> ForumService:
    return ForumService()
