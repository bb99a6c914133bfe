"""
Forum Routes

POST /forum/topics - Open a topic
GET /forum/topics - List topics
GET /forum/topics/{topic_id} - Get one topic
POST /forum/topics/{topic_id}/messages - Post a message (or a reply)
GET /forum/topics/{topic_id}/messages - List a topic's messages
"""

from fastapi import APIRouter, Depends, Query

from stagora.core.auth import get_current_user
from stagora.services.forum_service import ForumService, get_forum_service
from stagora.schemas.schemas import MessageCreate, PaginatedResponse, TopicCreate

router = APIRouter(prefix="/forum", tags=["Forum"])


@router.post("/topics", status_code=201)
async def create_topic(
    data: TopicCreate,
    user: dict = Depends(get_current_user),
    service: ForumService = Depends(get_forum_service)
):
    return service.create_topic(data, user["user_id"])


@router.get("/topics", response_model=PaginatedResponse)
async def list_topics(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: dict = Depends(get_current_user),
    service: ForumService = Depends(get_forum_service)
):
    return service.list_topics(page, limit)


@router.get("/topics/{topic_id}")
async def get_topic(
    topic_id: str,
    user: dict = Depends(get_current_user),
    service: ForumService = Depends(get_forum_service)
):
    return service.get_topic(topic_id)


@router.post("/topics/{topic_id}/messages", status_code=201)
async def post_message(
    topic_id: str,
    data: MessageCreate,
    user: dict = Depends(get_current_user),
    service: ForumService = Depends(get_forum_service)
):
    """Reply to another message of the topic with `parent_message_id`."""
    return service.post_message(topic_id, data, user["user_id"])


@router.get("/topics/{topic_id}/messages", response_model=PaginatedResponse)
async def list_messages(
    topic_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: dict = Depends(get_current_user),
    service: ForumService = Depends(get_forum_service)
):
    return service.list_messages(topic_id, page, limit)
