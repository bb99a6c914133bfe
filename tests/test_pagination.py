from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from fastapi import HTTPException
from pymongo import ASCENDING, DESCENDING

from stagora.schemas.schemas import ApplicationStatus, WorkMode
from stagora.utils.pagination import (
    ApplicationQueryBuilder,
    PostQueryBuilder,
    build_date_sort,
    paginate,
    pagination_envelope,
)


# ============================================================
# envelope maths
# ============================================================

def test_envelope_first_page():
    env = pagination_envelope([1, 2], total=25, page=1, limit=10)
    assert env["total_pages"] == 3
    assert env["has_next"] is True
    assert env["has_prev"] is False


def test_envelope_last_page():
    env = pagination_envelope([1], total=25, page=3, limit=10)
    assert env["has_next"] is False
    assert env["has_prev"] is True


def test_envelope_exact_multiple():
    env = pagination_envelope([], total=20, page=2, limit=10)
    assert env["total_pages"] == 2
    assert env["has_next"] is False


def test_envelope_empty():
    env = pagination_envelope([], total=0, page=1, limit=10)
    assert env["total_pages"] == 0
    assert env["has_next"] is False


def test_envelope_with_explicit_pages():
    env = pagination_envelope([], total=7, page=1, limit=2, total_pages=2)
    assert env["total_pages"] == 2
    assert env["has_next"] is True


def test_paginate_skips_and_counts():
    oid = ObjectId()
    collection = MagicMock()
    cursor = collection.find.return_value
    cursor.sort.return_value.skip.return_value.limit.return_value = [{"_id": oid, "title": "Dev"}]
    collection.count_documents.return_value = 12

    result = paginate(collection, {"a": 1}, page=2, limit=5, sort=[("created_at", DESCENDING)])

    cursor.sort.assert_called_once_with([("created_at", DESCENDING)])
    cursor.sort.return_value.skip.assert_called_once_with(5)
    cursor.sort.return_value.skip.return_value.limit.assert_called_once_with(5)
    collection.count_documents.assert_called_once_with({"a": 1})
    assert result["data"] == [{"_id": str(oid), "title": "Dev"}]
    assert result["total"] == 12
    assert result["total_pages"] == 3
    assert result["has_next"] is True
    assert result["has_prev"] is True


# ============================================================
# sort
# ============================================================

@pytest.mark.parametrize("sort,direction", [
    ("dateAsc", ASCENDING),
    ("dateDesc", DESCENDING),
    (None, DESCENDING),
    ("whatever", DESCENDING),
])
def test_date_sort(sort, direction):
    assert build_date_sort(sort) == [("created_at", direction)]


# ============================================================
# ApplicationQueryBuilder
# ============================================================

def test_application_status_list_uses_in():
    query = ApplicationQueryBuilder({"status": [ApplicationStatus.pending, ApplicationStatus.read]}).build()
    assert query["status"] == {"$in": ["Pending", "Read"]}
    assert query["deleted_at"] == {"$exists": False}


def test_application_single_status_is_equality():
    query = ApplicationQueryBuilder({"status": "Accepted"}).build()
    assert query["status"] == "Accepted"


def test_application_empty_status_list_is_ignored():
    query = ApplicationQueryBuilder({"status": []}).build()
    assert "status" not in query


def test_application_post_filter():
    post_id = ObjectId()
    query = ApplicationQueryBuilder({"post": str(post_id)}).build()
    assert query["post"] == post_id


def test_application_invalid_post_id():
    with pytest.raises(HTTPException) as exc:
        ApplicationQueryBuilder({"post": "nope"}).build()
    assert exc.value.status_code == 400


def test_application_sort():
    assert ApplicationQueryBuilder({"sort": "dateAsc"}).build_sort() == [("created_at", ASCENDING)]
    assert ApplicationQueryBuilder({}).build_sort() == [("created_at", DESCENDING)]


# ============================================================
# PostQueryBuilder
# ============================================================

def test_post_defaults_only_visible_live_posts():
    query = PostQueryBuilder({}).build()
    assert query == {"is_visible": True, "deleted_at": {"$exists": False}}


def test_post_search_is_trimmed_and_escaped():
    query = PostQueryBuilder({"search_query": "  c++  "}).build()
    fields = [next(iter(clause)) for clause in query["$or"]]
    assert fields == ["title", "description", "sector", "duration", "key_skills"]
    for clause in query["$or"]:
        condition = next(iter(clause.values()))
        assert condition == {"$regex": r"c\+\+", "$options": "i"}


def test_post_blank_search_is_ignored():
    assert "$or" not in PostQueryBuilder({"search_query": "   "}).build()


def test_post_filters():
    company = ObjectId()
    query = PostQueryBuilder({
        "sector": "IT",
        "type": WorkMode.remote,
        "company": str(company),
        "min_salary": 500,
        "max_salary": 1200,
    }).build()
    assert query["sector"] == {"$regex": "^IT$", "$options": "i"}
    assert query["type"] == "Télétravail"
    assert query["company"] == company
    assert query["max_salary"] == {"$gte": 500}
    assert query["min_salary"] == {"$lte": 1200}


def test_post_zero_min_salary_still_applies():
    query = PostQueryBuilder({"min_salary": 0}).build()
    assert query["max_salary"] == {"$gte": 0}
