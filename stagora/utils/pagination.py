"""
Pagination Utility - generic paginate() plus the query builders that turn
request parameters into MongoDB filters and sort specs.
"""

import math
import re
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection

from stagora.services.mongo_service import serialize_docs, to_object_id

SortSpec = List[Tuple[str, int]]

NOT_DELETED = {"deleted_at": {"$exists": False}}


def build_date_sort(sort: Optional[str]) -> SortSpec:
    """`dateAsc` -> oldest first, anything else -> newest first."""
    if sort == "dateAsc":
        return [("created_at", ASCENDING)]
    return [("created_at", DESCENDING)]


def paginate(
    collection: Collection,
    filter: Dict[str, Any],
    page: int,
    limit: int,
    sort: Optional[SortSpec] = None,
    projection: Optional[dict] = None,
    serialize: bool = True,
) -> dict:
    """
    Run a paginated find() and return the page with its metadata.

    Returns:
        {data, total, page, limit, total_pages, has_next, has_prev}
    """
    skip = (page - 1) * limit

    cursor = collection.find(filter, projection)
    if sort:
        cursor = cursor.sort(sort)
    items = list(cursor.skip(skip).limit(limit))
    total = collection.count_documents(filter)

    return pagination_envelope(
        serialize_docs(items) if serialize else items,
        total=total,
        page=page,
        limit=limit,
    )


def pagination_envelope(data: list, total: int, page: int, limit: int, total_pages: Optional[int] = None) -> dict:
    """
    Build the response envelope. Pass `total_pages` when pages are not
    fixed-size slices (grouped pagination); has_next then follows the pages.
    """
    if total_pages is None:
        total_pages = math.ceil(total / limit) if limit else 0
        has_next = page * limit < total
    else:
        has_next = page < total_pages
    return {
        "data": data,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": total_pages,
        "has_next": has_next,
        "has_prev": page > 1,
    }


class ApplicationQueryBuilder:
    """
    Translate application listing parameters into a filter and a sort spec.

    Params: status (one value or a list), post (ObjectId string), sort.
    """

    def __init__(self, params: Dict[str, Any]):
        self.params = params

    def build(self) -> Dict[str, Any]:
        filter: Dict[str, Any] = dict(NOT_DELETED)

        status = self.params.get("status")
        if isinstance(status, (list, tuple)):
            if status:
                filter["status"] = {"$in": [_enum_value(s) for s in status]}
        elif status:
            filter["status"] = _enum_value(status)

        post = self.params.get("post")
        if post:
            filter["post"] = to_object_id(post, detail="Invalid post id")

        return filter

    def build_sort(self) -> SortSpec:
        return build_date_sort(self.params.get("sort"))


class PostQueryBuilder:
    """
    Translate post search parameters into a filter.

    Only visible, non-deleted posts are ever returned.
    """

    SEARCH_FIELDS = ("title", "description", "sector", "duration", "key_skills")

    def __init__(self, params: Dict[str, Any]):
        self.params = params

    def build(self) -> Dict[str, Any]:
        filter: Dict[str, Any] = {"is_visible": True, **NOT_DELETED}

        search = (self.params.get("search_query") or "").strip()
        if search:
            pattern = re.escape(search)
            filter["$or"] = [{field: {"$regex": pattern, "$options": "i"}} for field in self.SEARCH_FIELDS]

        sector = (self.params.get("sector") or "").strip()
        if sector:
            filter["sector"] = {"$regex": f"^{re.escape(sector)}$", "$options": "i"}

        work_mode = self.params.get("type")
        if work_mode:
            filter["type"] = _enum_value(work_mode)

        company = self.params.get("company")
        if company:
            filter["company"] = to_object_id(company, detail="Invalid company id")

        # a post matches when its range overlaps the requested one
        min_salary = self.params.get("min_salary")
        if min_salary is not None:
            filter["max_salary"] = {"$gte": min_salary}
        max_salary = self.params.get("max_salary")
        if max_salary is not None:
            filter["min_salary"] = {"$lte": max_salary}

        return filter

    def build_sort(self) -> SortSpec:
        return build_date_sort(self.params.get("sort"))


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)
