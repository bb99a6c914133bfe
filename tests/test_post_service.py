from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from fastapi import HTTPException

from stagora.main import app
from stagora.schemas.schemas import PostUpdate
from stagora.services.company_service import CompanyService
from stagora.services.post_service import PostService, get_post_service


def _post(**extra):
    post = {
        "_id": ObjectId(),
        "company": ObjectId(),
        "title": "Backend intern",
        "min_salary": 800,
        "max_salary": 1200,
        "is_visible": True,
    }
    post.update(extra)
    return post


# ============================================================
# update
# ============================================================

def test_salary_range_is_checked_against_stored_values(db):
    db["posts"].find_one.return_value = _post()

    with pytest.raises(HTTPException) as exc:
        PostService(db).update_post(str(ObjectId()), PostUpdate(min_salary=1500))

    assert exc.value.status_code == 400
    db["posts"].update_one.assert_not_called()


def test_update_within_stored_range(db):
    post = _post()
    db["posts"].find_one.return_value = post

    PostService(db).update_post(str(post["_id"]), PostUpdate(max_salary=1000))

    filter, update = db["posts"].update_one.call_args[0]
    assert filter == {"_id": post["_id"]}
    assert update["$set"]["max_salary"] == 1000


def test_empty_update(db):
    db["posts"].find_one.return_value = _post()
    with pytest.raises(HTTPException) as exc:
        PostService(db).update_post(str(ObjectId()), PostUpdate())
    assert exc.value.status_code == 400


# ============================================================
# visibility
# ============================================================

def test_hidden_post_is_not_found_for_anonymous_callers(db):
    db["posts"].find_one.return_value = _post(is_visible=False)
    with pytest.raises(HTTPException) as exc:
        PostService(db).get_post(str(ObjectId()))
    assert exc.value.status_code == 404


def test_hidden_post_is_not_found_for_other_companies(db):
    db["posts"].find_one.return_value = _post(is_visible=False)
    viewer = {"user_id": str(ObjectId()), "role": "company"}
    with pytest.raises(HTTPException) as exc:
        PostService(db).get_post(str(ObjectId()), viewer=viewer)
    assert exc.value.status_code == 404


@pytest.mark.parametrize("role", ["company", "admin"])
def test_hidden_post_is_shown_to_its_owner_and_admins(db, role):
    post = _post(is_visible=False)
    db["posts"].find_one.return_value = post
    db["companies"].find.return_value = [{"_id": post["company"], "name": "Acme"}]
    user_id = str(post["company"]) if role == "company" else str(ObjectId())

    result = PostService(db).get_post(str(post["_id"]), viewer={"user_id": user_id, "role": role})

    assert result["title"] == "Backend intern"
    assert result["company"]["name"] == "Acme"


def test_post_route_passes_anonymous_viewer(client):
    service = MagicMock()
    service.get_post.return_value = {"_id": "p1"}
    app.dependency_overrides[get_post_service] = lambda: service

    r = client.get(f"/api/posts/{ObjectId()}")

    assert r.status_code == 200
    assert service.get_post.call_args.kwargs["viewer"] is None


# ============================================================
# company deletion
# ============================================================

def test_deleting_a_company_hides_its_posts(db):
    company_id = ObjectId()
    db["companies"].update_one.return_value.matched_count = 1
    db["posts"].update_many.return_value.modified_count = 3

    CompanyService(db).delete_company(str(company_id))

    company_filter, company_update = db["companies"].update_one.call_args[0]
    assert company_filter["_id"] == company_id
    assert "deleted_at" in company_update["$set"]

    post_filter, post_update = db["posts"].update_many.call_args[0]
    assert post_filter == {"company": company_id, "deleted_at": {"$exists": False}}
    assert "deleted_at" in post_update["$set"]


def test_deleting_a_missing_company_leaves_posts_alone(db):
    db["companies"].update_one.return_value.matched_count = 0
    with pytest.raises(HTTPException) as exc:
        CompanyService(db).delete_company(str(ObjectId()))
    assert exc.value.status_code == 404
    db["posts"].update_many.assert_not_called()
