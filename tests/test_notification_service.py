import pytest
from bson import ObjectId
from fastapi import HTTPException
from pymongo import DESCENDING

from stagora.schemas.schemas import ApplicationStatus, NotificationUpdate
from stagora.services.application_service import ApplicationService
from stagora.services.notification_service import NotificationService


@pytest.fixture
def service(db):
    return NotificationService(db)


def test_create(service, db):
    user_id = ObjectId()
    db["notifications"].insert_one.return_value.inserted_id = ObjectId()

    notification = service.create(str(user_id), "Welcome", return_link="/home")

    doc = db["notifications"].insert_one.call_args[0][0]
    assert doc["user_id"] == user_id
    assert doc["read"] is False
    assert notification["user_id"] == str(user_id)
    assert notification["return_link"] == "/home"


def test_unread_listing_is_newest_first(service, db):
    user_id = ObjectId()
    db["notifications"].find.return_value.sort.return_value = [{"_id": ObjectId(), "user_id": user_id, "read": False}]

    result = service.list_for_user(str(user_id), unread_only=True)

    db["notifications"].find.assert_called_once_with({"user_id": user_id, "read": False})
    db["notifications"].find.return_value.sort.assert_called_once_with([("created_at", DESCENDING)])
    assert result[0]["user_id"] == str(user_id)


def test_count_unread(service, db):
    user_id = ObjectId()
    db["notifications"].count_documents.return_value = 2
    assert service.count_unread(str(user_id)) == 2
    db["notifications"].count_documents.assert_called_once_with({"user_id": user_id, "read": False})


def test_mark_all_as_read(service, db):
    db["notifications"].update_many.return_value.modified_count = 5
    assert service.mark_all_as_read(str(ObjectId())) == 5
    update = db["notifications"].update_many.call_args[0][1]
    assert update["$set"]["read"] is True


def test_mark_missing_notification(service, db):
    db["notifications"].find_one_and_update.return_value = None
    with pytest.raises(HTTPException) as exc:
        service.mark_as_read(str(ObjectId()))
    assert exc.value.status_code == 404


def test_update_needs_fields(service):
    with pytest.raises(HTTPException) as exc:
        service.update(str(ObjectId()), NotificationUpdate())
    assert exc.value.status_code == 400


def test_delete_missing_notification(service, db):
    db["notifications"].delete_one.return_value.deleted_count = 0
    with pytest.raises(HTTPException) as exc:
        service.delete(str(ObjectId()))
    assert exc.value.status_code == 404


def test_bad_user_id(service):
    with pytest.raises(HTTPException) as exc:
        service.list_for_user("nope")
    assert exc.value.status_code == 400


# ============================================================
# sent by other services
# ============================================================

def test_status_change_notifies_the_student(db):
    company_id, student_id = ObjectId(), ObjectId()
    db["applications"].find_one.return_value = {"_id": ObjectId(), "post": ObjectId(), "student": student_id}
    db["posts"].find_one.return_value = {"company": company_id, "title": "Data intern"}

    ApplicationService(db).update_status(
        str(ObjectId()), ApplicationStatus.accepted, {"user_id": str(company_id), "role": "company"}
    )

    doc = db["notifications"].insert_one.call_args[0][0]
    assert doc["user_id"] == student_id
    assert doc["message"] == 'Your application to "Data intern" is now Accepted'
