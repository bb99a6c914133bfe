import logging
from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from fastapi import HTTPException
from pymongo.errors import DuplicateKeyError

from stagora.core.auth import decode_token, hash_password
from stagora.schemas.schemas import CompanyCreate, RegisterRequest, UserRole
from stagora.services.company_service import CompanyService
from stagora.services.user_service import UserService

PASSWORD = "Sup3r-secret"


@pytest.fixture
def db(db):
    """Empty users and students collections, inserts hand out fresh ids."""
    db["users"].find_one.return_value = None
    db["students"].find_one.return_value = None
    db["users"].insert_one.return_value.inserted_id = ObjectId()
    return db


def _student(**overrides):
    data = {"email": "Ada@Stagora.io", "password": PASSWORD, "role": "student", "first_name": "Ada"}
    data.update(overrides)
    return RegisterRequest(**data)


# ============================================================
# register
# ============================================================

def test_register_student_creates_profile_with_same_id(db):
    token = UserService(db).register(_student())

    user_id = db["users"].insert_one.return_value.inserted_id
    profile = db["students"].insert_one.call_args[0][0]
    assert profile["_id"] == user_id
    assert profile["email"] == "ada@stagora.io"
    assert token["user_id"] == str(user_id)
    assert token["role"] == "student"
    assert decode_token(token["access_token"])["sub"] == str(user_id)


def test_register_company_creates_unvalidated_profile(db):
    UserService(db).register(RegisterRequest(
        email="hr@acme.io", password=PASSWORD, role="company", company_name="Acme"
    ))
    profile = db["companies"].insert_one.call_args[0][0]
    assert profile["name"] == "Acme"
    assert profile["is_valid"] is False
    db["students"].insert_one.assert_not_called()


def test_register_with_taken_email(db):
    db["users"].find_one.return_value = {"_id": ObjectId()}
    with pytest.raises(HTTPException) as exc:
        UserService(db).register(_student())
    assert exc.value.status_code == 400
    assert exc.value.detail == "Email already registered"
    db["users"].insert_one.assert_not_called()


def test_register_admin_is_refused_by_the_service(db):
    data = RegisterRequest.model_construct(email="root@stagora.io", password=PASSWORD, role=UserRole.admin)
    with pytest.raises(HTTPException) as exc:
        UserService(db).register(data)
    assert exc.value.status_code == 400
    db["users"].insert_one.assert_not_called()


def test_register_over_an_imported_student_is_a_conflict(db):
    db["students"].find_one.return_value = {"_id": ObjectId()}
    with pytest.raises(HTTPException) as exc:
        UserService(db).register(_student())
    assert exc.value.status_code == 409
    db["users"].insert_one.assert_not_called()


def test_failed_profile_insert_removes_the_new_user(db):
    db["students"].insert_one.side_effect = DuplicateKeyError("E11000 duplicate key error")

    with pytest.raises(HTTPException) as exc:
        UserService(db).register(_student())

    assert exc.value.status_code == 409
    user_id = db["users"].insert_one.return_value.inserted_id
    db["users"].delete_one.assert_called_once_with({"_id": user_id})


def test_failed_company_profile_removes_the_new_user(db):
    db["companies"].insert_one.side_effect = DuplicateKeyError("E11000 duplicate key error")
    data = CompanyCreate(email="hr@acme.io", password=PASSWORD, name="Acme")

    with pytest.raises(HTTPException) as exc:
        CompanyService(db).create_company(data)

    assert exc.value.status_code == 409
    db["users"].delete_one.assert_called_once()


# ============================================================
# authenticate
# ============================================================

def _stored_user(**extra):
    user = {"_id": ObjectId(), "email": "ada@stagora.io", "role": "student", "password_hash": hash_password(PASSWORD)}
    user.update(extra)
    return user


def test_login(db):
    user = _stored_user()
    db["users"].find_one.return_value = user
    token = UserService(db).authenticate("ADA@stagora.io", PASSWORD)
    assert token["user_id"] == str(user["_id"])
    db["users"].find_one.assert_called_once_with({"email": "ada@stagora.io"})


@pytest.mark.parametrize("stored,password", [(None, PASSWORD), ("user", "Wrong-pass1")])
def test_login_failures_look_the_same(db, stored, password):
    db["users"].find_one.return_value = _stored_user() if stored else None
    with pytest.raises(HTTPException) as exc:
        UserService(db).authenticate("ada@stagora.io", password)
    assert exc.value.status_code == 401
    assert exc.value.detail == "Invalid email or password"


def test_banned_user_cannot_login(db):
    db["users"].find_one.return_value = _stored_user(ban={"reason": "spam"})
    with pytest.raises(HTTPException) as exc:
        UserService(db).authenticate("ada@stagora.io", PASSWORD)
    assert exc.value.status_code == 403


# ============================================================
# ban
# ============================================================

def test_ban_user(db):
    user_id = ObjectId()
    db["users"].find_one_and_update.return_value = {"_id": user_id, "email": "troll@stagora.io"}
    mailer = MagicMock()

    result = UserService(db).ban_user(str(user_id), "spam", mailer=mailer)

    filter, update = db["users"].find_one_and_update.call_args[0]
    assert filter == {"_id": user_id, "ban": {"$exists": False}}
    assert update["$set"]["ban"]["reason"] == "spam"
    assert result["ban"]["reason"] == "spam"
    mailer.send_account_ban_email.assert_called_once_with("troll@stagora.io", "spam")


def test_ban_unknown_or_banned_user(db):
    db["users"].find_one_and_update.return_value = None
    with pytest.raises(HTTPException) as exc:
        UserService(db).ban_user(str(ObjectId()), "spam")
    assert exc.value.status_code == 404


def test_ban_stands_when_the_mail_fails(db, caplog):
    db["users"].find_one_and_update.return_value = {"_id": ObjectId(), "email": "troll@stagora.io"}
    mailer = MagicMock()
    mailer.send_account_ban_email.side_effect = ConnectionRefusedError("smtp down")

    with caplog.at_level(logging.ERROR):
        result = UserService(db).ban_user(str(ObjectId()), None, mailer=mailer)

    assert "ban" in result
    assert "Failed to send ban email" in caplog.text
