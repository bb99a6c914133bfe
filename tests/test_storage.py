from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from bson import ObjectId
from fastapi import HTTPException

from stagora.main import app
from stagora.services.storage_service import StorageService, get_storage_service


@pytest.fixture
def s3():
    client = MagicMock()
    client.list_objects_v2.return_value = {}
    client.generate_presigned_url.return_value = "https://storage.local/signed"
    client.head_object.return_value = {"Metadata": {}}
    return client


@pytest.fixture
def storage(s3):
    return StorageService(client=s3, bucket="uploads")


@pytest.fixture
def files_client(client, storage):
    app.dependency_overrides[get_storage_service] = lambda: storage
    return client


def _not_found():
    return ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")


def test_upload_url_key_and_expiry(storage, s3):
    user_id = str(ObjectId())
    result = storage.generate_upload_url("My CV.PDF", "cv", user_id)

    assert result == {"file_name": f"{user_id}_cv.pdf", "upload_url": "https://storage.local/signed"}
    kwargs = s3.generate_presigned_url.call_args.kwargs
    assert kwargs["ClientMethod"] == "put_object"
    assert kwargs["ExpiresIn"] == 600
    assert kwargs["Params"]["Key"] == f"{user_id}_cv.pdf"
    assert kwargs["Params"]["Metadata"] == {"uploaderid": user_id}


def test_previous_upload_is_replaced(storage, s3):
    user_id = str(ObjectId())
    s3.list_objects_v2.return_value = {"Contents": [{"Key": f"{user_id}_logo.png"}]}

    storage.generate_upload_url("brand.svg", "logo", user_id)

    s3.list_objects_v2.assert_called_once_with(Bucket="uploads", Prefix=f"{user_id}_logo.")
    s3.delete_object.assert_called_once_with(Bucket="uploads", Key=f"{user_id}_logo.png")


def test_download_checks_owner(storage, s3):
    s3.head_object.return_value = {"Metadata": {"uploaderid": "someone-else"}}
    with pytest.raises(HTTPException) as exc:
        storage.generate_download_url("abc_cv.pdf", "me")
    assert exc.value.status_code == 403
    s3.generate_presigned_url.assert_not_called()


def test_download_for_owner(storage, s3):
    s3.head_object.return_value = {"Metadata": {"UploaderId": "me"}}
    assert storage.generate_download_url("abc_cv.pdf", "me") == {"download_url": "https://storage.local/signed"}
    assert s3.generate_presigned_url.call_args.kwargs["ExpiresIn"] == 3600


def test_missing_file(storage, s3):
    s3.head_object.side_effect = _not_found()
    with pytest.raises(HTTPException) as exc:
        storage.generate_public_download_url("abc_logo.png")
    assert exc.value.status_code == 404


def test_unsafe_path(storage, s3):
    with pytest.raises(HTTPException) as exc:
        storage.generate_public_download_url("../abc_logo.png")
    assert exc.value.status_code == 400
    s3.head_object.assert_not_called()


def test_other_storage_errors_propagate(storage, s3):
    s3.head_object.side_effect = ClientError({"Error": {"Code": "AccessDenied"}}, "HeadObject")
    with pytest.raises(ClientError):
        storage.file_exists("abc_cv.pdf")


def test_delete_checks_owner(storage, s3):
    s3.head_object.return_value = {"Metadata": {"uploaderid": "someone-else"}}
    with pytest.raises(HTTPException) as exc:
        storage.delete_file("abc_cv.pdf", "me")
    assert exc.value.status_code == 403
    s3.delete_object.assert_not_called()


# ============================================================
# routes
# ============================================================

def test_signed_cv_route(files_client, login):
    user = login("student")
    r = files_client.post("/api/files/signed/cv", json={"original_filename": "resume.docx"})
    assert r.status_code == 200
    assert r.json()["file_name"] == f"{user['user_id']}_cv.docx"


def test_signed_logo_route_rejects_documents(files_client, login):
    login("company")
    r = files_client.post("/api/files/signed/logo", json={"original_filename": "brand.pdf"})
    assert r.status_code == 400


def test_signed_cv_route_rejects_traversal(files_client, login):
    login("student")
    r = files_client.post("/api/files/signed/cv", json={"original_filename": "../../etc/passwd.pdf"})
    assert r.status_code == 400


def test_download_route_forbidden(files_client, login, s3):
    login("student")
    s3.head_object.return_value = {"Metadata": {"uploaderid": str(ObjectId())}}
    r = files_client.get("/api/files/signed/download/abc_cv.pdf")
    assert r.status_code == 403


def test_public_route(files_client):
    r = files_client.get("/api/files/signed/public/abc_logo.png")
    assert r.status_code == 200
    assert r.json() == {"download_url": "https://storage.local/signed"}


def test_delete_route(files_client, login, s3):
    user = login("company")
    s3.head_object.return_value = {"Metadata": {"uploaderid": user["user_id"]}}
    r = files_client.delete("/api/files/abc_logo.png")
    assert r.status_code == 200
    assert r.json() == {"success": True}
    s3.delete_object.assert_called_once_with(Bucket="uploads", Key="abc_logo.png")
