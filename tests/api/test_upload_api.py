"""
Tests for the upload API endpoints.

This test suite covers:
- Uploads for each upload type
- Validation errors and their status codes
- Delete by storage path, limited to the uploader
- Storage failures surfacing as safe 500 responses
"""
import json
import re

from fastapi import status

from cfp_storage.storage.exceptions import StorageError
from cfp_storage.storage.local import LocalStorageBackend
from tests.constants import PDF_BYTES, PNG_BYTES, URLs, ContentTypes


def _upload(client, filename, content, content_type, upload_type, target_id=None, user_id="u1"):
    data = {"type": upload_type}
    if target_id is not None:
        data["targetId"] = target_id
    headers = {"X-User-Id": user_id} if user_id else {}
    return client.post(
        URLs.UPLOAD,
        files={"file": (filename, content, content_type)},
        data=data,
        headers=headers,
    )


# Success Tests


def test_upload_avatar(client, storage_root):
    response = _upload(client, "me.png", PNG_BYTES, ContentTypes.PNG, "avatar")

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["success"] is True
    assert body["file"] == {
        "path": "avatars/u1.png",
        "url": "/api/v1/files/avatars/u1.png",
        "size": len(PNG_BYTES),
        "contentType": ContentTypes.PNG,
    }
    assert (storage_root / "avatars" / "u1.png").read_bytes() == PNG_BYTES


def test_upload_avatar_twice_overwrites(client, storage_root):
    _upload(client, "old.png", b"old", ContentTypes.PNG, "avatar")
    response = _upload(client, "new.png", b"new", ContentTypes.PNG, "avatar")

    assert response.status_code == status.HTTP_200_OK
    assert (storage_root / "avatars" / "u1.png").read_bytes() == b"new"


def test_upload_submission_material(client):
    response = _upload(
        client, "my talk.pdf", PDF_BYTES, ContentTypes.PDF, "submission-material", target_id="s1"
    )

    assert response.status_code == status.HTTP_200_OK
    path = response.json()["file"]["path"]
    assert re.fullmatch(r"submissions/s1/materials/[0-9a-f]{32}-my_talk\.pdf", path)


def test_upload_records_uploader_metadata(client, storage_root):
    _upload(client, "logo.png", PNG_BYTES, ContentTypes.PNG, "organization-logo", target_id="o1")

    sidecar = json.loads((storage_root / "organizations" / "o1" / "logo.png.meta.json").read_text())
    assert sidecar["isPublic"] is True
    assert sidecar["metadata"]["originalName"] == "logo.png"
    assert sidecar["metadata"]["uploadedBy"] == "u1"
    assert "uploadedAt" in sidecar["metadata"]


def test_upload_event_banner(client):
    response = _upload(client, "b.png", PNG_BYTES, ContentTypes.PNG, "event-banner", target_id="e1")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["file"]["path"] == "events/e1/banner.png"


def test_upload_temp_file(client):
    response = _upload(client, "draft.pdf", PDF_BYTES, ContentTypes.PDF, "temp", user_id=None)

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["file"]["path"].startswith("temp/")


# Validation Tests


def test_upload_without_file(client):
    response = client.post(URLs.UPLOAD, data={"type": "avatar"}, headers={"X-User-Id": "u1"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {
        "success": False,
        "error": "INVALID_FILE",
        "message": "No file provided",
    }


def test_upload_with_unknown_type(client):
    response = _upload(client, "me.png", PNG_BYTES, ContentTypes.PNG, "wallpaper")

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "Invalid upload type"


def test_upload_material_without_target(client):
    response = _upload(client, "a.pdf", PDF_BYTES, ContentTypes.PDF, "submission-material")

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error"] == "INVALID_FILE"
    assert response.json()["message"] == "Submission ID is required"


def test_upload_avatar_without_user(client):
    response = _upload(client, "me.png", PNG_BYTES, ContentTypes.PNG, "avatar", user_id=None)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "User ID is required"


def test_upload_disallowed_type(client, storage_root):
    response = _upload(client, "cv.pdf", PDF_BYTES, ContentTypes.PDF, "avatar")

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error"] == "TYPE_NOT_ALLOWED"
    assert not (storage_root / "avatars").exists()


def test_upload_too_large(client, storage_root):
    too_big = b"x" * (2 * 1024 * 1024 + 1)

    response = _upload(client, "logo.png", too_big, ContentTypes.PNG, "organization-logo", target_id="o1")

    assert response.status_code == 413
    assert response.json()["error"] == "SIZE_EXCEEDED"
    assert not (storage_root / "organizations").exists()


def test_upload_storage_failure_returns_safe_500(client, override_storage, tmp_path):
    class BrokenStorage(LocalStorageBackend):
        async def upload(self, path, data, options=None):
            raise StorageError(f"EIO writing {tmp_path}/secret/location")

    override_storage(BrokenStorage(base_path=str(tmp_path)))

    response = _upload(client, "me.png", PNG_BYTES, ContentTypes.PNG, "avatar")

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {
        "success": False,
        "error": "UNKNOWN",
        "message": "Failed to upload file",
    }


# Delete Tests


def test_delete_file(client, storage_root):
    path = _upload(client, "me.png", PNG_BYTES, ContentTypes.PNG, "avatar").json()["file"]["path"]

    response = client.delete(URLs.UPLOAD, params={"path": path}, headers={"X-User-Id": "u1"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"success": True}
    assert not (storage_root / "avatars" / "u1.png").exists()
    assert not (storage_root / "avatars" / "u1.png.meta.json").exists()


def test_delete_missing_file(client):
    response = client.delete(URLs.UPLOAD, params={"path": "avatars/nobody.png"}, headers={"X-User-Id": "u1"})

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"] == "NOT_FOUND"


def test_delete_without_path(client):
    response = client.delete(URLs.UPLOAD)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "File path is required"


def test_delete_traversal_stays_inside_root(client, tmp_path):
    outside = tmp_path / "etc" / "passwd"
    outside.parent.mkdir()
    outside.write_text("root:x:0:0")

    response = client.delete(URLs.UPLOAD, params={"path": "../etc/passwd"}, headers={"X-User-Id": "u1"})

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert outside.exists()


def test_delete_requires_authentication(client, storage_root):
    path = _upload(client, "me.png", PNG_BYTES, ContentTypes.PNG, "avatar", user_id="alice").json()["file"]["path"]

    response = client.delete(URLs.UPLOAD, params={"path": path})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {
        "success": False,
        "error": "PERMISSION_DENIED",
        "message": "Authentication required",
    }
    assert (storage_root / "avatars" / "alice.png").exists()


def test_delete_by_other_user_is_forbidden(client, storage_root):
    path = _upload(client, "me.png", PNG_BYTES, ContentTypes.PNG, "avatar", user_id="alice").json()["file"]["path"]

    response = client.delete(URLs.UPLOAD, params={"path": path}, headers={"X-User-Id": "mallory"})

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["error"] == "PERMISSION_DENIED"
    assert (storage_root / "avatars" / "alice.png").read_bytes() == PNG_BYTES


def test_delete_file_without_recorded_uploader(client, storage_root):
    legacy = storage_root / "legacy" / "schedule.pdf"
    legacy.parent.mkdir(parents=True)
    legacy.write_bytes(PDF_BYTES)

    response = client.delete(URLs.UPLOAD, params={"path": "legacy/schedule.pdf"}, headers={"X-User-Id": "u1"})

    assert response.status_code == status.HTTP_200_OK
    assert not legacy.exists()
