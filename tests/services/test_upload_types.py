"""
Tests for per-type upload policies and storage path selection.
"""
import re

import pytest

from cfp_storage.config import Settings
from cfp_storage.services.upload_types import (
    MB,
    UploadType,
    build_upload_options,
    get_upload_type_config,
    resolve_storage_path,
)
from cfp_storage.storage.exceptions import InvalidFileError


def test_avatar_path_uses_user_id_and_extension():
    path = resolve_storage_path(UploadType.AVATAR, "image/png", "me.png", user_id="u1")

    assert path == "avatars/u1.png"


def test_avatar_path_falls_back_to_target_id():
    path = resolve_storage_path(UploadType.AVATAR, "image/jpeg", "me.jpg", target_id="u2")

    assert path == "avatars/u2.jpg"


def test_avatar_requires_an_owner():
    with pytest.raises(InvalidFileError, match="User ID is required"):
        resolve_storage_path(UploadType.AVATAR, "image/png", "me.png")


def test_material_path_is_unique_and_sanitized():
    first = resolve_storage_path(
        UploadType.SUBMISSION_MATERIAL, "application/pdf", "my talk.pdf", target_id="s1"
    )
    second = resolve_storage_path(
        UploadType.SUBMISSION_MATERIAL, "application/pdf", "my talk.pdf", target_id="s1"
    )

    assert re.fullmatch(r"submissions/s1/materials/[0-9a-f]{32}-my_talk\.pdf", first)
    assert first != second


def test_target_ids_cannot_inject_path_segments():
    path = resolve_storage_path(
        UploadType.EVENT_BANNER, "image/png", "banner.png", target_id="../e1"
    )

    assert path.startswith("events/")
    assert path.count("/") == 2
    assert ".." not in path


@pytest.mark.parametrize(
    "upload_type, message",
    [
        (UploadType.SUBMISSION_MATERIAL, "Submission ID is required"),
        (UploadType.ORGANIZATION_LOGO, "Organization ID is required"),
        (UploadType.EVENT_BANNER, "Event ID is required"),
    ],
)
def test_types_that_need_a_target(upload_type, message):
    with pytest.raises(InvalidFileError, match=message):
        resolve_storage_path(upload_type, "image/png", "x.png", user_id="u1")


def test_logo_and_banner_paths_are_deterministic():
    assert (
        resolve_storage_path(UploadType.ORGANIZATION_LOGO, "image/webp", "logo.webp", target_id="o1")
        == "organizations/o1/logo.webp"
    )
    assert (
        resolve_storage_path(UploadType.EVENT_BANNER, "image/png", "b.png", target_id="e1")
        == "events/e1/banner.png"
    )


def test_temp_path():
    path = resolve_storage_path(UploadType.TEMP, "application/pdf", "draft.pdf")

    assert re.fullmatch(r"temp/[0-9a-f]{32}-draft\.pdf", path)


def test_policies():
    config = Settings(MAX_UPLOAD_SIZE_MB=50)

    avatar = get_upload_type_config(UploadType.AVATAR, config)
    material = get_upload_type_config(UploadType.SUBMISSION_MATERIAL, config)
    logo = get_upload_type_config(UploadType.ORGANIZATION_LOGO, config)
    banner = get_upload_type_config(UploadType.EVENT_BANNER, config)

    assert (avatar.max_size, avatar.is_public) == (5 * MB, True)
    assert "application/pdf" not in avatar.allowed_types
    assert (material.max_size, material.is_public) == (50 * MB, False)
    assert "application/pdf" in material.allowed_types
    assert (logo.max_size, logo.is_public) == (2 * MB, True)
    assert (banner.max_size, banner.is_public) == (5 * MB, True)
    assert material.requires_target and logo.requires_target and banner.requires_target
    assert not avatar.requires_target


def test_temp_policy_follows_configured_extensions():
    config = Settings(ALLOWED_FILE_EXTENSIONS=["pdf", "jpg", "jpeg"], MAX_UPLOAD_SIZE_MB=1)

    policy = get_upload_type_config(UploadType.TEMP, config)

    assert policy.allowed_types == ["application/pdf", "image/jpeg"]
    assert policy.max_size == MB
    assert policy.is_public is False


def test_build_upload_options_records_uploader():
    options = build_upload_options(
        UploadType.SUBMISSION_MATERIAL,
        "application/pdf",
        "my talk.pdf",
        user_id="u1",
        config=Settings(MAX_UPLOAD_SIZE_MB=10),
    )

    assert options.content_type == "application/pdf"
    assert options.max_size == 10 * MB
    assert options.is_public is False
    assert options.metadata["originalName"] == "my talk.pdf"
    assert options.metadata["uploadedBy"] == "u1"
    assert options.metadata["uploadType"] == "submission-material"
    assert "uploadedAt" in options.metadata


def test_build_upload_options_anonymous():
    options = build_upload_options(UploadType.TEMP, "application/pdf", "a.pdf")

    assert "uploadedBy" not in options.metadata
