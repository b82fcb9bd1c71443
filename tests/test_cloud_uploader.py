"""Tests for retrying cloud uploads."""

import pytest
from tenacity import wait_none

from eduvideo.core.exceptions import UploadError
from eduvideo.services.cloud_uploader import CloudUploader


@pytest.fixture
def video_file(tmp_path):
    path = tmp_path / "lecture.mp4"
    path.write_bytes(b"video")
    return path


def test_first_attempt_succeeds(provider, video_file):
    uploader = CloudUploader(provider=provider, max_attempts=3, wait=wait_none())

    result = uploader.upload(str(video_file), {"title": "Lecture"})

    assert provider.calls == 1
    assert result.video_id == "vid-1"
    assert provider.uploads[0]["metadata"] == {"title": "Lecture"}


def test_retries_until_success(provider, video_file):
    provider.failures = 2
    uploader = CloudUploader(provider=provider, max_attempts=3, wait=wait_none())

    result = uploader.upload(str(video_file), {})

    assert provider.calls == 3
    assert result.video_id == "vid-3"


def test_gives_up_after_max_attempts(provider, video_file):
    provider.failures = -1
    uploader = CloudUploader(provider=provider, max_attempts=2, wait=wait_none())

    with pytest.raises(UploadError):
        uploader.upload(str(video_file), {})
    assert provider.calls == 2


def test_provider_label(provider):
    provider.name = "s3"
    assert CloudUploader(provider=provider).provider_label == "s3"
    assert CloudUploader(provider_name="GCS").provider_label == "gcs"


def test_unknown_provider_is_upload_error(video_file):
    uploader = CloudUploader(provider_name="dropbox", wait=wait_none())
    with pytest.raises(UploadError, match="Unsupported storage provider"):
        uploader.upload(str(video_file), {})
