"""Tests for the upload API routes."""

import hashlib

import pytest

HEADERS = {"X-User-Id": "teacher-1"}


def _initialize(client, file_name="lecture.mp4", file_size=6, total_chunks=3, metadata=None):
    response = client.post(
        "/api/v1/upload/chunked/initialize",
        json={
            "fileName": file_name,
            "fileSize": file_size,
            "totalChunks": total_chunks,
            "metadata": metadata or {"title": "Lecture 1", "courseId": "42"},
        },
        headers=HEADERS,
    )
    assert response.status_code == 201
    return response.json()["uploadId"]


def _send_chunk(client, upload_id, index, data, headers=HEADERS, **extra):
    return client.post(
        "/api/v1/upload/chunked/chunk",
        data={"uploadId": upload_id, "chunkIndex": str(index), **extra},
        files={"chunk": ("blob", data, "application/octet-stream")},
        headers=headers,
    )


class TestInitialize:
    def test_initialize(self, client):
        response = client.post(
            "/api/v1/upload/chunked/initialize",
            json={"fileName": "lecture.mp4", "fileSize": 100, "totalChunks": 2},
            headers=HEADERS,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["uploadId"]
        assert data["message"] == "Upload session initialized"

    def test_missing_user_header(self, client):
        response = client.post(
            "/api/v1/upload/chunked/initialize",
            json={"fileName": "lecture.mp4", "fileSize": 100, "totalChunks": 2},
        )
        assert response.status_code == 400
        assert "X-User-Id" in response.json()["detail"]

    def test_missing_fields_is_bad_request(self, client):
        response = client.post(
            "/api/v1/upload/chunked/initialize", json={"fileName": "lecture.mp4"}, headers=HEADERS
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid request"

    def test_zero_chunks_is_bad_request(self, client):
        response = client.post(
            "/api/v1/upload/chunked/initialize",
            json={"fileName": "lecture.mp4", "fileSize": 100, "totalChunks": 0},
            headers=HEADERS,
        )
        assert response.status_code == 400


class TestChunk:
    def test_upload_chunk_reports_progress(self, client):
        upload_id = _initialize(client, total_chunks=3)

        response = _send_chunk(client, upload_id, 0, b"ab")

        assert response.status_code == 200
        data = response.json()
        assert data["progress"] == 33.33
        assert data["uploadedChunks"] == 1
        assert data["totalChunks"] == 3

    def test_resent_chunk_does_not_inflate_progress(self, client):
        upload_id = _initialize(client, total_chunks=2)

        _send_chunk(client, upload_id, 1, b"ab")
        response = _send_chunk(client, upload_id, 1, b"ab")

        assert response.json()["uploadedChunks"] == 1
        assert response.json()["progress"] == 50.0

    def test_unknown_session(self, client):
        response = _send_chunk(client, "nonexistent", 0, b"ab")
        assert response.status_code == 404
        assert response.json()["detail"] == "Upload session not found"

    def test_other_user(self, client):
        upload_id = _initialize(client)
        response = _send_chunk(client, upload_id, 0, b"ab", headers={"X-User-Id": "intruder"})
        assert response.status_code == 403

    def test_index_out_of_range(self, client):
        upload_id = _initialize(client, total_chunks=3)
        assert _send_chunk(client, upload_id, 3, b"ab").status_code == 400

    def test_checksum_mismatch(self, client):
        upload_id = _initialize(client)
        response = _send_chunk(client, upload_id, 0, b"ab", checksum="0" * 64)
        assert response.status_code == 400
        assert "Checksum mismatch" in response.json()["detail"]

    def test_checksum_match(self, client):
        upload_id = _initialize(client)
        response = _send_chunk(
            client, upload_id, 0, b"ab", checksum=hashlib.sha256(b"ab").hexdigest()
        )
        assert response.status_code == 200


class TestProgress:
    def test_progress(self, client):
        upload_id = _initialize(client, file_size=6, total_chunks=3)
        _send_chunk(client, upload_id, 2, b"ef")
        _send_chunk(client, upload_id, 0, b"ab")

        response = client.get(f"/api/v1/upload/chunked/progress/{upload_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["uploadId"] == upload_id
        assert data["progress"] == 66.67
        assert data["uploadedChunks"] == 2
        assert data["chunkIndices"] == [0, 2]
        assert data["fileName"] == "lecture.mp4"
        assert data["fileSize"] == 6
        assert data["status"] == "uploading"

    def test_unknown_session(self, client):
        response = client.get("/api/v1/upload/chunked/progress/nonexistent")
        assert response.status_code == 404


class TestComplete:
    def test_complete_happy_path(self, client, provider):
        upload_id = _initialize(client, file_size=3000000, total_chunks=3)
        for index in range(3):
            _send_chunk(client, upload_id, index, bytes([65 + index]) * 1000000)

        response = client.post(
            "/api/v1/upload/chunked/complete", json={"uploadId": upload_id}, headers=HEADERS
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Video uploaded successfully"
        assert body["warning"] is None

        data = body["data"]
        assert data["format"] == "mp4"
        assert data["fileSize"] == 3000000
        assert data["title"] == "Lecture 1"
        assert data["courseId"] == "42"
        assert data["teacherId"] == "teacher-1"
        assert data["status"] == "ready"
        assert data["videoUrl"].endswith("/manifest/video.m3u8")
        assert data["metadata"]["cloudProvider"] == "cloudflare"

        assert len(provider.uploads[0]["content"]) == 3000000

        # The session is gone once completed
        progress = client.get(f"/api/v1/upload/chunked/progress/{upload_id}")
        assert progress.status_code == 404

    def test_complete_with_missing_chunks(self, client):
        upload_id = _initialize(client, total_chunks=5)
        for index in range(3):
            _send_chunk(client, upload_id, index, b"x")

        response = client.post(
            "/api/v1/upload/chunked/complete", json={"uploadId": upload_id}, headers=HEADERS
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing chunks. Uploaded: 3/5"

    def test_complete_cloud_failure_falls_back_to_local(self, client, provider):
        provider.failures = -1
        upload_id = _initialize(client, file_size=2, total_chunks=1)
        _send_chunk(client, upload_id, 0, b"ab")

        response = client.post(
            "/api/v1/upload/chunked/complete", json={"uploadId": upload_id}, headers=HEADERS
        )

        assert response.status_code == 200
        body = response.json()
        assert body["warning"] == "Cloud storage upload failed, video stored locally"
        assert body["data"]["videoUrl"].startswith("/uploads/videos/")
        assert body["data"]["metadata"]["cloudUploadFailed"] is True

    def test_complete_unknown_session(self, client):
        response = client.post(
            "/api/v1/upload/chunked/complete", json={"uploadId": "nonexistent"}, headers=HEADERS
        )
        assert response.status_code == 404

    def test_complete_blank_upload_id(self, client):
        response = client.post(
            "/api/v1/upload/chunked/complete", json={"uploadId": "  "}, headers=HEADERS
        )
        assert response.status_code == 400

    def test_complete_by_other_user(self, client):
        upload_id = _initialize(client, file_size=2, total_chunks=1)
        _send_chunk(client, upload_id, 0, b"ab")

        response = client.post(
            "/api/v1/upload/chunked/complete",
            json={"uploadId": upload_id},
            headers={"X-User-Id": "intruder"},
        )
        assert response.status_code == 403

    def test_background_mode_answers_before_cloud_upload(self, client, publisher, provider):
        publisher.mode = "background"
        upload_id = _initialize(client, file_size=2, total_chunks=1)
        _send_chunk(client, upload_id, 0, b"ab")

        response = client.post(
            "/api/v1/upload/chunked/complete", json={"uploadId": upload_id}, headers=HEADERS
        )

        assert response.status_code == 200
        content_id = response.json()["data"]["id"]
        assert response.json()["data"]["status"] == "processing"

        # TestClient runs background tasks before returning
        assert provider.calls == 1
        polled = client.get(f"/api/v1/content/{content_id}").json()["data"]
        assert polled["status"] == "ready"
        assert polled["videoUrl"].endswith("/manifest/video.m3u8")


class TestCancel:
    def test_cancel(self, client, local_storage):
        upload_id = _initialize(client, total_chunks=3)
        _send_chunk(client, upload_id, 0, b"ab")

        response = client.delete(f"/api/v1/upload/chunked/cancel/{upload_id}", headers=HEADERS)

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Upload cancelled successfully"}
        assert client.get(f"/api/v1/upload/chunked/progress/{upload_id}").status_code == 404
        assert not local_storage.chunk_dir(upload_id).exists()

    def test_cancel_unknown_session(self, client):
        response = client.delete("/api/v1/upload/chunked/cancel/nonexistent", headers=HEADERS)
        assert response.status_code == 404

    def test_cancel_by_other_user(self, client):
        upload_id = _initialize(client)
        response = client.delete(
            f"/api/v1/upload/chunked/cancel/{upload_id}", headers={"X-User-Id": "intruder"}
        )
        assert response.status_code == 403


class TestSimpleUpload:
    def test_simple_upload(self, client, provider):
        response = client.post(
            "/api/v1/upload/simple",
            data={"title": "Short clip", "courseId": "7"},
            files={"video": ("clip.webm", b"webm-bytes", "video/webm")},
            headers=HEADERS,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["title"] == "Short clip"
        assert data["courseId"] == "7"
        assert data["format"] == "webm"
        assert data["fileSize"] == len(b"webm-bytes")
        assert provider.uploads[0]["content"] == b"webm-bytes"

    def test_simple_upload_rejects_non_video(self, client, provider):
        response = client.post(
            "/api/v1/upload/simple",
            files={"video": ("notes.pdf", b"%PDF", "application/pdf")},
            headers=HEADERS,
        )
        assert response.status_code == 400
        assert provider.calls == 0

    def test_simple_upload_cloud_failure(self, client, provider):
        provider.failures = -1
        response = client.post(
            "/api/v1/upload/simple",
            files={"video": ("clip.mp4", b"mp4-bytes", "video/mp4")},
            headers=HEADERS,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["warning"] == "Cloud storage upload failed, video stored locally"
        assert body["data"]["title"] == "clip.mp4"

    @pytest.mark.parametrize("headers", [{}, {"X-User-Id": "  "}])
    def test_simple_upload_requires_user(self, client, headers):
        response = client.post(
            "/api/v1/upload/simple",
            files={"video": ("clip.mp4", b"mp4-bytes", "video/mp4")},
            headers=headers,
        )
        assert response.status_code == 400
