"""Tests for local video storage."""

import io
import os
import time

from eduvideo.storage.local import LocalVideoStorage


def test_write_chunk_replaces_previous_copy(local_storage):
    local_storage.write_chunk("upload-1", 0, b"old")
    path = local_storage.write_chunk("upload-1", 0, b"new")

    assert path == local_storage.chunks_dir / "upload-1" / "chunk-0"
    assert path.read_bytes() == b"new"
    # No temporary files left behind
    assert [p.name for p in path.parent.iterdir()] == ["chunk-0"]


def test_missing_chunk_files(local_storage):
    local_storage.write_chunk("upload-1", 0, b"a")
    local_storage.write_chunk("upload-1", 2, b"c")

    assert local_storage.missing_chunk_files("upload-1", 4) == [1, 3]


def test_merge_concatenates_in_index_order(local_storage):
    for index in (10, 2, 1, 0):
        local_storage.write_chunk("upload-1", index, f"[{index}]".encode())
    for index in range(3, 10):
        local_storage.write_chunk("upload-1", index, f"[{index}]".encode())

    merged = local_storage.merge_chunks("upload-1", 11, "My Lecture.mp4")

    assert merged.parent == local_storage.videos_dir
    assert merged.name == "upload-1-My_Lecture.mp4"
    assert merged.read_bytes() == b"".join(f"[{i}]".encode() for i in range(11))


def test_merged_name_fits_filesystem_limit(local_storage):
    upload_id = "0f8fad5b-d9cb-469f-a165-70867728950e"
    file_name = "Week 3 - " + "very long lecture title " * 10 + ".mp4"
    local_storage.write_chunk(upload_id, 0, b"data")

    merged = local_storage.merge_chunks(upload_id, 1, file_name)

    assert len(merged.name.encode()) <= 255
    assert merged.name.startswith(f"{upload_id}-Week_3")
    assert merged.suffix == ".mp4"
    assert merged.read_bytes() == b"data"


def test_merged_name_short_names_unchanged(local_storage):
    assert local_storage.merged_file_name("upload-1", "lecture 1.mp4") == "upload-1-lecture_1.mp4"


def test_discard_chunk(local_storage):
    local_storage.write_chunk("upload-1", 0, b"a")
    local_storage.write_chunk("upload-1", 1, b"b")

    local_storage.discard_chunk("upload-1", 0)
    assert not local_storage.chunk_path("upload-1", 0).exists()
    assert local_storage.chunk_path("upload-1", 1).exists()

    local_storage.discard_chunk("upload-1", 1)
    assert not local_storage.chunk_dir("upload-1").exists()

    # Already gone
    local_storage.discard_chunk("upload-1", 1)


def test_remove_chunks(local_storage):
    local_storage.write_chunk("upload-1", 0, b"a")
    local_storage.remove_chunks("upload-1")
    assert not local_storage.chunk_dir("upload-1").exists()

    # Nothing to remove is fine
    local_storage.remove_chunks("upload-1")


def test_upload_id_cannot_escape_chunks_dir(local_storage):
    path = local_storage.chunk_path("../../etc", 0)
    assert local_storage.chunks_dir in path.parents


def test_store_video_streams_to_disk(local_storage):
    path = local_storage.store_video("Intro.MOV", io.BytesIO(b"movie"))

    assert path.parent == local_storage.videos_dir
    assert path.name.startswith("video-")
    assert path.suffix == ".mov"
    assert path.read_bytes() == b"movie"


def test_local_url_round_trip(local_storage):
    path = local_storage.videos_dir / "video-1.mp4"

    url = local_storage.local_url(path)
    assert url == "/uploads/videos/video-1.mp4"
    assert local_storage.path_from_url(url) == path
    assert local_storage.path_from_url("https://cdn.example.com/video-1.mp4") is None


def test_custom_url_prefix(tmp_path):
    storage = LocalVideoStorage(root=tmp_path, url_prefix="/media/")
    assert storage.local_url(tmp_path / "a.mp4") == "/media/a.mp4"


def test_delete_video(local_storage):
    path = local_storage.store_video("a.mp4", io.BytesIO(b"x"))
    assert local_storage.delete_video(path) is True
    assert local_storage.delete_video(path) is False


def test_stale_chunk_dirs(local_storage):
    local_storage.write_chunk("old", 0, b"a")
    local_storage.write_chunk("fresh", 0, b"a")
    past = time.time() - 7200
    os.utime(local_storage.chunk_dir("old"), (past, past))

    assert local_storage.stale_chunk_dirs(3600) == ["old"]


def test_stale_chunk_dirs_without_chunks_dir(tmp_path):
    assert LocalVideoStorage(root=tmp_path / "nowhere").stale_chunk_dirs(0) == []


def test_extension_of():
    assert LocalVideoStorage.extension_of("lecture.MP4") == "mp4"
    assert LocalVideoStorage.extension_of("archive.tar.gz") == "gz"
    assert LocalVideoStorage.extension_of("noext") == ""
