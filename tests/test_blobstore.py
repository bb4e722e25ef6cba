"""Tests for the local-disk blob store."""

import io

import pytest

from healthbar.services.blobstore import (
    BlobStore,
    UploadRejected,
    UploadTooLarge,
    content_type_for,
    extension_of,
)


@pytest.fixture
def store(tmp_path):
    return BlobStore(tmp_path / "blobs", max_bytes=1000)


def test_save_and_read_back(store):
    key = store.new_key("patient-1", ".pdf")
    size = store.save(key, io.BytesIO(b"%PDF-1.4 hello"))

    assert size == 14
    assert store.exists(key)
    assert store.path_for(key).read_bytes() == b"%PDF-1.4 hello"


def test_keys_are_unique_per_upload(store):
    assert store.new_key("p", ".png") != store.new_key("p", ".png")
    assert store.new_key("p", ".png").startswith("p_")


def test_oversized_upload_leaves_nothing(store):
    key = store.new_key("patient-1", ".png")
    with pytest.raises(UploadTooLarge):
        store.save(key, io.BytesIO(b"x" * 1001))

    assert not store.exists(key)
    assert list(store.root.iterdir()) == []


def test_upload_at_exact_limit(store):
    key = store.new_key("patient-1", ".png")
    assert store.save(key, io.BytesIO(b"x" * 1000)) == 1000


def test_existing_key_not_overwritten(store):
    key = store.new_key("patient-1", ".jpg")
    store.save(key, io.BytesIO(b"first"))
    with pytest.raises(FileExistsError):
        store.save(key, io.BytesIO(b"second"))

    assert store.path_for(key).read_bytes() == b"first"


def test_key_cannot_escape_root(store):
    with pytest.raises(UploadRejected):
        store.path_for("../outside.pdf")


def test_delete_is_idempotent(store):
    key = store.new_key("patient-1", ".pdf")
    store.save(key, io.BytesIO(b"data"))

    store.delete(key)
    store.delete(key)
    assert not store.exists(key)


def test_content_types():
    assert content_type_for(".pdf") == "application/pdf"
    assert content_type_for(".JPG") == "image/jpeg"
    assert content_type_for(".png") == "image/png"
    assert content_type_for(".exe") == "application/octet-stream"
    assert extension_of("Scan.Final.PDF") == ".pdf"
    assert extension_of("noext") == ""
