# tests/test_file_storage_service.py
"""
Tests for local file storage of import sources and export outputs.
"""

import pytest

from catalogsync.core.exceptions import FileStorageException


def test_store_and_read(file_storage):
    file_key = file_storage.store_file("a,b\n1,2\n", "products.csv")

    assert file_key.startswith("products-")
    assert file_key.endswith(".csv")
    assert file_storage.exists(file_key)
    assert file_storage.read_text(file_key) == "a,b\n1,2\n"


def test_download_drops_bom(file_storage):
    file_key = file_storage.store_file("\ufeffProduct Handle\n".encode("utf-8"), "bom.csv")

    with file_storage.get_download_stream(file_key) as stream:
        assert stream.readline() == "Product Handle\n"


def test_missing_file(file_storage):
    with pytest.raises(FileStorageException) as exc_info:
        file_storage.get_download_stream("missing.csv")

    assert exc_info.value.details["operation"] == "download"


def test_keys_cannot_escape_storage(file_storage):
    with pytest.raises(FileStorageException):
        file_storage.get_download_stream("../outside.csv")


def test_upload_is_visible_once_completed(file_storage):
    upload = file_storage.get_upload_stream_descriptor(name="product-export")
    upload.write_stream.write("header\r\n")

    assert upload.file_key.startswith("product-export-")
    assert not file_storage.exists(upload.file_key)
    assert upload.partial_path.exists()

    assert upload.complete() == upload.file_key
    assert file_storage.read_text(upload.file_key) == "header\r\n"
    assert not upload.partial_path.exists()


def test_delete_removes_partial_upload(file_storage):
    upload = file_storage.get_upload_stream_descriptor(name="product-export")
    upload.write_stream.write("header\r\n")
    upload.close()
    upload.close()

    assert file_storage.delete(upload.file_key) is True
    assert not upload.partial_path.exists()
    assert file_storage.delete(upload.file_key) is False
