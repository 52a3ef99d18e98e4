from __future__ import annotations

import base64
import os

import pytest
from conftest import API, signup

from spentiva.core.config import settings
from spentiva.services import storage


def test_sanitize_filename():
    assert storage.sanitize_filename("../../etc/pass wd.TXT") == ("pass_wd", "txt")
    assert storage.sanitize_filename("") == ("file", "")
    assert storage.sanitize_filename("résumé (final).pdf") == ("r_sum_final", "pdf")


def test_decode_base64_accepts_data_urls():
    raw = base64.b64encode(b"hello").decode()
    assert storage.decode_base64(raw) == (b"hello", None)
    assert storage.decode_base64(f"data:text/plain;base64,{raw}") == (b"hello", "text/plain")
    with pytest.raises(ValueError):
        storage.decode_base64("not base64!!")


def test_multipart_upload_list_get_delete(client, user):
    resp = client.post(
        f"{API}/upload",
        files=[("files", ("receipt.png", b"\x89PNG data", "image/png")), ("files", ("notes.txt", b"hi", "text/plain"))],
        headers=user["headers"],
    )
    assert resp.status_code == 200
    assert resp.json()["message"] == "2 file(s) uploaded successfully"
    first = resp.json()["data"]["files"][0]
    assert first["originalName"] == "receipt.png"
    assert first["size"] == len(b"\x89PNG data")
    assert first["fileUrl"] == f"/uploads/{user['id']}/{first['savedName']}"
    path = os.path.join(settings.upload_root, first["filePath"])
    assert os.path.exists(path)

    served = client.get(first["fileUrl"])
    assert served.status_code == 200
    assert served.content == b"\x89PNG data"

    listed = client.get(f"{API}/uploads", headers=user["headers"]).json()["data"]
    assert listed["total"] == 2

    got = client.get(f"{API}/uploads/{first['id']}", headers=user["headers"])
    assert got.json()["data"]["file"]["savedName"] == first["savedName"]

    eve_headers, _ = signup(client, email="eve@example.com", name="Eve")
    assert client.get(f"{API}/uploads/{first['id']}", headers=eve_headers).status_code == 404

    deleted = client.delete(f"{API}/uploads/{first['id']}", headers=user["headers"])
    assert deleted.status_code == 200
    assert not os.path.exists(path)
    missing = client.get(f"{API}/uploads/{first['id']}", headers=user["headers"])
    assert missing.status_code == 404
    assert missing.json()["message"] == "File not found"


def test_upload_without_files(client, user):
    resp = client.post(f"{API}/upload", headers=user["headers"])
    assert resp.status_code == 400
    assert resp.json()["message"] == "No files uploaded"


def test_upload_too_many_files(client, user, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_FILES", 1)
    resp = client.post(
        f"{API}/upload",
        files=[("files", ("a.txt", b"a", "text/plain")), ("files", ("b.txt", b"b", "text/plain"))],
        headers=user["headers"],
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "You can upload a maximum of 1 files"


def test_base64_upload(client, user):
    data = "data:image/png;base64," + base64.b64encode(b"png-bytes").decode()
    resp = client.post(
        f"{API}/upload/base64",
        json={"files": [{"fileName": "shot.png", "data": data}]},
        headers=user["headers"],
    )
    assert resp.status_code == 200
    saved = resp.json()["data"]["files"][0]
    assert saved["mimeType"] == "image/png"
    assert saved["size"] == len(b"png-bytes")

    bad = client.post(
        f"{API}/upload/base64",
        json={"files": [{"fileName": "x.bin", "data": "@@@"}]},
        headers=user["headers"],
    )
    assert bad.status_code == 400
    assert bad.json()["message"] == "Invalid base64 data for x.bin"
