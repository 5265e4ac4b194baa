from urllib.parse import urlparse

import pytest

from utils.hash import sha256_bytes


@pytest.fixture
def alice(auth_headers):
    return auth_headers("alice")


def _upload(client, headers, data, name="hello.txt", folder_id=None):
    body = {"filename": name, "size": len(data), "hash": sha256_bytes(data),
            "content_type": "text/plain", "folder_id": folder_id}
    res = client.post("/files/upload/request", headers=headers, json=body)
    payload = res.get_json()
    assert payload["code"] == 0, payload
    if not payload["data"]["deduplicated"]:
        put = client.put(urlparse(payload["data"]["url"]).path, data=data)
        assert put.get_json()["code"] == 0
        res = client.post("/files/upload/confirm", headers=headers, json=body)
        assert res.get_json()["code"] == 0, res.get_json()
        return res.get_json()["data"]
    return payload["data"]["file"]


def test_requires_token(client):
    res = client.get("/files/list")
    assert res.status_code == 401


def test_upload_download_round_trip(client, alice):
    asset = _upload(client, alice, b"hello world")
    assert asset["name"] == "hello.txt"

    res = client.get(f"/files/{asset['id']}", headers=alice)
    url = res.get_json()["data"]["download_url"]
    download = client.get(urlparse(url).path)
    assert download.status_code == 200
    assert download.data == b"hello world"


def test_second_upload_is_deduplicated(client, alice, auth_headers):
    _upload(client, alice, b"same bytes")
    bob = auth_headers("bob")
    body = {"filename": "copy.txt", "size": 10, "hash": sha256_bytes(b"same bytes")}
    res = client.post("/files/upload/request", headers=bob, json=body)
    data = res.get_json()["data"]
    assert data["deduplicated"] is True
    assert data["file"]["ref_count"] == 2


def test_blob_put_rejects_wrong_content(client, alice):
    body = {"filename": "a.txt", "size": 5, "hash": sha256_bytes(b"right")}
    url = client.post("/files/upload/request", headers=alice, json=body).get_json()["data"]["url"]
    res = client.put(urlparse(url).path, data=b"wrong")
    assert res.status_code == 400

    confirm = client.post("/files/upload/confirm", headers=alice, json=body)
    assert confirm.status_code == 404
    assert confirm.get_json()["code"] == 404


def test_blob_token_is_operation_bound(client, alice):
    asset = _upload(client, alice, b"data")
    url = client.get(f"/files/{asset['id']}", headers=alice).get_json()["data"]["download_url"]
    res = client.put(urlparse(url).path, data=b"data")
    assert res.status_code == 403
    assert client.get("/blob/forged-token").status_code == 403


def test_error_envelope(client, alice):
    res = client.get("/files/does-not-exist", headers=alice)
    assert res.status_code == 404
    assert res.get_json() == {"code": 404, "msg": "File not found"}

    res = client.post("/folders", headers=alice, json={"name": "bad/name"})
    assert res.status_code == 400


def test_folder_lifecycle(client, alice):
    res = client.post("/folders", headers=alice, json={"name": "docs"})
    folder_id = res.get_json()["data"]["id"]
    _upload(client, alice, b"in folder", folder_id=folder_id)

    res = client.delete(f"/folders/{folder_id}", headers=alice)
    assert res.status_code == 412

    res = client.post(f"/folders/{folder_id}/trash", headers=alice)
    assert res.get_json()["data"] == {"trashed_folders": 1, "trashed_files": 1}

    trash = client.get("/trash", headers=alice).get_json()["data"]
    assert [f["id"] for f in trash["folders"]] == [folder_id]

    res = client.post(f"/folders/{folder_id}/purge", headers=alice)
    assert res.get_json()["data"]["deleted_files"] == 1

    quota = client.get("/storage/quota", headers=alice).get_json()["data"]
    assert quota["storage_used"] == 0


def test_public_share(client, alice):
    asset = _upload(client, alice, b"public bytes")
    res = client.post(f"/share/file/{asset['id']}", headers=alice, json={"is_public": True})
    share_id = res.get_json()["data"]["public_share_id"]

    res = client.get(f"/share/{share_id}")
    data = res.get_json()["data"]
    assert data["download_count"] == 1
    assert client.get(urlparse(data["download_url"]).path).data == b"public bytes"

    assert client.get("/share/unknown").status_code == 404


def test_stats(client, alice):
    _upload(client, alice, b"abc", name="a.txt")
    _upload(client, alice, b"abc", name="b.txt")
    stats = client.get("/storage/stats", headers=alice).get_json()["data"]
    assert stats["total_files"] == 2
    assert stats["saved_bytes"] == 3


def test_empty_trash_route(client, alice):
    asset = _upload(client, alice, b"gone soon")
    client.post(f"/files/{asset['id']}/trash", headers=alice)
    res = client.post("/trash/empty", headers=alice)
    assert res.get_json()["data"]["deleted_files"] == 1


def test_cli_commands(app, storage):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["set-limits", "alice", "--storage", "2048", "--rate", "5"])
    assert result.exit_code == 0
    assert "'storage_limit': 2048" in result.output

    storage.put(sha256_bytes(b"orphan"), b"orphan")
    result = runner.invoke(args=["cleanup-orphans", "--grace", "0"])
    assert result.exit_code == 0
    assert "removed 1 orphaned blob(s)" in result.output
