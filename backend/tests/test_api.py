import io
import zipfile

from dropbatch.core.config import settings


def register(client, email="owner@example.com"):
    resp = client.post("/register", json={"email": email, "password": "correct-horse"})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def upload(client, names, headers=None, data=None):
    files = [("files", (name, f"body of {name}".encode(), "text/plain")) for name in names]
    return client.post("/upload", files=files, data=data or {}, headers=headers or {})


def test_anonymous_upload_and_manifest(client):
    resp = upload(client, ["a.txt", "b.txt"])
    assert resp.status_code == 200, resp.text
    body = resp.json()
    token = body["share_token"]
    assert body["share_url"] == f"http://testserver/download/{token}"
    assert body["total_bytes"] == len(b"body of a.txt") + len(b"body of b.txt")

    manifest = client.get(f"/download/{token}").json()
    assert manifest["file_count"] == 2
    assert [f["filename"] for f in manifest["files"]] == ["a.txt", "b.txt"]
    assert manifest["is_finalized"] is False


def test_download_single_file_increments_count(client):
    body = upload(client, ["report.txt"]).json()
    token, file_id = body["share_token"], body["files"][0]["id"]

    resp = client.get(f"/download/{token}/files/{file_id}")
    assert resp.status_code == 200
    assert resp.content == b"body of report.txt"
    assert "report.txt" in resp.headers["content-disposition"]

    manifest = client.get(f"/download/{token}").json()
    assert manifest["files"][0]["download_count"] == 1


def test_download_archive(client):
    token = upload(client, ["same.txt", "same.txt", "other.txt"]).json()["share_token"]

    resp = client.get(f"/download/{token}/archive")
    assert resp.status_code == 200
    with zipfile.ZipFile(io.BytesIO(resp.content)) as zf:
        assert zf.namelist() == ["same.txt", "same (1).txt", "other.txt"]
        assert zf.read("other.txt") == b"body of other.txt"

    counts = [f["download_count"] for f in client.get(f"/download/{token}").json()["files"]]
    assert counts == [1, 1, 1]


def test_archive_read_failure_reports_files_already_delivered(client, tmp_path, monkeypatch):
    import importlib

    download_routes = importlib.import_module("dropbatch.routes.download")

    reported = []
    monkeypatch.setattr(download_routes, "report_download", reported.append)
    token = upload(client, ["a.txt", "b.txt", "c.txt"]).json()["share_token"]
    (second,) = (tmp_path / "blobs").rglob("*_1_b.txt")
    second.unlink()

    resp = client.get(f"/download/{token}/archive")

    assert resp.status_code == 502
    assert resp.json()["files_completed"] == 1
    assert reported == [1]
    counts = [f["download_count"] for f in client.get(f"/download/{token}").json()["files"]]
    assert counts == [1, 0, 0]


def test_download_single_file_with_missing_blob_is_502(client, tmp_path):
    body = upload(client, ["gone.txt"]).json()
    token, file_id = body["share_token"], body["files"][0]["id"]
    for blob in (tmp_path / "blobs").rglob("*_gone.txt"):
        blob.unlink()

    resp = client.get(f"/download/{token}/files/{file_id}")

    assert resp.status_code == 502
    manifest = client.get(f"/download/{token}").json()
    assert manifest["files"][0]["download_count"] == 0


def test_unknown_token_is_404(client):
    resp = client.get("/download/" + "0" * 32)
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


def test_quota_exceeded_is_413(client, monkeypatch):
    monkeypatch.setattr(settings, "ANONYMOUS_QUOTA_BYTES", 10)

    resp = upload(client, ["a.txt"])
    assert resp.status_code == 413
    assert resp.json()["error"] == "quota_exceeded"
    assert resp.json()["files_completed"] == 0


def test_too_many_files_is_400(client):
    resp = upload(client, [f"f{i}.txt" for i in range(11)])
    assert resp.status_code == 400


def test_batch_id_requires_share_token(client):
    resp = upload(client, ["a.txt"], data={"batch_id": "abc"})
    assert resp.status_code == 400


def test_finalize_then_add_more_is_rejected(client):
    headers = register(client)
    body = upload(client, ["a.txt"], headers=headers).json()
    batch = {"batch_id": body["batch_id"], "share_token": body["share_token"]}

    more = upload(client, ["b.txt"], headers=headers, data=batch)
    assert more.status_code == 200
    assert more.json()["share_token"] == body["share_token"]

    resp = client.post(f"/batches/{body['batch_id']}/finalize", headers=headers)
    assert resp.status_code == 200
    assert resp.json() == {"batch_id": body["batch_id"], "is_finalized": True}
    # idempotent
    assert client.post(f"/batches/{body['batch_id']}/finalize", headers=headers).status_code == 200

    rejected = upload(client, ["c.txt"], headers=headers, data=batch)
    assert rejected.status_code == 409
    assert rejected.json()["error"] == "batch_finalized"

    manifest = client.get(f"/download/{body['share_token']}").json()
    assert manifest["file_count"] == 2
    assert manifest["is_finalized"] is True


def test_finalize_by_stranger_fails(client):
    owner = register(client, "owner@example.com")
    stranger = register(client, "stranger@example.com")
    batch_id = upload(client, ["a.txt"], headers=owner).json()["batch_id"]

    assert client.post(f"/batches/{batch_id}/finalize", headers=stranger).status_code == 409
    assert client.post(f"/batches/{batch_id}/finalize").status_code == 409


def test_history_lists_own_batches(client):
    headers = register(client)
    first = upload(client, ["a.txt", "b.txt"], headers=headers).json()
    second = upload(client, ["c.txt"], headers=headers).json()
    upload(client, ["anon.txt"])

    resp = client.get("/history", headers=headers)
    assert resp.status_code == 200
    summaries = resp.json()
    assert [s["batch_id"] for s in summaries] == [second["batch_id"], first["batch_id"]]
    assert summaries[1]["file_count"] == 2


def test_history_requires_login(client):
    assert client.get("/history").status_code == 401


def test_invalid_token_is_not_anonymous(client):
    resp = upload(client, ["a.txt"], headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_login_and_me(client):
    register(client, "me@example.com")
    resp = client.post("/token", data={"username": "me@example.com", "password": "correct-horse"})
    assert resp.status_code == 200
    headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}

    assert client.get("/me", headers=headers).json()["email"] == "me@example.com"
    bad = client.post("/token", data={"username": "me@example.com", "password": "wrong-password"})
    assert bad.status_code == 401


def test_duplicate_registration(client):
    register(client, "dup@example.com")
    resp = client.post("/register", json={"email": "dup@example.com", "password": "correct-horse"})
    assert resp.status_code == 400


def test_health(client):
    body = client.get("/health").json()
    assert body["database"] == "ok"
    assert body["storage"] == "ok"
