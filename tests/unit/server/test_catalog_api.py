import asyncio
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from sqlmodel import select

from tgpic.server.model.image.image import Image
from tgpic.server.service import image_service
from tgpic.server.service.dedup_service import DeduplicationJob


@pytest.mark.unit
class TestUploadEndpoint:
    def test_upload_records_relay_references(self, client, relay, db):
        resp = client.post(
            "/api/upload",
            files={"photo": ("cat.jpg", b"\xff\xd8cat", "image/jpeg")},
            data={"expire": "7", "tags": "pets, cats,pets", "folder": "animals/cats", "hash": "ignored"},
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "success"
        data = body["data"]
        assert data["file_id"] == "file-1"
        assert data["thumb_file_id"] == "thumb-1"
        assert data["folder"] == "/animals/cats/"
        assert data["tags"] == "pets,cats"
        assert data["filename"] == "cat.jpg"
        assert data["size"] == 5
        assert len(data["short_code"]) == 6
        assert len(data["digest"]) == 32
        assert data["expire_at"] is not None
        assert relay.sent == [("cat.jpg", 5, "image/jpeg")]

    def test_default_tag_and_forever(self, client):
        resp = client.post("/api/upload", files={"photo": ("a.png", b"png", "image/png")})
        data = resp.json()["data"]
        assert data["tags"] == "默认"
        assert data["folder"] == "/"
        assert data["expire_at"] is None

    @pytest.mark.parametrize(
        "files, form, code",
        [
            ({"photo": ("e.jpg", b"", "image/jpeg")}, {}, 101),
            ({"photo": ("a.jpg", b"x", "image/jpeg")}, {"expire": "3"}, 104),
            ({"photo": ("a.jpg", b"x", "image/jpeg")}, {"folder": "/bad name/"}, 103),
        ],
    )
    def test_validation_errors_never_reach_relay(self, client, relay, files, form, code):
        resp = client.post("/api/upload", files=files, data=form)

        assert resp.status_code == 400
        assert resp.json()["status"] == "error"
        assert resp.json()["code"] == code
        assert relay.sent == []

    def test_too_large(self, client, relay, monkeypatch):
        monkeypatch.setenv("MAX_UPLOAD_MB", "1")
        resp = client.post("/api/upload", files={"photo": ("big.jpg", b"x" * (1024 * 1024 + 1), "image/jpeg")})
        assert resp.status_code == 413
        assert relay.sent == []

    def test_rate_limit_is_structured(self, client, relay):
        from tgpic.server.exception.exception import RateLimitedException

        with patch.object(relay, "send_photo", side_effect=RateLimitedException(12)):
            resp = client.post("/api/upload", files={"photo": ("a.jpg", b"x", "image/jpeg")})

        assert resp.status_code == 429
        assert resp.headers["Retry-After"] == "12"
        body = resp.json()
        assert body["retry_after"] == 12
        assert "retry after 12" in body["message"]

    def test_missing_field_is_form_error(self, client):
        resp = client.post("/api/upload", data={"expire": "forever"})
        assert resp.status_code == 422
        assert resp.json()["code"] == 100


@pytest.mark.unit
class TestHistoryEndpoints:
    def test_history_newest_first_with_filters(self, client, make_image):
        old = make_image(folder="/a/", tags="cat", filename="kitty.jpg")
        mid = make_image(folder="/a/b/", tags="dog,cat", filename="doggo.jpg")
        new = make_image(folder="/c/", tags="bird", filename="tweet.png")

        def ids(**params):
            resp = client.get("/api/history", params=params)
            assert resp.status_code == 200
            return [item["id"] for item in resp.json()["items"]]

        assert ids() == [new.id, mid.id, old.id]
        assert ids(tag="cat") == [mid.id, old.id]
        assert ids(search="tweet") == [new.id]
        assert ids(filename="dog") == [mid.id]
        assert ids(folder="/a/") == [old.id]
        assert ids(folder="/a/", recursive=True) == [mid.id, old.id]

    def test_history_hides_expired(self, client, make_image):
        live = make_image(expire_at=datetime.utcnow() + timedelta(days=1))
        make_image(expire_at=datetime.utcnow() - timedelta(days=1))

        items = client.get("/api/history").json()["items"]
        assert [item["id"] for item in items] == [live.id]

    def test_history_pagination(self, client, make_image):
        for _ in range(5):
            make_image()
        body = client.get("/api/history", params={"page": 2, "size": 2}).json()
        assert body["total"] == 5
        assert body["pages"] == 3
        assert len(body["items"]) == 2

    def test_delete_and_stats(self, client, make_image, db):
        keep = make_image(b"12345", tags="cat,dog")
        drop = make_image(b"1", tags="cat")
        make_image(b"123", tags="cat")

        resp = client.post("/api/delete", json={"ids": [drop.id, 999]})
        assert resp.json() == {"status": "success", "deleted": 1}

        stats = client.get("/api/stats").json()
        assert stats["total"] == 2
        assert stats["size"] == 8
        assert stats["hot"][0] == {"tag": "cat", "count": 2}
        db.expire_all()
        assert db.get(Image, keep.id) is not None

    def test_delete_needs_ids(self, client):
        assert client.post("/api/delete", json={"ids": []}).status_code == 422

    def test_get_photo_and_thumbnail(self, client, relay):
        data = client.post("/api/upload", files={"photo": ("a.jpg", b"0123456789abcdefXYZ", "image/jpeg")}).json()["data"]

        full = client.get(f"/api/get_photo/{data['file_id']}")
        thumb = client.get(f"/api/get_photo/{data['file_id']}", params={"thumb": 1})

        assert full.content == b"0123456789abcdefXYZ"
        assert full.headers["content-type"] == "image/jpeg"
        assert thumb.content == b"0123456789abcdef"

    def test_get_photo_relay_failure(self, client):
        resp = client.get("/api/get_photo/unknown")
        assert resp.status_code == 502
        assert resp.json()["status"] == "error"

    def test_purge_expired(self, db, make_image):
        live = make_image()
        make_image(expire_at=datetime.utcnow() - timedelta(minutes=1))

        assert image_service.purge_expired(s=db) == 1
        db.expire_all()
        assert [i.id for i in db.exec(select(Image)).all()] == [live.id]

    @pytest.mark.asyncio
    async def test_background_purge_round(self, db, make_image):
        from tgpic.server import _purge_once

        live = make_image()
        make_image(expire_at=datetime.utcnow() - timedelta(minutes=1))

        assert await asyncio.to_thread(_purge_once) == 1
        db.expire_all()
        assert [i.id for i in db.exec(select(Image)).all()] == [live.id]


@pytest.mark.unit
class TestFolderEndpoints:
    def test_folder_lifecycle(self, client, make_image):
        a = make_image(folder="/a/")
        b = make_image(folder="/a/b/")

        assert client.get("/api/folders").json()["folders"] == ["/", "/a/", "/a/b/"]

        resp = client.post("/api/folders/rename", json={"old_path": "/a/", "new_path": "/x/"})
        assert resp.json() == {"status": "success", "updated": 2}
        assert client.get("/api/folders").json()["folders"] == ["/", "/x/", "/x/b/"]

        resp = client.post("/api/folders/move", json={"ids": [a.id], "target": "/y/"})
        assert resp.json()["moved"] == 1

        resp = client.post("/api/folders/copy", json={"ids": [b.id], "target": "/y/"})
        assert resp.json()["copied"] == 1
        assert resp.json()["data"][0]["folder"] == "/y/"

        resp = client.post("/api/folders/delete", json={"path": "/y/"})
        assert resp.json() == {"status": "success", "deleted": 2}
        assert client.get("/api/folders").json()["folders"] == ["/", "/x/", "/x/b/"]

    def test_folder_errors(self, client, make_image):
        image = make_image(folder="/a/")

        assert client.post("/api/folders/delete", json={"path": "/"}).status_code == 400
        assert client.post("/api/folders/rename", json={"old_path": "/a/", "new_path": "/a/b/"}).status_code == 400
        resp = client.post("/api/folders/move", json={"ids": [image.id, 404], "target": "/b/"})
        assert resp.status_code == 404
        assert resp.json()["code"] == 4


@pytest.mark.unit
class TestDedupEndpoint:
    def test_dedup_deletes_duplicates(self, client, make_image):
        a = make_image(b"same")
        make_image(b"other")
        c = make_image(b"same")

        resp = client.post("/api/dedup", json={"include_groups": True})

        body = resp.json()
        assert resp.status_code == 200
        assert body["status"] == "deleted"
        assert body["deleted"] == 1
        assert body["groups"] == [{"digest": body["groups"][0]["digest"], "keep": a.id, "remove": [c.id]}]

    def test_dedup_without_body(self, client, make_image):
        make_image(b"one")
        resp = client.post("/api/dedup")
        assert resp.json()["status"] == "no_duplicates"
        assert "groups" not in resp.json()

    def test_dedup_failure_is_distinct_status(self, client, make_image):
        make_image(b"x")
        with patch.object(DeduplicationJob, "run", side_effect=RuntimeError("database gone")):
            resp = client.post("/api/dedup", json={})

        assert resp.status_code == 500
        assert resp.json()["status"] == "failed"
