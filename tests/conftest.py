import os

# must be set before tgpic.server modules read them at import time
os.environ["database_url"] = "sqlite://"
os.environ["DISABLE_AUTO_MIGRATE"] = "true"
os.environ["PURGE_INTERVAL_SECONDS"] = "0"
os.environ.setdefault("TG_BOT_TOKEN", "123:test-token")
os.environ.setdefault("TG_CHAT_ID", "-100123")

from datetime import datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from sqlmodel import Session, SQLModel  # noqa: E402

from tgpic.server.component import database  # noqa: E402
from tgpic.server.component.telegram_relay import RelayObject  # noqa: E402
from tgpic.server.exception.exception import RelayException  # noqa: E402
from tgpic.server.model.image.image import Image  # noqa: E402


class FakeRelay:
    """In-memory stand-in for the Telegram relay."""

    def __init__(self):
        self.blobs = {}
        self.sent = []
        self.broken = set()

    async def send_photo(self, data: bytes, filename: str, content_type: str) -> RelayObject:
        n = len(self.sent) + 1
        self.sent.append((filename, len(data), content_type))
        file_id, thumb_id = f"file-{n}", f"thumb-{n}"
        self.blobs[file_id] = data
        self.blobs[thumb_id] = data[:16]
        return RelayObject(file_id=file_id, thumb_file_id=thumb_id)

    async def get_file_bytes(self, file_id: str) -> bytes:
        if file_id in self.broken or file_id not in self.blobs:
            raise RelayException("Telegram file download failed", details=file_id)
        return self.blobs[file_id]


@pytest.fixture
def db():
    database.create_all()
    with Session(database.engine) as s:
        yield s
    SQLModel.metadata.drop_all(database.engine)


@pytest.fixture
def relay():
    return FakeRelay()


@pytest.fixture
def make_image(db, relay):
    """Insert a catalog row whose bytes the fake relay can serve."""
    counter = {"n": 0}
    base = datetime(2026, 1, 1)

    def _make(content: bytes = b"img", folder: str = "/", tags: str = "默认", **kwargs) -> Image:
        counter["n"] += 1
        n = counter["n"]
        file_id = kwargs.pop("file_id", f"stored-{n}")
        relay.blobs[file_id] = content
        image = Image(
            file_id=file_id,
            short_code=kwargs.pop("short_code", f"code{n:02d}"),
            tags=tags,
            filename=kwargs.pop("filename", f"img{n}.jpg"),
            size=len(content),
            folder=folder,
            content_type="image/jpeg",
            created_at=kwargs.pop("created_at", base + timedelta(minutes=n)),
            **kwargs,
        )
        db.add(image)
        db.commit()
        db.refresh(image)
        return image

    return _make


@pytest.fixture
def client(db, relay):
    from fastapi.testclient import TestClient

    from tgpic.server.component.telegram_relay import get_relay
    from tgpic.server.main import api

    api.dependency_overrides[get_relay] = lambda: relay
    with TestClient(api) as c:
        yield c
    api.dependency_overrides.clear()
