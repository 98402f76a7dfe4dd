# ========= Copyright 2025-2026 @ tgpic Authors. All Rights Reserved. =========
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ========= Copyright 2025-2026 @ tgpic Authors. All Rights Reserved. =========

"""
Image Service: catalog reads and writes shared by the image controllers,
the folder service and the background expiry purge.
"""

import secrets
import string
from collections import Counter
from datetime import datetime, timedelta
from typing import Iterable, List

from sqlalchemy import delete, func, or_
from sqlmodel import Session, select

from tgpic.server.component import code, folder_path
from tgpic.server.component.telegram_relay import RelayObject
from tgpic.server.exception.exception import UserException
from tgpic.server.model.abstract.model import utcnow
from tgpic.server.model.image.image import DEFAULT_TAG, EXPIRE_CHOICES, Image
from tgpic.utils import tracing

logger = tracing.get_logger("image_service")

SHORT_CODE_ALPHABET = string.ascii_letters + string.digits
SHORT_CODE_LENGTH = 6
HOT_TAG_LIMIT = 10


def normalize_tags(raw: str | Iterable[str] | None) -> List[str]:
    """Split, trim and de-duplicate tags; an empty set becomes the default tag."""
    if raw is None:
        items: Iterable[str] = []
    elif isinstance(raw, str):
        items = raw.split(",")
    else:
        items = raw
    tags: List[str] = []
    for item in items:
        tag = item.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags or [DEFAULT_TAG]


def expire_at_for(expire: str | None, now: datetime | None = None) -> datetime | None:
    expire = (expire or "forever").strip()
    if expire not in EXPIRE_CHOICES:
        raise UserException(code.invalid_expire, f"Invalid expire value: {expire!r}")
    if expire == "forever":
        return None
    return (now or utcnow()) + timedelta(days=int(expire))


def generate_short_code(*, s: Session, length: int = SHORT_CODE_LENGTH) -> str:
    """Random base62 code not yet present in the catalog."""
    while True:
        candidate = "".join(secrets.choice(SHORT_CODE_ALPHABET) for _ in range(length))
        taken = s.exec(select(Image.id).where(Image.short_code == candidate)).first()
        if taken is None:
            return candidate


def create_image(
    relay_object: RelayObject,
    *,
    filename: str,
    size: int,
    content_type: str,
    tags: List[str],
    folder: str,
    digest: str | None,
    expire_at: datetime | None,
    s: Session,
) -> Image:
    """Insert the catalog row for an object the relay already stores."""
    image = Image(
        file_id=relay_object.file_id,
        thumb_file_id=relay_object.thumb_file_id,
        short_code=generate_short_code(s=s),
        tags=",".join(tags),
        filename=filename,
        size=size,
        folder=folder,
        content_type=content_type,
        digest=digest,
        expire_at=expire_at,
    )
    s.add(image)
    s.commit()
    s.refresh(image)
    logger.info(
        "Image recorded",
        extra={"image_id": image.id, "short_code": image.short_code, "folder": folder, "size": size},
    )
    return image


def not_expired(now: datetime | None = None):
    now = now or utcnow()
    return or_(Image.expire_at.is_(None), Image.expire_at > now)  # type: ignore[union-attr]


def history_query(
    *,
    search: str | None = None,
    tag: str | None = None,
    filename: str | None = None,
    folder: str | None = None,
    recursive: bool = False,
):
    """Newest-first listing statement with the optional filters applied."""
    stmt = select(Image).where(not_expired())
    if search:
        stmt = stmt.where(
            or_(
                Image.filename.contains(search, autoescape=True),  # type: ignore[attr-defined]
                Image.tags.contains(search, autoescape=True),  # type: ignore[attr-defined]
            )
        )
    if tag:
        # tags are stored comma-joined, so match on the padded list
        padded = "," + Image.tags + ","
        stmt = stmt.where(padded.contains(f",{tag.strip()},", autoescape=True))
    if filename:
        stmt = stmt.where(Image.filename.contains(filename, autoescape=True))  # type: ignore[attr-defined]
    if folder:
        path = folder_path.normalize(folder)
        if recursive:
            stmt = stmt.where(Image.folder.startswith(path, autoescape=True))  # type: ignore[attr-defined]
        else:
            stmt = stmt.where(Image.folder == path)
    return stmt.order_by(Image.created_at.desc(), Image.id.desc())  # type: ignore[attr-defined]


def find_by_file_id(file_id: str, *, s: Session) -> Image | None:
    return s.exec(
        select(Image).where(or_(Image.file_id == file_id, Image.thumb_file_id == file_id))
    ).first()


def delete_images(ids: Iterable[int], *, s: Session) -> int:
    """Delete the rows with ``ids`` in one transaction; returns the row count."""
    id_list = sorted(set(ids))
    if not id_list:
        return 0
    try:
        result = s.exec(delete(Image).where(Image.id.in_(id_list)))  # type: ignore[attr-defined]
        s.commit()
    except Exception as e:
        s.rollback()
        logger.error("Image delete failed", extra={"ids": id_list, "error": str(e)}, exc_info=True)
        raise
    deleted = result.rowcount or 0
    logger.info("Images deleted", extra={"requested": len(id_list), "deleted": deleted})
    return deleted


def stats(*, s: Session) -> dict:
    total, size = s.exec(
        select(func.count(Image.id), func.coalesce(func.sum(Image.size), 0)).where(not_expired())
    ).one()
    counter: Counter = Counter()
    for tags in s.exec(select(Image.tags).where(not_expired())).all():
        counter.update(normalize_tags(tags))
    hot = [{"tag": tag, "count": count} for tag, count in counter.most_common(HOT_TAG_LIMIT)]
    return {"total": int(total), "size": int(size), "hot": hot}


def purge_expired(*, s: Session, now: datetime | None = None) -> int:
    """Remove every row whose ``expire_at`` has passed."""
    now = now or utcnow()
    try:
        result = s.exec(delete(Image).where(Image.expire_at.is_not(None), Image.expire_at <= now))  # type: ignore[union-attr]
        s.commit()
    except Exception as e:
        s.rollback()
        logger.error("Expiry purge failed", extra={"error": str(e)}, exc_info=True)
        raise
    purged = result.rowcount or 0
    if purged:
        logger.info("Expired images purged", extra={"count": purged})
    return purged
