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
Folder Service: virtual folder lifecycle over the image catalog.

Folders have no table of their own; every operation rewrites or removes the
``folder`` column of the affected rows inside a single transaction.
"""

from typing import List

from sqlalchemy import delete, func, literal, update
from sqlmodel import Session, select

from tgpic.server.component import code, folder_path
from tgpic.server.exception.exception import NotFoundException, UserException
from tgpic.server.model.abstract.model import utcnow
from tgpic.server.model.image.image import Image
from tgpic.server.service import image_service
from tgpic.utils import tracing

logger = tracing.get_logger("folder_service")


def list_folders(*, s: Session) -> List[str]:
    """Every stored folder, each of its ancestors, and the root; sorted."""
    stored = s.exec(select(Image.folder).distinct()).all()
    return folder_path.expand(stored)


def _load_exact(ids: List[int], *, s: Session) -> List[Image]:
    wanted = sorted(set(ids))
    images = list(s.exec(select(Image).where(Image.id.in_(wanted)).order_by(Image.id)).all())  # type: ignore[attr-defined]
    missing = sorted(set(wanted) - {image.id for image in images})
    if missing:
        raise NotFoundException(f"Images not found: {missing}")
    return images


def move_images(ids: List[int], target: str, *, s: Session) -> int:
    """Place exactly ``ids`` in ``target``; any unknown id rejects the batch."""
    target = folder_path.normalize(target)
    images = _load_exact(ids, s=s)
    try:
        now = utcnow()
        for image in images:
            image.folder = target
            image.updated_at = now
            s.add(image)
        s.commit()
    except Exception as e:
        s.rollback()
        logger.error("Folder move failed", extra={"ids": ids, "target": target, "error": str(e)}, exc_info=True)
        raise
    logger.info("Images moved", extra={"count": len(images), "target": target})
    return len(images)


def copy_images(ids: List[int], target: str, *, s: Session) -> List[Image]:
    """Duplicate ``ids`` into ``target`` under fresh short codes."""
    target = folder_path.normalize(target)
    sources = _load_exact(ids, s=s)
    copies: List[Image] = []
    try:
        for source in sources:
            clone = Image(
                file_id=source.file_id,
                thumb_file_id=source.thumb_file_id,
                short_code=image_service.generate_short_code(s=s),
                tags=source.tags,
                filename=source.filename,
                size=source.size,
                folder=target,
                content_type=source.content_type,
                digest=source.digest,
                expire_at=source.expire_at,
            )
            s.add(clone)
            # flush so the next short code check sees this one
            s.flush()
            copies.append(clone)
        s.commit()
    except Exception as e:
        s.rollback()
        logger.error("Folder copy failed", extra={"ids": ids, "target": target, "error": str(e)}, exc_info=True)
        raise
    for clone in copies:
        s.refresh(clone)
    logger.info("Images copied", extra={"count": len(copies), "target": target})
    return copies


def rename_folder(old_path: str, new_path: str, *, s: Session) -> int:
    """Rewrite the ``old_path`` prefix to ``new_path`` for the whole subtree."""
    old = folder_path.normalize(old_path)
    new = folder_path.normalize(new_path)
    if old == folder_path.ROOT:
        raise UserException(code.invalid_folder, "The root folder cannot be renamed")
    if folder_path.is_within(new, old):
        raise UserException(code.invalid_folder, "A folder cannot be renamed into itself")

    stmt = (
        update(Image)
        .where(Image.folder.startswith(old, autoescape=True))  # type: ignore[attr-defined]
        .values(
            folder=literal(new).concat(func.substr(Image.folder, len(old) + 1)),
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    try:
        result = s.exec(stmt)  # type: ignore[call-overload]
        s.commit()
    except Exception as e:
        s.rollback()
        logger.error("Folder rename failed", extra={"old": old, "new": new, "error": str(e)}, exc_info=True)
        raise
    renamed = result.rowcount or 0
    logger.info("Folder renamed", extra={"old": old, "new": new, "rows": renamed})
    return renamed


def delete_folder(path: str, *, s: Session) -> int:
    """Remove every row at ``path`` or below it."""
    path = folder_path.normalize(path)
    if path == folder_path.ROOT:
        raise UserException(code.invalid_folder, "The root folder cannot be deleted")

    stmt = (
        delete(Image)
        .where(Image.folder.startswith(path, autoescape=True))  # type: ignore[attr-defined]
        .execution_options(synchronize_session=False)
    )
    try:
        result = s.exec(stmt)  # type: ignore[call-overload]
        s.commit()
    except Exception as e:
        s.rollback()
        logger.error("Folder delete failed", extra={"path": path, "error": str(e)}, exc_info=True)
        raise
    deleted = result.rowcount or 0
    logger.info("Folder deleted", extra={"path": path, "rows": deleted})
    return deleted
