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

"""Image upload controller.

  POST /upload  → relay the photo, then record it in the catalog (multipart form)
"""

import asyncio

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlmodel import Session

from tgpic.server.component import code, folder_path
from tgpic.server.component.database import session
from tgpic.server.component.environment import env_int
from tgpic.server.component.telegram_relay import TelegramRelay, get_relay
from tgpic.server.exception.exception import UserException
from tgpic.server.model.image.image import ImageOut
from tgpic.server.service import image_service
from tgpic.utils import hasher, tracing

logger = tracing.get_logger("server_upload")

router = APIRouter(tags=["Images"])

_CHUNK_SIZE = 64 * 1024


def _max_upload_bytes() -> int:
    return env_int("MAX_UPLOAD_MB", 10) * 1024 * 1024


@router.post("/upload", name="upload image")
@tracing.trace()
async def upload_image(
    photo: UploadFile = File(...),
    expire: str = Form("forever"),
    tags: str = Form(""),
    filename: str | None = Form(None),
    folder: str = Form("/"),
    hash: str | None = Form(None),
    session: Session = Depends(session),
    relay: TelegramRelay = Depends(get_relay),
):
    """Stream the upload into memory, relay it and store the catalog row.

    The digest is always computed here; a client-sent ``hash`` that
    disagrees is logged and ignored.
    """
    expire_at = image_service.expire_at_for(expire)
    target = folder_path.normalize(folder)
    tag_list = image_service.normalize_tags(tags)
    name = (filename or photo.filename or "image").strip() or "image"

    limit = _max_upload_bytes()
    digest = hasher.new_hasher()
    chunks = []
    total_size = 0
    while True:
        chunk = await photo.read(_CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > limit:
            raise UserException(
                code.file_too_large,
                f"File exceeds {limit // (1024 * 1024)} MB limit",
                status_code=413,
            )
        digest.update(chunk)
        chunks.append(chunk)
    if total_size == 0:
        raise UserException(code.file_empty, "Uploaded file is empty")

    content_digest = digest.hexdigest()
    if hash and hash.lower() != content_digest:
        logger.warning("Client digest mismatch", extra={"client_hash": hash, "digest": content_digest})

    content_type = photo.content_type or "image/jpeg"
    relay_object = await relay.send_photo(b"".join(chunks), name, content_type)

    image = await asyncio.to_thread(
        image_service.create_image,
        relay_object,
        filename=name,
        size=total_size,
        content_type=content_type,
        tags=tag_list,
        folder=target,
        digest=content_digest,
        expire_at=expire_at,
        s=session,
    )
    return {"status": "success", "data": ImageOut.model_validate(image).model_dump(mode="json")}
