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

import asyncio

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlmodel import Session

from tgpic.server.component.database import session
from tgpic.server.component.telegram_relay import TelegramRelay, get_relay
from tgpic.server.service import image_service
from tgpic.utils import tracing

router = APIRouter(tags=["Images"])


@router.get("/get_photo/{file_id}", name="proxy photo")
@tracing.trace()
async def get_photo(
    file_id: str,
    thumb: int = Query(0, description="1 serves the thumbnail when one is known"),
    session: Session = Depends(session),
    relay: TelegramRelay = Depends(get_relay),
):
    """Proxy the relay's bytes for ``file_id``."""
    image = await asyncio.to_thread(image_service.find_by_file_id, file_id, s=session)
    target = file_id
    media_type = "image/jpeg"
    if image is not None:
        media_type = image.content_type or media_type
        if thumb and image.thumb_file_id:
            target = image.thumb_file_id
            media_type = "image/jpeg"
    data = await relay.get_file_bytes(target)
    return Response(
        content=data,
        media_type=media_type,
        headers={"Cache-Control": "public, max-age=31536000, immutable"},
    )
