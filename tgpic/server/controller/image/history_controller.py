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

"""Catalog listing, batch delete and statistics.

  GET  /history  → paginated listing, newest first, expired rows hidden
  POST /delete   → delete rows by id in one transaction
  GET  /stats    → totals and the most used tags
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi_pagination import Page
from fastapi_pagination.ext.sqlmodel import paginate
from sqlmodel import Session

from tgpic.server.component.database import session
from tgpic.server.model.image.image import ImageIdsIn, ImageOut
from tgpic.server.service import image_service
from tgpic.utils import tracing

router = APIRouter(tags=["Images"])


@router.get("/history", name="list images")
@tracing.trace()
def history(
    search: Optional[str] = Query(None, description="Match against filename or tags"),
    tag: Optional[str] = Query(None, description="Exact tag"),
    filename: Optional[str] = Query(None, description="Filename substring"),
    folder: Optional[str] = Query(None, description="Folder path"),
    recursive: bool = Query(False, description="Include sub-folders of folder"),
    session: Session = Depends(session),
) -> Page[ImageOut]:
    stmt = image_service.history_query(
        search=search,
        tag=tag,
        filename=filename,
        folder=folder,
        recursive=recursive,
    )
    return paginate(session, stmt)


@router.post("/delete", name="delete images")
@tracing.trace()
def delete_images(data: ImageIdsIn, session: Session = Depends(session)):
    deleted = image_service.delete_images(data.ids, s=session)
    return {"status": "success", "deleted": deleted}


@router.get("/stats", name="catalog stats")
@tracing.trace()
def stats(session: Session = Depends(session)):
    return image_service.stats(s=session)
