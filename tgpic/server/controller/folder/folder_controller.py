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

"""Virtual folder endpoints.

  GET  /folders         → every folder path, sorted
  POST /folders/rename  → rename a folder and its whole subtree
  POST /folders/delete  → delete every image at or below a folder
  POST /folders/move    → move images to a folder
  POST /folders/copy    → copy images to a folder under new short codes
"""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from tgpic.server.component.database import session
from tgpic.server.model.image.image import FolderDeleteIn, FolderRenameIn, FolderTargetIn, ImageOut
from tgpic.server.service import folder_service
from tgpic.utils import tracing

router = APIRouter(prefix="/folders", tags=["Folders"])


@router.get("", name="list folders")
@tracing.trace()
def list_folders(session: Session = Depends(session)):
    return {"status": "success", "folders": folder_service.list_folders(s=session)}


@router.post("/rename", name="rename folder")
@tracing.trace()
def rename_folder(data: FolderRenameIn, session: Session = Depends(session)):
    updated = folder_service.rename_folder(data.old_path, data.new_path, s=session)
    return {"status": "success", "updated": updated}


@router.post("/delete", name="delete folder")
@tracing.trace()
def delete_folder(data: FolderDeleteIn, session: Session = Depends(session)):
    deleted = folder_service.delete_folder(data.path, s=session)
    return {"status": "success", "deleted": deleted}


@router.post("/move", name="move images")
@tracing.trace()
def move_images(data: FolderTargetIn, session: Session = Depends(session)):
    moved = folder_service.move_images(data.ids, data.target, s=session)
    return {"status": "success", "moved": moved}


@router.post("/copy", name="copy images")
@tracing.trace()
def copy_images(data: FolderTargetIn, session: Session = Depends(session)):
    copies = folder_service.copy_images(data.ids, data.target, s=session)
    return {
        "status": "success",
        "copied": len(copies),
        "data": [ImageOut.model_validate(image).model_dump(mode="json") for image in copies],
    }
