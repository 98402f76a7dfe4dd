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

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlmodel import Session

from tgpic.server.component import code
from tgpic.server.component.database import session
from tgpic.server.component.environment import env_int
from tgpic.server.component.telegram_relay import TelegramRelay, get_relay
from tgpic.server.model.image.image import DedupIn
from tgpic.server.service.dedup_service import STATUS_FAILED, DeduplicationJob
from tgpic.utils import tracing

logger = tracing.get_logger("server_dedup")

router = APIRouter(tags=["Dedup"])


@router.post("/dedup", name="deduplicate catalog")
@tracing.trace()
async def dedup(
    data: DedupIn | None = None,
    session: Session = Depends(session),
    relay: TelegramRelay = Depends(get_relay),
):
    """Re-hash the catalog (or ``ids``) and delete all but the oldest of each duplicate set."""
    data = data or DedupIn()
    job = DeduplicationJob(
        relay,
        session,
        concurrency=env_int("DEDUP_CONCURRENCY", DeduplicationJob.DEFAULT_CONCURRENCY),
    )
    try:
        result = await job.run(data.ids)
    except Exception as e:
        logger.error("Dedup job failed", extra={"error": str(e)}, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"status": STATUS_FAILED, "code": code.dedup_failed, "message": str(e)},
        )
    return result.to_dict(include_groups=data.include_groups)
