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
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi_pagination import add_pagination

from tgpic.server.component.environment import env_int
from tgpic.utils import tracing

logger = tracing.get_logger("server_main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Server startup/shutdown lifecycle."""
    interval = env_int("PURGE_INTERVAL_SECONDS", 3600)
    purge_task = asyncio.create_task(_purge_expired_forever(interval)) if interval > 0 else None
    yield
    if purge_task is not None:
        purge_task.cancel()


def _purge_once() -> int:
    from tgpic.server.component.database import session_make
    from tgpic.server.service import image_service

    with session_make() as s:
        return image_service.purge_expired(s=s)


async def _purge_expired_forever(interval: int):
    """Background loop dropping catalog rows whose expiry has passed."""
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(_purge_once)
        except Exception as e:
            logger.warning("Expiry purge round failed: %s", e)


api = FastAPI(
    title="tgpic",
    lifespan=lifespan,
)
add_pagination(api)
