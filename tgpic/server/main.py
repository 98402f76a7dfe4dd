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

import os

from tgpic.utils import tracing

tracing.setup_logging()

# Import exception handlers to register them
import tgpic.server.exception.handler  # noqa: E402,F401
from tgpic.server import api  # noqa: E402
from tgpic.server.component.environment import auto_include_routers, env  # noqa: E402

logger = tracing.get_logger("server_main")

# Bring the catalog schema up to date (idempotent)
try:
    from tgpic.server.component.auto_migrate import run_migrations

    if not run_migrations():
        logger.warning("Auto-migration returned False – check logs for details")
except Exception as e:
    logger.error(f"Auto-migration failed during startup: {e}", exc_info=True)

prefix = env("url_prefix", "/api")
auto_include_routers(api, prefix, "tgpic.server.controller")


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "tgpic.server.main:api",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
    )
