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

"""Process environment access and router discovery."""

import importlib
import os
import pkgutil
from typing import Optional

from fastapi import APIRouter, FastAPI

from tgpic.utils import tracing

logger = tracing.get_logger("environment")


def env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Read ``key`` from the environment, falling back to its upper-case form."""
    value = os.environ.get(key)
    if value is None:
        value = os.environ.get(key.upper())
    if value is None or value == "":
        return default
    return value


def env_int(key: str, default: int) -> int:
    raw = env(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %s", key, raw, default)
        return default


def auto_import(package: str) -> list:
    """Import every module below ``package`` and return them."""
    pkg = importlib.import_module(package)
    modules = []
    for info in pkgutil.walk_packages(pkg.__path__, prefix=f"{package}."):
        modules.append(importlib.import_module(info.name))
    return modules


def auto_include_routers(api: FastAPI, prefix: str, package: str) -> None:
    """Mount the ``router`` of every controller module found below ``package``."""
    for module in auto_import(package):
        router = getattr(module, "router", None)
        if isinstance(router, APIRouter):
            api.include_router(router, prefix=prefix)
            logger.debug("Router included", extra={"router_module": module.__name__, "prefix": prefix})
