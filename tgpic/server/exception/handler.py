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

"""Exception handlers producing the ``{"status": "error", ...}`` payload."""

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tgpic.server import api
from tgpic.server.component import code
from tgpic.server.exception.exception import RateLimitedException, RelayException, UserException
from tgpic.utils import tracing

logger = tracing.get_logger("exception_handler")


def _error(status_code: int, error_code: int, message: str, headers: dict | None = None, **extra) -> JSONResponse:
    payload = {"status": "error", "code": error_code, "message": message}
    payload.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(status_code=status_code, content=payload, headers=headers)


@api.exception_handler(UserException)
async def user_exception_handler(request: Request, e: UserException):
    return _error(e.status_code, e.code, e.description)


@api.exception_handler(RateLimitedException)
async def rate_limited_handler(request: Request, e: RateLimitedException):
    logger.warning("Relay rate limited", extra={"path": request.url.path, "retry_after": e.retry_after})
    return _error(
        429,
        code.rate_limited,
        e.description,
        headers={"Retry-After": str(e.retry_after)},
        retry_after=e.retry_after,
    )


@api.exception_handler(RelayException)
async def relay_exception_handler(request: Request, e: RelayException):
    logger.error("Relay error", extra={"path": request.url.path, "details": e.details})
    return _error(e.status_code, code.relay_error, e.description, details=e.details)


@api.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, e: RequestValidationError):
    messages = []
    for err in e.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return _error(422, code.form_error, "; ".join(messages) or "Invalid request")
