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

"""Telegram Bot API used as the image relay.

Bytes go up with ``sendPhoto`` into a fixed chat and come back through
``getFile`` + the file download endpoint. The catalog only ever keeps the
returned ``file_id`` references.
"""

import re
from dataclasses import dataclass
from typing import Optional

import httpx

from tgpic.server.component import code
from tgpic.server.component.environment import env
from tgpic.server.exception.exception import RateLimitedException, RelayException, UserException
from tgpic.utils import tracing

logger = tracing.get_logger("telegram_relay")

DEFAULT_API_BASE = "https://api.telegram.org"
_TIMEOUT = 60.0
_RETRY_AFTER_TEXT = re.compile(r"retry after (\d+)", re.IGNORECASE)


@dataclass
class RelayObject:
    file_id: str
    thumb_file_id: Optional[str] = None


def _retry_after(body: dict) -> Optional[int]:
    params = body.get("parameters") or {}
    if isinstance(params.get("retry_after"), int):
        return params["retry_after"]
    match = _RETRY_AFTER_TEXT.search(body.get("description") or "")
    return int(match.group(1)) if match else None


class TelegramRelay:
    def __init__(
        self,
        token: str,
        chat_id: Optional[str] = None,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = _TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.chat_id = chat_id
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _method_url(self, method: str) -> str:
        return f"{self.api_base}/bot{self.token}/{method}"

    def _parse(self, resp: httpx.Response, method: str) -> dict:
        try:
            body = resp.json()
        except ValueError:
            raise RelayException(f"Telegram {method} returned a non-JSON response", details=resp.text[:500])
        if not isinstance(body, dict):
            raise RelayException(f"Telegram {method} returned an unexpected response", details=resp.text[:500])

        if resp.status_code == 429 or body.get("error_code") == 429:
            retry_after = _retry_after(body)
            if retry_after is not None:
                raise RateLimitedException(retry_after, details=body.get("description"))
        if resp.status_code >= 400 or not body.get("ok"):
            description = body.get("description") or f"HTTP {resp.status_code}"
            logger.warning("Telegram call failed", extra={"method": method, "status": resp.status_code})
            raise RelayException(f"Telegram {method} failed", details=description)
        return body

    async def send_photo(self, data: bytes, filename: str, content_type: str) -> RelayObject:
        """Upload ``data`` and return the largest and smallest photo references."""
        if not self.chat_id:
            raise UserException(code.config_error, "TG_CHAT_ID is not configured", status_code=500)
        files = {"photo": (filename or "image", data, content_type or "application/octet-stream")}
        try:
            async with self._client() as client:
                resp = await client.post(self._method_url("sendPhoto"), data={"chat_id": self.chat_id}, files=files)
        except httpx.HTTPError as e:
            raise RelayException("Telegram sendPhoto request failed", details=str(e))

        body = self._parse(resp, "sendPhoto")
        photos = (body.get("result") or {}).get("photo") or []
        if not photos:
            raise RelayException("Telegram sendPhoto returned no photo sizes", details=str(body)[:500])
        largest, smallest = photos[-1], photos[0]
        logger.info("Photo relayed", extra={"file_name": filename, "bytes": len(data), "sizes": len(photos)})
        return RelayObject(
            file_id=largest["file_id"],
            thumb_file_id=smallest["file_id"] if len(photos) > 1 else None,
        )

    async def get_file_bytes(self, file_id: str) -> bytes:
        """Resolve ``file_id`` to its download path and fetch the raw bytes."""
        try:
            async with self._client() as client:
                resp = await client.get(self._method_url("getFile"), params={"file_id": file_id})
                body = self._parse(resp, "getFile")
                file_path = (body.get("result") or {}).get("file_path")
                if not file_path:
                    raise RelayException("Telegram getFile returned no file_path", details=file_id)
                download = await client.get(f"{self.api_base}/file/bot{self.token}/{file_path}")
        except httpx.HTTPError as e:
            raise RelayException("Telegram file download failed", details=str(e))

        if download.status_code != 200:
            raise RelayException("Telegram file download failed", details=f"HTTP {download.status_code}")
        return download.content


def get_relay() -> TelegramRelay:
    """FastAPI dependency building the relay from the environment."""
    token = env("TG_BOT_TOKEN")
    if not token:
        raise UserException(code.config_error, "TG_BOT_TOKEN is not configured", status_code=500)
    return TelegramRelay(
        token=token,
        chat_id=env("TG_CHAT_ID"),
        api_base=env("TG_API_BASE", DEFAULT_API_BASE),
    )
