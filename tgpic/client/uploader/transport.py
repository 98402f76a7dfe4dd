"""HTTP transport for a single upload.

Builds the multipart body the server's ``POST /upload`` expects, retries when
the server reports rate limiting and refreshes the statistics after a
successful upload.
"""

import asyncio
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from tgpic.client.uploader.task import UploadTask
from tgpic.utils import tracing

logger = tracing.get_logger("transport")

_RETRY_AFTER_TEXT = re.compile(r"retry after (\d+)", re.IGNORECASE)
_DEFAULT_RETRY_DELAY = 1


@dataclass
class UploadPayload:
    """Bytes actually sent for a task (the original or its compressed form)."""
    data: bytes
    content_type: str
    filename: str


@dataclass
class UploadResult:
    ok: bool
    data: Optional[dict] = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    attempts: int = 0


def retry_after_hint(resp: httpx.Response) -> Optional[int]:
    """Seconds to wait before retrying, if the response asks for it.

    The structured ``retry_after`` field wins; the ``Retry-After`` header and
    the ``retry after N`` text are fallbacks for older servers.
    """
    text = resp.text
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        value = body.get("retry_after")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return max(0, int(value))
        text = str(body.get("message") or body.get("error") or text)

    header = resp.headers.get("Retry-After")
    if header and header.isdigit():
        return int(header)

    match = _RETRY_AFTER_TEXT.search(text or "")
    return int(match.group(1)) if match else None


class UploadTransport:
    """Send tasks to a tgpic server.

    Args:
        api_base: Server API root, e.g. ``http://localhost:8000/api``
        client: Optional shared ``httpx.AsyncClient``; one is created on demand otherwise
        max_attempts: Upper bound on attempts per task when rate limited
        sleep: Awaitable used for rate-limit waits
        on_stats: Called with the refreshed statistics after each success
    """

    def __init__(
        self,
        api_base: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0,
        max_attempts: int = 3,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_stats: Optional[Callable[[dict], None]] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.sleep = sleep
        self.on_stats = on_stats
        self.last_stats: Optional[dict] = None
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "UploadTransport":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    def _form(self, task: UploadTask) -> dict:
        form = {
            "expire": task.expire.value,
            "tags": ",".join(task.tags),
            "filename": task.name,
            "folder": task.folder,
        }
        if task.digest:
            form["hash"] = task.digest
        return form

    async def send(self, task: UploadTask, payload: UploadPayload) -> UploadResult:
        url = f"{self.api_base}/upload"
        form = self._form(task)
        attempts = 0
        while True:
            attempts += 1
            files = {"photo": (payload.filename, payload.data, payload.content_type)}
            try:
                resp = await self.client.post(url, data=form, files=files)
            except httpx.HTTPError as e:
                logger.warning("Upload request failed", extra={"task_id": task.id, "error": str(e)})
                return UploadResult(ok=False, error=f"Network error: {e}", attempts=attempts)

            if not resp.is_success:
                hint = retry_after_hint(resp)
                if resp.status_code == 429 or hint is not None:
                    delay = hint if hint is not None else _DEFAULT_RETRY_DELAY
                    if attempts < self.max_attempts:
                        logger.info(
                            "Rate limited, retrying",
                            extra={"task_id": task.id, "delay": delay, "attempt": attempts},
                        )
                        await self.sleep(delay)
                        continue
                return UploadResult(
                    ok=False,
                    error=_error_message(resp),
                    status_code=resp.status_code,
                    attempts=attempts,
                )

            try:
                body = resp.json()
            except ValueError:
                body = None
            if not isinstance(body, dict) or body.get("status") != "success" or not isinstance(body.get("data"), dict):
                return UploadResult(
                    ok=False,
                    error="Malformed upload response",
                    status_code=resp.status_code,
                    attempts=attempts,
                )

            await self.refresh_stats()
            return UploadResult(ok=True, data=body["data"], status_code=resp.status_code, attempts=attempts)

    async def refresh_stats(self) -> Optional[dict]:
        """Fetch ``/stats``; a failure here never fails the upload."""
        try:
            resp = await self.client.get(f"{self.api_base}/stats")
            resp.raise_for_status()
            stats = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Stats refresh failed", extra={"error": str(e)})
            return None
        self.last_stats = stats
        if self.on_stats is not None:
            self.on_stats(stats)
        return stats


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}: {resp.text[:200]}"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP {resp.status_code}"
