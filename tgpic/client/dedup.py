"""Client-orchestrated catalog deduplication.

Same outcome as the server's ``POST /dedup`` but driven from the client:
page through ``/history``, download every image through ``/get_photo``,
hash it locally, and submit one ``POST /delete`` for everything but the
oldest member of each duplicate group.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

import httpx

from tgpic.utils import hasher, tracing
from tgpic.utils.dedup import DuplicateGroup, group_duplicates, ids_to_delete

logger = tracing.get_logger("client_dedup")


@dataclass
class ClientDedupResult:
    status: str
    candidates: int
    failed: int
    deleted: int
    groups: List[DuplicateGroup] = field(default_factory=list)

    def to_dict(self, include_groups: bool = False) -> dict:
        payload = {
            "status": self.status,
            "candidates": self.candidates,
            "failed": self.failed,
            "deleted": self.deleted,
        }
        if include_groups:
            payload["groups"] = [group.as_dict() for group in self.groups]
        return payload


async def _list_candidates(client: httpx.AsyncClient, api_base: str, page_size: int) -> List[dict]:
    items: List[dict] = []
    page = 1
    while True:
        resp = await client.get(f"{api_base}/history", params={"page": page, "size": page_size})
        resp.raise_for_status()
        body = resp.json()
        batch = body.get("items") or []
        items.extend(batch)
        pages = body.get("pages") or 0
        if not batch or page >= pages:
            return items
        page += 1


async def run_client_dedup(
    api_base: str,
    client: Optional[httpx.AsyncClient] = None,
    ids: Optional[Sequence[int]] = None,
    concurrency: int = 6,
    page_size: int = 100,
    progress_cb: Optional[Callable[[int, int], None]] = None,
) -> ClientDedupResult:
    """Deduplicate the catalog of the server at ``api_base``.

    Listing or delete failures raise ``httpx.HTTPError``; a failed download
    only drops that image from the grouping.
    """
    api_base = api_base.rstrip("/")
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=120.0)
    try:
        items = await _list_candidates(client, api_base, page_size)
        if ids is not None:
            wanted = set(ids)
            items = [item for item in items if item["id"] in wanted]
        # history is newest first; grouping keeps the first member, so go oldest first
        items.sort(key=lambda item: (item.get("created_at") or "", item["id"]))
        total = len(items)
        logger.info("Client dedup started", extra={"candidates": total})

        semaphore = asyncio.Semaphore(max(1, concurrency))
        completed = 0

        async def hash_with_limit(item: dict) -> Tuple[int, Optional[str]]:
            nonlocal completed
            async with semaphore:
                try:
                    resp = await client.get(f"{api_base}/get_photo/{item['file_id']}")
                    resp.raise_for_status()
                    digest: Optional[str] = hasher.hash_bytes(resp.content)
                except httpx.HTTPError as e:
                    logger.warning("Dedup candidate skipped", extra={"image_id": item["id"], "error": str(e)})
                    digest = None
            completed += 1
            if progress_cb is not None:
                progress_cb(completed, total)
            return item["id"], digest

        entries = await asyncio.gather(*(hash_with_limit(item) for item in items))
        groups = group_duplicates(entries)
        failed = sum(1 for _, digest in entries if digest is None)
        doomed = ids_to_delete(groups)

        deleted = 0
        if doomed:
            resp = await client.post(f"{api_base}/delete", json={"ids": doomed})
            resp.raise_for_status()
            deleted = int(resp.json().get("deleted", len(doomed)))

        logger.info("Client dedup complete", extra={"groups": len(groups), "deleted": deleted, "failed": failed})
        return ClientDedupResult(
            status="deleted" if deleted else "no_duplicates",
            candidates=total,
            failed=failed,
            deleted=deleted,
            groups=groups,
        )
    finally:
        if owns_client:
            await client.aclose()
