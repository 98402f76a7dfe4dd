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

"""Batch deduplication of the image catalog.

Every candidate is downloaded back from the relay and re-hashed, so the
grouping does not trust digests recorded at upload time (older rows may not
have one, and clients can send anything in the ``hash`` field).
"""

import asyncio
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from sqlmodel import Session, select

from tgpic.server.component.telegram_relay import TelegramRelay
from tgpic.server.model.image.image import Image
from tgpic.server.service import image_service
from tgpic.utils import hasher, tracing
from tgpic.utils.dedup import DuplicateGroup, group_duplicates, ids_to_delete

logger = tracing.get_logger("dedup_service")

STATUS_DELETED = "deleted"
STATUS_NO_DUPLICATES = "no_duplicates"
STATUS_FAILED = "failed"

ProgressCallback = Callable[[int, int], None]


@dataclass
class HashOutcome:
    """Digest of one candidate, or the reason it has none."""
    image_id: int
    digest: Optional[str] = None
    error: Optional[str] = None


@dataclass
class DedupResult:
    """Summary of one deduplication run."""
    status: str
    candidates: int
    hashed: int
    failed: int
    deleted: int
    groups: List[DuplicateGroup] = field(default_factory=list)

    def to_dict(self, include_groups: bool = False) -> dict:
        payload = {
            "status": self.status,
            "candidates": self.candidates,
            "hashed": self.hashed,
            "failed": self.failed,
            "deleted": self.deleted,
        }
        if include_groups:
            payload["groups"] = [group.as_dict() for group in self.groups]
        return payload


class DeduplicationJob:
    """Fetch, hash, group and delete duplicate catalog rows.

    The oldest row (by ``created_at`` then ``id``) of each duplicate group is
    kept. A candidate whose fetch or hash fails is left out of the grouping;
    only a failure to enumerate the catalog or to apply the final delete
    aborts the run.
    """

    PAGE_SIZE = 200
    DEFAULT_CONCURRENCY = 6

    def __init__(
        self,
        relay: TelegramRelay,
        session: Session,
        concurrency: int = DEFAULT_CONCURRENCY,
        page_size: int = PAGE_SIZE,
        progress_cb: Optional[ProgressCallback] = None,
    ):
        self.relay = relay
        self.session = session
        self.concurrency = max(1, concurrency)
        self.page_size = max(1, page_size)
        self.progress_cb = progress_cb

    def _enumerate(self, ids: Optional[Sequence[int]] = None) -> List[Tuple[int, str]]:
        """Return ``(id, file_id)`` pairs in representative order."""
        order = (Image.created_at, Image.id)
        if ids is not None:
            stmt = select(Image.id, Image.file_id).where(Image.id.in_(sorted(set(ids)))).order_by(*order)  # type: ignore[attr-defined]
            return [(row[0], row[1]) for row in self.session.exec(stmt).all()]

        candidates: List[Tuple[int, str]] = []
        offset = 0
        while True:
            stmt = select(Image.id, Image.file_id).order_by(*order).offset(offset).limit(self.page_size)
            page = self.session.exec(stmt).all()
            candidates.extend((row[0], row[1]) for row in page)
            if len(page) < self.page_size:
                return candidates
            offset += self.page_size

    async def _hash_one(self, image_id: int, file_id: str) -> HashOutcome:
        try:
            data = await self.relay.get_file_bytes(file_id)
            return HashOutcome(image_id=image_id, digest=hasher.hash_bytes(data))
        except Exception as e:
            logger.warning("Dedup candidate skipped", extra={"image_id": image_id, "error": str(e)})
            return HashOutcome(image_id=image_id, error=str(e))

    async def run(self, ids: Optional[Sequence[int]] = None) -> DedupResult:
        # catalog reads and writes are blocking; keep them off the event loop
        candidates = await asyncio.to_thread(self._enumerate, ids)
        total = len(candidates)
        logger.info("Dedup started", extra={"candidates": total, "concurrency": self.concurrency})
        if total == 0:
            return DedupResult(status=STATUS_NO_DUPLICATES, candidates=0, hashed=0, failed=0, deleted=0)

        semaphore = asyncio.Semaphore(self.concurrency)
        completed = 0

        async def hash_with_limit(image_id: int, file_id: str) -> HashOutcome:
            nonlocal completed
            async with semaphore:
                outcome = await self._hash_one(image_id, file_id)
            completed += 1
            if self.progress_cb is not None:
                self.progress_cb(completed, total)
            return outcome

        outcomes = await asyncio.gather(*(hash_with_limit(i, f) for i, f in candidates))

        # gather keeps input order, so grouping sees candidates oldest first
        groups = group_duplicates((o.image_id, o.digest) for o in outcomes)
        failed = sum(1 for o in outcomes if o.digest is None)
        doomed = ids_to_delete(groups)

        deleted = 0
        if doomed:
            deleted = await asyncio.to_thread(image_service.delete_images, doomed, s=self.session)

        result = DedupResult(
            status=STATUS_DELETED if deleted else STATUS_NO_DUPLICATES,
            candidates=total,
            hashed=total - failed,
            failed=failed,
            deleted=deleted,
            groups=groups,
        )
        logger.info(
            "Dedup complete",
            extra={"candidates": total, "failed": failed, "groups": len(groups), "deleted": deleted},
        )
        return result
