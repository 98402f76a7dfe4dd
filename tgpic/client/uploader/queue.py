"""Concurrent upload queue with in-batch content deduplication.

A batch is every task queued when :meth:`UploadTaskQueue.run` starts. Its
mutable state lives in a :class:`BatchContext` created for that run only, so
two queues (or two consecutive runs) never share claims or counters.

All claim and counter updates happen between awaits. Workers only yield at
chunk reads, the compression hand-off, HTTP calls and while waiting on another
worker uploading the same digest, so no lock is needed to keep one digest from
being uploaded twice at the same time. A waiting worker takes over the upload
when the first one fails.
"""

import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Iterable, List, Optional

from tgpic.client.uploader.compressor import CompressionAdapter, CompressionError
from tgpic.client.uploader.task import TaskState, UploadTask
from tgpic.client.uploader.transport import UploadPayload, UploadTransport
from tgpic.utils import tracing
from tgpic.utils.hasher import CHUNK_SIZE, hash_chunks

logger = tracing.get_logger("upload_queue")

MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 5
DEFAULT_CONCURRENCY = 3
DEFAULT_MAX_BYTES = 10 * 1024 * 1024

# content type -> (extension to use, extensions already matching it)
_EXTENSIONS = {
    "image/jpeg": ("jpg", ("jpg", "jpeg", "jpe")),
    "image/webp": ("webp", ("webp",)),
}


@dataclass
class BatchContext:
    """State of one running batch."""
    tasks: List[UploadTask]
    pending: Deque[UploadTask] = field(default_factory=deque)
    # name:size -> id of the task currently holding it
    name_claims: Dict[str, str] = field(default_factory=dict)
    # digest -> set once the in-flight upload of it has finished either way
    inflight_done: Dict[str, asyncio.Event] = field(default_factory=dict)
    # digest -> id of the task that uploaded it in this batch
    uploaded_digests: Dict[str, str] = field(default_factory=dict)
    completed: int = 0
    active: int = 0
    max_active: int = 0

    @property
    def total(self) -> int:
        return len(self.tasks)

    @property
    def progress(self) -> int:
        if self.total == 0:
            return 100
        return self.completed * 100 // self.total


@dataclass
class BatchReport:
    tasks: List[UploadTask]
    max_active: int

    def count(self, state: TaskState) -> int:
        return sum(1 for t in self.tasks if t.state == state)

    @property
    def uploaded(self) -> List[UploadTask]:
        return [t for t in self.tasks if t.state == TaskState.DONE and t.duplicate_of is None]

    @property
    def duplicates(self) -> List[UploadTask]:
        return [t for t in self.tasks if t.duplicate_of is not None]

    @property
    def failed(self) -> List[UploadTask]:
        return [t for t in self.tasks if t.state == TaskState.FAILED]


class UploadTaskQueue:
    """Owns the pending files and drains them with bounded concurrency.

    Args:
        transport: Sends one task to the server
        compressor: Used for files above ``max_bytes``; ``None`` rejects them instead
        max_bytes: Largest payload the server accepts
        chunk_size: Read size used while hashing
        on_progress: Called with the batch percentage after every finished task
        on_task_done: Called with each task once it reaches a terminal state
    """

    def __init__(
        self,
        transport: UploadTransport,
        compressor: Optional[CompressionAdapter] = None,
        max_bytes: int = DEFAULT_MAX_BYTES,
        chunk_size: int = CHUNK_SIZE,
        on_progress: Optional[Callable[[int], None]] = None,
        on_task_done: Optional[Callable[[UploadTask], None]] = None,
    ):
        self.transport = transport
        self.compressor = compressor
        self.max_bytes = max_bytes
        self.chunk_size = chunk_size
        self.on_progress = on_progress
        self.on_task_done = on_task_done
        self._tasks: List[UploadTask] = []
        self._batch: Optional[BatchContext] = None

    @property
    def tasks(self) -> List[UploadTask]:
        return list(self._tasks)

    def add(self, task: UploadTask) -> UploadTask:
        self._tasks.append(task)
        return task

    def add_many(self, tasks: Iterable[UploadTask]) -> List[UploadTask]:
        return [self.add(task) for task in tasks]

    def remove(self, task_id: str) -> bool:
        """Drop a task that is not being worked on.

        Returns False for unknown ids and for tasks a worker is processing.
        """
        task = next((t for t in self._tasks if t.id == task_id), None)
        if task is None:
            return False
        if task.state != TaskState.QUEUED and not task.terminal:
            return False
        self._tasks.remove(task)
        batch = self._batch
        if batch is not None and task in batch.pending:
            batch.pending.remove(task)
            batch.tasks.remove(task)
        return True

    def retry(self, task_id: str) -> bool:
        """Re-queue a failed task for the next run."""
        task = next((t for t in self._tasks if t.id == task_id), None)
        if task is None or task.state != TaskState.FAILED:
            return False
        task.transition(TaskState.QUEUED)
        task.error = None
        return True

    async def run(self, max_concurrency: int = DEFAULT_CONCURRENCY) -> BatchReport:
        """Upload every queued task; returns once all of them are terminal."""
        if not MIN_CONCURRENCY <= max_concurrency <= MAX_CONCURRENCY:
            raise ValueError(f"max_concurrency must be between {MIN_CONCURRENCY} and {MAX_CONCURRENCY}")
        if self._batch is not None:
            raise RuntimeError("A batch is already running")

        queued = [t for t in self._tasks if t.state == TaskState.QUEUED]
        ctx = BatchContext(tasks=list(queued), pending=deque(queued))
        self._batch = ctx
        logger.info("Batch started", extra={"tasks": ctx.total, "concurrency": max_concurrency})
        try:
            workers = min(max_concurrency, len(ctx.pending))
            await asyncio.gather(*(self._worker(ctx) for _ in range(workers)))
        finally:
            self._batch = None

        report = BatchReport(tasks=list(ctx.tasks), max_active=ctx.max_active)
        logger.info(
            "Batch finished",
            extra={
                "uploaded": len(report.uploaded),
                "duplicates": len(report.duplicates),
                "failed": len(report.failed),
            },
        )
        return report

    async def _worker(self, ctx: BatchContext) -> None:
        while ctx.pending:
            task = ctx.pending.popleft()
            ctx.active += 1
            ctx.max_active = max(ctx.max_active, ctx.active)
            try:
                await self._process(ctx, task)
            except Exception as e:
                logger.error("Upload task crashed", extra={"task_id": task.id, "error": str(e)}, exc_info=True)
                if not task.terminal:
                    task.fail(str(e))
            finally:
                ctx.active -= 1
                ctx.completed += 1
            if self.on_task_done is not None:
                self.on_task_done(task)
            if self.on_progress is not None:
                self.on_progress(ctx.progress)

    def _resolve_duplicate(self, task: UploadTask, holder: str) -> None:
        task.duplicate_of = holder
        task.transition(TaskState.DONE)
        logger.debug("Duplicate skipped", extra={"task_id": task.id, "duplicate_of": holder})

    async def _process(self, ctx: BatchContext, task: UploadTask) -> None:
        key = task.dedup_key
        holder = ctx.name_claims.get(key)
        if holder is not None:
            self._resolve_duplicate(task, holder)
            return
        ctx.name_claims[key] = task.id
        try:
            task.transition(TaskState.HASHING)
            try:
                task.digest = await hash_chunks(task.iter_chunks(self.chunk_size))
            except OSError as e:
                task.fail(f"Cannot read file: {e}")
                return

            # wait for an in-flight upload of the same content; if it failed, take over
            while True:
                holder = ctx.uploaded_digests.get(task.digest)
                if holder is not None:
                    self._resolve_duplicate(task, holder)
                    return
                leader_done = ctx.inflight_done.get(task.digest)
                if leader_done is None:
                    break
                await leader_done.wait()

            done = asyncio.Event()
            ctx.inflight_done[task.digest] = done
            try:
                await self._upload(ctx, task)
            finally:
                ctx.inflight_done.pop(task.digest, None)
                done.set()
        finally:
            ctx.name_claims.pop(key, None)

    async def _upload(self, ctx: BatchContext, task: UploadTask) -> None:
        payload = await self._prepare(task)
        if payload is None:
            return
        task.transition(TaskState.UPLOADING)
        result = await self.transport.send(task, payload)
        if not result.ok:
            task.fail(result.error or "Upload failed")
            return
        task.result = result.data
        task.transition(TaskState.DONE)
        ctx.uploaded_digests[task.digest] = task.id

    async def _prepare(self, task: UploadTask) -> Optional[UploadPayload]:
        """Original bytes, or a compressed copy when the file is too large."""
        data = await task.read_all()
        if len(data) <= self.max_bytes:
            return UploadPayload(data=data, content_type=task.content_type, filename=task.name)

        if self.compressor is None:
            task.fail(f"File exceeds {self.max_bytes} bytes")
            return None
        task.transition(TaskState.COMPRESSING)
        try:
            compressed = await self.compressor.compress(data, self.max_bytes)
        except CompressionError as e:
            task.fail(str(e))
            return None
        if compressed.size > self.max_bytes:
            task.fail(f"Still {compressed.size} bytes after compression")
            return None
        task.compressed = True
        return UploadPayload(
            data=compressed.data,
            content_type=compressed.content_type,
            filename=_renamed_for(task.name, compressed.content_type),
        )


def _renamed_for(name: str, content_type: str) -> str:
    """``name`` with its extension swapped to match a re-encoded body."""
    extension = _EXTENSIONS.get(content_type)
    if extension is None:
        return name
    stem, dot, suffix = name.rpartition(".")
    if not dot:
        return f"{name}.{extension[0]}"
    if suffix.lower() in extension[1]:
        return name
    return f"{stem}.{extension[0]}"
