"""Upload task model and its lifecycle."""

import mimetypes
import os
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, Dict, FrozenSet, List, Optional, Union

from tgpic.utils.hasher import CHUNK_SIZE, iter_file

DEFAULT_TAG = "默认"


class TaskState(str, Enum):
    """Upload task lifecycle state."""
    QUEUED = "queued"
    HASHING = "hashing"
    COMPRESSING = "compressing"
    UPLOADING = "uploading"
    DONE = "done"
    FAILED = "failed"


class ExpirePolicy(str, Enum):
    """Retention requested for an uploaded image, in days."""
    FOREVER = "forever"
    ONE_DAY = "1"
    ONE_WEEK = "7"
    ONE_MONTH = "30"


TERMINAL_STATES: FrozenSet[TaskState] = frozenset({TaskState.DONE, TaskState.FAILED})

# QUEUED -> DONE is the name+size duplicate short-circuit; FAILED -> QUEUED is a manual retry
_TRANSITIONS: Dict[TaskState, FrozenSet[TaskState]] = {
    TaskState.QUEUED: frozenset({TaskState.HASHING, TaskState.DONE, TaskState.FAILED}),
    TaskState.HASHING: frozenset({TaskState.COMPRESSING, TaskState.UPLOADING, TaskState.DONE, TaskState.FAILED}),
    TaskState.COMPRESSING: frozenset({TaskState.UPLOADING, TaskState.FAILED}),
    TaskState.UPLOADING: frozenset({TaskState.DONE, TaskState.FAILED}),
    TaskState.DONE: frozenset(),
    TaskState.FAILED: frozenset({TaskState.QUEUED}),
}


class InvalidTransition(ValueError):
    pass


def normalize_tags(tags: Optional[List[str]], default: str = DEFAULT_TAG) -> List[str]:
    result: List[str] = []
    for tag in tags or []:
        tag = tag.strip()
        if tag and tag not in result:
            result.append(tag)
    return result or [default]


@dataclass
class UploadTask:
    """One file of a batch.

    The bytes come either from ``path`` (read lazily in chunks) or from
    ``data`` held in memory.
    """
    name: str
    size: int
    content_type: str
    path: Optional[Path] = None
    data: Optional[bytes] = None
    tags: List[str] = field(default_factory=list)
    folder: str = "/"
    expire: ExpirePolicy = ExpirePolicy.FOREVER
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: TaskState = TaskState.QUEUED
    digest: Optional[str] = None
    duplicate_of: Optional[str] = None
    error: Optional[str] = None
    result: Optional[dict] = None
    compressed: bool = False

    def __post_init__(self):
        if self.path is None and self.data is None:
            raise ValueError("UploadTask needs a path or in-memory data")
        self.tags = normalize_tags(self.tags)
        self.expire = ExpirePolicy(self.expire)

    @classmethod
    def from_path(cls, path: Union[str, Path], **kwargs) -> "UploadTask":
        path = Path(path)
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return cls(
            name=path.name,
            size=os.stat(path).st_size,
            content_type=content_type,
            path=path,
            **kwargs,
        )

    @classmethod
    def from_bytes(cls, data: bytes, name: str, content_type: Optional[str] = None, **kwargs) -> "UploadTask":
        content_type = content_type or mimetypes.guess_type(name)[0] or "application/octet-stream"
        return cls(name=name, size=len(data), content_type=content_type, data=data, **kwargs)

    @property
    def dedup_key(self) -> str:
        """Cheap pre-hash identity: declared name plus byte length."""
        return f"{self.name}:{self.size}"

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def transition(self, state: TaskState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise InvalidTransition(f"{self.state.value} -> {state.value}")
        self.state = state

    def fail(self, error: str) -> None:
        self.transition(TaskState.FAILED)
        self.error = error

    async def iter_chunks(self, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
        if self.data is not None:
            view = memoryview(self.data)
            for offset in range(0, len(view), chunk_size):
                yield bytes(view[offset:offset + chunk_size])
            return
        async for chunk in iter_file(self.path, chunk_size):
            yield chunk

    async def read_all(self) -> bytes:
        if self.data is not None:
            return self.data
        return b"".join([chunk async for chunk in self.iter_chunks()])
