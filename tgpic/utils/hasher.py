"""Content digests for image blobs.

A digest is only an equality key for deduplication, so MD5 is used: it is
fast, fixed-length and matches the ``hash`` form field older browser clients
already send. Blobs are always fed through the accumulator in fixed-size
chunks so a large file never has to sit in memory as one buffer.
"""

import hashlib
from pathlib import Path
from typing import AsyncIterable, Union

import aiofiles

CHUNK_SIZE = 2 * 1024 * 1024  # 2 MiB
DIGEST_LENGTH = 32


def new_hasher():
    return hashlib.md5()


def hash_bytes(data: Union[bytes, bytearray, memoryview], chunk_size: int = CHUNK_SIZE) -> str:
    """Digest an in-memory blob, feeding it chunk by chunk."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    hasher = new_hasher()
    view = memoryview(data)
    for start in range(0, len(view), chunk_size):
        hasher.update(view[start:start + chunk_size])
    return hasher.hexdigest()


async def hash_chunks(chunks: AsyncIterable[bytes]) -> str:
    """Digest an async stream of chunks.

    Any exception raised by the producer propagates unchanged; a partially
    consumed stream never yields a digest.
    """
    hasher = new_hasher()
    async for chunk in chunks:
        hasher.update(chunk)
    return hasher.hexdigest()


async def iter_file(path: Union[str, Path], chunk_size: int = CHUNK_SIZE):
    """Yield a file's content in ``chunk_size`` pieces."""
    async with aiofiles.open(path, "rb") as f:
        while True:
            chunk = await f.read(chunk_size)
            if not chunk:
                break
            yield chunk


async def hash_file(path: Union[str, Path], chunk_size: int = CHUNK_SIZE) -> str:
    return await hash_chunks(iter_file(path, chunk_size))
