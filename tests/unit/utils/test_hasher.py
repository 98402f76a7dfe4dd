import hashlib

import pytest

from tgpic.utils import hasher


@pytest.mark.unit
class TestHashBytes:
    def test_matches_plain_md5(self):
        data = b"telegram image bytes" * 1000
        assert hasher.hash_bytes(data) == hashlib.md5(data).hexdigest()

    def test_digest_length_is_fixed(self):
        assert len(hasher.hash_bytes(b"")) == hasher.DIGEST_LENGTH
        assert len(hasher.hash_bytes(b"x" * 5_000_000)) == hasher.DIGEST_LENGTH

    @pytest.mark.parametrize("chunk_size", [1, 7, 1024, hasher.CHUNK_SIZE, 10_000_000])
    def test_chunk_size_never_changes_result(self, chunk_size):
        data = bytes(range(256)) * 40
        assert hasher.hash_bytes(data, chunk_size) == hasher.hash_bytes(data)

    def test_rejects_non_positive_chunk_size(self):
        with pytest.raises(ValueError):
            hasher.hash_bytes(b"abc", 0)


@pytest.mark.unit
class TestHashStreams:
    @pytest.mark.asyncio
    async def test_file_digest_matches_bytes(self, tmp_path):
        data = b"\x89PNG" + b"\x00" * 3_000_000
        path = tmp_path / "photo.png"
        path.write_bytes(data)

        assert await hasher.hash_file(path) == hasher.hash_bytes(data)
        assert await hasher.hash_file(path, chunk_size=4096) == hasher.hash_bytes(data)

    @pytest.mark.asyncio
    async def test_read_error_propagates(self):
        async def broken():
            yield b"first chunk"
            raise OSError("disk went away")

        with pytest.raises(OSError, match="disk went away"):
            await hasher.hash_chunks(broken())

    @pytest.mark.asyncio
    async def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            await hasher.hash_file(tmp_path / "nope.jpg")
