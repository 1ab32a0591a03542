import asyncio

import pytest

from blobdir.constants import StorageMode
from blobdir.errors import RemoteStateError
from blobdir.remote import RemoteDiffChecker, RemoteState
from blobdir.types import RemoteChunkDescriptor


def descriptor(count, mode=StorageMode.BLOB):
    return RemoteChunkDescriptor(key="k", chunk_count=count, mode=mode)


class TestRemoteDiffChecker:
    def test_describe(self, chain):
        """Test describe reads count, mode and per-chunk payment"""
        chain.cost_per_chunk = 1500
        chain.store("k", 0, b"a", mode=StorageMode.BLOB)
        chain.store("k", 1, b"b", mode=StorageMode.BLOB)
        checker = RemoteDiffChecker(chain)

        remote = asyncio.run(checker.describe("k"))

        assert remote == RemoteChunkDescriptor(
            key="k", chunk_count=2, mode=StorageMode.BLOB, cost_per_chunk=1500
        )

    def test_describe_failure(self, chain):
        chain.fail_calls.add("countChunks")
        checker = RemoteDiffChecker(chain)

        with pytest.raises(RemoteStateError, match="k: cannot read remote state"):
            asyncio.run(checker.describe("k"))

    def test_classify(self, chain):
        checker = RemoteDiffChecker(chain)

        assert checker.classify(descriptor(0, StorageMode.UNDEFINED), 3) == RemoteState.FRESH
        assert checker.classify(descriptor(5), 3) == RemoteState.STALE
        assert checker.classify(descriptor(3), 3) == RemoteState.NORMAL
        assert checker.classify(descriptor(1), 3) == RemoteState.NORMAL

    def test_classify_rejects_calldata_keys(self, chain):
        """Test a key stored as calldata cannot take blob writes"""
        checker = RemoteDiffChecker(chain)

        with pytest.raises(RemoteStateError, match="does not support blob upload"):
            checker.classify(descriptor(2, StorageMode.CALLDATA), 2)

    def test_fetch_hashes(self, chain):
        """Test fetching more hashes than one read group holds"""
        for i in range(100):
            chain.store("a", i, b"a%d" % i)
        for i in range(50):
            chain.store("b", i, b"b%d" % i)
        checker = RemoteDiffChecker(chain)

        hashes = asyncio.run(checker.fetch_hashes(["a", "b", "empty"]))

        assert len(hashes["a"]) == 100
        assert len(hashes["b"]) == 50
        assert hashes["empty"] == []
        assert hashes["b"][49] == chain.chunks[b"b"][49][0]
