import pytest

from blobdir.chunker import CalldataPlanner, ChunkPlanner
from blobdir.codec import BlobCodec
from blobdir.constants import CALLDATA_CHUNK_SIZE, CHUNK_CAPACITY
from blobdir.content import BytesContent
from blobdir.errors import InvalidInput


class TestChunkPlanner:
    def test_chunk_count(self):
        """Test chunk counts around the capacity boundary"""
        planner = ChunkPlanner()

        assert planner.chunk_capacity == CHUNK_CAPACITY
        assert planner.chunk_count(1) == 1
        assert planner.chunk_count(CHUNK_CAPACITY) == 1
        assert planner.chunk_count(CHUNK_CAPACITY + 1) == 2
        assert planner.chunk_count(CHUNK_CAPACITY * 5) == 5

    def test_check_size_rejects_empty(self):
        planner = ChunkPlanner()

        with pytest.raises(InvalidInput):
            planner.check_size(0)

    def test_check_size_chunk_limit(self):
        """Test the optional cap on chunks per item"""
        planner = ChunkPlanner(max_chunks=2)

        assert planner.check_size(CHUNK_CAPACITY * 2) == 2
        with pytest.raises(InvalidInput):
            planner.check_size(CHUNK_CAPACITY * 2 + 1)

    def test_plan_batches(self):
        """Test batches are consecutive, ascending and at most three wide"""
        planner = ChunkPlanner()

        batches = planner.plan_batches(7)

        assert batches == [range(0, 3), range(3, 6), range(6, 7)]

    def test_plan_batches_override_width(self):
        planner = ChunkPlanner()

        assert planner.plan_batches(3, max_blobs_per_tx=2) == [range(0, 2), range(2, 3)]
        assert planner.plan_batches(0) == []

    def test_invalid_batch_width(self):
        with pytest.raises(InvalidInput):
            ChunkPlanner(max_blobs_per_tx=0)

    def test_chunk_size(self):
        """Test the final chunk carries the remainder"""
        planner = ChunkPlanner()
        size = CHUNK_CAPACITY * 2 + 100

        assert planner.chunk_size(0, size) == CHUNK_CAPACITY
        assert planner.chunk_size(1, size) == CHUNK_CAPACITY
        assert planner.chunk_size(2, size) == 100

    def test_build_batch(self):
        """Test building a batch encodes each chunk of its range"""
        codec = BlobCodec(slot_size=4, slots_per_blob=4)  # 12 payload bytes per blob
        planner = ChunkPlanner(codec)
        content = BytesContent(bytes(range(1, 31)))

        first = planner.build_batch(content, range(0, 2))
        last = planner.build_batch(content, range(2, 3))

        assert first.chunk_ids == [0, 1]
        assert first.sizes == [12, 12]
        assert first.last_index == 1
        assert len(first) == 2
        assert codec.decode(first.blobs[1]) == bytes(range(13, 25))
        assert last.sizes == [6]
        assert codec.decode(last.blobs[0]) == bytes(range(25, 31))


class TestCalldataPlanner:
    def test_one_chunk_per_batch(self):
        planner = CalldataPlanner()
        count = planner.check_size(CALLDATA_CHUNK_SIZE * 2 + 1)

        assert planner.chunk_capacity == CALLDATA_CHUNK_SIZE
        assert count == 3
        assert planner.plan_batches(count) == [range(0, 1), range(1, 2), range(2, 3)]

    def test_chunks_are_not_encoded(self):
        """Test calldata batches carry the raw chunk bytes"""
        planner = CalldataPlanner(chunk_size=4)
        content = BytesContent(b"abcdefghij")

        batches = [planner.build_batch(content, r) for r in planner.plan_batches(3)]

        assert [b.blobs for b in batches] == [[b"abcd"], [b"efgh"], [b"ij"]]
        assert [b.sizes for b in batches] == [[4], [4], [2]]

    def test_invalid_chunk_size(self):
        with pytest.raises(InvalidInput):
            CalldataPlanner(chunk_size=0)
