from typing import List, Optional

from .codec import BlobCodec
from .constants import CALLDATA_CHUNK_SIZE, MAX_BLOBS_PER_TX
from .content import ContentSource
from .errors import InvalidInput
from .types import BatchEntry, UploadBatch


class ChunkPlanner:
    def __init__(self, codec: Optional[BlobCodec] = None, max_blobs_per_tx: int = MAX_BLOBS_PER_TX,
                 max_chunks: Optional[int] = None):
        if max_blobs_per_tx < 1:
            raise InvalidInput("max_blobs_per_tx must be >= 1")
        self.codec = codec or BlobCodec()
        self.max_blobs_per_tx = max_blobs_per_tx
        self.max_chunks = max_chunks

    @property
    def chunk_capacity(self) -> int:
        return self.codec.capacity

    def chunk_count(self, size: int) -> int:
        return -(-size // self.chunk_capacity)

    def check_size(self, size: int) -> int:
        """
        Validate a content size and return its chunk count.
        Raises InvalidInput for empty content or too many chunks.
        """
        if size <= 0:
            raise InvalidInput("content must not be empty")
        count = self.chunk_count(size)
        if self.max_chunks is not None and count > self.max_chunks:
            raise InvalidInput(f"content needs {count} chunks, limit is {self.max_chunks}")
        return count

    def plan_batches(self, chunk_count: int, max_blobs_per_tx: Optional[int] = None) -> List[range]:
        """
        Group chunk indices [0, chunk_count) into consecutive ranges of at
        most max_blobs_per_tx, in ascending order.
        """
        step = max_blobs_per_tx or self.max_blobs_per_tx
        return [range(i, min(i + step, chunk_count)) for i in range(0, chunk_count, step)]

    def chunk_size(self, index: int, size: int) -> int:
        count = self.chunk_count(size)
        if index == count - 1:
            return size - self.chunk_capacity * (count - 1)
        return self.chunk_capacity

    def _encode(self, chunk: bytes) -> bytes:
        return self.codec.encode(chunk)

    def build_batch(self, content: ContentSource, indices: range) -> UploadBatch:
        """Read and encode the chunks of one batch."""
        capacity = self.chunk_capacity
        data = content.read_range(indices.start * capacity, indices.stop * capacity)
        entries = []
        for j, index in enumerate(indices):
            chunk = data[j * capacity:(j + 1) * capacity]
            entries.append(BatchEntry(
                index=index,
                data=self._encode(chunk),
                size=self.chunk_size(index, content.size),
            ))
        return UploadBatch(entries)


class CalldataPlanner(ChunkPlanner):
    """
    Plans calldata writes: raw chunks of at most CALLDATA_CHUNK_SIZE bytes,
    one chunk per transaction.
    """

    def __init__(self, chunk_size: int = CALLDATA_CHUNK_SIZE, max_chunks: Optional[int] = None):
        if chunk_size < 1:
            raise InvalidInput("chunk_size must be >= 1")
        super().__init__(max_blobs_per_tx=1, max_chunks=max_chunks)
        self._chunk_size = chunk_size

    @property
    def chunk_capacity(self) -> int:
        return self._chunk_size

    def _encode(self, chunk: bytes) -> bytes:
        return chunk

