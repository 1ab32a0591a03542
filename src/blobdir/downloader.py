import asyncio
from typing import AsyncIterator, Optional

from loguru import logger

from .codec import BlobCodec
from .constants import StorageMode
from .errors import DownloadFailure
from .remote import encode_key
from .types import DownloadProgress


class DownloadReconstructor:
    def __init__(self, chain, codec: Optional[BlobCodec] = None):
        self.chain = chain
        self.codec = codec or BlobCodec()

    async def iter_chunks(self, key: str,
                          on_progress: Optional[DownloadProgress] = None) -> AsyncIterator[bytes]:
        """Yield decoded chunks of key in index order, one read at a time."""
        name = encode_key(key)
        try:
            count, mode = await asyncio.gather(
                self.chain.call("countChunks", name),
                self.chain.call("getStorageMode", name),
            )
        except Exception as e:
            raise DownloadFailure(f"{key}: cannot read chunk count: {e}") from e
        count = int(count)
        if count == 0:
            raise DownloadFailure(f"There is no data corresponding to key {key}")

        blob_mode = int(mode) == StorageMode.BLOB
        for index in range(count):
            try:
                data, exists = await self.chain.call("readChunk", name, index)
            except Exception as e:
                raise DownloadFailure(f"{key}: cannot read chunk {index}: {e}") from e
            if not exists:
                raise DownloadFailure(f"{key}: chunk {index} of {count} is missing")
            try:
                chunk = self._decode(bytes(data), blob_mode, last=index == count - 1)
            except Exception as e:
                raise DownloadFailure(f"{key}: cannot decode chunk {index}: {e}") from e
            if on_progress:
                on_progress(index, count, chunk)
            yield chunk

    def _decode(self, data: bytes, blob_mode: bool, last: bool) -> bytes:
        """
        The contract normally returns a chunk at its declared size. A node
        that hands back the whole padded blob instead gets it slot-decoded.
        """
        if not blob_mode or len(data) != self.codec.blob_size:
            return self.codec.decode_raw(data)
        # every chunk but the last fills the blob, so its length is known
        return self.codec.decode(data, None if last else self.codec.capacity)

    async def download_content(self, key: str,
                               on_progress: Optional[DownloadProgress] = None) -> bytes:
        """Reassemble key; any failed chunk read fails the whole download."""
        parts = [chunk async for chunk in self.iter_chunks(key, on_progress)]
        data = b''.join(parts)
        logger.info(f"Downloaded {key}: {len(parts)} chunks, {len(data)} bytes")
        return data
