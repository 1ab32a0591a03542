"""
Remote diff checks.

Before a batch is written the uploader asks the contract what it already
holds for the key, and skips batches whose stored hashes match the hashes
of the chunks it is about to send.
"""
import asyncio
from enum import Enum
from typing import Dict, List

from loguru import logger
from web3 import Web3

from .constants import MAX_HASHES_PER_READ, StorageMode
from .errors import RemoteStateError
from .types import RemoteChunkDescriptor, UploadBatch


class RemoteState(str, Enum):
    FRESH = "fresh"
    STALE = "stale"
    NORMAL = "normal"


def encode_key(key: str) -> bytes:
    return key.encode("utf-8")


def calldata_hash(chunk: bytes) -> bytes:
    """Hash the contract keeps for a chunk written as calldata."""
    return bytes(Web3.keccak(chunk))


class RemoteDiffChecker:
    def __init__(self, chain):
        self.chain = chain

    async def describe(self, key: str) -> RemoteChunkDescriptor:
        name = encode_key(key)
        try:
            count, mode, cost = await asyncio.gather(
                self.chain.call("countChunks", name),
                self.chain.call("getStorageMode", name),
                self.chain.call("upfrontPayment"),
            )
        except Exception as e:
            raise RemoteStateError(key, f"cannot read remote state: {e}") from e
        return RemoteChunkDescriptor(
            key=key, chunk_count=int(count), mode=StorageMode(int(mode)), cost_per_chunk=int(cost)
        )

    def classify(self, remote: RemoteChunkDescriptor, planned_chunks: int,
                 mode: StorageMode = StorageMode.BLOB) -> RemoteState:
        """A key keeps the storage mode of its first write; other modes are refused."""
        if remote.mode not in (StorageMode.UNDEFINED, mode):
            kind = "blob" if mode == StorageMode.BLOB else "calldata"
            raise RemoteStateError(remote.key, f"This file does not support {kind} upload!")
        if remote.chunk_count == 0:
            return RemoteState.FRESH
        if remote.chunk_count > planned_chunks:
            return RemoteState.STALE
        return RemoteState.NORMAL

    async def remote_hashes(self, key: str, indices: List[int]) -> List[bytes]:
        name = encode_key(key)
        try:
            hashes = await asyncio.gather(*(self.chain.call("getChunkHash", name, i) for i in indices))
        except Exception as e:
            raise RemoteStateError(key, f"cannot read chunk hashes {indices}: {e}") from e
        return [bytes(h) for h in hashes]

    async def batch_unchanged(self, key: str, batch: UploadBatch, local_hashes: List[bytes],
                              remote: RemoteChunkDescriptor) -> bool:
        """
        True when every chunk of the batch is already stored with the same hash.
        local_hashes must be in the form the contract stores.
        """
        if batch.last_index >= remote.chunk_count:
            return False
        stored = await self.remote_hashes(key, batch.chunk_ids)
        if stored == list(local_hashes):
            logger.debug(f"{key}: chunks {batch.chunk_ids} unchanged")
            return True
        return False

    async def fetch_hashes(self, keys: List[str]) -> Dict[str, List[bytes]]:
        """Every stored chunk hash for each key, read in groups of MAX_HASHES_PER_READ."""
        try:
            counts = await asyncio.gather(*(self.chain.call("countChunks", encode_key(k)) for k in keys))
        except Exception as e:
            raise RemoteStateError(",".join(keys), f"cannot read chunk counts: {e}") from e

        wanted = [(key, i) for key, count in zip(keys, counts) for i in range(int(count))]
        found = {}
        for start in range(0, len(wanted), MAX_HASHES_PER_READ):
            group = wanted[start:start + MAX_HASHES_PER_READ]
            try:
                hashes = await asyncio.gather(
                    *(self.chain.call("getChunkHash", encode_key(key), i) for key, i in group)
                )
            except Exception as e:
                raise RemoteStateError(group[0][0], f"cannot read chunk hashes: {e}") from e
            found.update(zip(group, hashes))

        return {
            key: [bytes(found[(key, i)]) for i in range(int(count))]
            for key, count in zip(keys, counts)
        }
