"""
KZG commitments for blobs.

The engine is constructed explicitly and warmed up by its owner; loading
the trusted setup is slow, so it happens once, off the event loop.
"""
import asyncio
import hashlib
from typing import List, Protocol

import ckzg
from loguru import logger

VERSIONED_HASH_VERSION_KZG = b'\x01'
STORED_HASH_PREFIX = 24  # bytes of the versioned hash kept by the contract


def kzg_to_versioned_hash(commitment: bytes) -> bytes:
    return VERSIONED_HASH_VERSION_KZG + hashlib.sha256(commitment).digest()[1:]


def to_stored_hash(versioned_hash: bytes) -> bytes:
    """Contract-side form: first 24 bytes of the versioned hash, zero-padded to 32."""
    return versioned_hash[:STORED_HASH_PREFIX] + b'\x00' * (32 - STORED_HASH_PREFIX)


class CommitmentEngine(Protocol):
    async def warm_up(self) -> None:
        ...

    def commit(self, blob: bytes) -> bytes:
        ...

    def versioned_hash(self, commitment: bytes) -> bytes:
        ...


class CkzgCommitmentEngine:
    def __init__(self, trusted_setup_path: str, precompute: int = 0):
        self.trusted_setup_path = trusted_setup_path
        self.precompute = precompute
        self._setup = None

    async def warm_up(self) -> None:
        if self._setup is None:
            self._setup = await asyncio.to_thread(
                ckzg.load_trusted_setup, self.trusted_setup_path, self.precompute
            )
            logger.info(f"Loaded KZG trusted setup from {self.trusted_setup_path}")

    def commit(self, blob: bytes) -> bytes:
        if self._setup is None:
            raise RuntimeError("CkzgCommitmentEngine used before warm_up()")
        return bytes(ckzg.blob_to_kzg_commitment(blob, self._setup))

    def versioned_hash(self, commitment: bytes) -> bytes:
        return kzg_to_versioned_hash(commitment)


def versioned_hashes_for(engine: CommitmentEngine, blobs: List[bytes]) -> List[bytes]:
    return [engine.versioned_hash(engine.commit(blob)) for blob in blobs]
