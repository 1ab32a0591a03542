"""
Runtime configuration for the blobdir client.
"""
import os
from dataclasses import dataclass
from typing import Optional

from .constants import DEFAULT_CONCURRENCY, DEFAULT_FEE_BUMP_PERCENT, RECEIPT_POLL_INTERVAL


@dataclass
class ClientConfig:
    rpc: str
    address: str
    private_key: Optional[str] = None
    read_rpc: Optional[str] = None  # node serving blob data; defaults to rpc
    trusted_setup: Optional[str] = None  # KZG trusted setup file

    concurrency: int = DEFAULT_CONCURRENCY
    fee_bump_percent: int = DEFAULT_FEE_BUMP_PERCENT
    receipt_poll_interval: float = RECEIPT_POLL_INTERVAL
    max_chunks: Optional[int] = None

    @classmethod
    def from_env(cls, **overrides) -> "ClientConfig":
        values = {
            "rpc": os.getenv("RPC_URL", "http://127.0.0.1:8545"),
            "address": os.getenv("BLOBDIR_ADDRESS", ""),
            "private_key": os.getenv("BLOBDIR_PRIVATE_KEY"),
            "read_rpc": os.getenv("BLOBDIR_READ_RPC"),
            "trusted_setup": os.getenv("KZG_TRUSTED_SETUP"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
