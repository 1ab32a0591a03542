"""
Shared data structures for blobdir.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from .constants import StorageMode


@dataclass(frozen=True)
class FeeData:
    """EIP-1559 fee quote as reported by the chain."""

    max_fee_per_gas: Optional[int]
    max_priority_fee_per_gas: Optional[int]


@dataclass(frozen=True)
class TxFees:
    """Fees actually placed on a blob transaction (safety bump applied)."""

    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    max_fee_per_blob_gas: int

    def as_tx_params(self) -> Dict[str, int]:
        return {
            "maxFeePerGas": self.max_fee_per_gas,
            "maxPriorityFeePerGas": self.max_priority_fee_per_gas,
            "maxFeePerBlobGas": self.max_fee_per_blob_gas,
        }


@dataclass(frozen=True)
class Receipt:
    tx_hash: str
    status: int
    gas_used: int = 0
    effective_gas_price: int = 0
    blob_gas_used: int = 0
    blob_gas_price: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == 1

    @property
    def fee_paid(self) -> int:
        return self.gas_used * self.effective_gas_price + self.blob_gas_used * self.blob_gas_price


@dataclass(frozen=True)
class BatchEntry:
    index: int
    data: bytes  # encoded blob, or the raw chunk for calldata writes
    size: int  # declared chunk size, not the padded blob length


@dataclass
class UploadBatch:
    """Consecutive chunks sent in one blob transaction."""

    entries: List[BatchEntry]

    @property
    def chunk_ids(self) -> List[int]:
        return [entry.index for entry in self.entries]

    @property
    def sizes(self) -> List[int]:
        return [entry.size for entry in self.entries]

    @property
    def blobs(self) -> List[bytes]:
        return [entry.data for entry in self.entries]

    @property
    def last_index(self) -> int:
        return self.entries[-1].index

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class RemoteChunkDescriptor:
    key: str
    chunk_count: int
    mode: StorageMode
    cost_per_chunk: int = 0


class UploadState(str, Enum):
    INIT = "init"
    DIFF_CHECK = "diff_check"
    SKIP = "skip"
    REMOVE_STALE = "remove_stale"
    WRITE = "write"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class UploadResult:
    """
    Progress report for one content item.

    success_index is the highest chunk index known to be stored remotely,
    -1 when nothing is. Skipped (unchanged) batches advance it without
    counting toward chunks_written or bytes_written.
    """

    key: str
    total_chunks: int
    success_index: int = -1
    chunks_written: int = 0
    bytes_written: int = 0
    cost: int = 0  # storage payment sent as tx value
    gas_cost: int = 0  # execution + blob gas paid, from receipts
    state: UploadState = UploadState.INIT
    error: Optional[Exception] = field(default=None, compare=False)

    @property
    def completed(self) -> bool:
        return self.state == UploadState.DONE and self.success_index == self.total_chunks - 1


@dataclass(frozen=True)
class CostEstimate:
    storage_cost: int
    gas_cost: int


# (key, last chunk index of the batch, total chunks, written) once per batch;
# written is False when the batch was already stored and skipped
UploadProgress = Callable[[str, int, int, bool], None]

# (chunk index, total chunks, decoded chunk bytes) once per chunk
DownloadProgress = Callable[[int, int, bytes], None]
