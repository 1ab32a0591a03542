# Configuration Constants
from enum import IntEnum

# Blob layout
SLOT_SIZE = 32  # bytes per field slot
SLOTS_PER_BLOB = 4096
BLOB_SIZE = SLOT_SIZE * SLOTS_PER_BLOB  # 128 KiB
CHUNK_CAPACITY = SLOTS_PER_BLOB * (SLOT_SIZE - 1)  # one guard byte per slot

# Transaction limits
MAX_BLOBS_PER_TX = 3
BLOB_GAS_PER_BLOB = 131072
MAX_HASHES_PER_READ = 120  # eth_call gas ceiling on batched hash reads
CALLDATA_CHUNK_SIZE = 24 * 1024 - 326  # one chunk per calldata write

# Blob fee market
MIN_BASE_FEE_PER_BLOB_GAS = 1
BLOB_BASE_FEE_UPDATE_FRACTION = 3338477
DEFAULT_FEE_BUMP_PERCENT = 20

# Scheduling
DEFAULT_CONCURRENCY = 15
RECEIPT_POLL_INTERVAL = 5.0  # seconds


class StorageMode(IntEnum):
    UNDEFINED = 0
    CALLDATA = 1
    BLOB = 2


def _fn(name, inputs, outputs=(), mutability="view"):
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": "", "type": t} for t in outputs],
    }


# Chunk-store contract
FLAT_DIRECTORY_ABI = [
    _fn("isSupportBlob", [], ["bool"]),
    _fn("upfrontPayment", [], ["uint256"]),
    _fn("countChunks", [("name", "bytes")], ["uint256"]),
    _fn("getStorageMode", [("name", "bytes")], ["uint256"]),
    _fn("getChunkHash", [("name", "bytes"), ("chunkId", "uint256")], ["bytes32"]),
    _fn("readChunk", [("name", "bytes"), ("chunkId", "uint256")], ["bytes", "bool"]),
    _fn(
        "writeChunk",
        [("name", "bytes"), ("chunkId", "uint256"), ("data", "bytes")],
        mutability="payable",
    ),
    _fn(
        "writeChunks",
        [("name", "bytes"), ("chunkIds", "uint256[]"), ("sizes", "uint256[]")],
        mutability="payable",
    ),
    _fn("remove", [("name", "bytes")], ["uint256"], mutability="nonpayable"),
]
