import hashlib

import pytest
from web3 import Web3

from blobdir.chunker import ChunkPlanner
from blobdir.codec import BlobCodec
from blobdir.commitment import kzg_to_versioned_hash, to_stored_hash
from blobdir.constants import BLOB_GAS_PER_BLOB, StorageMode
from blobdir.types import FeeData, Receipt
from blobdir.uploader import UploadOrchestrator


class FakeCommitmentEngine:
    """Stands in for ckzg: a 48-byte digest instead of a real commitment."""

    def __init__(self):
        self.warmed = False

    async def warm_up(self):
        self.warmed = True

    def commit(self, blob):
        return hashlib.sha384(blob).digest()

    def versioned_hash(self, commitment):
        return kzg_to_versioned_hash(commitment)


class FakeChain:
    """In-memory chunk-store contract plus the account that writes to it."""

    def __init__(self, address="0x00000000000000000000000000000000000000aa", nonce=0,
                 cost_per_chunk=0, support_blob=True):
        self.address = address
        self.start_nonce = nonce
        self.cost_per_chunk = cost_per_chunk
        self.support_blob = support_blob
        self.engine = FakeCommitmentEngine()
        self.codec = BlobCodec()

        self.chunks = {}  # name -> {index: (stored_hash, data, size)}
        self.modes = {}
        self.fee = FeeData(max_fee_per_gas=100, max_priority_fee_per_gas=10)
        self.excess_blob_gas = 0
        self.gas_estimate = 50000

        self.sent = []
        self.attempted_nonces = []
        self.revert_writes = set()  # 1-based ordinals of write txs that revert
        self.fail_sends = set()  # 1-based ordinals of send attempts that raise
        self.fail_calls = set()
        self.missing = set()  # (name, index) pairs readChunk reports as absent
        self.pending_polls = 0
        self.nonce_reads = 0

        self.outstanding = 0
        self.max_outstanding = 0
        self._receipts = {}
        self._polls = {}
        self._writes = 0

    # test helpers

    def store(self, key, index, data, size=None, mode=StorageMode.CALLDATA, stored_hash=None):
        name = key.encode("utf-8")
        self.chunks.setdefault(name, {})[index] = (
            stored_hash or bytes(Web3.keccak(data)), data, len(data) if size is None else size
        )
        self.modes[name] = mode

    def count(self, key):
        return len(self.chunks.get(key.encode("utf-8"), {}))

    def sent_fns(self):
        return [tx["fn"] for tx in self.sent]

    # ChainClient

    async def get_nonce(self):
        self.nonce_reads += 1
        return self.start_nonce

    async def get_fee_data(self):
        return self.fee

    async def get_excess_blob_gas(self):
        return self.excess_blob_gas

    async def estimate_gas(self, tx):
        return self.gas_estimate

    async def build_transaction(self, fn, *args, value=0):
        if "build" in self.fail_calls or fn in self.fail_calls:
            raise RuntimeError(f"build {fn} failed")
        return {"fn": fn, "args": args, "value": value, "from": self.address}

    async def send_transaction(self, tx, blobs=None):
        self.attempted_nonces.append(tx["nonce"])
        if len(self.attempted_nonces) in self.fail_sends:
            raise ConnectionError("connection reset")

        tx = dict(tx)
        self.sent.append(tx)
        tx_hash = "0x%064x" % len(self.sent)
        status = 1
        name = tx["args"][0]
        if tx["fn"] in ("writeChunks", "writeChunk"):
            self._writes += 1
            if self._writes in self.revert_writes:
                status = 0
            elif tx["fn"] == "writeChunks":
                _, chunk_ids, sizes = tx["args"]
                for index, size, blob in zip(chunk_ids, sizes, blobs):
                    stored = to_stored_hash(self.engine.versioned_hash(self.engine.commit(blob)))
                    # the contract serves a blob chunk back at its declared size
                    data = self.codec.decode(blob, size)
                    self.chunks.setdefault(name, {})[index] = (stored, data, size)
                self.modes[name] = StorageMode.BLOB
            else:
                _, index, data = tx["args"]
                self.chunks.setdefault(name, {})[index] = (bytes(Web3.keccak(data)), data, len(data))
                self.modes[name] = StorageMode.CALLDATA
        elif tx["fn"] == "remove":
            self.chunks.pop(name, None)

        blob_count = len(blobs) if blobs else 0
        self._receipts[tx_hash] = Receipt(
            tx_hash=tx_hash, status=status, gas_used=21000, effective_gas_price=10,
            blob_gas_used=BLOB_GAS_PER_BLOB * blob_count, blob_gas_price=1,
        )
        self._polls[tx_hash] = self.pending_polls
        self.outstanding += 1
        self.max_outstanding = max(self.max_outstanding, self.outstanding)
        return tx_hash

    async def get_transaction_receipt(self, tx_hash):
        if "receipt" in self.fail_calls:
            raise TimeoutError("receipt request timed out")
        if self._polls[tx_hash] > 0:
            self._polls[tx_hash] -= 1
            return None
        self.outstanding -= 1
        return self._receipts[tx_hash]

    async def call(self, fn, *args):
        if fn in self.fail_calls:
            raise RuntimeError(f"{fn} reverted")
        if fn == "isSupportBlob":
            return self.support_blob
        if fn == "upfrontPayment":
            return self.cost_per_chunk
        name = args[0]
        stored = self.chunks.get(name, {})
        if fn == "countChunks":
            return len(stored)
        if fn == "getStorageMode":
            return int(self.modes.get(name, StorageMode.UNDEFINED))
        if fn == "getChunkHash":
            return stored[args[1]][0] if args[1] in stored else b'\x00' * 32
        if fn == "readChunk":
            index = args[1]
            if index not in stored or (name, index) in self.missing:
                return b'', False
            return stored[index][1], True
        raise AssertionError(f"unexpected call {fn}")


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def engine():
    return FakeCommitmentEngine()


@pytest.fixture
def uploader(chain, engine):
    return UploadOrchestrator(chain, engine, receipt_poll_interval=0)


@pytest.fixture
def single_blob_uploader(chain, engine):
    """One chunk per transaction, so failures land between chunks."""
    return UploadOrchestrator(chain, engine, planner=ChunkPlanner(max_blobs_per_tx=1),
                              receipt_poll_interval=0)
