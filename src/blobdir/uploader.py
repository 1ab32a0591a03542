import asyncio
from dataclasses import replace
from typing import Iterable, List, Optional, Tuple

from loguru import logger

from .chain import wait_for_receipt
from .chunker import CalldataPlanner, ChunkPlanner
from .commitment import to_stored_hash, versioned_hashes_for
from .constants import BLOB_GAS_PER_BLOB, DEFAULT_CONCURRENCY, RECEIPT_POLL_INTERVAL, StorageMode
from .content import ContentSource
from .errors import EstimationError, InvalidInput, RemoteStateError, SubmissionError
from .gas import GasPriceEstimator
from .nonce import NonceCoordinator
from .remote import RemoteDiffChecker, RemoteState, calldata_hash, encode_key
from .types import CostEstimate, Receipt, UploadBatch, UploadProgress, UploadResult, UploadState


class UploadOrchestrator:
    """
    Drives content through plan -> diff -> write, one batch at a time.

    Batches of one item run strictly in chunk order and stop at the first
    failure; nothing is retried. Several items run side by side through
    upload_contents(), sharing only the nonce counter.

    Blob mode sends up to three encoded chunks per blob transaction.
    Calldata mode sends one raw chunk per ordinary transaction. A key keeps
    the mode of its first write.
    """

    def __init__(self, chain, engine, planner: Optional[ChunkPlanner] = None,
                 nonces: Optional[NonceCoordinator] = None, gas: Optional[GasPriceEstimator] = None,
                 receipt_poll_interval: float = RECEIPT_POLL_INTERVAL,
                 calldata_planner: Optional[CalldataPlanner] = None):
        self.chain = chain
        self.engine = engine
        self.planner = planner or ChunkPlanner()
        self.calldata_planner = calldata_planner or CalldataPlanner(max_chunks=self.planner.max_chunks)
        self.nonces = nonces or NonceCoordinator()
        self.gas = gas or GasPriceEstimator(chain)
        self.remote = RemoteDiffChecker(chain)
        self.receipt_poll_interval = receipt_poll_interval
        self._started = False
        self._start_lock = asyncio.Lock()

    async def start(self):
        """Warm up the commitment engine and seed the nonce counter, once."""
        async with self._start_lock:
            if self._started:
                return
            if self.engine is not None:
                await self.engine.warm_up()
            nonce = await self.nonces.seed(self.chain)
            self._started = True
            logger.info(f"Uploader ready for {self.chain.address} at nonce {nonce}")

    def _planner(self, mode: StorageMode) -> ChunkPlanner:
        if mode == StorageMode.BLOB:
            if self.engine is None:
                raise InvalidInput("A KZG trusted setup is required for blob upload.")
            return self.planner
        if mode == StorageMode.CALLDATA:
            return self.calldata_planner
        raise InvalidInput(f"cannot upload in storage mode {mode!r}")

    def _check(self, key: str, content: ContentSource, mode: StorageMode) -> int:
        if not key:
            raise InvalidInput("Invalid key!")
        return self._planner(mode).check_size(content.size)

    async def upload_content(self, key: str, content: ContentSource,
                             mode: StorageMode = StorageMode.BLOB,
                             on_progress: Optional[UploadProgress] = None) -> UploadResult:
        """
        Upload one item. Raises InvalidInput for unusable input; any later
        failure is reported in the returned UploadResult instead.

        on_progress is called after every batch, written or skipped.
        """
        total = self._check(key, content, mode)
        result = UploadResult(key=key, total_chunks=total)
        try:
            await self.start()
            await self._run(key, content, result, mode, on_progress)
        except Exception as e:
            result.state = UploadState.ABORTED
            result.error = e
            logger.error(
                f"Upload of {key} stopped after chunk {result.success_index} of {total}: {e}"
            )
        return result

    async def upload_contents(self, items: Iterable[Tuple[str, ContentSource]],
                              concurrency: int = DEFAULT_CONCURRENCY,
                              mode: StorageMode = StorageMode.BLOB,
                              on_progress: Optional[UploadProgress] = None) -> List[UploadResult]:
        """Upload many items with at most `concurrency` in flight; results keep input order."""
        items = list(items)
        if concurrency < 1:
            raise InvalidInput("concurrency must be >= 1")
        for key, content in items:
            self._check(key, content, mode)

        await self.start()
        queue = asyncio.Queue()
        for position, (key, content) in enumerate(items):
            queue.put_nowait((position, key, content))

        results: List[Optional[UploadResult]] = [None] * len(items)
        workers = [
            asyncio.create_task(self._worker(queue, results, mode, on_progress))
            for _ in range(min(concurrency, len(items)))
        ]
        await asyncio.gather(*workers)
        return results

    async def _worker(self, queue: asyncio.Queue, results: list, mode: StorageMode,
                      on_progress: Optional[UploadProgress]):
        while True:
            try:
                position, key, content = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                results[position] = await self.upload_content(key, content, mode, on_progress)
            finally:
                queue.task_done()

    async def _hashes(self, batch: UploadBatch, mode: StorageMode) -> Tuple[Optional[List[bytes]], List[bytes]]:
        """Versioned hashes for a blob transaction, and the hashes as the contract stores them."""
        if mode == StorageMode.CALLDATA:
            return None, [calldata_hash(entry.data) for entry in batch.entries]
        versioned = await asyncio.to_thread(versioned_hashes_for, self.engine, batch.blobs)
        return versioned, [to_stored_hash(h) for h in versioned]

    async def _run(self, key: str, content: ContentSource, result: UploadResult,
                   mode: StorageMode, on_progress: Optional[UploadProgress]):
        planner = self._planner(mode)
        remote = await self.remote.describe(key)

        result.state = UploadState.DIFF_CHECK
        state = self.remote.classify(remote, result.total_chunks, mode)
        if state == RemoteState.STALE:
            result.state = UploadState.REMOVE_STALE
            logger.info(f"{key}: remote holds {remote.chunk_count} chunks, "
                        f"content needs {result.total_chunks}; removing")
            await self._remove_stale(key)
            remote = replace(remote, chunk_count=0)
            state = RemoteState.FRESH

        for indices in planner.plan_batches(result.total_chunks):
            batch = planner.build_batch(content, indices)
            versioned, local = await self._hashes(batch, mode)

            if state == RemoteState.NORMAL:
                result.state = UploadState.DIFF_CHECK
                if await self.remote.batch_unchanged(key, batch, local, remote):
                    result.state = UploadState.SKIP
                    result.success_index = batch.last_index
                    if on_progress:
                        on_progress(key, batch.last_index, result.total_chunks, False)
                    continue

            result.state = UploadState.WRITE
            if mode == StorageMode.BLOB:
                value = remote.cost_per_chunk * len(batch)
                receipt = await self._write_blobs(key, batch, versioned, value)
            else:
                value = 0
                receipt = await self._write_calldata(key, batch)
            result.success_index = batch.last_index
            result.chunks_written += len(batch)
            result.bytes_written += sum(batch.sizes)
            result.cost += value
            result.gas_cost += receipt.fee_paid
            if on_progress:
                on_progress(key, batch.last_index, result.total_chunks, True)

        result.state = UploadState.DONE
        logger.info(f"Uploaded {key}: {result.chunks_written}/{result.total_chunks} chunks written, "
                    f"{result.bytes_written} bytes")

    async def _build(self, key: str, fn: str, *args, value: int = 0) -> dict:
        try:
            return await self.chain.build_transaction(fn, *args, value=value)
        except Exception as e:
            raise SubmissionError(key, f"cannot build {fn}: {e}") from e

    async def _write_blobs(self, key: str, batch: UploadBatch, versioned: List[bytes],
                           value: int) -> Receipt:
        tx = await self._build(key, "writeChunks", encode_key(key), batch.chunk_ids, batch.sizes,
                               value=value)
        tx["blobVersionedHashes"] = versioned
        tx["gas"] = await self.gas.gas_limit(tx)
        tx.update((await self.gas.quote()).as_tx_params())

        tx_hash = await self._submit(key, tx, batch.blobs)
        if len(batch) > 1:
            logger.info(f"{key}: the transaction hash for chunks {batch.chunk_ids} is {tx_hash}")
        else:
            logger.info(f"{key}: the transaction hash for chunk {batch.last_index} is {tx_hash}")
        return await self._confirm(key, tx_hash, f"chunks {batch.chunk_ids}")

    async def _write_calldata(self, key: str, batch: UploadBatch) -> Receipt:
        entry = batch.entries[0]
        tx = await self._build(key, "writeChunk", encode_key(key), entry.index, entry.data)
        tx["gas"] = await self.gas.gas_limit(tx)
        await self._set_fees(tx)

        tx_hash = await self._submit(key, tx)
        logger.info(f"{key}: the transaction hash for chunk {entry.index} is {tx_hash}")
        return await self._confirm(key, tx_hash, f"chunk {entry.index}")

    async def _set_fees(self, tx: dict):
        fee = await self.gas.fee_data()
        tx["maxFeePerGas"] = fee.max_fee_per_gas
        tx["maxPriorityFeePerGas"] = fee.max_priority_fee_per_gas

    async def _submit(self, key: str, tx: dict, blobs: Optional[List[bytes]] = None) -> str:
        async with self.nonces.reserve() as nonce:
            tx["nonce"] = nonce
            try:
                return await self.chain.send_transaction(tx, blobs)
            except Exception as e:
                raise SubmissionError(key, f"Sending transaction failed: {e}") from e

    async def _confirm(self, key: str, tx_hash: str, what: str) -> Receipt:
        try:
            receipt = await wait_for_receipt(self.chain, tx_hash, self.receipt_poll_interval)
        except Exception as e:
            raise SubmissionError(key, f"cannot read receipt for {what}: {e}", tx_hash) from e
        if not receipt.succeeded:
            raise SubmissionError(key, f"transaction for {what} failed", tx_hash)
        return receipt

    async def remove(self, key: str) -> Receipt:
        """Delete every chunk stored under key."""
        if not key:
            raise InvalidInput("Invalid key!")
        await self.start()
        tx = await self._build(key, "remove", encode_key(key))
        tx["gas"] = await self.gas.gas_limit(tx)
        await self._set_fees(tx)

        tx_hash = await self._submit(key, tx)
        logger.info(f"{key}: remove tx hash is {tx_hash}")
        return await self._confirm(key, tx_hash, "remove")

    async def _remove_stale(self, key: str):
        try:
            await self.remove(key)
        except Exception as e:
            raise RemoteStateError(key, f"Failed to remove old data: {e}",
                                   getattr(e, "tx_hash", None)) from e

    async def _estimate_gas_limit(self, key: str, fn: str, *args, value: int = 0,
                                  versioned: Optional[List[bytes]] = None) -> int:
        try:
            tx = await self.chain.build_transaction(fn, *args, value=value)
        except Exception as e:
            raise EstimationError(f"{key}: cannot build {fn}: {e}") from e
        if versioned is not None:
            tx["blobVersionedHashes"] = versioned
        return await self.gas.gas_limit(tx)

    async def estimate_cost(self, key: str, content: ContentSource,
                            mode: StorageMode = StorageMode.BLOB) -> CostEstimate:
        """Storage payment and gas for the batches an upload would actually write."""
        total = self._check(key, content, mode)
        planner = self._planner(mode)
        await self.start()
        if mode == StorageMode.BLOB:
            remote, blob_price, fee = await asyncio.gather(
                self.remote.describe(key), self.gas.blob_gas_price(), self.gas.fee_data()
            )
        else:
            blob_price = 0
            remote, fee = await asyncio.gather(self.remote.describe(key), self.gas.fee_data())
        # a stale key is removed before writing, so every batch counts
        state = self.remote.classify(remote, total, mode)

        storage_cost = 0
        gas_cost = 0
        gas_limit = None
        for indices in planner.plan_batches(total):
            batch = planner.build_batch(content, indices)
            versioned, local = await self._hashes(batch, mode)
            if state == RemoteState.NORMAL and await self.remote.batch_unchanged(key, batch, local, remote):
                continue

            if mode == StorageMode.BLOB:
                value = remote.cost_per_chunk * len(batch)
                if gas_limit is None:
                    gas_limit = await self._estimate_gas_limit(
                        key, "writeChunks", encode_key(key), batch.chunk_ids, batch.sizes,
                        value=value, versioned=versioned,
                    )
                gas_cost += blob_price * BLOB_GAS_PER_BLOB * len(batch)
            else:
                value = 0
                # the last chunk is usually shorter, so it gets its own estimate
                if gas_limit is None or batch.last_index == total - 1:
                    entry = batch.entries[0]
                    gas_limit = await self._estimate_gas_limit(
                        key, "writeChunk", encode_key(key), entry.index, entry.data
                    )
            storage_cost += value
            gas_cost += (fee.max_fee_per_gas + fee.max_priority_fee_per_gas) * gas_limit

        return CostEstimate(storage_cost=storage_cost, gas_cost=gas_cost)
