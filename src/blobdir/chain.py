import asyncio
from typing import Any, Dict, List, Optional, Protocol

from loguru import logger
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import TransactionNotFound

from .constants import FLAT_DIRECTORY_ABI, RECEIPT_POLL_INTERVAL
from .types import FeeData, Receipt


class ChainClient(Protocol):
    """Everything the core needs from the ledger. All calls may raise."""

    address: Optional[str]

    async def get_nonce(self) -> int:
        ...

    async def get_fee_data(self) -> FeeData:
        ...

    async def get_excess_blob_gas(self) -> Optional[int]:
        ...

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        ...

    async def build_transaction(self, fn: str, *args, value: int = 0) -> Dict[str, Any]:
        ...

    async def send_transaction(self, tx: Dict[str, Any], blobs: Optional[List[bytes]] = None) -> str:
        ...

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Receipt]:
        ...

    async def call(self, fn: str, *args) -> Any:
        ...


async def wait_for_receipt(chain: ChainClient, tx_hash: str,
                           interval: float = RECEIPT_POLL_INTERVAL) -> Receipt:
    """Poll until the transaction is mined. There is no upper bound on attempts."""
    while True:
        receipt = await chain.get_transaction_receipt(tx_hash)
        if receipt is not None:
            return receipt
        logger.debug(f"Waiting for {tx_hash} to be mined")
        await asyncio.sleep(interval)


class Web3ChainClient:
    """ChainClient over JSON-RPC, bound to one chunk-store contract."""

    def __init__(self, rpc: str, contract_address: str, private_key: Optional[str] = None):
        self.rpc = rpc
        self.w3 = AsyncWeb3(AsyncHTTPProvider(rpc, request_kwargs={"timeout": 20}))
        self.contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(contract_address), abi=FLAT_DIRECTORY_ABI
        )
        self.account = self.w3.eth.account.from_key(private_key) if private_key else None
        self.address = self.account.address if self.account else None
        self._chain_id = None

    async def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = await self.w3.eth.chain_id
        return self._chain_id

    def _require_account(self):
        if self.account is None:
            raise RuntimeError("Private key is required for this operation.")
        return self.account

    async def get_nonce(self) -> int:
        self._require_account()
        return await self.w3.eth.get_transaction_count(self.address, "pending")

    async def get_fee_data(self) -> FeeData:
        block = await self.w3.eth.get_block("latest")
        base_fee = block.get("baseFeePerGas")
        if base_fee is None:
            return FeeData(max_fee_per_gas=None, max_priority_fee_per_gas=None)
        priority = await self.w3.eth.max_priority_fee
        return FeeData(max_fee_per_gas=base_fee * 2 + priority, max_priority_fee_per_gas=priority)

    async def get_excess_blob_gas(self) -> Optional[int]:
        block = await self.w3.eth.get_block("latest")
        return block.get("excessBlobGas")

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        params = dict(tx)
        if "blobVersionedHashes" in params:
            params["blobVersionedHashes"] = [Web3.to_hex(h) for h in params["blobVersionedHashes"]]
        return await self.w3.eth.estimate_gas(params)

    async def build_transaction(self, fn: str, *args, value: int = 0) -> Dict[str, Any]:
        account = self._require_account()
        return {
            "from": account.address,
            "to": self.contract.address,
            "data": self.contract.encode_abi(fn, args=list(args)),
            "value": value,
            "chainId": await self.chain_id(),
        }

    async def send_transaction(self, tx: Dict[str, Any], blobs: Optional[List[bytes]] = None) -> str:
        account = self._require_account()
        tx = dict(tx)
        # the signer derives versioned hashes, commitments and proofs from the blobs
        tx.pop("blobVersionedHashes", None)
        if blobs:
            tx["type"] = 3
            signed = account.sign_transaction(tx, blobs=blobs)
        else:
            tx.pop("maxFeePerBlobGas", None)
            signed = account.sign_transaction(tx)
        tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(tx_hash)

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Receipt]:
        try:
            receipt = await self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        if receipt.get("blockNumber") is None:
            return None
        return Receipt(
            tx_hash=tx_hash,
            status=receipt["status"],
            gas_used=receipt.get("gasUsed", 0),
            effective_gas_price=receipt.get("effectiveGasPrice", 0),
            blob_gas_used=receipt.get("blobGasUsed", 0),
            blob_gas_price=receipt.get("blobGasPrice", 0),
        )

    async def call(self, fn: str, *args) -> Any:
        function = getattr(self.contract.functions, fn)(*args)
        if self.address:
            return await function.call({"from": self.address})
        return await function.call()
