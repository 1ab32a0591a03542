"""
Blob and execution gas pricing.

All arithmetic is on Python ints; a float anywhere in here could round a
fee down and leave a transaction under-priced.
"""
import asyncio

from loguru import logger

from .constants import (
    BLOB_BASE_FEE_UPDATE_FRACTION, DEFAULT_FEE_BUMP_PERCENT, MIN_BASE_FEE_PER_BLOB_GAS
)
from .errors import EstimationError
from .types import FeeData, TxFees


def fake_exponential(factor: int, numerator: int, denominator: int) -> int:
    """Integer approximation of factor * e ** (numerator / denominator)."""
    i = 1
    output = 0
    accum = factor * denominator
    while accum > 0:
        output += accum
        accum = (accum * numerator) // (denominator * i)
        i += 1
    return output // denominator


def blob_base_fee(excess_blob_gas: int) -> int:
    return fake_exponential(MIN_BASE_FEE_PER_BLOB_GAS, excess_blob_gas, BLOB_BASE_FEE_UPDATE_FRACTION)


def bump(value: int, percent: int) -> int:
    return value * (100 + percent) // 100


class GasPriceEstimator:
    def __init__(self, chain, fee_bump_percent: int = DEFAULT_FEE_BUMP_PERCENT):
        self.chain = chain
        self.fee_bump_percent = fee_bump_percent

    async def blob_gas_price(self) -> int:
        """Current blob base fee with the safety bump applied."""
        try:
            excess = await self.chain.get_excess_blob_gas()
        except Exception as e:
            raise EstimationError(f"cannot read excess blob gas: {e}") from e
        if excess is None:
            raise EstimationError("Block has no excessBlobGas")
        return bump(blob_base_fee(int(excess)), self.fee_bump_percent)

    async def fee_data(self) -> FeeData:
        try:
            fee = await self.chain.get_fee_data()
        except Exception as e:
            raise EstimationError(f"cannot read fee data: {e}") from e
        if fee.max_fee_per_gas is None or fee.max_priority_fee_per_gas is None:
            raise EstimationError("chain returned no EIP-1559 fee data")
        return FeeData(
            max_fee_per_gas=bump(fee.max_fee_per_gas, self.fee_bump_percent),
            max_priority_fee_per_gas=bump(fee.max_priority_fee_per_gas, self.fee_bump_percent),
        )

    async def quote(self) -> TxFees:
        fee, blob_price = await asyncio.gather(self.fee_data(), self.blob_gas_price())
        logger.debug(
            f"Fee quote: maxFeePerGas={fee.max_fee_per_gas} "
            f"priority={fee.max_priority_fee_per_gas} blob={blob_price}"
        )
        return TxFees(
            max_fee_per_gas=fee.max_fee_per_gas,
            max_priority_fee_per_gas=fee.max_priority_fee_per_gas,
            max_fee_per_blob_gas=blob_price,
        )

    async def gas_limit(self, tx: dict) -> int:
        try:
            limit = await self.chain.estimate_gas(tx)
        except Exception as e:
            raise EstimationError(f"estimateGas: {e}") from e
        if not limit:
            raise EstimationError("estimateGas: execution reverted")
        return int(limit)
