import asyncio

import pytest

from blobdir.errors import EstimationError
from blobdir.gas import GasPriceEstimator, blob_base_fee, bump, fake_exponential
from blobdir.types import FeeData


class TestFeeMath:
    def test_blob_base_fee_floor(self):
        """Test zero excess blob gas prices at the minimum"""
        assert blob_base_fee(0) == 1

    def test_fake_exponential(self):
        assert fake_exponential(1, 0, 3338477) == 1
        assert fake_exponential(1, 3338477, 3338477) == 2  # floor(e)
        assert fake_exponential(10, 3338477, 3338477) == 27

    def test_blob_base_fee_grows(self):
        assert blob_base_fee(10_000_000) > blob_base_fee(5_000_000) > blob_base_fee(0)

    def test_bump(self):
        """Test the safety bump stays in integers"""
        assert bump(100, 20) == 120
        assert bump(1, 20) == 1
        assert bump(7, 20) == 8
        assert bump(10 ** 30, 20) == 12 * 10 ** 29


class TestGasPriceEstimator:
    def test_quote(self, chain):
        """Test a quote carries bumped execution and blob fees"""
        chain.fee = FeeData(max_fee_per_gas=1000, max_priority_fee_per_gas=50)
        gas = GasPriceEstimator(chain)

        fees = asyncio.run(gas.quote())

        assert fees.max_fee_per_gas == 1200
        assert fees.max_priority_fee_per_gas == 60
        assert fees.max_fee_per_blob_gas == 1
        assert fees.as_tx_params() == {
            "maxFeePerGas": 1200,
            "maxPriorityFeePerGas": 60,
            "maxFeePerBlobGas": 1,
        }

    def test_custom_bump(self, chain):
        gas = GasPriceEstimator(chain, fee_bump_percent=0)

        fee = asyncio.run(gas.fee_data())

        assert fee.max_fee_per_gas == 100
        assert fee.max_priority_fee_per_gas == 10

    def test_missing_excess_blob_gas(self, chain):
        chain.excess_blob_gas = None
        gas = GasPriceEstimator(chain)

        with pytest.raises(EstimationError, match="excessBlobGas"):
            asyncio.run(gas.blob_gas_price())

    def test_missing_fee_data(self, chain):
        chain.fee = FeeData(max_fee_per_gas=None, max_priority_fee_per_gas=None)
        gas = GasPriceEstimator(chain)

        with pytest.raises(EstimationError):
            asyncio.run(gas.quote())

    def test_gas_limit(self, chain):
        gas = GasPriceEstimator(chain)

        assert asyncio.run(gas.gas_limit({"fn": "remove"})) == 50000

    def test_gas_limit_failure(self, chain):
        """Test a zero or failing estimate is an EstimationError"""
        gas = GasPriceEstimator(chain)

        chain.gas_estimate = 0
        with pytest.raises(EstimationError):
            asyncio.run(gas.gas_limit({}))

        async def broken(tx):
            raise RuntimeError("execution reverted")

        chain.estimate_gas = broken
        with pytest.raises(EstimationError, match="execution reverted"):
            asyncio.run(gas.gas_limit({}))
