"""
Transfer Executor Tests.

============================================================
PURPOSE
============================================================
Tests for the balance-aware transfer executor.

TEST CATEGORIES:
- Amount resolution: exact, capped, sweep, dust
- Fee resolution: estimate, fallback, overrides
- Outcomes: confirmed, reverted, unconfirmed, network failure
- Serialization of concurrent transfers

============================================================
"""

import asyncio
from decimal import Decimal

import pytest

from withdrawal_engine.adapters import MockChainAdapter, MockChainConfig
from withdrawal_engine.config import TransferConfig
from withdrawal_engine.executor import TransferExecutor
from withdrawal_engine.types import ChainAdapterError, FeeEstimate, GasOverrides, gwei


DESTINATION = "0x" + "cd" * 20

ONE_ETH = 10 ** 18
RESERVE = 3 * 10 ** 15
# 21000 gas at the mock's 20 gwei max fee
PLAIN_COST = 21000 * gwei(20)


def make_signer(balance_wei: int = ONE_ETH, **options) -> MockChainAdapter:
    return MockChainAdapter(MockChainConfig(initial_balance_wei=balance_wei, **options))


@pytest.fixture
def executor() -> TransferExecutor:
    return TransferExecutor(TransferConfig(receipt_timeout_seconds=1.0))


# ============================================================
# AMOUNT RESOLUTION
# ============================================================

class TestAmountResolution:
    """Tests for how much is sent."""

    @pytest.mark.asyncio
    async def test_exact_amount_is_sent(self, executor):
        """A requested amount within limits is sent exactly."""
        signer = make_signer()

        result = await executor.transfer(signer, Decimal("0.5"), DESTINATION)

        assert result.success
        assert result.sent_amount == Decimal("0.5")
        assert result.sent_amount_fiat == Decimal("1725.00")
        assert len(signer.submitted) == 1
        tx = signer.submitted[0]
        assert tx.value_wei == 5 * 10 ** 17
        assert tx.to == DESTINATION
        assert tx.gas_limit == 21000

    @pytest.mark.asyncio
    async def test_value_plus_fees_never_exceed_balance(self, executor):
        """Value plus worst-case gas plus reserve fits in the balance."""
        signer = make_signer()

        await executor.transfer(signer, Decimal("0.9"), DESTINATION)

        tx = signer.submitted[0]
        assert tx.value_wei + tx.gas_limit * tx.max_fee_per_gas + RESERVE <= ONE_ETH

    @pytest.mark.asyncio
    async def test_zero_amount_sweeps_to_reserve(self, executor):
        """Amount 0 sends everything except fees and reserve."""
        signer = make_signer()

        result = await executor.transfer(signer, Decimal("0"), DESTINATION)

        assert result.success
        assert signer.submitted[0].value_wei == ONE_ETH - PLAIN_COST - RESERVE
        assert await signer.get_signer_balance() == RESERVE

    @pytest.mark.asyncio
    async def test_amount_above_maximum_is_capped(self, executor):
        """A request larger than the safe maximum sends the maximum."""
        signer = make_signer()

        result = await executor.transfer(signer, Decimal("5"), DESTINATION)

        assert result.success
        assert signer.submitted[0].value_wei == ONE_ETH - PLAIN_COST - RESERVE

    @pytest.mark.asyncio
    async def test_amount_truncated_to_wei(self, executor):
        """Sub-wei digits are dropped."""
        signer = make_signer()

        await executor.transfer(signer, Decimal("0.1234567890123456789"), DESTINATION)

        assert signer.submitted[0].value_wei == 123456789012345678

    @pytest.mark.asyncio
    async def test_dust_amount_refused(self, executor):
        """Less than 0.000001 ETH available is INSUFFICIENT_FUNDS."""
        signer = make_signer(RESERVE + PLAIN_COST + 5 * 10 ** 11)

        result = await executor.transfer(signer, Decimal("0"), DESTINATION)

        assert not result.success
        assert result.error_code == "INSUFFICIENT_FUNDS"
        assert result.balance == Decimal("0.0034205")
        assert signer.submitted == []

    @pytest.mark.asyncio
    async def test_balance_below_reserve_refused(self, executor):
        """Balance under fees plus reserve sends nothing."""
        signer = make_signer(10 ** 15)

        result = await executor.transfer(signer, Decimal("0.0001"), DESTINATION)

        assert result.error_code == "INSUFFICIENT_FUNDS"
        assert result.tx_hash is None
        assert signer.submitted == []


# ============================================================
# FEE RESOLUTION
# ============================================================

class TestFeeResolution:
    """Tests for gas fields on the submitted transfer."""

    @pytest.mark.asyncio
    async def test_network_estimate_used(self, executor):
        signer = make_signer()

        await executor.transfer(signer, Decimal("0.1"), DESTINATION)

        tx = signer.submitted[0]
        assert tx.max_fee_per_gas == gwei(20)
        assert tx.max_priority_fee_per_gas == gwei(1)

    @pytest.mark.asyncio
    async def test_fallback_when_estimate_fails(self, executor):
        """Fee estimate failure falls back to 50 gwei / 1 gwei."""
        signer = make_signer(fee_estimate_fails=True)

        result = await executor.transfer(signer, Decimal("0.1"), DESTINATION)

        assert result.success
        tx = signer.submitted[0]
        assert tx.max_fee_per_gas == gwei(50)
        assert tx.max_priority_fee_per_gas == gwei(1)

    @pytest.mark.asyncio
    async def test_fallback_per_missing_field(self, executor):
        """Only the missing field falls back."""
        signer = make_signer(fee_estimate=FeeEstimate(max_fee_per_gas=None, max_priority_fee_per_gas=gwei(2)))

        await executor.transfer(signer, Decimal("0.1"), DESTINATION)

        tx = signer.submitted[0]
        assert tx.max_fee_per_gas == gwei(50)
        assert tx.max_priority_fee_per_gas == gwei(2)

    @pytest.mark.asyncio
    async def test_zero_priority_override_honoured(self, executor):
        signer = make_signer()

        await executor.transfer(
            signer, Decimal("0.1"), DESTINATION, GasOverrides(max_priority_fee_per_gas=0)
        )

        tx = signer.submitted[0]
        assert tx.max_priority_fee_per_gas == 0
        assert tx.max_fee_per_gas == gwei(20)

    @pytest.mark.asyncio
    async def test_max_fee_raised_to_priority_fee(self, executor):
        """A priority override above the max fee lifts the max fee."""
        signer = make_signer()

        await executor.transfer(
            signer, Decimal("0.1"), DESTINATION, GasOverrides(max_priority_fee_per_gas=gwei(100))
        )

        tx = signer.submitted[0]
        assert tx.max_priority_fee_per_gas == gwei(100)
        assert tx.max_fee_per_gas == gwei(100)

    @pytest.mark.asyncio
    async def test_gas_limit_override_enters_cost(self, executor):
        """A 50000 gas limit reserves 50000 x max fee."""
        signer = make_signer()

        await executor.transfer(signer, Decimal("0"), DESTINATION, GasOverrides(gas_limit=50000))

        tx = signer.submitted[0]
        assert tx.gas_limit == 50000
        assert tx.value_wei == ONE_ETH - 50000 * gwei(20) - RESERVE


# ============================================================
# OUTCOMES
# ============================================================

class TestOutcomes:
    """Tests for receipt and error mapping."""

    @pytest.mark.asyncio
    async def test_reverted_transaction(self, executor):
        signer = make_signer(receipt_status=0)

        result = await executor.transfer(signer, Decimal("0.1"), DESTINATION)

        assert not result.success
        assert result.error_code == "TRANSACTION_REVERTED"
        assert result.tx_hash is not None

    @pytest.mark.asyncio
    async def test_unconfirmed_transaction(self, executor):
        """Inclusion timeout reports PENDING_UNCONFIRMED with the hash."""
        signer = make_signer(never_confirm=True)

        result = await executor.transfer(signer, Decimal("0.1"), DESTINATION)

        assert not result.success
        assert result.error_code == "PENDING_UNCONFIRMED"
        assert result.tx_hash is not None
        assert len(signer.submitted) == 1

    @pytest.mark.asyncio
    async def test_submission_failure(self, executor):
        signer = make_signer()
        signer.fail_on("send_transfer", ChainAdapterError("nonce too low"))

        result = await executor.transfer(signer, Decimal("0.1"), DESTINATION)

        assert result.error_code == "NETWORK_FAILURE"
        assert result.error == "nonce too low"
        assert result.tx_hash is None

    @pytest.mark.asyncio
    async def test_balance_read_failure(self, executor):
        signer = make_signer()
        signer.fail_on("get_balance")

        result = await executor.transfer(signer, Decimal("0.1"), DESTINATION)

        assert result.error_code == "NETWORK_FAILURE"
        assert signer.submitted == []

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_result(self, executor):
        signer = make_signer()
        signer.fail_on("wait_for_receipt", RuntimeError("connection reset"))

        result = await executor.transfer(signer, Decimal("0.1"), DESTINATION)

        assert not result.success
        assert result.error_code == "NETWORK_FAILURE"
        assert "connection reset" in result.error
        assert result.tx_hash is not None

    @pytest.mark.asyncio
    async def test_read_only_adapter_cannot_sign(self, executor):
        signer = MockChainAdapter(signer_address=None)

        result = await executor.transfer(signer, Decimal("0.1"), DESTINATION)

        assert result.error_code == "SIGNER_UNAVAILABLE"


# ============================================================
# CONCURRENCY
# ============================================================

class TestConcurrency:
    """Tests for serialized transfers."""

    @pytest.mark.asyncio
    async def test_concurrent_sweeps_do_not_overspend(self, executor):
        """The second sweep sees the first sweep's balance."""
        signer = make_signer(latency_seconds=0.01)

        results = await asyncio.gather(
            executor.transfer(signer, Decimal("0"), DESTINATION),
            executor.transfer(signer, Decimal("0"), DESTINATION),
        )

        assert [r.success for r in results].count(True) == 1
        failed = next(r for r in results if not r.success)
        assert failed.error_code == "INSUFFICIENT_FUNDS"
        assert len(signer.submitted) == 1
