"""
Chain Adapter Tests.

============================================================
PURPOSE
============================================================
Unit tests for chain adapters and the connection manager.

TEST CATEGORIES:
- Factory tests: Adapter creation by URL scheme
- Web3 adapter tests: Fee estimate, signing, receipt mapping
- Connection manager tests: Failover, secondary reader
- Mock adapter tests: Balance and error simulation

============================================================
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_account import Account
from web3.exceptions import TimeExhausted

from withdrawal_engine.adapters import (
    DEFAULT_MOCK_SIGNER,
    AdapterFactory,
    ChainConnectionManager,
    MockChainAdapter,
    MockChainConfig,
    Web3ChainAdapter,
)
from withdrawal_engine.config import NetworkConfig
from withdrawal_engine.types import (
    ChainAdapterError,
    ReceiptTimeoutError,
    SignerUnavailableError,
    TransferTransaction,
    gwei,
)


TEST_KEY = "0x" + "11" * 32
DESTINATION = "0x" + "cd" * 20


async def _resolved(value):
    return value


def make_connected_web3_adapter(private_key=TEST_KEY) -> Web3ChainAdapter:
    adapter = Web3ChainAdapter("https://rpc.example", private_key=private_key)
    adapter._w3 = MagicMock()
    return adapter


# ============================================================
# FACTORY TESTS
# ============================================================

class TestAdapterFactory:
    """Tests for AdapterFactory."""

    def test_list_supported(self):
        supported = AdapterFactory.list_supported()

        assert "http" in supported
        assert "https" in supported
        assert "mock" in supported

    def test_create_web3_adapter(self):
        adapter = AdapterFactory.create("https://rpc.example", TEST_KEY)

        assert isinstance(adapter, Web3ChainAdapter)
        assert adapter.rpc_url == "https://rpc.example"
        assert adapter.signer_address == Account.from_key(TEST_KEY).address

    def test_create_read_only_adapter(self):
        adapter = AdapterFactory.create("https://rpc.example")

        assert adapter.signer_address is None
        with pytest.raises(SignerUnavailableError):
            adapter.require_signer()

    def test_create_mock_adapter(self):
        adapter = AdapterFactory.create("mock://dry-run", TEST_KEY)

        assert isinstance(adapter, MockChainAdapter)
        assert adapter.signer_address == DEFAULT_MOCK_SIGNER

    def test_unsupported_scheme(self):
        with pytest.raises(ValueError) as exc_info:
            AdapterFactory.create("ws://rpc.example")

        assert "Unsupported RPC URL scheme" in str(exc_info.value)


# ============================================================
# WEB3 ADAPTER TESTS
# ============================================================

class TestWeb3ChainAdapter:
    """Tests for Web3ChainAdapter with a stubbed AsyncWeb3."""

    def test_not_connected(self):
        adapter = Web3ChainAdapter("https://rpc.example", private_key=TEST_KEY)

        assert not adapter.is_connected
        with pytest.raises(ChainAdapterError):
            adapter.w3

    @pytest.mark.asyncio
    async def test_fee_estimate(self):
        adapter = make_connected_web3_adapter()
        adapter._w3.eth.get_block = AsyncMock(return_value={"baseFeePerGas": gwei(10)})
        adapter._w3.eth.max_priority_fee = _resolved(gwei(2))

        estimate = await adapter.get_fee_estimate()

        assert estimate.max_fee_per_gas == gwei(22)
        assert estimate.max_priority_fee_per_gas == gwei(2)

    @pytest.mark.asyncio
    async def test_fee_estimate_without_base_fee(self):
        adapter = make_connected_web3_adapter()
        adapter._w3.eth.get_block = AsyncMock(return_value={})
        adapter._w3.eth.max_priority_fee = _resolved(gwei(2))

        estimate = await adapter.get_fee_estimate()

        assert estimate.max_fee_per_gas is None
        assert estimate.max_priority_fee_per_gas == gwei(2)

    @pytest.mark.asyncio
    async def test_get_balance(self):
        adapter = make_connected_web3_adapter()
        adapter._w3.eth.get_balance = AsyncMock(return_value=12345)

        balance = await adapter.get_signer_balance()

        assert balance == 12345
        adapter._w3.eth.get_balance.assert_awaited_once_with(adapter.signer_address)

    @pytest.mark.asyncio
    async def test_send_transfer_signs_locally(self):
        adapter = make_connected_web3_adapter()
        adapter._w3.eth.get_transaction_count = AsyncMock(return_value=7)
        adapter._w3.eth.send_raw_transaction = AsyncMock(return_value=b"\x12" * 32)

        tx_hash = await adapter.send_transfer(TransferTransaction(
            to=DESTINATION,
            value_wei=10 ** 17,
            gas_limit=21000,
            max_fee_per_gas=gwei(20),
            max_priority_fee_per_gas=gwei(1),
        ))

        assert tx_hash == "0x" + "12" * 32
        adapter._w3.eth.get_transaction_count.assert_awaited_once_with(
            adapter.signer_address, "pending"
        )
        raw = adapter._w3.eth.send_raw_transaction.await_args.args[0]
        assert len(raw) > 0

    @pytest.mark.asyncio
    async def test_read_only_adapter_cannot_send(self):
        adapter = make_connected_web3_adapter(private_key=None)

        with pytest.raises(SignerUnavailableError):
            await adapter.send_transfer(TransferTransaction(
                to=DESTINATION,
                value_wei=1,
                gas_limit=21000,
                max_fee_per_gas=gwei(20),
                max_priority_fee_per_gas=gwei(1),
            ))

    @pytest.mark.asyncio
    async def test_receipt(self):
        adapter = make_connected_web3_adapter()
        adapter._w3.eth.wait_for_transaction_receipt = AsyncMock(
            return_value={"status": 1, "blockNumber": 100, "gasUsed": 21000}
        )

        receipt = await adapter.wait_for_receipt("0xabc", timeout=5)

        assert receipt.succeeded
        assert receipt.block_number == 100
        adapter._w3.eth.wait_for_transaction_receipt.assert_awaited_once_with("0xabc", timeout=5)

    @pytest.mark.asyncio
    async def test_receipt_timeout(self):
        adapter = make_connected_web3_adapter()
        adapter._w3.eth.wait_for_transaction_receipt = AsyncMock(
            side_effect=TimeExhausted("not in chain")
        )

        with pytest.raises(ReceiptTimeoutError) as exc_info:
            await adapter.wait_for_receipt("0xabc", timeout=5)

        assert exc_info.value.tx_hash == "0xabc"
        assert exc_info.value.error_code == "PENDING_UNCONFIRMED"


# ============================================================
# CONNECTION MANAGER TESTS
# ============================================================

class TestChainConnectionManager:
    """Tests for ChainConnectionManager."""

    def _manager(self, adapters):
        urls = list(adapters.keys())
        return ChainConnectionManager(
            NetworkConfig(rpc_urls=urls),
            TEST_KEY,
            adapter_creator=lambda url, key: adapters[url] if key else MockChainAdapter(
                signer_address=None, rpc_url=url
            ),
        )

    @pytest.mark.asyncio
    async def test_signer_reused(self):
        primary = MockChainAdapter(rpc_url="mock://a")
        manager = self._manager({"mock://a": primary, "mock://b": MockChainAdapter(rpc_url="mock://b")})

        first = await manager.get_signer()
        second = await manager.get_signer()

        assert first is second is primary
        assert manager.signer_address == DEFAULT_MOCK_SIGNER

    @pytest.mark.asyncio
    async def test_failover_to_next_endpoint(self):
        down = MockChainAdapter(rpc_url="mock://a")
        down.fail_on("connect")
        up = MockChainAdapter(rpc_url="mock://b")
        manager = self._manager({"mock://a": down, "mock://b": up})

        signer = await manager.get_signer()

        assert signer is up
        assert manager.primary_url == "mock://b"

    @pytest.mark.asyncio
    async def test_secondary_uses_next_endpoint(self):
        down = MockChainAdapter(rpc_url="mock://a")
        down.fail_on("connect")
        manager = self._manager({"mock://a": down, "mock://b": MockChainAdapter(rpc_url="mock://b")})

        await manager.get_signer()
        secondary = await manager.get_secondary_reader()

        # Wraps around to the first endpoint
        assert secondary.rpc_url == "mock://a"
        assert secondary.signer_address is None

    @pytest.mark.asyncio
    async def test_secondary_rebuilt_after_failover(self):
        first = MockChainAdapter(rpc_url="mock://a")
        manager = self._manager({
            "mock://a": first,
            "mock://b": MockChainAdapter(rpc_url="mock://b"),
            "mock://c": MockChainAdapter(rpc_url="mock://c"),
        })
        await manager.get_signer()
        stale = await manager.get_secondary_reader()
        assert stale.rpc_url == "mock://b"

        # Signer drops and fails over onto the secondary's endpoint
        await first.disconnect()
        first.fail_on("connect")
        await manager.get_signer()
        assert manager.primary_url == "mock://b"

        secondary = await manager.get_secondary_reader()

        assert secondary.rpc_url == "mock://c"
        assert not stale.is_connected

    @pytest.mark.asyncio
    async def test_secondary_never_shares_primary_endpoint(self):
        manager = self._manager({"mock://a": MockChainAdapter(rpc_url="mock://a")})
        await manager.get_signer()

        with pytest.raises(ChainAdapterError):
            await manager.get_secondary_reader()

    @pytest.mark.asyncio
    async def test_malformed_key_reports_signer_unavailable(self):
        manager = ChainConnectionManager(
            NetworkConfig(rpc_urls=["https://a.example", "https://b.example"]),
            "0xnot-a-key",
        )

        with pytest.raises(SignerUnavailableError):
            await manager.start()

    @pytest.mark.asyncio
    async def test_all_endpoints_down(self):
        adapters = {}
        for url in ("mock://a", "mock://b"):
            adapters[url] = MockChainAdapter(rpc_url=url)
            adapters[url].fail_on("connect")
        manager = self._manager(adapters)

        with pytest.raises(SignerUnavailableError) as exc_info:
            await manager.start()

        assert "FATAL: Failed to load signer" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_reconnects_after_stop(self):
        primary = MockChainAdapter(rpc_url="mock://a")
        manager = self._manager({"mock://a": primary})

        await manager.start()
        await manager.stop()
        assert not primary.is_connected

        await manager.get_signer()
        assert primary.is_connected


# ============================================================
# MOCK ADAPTER TESTS
# ============================================================

class TestMockChainAdapter:
    """Tests for MockChainAdapter."""

    @pytest.mark.asyncio
    async def test_send_debits_value_and_max_gas(self):
        adapter = MockChainAdapter(MockChainConfig(initial_balance_wei=10 ** 18))
        tx = TransferTransaction(
            to=DESTINATION,
            value_wei=10 ** 17,
            gas_limit=21000,
            max_fee_per_gas=gwei(20),
            max_priority_fee_per_gas=gwei(1),
        )

        tx_hash = await adapter.send_transfer(tx)
        receipt = await adapter.wait_for_receipt(tx_hash, timeout=1)

        assert receipt.succeeded
        assert await adapter.get_signer_balance() == 10 ** 18 - 10 ** 17 - 21000 * gwei(20)
        assert await adapter.get_balance(DESTINATION) == 10 ** 17

    @pytest.mark.asyncio
    async def test_send_rejects_overspend(self):
        adapter = MockChainAdapter(MockChainConfig(initial_balance_wei=10 ** 15))

        with pytest.raises(ChainAdapterError):
            await adapter.send_transfer(TransferTransaction(
                to=DESTINATION,
                value_wei=10 ** 15,
                gas_limit=21000,
                max_fee_per_gas=gwei(20),
                max_priority_fee_per_gas=gwei(1),
            ))
        assert adapter.submitted == []

    @pytest.mark.asyncio
    async def test_error_injection_and_clear(self):
        adapter = MockChainAdapter()
        adapter.fail_on("get_balance")

        with pytest.raises(ChainAdapterError):
            await adapter.get_signer_balance()

        adapter.clear_failures()
        assert await adapter.get_signer_balance() == 10 ** 18
