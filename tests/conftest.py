"""
Shared fixtures for the treasury withdrawal tests.
"""

from dataclasses import dataclass
from typing import Optional

import pytest

from withdrawal_engine.adapters import (
    DEFAULT_MOCK_SIGNER,
    ChainConnectionManager,
    MockChainAdapter,
    MockChainConfig,
)
from withdrawal_engine.config import NetworkConfig, WithdrawalEngineConfig


TEST_PRIVATE_KEY = "0x" + "11" * 32


@dataclass
class MockChain:
    """Primary signer, independent secondary reader, and the manager over both."""

    primary: MockChainAdapter
    secondary: MockChainAdapter
    connections: ChainConnectionManager


@pytest.fixture
def config() -> WithdrawalEngineConfig:
    return WithdrawalEngineConfig.for_testing()


@pytest.fixture
def make_chain():
    """Factory for a mock chain: make_chain(balance_wei, secondary_balance_wei, **MockChainConfig)."""

    def _make(
        balance_wei: int = 10 ** 18,
        secondary_balance_wei: Optional[int] = None,
        **mock_options,
    ) -> MockChain:
        primary = MockChainAdapter(MockChainConfig(initial_balance_wei=balance_wei, **mock_options))
        secondary = MockChainAdapter(signer_address=None, rpc_url="mock://secondary")
        secondary.set_balance(
            DEFAULT_MOCK_SIGNER,
            balance_wei if secondary_balance_wei is None else secondary_balance_wei,
        )
        connections = ChainConnectionManager(
            NetworkConfig(rpc_urls=["mock://primary", "mock://secondary"]),
            TEST_PRIVATE_KEY,
            adapter_creator=lambda url, key: primary if key else secondary,
        )
        return MockChain(primary, secondary, connections)

    return _make
