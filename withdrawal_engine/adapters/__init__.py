"""
Withdrawal Engine - Adapters Package.

============================================================
PURPOSE
============================================================
Chain adapter implementations.

AVAILABLE ADAPTERS:
- Web3ChainAdapter: Any EVM JSON-RPC endpoint (web3.py)
- MockChainAdapter: For testing

UTILITIES:
- AdapterFactory: Create adapters by URL scheme
- ChainConnectionManager: Signer handle with RPC failover

============================================================
"""

from .base import ChainAdapter
from .factory import AdapterFactory, ChainConnectionManager
from .mock import DEFAULT_MOCK_SIGNER, MockChainAdapter, MockChainConfig
from .web3_adapter import Web3ChainAdapter


__all__ = [
    "ChainAdapter",
    "AdapterFactory",
    "ChainConnectionManager",
    "DEFAULT_MOCK_SIGNER",
    "MockChainAdapter",
    "MockChainConfig",
    "Web3ChainAdapter",
]
