"""
Chain Adapter Factory and Connection Manager.

============================================================
PURPOSE
============================================================
Creates chain adapters and owns the signer handle.

FEATURES:
- Adapter creation by RPC URL scheme
- RPC failover across the configured endpoint list
- Signer handle created once, reused across requests
- Independent secondary connection for divergence checks
- Explicit start()/stop() lifecycle

============================================================
USAGE
============================================================
```python
manager = ChainConnectionManager(config.network, config.private_key)
await manager.start()
signer = await manager.get_signer()
reader = await manager.get_secondary_reader()
await manager.stop()
```

============================================================
"""

import logging
from typing import Callable, Dict, List, Optional, Type
from urllib.parse import urlparse

from ..config import NetworkConfig
from ..types import ChainAdapterError, SignerUnavailableError
from .base import ChainAdapter
from .mock import DEFAULT_MOCK_SIGNER, MockChainAdapter
from .web3_adapter import Web3ChainAdapter


logger = logging.getLogger(__name__)


AdapterCreator = Callable[[str, Optional[str]], ChainAdapter]


# ============================================================
# ADAPTER FACTORY
# ============================================================

class AdapterFactory:
    """
    Factory for creating chain adapters.

    The URL scheme selects the adapter class; "mock" creates
    an in-memory adapter for tests and dry runs.
    """

    _registry: Dict[str, Type[ChainAdapter]] = {
        "http": Web3ChainAdapter,
        "https": Web3ChainAdapter,
        "mock": MockChainAdapter,
    }

    @classmethod
    def list_supported(cls) -> List[str]:
        """List supported URL schemes."""
        return list(cls._registry.keys())

    @classmethod
    def create(
        cls,
        rpc_url: str,
        private_key: Optional[str] = None,
        network: Optional[NetworkConfig] = None,
    ) -> ChainAdapter:
        """
        Create an adapter for an endpoint.

        Args:
            rpc_url: Endpoint URL
            private_key: Signer key (None for read-only)
            network: Network settings

        Raises:
            ValueError: If the URL scheme is unsupported
        """
        scheme = urlparse(rpc_url).scheme.lower()
        adapter_class = cls._registry.get(scheme)
        if adapter_class is None:
            raise ValueError(
                f"Unsupported RPC URL scheme: {scheme!r}. "
                f"Supported: {cls.list_supported()}"
            )

        if adapter_class is MockChainAdapter:
            return MockChainAdapter(
                rpc_url=rpc_url,
                signer_address=DEFAULT_MOCK_SIGNER if private_key else None,
            )

        network = network or NetworkConfig()
        return Web3ChainAdapter(
            rpc_url,
            private_key=private_key,
            chain_id=network.chain_id,
            request_timeout_seconds=network.request_timeout_seconds,
        )


# ============================================================
# CONNECTION MANAGER
# ============================================================

class ChainConnectionManager:
    """
    Owns the process-wide signer handle.

    The signer connects lazily through the endpoint list in
    order; the first endpoint that answers becomes primary.
    The secondary reader uses the next endpoint in the list so
    its balance reads are independent of the primary.
    """

    def __init__(
        self,
        network: NetworkConfig,
        private_key: str,
        adapter_creator: Optional[AdapterCreator] = None,
    ):
        """
        Initialize connection manager.

        Args:
            network: Network configuration (endpoint list)
            private_key: Custodial key
            adapter_creator: Override for adapter construction (tests)
        """
        self._network = network
        self._private_key = private_key
        self._create = adapter_creator or (
            lambda url, key: AdapterFactory.create(url, key, network)
        )

        self._signer: Optional[ChainAdapter] = None
        self._secondary: Optional[ChainAdapter] = None
        self._primary_index = 0

    @property
    def signer_address(self) -> Optional[str]:
        return self._signer.signer_address if self._signer else None

    @property
    def primary_url(self) -> Optional[str]:
        return self._signer.rpc_url if self._signer else None

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def start(self) -> None:
        """Connect the signer. Raises SignerUnavailableError if no endpoint answers."""
        await self.get_signer()

    async def stop(self) -> None:
        """Disconnect all connections."""
        for adapter in (self._signer, self._secondary):
            if adapter is not None and adapter.is_connected:
                await adapter.disconnect()
        self._signer = None
        self._secondary = None

    # --------------------------------------------------------
    # HANDLES
    # --------------------------------------------------------

    async def get_signer(self) -> ChainAdapter:
        """
        Get the connected signer handle.

        Reuses the existing handle; reconnects with failover if
        it was dropped.
        """
        if self._signer is not None and self._signer.is_connected:
            return self._signer

        urls = self._network.rpc_urls
        last_error: Optional[Exception] = None

        for offset in range(len(urls)):
            index = (self._primary_index + offset) % len(urls)
            try:
                adapter = self._create(urls[index], self._private_key)
                await adapter.connect()
            except Exception as e:
                logger.warning(f"RPC endpoint {urls[index]} unavailable: {e}")
                last_error = e
                continue

            self._signer = adapter
            self._primary_index = index
            logger.info(f"Signer {adapter.signer_address} connected via {urls[index]}")
            return adapter

        raise SignerUnavailableError(
            f"FATAL: Failed to load signer. No RPC endpoint reachable (last error: {last_error})"
        )

    async def get_secondary_reader(self) -> ChainAdapter:
        """
        Get a read-only connection on the endpoint after the primary.

        Rebuilt when a signer failover moved the primary onto the
        secondary's endpoint. Never shares the primary's endpoint.

        Raises:
            ChainAdapterError: no independent endpoint is reachable
        """
        primary_url = self.primary_url
        if self._secondary is not None:
            if self._secondary.is_connected and self._secondary.rpc_url != primary_url:
                return self._secondary
            if self._secondary.is_connected:
                logger.info(f"Secondary reader on primary endpoint {primary_url}, rebuilding")
                await self._secondary.disconnect()
            self._secondary = None

        urls = self._network.rpc_urls
        last_error: Optional[Exception] = None

        for offset in range(1, len(urls) + 1):
            url = urls[(self._primary_index + offset) % len(urls)]
            if url == primary_url:
                continue
            try:
                adapter = self._create(url, None)
                await adapter.connect()
            except Exception as e:
                logger.warning(f"Secondary RPC endpoint {url} unavailable: {e}")
                last_error = e
                continue

            self._secondary = adapter
            return adapter

        raise ChainAdapterError(
            f"No independent RPC endpoint reachable for balance verification (last error: {last_error})"
        )
