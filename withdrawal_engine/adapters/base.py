"""
Withdrawal Engine - Chain Adapter Base.

============================================================
PURPOSE
============================================================
Abstract interface for EVM chain adapters.

DESIGN PRINCIPLES:
- Chain-agnostic interface (balance, fees, submit, receipt)
- Clean separation from withdrawal logic
- Fully testable with mock adapters

All amounts crossing this interface are integers in wei.

============================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..types import (
    FeeEstimate,
    TransactionReceipt,
    TransferTransaction,
    SignerUnavailableError,
)


logger = logging.getLogger(__name__)


# ============================================================
# CHAIN ADAPTER INTERFACE
# ============================================================

class ChainAdapter(ABC):
    """
    Abstract base class for chain adapters.

    An adapter is one connection to one RPC endpoint. When it
    is constructed with a private key it is also the signer
    handle for that key; without one it is read-only.
    """

    @property
    @abstractmethod
    def rpc_url(self) -> str:
        """Endpoint this adapter talks to."""
        pass

    @property
    @abstractmethod
    def signer_address(self) -> Optional[str]:
        """Address of the bound signer, None for read-only adapters."""
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether connect() succeeded and disconnect() was not called."""
        pass

    # --------------------------------------------------------
    # CONNECTION
    # --------------------------------------------------------

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection and verify the endpoint answers."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection."""
        pass

    # --------------------------------------------------------
    # QUERIES
    # --------------------------------------------------------

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """
        Get the native balance of an address.

        Args:
            address: Account address

        Returns:
            Balance in wei
        """
        pass

    @abstractmethod
    async def get_fee_estimate(self) -> FeeEstimate:
        """
        Get the current EIP-1559 fee estimate.

        Fields the network cannot provide are None.
        """
        pass

    # --------------------------------------------------------
    # TRANSACTIONS
    # --------------------------------------------------------

    @abstractmethod
    async def send_transfer(self, tx: TransferTransaction) -> str:
        """
        Sign and broadcast a value transfer from the signer.

        Args:
            tx: Fully resolved transfer

        Returns:
            Transaction hash (0x-prefixed hex)
        """
        pass

    @abstractmethod
    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> TransactionReceipt:
        """
        Wait for inclusion of a transaction.

        Raises:
            ReceiptTimeoutError: not included within timeout
        """
        pass

    # --------------------------------------------------------
    # HELPERS
    # --------------------------------------------------------

    def require_signer(self) -> str:
        """Return the signer address or raise for read-only adapters."""
        address = self.signer_address
        if address is None:
            raise SignerUnavailableError(f"Adapter for {self.rpc_url} has no signer")
        return address

    async def get_signer_balance(self) -> int:
        """Balance of the bound signer in wei."""
        return await self.get_balance(self.require_signer())
