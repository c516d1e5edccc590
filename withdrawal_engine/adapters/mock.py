"""
Withdrawal Engine - Mock Chain Adapter.

============================================================
PURPOSE
============================================================
Mock adapter for testing the withdrawal engine.

FEATURES:
- In-memory balances per address
- Configurable fee estimate and receipt status
- Configurable error injection per call
- Full submission log

============================================================
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..types import (
    ChainAdapterError,
    FeeEstimate,
    ReceiptTimeoutError,
    TransactionReceipt,
    TransferTransaction,
    gwei,
)
from .base import ChainAdapter


logger = logging.getLogger(__name__)


DEFAULT_MOCK_SIGNER = "0x" + "5a" * 20


# ============================================================
# MOCK CONFIGURATION
# ============================================================

@dataclass
class MockChainConfig:
    """Configuration for mock adapter."""

    # Initial state
    initial_balance_wei: int = 10 ** 18
    """Initial signer balance."""

    # Fees
    fee_estimate: FeeEstimate = field(
        default_factory=lambda: FeeEstimate(
            max_fee_per_gas=gwei(20),
            max_priority_fee_per_gas=gwei(1),
        )
    )
    """Fee estimate returned by get_fee_estimate()."""

    fee_estimate_fails: bool = False
    """Whether get_fee_estimate() raises."""

    # Receipt behavior
    receipt_status: int = 1
    """Status of receipts (1 = success, 0 = reverted)."""

    never_confirm: bool = False
    """Whether wait_for_receipt() times out."""

    deduct_on_send: bool = True
    """Whether a send lowers the signer balance."""

    # Latency simulation
    latency_seconds: float = 0.0
    """Simulated latency per call."""


# ============================================================
# MOCK CHAIN ADAPTER
# ============================================================

class MockChainAdapter(ChainAdapter):
    """
    Mock chain adapter for testing.

    Simulates:
    - Balance reads
    - Fee estimates
    - Transfers that debit value plus worst-case gas
    - Receipts, reverts and inclusion timeouts
    """

    def __init__(
        self,
        config: Optional[MockChainConfig] = None,
        signer_address: Optional[str] = DEFAULT_MOCK_SIGNER,
        rpc_url: str = "mock://primary",
    ):
        """
        Initialize mock adapter.

        Args:
            config: Mock configuration
            signer_address: Bound signer, None for read-only
            rpc_url: Name reported as the endpoint
        """
        self._config = config or MockChainConfig()
        self._signer_address = signer_address
        self._rpc_url = rpc_url
        self._connected = False

        # State
        self._balances: Dict[str, int] = {}
        if signer_address is not None:
            self._balances[signer_address.lower()] = self._config.initial_balance_wei

        self.submitted: List[TransferTransaction] = []
        self.balance_reads = 0
        self._receipts: Dict[str, TransactionReceipt] = {}

        # Error injection: call name -> exception
        self._failures: Dict[str, Exception] = {}

    @property
    def config(self) -> MockChainConfig:
        return self._config

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    @property
    def signer_address(self) -> Optional[str]:
        return self._signer_address

    @property
    def is_connected(self) -> bool:
        return self._connected

    # --------------------------------------------------------
    # TEST HOOKS
    # --------------------------------------------------------

    def set_balance(self, address: str, balance_wei: int) -> None:
        self._balances[address.lower()] = balance_wei

    def fail_on(self, call: str, error: Optional[Exception] = None) -> None:
        """Make every subsequent `call` raise (get_balance, send_transfer, ...)."""
        self._failures[call] = error or ChainAdapterError(f"Simulated {call} failure")

    def clear_failures(self) -> None:
        self._failures.clear()

    def _maybe_fail(self, call: str) -> None:
        error = self._failures.get(call)
        if error is not None:
            raise error

    async def _simulate_latency(self) -> None:
        await asyncio.sleep(self._config.latency_seconds)

    # --------------------------------------------------------
    # CONNECTION
    # --------------------------------------------------------

    async def connect(self) -> None:
        self._maybe_fail("connect")
        await self._simulate_latency()
        self._connected = True
        logger.info(f"MockChainAdapter connected ({self._rpc_url})")

    async def disconnect(self) -> None:
        self._connected = False
        logger.info(f"MockChainAdapter disconnected ({self._rpc_url})")

    # --------------------------------------------------------
    # QUERIES
    # --------------------------------------------------------

    async def get_balance(self, address: str) -> int:
        await self._simulate_latency()
        self._maybe_fail("get_balance")
        self.balance_reads += 1
        return self._balances.get(address.lower(), 0)

    async def get_fee_estimate(self) -> FeeEstimate:
        await self._simulate_latency()
        self._maybe_fail("get_fee_estimate")
        if self._config.fee_estimate_fails:
            raise ChainAdapterError("Fee data unavailable")
        return self._config.fee_estimate

    # --------------------------------------------------------
    # TRANSACTIONS
    # --------------------------------------------------------

    async def send_transfer(self, tx: TransferTransaction) -> str:
        await self._simulate_latency()
        self._maybe_fail("send_transfer")
        signer = self.require_signer().lower()

        max_cost = tx.value_wei + tx.gas_limit * tx.max_fee_per_gas
        if self._balances.get(signer, 0) < max_cost:
            raise ChainAdapterError("insufficient funds for gas * price + value")

        self.submitted.append(tx)
        tx_hash = "0x" + uuid.uuid4().hex + uuid.uuid4().hex

        if self._config.deduct_on_send and self._config.receipt_status == 1:
            self._balances[signer] -= max_cost
            self._balances[tx.to.lower()] = self._balances.get(tx.to.lower(), 0) + tx.value_wei
        elif self._config.deduct_on_send:
            # Reverted transfers still pay gas
            self._balances[signer] -= tx.gas_limit * tx.max_fee_per_gas

        self._receipts[tx_hash] = TransactionReceipt(
            tx_hash=tx_hash,
            status=self._config.receipt_status,
            block_number=len(self.submitted),
            gas_used=tx.gas_limit,
        )
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> TransactionReceipt:
        await self._simulate_latency()
        self._maybe_fail("wait_for_receipt")
        if self._config.never_confirm:
            raise ReceiptTimeoutError(
                f"Transaction {tx_hash} is not in the chain after {timeout} seconds",
                tx_hash=tx_hash,
            )
        receipt = self._receipts.get(tx_hash)
        if receipt is None:
            raise ChainAdapterError(f"Unknown transaction {tx_hash}")
        return receipt
