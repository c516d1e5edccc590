"""
Withdrawal Engine - Web3 Chain Adapter.

============================================================
PURPOSE
============================================================
EVM adapter over a JSON-RPC endpoint using web3.py's
AsyncWeb3 and an eth-account local signer.

- EIP-1559 fee estimate: 2 x base fee + priority fee
- Nonce taken from the pending block at submission time
- Receipt wait bounded by the caller's timeout

The private key never leaves the LocalAccount object and is
never logged.

============================================================
"""

import logging
from typing import Any, Dict, Optional

import aiohttp
from eth_account import Account
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import TimeExhausted

from ..types import (
    ChainAdapterError,
    FeeEstimate,
    ReceiptTimeoutError,
    TransactionReceipt,
    TransferTransaction,
)
from .base import ChainAdapter


logger = logging.getLogger(__name__)


class Web3ChainAdapter(ChainAdapter):
    """
    Chain adapter backed by web3.py.

    Works against any EVM JSON-RPC endpoint. Construct with a
    private key to obtain a signer handle.
    """

    def __init__(
        self,
        rpc_url: str,
        private_key: Optional[str] = None,
        chain_id: int = 1,
        request_timeout_seconds: float = 15.0,
    ):
        """
        Initialize adapter.

        Args:
            rpc_url: JSON-RPC endpoint
            private_key: Custodial key (None for read-only)
            chain_id: Expected chain id, verified on connect
            request_timeout_seconds: Per-request timeout
        """
        self._rpc_url = rpc_url
        self._account = Account.from_key(private_key) if private_key else None
        self._chain_id = chain_id
        self._request_timeout = request_timeout_seconds
        self._w3: Optional[AsyncWeb3] = None

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    @property
    def signer_address(self) -> Optional[str]:
        return self._account.address if self._account else None

    @property
    def is_connected(self) -> bool:
        return self._w3 is not None

    @property
    def w3(self) -> AsyncWeb3:
        if self._w3 is None:
            raise ChainAdapterError(f"Adapter for {self._rpc_url} is not connected")
        return self._w3

    # --------------------------------------------------------
    # CONNECTION
    # --------------------------------------------------------

    async def connect(self) -> None:
        provider = AsyncHTTPProvider(
            self._rpc_url,
            request_kwargs={"timeout": aiohttp.ClientTimeout(total=self._request_timeout)},
        )
        w3 = AsyncWeb3(provider)

        if not await w3.is_connected():
            raise ChainAdapterError(f"RPC endpoint {self._rpc_url} is not reachable")

        chain_id = await w3.eth.chain_id
        if chain_id != self._chain_id:
            raise ChainAdapterError(
                f"RPC endpoint {self._rpc_url} reports chain {chain_id}, expected {self._chain_id}"
            )

        self._w3 = w3
        logger.info(f"Connected to {self._rpc_url} (chain {chain_id})")

    async def disconnect(self) -> None:
        self._w3 = None
        logger.info(f"Disconnected from {self._rpc_url}")

    # --------------------------------------------------------
    # QUERIES
    # --------------------------------------------------------

    async def get_balance(self, address: str) -> int:
        return int(await self.w3.eth.get_balance(AsyncWeb3.to_checksum_address(address)))

    async def get_fee_estimate(self) -> FeeEstimate:
        block = await self.w3.eth.get_block("latest")
        base_fee = block.get("baseFeePerGas")
        priority_fee = int(await self.w3.eth.max_priority_fee)

        max_fee = None
        if base_fee is not None:
            max_fee = int(base_fee) * 2 + priority_fee

        return FeeEstimate(
            max_fee_per_gas=max_fee,
            max_priority_fee_per_gas=priority_fee,
        )

    # --------------------------------------------------------
    # TRANSACTIONS
    # --------------------------------------------------------

    async def send_transfer(self, tx: TransferTransaction) -> str:
        if self._account is None:
            self.require_signer()

        sender = self._account.address
        nonce = await self.w3.eth.get_transaction_count(sender, "pending")

        payload: Dict[str, Any] = {
            "type": 2,
            "chainId": self._chain_id,
            "nonce": nonce,
            "to": AsyncWeb3.to_checksum_address(tx.to),
            "value": tx.value_wei,
            "gas": tx.gas_limit,
            "maxFeePerGas": tx.max_fee_per_gas,
            "maxPriorityFeePerGas": tx.max_priority_fee_per_gas,
        }

        signed = self._account.sign_transaction(payload)
        tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return AsyncWeb3.to_hex(tx_hash)

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> TransactionReceipt:
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except TimeExhausted as e:
            raise ReceiptTimeoutError(str(e), tx_hash=tx_hash) from e

        return TransactionReceipt(
            tx_hash=tx_hash,
            status=int(receipt["status"]),
            block_number=receipt.get("blockNumber"),
            gas_used=receipt.get("gasUsed"),
        )
