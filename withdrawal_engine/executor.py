"""
Withdrawal Engine - Balance-Aware Transfer Executor.

============================================================
PURPOSE
============================================================
Sends native funds from the treasury signer while always
leaving enough behind to pay for the transaction plus a
fixed safety reserve.

ALGORITHM:
1. Read signer balance B
2. Resolve fees (network estimate, per-field fallback,
   strategy overrides)
3. estimated_cost = gas_limit x max_fee_per_gas
4. max_sendable = B - estimated_cost - reserve
5. final = min(amount or max_sendable, max_sendable),
   truncated to wei
6. Refuse non-positive or dust amounts
7. Submit one EIP-1559 transfer, wait (bounded) for receipt

CRITICAL CONSTRAINTS:
- No retries
- One transfer in flight per executor (nonce safety)
- Every failure becomes a TransferResult, nothing raises

============================================================
"""

import asyncio
import logging
from decimal import Decimal
from typing import Optional

from .adapters.base import ChainAdapter
from .config import FeeConfig, TransferConfig
from .errors import describe
from .pricing import PriceOracle, StaticPriceOracle
from .types import (
    FeeEstimate,
    GasOverrides,
    ReceiptTimeoutError,
    TransferResult,
    TransferTransaction,
    WithdrawalEngineError,
    eth_to_wei,
    wei_to_eth,
)


logger = logging.getLogger(__name__)


class TransferExecutor:
    """
    Executes balance-aware value transfers.

    Transfers are serialized by an asyncio.Lock: the balance
    read, nonce assignment and inclusion wait of one transfer
    complete before the next begins.
    """

    def __init__(
        self,
        transfer_config: Optional[TransferConfig] = None,
        fee_config: Optional[FeeConfig] = None,
        price_oracle: Optional[PriceOracle] = None,
    ):
        """
        Initialize executor.

        Args:
            transfer_config: Gas limits, reserve, dust threshold, timeout
            fee_config: Fallback fees
            price_oracle: Fiat valuation source
        """
        self._transfer_config = transfer_config or TransferConfig()
        self._fee_config = fee_config or FeeConfig()
        self._price_oracle = price_oracle or StaticPriceOracle()
        self._lock = asyncio.Lock()

    @property
    def transfer_config(self) -> TransferConfig:
        return self._transfer_config

    # --------------------------------------------------------
    # TRANSFER
    # --------------------------------------------------------

    async def transfer(
        self,
        signer: ChainAdapter,
        amount: Decimal,
        destination: str,
        overrides: Optional[GasOverrides] = None,
    ) -> TransferResult:
        """
        Send `amount` ETH to `destination`.

        Args:
            signer: Connected signer handle
            amount: ETH to send; 0 sends the maximum safe amount
            destination: Recipient address
            overrides: Strategy gas overrides

        Returns:
            TransferResult (never raises)
        """
        async with self._lock:
            return await self._transfer(signer, amount, destination, overrides or GasOverrides())

    async def _transfer(
        self,
        signer: ChainAdapter,
        amount: Decimal,
        destination: str,
        overrides: GasOverrides,
    ) -> TransferResult:
        tx_hash: Optional[str] = None
        try:
            quote = await self._price_oracle.get_quote()
            balance_wei = await signer.get_signer_balance()
            tx = await self._build_transaction(signer, amount, destination, balance_wei, overrides)

            if tx is None:
                balance = wei_to_eth(balance_wei)
                logger.warning(
                    f"Refusing transfer of {amount} ETH to {destination}: "
                    f"INSUFFICIENT_FUNDS (balance {balance} ETH)"
                )
                return TransferResult.failure(
                    "INSUFFICIENT_FUNDS",
                    describe("INSUFFICIENT_FUNDS"),
                    balance=balance,
                )

            tx_hash = await signer.send_transfer(tx)
            sent = wei_to_eth(tx.value_wei)
            logger.info(f"Submitted {tx_hash}: {sent} ETH -> {destination}")

            receipt = await signer.wait_for_receipt(
                tx_hash, timeout=self._transfer_config.receipt_timeout_seconds
            )

            if not receipt.succeeded:
                logger.error(f"Transaction {tx_hash} reverted (block {receipt.block_number})")
                return TransferResult.failure(
                    "TRANSACTION_REVERTED",
                    describe("TRANSACTION_REVERTED"),
                    tx_hash=tx_hash,
                )

            logger.info(f"Transaction {tx_hash} confirmed in block {receipt.block_number}")
            return TransferResult(
                success=True,
                tx_hash=tx_hash,
                sent_amount=sent,
                sent_amount_fiat=quote.value_of(sent),
                balance=wei_to_eth(balance_wei),
            )

        except ReceiptTimeoutError as e:
            logger.error(f"Transaction {e.tx_hash} unconfirmed: {e}")
            return TransferResult.failure(
                "PENDING_UNCONFIRMED",
                describe("PENDING_UNCONFIRMED"),
                tx_hash=e.tx_hash,
            )
        except WithdrawalEngineError as e:
            logger.error(f"Transfer to {destination} failed: {e.error_code}: {e}")
            return TransferResult.failure(e.error_code, str(e), tx_hash=tx_hash)
        except Exception as e:
            logger.error(f"Transfer to {destination} failed: NETWORK_FAILURE: {e}", exc_info=True)
            return TransferResult.failure("NETWORK_FAILURE", str(e), tx_hash=tx_hash)

    # --------------------------------------------------------
    # HELPERS
    # --------------------------------------------------------

    async def resolve_fees(
        self,
        signer: ChainAdapter,
        overrides: GasOverrides,
    ) -> FeeEstimate:
        """
        Resolve max fee and priority fee.

        Network estimate first, per-field fallback when the
        estimate is missing, then strategy overrides.
        """
        try:
            estimate = await signer.get_fee_estimate()
        except Exception as e:
            logger.warning(f"Fee estimate unavailable, using defaults: {e}")
            estimate = FeeEstimate()

        max_fee = estimate.max_fee_per_gas
        if max_fee is None:
            max_fee = self._fee_config.fallback_max_fee_per_gas
        priority_fee = estimate.max_priority_fee_per_gas
        if priority_fee is None:
            priority_fee = self._fee_config.fallback_max_priority_fee_per_gas

        if overrides.max_fee_per_gas is not None:
            max_fee = overrides.max_fee_per_gas
        if overrides.max_priority_fee_per_gas is not None:
            priority_fee = overrides.max_priority_fee_per_gas

        # EIP-1559 requires max fee >= priority fee
        if priority_fee > max_fee:
            max_fee = priority_fee

        return FeeEstimate(max_fee_per_gas=max_fee, max_priority_fee_per_gas=priority_fee)

    async def _build_transaction(
        self,
        signer: ChainAdapter,
        amount: Decimal,
        destination: str,
        balance_wei: int,
        overrides: GasOverrides,
    ) -> Optional[TransferTransaction]:
        """Return the transfer to submit, or None when funds are insufficient."""
        config = self._transfer_config
        fees = await self.resolve_fees(signer, overrides)

        gas_limit = overrides.gas_limit if overrides.gas_limit is not None else config.default_gas_limit
        estimated_cost = gas_limit * fees.max_fee_per_gas
        max_sendable = balance_wei - estimated_cost - eth_to_wei(config.gas_reserve_eth)

        final = eth_to_wei(amount) if amount > 0 else max_sendable
        final = min(final, max_sendable)

        logger.debug(
            f"balance={balance_wei} cost={estimated_cost} "
            f"max_sendable={max_sendable} final={final}"
        )

        if final <= 0 or final < eth_to_wei(config.dust_threshold_eth):
            return None

        return TransferTransaction(
            to=destination,
            value_wei=final,
            gas_limit=gas_limit,
            max_fee_per_gas=fees.max_fee_per_gas,
            max_priority_fee_per_gas=fees.max_priority_fee_per_gas,
        )
