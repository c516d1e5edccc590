"""
Withdrawal Engine - Strategy Dispatcher.

============================================================
PURPOSE
============================================================
Maps a strategy id to its descriptor and runs it:

    authorization gate -> pre-check -> transfer(s)
        -> post-check -> message / side effect

PLAIN      one transfer
PRE_CHECK  primary and secondary balances must agree
           within tolerance, else zero submissions
POST_CHECK signer balance must drop after a success
SPLIT      amount / 3 to three destinations in order,
           stop at the first failed leg, no rollback

Side effects (ledger, notification, consolidation log) are
best effort: their failures are logged and never change
the transfer result.

============================================================
"""

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Dict, List, Optional, Union

from .adapters.factory import ChainConnectionManager
from .alerting import TelegramNotifier
from .authorization import DENIAL_MESSAGE, AuthorizationGate
from .config import WithdrawalEngineConfig
from .errors import describe
from .executor import TransferExecutor
from .ledger import WithdrawalLedger
from .strategies import (
    SPLIT_LEG_COUNT,
    SideEffect,
    StrategyDescriptor,
    build_strategy_registry,
)
from .types import (
    LedgerStatus,
    LegResult,
    SplitResult,
    StrategyKind,
    TransferResult,
    WithdrawalEngineError,
    wei_to_eth,
)


logger = logging.getLogger(__name__)


DispatchResult = Union[TransferResult, SplitResult]


class StrategyDispatcher:
    """
    Runs withdrawal strategies against the executor.
    """

    def __init__(
        self,
        connections: ChainConnectionManager,
        executor: TransferExecutor,
        config: WithdrawalEngineConfig,
        authorization_gate: AuthorizationGate,
        ledger: Optional[WithdrawalLedger] = None,
        notifier: Optional[TelegramNotifier] = None,
    ):
        """
        Initialize dispatcher.

        Args:
            connections: Signer / secondary reader provider
            executor: Balance-aware transfer executor
            config: Engine configuration
            authorization_gate: Gate for two-factor-auth
            ledger: Ledger for ledger-sync (log-only when None)
            notifier: Notifier for telegram-notify (log-only when None)
        """
        self._connections = connections
        self._executor = executor
        self._config = config
        self._authorization_gate = authorization_gate
        self._ledger = ledger
        self._notifier = notifier
        self._registry: Dict[str, StrategyDescriptor] = build_strategy_registry(
            config.transfer, config.fees
        )

    @property
    def strategy_ids(self) -> List[str]:
        return list(self._registry.keys())

    def get_descriptor(self, strategy_id: str) -> Optional[StrategyDescriptor]:
        return self._registry.get(strategy_id)

    # --------------------------------------------------------
    # DISPATCH
    # --------------------------------------------------------

    async def dispatch(
        self,
        strategy_id: str,
        amount: Decimal,
        destination: str,
        aux_destination: Optional[str] = None,
    ) -> DispatchResult:
        """
        Run a strategy.

        Args:
            strategy_id: One of the registered ids
            amount: ETH amount (0 = maximum safe amount)
            destination: Validated destination
            aux_destination: Second split destination

        Returns:
            TransferResult, or SplitResult for split strategies
        """
        descriptor = self._registry.get(strategy_id)
        if descriptor is None:
            logger.warning(f"Unknown strategy {strategy_id!r}")
            return TransferResult.failure("INVALID_STRATEGY", describe("INVALID_STRATEGY"))

        logger.info(f"[{strategy_id}] Executing {descriptor.label}")

        if descriptor.requires_authorization:
            if not await self._authorization_gate.authorize(strategy_id, destination):
                return TransferResult.failure("AUTHORIZATION_DENIED", DENIAL_MESSAGE)

        if descriptor.kind == StrategyKind.SPLIT:
            return await self._run_split(descriptor, amount, destination, aux_destination)

        target = destination
        if descriptor.destination_override and self._config.contract_address:
            target = self._config.contract_address

        try:
            signer = await self._connections.get_signer()
        except WithdrawalEngineError as e:
            logger.error(f"[{strategy_id}] {e}")
            return TransferResult.failure(e.error_code, str(e))

        if descriptor.kind == StrategyKind.PRE_CHECK:
            divergence = await self._check_balance_agreement(signer)
            if divergence is not None:
                return divergence

        if descriptor.side_effect == SideEffect.CONSOLIDATION_LOG:
            logger.info(
                f"[{strategy_id}] Simulated internal call: consolidation from "
                f"MEV contracts to treasury {signer.signer_address}"
            )

        ledger_entry = None
        if descriptor.side_effect == SideEffect.LEDGER:
            ledger_entry = self._open_ledger_entry(strategy_id, target, amount)

        if descriptor.kind == StrategyKind.POST_CHECK:
            result = await self._run_post_checked(signer, amount, target, descriptor)
        else:
            result = await self._executor.transfer(signer, amount, target, descriptor.overrides)

        if result.success and descriptor.success_message:
            result = replace(result, message=descriptor.format_message(target))

        if ledger_entry is not None:
            self._close_ledger_entry(ledger_entry, result)

        if descriptor.side_effect == SideEffect.NOTIFY and result.success:
            await self._notify(strategy_id, target, result)

        return result

    # --------------------------------------------------------
    # STRATEGY KINDS
    # --------------------------------------------------------

    async def _check_balance_agreement(self, signer) -> Optional[TransferResult]:
        """Return a failure result when primary and secondary balances diverge."""
        try:
            secondary = await self._connections.get_secondary_reader()
            address = signer.require_signer()
            primary_balance = await signer.get_balance(address)
            secondary_balance = await secondary.get_balance(address)
        except Exception as e:
            logger.error(f"Pre-flight balance check failed: {e}")
            return TransferResult.failure("NETWORK_FAILURE", str(e))

        difference = abs(primary_balance - secondary_balance)
        if difference > self._config.transfer.divergence_tolerance_wei:
            logger.error(
                f"Balance divergence {difference} wei between "
                f"{signer.rpc_url} and {secondary.rpc_url}"
            )
            return TransferResult.failure(
                "BALANCE_DIVERGENCE",
                describe("BALANCE_DIVERGENCE"),
                balance=wei_to_eth(primary_balance),
            )
        return None

    async def _run_post_checked(
        self,
        signer,
        amount: Decimal,
        target: str,
        descriptor: StrategyDescriptor,
    ) -> TransferResult:
        try:
            initial_balance = await signer.get_signer_balance()
        except Exception as e:
            logger.error(f"Initial balance read failed: {e}")
            return TransferResult.failure("NETWORK_FAILURE", str(e))

        result = await self._executor.transfer(signer, amount, target, descriptor.overrides)
        if not result.success:
            return result

        try:
            final_balance = await signer.get_signer_balance()
        except Exception as e:
            logger.error(f"Post-transfer balance read failed for {result.tx_hash}: {e}")
            return TransferResult.failure(
                "POST_TRANSFER_VALIDATION_FAILED",
                f"{describe('POST_TRANSFER_VALIDATION_FAILED')} {e}",
                tx_hash=result.tx_hash,
            )

        if final_balance >= initial_balance:
            logger.error(
                f"Balance did not drop after {result.tx_hash}: "
                f"{initial_balance} -> {final_balance} wei"
            )
            return TransferResult.failure(
                "POST_TRANSFER_VALIDATION_FAILED",
                describe("POST_TRANSFER_VALIDATION_FAILED"),
                tx_hash=result.tx_hash,
                balance=wei_to_eth(final_balance),
            )
        return result

    async def _run_split(
        self,
        descriptor: StrategyDescriptor,
        amount: Decimal,
        destination: str,
        aux_destination: Optional[str],
    ) -> DispatchResult:
        if amount <= 0:
            return TransferResult.failure(
                "INVALID_AMOUNT",
                f"{descriptor.strategy_id} requires a positive amount; "
                "a full-balance sweep is not supported for split withdrawals.",
            )

        payout = self._config.payout_wallet or destination
        destinations = [destination, aux_destination or payout, payout]
        per_leg = amount / SPLIT_LEG_COUNT

        legs: List[LegResult] = []
        for index, leg_destination in enumerate(destinations, start=1):
            try:
                signer = await self._connections.get_signer()
            except WithdrawalEngineError as e:
                result = TransferResult.failure(e.error_code, str(e))
            else:
                result = await self._executor.transfer(
                    signer, per_leg, leg_destination, descriptor.overrides
                )

            legs.append(LegResult(destination=leg_destination, result=result))
            if not result.success:
                logger.error(
                    f"[{descriptor.strategy_id}] Leg {index}/{SPLIT_LEG_COUNT} failed: "
                    f"{result.error_code}; stopping"
                )
                break

        return SplitResult(legs=legs, destinations=destinations)

    # --------------------------------------------------------
    # SIDE EFFECTS
    # --------------------------------------------------------

    def _open_ledger_entry(self, strategy_id: str, target: str, amount: Decimal):
        if self._ledger is None:
            logger.info(f"[{strategy_id}] Ledger entry (log only): {amount} ETH -> {target}")
            return None
        try:
            return self._ledger.open_entry(strategy_id, target, amount)
        except Exception as e:
            logger.error(f"[{strategy_id}] Could not open ledger entry: {e}")
            return None

    def _close_ledger_entry(self, entry, result: TransferResult) -> None:
        status = LedgerStatus.SETTLED if result.success else LedgerStatus.FAILED
        try:
            self._ledger.close_entry(
                entry.entry_id,
                status,
                tx_hash=result.tx_hash,
                sent_amount=result.sent_amount,
                error_code=result.error_code,
                error=result.error,
            )
        except Exception as e:
            logger.error(f"Could not close ledger entry {entry.entry_id}: {e}")

    async def _notify(self, strategy_id: str, target: str, result: TransferResult) -> None:
        if self._notifier is None:
            logger.info(f"[{strategy_id}] Withdrawal Success! {result.tx_hash}")
            return
        try:
            await self._notifier.notify_settled(
                strategy_id, target, result.tx_hash, result.sent_amount
            )
        except Exception as e:
            logger.error(f"[{strategy_id}] Notification failed: {e}")
