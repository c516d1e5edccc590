"""
Withdrawal Engine - Withdrawal Service.

============================================================
PURPOSE
============================================================
Request boundary for treasury withdrawals.

FLOW:
1. Validate amount and destination
2. Resolve defaults (payout wallet, auxiliary destination)
3. Dispatch the strategy
4. Update accounting for value that left the treasury
5. Alert on failures
6. Build the response body and HTTP status

Every failure on the request path becomes a structured
response. Only configuration errors are fatal, at startup.

============================================================
USAGE
============================================================
```python
service = WithdrawalService.from_config(WithdrawalEngineConfig.from_env())
await service.start()
response = await service.withdraw("standard-eoa", "0.5", "0x...")
await service.stop()
```

============================================================
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from web3 import Web3

from storage.database import Database, create_database

from .accounting import AccountingSnapshot, AccountingStore, InMemoryAccountingStore, SqlAccountingStore
from .adapters.factory import ChainConnectionManager
from .alerting import TelegramNotifier
from .authorization import AuthorizationGate, SimulatedAuthorizationGate
from .config import WithdrawalEngineConfig
from .dispatcher import DispatchResult, StrategyDispatcher
from .errors import ON_CHAIN_ERROR_CODES, describe, http_status_for, should_alert
from .executor import TransferExecutor
from .ledger import InMemoryWithdrawalLedger, SqlWithdrawalLedger, WithdrawalLedger
from .pricing import PriceOracle, StaticPriceOracle
from .strategies import AUX_DESTINATION_STRATEGIES
from .types import SignerUnavailableError, TransferRequest, ValidationError, wei_to_eth


logger = logging.getLogger(__name__)


NOT_FOUND_MESSAGE = "Endpoint not found. Check /status for available withdrawal methods."


@dataclass(frozen=True)
class ServiceResponse:
    """HTTP status and JSON body produced by the service."""

    status_code: int
    body: Dict[str, Any]


# ============================================================
# REQUEST VALIDATION
# ============================================================

def parse_amount(raw: Any) -> Decimal:
    """
    Parse a requested ETH amount.

    Missing or empty means 0 (maximum safe amount).

    Raises:
        ValidationError: INVALID_AMOUNT or NEGATIVE_AMOUNT
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return Decimal("0")
    if isinstance(raw, bool):
        raise ValidationError(describe("INVALID_AMOUNT"), "INVALID_AMOUNT")

    try:
        amount = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(describe("INVALID_AMOUNT"), "INVALID_AMOUNT")

    if not amount.is_finite():
        raise ValidationError(describe("INVALID_AMOUNT"), "INVALID_AMOUNT")
    if amount < 0:
        raise ValidationError(describe("NEGATIVE_AMOUNT"), "NEGATIVE_AMOUNT")
    return amount


def normalize_address(raw: Any) -> Optional[str]:
    """Checksummed address, or None when `raw` is not a valid address."""
    if not isinstance(raw, str) or not Web3.is_address(raw):
        return None
    return Web3.to_checksum_address(raw)


# ============================================================
# SERVICE
# ============================================================

class WithdrawalService:
    """
    Treasury withdrawal service.

    Owns the connection manager, executor, dispatcher,
    accounting store and notifier.
    """

    def __init__(
        self,
        config: WithdrawalEngineConfig,
        connections: ChainConnectionManager,
        accounting: AccountingStore,
        price_oracle: Optional[PriceOracle] = None,
        authorization_gate: Optional[AuthorizationGate] = None,
        ledger: Optional[WithdrawalLedger] = None,
        notifier: Optional[TelegramNotifier] = None,
        database: Optional[Database] = None,
    ):
        """
        Initialize service.

        Args:
            config: Engine configuration
            connections: Signer handle provider
            accounting: Accounting store
            price_oracle: Fiat price source (static by default)
            authorization_gate: Gate for two-factor-auth
            ledger: Ledger for ledger-sync
            notifier: Telegram notifier
            database: Database to dispose on stop()
        """
        self._config = config
        self._connections = connections
        self._accounting = accounting
        self._price_oracle = price_oracle or StaticPriceOracle(config.pricing)
        self._notifier = notifier
        self._database = database

        self._executor = TransferExecutor(config.transfer, config.fees, self._price_oracle)
        self._dispatcher = StrategyDispatcher(
            connections=connections,
            executor=self._executor,
            config=config,
            authorization_gate=authorization_gate or SimulatedAuthorizationGate(
                config.authorization.failure_probability
            ),
            ledger=ledger,
            notifier=notifier,
        )

        self._running = False

    @classmethod
    def from_config(cls, config: WithdrawalEngineConfig) -> "WithdrawalService":
        """
        Build a service and its collaborators from configuration.

        Raises:
            ConfigurationError: If the configuration is unusable
        """
        config.require_valid()

        database = None
        if config.storage.ephemeral:
            accounting: AccountingStore = InMemoryAccountingStore(currency=config.pricing.currency)
            ledger: WithdrawalLedger = InMemoryWithdrawalLedger()
        else:
            database = create_database(config.storage.database_url, echo=config.storage.echo)
            accounting = SqlAccountingStore(database, currency=config.pricing.currency)
            ledger = SqlWithdrawalLedger(database)

        return cls(
            config=config,
            connections=ChainConnectionManager(config.network, config.private_key),
            accounting=accounting,
            ledger=ledger,
            notifier=TelegramNotifier(config.notifications),
            database=database,
        )

    @property
    def config(self) -> WithdrawalEngineConfig:
        return self._config

    @property
    def strategy_ids(self) -> List[str]:
        return self._dispatcher.strategy_ids

    @property
    def dispatcher(self) -> StrategyDispatcher:
        return self._dispatcher

    @property
    def accounting(self) -> AccountingStore:
        return self._accounting

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def start(self) -> None:
        """Connect the signer. Requests retry the connection if this fails."""
        if self._running:
            return
        logger.info("Starting Withdrawal Service...")
        try:
            await self._connections.start()
        except SignerUnavailableError as e:
            logger.error(f"Signer not available at startup: {e}")
            if self._notifier is not None:
                await self._notifier.notify_failure("startup", e.error_code, str(e))
        self._running = True
        logger.info(f"Withdrawal Service started ({len(self.strategy_ids)} strategies)")

    async def stop(self) -> None:
        if not self._running:
            return
        logger.info("Stopping Withdrawal Service...")
        self._running = False
        await self._connections.stop()
        if self._notifier is not None:
            await self._notifier.close()
        if self._database is not None:
            self._database.dispose()
        logger.info("Withdrawal Service stopped")

    # --------------------------------------------------------
    # WITHDRAW
    # --------------------------------------------------------

    async def withdraw(
        self,
        strategy_id: str,
        amount: Any = None,
        destination: Any = None,
        aux_destination: Any = None,
    ) -> ServiceResponse:
        """
        Handle one withdrawal request.

        Args:
            strategy_id: Strategy id from the URL
            amount: Raw amount (string or number; missing = 0)
            destination: Raw destination (missing = payout wallet)
            aux_destination: Raw auxiliary destination

        Returns:
            ServiceResponse with HTTP status and body
        """
        if self._dispatcher.get_descriptor(strategy_id) is None:
            return ServiceResponse(404, {"error": NOT_FOUND_MESSAGE})

        try:
            target_amount = parse_amount(amount)
            target = normalize_address(destination or self._config.payout_wallet)
            if target is None:
                raise ValidationError(describe("INVALID_DESTINATION"), "INVALID_DESTINATION")
        except ValidationError as e:
            logger.warning(f"[{strategy_id}] Rejected request: {e.error_code}")
            return ServiceResponse(
                http_status_for(e.error_code),
                {
                    "success": False,
                    "message": e.message,
                    "data": {"success": False, "error": e.message, "errorCode": e.error_code},
                },
            )

        aux = normalize_address(aux_destination)
        if aux is None and strategy_id in AUX_DESTINATION_STRATEGIES:
            aux = normalize_address(self._config.payout_wallet)

        request = TransferRequest(amount=target_amount, destination=target, aux_destination=aux)
        result = await self._dispatcher.dispatch(
            strategy_id, request.amount, request.destination, request.aux_destination
        )

        if result.success:
            snapshot = self._record_withdrawn_value(strategy_id, result)
            logger.info(f"[{strategy_id}] successful: {result.fiat_value} withdrawn")
            body: Dict[str, Any] = {
                "success": True,
                "message": f"{strategy_id} successful.",
                "data": result.to_dict(),
            }
            if snapshot is not None:
                body["totalEarnings"] = f"{snapshot.total_earnings:.2f}"
            return ServiceResponse(200, body)

        logger.error(f"[{strategy_id}] failed: {result.error_code}: {result.error}")
        if result.fiat_value > 0:
            logger.warning(
                f"[{strategy_id}] {result.fiat_value} settled before the failure; accounting unchanged"
            )
        if should_alert(result.error_code) and self._notifier is not None:
            await self._notifier.notify_failure(
                strategy_id, result.error_code, result.error, self._failed_tx_hash(result)
            )

        return ServiceResponse(
            http_status_for(result.error_code),
            {"success": False, "message": f"{strategy_id} failed.", "data": result.to_dict()},
        )

    def _record_withdrawn_value(
        self,
        strategy_id: str,
        result: DispatchResult,
    ) -> Optional[AccountingSnapshot]:
        """
        Apply the value of a successful withdrawal to accounting.

        Returns None if the store could not be updated.
        """
        value = result.fiat_value
        try:
            if value > 0:
                return self._accounting.record_withdrawal(value)
            return self._accounting.snapshot()
        except Exception as e:
            logger.critical(
                f"[{strategy_id}] Accounting update of {value} failed after settlement: {e}",
                exc_info=True,
            )
            return None

    @staticmethod
    def _failed_tx_hash(result: DispatchResult) -> Optional[str]:
        if result.error_code not in ON_CHAIN_ERROR_CODES:
            return None
        failed = getattr(result, "failed_leg", None)
        if failed is not None:
            return failed.result.tx_hash
        return getattr(result, "tx_hash", None)

    # --------------------------------------------------------
    # STATUS / CREDIT
    # --------------------------------------------------------

    async def status(self) -> Dict[str, Any]:
        """
        Treasury status snapshot. Read-only.
        """
        quote = await self._price_oracle.get_quote()
        balance: Dict[str, Any]
        wallet = self._connections.signer_address
        try:
            signer = await self._connections.get_signer()
            wallet = signer.signer_address
            eth = wei_to_eth(await signer.get_signer_balance())
            balance = {"eth": f"{eth:.6f}", "usd": f"{quote.value_of(eth):.2f}"}
        except Exception as e:
            logger.warning(f"Treasury balance unavailable: {e}")
            balance = {"eth": None, "usd": None, "error": str(e)}

        return {
            "status": "Operational",
            "treasuryWallet": wallet,
            "balance": balance,
            "accounting": self._accounting.snapshot().to_dict(),
            "priceQuote": quote.to_dict(),
            "activeWithdrawalEndpoints": self.strategy_ids,
        }

    def liveness(self) -> Dict[str, Any]:
        return {
            "status": "Online",
            "message": f"Server online. {len(self.strategy_ids)} withdrawal endpoints active.",
        }

    def credit(self, amount_fiat: Any) -> ServiceResponse:
        """Record earnings in the accounting store."""
        try:
            value = parse_amount(amount_fiat)
        except ValidationError as e:
            return ServiceResponse(
                400, {"success": False, "message": e.message, "errorCode": e.error_code}
            )

        snapshot = self._accounting.record_earnings(value)
        logger.info(f"Credited {value} {snapshot.currency}; earnings now {snapshot.total_earnings}")
        return ServiceResponse(
            200,
            {"success": True, "accounting": snapshot.to_dict()},
        )
