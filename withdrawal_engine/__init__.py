"""
Withdrawal Engine Package.

============================================================
PURPOSE
============================================================
Moves native funds from the custodial treasury wallet to
destination addresses through twelve named strategies.

CRITICAL PRINCIPLE:
    "Never send more than balance minus fees minus reserve."

AUTHORITY BOUNDARIES:
    CAN:
        - Read treasury balance
        - Submit value transfers
        - Update accounting totals

    MUST NOT:
        - Retry a failed transfer
        - Roll back settled split legs
        - Log the private key

============================================================
MODULES
============================================================
- types: Requests, results, exceptions
- config: Engine configuration
- errors: Error taxonomy and codes
- adapters: Chain adapters (web3.py, mock) and connections
- executor: Balance-aware transfer executor
- strategies: Strategy registry
- dispatcher: Strategy dispatcher
- authorization: Two-factor gate
- pricing: Price oracle
- accounting: Accounting stores
- ledger: Withdrawal ledger
- alerting: Telegram notifications
- service: Request boundary

============================================================
"""

from .accounting import (
    AccountingSnapshot,
    AccountingStore,
    InMemoryAccountingStore,
    SqlAccountingStore,
)
from .authorization import AuthorizationGate, SimulatedAuthorizationGate
from .config import WithdrawalEngineConfig
from .dispatcher import StrategyDispatcher
from .errors import ERROR_CODES, ErrorCategory, ErrorSeverity, get_error_info
from .executor import TransferExecutor
from .ledger import InMemoryWithdrawalLedger, SqlWithdrawalLedger, WithdrawalLedger
from .pricing import PriceOracle, PriceQuote, StaticPriceOracle
from .service import ServiceResponse, WithdrawalService
from .strategies import STRATEGY_IDS, StrategyDescriptor
from .types import (
    ConfigurationError,
    GasOverrides,
    SplitResult,
    TransferRequest,
    TransferResult,
    ValidationError,
    WithdrawalEngineError,
)


__all__ = [
    "AccountingSnapshot",
    "AccountingStore",
    "InMemoryAccountingStore",
    "SqlAccountingStore",
    "AuthorizationGate",
    "SimulatedAuthorizationGate",
    "WithdrawalEngineConfig",
    "StrategyDispatcher",
    "ERROR_CODES",
    "ErrorCategory",
    "ErrorSeverity",
    "get_error_info",
    "TransferExecutor",
    "InMemoryWithdrawalLedger",
    "SqlWithdrawalLedger",
    "WithdrawalLedger",
    "PriceOracle",
    "PriceQuote",
    "StaticPriceOracle",
    "ServiceResponse",
    "WithdrawalService",
    "STRATEGY_IDS",
    "StrategyDescriptor",
    "ConfigurationError",
    "GasOverrides",
    "SplitResult",
    "TransferRequest",
    "TransferResult",
    "ValidationError",
    "WithdrawalEngineError",
]
