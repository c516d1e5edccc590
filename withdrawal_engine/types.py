"""
Withdrawal Engine - Types.

============================================================
PURPOSE
============================================================
Core types for treasury withdrawals.

- Requests and gas overrides (INPUT)
- Fee estimates and receipts (CHAIN)
- Transfer and split results (OUTPUT)
- Exception hierarchy

Results are immutable. Once a transfer result reports
success, its transaction hash is the settlement record and
is never rewritten; derived results are built with
dataclasses.replace().

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_DOWN, Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


# ============================================================
# UNITS
# ============================================================

WEI_PER_ETH = Decimal(10) ** 18
WEI_PER_GWEI = 10 ** 9
WEI_QUANTUM = Decimal(1) / WEI_PER_ETH


def eth_to_wei(amount: Decimal) -> int:
    """Convert an ETH amount to wei, truncating below 1 wei."""
    return int((amount * WEI_PER_ETH).to_integral_value(rounding=ROUND_DOWN))


def wei_to_eth(value: int) -> Decimal:
    """Convert wei to an exact ETH Decimal."""
    return Decimal(value) / WEI_PER_ETH


def gwei(value: int) -> int:
    """Gwei to wei."""
    return value * WEI_PER_GWEI


# ============================================================
# ENUMS
# ============================================================

class StrategyKind(Enum):
    """Behavioral class of a withdrawal strategy."""

    PLAIN = "PLAIN"
    """Single transfer, optional overrides and message."""

    PRE_CHECK = "PRE_CHECK"
    """Multi-connection balance agreement before transfer."""

    POST_CHECK = "POST_CHECK"
    """Balance must drop after a reported success."""

    SPLIT = "SPLIT"
    """Amount divided across three sequential legs."""


class LedgerStatus(Enum):
    """Status of a withdrawal ledger entry."""

    PENDING = "PENDING"
    SETTLED = "SETTLED"
    FAILED = "FAILED"


# ============================================================
# REQUEST TYPES
# ============================================================

@dataclass(frozen=True)
class TransferRequest:
    """
    Validated withdrawal request.

    amount of 0 means "maximum safe amount".
    """

    amount: Decimal
    """Requested ETH amount (0 = sweep)."""

    destination: str
    """Primary destination address."""

    aux_destination: Optional[str] = None
    """Secondary destination (split / consolidate only)."""


@dataclass(frozen=True)
class GasOverrides:
    """
    Strategy-level overrides for gas fields.

    None means "use the network estimate". Zero is a valid
    override (low-base-only sets the priority fee to 0).
    """

    gas_limit: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None


# ============================================================
# CHAIN TYPES
# ============================================================

@dataclass(frozen=True)
class FeeEstimate:
    """EIP-1559 fee estimate in wei per gas unit."""

    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None


@dataclass(frozen=True)
class TransferTransaction:
    """A fully resolved single-recipient value transfer."""

    to: str
    value_wei: int
    gas_limit: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int


@dataclass(frozen=True)
class TransactionReceipt:
    """Inclusion receipt for a submitted transaction."""

    tx_hash: str
    status: int
    block_number: Optional[int] = None
    gas_used: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1


# ============================================================
# RESULT TYPES
# ============================================================

@dataclass(frozen=True)
class TransferResult:
    """
    Outcome of one transfer attempt.

    This is the OUTPUT of the executor and of single-leg
    strategies.
    """

    success: bool
    """Whether the transfer settled."""

    tx_hash: Optional[str] = None
    """Transaction hash, when a transaction was submitted."""

    sent_amount: Optional[Decimal] = None
    """ETH amount sent."""

    sent_amount_fiat: Optional[Decimal] = None
    """Fiat value of the sent amount."""

    error: Optional[str] = None
    """Human-readable error."""

    error_code: Optional[str] = None
    """Error code from the error registry."""

    balance: Optional[Decimal] = None
    """Balance observed at transfer time (ETH)."""

    message: Optional[str] = None
    """Informational message attached by a strategy."""

    completed_at: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def failure(
        cls,
        error_code: str,
        error: str,
        tx_hash: Optional[str] = None,
        balance: Optional[Decimal] = None,
    ) -> "TransferResult":
        return cls(
            success=False,
            tx_hash=tx_hash,
            error=error,
            error_code=error_code,
            balance=balance,
        )

    @property
    def fiat_value(self) -> Decimal:
        return self.sent_amount_fiat or Decimal("0")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        if self.tx_hash is not None:
            data["txHash"] = self.tx_hash
        if self.sent_amount is not None:
            data["amountETH"] = str(self.sent_amount)
        if self.sent_amount_fiat is not None:
            data["amountUSD"] = f"{self.sent_amount_fiat:.2f}"
        if self.balance is not None:
            data["balanceETH"] = f"{self.balance:.6f}"
        if self.error is not None:
            data["error"] = self.error
            data["errorCode"] = self.error_code
        if self.message is not None:
            data["message"] = self.message
        return data


@dataclass(frozen=True)
class LegResult:
    """One leg of a split withdrawal."""

    destination: str
    result: TransferResult

    def to_dict(self) -> Dict[str, Any]:
        data = {"destination": self.destination}
        data.update(self.result.to_dict())
        return data


@dataclass(frozen=True)
class SplitResult:
    """
    Composite outcome of a split withdrawal.

    Legs are not rolled back. A failed leg leaves earlier legs
    settled and later destinations unsent; both lists are
    reported.
    """

    legs: List[LegResult]
    destinations: List[str]
    message: str = "Micro-split complete."

    @property
    def success(self) -> bool:
        return len(self.legs) == len(self.destinations) and all(
            leg.result.success for leg in self.legs
        )

    @property
    def settled_destinations(self) -> List[str]:
        return [leg.destination for leg in self.legs if leg.result.success]

    @property
    def unsent_destinations(self) -> List[str]:
        return self.destinations[len(self.legs):]

    @property
    def total_sent(self) -> Decimal:
        return sum(
            (leg.result.sent_amount or Decimal("0") for leg in self.legs if leg.result.success),
            Decimal("0"),
        )

    @property
    def fiat_value(self) -> Decimal:
        return sum(
            (leg.result.fiat_value for leg in self.legs if leg.result.success),
            Decimal("0"),
        )

    @property
    def failed_leg(self) -> Optional[LegResult]:
        for leg in self.legs:
            if not leg.result.success:
                return leg
        return None

    @property
    def error(self) -> Optional[str]:
        failed = self.failed_leg
        return failed.result.error if failed else None

    @property
    def error_code(self) -> Optional[str]:
        failed = self.failed_leg
        return failed.result.error_code if failed else None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "transactions": [leg.to_dict() for leg in self.legs],
            "totalAmountETH": str(self.total_sent),
            "totalAmountUSD": f"{self.fiat_value:.2f}",
            "settledDestinations": self.settled_destinations,
            "unsentDestinations": self.unsent_destinations,
        }
        if self.error is not None:
            data["error"] = self.error
            data["errorCode"] = self.error_code
        return data


# ============================================================
# EXCEPTIONS
# ============================================================

class WithdrawalEngineError(Exception):
    """Base exception for the Withdrawal Engine."""

    error_code: str = "NETWORK_FAILURE"

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
        }


class ValidationError(WithdrawalEngineError):
    """Request failed validation before any chain interaction."""
    pass


class ChainAdapterError(WithdrawalEngineError):
    """Chain communication error."""

    error_code = "NETWORK_FAILURE"


class ReceiptTimeoutError(ChainAdapterError):
    """Transaction submitted but not included within the timeout."""

    error_code = "PENDING_UNCONFIRMED"

    def __init__(self, message: str, tx_hash: str):
        super().__init__(message)
        self.tx_hash = tx_hash


class SignerUnavailableError(ChainAdapterError):
    """No signer connection could be established."""

    error_code = "SIGNER_UNAVAILABLE"


class ConfigurationError(WithdrawalEngineError):
    """Invalid or missing configuration. Fatal at startup."""

    error_code = "CONFIGURATION_ERROR"
