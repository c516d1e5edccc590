"""
Withdrawal Engine - Configuration.

============================================================
PURPOSE
============================================================
All configuration for the Withdrawal Engine.

CRITICAL CONSTRAINTS:
- No automatic retries
- Bounded wait for transaction inclusion
- Service refuses to start without a signing key

============================================================
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from dotenv import load_dotenv

from .types import ConfigurationError, gwei


DEFAULT_RPC_URLS = [
    "https://ethereum-rpc.publicnode.com",
    "https://eth.drpc.org",
    "https://rpc.ankr.com/eth",
    "https://eth-mainnet.public.blastapi.io",
]


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def is_private_key(value: str) -> bool:
    """True for a 32-byte hex key, with or without the 0x prefix."""
    digits = value[2:] if value.lower().startswith("0x") else value
    if len(digits) != 64:
        return False
    try:
        int(digits, 16)
    except ValueError:
        return False
    return True


# ============================================================
# TRANSFER CONFIGURATION
# ============================================================

@dataclass
class TransferConfig:
    """
    Balance-aware transfer configuration.

    SAFETY: reserve and dust threshold keep a fee margin in
    the treasury and refuse worthless transfers.
    """

    default_gas_limit: int = 21000
    """Gas limit for a plain value transfer."""

    contract_call_gas_limit: int = 50000
    """Gas limit for the contract-call strategy."""

    timed_release_gas_limit: int = 75000
    """Gas limit for the timed-release strategy."""

    gas_reserve_eth: Decimal = Decimal("0.003")
    """Fixed safety margin kept in the treasury (ETH)."""

    dust_threshold_eth: Decimal = Decimal("0.000001")
    """Minimum amount worth sending (ETH)."""

    receipt_timeout_seconds: float = 180.0
    """Maximum wait for inclusion before reporting PENDING_UNCONFIRMED."""

    divergence_tolerance_wei: int = 1
    """Maximum primary/secondary balance difference for check-before."""


# ============================================================
# FEE CONFIGURATION
# ============================================================

@dataclass
class FeeConfig:
    """
    Fee defaults and strategy fee overrides (wei per gas).
    """

    fallback_max_fee_per_gas: int = gwei(50)
    """Used when the network fee estimate is unavailable."""

    fallback_max_priority_fee_per_gas: int = gwei(1)
    """Used when the network priority fee estimate is unavailable."""

    max_priority_fee_per_gas: int = gwei(100)
    """Tip used by the max-priority strategy."""

    low_base_priority_fee_per_gas: int = 0
    """Tip used by the low-base-only strategy."""


# ============================================================
# NETWORK CONFIGURATION
# ============================================================

@dataclass
class NetworkConfig:
    """
    Network connection configuration.
    """

    rpc_urls: List[str] = field(default_factory=lambda: list(DEFAULT_RPC_URLS))
    """JSON-RPC endpoints in failover order."""

    chain_id: int = 1
    """Expected chain id."""

    request_timeout_seconds: float = 15.0
    """Per-request RPC timeout."""


# ============================================================
# PRICING CONFIGURATION
# ============================================================

@dataclass
class PricingConfig:
    """
    Fiat conversion configuration.

    The static price is not a live feed.
    """

    eth_price: Decimal = Decimal("3450")
    """Static ETH price."""

    currency: str = "USD"
    """Fiat currency."""


# ============================================================
# AUTHORIZATION CONFIGURATION
# ============================================================

@dataclass
class AuthorizationConfig:
    """
    Two-factor gate configuration.
    """

    failure_probability: float = 0.1
    """Probability that the simulated gate denies a withdrawal."""


# ============================================================
# NOTIFICATION CONFIGURATION
# ============================================================

@dataclass
class NotificationConfig:
    """
    Telegram notification configuration.
    """

    enabled: bool = True
    """Whether notifications are enabled."""

    telegram_bot_token_env: str = "TELEGRAM_BOT_TOKEN"
    """Environment variable for Telegram bot token."""

    telegram_chat_id_env: str = "TELEGRAM_CHAT_ID"
    """Environment variable for Telegram chat ID."""

    max_alerts_per_minute: int = 10
    """Maximum alerts per minute."""

    request_timeout_seconds: float = 10.0
    """Timeout for the Telegram API call."""


# ============================================================
# STORAGE CONFIGURATION
# ============================================================

@dataclass
class StorageConfig:
    """
    Accounting and ledger storage configuration.
    """

    database_url: str = "sqlite:///treasury.db"
    """SQLAlchemy database URL."""

    ephemeral: bool = False
    """Keep accounting in memory only (lost on restart)."""

    echo: bool = False
    """Log SQL statements."""


# ============================================================
# SERVER CONFIGURATION
# ============================================================

@dataclass
class ServerConfig:
    """
    HTTP server configuration.
    """

    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    log_format: str = "text"


# ============================================================
# MASTER CONFIGURATION
# ============================================================

@dataclass
class WithdrawalEngineConfig:
    """
    Master configuration for the Withdrawal Engine.
    """

    # Credentials
    private_key: str = ""
    """Custodial private key. Required."""

    payout_wallet: Optional[str] = None
    """Default payout destination."""

    contract_address: Optional[str] = None
    """Destination for contract-call / timed-release when set."""

    # Sub-configs
    transfer: TransferConfig = field(default_factory=TransferConfig)
    fees: FeeConfig = field(default_factory=FeeConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    authorization: AuthorizationConfig = field(default_factory=AuthorizationConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @classmethod
    def from_env(cls) -> "WithdrawalEngineConfig":
        """Load configuration from environment variables (and .env)."""
        load_dotenv()

        rpc_env = os.getenv("RPC_URLS")
        rpc_urls = (
            [url.strip() for url in rpc_env.split(",") if url.strip()]
            if rpc_env else list(DEFAULT_RPC_URLS)
        )

        return cls(
            private_key=os.getenv("TREASURY_PRIVATE_KEY", ""),
            payout_wallet=os.getenv("PAYOUT_WALLET") or None,
            contract_address=os.getenv("TREASURY_CONTRACT_ADDRESS") or None,
            transfer=TransferConfig(
                gas_reserve_eth=Decimal(os.getenv("GAS_RESERVE_ETH", "0.003")),
                dust_threshold_eth=Decimal(os.getenv("DUST_THRESHOLD_ETH", "0.000001")),
                receipt_timeout_seconds=float(os.getenv("RECEIPT_TIMEOUT_SECONDS", "180")),
            ),
            network=NetworkConfig(
                rpc_urls=rpc_urls,
                chain_id=int(os.getenv("CHAIN_ID", "1")),
                request_timeout_seconds=float(os.getenv("RPC_TIMEOUT_SECONDS", "15")),
            ),
            pricing=PricingConfig(
                eth_price=Decimal(os.getenv("ETH_PRICE_USD", "3450")),
            ),
            authorization=AuthorizationConfig(
                failure_probability=float(os.getenv("TWO_FACTOR_FAILURE_PROBABILITY", "0.1")),
            ),
            notifications=NotificationConfig(
                enabled=_env_bool("NOTIFICATIONS_ENABLED", "true"),
            ),
            storage=StorageConfig(
                database_url=os.getenv("TREASURY_DATABASE_URL", "sqlite:///treasury.db"),
                ephemeral=_env_bool("ACCOUNTING_EPHEMERAL", "false"),
            ),
            server=ServerConfig(
                host=os.getenv("HOST", "0.0.0.0"),
                port=int(os.getenv("PORT", "8080")),
                log_level=os.getenv("LOG_LEVEL", "INFO"),
                log_format=os.getenv("LOG_FORMAT", "text"),
            ),
        )

    @classmethod
    def for_testing(cls) -> "WithdrawalEngineConfig":
        """Get configuration for testing."""
        return cls(
            private_key="0x" + "11" * 32,
            payout_wallet="0x" + "ab" * 20,
            network=NetworkConfig(rpc_urls=["mock://primary", "mock://secondary"]),
            authorization=AuthorizationConfig(failure_probability=0.0),
            notifications=NotificationConfig(enabled=False),
            storage=StorageConfig(database_url="sqlite://", ephemeral=True),
            transfer=TransferConfig(receipt_timeout_seconds=1.0),
        )

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []
        if not self.private_key:
            errors.append("TREASURY_PRIVATE_KEY not set in environment variables.")
        elif not is_private_key(self.private_key):
            errors.append("TREASURY_PRIVATE_KEY must be 32 bytes of hex.")
        # Balance verification reads from an endpoint other than the signer's
        if len(set(self.network.rpc_urls)) < 2:
            errors.append("At least two distinct RPC URLs are required.")
        if not 0.0 <= self.authorization.failure_probability <= 1.0:
            errors.append("TWO_FACTOR_FAILURE_PROBABILITY must be between 0 and 1.")
        if self.transfer.receipt_timeout_seconds <= 0:
            errors.append("RECEIPT_TIMEOUT_SECONDS must be positive.")
        return errors

    def require_valid(self) -> None:
        """Raise ConfigurationError if the configuration is unusable."""
        errors = self.validate()
        if errors:
            raise ConfigurationError("; ".join(errors))
