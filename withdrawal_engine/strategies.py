"""
Withdrawal Engine - Strategy Registry.

============================================================
PURPOSE
============================================================
The twelve withdrawal strategies as data.

Every strategy is a variation of one balance-aware transfer:
- destination override (contract address, if configured)
- gas overrides (gas limit, priority fee)
- pre-check (multi-RPC balance agreement)
- post-check (balance must drop)
- three-way split
- authorization gate
- best-effort side effect (ledger, notification, log)
- informational success message

The dispatcher interprets descriptors; adding a strategy
means adding a descriptor, not a code path.

============================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

from .config import FeeConfig, TransferConfig
from .types import GasOverrides, StrategyKind


# Endpoint order
STRATEGY_IDS: Tuple[str, ...] = (
    "standard-eoa",
    "check-before",
    "check-after",
    "two-factor-auth",
    "contract-call",
    "timed-release",
    "micro-split-3",
    "consolidate-multi",
    "max-priority",
    "low-base-only",
    "ledger-sync",
    "telegram-notify",
)

# Strategies whose auxiliary destination defaults to the payout wallet
AUX_DESTINATION_STRATEGIES = frozenset({"micro-split-3", "consolidate-multi"})

SPLIT_LEG_COUNT = 3


class SideEffect(Enum):
    """Best-effort action around a transfer. Never alters its result."""

    NONE = "NONE"

    LEDGER = "LEDGER"
    """Write a PENDING ledger entry before, SETTLED/FAILED after."""

    NOTIFY = "NOTIFY"
    """Send a notification after a successful transfer."""

    CONSOLIDATION_LOG = "CONSOLIDATION_LOG"
    """Log the simulated pre-withdrawal consolidation."""


@dataclass(frozen=True)
class StrategyDescriptor:
    """
    Declarative description of a withdrawal strategy.
    """

    strategy_id: str

    kind: StrategyKind = StrategyKind.PLAIN

    overrides: GasOverrides = field(default_factory=GasOverrides)
    """Gas overrides passed to the executor."""

    destination_override: bool = False
    """Send to the configured contract address when one is set."""

    success_message: Optional[str] = None
    """Message attached on success; `{target}` is the actual recipient."""

    requires_authorization: bool = False
    """Consult the authorization gate before any chain call."""

    side_effect: SideEffect = SideEffect.NONE

    label: str = ""
    """Short log prefix."""

    def format_message(self, target: str) -> Optional[str]:
        if self.success_message is None:
            return None
        return self.success_message.format(target=target)


def build_strategy_registry(
    transfer_config: Optional[TransferConfig] = None,
    fee_config: Optional[FeeConfig] = None,
) -> Dict[str, StrategyDescriptor]:
    """
    Build the strategy registry from configuration.

    Returns:
        Mapping of strategy id to descriptor, in endpoint order
    """
    transfer_config = transfer_config or TransferConfig()
    fee_config = fee_config or FeeConfig()

    descriptors = [
        StrategyDescriptor(
            strategy_id="standard-eoa",
            label="Standard Direct EOA Transfer",
        ),
        StrategyDescriptor(
            strategy_id="check-before",
            kind=StrategyKind.PRE_CHECK,
            label="Pre-flight Check (Multi-RPC Balance)",
        ),
        StrategyDescriptor(
            strategy_id="check-after",
            kind=StrategyKind.POST_CHECK,
            label="Post-TX Balance Validation",
        ),
        StrategyDescriptor(
            strategy_id="two-factor-auth",
            requires_authorization=True,
            label="Second Signature/2FA Check",
        ),
        StrategyDescriptor(
            strategy_id="contract-call",
            overrides=GasOverrides(gas_limit=transfer_config.contract_call_gas_limit),
            destination_override=True,
            success_message=(
                "Simulated call to contract {target}. "
                "Final withdrawal must be manually triggered from contract."
            ),
            label="Contract Withdrawal",
        ),
        StrategyDescriptor(
            strategy_id="timed-release",
            overrides=GasOverrides(gas_limit=transfer_config.timed_release_gas_limit),
            destination_override=True,
            success_message=(
                "Funds sent to Timelock Contract. Will be released to "
                "Payout Wallet after a simulated delay."
            ),
            label="Timed-Release Withdrawal",
        ),
        StrategyDescriptor(
            strategy_id="micro-split-3",
            kind=StrategyKind.SPLIT,
            label="Micro-Split (3 transactions)",
        ),
        StrategyDescriptor(
            strategy_id="consolidate-multi",
            side_effect=SideEffect.CONSOLIDATION_LOG,
            success_message="Consolidation simulated successfully before final EOA transfer.",
            label="Pre-Withdrawal Consolidation",
        ),
        StrategyDescriptor(
            strategy_id="max-priority",
            overrides=GasOverrides(max_priority_fee_per_gas=fee_config.max_priority_fee_per_gas),
            label="Max Priority Withdrawal",
        ),
        StrategyDescriptor(
            strategy_id="low-base-only",
            overrides=GasOverrides(
                max_priority_fee_per_gas=fee_config.low_base_priority_fee_per_gas,
            ),
            label="Low Base Only Withdrawal",
        ),
        StrategyDescriptor(
            strategy_id="ledger-sync",
            side_effect=SideEffect.LEDGER,
            label="External Ledger Sync",
        ),
        StrategyDescriptor(
            strategy_id="telegram-notify",
            side_effect=SideEffect.NOTIFY,
            label="Telegram Notification",
        ),
    ]

    return {descriptor.strategy_id: descriptor for descriptor in descriptors}
