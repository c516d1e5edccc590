"""
Withdrawal Engine - Alerting.

============================================================
PURPOSE
============================================================
Sends withdrawal notifications via Telegram.

ALERT TYPES:
- Withdrawal settled (telegram-notify strategy)
- Withdrawal failed (ERROR / CRITICAL codes)
- Signer unavailable

SAFETY REQUIREMENTS:
- Sending never raises into the request path
- Rate limiting to prevent spam
- Without credentials, alerts are logged instead

============================================================
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

import aiohttp

from .config import NotificationConfig
from .errors import get_error_info, ErrorSeverity


logger = logging.getLogger(__name__)


TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"


# ============================================================
# ALERT TYPES
# ============================================================

class AlertSeverity(Enum):
    """Alert severity levels."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AlertType(Enum):
    """Types of alerts."""

    WITHDRAWAL_SETTLED = "WITHDRAWAL_SETTLED"
    """Withdrawal confirmed on chain."""

    WITHDRAWAL_FAILED = "WITHDRAWAL_FAILED"
    """Withdrawal failed."""

    SIGNER_UNAVAILABLE = "SIGNER_UNAVAILABLE"
    """No RPC endpoint could load the signer."""


@dataclass
class Alert:
    """An alert to be sent."""

    alert_type: AlertType
    severity: AlertSeverity
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.utcnow)
    strategy_id: Optional[str] = None


_SEVERITY_EMOJI = {
    AlertSeverity.INFO: "ℹ️",
    AlertSeverity.WARNING: "⚠️",
    AlertSeverity.ERROR: "❌",
    AlertSeverity.CRITICAL: "🚨",
}


# ============================================================
# TELEGRAM NOTIFIER
# ============================================================

class TelegramNotifier:
    """
    Sends alerts via the Telegram Bot API.

    Features:
    - Rate limiting (alerts per minute)
    - Alert history
    - Log-only mode when credentials are missing
    """

    def __init__(
        self,
        config: Optional[NotificationConfig] = None,
        bot_token: Optional[str] = None,
        chat_id: Optional[str] = None,
    ):
        """
        Initialize notifier.

        Args:
            config: Notification configuration
            bot_token: Overrides the token environment variable
            chat_id: Overrides the chat id environment variable
        """
        self._config = config or NotificationConfig()

        self._bot_token = bot_token or os.environ.get(self._config.telegram_bot_token_env, "")
        self._chat_id = chat_id or os.environ.get(self._config.telegram_chat_id_env, "")

        self._alerts_this_minute: List[datetime] = []
        self._session: Optional[aiohttp.ClientSession] = None

        self._history: List[Alert] = []
        self._max_history = 100

    @property
    def is_configured(self) -> bool:
        """Check if Telegram is configured."""
        return bool(self._bot_token and self._chat_id)

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    # --------------------------------------------------------
    # PUBLIC API
    # --------------------------------------------------------

    async def notify_settled(
        self,
        strategy_id: str,
        destination: str,
        tx_hash: Optional[str],
        amount: Optional[Decimal],
    ) -> bool:
        """Announce a successful withdrawal."""
        return await self.send_alert(Alert(
            alert_type=AlertType.WITHDRAWAL_SETTLED,
            severity=AlertSeverity.INFO,
            message=f"Withdrawal Success! {amount} ETH sent to {destination}",
            details={"tx": tx_hash},
            strategy_id=strategy_id,
        ))

    async def notify_failure(
        self,
        strategy_id: str,
        error_code: Optional[str],
        error: Optional[str],
        tx_hash: Optional[str] = None,
    ) -> bool:
        """Alert on a failed withdrawal."""
        info = get_error_info(error_code)
        severity = (
            AlertSeverity.CRITICAL
            if info.severity == ErrorSeverity.CRITICAL
            else AlertSeverity.ERROR
        )
        alert_type = (
            AlertType.SIGNER_UNAVAILABLE
            if info.code == "SIGNER_UNAVAILABLE"
            else AlertType.WITHDRAWAL_FAILED
        )
        details: Dict[str, Any] = {"error_code": info.code}
        if tx_hash:
            details["tx"] = tx_hash
        return await self.send_alert(Alert(
            alert_type=alert_type,
            severity=severity,
            message=f"{strategy_id} failed: {error or info.description}",
            details=details,
            strategy_id=strategy_id,
        ))

    async def send_alert(self, alert: Alert) -> bool:
        """
        Send an alert.

        Returns:
            Whether the alert reached Telegram
        """
        if not self._config.enabled:
            return False

        self._history.append(alert)
        if len(self._history) > self._max_history:
            self._history.pop(0)

        if not self.is_configured:
            logger.info(f"[{alert.alert_type.value}] {alert.message} {alert.details}")
            return False

        if not self._can_send():
            logger.warning(f"Alert rate limited: {alert.message}")
            return False

        return await self._send_telegram(alert)

    def get_history(self, limit: int = 10) -> List[Alert]:
        """Get alert history."""
        return self._history[-limit:]

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    # --------------------------------------------------------
    # INTERNAL
    # --------------------------------------------------------

    async def _send_telegram(self, alert: Alert) -> bool:
        """Send alert via Telegram API."""
        try:
            if self._session is None:
                self._session = aiohttp.ClientSession(
                    timeout=aiohttp.ClientTimeout(total=self._config.request_timeout_seconds)
                )

            payload = {
                "chat_id": self._chat_id,
                "text": self._format_message(alert),
                "parse_mode": "HTML",
            }

            url = TELEGRAM_API_URL.format(token=self._bot_token)
            async with self._session.post(url, json=payload) as response:
                if response.status == 200:
                    self._record_sent()
                    logger.info(f"Alert sent: {alert.alert_type.value}")
                    return True
                body = await response.text()
                logger.error(f"Telegram API error {response.status}: {body}")
                return False

        except Exception as e:
            logger.error(f"Failed to send Telegram alert: {e}")
            return False

    def _format_message(self, alert: Alert) -> str:
        """Format alert message for Telegram."""
        emoji = _SEVERITY_EMOJI.get(alert.severity, "📢")
        lines = [
            f"{emoji} <b>{alert.alert_type.value}</b>",
            f"<b>Time:</b> {alert.timestamp.strftime('%Y-%m-%d %H:%M:%S')} UTC",
        ]
        if alert.strategy_id:
            lines.append(f"<b>Strategy:</b> {alert.strategy_id}")
        lines.extend(["", alert.message])

        for key, value in alert.details.items():
            if key == "tx" and value:
                lines.append(f"<b>TX:</b> <code>{value}</code>")
            else:
                lines.append(f"  • {key}: {value}")

        return "\n".join(lines)

    def _can_send(self) -> bool:
        """Check alerts-per-minute limit."""
        minute_ago = datetime.utcnow() - timedelta(minutes=1)
        self._alerts_this_minute = [t for t in self._alerts_this_minute if t > minute_ago]
        return len(self._alerts_this_minute) < self._config.max_alerts_per_minute

    def _record_sent(self) -> None:
        self._alerts_this_minute.append(datetime.utcnow())
