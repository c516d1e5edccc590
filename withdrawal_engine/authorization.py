"""
Withdrawal Engine - Authorization Gate.

============================================================
PURPOSE
============================================================
Second-factor check for the two-factor-auth strategy.

The default gate is simulated: it denies a configurable
fraction of requests and approves the rest. A real factor
(TOTP, hardware key, approval service) plugs in through
AuthorizationGate.

============================================================
"""

import logging
import random
from abc import ABC, abstractmethod
from typing import Optional


logger = logging.getLogger(__name__)


DENIAL_MESSAGE = "2FA Timeout or Invalid Code."


class AuthorizationGate(ABC):
    """Approves or denies a withdrawal before any chain call."""

    @abstractmethod
    async def authorize(self, strategy_id: str, destination: str) -> bool:
        """Return True to let the withdrawal proceed."""
        pass


class SimulatedAuthorizationGate(AuthorizationGate):
    """
    Fixed-probability gate.

    Args:
        failure_probability: Chance of denial in [0, 1]
        rng: Random source (seed it in tests)
    """

    def __init__(self, failure_probability: float = 0.1, rng: Optional[random.Random] = None):
        if not 0.0 <= failure_probability <= 1.0:
            raise ValueError("failure_probability must be between 0 and 1")
        self._failure_probability = failure_probability
        self._rng = rng or random.Random()

    @property
    def failure_probability(self) -> float:
        return self._failure_probability

    async def authorize(self, strategy_id: str, destination: str) -> bool:
        denied = self._rng.random() < self._failure_probability
        if denied:
            logger.warning(f"[{strategy_id}] authorization denied for {destination}")
        else:
            logger.info(f"[{strategy_id}] authorization granted for {destination}")
        return not denied
