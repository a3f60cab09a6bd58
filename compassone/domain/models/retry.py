"""Value Object representing retry backoff configuration."""

import random
from dataclasses import dataclass
from typing import Optional

from compassone.domain.errors import ConfigurationError

MIN_ATTEMPTS, MAX_ATTEMPTS = 1, 10
MIN_INITIAL_DELAY_S, MAX_INITIAL_DELAY_S = 1.0, 30.0
MAX_DELAY_CEILING_S = 30.0
JITTER_FRACTION = 0.5


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry settings, safe to share between concurrent requests.

    Attributes:
        max_attempts: Total attempts allowed, including the first one.
        initial_delay: Delay in seconds before the first retry.
        max_delay: Upper bound for any single inter-attempt delay.
        backoff_multiplier: Growth factor between consecutive delays.
        jitter: Whether to add random jitter in [0, delay * 0.5).
    """

    max_attempts: int = 3
    initial_delay: float = 2.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    jitter: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.max_attempts, bool) or not isinstance(self.max_attempts, int):
            raise ConfigurationError("max_attempts must be an integer", "max_attempts")
        if not MIN_ATTEMPTS <= self.max_attempts <= MAX_ATTEMPTS:
            raise ConfigurationError(
                f"max_attempts must be between {MIN_ATTEMPTS} and {MAX_ATTEMPTS}, got {self.max_attempts}",
                "max_attempts",
            )
        if not MIN_INITIAL_DELAY_S <= self.initial_delay <= MAX_INITIAL_DELAY_S:
            raise ConfigurationError(
                f"initial_delay must be between {MIN_INITIAL_DELAY_S:g} and {MAX_INITIAL_DELAY_S:g} seconds, "
                f"got {self.initial_delay}",
                "initial_delay",
            )
        if not self.initial_delay <= self.max_delay <= MAX_DELAY_CEILING_S:
            raise ConfigurationError(
                f"max_delay must be between initial_delay ({self.initial_delay:g}s) and "
                f"{MAX_DELAY_CEILING_S:g}s, got {self.max_delay}",
                "max_delay",
            )
        if self.backoff_multiplier < 1.0:
            raise ConfigurationError(
                f"backoff_multiplier must be >= 1, got {self.backoff_multiplier}", "backoff_multiplier"
            )

    def base_delay(self, attempt: int) -> float:
        """Exponential delay after the given (1-based) failed attempt, capped at max_delay."""
        exponent = max(0, attempt - 1)
        return min(self.max_delay, self.initial_delay * (self.backoff_multiplier ** exponent))

    def compute_delay(
        self,
        attempt: int,
        retry_after: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ) -> float:
        """Delay to wait after ``attempt`` failed.

        Args:
            attempt: 1-based number of the attempt that just failed.
            retry_after: Server hint (seconds) from a rate-limited response.
            rng: Random source for jitter; the module generator if None.

        Returns:
            Seconds to sleep, never more than ``max_delay``.
        """
        delay = self.base_delay(attempt)
        if self.jitter:
            source = rng or random
            delay += source.random() * delay * JITTER_FRACTION
        if retry_after is not None and retry_after > 0:
            delay = max(delay, retry_after)
        return min(self.max_delay, delay)
