"""Retry policy with jittered exponential backoff for client uploads.

The policy is pure: it only computes delays and retry decisions, so it can
be tested without a transport or an event loop.
"""

import random
from dataclasses import dataclass, field


@dataclass
class RetryPolicy:
    """Configuration for upload retries.

    Attributes:
        max_attempts: Total attempts per file, including the first (default: 3)
        base_delay: Delay before the first retry in seconds (default: 1.0)
        max_delay: Cap on the exponential delay in seconds (default: 30.0)
        jitter: Upper bound of random extra delay, as a fraction of the
            computed delay (default: 0.25)
        rng: Random source, injectable for deterministic tests

    Example:
        >>> policy = RetryPolicy(base_delay=1.0, jitter=0.0)
        >>> policy.compute_delay(attempt=3)  # Returns 4.0
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: float = 0.25
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def compute_delay(self, attempt: int) -> float:
        """Delay before retrying after the given failed attempt (1-indexed).

        delay = min(base_delay * 2 ^ (attempt - 1), max_delay) + U(0, jitter * delay)
        """
        delay = min(self.base_delay * (2 ** max(attempt - 1, 0)), self.max_delay)
        if self.jitter > 0 and delay > 0:
            delay += self.rng.uniform(0, self.jitter * delay)
        return delay

    def should_retry(self, attempts_made: int) -> bool:
        """True while the attempt budget has room for another try."""
        return attempts_made < self.max_attempts
