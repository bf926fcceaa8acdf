"""Reconnect delay policy for ChatTransport."""

import random
from dataclasses import dataclass, field
from typing import Any, Callable


@dataclass(frozen=True)
class RetryPolicy:
    """Computes the wait before each reconnect attempt.

    delay(attempt) = min(base_delay * multiplier ** (attempt - 1), max_delay)
    then, with jitter j > 0, scaled by a uniform factor in [1 - j, 1 + j]
    and clamped to [0, max_delay].

    Args:
        base_delay: Delay before the first reconnect attempt, in seconds.
        multiplier: Growth factor between attempts (1.0 = fixed delay).
        max_delay: Upper bound for any single delay.
        jitter: Fraction of the delay to randomise, in [0.0, 1.0].
        max_attempts: Give up after this many consecutive failed attempts;
            ``None`` retries forever.
        rng: Source of uniform floats in [0, 1); injectable for tests.
    """

    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0
    jitter: float = 0.5
    max_attempts: int | None = 10
    rng: Callable[[], float] = field(default=random.random, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be non-negative")
        if self.multiplier < 1.0:
            raise ValueError(f"multiplier must be >= 1.0, got {self.multiplier}")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError(f"jitter must be in [0, 1], got {self.jitter}")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1 or None, got {self.max_attempts}")

    @classmethod
    def legacy(cls) -> "RetryPolicy":
        """Fixed 5 second delay, no jitter, no attempt cap."""
        return cls(base_delay=5.0, multiplier=1.0, max_delay=5.0, jitter=0.0, max_attempts=None)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "RetryPolicy":
        """Build from the ``reconnect`` config section.

        ``mode: "fixed"`` selects the legacy policy; anything else reads the
        backoff parameters.
        """
        section = config.get("reconnect", {})
        if section.get("mode") == "fixed":
            return cls.legacy()
        return cls(
            base_delay=float(section.get("base_delay", 1.0)),
            multiplier=float(section.get("multiplier", 2.0)),
            max_delay=float(section.get("max_delay", 30.0)),
            jitter=float(section.get("jitter", 0.5)),
            max_attempts=section.get("max_attempts", 10),
        )

    def should_retry(self, attempt: int) -> bool:
        """Return True if reconnect attempt number ``attempt`` (1-based) is allowed."""
        return self.max_attempts is None or attempt <= self.max_attempts

    def delay(self, attempt: int) -> float:
        """Return the wait in seconds before reconnect attempt ``attempt`` (1-based)."""
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")
        try:
            raw = min(self.base_delay * self.multiplier ** (attempt - 1), self.max_delay)
        except OverflowError:
            raw = self.max_delay
        if self.jitter == 0.0:
            return raw
        factor = 1.0 + self.jitter * (2.0 * self.rng() - 1.0)
        return max(0.0, min(raw * factor, self.max_delay))
