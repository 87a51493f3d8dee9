from typing import Iterator, Protocol

from status_client.errors import ConfigurationError


class PollIntervalScheduler(Protocol):
    def intervals(self) -> Iterator[int]:
        """Yields the wait time in milliseconds to use after each poll attempt"""
        ...


class ExponentialBackoffScheduler:
    """Poll intervals growing by a constant multiplier from a base interval.

    The sequence is recomputed from the base on every call to ``intervals``, so
    one scheduler can be shared by any number of polling sessions.
    """

    def __init__(self, base_interval: int, multiplier: float, max_attempts: int):
        if base_interval <= 0:
            raise ConfigurationError(
                f"Base poll interval must be greater than 0, got {base_interval}"
            )
        if multiplier < 1:
            raise ConfigurationError(
                f"Exponential backoff multiplier must be at least 1, got {multiplier}"
            )
        if max_attempts <= 0:
            raise ConfigurationError(
                f"Maximum number of poll attempts must be greater than 0, got {max_attempts}"
            )

        self.base_interval = base_interval
        self.multiplier = multiplier
        self.max_attempts = max_attempts

    def intervals(self) -> Iterator[int]:
        for attempt in range(self.max_attempts):
            yield int(self.base_interval * (self.multiplier**attempt))

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(base_interval={self.base_interval}, "
            f"multiplier={self.multiplier}, max_attempts={self.max_attempts})"
        )


class ConstantPollIntervalScheduler:
    """Poll at the same interval on every attempt"""

    def __init__(self, interval: int, max_attempts: int):
        self._backoff = ExponentialBackoffScheduler(interval, 1.0, max_attempts)
        self.interval = interval
        self.max_attempts = max_attempts

    def intervals(self) -> Iterator[int]:
        return self._backoff.intervals()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(interval={self.interval}, "
            f"max_attempts={self.max_attempts})"
        )
