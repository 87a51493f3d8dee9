import threading

from loguru import logger
from status_client.errors import ConfigurationError


class AverageJobDurationEstimator:
    """Estimates how long to wait before the first poll of a job.

    Observed job durations are averaged over windows of ``window_size``
    observations. When a window completes, the estimate becomes the window
    average damped by ``overshoot_correction`` so the first poll tends to land
    just before the job finishes rather than after it. Until the first window
    completes, ``default_wait_time`` is used.

    The estimator is meant to be shared by every polling session of a process,
    so updates and reads are serialised with a lock.
    """

    def __init__(
        self,
        default_wait_time: int = 1000,
        window_size: int = 10,
        overshoot_correction: float = 0.9,
    ):
        if default_wait_time <= 0:
            raise ConfigurationError(
                f"Default wait time must be greater than 0, got {default_wait_time}"
            )
        if window_size <= 0:
            raise ConfigurationError(
                f"Window size must be greater than 0, got {window_size}"
            )
        if not 0 < overshoot_correction < 1:
            raise ConfigurationError(
                f"Overshoot correction must be between 0 and 1 (exclusive), got {overshoot_correction}"
            )

        self.default_wait_time = default_wait_time
        self.window_size = window_size
        self.overshoot_correction = overshoot_correction
        self.logger = logger

        self._lock = threading.Lock()
        self._estimate = default_wait_time
        self._duration_sum = 0
        self._count = 0

    def current_estimate(self) -> int:
        """Returns the wait time in milliseconds to use before the first poll"""
        with self._lock:
            return self._estimate

    def record_observation(self, was_accurate: bool, observed_duration_ms: int) -> None:
        """Accumulates one observed job duration into the current window.

        ``was_accurate`` tells whether the job was already finished at the first
        poll. It is logged but does not change the estimate.
        """
        with self._lock:
            self._duration_sum += observed_duration_ms
            self._count += 1
            self.logger.debug(
                f"Recorded job duration {observed_duration_ms}ms "
                f"(accurate={was_accurate}, {self._count}/{self.window_size})"
            )

            if self._count >= self.window_size:
                self._estimate = int(
                    (self._duration_sum / self.window_size) * self.overshoot_correction
                )
                self._duration_sum = 0
                self._count = 0
                self.logger.info(f"Initial wait time estimate is now {self._estimate}ms")
