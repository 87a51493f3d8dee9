from enum import Enum

from pydantic import BaseModel, ConfigDict


class JobResult(str, Enum):
    pending = "pending"
    completed = "completed"
    error = "error"


class JobStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    result: JobResult

    @property
    def is_terminal(self) -> bool:
        return self.result is not JobResult.pending


class StatusPollingConfig(BaseModel):
    base_poll_rate: int = 10  # ms
    exponential_backoff: float = 2.0
    max_poll_attempts: int = 15
    default_wait_time: int = 1000  # ms
    window_size: int = 10
    overshoot_correction: float = 0.9
