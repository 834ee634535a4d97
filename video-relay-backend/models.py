# models.py

import time
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class JobState(str, Enum):
    RECEIVED = "received"
    ENCODING = "encoding"
    PUBLISHING = "publishing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = {JobState.COMPLETED, JobState.FAILED}

_TRANSITIONS = {
    JobState.RECEIVED: {JobState.ENCODING, JobState.FAILED},
    JobState.ENCODING: {JobState.PUBLISHING, JobState.FAILED},
    JobState.PUBLISHING: {JobState.COMPLETED, JobState.FAILED},
    JobState.COMPLETED: set(),
    JobState.FAILED: set(),
}


class InvalidTransition(RuntimeError):
    """Raised when a job is moved along an edge the lifecycle does not allow."""


def new_job_id() -> str:
    """Millisecond timestamp plus a random suffix, unique across concurrent requests."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


@dataclass
class UploadJob:
    """One in-flight transcode request. Lives only as long as its request handler."""

    id: str
    input_path: Path
    output_path: Path
    state: JobState = JobState.RECEIVED
    progress_percent: float = 0.0

    @classmethod
    def create(cls, staging_dir: Path, input_suffix: str, output_suffix: str) -> "UploadJob":
        job_id = new_job_id()
        return cls(
            id=job_id,
            input_path=Path(staging_dir) / f"{job_id}-input{input_suffix}",
            output_path=Path(staging_dir) / f"{job_id}-output{output_suffix}",
        )

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, new_state: JobState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidTransition(f"Job {self.id}: cannot go from {self.state.value} to {new_state.value}")
        self.state = new_state

    def fail(self) -> None:
        if not self.is_terminal:
            self.state = JobState.FAILED

    def report(self, percent: float) -> bool:
        """Record a progress estimate. Returns True only if the value advanced."""
        percent = max(0.0, min(100.0, float(percent)))
        if percent <= self.progress_percent:
            return False
        self.progress_percent = percent
        return True
