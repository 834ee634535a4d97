"""
Pydantic models for the events streamed by the Video Relay backend.
"""

from typing import Literal, Union

from pydantic import BaseModel, Field


class StartedEvent(BaseModel):
    """Emitted once, when the job has been staged and encoding begins."""
    status: Literal["started"] = "started"


class ProgressEvent(BaseModel):
    """Best-effort encoding progress, 0..100."""
    status: Literal["progress"] = "progress"
    percent: float


class CompletedEvent(BaseModel):
    """Terminal success event carrying the retrieval URL."""
    status: Literal["completed"] = "completed"
    compressed_video_url: str = Field(serialization_alias="compressedVideoUrl")


class ErrorEvent(BaseModel):
    """Terminal failure event with a human-readable message."""
    status: Literal["error"] = "error"
    error: str


JobEvent = Union[StartedEvent, ProgressEvent, CompletedEvent, ErrorEvent]


def is_terminal(event: JobEvent) -> bool:
    return event.status in ("completed", "error")


def to_sse_frame(event: JobEvent) -> bytes:
    return f"data: {event.model_dump_json(by_alias=True)}\n\n".encode("utf-8")
