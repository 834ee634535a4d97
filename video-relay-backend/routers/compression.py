"""
Router for the upload relay endpoints.
Handles health checks, video compression with streamed progress, and
serving locally published outputs.
"""

import asyncio
import logging
import os
from contextlib import suppress
from typing import Optional, Set

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse, PlainTextResponse, StreamingResponse

from config import OUTPUT_EXTENSION, UPLOAD_CHUNK_SIZE, Settings
from models import UploadJob
from pipeline import CompressionPipeline, remove_job_files
from streaming import ProgressChannel

router = APIRouter(tags=["compression"])

# Strong references to running pipeline tasks until they finish.
running_jobs: Set[asyncio.Task] = set()


async def stage_upload(upload: UploadFile, job: UploadJob, max_bytes: int) -> int:
    """Copy the upload into the job's input path in chunks. Returns bytes written."""
    written = 0
    try:
        with open(job.input_path, "wb") as buffer:
            while True:
                chunk = await upload.read(UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    raise HTTPException(status_code=413, detail=f"Upload exceeds the {max_bytes} byte limit.")
                buffer.write(chunk)
    except BaseException:
        remove_job_files(job)
        raise
    finally:
        await upload.close()
    return written


async def stream_job(job: UploadJob, pipeline: CompressionPipeline, heartbeat: float):
    """
    Body of the event-stream response. Runs the pipeline as its own task and
    relays its events; if the client disconnects, the task is cancelled and the
    staged files are removed on the way out.
    """
    channel = ProgressChannel(job.id)
    task = asyncio.create_task(pipeline.run(job, channel))
    running_jobs.add(task)
    task.add_done_callback(running_jobs.discard)
    try:
        async for frame in channel.frames(heartbeat):
            yield frame
    finally:
        if not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        remove_job_files(job)


class JobStreamingResponse(StreamingResponse):
    """
    Event stream that owns a job. The staged files are removed when the
    response ends, even if the client left before the body was started.
    """

    def __init__(self, job: UploadJob, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.job = job

    async def __call__(self, scope, receive, send):
        try:
            await super().__call__(scope, receive, send)
        finally:
            self.job.fail()
            remove_job_files(self.job)


@router.get("/health", response_class=PlainTextResponse)
async def health():
    return "OK"


@router.post("/compress-video")
async def compress_video(request: Request, video: Optional[UploadFile] = File(None)):
    """Receive one video, transcode it and stream progress as server-sent events."""
    if video is None or not video.filename:
        raise HTTPException(status_code=400, detail="No video file uploaded.")

    settings: Settings = request.app.state.settings
    pipeline: CompressionPipeline = request.app.state.pipeline

    suffix = os.path.splitext(os.path.basename(video.filename))[1].lower()
    job = UploadJob.create(settings.staging_dir, suffix, OUTPUT_EXTENSION)
    size = await stage_upload(video, job, settings.max_upload_bytes)
    logging.info(f"📥 Job {job.id}: staged {video.filename} ({size} bytes)")

    return JobStreamingResponse(
        job,
        stream_job(job, pipeline, settings.sse_heartbeat_seconds),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/compressed/{name}")
async def get_compressed(request: Request, name: str):
    """
    Serves a locally published video. Only plain file names inside the
    output directory are allowed.
    """
    settings: Settings = request.app.state.settings
    if os.path.basename(name) != name or name in ("", ".", ".."):
        raise HTTPException(status_code=404, detail="Video file not found.")

    path = os.path.join(settings.local_output_dir, name)
    if not os.path.isfile(path):
        raise HTTPException(status_code=404, detail="Video file not found.")

    return FileResponse(path, media_type="video/mp4", filename=name)
