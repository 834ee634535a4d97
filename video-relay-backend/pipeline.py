"""
The ingest → transcode → publish pipeline for a single upload job.
"""

import asyncio
import logging

from models import JobState, UploadJob
from services import TranscodeError
from storage import PublishError
from streaming import ProgressChannel


def remove_job_files(job: UploadJob) -> None:
    """Delete the job's staged files. Safe to call any number of times."""
    for path in (job.input_path, job.output_path):
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logging.warning(f"Job {job.id}: could not delete {path}: {e}")


class CompressionPipeline:
    def __init__(self, transcoder, publisher):
        self.transcoder = transcoder
        self.publisher = publisher

    async def run(self, job: UploadJob, channel: ProgressChannel) -> None:
        """
        Drive one job to a terminal state, reporting through `channel`.
        Always ends with exactly one terminal event unless the task is
        cancelled, and always removes the staged files.
        """
        def on_progress(percent: float) -> None:
            # Rounded to what goes on the wire so every forwarded value advances.
            if job.report(round(percent, 1)):
                channel.progress(job.progress_percent)

        try:
            channel.started()
            job.advance(JobState.ENCODING)
            await self.transcoder.transcode(job.input_path, job.output_path, on_progress)

            job.advance(JobState.PUBLISHING)
            url = await self.publisher.publish(job.output_path)

            job.advance(JobState.COMPLETED)
            channel.completed(url)
            logging.info(f"✅ Job {job.id} completed: {url}")
        except asyncio.CancelledError:
            job.fail()
            logging.warning(f"Job {job.id} cancelled; client went away")
            raise
        except (TranscodeError, PublishError) as e:
            job.fail()
            logging.error(f"❌ Job {job.id} failed: {e}")
            channel.error(str(e))
        except Exception as e:
            job.fail()
            logging.exception(f"❌ Job {job.id} hit an unexpected error")
            channel.error(f"An unexpected internal error occurred: {e}")
        finally:
            remove_job_files(job)
