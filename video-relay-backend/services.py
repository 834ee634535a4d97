"""
Transcoding services for the Video Relay backend.
Contains the progress estimators and the FFmpegTranscoder adapter.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

import ffmpeg

from config import (
    AUDIO_BITRATE,
    AUDIO_CODEC,
    MAX_FRAME_RATE,
    MOVFLAGS,
    PIXEL_FORMAT,
    VIDEO_CODEC,
    VIDEO_CRF,
    VIDEO_LEVEL,
    VIDEO_PRESET,
    VIDEO_PROFILE,
    Settings,
)

ProgressCallback = Callable[[float], None]


class TranscodeError(Exception):
    """The encoder failed, crashed, timed out or produced no output."""


# --------------------------------------------------------------------------
# --- Progress Estimation ---
# --------------------------------------------------------------------------

@dataclass
class ProgressSample:
    """One progress report from the encoder. Either field may be missing."""
    percent: Optional[float] = None
    encoded_seconds: Optional[float] = None


class DirectPercent:
    """Use the tool's own percentage when it reports one."""

    def estimate(self, sample: ProgressSample) -> Optional[float]:
        return sample.percent


class DurationRatio:
    """Encoded media time over the source duration."""

    def __init__(self, duration: Optional[float]):
        self.duration = duration

    def estimate(self, sample: ProgressSample) -> Optional[float]:
        if not self.duration or self.duration <= 0 or sample.encoded_seconds is None:
            return None
        return sample.encoded_seconds / self.duration * 100.0


class WallClockEstimate:
    """
    Synthetic estimate for sources of unknown duration: wall-clock time since
    the encode started against an assumed worst case. Never reaches 100 on its
    own; only the encoder's end signal completes a job.
    """

    def __init__(self, assumed_duration: float = 60.0, ceiling: float = 99.0,
                 clock: Callable[[], float] = time.monotonic):
        self.assumed_duration = assumed_duration
        self.ceiling = ceiling
        self.clock = clock
        self.started_at = clock()

    def estimate(self, sample: ProgressSample) -> Optional[float]:
        elapsed = self.clock() - self.started_at
        return min(self.ceiling, elapsed / self.assumed_duration * 100.0)


class ProgressEstimator:
    """Tries each strategy in priority order; the first answer wins."""

    def __init__(self, duration: Optional[float], assumed_duration: float = 60.0,
                 clock: Callable[[], float] = time.monotonic):
        self.strategies = [
            DirectPercent(),
            DurationRatio(duration),
            WallClockEstimate(assumed_duration, clock=clock),
        ]

    def estimate(self, sample: ProgressSample) -> float:
        for strategy in self.strategies:
            value = strategy.estimate(sample)
            if value is not None:
                return max(0.0, min(100.0, value))
        return 0.0


def parse_progress_block(fields: Dict[str, str]) -> ProgressSample:
    """
    Turn one block of ffmpeg `-progress` output into a sample.
    `out_time_ms` is in microseconds despite its name, same as `out_time_us`.
    """
    for key in ("out_time_us", "out_time_ms"):
        raw = fields.get(key)
        if raw is None:
            continue
        try:
            micros = int(raw)
        except ValueError:
            continue
        if micros >= 0:
            return ProgressSample(encoded_seconds=micros / 1_000_000.0)
    return ProgressSample()


def read_duration(path: Path, ffprobe_binary: str = "ffprobe") -> Optional[float]:
    """Source duration in seconds from ffprobe, or None if it cannot be determined."""
    try:
        info = ffmpeg.probe(str(path), cmd=ffprobe_binary)
    except ffmpeg.Error as e:
        stderr = e.stderr.decode("utf-8", errors="ignore").strip() if e.stderr else ""
        logging.warning(f"ffprobe could not read {path.name}: {stderr or e}")
        return None
    except FileNotFoundError:
        logging.warning(f"ffprobe executable not found: {ffprobe_binary}")
        return None

    candidates = [info.get("format", {}).get("duration")]
    candidates += [s.get("duration") for s in info.get("streams", [])]
    for raw in candidates:
        try:
            duration = float(raw)
        except (TypeError, ValueError):
            continue
        if duration > 0:
            return duration
    return None


# --------------------------------------------------------------------------
# --- FFmpeg Adapter ---
# --------------------------------------------------------------------------

class FFmpegTranscoder:
    def __init__(self, settings: Settings):
        self.ffmpeg_binary = settings.ffmpeg_binary
        self.ffprobe_binary = settings.ffprobe_binary
        self.timeout = settings.transcode_timeout_seconds
        self.assumed_duration = settings.assumed_duration_seconds

    def build_command(self, input_path: Path, output_path: Path) -> List[str]:
        stream = ffmpeg.input(str(input_path))
        stream = ffmpeg.output(
            stream,
            str(output_path),
            vcodec=VIDEO_CODEC,
            pix_fmt=PIXEL_FORMAT,
            preset=VIDEO_PRESET,
            crf=VIDEO_CRF,
            fpsmax=MAX_FRAME_RATE,
            acodec=AUDIO_CODEC,
            movflags=MOVFLAGS,
            **{"profile:v": VIDEO_PROFILE, "level:v": VIDEO_LEVEL, "b:a": AUDIO_BITRATE},
        )
        stream = stream.global_args("-progress", "pipe:1", "-nostats", "-loglevel", "error")
        return stream.overwrite_output().compile(cmd=self.ffmpeg_binary)

    async def transcode(self, input_path: Path, output_path: Path,
                        on_progress: Optional[ProgressCallback] = None) -> Path:
        try:
            await asyncio.wait_for(self._measure_and_run(input_path, output_path, on_progress),
                                   timeout=self.timeout)
        except asyncio.TimeoutError:
            raise TranscodeError(f"Transcoding timed out after {int(self.timeout)} seconds.")

        if not output_path.exists() or output_path.stat().st_size <= 0:
            raise TranscodeError("Transcoding finished but produced no output.")
        logging.info(f"✅ ffmpeg finished: {output_path.name}")
        return output_path

    async def _measure_and_run(self, input_path: Path, output_path: Path,
                             on_progress: Optional[ProgressCallback]) -> None:
        # The duration lookup shares the encode's time budget.
        duration = await asyncio.to_thread(read_duration, input_path, self.ffprobe_binary)
        estimator = ProgressEstimator(duration, self.assumed_duration)
        command = self.build_command(input_path, output_path)
        logging.info(f"🎬 Running ffmpeg on {input_path.name} (duration={duration})")
        await self._run(command, estimator, on_progress)

    async def _run(self, command: List[str], estimator: ProgressEstimator,
                   on_progress: Optional[ProgressCallback]) -> None:
        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise TranscodeError(f"ffmpeg executable not found: {command[0]}")

        # Drain stderr concurrently so a chatty encoder cannot stall on a full pipe.
        stderr_task = asyncio.create_task(proc.stderr.read())
        ended = False
        try:
            fields: Dict[str, str] = {}
            while True:
                line = await proc.stdout.readline()
                if not line:
                    break
                key, sep, value = line.decode("utf-8", errors="ignore").strip().partition("=")
                if not sep:
                    continue
                fields[key] = value
                if key != "progress":
                    continue
                if value == "end":
                    ended = True
                elif on_progress is not None:
                    on_progress(estimator.estimate(parse_progress_block(fields)))
                fields = {}

            returncode = await proc.wait()
            stderr = (await stderr_task).decode("utf-8", errors="ignore").strip()
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            if not stderr_task.done():
                stderr_task.cancel()

        if returncode != 0:
            logging.error(f"❌ ffmpeg exited with code {returncode}. Stderr:\n{stderr}")
            last_line = stderr.splitlines()[-1] if stderr else f"exit code {returncode}"
            raise TranscodeError(f"Transcoding failed: {last_line}")
        if not ended:
            raise TranscodeError("Transcoding stopped before ffmpeg reported completion.")
