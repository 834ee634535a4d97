# video-relay-backend/tests/test_ffmpeg_integration.py
# Runs the real encoder end to end; skipped where ffmpeg is not installed.

import shutil
import subprocess

import pytest
from fastapi.testclient import TestClient

from conftest import parse_events
from main import create_app
from storage import LocalPublisher

pytestmark = pytest.mark.skipif(
    shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
    reason="ffmpeg/ffprobe not installed",
)


@pytest.fixture
def sample_video(tmp_path):
    path = tmp_path / "sample.mov"
    subprocess.run(
        ["ffmpeg", "-y", "-loglevel", "error",
         "-f", "lavfi", "-i", "testsrc=duration=2:size=320x240:rate=60",
         "-f", "lavfi", "-i", "sine=frequency=440:duration=2",
         "-c:v", "mpeg4", "-c:a", "pcm_s16le", str(path)],
        check=True,
    )
    return path


@pytest.fixture
def client(settings):
    settings.max_upload_bytes = 50 * 1024 * 1024
    app = create_app(settings, publisher=LocalPublisher(settings))
    return TestClient(app)


def test_real_video_is_compressed_and_served(client, settings, sample_video):
    with open(sample_video, "rb") as fh:
        response = client.post("/compress-video", files={"video": ("sample.mov", fh, "video/quicktime")})

    events = parse_events(response.text)
    assert events[0]["status"] == "started"
    assert events[-1]["status"] == "completed", events[-1]
    assert all(0 <= e["percent"] <= 100 for e in events if e["status"] == "progress")
    assert list(settings.staging_dir.iterdir()) == []

    served = client.get(events[-1]["compressedVideoUrl"].replace("http://testserver", ""))
    assert served.status_code == 200
    assert served.content[4:8] == b"ftyp"


def test_corrupt_upload_ends_with_error(client, settings):
    response = client.post("/compress-video", files={"video": ("junk.mp4", b"definitely not a video", "video/mp4")})

    events = parse_events(response.text)
    assert events[-1]["status"] == "error"
    assert [e["status"] for e in events].count("error") == 1
    assert list(settings.staging_dir.iterdir()) == []
