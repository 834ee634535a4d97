# video-relay-backend/tests/conftest.py

import json
import os
import sys

import pytest

# Add the parent directory to the Python path so we can import from it
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient

from config import Settings
from main import create_app
from services import TranscodeError
from storage import PublishError


class FakeTranscoder:
    """Writes a small output file and reports a few progress values."""

    def __init__(self, progress=(10.0, 55.0, 90.0), fail_with=None):
        self.progress = progress
        self.fail_with = fail_with
        self.calls = []

    async def transcode(self, input_path, output_path, on_progress=None):
        self.calls.append((input_path, output_path))
        assert input_path.exists()
        for pct in self.progress:
            if on_progress:
                on_progress(pct)
        if self.fail_with:
            raise TranscodeError(self.fail_with)
        output_path.write_bytes(b"compressed:" + input_path.read_bytes())
        return output_path


class FakePublisher:
    def __init__(self, fail=False):
        self.fail = fail
        self.published = []

    async def publish(self, local_path):
        if self.fail:
            raise PublishError("Failed to upload compressed video: storage unreachable")
        self.published.append(local_path.read_bytes())
        return f"https://storage.example.com/compressed/video-{len(self.published)}.mp4"


def parse_events(body: str):
    return [json.loads(line[len("data:"):].strip())
            for line in body.splitlines() if line.startswith("data:")]


@pytest.fixture
def settings(tmp_path):
    return Settings(
        staging_dir=tmp_path / "staging",
        local_output_dir=tmp_path / "compressed",
        public_base_url="http://testserver",
        sse_heartbeat_seconds=5.0,
        max_upload_bytes=1024,
    )


@pytest.fixture
def make_client(settings):
    def _make(transcoder=None, publisher=None):
        app = create_app(settings, transcoder=transcoder or FakeTranscoder(),
                         publisher=publisher or FakePublisher())
        return TestClient(app)
    return _make
