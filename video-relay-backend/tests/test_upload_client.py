# video-relay-backend/tests/test_upload_client.py

import pytest
import requests

import upload_client


class FakeStreamResponse:
    def __init__(self, lines, status_code=200):
        self.lines = lines
        self.status_code = status_code
        self.text = "\n".join(lines)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def iter_lines(self, decode_unicode=False):
        return iter(self.lines)


def test_iter_events_skips_comments_and_blank_lines():
    lines = ['data: {"status":"started"}', "", ": keep-alive", 'data: {"status":"progress","percent":12.5}']
    assert list(upload_client.iter_events(lines)) == [
        {"status": "started"},
        {"status": "progress", "percent": 12.5},
    ]


def test_compress_returns_url(monkeypatch, tmp_path):
    video = tmp_path / "clip.mp4"
    video.write_bytes(b"raw")
    lines = ['data: {"status":"started"}', "",
             'data: {"status":"completed","compressedVideoUrl":"https://cdn/x.mp4"}', ""]
    monkeypatch.setattr(requests, "post", lambda *a, **kw: FakeStreamResponse(lines))

    assert upload_client.compress(str(video), "http://relay") == "https://cdn/x.mp4"


def test_compress_raises_on_error_event(monkeypatch, tmp_path):
    video = tmp_path / "clip.mp4"
    video.write_bytes(b"raw")
    lines = ['data: {"status":"started"}', 'data: {"status":"error","error":"Transcoding failed: boom"}']
    monkeypatch.setattr(requests, "post", lambda *a, **kw: FakeStreamResponse(lines))

    with pytest.raises(RuntimeError, match="boom"):
        upload_client.compress(str(video), "http://relay")


def test_main_exits_nonzero_on_rejection(monkeypatch, tmp_path):
    video = tmp_path / "clip.mp4"
    video.write_bytes(b"raw")
    monkeypatch.setattr(requests, "post", lambda *a, **kw: FakeStreamResponse(['{"detail":"No video"}'], 400))

    assert upload_client.main([str(video), "--server", "http://relay"]) == 1
