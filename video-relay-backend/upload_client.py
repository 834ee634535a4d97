#!/usr/bin/env python3
"""
Command-line client for the relay: uploads a video to /compress-video and
prints the progress stream until the terminal event.
"""

import argparse
import json
import logging
import os
import sys
from typing import Iterator

import requests

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")


def iter_events(lines: Iterator[str]) -> Iterator[dict]:
    """Parse `data: <json>` frames from an event stream; comments are skipped."""
    for line in lines:
        if not line or not line.startswith("data:"):
            continue
        yield json.loads(line[len("data:"):].strip())


def compress(path: str, server: str, timeout: float = 30.0) -> str:
    url = f"{server.rstrip('/')}/compress-video"
    with open(path, "rb") as fh:
        files = {"video": (os.path.basename(path), fh, "application/octet-stream")}
        with requests.post(url, files=files, stream=True, timeout=(timeout, None)) as response:
            if response.status_code != 200:
                raise RuntimeError(f"Server rejected upload ({response.status_code}): {response.text}")
            for event in iter_events(response.iter_lines(decode_unicode=True)):
                status = event.get("status")
                if status == "started":
                    logging.info("Compression started")
                elif status == "progress":
                    logging.info(f"Progress: {event.get('percent', 0):.1f}%")
                elif status == "completed":
                    return event["compressedVideoUrl"]
                elif status == "error":
                    raise RuntimeError(event.get("error", "Unknown error"))
    raise RuntimeError("Stream closed without a terminal event.")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Upload a video to the relay and wait for the compressed URL.")
    parser.add_argument("file", help="Path to the video file")
    parser.add_argument("--server", default=os.getenv("RELAY_URL", "http://localhost:3000"))
    args = parser.parse_args(argv)

    try:
        url = compress(args.file, args.server)
    except (requests.RequestException, RuntimeError) as e:
        logging.error(f"❌ {e}")
        return 1
    print(url)
    return 0


if __name__ == "__main__":
    sys.exit(main())
