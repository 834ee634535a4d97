"""
Publish step: durable storage for transcoded videos and retrieval URLs.
"""

import asyncio
import logging
import os
import shutil
import time
import uuid
from pathlib import Path

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from config import OUTPUT_CONTENT_TYPE, OUTPUT_EXTENSION, Settings


class PublishError(Exception):
    """Object storage rejected the upload or the retrieval URL could not be minted."""


def new_object_name() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex}{OUTPUT_EXTENSION}"


def _make_client(settings: Settings, endpoint_url):
    session = boto3.session.Session(
        aws_access_key_id=settings.s3_access_key,
        aws_secret_access_key=settings.s3_secret_key,
        region_name=settings.s3_region,
    )
    return session.client(
        "s3",
        endpoint_url=endpoint_url,
        config=BotoConfig(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        ),
    )


class S3Publisher:
    """
    Uploads to an S3-compatible bucket and returns a presigned GET URL.

    Two clients: one for server-side uploads, one bound to the public endpoint
    so the presigned host matches what the mobile client can reach.
    """

    def __init__(self, settings: Settings, client=None, presign_client=None):
        self.bucket = settings.s3_bucket
        self.key_prefix = settings.s3_key_prefix
        self.expires = settings.s3_presign_expire_seconds
        self.client = client or _make_client(settings, settings.s3_endpoint_url)
        self.presign_client = presign_client or _make_client(settings, settings.s3_public_endpoint)

    def new_key(self) -> str:
        name = new_object_name()
        return f"{self.key_prefix}/{name}" if self.key_prefix else name

    def _upload(self, local_path: Path, key: str) -> None:
        self.client.upload_file(
            str(local_path), self.bucket, key,
            ExtraArgs={"ContentType": OUTPUT_CONTENT_TYPE},
        )

    def _presign(self, key: str) -> str:
        return self.presign_client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=self.expires,
            HttpMethod="GET",
        )

    async def publish(self, local_path: Path) -> str:
        key = self.new_key()
        try:
            await asyncio.to_thread(self._upload, local_path, key)
            url = await asyncio.to_thread(self._presign, key)
        except (BotoCoreError, ClientError, OSError) as e:
            logging.error(f"❌ Upload of {local_path.name} to s3://{self.bucket}/{key} failed: {e}")
            raise PublishError(f"Failed to upload compressed video: {e}") from e
        logging.info(f"Published {local_path.name} to s3://{self.bucket}/{key}")
        return url


class LocalPublisher:
    """
    Fallback when no bucket is configured: keeps outputs in a local directory
    served by GET /compressed/<name>. URLs do not expire.
    """

    def __init__(self, settings: Settings):
        self.directory = Path(settings.local_output_dir)
        self.base_url = settings.public_base_url.rstrip("/")

    def _copy(self, local_path: Path, name: str) -> None:
        os.makedirs(self.directory, exist_ok=True)
        shutil.copyfile(local_path, self.directory / name)

    async def publish(self, local_path: Path) -> str:
        name = new_object_name()
        try:
            await asyncio.to_thread(self._copy, local_path, name)
        except OSError as e:
            logging.error(f"❌ Could not store {local_path.name} in {self.directory}: {e}")
            raise PublishError(f"Failed to store compressed video: {e}") from e
        logging.info(f"Published {local_path.name} locally as {name}")
        return f"{self.base_url}/compressed/{name}"


def build_publisher(settings: Settings):
    if settings.s3_bucket:
        logging.info(f"Publishing to bucket {settings.s3_bucket}")
        return S3Publisher(settings)
    logging.warning(f"S3_BUCKET not set; publishing to {settings.local_output_dir}")
    return LocalPublisher(settings)
