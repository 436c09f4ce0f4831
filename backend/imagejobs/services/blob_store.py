import os
import tempfile

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from imagejobs.core.config import settings
from imagejobs.core.errors import UploadError
from imagejobs.core.logging_config import get_logger

logger = get_logger(__name__)

RESULT_PREFIX = "processed"


def result_path(job_id: str) -> str:
    """deterministic object key for a job's output, reruns overwrite the same key"""
    return f"{RESULT_PREFIX}/{job_id}.jpg"


class LocalBlobStore:
    """stores results on the local disk, served by the api under /results"""

    def __init__(self, root_dir: str, public_base_url: str):
        self.root_dir = root_dir
        self.public_base_url = public_base_url.rstrip("/")

    def put(self, path: str, data: bytes, content_type: str) -> str:
        dest = os.path.join(self.root_dir, path)
        try:
            os.makedirs(os.path.dirname(dest), exist_ok=True)
            # write then rename so readers never see a partial file
            fd, tmp_path = tempfile.mkstemp(dir=os.path.dirname(dest), suffix=".tmp")
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_path, dest)
        except OSError as e:
            raise UploadError(f"Failed to store result: {e}") from e

        logger.info(f"stored {len(data)} bytes at {dest} ({content_type})")
        return f"{self.public_base_url}/{path}"

    def check(self) -> str:
        os.makedirs(self.root_dir, exist_ok=True)
        if not os.access(self.root_dir, os.W_OK):
            raise UploadError(f"{self.root_dir} is not writable")
        return f"local:{self.root_dir}"


class S3BlobStore:
    """stores results in an s3 compatible bucket with public-read objects"""

    def __init__(self, bucket: str, client=None, public_base_url: str = "", region: str = "us-east-1"):
        if not bucket:
            raise RuntimeError("S3_BUCKET is not set")
        self.bucket = bucket
        self.client = client or _s3_client()
        self.region = region
        self.public_base_url = public_base_url.rstrip("/") or f"https://{bucket}.s3.{region}.amazonaws.com"

    def put(self, path: str, data: bytes, content_type: str) -> str:
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ACL="public-read",
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise UploadError(f"Failed to upload result: {e}") from e

        logger.info(f"uploaded {len(data)} bytes to s3://{self.bucket}/{path}")
        return f"{self.public_base_url}/{path}"

    def check(self) -> str:
        try:
            self.client.head_bucket(Bucket=self.bucket)
        except (BotoCoreError, ClientError) as e:
            raise UploadError(f"bucket {self.bucket} is not reachable: {e}") from e
        return f"s3:{self.bucket}"


def _s3_client():
    return boto3.client(
        "s3",
        region_name=settings.S3_REGION,
        endpoint_url=settings.S3_ENDPOINT_URL or None,
        aws_access_key_id=settings.S3_ACCESS_KEY_ID or None,
        aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY or None,
        config=Config(signature_version="s3v4"),
    )


def get_blob_store():
    """blob store for the configured STORAGE_BACKEND"""
    if settings.STORAGE_BACKEND == "local":
        return LocalBlobStore(settings.RESULTS_DIR, settings.PUBLIC_BASE_URL)
    if settings.STORAGE_BACKEND == "s3":
        return S3BlobStore(
            settings.S3_BUCKET,
            public_base_url=settings.S3_PUBLIC_BASE_URL,
            region=settings.S3_REGION,
        )
    raise ValueError(f"unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")
