"""
Object storage for finished artifacts.

Permanent copies go to Cloudflare R2 through the S3 API:
  videos/{video_id}.mp4

The remote service only keeps artifacts for a limited time, so saving is an
optional post-processing step the caller triggers once a job completes.
"""

import logging
import os
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig

logger = logging.getLogger(__name__)


def artifact_key(video_id: str, extension: str = "mp4") -> str:
    """Bucket key for a permanent artifact."""
    return f"videos/{video_id}.{extension}"


class ArtifactStorage:
    def __init__(
        self,
        account_id: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        bucket: Optional[str] = None,
        public_url: Optional[str] = None,
    ):
        self.account_id = account_id if account_id is not None else os.getenv("R2_ACCOUNT_ID", "")
        self.access_key_id = access_key_id if access_key_id is not None else os.getenv("R2_ACCESS_KEY_ID", "")
        self.secret_access_key = (
            secret_access_key if secret_access_key is not None else os.getenv("R2_SECRET_ACCESS_KEY", "")
        )
        self.bucket = bucket or os.getenv("R2_BUCKET_NAME", "assets")
        self.public_url = (public_url if public_url is not None else os.getenv("R2_PUBLIC_URL", "")).rstrip("/")
        self._s3 = None

    @property
    def configured(self) -> bool:
        return bool(self.account_id and self.access_key_id and self.secret_access_key)

    def _client(self):
        if self._s3 is None:
            self._s3 = boto3.client(
                "s3",
                endpoint_url=f"https://{self.account_id}.r2.cloudflarestorage.com",
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
                config=BotoConfig(signature_version="s3v4"),
                region_name="auto",
            )
        return self._s3

    def public_url_for(self, key: str) -> str:
        return f"{self.public_url}/{key}"

    def upload_file(self, path, key: str, content_type: str = "video/mp4") -> str:
        """
        Upload a local file (multipart for large objects) and return its public URL.

        Blocking; call through a thread pool from async code.
        """
        try:
            self._client().upload_file(
                str(path),
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except Exception as e:
            logger.error(f"R2 upload failed for key={key}: {e}")
            raise

        url = self.public_url_for(key)
        logger.info(f"Uploaded to R2: {url}")
        return url
