import mimetypes
import re
import time
import logging
from typing import Optional
from urllib.parse import quote

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from gatepass.core.config import Settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when an object could not be written to the bucket."""


def sanitize_file_name(file_name: str) -> str:
    """Collapse whitespace to underscores and drop characters S3 keys should not carry."""
    cleaned = re.sub(r"\s+", "_", file_name.strip())
    cleaned = re.sub(r"[^A-Za-z0-9._-]", "", cleaned)
    return cleaned or "file"


def build_object_key(file_name: str, folder: str = "", timestamp_ms: Optional[int] = None) -> str:
    """
    Build a collision resistant key: ``{folder}/{timestamp}_{sanitized-name}``.
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    key = f"{timestamp_ms}_{sanitize_file_name(file_name)}"
    return f"{folder.strip('/')}/{key}" if folder else key


class S3Service:
    """
    Service for handling S3 file uploads.
    """

    def __init__(self, settings: Settings, client=None):
        """Initialize S3 client with AWS credentials from settings."""
        self.bucket_name = settings.aws_s3_bucket_name
        self.region = settings.aws_region

        if client is None:
            # Use regional endpoint to ensure signature matches the URL host
            regional_endpoint = f"https://s3.{settings.aws_region}.amazonaws.com"
            client = boto3.client(
                's3',
                aws_access_key_id=settings.aws_access_key_id,
                aws_secret_access_key=settings.aws_secret_access_key,
                region_name=settings.aws_region,
                endpoint_url=regional_endpoint,
                config=BotoConfig(
                    signature_version='s3v4',
                    s3={'addressing_style': 'virtual'},
                    connect_timeout=10,
                    read_timeout=60,
                    retries={'max_attempts': 3}
                )
            )
        self.s3_client = client

    def object_url(self, object_key: str) -> str:
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{quote(object_key)}"

    def upload_file(
        self,
        file_content: bytes,
        file_name: str,
        folder: str = "",
        content_type: Optional[str] = None
    ) -> str:
        """
        Upload a file to the bucket.

        Args:
            file_content: Binary content of the file
            file_name: File name with extension, used for the key and MIME type
            folder: Key prefix (e.g. visitor-photos)
            content_type: Explicit MIME type, guessed from file_name when omitted

        Returns:
            Public URL of the uploaded object

        Raises:
            StorageError: If upload fails
        """
        if content_type is None:
            content_type = mimetypes.guess_type(file_name)[0] or "application/octet-stream"
        object_key = build_object_key(file_name, folder)

        try:
            # Bucket policy grants public read, no ACL on the object
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=object_key,
                Body=file_content,
                ContentType=content_type
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"[S3] Failed to upload {object_key}: {str(e)}")
            raise StorageError(f"Failed to upload {file_name}: {str(e)}") from e

        url = self.object_url(object_key)
        logger.info(f"[S3] Uploaded {object_key} ({len(file_content)} bytes)")
        return url
