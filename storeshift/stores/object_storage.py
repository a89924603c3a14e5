"""S3-compatible object storage used by store uploads."""

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .base import UploadedFile
from ..exceptions import StoreError

logger = logging.getLogger(__name__)


class S3ObjectStorage:
    """
    Upload files to an S3 bucket (or any S3-compatible endpoint).

    Public URLs are built from `public_url` when set, otherwise from the
    endpoint or the regional AWS host.
    """

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        public_url: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self.public_url = public_url
        self._aws_access_key_id = aws_access_key_id
        self._aws_secret_access_key = aws_secret_access_key
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            kwargs = {
                "config": Config(region_name=self.region, retries={"max_attempts": 3, "mode": "standard"}),
            }
            if self.endpoint_url:
                kwargs["endpoint_url"] = self.endpoint_url
            if self._aws_access_key_id:
                kwargs["aws_access_key_id"] = self._aws_access_key_id
            if self._aws_secret_access_key:
                kwargs["aws_secret_access_key"] = self._aws_secret_access_key
            self._client = boto3.client("s3", **kwargs)
            logger.info(f"Initialized S3 client for bucket {self.bucket}")
        return self._client

    def object_url(self, key: str) -> str:
        if self.public_url:
            return f"{self.public_url.rstrip('/')}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def put(self, path: str, payload: bytes, content_type: str = "application/octet-stream") -> UploadedFile:
        """
        Store a payload under the given key.

        Raises:
            StoreError: If the upload is rejected
        """
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=payload,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Upload of {path} to bucket {self.bucket} failed: {e}") from e

        return UploadedFile(url=self.object_url(path), path=path, size=len(payload))
