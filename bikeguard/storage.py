"""
Object storage for bike photos (S3-compatible) and an in-memory double.

The API never proxies image bytes: clients upload straight to the bucket
through a presigned URL and then store the object path on the bike.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import boto3
from botocore.config import Config


def bike_photo_path(user_id: str, bike_id: int) -> str:
    return f"bikes/{user_id}/{bike_id}/photo"


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        ...

    def presign_put(
        self, path: str, expires_in: int = 3600, content_type: str = "image/jpeg"
    ) -> str:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        return f"{self.base_url}/{path}?op=get&expires={expires_in}"

    def presign_put(
        self, path: str, expires_in: int = 3600, content_type: str = "image/jpeg"
    ) -> str:
        return f"{self.base_url}/{path}?op=put&expires={expires_in}&type={content_type}"


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client (AWS, MinIO, R2).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str

    def __post_init__(self):
        config = Config(signature_version="s3v4")
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": path},
            ExpiresIn=expires_in,
        )

    def presign_put(
        self, path: str, expires_in: int = 3600, content_type: str = "image/jpeg"
    ) -> str:
        # The uploader must send the same Content-Type or the signature fails.
        return self._client.generate_presigned_url(
            ClientMethod="put_object",
            Params={
                "Bucket": self.bucket,
                "Key": path,
                "ContentType": content_type,
            },
            ExpiresIn=expires_in,
        )
