"""
Storage abstraction for S3-compatible buckets and in-memory testing.

The hosted backend exposes its buckets over the S3 protocol; public objects
are served from `<public base>/<bucket>/<path>`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError


class StorageError(Exception):
    """Raised when an object cannot be written or listed."""


@dataclass
class StoredObject:
    name: str
    size: int


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def upload_bytes(
        self, bucket: str, path: str, data: bytes, content_type: str
    ) -> None:
        ...

    def public_url(self, bucket: str, path: str) -> str:
        ...

    def list_objects(self, bucket: str) -> list[StoredObject]:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage/v1/object/public"
    stored_objects: dict = field(default_factory=dict)

    def upload_bytes(
        self, bucket: str, path: str, data: bytes, content_type: str
    ) -> None:
        key = (bucket, path)
        if key in self.stored_objects:
            raise StorageError(f"Object already exists: {bucket}/{path}")
        self.stored_objects[key] = (data, content_type)

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/{bucket}/{path}"

    def list_objects(self, bucket: str) -> list[StoredObject]:
        return [
            StoredObject(name=path, size=len(data))
            for (b, path), (data, _) in self.stored_objects.items()
            if b == bucket
        ]


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client for the hosted buckets.
    """

    endpoint: str
    region: str
    access_key_id: str
    secret_access_key: str
    public_base_url: str = ""

    def __post_init__(self):
        # The hosted S3 gateway only accepts path-style addressing.
        config = Config(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def upload_bytes(
        self, bucket: str, path: str, data: bytes, content_type: str
    ) -> None:
        try:
            self._client.put_object(
                Bucket=bucket,
                Key=path,
                Body=data,
                ContentType=content_type,
                CacheControl="max-age=3600",
                IfNoneMatch="*",
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Upload failed for {bucket}/{path}: {e}") from e

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.public_base_url.rstrip('/')}/{bucket}/{path}"

    def list_objects(self, bucket: str) -> list[StoredObject]:
        objects: list[StoredObject] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=bucket):
                for item in page.get("Contents", []):
                    objects.append(StoredObject(name=item["Key"], size=item["Size"]))
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Listing failed for {bucket}: {e}") from e
        return objects