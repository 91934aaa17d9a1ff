from __future__ import annotations

import asyncio
from typing import IO, Any, Protocol

import boto3


class ObjectStore(Protocol):
    async def put(self, key: str, body: bytes | IO[bytes], length: int) -> None: ...

    async def delete(self, key: str) -> None: ...

    def url_for(self, key: str) -> str: ...


class S3ObjectStore:
    """
    Package payloads in a single S3 bucket, keyed by blob id.

    boto3 is blocking, so calls are pushed to a worker thread.
    """

    provider_type = "s3"

    def __init__(self, bucket: str, region: str | None = None, client: Any | None = None):
        if not bucket:
            raise ValueError("s3 bucket is required")
        self.bucket = bucket
        self.region = region
        if client is not None:
            self.client = client
        else:
            self.client = boto3.client("s3", region_name=region) if region else boto3.client("s3")

    async def put(self, key: str, body: bytes | IO[bytes], length: int) -> None:
        await asyncio.to_thread(
            self.client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=body,
            ContentLength=length,
        )

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)

    def url_for(self, key: str) -> str:
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"
