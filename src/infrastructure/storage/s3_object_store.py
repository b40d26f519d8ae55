from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, List, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from src.domain.entities.backup import S3ObjectInfo
from src.domain.errors import RemoteIOError
from src.domain.interfaces.object_store_interface import IObjectStore

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchBucket", "NotFound", "NoSuchKey"}


def _error_code(exc: ClientError) -> str:
    return str((exc.response or {}).get("Error", {}).get("Code", ""))


class S3ObjectStore(IObjectStore):
    """S3-compatible object storage (AWS, MinIO, R2...) through boto3.

    Path-style addressing so self-hosted endpoints work without DNS per
    bucket. Every botocore failure is re-raised as RemoteIOError.
    """

    def __init__(
        self,
        bucket: str,
        endpoint_url: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        region: str = "us-east-1",
        connect_timeout: float = 10.0,
        read_timeout: float = 60.0,
        client: Any = None,
    ) -> None:
        if not bucket:
            raise ValueError("bucket is required")
        self._bucket = bucket
        self._client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
            config=BotoConfig(
                signature_version="s3v4",
                s3={"addressing_style": "path"},
                connect_timeout=connect_timeout,
                read_timeout=read_timeout,
                retries={"max_attempts": 1, "mode": "standard"},
            ),
        )

    @classmethod
    def from_config(cls, cfg: Any) -> "S3ObjectStore":
        return cls(
            bucket=cfg.S3_BUCKET,
            endpoint_url=cfg.s3_endpoint_url,
            access_key=cfg.S3_ACCESS_KEY,
            secret_key=cfg.S3_SECRET_KEY,
            region=cfg.S3_REGION,
            connect_timeout=cfg.S3_CONNECT_TIMEOUT_SECS,
            read_timeout=cfg.S3_READ_TIMEOUT_SECS,
        )

    @property
    def bucket(self) -> str:
        return self._bucket

    def ensure_bucket(self) -> None:
        """Create the bucket when HeadBucket says it does not exist."""
        try:
            self._client.head_bucket(Bucket=self._bucket)
            return
        except ClientError as e:
            if _error_code(e) not in _NOT_FOUND_CODES:
                raise RemoteIOError("check bucket", self._bucket, e) from e
        except BotoCoreError as e:
            raise RemoteIOError("check bucket", self._bucket, e) from e

        try:
            self._client.create_bucket(Bucket=self._bucket)
            logger.info("created S3 bucket %s", self._bucket)
        except (ClientError, BotoCoreError) as e:
            raise RemoteIOError("create bucket", self._bucket, e) from e

    def upload(self, key: str, data: bytes, content_type: str) -> None:
        try:
            self._client.put_object(
                Bucket=self._bucket, Key=key, Body=data, ContentType=content_type
            )
        except (ClientError, BotoCoreError) as e:
            raise RemoteIOError("upload", key, e) from e

    def download(self, key: str) -> bytes:
        try:
            resp = self._client.get_object(Bucket=self._bucket, Key=key)
            body = resp["Body"]
            try:
                return body.read()
            finally:
                body.close()
        except (ClientError, BotoCoreError) as e:
            raise RemoteIOError("download", key, e) from e

    def list(self, prefix: str) -> List[S3ObjectInfo]:
        objects: List[S3ObjectInfo] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                for item in page.get("Contents", []) or []:
                    objects.append(
                        S3ObjectInfo(
                            key=item["Key"],
                            size=int(item.get("Size", 0) or 0),
                            last_modified=item.get("LastModified"),
                        )
                    )
        except (ClientError, BotoCoreError) as e:
            raise RemoteIOError("list objects", prefix, e) from e
        return objects

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise RemoteIOError("delete", key, e) from e

    def exists(self, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
            return True
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return False
            raise RemoteIOError("stat", key, e) from e
        except BotoCoreError as e:
            raise RemoteIOError("stat", key, e) from e

    def presign_get(self, key: str, ttl: timedelta) -> str:
        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self._bucket, "Key": key},
                ExpiresIn=int(ttl.total_seconds()),
            )
        except (ClientError, BotoCoreError) as e:
            raise RemoteIOError("presign", key, e) from e
