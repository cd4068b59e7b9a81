from __future__ import annotations

import logging
import time

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    pass


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class ObjectStorage:
    def __init__(
        self,
        bucket: str,
        region: str = "us-west-2",
        folder_prefix: str = "",
        endpoint_url: str | None = None,
        public_base_url: str | None = None,
        client=None,
    ):
        if not bucket:
            raise StorageError("object storage bucket is not configured")
        self.bucket = bucket
        self.region = region
        self.folder_prefix = folder_prefix or ""
        self.public_base_url = (public_base_url or "").rstrip("/") or None
        self.client = client or boto3.client(
            "s3", region_name=region, endpoint_url=endpoint_url
        )

    def build_key(self, file_name: str, is_public: bool = True) -> str:
        if "/" in file_name:
            return f"{self.folder_prefix}{file_name}"
        visibility = "public/" if is_public else ""
        return f"{self.folder_prefix}{visibility}uploads/{_epoch_ms()}-{file_name}"

    def upload_bytes(
        self,
        data: bytes,
        file_name: str,
        content_type: str = "image/png",
        is_public: bool = True,
    ) -> str:
        key = self.build_key(file_name, is_public=is_public)
        params = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": data,
            "ContentType": content_type,
        }
        if is_public:
            params["ACL"] = "public-read"
        try:
            self.client.put_object(**params)
        except (BotoCoreError, ClientError) as exc:
            logger.exception("S3 upload failed for %s", key)
            raise StorageError(f"S3 upload failed: {exc}") from exc
        return key

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key.lstrip('/')}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key.lstrip('/')}"

    def presigned_url(self, key: str, expires_in: int = 3600) -> str:
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"S3 presign failed: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            logger.exception("S3 delete failed for %s", key)
            raise StorageError(f"S3 delete failed: {exc}") from exc


def get_storage() -> ObjectStorage:
    config = current_app.config
    return ObjectStorage(
        bucket=config.get("S3_BUCKET", ""),
        region=config.get("S3_REGION", "us-west-2"),
        folder_prefix=config.get("S3_FOLDER_PREFIX", ""),
        endpoint_url=config.get("S3_ENDPOINT_URL"),
        public_base_url=config.get("S3_PUBLIC_BASE_URL"),
    )
