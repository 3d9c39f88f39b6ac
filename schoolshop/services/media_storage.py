from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from schoolshop.config import settings
from schoolshop.errors import AlreadyExistsError, UpstreamFailureError, UpstreamTimeoutError
from schoolshop.services.storage_paths import public_url

logger = logging.getLogger(__name__)

_MISSING_CODES = ("404", "NoSuchKey", "NotFound")


class MediaStorageConfigurationError(RuntimeError):
    pass


def _error_code(exc: ClientError) -> Optional[str]:
    return exc.response.get("Error", {}).get("Code") if hasattr(exc, "response") else None


def _error_status(exc: ClientError) -> Optional[int]:
    if not hasattr(exc, "response"):
        return None
    return exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")


@contextmanager
def _translate_errors(operation: str, *, bucket: str, key: str) -> Iterator[None]:
    try:
        yield
    except (ConnectTimeoutError, ReadTimeoutError) as exc:
        logger.warning(
            "Media storage timeout",
            extra={"operation": operation, "bucket": bucket, "key": key},
        )
        raise UpstreamTimeoutError(message=f"Media storage {operation} timed out for {bucket}/{key}") from exc
    except ClientError as exc:
        raise UpstreamFailureError(
            message=f"Media storage {operation} failed for {bucket}/{key}: {_error_code(exc) or exc}",
            upstream_status=_error_status(exc),
        ) from exc
    except (EndpointConnectionError, BotoCoreError) as exc:
        raise UpstreamFailureError(message=f"Media storage {operation} failed for {bucket}/{key}: {exc}") from exc


class MediaStorage:
    """
    Thin wrapper around S3-compatible storage for the print-file and product-image buckets.

    Every call is bounded by MEDIA_STORAGE_TIMEOUT_SECONDS; timeouts surface as
    UpstreamTimeoutError, other failures as UpstreamFailureError.
    """

    def __init__(self) -> None:
        if not settings.MEDIA_STORAGE_ENDPOINT:
            raise MediaStorageConfigurationError("MEDIA_STORAGE_ENDPOINT is required")
        if not settings.MEDIA_STORAGE_ACCESS_KEY or not settings.MEDIA_STORAGE_SECRET_KEY:
            raise MediaStorageConfigurationError("MEDIA_STORAGE_ACCESS_KEY and MEDIA_STORAGE_SECRET_KEY are required")

        addressing_style = "path" if settings.MEDIA_STORAGE_FORCE_PATH_STYLE else "auto"
        timeout = float(settings.MEDIA_STORAGE_TIMEOUT_SECONDS)

        session = boto3.session.Session()
        self.client = session.client(
            "s3",
            endpoint_url=settings.MEDIA_STORAGE_ENDPOINT,
            aws_access_key_id=settings.MEDIA_STORAGE_ACCESS_KEY,
            aws_secret_access_key=settings.MEDIA_STORAGE_SECRET_KEY,
            region_name=settings.MEDIA_STORAGE_REGION or "us-east-1",
            config=Config(
                s3={"addressing_style": addressing_style},
                signature_version="s3v4",
                connect_timeout=timeout,
                read_timeout=timeout,
                # Retries belong to the caller.
                retries={"max_attempts": 1, "mode": "standard"},
            ),
        )

    def object_exists(self, *, bucket: str, key: str) -> bool:
        with _translate_errors("head", bucket=bucket, key=key):
            try:
                self.client.head_object(Bucket=bucket, Key=key)
                return True
            except ClientError as exc:  # noqa: PERF203
                if _error_code(exc) in _MISSING_CODES:
                    return False
                raise

    def upload_bytes(
        self,
        *,
        bucket: str,
        key: str,
        data: bytes,
        content_type: Optional[str],
        overwrite: bool = True,
    ) -> None:
        if not overwrite and self.object_exists(bucket=bucket, key=key):
            raise AlreadyExistsError(message=f"Object already exists: {bucket}/{key}")
        kwargs = {
            "Bucket": bucket,
            "Key": key,
            "Body": data,
        }
        if content_type:
            kwargs["ContentType"] = content_type
        with _translate_errors("upload", bucket=bucket, key=key):
            self.client.put_object(**kwargs)

    def download_bytes(self, *, bucket: str, key: str) -> tuple[bytes, Optional[str]]:
        with _translate_errors("download", bucket=bucket, key=key):
            obj = self.client.get_object(Bucket=bucket, Key=key)
            body = obj.get("Body")
            content_type = obj.get("ContentType")
            data = body.read() if body else b""
        return data, content_type

    def list_prefix(self, *, bucket: str, prefix: str) -> list[str]:
        keys: list[str] = []
        paginator = self.client.get_paginator("list_objects_v2")
        with _translate_errors("list", bucket=bucket, key=prefix):
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                keys.extend(item["Key"] for item in page.get("Contents", []))
        return keys

    def delete_object(self, *, bucket: str, key: str) -> bool:
        """Delete one object. Returns False when it was already gone.

        S3 deletes are silent about missing keys, so existence is checked first.
        """
        if not self.object_exists(bucket=bucket, key=key):
            return False
        with _translate_errors("delete", bucket=bucket, key=key):
            self.client.delete_object(Bucket=bucket, Key=key)
        return True

    def public_url(self, *, bucket: str, key: str) -> str:
        return public_url(bucket, key)
