from __future__ import annotations

from typing import Any, Optional, Protocol

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import settings
from .errors import IntegrationFailure

logger = structlog.get_logger(__name__)


class ObjectStorage(Protocol):
    def upload(self, data: bytes, bucket: str, key: str) -> None:
        ...

    def delete(self, bucket: str, key: str) -> None:
        ...


class S3Storage:
    """Invoice document storage backed by an S3 compatible bucket."""

    def __init__(self, client: Optional[Any] = None):
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=settings.s3_region,
                endpoint_url=settings.s3_endpoint_url,
                config=Config(
                    connect_timeout=settings.s3_connect_timeout,
                    read_timeout=settings.s3_read_timeout,
                ),
            )
        return self._client

    def upload(self, data: bytes, bucket: str, key: str) -> None:
        logger.info("s3_upload", bucket=bucket, key=key, size=len(data))
        try:
            self.client.put_object(Bucket=bucket, Key=key, Body=data, ContentType="application/pdf")
        except (BotoCoreError, ClientError) as exc:
            raise IntegrationFailure(f"Erreur lors du chargement du rapport {key}") from exc
        logger.info("s3_upload_done", bucket=bucket, key=key)

    def delete(self, bucket: str, key: str) -> None:
        logger.info("s3_delete", bucket=bucket, key=key)
        try:
            self.client.delete_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise IntegrationFailure(f"Erreur lors de la suppression du rapport {key}") from exc
