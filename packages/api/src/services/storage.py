# This project was developed with assistance from AI tools.
"""S3-compatible blob storage for checklists and supporting documents.

Uses boto3 synchronous client run in a thread-pool executor for async
compatibility. The module exposes a singleton initialised at app startup
via ``init_storage_service()``.
"""

import asyncio
import logging
import os
import uuid
from dataclasses import dataclass
from functools import partial

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError

from ..core.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredObject:
    """Location of an uploaded blob."""

    key: str
    url: str


class StorageService:
    """Thin wrapper around a boto3 S3 client."""

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        region: str = "us-east-1",
    ):
        self._endpoint = endpoint.rstrip("/")
        self._bucket = bucket
        self._client = boto3.client(
            "s3",
            endpoint_url=endpoint,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
            config=BotoConfig(
                signature_version="s3v4",
                s3={"addressing_style": "path"},
            ),
        )
        self._ensure_bucket()

    def _ensure_bucket(self) -> None:
        """Create the bucket if it doesn't already exist (dev convenience)."""
        try:
            self._client.head_bucket(Bucket=self._bucket)
        except ClientError:
            logger.info("Creating S3 bucket: %s", self._bucket)
            self._client.create_bucket(Bucket=self._bucket)

    def object_url(self, object_key: str) -> str:
        """Path-style URL for an object key."""
        return f"{self._endpoint}/{self._bucket}/{object_key}"

    async def upload_file(
        self,
        file_data: bytes,
        object_key: str,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> StoredObject:
        """Upload bytes and return the stored object's key and URL."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None,
            partial(
                self._client.put_object,
                Bucket=self._bucket,
                Key=object_key,
                Body=file_data,
                ContentType=content_type,
                Metadata=metadata or {},
            ),
        )
        return StoredObject(key=object_key, url=self.object_url(object_key))

    async def delete_file(self, object_key: str) -> None:
        """Delete an object. S3 treats deleting a missing key as success."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None,
            partial(self._client.delete_object, Bucket=self._bucket, Key=object_key),
        )

    @staticmethod
    def build_checklist_key(vendor_id: int, checklist_id: int, filename: str) -> str:
        """Build the key ``checklists/{vendor_id}/{checklist_id}/{filename}``.

        Strips path components from filename to prevent path traversal attacks.
        """
        safe_name = os.path.basename(filename) or f"checklist-{checklist_id}"
        return f"checklists/{vendor_id}/{checklist_id}/{safe_name}"

    @staticmethod
    def build_document_key(vendor_id: int, question_id: int | None, filename: str) -> str:
        """Build the key ``documents/{vendor_id}/{question_id|general}/{uuid}-{filename}``."""
        safe_name = os.path.basename(filename) or "document"
        scope = str(question_id) if question_id is not None else "general"
        return f"documents/{vendor_id}/{scope}/{uuid.uuid4().hex[:12]}-{safe_name}"


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_service: StorageService | None = None


def init_storage_service(cfg: Settings) -> StorageService:
    """Initialise the singleton (called once from app lifespan)."""
    global _service  # noqa: PLW0603
    _service = StorageService(
        endpoint=cfg.S3_ENDPOINT,
        access_key=cfg.S3_ACCESS_KEY,
        secret_key=cfg.S3_SECRET_KEY,
        bucket=cfg.S3_BUCKET,
        region=cfg.S3_REGION,
    )
    logger.info("StorageService initialised (bucket=%s)", cfg.S3_BUCKET)
    return _service


def get_storage_service() -> StorageService:
    """Return the initialised StorageService singleton."""
    if _service is None:
        raise RuntimeError("StorageService not initialised -- call init_storage_service() first")
    return _service
