# This project was developed with assistance from AI tools.
"""S3-compatible blob storage for evidence files.

boto3 is blocking, so every call is pushed to the loop's default executor.
``init_storage_service()`` builds the process-wide instance at startup.
"""

import asyncio
import logging
import os
import re
from functools import partial

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError
from intake_db.enums import PartyRole

from ..core.config import Settings

logger = logging.getLogger(__name__)

_ROLE_FOLDERS = {
    PartyRole.PRIMARY_TENANT: "",
    PartyRole.CO_TENANT: "co-tenant/",
    PartyRole.GUARANTOR: "guarantor/",
}


class StorageService:
    """Evidence blobs in one bucket, keyed by the main tenant's phone folder."""

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        region: str = "eu-west-1",
    ):
        self._bucket = bucket
        boto_config = BotoConfig(signature_version="s3v4", s3={"addressing_style": "path"})
        self._client = boto3.client(
            "s3",
            endpoint_url=endpoint,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
            config=boto_config,
        )
        try:
            self._client.head_bucket(Bucket=bucket)
        except ClientError:
            # Local MinIO starts empty
            logger.info("Bucket %s not found, creating it", bucket)
            self._client.create_bucket(Bucket=bucket)

    async def _call(self, method, **kwargs):
        """Run one blocking client call in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(method, Bucket=self._bucket, **kwargs))

    async def upload_blob(self, object_key: str, file_data: bytes, content_type: str) -> str:
        """Store bytes under ``object_key`` (overwriting) and return the key."""
        await self._call(
            self._client.put_object, Key=object_key, Body=file_data, ContentType=content_type
        )
        return object_key

    async def delete_blob(self, object_key: str) -> None:
        await self._call(self._client.delete_object, Key=object_key)

    @staticmethod
    def build_object_key(
        owner_phone: str,
        role: PartyRole,
        doc_type: str,
        filename: str,
        file_index: int | None = None,
        *,
        party_id: int | None = None,
        revision: int = 0,
    ) -> str:
        """Build the object key: {phone digits}/{role folder}[{party id}/]{doc_type}[_{n}].{ext}.

        ``owner_phone`` is the main tenant's number, so co-tenant and
        guarantor files live under the main tenant's folder, one sub-folder
        per party. ``file_index`` is 0-based and stored 1-based. A
        ``revision`` above 0 adds a ``_v{n}`` suffix so a replacement never
        lands on the key of the file it replaces. Only the extension of
        ``filename`` is used, which also rules out path traversal through
        the name.
        """
        folder = re.sub(r"[^0-9]", "", owner_phone)
        if not folder:
            raise ValueError("A phone number is required to store documents")
        _base, ext = os.path.splitext(os.path.basename(filename))
        base_name = doc_type if file_index is None else f"{doc_type}_{file_index + 1}"
        if revision:
            base_name = f"{base_name}_v{revision + 1}"
        role_folder = _ROLE_FOLDERS[role]
        if role_folder and party_id is not None:
            role_folder = f"{role_folder}{party_id}/"
        return f"{folder}/{role_folder}{base_name}{ext.lower()}"


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
