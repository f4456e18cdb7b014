"""S3 Service: the blob store holding task images and files."""

import logging
from typing import Dict, List, Optional
import uuid
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool
from slugify import slugify
from todoapp.constants.constants import AttachmentKind
from todoapp.core.config import settings
from todoapp.core.exceptions import StorageCleanupFailure
from todoapp.utils.attachments import attachment_key

logger = logging.getLogger(__name__)

# S3 caps DeleteObjects at 1000 keys per request
DELETE_BATCH_SIZE = 1000

s3 = boto3.client(
    "s3",
    region_name=settings.AWS_REGION,
    aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
    aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
)


def upload_file_to_s3(file: UploadFile, kind: AttachmentKind, user_id: str) -> str:
    """Store an upload under the user's own folder and return its public URL."""
    file_ext = file.filename.split(".")[-1]
    base_name = ".".join(file.filename.split(".")[:-1])
    safe_name = slugify(base_name) or "attachment"

    unique_filename = attachment_key(user_id, kind, f"{safe_name}-{uuid.uuid4()}.{file_ext}")

    s3.upload_fileobj(
        file.file,
        settings.AWS_S3_BUCKET,
        unique_filename,
        ExtraArgs={"ContentType": file.content_type},
    )

    return f"{settings.S3_PUBLIC_PREFIX}{unique_filename}"


class S3BlobStore:
    """Deletes attachment objects by storage path.

    boto3 is blocking, so calls run in the threadpool to keep the event
    loop free.
    """

    def __init__(self, client=None, bucket: Optional[str] = None):
        self.client = client or s3
        self.bucket = bucket or settings.AWS_S3_BUCKET

    async def remove(self, paths: List[str]) -> None:
        if not paths:
            return
        try:
            errors = await run_in_threadpool(self._delete_objects, list(paths))
        except (BotoCoreError, ClientError) as e:
            raise StorageCleanupFailure(paths, e) from e

        if errors:
            failed = [error.get("Key") for error in errors]
            raise StorageCleanupFailure(failed, Exception(errors[0].get("Message", "delete failed")))
        logger.info(f"Removed {len(paths)} blob(s) from bucket {self.bucket}")

    def _delete_objects(self, paths: List[str]) -> List[Dict]:
        errors = []
        for start in range(0, len(paths), DELETE_BATCH_SIZE):
            batch = paths[start:start + DELETE_BATCH_SIZE]
            response = self.client.delete_objects(
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
            )
            errors.extend(response.get("Errors", []))
        return errors
