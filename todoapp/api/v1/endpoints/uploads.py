import logging
from fastapi import APIRouter, Depends, UploadFile, File, Form, HTTPException

from todoapp.constants.constants import AttachmentKind
from todoapp.core.exceptions import Unauthorized
from todoapp.core.security import RequestIdentityProvider, get_identity_provider
from todoapp.schemas.taskSchema import AttachmentUploadResponse
from todoapp.utils.uploads.val_upload_attachment import validate_and_upload_attachment

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/uploads", tags=["uploads"])


@router.post("/task-attachment", response_model=AttachmentUploadResponse)
async def upload_task_attachment(
    file: UploadFile = File(...),
    kind: AttachmentKind = Form(AttachmentKind.file),
    identity: RequestIdentityProvider = Depends(get_identity_provider),
):
    """
    Upload an image or file for a task to S3.
    Returns the URL and name; the client then saves them on the task
    through the details update.
    """
    user = await identity.get_current_user()
    if user is None:
        raise Unauthorized()

    if not file or not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")

    logger.info(f"Upload {kind.value} attachment request from user: {user.id}")
    url = await validate_and_upload_attachment(file, user.id, kind)
    logger.info(f"Attachment uploaded successfully: {url}")

    return AttachmentUploadResponse(name=file.filename, url=url)
