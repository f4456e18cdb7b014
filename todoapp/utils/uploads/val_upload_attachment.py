from pathlib import Path
from fastapi import UploadFile, HTTPException
from fastapi.concurrency import run_in_threadpool
from todoapp.constants.constants import ALLOWED_FILE_EXTENSIONS, ALLOWED_IMAGE_EXTENSIONS, AttachmentKind
from todoapp.core.config import settings
from todoapp.services.S3Service import upload_file_to_s3


async def validate_and_upload_attachment(file: UploadFile, user_id: str, kind: AttachmentKind) -> str:
    """
    Validate and upload a task attachment to S3
    Returns the public URL to store on the task
    """
    if kind is AttachmentKind.image:
        allowed, max_size = ALLOWED_IMAGE_EXTENSIONS, settings.MAX_IMAGE_SIZE
    else:
        allowed, max_size = ALLOWED_FILE_EXTENSIONS, settings.MAX_FILE_SIZE

    file_ext = Path(file.filename).suffix.lower()
    if file_ext not in allowed:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type. Allowed: {', '.join(sorted(allowed))}"
        )

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Empty file received")
    if len(content) > max_size:
        raise HTTPException(
            status_code=400,
            detail=f"File too large. Maximum size: {max_size // (1024 * 1024)}MB"
        )

    await file.seek(0)

    try:
        return await run_in_threadpool(upload_file_to_s3, file, kind, user_id)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to upload attachment: {str(e)}"
        )
