from __future__ import annotations

import logging
import secrets
import time
from pathlib import PurePath

from fastapi import APIRouter, File, HTTPException, UploadFile, status

from attendance_store.core.config import get_settings
from attendance_store.schemas.attendance import UploadResponse

router = APIRouter(tags=["uploads"])
logger = logging.getLogger("attendance_store.uploads")


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_photo(file: UploadFile = File(...)):
    settings = get_settings()
    extension = PurePath(file.filename or "").suffix.lower().lstrip(".")
    if extension not in settings.upload_extensions:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only image uploads are accepted.")

    content = await file.read(settings.upload_max_bytes + 1)
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty.")
    if len(content) > settings.upload_max_bytes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is too large.")

    file_name = f"operator-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}.{extension}"
    settings.upload_dir.mkdir(parents=True, exist_ok=True)
    (settings.upload_dir / file_name).write_bytes(content)
    logger.info("Stored operator photo %s (%d bytes)", file_name, len(content))
    return UploadResponse(image_path=f"{settings.upload_url_prefix}/{file_name}")
