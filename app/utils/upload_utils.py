import logging
import os
import secrets
import time

from fastapi import HTTPException, UploadFile
from config import settings

logger = logging.getLogger(__name__)

AVATAR_DIR = "avatars"
DOCUMENT_DIR = "documents"
UPLOAD_CHUNK_SIZE = 64 * 1024

IMAGE_CONTENT_PREFIX = "image/"
DOCUMENT_CONTENT_TYPES = [
    "image/jpeg",
    "image/png",
    "image/gif",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
]


def upload_root() -> str:
    return os.path.abspath(settings.UPLOAD_DIR)


def create_upload_directory(kind: str) -> str:
    directory = os.path.join(upload_root(), kind)
    os.makedirs(directory, exist_ok=True)
    return directory


def validate_content_type(kind: str, content_type: str):
    content_type = content_type or ""
    if kind == AVATAR_DIR:
        if not content_type.startswith(IMAGE_CONTENT_PREFIX):
            raise HTTPException(status_code=400, detail="Only image files are allowed for avatar")
    elif content_type not in DOCUMENT_CONTENT_TYPES:
        raise HTTPException(status_code=400, detail="Invalid file type. Allowed: images, PDF, DOC, DOCX")


def generate_filename(field_name: str, original_filename: str) -> str:
    extension = os.path.splitext(original_filename or "")[-1].lower()
    unique_suffix = f"{int(time.time() * 1000)}-{secrets.token_hex(5)}"
    return f"{field_name}-{unique_suffix}{extension}"


async def save_upload(file: UploadFile, kind: str, field_name: str) -> dict:
    """
    Validates and writes an uploaded file under UPLOAD_DIR/<kind>.
    Returns the public url, stored filename and size.
    """
    validate_content_type(kind, file.content_type)

    directory = create_upload_directory(kind)
    filename = generate_filename(field_name, file.filename)
    file_path = os.path.join(directory, filename)

    size = 0
    with open(file_path, "wb") as document:
        while True:
            chunk = await file.read(UPLOAD_CHUNK_SIZE)
            if not chunk:
                break
            size += len(chunk)
            if size > settings.MAX_UPLOAD_SIZE:
                break
            document.write(chunk)

    if size == 0 or size > settings.MAX_UPLOAD_SIZE:
        os.remove(file_path)
        if size == 0:
            raise HTTPException(status_code=400, detail="Please upload a file")
        raise HTTPException(status_code=400, detail="File exceeds the maximum upload size")

    return {"url": f"/uploads/{kind}/{filename}", "filename": filename, "size": size}


def remove_upload(url: str):
    """Deletes a previously stored file by its public url. Missing files are ignored."""
    if not url or not url.startswith("/uploads/"):
        return
    relative_path = url[len("/uploads/"):]
    file_path = os.path.abspath(os.path.join(upload_root(), relative_path))
    if not file_path.startswith(upload_root() + os.sep):
        logger.warning("Refusing to delete file outside the upload directory: %s", url)
        return
    try:
        os.remove(file_path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("Could not delete uploaded file %s", file_path, exc_info=True)
