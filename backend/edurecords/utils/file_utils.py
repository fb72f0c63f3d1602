import os
import uuid
import logging
from typing import Optional

import aiofiles
import aiofiles.os
from fastapi import UploadFile

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".pdf", ".doc", ".docx"}
CHUNK_SIZE = 64 * 1024


class UploadTooLargeError(ValueError):
    pass


def file_extension(filename: Optional[str]) -> str:
    return os.path.splitext(filename or "")[1].lower()

def is_allowed_file(filename: Optional[str]) -> bool:
    return file_extension(filename) in ALLOWED_EXTENSIONS

def submission_filename(assignment_id: int, student_id: int, original_name: str) -> str:
    """Unique stored name: <assignment>_<student>_<random><ext>."""
    return f"{assignment_id}_{student_id}_{uuid.uuid4().hex}{file_extension(original_name)}"

# -----------------------------
# Save uploaded file async
# -----------------------------
async def save_upload_file(upload_file: UploadFile, destination: str, max_bytes: int) -> int:
    """
    Streams the upload to disk and returns the number of bytes written.
    Stops and removes the partial file once max_bytes is exceeded.
    """
    await upload_file.seek(0)
    written = 0
    async with aiofiles.open(destination, "wb") as out_file:
        while content := await upload_file.read(CHUNK_SIZE):
            written += len(content)
            if written > max_bytes:
                break
            await out_file.write(content)

    if written > max_bytes:
        await aiofiles.os.remove(destination)
        logger.info("rejected upload %s: over %s bytes", upload_file.filename, max_bytes)
        raise UploadTooLargeError(f"File exceeds {max_bytes // (1024 * 1024)} MB")
    return written
