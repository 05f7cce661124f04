import logging
import os
import random
import time
from typing import Optional

from flask import current_app
from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

UPLOAD_URL_PREFIX = "/uploads/"


def upload_dir() -> str:
    path = current_app.config["UPLOAD_DIR"]
    os.makedirs(path, exist_ok=True)
    return path


def generate_upload_name(original_filename: str) -> str:
    """'submission-<epoch ms>-<random>' plus the original extension."""
    _, ext = os.path.splitext(secure_filename(original_filename or ""))
    unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9 - 1)}"
    return f"submission-{unique_suffix}{ext.lower()}"


def save_upload(file_storage) -> Optional[str]:
    """Store an uploaded file and return its public path, or None if nothing was sent."""
    if file_storage is None or not file_storage.filename:
        return None
    filename = generate_upload_name(file_storage.filename)
    file_storage.save(os.path.join(upload_dir(), filename))
    logger.info(f"Stored upload {file_storage.filename!r} as {filename}")
    return f"{UPLOAD_URL_PREFIX}{filename}"


def discard_upload(public_path: Optional[str]):
    """Remove a stored upload given its public path; missing files are ignored."""
    if not public_path or not public_path.startswith(UPLOAD_URL_PREFIX):
        return
    filename = os.path.basename(public_path[len(UPLOAD_URL_PREFIX):])
    path = os.path.join(current_app.config["UPLOAD_DIR"], filename)
    try:
        os.remove(path)
        logger.info(f"Removed upload {filename}")
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to remove upload {filename}: {e}")
