"""Image ingestion for listings: local disk or inline data URLs."""

import base64
from pathlib import Path
import secrets
import time
from typing import List, Optional

from fastapi import UploadFile

from config import Settings
from exceptions import BadRequestError
from logger_config import Logger


ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}


def generate_filename(original: Optional[str]) -> str:
    extension = Path(original or "").suffix.lower()
    if extension not in ALLOWED_EXTENSIONS:
        extension = ".jpg"
    return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{extension}"


async def read_image(image: UploadFile, settings: Settings) -> bytes:
    mime = image.content_type or ""
    if not mime.startswith("image/"):
        raise BadRequestError(f"Only image files are allowed: {image.filename}")
    content = await image.read()
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise BadRequestError(f"File too large: {image.filename}")
    return content


def _write_files(images: List[UploadFile], contents: List[bytes], settings: Settings) -> List[str]:
    upload_dir = Path(settings.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    written = []
    try:
        for image, content in zip(images, contents):
            path = upload_dir / generate_filename(image.filename)
            path.write_bytes(content)
            written.append(path)
    except OSError:
        for path in written:
            path.unlink(missing_ok=True)
        raise
    base_url = settings.BASE_URL.rstrip("/")
    return [f"{base_url}/uploads/{path.name}" for path in written]


async def process_images(images: List[UploadFile], settings: Settings) -> List[str]:
    """Validate and store ``images``, returning the URLs to save on the listing."""
    images = [image for image in images or [] if image is not None and image.filename]
    if len(images) > settings.MAX_UPLOAD_FILES:
        raise BadRequestError(f"Too many files; at most {settings.MAX_UPLOAD_FILES} images are allowed")

    # nothing is written until every image has passed validation
    contents = [await read_image(image, settings) for image in images]

    if settings.UPLOAD_STORAGE == "inline":
        urls = [
            f"data:{image.content_type};base64,{base64.b64encode(content).decode('utf-8')}"
            for image, content in zip(images, contents)
        ]
    else:
        urls = _write_files(images, contents, settings)

    Logger.base.info(f"Stored {len(urls)} image(s) using {settings.UPLOAD_STORAGE} storage")
    return urls
