"""
Reference-image intake and normalization.

Uses PIL to read dimensions from the image header and to force the image to
the negotiated size with a fill policy (independent width/height scaling,
enlargement allowed, no crop or letterbox).
"""

import logging
from pathlib import Path
from typing import Optional

import aiofiles
import httpx
from PIL import Image, UnidentifiedImageError

from .errors import InvalidImageError, StorageError
from .models import ReferenceImage, VideoSize
from .tempfiles import TempFileScope

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE = 1024 * 1024

# Formats PIL cannot write back with an alpha channel
_RGB_ONLY_FORMATS = {"JPEG", "BMP"}


def _extension_for(content_type: str) -> str:
    if "png" in content_type:
        return "png"
    if "webp" in content_type:
        return "webp"
    return "jpg"


def read_image_size(path) -> VideoSize:
    """Decode only the header of an image and return its dimensions."""
    try:
        with Image.open(path) as img:
            width, height = img.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise InvalidImageError(f"Unreadable image: {e}") from e
    if width <= 0 or height <= 0:
        raise InvalidImageError(f"Image has no usable dimensions ({width}x{height})")
    return VideoSize(width=width, height=height)


def prepare_reference_image(source_path, target: VideoSize, temp_files: TempFileScope) -> Path:
    """
    Return a path whose image is exactly ``target``.

    Args:
        source_path: The original upload or fetched copy.
        target:      Negotiated size from the catalog.
        temp_files:  Request scope; a resized derivative is registered on it.

    Returns:
        ``source_path`` itself when it already matches, otherwise a fresh
        ``resized_*`` file in the scope's directory.

    Raises:
        InvalidImageError: The source cannot be decoded.
        StorageError:      The derivative cannot be written.
    """
    source_path = Path(source_path)
    actual = read_image_size(source_path)
    if actual == target:
        logger.info(f"Reference image already {target} — no resize")
        return source_path

    output_path = temp_files.new_path("resized", name=source_path.name)

    try:
        with Image.open(source_path) as img:
            fmt = img.format or "PNG"
            resized = img.resize((target.width, target.height), Image.Resampling.LANCZOS)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise InvalidImageError(f"Unreadable image: {e}") from e

    if fmt in _RGB_ONLY_FORMATS and resized.mode not in ("RGB", "L"):
        resized = resized.convert("RGB")

    try:
        resized.save(output_path, format=fmt)
    except OSError as e:
        raise StorageError(f"Failed to write resized image: {e}") from e

    logger.info(f"Resized reference image {actual} → {target} ({output_path.name})")
    return output_path


async def save_upload(upload, temp_files: TempFileScope) -> ReferenceImage:
    """Copy an incoming multipart file into the upload directory in chunks."""
    filename = Path(upload.filename or "reference.jpg").name
    path = temp_files.new_path("upload", name=filename)
    try:
        async with aiofiles.open(path, "wb") as out:
            while True:
                chunk = await upload.read(UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                await out.write(chunk)
    except OSError as e:
        raise StorageError(f"Failed to store upload: {e}") from e

    return ReferenceImage(
        path=path,
        mime_type=upload.content_type or "image/jpeg",
        filename=filename,
    )


async def fetch_image(
    client: httpx.AsyncClient,
    url: str,
    temp_files: TempFileScope,
    timeout: Optional[float] = 30,
) -> ReferenceImage:
    """Download an image from a public URL into the upload directory."""
    try:
        async with client.stream("GET", url, timeout=timeout) as resp:
            if resp.status_code >= 400:
                raise InvalidImageError(f"Failed to fetch image from URL ({resp.status_code})")

            content_type = resp.headers.get("content-type") or "image/jpeg"
            extension = _extension_for(content_type)
            path = temp_files.new_path("fetched", suffix=f".{extension}")
            try:
                async with aiofiles.open(path, "wb") as out:
                    async for chunk in resp.aiter_bytes():
                        await out.write(chunk)
            except OSError as e:
                raise StorageError(f"Failed to store fetched image: {e}") from e
    except httpx.HTTPError as e:
        raise InvalidImageError(f"Failed to fetch image from URL: {e}") from e

    logger.info(f"Fetched reference image from {url[:80]} ({content_type})")
    return ReferenceImage(
        path=path,
        mime_type=content_type.split(";")[0].strip(),
        filename=f"reference.{extension}",
    )
