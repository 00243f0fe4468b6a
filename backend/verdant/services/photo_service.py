"""
Verdant Backend: Care Photo Service
===================================

What:  Decodes, verifies, normalizes and stores photos attached to care logs.
Why:   Only a file reference is ever persisted; the database never sees bytes.
How:   base64 (bare or data URL) → size check → Pillow verify → RGB JPEG with
       bounded dimensions → date-organized directory with UUID filename.
Who:   CareLogService during ingestion; GeminiService and the files route
       resolve stored references back to paths.

Failure Model:
    - Oversized photo           → ValidationError (400), client can fix it
    - Undecodable base64/image  → PhotoProcessingError (500), ingestion aborts
    - Disk write failure        → FileStorageError (500)
    A partially written file is removed before the error propagates.

Directory Structure:
    storage/
    └── 2024/
        └── 05/
            └── 14/
                └── 0c4e...-9f1a.jpg
"""

import asyncio
import base64
import binascii
import io
import logging
import os
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

import aiofiles
from PIL import Image, ImageOps, UnidentifiedImageError

from verdant.config import settings
from verdant.exceptions import FileStorageError, PhotoProcessingError, ValidationError

logger = logging.getLogger(__name__)

# data:image/png;base64,iVBORw0...  or  data:image/png;charset=utf-8;base64,iVBORw0...
DATA_URL_PATTERN = re.compile(
    r"^data:(?P<mime>[\w/+.-]*)(?P<params>(?:;[\w.+-]+=[^;,]*)*);base64,(?P<data>.*)$",
    re.DOTALL,
)

STORED_EXTENSION = ".jpg"
STORED_MIME_TYPE = "image/jpeg"


class PhotoService:
    """
    Turns client-supplied photo payloads into stored, canonical JPEG files.

    All Pillow work runs in a worker thread so large images do not block
    the event loop.
    """

    def __init__(
        self,
        storage_root: Optional[str] = None,
        max_size: Optional[int] = None,
        max_dimension: Optional[int] = None,
        jpeg_quality: Optional[int] = None,
    ):
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        self.max_size = max_size or settings.max_photo_size
        self.max_dimension = max_dimension or settings.photo_max_dimension
        self.jpeg_quality = jpeg_quality or settings.photo_jpeg_quality
        logger.info("PhotoService initialized with storage_root=%s", self.storage_root)

    # ── Decoding ──────────────────────────────────────────────────────────

    def decode(self, payload: str) -> bytes:
        """
        Decodes a bare base64 string or a data URL into raw bytes.

        Raises:
            ValidationError: encoded or decoded size above the limit
            PhotoProcessingError: not valid base64
        """
        match = DATA_URL_PATTERN.match(payload)
        encoded = match.group("data") if match else payload
        encoded = "".join(encoded.split())

        # base64 inflates by 4/3; reject before allocating the decoded buffer
        if len(encoded) * 3 // 4 > self.max_size + 3:
            self._raise_too_large(len(encoded) * 3 // 4)

        try:
            raw = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise PhotoProcessingError(
                context={"stage": "base64", "error": str(e)},
            ) from e

        if not raw:
            raise PhotoProcessingError(context={"stage": "base64", "error": "empty payload"})
        if len(raw) > self.max_size:
            self._raise_too_large(len(raw))
        return raw

    def _raise_too_large(self, size: int) -> None:
        max_mb = self.max_size / (1024 * 1024)
        raise ValidationError(
            message=f"Photo exceeds maximum size of {max_mb:.0f}MB. Please attach a smaller image.",
            field="photoBase64",
            context={"max_size": self.max_size, "actual_size": size},
        )

    # ── Normalization ─────────────────────────────────────────────────────

    def normalize(self, raw: bytes) -> bytes:
        """
        Verifies the bytes are an image and re-encodes them as an RGB JPEG.

        EXIF orientation is applied, then the image is downscaled so its
        longest edge is at most `max_dimension`. Never upscales.

        Raises:
            PhotoProcessingError: Pillow cannot identify or decode the image
        """
        try:
            with Image.open(io.BytesIO(raw)) as candidate:
                candidate.verify()

            # verify() leaves the image unusable; reopen for the actual decode
            with Image.open(io.BytesIO(raw)) as image:
                image = ImageOps.exif_transpose(image)
                if image.mode != "RGB":
                    image = image.convert("RGB")
                image.thumbnail((self.max_dimension, self.max_dimension))

                out = io.BytesIO()
                image.save(out, format="JPEG", quality=self.jpeg_quality, optimize=True)
                return out.getvalue()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as e:
            raise PhotoProcessingError(
                context={"stage": "decode", "error_type": type(e).__name__, "error": str(e)},
            ) from e

    # ── Storage ───────────────────────────────────────────────────────────

    def _generate_storage_path(self) -> Tuple[Path, str]:
        now = datetime.now(timezone.utc)
        relative_path = f"{now.strftime('%Y/%m/%d')}/{uuid.uuid4()}{STORED_EXTENSION}"
        return self.storage_root / relative_path, relative_path

    async def store(self, content: bytes) -> str:
        """Writes normalized bytes and returns the path relative to the storage root."""
        absolute_path, relative_path = self._generate_storage_path()
        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store photo at %s: %s", absolute_path, str(e))
            await self.cleanup(relative_path)
            raise FileStorageError(
                message="Failed to save photo. Please try again.",
                context={"path": relative_path, "os_error": str(e)},
            ) from e

        logger.info("Photo stored: %s (%d bytes)", relative_path, len(content))
        return relative_path

    async def save_photo(self, payload: str) -> str:
        """
        Complete pipeline: decode → normalize → store.

        Returns:
            Relative path to keep on the care log.
        """
        raw = self.decode(payload)
        normalized = await asyncio.to_thread(self.normalize, raw)
        return await self.store(normalized)

    def resolve(self, relative_path: str) -> Path:
        """
        Maps a stored reference back to an absolute path under the root.

        Raises:
            FileStorageError: the reference escapes the storage root
        """
        candidate = (self.storage_root / relative_path).resolve()
        if not candidate.is_relative_to(self.storage_root):
            raise FileStorageError(
                message="Invalid file reference",
                context={"path": relative_path},
            )
        return candidate

    async def read(self, relative_path: str) -> bytes:
        path = self.resolve(relative_path)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except OSError as e:
            raise FileStorageError(
                message="Could not read stored photo",
                context={"path": relative_path, "os_error": str(e)},
            ) from e

    async def cleanup(self, relative_path: str) -> None:
        """
        Removes a stored photo. Best-effort: failures are logged, not raised,
        because cleanup runs while another error is already propagating.
        """
        try:
            path = self.resolve(relative_path)
            if path.exists():
                os.remove(path)
                logger.info("Cleaned up photo: %s", relative_path)
        except (OSError, FileStorageError) as e:
            logger.warning("Failed to clean up photo %s: %s", relative_path, str(e))


photo_service = PhotoService()
