# catalog_service/media.py

"""
Local filesystem storage for product images.

Uploads are written to a staging directory first and only moved into the
public media root once the product record that references them has been
stored, so a failed create never leaves servable orphans behind.
"""
import logging
import os
import uuid
from dataclasses import dataclass
from typing import Optional

from .config import DEFAULT_MAX_UPLOAD_BYTES
from .exceptions import FileTooLarge, MediaFailure, UnsupportedMediaType

logger = logging.getLogger(__name__)

STAGING_SUFFIX = "-staging"
REFERENCE_PREFIX = "product-"
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp")

# Leading-byte signatures of the image formats the storefront can display.
_SIGNATURES = (
    (b"\xff\xd8\xff", "image/jpeg", ".jpg"),
    (b"\x89PNG\r\n\x1a\n", "image/png", ".png"),
    (b"GIF87a", "image/gif", ".gif"),
    (b"GIF89a", "image/gif", ".gif"),
    (b"BM", "image/bmp", ".bmp"),
)


def sniff_image_type(content: bytes) -> Optional[str]:
    """Return the MIME type of `content` based on its magic bytes, or None."""
    if len(content) >= 12 and content[:4] == b"RIFF" and content[8:12] == b"WEBP":
        return "image/webp"
    for signature, mime, _ in _SIGNATURES:
        if content.startswith(signature):
            return mime
    return None


def _extension_for(mime: str) -> str:
    if mime == "image/webp":
        return ".webp"
    for _, candidate, ext in _SIGNATURES:
        if candidate == mime:
            return ext
    return ""


@dataclass(frozen=True)
class UploadedImage:
    """One uploaded file, independent of the web framework that received it."""
    filename: str
    content: bytes
    content_type: Optional[str] = None


@dataclass(frozen=True)
class StagedImage:
    reference: str
    path: str


class MediaStore:
    def __init__(self, root: str, url_prefix: str = "/uploads", max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES):
        self.root = os.path.abspath(root)
        # Sibling of the root so staged files are never served as static content.
        self.staging_dir = self.root + STAGING_SUFFIX
        self.url_prefix = url_prefix.rstrip("/")
        self.max_bytes = max_bytes

    def ensure_root(self) -> None:
        os.makedirs(self.root, exist_ok=True)
        os.makedirs(self.staging_dir, exist_ok=True)

    def _new_reference(self, original_name: str, mime: str) -> str:
        ext = os.path.splitext(original_name or "")[1].lower()
        if ext not in IMAGE_EXTENSIONS:
            ext = _extension_for(mime)
        return f"{REFERENCE_PREFIX}{uuid.uuid4().hex}{ext}"

    def stage(self, upload: UploadedImage) -> StagedImage:
        """
        Validate an upload and write it to the staging directory.

        Raises:
            FileTooLarge: content exceeds `max_bytes`.
            UnsupportedMediaType: content is empty or not a recognised image.
            MediaFailure: the file could not be written.
        """
        size = len(upload.content)
        if size > self.max_bytes:
            logger.warning(f"Rejected '{upload.filename}': {size} bytes exceeds {self.max_bytes}.")
            raise FileTooLarge(
                f"Image '{upload.filename}' exceeds the {self.max_bytes // (1024 * 1024)} MiB limit."
            )
        mime = sniff_image_type(upload.content) if size else None
        if mime is None:
            logger.warning(
                f"Rejected '{upload.filename}': not a supported image (declared {upload.content_type})."
            )
            raise UnsupportedMediaType(f"File '{upload.filename}' is not a supported image.")

        reference = self._new_reference(upload.filename, mime)
        path = os.path.join(self.staging_dir, reference)
        try:
            self.ensure_root()
            with open(path, "wb") as fh:
                fh.write(upload.content)
        except OSError as e:
            logger.error(f"Error writing staged image {reference}: {e}", exc_info=True)
            raise MediaFailure("Could not store image.") from e
        return StagedImage(reference=reference, path=path)

    def commit(self, staged: StagedImage) -> str:
        """Move a staged image into the public media root and return its reference."""
        target = os.path.join(self.root, staged.reference)
        try:
            os.replace(staged.path, target)
        except OSError as e:
            logger.error(f"Error publishing image {staged.reference}: {e}", exc_info=True)
            raise MediaFailure("Could not store image.") from e
        return staged.reference

    def discard(self, staged: StagedImage) -> None:
        try:
            os.remove(staged.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not discard staged image {staged.reference}: {e}")

    def store(self, content: bytes, original_name: str, content_type: Optional[str] = None) -> str:
        """Validate, write and publish one image in a single step."""
        staged = self.stage(UploadedImage(original_name, content, content_type))
        try:
            return self.commit(staged)
        except MediaFailure:
            self.discard(staged)
            raise

    def path_for(self, reference: str) -> str:
        # References are generated names; never let one escape the root.
        return os.path.join(self.root, os.path.basename(reference))

    def remove(self, reference: str) -> bool:
        """Delete a published image. Returns False when it was already gone."""
        if not reference:
            return False
        try:
            os.remove(self.path_for(reference))
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Error removing image {reference}: {e}", exc_info=True)
            raise MediaFailure(f"Could not remove image '{reference}'.") from e

    def url_for(self, reference: str) -> str:
        return f"{self.url_prefix}/{reference}"
