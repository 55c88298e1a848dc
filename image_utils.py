from __future__ import annotations

import base64
import mimetypes
from dataclasses import dataclass
from typing import Optional

from errors import UnsupportedInputError, ValidationError


@dataclass(frozen=True)
class ImagePayload:
    data: bytes
    mime_type: str
    filename: str = ""

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode("utf-8")

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"


def _guess_mime_type(filename: str) -> Optional[str]:
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type


def load_image_upload(
    payload: bytes,
    filename: Optional[str] = None,
    content_type: Optional[str] = None,
) -> ImagePayload:
    """Validate an uploaded file and keep it in memory as an image payload."""

    filename = filename or ""
    if not filename and not payload:
        raise ValidationError("Please select an image first.")

    mime_type = (content_type or "").split(";")[0].strip().lower()
    if not mime_type or mime_type == "application/octet-stream":
        mime_type = (_guess_mime_type(filename) or "").lower()
    if not mime_type.startswith("image/"):
        raise UnsupportedInputError("Only image files can be uploaded.")

    if not payload:
        raise ValidationError("Uploaded image is empty.")

    return ImagePayload(data=payload, mime_type=mime_type, filename=filename)
