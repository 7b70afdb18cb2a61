"""Server-side re-validation of the three inbound profile images.

Nothing the client computed is trusted: presence, declared type, per-file
size and combined size are all checked again here, cheapest first, and the
first failing check ends the request before any bytes are read.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping

from stylist.errors import AggregateTooLarge, FileTooLarge, MissingInput, UnsupportedType
from stylist.limits import ALLOWED_MIME_TYPES, MAX_IMAGE_SIZE_BYTES, MAX_TOTAL_IMAGE_BYTES
from stylist.models import EncodedImage, SlotPosition

log = logging.getLogger("stylist.validator")


def is_image_file(value: Any) -> bool:
    size = getattr(value, "size", None)
    return (
        value is not None
        and callable(getattr(value, "read", None))
        and isinstance(getattr(value, "content_type", None), str)
        and isinstance(size, int)
        and not isinstance(size, bool)
    )


def validate_inbound(
    parts: Mapping[str, Any],
    *,
    max_file_bytes: int = MAX_IMAGE_SIZE_BYTES,
    max_total_bytes: int = MAX_TOTAL_IMAGE_BYTES,
) -> dict[SlotPosition, Any]:
    uploads = {position: parts.get(position.value) for position in SlotPosition}

    if not all(is_image_file(upload) for upload in uploads.values()):
        raise MissingInput("Front, side, and rear profile images are required.")

    for position, upload in uploads.items():
        if upload.content_type not in ALLOWED_MIME_TYPES:
            raise UnsupportedType(f"{position.label} must be PNG, JPEG, or WEBP.")

    for position, upload in uploads.items():
        if upload.size > max_file_bytes:
            raise FileTooLarge(f"{position.label} must be 10MB or smaller.")

    total = sum(upload.size for upload in uploads.values())
    if total > max_total_bytes:
        log.info("[validate] aggregate too large total=%s limit=%s", total, max_total_bytes)
        raise AggregateTooLarge(
            "Total image payload is too large. Please keep all 3 images under 4.2 MB combined."
        )

    return uploads


async def read_encoded(upload: Any, position: SlotPosition) -> EncodedImage:
    """Read a validated upload into an :class:`EncodedImage`."""

    data = await upload.read()
    return EncodedImage(
        data=bytes(data),
        mime_type=upload.content_type,
        filename=getattr(upload, "filename", None) or f"{position.value}.jpg",
    )
