"""Decode uploaded files into Pillow rasters."""
from __future__ import annotations

import logging
from io import BytesIO
from typing import Protocol

from PIL import Image, ImageOps, UnidentifiedImageError

from stylist.errors import DecodeError, UnsupportedType
from stylist.models import RasterImage

log = logging.getLogger("stylist.loader")

DECODE_ERROR_MESSAGE = "Could not read this image. Please choose a JPG, PNG, or WEBP file."


class ImageSource(Protocol):
    filename: str
    content_type: str
    data: bytes


def load_raster(upload: ImageSource) -> RasterImage:
    """Decode ``upload`` into a detached :class:`RasterImage`.

    The declared type must be an ``image/*`` type; anything else is rejected
    before decoding. The decoder is closed on both the success and failure
    paths, so the returned pixels no longer reference the source buffer.
    """

    content_type = (upload.content_type or "").lower()
    if not content_type.startswith("image/"):
        raise UnsupportedType("Please upload image files only.")

    try:
        with Image.open(BytesIO(upload.data)) as decoded:
            decoded.load()
            oriented = ImageOps.exif_transpose(decoded)
            pixels = oriented.copy() if oriented is decoded else oriented
    except (UnidentifiedImageError, Image.DecompressionBombError, SyntaxError, OSError) as exc:
        log.info("[loader] decode failed name=%s type=%s err=%s", upload.filename, content_type, exc)
        raise DecodeError(DECODE_ERROR_MESSAGE) from exc

    log.debug(
        "[loader] decoded name=%s mode=%s size=%sx%s",
        upload.filename,
        pixels.mode,
        pixels.width,
        pixels.height,
    )
    return RasterImage(pixels=pixels, filename=upload.filename or "profile")
