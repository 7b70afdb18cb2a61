from __future__ import annotations

from io import BytesIO

import pytest
from PIL import Image

from stylist.models import EncodedImage, UploadedFile


def make_image_bytes(
    size: tuple[int, int] = (640, 480),
    *,
    fmt: str = "PNG",
    color: tuple[int, int, int] = (180, 120, 90),
    mode: str = "RGB",
) -> bytes:
    image = Image.new("RGB", size, color)
    if mode != "RGB":
        image = image.convert(mode)
    buffer = BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def make_upload(name: str = "front.png", **kwargs) -> UploadedFile:
    fmt = kwargs.pop("fmt", "PNG")
    content_type = {"PNG": "image/png", "JPEG": "image/jpeg", "WEBP": "image/webp"}[fmt]
    return UploadedFile(filename=name, content_type=content_type, data=make_image_bytes(fmt=fmt, **kwargs))


def encoded(size: int, name: str = "photo.jpg") -> EncodedImage:
    return EncodedImage(data=b"\x00" * size, mime_type="image/jpeg", filename=name)


@pytest.fixture
def upload_factory():
    return make_upload


@pytest.fixture
def encoded_factory():
    return encoded
