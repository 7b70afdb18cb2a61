"""Domain records passed between the client pipeline, the API and the gateway."""

from __future__ import annotations

import base64
import mimetypes
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from PIL import Image


class SlotPosition(str, Enum):
    FRONT = "front"
    SIDE = "side"
    REAR = "rear"

    @property
    def label(self) -> str:
        return f"{self.value.capitalize()} image"


@dataclass(frozen=True)
class UploadedFile:
    """A raw user file before decoding: declared name, declared type and bytes."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: str | os.PathLike[str]) -> "UploadedFile":
        source = Path(path)
        content_type, _ = mimetypes.guess_type(source.name)
        return cls(
            filename=source.name,
            content_type=content_type or "application/octet-stream",
            data=source.read_bytes(),
        )


@dataclass
class RasterImage:
    """Decoded pixels plus the logical name of the file they came from."""

    pixels: Image.Image
    filename: str = "profile"

    @property
    def width(self) -> int:
        return self.pixels.width

    @property
    def height(self) -> int:
        return self.pixels.height


@dataclass(frozen=True)
class EncodedImage:
    data: bytes
    mime_type: str
    filename: str

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class PreviewHandle:
    url: str
    position: SlotPosition


@dataclass(frozen=True)
class UploadSlot:
    file: EncodedImage
    preview: PreviewHandle


@dataclass
class StyleSelection:
    hairstyle: str = ""
    beard: str = ""
    custom_note: str = ""

    def frozen(self) -> "FrozenStyleSelection":
        return FrozenStyleSelection(
            hairstyle=self.hairstyle or "",
            beard=self.beard or "",
            custom_note=self.custom_note or "",
        )


@dataclass(frozen=True)
class FrozenStyleSelection:
    hairstyle: str = ""
    beard: str = ""
    custom_note: str = ""


@dataclass(frozen=True)
class GenerationRequest:
    """Three reference images and the styling choices for one attempt."""

    front: EncodedImage
    side: EncodedImage
    rear: EncodedImage
    style: FrozenStyleSelection = field(default_factory=FrozenStyleSelection)

    def image_for(self, position: SlotPosition) -> EncodedImage:
        return getattr(self, position.value)

    @property
    def total_bytes(self) -> int:
        return self.front.size + self.side.size + self.rear.size


@dataclass(frozen=True)
class GenerationResult:
    image_bytes: bytes
    mime_type: str
    text: str = ""

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.image_bytes).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


@dataclass(frozen=True)
class CompressionAttempt:
    width: int
    height: int
    quality: int
    size: int


@dataclass(frozen=True)
class CompressionOutcome:
    image: EncodedImage
    width: int
    height: int
    quality: int
    attempts: tuple[CompressionAttempt, ...]
    best_index: int
    met_target: bool

    @property
    def best(self) -> CompressionAttempt:
        return self.attempts[self.best_index]


@dataclass(frozen=True)
class BudgetDecision:
    permitted: bool
    total_bytes: int
    exceeds_soft_target: bool = False
    error: Optional[Exception] = None
    missing: tuple[SlotPosition, ...] = ()

    def raise_for_block(self) -> None:
        if self.error is not None:
            raise self.error
