"""Build the outbound multipart request from the upload slots and style choices."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from stylist.errors import MissingInput
from stylist.models import (
    GenerationRequest,
    SlotPosition,
    StyleSelection,
    UploadSlot,
)

HAIR_FIELD = "selectedHair"
BEARD_FIELD = "selectedBeard"
CUSTOM_FIELD = "customStyle"

FileField = tuple[str, tuple[str, bytes, str]]


@dataclass(frozen=True)
class MultipartPayload:
    """``files``/``data`` arguments for :meth:`httpx.Client.post`."""

    files: list[FileField]
    data: dict[str, str]


def build_generation_request(
    slots: Mapping[SlotPosition, Optional[UploadSlot]],
    selection: StyleSelection,
) -> GenerationRequest:
    missing = [p for p in SlotPosition if slots.get(p) is None]
    if missing:
        raise MissingInput("Front, side, and rear profile images are required.")
    return GenerationRequest(
        front=slots[SlotPosition.FRONT].file,
        side=slots[SlotPosition.SIDE].file,
        rear=slots[SlotPosition.REAR].file,
        style=selection.frozen(),
    )


def assemble_multipart(request: GenerationRequest) -> MultipartPayload:
    files: list[FileField] = []
    for position in SlotPosition:
        image = request.image_for(position)
        files.append((position.value, (image.filename, image.data, image.mime_type)))

    # Text fields are always sent, empty when unset.
    data = {
        HAIR_FIELD: request.style.hairstyle,
        BEARD_FIELD: request.style.beard,
        CUSTOM_FIELD: request.style.custom_note,
    }
    return MultipartPayload(files=files, data=data)
