"""Position-keyed upload slots and the preview handles that display them."""
from __future__ import annotations

import logging
import uuid
from types import MappingProxyType
from typing import Mapping, Optional

from stylist.errors import FileTooLarge
from stylist.limits import MAX_IMAGE_SIZE_BYTES
from stylist.models import EncodedImage, PreviewHandle, SlotPosition, UploadSlot

log = logging.getLogger("stylist.slots")


class PreviewRegistry:
    """Issues revocable ``preview://`` handles backed by in-memory images."""

    SCHEME = "preview://"

    def __init__(self) -> None:
        self._live: dict[str, EncodedImage] = {}
        self.revoked_count = 0

    @property
    def live_count(self) -> int:
        return len(self._live)

    def create(self, position: SlotPosition, image: EncodedImage) -> PreviewHandle:
        url = f"{self.SCHEME}{uuid.uuid4().hex}"
        self._live[url] = image
        return PreviewHandle(url=url, position=position)

    def revoke(self, handle: PreviewHandle) -> bool:
        if self._live.pop(handle.url, None) is None:
            return False
        self.revoked_count += 1
        return True

    def resolve(self, url: str) -> EncodedImage:
        try:
            return self._live[url]
        except KeyError:
            raise KeyError(f"preview handle is not live: {url}") from None


class UploadSlotStore:
    def __init__(
        self,
        registry: PreviewRegistry | None = None,
        *,
        per_file_ceiling: int = MAX_IMAGE_SIZE_BYTES,
    ) -> None:
        self.registry = registry or PreviewRegistry()
        self.per_file_ceiling = per_file_ceiling
        self._slots: dict[SlotPosition, Optional[UploadSlot]] = {p: None for p in SlotPosition}
        self._closed = False

    def set_slot(self, position: SlotPosition, image: EncodedImage) -> UploadSlot:
        position = SlotPosition(position)
        if image.size > self.per_file_ceiling:
            raise FileTooLarge(f"{position.label} must be 10MB or smaller.")

        previous = self._slots[position]
        if previous is not None:
            self.registry.revoke(previous.preview)

        slot = UploadSlot(file=image, preview=self.registry.create(position, image))
        self._slots[position] = slot
        self._closed = False
        log.debug("[slots] set position=%s size=%s preview=%s", position.value, image.size, slot.preview.url)
        return slot

    def clear_slot(self, position: SlotPosition) -> None:
        position = SlotPosition(position)
        previous = self._slots[position]
        if previous is None:
            return
        self.registry.revoke(previous.preview)
        self._slots[position] = None
        log.debug("[slots] cleared position=%s", position.value)

    def snapshot(self) -> Mapping[SlotPosition, Optional[UploadSlot]]:
        return MappingProxyType(dict(self._slots))

    @property
    def is_complete(self) -> bool:
        return all(slot is not None for slot in self._slots.values())

    @property
    def total_bytes(self) -> int:
        return sum(slot.file.size for slot in self._slots.values() if slot is not None)

    def close(self) -> None:
        """Release every live preview handle once. Safe to call repeatedly."""

        if self._closed:
            return
        released = 0
        for slot in self._slots.values():
            if slot is not None and self.registry.revoke(slot.preview):
                released += 1
        self._closed = True
        log.debug("[slots] teardown released=%s", released)

    def __enter__(self) -> "UploadSlotStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
