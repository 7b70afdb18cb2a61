import pytest

from stylist.errors import MissingInput
from stylist.models import SlotPosition, StyleSelection
from stylist.services.request_assembler import assemble_multipart, build_generation_request
from stylist.services.upload_slots import UploadSlotStore


def test_multipart_has_three_images_and_three_text_fields(encoded_factory) -> None:
    store = UploadSlotStore()
    for index, position in enumerate(SlotPosition, start=1):
        store.set_slot(position, encoded_factory(index, name=f"{position.value}.jpg"))

    request = build_generation_request(store.snapshot(), StyleSelection(hairstyle="Low Fade"))
    payload = assemble_multipart(request)

    assert [name for name, _ in payload.files] == ["front", "side", "rear"]
    assert payload.files[1] == ("side", ("side.jpg", b"\x00\x00", "image/jpeg"))
    assert payload.data == {"selectedHair": "Low Fade", "selectedBeard": "", "customStyle": ""}
    assert request.total_bytes == 6


def test_request_is_detached_from_later_selection_changes(encoded_factory) -> None:
    store = UploadSlotStore()
    for position in SlotPosition:
        store.set_slot(position, encoded_factory(1))
    selection = StyleSelection(beard="Goatee")

    request = build_generation_request(store.snapshot(), selection)
    selection.beard = "Full Beard"

    assert assemble_multipart(request).data["selectedBeard"] == "Goatee"


def test_incomplete_slots_cannot_build_a_request(encoded_factory) -> None:
    store = UploadSlotStore()
    store.set_slot(SlotPosition.FRONT, encoded_factory(1))
    with pytest.raises(MissingInput):
        build_generation_request(store.snapshot(), StyleSelection())
