from __future__ import annotations

import base64

import httpx
import pytest

from stylist.client import StylingSession
from stylist.errors import DecodeError, FileTooLarge, NoImageReturned, PayloadTooLarge, UpstreamFailure
from stylist.limits import MIB
from stylist.models import EncodedImage, SlotPosition, UploadedFile
from stylist.services.upload_slots import UploadSlotStore


class Recorder:
    def __init__(self, response: httpx.Response | None = None, exc: Exception | None = None) -> None:
        self.response = response or httpx.Response(
            200,
            json={"imageData": base64.b64encode(b"styled").decode(), "mimeType": "image/png", "text": "ok"},
        )
        self.exc = exc
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        return self.response


def make_session(recorder: Recorder) -> StylingSession:
    http_client = httpx.Client(transport=httpx.MockTransport(recorder))
    return StylingSession("http://stylist.test/", http_client=http_client)


def uploads(upload_factory) -> dict:
    return {
        SlotPosition.FRONT: upload_factory("front.png", size=(500, 400)),
        SlotPosition.SIDE: upload_factory("side.webp", size=(500, 400), fmt="WEBP"),
        SlotPosition.REAR: upload_factory("rear.jpg", size=(500, 400), fmt="JPEG"),
    }


def fill_slots(session: StylingSession, encoded_factory, size: int = 10) -> None:
    for position in SlotPosition:
        session.slots.set_slot(position, encoded_factory(size, name=f"{position.value}.jpg"))


def test_upload_all_compresses_every_slot(upload_factory) -> None:
    session = make_session(Recorder())
    slots = session.upload_all(uploads(upload_factory))

    assert set(slots) == set(SlotPosition)
    assert all(slot.file.mime_type == "image/jpeg" for slot in slots.values())
    assert slots[SlotPosition.SIDE].file.filename == "side.jpg"
    assert session.budget().permitted
    assert session.can_generate


def test_upload_all_failure_leaves_slots_untouched(upload_factory) -> None:
    session = make_session(Recorder())
    batch = uploads(upload_factory)
    batch[SlotPosition.REAR] = UploadedFile("rear.jpg", "image/jpeg", b"garbage")

    with pytest.raises(DecodeError):
        session.upload_all(batch)

    assert all(slot is None for slot in session.slots.snapshot().values())
    assert session.last_error.startswith("Could not read this image")


def test_upload_all_oversized_result_leaves_slots_untouched(monkeypatch, encoded_factory) -> None:
    sizes = {"front.png": 10, "side.png": 10, "rear.png": 60}

    def fake_compress(upload, compressor=None):
        return EncodedImage(b"\x00" * sizes[upload.filename], "image/jpeg", upload.filename)

    monkeypatch.setattr("stylist.client.compress_upload", fake_compress)
    http_client = httpx.Client(transport=httpx.MockTransport(Recorder()))
    session = StylingSession(
        "http://stylist.test", http_client=http_client, slots=UploadSlotStore(per_file_ceiling=50)
    )
    original = session.slots.set_slot(SlotPosition.FRONT, encoded_factory(5))
    batch = {
        position: UploadedFile(f"{position.value}.png", "image/png", b"") for position in SlotPosition
    }

    with pytest.raises(FileTooLarge, match="Rear image"):
        session.upload_all(batch)

    snapshot = session.slots.snapshot()
    assert snapshot[SlotPosition.FRONT] == original
    assert snapshot[SlotPosition.SIDE] is None
    assert snapshot[SlotPosition.REAR] is None
    assert session.slots.registry.live_count == 1
    assert session.last_error == "Rear image must be 10MB or smaller."


def test_generate_posts_multipart_and_stores_result(encoded_factory) -> None:
    recorder = Recorder()
    session = make_session(recorder)
    fill_slots(session, encoded_factory)
    session.select_hair("Low Fade")

    result = session.generate()

    assert result.image_bytes == b"styled"
    assert session.result is result
    assert result.to_data_url() == "data:image/png;base64," + base64.b64encode(b"styled").decode()
    request = recorder.requests[0]
    assert str(request.url) == "http://stylist.test/api/generate"
    body = request.read()
    for field in (b'name="front"', b'name="side"', b'name="rear"', b'name="selectedBeard"', b'name="customStyle"'):
        assert field in body
    assert b"Low Fade" in body
    assert not session.is_generating


def test_generate_is_a_no_op_until_all_slots_are_filled(encoded_factory) -> None:
    recorder = Recorder()
    session = make_session(recorder)
    session.slots.set_slot(SlotPosition.FRONT, encoded_factory(10))

    assert session.generate() is None
    assert not session.can_generate
    assert recorder.requests == []


def test_generate_is_guarded_while_an_attempt_is_in_flight(encoded_factory) -> None:
    recorder = Recorder()
    session = make_session(recorder)
    fill_slots(session, encoded_factory)
    session.is_generating = True

    assert session.generate() is None
    assert recorder.requests == []


def test_payload_over_hard_ceiling_is_blocked_before_sending(encoded_factory) -> None:
    recorder = Recorder()
    session = make_session(recorder)
    fill_slots(session, encoded_factory, size=int(1.6 * MIB))

    with pytest.raises(PayloadTooLarge, match="Please keep uploads under 4.20 MB"):
        session.generate()
    assert recorder.requests == []


def test_failed_attempt_keeps_previous_result_and_slots(encoded_factory) -> None:
    recorder = Recorder()
    session = make_session(recorder)
    fill_slots(session, encoded_factory)
    session.select_beard("Goatee")
    first = session.generate()

    recorder.response = httpx.Response(502, json={"error": "Model did not return an image.", "details": "nope"})
    with pytest.raises(NoImageReturned) as excinfo:
        session.generate()

    assert excinfo.value.details == "nope"
    assert session.result is first
    assert session.selection.beard == "Goatee"
    assert session.slots.is_complete
    assert session.last_error == "Model did not return an image."
    assert not session.is_generating


def test_server_error_maps_to_upstream_failure(encoded_factory) -> None:
    recorder = Recorder(httpx.Response(400, json={"error": "Rear image must be PNG, JPEG, or WEBP."}))
    session = make_session(recorder)
    fill_slots(session, encoded_factory)

    with pytest.raises(UpstreamFailure, match="Rear image must be PNG"):
        session.generate()


def test_transport_error_maps_to_upstream_failure(encoded_factory) -> None:
    session = make_session(Recorder(exc=httpx.ConnectTimeout("timed out")))
    fill_slots(session, encoded_factory)

    with pytest.raises(UpstreamFailure, match="timed out"):
        session.generate()
    assert not session.is_generating


def test_close_releases_preview_handles(encoded_factory) -> None:
    with make_session(Recorder()) as session:
        fill_slots(session, encoded_factory)
        session.remove(SlotPosition.FRONT)
        registry = session.slots.registry
        assert registry.live_count == 2
    assert registry.live_count == 0
    assert registry.revoked_count == 3
