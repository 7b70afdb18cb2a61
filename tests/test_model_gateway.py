from __future__ import annotations

import asyncio
import unittest
from types import SimpleNamespace

from google.genai import errors as genai_errors
from google.genai import types

from stylist.errors import NoImageReturned, UpstreamFailure
from stylist.models import EncodedImage
from stylist.services.model_gateway import (
    ImagePart,
    ModelGateway,
    TextPart,
    parse_response_parts,
)


def make_response(*parts: types.Part) -> types.GenerateContentResponse:
    return types.GenerateContentResponse(
        candidates=[types.Candidate(content=types.Content(role="model", parts=list(parts)))]
    )


class FakeModels:
    def __init__(self, response=None, exc: Exception | None = None, delay: float = 0.0) -> None:
        self.response = response
        self.exc = exc
        self.delay = delay
        self.calls: list[dict] = []

    async def generate_content(self, *, model, contents):
        self.calls.append({"model": model, "contents": contents})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return self.response


def make_gateway(models: FakeModels, **kwargs) -> ModelGateway:
    client = SimpleNamespace(aio=SimpleNamespace(models=models))
    return ModelGateway("test-key", client=client, **kwargs)


IMAGES = [
    EncodedImage(data=b"front-bytes", mime_type="image/jpeg", filename="front.jpg"),
    EncodedImage(data=b"side-bytes", mime_type="image/jpeg", filename="side.jpg"),
    EncodedImage(data=b"rear-bytes", mime_type="image/png", filename="rear.png"),
]


class ModelGatewayTestCase(unittest.TestCase):
    def test_sends_instruction_then_three_reference_parts(self) -> None:
        models = FakeModels(make_response(types.Part.from_bytes(data=b"out", mime_type="image/webp")))
        gateway = make_gateway(models, model="gemini-test")

        asyncio.run(gateway.generate("make it stylish", IMAGES))

        call = models.calls[0]
        self.assertEqual(call["model"], "gemini-test")
        self.assertEqual(call["contents"][0], "make it stylish")
        sent = [(part.inline_data.data, part.inline_data.mime_type) for part in call["contents"][1:]]
        self.assertEqual(
            sent,
            [(b"front-bytes", "image/jpeg"), (b"side-bytes", "image/jpeg"), (b"rear-bytes", "image/png")],
        )

    def test_first_image_part_and_joined_text_are_returned(self) -> None:
        response = make_response(
            types.Part(text="Here is the look."),
            types.Part.from_bytes(data=b"first", mime_type="image/jpeg"),
            types.Part(text="Enjoy!"),
            types.Part.from_bytes(data=b"second", mime_type="image/png"),
        )
        result = asyncio.run(make_gateway(FakeModels(response)).generate("x", IMAGES))

        self.assertEqual(result.image_bytes, b"first")
        self.assertEqual(result.mime_type, "image/jpeg")
        self.assertEqual(result.text, "Here is the look.\nEnjoy!")

    def test_missing_mime_type_defaults_to_png(self) -> None:
        response = make_response(types.Part(inline_data=types.Blob(data=b"raw")))
        result = asyncio.run(make_gateway(FakeModels(response)).generate("x", IMAGES))
        self.assertEqual(result.mime_type, "image/png")
        self.assertEqual(result.text, "")

    def test_text_only_response_is_no_image_returned_with_truncated_details(self) -> None:
        response = make_response(types.Part(text="a" * 400), types.Part(text="b" * 400))

        with self.assertRaises(NoImageReturned) as ctx:
            asyncio.run(make_gateway(FakeModels(response)).generate("x", IMAGES))

        self.assertEqual(ctx.exception.message, "Model did not return an image.")
        self.assertEqual(len(ctx.exception.details), 500)
        self.assertEqual(ctx.exception.details, ("a" * 400 + "\n" + "b" * 400)[:500])
        self.assertEqual(ctx.exception.status_code, 502)

    def test_empty_response_is_no_image_returned(self) -> None:
        response = types.GenerateContentResponse(candidates=[])
        with self.assertRaises(NoImageReturned) as ctx:
            asyncio.run(make_gateway(FakeModels(response)).generate("x", IMAGES))
        self.assertEqual(ctx.exception.details, "")

    def test_api_error_becomes_upstream_failure_with_remote_message(self) -> None:
        error = genai_errors.ServerError(
            503, {"error": {"code": 503, "message": "The model is overloaded.", "status": "UNAVAILABLE"}}
        )
        with self.assertRaises(UpstreamFailure) as ctx:
            asyncio.run(make_gateway(FakeModels(exc=error)).generate("x", IMAGES))
        self.assertIn("The model is overloaded.", ctx.exception.message)

    def test_timeout_becomes_upstream_failure(self) -> None:
        models = FakeModels(make_response(types.Part(text="late")), delay=1.0)
        with self.assertRaises(UpstreamFailure) as ctx:
            asyncio.run(make_gateway(models, timeout_seconds=0.01).generate("x", IMAGES))
        self.assertIn("timed out", ctx.exception.message)


def test_parse_response_parts_is_a_two_variant_union() -> None:
    response = make_response(
        types.Part(text="hello"),
        types.Part.from_bytes(data=b"img", mime_type="image/png"),
    )
    assert parse_response_parts(response) == [TextPart("hello"), ImagePart(b"img", "image/png")]


def test_parse_response_parts_tolerates_missing_candidates() -> None:
    assert parse_response_parts(SimpleNamespace(candidates=None)) == []
