"""Gemini image generation through the google-genai SDK."""
from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence, Union

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from stylist.config import DEFAULT_IMAGE_MODEL
from stylist.errors import NoImageReturned, UpstreamFailure
from stylist.limits import DEFAULT_RESULT_MIME
from stylist.models import EncodedImage, GenerationResult

log = logging.getLogger("stylist.gateway")

DETAILS_LIMIT = 500


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class ImagePart:
    data: bytes
    mime_type: Optional[str]


ResponsePart = Union[TextPart, ImagePart]


def _iter_raw_parts(response: Any) -> Iterable[Any]:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return
    content = getattr(candidates[0], "content", None)
    for part in getattr(content, "parts", None) or []:
        yield part


def _inline_bytes(data: Any) -> bytes | None:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data) or None
    if isinstance(data, str) and data:
        try:
            return base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError):
            return None
    return None


def parse_response_parts(response: Any) -> list[ResponsePart]:
    """Normalise the first candidate's parts into text and image variants."""

    parts: list[ResponsePart] = []
    for raw in _iter_raw_parts(response):
        text = getattr(raw, "text", None)
        if isinstance(text, str) and text:
            parts.append(TextPart(text))
        inline = getattr(raw, "inline_data", None)
        data = _inline_bytes(getattr(inline, "data", None)) if inline is not None else None
        if data:
            parts.append(ImagePart(data=data, mime_type=getattr(inline, "mime_type", None) or None))
    return parts


def result_from_parts(parts: Sequence[ResponsePart]) -> GenerationResult:
    joined = "\n".join(part.text for part in parts if isinstance(part, TextPart))
    image = next((part for part in parts if isinstance(part, ImagePart)), None)
    if image is None:
        raise NoImageReturned("Model did not return an image.", details=joined[:DETAILS_LIMIT])
    return GenerationResult(
        image_bytes=image.data,
        mime_type=image.mime_type or DEFAULT_RESULT_MIME,
        text=joined.strip(),
    )


def _upstream_message(exc: BaseException) -> str:
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(exc) or exc.__class__.__name__


class ModelGateway:
    """Send the instruction plus three reference images and normalise the reply."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_IMAGE_MODEL,
        timeout_seconds: float | None = None,
        client: Any = None,
    ) -> None:
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.client = client or genai.Client(api_key=api_key)

    @staticmethod
    def build_contents(instruction: str, images: Sequence[EncodedImage]) -> list[Any]:
        contents: list[Any] = [instruction]
        for image in images:
            contents.append(types.Part.from_bytes(data=image.data, mime_type=image.mime_type))
        return contents

    async def generate(
        self,
        instruction: str,
        images: Sequence[EncodedImage],
        *,
        trace_id: str | None = None,
    ) -> GenerationResult:
        contents = self.build_contents(instruction, images)
        log.info(
            "[gateway] rid=%s model=%s prompt_len=%s images=%s bytes=%s",
            trace_id,
            self.model,
            len(instruction),
            len(images),
            sum(image.size for image in images),
        )

        call = self.client.aio.models.generate_content(model=self.model, contents=contents)
        try:
            if self.timeout_seconds:
                response = await asyncio.wait_for(call, timeout=self.timeout_seconds)
            else:
                response = await call
        except asyncio.TimeoutError as exc:
            log.warning("[gateway] rid=%s timed out after %ss", trace_id, self.timeout_seconds)
            raise UpstreamFailure(
                f"Image model timed out after {self.timeout_seconds:g} seconds."
            ) from exc
        except genai_errors.APIError as exc:
            log.warning("[gateway] rid=%s api error code=%s err=%s", trace_id, getattr(exc, "code", None), exc)
            raise UpstreamFailure(_upstream_message(exc)) from exc
        except httpx.HTTPError as exc:
            log.warning("[gateway] rid=%s transport error err=%s", trace_id, exc)
            raise UpstreamFailure(_upstream_message(exc)) from exc

        parts = parse_response_parts(response)
        result = result_from_parts(parts)
        log.info(
            "[gateway] rid=%s done mime=%s bytes=%s text_len=%s",
            trace_id,
            result.mime_type,
            len(result.image_bytes),
            len(result.text),
        )
        return result
