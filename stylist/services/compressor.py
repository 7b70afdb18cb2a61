"""Adaptive JPEG re-encoding that fits each profile photo into a byte budget.

The search is a bounded nested loop: the outer loop shrinks the raster by a
geometric factor, the inner loop walks a fixed ladder of JPEG qualities. The
first candidate at or under the target wins; when none does, the smallest
candidate seen anywhere in the search is returned instead.
"""
from __future__ import annotations

import logging
import re
from io import BytesIO
from typing import Sequence

from PIL import Image

from stylist.errors import CompressionError
from stylist.limits import (
    MAX_IMAGE_DIMENSION,
    MIN_IMAGE_DIMENSION,
    OUTPUT_MIME_TYPE,
    TARGET_FILE_BYTES,
)
from stylist.models import CompressionAttempt, CompressionOutcome, EncodedImage, RasterImage
from stylist.services.image_loader import ImageSource, load_raster

log = logging.getLogger("stylist.compressor")

QUALITY_STEPS: tuple[int, ...] = (86, 78, 70, 62, 54, 46, 38)
SCALE_DECAY = 0.85
RESIZE_STEPS = 4

_EXTENSION_RE = re.compile(r"\.[^/.]+$")


def output_filename(original: str | None) -> str:
    """``portrait.final.png`` -> ``portrait.final.jpg``; blank names become ``profile.jpg``."""

    stem = _EXTENSION_RE.sub("", original or "")
    return f"{stem or 'profile'}.jpg"


def _flatten_to_rgb(image: Image.Image) -> Image.Image:
    if image.mode == "RGB":
        return image
    if image.mode in {"RGBA", "LA"} or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return image.convert("RGB")


class AdaptiveCompressor:
    def __init__(
        self,
        *,
        target_bytes: int = TARGET_FILE_BYTES,
        max_dimension: int = MAX_IMAGE_DIMENSION,
        min_dimension: int = MIN_IMAGE_DIMENSION,
        quality_steps: Sequence[int] = QUALITY_STEPS,
        scale_decay: float = SCALE_DECAY,
        resize_steps: int = RESIZE_STEPS,
    ) -> None:
        if not quality_steps:
            raise ValueError("quality_steps must not be empty")
        if resize_steps < 1:
            raise ValueError("resize_steps must be at least 1")
        self.target_bytes = target_bytes
        self.max_dimension = max_dimension
        self.min_dimension = min_dimension
        self.quality_steps = tuple(quality_steps)
        self.scale_decay = scale_decay
        self.resize_steps = resize_steps

    def _floor(self, value: int) -> int:
        # Each edge is floored on its own; small sources are scaled up to the floor.
        return max(self.min_dimension, value, 1)

    def base_dimensions(self, width: int, height: int) -> tuple[int, int]:
        longest = max(width, height)
        scale = self.max_dimension / longest if longest > self.max_dimension else 1.0
        return (
            self._floor(round(width * scale)),
            self._floor(round(height * scale)),
        )

    def step_dimensions(self, width: int, height: int) -> list[tuple[int, int]]:
        """Dimensions rasterised by each outer step for a ``width`` x ``height`` source."""

        base_w, base_h = self.base_dimensions(width, height)
        steps = []
        for step in range(self.resize_steps):
            factor = self.scale_decay ** step
            steps.append(
                (
                    self._floor(round(base_w * factor)),
                    self._floor(round(base_h * factor)),
                )
            )
        return steps

    @staticmethod
    def _encode(image: Image.Image, quality: int) -> bytes:
        buffer = BytesIO()
        image.save(buffer, format="JPEG", quality=quality, optimize=True)
        return buffer.getvalue()

    def compress(self, raster: RasterImage) -> CompressionOutcome:
        if raster.width < 1 or raster.height < 1:
            raise CompressionError("Could not compress this image.")

        source = _flatten_to_rgb(raster.pixels)
        attempts: list[CompressionAttempt] = []
        best_index = -1
        best_data = b""

        try:
            for width, height in self.step_dimensions(raster.width, raster.height):
                if (width, height) == source.size:
                    frame = source
                else:
                    frame = source.resize((width, height), Image.LANCZOS)
                for quality in self.quality_steps:
                    data = self._encode(frame, quality)
                    attempts.append(CompressionAttempt(width, height, quality, len(data)))
                    if best_index < 0 or len(data) < attempts[best_index].size:
                        best_index = len(attempts) - 1
                        best_data = data

                    if len(data) <= self.target_bytes:
                        return self._outcome(raster, data, attempts, len(attempts) - 1, True)
        except (OSError, ValueError) as exc:
            log.warning("[compress] encoder failed name=%s err=%s", raster.filename, exc)
            raise CompressionError("Could not compress this image.") from exc

        if best_index < 0:
            raise CompressionError("Could not compress this image.")

        log.info(
            "[compress] target missed name=%s target=%s best=%s attempts=%s",
            raster.filename,
            self.target_bytes,
            attempts[best_index].size,
            len(attempts),
        )
        return self._outcome(raster, best_data, attempts, best_index, False)

    def _outcome(
        self,
        raster: RasterImage,
        data: bytes,
        attempts: list[CompressionAttempt],
        index: int,
        met_target: bool,
    ) -> CompressionOutcome:
        chosen = attempts[index]
        log.debug(
            "[compress] name=%s chosen=%sx%s q=%s size=%s met_target=%s",
            raster.filename,
            chosen.width,
            chosen.height,
            chosen.quality,
            chosen.size,
            met_target,
        )
        return CompressionOutcome(
            image=EncodedImage(
                data=data,
                mime_type=OUTPUT_MIME_TYPE,
                filename=output_filename(raster.filename),
            ),
            width=chosen.width,
            height=chosen.height,
            quality=chosen.quality,
            attempts=tuple(attempts),
            best_index=index,
            met_target=met_target,
        )


def compress_upload(upload: ImageSource, compressor: AdaptiveCompressor | None = None) -> EncodedImage:
    """Decode and compress one user file into the image placed in an upload slot."""

    engine = compressor or AdaptiveCompressor()
    return engine.compress(load_raster(upload)).image
