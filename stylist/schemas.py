"""Wire schemas for the generation API."""
from __future__ import annotations

import base64
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from stylist.models import GenerationResult


class GenerateResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    imageData: str = Field(..., description="Base64 encoded image bytes")
    mimeType: str = Field(..., description="MIME type of the generated image")
    text: str = Field("", description="Text the model returned alongside the image")

    @classmethod
    def from_result(cls, result: GenerationResult) -> "GenerateResponse":
        return cls(
            imageData=base64.b64encode(result.image_bytes).decode("ascii"),
            mimeType=result.mime_type,
            text=result.text,
        )

    def to_result(self) -> GenerationResult:
        return GenerationResult(
            image_bytes=base64.b64decode(self.imageData),
            mime_type=self.mimeType,
            text=self.text or "",
        )


class ErrorResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    error: str = Field(..., description="Human-readable failure message")
    details: Optional[str] = Field(None, description="Diagnostic details, when available")
