"""Domain model exports."""

from .payloads import (
    BudgetDecision,
    CompressionAttempt,
    CompressionOutcome,
    EncodedImage,
    FrozenStyleSelection,
    GenerationRequest,
    GenerationResult,
    PreviewHandle,
    RasterImage,
    SlotPosition,
    StyleSelection,
    UploadSlot,
    UploadedFile,
)

__all__ = [
    "BudgetDecision",
    "CompressionAttempt",
    "CompressionOutcome",
    "EncodedImage",
    "FrozenStyleSelection",
    "GenerationRequest",
    "GenerationResult",
    "PreviewHandle",
    "RasterImage",
    "SlotPosition",
    "StyleSelection",
    "UploadSlot",
    "UploadedFile",
]
