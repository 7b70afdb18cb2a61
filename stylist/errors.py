"""Error taxonomy for the upload, validation and generation pipelines.

Every error is recoverable at the attempt level: it carries a human-readable
``message`` for the end user, optional ``details`` for diagnostics, and the
HTTP status the API answers with.
"""
from __future__ import annotations

from typing import Any


class StylistError(Exception):
    status_code = 500

    def __init__(self, message: str, *, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


# client-side image handling
class DecodeError(StylistError):
    status_code = 400


class CompressionError(StylistError):
    status_code = 400


# validation
class MissingInput(StylistError):
    status_code = 400


class UnsupportedType(StylistError):
    status_code = 400


class FileTooLarge(StylistError):
    status_code = 400


class AggregateTooLarge(StylistError):
    status_code = 400


class PayloadTooLarge(StylistError):
    """Client-side pre-flight refusal: the combined slots exceed the transport ceiling."""

    status_code = 400

    def __init__(self, message: str, *, total_bytes: int, target_bytes: int) -> None:
        super().__init__(message)
        self.total_bytes = total_bytes
        self.target_bytes = target_bytes


# remote generation
class MissingCredential(StylistError):
    status_code = 500


class NoImageReturned(StylistError):
    status_code = 502


class UpstreamFailure(StylistError):
    status_code = 500


__all__ = [
    "AggregateTooLarge",
    "CompressionError",
    "DecodeError",
    "FileTooLarge",
    "MissingCredential",
    "MissingInput",
    "NoImageReturned",
    "PayloadTooLarge",
    "StylistError",
    "UnsupportedType",
    "UpstreamFailure",
]
