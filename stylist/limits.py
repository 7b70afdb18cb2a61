"""Size, type and dimension limits shared by the client and server pipelines."""
from __future__ import annotations

MIB = 1024 * 1024

# server side
MAX_IMAGE_SIZE_BYTES = 10 * MIB
MAX_TOTAL_IMAGE_BYTES = int(4.2 * MIB)
ALLOWED_MIME_TYPES = frozenset({"image/png", "image/jpeg", "image/webp"})

# client side
TARGET_TOTAL_UPLOAD_BYTES = int(4.2 * MIB)
TRANSPORT_LIMIT_BYTES = int(4.5 * MIB)
TARGET_FILE_BYTES = int(1.3 * MIB)
MAX_IMAGE_DIMENSION = 1800
MIN_IMAGE_DIMENSION = 320

OUTPUT_MIME_TYPE = "image/jpeg"
DEFAULT_RESULT_MIME = "image/png"


def format_bytes(size: float) -> str:
    """Render a byte count the way the upload tiles display it, e.g. ``1.30 MB``."""

    return f"{size / MIB:.2f} MB"
