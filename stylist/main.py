from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException

from stylist import __version__
from stylist.config import GenAIConfig, get_settings
from stylist.errors import MissingCredential, MissingInput, StylistError
from stylist.middlewares.body_guard import RejectOversizedBody
from stylist.models import SlotPosition
from stylist.schemas import ErrorResponse, GenerateResponse
from stylist.services.model_gateway import ModelGateway
from stylist.services.prompt import build_prompt
from stylist.services.request_assembler import BEARD_FIELD, CUSTOM_FIELD, HAIR_FIELD
from stylist.services.validator import read_encoded, validate_inbound

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logging.getLogger("uvicorn").setLevel(settings.log_level)
logging.getLogger("uvicorn.error").setLevel(settings.log_level)
logging.getLogger("uvicorn.access").setLevel(settings.log_level)
logging.getLogger("stylist").setLevel(settings.log_level)

log = logging.getLogger("stylist")

app = FastAPI(title="Profile Stylist API", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=settings.allowed_origins != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RejectOversizedBody, max_body_bytes=settings.guard.max_body_bytes)
log.info(
    "RejectOversizedBody ready",
    extra={"max_body_bytes": settings.guard.max_body_bytes, "environment": settings.environment},
)

GENERIC_FAILURE = "Failed to generate image preview."


@app.get("/", include_in_schema=False)
def root() -> dict[str, Any]:
    return {"service": "profile-stylist", "ok": True}


@app.head("/", include_in_schema=False)
def root_head() -> Response:
    return Response(status_code=200)


@app.get("/health")
def health() -> dict[str, bool]:
    return {"ok": True}


def _ensure_trace_id(request: Request) -> str:
    return request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]


def _error_response(exc: StylistError) -> JSONResponse:
    payload = ErrorResponse(error=exc.message, details=exc.details)
    return JSONResponse(payload.model_dump(exclude_none=True), status_code=exc.status_code)


def _text_field(form: Any, name: str) -> str:
    value = form.get(name)
    return value if isinstance(value, str) else ""


@app.post(
    "/api/generate",
    response_model=GenerateResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def generate(request: Request) -> JSONResponse:
    rid = _ensure_trace_id(request)
    try:
        genai_config = GenAIConfig.from_env()
        if not genai_config.is_configured:
            raise MissingCredential("Missing GOOGLE_API_KEY on the server.")

        try:
            form = await request.form()
        except (HTTPException, MultiPartException) as exc:
            detail = getattr(exc, "detail", None) or getattr(exc, "message", None) or str(exc)
            raise MissingInput(
                "Front, side, and rear profile images are required.", details=str(detail)
            ) from exc

        uploads = validate_inbound(form)
        selected_hair = _text_field(form, HAIR_FIELD)
        selected_beard = _text_field(form, BEARD_FIELD)
        custom_style = _text_field(form, CUSTOM_FIELD)

        sizes = {position.value: uploads[position].size for position in SlotPosition}
        log.info(
            "[payload] rid=%s sizes=%s hair=%r beard=%r custom_len=%s",
            rid,
            sizes,
            selected_hair,
            selected_beard,
            len(custom_style),
        )

        images = await asyncio.gather(
            *(read_encoded(uploads[position], position) for position in SlotPosition)
        )
        instruction = build_prompt(selected_hair, selected_beard, custom_style)

        gateway = ModelGateway(
            genai_config.api_key,
            model=genai_config.model,
            timeout_seconds=genai_config.timeout_seconds,
        )
        result = await gateway.generate(instruction, list(images), trace_id=rid)
    except StylistError as exc:
        log.info("[generate] rid=%s failed status=%s error=%s", rid, exc.status_code, exc.message)
        return _error_response(exc)
    except Exception as exc:  # noqa: BLE001
        log.exception("[generate] rid=%s unexpected failure", rid)
        return JSONResponse({"error": str(exc) or GENERIC_FAILURE}, status_code=500)

    return JSONResponse(GenerateResponse.from_result(result).model_dump())
