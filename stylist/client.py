"""Client-side session: compress three photos, gate the budget, request a preview."""
from __future__ import annotations

import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Mapping, Optional

import httpx

from stylist.config import default_server_url
from stylist.errors import FileTooLarge, NoImageReturned, StylistError, UpstreamFailure
from stylist.models import (
    BudgetDecision,
    GenerationResult,
    SlotPosition,
    StyleSelection,
    UploadSlot,
    UploadedFile,
)
from stylist.schemas import GenerateResponse
from stylist.services.budget import BudgetGate
from stylist.services.compressor import AdaptiveCompressor, compress_upload
from stylist.services.request_assembler import (
    FileField,
    assemble_multipart,
    build_generation_request,
)
from stylist.services.upload_slots import UploadSlotStore

log = logging.getLogger("stylist.client")

GENERATE_PATH = "/api/generate"
DEFAULT_TIMEOUT_SECONDS = 180.0
GENERIC_FAILURE = "Failed to generate preview."


class StylingSession:
    """State of one styling session: three slots, style choices and the last result.

    A failed attempt never touches the slots, the selection or the previous
    result; only :attr:`last_error` changes.
    """

    def __init__(
        self,
        server_url: str | None = None,
        *,
        http_client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        compressor: AdaptiveCompressor | None = None,
        budget_gate: BudgetGate | None = None,
        slots: UploadSlotStore | None = None,
    ) -> None:
        self.server_url = (server_url or default_server_url()).rstrip("/")
        self.timeout = timeout
        self.compressor = compressor or AdaptiveCompressor()
        self.budget_gate = budget_gate or BudgetGate()
        self.slots = slots or UploadSlotStore()
        self.selection = StyleSelection()
        self.result: Optional[GenerationResult] = None
        self.last_error: Optional[str] = None
        self.is_generating = False
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)

    # -- uploads -------------------------------------------------------------
    def upload(self, position: SlotPosition, upload: UploadedFile) -> UploadSlot:
        position = SlotPosition(position)
        self.last_error = None
        try:
            image = compress_upload(upload, self.compressor)
            return self.slots.set_slot(position, image)
        except StylistError as exc:
            self.last_error = exc.message
            raise

    def upload_all(self, uploads: Mapping[SlotPosition, UploadedFile]) -> dict[SlotPosition, UploadSlot]:
        """Compress several uploads concurrently; any failure leaves every slot untouched."""

        self.last_error = None
        positions = [SlotPosition(p) for p in uploads]
        with ThreadPoolExecutor(max_workers=max(len(positions), 1)) as pool:
            futures = {
                pool.submit(compress_upload, uploads[position], self.compressor): position
                for position in positions
            }
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            failed = next((future for future in done if future.exception() is not None), None)
            if failed is not None:
                for future in pending:
                    future.cancel()
                exc = failed.exception()
                if isinstance(exc, StylistError):
                    self.last_error = exc.message
                log.info("[client] compression failed position=%s err=%s", futures[failed].value, exc)
                raise exc

        compressed = {futures[future]: future.result() for future in done}
        for position in positions:
            if compressed[position].size > self.slots.per_file_ceiling:
                error = FileTooLarge(f"{position.label} must be 10MB or smaller.")
                self.last_error = error.message
                raise error

        return {position: self.slots.set_slot(position, compressed[position]) for position in positions}

    def remove(self, position: SlotPosition) -> None:
        self.slots.clear_slot(SlotPosition(position))

    # -- styling -------------------------------------------------------------
    def select_hair(self, value: str) -> None:
        self.selection.hairstyle = value or ""

    def select_beard(self, value: str) -> None:
        self.selection.beard = value or ""

    def set_custom_note(self, value: str) -> None:
        self.selection.custom_note = value or ""

    # -- generation ----------------------------------------------------------
    def budget(self) -> BudgetDecision:
        return self.budget_gate.evaluate(self.slots.snapshot())

    @property
    def can_generate(self) -> bool:
        return not self.is_generating and self.budget().permitted

    def generate(self) -> Optional[GenerationResult]:
        """Run one generation attempt.

        Returns ``None`` without doing anything while a slot is empty or another
        attempt is in flight. Raises :class:`~stylist.errors.PayloadTooLarge` when
        the combined size is over the transport ceiling.
        """

        if self.is_generating:
            return None
        snapshot = self.slots.snapshot()
        decision = self.budget_gate.evaluate(snapshot)
        if decision.missing:
            return None
        if decision.error is not None:
            self.last_error = decision.error.message
            decision.raise_for_block()

        request = build_generation_request(snapshot, self.selection)
        payload = assemble_multipart(request)

        self.is_generating = True
        self.last_error = None
        try:
            result = self._post(payload.files, payload.data)
        except StylistError as exc:
            self.last_error = exc.message
            raise
        finally:
            self.is_generating = False

        self.result = result
        return result

    def _post(self, files: list[FileField], data: dict[str, str]) -> GenerationResult:
        url = f"{self.server_url}{GENERATE_PATH}"
        try:
            response = self._http.post(url, files=files, data=data, timeout=self.timeout)
        except httpx.HTTPError as exc:
            log.warning("[client] transport error url=%s err=%s", url, exc)
            raise UpstreamFailure(str(exc) or GENERIC_FAILURE) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if response.is_error:
            message = payload.get("error") or GENERIC_FAILURE
            details = payload.get("details")
            log.info("[client] server refused status=%s error=%s", response.status_code, message)
            if response.status_code == 502:
                raise NoImageReturned(message, details=details)
            raise UpstreamFailure(message, details=details)

        if not payload.get("imageData") or not payload.get("mimeType"):
            raise NoImageReturned("No image was returned by the model.")
        return GenerateResponse.model_validate(payload).to_result()

    # -- teardown ------------------------------------------------------------
    def close(self) -> None:
        self.slots.close()
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> "StylingSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
