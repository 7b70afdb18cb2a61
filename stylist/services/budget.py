"""Pre-flight check of the combined upload size against the soft and hard limits."""
from __future__ import annotations

import logging
from typing import Mapping, Optional

from stylist.errors import PayloadTooLarge
from stylist.limits import TARGET_TOTAL_UPLOAD_BYTES, TRANSPORT_LIMIT_BYTES, format_bytes
from stylist.models import BudgetDecision, SlotPosition, UploadSlot

log = logging.getLogger("stylist.budget")


class BudgetGate:
    """Decide whether the three slots may be sent.

    ``soft_target`` only raises an advisory flag; ``hard_ceiling`` is the
    transport limit beyond which the request would be refused in flight, so
    it blocks the attempt outright.
    """

    def __init__(
        self,
        *,
        soft_target: int = TARGET_TOTAL_UPLOAD_BYTES,
        hard_ceiling: int = TRANSPORT_LIMIT_BYTES,
    ) -> None:
        if hard_ceiling <= soft_target:
            raise ValueError("hard_ceiling must be greater than soft_target")
        self.soft_target = soft_target
        self.hard_ceiling = hard_ceiling

    def evaluate(self, slots: Mapping[SlotPosition, Optional[UploadSlot]]) -> BudgetDecision:
        total = sum(slot.file.size for slot in slots.values() if slot is not None)
        missing = tuple(p for p in SlotPosition if slots.get(p) is None)

        if missing:
            return BudgetDecision(permitted=False, total_bytes=total, missing=missing)

        if total > self.hard_ceiling:
            log.info("[budget] blocked total=%s hard=%s", total, self.hard_ceiling)
            # Point the user at the achievable target, not the transport limit.
            error = PayloadTooLarge(
                f"Combined image size is {format_bytes(total)}. "
                f"Please keep uploads under {format_bytes(self.soft_target)}.",
                total_bytes=total,
                target_bytes=self.soft_target,
            )
            return BudgetDecision(permitted=False, total_bytes=total, error=error)

        return BudgetDecision(
            permitted=True,
            total_bytes=total,
            exceeds_soft_target=total > self.soft_target,
        )
