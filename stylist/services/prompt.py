"""Editing instruction sent to the image model with the three reference photos."""
from __future__ import annotations

from typing import Optional

HAIR_FALLBACK = "no specific hairstyle selected"
BEARD_FALLBACK = "no specific beard style selected"
CUSTOM_FALLBACK = "no additional custom style notes"

PROMPT_TEMPLATE = (
    "You are editing the same person from three reference photos: front, side, and rear.",
    "Generate one realistic portrait image that keeps identity, skin tone, and facial structure consistent.",
    "Only change styling attributes requested below.",
    "Requested hairstyle: {hairstyle}.",
    "Requested beard style: {beard}.",
    "Custom request: {custom}.",
    "Avoid changing age, expression, camera angle drastically, and avoid adding unrelated accessories.",
    "Output a photorealistic result.",
)


def _or_fallback(value: Optional[str], fallback: str) -> str:
    text = (value or "").strip()
    return text or fallback


def build_prompt(
    selected_hair: Optional[str],
    selected_beard: Optional[str],
    custom_style: Optional[str],
) -> str:
    """Render the editing instruction sent alongside the three reference photos."""

    return " ".join(PROMPT_TEMPLATE).format(
        hairstyle=_or_fallback(selected_hair, HAIR_FALLBACK),
        beard=_or_fallback(selected_beard, BEARD_FALLBACK),
        custom=_or_fallback(custom_style, CUSTOM_FALLBACK),
    )
