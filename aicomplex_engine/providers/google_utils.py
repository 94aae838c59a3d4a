"""Shared helpers for the Google GenAI backends."""

from __future__ import annotations

import os
import re
from typing import Optional, Tuple

from ..errors import ConfigurationError


API_KEY_ENV_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY")

_RATIO_RE = re.compile(r"^\s*(\d+)\s*[:/]\s*(\d+)\s*$")

# Aspect ratios accepted by Imagen text-to-image.
_IMAGEN_RATIOS = {
    "1:1": 1.0,
    "3:4": 3.0 / 4.0,
    "4:3": 4.0 / 3.0,
    "9:16": 9.0 / 16.0,
    "16:9": 16.0 / 9.0,
}
DEFAULT_RATIO = "4:3"


def resolve_api_key(explicit: str | None = None) -> str:
    if explicit:
        return explicit
    for name in API_KEY_ENV_VARS:
        value = os.getenv(name)
        if value and value.strip():
            return value.strip()
    raise ConfigurationError(f"{' or '.join(API_KEY_ENV_VARS)} not set.")


def normalize_mime_type(value: Optional[str], default: str = "image/png") -> str:
    if not value:
        return default
    lowered = value.strip().lower()
    if not lowered.startswith("image/") and not lowered.startswith("video/"):
        lowered = f"image/{lowered}"
    if lowered == "image/jpg":
        return "image/jpeg"
    return lowered


def parse_ratio(value: str | None) -> Optional[Tuple[int, int]]:
    if not value:
        return None
    match = _RATIO_RE.match(value)
    if not match:
        return None
    w = int(match.group(1))
    h = int(match.group(2))
    if w <= 0 or h <= 0:
        return None
    return w, h


def nearest_imagen_ratio(value: str | None) -> str:
    """Snap "auto", unknown or unsupported ratios to an Imagen ratio."""
    if not value or value.strip().lower() == "auto":
        return DEFAULT_RATIO
    ratio = parse_ratio(value)
    if not ratio:
        return DEFAULT_RATIO
    candidate = f"{ratio[0]}:{ratio[1]}"
    if candidate in _IMAGEN_RATIOS:
        return candidate
    target = ratio[0] / ratio[1]
    return min(_IMAGEN_RATIOS, key=lambda key: abs(_IMAGEN_RATIOS[key] - target))
