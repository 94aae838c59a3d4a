"""Normalize raw backend responses."""

from __future__ import annotations

import base64
import binascii
import re
from typing import Any, Mapping, Sequence

from ..providers.google_utils import normalize_mime_type
from ..runs.requests import ImageArtifact


_NUMBERED_HEADER_RE = re.compile(r"\d+️⃣")
_LIST_MARKER_RE = re.compile(r"^\s*[-•]\s*", re.MULTILINE)


def _field(value: Any, *names: str) -> Any:
    for name in names:
        if isinstance(value, Mapping):
            if name in value:
                return value[name]
        elif hasattr(value, name):
            return getattr(value, name)
    return None


def _first_candidate_parts(response: Any) -> Sequence[Any]:
    candidates = _field(response, "candidates") or []
    if not candidates:
        return []
    content = _field(candidates[0], "content")
    return _field(content, "parts") or _field(candidates[0], "parts") or []


def _decode(data: Any) -> bytes | None:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data) or None
    if isinstance(data, str) and data:
        try:
            return base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError):
            return None
    return None


def extract_image(response: Any) -> ImageArtifact | None:
    """Return the first inline binary payload of the response, if any."""
    if response is None:
        return None
    for part in _first_candidate_parts(response):
        inline = _field(part, "inline_data", "inlineData")
        if not inline:
            continue
        data = _decode(_field(inline, "data"))
        if data is None:
            continue
        mime_type = normalize_mime_type(_field(inline, "mime_type", "mimeType"))
        return ImageArtifact(data=data, mime_type=mime_type)
    return None


def extract_text(response: Any) -> str:
    if response is None:
        return ""
    text = _field(response, "text")
    if isinstance(text, str):
        return text.strip()
    chunks = [_field(part, "text") for part in _first_candidate_parts(response)]
    return "".join(chunk for chunk in chunks if isinstance(chunk, str)).strip()


def clean_prompt_list(text: str) -> str:
    """Drop the chatty preamble and markdown from a numbered prompt list."""
    match = _NUMBERED_HEADER_RE.search(text)
    content = text[match.start():] if match else text
    content = content.replace("*", "")
    return _LIST_MARKER_RE.sub("", content).strip()
