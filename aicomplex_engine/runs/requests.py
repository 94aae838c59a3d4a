"""Request and artifact types passed through the generation pipeline."""

from __future__ import annotations

import base64
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping


MIN_COUNT = 1
MAX_COUNT = 10
DEFAULT_ASPECT_RATIO = "4:3"

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[^;,]+);base64,(?P<data>.+)$", re.DOTALL)
_SUFFIX_MIME = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".mp4": "video/mp4",
}


@dataclass(frozen=True)
class ImageArtifact:
    data: bytes
    mime_type: str = "image/png"

    @property
    def format(self) -> str:
        subtype = self.mime_type.split("/", 1)[-1].strip().lower()
        return "jpeg" if subtype == "jpg" else subtype

    @property
    def extension(self) -> str:
        return "jpg" if self.format == "jpeg" else self.format

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"

    def to_payload(self) -> dict[str, str]:
        return {"mime_type": self.mime_type, "data": self.to_base64()}

    def save(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.data)
        return path

    @classmethod
    def from_data_url(cls, value: str) -> "ImageArtifact | None":
        match = _DATA_URL_RE.match(value.strip()) if value else None
        if not match:
            return None
        try:
            data = base64.b64decode(match.group("data"), validate=True)
        except Exception:
            return None
        return cls(data=data, mime_type=match.group("mime"))

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ImageArtifact":
        return cls(
            data=base64.b64decode(str(payload["data"])),
            mime_type=str(payload.get("mime_type") or "image/png"),
        )

    @classmethod
    def from_path(cls, path: str | Path) -> "ImageArtifact":
        resolved = Path(path).expanduser()
        mime_type = _SUFFIX_MIME.get(resolved.suffix.lower(), "image/png")
        return cls(data=resolved.read_bytes(), mime_type=mime_type)


def clamp_count(value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return MIN_COUNT
    return max(MIN_COUNT, min(MAX_COUNT, number))


@dataclass
class GenerationRequest:
    mode: str
    prompt: str = ""
    negative_prompt: str | None = None
    count: int = 2
    aspect_ratio: str = DEFAULT_ASPECT_RATIO
    primary_image: ImageArtifact | None = None
    secondary_image: ImageArtifact | None = None
    reference_image: ImageArtifact | None = None
    mask_image: ImageArtifact | None = None
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.count = clamp_count(self.count)

    def input_images(self) -> list[ImageArtifact]:
        ordered = (self.primary_image, self.mask_image, self.secondary_image, self.reference_image)
        return [image for image in ordered if image is not None]
