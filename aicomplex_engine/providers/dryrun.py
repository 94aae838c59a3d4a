"""Dry-run backends (offline)."""

from __future__ import annotations

import hashlib
import io
import uuid
from types import SimpleNamespace
from typing import Any, Sequence

from PIL import Image, ImageDraw, ImageFont

from ..runs.requests import ImageArtifact
from .base import Part, VideoOperation
from .google_utils import nearest_imagen_ratio, parse_ratio


_BASE_EDGE = 512


class DryRunImageBackend:
    name = "dryrun"

    def __init__(self) -> None:
        self.calls = 0

    def ensure_configured(self) -> None:
        return None

    def generate_images(self, prompt: str, count: int, aspect_ratio: str) -> list[ImageArtifact]:
        self.calls += 1
        size = _resolve_size(nearest_imagen_ratio(aspect_ratio))
        return [self._render(prompt, idx, size) for idx in range(max(1, int(count)))]

    def generate_content(self, parts: Sequence[Part]) -> Any:
        self.calls += 1
        prompt = _prompt_of(parts)
        size = _size_of_first_image(parts) or _resolve_size("1:1")
        artifact = self._render(prompt, self.calls, size)
        return _inline_response(artifact)

    def generate_text(self, parts: Sequence[Part]) -> Any:
        self.calls += 1
        prompt = _prompt_of(parts)
        images = sum(1 for part in parts if isinstance(part, ImageArtifact))
        text = f"dryrun: {prompt[:80]} ({images} image{'s' if images != 1 else ''})"
        return SimpleNamespace(text=text, candidates=[])

    def _render(self, prompt: str, idx: int, size: tuple[int, int]) -> ImageArtifact:
        image = Image.new("RGB", size, _color_from_prompt(prompt, idx))
        draw = ImageDraw.Draw(image)
        font = ImageFont.load_default()
        draw.text((16, 16), f"dryrun\n{prompt[:60]}", fill=(255, 255, 255), font=font)
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return ImageArtifact(data=buffer.getvalue(), mime_type="image/png")


class DryRunVideoBackend:
    name = "dryrun"

    def __init__(self, polls_until_done: int = 2) -> None:
        self.polls_until_done = max(0, polls_until_done)
        self._polls: dict[str, int] = {}
        self._payloads: dict[str, bytes] = {}

    def ensure_configured(self) -> None:
        return None

    def submit(self, image: ImageArtifact, prompt: str, model: str) -> VideoOperation:
        job_id = uuid.uuid4().hex[:12]
        digest = hashlib.sha256(image.data + prompt.encode("utf-8") + model.encode("utf-8")).digest()
        self._polls[job_id] = 0
        self._payloads[f"dryrun://video/{job_id}"] = b"dryrun-video:" + digest
        return self._operation(job_id)

    def poll(self, operation: VideoOperation) -> VideoOperation:
        job_id = str(operation.handle)
        self._polls[job_id] = self._polls.get(job_id, 0) + 1
        return self._operation(job_id)

    def fetch(self, uri: str) -> bytes:
        payload = self._payloads.get(uri)
        if payload is None:
            raise RuntimeError(f"Unknown dry-run video location: {uri}")
        return payload

    def _operation(self, job_id: str) -> VideoOperation:
        done = self._polls.get(job_id, 0) >= self.polls_until_done
        return VideoOperation(
            handle=job_id,
            done=done,
            result_uri=f"dryrun://video/{job_id}" if done else None,
        )


def _inline_response(artifact: ImageArtifact) -> Any:
    part = SimpleNamespace(inline_data=SimpleNamespace(data=artifact.data, mime_type=artifact.mime_type), text=None)
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])


def _prompt_of(parts: Sequence[Part]) -> str:
    texts = [part for part in parts if isinstance(part, str)]
    return texts[-1] if texts else ""


def _size_of_first_image(parts: Sequence[Part]) -> tuple[int, int] | None:
    for part in parts:
        if not isinstance(part, ImageArtifact):
            continue
        try:
            with Image.open(io.BytesIO(part.data)) as image:
                return image.size
        except Exception:
            return None
    return None


def _resolve_size(ratio: str) -> tuple[int, int]:
    parsed = parse_ratio(ratio) or (1, 1)
    w, h = parsed
    if w >= h:
        return _BASE_EDGE, max(1, round(_BASE_EDGE * h / w))
    return max(1, round(_BASE_EDGE * w / h)), _BASE_EDGE


def _color_from_prompt(prompt: str, seed: int) -> tuple[int, int, int]:
    digest = hashlib.sha256(f"{prompt}:{seed}".encode("utf-8")).digest()
    return digest[0], digest[1], digest[2]
