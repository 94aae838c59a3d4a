"""Backend protocols and registry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Protocol, Sequence, Union

from ..runs.requests import ImageArtifact


Part = Union[ImageArtifact, str]


@dataclass
class VideoOperation:
    handle: Any
    done: bool = False
    result_uri: str | None = None
    error: str | None = None


class ImageBackend(Protocol):
    name: str

    def ensure_configured(self) -> None:
        ...

    def generate_images(self, prompt: str, count: int, aspect_ratio: str) -> list[ImageArtifact]:
        ...

    def generate_content(self, parts: Sequence[Part]) -> Any:
        ...

    def generate_text(self, parts: Sequence[Part]) -> Any:
        ...


class VideoBackend(Protocol):
    name: str

    def ensure_configured(self) -> None:
        ...

    def submit(self, image: ImageArtifact, prompt: str, model: str) -> VideoOperation:
        ...

    def poll(self, operation: VideoOperation) -> VideoOperation:
        ...

    def fetch(self, uri: str) -> bytes:
        ...


class BackendRegistry:
    def __init__(self, image_backends: Iterable[ImageBackend], video_backends: Iterable[VideoBackend] = ()) -> None:
        self._image = {backend.name: backend for backend in image_backends}
        self._video = {backend.name: backend for backend in video_backends}

    def image(self, name: str) -> ImageBackend | None:
        return self._image.get(name)

    def video(self, name: str) -> VideoBackend | None:
        return self._video.get(name)

    def list(self) -> list[str]:
        return sorted(set(self._image) | set(self._video))
