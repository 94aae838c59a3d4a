"""Google GenAI backends: Gemini image/text, Imagen text-to-image and Veo video."""

from __future__ import annotations

import os
from typing import Any, Sequence
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

try:
    from google import genai  # type: ignore
    from google.genai import types  # type: ignore
except Exception:  # pragma: no cover
    genai = None  # type: ignore
    types = None  # type: ignore

from ..errors import ConfigurationError
from ..runs.requests import ImageArtifact
from .base import Part, VideoOperation
from .google_utils import nearest_imagen_ratio, normalize_mime_type, resolve_api_key


DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"
DEFAULT_TEXT_TO_IMAGE_MODEL = "imagen-4.0-generate-001"
DEFAULT_TEXT_MODEL = "gemini-2.5-flash"
DEFAULT_VIDEO_MODEL = "veo-3.1-fast-generate-preview"
VIDEO_MODELS = (
    "veo-3.1-fast-generate-preview",
    "veo-3.1-generate-preview",
    "veo-2.0-generate-preview",
)


class _GoogleClientMixin:
    api_key: str | None
    _client_instance: Any

    def ensure_configured(self) -> None:
        resolve_api_key(self.api_key)
        if genai is None:
            raise ConfigurationError("google-genai package not installed. Run: pip install google-genai")

    def set_api_key(self, api_key: str | None) -> None:
        self.api_key = api_key
        self._client_instance = None

    def _client(self) -> Any:
        self.ensure_configured()
        if self._client_instance is None:
            self._client_instance = genai.Client(api_key=resolve_api_key(self.api_key))
        return self._client_instance


class GeminiImageBackend(_GoogleClientMixin):
    name = "gemini"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        image_model: str | None = None,
        text_to_image_model: str | None = None,
        text_model: str | None = None,
    ) -> None:
        self.api_key = api_key
        self.image_model = image_model or os.getenv("AICOMPLEX_IMAGE_MODEL") or DEFAULT_IMAGE_MODEL
        self.text_to_image_model = (
            text_to_image_model or os.getenv("AICOMPLEX_TEXT_TO_IMAGE_MODEL") or DEFAULT_TEXT_TO_IMAGE_MODEL
        )
        self.text_model = text_model or os.getenv("AICOMPLEX_TEXT_MODEL") or DEFAULT_TEXT_MODEL
        self._client_instance = None

    def generate_images(self, prompt: str, count: int, aspect_ratio: str) -> list[ImageArtifact]:
        client = self._client()
        config = types.GenerateImagesConfig(
            number_of_images=max(1, int(count)),
            output_mime_type="image/png",
            aspect_ratio=nearest_imagen_ratio(aspect_ratio),
        )
        response = client.models.generate_images(
            model=self.text_to_image_model,
            prompt=prompt,
            config=config,
        )
        generated = getattr(response, "generated_images", None) or []
        results: list[ImageArtifact] = []
        for item in generated:
            image = getattr(item, "image", None)
            data = getattr(image, "image_bytes", None) if image is not None else None
            if not data:
                continue
            mime_type = normalize_mime_type(getattr(image, "mime_type", None))
            results.append(ImageArtifact(data=bytes(data), mime_type=mime_type))
        return results

    def generate_content(self, parts: Sequence[Part]) -> Any:
        client = self._client()
        return client.models.generate_content(
            model=self.image_model,
            contents=_build_parts(parts),
            config=types.GenerateContentConfig(response_modalities=["IMAGE"]),
        )

    def generate_text(self, parts: Sequence[Part]) -> Any:
        client = self._client()
        return client.models.generate_content(
            model=self.text_model,
            contents=_build_parts(parts),
        )


class VeoVideoBackend(_GoogleClientMixin):
    name = "gemini"

    def __init__(self, api_key: str | None = None, *, download_timeout: float = 120.0) -> None:
        self.api_key = api_key
        self.download_timeout = download_timeout
        self._client_instance = None

    def submit(self, image: ImageArtifact, prompt: str, model: str) -> VideoOperation:
        client = self._client()
        operation = client.models.generate_videos(
            model=model,
            prompt=prompt,
            image=types.Image(image_bytes=image.data, mime_type=image.mime_type),
            config=types.GenerateVideosConfig(number_of_videos=1),
        )
        return _to_video_operation(operation)

    def poll(self, operation: VideoOperation) -> VideoOperation:
        client = self._client()
        return _to_video_operation(client.operations.get(operation.handle))

    def fetch(self, uri: str) -> bytes:
        headers = {"x-goog-api-key": resolve_api_key(self.api_key)}
        req = Request(uri, headers=headers, method="GET")
        try:
            with urlopen(req, timeout=self.download_timeout) as response:
                return response.read()
        except HTTPError as exc:
            raise RuntimeError(f"Failed to download video ({exc.code}): {exc.reason}") from exc
        except URLError as exc:
            raise RuntimeError(f"Failed to download video: {exc.reason}") from exc


def _build_parts(parts: Sequence[Part]) -> list[Any]:
    built: list[Any] = []
    for entry in parts:
        if isinstance(entry, ImageArtifact):
            built.append(types.Part(inline_data=types.Blob(data=entry.data, mime_type=entry.mime_type)))
        elif isinstance(entry, str):
            built.append(types.Part(text=entry))
        else:
            raise TypeError(f"Unsupported content part: {type(entry).__name__}")
    return built


def _to_video_operation(operation: Any) -> VideoOperation:
    done = bool(getattr(operation, "done", False))
    error = getattr(operation, "error", None)
    uri = None
    response = getattr(operation, "response", None) or getattr(operation, "result", None)
    videos = getattr(response, "generated_videos", None) or []
    if videos:
        video = getattr(videos[0], "video", None)
        uri = getattr(video, "uri", None)
    return VideoOperation(
        handle=operation,
        done=done,
        result_uri=uri,
        error=str(error) if error else None,
    )
