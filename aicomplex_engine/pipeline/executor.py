"""Batch execution against an image backend."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Sequence

from ..errors import GenerationFailed, InvalidCredentialError, is_invalid_credential
from ..providers.base import ImageBackend, Part
from ..runs.events import EventWriter
from ..runs.requests import GenerationRequest, ImageArtifact, clamp_count
from .extract import extract_image, extract_text


PromptBuilder = Callable[[int], str]


@dataclass
class AttemptFailure:
    index: int
    error: str


class GenerationExecutor:
    def __init__(
        self,
        backend: ImageBackend,
        *,
        events: EventWriter | None = None,
        max_workers: int = 1,
    ) -> None:
        self.backend = backend
        self.events = events
        self.max_workers = max(1, int(max_workers))
        self.last_failures: list[AttemptFailure] = []

    def execute(
        self,
        images: Sequence[ImageArtifact],
        build_prompt: PromptBuilder,
        count: int,
    ) -> list[ImageArtifact]:
        """Run ``count`` independent attempts and keep the ones that produced an image.

        Results keep attempt order. A rejected credential aborts the batch.
        """
        self.backend.ensure_configured()
        count = clamp_count(count)
        self.last_failures = []
        inputs: list[Part] = list(images)

        if self.max_workers > 1 and count > 1:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, count)) as pool:
                futures = [pool.submit(self._attempt, inputs, build_prompt, idx) for idx in range(count)]
                outcomes = [future.result() for future in futures]
        else:
            outcomes = [self._attempt(inputs, build_prompt, idx) for idx in range(count)]
        return [artifact for artifact in outcomes if artifact is not None]

    def execute_request(
        self,
        request: GenerationRequest,
        extra_images: Sequence[ImageArtifact] = (),
    ) -> list[ImageArtifact]:
        """Run a request: text-to-image without a primary image, image-to-image otherwise."""
        if request.primary_image is None:
            return self.execute_text_to_image(request.prompt, request.count, request.aspect_ratio)
        images = [*request.input_images(), *extra_images]
        return self.execute(images, lambda _: request.prompt, request.count)

    def execute_text_to_image(self, prompt: str, count: int, aspect_ratio: str) -> list[ImageArtifact]:
        self.backend.ensure_configured()
        count = clamp_count(count)
        self.last_failures = []
        try:
            results = self.backend.generate_images(prompt, count, aspect_ratio)
        except Exception as exc:
            if is_invalid_credential(exc):
                raise InvalidCredentialError(str(exc)) from exc
            self._record_failure(0, exc)
            return []
        return [artifact for artifact in results if artifact is not None][:count]

    def execute_text(self, images: Sequence[ImageArtifact], prompt: str) -> str:
        self.backend.ensure_configured()
        try:
            response = self.backend.generate_text([*images, prompt])
        except Exception as exc:
            if is_invalid_credential(exc):
                raise InvalidCredentialError(str(exc)) from exc
            raise GenerationFailed(f"Text generation failed: {exc}") from exc
        return extract_text(response)

    def _attempt(self, inputs: list[Part], build_prompt: PromptBuilder, idx: int) -> ImageArtifact | None:
        try:
            response = self.backend.generate_content([*inputs, build_prompt(idx)])
        except Exception as exc:
            if is_invalid_credential(exc):
                raise InvalidCredentialError(str(exc)) from exc
            self._record_failure(idx, exc)
            return None
        artifact = extract_image(response)
        if artifact is None:
            self._record_failure(idx, "response contained no image")
        return artifact

    def _record_failure(self, idx: int, error: Exception | str) -> None:
        failure = AttemptFailure(index=idx, error=str(error))
        self.last_failures.append(failure)
        if self.events:
            self.events.emit("attempt_failed", attempt=idx, backend=self.backend.name, error=failure.error)
