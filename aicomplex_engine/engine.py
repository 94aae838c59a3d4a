"""Session orchestration for the AIComplex engine."""

from __future__ import annotations

import time
import uuid
from dataclasses import fields
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

from .errors import (
    ConfigurationError,
    EmptyBatchResult,
    InvalidCredentialError,
    InvalidRequestError,
    SessionBusyError,
    is_invalid_credential,
)
from .imaging import aspect_ratio_of, mark_region, pad_to_aspect_ratio
from .pipeline.executor import GenerationExecutor
from .pipeline.prompts import PromptComposer
from .pipeline.video import VideoBlob, VideoJobPoller
from .providers import default_registry
from .providers.base import BackendRegistry, ImageBackend, VideoBackend
from .runs.events import EventWriter
from .runs.history import HistoryInputs, HistoryItem, HistoryStore
from .runs.requests import ImageArtifact
from .session.composition import CompositionModel
from .session.modes import ModeContext, ModeOutcome, ModeSpec, mode_spec
from .session.state import (
    GenerationFailed as GenerationFailedEvent,
    GenerationStarted,
    GenerationSucceeded,
    ProgressUpdated,
    SelectResult,
    SessionState,
    SetSourceImage,
    StartEditingResult,
    SwitchMode,
    UpdateInputs,
    UseResultAsSource,
    reduce,
)
from .session.tour import NAVIGATION_PROMPTS, VirtualTourNavigator


CLOSE_UP_HISTORY_PROMPT = "Close-up views of the selected area"
DESCRIBE_KINDS = ("auto", "exterior", "interior", "plan", "keywords", "keywords_interior")

Runner = Callable[[SessionState, ModeContext], ModeOutcome]
Snapshot = Callable[[SessionState, ModeOutcome], HistoryInputs]


class SessionController:
    def __init__(
        self,
        history: HistoryStore | None = None,
        *,
        backend: str = "gemini",
        registry: BackendRegistry | None = None,
        image_backend: ImageBackend | None = None,
        video_backend: VideoBackend | None = None,
        events: EventWriter | None = None,
        events_path: Path | None = None,
        composer: PromptComposer | None = None,
        poll_interval: float = 10.0,
        max_polls: int = 90,
        sleep: Callable[[float], None] = time.sleep,
        max_workers: int = 1,
        on_progress: Callable[[str], None] | None = None,
    ) -> None:
        self.run_id = uuid.uuid4().hex[:12]
        self.events = events or EventWriter(events_path, self.run_id)
        providers = registry or default_registry()
        resolved_image = image_backend or providers.image(backend)
        if resolved_image is None:
            raise ConfigurationError(f"Unknown image backend: {backend}")
        self.image_backend = resolved_image
        self.video_backend = video_backend or providers.video(backend)
        self.history = history if history is not None else HistoryStore(events=self.events)
        if self.history.events is None:
            self.history.events = self.events
        self.composer = composer or PromptComposer()
        self.executor = GenerationExecutor(self.image_backend, events=self.events, max_workers=max_workers)
        self.poller = (
            VideoJobPoller(
                self.video_backend,
                poll_interval=poll_interval,
                max_polls=max_polls,
                sleep=sleep,
                events=self.events,
            )
            if self.video_backend is not None
            else None
        )
        self.composition = CompositionModel()
        self.tour: VirtualTourNavigator[ImageArtifact] = VirtualTourNavigator()
        self.on_progress = on_progress
        self.state = SessionState()
        self.credential_valid = True
        self.events.emit("session_started", backend=self.image_backend.name, history_items=len(self.history))

    def dispatch(self, event: Any) -> SessionState:
        self.state = reduce(self.state, event)
        return self.state

    def _ensure_idle(self) -> None:
        if self.state.busy:
            raise SessionBusyError("A generation is already in progress.")

    def _release_video(self) -> None:
        if isinstance(self.state.video, VideoBlob):
            self.state.video.revoke()

    # Inputs

    def switch_mode(self, tag: str) -> SessionState:
        mode_spec(tag)
        self._ensure_idle()
        if tag == self.state.tag:
            return self.state
        previous = self.state.tag
        self._release_video()
        self.dispatch(SwitchMode(tag))
        self.events.emit("mode_switched", previous=previous, mode=tag)
        return self.state

    def update_inputs(self, **changes: Any) -> SessionState:
        return self.dispatch(UpdateInputs(changes))

    def set_source_image(self, image: ImageArtifact | None) -> SessionState:
        self._ensure_idle()
        tag = self.state.tag
        if tag == "compose":
            # A new background invalidates the placed decor.
            self.composition.clear_all()
        elif tag == "virtual_tour":
            if image is None:
                self.tour.reset()
            else:
                self.tour.start(image)
                self.events.emit("tour_frame_added", index=0, frames=1)
        self._release_video()
        return self.dispatch(SetSourceImage(image))

    def add_composition_objects(self, images: Iterable[ImageArtifact]) -> list[int]:
        """Add decor objects, padded to the background's aspect ratio when one is set."""
        background = self.state.source
        ratio = None
        if background is not None:
            try:
                ratio = aspect_ratio_of(background)
            except Exception as exc:
                self.events.emit("composition_pad_failed", stage="background", error=str(exc))
        conformed = []
        for image in images:
            if ratio is not None:
                try:
                    image = pad_to_aspect_ratio(image, ratio)
                except Exception as exc:
                    # Unreadable objects are placed as uploaded.
                    self.events.emit("composition_pad_failed", stage="object", error=str(exc))
            conformed.append(image)
        return self.composition.add_many(conformed)

    # Generation

    def _context(self) -> ModeContext:
        return ModeContext(
            composer=self.composer,
            executor=self.executor,
            poller=self.poller,
            composition=self.composition,
            tour=self.tour,
            on_progress=self._report_progress,
        )

    def _report_progress(self, message: str) -> None:
        self.dispatch(ProgressUpdated(message))
        if self.on_progress:
            self.on_progress(message)

    def generate(self) -> ModeOutcome:
        spec: ModeSpec = mode_spec(self.state.tag)
        ctx = self._context()
        spec.validate(self.state, ctx)
        return self._execute(spec.tag, spec.run, spec.snapshot, ctx)

    def generate_close_up(self, area: ImageArtifact | Sequence[float]) -> ModeOutcome:
        """Render close-ups of a marked region; ``area`` is a marked image or a fractional box."""
        source = self.state.source
        if source is None:
            raise InvalidRequestError("Upload a source image first.")
        marked = area if isinstance(area, ImageArtifact) else mark_region(source, area)
        count = getattr(self.state.mode, "count", 2)
        tag = self.state.tag

        def run(state: SessionState, ctx: ModeContext) -> ModeOutcome:
            prompt = ctx.composer.close_up(count)
            images = ctx.executor.execute([marked], lambda _: prompt, count)
            return ModeOutcome(images=tuple(images), prompt=CLOSE_UP_HISTORY_PROMPT)

        def snapshot(state: SessionState, outcome: ModeOutcome) -> HistoryInputs:
            return HistoryInputs(source=state.source, prompt=outcome.prompt, count=count)

        return self._execute(tag, run, snapshot, self._context())

    def generate_from_prompt_idea(self, prompt: str) -> ModeOutcome:
        state = self.state
        source = state.source if state.mode.isolated else state.isolated_source
        if source is None:
            raise InvalidRequestError("Upload an image to extract prompt ideas from first.")
        if not prompt or not prompt.strip():
            raise InvalidRequestError("Choose a prompt first.")
        self._ensure_idle()
        self.switch_mode("create")
        self.set_source_image(source)
        self.update_inputs(prompt=prompt.strip(), negative_prompt="", reference=None)
        return self.generate()

    def describe_source(self, kind: str = "auto") -> str:
        """Ask the text model for a rendering prompt and put it into the active mode."""
        if kind not in DESCRIBE_KINDS:
            raise ValueError(f"Unknown description kind: {kind}")
        mode = self.state.mode
        source = self.state.source
        if kind.startswith("keywords"):
            keywords = str(getattr(mode, "prompt", "") or "")
            if not keywords.strip():
                raise InvalidRequestError("Enter keywords first.")
            images: list[ImageArtifact] = []
            instruction = self.composer.prompt_from_keywords(keywords, interior=kind == "keywords_interior")
        else:
            if source is None:
                raise InvalidRequestError("Upload a source image first.")
            images = [source]
            if kind == "plan":
                instruction = self.composer.template("prompt_from_plan")
            else:
                interior = kind == "interior"
                if kind == "auto":
                    self._ensure_idle()
                    verdict = self._text_call(images, self.composer.template("classify_image"))
                    interior = "interior" in verdict.lower()
                instruction = self.composer.prompt_from_image(interior=interior)
        self._ensure_idle()
        text = self._text_call(images, instruction)
        if text and "prompt" in {item.name for item in fields(mode)}:
            self.update_inputs(prompt=text)
        return text

    def _text_call(self, images: list[ImageArtifact], instruction: str) -> str:
        try:
            return self.executor.execute_text(images, instruction)
        except Exception as exc:
            raise self._classify(exc) from exc

    def _execute(self, tag: str, run: Runner, snapshot: Snapshot, ctx: ModeContext) -> ModeOutcome:
        self._ensure_idle()
        state = self.state
        prompt = str(getattr(state.mode, "prompt", "") or "")
        self._release_video()
        self.dispatch(GenerationStarted(prompt=prompt))
        self.events.emit("generation_started", mode=tag, count=getattr(state.mode, "count", 1))
        try:
            outcome = run(state, ctx)
            if outcome.empty:
                raise EmptyBatchResult("No results were generated.")
        except Exception as exc:
            error = self._classify(exc)
            self.dispatch(GenerationFailedEvent(str(error)))
            self.events.emit("generation_failed", mode=tag, error=str(error), error_type=type(error).__name__)
            if error is exc:
                raise
            raise error from exc

        if outcome.record_history:
            item = HistoryItem.create(
                mode=tag,
                inputs=snapshot(state, outcome),
                generated_images=outcome.images,
                generated_text=outcome.text,
                video_model=outcome.video_model,
            )
            try:
                self.history.append(item)
            except Exception as exc:
                self.events.emit("history_save_failed", mode=tag, error=str(exc), error_type=type(exc).__name__)
        if outcome.tour_frame is not None:
            self.events.emit("tour_frame_added", index=outcome.tour_frame, frames=len(self.tour.frames))
        self.dispatch(GenerationSucceeded(images=outcome.images, text=outcome.text, video=outcome.video))
        self.events.emit(
            "generation_succeeded",
            mode=tag,
            images=len(outcome.images),
            text=bool(outcome.text),
            video=outcome.video is not None,
        )
        return outcome

    def _classify(self, exc: Exception) -> Exception:
        if isinstance(exc, InvalidCredentialError) or is_invalid_credential(exc):
            self.credential_valid = False
            if isinstance(exc, InvalidCredentialError):
                return exc
            return InvalidCredentialError(str(exc))
        return exc

    # Virtual tour

    def start_tour(self, frame: ImageArtifact) -> ImageArtifact:
        self.switch_mode("virtual_tour")
        self.set_source_image(frame)
        return frame

    def navigate_tour(self, move_or_prompt: str) -> ImageArtifact:
        prompt = NAVIGATION_PROMPTS.get(move_or_prompt, move_or_prompt)
        self.switch_mode("virtual_tour")
        self.update_inputs(prompt=prompt)
        outcome = self.generate()
        return outcome.images[0]

    def undo_tour(self) -> ImageArtifact | None:
        return self.tour.undo()

    def redo_tour(self) -> ImageArtifact | None:
        return self.tour.redo()

    def jump_tour(self, index: int) -> ImageArtifact | None:
        return self.tour.jump_to(index)

    # Results and history

    def restore(self, item_or_id: HistoryItem | str) -> SessionState:
        item = self.history.get(item_or_id) if isinstance(item_or_id, str) else item_or_id
        if item is None:
            raise KeyError(f"No history item {item_or_id!r}")
        spec = mode_spec(item.mode)
        self._ensure_idle()
        self._release_video()
        previous = self.state.tag
        self.dispatch(spec.restore(item))
        if previous != spec.tag:
            self.events.emit("mode_switched", previous=previous, mode=spec.tag, restored=item.id)
        return self.state

    def select_result(self, index: int) -> SessionState:
        return self.dispatch(SelectResult(index))

    def use_result_as_source(self) -> SessionState:
        self._ensure_idle()
        self._release_video()
        return self.dispatch(UseResultAsSource())

    def start_editing_result(self) -> SessionState:
        self._ensure_idle()
        if self.state.selected_image is None:
            return self.state
        previous = self.state.tag
        self._release_video()
        self.dispatch(StartEditingResult())
        if previous != self.state.tag:
            self.events.emit("mode_switched", previous=previous, mode=self.state.tag)
        return self.state

    def select_credential(self, api_key: str | None = None) -> None:
        for backend in (self.image_backend, self.video_backend):
            setter = getattr(backend, "set_api_key", None)
            if setter is not None:
                setter(api_key)
        self.credential_valid = True

    def clear_history(self) -> None:
        self.history.clear()
