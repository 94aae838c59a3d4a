"""Session state as one tagged variant per mode, driven by a pure reducer."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, ClassVar, Mapping

from ..runs.requests import ImageArtifact, clamp_count


DEFAULT_CREATE_PROMPT = "A photorealistic architectural rendering, soft daylight, high detail"
DEFAULT_PLAN_PROMPT = "Modern interior with natural materials and warm lighting"


@dataclass(frozen=True)
class ModeInputs:
    tag: ClassVar[str] = ""
    # Isolated modes keep their own source image and leave the shared one untouched.
    isolated: ClassVar[bool] = False

    def __post_init__(self) -> None:
        if any(item.name == "count" for item in fields(self)):
            object.__setattr__(self, "count", clamp_count(getattr(self, "count")))

    def updated(self, changes: Mapping[str, Any]) -> "ModeInputs":
        known = {item.name for item in fields(self)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ValueError(f"Unknown input(s) for mode {self.tag!r}: {', '.join(unknown)}")
        return replace(self, **changes)

    def fresh(self) -> "ModeInputs":
        """Defaults for this mode, carrying over the requested count."""
        if hasattr(self, "count"):
            return type(self)(count=getattr(self, "count"))  # type: ignore[call-arg]
        return type(self)()


@dataclass(frozen=True)
class CreateInputs(ModeInputs):
    tag: ClassVar[str] = "create"
    prompt: str = DEFAULT_CREATE_PROMPT
    negative_prompt: str = ""
    reference: ImageArtifact | None = None
    count: int = 2
    aspect_ratio: str = "auto"


@dataclass(frozen=True)
class CameraAngleInputs(ModeInputs):
    tag: ClassVar[str] = "camera_angle"
    prompt: str = ""
    count: int = 2


@dataclass(frozen=True)
class PlanTo3dInputs(ModeInputs):
    tag: ClassVar[str] = "plan_to_3d"
    prompt: str = DEFAULT_PLAN_PROMPT
    variant: str = "render"
    reference: ImageArtifact | None = None
    count: int = 2


@dataclass(frozen=True)
class EditInputs(ModeInputs):
    tag: ClassVar[str] = "edit"
    prompt: str = ""
    sub_mode: str = "inpaint"
    mask: ImageArtifact | None = None
    secondary: ImageArtifact | None = None
    reference: ImageArtifact | None = None
    count: int = 2


@dataclass(frozen=True)
class ComposeInputs(ModeInputs):
    tag: ClassVar[str] = "compose"
    count: int = 2


@dataclass(frozen=True)
class VideoInputs(ModeInputs):
    tag: ClassVar[str] = "video"
    prompt: str = ""
    model: str = "veo-3.1-fast-generate-preview"


@dataclass(frozen=True)
class PromptIdeasInputs(ModeInputs):
    tag: ClassVar[str] = "prompt_ideas"
    isolated: ClassVar[bool] = True
    count: int = 2


@dataclass(frozen=True)
class MoodboardInputs(ModeInputs):
    tag: ClassVar[str] = "moodboard"
    prompt: str = ""
    reference: ImageArtifact | None = None
    count: int = 2


@dataclass(frozen=True)
class LightingInputs(ModeInputs):
    tag: ClassVar[str] = "lighting"
    interior: str = ""
    exterior: str = ""
    count: int = 2

    @property
    def prompt(self) -> str:
        return ", ".join(part for part in (self.interior, self.exterior) if part)


@dataclass(frozen=True)
class VideoScriptInputs(ModeInputs):
    tag: ClassVar[str] = "video_script"
    prompt: str = ""


@dataclass(frozen=True)
class VirtualTourInputs(ModeInputs):
    tag: ClassVar[str] = "virtual_tour"
    prompt: str = ""


MODE_INPUTS: dict[str, type[ModeInputs]] = {
    cls.tag: cls
    for cls in (
        CreateInputs,
        CameraAngleInputs,
        PlanTo3dInputs,
        EditInputs,
        ComposeInputs,
        VideoInputs,
        PromptIdeasInputs,
        MoodboardInputs,
        LightingInputs,
        VideoScriptInputs,
        VirtualTourInputs,
    )
}


def inputs_for(tag: str) -> ModeInputs:
    try:
        return MODE_INPUTS[tag]()
    except KeyError as exc:
        raise ValueError(f"Unknown mode: {tag}") from exc


@dataclass(frozen=True)
class SessionState:
    mode: ModeInputs = field(default_factory=CreateInputs)
    source: ImageArtifact | None = None
    results: tuple[ImageArtifact, ...] = ()
    selected: int | None = None
    generated_text: str | None = None
    video: Any = None
    last_prompt: str = ""
    busy: bool = False
    progress: str = ""
    error: str | None = None
    # While an isolated mode is active the shared source waits here.
    stashed_source: ImageArtifact | None = None
    # The isolated mode's own source, kept while other modes are active.
    isolated_source: ImageArtifact | None = None

    @property
    def tag(self) -> str:
        return self.mode.tag

    @property
    def selected_image(self) -> ImageArtifact | None:
        if self.selected is None or not 0 <= self.selected < len(self.results):
            return None
        return self.results[self.selected]


@dataclass(frozen=True)
class SwitchMode:
    tag: str


@dataclass(frozen=True)
class UpdateInputs:
    changes: Mapping[str, Any]


@dataclass(frozen=True)
class SetSourceImage:
    image: ImageArtifact | None


@dataclass(frozen=True)
class GenerationStarted:
    prompt: str
    message: str = ""


@dataclass(frozen=True)
class ProgressUpdated:
    message: str


@dataclass(frozen=True)
class GenerationSucceeded:
    images: tuple[ImageArtifact, ...] = ()
    text: str | None = None
    video: Any = None


@dataclass(frozen=True)
class GenerationFailed:
    error: str


@dataclass(frozen=True)
class SelectResult:
    index: int


@dataclass(frozen=True)
class UseResultAsSource:
    pass


@dataclass(frozen=True)
class StartEditingResult:
    pass


@dataclass(frozen=True)
class RestoreMode:
    mode: ModeInputs
    source: ImageArtifact | None
    results: tuple[ImageArtifact, ...] = ()
    generated_text: str | None = None
    last_prompt: str = ""


def _enter(state: SessionState, mode: ModeInputs) -> SessionState:
    """Swap sources when crossing the isolated-mode boundary."""
    leaving = state.mode.isolated
    entering = mode.isolated
    if leaving == entering:
        return replace(state, mode=mode)
    if entering:
        return replace(
            state,
            mode=mode,
            stashed_source=state.source,
            source=state.isolated_source,
        )
    return replace(
        state,
        mode=mode,
        isolated_source=state.source,
        source=state.stashed_source,
        stashed_source=None,
    )


def _switch_mode(state: SessionState, event: SwitchMode) -> SessionState:
    if event.tag == state.tag:
        return state
    switched = _enter(state, inputs_for(event.tag))
    return replace(switched, error=None, progress="", generated_text=None, video=None)


def _update_inputs(state: SessionState, event: UpdateInputs) -> SessionState:
    return replace(state, mode=state.mode.updated(event.changes))


def _set_source_image(state: SessionState, event: SetSourceImage) -> SessionState:
    image = event.image
    mode = state.mode
    # Region and second-image inputs belong to the previous source.
    detached = {name: None for name in ("mask", "secondary") if hasattr(mode, name)}
    if isinstance(mode, EditInputs):
        detached["reference"] = None
    if detached:
        mode = replace(mode, **detached)
    if image is None:
        return replace(state, mode=mode, source=None, video=None)
    shows_source = not isinstance(mode, (ComposeInputs, PromptIdeasInputs))
    return replace(
        state,
        mode=mode,
        source=image,
        results=(image,) if shows_source else (),
        selected=0 if shows_source else None,
        generated_text=None if mode.isolated else state.generated_text,
        video=None,
        error=None,
    )


def _generation_started(state: SessionState, event: GenerationStarted) -> SessionState:
    return replace(
        state,
        busy=True,
        progress=event.message,
        error=None,
        results=(),
        selected=None,
        generated_text=None,
        video=None,
        last_prompt=event.prompt,
    )


def _progress_updated(state: SessionState, event: ProgressUpdated) -> SessionState:
    return replace(state, progress=event.message)


def _generation_succeeded(state: SessionState, event: GenerationSucceeded) -> SessionState:
    images = tuple(event.images)
    return replace(
        state,
        busy=False,
        progress="",
        results=images,
        selected=0 if images else None,
        generated_text=event.text,
        video=event.video,
    )


def _generation_failed(state: SessionState, event: GenerationFailed) -> SessionState:
    return replace(state, busy=False, progress="", error=event.error)


def _select_result(state: SessionState, event: SelectResult) -> SessionState:
    if not 0 <= event.index < len(state.results):
        return state
    return replace(state, selected=event.index)


def _use_result_as_source(state: SessionState, event: UseResultAsSource) -> SessionState:
    image = state.selected_image
    if image is None:
        return state
    return replace(
        state,
        mode=state.mode.fresh(),
        source=image,
        results=(image,),
        selected=0,
        generated_text=None,
        video=None,
        error=None,
    )


def _start_editing_result(state: SessionState, event: StartEditingResult) -> SessionState:
    image = state.selected_image
    if image is None:
        return state
    entered = _enter(state, EditInputs())
    return replace(
        entered,
        source=image,
        results=(image,),
        selected=0,
        generated_text=None,
        video=None,
        error=None,
    )


def _restore_mode(state: SessionState, event: RestoreMode) -> SessionState:
    entered = _enter(state, event.mode)
    results = tuple(event.results)
    return replace(
        entered,
        source=event.source,
        results=results,
        selected=0 if results else None,
        generated_text=event.generated_text,
        last_prompt=event.last_prompt,
        video=None,
        error=None,
        progress="",
    )


_HANDLERS: dict[type, Callable[[SessionState, Any], SessionState]] = {
    SwitchMode: _switch_mode,
    UpdateInputs: _update_inputs,
    SetSourceImage: _set_source_image,
    GenerationStarted: _generation_started,
    ProgressUpdated: _progress_updated,
    GenerationSucceeded: _generation_succeeded,
    GenerationFailed: _generation_failed,
    SelectResult: _select_result,
    UseResultAsSource: _use_result_as_source,
    StartEditingResult: _start_editing_result,
    RestoreMode: _restore_mode,
}


def reduce(state: SessionState, event: Any) -> SessionState:
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"Unhandled session event: {type(event).__name__}")
    return handler(state, event)
