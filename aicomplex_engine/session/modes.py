"""Mode dispatch table: one entry per mode."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Callable

from ..errors import EmptyBatchResult, InvalidRequestError
from ..pipeline.executor import GenerationExecutor
from ..pipeline.extract import clean_prompt_list
from ..pipeline.prompts import PromptComposer
from ..pipeline.video import VideoJobPoller
from ..runs.history import HistoryInputs, HistoryItem
from ..runs.requests import DEFAULT_ASPECT_RATIO, GenerationRequest, ImageArtifact
from .composition import CompositionModel
from .state import (
    CameraAngleInputs,
    ComposeInputs,
    CreateInputs,
    EditInputs,
    LightingInputs,
    ModeInputs,
    MoodboardInputs,
    PlanTo3dInputs,
    PromptIdeasInputs,
    RestoreMode,
    SessionState,
    VideoInputs,
    VideoScriptInputs,
    VirtualTourInputs,
)
from .tour import VirtualTourNavigator


COMPOSE_HISTORY_PROMPT = "Decor placed into scene"
PROMPT_IDEAS_HISTORY_PROMPT = "Architectural photo prompts"
MERGE_PROMPTS = {
    "merge_house": (
        "Place the building from image 2 into the setting of image 1, keeping the lighting and "
        "vegetation of image 1."
    ),
    "merge_material": (
        "Apply the material from image 2 to the wall surfaces of the building in image 1. Keep the "
        "architectural massing of image 1."
    ),
    "merge_furniture": (
        "Replace the matching piece of furniture in image 1 with the object from image 2. Keep the "
        "setting, lighting and interior space of image 1."
    ),
}
EDIT_SUB_MODES = ("inpaint", *MERGE_PROMPTS)
PLAN_VARIANTS = ("render", "colorize")

# Input fields persisted as image slots of HistoryInputs instead of options.
_IMAGE_SLOTS = ("reference", "secondary")
_NOT_PERSISTED = ("mask", "prompt", "negative_prompt", "count")


@dataclass
class ModeContext:
    composer: PromptComposer
    executor: GenerationExecutor
    poller: VideoJobPoller | None
    composition: CompositionModel
    tour: VirtualTourNavigator
    on_progress: Callable[[str], None] | None = None


@dataclass
class ModeOutcome:
    images: tuple[ImageArtifact, ...] = ()
    text: str | None = None
    video: Any = None
    video_model: str | None = None
    prompt: str = ""
    record_history: bool = True
    tour_frame: int | None = None

    @property
    def empty(self) -> bool:
        return not self.images and not self.text and self.video is None


Validator = Callable[[SessionState, ModeContext], None]
Runner = Callable[[SessionState, ModeContext], ModeOutcome]
Snapshot = Callable[[SessionState, ModeOutcome], HistoryInputs]
Restorer = Callable[[HistoryItem], RestoreMode]


@dataclass(frozen=True)
class ModeSpec:
    tag: str
    state_type: type[ModeInputs]
    validate: Validator
    run: Runner
    snapshot: Snapshot
    restore: Restorer

    @property
    def isolated(self) -> bool:
        return self.state_type.isolated


def _require_source(state: SessionState, ctx: ModeContext) -> None:
    if state.source is None:
        raise InvalidRequestError("Upload a source image first.")


def _require_prompt(value: str, what: str = "a prompt") -> None:
    if not value or not value.strip():
        raise InvalidRequestError(f"Enter {what} first.")


def _default_snapshot(state: SessionState, outcome: ModeOutcome) -> HistoryInputs:
    mode = state.mode
    options = {
        item.name: getattr(mode, item.name)
        for item in fields(mode)
        if item.name not in _IMAGE_SLOTS and item.name not in _NOT_PERSISTED
    }
    return HistoryInputs(
        source=state.source,
        secondary=getattr(mode, "secondary", None),
        reference=getattr(mode, "reference", None),
        prompt=outcome.prompt,
        negative_prompt=getattr(mode, "negative_prompt", "") or "",
        count=getattr(mode, "count", 0),
        options=options,
    )


def _restorer(inputs_type: type[ModeInputs]) -> Restorer:
    def restore(item: HistoryItem) -> RestoreMode:
        names = {entry.name for entry in fields(inputs_type)}
        saved = item.inputs
        values: dict[str, Any] = {key: value for key, value in saved.options.items() if key in names}
        if "prompt" in names:
            values["prompt"] = saved.prompt
        if "negative_prompt" in names:
            values["negative_prompt"] = saved.negative_prompt
        if "count" in names and saved.count:
            values["count"] = saved.count
        for slot in _IMAGE_SLOTS:
            if slot in names:
                values[slot] = getattr(saved, slot)
        if "model" in names and item.video_model:
            values["model"] = item.video_model
        return RestoreMode(
            mode=inputs_type(**values),
            source=saved.source,
            results=item.generated_images,
            generated_text=item.generated_text,
            last_prompt=saved.prompt,
        )

    return restore


def _validate_create(state: SessionState, ctx: ModeContext) -> None:
    mode: CreateInputs = state.mode  # type: ignore[assignment]
    if state.source is None:
        _require_prompt(mode.prompt)


def _run_create(state: SessionState, ctx: ModeContext) -> ModeOutcome:
    mode: CreateInputs = state.mode  # type: ignore[assignment]
    if state.source is None:
        request = GenerationRequest(
            mode=mode.tag,
            prompt=ctx.composer.text_to_image(mode.prompt, mode.negative_prompt),
            negative_prompt=mode.negative_prompt,
            count=mode.count,
            aspect_ratio=DEFAULT_ASPECT_RATIO if mode.aspect_ratio == "auto" else mode.aspect_ratio,
        )
    else:
        request = GenerationRequest(
            mode=mode.tag,
            prompt=ctx.composer.image_to_image(
                mode.prompt, mode.negative_prompt, has_reference=mode.reference is not None
            ),
            negative_prompt=mode.negative_prompt,
            count=mode.count,
            primary_image=state.source,
            reference_image=mode.reference,
        )
    images = ctx.executor.execute_request(request)
    return ModeOutcome(images=tuple(images), prompt=mode.prompt)


def _validate_camera_angle(state: SessionState, ctx: ModeContext) -> None:
    _require_source(state, ctx)
    _require_prompt(state.mode.prompt, "a camera angle")  # type: ignore[attr-defined]


def _run_camera_angle(state: SessionState, ctx: ModeContext) -> ModeOutcome:
    mode: CameraAngleInputs = state.mode  # type: ignore[assignment]
    request = GenerationRequest(
        mode=mode.tag,
        prompt=ctx.composer.camera_angle(mode.prompt),
        count=mode.count,
        primary_image=state.source,
    )
    images = ctx.executor.execute_request(request)
    return ModeOutcome(images=tuple(images), prompt=mode.prompt)


def _validate_plan(state: SessionState, ctx: ModeContext) -> None:
    _require_source(state, ctx)
    variant = state.mode.variant  # type: ignore[attr-defined]
    if variant not in PLAN_VARIANTS:
        raise InvalidRequestError(f"Unknown plan variant: {variant}")


def _run_plan(state: SessionState, ctx: ModeContext) -> ModeOutcome:
    mode: PlanTo3dInputs = state.mode  # type: ignore[assignment]
    colorize = mode.variant == "colorize"
    request = GenerationRequest(
        mode=mode.tag,
        prompt=ctx.composer.plan(mode.prompt, colorize=colorize),
        count=mode.count,
        primary_image=state.source,
        reference_image=None if colorize else mode.reference,
        options={"variant": mode.variant},
    )
    images = ctx.executor.execute_request(request)
    return ModeOutcome(images=tuple(images), prompt=mode.prompt)


def _validate_edit(state: SessionState, ctx: ModeContext) -> None:
    _require_source(state, ctx)
    mode: EditInputs = state.mode  # type: ignore[assignment]
    if mode.sub_mode not in EDIT_SUB_MODES:
        raise InvalidRequestError(f"Unknown edit mode: {mode.sub_mode}")
    if mode.sub_mode == "inpaint":
        if mode.mask is None:
            raise InvalidRequestError("Select the region to edit first.")
        _require_prompt(mode.prompt)
    elif mode.secondary is None:
        raise InvalidRequestError("Upload the second image first.")


def _run_edit(state: SessionState, ctx: ModeContext) -> ModeOutcome:
    mode: EditInputs = state.mode  # type: ignore[assignment]
    if mode.sub_mode == "inpaint":
        user_prompt = mode.prompt
        request = GenerationRequest(
            mode=mode.tag,
            prompt=ctx.composer.inpaint(mode.prompt, has_reference=mode.reference is not None),
            count=mode.count,
            primary_image=state.source,
            mask_image=mode.mask,
            reference_image=mode.reference,
            options={"sub_mode": mode.sub_mode},
        )
    else:
        user_prompt = mode.prompt if mode.prompt.strip() else MERGE_PROMPTS[mode.sub_mode]
        request = GenerationRequest(
            mode=mode.tag,
            prompt=user_prompt,
            count=mode.count,
            primary_image=state.source,
            secondary_image=mode.secondary,
            options={"sub_mode": mode.sub_mode},
        )
    images = ctx.executor.execute_request(request)
    return ModeOutcome(images=tuple(images), prompt=user_prompt)


def _snapshot_edit(state: SessionState, outcome: ModeOutcome) -> HistoryInputs:
    snapshot = _default_snapshot(state, outcome)
    mode: EditInputs = state.mode  # type: ignore[assignment]
    if mode.sub_mode == "inpaint":
        return HistoryInputs(
            source=snapshot.source,
            reference=snapshot.reference,
            prompt=snapshot.prompt,
            count=snapshot.count,
            options=snapshot.options,
        )
    return HistoryInputs(
        source=snapshot.source,
        secondary=snapshot.secondary,
        prompt=snapshot.prompt,
        count=snapshot.count,
        options=snapshot.options,
    )


def _validate_compose(state: SessionState, ctx: ModeContext) -> None:
    _require_source(state, ctx)
    if not len(ctx.composition):
        raise InvalidRequestError("Add at least one decor object first.")


def _run_compose(state: SessionState, ctx: ModeContext) -> ModeOutcome:
    mode: ComposeInputs = state.mode  # type: ignore[assignment]
    placements = ctx.composition.placements()
    request = GenerationRequest(
        mode=mode.tag,
        prompt=ctx.composer.composition([item.transform for item in placements]),
        count=mode.count,
        primary_image=state.source,
    )
    images = ctx.executor.execute_request(request, [item.image for item in placements])
    return ModeOutcome(images=tuple(images), prompt=COMPOSE_HISTORY_PROMPT)


def _validate_video(state: SessionState, ctx: ModeContext) -> None:
    _require_source(state, ctx)
    if ctx.poller is None:
        raise InvalidRequestError("No video backend configured.")


def _run_video(state: SessionState, ctx: ModeContext) -> ModeOutcome:
    mode: VideoInputs = state.mode  # type: ignore[assignment]
    blob = ctx.poller.run(state.source, mode.prompt, mode.model, ctx.on_progress)  # type: ignore[union-attr]
    return ModeOutcome(video=blob, video_model=mode.model, prompt=mode.prompt)


def _snapshot_without_count(state: SessionState, outcome: ModeOutcome) -> HistoryInputs:
    snapshot = _default_snapshot(state, outcome)
    return HistoryInputs(source=snapshot.source, prompt=snapshot.prompt, options=snapshot.options)


def _run_prompt_ideas(state: SessionState, ctx: ModeContext) -> ModeOutcome:
    text = ctx.executor.execute_text([state.source], ctx.composer.template("architectural_prompts"))
    return ModeOutcome(text=clean_prompt_list(text) or None, prompt=PROMPT_IDEAS_HISTORY_PROMPT)


def _run_moodboard(state: SessionState, ctx: ModeContext) -> ModeOutcome:
    mode: MoodboardInputs = state.mode  # type: ignore[assignment]
    request = GenerationRequest(
        mode=mode.tag,
        prompt=ctx.composer.moodboard(mode.prompt, has_reference=mode.reference is not None),
        count=mode.count,
        primary_image=state.source,
        reference_image=mode.reference,
    )
    images = ctx.executor.execute_request(request)
    return ModeOutcome(images=tuple(images), prompt=mode.prompt)


def _validate_lighting(state: SessionState, ctx: ModeContext) -> None:
    _require_source(state, ctx)
    _require_prompt(state.mode.prompt, "a lighting condition")  # type: ignore[attr-defined]


def _run_lighting(state: SessionState, ctx: ModeContext) -> ModeOutcome:
    mode: LightingInputs = state.mode  # type: ignore[assignment]
    request = GenerationRequest(
        mode=mode.tag,
        prompt=ctx.composer.lighting(mode.prompt),
        count=mode.count,
        primary_image=state.source,
    )
    images = ctx.executor.execute_request(request)
    return ModeOutcome(images=tuple(images), prompt=mode.prompt)


def _validate_video_script(state: SessionState, ctx: ModeContext) -> None:
    _require_source(state, ctx)
    _require_prompt(state.mode.prompt)  # type: ignore[attr-defined]


def _run_video_script(state: SessionState, ctx: ModeContext) -> ModeOutcome:
    mode: VideoScriptInputs = state.mode  # type: ignore[assignment]
    text = ctx.executor.execute_text([state.source], ctx.composer.video_script(mode.prompt))
    return ModeOutcome(text=text or None, prompt=mode.prompt)


def _validate_tour(state: SessionState, ctx: ModeContext) -> None:
    if ctx.tour.current is None:
        raise InvalidRequestError("Start the tour with an image first.")
    _require_prompt(state.mode.prompt, "a camera movement")  # type: ignore[attr-defined]


def _run_tour(state: SessionState, ctx: ModeContext) -> ModeOutcome:
    mode: VirtualTourInputs = state.mode  # type: ignore[assignment]
    request = GenerationRequest(
        mode=mode.tag,
        prompt=ctx.composer.image_to_image(mode.prompt, has_reference=False),
        count=1,
        primary_image=ctx.tour.current,
    )
    images = ctx.executor.execute_request(request)
    if not images:
        raise EmptyBatchResult("The next tour frame could not be generated.")
    index = ctx.tour.step(images[0])
    return ModeOutcome(images=(images[0],), prompt=mode.prompt, record_history=False, tour_frame=index)


def _spec(
    inputs_type: type[ModeInputs],
    validate: Validator,
    run: Runner,
    snapshot: Snapshot = _default_snapshot,
) -> ModeSpec:
    return ModeSpec(
        tag=inputs_type.tag,
        state_type=inputs_type,
        validate=validate,
        run=run,
        snapshot=snapshot,
        restore=_restorer(inputs_type),
    )


MODES: dict[str, ModeSpec] = {
    spec.tag: spec
    for spec in (
        _spec(CreateInputs, _validate_create, _run_create),
        _spec(CameraAngleInputs, _validate_camera_angle, _run_camera_angle),
        _spec(PlanTo3dInputs, _validate_plan, _run_plan),
        _spec(EditInputs, _validate_edit, _run_edit, _snapshot_edit),
        _spec(ComposeInputs, _validate_compose, _run_compose),
        _spec(VideoInputs, _validate_video, _run_video, _snapshot_without_count),
        _spec(PromptIdeasInputs, _require_source, _run_prompt_ideas, _snapshot_without_count),
        _spec(MoodboardInputs, _require_source, _run_moodboard),
        _spec(LightingInputs, _validate_lighting, _run_lighting),
        _spec(VideoScriptInputs, _validate_video_script, _run_video_script, _snapshot_without_count),
        _spec(VirtualTourInputs, _validate_tour, _run_tour),
    )
}


def mode_spec(tag: str) -> ModeSpec:
    try:
        return MODES[tag]
    except KeyError as exc:
        raise ValueError(f"Unknown mode: {tag}") from exc
