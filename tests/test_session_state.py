from __future__ import annotations

import pytest

from aicomplex_engine.runs.requests import ImageArtifact
from aicomplex_engine.session.state import (
    CreateInputs,
    EditInputs,
    GenerationFailed,
    GenerationStarted,
    GenerationSucceeded,
    LightingInputs,
    ModeInputs,
    MODE_INPUTS,
    RestoreMode,
    SelectResult,
    SessionState,
    SetSourceImage,
    StartEditingResult,
    SwitchMode,
    UpdateInputs,
    UseResultAsSource,
    inputs_for,
    reduce,
)


SOURCE = ImageArtifact(b"source")
OUT_A = ImageArtifact(b"a")
OUT_B = ImageArtifact(b"b")


def _run(state: SessionState, *events) -> SessionState:
    for event in events:
        state = reduce(state, event)
    return state


def test_every_mode_has_inputs() -> None:
    assert set(MODE_INPUTS) == {
        "create",
        "camera_angle",
        "plan_to_3d",
        "edit",
        "compose",
        "video",
        "prompt_ideas",
        "moodboard",
        "lighting",
        "video_script",
        "virtual_tour",
    }
    with pytest.raises(ValueError):
        inputs_for("canvas")


def test_inputs_clamp_count_and_reject_unknown_fields() -> None:
    assert CreateInputs(count=0).count == 1
    assert CreateInputs().updated({"count": 99}).count == 10
    with pytest.raises(ValueError):
        CreateInputs().updated({"mask": SOURCE})


def test_fresh_keeps_count_only() -> None:
    inputs = CreateInputs(prompt="custom", count=5)
    fresh = inputs.fresh()
    assert fresh.count == 5
    assert fresh.prompt == CreateInputs().prompt


def test_lighting_prompt_joins_parts() -> None:
    assert LightingInputs(interior="warm lamps", exterior="blue hour").prompt == "warm lamps, blue hour"
    assert LightingInputs(exterior="overcast").prompt == "overcast"


def test_generation_lifecycle() -> None:
    state = _run(SessionState(), SetSourceImage(SOURCE))
    assert state.results == (SOURCE,)
    state = reduce(state, GenerationStarted("dusk", "Generating..."))
    assert state.busy and state.results == () and state.last_prompt == "dusk"
    state = reduce(state, GenerationSucceeded((OUT_A, OUT_B)))
    assert not state.busy
    assert state.selected == 0 and state.selected_image == OUT_A
    state = reduce(state, SelectResult(1))
    assert state.selected_image == OUT_B
    assert reduce(state, SelectResult(5)) is state


def test_generation_failure_records_error() -> None:
    state = _run(SessionState(), GenerationStarted("p"), GenerationFailed("quota"))
    assert not state.busy
    assert state.error == "quota"
    state = reduce(state, SwitchMode("edit"))
    assert state.error is None


def test_switch_mode_to_same_tag_is_noop() -> None:
    state = SessionState(error="x")
    assert reduce(state, SwitchMode("create")) is state


def test_switch_mode_keeps_results_and_source() -> None:
    state = _run(SessionState(), SetSourceImage(SOURCE), SwitchMode("camera_angle"))
    assert state.tag == "camera_angle"
    assert state.source == SOURCE
    assert state.results == (SOURCE,)


def test_new_source_clears_mask_and_secondary() -> None:
    state = _run(
        SessionState(),
        SwitchMode("edit"),
        UpdateInputs({"mask": OUT_A, "secondary": OUT_B, "reference": OUT_B, "prompt": "add a pool"}),
        SetSourceImage(SOURCE),
    )
    assert isinstance(state.mode, EditInputs)
    assert state.mode.mask is None and state.mode.secondary is None and state.mode.reference is None
    assert state.mode.prompt == "add a pool"


def test_compose_source_does_not_show_as_result() -> None:
    state = _run(SessionState(), SwitchMode("compose"), SetSourceImage(SOURCE))
    assert state.source == SOURCE
    assert state.results == ()


def test_isolated_mode_keeps_its_own_source() -> None:
    shared = ImageArtifact(b"shared")
    isolated = ImageArtifact(b"isolated")
    state = _run(SessionState(), SetSourceImage(shared), SwitchMode("prompt_ideas"))
    assert state.source is None
    state = _run(state, SetSourceImage(isolated), SwitchMode("create"))
    assert state.source == shared
    state = _run(state, SwitchMode("moodboard"), SwitchMode("prompt_ideas"))
    assert state.source == isolated
    state = reduce(state, SwitchMode("create"))
    assert state.source == shared


def test_use_result_as_source_resets_inputs() -> None:
    state = _run(
        SessionState(),
        UpdateInputs({"prompt": "first", "count": 4}),
        GenerationStarted("first"),
        GenerationSucceeded((OUT_A, OUT_B)),
        SelectResult(1),
        UseResultAsSource(),
    )
    assert state.source == OUT_B
    assert state.results == (OUT_B,)
    assert state.mode.count == 4
    assert state.mode.prompt == CreateInputs().prompt


def test_start_editing_result_enters_edit() -> None:
    state = _run(
        SessionState(),
        GenerationStarted("p"),
        GenerationSucceeded((OUT_A,)),
        StartEditingResult(),
    )
    assert state.tag == "edit"
    assert state.source == OUT_A


def test_restore_mode_replaces_session() -> None:
    restored = CreateInputs(prompt="old prompt", count=3)
    state = reduce(
        SessionState(),
        RestoreMode(restored, SOURCE, (OUT_A,), None, "old prompt"),
    )
    assert state.mode == restored
    assert state.source == SOURCE
    assert state.results == (OUT_A,) and state.selected == 0
    assert state.last_prompt == "old prompt"


def test_unknown_event_raises() -> None:
    with pytest.raises(TypeError):
        reduce(SessionState(), object())


def test_mode_inputs_are_frozen() -> None:
    inputs: ModeInputs = CreateInputs()
    with pytest.raises(Exception):
        inputs.prompt = "changed"  # type: ignore[misc]
