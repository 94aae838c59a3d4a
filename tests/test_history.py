from __future__ import annotations

from pathlib import Path

from aicomplex_engine.runs.events import memory_events
from aicomplex_engine.runs.history import (
    HISTORY_CAPACITY,
    HISTORY_KEY,
    HistoryInputs,
    HistoryItem,
    HistoryStore,
    deserialize_item,
    serialize_item,
)
from aicomplex_engine.runs.requests import ImageArtifact
from aicomplex_engine.runs.store import InMemoryStore, JsonFileStore


def _item(prompt: str, mode: str = "create") -> HistoryItem:
    inputs = HistoryInputs(
        source=ImageArtifact(b"source", "image/jpeg"),
        prompt=prompt,
        count=2,
        options={"aspect_ratio": "16:9"},
    )
    return HistoryItem.create(mode, inputs, [ImageArtifact(b"out-" + prompt.encode())])


def test_append_is_newest_first_and_bounded() -> None:
    history = HistoryStore(InMemoryStore())
    for index in range(HISTORY_CAPACITY + 1):
        history.append(_item(f"p{index}"))
    assert len(history) == HISTORY_CAPACITY
    prompts = [item.inputs.prompt for item in history]
    assert prompts[0] == f"p{HISTORY_CAPACITY}"
    assert "p0" not in prompts


def test_history_persists_across_instances(tmp_path: Path) -> None:
    storage = JsonFileStore(tmp_path / "history.json")
    first = HistoryStore(storage)
    item = _item("warm dusk render")
    first.append(item)

    reloaded = HistoryStore(JsonFileStore(tmp_path / "history.json"))
    assert len(reloaded) == 1
    restored = reloaded.get(item.id)
    assert restored == item
    assert restored.inputs.source.mime_type == "image/jpeg"
    assert restored.inputs.options == {"aspect_ratio": "16:9"}


def test_serialize_roundtrip_keeps_text_and_video_model() -> None:
    item = HistoryItem.create(
        "video",
        HistoryInputs(prompt="orbit"),
        generated_text=None,
        video_model="veo-3.1-fast-generate-preview",
    )
    assert deserialize_item(serialize_item(item)) == item


def test_malformed_payload_is_discarded() -> None:
    events = memory_events()
    storage = InMemoryStore({HISTORY_KEY: {"items": [{"mode": "create"}]}})
    history = HistoryStore(storage, events=events)
    assert len(history) == 0
    assert storage.load(HISTORY_KEY) is None
    assert events.types() == ["history_load_failed"]


def test_non_list_payload_is_discarded() -> None:
    storage = InMemoryStore({HISTORY_KEY: "garbage"})
    assert len(HistoryStore(storage)) == 0
    assert storage.load(HISTORY_KEY) is None


def test_clear_removes_stored_key() -> None:
    storage = InMemoryStore()
    events = memory_events()
    history = HistoryStore(storage, events=events)
    history.append(_item("a"))
    assert storage.load(HISTORY_KEY) is not None
    history.clear()
    assert len(history) == 0
    assert storage.load(HISTORY_KEY) is None
    assert events.types() == ["history_appended", "history_cleared"]


def test_history_without_storage_stays_in_memory() -> None:
    history = HistoryStore()
    history.append(_item("a"))
    assert len(history) == 1
    assert history.get("missing") is None
