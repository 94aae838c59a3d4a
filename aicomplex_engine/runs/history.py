"""Newest-first log of completed generation sessions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping

from ..utils import new_item_id, now_utc_iso
from .events import EventWriter
from .requests import ImageArtifact
from .store import KeyValueStore


HISTORY_KEY = "aicomplex-history"
HISTORY_CAPACITY = 50
HISTORY_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class HistoryInputs:
    source: ImageArtifact | None = None
    secondary: ImageArtifact | None = None
    reference: ImageArtifact | None = None
    prompt: str = ""
    negative_prompt: str = ""
    count: int = 0
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class HistoryItem:
    id: str
    mode: str
    inputs: HistoryInputs
    generated_images: tuple[ImageArtifact, ...] = ()
    generated_text: str | None = None
    video_model: str | None = None
    created_at: str = ""

    @classmethod
    def create(
        cls,
        mode: str,
        inputs: HistoryInputs,
        generated_images: list[ImageArtifact] | tuple[ImageArtifact, ...] = (),
        generated_text: str | None = None,
        video_model: str | None = None,
    ) -> "HistoryItem":
        return cls(
            id=new_item_id(),
            mode=mode,
            inputs=inputs,
            generated_images=tuple(generated_images),
            generated_text=generated_text,
            video_model=video_model,
            created_at=now_utc_iso(),
        )


def _image_payload(image: ImageArtifact | None) -> dict[str, str] | None:
    return image.to_payload() if image is not None else None


def _image_from_payload(payload: Any) -> ImageArtifact | None:
    if not isinstance(payload, Mapping):
        return None
    return ImageArtifact.from_payload(payload)


def serialize_item(item: HistoryItem) -> dict[str, Any]:
    inputs = item.inputs
    return {
        "id": item.id,
        "mode": item.mode,
        "created_at": item.created_at,
        "inputs": {
            "source": _image_payload(inputs.source),
            "secondary": _image_payload(inputs.secondary),
            "reference": _image_payload(inputs.reference),
            "prompt": inputs.prompt,
            "negative_prompt": inputs.negative_prompt,
            "count": inputs.count,
            "options": dict(inputs.options),
        },
        "generated_images": [image.to_payload() for image in item.generated_images],
        "generated_text": item.generated_text,
        "video_model": item.video_model,
    }


def deserialize_item(payload: Mapping[str, Any]) -> HistoryItem:
    raw_inputs = payload.get("inputs") or {}
    inputs = HistoryInputs(
        source=_image_from_payload(raw_inputs.get("source")),
        secondary=_image_from_payload(raw_inputs.get("secondary")),
        reference=_image_from_payload(raw_inputs.get("reference")),
        prompt=str(raw_inputs.get("prompt") or ""),
        negative_prompt=str(raw_inputs.get("negative_prompt") or ""),
        count=int(raw_inputs.get("count") or 0),
        options=dict(raw_inputs.get("options") or {}),
    )
    return HistoryItem(
        id=str(payload["id"]),
        mode=str(payload["mode"]),
        inputs=inputs,
        generated_images=tuple(ImageArtifact.from_payload(entry) for entry in payload.get("generated_images") or []),
        generated_text=payload.get("generated_text"),
        video_model=payload.get("video_model"),
        created_at=str(payload.get("created_at") or ""),
    )


class HistoryStore:
    def __init__(
        self,
        storage: KeyValueStore | None = None,
        *,
        key: str = HISTORY_KEY,
        capacity: int = HISTORY_CAPACITY,
        events: EventWriter | None = None,
    ) -> None:
        self.storage = storage
        self.key = key
        self.capacity = max(1, capacity)
        self.events = events
        self._items: list[HistoryItem] = self._load()

    def _load(self) -> list[HistoryItem]:
        if self.storage is None:
            return []
        raw = self.storage.load(self.key)
        if raw is None:
            return []
        try:
            if not isinstance(raw, Mapping) or not isinstance(raw.get("items"), list):
                raise ValueError("history payload is not an item list")
            items = [deserialize_item(entry) for entry in raw["items"]]
        except Exception as exc:
            if self.events:
                self.events.emit("history_load_failed", error=str(exc))
            self.storage.delete(self.key)
            return []
        return items[: self.capacity]

    def _persist(self) -> None:
        if self.storage is None:
            return
        if not self._items:
            self.storage.delete(self.key)
            return
        self.storage.save(
            self.key,
            {
                "schema_version": HISTORY_SCHEMA_VERSION,
                "items": [serialize_item(item) for item in self._items],
            },
        )

    @property
    def items(self) -> list[HistoryItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[HistoryItem]:
        return iter(list(self._items))

    def get(self, item_id: str) -> HistoryItem | None:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def append(self, item: HistoryItem) -> None:
        self._items = [item, *self._items][: self.capacity]
        self._persist()
        if self.events:
            self.events.emit("history_appended", item_id=item.id, mode=item.mode, size=len(self._items))

    def clear(self) -> None:
        self._items = []
        self._persist()
        if self.events:
            self.events.emit("history_cleared")
