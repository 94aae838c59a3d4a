"""Placed decor objects over a background image."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Iterable, Mapping

from ..runs.requests import ImageArtifact


@dataclass(frozen=True)
class ObjectTransform:
    x: float = 50.0
    y: float = 50.0
    scale: float = 20.0
    rotation: float = 0.0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "rotation", min(360.0, max(0.0, float(self.rotation))))

    def merged(self, updates: Mapping[str, Any]) -> "ObjectTransform":
        known = {item.name for item in fields(self)}
        unknown = sorted(set(updates) - known)
        if unknown:
            raise ValueError(f"Unknown transform field(s): {', '.join(unknown)}")
        return replace(self, **updates)


@dataclass(frozen=True)
class PlacedObject:
    image: ImageArtifact
    transform: ObjectTransform = ObjectTransform()


class CompositionModel:
    def __init__(self) -> None:
        self._objects: list[PlacedObject] = []
        self.selected: int | None = None
        self.locked = False

    @property
    def objects(self) -> list[ImageArtifact]:
        return [item.image for item in self._objects]

    @property
    def transforms(self) -> list[ObjectTransform]:
        return [item.transform for item in self._objects]

    def placements(self) -> list[PlacedObject]:
        return list(self._objects)

    def __len__(self) -> int:
        return len(self._objects)

    def add(self, image: ImageArtifact) -> int:
        self._objects.append(PlacedObject(image))
        return len(self._objects) - 1

    def add_many(self, images: Iterable[ImageArtifact]) -> list[int]:
        return [self.add(image) for image in images]

    def remove(self, index: int) -> None:
        self._check_index(index)
        del self._objects[index]
        if self.selected is None:
            return
        if self.selected == index:
            self.selected = None
        elif self.selected > index:
            self.selected -= 1

    def remove_selected(self) -> None:
        if self.selected is not None:
            self.remove(self.selected)

    def duplicate(self, index: int) -> int | None:
        if not 0 <= index < len(self._objects):
            return None
        new_index = self.add(self._objects[index].image)
        self.selected = new_index
        return new_index

    def select(self, index: int | None) -> None:
        if index is not None:
            self._check_index(index)
        self.selected = index

    def update_transform(self, updates: Mapping[str, Any], index: int | None = None) -> bool:
        """Merge ``updates`` into one transform; returns False without a target or while locked."""
        target = self.selected if index is None else index
        if target is None or self.locked:
            return False
        self._check_index(target)
        current = self._objects[target]
        self._objects[target] = replace(current, transform=current.transform.merged(updates))
        return True

    def clear_all(self) -> None:
        self._objects = []
        self.selected = None

    def lock(self, locked: bool = True) -> None:
        self.locked = bool(locked)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._objects):
            raise IndexError(f"No composition object at index {index}")
