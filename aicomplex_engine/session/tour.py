"""Virtual tour frame history."""

from __future__ import annotations

from typing import Generic, TypeVar


NAVIGATION_PROMPTS: dict[str, str] = {
    "pan_left": "Turn the camera 30 degrees to the left, keeping the same position and height.",
    "pan_right": "Turn the camera 30 degrees to the right, keeping the same position and height.",
    "look_up": "Tilt the camera up to look at the upper part of the space, keeping the same position.",
    "look_down": "Tilt the camera down to look at the lower part of the space, keeping the same position.",
    "zoom_in": "Move the camera forward into the space as if taking a few steps ahead.",
    "zoom_out": "Move the camera backward to reveal more of the space.",
}

Frame = TypeVar("Frame")


class VirtualTourNavigator(Generic[Frame]):
    """Linear history; stepping after an undo discards the redo branch."""

    def __init__(self) -> None:
        self._frames: list[Frame] = []
        self._cursor = -1

    @property
    def frames(self) -> list[Frame]:
        return list(self._frames)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current(self) -> Frame | None:
        if self._cursor < 0:
            return None
        return self._frames[self._cursor]

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._frames) - 1

    def start(self, frame: Frame) -> None:
        self._frames = [frame]
        self._cursor = 0

    def reset(self) -> None:
        self._frames = []
        self._cursor = -1

    def step(self, frame: Frame) -> int:
        if self._cursor < 0:
            self.start(frame)
            return self._cursor
        self._frames = self._frames[: self._cursor + 1]
        self._frames.append(frame)
        self._cursor = len(self._frames) - 1
        return self._cursor

    def undo(self) -> Frame | None:
        if self.can_undo:
            self._cursor -= 1
        return self.current

    def redo(self) -> Frame | None:
        if self.can_redo:
            self._cursor += 1
        return self.current

    def jump_to(self, index: int) -> Frame | None:
        if 0 <= index < len(self._frames):
            self._cursor = index
        return self.current
