"""Key-value persistence used by the history store."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from ..utils import read_json, write_json


class KeyValueStore(Protocol):
    def load(self, key: str) -> Any | None:
        ...

    def save(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


@dataclass
class JsonFileStore:
    """All keys live in one JSON object on disk; re-read before every write."""

    path: Path

    def _read(self) -> dict[str, Any]:
        payload = read_json(self.path, {})
        return payload if isinstance(payload, dict) else {}

    def load(self, key: str) -> Any | None:
        value = self._read().get(key)
        return deepcopy(value) if value is not None else None

    def save(self, key: str, value: Any) -> None:
        payload = self._read()
        snapshot = deepcopy(value)
        if payload.get(key) == snapshot:
            return
        payload[key] = snapshot
        write_json(self.path, payload)

    def delete(self, key: str) -> None:
        payload = self._read()
        if key not in payload:
            return
        payload.pop(key)
        write_json(self.path, payload)


@dataclass
class InMemoryStore:
    values: dict[str, Any] = field(default_factory=dict)

    def load(self, key: str) -> Any | None:
        value = self.values.get(key)
        return deepcopy(value) if value is not None else None

    def save(self, key: str, value: Any) -> None:
        self.values[key] = deepcopy(value)

    def delete(self, key: str) -> None:
        self.values.pop(key, None)
