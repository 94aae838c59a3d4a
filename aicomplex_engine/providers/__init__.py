"""Backend registry."""

from __future__ import annotations

from .base import BackendRegistry
from .dryrun import DryRunImageBackend, DryRunVideoBackend
from .gemini import GeminiImageBackend, VeoVideoBackend


def default_registry() -> BackendRegistry:
    return BackendRegistry(
        [
            DryRunImageBackend(),
            GeminiImageBackend(),
        ],
        [
            DryRunVideoBackend(),
            VeoVideoBackend(),
        ],
    )
