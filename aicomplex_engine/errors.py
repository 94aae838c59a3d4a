"""Error taxonomy shared by the pipeline and the session layer."""

from __future__ import annotations


INVALID_CREDENTIAL_MARKERS = (
    "Requested entity was not found.",
    "API key not valid",
    "API_KEY_INVALID",
)


class ConfigurationError(RuntimeError):
    """Missing or unusable credential; raised before any backend call."""


class GenerationFailed(RuntimeError):
    pass


class EmptyBatchResult(GenerationFailed):
    """Every attempt of a batch failed, or a single-shot call returned nothing."""


class VideoJobFailure(RuntimeError):
    pass


class InvalidCredentialError(RuntimeError):
    """The backend rejected the configured credential."""


class SessionBusyError(RuntimeError):
    pass


class InvalidRequestError(ValueError):
    """Inputs for the active mode are incomplete."""


def is_invalid_credential(exc: BaseException | None) -> bool:
    seen: set[int] = set()
    current = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, InvalidCredentialError):
            return True
        seen.add(id(current))
        text = str(current)
        if any(marker in text for marker in INVALID_CREDENTIAL_MARKERS):
            return True
        current = current.__cause__ or current.__context__
    return False
