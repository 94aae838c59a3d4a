"""Video job submission and polling."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, NoReturn

from ..errors import VideoJobFailure
from ..providers.base import VideoBackend
from ..runs.events import EventWriter
from ..runs.requests import ImageArtifact


INITIAL_MESSAGE = "Initializing video generation..."
DOWNLOADING_MESSAGE = "Video generated! Downloading..."
COMPLETE_MESSAGE = "Download complete!"
PROGRESS_MESSAGES = (
    "Analyzing the scene...",
    "Planning the camera movement...",
    "Rendering the first frames...",
    "Adding motion and lighting...",
    "Refining the details...",
    "Almost there, finalizing the video...",
)

ProgressCallback = Callable[[str], None]


class VideoJobState(str, Enum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    DONE = "done"
    FAILED = "failed"


@dataclass
class VideoJob:
    model: str
    state: VideoJobState = VideoJobState.SUBMITTED
    handle: Any = None
    last_message: str = ""
    polls: int = 0
    error: str | None = None


class VideoBlob:
    """Fetched video bytes; ``revoke`` releases them."""

    def __init__(self, data: bytes, mime_type: str = "video/mp4") -> None:
        self._data: bytes | None = data
        self.mime_type = mime_type

    @property
    def revoked(self) -> bool:
        return self._data is None

    @property
    def data(self) -> bytes:
        if self._data is None:
            raise ValueError("Video blob has been revoked")
        return self._data

    def revoke(self) -> None:
        self._data = None

    def save(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.data)
        return path


class VideoJobPoller:
    def __init__(
        self,
        backend: VideoBackend,
        *,
        poll_interval: float = 10.0,
        max_polls: int = 90,
        sleep: Callable[[float], None] = time.sleep,
        events: EventWriter | None = None,
    ) -> None:
        self.backend = backend
        self.poll_interval = poll_interval
        self.max_polls = max(1, int(max_polls))
        self.sleep = sleep
        self.events = events
        self.job: VideoJob | None = None
        self.blob: VideoBlob | None = None

    def run(
        self,
        image: ImageArtifact,
        prompt: str,
        model: str,
        on_progress: ProgressCallback | None = None,
    ) -> VideoBlob:
        self.backend.ensure_configured()
        if self.blob is not None:
            self.blob.revoke()
            self.blob = None
        job = VideoJob(model=model)
        self.job = job
        report = _reporter(job, on_progress)

        report(INITIAL_MESSAGE)
        try:
            operation = self.backend.submit(image, prompt, model)
        except Exception as exc:
            self._fail(job, f"Video submission failed: {exc}", exc)
        job.handle = operation.handle
        job.state = VideoJobState.POLLING
        self._emit("video_job_submitted", model=model)

        message_index = 0
        report(PROGRESS_MESSAGES[message_index])
        while not operation.done:
            if job.polls >= self.max_polls:
                self._fail(job, f"Video generation did not finish after {job.polls} polls")
            self.sleep(self.poll_interval)
            message_index = (message_index + 1) % len(PROGRESS_MESSAGES)
            report(PROGRESS_MESSAGES[message_index])
            try:
                operation = self.backend.poll(operation)
            except Exception as exc:
                self._fail(job, f"Video status check failed: {exc}", exc)
            job.polls += 1
            job.handle = operation.handle
            self._emit("video_job_progress", polls=job.polls, message=job.last_message)

        if operation.error:
            self._fail(job, f"Video generation failed: {operation.error}")
        uri = operation.result_uri
        if not uri:
            self._fail(job, "Video generation finished without a download link")
        report(DOWNLOADING_MESSAGE)
        try:
            data = self.backend.fetch(uri)
        except Exception as exc:
            self._fail(job, f"Video download failed: {exc}", exc)
        if not data:
            self._fail(job, "Video download returned no data")
        job.state = VideoJobState.DONE
        report(COMPLETE_MESSAGE)
        self.blob = VideoBlob(data)
        self._emit("video_job_done", model=model, polls=job.polls, bytes=len(data))
        return self.blob

    def _fail(self, job: VideoJob, message: str, cause: Exception | None = None) -> NoReturn:
        job.state = VideoJobState.FAILED
        job.error = message
        self._emit("video_job_failed", model=job.model, polls=job.polls, error=message)
        if cause is not None:
            raise VideoJobFailure(message) from cause
        raise VideoJobFailure(message)

    def _emit(self, event_type: str, **payload: Any) -> None:
        if self.events:
            self.events.emit(event_type, **payload)


def _reporter(job: VideoJob, on_progress: ProgressCallback | None) -> ProgressCallback:
    def report(message: str) -> None:
        job.last_message = message
        if on_progress:
            on_progress(message)

    return report

