from __future__ import annotations

from pathlib import Path

import pytest

from aicomplex_engine.errors import VideoJobFailure
from aicomplex_engine.pipeline.video import (
    COMPLETE_MESSAGE,
    DOWNLOADING_MESSAGE,
    INITIAL_MESSAGE,
    PROGRESS_MESSAGES,
    VideoJobPoller,
    VideoJobState,
)
from aicomplex_engine.providers.base import VideoOperation
from aicomplex_engine.providers.dryrun import DryRunVideoBackend
from aicomplex_engine.runs.events import memory_events
from aicomplex_engine.runs.requests import ImageArtifact


SOURCE = ImageArtifact(b"still")


class FakeVideoBackend:
    name = "fake"

    def __init__(
        self,
        *,
        polls_until_done: int = 2,
        result_uri: str | None = "https://example.invalid/video.mp4",
        error: str | None = None,
        fetch_error: Exception | None = None,
    ) -> None:
        self.polls_until_done = polls_until_done
        self.result_uri = result_uri
        self.error = error
        self.fetch_error = fetch_error
        self.polls = 0
        self.fetched: list[str] = []

    def ensure_configured(self) -> None:
        return None

    def submit(self, image, prompt, model):
        return self._operation()

    def poll(self, operation):
        self.polls += 1
        return self._operation()

    def fetch(self, uri):
        self.fetched.append(uri)
        if self.fetch_error:
            raise self.fetch_error
        return b"mp4-bytes"

    def _operation(self) -> VideoOperation:
        done = self.polls >= self.polls_until_done
        return VideoOperation(
            handle="op-1",
            done=done,
            result_uri=self.result_uri if done else None,
            error=self.error if done else None,
        )


def _poller(backend, **kwargs) -> tuple[VideoJobPoller, list[float]]:
    sleeps: list[float] = []
    poller = VideoJobPoller(backend, poll_interval=10.0, sleep=sleeps.append, **kwargs)
    return poller, sleeps


def test_video_job_reaches_done_and_reports_progress() -> None:
    events = memory_events()
    backend = FakeVideoBackend(polls_until_done=2)
    poller, sleeps = _poller(backend, events=events)
    messages: list[str] = []

    blob = poller.run(SOURCE, "slow dolly in", "veo-3.1-fast-generate-preview", messages.append)

    assert blob.data == b"mp4-bytes"
    assert sleeps == [10.0, 10.0]
    assert messages == [
        INITIAL_MESSAGE,
        PROGRESS_MESSAGES[0],
        PROGRESS_MESSAGES[1],
        PROGRESS_MESSAGES[2],
        DOWNLOADING_MESSAGE,
        COMPLETE_MESSAGE,
    ]
    assert poller.job is not None
    assert poller.job.state is VideoJobState.DONE
    assert poller.job.polls == 2
    assert backend.fetched == ["https://example.invalid/video.mp4"]
    assert events.types() == [
        "video_job_submitted",
        "video_job_progress",
        "video_job_progress",
        "video_job_done",
    ]


def test_progress_messages_cycle() -> None:
    backend = FakeVideoBackend(polls_until_done=len(PROGRESS_MESSAGES) + 1)
    poller, _ = _poller(backend)
    messages: list[str] = []
    poller.run(SOURCE, "orbit", "veo-2.0-generate-preview", messages.append)
    decorative = messages[1:-2]
    assert decorative[len(PROGRESS_MESSAGES)] == PROGRESS_MESSAGES[0]


def test_completion_without_uri_fails() -> None:
    backend = FakeVideoBackend(polls_until_done=1, result_uri=None)
    poller, _ = _poller(backend)
    with pytest.raises(VideoJobFailure):
        poller.run(SOURCE, "pan", "veo-3.1-generate-preview")
    assert poller.job.state is VideoJobState.FAILED
    assert backend.fetched == []


def test_completion_with_error_fails() -> None:
    backend = FakeVideoBackend(polls_until_done=1, error="RAI filtered")
    poller, _ = _poller(backend)
    with pytest.raises(VideoJobFailure, match="RAI filtered"):
        poller.run(SOURCE, "pan", "veo-3.1-generate-preview")


def test_fetch_failure_fails_without_retry() -> None:
    events = memory_events()
    backend = FakeVideoBackend(polls_until_done=0, fetch_error=RuntimeError("Failed to download video (403)"))
    poller, sleeps = _poller(backend, events=events)
    with pytest.raises(VideoJobFailure) as excinfo:
        poller.run(SOURCE, "pan", "veo-3.1-generate-preview")
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert len(backend.fetched) == 1
    assert sleeps == []
    assert events.types()[-1] == "video_job_failed"


def test_poll_cap_bounds_a_stuck_job() -> None:
    backend = FakeVideoBackend(polls_until_done=1000)
    poller, sleeps = _poller(backend, max_polls=3)
    with pytest.raises(VideoJobFailure, match="3 polls"):
        poller.run(SOURCE, "pan", "veo-3.1-generate-preview")
    assert len(sleeps) == 3
    assert poller.job.state is VideoJobState.FAILED


def test_new_run_revokes_previous_blob(tmp_path: Path) -> None:
    poller, _ = _poller(DryRunVideoBackend(polls_until_done=1))
    first = poller.run(SOURCE, "pan", "veo-3.1-fast-generate-preview")
    saved = first.save(tmp_path / "first.mp4")
    assert saved.read_bytes().startswith(b"dryrun-video:")

    second = poller.run(SOURCE, "tilt", "veo-3.1-fast-generate-preview")
    assert first.revoked
    assert not second.revoked
    with pytest.raises(ValueError):
        _ = first.data


def test_job_done_at_submit_still_passes_through_polling() -> None:
    backend = FakeVideoBackend(polls_until_done=0)
    poller, sleeps = _poller(backend)
    seen: list[tuple[str, VideoJobState]] = []

    poller.run(SOURCE, "pan", "veo-3.1-generate-preview", lambda message: seen.append((message, poller.job.state)))

    assert seen[0] == (INITIAL_MESSAGE, VideoJobState.SUBMITTED)
    assert seen[1] == (PROGRESS_MESSAGES[0], VideoJobState.POLLING)
    assert seen[-1][1] is VideoJobState.DONE
    assert sleeps == []
